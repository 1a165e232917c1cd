"""Engine modules for WonderNest.

Contains pure computation engines (no Home Assistant imports):
- criteria_engine: Achievement criterion decoding and evaluation
- ledger_engine: Currency arithmetic and transactions
- reward_engine: Reward rule matching
- approval_engine: Approval state machine and access checks
- sync_engine: Sync queue backoff and bookkeeping
"""

from .approval_engine import ApprovalEngine
from .criteria_engine import CriteriaEngine
from .ledger_engine import LedgerEngine
from .reward_engine import RewardEngine
from .sync_engine import SyncEngine

__all__ = [
    "ApprovalEngine",
    "CriteriaEngine",
    "LedgerEngine",
    "RewardEngine",
    "SyncEngine",
]
