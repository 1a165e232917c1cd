"""Manager modules for WonderNest.

Managers orchestrate workflows and coordinate between engines.
They are stateful and own locking, persistence and notifications.
"""

from .achievement_manager import AchievementManager
from .approval_manager import ApprovalManager
from .base_manager import BaseManager
from .ledger_manager import LedgerManager
from .reward_manager import RewardManager
from .session_manager import SessionManager
from .sync_manager import SyncManager

__all__ = [
    "AchievementManager",
    "ApprovalManager",
    "BaseManager",
    "LedgerManager",
    "RewardManager",
    "SessionManager",
    "SyncManager",
]
