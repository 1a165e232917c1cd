"""Test helpers for WonderNest tests.

This module re-exports all helpers for convenient imports:

    from tests.helpers import (
        setup_wondernest, SetupResult, FakeRemoteSink,
        make_game, make_achievement, make_rule, local_dt, failing_writes,
    )

See setup.py for full documentation.
"""

from tests.helpers.setup import (
    FakeRemoteSink,
    SetupResult,
    failing_writes,
    local_dt,
    make_achievement,
    make_game,
    make_rule,
    setup_wondernest,
)

__all__ = [
    "FakeRemoteSink",
    "SetupResult",
    "failing_writes",
    "local_dt",
    "make_achievement",
    "make_game",
    "make_rule",
    "setup_wondernest",
]
