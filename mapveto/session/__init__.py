"""
Session Module - Owns live veto sessions.

A session represents one map veto:
- Created when a client submits teams and a format
- Mutated only through the registry (actions, timeouts, admin undo/reset)
- Published to subscribers and persisted after every accepted change
- Removed only by an administrator
"""

from .manager import SessionRegistry, Publisher, DEFAULT_TIMER_SECONDS
from .timers import AsyncioScheduler, Scheduler, TurnTimers

__all__ = [
    "SessionRegistry",
    "Publisher",
    "DEFAULT_TIMER_SECONDS",
    "AsyncioScheduler",
    "Scheduler",
    "TurnTimers",
]
