"""
Turn Timers - One cancellable deferred callback per session.

The registry owns these handles; they never live inside a VetoSession, so a
snapshot can always be serialized. Every re-arm cancels the previous handle
first so a stale timer can never fire against newer state.
"""

from __future__ import annotations
from typing import Callable, Protocol
import asyncio
import logging

logger = logging.getLogger(__name__)


class TimerHandle(Protocol):
    def cancel(self) -> None: ...


class Scheduler(Protocol):
    """Anything that can run a callback after a delay in seconds."""

    def call_later(self, delay: float, callback: Callable[[], None]) -> TimerHandle: ...


class AsyncioScheduler:
    """Schedules on the running event loop (the server's)."""

    def call_later(self, delay: float, callback: Callable[[], None]) -> TimerHandle:
        loop = asyncio.get_running_loop()
        return loop.call_later(max(delay, 0.0), callback)


class TurnTimers:
    """
    Map from session id to its pending timeout.

    Usage:
        timers = TurnTimers(AsyncioScheduler())
        timers.arm("abc", 30.0, lambda: registry.handle_timeout("abc"))
        timers.cancel("abc")
    """

    def __init__(self, scheduler: Scheduler):
        self.scheduler = scheduler
        self._handles: dict[str, TimerHandle] = {}

    def arm(self, session_id: str, delay: float, callback: Callable[[], None]):
        """Cancel any pending timer for the session, then schedule a new one."""
        self.cancel(session_id)

        def _fire():
            # Only the handle still registered may fire
            if self._handles.get(session_id) is handle:
                del self._handles[session_id]
                callback()

        handle = self.scheduler.call_later(delay, _fire)
        self._handles[session_id] = handle

    def cancel(self, session_id: str) -> bool:
        handle = self._handles.pop(session_id, None)
        if handle is None:
            return False
        handle.cancel()
        return True

    def cancel_all(self):
        for session_id in list(self._handles):
            self.cancel(session_id)

    def is_armed(self, session_id: str) -> bool:
        return session_id in self._handles
