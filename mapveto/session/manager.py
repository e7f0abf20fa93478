"""
Session Registry - Creates, mutates and tracks veto sessions.

LIFECYCLE:
1. A client creates a session (teams, format, timer and coin flip options)
   → tokens and an identifier are generated, the map pool is copied from the
     catalog, and the session is persisted immediately
2. During the veto:
   - Clients send actions, which the reducer validates and applies
   - Accepted actions are published to every subscriber, then persisted
   - Rejected actions change nothing and publish nothing
   - The turn timer is re-armed or cancelled after every change
3. The session stays until an administrator deletes it (or resets all history)

CONCURRENCY:
- The registry is the only writer of session state
- Each action or timer callback runs to completion as one event
- Sessions never wait on one another
- Store access runs on one worker thread, in submission order. On the event
  loop a write is handed off and the broadcast goes out without waiting for it
- A persistence failure is logged; the in-memory state stays authoritative
"""

from __future__ import annotations
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timezone
from typing import Any, Callable
import asyncio
import logging

from sqlalchemy.exc import SQLAlchemyError

from ..access import generate_key, generate_tokens
from ..engine_core.action import Action, ActionResult
from ..engine_core.reducer import VetoReducer
from ..engine_core.state import CoinFlip, SequenceStep, VetoSession
from ..formats.maps import MapCatalog
from ..formats.sequences import get_sequence
from ..store.repository import MatchStore
from .timers import AsyncioScheduler, Scheduler, TurnTimers

logger = logging.getLogger(__name__)

DEFAULT_TIMER_SECONDS = 60

# Called with (session_id, public snapshot) after every accepted change
Publisher = Callable[[str, dict[str, Any]], None]


def _no_publish(session_id: str, snapshot: dict[str, Any]):
    pass


def _log_write_failure(future: asyncio.Future, label: str):
    if future.cancelled():
        return
    error = future.exception()
    if error is not None:
        logger.error("Failed to %s", label, exc_info=error)


class SessionRegistry:
    """
    Owns every live veto session.

    Responsibilities:
    - Create sessions from client requests
    - Route actions and timeouts through the reducer
    - Publish and persist after every accepted change
    - Keep exactly one pending turn timer per running session
    """

    def __init__(
        self,
        store: MatchStore | None = None,
        catalog: MapCatalog | None = None,
        reducer: VetoReducer | None = None,
        scheduler: Scheduler | None = None,
        publisher: Publisher | None = None,
        default_timer: int = DEFAULT_TIMER_SECONDS,
    ):
        self.store = store
        self.catalog = catalog or MapCatalog()
        self.reducer = reducer or VetoReducer()
        self.timers = TurnTimers(scheduler or AsyncioScheduler())
        self.publisher = publisher or _no_publish
        self.default_timer = default_timer
        self._sessions: dict[str, VetoSession] = {}
        self._worker = ThreadPoolExecutor(max_workers=1, thread_name_prefix="match-store")

    # =========================================================================
    # Lifecycle
    # =========================================================================

    def create_session(
        self,
        format_id: str,
        team_a: str | None = None,
        team_b: str | None = None,
        team_a_logo: str | None = None,
        team_b_logo: str | None = None,
        custom_map_names: list[str] | None = None,
        custom_sequence: list[SequenceStep] | None = None,
        use_timer: bool = False,
        timer_duration: int | None = None,
        use_coin_flip: bool = False,
    ) -> VetoSession:
        """
        Create and persist a new session.

        Raises UnknownFormatError for an unknown format id.
        """
        sequence = get_sequence(format_id, custom_sequence)
        maps = self.catalog.build_pool(format_id, custom_map_names)

        session_id = generate_key(6)
        while session_id in self._sessions:
            session_id = generate_key(6)

        session = VetoSession(
            session_id=session_id,
            date=datetime.now(timezone.utc).isoformat(),
            tokens=generate_tokens(),
            format_id=format_id,
            team_a=team_a or "Team A",
            team_b=team_b or "Team B",
            team_a_logo=team_a_logo or None,
            team_b_logo=team_b_logo or None,
            template=list(sequence),
            sequence=list(sequence),
            maps=maps,
            use_timer=bool(use_timer),
            timer_duration=self._timer_seconds(use_timer, timer_duration),
            use_coin_flip=bool(use_coin_flip),
            coin_flip=CoinFlip() if use_coin_flip else None,
        )
        # A script may open on a tiebreak
        self.reducer.evaluate_termination(session)

        self._sessions[session_id] = session
        logger.info(
            "Created session %s: %s vs %s, format=%s, timer=%s (%ss), coin_flip=%s",
            session_id, session.team_a, session.team_b, format_id,
            session.use_timer, session.timer_duration, session.use_coin_flip,
        )
        self._persist(session)
        return session

    def close(self):
        """Wait for pending store writes, then stop the store worker."""
        self._worker.shutdown(wait=True)

    def _timer_seconds(self, use_timer: bool, timer_duration: Any) -> int:
        if not use_timer:
            return self.default_timer
        try:
            seconds = int(timer_duration)
        except (TypeError, ValueError):
            return self.default_timer
        return seconds if seconds > 0 else self.default_timer

    def get_session(self, session_id: str) -> VetoSession | None:
        """Get a session by ID."""
        return self._sessions.get(session_id)

    def list_sessions(self) -> list[VetoSession]:
        """Live sessions, newest first."""
        return sorted(self._sessions.values(), key=lambda s: s.date, reverse=True)

    def delete_session(self, session_id: str) -> bool:
        """Drop a session from memory and from the store."""
        self.timers.cancel(session_id)
        removed = self._sessions.pop(session_id, None) is not None
        if self.store is not None:
            self._submit(self.store.delete, session_id, label=f"delete session {session_id}")
        if removed:
            logger.info("Deleted session %s", session_id)
        return removed

    def clear_all(self):
        """Bulk history reset: every session, live and stored."""
        self.timers.cancel_all()
        count = len(self._sessions)
        self._sessions.clear()
        if self.store is not None:
            self._submit(self.store.delete_all, label="clear the store")
        logger.warning("All sessions cleared (%d live)", count)

    def load_from_store(self) -> int:
        """
        Restore persisted sessions at startup.

        Timers whose deadline is still pending are re-armed; elapsed ones
        fire as soon as the loop runs.
        """
        if self.store is None:
            return 0
        sessions = self.store.load_all()
        for session in sessions:
            self._sessions[session.session_id] = session
            self._sync_timer(session)
        logger.info("Loaded %d sessions from the store", len(sessions))
        return len(sessions)

    # =========================================================================
    # Mutation
    # =========================================================================

    def apply(self, session_id: str, action: Action) -> ActionResult:
        """
        Apply an action to a session.

        Accepted actions are published and persisted; rejected ones are not.
        """
        session = self._sessions.get(session_id)
        if session is None:
            return ActionResult.failure(
                f"Session {session_id} not found", error_code="SESSION_NOT_FOUND"
            )

        result = self.reducer.apply(session, action)
        if result.success:
            for change in result.changes:
                logger.debug("[%s] %s", session_id, change)
            self._commit(session)
        return result

    def handle_timeout(self, session_id: str) -> ActionResult:
        """Timer callback: auto-resolve the current step."""
        logger.info("Turn timer expired for session %s", session_id)
        return self.apply(session_id, Action.timeout())

    def _commit(self, session: VetoSession):
        self._sync_timer(session)
        self.publisher(session.session_id, self.public_snapshot(session))
        self._persist(session)

    def _sync_timer(self, session: VetoSession):
        """Make the pending callback match the session's deadline."""
        self.timers.cancel(session.session_id)
        if session.finished or session.timer_ends_at is None:
            return
        now_ms = int(self.reducer.clock() * 1000)
        delay = (session.timer_ends_at - now_ms) / 1000
        session_id = session.session_id
        self.timers.arm(session_id, delay, lambda: self.handle_timeout(session_id))
        logger.debug("Timer armed for session %s (%.1fs)", session_id, delay)

    def _persist(self, session: VetoSession):
        if self.store is None:
            return
        # Snapshot now; the worker must not read a session the loop may change
        snapshot = session.to_snapshot(include_tokens=True)
        self._submit(
            self.store.save_snapshot, snapshot, label=f"persist session {session.session_id}"
        )

    # =========================================================================
    # Store worker
    # =========================================================================

    def _submit(self, fn: Callable[..., Any], *args: Any, label: str):
        """
        Run a store write on the worker thread.

        On the event loop the write is fire-and-forget and a failure is logged
        from its done-callback. Without a running loop (CLI, tests) the call
        waits for the write.
        """
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            try:
                self._worker.submit(fn, *args).result()
            except SQLAlchemyError:
                logger.exception("Failed to %s", label)
            return
        future = loop.run_in_executor(self._worker, fn, *args)
        future.add_done_callback(lambda f: _log_write_failure(f, label))

    def read(self, fn: Callable[..., Any], *args: Any) -> Any:
        """
        Run a store read on the worker thread, after every pending write.

        Blocks the caller, so never call it from the event loop thread.
        """
        return self._worker.submit(fn, *args).result()

    # =========================================================================
    # Views
    # =========================================================================

    @staticmethod
    def public_snapshot(session: VetoSession) -> dict[str, Any]:
        """Snapshot safe to broadcast: no tokens, no timer handle."""
        return session.to_snapshot(include_tokens=False)
