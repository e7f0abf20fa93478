"""
Reducer - Applies actions to a veto session.

The reducer is the single point of session mutation.
All state changes must go through VetoReducer.apply().

Design principles:
- Validates before applying: a rejected action leaves the session untouched
- Returns ActionResult with success/failure
- Keeps one structured StepRecord per step advance so undo never parses logs
- Only sets the timer deadline; scheduling the callback is the registry's job
"""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import Callable
import logging
import random
import time

from .. import access
from .action import Action, ActionType, ActionResult
from .state import (
    COIN_FACES,
    TEAM_SIDES,
    CoinFlip,
    CoinFlipStatus,
    MapEntry,
    MapStatus,
    Phase,
    SequenceStep,
    Side,
    StepAction,
    StepRecord,
    Team,
    VetoSession,
)

logger = logging.getLogger(__name__)

RESET_LOG = "[ADMIN] Match reset by Admin"


@dataclass
class VetoReducer:
    """
    Reducer applies actions to veto sessions.

    Stateless apart from its sources of randomness and time, which tests
    replace with deterministic ones.
    """
    rng: random.Random = field(default_factory=random.SystemRandom)
    clock: Callable[[], float] = time.time

    def apply(self, session: VetoSession, action: Action) -> ActionResult:
        """
        Apply an action to the session.

        Returns ActionResult; on failure nothing was changed.
        """
        handler = self._get_handler(action.action_type)
        if not handler:
            return ActionResult.failure(
                f"No handler for action type: {action.action_type}",
                error_code="NO_HANDLER",
            )
        result = handler(session, action)
        if not result.success:
            logger.debug(
                "Rejected %s on session %s: %s",
                action.action_type.value, session.session_id, result.error,
            )
        return result

    def _get_handler(self, action_type: ActionType):
        handlers = {
            ActionType.STEP: self._handle_step,
            ActionType.TIMEOUT: self._handle_timeout,
            ActionType.READY: self._handle_ready,
            ActionType.COIN_CALL: self._handle_coin_call,
            ActionType.COIN_DECISION: self._handle_coin_decision,
            ActionType.UNDO: self._handle_undo,
            ActionType.RESET: self._handle_reset,
        }
        return handlers.get(action_type)

    # =========================================================================
    # Turn actions
    # =========================================================================

    def _handle_step(self, session: VetoSession, action: Action) -> ActionResult:
        """Ban or pick the named map, or choose a side, for the current step."""
        if session.phase != Phase.IN_PROGRESS:
            return ActionResult.failure(f"Session is {session.phase.value}")

        step = session.current_step
        if step is None or step.team is Team.SYSTEM:
            return ActionResult.failure("No team step to play")

        role = access.resolve_role(session, action.payload.token)
        if not access.may_act_for(role, step.team):
            return ActionResult.failure(f"Not {role.value}'s turn")

        data = action.payload.data
        if step.action in (StepAction.BAN, StepAction.PICK):
            entry = session.get_map(data) if isinstance(data, str) else None
            if entry is None or entry.status != MapStatus.AVAILABLE:
                return ActionResult.failure(f"Map {data!r} is not available")
            change = self._ban_or_pick(session, step, entry, auto=False)
        elif step.action == StepAction.SIDE:
            side = _parse_side(data)
            target = self._side_target(session)
            if side is None or target is None:
                return ActionResult.failure(f"Cannot choose side {data!r}")
            change = self._choose_side(session, step, target, side, auto=False)
        else:
            return ActionResult.failure(f"Unsupported step action {step.action.value}")

        changes = [change]
        changes.extend(self._after_advance(session))
        return ActionResult.success_with_changes(changes)

    def _handle_timeout(self, session: VetoSession, action: Action) -> ActionResult:
        """The turn deadline elapsed: play the current step at random."""
        if not session.use_timer or session.phase != Phase.IN_PROGRESS:
            return ActionResult.failure(f"No running turn timer ({session.phase.value})")

        step = session.current_step
        if step is None or step.team is Team.SYSTEM:
            return ActionResult.failure("No team step to play")

        if step.action in (StepAction.BAN, StepAction.PICK):
            available = session.available_maps()
            if not available:
                return ActionResult.failure("No available maps")
            entry = self.rng.choice(available)
            change = self._ban_or_pick(session, step, entry, auto=True)
        elif step.action == StepAction.SIDE:
            target = self._side_target(session)
            if target is None:
                return ActionResult.failure("No map to choose a side for")
            side = self.rng.choice(TEAM_SIDES)
            change = self._choose_side(session, step, target, side, auto=True)
        else:
            return ActionResult.failure(f"Unsupported step action {step.action.value}")

        changes = [change]
        changes.extend(self._after_advance(session))
        return ActionResult.success_with_changes(changes)

    def _ban_or_pick(
        self,
        session: VetoSession,
        step: SequenceStep,
        entry: MapEntry,
        auto: bool,
    ) -> str:
        record = StepRecord(
            action=step.action,
            team=step.team,
            map_name=entry.name,
            auto=auto,
            prev_status=entry.status,
            prev_picked_by=entry.picked_by,
            prev_side=entry.side,
            prev_last_picked_map=session.last_picked_map,
            log_index=len(session.logs),
        )
        team_name = session.team_name(step.team)
        suffix = " (Timeout)" if auto else ""
        prefix = "AUTO-" if auto else ""

        if step.action == StepAction.BAN:
            entry.status = MapStatus.BANNED
            line = f"[{prefix}BAN] {team_name} banned {entry.name}{suffix}"
        else:
            entry.status = MapStatus.PICKED
            entry.picked_by = step.team
            session.last_picked_map = entry.name
            session.played_maps.append(entry.name)
            line = f"[{prefix}PICK] {team_name} picked {entry.name}{suffix}"

        session.logs.append(line)
        session.history.append(record)
        session.step += 1
        return line

    def _side_target(self, session: VetoSession) -> MapEntry | None:
        """The last picked map, else the map left by elimination."""
        if session.last_picked_map:
            return session.get_map(session.last_picked_map)
        available = session.available_maps()
        return available[0] if available else None

    def _choose_side(
        self,
        session: VetoSession,
        step: SequenceStep,
        entry: MapEntry,
        side: Side,
        auto: bool,
    ) -> str:
        record = StepRecord(
            action=StepAction.SIDE,
            team=step.team,
            map_name=entry.name,
            auto=auto,
            prev_status=entry.status,
            prev_picked_by=entry.picked_by,
            prev_side=entry.side,
            prev_last_picked_map=session.last_picked_map,
        )
        team_name = session.team_name(step.team)
        entry.side = side

        last = session.history[-1] if session.history else None
        amend = (
            last is not None
            and last.action == StepAction.PICK
            and last.map_name == entry.name
            and last.log_index == len(session.logs) - 1
        )
        if amend:
            # Same transcript line as the pick it belongs to
            index = len(session.logs) - 1
            record.amended = True
            record.previous_log = session.logs[index]
            record.log_index = index
            line = f"{session.logs[index]} ({team_name} chose {side.value} side for {entry.name})"
            session.logs[index] = line
        else:
            record.log_index = len(session.logs)
            if auto:
                line = f"[AUTO-SIDE] {team_name} chose {side.value} for {entry.name} (Timeout)"
            else:
                line = f"[SIDE] {team_name} chose {side.value} side for {entry.name}"
            session.logs.append(line)

        session.last_picked_map = None
        session.history.append(record)
        session.step += 1
        return line

    def _after_advance(self, session: VetoSession) -> list[str]:
        """Termination check, then re-arm or clear the turn timer."""
        changes = self.evaluate_termination(session)
        if session.finished:
            session.timer_ends_at = None
        elif session.use_timer and session.both_ready:
            self._start_timer(session)
        return changes

    # =========================================================================
    # Termination
    # =========================================================================

    def evaluate_termination(self, session: VetoSession) -> list[str]:
        """
        Finish the session when the sequence is exhausted or a tiebreak is due.

        A decider promoted here is attached to the last step record so that
        undoing that step also reverts the promotion.
        """
        if session.finished:
            return []

        record = session.history[-1] if session.history else None
        changes: list[str] = []

        if session.step >= len(session.sequence):
            session.finished = True
            available = session.available_maps()
            if len(available) == 1:
                decider = available[0]
                decider.status = MapStatus.DECIDER
                session.played_maps.append(decider.name)
                if record:
                    record.decider = decider.name
                changes.append(f"{decider.name} is the decider")
            changes.append("Veto finished")
            return changes

        upcoming = session.sequence[session.step]
        if upcoming.action == StepAction.TIEBREAK:
            available = session.available_maps()
            if available:
                decider = available[0]
                decider.status = MapStatus.DECIDER
                decider.side = Side.KNIFE
                session.played_maps.append(decider.name)
                line = f"[DECIDER] {decider.name} (Knife for Side)"
                session.logs.append(line)
                if record:
                    record.decider = decider.name
                    record.decider_log_index = len(session.logs) - 1
                changes.append(line)
            session.finished = True
            changes.append("Veto finished")
        return changes

    # =========================================================================
    # Pre-game
    # =========================================================================

    def _handle_ready(self, session: VetoSession, action: Action) -> ActionResult:
        if session.phase != Phase.AWAITING_READY:
            return ActionResult.failure(f"Not waiting for ready ({session.phase.value})")

        team = access.resolve_role(session, action.payload.token).team
        if team is None:
            return ActionResult.failure("Only team tokens can signal ready")
        if session.ready[team]:
            return ActionResult.failure(f"Team {team.value} is already ready")

        session.ready[team] = True
        changes = [f"[READY] {session.team_name(team)} is Ready"]
        session.logs.append(changes[0])
        if session.both_ready:
            changes.append("[SYSTEM] Both teams ready! Timer started.")
            session.logs.append(changes[-1])
            self._start_timer(session)
        return ActionResult.success_with_changes(changes)

    def _handle_coin_call(self, session: VetoSession, action: Action) -> ActionResult:
        coin = session.coin_flip
        if session.finished or not session.use_coin_flip or coin is None:
            return ActionResult.failure("No coin flip in this session")
        if coin.status != CoinFlipStatus.WAITING_CALL:
            return ActionResult.failure("Coin already called")
        if access.resolve_role(session, action.payload.token) is not access.Role.A:
            return ActionResult.failure("Only team A calls the coin")

        call = (action.payload.call or "").lower()
        if call not in COIN_FACES:
            return ActionResult.failure(f"Invalid call {action.payload.call!r}")

        result = self.rng.choice(COIN_FACES)
        winner = Team.A if call == result else Team.B
        coin.result = result
        coin.winner = winner
        coin.status = CoinFlipStatus.DECIDING

        line = (
            f"[COIN] {session.team_a} called {call.upper()}. "
            f"Result: {result.upper()}. Winner: {session.team_name(winner)}"
        )
        session.logs.append(line)
        return ActionResult.success_with_changes([line])

    def _handle_coin_decision(self, session: VetoSession, action: Action) -> ActionResult:
        coin = session.coin_flip
        if session.finished or not session.use_coin_flip or coin is None:
            return ActionResult.failure("No coin flip in this session")
        if coin.status != CoinFlipStatus.DECIDING or coin.winner is None:
            return ActionResult.failure("Coin flip is not awaiting a decision")
        if access.resolve_role(session, action.payload.token).team is not coin.winner:
            return ActionResult.failure("Only the coin flip winner decides")

        decision = action.payload.decision
        if decision not in ("first", "second"):
            return ActionResult.failure(f"Invalid decision {decision!r}")

        # Team A starts by default
        starter = coin.winner if decision == "first" else coin.winner.opponent()
        if starter is Team.B:
            session.sequence = [s.swapped() for s in session.sequence]

        winner_name = session.team_name(coin.winner)
        if decision == "first":
            line = f"[COIN] {winner_name} chose to start first."
        else:
            line = f"[COIN] {winner_name} chose to let opponent start."
        session.logs.append(line)
        coin.status = CoinFlipStatus.DONE

        if session.use_timer and session.both_ready:
            self._start_timer(session)
        return ActionResult.success_with_changes([line])

    # =========================================================================
    # Admin
    # =========================================================================

    def _is_admin(self, session: VetoSession, action: Action) -> bool:
        if action.payload.elevated:
            return True
        return access.resolve_role(session, action.payload.token) is access.Role.ADMIN

    def _handle_undo(self, session: VetoSession, action: Action) -> ActionResult:
        """Revert exactly one step advance."""
        if not self._is_admin(session, action):
            return ActionResult.failure("Admin only", error_code="FORBIDDEN")
        if session.step <= 0 or not session.history:
            return ActionResult.failure("Nothing to undo")

        record = session.history.pop()
        session.timer_ends_at = None
        session.step -= 1
        session.finished = False

        if record.decider:
            decider = session.get_map(record.decider)
            if decider:
                decider.status = MapStatus.AVAILABLE
                decider.side = None
            _remove_last(session.played_maps, record.decider)
            if record.decider_log_index is not None:
                del session.logs[record.decider_log_index]

        if record.amended:
            session.logs[record.log_index] = record.previous_log
        else:
            del session.logs[record.log_index]

        entry = session.get_map(record.map_name)
        if entry:
            entry.status = record.prev_status
            entry.picked_by = record.prev_picked_by
            entry.side = record.prev_side
        if record.action == StepAction.PICK:
            _remove_last(session.played_maps, record.map_name)
        session.last_picked_map = record.prev_last_picked_map

        if session.phase == Phase.IN_PROGRESS and session.use_timer:
            self._start_timer(session)

        return ActionResult.success_with_changes(
            [f"Undid {record.action.value} of {record.map_name}"]
        )

    def _handle_reset(self, session: VetoSession, action: Action) -> ActionResult:
        """Replay the same script from the start."""
        if not self._is_admin(session, action):
            return ActionResult.failure("Admin only", error_code="FORBIDDEN")

        session.timer_ends_at = None
        session.step = 0
        session.logs = [RESET_LOG]
        session.history = []
        session.finished = False
        session.last_picked_map = None
        session.played_maps = []
        session.ready = {Team.A: False, Team.B: False}
        if session.use_coin_flip:
            # The coin is flipped again, so its earlier swap no longer applies
            session.coin_flip = CoinFlip()
            session.sequence = list(session.template)
        for entry in session.maps:
            entry.reset()

        changes = [RESET_LOG]
        changes.extend(self.evaluate_termination(session))
        return ActionResult.success_with_changes(changes)

    # =========================================================================
    # Timer
    # =========================================================================

    def _start_timer(self, session: VetoSession):
        now_ms = int(self.clock() * 1000)
        session.timer_ends_at = now_ms + session.timer_duration * 1000


def _parse_side(data) -> Side | None:
    if isinstance(data, Side):
        return data if data in TEAM_SIDES else None
    if not isinstance(data, str):
        return None
    for side in TEAM_SIDES:
        if data.upper() == side.value.upper():
            return side
    return None


def _remove_last(items: list[str], value: str):
    for i in range(len(items) - 1, -1, -1):
        if items[i] == value:
            del items[i]
            return
