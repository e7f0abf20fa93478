"""
Veto State - The aggregate that one veto session operates on.

Design principles:
- Server-authoritative: clients only ever see snapshots of this state
- Serializable: round-trips through to_snapshot()/from_snapshot() unchanged
- Phase is derived from flags, never stored
- All mutation goes through the reducer
"""

from __future__ import annotations
from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class Team(Enum):
    """Who owns a sequence step."""
    A = "A"
    B = "B"
    SYSTEM = "System"

    def opponent(self) -> Team:
        if self is Team.A:
            return Team.B
        if self is Team.B:
            return Team.A
        return self


class StepAction(Enum):
    """What a sequence step does."""
    BAN = "ban"
    PICK = "pick"
    SIDE = "side"
    TIEBREAK = "tiebreak"


class MapStatus(Enum):
    AVAILABLE = "available"
    BANNED = "banned"
    PICKED = "picked"
    DECIDER = "decider"


class Side(Enum):
    """Starting side on a map. KNIFE marks a side left to a tiebreak round."""
    CT = "CT"
    T = "T"
    KNIFE = "Knife"


class CoinFlipStatus(Enum):
    WAITING_CALL = "waiting_call"
    DECIDING = "deciding"
    DONE = "done"


class Phase(Enum):
    """
    Coarse session phase, computed from flags.

    Precedence: finished > coin flip pending > awaiting ready > in progress.
    """
    COIN_FLIP_PENDING = "coin_flip_pending"
    AWAITING_READY = "awaiting_ready"
    IN_PROGRESS = "in_progress"
    FINISHED = "finished"


COIN_FACES = ("heads", "tails")
TEAM_SIDES = (Side.CT, Side.T)


@dataclass(frozen=True)
class SequenceStep:
    """One scripted step: a team and the action it must take."""
    team: Team
    action: StepAction

    def swapped(self) -> SequenceStep:
        """Return the step with team A and B exchanged."""
        return SequenceStep(team=self.team.opponent(), action=self.action)

    def to_dict(self) -> dict[str, str]:
        return {"team": self.team.value, "action": self.action.value}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> SequenceStep:
        return cls(team=Team(data["team"]), action=StepAction(data["action"]))


@dataclass
class MapEntry:
    """A map in one session's pool."""
    name: str
    custom_image: str | None = None
    status: MapStatus = MapStatus.AVAILABLE
    picked_by: Team | None = None
    side: Side | None = None

    def reset(self):
        self.status = MapStatus.AVAILABLE
        self.picked_by = None
        self.side = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "customImage": self.custom_image,
            "status": self.status.value,
            "pickedBy": self.picked_by.value if self.picked_by else None,
            "side": self.side.value if self.side else None,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> MapEntry:
        return cls(
            name=data["name"],
            custom_image=data.get("customImage"),
            status=MapStatus(data.get("status", "available")),
            picked_by=Team(data["pickedBy"]) if data.get("pickedBy") else None,
            side=Side(data["side"]) if data.get("side") else None,
        )


@dataclass
class CoinFlip:
    """Pre-game coin flip sub-state."""
    status: CoinFlipStatus = CoinFlipStatus.WAITING_CALL
    winner: Team | None = None
    result: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "status": self.status.value,
            "winner": self.winner.value if self.winner else None,
            "result": self.result,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> CoinFlip:
        return cls(
            status=CoinFlipStatus(data.get("status", "waiting_call")),
            winner=Team(data["winner"]) if data.get("winner") else None,
            result=data.get("result"),
        )


@dataclass
class StepRecord:
    """
    Structured delta for one step advance.

    Undo replays these instead of parsing the rendered log.
    """
    action: StepAction
    team: Team
    map_name: str
    auto: bool = False

    # Map state before the step
    prev_status: MapStatus = MapStatus.AVAILABLE
    prev_picked_by: Team | None = None
    prev_side: Side | None = None
    prev_last_picked_map: str | None = None

    # Where the step landed in the log
    log_index: int = 0
    amended: bool = False
    previous_log: str | None = None

    # Decider promoted by the termination check that followed this step
    decider: str | None = None
    decider_log_index: int | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "action": self.action.value,
            "team": self.team.value,
            "mapName": self.map_name,
            "auto": self.auto,
            "prevStatus": self.prev_status.value,
            "prevPickedBy": self.prev_picked_by.value if self.prev_picked_by else None,
            "prevSide": self.prev_side.value if self.prev_side else None,
            "prevLastPickedMap": self.prev_last_picked_map,
            "logIndex": self.log_index,
            "amended": self.amended,
            "previousLog": self.previous_log,
            "decider": self.decider,
            "deciderLogIndex": self.decider_log_index,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> StepRecord:
        return cls(
            action=StepAction(data["action"]),
            team=Team(data["team"]),
            map_name=data["mapName"],
            auto=data.get("auto", False),
            prev_status=MapStatus(data.get("prevStatus", "available")),
            prev_picked_by=Team(data["prevPickedBy"]) if data.get("prevPickedBy") else None,
            prev_side=Side(data["prevSide"]) if data.get("prevSide") else None,
            prev_last_picked_map=data.get("prevLastPickedMap"),
            log_index=data.get("logIndex", 0),
            amended=data.get("amended", False),
            previous_log=data.get("previousLog"),
            decider=data.get("decider"),
            decider_log_index=data.get("deciderLogIndex"),
        )


@dataclass
class SessionTokens:
    """Per-session capability tokens."""
    admin: str
    a: str
    b: str

    def to_dict(self) -> dict[str, str]:
        return {"admin": self.admin, "A": self.a, "B": self.b}

    @classmethod
    def from_dict(cls, data: dict[str, str]) -> SessionTokens:
        return cls(admin=data["admin"], a=data["A"], b=data["B"])


@dataclass
class VetoSession:
    """
    Complete state of one map veto.

    This is the canonical state the reducer operates on.
    Timer handles never live here: only the deadline does.
    """
    session_id: str
    date: str
    tokens: SessionTokens
    format_id: str

    team_a: str = "Team A"
    team_b: str = "Team B"
    team_a_logo: str | None = None
    team_b_logo: str | None = None

    # Sequence as created, and the effective one (coin flip may swap teams)
    template: list[SequenceStep] = field(default_factory=list)
    sequence: list[SequenceStep] = field(default_factory=list)
    step: int = 0

    maps: list[MapEntry] = field(default_factory=list)
    logs: list[str] = field(default_factory=list)
    history: list[StepRecord] = field(default_factory=list)
    finished: bool = False
    last_picked_map: str | None = None
    played_maps: list[str] = field(default_factory=list)

    # Turn timer
    use_timer: bool = False
    ready: dict[Team, bool] = field(default_factory=lambda: {Team.A: False, Team.B: False})
    timer_ends_at: int | None = None  # epoch millis
    timer_duration: int = 60  # seconds

    # Coin flip
    use_coin_flip: bool = False
    coin_flip: CoinFlip | None = None

    @property
    def phase(self) -> Phase:
        if self.finished:
            return Phase.FINISHED
        if self.use_coin_flip and (
            self.coin_flip is None or self.coin_flip.status != CoinFlipStatus.DONE
        ):
            return Phase.COIN_FLIP_PENDING
        if self.use_timer and not self.both_ready:
            return Phase.AWAITING_READY
        return Phase.IN_PROGRESS

    @property
    def both_ready(self) -> bool:
        return self.ready[Team.A] and self.ready[Team.B]

    @property
    def current_step(self) -> SequenceStep | None:
        if 0 <= self.step < len(self.sequence):
            return self.sequence[self.step]
        return None

    def team_name(self, team: Team) -> str:
        if team is Team.A:
            return self.team_a
        if team is Team.B:
            return self.team_b
        return "System"

    def get_map(self, name: str) -> MapEntry | None:
        for entry in self.maps:
            if entry.name == name:
                return entry
        return None

    def available_maps(self) -> list[MapEntry]:
        return [m for m in self.maps if m.status == MapStatus.AVAILABLE]

    # =========================================================================
    # Serialization
    # =========================================================================

    def to_snapshot(self, include_tokens: bool = False) -> dict[str, Any]:
        """
        Serialize to the wire/persistence shape.

        Tokens are only included when explicitly asked for (persistence).
        """
        snapshot = {
            "id": self.session_id,
            "date": self.date,
            "teamA": self.team_a,
            "teamB": self.team_b,
            "teamALogo": self.team_a_logo,
            "teamBLogo": self.team_b_logo,
            "format": self.format_id,
            "template": [s.to_dict() for s in self.template],
            "sequence": [s.to_dict() for s in self.sequence],
            "step": self.step,
            "maps": [m.to_dict() for m in self.maps],
            "logs": list(self.logs),
            "history": [r.to_dict() for r in self.history],
            "finished": self.finished,
            "lastPickedMap": self.last_picked_map,
            "playedMaps": list(self.played_maps),
            "useTimer": self.use_timer,
            "ready": {"A": self.ready[Team.A], "B": self.ready[Team.B]},
            "timerEndsAt": self.timer_ends_at,
            "timerDuration": self.timer_duration,
            "useCoinFlip": self.use_coin_flip,
            "coinFlip": self.coin_flip.to_dict() if self.coin_flip else None,
            "phase": self.phase.value,
        }
        if include_tokens:
            snapshot["keys"] = self.tokens.to_dict()
        return snapshot

    @classmethod
    def from_snapshot(cls, data: dict[str, Any]) -> VetoSession:
        """Rebuild a session from to_snapshot(include_tokens=True) output."""
        sequence = [SequenceStep.from_dict(s) for s in data.get("sequence", [])]
        template = [SequenceStep.from_dict(s) for s in data.get("template") or []]
        ready = data.get("ready") or {}
        coin_flip = data.get("coinFlip")
        return cls(
            session_id=data["id"],
            date=data["date"],
            tokens=SessionTokens.from_dict(data["keys"]),
            format_id=data["format"],
            team_a=data.get("teamA", "Team A"),
            team_b=data.get("teamB", "Team B"),
            team_a_logo=data.get("teamALogo"),
            team_b_logo=data.get("teamBLogo"),
            template=template or list(sequence),
            sequence=sequence,
            step=data.get("step", 0),
            maps=[MapEntry.from_dict(m) for m in data.get("maps", [])],
            logs=list(data.get("logs", [])),
            history=[StepRecord.from_dict(r) for r in data.get("history") or []],
            finished=bool(data.get("finished", False)),
            last_picked_map=data.get("lastPickedMap"),
            played_maps=list(data.get("playedMaps", [])),
            use_timer=bool(data.get("useTimer", False)),
            ready={Team.A: bool(ready.get("A")), Team.B: bool(ready.get("B"))},
            timer_ends_at=data.get("timerEndsAt"),
            timer_duration=data.get("timerDuration") or 60,
            use_coin_flip=bool(data.get("useCoinFlip", False)),
            coin_flip=CoinFlip.from_dict(coin_flip) if coin_flip else None,
        )
