"""
Action System - Actions, payloads, and results.

Actions represent:
1. Team actions (ban, pick or side for the current step)
2. Pre-game actions (ready signal, coin call, coin decision)
3. System actions (turn timeout)
4. Admin actions (undo, reset)

All session changes flow through actions.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class ActionType(Enum):
    """Types of actions in the system."""
    # Team actions
    STEP = "step"  # ban/pick map name, or side identifier
    READY = "ready"
    COIN_CALL = "coin_call"
    COIN_DECISION = "coin_decision"

    # System actions
    TIMEOUT = "timeout"

    # Admin actions
    UNDO = "undo"
    RESET = "reset"


@dataclass
class ActionPayload:
    """
    Payload for an action.

    `token` identifies the caller. `elevated` is set by the caller after it has
    verified the process-wide admin secret, and grants admin rights regardless
    of the token.
    """
    token: str | None = None
    elevated: bool = False

    # Map name (ban/pick) or side identifier (side)
    data: Any = None

    # Coin flip
    call: str | None = None
    decision: str | None = None


@dataclass
class Action:
    """A complete action to be applied to a veto session."""
    action_type: ActionType
    payload: ActionPayload = field(default_factory=ActionPayload)

    @classmethod
    def step(cls, token: str | None, data: Any) -> Action:
        """Factory for a ban/pick/side action."""
        return cls(
            action_type=ActionType.STEP,
            payload=ActionPayload(token=token, data=data),
        )

    @classmethod
    def ready(cls, token: str | None) -> Action:
        return cls(action_type=ActionType.READY, payload=ActionPayload(token=token))

    @classmethod
    def coin_call(cls, token: str | None, call: str) -> Action:
        return cls(
            action_type=ActionType.COIN_CALL,
            payload=ActionPayload(token=token, call=call),
        )

    @classmethod
    def coin_decision(cls, token: str | None, decision: str) -> Action:
        """decision is 'first' (we start) or 'second' (they start)."""
        return cls(
            action_type=ActionType.COIN_DECISION,
            payload=ActionPayload(token=token, decision=decision),
        )

    @classmethod
    def timeout(cls) -> Action:
        return cls(action_type=ActionType.TIMEOUT)

    @classmethod
    def undo(cls, token: str | None = None, elevated: bool = False) -> Action:
        return cls(
            action_type=ActionType.UNDO,
            payload=ActionPayload(token=token, elevated=elevated),
        )

    @classmethod
    def reset(cls, token: str | None = None, elevated: bool = False) -> Action:
        return cls(
            action_type=ActionType.RESET,
            payload=ActionPayload(token=token, elevated=elevated),
        )


@dataclass
class ActionResult:
    """
    Result of applying an action.

    A failed result means the session was left untouched.
    """
    success: bool
    changes: list[str] = field(default_factory=list)
    error: str | None = None
    error_code: str | None = None

    @classmethod
    def success_with_changes(cls, changes: list[str] | None = None) -> ActionResult:
        return cls(success=True, changes=changes or [])

    @classmethod
    def failure(cls, error: str, error_code: str = "REJECTED") -> ActionResult:
        return cls(success=False, error=error, error_code=error_code)
