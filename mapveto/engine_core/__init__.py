"""
Engine Core - Server-authoritative veto state and its transitions.

The engine:
1. Holds one VetoSession per match
2. Validates actions against the derived phase and the current step
3. Applies actions via the reducer
4. Records a structured delta per step for undo
"""

from .state import (
    CoinFlip,
    CoinFlipStatus,
    MapEntry,
    MapStatus,
    Phase,
    SequenceStep,
    SessionTokens,
    Side,
    StepAction,
    StepRecord,
    Team,
    VetoSession,
)
from .action import Action, ActionType, ActionPayload, ActionResult
from .reducer import VetoReducer

__all__ = [
    "CoinFlip",
    "CoinFlipStatus",
    "MapEntry",
    "MapStatus",
    "Phase",
    "SequenceStep",
    "SessionTokens",
    "Side",
    "StepAction",
    "StepRecord",
    "Team",
    "VetoSession",
    "Action",
    "ActionType",
    "ActionPayload",
    "ActionResult",
    "VetoReducer",
]
