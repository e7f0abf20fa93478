"""
Sequence Library - Fixed veto scripts for the standard formats.

Each format is an ordered list of (team, action) steps. Team A is assumed to
start; a coin flip may later swap A and B in a session's effective copy.
Formats ending in a System tiebreak leave the last map's side to a knife round.
"""

from __future__ import annotations
from typing import Any

from ..engine_core.state import SequenceStep, StepAction, Team


CUSTOM_FORMAT = "custom"


class UnknownFormatError(ValueError):
    """Raised for a format id that is not in the library."""


def _steps(*pairs: tuple[str, str]) -> tuple[SequenceStep, ...]:
    return tuple(SequenceStep(team=Team(t), action=StepAction(a)) for t, a in pairs)


SEQUENCES: dict[str, tuple[SequenceStep, ...]] = {
    "bo1": _steps(
        ("A", "ban"), ("A", "ban"), ("B", "ban"), ("B", "ban"),
        ("B", "ban"), ("A", "ban"), ("B", "side"),
    ),
    "bo3": _steps(
        ("A", "ban"), ("B", "ban"), ("A", "pick"), ("B", "side"),
        ("B", "pick"), ("A", "side"), ("B", "ban"), ("A", "ban"),
        ("B", "side"),
    ),
    "bo5": _steps(
        ("A", "ban"), ("B", "ban"), ("A", "pick"), ("B", "side"),
        ("B", "pick"), ("A", "side"), ("A", "pick"), ("B", "side"),
        ("B", "pick"), ("A", "side"), ("System", "tiebreak"),
    ),
    "faceit_bo1": _steps(
        ("A", "ban"), ("B", "ban"), ("A", "ban"), ("B", "ban"),
        ("A", "ban"), ("B", "ban"), ("System", "tiebreak"),
    ),
    "faceit_bo3": _steps(
        ("A", "ban"), ("B", "ban"), ("A", "pick"), ("B", "side"),
        ("B", "pick"), ("A", "side"), ("A", "ban"), ("B", "ban"),
        ("System", "tiebreak"),
    ),
    "faceit_bo5": _steps(
        ("A", "ban"), ("B", "ban"), ("A", "pick"), ("B", "side"),
        ("B", "pick"), ("A", "side"), ("A", "pick"), ("B", "side"),
        ("B", "pick"), ("A", "side"), ("System", "tiebreak"),
    ),
    "wingman_bo1": _steps(
        ("A", "ban"), ("B", "ban"), ("A", "ban"), ("B", "ban"),
        ("System", "tiebreak"),
    ),
    "wingman_bo3": _steps(
        ("A", "ban"), ("B", "ban"), ("A", "pick"), ("B", "side"),
        ("B", "pick"), ("A", "side"), ("System", "tiebreak"),
    ),
}

# Accepted spellings for custom sequences built by older clients
_ACTION_ALIASES = {"knife": "tiebreak"}


def parse_steps(raw: list[dict[str, Any]]) -> list[SequenceStep]:
    """
    Parse a client-supplied sequence.

    Accepts {"team", "action"} dicts as well as the short {"t", "a"} form.
    Raises ValueError on anything else.
    """
    steps = []
    for item in raw:
        if not isinstance(item, dict):
            raise ValueError(f"Invalid sequence step: {item!r}")
        team = item.get("team", item.get("t"))
        action = item.get("action", item.get("a"))
        action = _ACTION_ALIASES.get(action, action)
        try:
            step = SequenceStep(team=Team(team), action=StepAction(action))
        except ValueError:
            raise ValueError(f"Invalid sequence step: {item!r}") from None
        if (step.team is Team.SYSTEM) != (step.action is StepAction.TIEBREAK):
            raise ValueError(f"Tiebreak steps belong to System only: {item!r}")
        steps.append(step)
    return steps


def get_sequence(
    format_id: str,
    custom_sequence: list[SequenceStep] | None = None,
) -> list[SequenceStep]:
    """
    Fresh copy of the sequence for a format.

    `custom` uses the caller's sequence when one is given.
    """
    if format_id == CUSTOM_FORMAT and custom_sequence:
        return list(custom_sequence)
    try:
        return list(SEQUENCES[format_id])
    except KeyError:
        raise UnknownFormatError(f"Unknown format: {format_id}") from None


def list_formats() -> list[dict[str, Any]]:
    """Format ids with their step counts."""
    formats = [
        {
            "id": format_id,
            "steps": len(steps),
            "tiebreak": any(s.action is StepAction.TIEBREAK for s in steps),
        }
        for format_id, steps in SEQUENCES.items()
    ]
    formats.append({"id": CUSTOM_FORMAT, "steps": 0, "tiebreak": False})
    return formats
