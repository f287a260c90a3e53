"""Contest phase state machine (setup -> active -> judging -> closed).

Phases move forward only unless an admin forces the move. The engine never
gates score writes by phase; ``accepts_scores`` is advisory for callers.
"""
from __future__ import annotations

from typing import Tuple

from .errors import ScoreValidationError
from .types import ContestPhase

PHASES: Tuple[ContestPhase, ...] = ("setup", "active", "judging", "closed")
SCORING_PHASES = frozenset({"active", "judging"})


def is_valid_phase(phase: str) -> bool:
    return phase in PHASES


def next_phase(current: str) -> ContestPhase | None:
    """Following phase, or None when the contest is already closed."""
    if not is_valid_phase(current):
        raise ScoreValidationError([f"Invalid phase: {current}"])
    idx = PHASES.index(current)  # type: ignore[arg-type]
    return PHASES[idx + 1] if idx + 1 < len(PHASES) else None


def can_transition(current: str, target: str, *, force: bool = False) -> bool:
    if not is_valid_phase(target) or not is_valid_phase(current):
        return False
    if force:
        return True
    return PHASES.index(target) >= PHASES.index(current)  # type: ignore[arg-type]


def resolve_transition(
    current: str, target: str | None = None, *, force: bool = False
) -> ContestPhase:
    """Phase to move to; ``target=None`` means the next phase in order."""
    if target is None:
        following = next_phase(current)
        if following is None:
            raise ScoreValidationError([f"Contest is already {current}"])
        return following
    if not is_valid_phase(target):
        raise ScoreValidationError([f"Invalid phase: {target}"])
    if not can_transition(current, target, force=force):
        raise ScoreValidationError([f"Cannot move contest from {current} back to {target}"])
    return target  # type: ignore[return-value]


def accepts_scores(phase: str) -> bool:
    return phase in SCORING_PHASES
