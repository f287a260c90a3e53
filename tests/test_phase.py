import pytest

from judging_core import ScoreValidationError, accepts_scores, can_transition, next_phase
from judging_core.phase import resolve_transition


def test_next_phase_walks_forward():
    assert next_phase("setup") == "active"
    assert next_phase("active") == "judging"
    assert next_phase("judging") == "closed"
    assert next_phase("closed") is None


def test_next_phase_rejects_unknown_phase():
    with pytest.raises(ScoreValidationError):
        next_phase("paused")


def test_can_transition_forward_only_unless_forced():
    assert can_transition("setup", "judging")
    assert can_transition("active", "active")
    assert not can_transition("judging", "active")
    assert can_transition("judging", "active", force=True)
    assert not can_transition("active", "paused", force=True)


def test_resolve_transition():
    assert resolve_transition("setup") == "active"
    assert resolve_transition("setup", "closed") == "closed"
    with pytest.raises(ScoreValidationError):
        resolve_transition("closed")
    with pytest.raises(ScoreValidationError) as exc:
        resolve_transition("closed", "setup")
    assert "back to setup" in exc.value.message
    assert resolve_transition("closed", "setup", force=True) == "setup"


def test_accepts_scores_is_advisory():
    assert accepts_scores("active")
    assert accepts_scores("judging")
    assert not accepts_scores("setup")
    assert not accepts_scores("closed")
