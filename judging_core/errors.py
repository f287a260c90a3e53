"""Tagged errors raised by the scoring and contest-state engine.

Only ``validation`` errors are caller-fixable (400-class). ``not_found`` maps
to 404, ``conflict`` to 409 and ``storage_unavailable`` to 503; callers treat
the last two as transient.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import List, Literal

ErrorKind = Literal["not_found", "validation", "conflict", "storage_unavailable"]

NOT_FOUND: ErrorKind = "not_found"
VALIDATION: ErrorKind = "validation"
CONFLICT: ErrorKind = "conflict"
STORAGE_UNAVAILABLE: ErrorKind = "storage_unavailable"


@dataclass(frozen=True)
class BreakdownIssue:
    """One offending field in a score breakdown, detailed enough for a UI to highlight it."""

    attribute: str
    message: str
    bound: Literal["min", "max"] | None = None
    limit: float | None = None

    def as_dict(self) -> dict:
        return {
            "attribute": self.attribute,
            "message": self.message,
            "bound": self.bound,
            "limit": self.limit,
        }


class JudgingError(Exception):
    kind: ErrorKind = "storage_unavailable"
    status_code: int = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class NotFoundError(JudgingError):
    kind = NOT_FOUND
    status_code = 404


class ScoreValidationError(JudgingError):
    """Raised when a breakdown, payload or config violates the rubric."""

    kind = VALIDATION
    status_code = 400

    def __init__(
        self,
        errors: List[str],
        issues: List[BreakdownIssue] | None = None,
    ) -> None:
        super().__init__(f"Validation: {' '.join(errors)}")
        self.errors = list(errors)
        self.issues = list(issues or [])


class ConflictError(JudgingError):
    kind = CONFLICT
    status_code = 409


class StorageUnavailableError(JudgingError):
    kind = STORAGE_UNAVAILABLE
    status_code = 503


_BY_KIND = {
    NOT_FOUND: NotFoundError,
    CONFLICT: ConflictError,
    STORAGE_UNAVAILABLE: StorageUnavailableError,
}


def error_for_kind(
    kind: str | None, message: str, details: dict | None = None
) -> JudgingError:
    """Rebuild a tagged exception from a provider error kind."""
    if kind == VALIDATION:
        details = details or {}
        issues = [BreakdownIssue(**item) for item in details.get("issues") or []]
        return ScoreValidationError(details.get("errors") or [message], issues)
    return _BY_KIND.get(kind or "", StorageUnavailableError)(message)
