"""
Score validation and normalization.

Every score mutation passes through normalize_score_payload(), which merges
updates over the stored breakdown, applies N/A sections and validates the
result against the contest's rubric before anything is written.
"""

import logging
import math
import re
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Mapping, Optional, Self

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

from .config import ContestConfig, validation_errors
from .errors import BreakdownIssue, ScoreValidationError
from .templates import DEFAULT_TEMPLATE_KEY, get_effective_config
from .types import Breakdown, VoterRole

logger = logging.getLogger(__name__)

# ==================== BREAKDOWN VALIDATION ====================


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _dedupe(sections: Iterable[Any]) -> List[str]:
    """Strip, drop blanks and deduplicate while keeping first-seen order."""
    seen: Dict[str, None] = {}
    for section in sections:
        if not isinstance(section, str):
            section = str(section)
        section = section.strip()
        if section:
            seen.setdefault(section, None)
    return list(seen)


def check_breakdown(
    breakdown: Mapping[str, Any],
    config: ContestConfig,
    na_sections: Optional[Iterable[str]] = None,
) -> List[BreakdownIssue]:
    """Structured form of validate_breakdown()."""
    issues: List[BreakdownIssue] = []
    if not isinstance(breakdown, Mapping):
        return [BreakdownIssue(attribute="breakdown", message="breakdown must be an object")]

    na_set = set(_dedupe(na_sections or []))

    for key in breakdown:
        if config.attribute(key) is None:
            issues.append(BreakdownIssue(attribute=key, message=f"Invalid attribute: {key}"))

    for attr in config.attributes:
        if attr.id not in breakdown:
            continue
        value = breakdown[attr.id]
        if attr.id in na_set:
            if value is not None:
                issues.append(
                    BreakdownIssue(
                        attribute=attr.id,
                        message=f"{attr.id}: cannot score a section marked N/A",
                    )
                )
            continue
        if not _is_number(value):
            issues.append(BreakdownIssue(attribute=attr.id, message=f"{attr.id}: must be a number"))
        elif isinstance(value, float) and not math.isfinite(value):
            issues.append(
                BreakdownIssue(attribute=attr.id, message=f"{attr.id}: must be a finite number")
            )
        elif value < attr.min:
            issues.append(
                BreakdownIssue(
                    attribute=attr.id,
                    message=f"{attr.id}: {value} is below the minimum of {attr.min}",
                    bound="min",
                    limit=attr.min,
                )
            )
        elif value > attr.max:
            issues.append(
                BreakdownIssue(
                    attribute=attr.id,
                    message=f"{attr.id}: {value} exceeds the maximum of {attr.max}",
                    bound="max",
                    limit=attr.max,
                )
            )

    for section in na_set:
        if config.attribute(section) is None:
            issues.append(
                BreakdownIssue(attribute=section, message=f"Invalid N/A section: {section}")
            )

    return issues


def validate_breakdown(
    breakdown: Mapping[str, Any],
    config: ContestConfig,
    na_sections: Optional[Iterable[str]] = None,
) -> List[str]:
    """Validate a breakdown against a rubric. Empty list means valid."""
    return [issue.message for issue in check_breakdown(breakdown, config, na_sections)]


@dataclass(frozen=True)
class NormalizedScore:
    breakdown: Breakdown
    na_sections: Optional[List[str]] = None


def normalize_score_payload(
    contest: Any,
    *,
    base_breakdown: Optional[Mapping[str, Any]] = None,
    updates: Optional[Mapping[str, Any]] = None,
    na_sections: Optional[Iterable[str]] = None,
    config: Optional[ContestConfig] = None,
    default_template: str = DEFAULT_TEMPLATE_KEY,
) -> NormalizedScore:
    """Merge a score submission over the stored breakdown and validate it.

    Precedence, lowest first: stored values (or an empty breakdown for a new
    score), then N/A sections as None, then explicit update values. An
    explicit number for an attribute listed in ``na_sections`` wins and takes
    that attribute out of the N/A list; an explicit None marks it N/A.

    Raises:
        ScoreValidationError: if the merged breakdown violates the rubric
    """
    config = config or get_effective_config(contest, default_template)
    updates = dict(updates or {})

    # None marks a configured attribute N/A; unknown keys stay put and fail as unknown.
    marked_na = [
        key for key, value in updates.items() if value is None and config.attribute(key) is not None
    ]
    explicit = {key: value for key, value in updates.items() if key not in marked_na}
    sections = [s for s in _dedupe(list(na_sections or []) + marked_na) if s not in explicit]
    na_set = set(sections)

    breakdown: Dict[str, Any] = dict(base_breakdown or {})
    for section in sections:
        if config.attribute(section) is not None:
            breakdown[section] = None
    # An attribute that is no longer N/A and has no value is simply unset.
    for key in [k for k, v in breakdown.items() if v is None and k not in na_set]:
        del breakdown[key]
    breakdown.update(explicit)

    issues = check_breakdown(breakdown, config, sections)
    if issues:
        errors = [issue.message for issue in issues]
        logger.warning(f"Score rejected: {errors}")
        raise ScoreValidationError(errors, issues)

    ordered = {attr.id: breakdown[attr.id] for attr in config.attributes if attr.id in breakdown}
    logger.debug(f"Normalized breakdown: {ordered} (N/A: {sections})")
    return NormalizedScore(breakdown=ordered, na_sections=sections or None)


# ==================== REQUEST SCHEMAS ====================


class ScoreSubmission(BaseModel):
    """Inbound score submission: a breakdown or a single category + value."""

    breakdown: Optional[Dict[str, Any]] = Field(
        None, description="Partial breakdown keyed by attribute id"
    )
    categoryId: Optional[str] = Field(None, min_length=1, max_length=64)
    value: Optional[Any] = Field(None, description="Value for categoryId")
    naSections: Optional[List[str]] = Field(None, max_length=64)
    notes: Optional[str] = Field(None, max_length=2000)
    judgeDisplayName: Optional[str] = Field(None, max_length=255)
    judgeRole: Optional[VoterRole] = None

    model_config = ConfigDict(extra="ignore")

    @field_validator("categoryId")
    @classmethod
    def validate_category(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        v = v.strip()
        return v or None

    @field_validator("judgeDisplayName")
    @classmethod
    def validate_display_name(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        v = InputSanitizer.sanitize_display_name(v)
        return v or None

    @field_validator("notes")
    @classmethod
    def validate_notes(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        return InputSanitizer.sanitize_string(v, 2000)

    @model_validator(mode="after")
    def validate_shape(self) -> Self:
        has_breakdown = bool(self.breakdown)
        if has_breakdown and self.categoryId is not None:
            raise ValueError("breakdown and categoryId are mutually exclusive")
        if self.categoryId is not None and self.value is None:
            raise ValueError("categoryId requires value")
        if not has_breakdown and self.categoryId is None:
            raise ValueError("Score breakdown or categoryId + value is required")
        return self

    def updates(self) -> Dict[str, Any]:
        if self.categoryId is not None:
            return {self.categoryId: self.value}
        return dict(self.breakdown or {})


def parse_score_submission(payload: Mapping[str, Any] | ScoreSubmission) -> ScoreSubmission:
    """
    Validate a raw submission payload.

    Raises:
        ScoreValidationError: if the payload shape is invalid
    """
    if isinstance(payload, ScoreSubmission):
        return payload
    try:
        return ScoreSubmission.model_validate(normalize_legacy_payload(payload))
    except ValidationError as e:
        errors = validation_errors(e)
        logger.warning(f"Score submission rejected: {errors}")
        raise ScoreValidationError(errors)


# ==================== BOUNDARY ALIASES ====================

_PAYLOAD_ALIASES = {
    "drinkId": "entryId",
    "userId": "judgeId",
    "userName": "judgeDisplayName",
    "userRole": "judgeRole",
}


def normalize_legacy_payload(payload: Mapping[str, Any]) -> Dict[str, Any]:
    """Rename legacy keys to the canonical vocabulary. Canonical keys win."""
    normalized = dict(payload)
    for legacy, canonical in _PAYLOAD_ALIASES.items():
        if legacy in normalized:
            value = normalized.pop(legacy)
            normalized.setdefault(canonical, value)
    return normalized


def normalize_legacy_contest(document: Mapping[str, Any]) -> Dict[str, Any]:
    """Rename ``judges`` to ``voters`` and legacy score keys in a contest document."""
    normalized = dict(document)
    if "judges" in normalized:
        judges = normalized.pop("judges")
        normalized.setdefault("voters", judges)
    scores = normalized.get("scores")
    if isinstance(scores, list):
        normalized["scores"] = [
            normalize_legacy_payload(score) if isinstance(score, Mapping) else score
            for score in scores
        ]
    return normalized


# ==================== SANITIZATION ====================


class InputSanitizer:
    """Utility class for input sanitization"""

    @staticmethod
    def sanitize_string(value: str, max_length: int = 255) -> str:
        """Sanitize string input"""
        if not isinstance(value, str):
            return str(value)[:max_length]

        value = value.strip()
        value = value[:max_length]
        value = value.replace("\0", "")

        return value

    @staticmethod
    def sanitize_display_name(name: str) -> str:
        """Sanitize a person or entry name, keeping Unicode letters"""
        name = InputSanitizer.sanitize_string(name, 255)

        # Remove only control characters and markup/shell special chars
        dangerous_chars = r'[<>{}[\]\\|;()&$`"\*\x00-\x1f\x7f]'
        name = re.sub(dangerous_chars, "", name)

        return name.strip()

    @staticmethod
    def slugify(value: str, max_length: int = 255) -> str:
        """Lowercase, hyphen-separated slug (e.g. "Spring Chili Cook-off" -> "spring-chili-cook-off")"""
        value = InputSanitizer.sanitize_string(value, max_length).lower()
        value = re.sub(r"[^\w\s-]", "", value)
        value = re.sub(r"[\s_-]+", "-", value)
        return value.strip("-")


# ==================== EXPORT ====================

__all__ = [
    "NormalizedScore",
    "ScoreSubmission",
    "InputSanitizer",
    "check_breakdown",
    "validate_breakdown",
    "normalize_score_payload",
    "parse_score_submission",
    "normalize_legacy_payload",
    "normalize_legacy_contest",
]
