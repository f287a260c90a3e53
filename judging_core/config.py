"""
Contest rubric models: the scored attributes of a contest and their ranges.

A ContestConfig is plain data. Breakdown keys are attribute ids, so the
config decides which keys a score may carry and the numeric range of each.
"""
from __future__ import annotations

import logging
import math
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Self, Union

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    StrictFloat,
    StrictInt,
    ValidationError,
    field_validator,
    model_validator,
)

logger = logging.getLogger(__name__)

ATTRIBUTE_ID_PATTERN = re.compile(r"^[A-Za-z][A-Za-z0-9_]*$")

DEFAULT_MIN = 0
DEFAULT_MAX = 10
DEFAULT_WEIGHT = 1

Number = Union[StrictInt, StrictFloat]


class AttributeConfig(BaseModel):
    """One scored dimension of a contest."""

    id: str = Field(..., min_length=1, max_length=64, description="Breakdown key")
    label: str = Field(..., min_length=1, max_length=100, description="Display name")
    description: Optional[str] = Field(None, max_length=500)
    min: Number = Field(DEFAULT_MIN, description="Lowest accepted value (inclusive)")
    max: Number = Field(DEFAULT_MAX, description="Highest accepted value (inclusive)")
    weight: Number = Field(DEFAULT_WEIGHT, gt=0, description="Weight in weighted totals")

    model_config = ConfigDict(extra="ignore")

    @field_validator("id")
    @classmethod
    def validate_id(cls, v: str) -> str:
        v = v.strip()
        if not ATTRIBUTE_ID_PATTERN.match(v):
            raise ValueError(
                "must start with a letter and contain only letters, digits and underscores"
            )
        return v

    @field_validator("label")
    @classmethod
    def validate_label(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("label cannot be empty")
        return v

    @model_validator(mode="after")
    def validate_range(self) -> Self:
        for name in ("min", "max", "weight"):
            try:
                finite = math.isfinite(getattr(self, name))
            except OverflowError:
                finite = False
            if not finite:
                raise ValueError(f"{name} must be a finite number")
        if self.min > self.max:
            raise ValueError(f"min ({self.min}) must not exceed max ({self.max})")
        return self


class ContestConfig(BaseModel):
    """The judging rubric of a contest."""

    topic: str = Field(..., min_length=1, max_length=100)
    entryLabel: str = Field("Entry", min_length=1, max_length=50)
    entryLabelPlural: str = Field("Entries", min_length=1, max_length=50)
    attributes: List[AttributeConfig] = Field(..., min_length=1)

    model_config = ConfigDict(extra="ignore")

    @field_validator("topic")
    @classmethod
    def validate_topic(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("topic cannot be empty")
        return v

    @field_validator("attributes")
    @classmethod
    def validate_unique_ids(cls, v: List[AttributeConfig]) -> List[AttributeConfig]:
        seen: set[str] = set()
        for attr in v:
            if attr.id in seen:
                raise ValueError(f'duplicate attribute id "{attr.id}"')
            seen.add(attr.id)
        return v

    def attribute(self, attribute_id: str) -> AttributeConfig | None:
        for attr in self.attributes:
            if attr.id == attribute_id:
                return attr
        return None


class ConfigItem(ContestConfig):
    """A reusable rubric stored independently of any contest."""

    id: Optional[str] = Field(None, min_length=1, max_length=64)
    name: Optional[str] = Field(None, max_length=100)


@dataclass
class ValidationResult:
    valid: bool
    errors: List[str] = field(default_factory=list)


def _format_error(err: Dict[str, Any]) -> str:
    path = ""
    for part in err.get("loc", ()):
        if isinstance(part, int):
            path += f"[{part}]"
        else:
            path += f".{part}" if path else str(part)
    message = str(err.get("msg", "invalid value"))
    if message.startswith("Value error, "):
        message = message[len("Value error, "):]
    return f"{path}: {message}" if path else message


def validation_errors(exc: ValidationError) -> List[str]:
    """Flatten a pydantic ValidationError into readable strings."""
    return [_format_error(err) for err in exc.errors()]


def validate_contest_config(config: Any) -> ValidationResult:
    """Validate a raw (e.g. JSON-decoded) contest config. Pure, never raises."""
    if isinstance(config, ContestConfig):
        config = config.model_dump()
    if not isinstance(config, dict):
        return ValidationResult(valid=False, errors=["Config must be an object"])
    try:
        ContestConfig.model_validate(config)
    except ValidationError as exc:
        errors = validation_errors(exc)
        logger.debug(f"Contest config rejected: {errors}")
        return ValidationResult(valid=False, errors=errors)
    return ValidationResult(valid=True)


def get_attribute_min(attr: AttributeConfig) -> float:
    return attr.min


def get_attribute_max(attr: AttributeConfig) -> float:
    return attr.max


def get_attribute_weight(attr: AttributeConfig) -> float:
    return attr.weight


def get_attribute_ids(config: ContestConfig) -> List[str]:
    return [attr.id for attr in config.attributes]


def is_valid_attribute_id(attribute_id: str, config: ContestConfig) -> bool:
    return config.attribute(attribute_id) is not None


def create_empty_breakdown(config: ContestConfig) -> Dict[str, float]:
    """Breakdown with every configured attribute set to 0."""
    return {attr.id: 0 for attr in config.attributes}


@dataclass(frozen=True)
class VoteCategory:
    id: str
    label: str
    description: str | None
    sort_order: int


def attributes_to_vote_categories(config: ContestConfig) -> List[VoteCategory]:
    """UI-facing view of the rubric, in config order."""
    return [
        VoteCategory(
            id=attr.id,
            label=attr.label,
            description=attr.description,
            sort_order=index,
        )
        for index, attr in enumerate(config.attributes)
    ]
