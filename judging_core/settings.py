"""Engine settings, constructed explicitly and passed to the provider and service."""

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .templates import DEFAULT_TEMPLATES
from .types import VoterRole


class EngineSettings(BaseModel):
    """Tunables for the transaction engine and score auto-registration"""

    max_transaction_attempts: int = Field(
        5, ge=1, le=50, description="Attempts before a conflicting write fails"
    )
    backoff_base_ms: float = Field(
        120.0, ge=0, le=10000, description="Base retry delay, doubled per attempt"
    )
    backoff_jitter_ms: float = Field(
        140.0, ge=0, le=10000, description="Upper bound of random delay added per retry"
    )
    default_voter_name: str = Field(
        "Guest", min_length=1, max_length=255, description="Name for auto-registered voters"
    )
    default_voter_role: VoterRole = "voter"
    default_template: str = Field(
        "mixology", description="Template used when a contest has no config"
    )
    seed_default_configs: bool = Field(
        True, description="Seed the template presets into the configs collection"
    )

    model_config = ConfigDict(frozen=True, extra="forbid")

    @field_validator("default_template")
    @classmethod
    def validate_template(cls, v: str) -> str:
        v = v.strip().lower()
        if v not in DEFAULT_TEMPLATES:
            raise ValueError(f"default_template must be one of {sorted(DEFAULT_TEMPLATES)}, got {v}")
        return v
