"""Contest aggregate models.

A Contest owns its entries, voters and scores. The models dump to the
persisted document layout (camelCase keys) with ``to_document()``.
"""
from __future__ import annotations

import uuid
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from .config import ContestConfig, Number
from .types import ContestDocument, ContestPhase, VoterRole


def generate_id(prefix: str = "id") -> str:
    return f"{prefix}-{uuid.uuid4().hex[:12]}"


class Entry(BaseModel):
    """The thing being judged (a drink, a chili, a costume)."""

    id: str = Field(..., min_length=1, max_length=128)
    name: str = Field(..., min_length=1, max_length=255)
    slug: str = Field("", max_length=255)
    description: str = Field("", max_length=2000)
    round: str = Field("", max_length=100)
    submittedBy: str = Field("", max_length=255)

    model_config = ConfigDict(extra="ignore", validate_assignment=True)


class Voter(BaseModel):
    id: str = Field(..., min_length=1, max_length=128)
    displayName: str = Field("Guest", min_length=1, max_length=255)
    role: VoterRole = "voter"
    contact: Optional[str] = Field(None, max_length=255)

    model_config = ConfigDict(extra="ignore", validate_assignment=True)


class ScoreEntry(BaseModel):
    """One voter's breakdown for one entry. Unique per (entryId, judgeId)."""

    id: str = Field(..., min_length=1, max_length=128)
    entryId: str = Field(..., min_length=1)
    judgeId: str = Field(..., min_length=1)
    breakdown: Dict[str, Optional[Number]] = Field(default_factory=dict)
    naSections: Optional[List[str]] = None
    notes: Optional[str] = Field(None, max_length=2000)

    model_config = ConfigDict(extra="ignore")


class Contest(BaseModel):
    id: str = Field(..., min_length=1, max_length=128)
    name: str = Field(..., min_length=1, max_length=255)
    slug: str = Field(..., min_length=1, max_length=255)
    phase: ContestPhase = "setup"
    # Legacy documents may lack a config; see templates.get_effective_config.
    config: Optional[ContestConfig] = None
    entries: List[Entry] = Field(default_factory=list)
    voters: List[Voter] = Field(default_factory=list)
    scores: List[ScoreEntry] = Field(default_factory=list)
    defaultContest: bool = False

    model_config = ConfigDict(extra="ignore", validate_assignment=True)

    @classmethod
    def from_document(cls, data: Dict[str, Any]) -> "Contest":
        return cls.model_validate(data)

    def to_document(self) -> ContestDocument:
        return self.model_dump(mode="python")  # type: ignore[return-value]

    def find_entry(self, entry_id_or_slug: str) -> Entry | None:
        for entry in self.entries:
            if entry.id == entry_id_or_slug:
                return entry
        for entry in self.entries:
            if entry.slug and entry.slug == entry_id_or_slug:
                return entry
        return None

    def find_voter(self, voter_id: str) -> Voter | None:
        for voter in self.voters:
            if voter.id == voter_id:
                return voter
        return None

    def find_score(self, entry_id: str, judge_id: str) -> ScoreEntry | None:
        for score in self.scores:
            if score.entryId == entry_id and score.judgeId == judge_id:
                return score
        return None

    def find_score_by_id(self, score_id: str) -> ScoreEntry | None:
        for score in self.scores:
            if score.id == score_id:
                return score
        return None
