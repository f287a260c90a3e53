"""Type definitions for persisted contest documents and inbound payloads."""
from __future__ import annotations

from typing import Dict, List, Literal, Optional, TypedDict

ContestPhase = Literal["setup", "active", "judging", "closed"]
VoterRole = Literal["admin", "judge", "voter"]


class AttributeDict(TypedDict, total=False):
    """A scored dimension as stored inside a contest config."""
    id: str
    label: str
    description: Optional[str]
    min: float
    max: float
    weight: float


class ContestConfigDict(TypedDict, total=False):
    topic: str
    entryLabel: str
    entryLabelPlural: str
    attributes: List[AttributeDict]


class EntryDict(TypedDict, total=False):
    id: str
    name: str
    slug: str
    description: str
    round: str
    submittedBy: str


class VoterDict(TypedDict, total=False):
    id: str
    displayName: str
    role: str  # 'admin' | 'judge' | 'voter'
    contact: Optional[str]


class ScoreDict(TypedDict, total=False):
    id: str
    entryId: str
    judgeId: str
    # attribute id -> value; None marks a not-applicable section
    breakdown: Dict[str, Optional[float]]
    naSections: Optional[List[str]]
    notes: Optional[str]


class ContestDocument(TypedDict, total=False):
    """
    TypedDict representing one contest aggregate as the store keeps it.

    Entries, voters and scores are nested inside the contest so that a
    single document write covers every change to the aggregate.
    """
    id: str
    name: str
    slug: str
    phase: str  # 'setup' | 'active' | 'judging' | 'closed'
    config: ContestConfigDict
    entries: List[EntryDict]
    voters: List[VoterDict]
    scores: List[ScoreDict]
    defaultContest: bool


class ConfigDocument(ContestConfigDict, total=False):
    """A reusable rubric stored in the configs collection."""
    id: str
    name: Optional[str]


class ScorePayload(TypedDict, total=False):
    """
    TypedDict for score submissions sent to JudgingService.submit_score().

    Either ``breakdown`` or the ``categoryId`` + ``value`` shorthand is set.
    """
    breakdown: Optional[Dict[str, Optional[float]]]
    categoryId: Optional[str]
    value: Optional[float]
    naSections: Optional[List[str]]
    notes: Optional[str]
    judgeDisplayName: Optional[str]
    judgeRole: Optional[str]


Breakdown = Dict[str, Optional[float]]
