"""Backend provider protocol definition.

CONTRACT
- Inputs: contest id or slug (accepted interchangeably), entity ids, payload dicts
- Outputs (required):
  - ProviderResult(success, data, error, kind, details) from every operation
- Invariants:
  - Expected failures (not found, validation, conflict, storage down) come back
    as ProviderResult(success=False); nothing raises across this boundary
  - initialize() is safe to call repeatedly; the first successful call is cached
- Failure:
  - ``kind`` tags the failure: not_found | validation | conflict | storage_unavailable
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Generic, List, Mapping, Optional, Protocol, TypeVar

from ..config import ConfigItem
from ..errors import JudgingError, ScoreValidationError
from ..models import Contest, Entry, ScoreEntry, Voter

T = TypeVar("T")


@dataclass(frozen=True)
class ProviderResult(Generic[T]):
    success: bool
    data: Optional[T] = None
    error: Optional[str] = None
    kind: Optional[str] = None
    details: Dict[str, Any] = field(default_factory=dict)


def success(data: Any = None) -> ProviderResult:
    return ProviderResult(success=True, data=data)


def failure(exc: JudgingError) -> ProviderResult:
    details: Dict[str, Any] = {}
    if isinstance(exc, ScoreValidationError):
        details = {
            "errors": list(exc.errors),
            "issues": [issue.as_dict() for issue in exc.issues],
        }
    return ProviderResult(success=False, error=exc.message, kind=exc.kind, details=details)


class ContestsProvider(Protocol):
    async def list(self) -> ProviderResult[List[Contest]]: ...

    async def get(self, contest_ref: str) -> ProviderResult[Contest]: ...

    async def get_default(self) -> ProviderResult[Optional[Contest]]: ...

    async def create(self, data: Mapping[str, Any]) -> ProviderResult[Contest]: ...

    async def update(
        self, contest_ref: str, updates: Mapping[str, Any]
    ) -> ProviderResult[Contest]: ...

    async def delete(self, contest_ref: str) -> ProviderResult[None]: ...

    async def set_default(self, contest_ref: str) -> ProviderResult[Contest]: ...


class EntriesProvider(Protocol):
    async def list_by_contest(self, contest_ref: str) -> ProviderResult[List[Entry]]: ...

    async def get_by_id(self, contest_ref: str, entry_id: str) -> ProviderResult[Entry]: ...

    async def create(
        self, contest_ref: str, data: Mapping[str, Any]
    ) -> ProviderResult[Entry]: ...

    async def update(
        self, contest_ref: str, entry_id: str, updates: Mapping[str, Any]
    ) -> ProviderResult[Entry]: ...

    async def delete(self, contest_ref: str, entry_id: str) -> ProviderResult[None]: ...


class VotersProvider(Protocol):
    async def list_by_contest(self, contest_ref: str) -> ProviderResult[List[Voter]]: ...

    async def get_by_id(self, contest_ref: str, voter_id: str) -> ProviderResult[Voter]: ...

    async def create(
        self, contest_ref: str, data: Mapping[str, Any]
    ) -> ProviderResult[Voter]: ...

    async def ensure(self, contest_ref: str, voter: Voter) -> ProviderResult[Voter]: ...

    async def update(
        self, contest_ref: str, voter_id: str, updates: Mapping[str, Any]
    ) -> ProviderResult[Voter]: ...

    async def delete(self, contest_ref: str, voter_id: str) -> ProviderResult[None]: ...


class ScoresProvider(Protocol):
    async def list_by_entry(
        self, contest_ref: str, entry_id: str
    ) -> ProviderResult[List[ScoreEntry]]: ...

    async def list_by_judge(
        self, contest_ref: str, judge_id: str
    ) -> ProviderResult[List[ScoreEntry]]: ...

    async def get_by_id(
        self, contest_ref: str, score_id: str
    ) -> ProviderResult[ScoreEntry]: ...

    async def submit(
        self,
        contest_ref: str,
        entry_id: str,
        judge_id: str,
        *,
        updates: Optional[Mapping[str, Any]] = None,
        na_sections: Optional[List[str]] = None,
        notes: Optional[str] = None,
    ) -> ProviderResult[ScoreEntry]: ...

    async def update(
        self,
        contest_ref: str,
        score_id: str,
        *,
        updates: Optional[Mapping[str, Any]] = None,
        na_sections: Optional[List[str]] = None,
        notes: Optional[str] = None,
    ) -> ProviderResult[ScoreEntry]: ...

    async def delete(self, contest_ref: str, score_id: str) -> ProviderResult[None]: ...


class ConfigsProvider(Protocol):
    async def list(self) -> ProviderResult[List[ConfigItem]]: ...

    async def get_by_id(self, config_id: str) -> ProviderResult[ConfigItem]: ...

    async def create(self, data: Mapping[str, Any]) -> ProviderResult[ConfigItem]: ...

    async def update(
        self, config_id: str, updates: Mapping[str, Any]
    ) -> ProviderResult[ConfigItem]: ...

    async def delete(self, config_id: str) -> ProviderResult[None]: ...


class BackendProvider(Protocol):
    name: str
    contests: ContestsProvider
    entries: EntriesProvider
    voters: VotersProvider
    scores: ScoresProvider
    configs: ConfigsProvider

    async def initialize(self) -> ProviderResult[None]: ...

    async def dispose(self) -> None: ...
