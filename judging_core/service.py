"""
Application-facing judging service.

JudgingService wraps a BackendProvider and turns failed ProviderResults back
into tagged exceptions (NotFoundError, ScoreValidationError, ConflictError,
StorageUnavailableError). It is constructed explicitly and owns the provider's
lifecycle:

    async with JudgingService(DocumentBackendProvider()) as service:
        await service.submit_score("spring-mixers", "entry-1", "j1", {"breakdown": {"aroma": 8}})
"""

import logging
from typing import Any, List, Mapping, Optional, Tuple, TypeVar

from .config import ConfigItem, ContestConfig
from .errors import NotFoundError, error_for_kind
from .models import Contest, Entry, ScoreEntry, Voter
from .phase import resolve_transition
from .provider.base import BackendProvider, ProviderResult
from .provider.document import DocumentBackendProvider
from .scoring import EntrySummary, LeaderboardRow, rank_entries, summarize_entry
from .settings import EngineSettings
from .templates import get_effective_config
from .validation import ScoreSubmission, parse_score_submission

logger = logging.getLogger(__name__)

T = TypeVar("T")


def raise_for_result(result: ProviderResult[T]) -> T:
    """Return ``result.data`` or raise the tagged error the provider reported."""
    if result.success:
        return result.data  # type: ignore[return-value]
    raise error_for_kind(result.kind, result.error or "Unknown provider error", result.details)


class JudgingService:
    def __init__(
        self,
        provider: Optional[BackendProvider] = None,
        settings: Optional[EngineSettings] = None,
    ) -> None:
        self.settings = settings or getattr(provider, "settings", None) or EngineSettings()
        self.provider = provider if provider is not None else DocumentBackendProvider(
            settings=self.settings
        )

    async def __aenter__(self) -> "JudgingService":
        await self.initialize()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.dispose()

    async def initialize(self) -> None:
        raise_for_result(await self.provider.initialize())

    async def dispose(self) -> None:
        await self.provider.dispose()

    # ==================== SCORES ====================

    async def submit_score(
        self,
        contest_ref: str,
        entry_id: str,
        judge_id: str,
        payload: Mapping[str, Any] | ScoreSubmission,
    ) -> ScoreEntry:
        """
        Upsert ``judge_id``'s score for ``entry_id``.

        ``payload`` carries either a (partial) ``breakdown`` or a single
        ``categoryId`` + ``value``, plus optional ``naSections``, ``notes``,
        ``judgeDisplayName`` and ``judgeRole``. An unknown judge is registered
        as a voter once the score is committed.

        Raises:
            ScoreValidationError: malformed payload or out-of-rubric breakdown
            NotFoundError: unknown contest or entry
            ConflictError: concurrent writers exhausted the retry budget
        """
        submission = parse_score_submission(payload)
        score = raise_for_result(
            await self.provider.scores.submit(
                contest_ref,
                entry_id,
                judge_id,
                updates=submission.updates(),
                na_sections=submission.naSections,
                notes=submission.notes,
            )
        )
        await self._register_voter(contest_ref, judge_id, submission)
        return score

    async def _register_voter(
        self, contest_ref: str, judge_id: str, submission: ScoreSubmission
    ) -> None:
        voter = Voter(
            id=judge_id,
            displayName=submission.judgeDisplayName or self.settings.default_voter_name,
            role=submission.judgeRole or self.settings.default_voter_role,
        )
        result = await self.provider.voters.ensure(contest_ref, voter)
        if not result.success:
            # The score is already committed; registration can be retried by the next submission.
            logger.warning(f"Could not register voter {judge_id}: {result.error}")

    async def get_scores_by_entry(
        self, contest_ref: str, entry_id: str, judge_id: Optional[str] = None
    ) -> List[ScoreEntry]:
        scores = raise_for_result(await self.provider.scores.list_by_entry(contest_ref, entry_id))
        if judge_id is not None:
            scores = [s for s in scores if s.judgeId == judge_id]
        return scores

    async def get_scores_by_judge(self, contest_ref: str, judge_id: str) -> List[ScoreEntry]:
        return raise_for_result(await self.provider.scores.list_by_judge(contest_ref, judge_id))

    async def get_score(self, contest_ref: str, score_id: str) -> ScoreEntry:
        return raise_for_result(await self.provider.scores.get_by_id(contest_ref, score_id))

    async def update_score(
        self,
        contest_ref: str,
        score_id: str,
        payload: Mapping[str, Any] | ScoreSubmission,
    ) -> ScoreEntry:
        submission = parse_score_submission(payload)
        return raise_for_result(
            await self.provider.scores.update(
                contest_ref,
                score_id,
                updates=submission.updates(),
                na_sections=submission.naSections,
                notes=submission.notes,
            )
        )

    async def delete_score(self, contest_ref: str, score_id: str) -> None:
        raise_for_result(await self.provider.scores.delete(contest_ref, score_id))

    # ==================== CONTESTS ====================

    async def list_contests(self) -> List[Contest]:
        return raise_for_result(await self.provider.contests.list())

    async def get_contest(self, contest_ref: str) -> Contest:
        return raise_for_result(await self.provider.contests.get(contest_ref))

    async def get_contest_config(self, contest_ref: str) -> ContestConfig:
        contest = await self.get_contest(contest_ref)
        return get_effective_config(contest, self.settings.default_template)

    async def create_contest(self, data: Mapping[str, Any]) -> Contest:
        return raise_for_result(await self.provider.contests.create(data))

    async def update_contest(self, contest_ref: str, updates: Mapping[str, Any]) -> Contest:
        return raise_for_result(await self.provider.contests.update(contest_ref, updates))

    async def delete_contest(self, contest_ref: str) -> None:
        raise_for_result(await self.provider.contests.delete(contest_ref))

    async def set_default_contest(self, contest_ref: str) -> Contest:
        return raise_for_result(await self.provider.contests.set_default(contest_ref))

    async def get_default_contest(self) -> Optional[Contest]:
        return raise_for_result(await self.provider.contests.get_default())

    async def advance_phase(
        self, contest_ref: str, target: Optional[str] = None, *, force: bool = False
    ) -> Contest:
        """Move a contest to ``target`` (default: the next phase). Backwards needs ``force``."""
        contest = await self.get_contest(contest_ref)
        phase = resolve_transition(contest.phase, target, force=force)
        updated = await self.update_contest(contest.id, {"phase": phase})
        logger.info(f"Contest {contest.id} moved from {contest.phase} to {phase}")
        return updated

    async def archive_contest(self, contest_ref: str) -> Contest:
        return await self.advance_phase(contest_ref, "closed")

    # ==================== ENTRIES ====================

    async def list_entries(self, contest_ref: str) -> List[Entry]:
        return raise_for_result(await self.provider.entries.list_by_contest(contest_ref))

    async def get_entry(self, contest_ref: str, entry_id: str) -> Entry:
        return raise_for_result(await self.provider.entries.get_by_id(contest_ref, entry_id))

    async def create_entry(self, contest_ref: str, data: Mapping[str, Any]) -> Entry:
        return raise_for_result(await self.provider.entries.create(contest_ref, data))

    async def update_entry(
        self, contest_ref: str, entry_id: str, updates: Mapping[str, Any]
    ) -> Entry:
        return raise_for_result(await self.provider.entries.update(contest_ref, entry_id, updates))

    async def delete_entry(self, contest_ref: str, entry_id: str) -> None:
        raise_for_result(await self.provider.entries.delete(contest_ref, entry_id))

    # ==================== VOTERS ====================

    async def list_voters(self, contest_ref: str) -> List[Voter]:
        return raise_for_result(await self.provider.voters.list_by_contest(contest_ref))

    async def get_voter(self, contest_ref: str, voter_id: str) -> Voter:
        return raise_for_result(await self.provider.voters.get_by_id(contest_ref, voter_id))

    async def create_voter(self, contest_ref: str, data: Mapping[str, Any]) -> Voter:
        return raise_for_result(await self.provider.voters.create(contest_ref, data))

    async def update_voter(
        self, contest_ref: str, voter_id: str, updates: Mapping[str, Any]
    ) -> Voter:
        return raise_for_result(await self.provider.voters.update(contest_ref, voter_id, updates))

    async def delete_voter(self, contest_ref: str, voter_id: str) -> None:
        raise_for_result(await self.provider.voters.delete(contest_ref, voter_id))

    # ==================== CONFIGS ====================

    async def list_configs(self) -> List[ConfigItem]:
        return raise_for_result(await self.provider.configs.list())

    async def get_config(self, config_id: str) -> ConfigItem:
        return raise_for_result(await self.provider.configs.get_by_id(config_id))

    async def create_config(self, data: Mapping[str, Any]) -> ConfigItem:
        return raise_for_result(await self.provider.configs.create(data))

    async def update_config(self, config_id: str, updates: Mapping[str, Any]) -> ConfigItem:
        return raise_for_result(await self.provider.configs.update(config_id, updates))

    async def delete_config(self, config_id: str) -> None:
        raise_for_result(await self.provider.configs.delete(config_id))

    # ==================== RESULTS ====================

    async def summarize_entry(self, contest_ref: str, entry_id: str) -> EntrySummary:
        contest = await self.get_contest(contest_ref)
        entry = contest.find_entry(entry_id)
        if entry is None:
            raise NotFoundError(f"Entry not found: {entry_id}")
        return summarize_entry(contest, entry.id, self.settings.default_template)

    async def leaderboard(self, contest_ref: str) -> Tuple[LeaderboardRow, ...]:
        return rank_entries(await self.get_contest(contest_ref), self.settings.default_template)
