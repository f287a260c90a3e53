"""Score transaction engine (optimistic read-modify-write over the contest aggregate).

Each attempt re-reads the contest document, recomputes the change from that
snapshot and writes the whole document back with compare_and_set(). When a
concurrent writer got there first the write is refused and the attempt is
retried from a fresh snapshot after an exponential backoff with jitter, so a
submission never overwrites a score another voter added in the meantime.

Validation and existence checks run inside ``mutate`` before the write; when
they raise, nothing is written.
"""
from __future__ import annotations

import asyncio
import logging
import random
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterable, Mapping, Optional, Tuple, TypeVar

from .errors import ConflictError, NotFoundError
from .models import Contest, ScoreEntry, generate_id
from .store import DocumentStore, VersionedDocument
from .templates import DEFAULT_TEMPLATE_KEY, get_effective_config
from .validation import normalize_legacy_contest, normalize_score_payload

logger = logging.getLogger(__name__)

T = TypeVar("T")

CONTESTS = "contests"
CONFIGS = "configs"


@dataclass(frozen=True)
class RetryPolicy:
    max_attempts: int = 5
    base_delay_ms: float = 120.0
    jitter_ms: float = 140.0

    @classmethod
    def from_settings(cls, settings: Any) -> "RetryPolicy":
        return cls(
            max_attempts=settings.max_transaction_attempts,
            base_delay_ms=settings.backoff_base_ms,
            jitter_ms=settings.backoff_jitter_ms,
        )

    def backoff(self, attempt: int) -> float:
        """Seconds to wait after failed attempt number ``attempt`` (0-based)."""
        delay_ms = self.base_delay_ms * (2 ** attempt) + random.uniform(0, self.jitter_ms)
        return delay_ms / 1000.0


DEFAULT_POLICY = RetryPolicy()


async def find_contest(store: DocumentStore, contest_ref: str) -> VersionedDocument:
    """Load a contest by id, falling back to a slug match."""
    snapshot = await store.get(CONTESTS, contest_ref)
    if snapshot is not None:
        return snapshot
    for candidate in await store.list(CONTESTS):
        if candidate.data.get("slug") == contest_ref:
            return candidate
    raise NotFoundError(f"Contest not found: {contest_ref}")


async def _run(
    store: DocumentStore,
    collection: str,
    load: Callable[[], Any],
    mutate: Callable[[Dict[str, Any]], Tuple[Dict[str, Any], T]],
    policy: RetryPolicy,
) -> T:
    for attempt in range(policy.max_attempts):
        snapshot: VersionedDocument = await load()
        new_data, result = mutate(snapshot.data)
        if new_data == snapshot.data:
            return result
        written = await store.compare_and_set(
            collection, snapshot.id, new_data, snapshot.version
        )
        if written is not None:
            if attempt:
                logger.debug(
                    f"{collection}/{snapshot.id} committed on attempt {attempt + 1}"
                )
            return result
        if attempt + 1 < policy.max_attempts:
            delay = policy.backoff(attempt)
            logger.debug(
                f"Write conflict on {collection}/{snapshot.id}, retrying in {delay:.3f}s"
            )
            await asyncio.sleep(delay)

    logger.warning(
        f"Gave up on {collection} write after {policy.max_attempts} conflicting attempts"
    )
    raise ConflictError(
        f"Concurrent updates kept conflicting after {policy.max_attempts} attempts"
    )


async def run_document_transaction(
    store: DocumentStore,
    collection: str,
    doc_id: str,
    mutate: Callable[[Dict[str, Any]], T],
    *,
    policy: RetryPolicy = DEFAULT_POLICY,
) -> T:
    """Atomic read-modify-write of one raw document. ``mutate`` edits the dict in place."""

    async def load() -> VersionedDocument:
        snapshot = await store.get(collection, doc_id)
        if snapshot is None:
            raise NotFoundError(f"Document not found: {collection}/{doc_id}")
        return snapshot

    def apply(data: Dict[str, Any]) -> Tuple[Dict[str, Any], T]:
        working = dict(data)
        result = mutate(working)
        return working, result

    return await _run(store, collection, load, apply, policy)


async def run_contest_transaction(
    store: DocumentStore,
    contest_ref: str,
    mutate: Callable[[Contest], T],
    *,
    policy: RetryPolicy = DEFAULT_POLICY,
) -> T:
    """Atomic read-modify-write of a whole contest aggregate.

    ``mutate`` receives a Contest model built from the latest snapshot and
    edits it in place; its return value is passed through.
    """

    def apply(data: Dict[str, Any]) -> Tuple[Dict[str, Any], T]:
        contest = Contest.from_document(normalize_legacy_contest(data))
        result = mutate(contest)
        return dict(contest.to_document()), result

    return await _run(store, CONTESTS, lambda: find_contest(store, contest_ref), apply, policy)


# ==================== PURE SCORE MERGES ====================


def apply_score_submission(
    contest: Contest,
    entry_id: str,
    judge_id: str,
    *,
    updates: Optional[Mapping[str, Any]] = None,
    na_sections: Optional[Iterable[str]] = None,
    notes: Optional[str] = None,
    default_template: str = DEFAULT_TEMPLATE_KEY,
) -> ScoreEntry:
    """Find-or-create the (entry, judge) score inside ``contest`` and merge the submission.

    Existing values not named in ``updates`` are kept. ``na_sections`` and
    ``notes`` replace the stored ones only when given.

    Raises:
        NotFoundError: if the entry does not exist in the contest
        ScoreValidationError: if the merged breakdown violates the rubric
    """
    entry = contest.find_entry(entry_id)
    if entry is None:
        raise NotFoundError(f"Entry not found: {entry_id}")
    config = get_effective_config(contest, default_template)

    existing = contest.find_score(entry.id, judge_id)
    if existing is not None:
        normalized = normalize_score_payload(
            contest,
            base_breakdown=existing.breakdown,
            updates=updates,
            na_sections=na_sections if na_sections is not None else existing.naSections,
            config=config,
        )
        existing.breakdown = normalized.breakdown
        existing.naSections = normalized.na_sections
        if notes is not None:
            existing.notes = notes
        return existing.model_copy(deep=True)

    normalized = normalize_score_payload(
        contest, updates=updates, na_sections=na_sections, config=config
    )
    score = ScoreEntry(
        id=generate_id("score"),
        entryId=entry.id,
        judgeId=judge_id,
        breakdown=normalized.breakdown,
        naSections=normalized.na_sections,
        notes=notes,
    )
    contest.scores.append(score)
    return score.model_copy(deep=True)


def apply_score_update(
    contest: Contest,
    score_id: str,
    *,
    updates: Optional[Mapping[str, Any]] = None,
    na_sections: Optional[Iterable[str]] = None,
    notes: Optional[str] = None,
    default_template: str = DEFAULT_TEMPLATE_KEY,
) -> ScoreEntry:
    """Update an existing score by id, through the same normalization as submissions."""
    score = contest.find_score_by_id(score_id)
    if score is None:
        raise NotFoundError(f"Score not found: {score_id}")
    normalized = normalize_score_payload(
        contest,
        base_breakdown=score.breakdown,
        updates=updates,
        na_sections=na_sections if na_sections is not None else score.naSections,
        default_template=default_template,
    )
    score.breakdown = normalized.breakdown
    score.naSections = normalized.na_sections
    if notes is not None:
        score.notes = notes
    return score.model_copy(deep=True)


def remove_score(contest: Contest, score_id: str) -> None:
    if contest.find_score_by_id(score_id) is None:
        raise NotFoundError(f"Score not found: {score_id}")
    contest.scores = [s for s in contest.scores if s.id != score_id]


async def submit_score(
    store: DocumentStore,
    contest_ref: str,
    entry_id: str,
    judge_id: str,
    *,
    updates: Optional[Mapping[str, Any]] = None,
    na_sections: Optional[Iterable[str]] = None,
    notes: Optional[str] = None,
    default_template: str = DEFAULT_TEMPLATE_KEY,
    policy: RetryPolicy = DEFAULT_POLICY,
) -> ScoreEntry:
    """Upsert one voter's score for one entry as a single atomic contest write."""
    na_list = list(na_sections) if na_sections is not None else None
    return await run_contest_transaction(
        store,
        contest_ref,
        lambda contest: apply_score_submission(
            contest,
            entry_id,
            judge_id,
            updates=updates,
            na_sections=na_list,
            notes=notes,
            default_template=default_template,
        ),
        policy=policy,
    )
