"""Backend provider over any DocumentStore.

Each contest is one document holding its entries, voters and scores; every
nested write is a read-modify-write of that document through the transaction
engine. Reusable rubrics live in a separate ``configs`` collection.
"""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from functools import wraps
from typing import Any, Dict, List, Mapping, Optional

from pydantic import ValidationError

from ..config import ConfigItem, ContestConfig, validation_errors
from ..errors import (
    ConflictError,
    JudgingError,
    NotFoundError,
    ScoreValidationError,
    StorageUnavailableError,
)
from ..models import Contest, Entry, ScoreEntry, Voter, generate_id
from ..settings import EngineSettings
from ..store import DocumentStore, InMemoryDocumentStore
from ..templates import DEFAULT_TEMPLATES, get_template
from ..transaction import (
    CONFIGS,
    CONTESTS,
    RetryPolicy,
    apply_score_update,
    find_contest,
    remove_score,
    run_contest_transaction,
    run_document_transaction,
    submit_score,
)
from ..validation import InputSanitizer, normalize_legacy_contest
from .base import ProviderResult, failure, success

logger = logging.getLogger(__name__)

_CONTEST_FIELDS = {"name", "slug", "phase", "config", "defaultContest"}


def _guarded(fn):
    """Run a provider operation and fold every failure into a ProviderResult."""

    @wraps(fn)
    async def wrapper(self, *args, **kwargs) -> ProviderResult:
        try:
            return success(await fn(self, *args, **kwargs))
        except JudgingError as exc:
            return failure(exc)
        except ValidationError as exc:
            return failure(ScoreValidationError(validation_errors(exc)))
        except Exception as exc:
            logger.exception(f"{fn.__qualname__} failed")
            return failure(StorageUnavailableError(f"Storage error: {exc}"))

    return wrapper


def _load_contest(data: Dict[str, Any]) -> Contest:
    return Contest.from_document(normalize_legacy_contest(data))


@dataclass(frozen=True)
class _Context:
    store: DocumentStore
    settings: EngineSettings
    policy: RetryPolicy


class DocumentContestsProvider:
    def __init__(self, ctx: _Context) -> None:
        self._ctx = ctx
        # Default switches span several documents; one at a time per provider.
        self._default_lock = asyncio.Lock()

    async def _all(self) -> List[Contest]:
        return [_load_contest(doc.data) for doc in await self._ctx.store.list(CONTESTS)]

    async def _ensure_slug_free(self, slug: str, exclude_id: str | None = None) -> None:
        for doc in await self._ctx.store.list(CONTESTS):
            if doc.id != exclude_id and doc.data.get("slug") == slug:
                raise ConflictError(f"Contest slug already in use: {slug}")

    @_guarded
    async def list(self) -> List[Contest]:
        return await self._all()

    @_guarded
    async def get(self, contest_ref: str) -> Contest:
        return _load_contest((await find_contest(self._ctx.store, contest_ref)).data)

    @_guarded
    async def get_default(self) -> Optional[Contest]:
        for contest in await self._all():
            if contest.defaultContest:
                return contest
        return None

    @_guarded
    async def create(self, data: Mapping[str, Any]) -> Contest:
        data = normalize_legacy_contest(data)
        name = InputSanitizer.sanitize_display_name(str(data.get("name") or ""))
        slug = InputSanitizer.slugify(str(data.get("slug") or name))

        raw_config = data.get("config")
        if raw_config is None:
            template_key = data.get("template") or self._ctx.settings.default_template
            config = get_template(template_key)
            if config is None:
                raise ScoreValidationError([f"Unknown template: {template_key}"])
        else:
            config = ContestConfig.model_validate(
                raw_config.model_dump() if isinstance(raw_config, ContestConfig) else raw_config
            )

        contest = Contest(
            id=data.get("id") or generate_id("contest"),
            name=name,
            slug=slug,
            phase=data.get("phase") or "setup",
            config=config,
        )
        await self._ensure_slug_free(contest.slug)
        await self._ctx.store.insert(CONTESTS, contest.id, dict(contest.to_document()))
        logger.info(f"Created contest {contest.id} ({contest.slug}, {config.topic})")

        if data.get("defaultContest"):
            return await self._set_default(contest.id)
        return contest

    @_guarded
    async def update(self, contest_ref: str, updates: Mapping[str, Any]) -> Contest:
        unknown = sorted(set(updates) - _CONTEST_FIELDS)
        if unknown:
            raise ScoreValidationError([f"Unknown contest field: {key}" for key in unknown])

        changes = dict(updates)
        if "config" in changes and not isinstance(changes["config"], ContestConfig):
            changes["config"] = ContestConfig.model_validate(changes["config"])
        if "name" in changes:
            changes["name"] = InputSanitizer.sanitize_display_name(str(changes["name"]))
        snapshot = await find_contest(self._ctx.store, contest_ref)
        if "slug" in changes:
            changes["slug"] = InputSanitizer.slugify(str(changes["slug"]))
            await self._ensure_slug_free(changes["slug"], exclude_id=snapshot.id)
        make_default = bool(changes.pop("defaultContest", False))
        if "defaultContest" in updates and not make_default:
            changes["defaultContest"] = False

        def mutate(contest: Contest) -> Contest:
            for key, value in changes.items():
                setattr(contest, key, value)
            return contest.model_copy(deep=True)

        updated = await run_contest_transaction(
            self._ctx.store, snapshot.id, mutate, policy=self._ctx.policy
        )
        if make_default:
            return await self._set_default(updated.id)
        return updated

    @_guarded
    async def delete(self, contest_ref: str) -> None:
        snapshot = await find_contest(self._ctx.store, contest_ref)
        if not await self._ctx.store.delete(CONTESTS, snapshot.id):
            raise NotFoundError(f"Contest not found: {contest_ref}")
        logger.info(f"Deleted contest {snapshot.id} with its entries, voters and scores")

    @_guarded
    async def set_default(self, contest_ref: str) -> Contest:
        return await self._set_default(contest_ref)

    async def _set_default(self, contest_ref: str) -> Contest:
        def mark(contest: Contest) -> Contest:
            contest.defaultContest = True
            return contest.model_copy(deep=True)

        def unmark(contest: Contest) -> None:
            contest.defaultContest = False

        async with self._default_lock:
            target = await run_contest_transaction(
                self._ctx.store, contest_ref, mark, policy=self._ctx.policy
            )
            for doc in await self._ctx.store.list(CONTESTS):
                if doc.id != target.id and doc.data.get("defaultContest"):
                    await run_contest_transaction(
                        self._ctx.store, doc.id, unmark, policy=self._ctx.policy
                    )
        # Another process sharing the store may have cleared this contest after it was marked.
        current = await self._ctx.store.get(CONTESTS, target.id)
        if current is None or not current.data.get("defaultContest"):
            logger.warning(f"Default contest switch to {target.id} was overtaken by another switch")
            return _load_contest(current.data) if current is not None else target
        logger.info(f"Default contest is now {target.id}")
        return target


class DocumentEntriesProvider:
    def __init__(self, ctx: _Context) -> None:
        self._ctx = ctx

    @_guarded
    async def list_by_contest(self, contest_ref: str) -> List[Entry]:
        snapshot = await find_contest(self._ctx.store, contest_ref)
        return _load_contest(snapshot.data).entries

    @_guarded
    async def get_by_id(self, contest_ref: str, entry_id: str) -> Entry:
        snapshot = await find_contest(self._ctx.store, contest_ref)
        entry = _load_contest(snapshot.data).find_entry(entry_id)
        if entry is None:
            raise NotFoundError(f"Entry not found: {entry_id}")
        return entry

    @_guarded
    async def create(self, contest_ref: str, data: Mapping[str, Any]) -> Entry:
        name = InputSanitizer.sanitize_display_name(str(data.get("name") or ""))
        entry = Entry.model_validate(
            {
                **dict(data),
                "id": data.get("id") or generate_id("entry"),
                "name": name,
                "slug": InputSanitizer.slugify(str(data.get("slug") or name)),
            }
        )

        def mutate(contest: Contest) -> Entry:
            for existing in contest.entries:
                if existing.id == entry.id:
                    raise ConflictError(f"Entry already exists: {entry.id}")
                if entry.slug and existing.slug == entry.slug:
                    raise ConflictError(f"Entry slug already in use: {entry.slug}")
            contest.entries.append(entry)
            return entry.model_copy(deep=True)

        return await run_contest_transaction(
            self._ctx.store, contest_ref, mutate, policy=self._ctx.policy
        )

    @_guarded
    async def update(
        self, contest_ref: str, entry_id: str, updates: Mapping[str, Any]
    ) -> Entry:
        changes = {key: value for key, value in updates.items() if key != "id"}
        if "slug" in changes:
            changes["slug"] = InputSanitizer.slugify(str(changes["slug"]))

        def mutate(contest: Contest) -> Entry:
            current = contest.find_entry(entry_id)
            if current is None:
                raise NotFoundError(f"Entry not found: {entry_id}")
            updated = Entry.model_validate({**current.model_dump(), **changes})
            for other in contest.entries:
                if other.id != current.id and updated.slug and other.slug == updated.slug:
                    raise ConflictError(f"Entry slug already in use: {updated.slug}")
            contest.entries = [updated if e.id == current.id else e for e in contest.entries]
            return updated.model_copy(deep=True)

        return await run_contest_transaction(
            self._ctx.store, contest_ref, mutate, policy=self._ctx.policy
        )

    @_guarded
    async def delete(self, contest_ref: str, entry_id: str) -> None:
        def mutate(contest: Contest) -> None:
            entry = contest.find_entry(entry_id)
            if entry is None:
                raise NotFoundError(f"Entry not found: {entry_id}")
            contest.entries = [e for e in contest.entries if e.id != entry.id]
            # scores never outlive their entry
            contest.scores = [s for s in contest.scores if s.entryId != entry.id]

        await run_contest_transaction(
            self._ctx.store, contest_ref, mutate, policy=self._ctx.policy
        )


class DocumentVotersProvider:
    def __init__(self, ctx: _Context) -> None:
        self._ctx = ctx

    @_guarded
    async def list_by_contest(self, contest_ref: str) -> List[Voter]:
        snapshot = await find_contest(self._ctx.store, contest_ref)
        return _load_contest(snapshot.data).voters

    @_guarded
    async def get_by_id(self, contest_ref: str, voter_id: str) -> Voter:
        snapshot = await find_contest(self._ctx.store, contest_ref)
        voter = _load_contest(snapshot.data).find_voter(voter_id)
        if voter is None:
            raise NotFoundError(f"Voter not found: {voter_id}")
        return voter

    @_guarded
    async def create(self, contest_ref: str, data: Mapping[str, Any]) -> Voter:
        voter = Voter.model_validate({**dict(data), "id": data.get("id") or generate_id("voter")})

        def mutate(contest: Contest) -> Voter:
            if contest.find_voter(voter.id) is not None:
                raise ConflictError(f"Voter already exists: {voter.id}")
            contest.voters.append(voter)
            return voter.model_copy(deep=True)

        return await run_contest_transaction(
            self._ctx.store, contest_ref, mutate, policy=self._ctx.policy
        )

    @_guarded
    async def ensure(self, contest_ref: str, voter: Voter) -> Voter:
        """Register ``voter`` unless a voter with the same id exists. Idempotent."""

        def mutate(contest: Contest) -> Voter:
            existing = contest.find_voter(voter.id)
            if existing is not None:
                return existing.model_copy(deep=True)
            contest.voters.append(voter)
            logger.info(f"Auto-registered voter {voter.id} ({voter.role}) in contest {contest.id}")
            return voter.model_copy(deep=True)

        return await run_contest_transaction(
            self._ctx.store, contest_ref, mutate, policy=self._ctx.policy
        )

    @_guarded
    async def update(
        self, contest_ref: str, voter_id: str, updates: Mapping[str, Any]
    ) -> Voter:
        changes = {key: value for key, value in updates.items() if key != "id"}

        def mutate(contest: Contest) -> Voter:
            current = contest.find_voter(voter_id)
            if current is None:
                raise NotFoundError(f"Voter not found: {voter_id}")
            updated = Voter.model_validate({**current.model_dump(), **changes})
            contest.voters = [updated if v.id == voter_id else v for v in contest.voters]
            return updated.model_copy(deep=True)

        return await run_contest_transaction(
            self._ctx.store, contest_ref, mutate, policy=self._ctx.policy
        )

    @_guarded
    async def delete(self, contest_ref: str, voter_id: str) -> None:
        def mutate(contest: Contest) -> None:
            if contest.find_voter(voter_id) is None:
                raise NotFoundError(f"Voter not found: {voter_id}")
            # Their scores stay as part of the contest record.
            contest.voters = [v for v in contest.voters if v.id != voter_id]

        await run_contest_transaction(
            self._ctx.store, contest_ref, mutate, policy=self._ctx.policy
        )


class DocumentScoresProvider:
    def __init__(self, ctx: _Context) -> None:
        self._ctx = ctx

    @_guarded
    async def list_by_entry(self, contest_ref: str, entry_id: str) -> List[ScoreEntry]:
        contest = _load_contest((await find_contest(self._ctx.store, contest_ref)).data)
        entry = contest.find_entry(entry_id)
        if entry is None:
            raise NotFoundError(f"Entry not found: {entry_id}")
        return [s for s in contest.scores if s.entryId == entry.id]

    @_guarded
    async def list_by_judge(self, contest_ref: str, judge_id: str) -> List[ScoreEntry]:
        contest = _load_contest((await find_contest(self._ctx.store, contest_ref)).data)
        return [s for s in contest.scores if s.judgeId == judge_id]

    @_guarded
    async def get_by_id(self, contest_ref: str, score_id: str) -> ScoreEntry:
        contest = _load_contest((await find_contest(self._ctx.store, contest_ref)).data)
        score = contest.find_score_by_id(score_id)
        if score is None:
            raise NotFoundError(f"Score not found: {score_id}")
        return score

    @_guarded
    async def submit(
        self,
        contest_ref: str,
        entry_id: str,
        judge_id: str,
        *,
        updates: Optional[Mapping[str, Any]] = None,
        na_sections: Optional[List[str]] = None,
        notes: Optional[str] = None,
    ) -> ScoreEntry:
        return await submit_score(
            self._ctx.store,
            contest_ref,
            entry_id,
            judge_id,
            updates=updates,
            na_sections=na_sections,
            notes=notes,
            default_template=self._ctx.settings.default_template,
            policy=self._ctx.policy,
        )

    @_guarded
    async def update(
        self,
        contest_ref: str,
        score_id: str,
        *,
        updates: Optional[Mapping[str, Any]] = None,
        na_sections: Optional[List[str]] = None,
        notes: Optional[str] = None,
    ) -> ScoreEntry:
        return await run_contest_transaction(
            self._ctx.store,
            contest_ref,
            lambda contest: apply_score_update(
                contest,
                score_id,
                updates=updates,
                na_sections=na_sections,
                notes=notes,
                default_template=self._ctx.settings.default_template,
            ),
            policy=self._ctx.policy,
        )

    @_guarded
    async def delete(self, contest_ref: str, score_id: str) -> None:
        await run_contest_transaction(
            self._ctx.store,
            contest_ref,
            lambda contest: remove_score(contest, score_id),
            policy=self._ctx.policy,
        )


class DocumentConfigsProvider:
    def __init__(self, ctx: _Context) -> None:
        self._ctx = ctx

    @_guarded
    async def list(self) -> List[ConfigItem]:
        return [
            ConfigItem.model_validate(doc.data)
            for doc in await self._ctx.store.list(CONFIGS)
        ]

    @_guarded
    async def get_by_id(self, config_id: str) -> ConfigItem:
        doc = await self._ctx.store.get(CONFIGS, config_id)
        if doc is None:
            raise NotFoundError(f"Config not found: {config_id}")
        return ConfigItem.model_validate(doc.data)

    @_guarded
    async def create(self, data: Mapping[str, Any]) -> ConfigItem:
        item = ConfigItem.model_validate(dict(data))
        item = item.model_copy(update={"id": item.id or generate_id("config")})
        await self._ctx.store.insert(CONFIGS, item.id, item.model_dump())
        return item

    @_guarded
    async def update(self, config_id: str, updates: Mapping[str, Any]) -> ConfigItem:
        def mutate(data: Dict[str, Any]) -> ConfigItem:
            merged = ConfigItem.model_validate({**data, **dict(updates), "id": config_id})
            data.clear()
            data.update(merged.model_dump())
            return merged

        return await run_document_transaction(
            self._ctx.store, CONFIGS, config_id, mutate, policy=self._ctx.policy
        )

    @_guarded
    async def delete(self, config_id: str) -> None:
        if not await self._ctx.store.delete(CONFIGS, config_id):
            raise NotFoundError(f"Config not found: {config_id}")


class DocumentBackendProvider:
    """BackendProvider over a DocumentStore (in-memory by default).

    Lifecycle: construct -> initialize() -> use -> dispose().
    """

    name = "document"

    def __init__(
        self,
        store: DocumentStore | None = None,
        settings: EngineSettings | None = None,
    ) -> None:
        self.store = store if store is not None else InMemoryDocumentStore()
        self.settings = settings or EngineSettings()
        ctx = _Context(
            store=self.store,
            settings=self.settings,
            policy=RetryPolicy.from_settings(self.settings),
        )
        self.contests = DocumentContestsProvider(ctx)
        self.entries = DocumentEntriesProvider(ctx)
        self.voters = DocumentVotersProvider(ctx)
        self.scores = DocumentScoresProvider(ctx)
        self.configs = DocumentConfigsProvider(ctx)
        self._initialized = False
        self._init_lock = asyncio.Lock()

    @property
    def initialized(self) -> bool:
        return self._initialized

    async def initialize(self) -> ProviderResult[None]:
        async with self._init_lock:
            if self._initialized:
                return success()
            try:
                await self.store.initialize()
                if self.settings.seed_default_configs:
                    await self._seed_default_configs()
            except JudgingError as exc:
                logger.error(f"Backend provider failed to initialize: {exc.message}")
                return failure(exc)
            except Exception as exc:
                logger.exception("Backend provider failed to initialize")
                return failure(StorageUnavailableError(f"Storage error: {exc}"))
            self._initialized = True
            logger.info(f"Backend provider '{self.name}' initialized")
            return success()

    async def dispose(self) -> None:
        if not self._initialized:
            return
        await self.store.close()
        self._initialized = False
        logger.info(f"Backend provider '{self.name}' disposed")

    async def _seed_default_configs(self) -> None:
        seeded = 0
        for key, config in DEFAULT_TEMPLATES.items():
            if await self.store.get(CONFIGS, key) is not None:
                continue
            item = ConfigItem(id=key, name=config.topic, **config.model_dump())
            try:
                await self.store.insert(CONFIGS, key, item.model_dump())
                seeded += 1
            except ConflictError:
                continue
        if seeded:
            logger.info(f"Seeded {seeded} default contest configs")
