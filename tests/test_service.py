import asyncio

import pytest

from judging_core import (
    ConflictError,
    DocumentBackendProvider,
    EngineSettings,
    InMemoryDocumentStore,
    JudgingService,
    NotFoundError,
    ScoreValidationError,
)
from judging_core.transaction import CONTESTS

FAST = EngineSettings(max_transaction_attempts=50, backoff_base_ms=0, backoff_jitter_ms=5)

TASTING = {
    "topic": "Tasting",
    "attributes": [
        {"id": "aroma", "label": "Aroma", "min": 0, "max": 10},
        {"id": "overall", "label": "Overall", "min": 0, "max": 10},
    ],
}


async def _service(latency=0.0):
    service = JudgingService(DocumentBackendProvider(InMemoryDocumentStore(latency), FAST))
    await service.initialize()
    await service.create_contest({"id": "c1", "name": "Spring Tasting", "config": TASTING})
    await service.create_entry("c1", {"id": "entry-1", "name": "Negroni"})
    return service


def test_scores_merge_per_judge_and_stay_independent():
    async def main():
        service = await _service()
        first = await service.submit_score("c1", "entry-1", "j1", {"breakdown": {"aroma": 8}})
        second = await service.submit_score("c1", "entry-1", "j1", {"breakdown": {"overall": 9}})
        await service.submit_score("c1", "entry-1", "j2", {"breakdown": {"aroma": 5, "overall": 5}})
        return first, second, await service.get_scores_by_entry("c1", "entry-1")

    first, second, scores = asyncio.run(main())
    assert first.breakdown == {"aroma": 8}
    assert second.breakdown == {"aroma": 8, "overall": 9}
    assert second.id == first.id
    by_judge = {s.judgeId: s.breakdown for s in scores}
    assert by_judge == {"j1": {"aroma": 8, "overall": 9}, "j2": {"aroma": 5, "overall": 5}}


def test_out_of_range_score_is_rejected_with_bound():
    async def main():
        service = await _service()
        with pytest.raises(ScoreValidationError) as exc:
            await service.submit_score("c1", "entry-1", "j1", {"breakdown": {"aroma": 15}})
        return exc.value, await service.get_contest("c1")

    err, contest = asyncio.run(main())
    assert err.issues[0].attribute == "aroma"
    assert err.issues[0].bound == "max"
    assert err.issues[0].limit == 10
    assert "10" in err.message
    assert contest.scores == []
    assert contest.voters == []


def test_unknown_category_is_rejected():
    async def main():
        service = await _service()
        with pytest.raises(ScoreValidationError) as exc:
            await service.submit_score("c1", "entry-1", "j1", {"categoryId": "balance", "value": 3})
        return exc.value

    assert asyncio.run(main()).errors == ["Invalid attribute: balance"]


def test_category_shorthand_updates_one_attribute():
    async def main():
        service = await _service()
        await service.submit_score("c1", "entry-1", "j1", {"breakdown": {"aroma": 4}})
        return await service.submit_score("c1", "entry-1", "j1", {"categoryId": "overall", "value": 7})

    assert asyncio.run(main()).breakdown == {"aroma": 4, "overall": 7}


def test_na_sections_and_explicit_precedence():
    async def main():
        service = await _service()
        na = await service.submit_score(
            "c1", "entry-1", "j1", {"naSections": ["aroma"], "breakdown": {"overall": 6}}
        )
        by_value = await service.submit_score("c1", "entry-1", "j3", {"breakdown": {"aroma": None}})
        explicit = await service.submit_score(
            "c1", "entry-1", "j2", {"naSections": ["aroma"], "breakdown": {"aroma": 7}}
        )
        return na, explicit, by_value

    na, explicit, by_value = asyncio.run(main())
    assert na.breakdown == {"aroma": None, "overall": 6}
    assert na.naSections == ["aroma"]
    assert explicit.breakdown == {"aroma": 7}
    assert explicit.naSections is None
    assert by_value.breakdown == {"aroma": None}
    assert by_value.naSections == ["aroma"]


def test_concurrent_judges_are_all_recorded():
    judges = [f"j{i}" for i in range(8)]

    async def main():
        service = await _service(latency=0.002)
        await asyncio.gather(
            *(
                service.submit_score("c1", "entry-1", judge, {"breakdown": {"overall": 6}})
                for judge in judges
            )
        )
        return await service.get_contest("c1")

    contest = asyncio.run(main())
    assert sorted(s.judgeId for s in contest.scores) == sorted(judges)
    assert sorted(v.id for v in contest.voters) == sorted(judges)


def test_missing_entry_creates_no_score_or_voter():
    async def main():
        service = await _service()
        with pytest.raises(NotFoundError):
            await service.submit_score("c1", "entry-404", "j1", {"breakdown": {"aroma": 1}})
        return await service.get_contest("c1")

    contest = asyncio.run(main())
    assert contest.scores == []
    assert contest.voters == []


def test_voter_is_registered_once_with_payload_identity():
    async def main():
        service = await _service()
        await service.submit_score(
            "c1",
            "entry-1",
            "j1",
            {"breakdown": {"aroma": 1}, "judgeDisplayName": "Ann", "judgeRole": "judge"},
        )
        await service.submit_score(
            "c1", "entry-1", "j1", {"breakdown": {"aroma": 2}, "judgeDisplayName": "Someone"}
        )
        await service.submit_score("c1", "entry-1", "j2", {"breakdown": {"aroma": 3}})
        return await service.list_voters("c1")

    voters = {v.id: v for v in asyncio.run(main())}
    assert len(voters) == 2
    assert (voters["j1"].displayName, voters["j1"].role) == ("Ann", "judge")
    assert (voters["j2"].displayName, voters["j2"].role) == ("Guest", "voter")


def test_score_queries_and_update_by_id():
    async def main():
        service = await _service()
        await service.create_entry("c1", {"id": "entry-2", "name": "Boulevardier"})
        score = await service.submit_score("c1", "entry-1", "j1", {"breakdown": {"aroma": 8}})
        await service.submit_score("c1", "entry-2", "j1", {"breakdown": {"aroma": 6}})
        await service.submit_score("c1", "entry-1", "j2", {"breakdown": {"aroma": 4}})
        updated = await service.update_score("c1", score.id, {"breakdown": {"overall": 3}})
        by_entry_judge = await service.get_scores_by_entry("spring-tasting", "entry-1", "j2")
        by_judge = await service.get_scores_by_judge("c1", "j1")
        await service.delete_score("c1", score.id)
        with pytest.raises(NotFoundError):
            await service.get_score("c1", score.id)
        return updated, by_entry_judge, by_judge

    updated, by_entry_judge, by_judge = asyncio.run(main())
    assert updated.breakdown == {"aroma": 8, "overall": 3}
    assert [s.judgeId for s in by_entry_judge] == ["j2"]
    assert sorted(s.entryId for s in by_judge) == ["entry-1", "entry-2"]


def test_contest_crud_and_slug_lookup():
    async def main():
        service = await _service()
        by_slug = await service.get_contest("spring-tasting")
        with pytest.raises(ConflictError):
            await service.create_contest({"name": "Spring Tasting", "config": TASTING})
        renamed = await service.update_contest("c1", {"name": "Summer Tasting", "slug": "summer"})
        with pytest.raises(ScoreValidationError):
            await service.update_contest("c1", {"entries": []})
        with pytest.raises(ScoreValidationError):
            await service.update_contest("c1", {"phase": "paused"})
        await service.delete_contest("summer")
        with pytest.raises(NotFoundError):
            await service.get_contest("c1")
        return by_slug, renamed, await service.list_contests()

    by_slug, renamed, remaining = asyncio.run(main())
    assert by_slug.id == "c1"
    assert (renamed.name, renamed.slug) == ("Summer Tasting", "summer")
    assert remaining == []


def test_contest_config_defaults_to_template():
    async def main():
        service = await _service()
        bar = await service.create_contest({"name": "Bar Night"})
        chili = await service.create_contest({"name": "Cook-off", "template": "Chili"})
        with pytest.raises(ScoreValidationError):
            await service.create_contest({"name": "Mystery", "template": "nope"})
        with pytest.raises(ScoreValidationError):
            await service.create_contest(
                {"name": "Broken", "config": {"topic": "X", "attributes": []}}
            )
        return bar, chili

    bar, chili = asyncio.run(main())
    assert bar.slug == "bar-night"
    assert bar.phase == "setup"
    assert bar.config.topic == "Mixology"
    assert chili.config.topic == "Chili"


def test_default_contest_is_a_singleton():
    async def main():
        service = await _service()
        assert await service.get_default_contest() is None
        await service.create_contest({"id": "c2", "name": "Autumn", "defaultContest": True})
        await service.set_default_contest("c1")
        return await service.get_default_contest(), await service.list_contests()

    default, contests = asyncio.run(main())
    assert default.id == "c1"
    assert [c.id for c in contests if c.defaultContest] == ["c1"]


def test_phase_advances_forward_and_scores_are_not_gated():
    async def main():
        service = await _service()
        await service.submit_score("c1", "entry-1", "j1", {"breakdown": {"aroma": 1}})
        active = await service.advance_phase("c1")
        judging = await service.advance_phase("c1", "judging")
        with pytest.raises(ScoreValidationError):
            await service.advance_phase("c1", "setup")
        forced = await service.advance_phase("c1", "active", force=True)
        closed = await service.archive_contest("c1")
        await service.submit_score("c1", "entry-1", "j2", {"breakdown": {"aroma": 2}})
        return active, judging, forced, closed, await service.get_contest("c1")

    active, judging, forced, closed, contest = asyncio.run(main())
    assert [active.phase, judging.phase, forced.phase, closed.phase] == [
        "active",
        "judging",
        "active",
        "closed",
    ]
    assert len(contest.scores) == 2


def test_entry_crud_and_score_cascade():
    async def main():
        service = await _service()
        with pytest.raises(ConflictError):
            await service.create_entry("c1", {"name": "Negroni"})
        with pytest.raises(ScoreValidationError):
            await service.create_entry("c1", {"name": ""})
        entry = await service.update_entry("c1", "negroni", {"description": "Bitter", "round": "Final"})
        await service.submit_score("c1", "entry-1", "j1", {"breakdown": {"aroma": 1}})
        await service.delete_entry("c1", "entry-1")
        with pytest.raises(NotFoundError):
            await service.get_entry("c1", "entry-1")
        return entry, await service.get_contest("c1")

    entry, contest = asyncio.run(main())
    assert (entry.id, entry.description, entry.round) == ("entry-1", "Bitter", "Final")
    assert contest.entries == []
    assert contest.scores == []


def test_voter_crud_keeps_scores():
    async def main():
        service = await _service()
        voter = await service.create_voter("c1", {"id": "j1", "displayName": "Ann", "role": "admin"})
        with pytest.raises(ConflictError):
            await service.create_voter("c1", {"id": "j1"})
        renamed = await service.update_voter("c1", "j1", {"displayName": "Ann B."})
        await service.submit_score("c1", "entry-1", "j1", {"breakdown": {"aroma": 1}})
        await service.delete_voter("c1", "j1")
        with pytest.raises(NotFoundError):
            await service.get_voter("c1", "j1")
        return voter, renamed, await service.get_contest("c1")

    voter, renamed, contest = asyncio.run(main())
    assert voter.role == "admin"
    assert renamed.displayName == "Ann B."
    assert contest.voters == []
    assert [s.judgeId for s in contest.scores] == ["j1"]


def test_config_crud_and_seeding():
    async def main():
        service = await _service()
        seeded = await service.list_configs()
        created = await service.create_config({"id": "custom", "name": "Custom", **TASTING})
        with pytest.raises(ConflictError):
            await service.create_config({"id": "custom", **TASTING})
        updated = await service.update_config("custom", {"topic": "Cider"})
        with pytest.raises(ScoreValidationError):
            await service.update_config("custom", {"attributes": []})
        await service.delete_config("custom")
        with pytest.raises(NotFoundError):
            await service.get_config("custom")
        return seeded, created, updated

    seeded, created, updated = asyncio.run(main())
    assert sorted(c.id for c in seeded) == sorted(
        ["mixology", "chili", "cosplay", "dance", "baking", "bbq"]
    )
    assert created.name == "Custom"
    assert updated.topic == "Cider"
    assert updated.attributes == created.attributes


def test_seeding_is_idempotent_across_providers():
    async def main():
        store = InMemoryDocumentStore()
        first = DocumentBackendProvider(store, FAST)
        assert (await first.initialize()).success
        assert (await first.initialize()).success
        await first.dispose()
        second = DocumentBackendProvider(store, FAST)
        await second.initialize()
        return await second.configs.list()

    result = asyncio.run(main())
    assert result.success
    assert len(result.data) == 6


def test_provider_reports_failures_instead_of_raising():
    async def main():
        provider = DocumentBackendProvider(InMemoryDocumentStore(), FAST)
        before_init = await provider.contests.list()
        await provider.initialize()
        await provider.contests.create({"id": "c1", "name": "Spring", "config": TASTING})
        await provider.entries.create("c1", {"id": "entry-1", "name": "Negroni"})
        invalid = await provider.scores.submit("c1", "entry-1", "j1", updates={"aroma": 15})
        missing = await provider.contests.get("nope")
        return before_init, invalid, missing

    before_init, invalid, missing = asyncio.run(main())
    assert not before_init.success
    assert before_init.kind == "storage_unavailable"
    assert not invalid.success
    assert invalid.kind == "validation"
    assert invalid.details["issues"][0] == {
        "attribute": "aroma",
        "message": "aroma: 15 exceeds the maximum of 10",
        "bound": "max",
        "limit": 10,
    }
    assert missing.kind == "not_found"
    assert missing.error == "Contest not found: nope"


def test_service_context_manager_owns_lifecycle():
    async def main():
        async with JudgingService(settings=FAST) as service:
            configs = await service.list_configs()
        return service, configs

    service, configs = asyncio.run(main())
    assert len(configs) == 6
    assert not service.provider.initialized


def test_legacy_documents_are_read_with_canonical_names():
    async def main():
        service = await _service()
        await service.provider.store.insert(
            CONTESTS,
            "legacy",
            {
                "id": "legacy",
                "name": "Old Bar Night",
                "slug": "old-bar-night",
                "entries": [{"id": "d1", "name": "Sazerac"}],
                "judges": [{"id": "u1", "displayName": "Ann", "role": "judge"}],
                "scores": [{"id": "s1", "drinkId": "d1", "userId": "u1", "breakdown": {"aroma": 7}}],
            },
        )
        contest = await service.get_contest("old-bar-night")
        config = await service.get_contest_config("legacy")
        score = await service.submit_score("legacy", "d1", "u1", {"breakdown": {"balance": 6}})
        return contest, config, score

    contest, config, score = asyncio.run(main())
    assert [v.id for v in contest.voters] == ["u1"]
    assert contest.scores[0].entryId == "d1"
    assert contest.scores[0].judgeId == "u1"
    assert config.topic == "Mixology"
    assert score.id == "s1"
    assert score.breakdown == {"aroma": 7, "balance": 6}


def test_leaderboard_and_summary():
    async def main():
        service = await _service()
        await service.create_entry("c1", {"id": "entry-2", "name": "Boulevardier"})
        await service.submit_score("c1", "entry-1", "j1", {"breakdown": {"aroma": 4, "overall": 6}})
        await service.submit_score("c1", "entry-2", "j1", {"breakdown": {"aroma": 9, "overall": 9}})
        summary = await service.summarize_entry("c1", "negroni")
        with pytest.raises(NotFoundError):
            await service.summarize_entry("c1", "entry-404")
        return summary, await service.leaderboard("c1")

    summary, rows = asyncio.run(main())
    assert summary.entry_id == "entry-1"
    assert summary.mean_score == pytest.approx(5.0)
    assert [(r.entry_id, r.rank) for r in rows] == [("entry-2", 1), ("entry-1", 2)]


def test_submission_without_scores_is_rejected():
    async def main():
        service = await _service()
        with pytest.raises(ScoreValidationError) as exc:
            await service.submit_score("c1", "entry-1", "j1", {"naSections": ["aroma"]})
        return exc.value, await service.get_contest("c1")

    err, contest = asyncio.run(main())
    assert err.errors == ["Score breakdown or categoryId + value is required"]
    assert contest.scores == []
    assert contest.voters == []


def test_huge_integer_score_is_a_validation_error():
    async def main():
        service = await _service()
        with pytest.raises(ScoreValidationError) as exc:
            await service.submit_score("c1", "entry-1", "j1", {"breakdown": {"aroma": 10**400}})
        return exc.value, await service.get_contest("c1")

    err, contest = asyncio.run(main())
    assert err.status_code == 400
    assert (err.issues[0].attribute, err.issues[0].bound, err.issues[0].limit) == ("aroma", "max", 10)
    assert contest.scores == []


def test_configless_contest_scores_against_configured_default_template():
    settings = EngineSettings(default_template="chili", backoff_base_ms=0, backoff_jitter_ms=5)

    async def main():
        service = JudgingService(DocumentBackendProvider(InMemoryDocumentStore(), settings))
        await service.initialize()
        await service.provider.store.insert(
            CONTESTS,
            "legacy",
            {
                "id": "legacy",
                "name": "Old Cook-off",
                "slug": "old-cook-off",
                "entries": [{"id": "pot-1", "name": "Texas Red"}],
            },
        )
        config = await service.get_contest_config("legacy")
        score = await service.submit_score("legacy", "pot-1", "j1", {"breakdown": {"heat": 5}})
        with pytest.raises(ScoreValidationError):
            await service.submit_score("legacy", "pot-1", "j1", {"breakdown": {"aroma": 5}})
        updated = await service.update_score("legacy", score.id, {"breakdown": {"flavor": 7}})
        summary = await service.summarize_entry("legacy", "pot-1")
        rows = await service.leaderboard("legacy")
        return config, updated, summary, rows

    config, updated, summary, rows = asyncio.run(main())
    assert config.topic == "Chili"
    assert updated.breakdown == {"heat": 5, "flavor": 7}
    assert summary.mean_score == pytest.approx(6.0)
    assert set(summary.attribute_means) == {"heat", "flavor", "texture", "appearance", "overall"}
    assert rows[0].mean_score == pytest.approx(6.0)


def test_concurrent_default_switches_leave_exactly_one_default():
    async def main():
        service = await _service(latency=0.002)
        for contest_id in ("c2", "c3", "c4"):
            await service.create_contest({"id": contest_id, "name": f"Contest {contest_id}"})
        await asyncio.gather(
            *(service.set_default_contest(cid) for cid in ("c1", "c2", "c3", "c4"))
        )
        return await service.list_contests()

    contests = asyncio.run(main())
    assert len([c for c in contests if c.defaultContest]) == 1
