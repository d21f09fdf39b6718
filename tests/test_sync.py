import asyncio

import pytest
from unittest.mock import AsyncMock, MagicMock

from gymmatch.config import MatchingConfig
from gymmatch.models import MatchDecision, Org, ReviewStatus
from gymmatch.sync import GymSyncOrchestrator

from tests.conftest import make_gym


def fetcher_of(*gyms):
    return MagicMock(return_value=list(gyms))


@pytest.mark.asyncio
async def test_unmatched_gym_founds_its_own_master_gym(registry):
    orchestrator = GymSyncOrchestrator(registry)
    result = await orchestrator.sync_source(Org.JJWL, fetcher_of(make_gym(city="Bellaire")))

    assert result.error is None
    assert (result.fetched, result.saved, result.processed, result.masters_created) == (1, 1, 1, 1)
    stored = registry.get_source_gym(Org.JJWL, "1")
    master = registry.get_master_gym(stored.master_gym_id)
    assert master.canonical_name == "Pablo Silva BJJ"
    assert master.city == "Bellaire"


@pytest.mark.asyncio
async def test_gym_from_other_federation_is_auto_linked(registry):
    orchestrator = GymSyncOrchestrator(registry)
    await orchestrator.sync_source(Org.IBJJF, fetcher_of(
        make_gym(org=Org.IBJJF, external_id="100", name="Gracie Barra", city="Miami")
    ))
    result = await orchestrator.sync_source(Org.JJWL, AsyncMock(return_value=[
        make_gym(external_id="5", name="Gracie Barra Miami", city="Miami")
    ]))

    assert result.auto_linked == 1
    assert result.masters_created == 0
    ibjjf = registry.get_source_gym(Org.IBJJF, "100")
    jjwl = registry.get_source_gym(Org.JJWL, "5")
    assert jjwl.master_gym_id == ibjjf.master_gym_id
    assert len(registry.list_master_gyms()) == 1


@pytest.mark.asyncio
async def test_pending_band_queues_one_review_item(registry):
    orchestrator = GymSyncOrchestrator(registry, config=MatchingConfig(auto_link_threshold=95))
    await orchestrator.sync_source(Org.IBJJF, fetcher_of(make_gym(org=Org.IBJJF, external_id="100", name="Gracie Barra")))
    jjwl_feed = fetcher_of(make_gym(external_id="5", name="Gracie Barra Miami"))

    first = await orchestrator.sync_source(Org.JJWL, jjwl_feed)
    second = await orchestrator.sync_source(Org.JJWL, jjwl_feed)

    assert first.pending_created == 1
    assert second.pending_created == 0
    assert second.processed == 1
    pending = orchestrator.review.list_pending_matches()
    assert len(pending) == 1
    assert pending[0].source_gym_id == "SRCGYM#JJWL#5"
    assert pending[0].matched_source_gym_id == "SRCGYM#IBJJF#100"
    assert registry.get_source_gym(Org.JJWL, "5").master_gym_id is None


@pytest.mark.asyncio
async def test_rejected_pair_is_not_proposed_again(registry):
    orchestrator = GymSyncOrchestrator(registry, config=MatchingConfig(auto_link_threshold=95))
    await orchestrator.sync_source(Org.IBJJF, fetcher_of(make_gym(org=Org.IBJJF, external_id="100", name="Gracie Barra")))
    jjwl_feed = fetcher_of(make_gym(external_id="5", name="Gracie Barra Miami"))
    await orchestrator.sync_source(Org.JJWL, jjwl_feed)

    pending = orchestrator.review.list_pending_matches()[0]
    orchestrator.review.reject_pending_match(pending.id, "admin-1")
    result = await orchestrator.sync_source(Org.JJWL, jjwl_feed)

    assert result.masters_created == 1
    assert orchestrator.review.list_pending_matches() == []
    jjwl = registry.get_source_gym(Org.JJWL, "5")
    assert jjwl.master_gym_id not in (None, pending.master_gym_id)


@pytest.mark.asyncio
async def test_linked_gyms_are_skipped(registry):
    orchestrator = GymSyncOrchestrator(registry)
    feed = fetcher_of(make_gym())
    await orchestrator.sync_source(Org.JJWL, feed)
    result = await orchestrator.sync_source(Org.JJWL, feed)

    assert result.skipped == 1
    assert result.processed == 0
    assert len(registry.list_master_gyms()) == 1


@pytest.mark.asyncio
async def test_resolve_gym_reports_already_linked(registry):
    orchestrator = GymSyncOrchestrator(registry)
    await orchestrator.sync_source(Org.JJWL, fetcher_of(make_gym()))
    resolution = await orchestrator.resolve_gym(registry.get_source_gym(Org.JJWL, "1"), [])
    assert resolution.decision is None
    assert resolution.master_gym_id is not None


@pytest.mark.asyncio
async def test_malformed_gyms_are_skipped(registry):
    orchestrator = GymSyncOrchestrator(registry)
    result = await orchestrator.sync_source(Org.JJWL, fetcher_of(
        make_gym(external_id="1"),
        make_gym(external_id="2", name="  "),
        make_gym(external_id="", name="No Id"),
    ))
    assert result.error is None
    assert result.fetched == 3
    assert result.saved == 1
    assert [g.external_id for g in registry.list_source_gyms()] == ["1"]


@pytest.mark.asyncio
async def test_pool_gym_with_missing_master_is_ignored(registry):
    orchestrator = GymSyncOrchestrator(registry)
    ghost = make_gym(org=Org.IBJJF, external_id="9", name="Pablo Silva BJJ", master_gym_id="deleted")
    result = await orchestrator.sync_source(Org.JJWL, fetcher_of(make_gym()), pool=[ghost])
    assert result.masters_created == 1
    assert registry.get_source_gym(Org.JJWL, "1").master_gym_id != "deleted"


@pytest.mark.asyncio
async def test_same_federation_is_not_matched_by_default(registry):
    orchestrator = GymSyncOrchestrator(registry)
    await orchestrator.sync_source(Org.JJWL, fetcher_of(make_gym(external_id="1")))
    await orchestrator.sync_source(Org.JJWL, fetcher_of(make_gym(external_id="2")))
    assert len(registry.list_master_gyms()) == 2

    same_org = GymSyncOrchestrator(registry, config=MatchingConfig(match_same_org=True))
    result = await same_org.sync_source(Org.JJWL, fetcher_of(make_gym(external_id="3")))
    assert result.auto_linked == 1


@pytest.mark.asyncio
async def test_sync_all_isolates_failing_source(registry):
    orchestrator = GymSyncOrchestrator(registry)
    summary = await orchestrator.sync_all({
        Org.IBJJF: MagicMock(side_effect=RuntimeError("feed down")),
        Org.JJWL: fetcher_of(make_gym()),
    })

    assert summary.failed_sources == [Org.IBJJF]
    assert summary.results[Org.IBJJF].error == "feed down"
    assert summary.results[Org.JJWL].masters_created == 1


@pytest.mark.asyncio
async def test_sync_all_matches_across_sources_once(registry):
    orchestrator = GymSyncOrchestrator(registry)
    summary = await orchestrator.sync_all({
        Org.IBJJF: fetcher_of(make_gym(org=Org.IBJJF, external_id="100", name="Atos Jiu Jitsu")),
        Org.JJWL: AsyncMock(return_value=[make_gym(external_id="5", name="Atos")]),
    })

    assert summary.failed_sources == []
    assert len(registry.list_master_gyms()) == 1
    auto_linked = sum(r.auto_linked for r in summary.results.values())
    created = sum(r.masters_created for r in summary.results.values())
    assert (auto_linked, created) == (1, 1)


@pytest.mark.asyncio
async def test_decide_returns_auto_link_resolution(registry):
    orchestrator = GymSyncOrchestrator(registry)
    await orchestrator.sync_source(Org.IBJJF, fetcher_of(make_gym(org=Org.IBJJF, external_id="100", name="Atos")))
    registry.upsert_source_gyms([make_gym(external_id="5", name="Atos HQ")])

    resolution = await orchestrator.resolve_gym(
        registry.get_source_gym(Org.JJWL, "5"), orchestrator.build_pool(Org.JJWL)
    )
    assert resolution.decision is MatchDecision.AUTO_LINK
    assert resolution.score == 100.0
    assert orchestrator.review.list_pending_matches(ReviewStatus.PENDING) == []


@pytest.mark.asyncio
async def test_candidate_with_missing_master_falls_through_to_next(registry):
    orchestrator = GymSyncOrchestrator(registry)
    real = registry.create_master_gym("Pablo Silva BJJ")
    pool = [
        make_gym(org=Org.IBJJF, external_id="1", name="Pablo Silva BJJ", master_gym_id="deleted"),
        make_gym(org=Org.IBJJF, external_id="2", name="Pablo Silva BJJ", master_gym_id=real.id),
    ]

    result = await orchestrator.sync_source(Org.JJWL, fetcher_of(make_gym(external_id="5")), pool=pool)

    assert result.auto_linked == 1
    assert result.masters_created == 0
    assert registry.get_source_gym(Org.JJWL, "5").master_gym_id == real.id


def test_orchestrator_survives_separate_event_loops(registry):
    orchestrator = GymSyncOrchestrator(registry)
    resolve = orchestrator.resolve_gym

    async def yielding_resolve(gym, pool):
        # Hand control back while the match lock is held so the other source waits on it
        await asyncio.sleep(0)
        return await resolve(gym, pool)

    orchestrator.resolve_gym = yielding_resolve
    fetchers = {
        Org.IBJJF: fetcher_of(make_gym(org=Org.IBJJF, external_id="100", name="Atos")),
        Org.JJWL: fetcher_of(make_gym(external_id="5", name="Atos HQ")),
    }

    first = asyncio.run(orchestrator.sync_all(fetchers))
    second = asyncio.run(orchestrator.sync_all(fetchers))

    assert first.failed_sources == []
    assert second.failed_sources == []
    assert sum(r.skipped for r in second.results.values()) == 2
