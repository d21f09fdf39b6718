"""
Gym sync orchestrator.

Per source gym:
    fetched -> already linked: skip
            -> scored against the pool -> auto-link | pending review | new master gym

Sources fetch concurrently. Their matching phases run one at a time so the
second source scores against the gyms the first one just linked.
"""
import asyncio
import time
from dataclasses import dataclass
from operator import attrgetter
from typing import Awaitable, Callable, Dict, Iterable, List, Optional, Union

from loguru import logger

from gymmatch.config import PROGRESS_EVERY, MatchingConfig
from gymmatch.errors import ValidationError
from gymmatch.matchers.matching_service import GymMatchingService
from gymmatch.models import MatchDecision, Org, SourceGym, SourceSyncResult, SyncSummary
from gymmatch.registry import MasterGymRegistry
from gymmatch.resolver import maybe_await, resolve_with_cache
from gymmatch.review import ReviewService

GymFetcher = Callable[[], Union[List[SourceGym], Awaitable[List[SourceGym]]]]


@dataclass
class GymResolution:
    """What happened to one source gym during a sync."""
    decision: Optional[MatchDecision]  # None when the gym was already linked
    master_gym_id: Optional[str] = None
    pending_match_id: Optional[str] = None
    score: Optional[float] = None
    created_master: bool = False
    created_pending: bool = False


class GymSyncOrchestrator:

    def __init__(
        self,
        registry: MasterGymRegistry,
        matching_service: GymMatchingService = None,
        review: ReviewService = None,
        config: MatchingConfig = None,
    ):
        self.config = config or (matching_service.config if matching_service else MatchingConfig())
        self.registry = registry
        self.matching = matching_service or GymMatchingService(self.config)
        self.review = review or ReviewService(registry)
        self._match_lock: Optional[asyncio.Lock] = None
        self._match_lock_loop = None

    def _get_match_lock(self) -> asyncio.Lock:
        """One match-phase lock per running event loop."""
        loop = asyncio.get_running_loop()
        if self._match_lock is None or self._match_lock_loop is not loop:
            self._match_lock = asyncio.Lock()
            self._match_lock_loop = loop
        return self._match_lock

    def build_pool(self, org: Org) -> List[SourceGym]:
        """Already-resolved gyms a source's gyms are compared with (other federations unless configured)."""
        return [
            gym for gym in self.registry.list_source_gyms()
            if gym.master_gym_id and (self.config.match_same_org or gym.org != org)
        ]

    def _decide(self, gym: SourceGym, pool: List[SourceGym]) -> GymResolution:
        excluded = self.review.rejected_master_ids(gym.key)
        top, master = None, None
        for match in self.matching.find_matches_for_gym(gym, pool, excluded_master_ids=excluded):
            master = self.registry.get_master_gym(match.gym.master_gym_id)
            if master is not None:
                top = match
                break
            logger.warning(f"{match.gym.key} points at missing master gym {match.gym.master_gym_id}, skipping it")
        decision = self.matching.policy.classify(top.score) if top else MatchDecision.NO_MATCH

        if decision is MatchDecision.AUTO_LINK:
            self.registry.link_source_gym_to_master(gym.org, gym.external_id, master.id)
            logger.debug(f"Auto-linked {gym.key} '{gym.name}' -> '{master.canonical_name}' ({top.score:.1f})")
            return GymResolution(decision, master_gym_id=master.id, score=top.score)

        if decision is MatchDecision.PENDING:
            existing = self.review.find_existing_pending_match(gym.key, master.id)
            pending = existing or self.review.create_pending_match(gym, top, master)
            logger.debug(f"Queued {gym.key} '{gym.name}' ~ '{master.canonical_name}' ({top.score:.1f}) for review")
            return GymResolution(
                decision, pending_match_id=pending.id, score=top.score, created_pending=existing is None
            )

        master, created = self.registry.create_master_gym_for_source(gym)
        logger.debug(f"No match for {gym.key} '{gym.name}', founded master gym {master.id}")
        return GymResolution(MatchDecision.NO_MATCH, master_gym_id=master.id, created_master=created)

    async def resolve_gym(self, gym: SourceGym, pool: List[SourceGym]) -> GymResolution:
        """Resolve one stored source gym: skip it when linked, otherwise score and act."""

        def lookup(key: str) -> Optional[GymResolution]:
            stored = self.registry.get_source_gym(gym.org, gym.external_id)
            if stored and stored.master_gym_id:
                return GymResolution(None, master_gym_id=stored.master_gym_id)
            return None

        resolution = await resolve_with_cache(gym, attrgetter("key"), lookup, lambda key: self._decide(gym, pool))
        return resolution.value

    async def match_gyms(
        self, org: Org, gyms: List[SourceGym], pool: Optional[Iterable[SourceGym]], result: SourceSyncResult
    ) -> None:
        async with self._get_match_lock():
            pool = list(pool) if pool is not None else self.build_pool(org)
            logger.info(f"[{org.value}] Matching {len(gyms)} gyms against a pool of {len(pool)}")
            for gym in gyms:
                resolution = await self.resolve_gym(gym, pool)
                if resolution.decision is None:
                    result.skipped += 1
                    continue
                result.processed += 1
                if resolution.decision is MatchDecision.AUTO_LINK:
                    result.auto_linked += 1
                elif resolution.decision is MatchDecision.PENDING:
                    result.pending_created += int(resolution.created_pending)
                elif resolution.created_master:
                    result.masters_created += 1

                if result.processed % PROGRESS_EVERY == 0:
                    logger.info(f"[{org.value}] Matching progress: {result.processed}/{len(gyms)}")

    async def sync_source(
        self, org: Org, fetcher: GymFetcher, pool: Optional[Iterable[SourceGym]] = None
    ) -> SourceSyncResult:
        """
        Fetch one federation's gyms, upsert them and resolve every unlinked one.

        Args:
            org (Org): Federation being synced.
            fetcher (GymFetcher): Returns the federation's gyms (sync or async).
            pool (Optional[Iterable[SourceGym]]): Comparison pool; defaults to build_pool(org).

        Returns:
            SourceSyncResult: Counts and duration. Failures are reported in `error`, never raised.
        """
        org = Org(org)
        result = SourceSyncResult(org=org)
        start = time.perf_counter()
        logger.info(f"[{org.value}] Gym sync starting")
        try:
            fetched = await maybe_await(fetcher())
            result.fetched = len(fetched)

            valid = []
            for gym in fetched:
                try:
                    gym.validate()
                except ValidationError as e:
                    logger.warning(f"[{org.value}] Skipping malformed gym: {e}")
                    continue
                valid.append(gym)

            result.saved = self.registry.upsert_source_gyms(valid)
            stored = [self.registry.get_source_gym(gym.org, gym.external_id) for gym in valid]
            await self.match_gyms(org, stored, pool, result)
        except Exception as e:
            logger.error(f"[{org.value}] Gym sync failed: {e}")
            result.error = str(e) or type(e).__name__

        result.duration = time.perf_counter() - start
        logger.info(
            f"[{org.value}] Gym sync done in {result.duration:.2f}s: {result.fetched} fetched, "
            f"{result.saved} saved, {result.skipped} already linked, {result.processed} processed, "
            f"{result.auto_linked} auto-linked, {result.pending_created} pending, "
            f"{result.masters_created} new master gyms"
        )
        return result

    async def sync_all(self, fetchers: Dict[Org, GymFetcher]) -> SyncSummary:
        """Sync every federation concurrently; one source failing does not stop the others."""
        start = time.perf_counter()
        results = await asyncio.gather(*[self.sync_source(org, fetcher) for org, fetcher in fetchers.items()])
        summary = SyncSummary(results={result.org: result for result in results})
        summary.duration = time.perf_counter() - start
        if summary.failed_sources:
            logger.warning(f"Gym sync finished with failed sources: {[org.value for org in summary.failed_sources]}")
        return summary
