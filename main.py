import os
import sys
import asyncio
from functools import partial
from loguru import logger

from gymmatch.config import (
    IBJJF_GYMS_CSV,
    JJWL_GYMS_CSV,
    TOURNAMENTS_CSV,
    OUTPUT_DIR,
    LOG_LEVEL,
    MatchingConfig,
)
from gymmatch.models import Org, SyncSummary
from gymmatch.store import InMemoryGymStore
from gymmatch.registry import MasterGymRegistry
from gymmatch.sync import GymSyncOrchestrator
from gymmatch.venue_cache import VenueGeocodeCache
from gymmatch.clients import GeocodingClient
from gymmatch.io import (
    load_source_gyms_from_csv,
    load_tournaments_from_csv,
    write_master_gyms_csv,
    write_source_gyms_csv,
    write_pending_matches_csv,
    write_tournaments_csv,
)


def configure_logging(level: str = LOG_LEVEL):
    """Replace loguru's default sink with a compact stderr sink."""
    logger.remove()  # Remove default handler
    logger.add(sys.stderr, level=level, format="<green>{time:HH:mm:ss}</green> | <level>{level: <7}</level> | <level>{message}</level>")


def log_summary(summary: SyncSummary):
    for org, result in summary.results.items():
        if result.error:
            logger.error(f"{org.value}: failed after {result.duration:.2f}s: {result.error}")
            continue
        logger.info(
            f"{org.value}: fetched={result.fetched} saved={result.saved} skipped={result.skipped} "
            f"auto_linked={result.auto_linked} pending={result.pending_created} "
            f"created={result.masters_created} duration={result.duration:.2f}s"
        )
    logger.info(f"Gym sync finished in {summary.duration:.2f}s")


def build_fetchers(ibjjf_csv: str, jjwl_csv: str):
    """Per-federation fetchers. CSV parsing runs in worker threads so both sources load concurrently."""
    return {
        Org.IBJJF: partial(asyncio.to_thread, load_source_gyms_from_csv, ibjjf_csv, Org.IBJJF),
        Org.JJWL: partial(asyncio.to_thread, load_source_gyms_from_csv, jjwl_csv, Org.JJWL),
    }


def write_gym_outputs(orchestrator: GymSyncOrchestrator, output_dir: str):
    registry = orchestrator.registry
    write_master_gyms_csv(registry.list_master_gyms(), os.path.join(output_dir, "master_gyms.csv"))
    write_source_gyms_csv(registry.list_source_gyms(), os.path.join(output_dir, "source_gyms.csv"))
    write_pending_matches_csv(orchestrator.review.list_pending_matches(limit=None), os.path.join(output_dir, "pending_matches.csv"))


async def enrich_venues(store: InMemoryGymStore):
    """Geocode tournament venues through the cache and write the enriched tournaments."""
    if not os.path.exists(TOURNAMENTS_CSV):
        logger.info(f"No tournament file at {TOURNAMENTS_CSV}, skipping venue enrichment")
        return
    tournaments = load_tournaments_from_csv(TOURNAMENTS_CSV)
    geocoder = GeocodingClient()
    try:
        venue_cache = VenueGeocodeCache(store, geocoder)
        enriched, _ = await venue_cache.enrich_tournaments(tournaments)
        write_tournaments_csv(enriched, os.path.join(OUTPUT_DIR, "tournaments_geocoded.csv"))
    finally:
        # Cleanup: close the geocoder session to prevent unclosed connector warnings
        await geocoder.close()


async def main():
    """
    Run one batch sync.

    - Loads each federation's gym export (a missing file fails only that source).
    - Syncs both federations concurrently into the master gym registry.
    - Writes master gyms, source gym links and pending review items to OUTPUT_DIR.
    - Geocodes tournament venues through the venue cache.
    """
    configure_logging()

    store = InMemoryGymStore()
    registry = MasterGymRegistry(store)
    orchestrator = GymSyncOrchestrator(registry, config=MatchingConfig.from_env())

    summary = await orchestrator.sync_all(build_fetchers(IBJJF_GYMS_CSV, JJWL_GYMS_CSV))
    log_summary(summary)
    write_gym_outputs(orchestrator, OUTPUT_DIR)

    await enrich_venues(store)

    return 1 if summary.failed_sources else 0


if __name__ == "__main__":
    sys.exit(asyncio.run(main()))
