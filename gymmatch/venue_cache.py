"""
Venue geocode cache.

Venues are keyed by the lowercased (venue, city) pair. A hit never calls the
geocoder. A miss calls it once and stores the answer, including "no result"
answers, which expire after FAILED_GEOCODE_TTL_SECONDS so unfetchable venues
are not looked up on every sync. Provider outages are not cached.
"""
import time
import uuid
from dataclasses import replace
from typing import Callable, List, Optional, Tuple

from loguru import logger

from gymmatch.config import FAILED_GEOCODE_TTL_SECONDS
from gymmatch.errors import GeocodingError, ValidationError
from gymmatch.models import (
    EnrichmentStats,
    GeocodeConfidence,
    ResolvedVenue,
    Tournament,
    VenueCacheEntry,
    utc_now,
)
from gymmatch.resolver import Resolution, resolve_with_cache
from gymmatch.store import GymStore


def _key_part(text: Optional[str]) -> str:
    # Escape the separator so ("a#b", "c") and ("a", "b#c") stay distinct
    return (text or "").lower().strip().replace("\\", "\\\\").replace("#", "\\#")


def venue_lookup_key(venue: str, city: str) -> str:
    return f"{_key_part(venue)}#{_key_part(city)}"


class VenueGeocodeCache:

    def __init__(
        self,
        store: GymStore,
        geocoder=None,
        failed_ttl: int = FAILED_GEOCODE_TTL_SECONDS,
        clock: Callable[[], float] = time.time,
    ):
        if geocoder is None:
            from gymmatch.clients import GeocodingClient
            geocoder = GeocodingClient()
        self.store = store
        self.geocoder = geocoder
        self.failed_ttl = failed_ttl
        self.clock = clock

    def _lookup(self, key: str) -> Optional[VenueCacheEntry]:
        entry = self.store.get_venue(key)
        if entry is None:
            return None
        if entry.expires_at is not None and entry.expires_at <= self.clock():
            logger.debug(f"Cached failed geocode for '{key}' expired, retrying")
            return None
        return entry

    async def _resolve(self, venue: str, city: str, country: Optional[str]) -> Resolution:
        venue = venue or city

        async def compute(key: str) -> VenueCacheEntry:
            now = utc_now()
            base = VenueCacheEntry(
                venue_id=None,
                lookup_key=key,
                name=venue,
                city=city,
                country=country,
                lat=None,
                lng=None,
                geocode_confidence=GeocodeConfidence.FAILED,
                created_at=now,
                updated_at=now,
            )
            try:
                result = await self.geocoder.geocode(venue, city, country)
            except GeocodingError as e:
                logger.warning(f"Geocoding '{venue}, {city}' failed: {e}")
                return base
            base.venue_id = str(uuid.uuid4())
            if result is None:
                logger.warning(f"No geocode result for '{venue}, {city}'")
                base.expires_at = self.clock() + self.failed_ttl
                return base
            base.lat, base.lng = result.lat, result.lng
            base.geocode_confidence = GeocodeConfidence(result.confidence)
            return base

        def persist(key: str, entry: VenueCacheEntry) -> None:
            # Entries without an id come from provider errors and are retried next time
            if entry.venue_id is not None:
                self.store.put_venue(entry)

        return await resolve_with_cache(
            (venue, city),
            lambda raw: venue_lookup_key(*raw),
            self._lookup,
            compute,
            persist,
        )

    async def resolve_venue(self, venue: str, city: str, country: Optional[str] = None) -> ResolvedVenue:
        """
        Coordinates for a venue, from the cache when possible.

        Args:
            venue: Venue name; falls back to the city when empty.
            city: City of the venue.
            country: Optional country passed to the geocoder.

        Returns:
            ResolvedVenue: coordinates, venue id and confidence. A venue that
            cannot be geocoded resolves to confidence 'failed' with no coordinates.
        """
        if not (city or "").strip():
            raise ValidationError("City is required to resolve a venue")
        resolution = await self._resolve(venue, city, country)
        entry: VenueCacheEntry = resolution.value
        if entry.geocode_confidence is GeocodeConfidence.FAILED:
            return ResolvedVenue(lat=None, lng=None, venue_id=None, confidence=GeocodeConfidence.FAILED)
        return ResolvedVenue(
            lat=entry.lat,
            lng=entry.lng,
            venue_id=entry.venue_id,
            confidence=entry.geocode_confidence,
        )

    async def enrich_tournaments(self, tournaments: List[Tournament]) -> Tuple[List[Tournament], EnrichmentStats]:
        """Attach coordinates to each tournament and count cache hits, geocodes and failures."""
        stats = EnrichmentStats()
        enriched = []
        for tournament in tournaments:
            resolution = await self._resolve(tournament.venue, tournament.city, tournament.country)
            entry: VenueCacheEntry = resolution.value
            failed = entry.geocode_confidence is GeocodeConfidence.FAILED

            if resolution.cached:
                stats.cached += 1
            elif failed:
                stats.failed += 1
            else:
                stats.geocoded += 1
                if entry.geocode_confidence is GeocodeConfidence.LOW:
                    stats.low_confidence += 1

            enriched.append(replace(
                tournament,
                lat=None if failed else entry.lat,
                lng=None if failed else entry.lng,
                venue_id=None if failed else entry.venue_id,
                geocode_confidence=entry.geocode_confidence,
            ))

        logger.info(
            f"Venue enrichment: {stats.cached} cached, {stats.geocoded} geocoded "
            f"({stats.low_confidence} low confidence), {stats.failed} failed"
        )
        return enriched, stats

    def override_venue(
        self, venue: str, city: str, lat: float, lng: float, country: Optional[str] = None
    ) -> VenueCacheEntry:
        """Pin a venue to reviewer-supplied coordinates. Manual overrides never expire."""
        key = venue_lookup_key(venue or city, city)
        now = utc_now()
        entry = self.store.get_venue(key) or VenueCacheEntry(
            venue_id=str(uuid.uuid4()),
            lookup_key=key,
            name=venue or city,
            city=city,
            country=country,
            lat=None,
            lng=None,
            geocode_confidence=GeocodeConfidence.HIGH,
            created_at=now,
        )
        entry.lat, entry.lng = lat, lng
        entry.geocode_confidence = GeocodeConfidence.HIGH
        entry.manual_override = True
        entry.expires_at = None
        entry.updated_at = now
        self.store.put_venue(entry)
        return entry

    def list_low_confidence_venues(self) -> List[VenueCacheEntry]:
        return [
            entry for entry in self.store.list_venues()
            if entry.geocode_confidence is GeocodeConfidence.LOW and not entry.manual_override
        ]
