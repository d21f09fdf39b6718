"""
Singleton Google Geocoding client with rate limiting using aiolimiter.
"""
import asyncio
from typing import Any, Dict, Optional

from aiohttp import ClientError, ClientSession, ClientTimeout
from aiolimiter import AsyncLimiter
from loguru import logger

from gymmatch.config import CONCURRENCY, GEOCODE_URL, GOOGLE_MAPS_API_KEY, HTTP_TIMEOUT_SECONDS
from gymmatch.errors import GeocodingError
from gymmatch.models import GeocodeConfidence, GeocodeResult

# Location types precise enough to trust without review
HIGH_CONFIDENCE_LOCATION_TYPES = {"ROOFTOP", "RANGE_INTERPOLATED"}


def classify_location_type(location_type: Optional[str]) -> GeocodeConfidence:
    """Rooftop/interpolated results are high confidence; approximate/geometric-center are low."""
    if location_type in HIGH_CONFIDENCE_LOCATION_TYPES:
        return GeocodeConfidence.HIGH
    return GeocodeConfidence.LOW


class GeocodingClient:
    """
    Singleton client for the Google Geocoding API.
    Uses AsyncLimiter to stay under the vendor quota.
    """
    _instance = None
    _initialized = False

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __init__(self):
        if not GeocodingClient._initialized:
            self.api_key = GOOGLE_MAPS_API_KEY
            self.base_url = GEOCODE_URL
            # Token bucket: CONCURRENCY requests per second
            self.rate_limiter = AsyncLimiter(max_rate=CONCURRENCY, time_period=1.0)
            self._session: Optional[ClientSession] = None
            GeocodingClient._initialized = True

    async def _get_session(self) -> ClientSession:
        """Get or create the aiohttp session."""
        if self._session is None or self._session.closed:
            self._session = ClientSession(timeout=ClientTimeout(total=HTTP_TIMEOUT_SECONDS))
        return self._session

    async def _get_json(self, params: Dict[str, str]) -> Dict[str, Any]:
        async with self.rate_limiter:
            session = await self._get_session()
            try:
                async with session.get(self.base_url, params=params) as resp:
                    if resp.status != 200:
                        raise GeocodingError(f"Geocoding API returned HTTP {resp.status}")
                    return await resp.json()
            except (ClientError, asyncio.TimeoutError) as e:
                raise GeocodingError(f"Geocoding request failed: {e}") from e
            except ValueError as e:
                raise GeocodingError(f"Geocoding API returned an unreadable body: {e}") from e

    async def geocode(self, venue: str, city: str, country: Optional[str] = None) -> Optional[GeocodeResult]:
        """
        Geocode a venue.

        Args:
            venue: Venue name, or the city when the venue is unknown.
            city: City the venue is in.
            country: Optional country to disambiguate.

        Returns:
            GeocodeResult for the first result, or None when the provider has no result.

        Raises:
            GeocodingError: Missing API key, transport failure, provider error status
                or a response without a usable location.
        """
        if not self.api_key:
            raise GeocodingError("GOOGLE_MAPS_API_KEY is not set")

        address = ", ".join(part for part in (venue, city, country) if part)
        data = await self._get_json({"address": address, "key": self.api_key})

        if not isinstance(data, dict):
            raise GeocodingError(f"Geocoding API returned an unexpected payload for '{address}'")
        status = data.get("status")
        if status == "ZERO_RESULTS" or (status == "OK" and not data.get("results")):
            logger.debug(f"No geocode result for '{address}'")
            return None
        if status != "OK":
            raise GeocodingError(f"Geocoding API error {status}: {data.get('error_message', 'no details')}")

        result = data["results"][0]
        geometry = result.get("geometry") or {}
        location = geometry.get("location") or {}
        try:
            lat, lng = float(location["lat"]), float(location["lng"])
        except (KeyError, TypeError, ValueError):
            raise GeocodingError(f"Geocoding result for '{address}' has no usable location") from None
        return GeocodeResult(
            lat=lat,
            lng=lng,
            confidence=classify_location_type(geometry.get("location_type")),
            formatted_address=result.get("formatted_address", ""),
        )

    async def close(self):
        """Close the aiohttp session."""
        if self._session and not self._session.closed:
            await self._session.close()
            self._session = None
