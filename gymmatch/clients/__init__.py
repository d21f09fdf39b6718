"""Client singletons for external API interactions."""
from gymmatch.clients.geocoding_client import GeocodingClient

__all__ = ["GeocodingClient"]
