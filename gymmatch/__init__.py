"""Cross-federation gym identity resolution and venue geocoding."""
