"""
app/connectors package marker.
"""

from app.connectors.locationiq import GeocodingError, GeoPoint, LocationIQClient
from app.connectors.source_fetcher import SourceFetcher

__all__ = [
    "GeocodingError",
    "GeoPoint",
    "LocationIQClient",
    "SourceFetcher",
]
