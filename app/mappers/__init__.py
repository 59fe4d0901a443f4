"""
app/mappers package marker.
"""

from app.mappers.sighting_mapper import SightingMapper, parse_coordinate, parse_date

__all__ = [
    "SightingMapper",
    "parse_coordinate",
    "parse_date",
]
