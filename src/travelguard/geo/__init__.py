"""IP geolocation and travel speed estimation."""

from .database import GeoDatabase, get_database_info, get_default_db_path
from .reader import GeoIPReader, GeoResolver, StaticGeoResolver
from .velocity import (
    MAX_SPEED,
    ZERO_WINDOW_ERROR,
    ZERO_WINDOW_POLICIES,
    ZERO_WINDOW_UNBOUNDED,
    estimate_speed,
    format_speed,
    haversine_miles,
)

__all__ = [
    "GeoResolver",
    "GeoIPReader",
    "StaticGeoResolver",
    "GeoDatabase",
    "get_default_db_path",
    "get_database_info",
    "MAX_SPEED",
    "ZERO_WINDOW_ERROR",
    "ZERO_WINDOW_POLICIES",
    "ZERO_WINDOW_UNBOUNDED",
    "haversine_miles",
    "estimate_speed",
    "format_speed",
]
