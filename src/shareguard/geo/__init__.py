"""Geo - IP geolocation and impossible-travel detection."""

from shareguard.geo.resolver import GeoIP2Resolver, GeoResolver, StaticGeoResolver
from shareguard.geo.detector import GeoAnomalyDetector, haversine_km, min_travel_ms

__all__ = [
    "GeoResolver",
    "GeoIP2Resolver",
    "StaticGeoResolver",
    "GeoAnomalyDetector",
    "haversine_km",
    "min_travel_ms",
]
