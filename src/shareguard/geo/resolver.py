"""Geo Resolver - maps an IP address to a coarse location.

Resolvers return None when an address is not in their database and raise
DependencyUnavailable when the lookup itself cannot be performed. Callers
treat both as "location unknown".
"""

import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Dict, Optional, Union

import geoip2.database
import geoip2.errors

from shareguard.common.exceptions import DependencyUnavailable
from shareguard.data.schemas import GeoLocation

logger = logging.getLogger(__name__)


class GeoResolver(ABC):
    """Abstract base class for IP geolocation."""

    @abstractmethod
    def resolve(self, ip_address: str) -> Optional[GeoLocation]:
        """Resolve an IP address.

        Args:
            ip_address: IPv4 or IPv6 address

        Returns:
            GeoLocation without captured_at, or None if the address is unknown

        Raises:
            DependencyUnavailable: If the lookup backend fails
        """
        pass


class GeoIP2Resolver(GeoResolver):
    """Resolver backed by a MaxMind GeoIP2/GeoLite2 City database."""

    def __init__(self, database_path: Union[str, Path]):
        """Open the database.

        Args:
            database_path: Path to a GeoLite2-City.mmdb style file
        """
        self.database_path = Path(database_path)
        try:
            self._reader = geoip2.database.Reader(str(self.database_path))
        except (OSError, ValueError) as e:
            raise DependencyUnavailable(
                f"Could not open GeoIP database {self.database_path}: {e}",
                dependency="geoip",
            ) from e
        logger.info(f"Loaded GeoIP database from {self.database_path}")

    def resolve(self, ip_address: str) -> Optional[GeoLocation]:
        try:
            response = self._reader.city(ip_address)
        except geoip2.errors.AddressNotFoundError:
            return None
        except ValueError:
            # Not a valid IP address
            return None
        except geoip2.errors.GeoIP2Error as e:
            raise DependencyUnavailable(
                f"GeoIP lookup failed for {ip_address}: {e}",
                dependency="geoip",
            ) from e

        latitude = response.location.latitude
        longitude = response.location.longitude
        country = response.country.iso_code
        if latitude is None or longitude is None or not country:
            return None

        return GeoLocation(
            country=country,
            city=response.city.name,
            latitude=latitude,
            longitude=longitude,
        )

    def close(self) -> None:
        self._reader.close()


class StaticGeoResolver(GeoResolver):
    """Resolver over a fixed IP -> location table.

    Used in development when no GeoIP database is configured, and in tests.
    """

    def __init__(self, table: Optional[Dict[str, GeoLocation]] = None):
        self._table: Dict[str, GeoLocation] = dict(table or {})

    def add(self, ip_address: str, location: GeoLocation) -> None:
        self._table[ip_address] = location

    def resolve(self, ip_address: str) -> Optional[GeoLocation]:
        location = self._table.get(ip_address)
        if location is None:
            return None
        return location.model_copy()
