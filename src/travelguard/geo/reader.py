"""IP geolocation resolvers."""

import logging
from pathlib import Path
from typing import Optional, Protocol

from travelguard.errors import GeoResolutionError
from travelguard.models.events import GeoPoint

logger = logging.getLogger(__name__)


class GeoResolver(Protocol):
    """Anything that maps an IP address string to a GeoPoint."""

    def resolve(self, ip: str) -> GeoPoint:
        """Resolve an IP address.

        Raises:
            GeoResolutionError: If the address is unparsable or unknown.
        """
        ...


class StaticGeoResolver:
    """Resolver backed by a fixed table of addresses.

    Used for address overrides (e.g. private ranges a GeoLite2 database
    knows nothing about) and for running without a MaxMind database.
    """

    def __init__(self, table: Optional[dict[str, GeoPoint]] = None):
        self._table = dict(table or {})

    def __contains__(self, ip: str) -> bool:
        return ip in self._table

    def __len__(self) -> int:
        return len(self._table)

    def resolve(self, ip: str) -> GeoPoint:
        try:
            return self._table[ip]
        except KeyError:
            raise GeoResolutionError(f"No location data for address '{ip}'") from None


class GeoIPReader:
    """Resolver for a MaxMind GeoLite2 City database."""

    def __init__(self, db_path: Path, static: Optional[StaticGeoResolver] = None):
        """Initialize reader with database path.

        Args:
            db_path: Path to GeoLite2-City.mmdb file
            static: Optional fixed addresses consulted before the database

        Raises:
            FileNotFoundError: If database file doesn't exist
        """
        if not db_path.exists():
            raise FileNotFoundError(f"GeoIP database not found: {db_path}")

        import geoip2.database
        self._reader = geoip2.database.Reader(str(db_path))
        self._db_path = db_path
        self._static = static or StaticGeoResolver()
        self._cache: dict[str, GeoPoint] = {}

    def resolve(self, ip: str) -> GeoPoint:
        """Look up the location of an IP address.

        Failed lookups are not cached; each one raises again.

        Args:
            ip: IPv4 or IPv6 address string

        Returns:
            GeoPoint with coordinates and accuracy radius

        Raises:
            GeoResolutionError: If the address is invalid, not in the
                database, or has no coordinates.
        """
        if ip in self._static:
            return self._static.resolve(ip)

        if ip in self._cache:
            return self._cache[ip]

        import geoip2.errors

        try:
            response = self._reader.city(ip)
        except geoip2.errors.AddressNotFoundError as e:
            logger.debug(f"GeoIP lookup found nothing for {ip}: {e}")
            raise GeoResolutionError(f"No location data for address '{ip}'") from e
        except ValueError as e:
            logger.debug(f"GeoIP lookup rejected {ip!r}: {e}")
            raise GeoResolutionError(f"Invalid IP address '{ip}': {e}") from e

        location = response.location
        if location.latitude is None or location.longitude is None:
            raise GeoResolutionError(f"No coordinates recorded for address '{ip}'")

        point = GeoPoint(
            latitude=float(location.latitude),
            longitude=float(location.longitude),
            accuracy_radius=int(location.accuracy_radius or 0),
        )
        self._cache[ip] = point
        return point

    def close(self):
        """Close the database reader."""
        self._reader.close()

    def __enter__(self):
        return self

    def __exit__(self, *args):
        self.close()
