"""GeoLite2 database discovery and validation."""

import logging
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)

APP_DIR = Path.home() / ".travelguard"


def get_default_db_path() -> Path:
    """Get default path for the GeoLite2 City database."""
    return APP_DIR / "GeoLite2-City.mmdb"


@dataclass
class GeoDatabase:
    """Information about a GeoIP database file."""
    path: Path
    exists: bool
    valid: bool = False
    database_type: Optional[str] = None
    size_mb: Optional[float] = None
    modified: Optional[datetime] = None

    @property
    def status(self) -> str:
        """Human-readable status string."""
        if not self.exists:
            return "Not found"
        if not self.valid:
            return "Invalid"
        return "Ready"


def read_database_type(path: Path) -> Optional[str]:
    """Open a file as a MaxMind database and return its type.

    Returns:
        The metadata database_type (e.g. "GeoLite2-City"), or None if the
        file cannot be read as an MMDB database.
    """
    import geoip2.database

    try:
        with geoip2.database.Reader(str(path)) as reader:
            return reader.metadata().database_type
    except Exception as e:
        logger.warning(f"MMDB validation failed for {path}: {e}")
        return None


def get_database_info(db_path: Optional[Path] = None) -> GeoDatabase:
    """Get information about the GeoIP database.

    Only City databases are considered valid, since the detector needs
    coordinates and not just a country.

    Args:
        db_path: Path to database file. Uses default if None.

    Returns:
        GeoDatabase with current database status
    """
    path = db_path or get_default_db_path()

    if not path.exists():
        return GeoDatabase(path=path, exists=False)

    stat = path.stat()
    database_type = read_database_type(path)
    valid = database_type is not None and "City" in database_type
    if database_type is not None and not valid:
        logger.warning(f"Database type mismatch: {database_type}")

    return GeoDatabase(
        path=path,
        exists=True,
        valid=valid,
        database_type=database_type,
        size_mb=stat.st_size / (1024 * 1024),
        modified=datetime.fromtimestamp(stat.st_mtime),
    )
