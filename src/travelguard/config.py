"""Configuration management for TravelGuard.

Loads and validates TOML configuration files with dataclass-based structure.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional
import tomllib  # Python 3.11+ stdlib

from travelguard.geo.velocity import ZERO_WINDOW_POLICIES, ZERO_WINDOW_UNBOUNDED
from travelguard.history import SCOPE_USER, SCOPES
from travelguard.models.events import GeoPoint
from travelguard.rules.speed import DEFAULT_SPEED_THRESHOLD


@dataclass
class DetectionConfig:
    """Configuration for impossible travel scoring."""
    speed_threshold: int = DEFAULT_SPEED_THRESHOLD  # mph
    zero_window: str = ZERO_WINDOW_UNBOUNDED
    scope: str = SCOPE_USER


@dataclass
class GeoIPConfig:
    """Configuration for IP geolocation."""
    db_path: Optional[str] = None  # None uses ~/.travelguard/GeoLite2-City.mmdb
    static: dict[str, list] = field(default_factory=dict)

    def static_points(self) -> dict[str, GeoPoint]:
        """Convert well-formed static entries to GeoPoints."""
        points = {}
        for ip, entry in self.static.items():
            if _is_static_entry(entry):
                points[ip] = GeoPoint(float(entry[0]), float(entry[1]), int(entry[2]))
        return points


@dataclass
class HistoryConfig:
    """Configuration for the access history database."""
    db_path: Optional[str] = None  # None uses ~/.travelguard/access.db
    reset_on_start: bool = False


@dataclass
class OutputConfig:
    """Configuration for output formatting."""
    format: str = "terminal"


@dataclass
class TravelGuardConfig:
    """Main configuration container for TravelGuard."""
    detection: DetectionConfig = field(default_factory=DetectionConfig)
    geoip: GeoIPConfig = field(default_factory=GeoIPConfig)
    history: HistoryConfig = field(default_factory=HistoryConfig)
    output: OutputConfig = field(default_factory=OutputConfig)


def load_config(path: Path | str | None = None) -> TravelGuardConfig:
    """Load config from TOML file, or return defaults if not given.

    Args:
        path: Path to TOML config file. If None, returns default config.

    Returns:
        TravelGuardConfig instance with loaded or default values.

    Raises:
        FileNotFoundError: If path is provided but file doesn't exist.
        ValueError: If TOML parsing fails.
    """
    if path is None:
        return TravelGuardConfig()

    config_path = Path(path)
    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    try:
        with open(config_path, "rb") as f:
            data = tomllib.load(f)
    except tomllib.TOMLDecodeError as e:
        raise ValueError(f"Failed to parse TOML config: {e}") from e

    return _build_config(data)


def _build_config(data: dict[str, Any]) -> TravelGuardConfig:
    """Build TravelGuardConfig from parsed TOML data."""
    config = TravelGuardConfig()

    if "detection" in data:
        dt = data["detection"]
        config.detection = DetectionConfig(
            speed_threshold=dt.get("speed_threshold", DEFAULT_SPEED_THRESHOLD),
            zero_window=dt.get("zero_window", ZERO_WINDOW_UNBOUNDED),
            scope=dt.get("scope", SCOPE_USER),
        )

    if "geoip" in data:
        gi = data["geoip"]
        config.geoip = GeoIPConfig(
            db_path=gi.get("db_path"),
            static=dict(gi.get("static", {})),
        )

    if "history" in data:
        hi = data["history"]
        config.history = HistoryConfig(
            db_path=hi.get("db_path"),
            reset_on_start=hi.get("reset_on_start", False),
        )

    if "output" in data:
        config.output = OutputConfig(format=data["output"].get("format", "terminal"))

    return config


def _is_static_entry(entry: Any) -> bool:
    if not isinstance(entry, list) or len(entry) != 3:
        return False
    lat, lon, radius = entry
    if isinstance(lat, bool) or isinstance(lon, bool) or isinstance(radius, bool):
        return False
    return (
        isinstance(lat, (int, float)) and -90 <= lat <= 90
        and isinstance(lon, (int, float)) and -180 <= lon <= 180
        and isinstance(radius, int) and radius >= 0
    )


def validate_config(config: TravelGuardConfig) -> list[str]:
    """Validate config and return list of warnings/errors.

    Args:
        config: TravelGuardConfig instance to validate.

    Returns:
        List of warning/error messages. Empty list if config is valid.
    """
    warnings = []

    dt = config.detection
    if isinstance(dt.speed_threshold, bool) or not isinstance(dt.speed_threshold, int):
        warnings.append(f"detection.speed_threshold must be an integer, got {dt.speed_threshold!r}")
    elif dt.speed_threshold < 0:
        warnings.append("detection.speed_threshold must be >= 0")
    if dt.zero_window not in ZERO_WINDOW_POLICIES:
        warnings.append(
            f"detection.zero_window '{dt.zero_window}' is not valid "
            f"(use {' or '.join(repr(p) for p in ZERO_WINDOW_POLICIES)})"
        )
    if dt.scope not in SCOPES:
        warnings.append(f"detection.scope '{dt.scope}' is not valid (use 'user' or 'global')")

    for ip, entry in config.geoip.static.items():
        if not _is_static_entry(entry):
            warnings.append(f"geoip.static entry for '{ip}' must be [latitude, longitude, radius]")

    if config.output.format not in ("terminal", "json"):
        warnings.append(f"output.format '{config.output.format}' is not valid (use 'terminal' or 'json')")

    return warnings
