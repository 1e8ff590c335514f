from dataclasses import asdict, dataclass
from typing import Any, Optional


@dataclass(frozen=True)
class GeoPoint:
    latitude: float
    longitude: float
    accuracy_radius: int  # km, as reported by the geolocation provider


@dataclass
class AccessEvent:
    username: str
    timestamp: int  # unix seconds
    event_id: str
    ip_address: str

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "AccessEvent":
        """Build an event from a decoded JSON object.

        Accepts ``unix_timestamp`` and ``event_uuid`` as aliases.

        Raises:
            ValueError: If a field is missing or has the wrong type.
        """
        timestamp = data.get("timestamp", data.get("unix_timestamp"))
        event_id = data.get("event_id", data.get("event_uuid"))
        username = data.get("username")
        ip_address = data.get("ip_address")

        if not isinstance(username, str) or not username:
            raise ValueError("username is required")
        if isinstance(timestamp, bool) or not isinstance(timestamp, int):
            raise ValueError(f"timestamp must be an integer, got {timestamp!r}")
        if not isinstance(event_id, str) or not event_id:
            raise ValueError("event_id is required")
        if not isinstance(ip_address, str):
            raise ValueError("ip_address must be a string")

        return cls(
            username=username,
            timestamp=timestamp,
            event_id=event_id,
            ip_address=ip_address,
        )


@dataclass(frozen=True)
class AccessRecord:
    """An access event together with its resolved location, as stored."""
    username: str
    timestamp: int
    event_id: str
    ip_address: str
    latitude: float
    longitude: float
    accuracy_radius: int

    @classmethod
    def from_event(cls, event: AccessEvent, geo: GeoPoint) -> "AccessRecord":
        return cls(
            username=event.username,
            timestamp=event.timestamp,
            event_id=event.event_id,
            ip_address=event.ip_address,
            latitude=geo.latitude,
            longitude=geo.longitude,
            accuracy_radius=geo.accuracy_radius,
        )

    @property
    def geo(self) -> GeoPoint:
        return GeoPoint(self.latitude, self.longitude, self.accuracy_radius)


@dataclass
class NeighborAccess:
    ip_address: str
    implied_speed: int  # mph, truncated
    latitude: float
    longitude: float
    accuracy_radius: int
    timestamp: int

    @classmethod
    def from_record(cls, record: AccessRecord, implied_speed: int) -> "NeighborAccess":
        return cls(
            ip_address=record.ip_address,
            implied_speed=implied_speed,
            latitude=record.latitude,
            longitude=record.longitude,
            accuracy_radius=record.accuracy_radius,
            timestamp=record.timestamp,
        )


@dataclass
class DetectionResult:
    """Outcome of comparing one access against its time neighbours.

    The suspicion flags are None when there was nothing to compare against,
    which is different from False (compared, and the speed was plausible).
    """
    current_geo: GeoPoint
    preceding: Optional[NeighborAccess] = None
    subsequent: Optional[NeighborAccess] = None
    travel_to_current_suspicious: Optional[bool] = None
    travel_from_current_suspicious: Optional[bool] = None

    @property
    def is_suspicious(self) -> bool:
        return bool(self.travel_to_current_suspicious or self.travel_from_current_suspicious)

    def to_dict(self) -> dict:
        return {
            "current_geo": asdict(self.current_geo),
            "preceding_access": asdict(self.preceding) if self.preceding else None,
            "subsequent_access": asdict(self.subsequent) if self.subsequent else None,
            "travel_to_current_geo_suspicious": self.travel_to_current_suspicious,
            "travel_from_current_geo_suspicious": self.travel_from_current_suspicious,
        }
