"""Travel speed estimation between two geolocated accesses."""

import math

from travelguard.errors import DegenerateTimeWindowError
from travelguard.models.events import GeoPoint

# Earth's radius in miles
EARTH_RADIUS_MI = 3958.0

SECONDS_PER_HOUR = 3600

# Speeds are reported as int32; anything larger saturates here
MAX_SPEED = 2**31 - 1

ZERO_WINDOW_UNBOUNDED = "unbounded"
ZERO_WINDOW_ERROR = "error"
ZERO_WINDOW_POLICIES = (ZERO_WINDOW_UNBOUNDED, ZERO_WINDOW_ERROR)


def haversine_miles(origin: GeoPoint, destination: GeoPoint) -> float:
    """Calculate great-circle distance between two points using the Haversine formula.

    Args:
        origin: Starting point
        destination: Ending point

    Returns:
        Distance in miles
    """
    lat1 = math.radians(origin.latitude)
    lat2 = math.radians(destination.latitude)
    lon1 = math.radians(origin.longitude)
    lon2 = math.radians(destination.longitude)

    dlat = lat2 - lat1
    dlon = lon2 - lon1

    a = math.sin(dlat / 2) ** 2 + math.cos(lat1) * math.cos(lat2) * math.sin(dlon / 2) ** 2

    # Rounding can push 'a' just past 1.0 for antipodal points
    a = min(1.0, max(0.0, a))

    c = 2 * math.asin(math.sqrt(a))

    return EARTH_RADIUS_MI * c


def estimate_speed(
    origin: GeoPoint,
    destination: GeoPoint,
    elapsed_seconds: int,
    zero_window: str = ZERO_WINDOW_UNBOUNDED,
) -> int:
    """Estimate the travel speed implied by two accesses.

    Elapsed time is truncated to whole hours before dividing, and the
    quotient is truncated to an integer.

    Args:
        origin: Where the earlier access happened
        destination: Where the later access happened
        elapsed_seconds: Seconds between the two accesses
        zero_window: What to do when elapsed time is under an hour:
            "unbounded" reports MAX_SPEED (0 if the points coincide),
            "error" raises DegenerateTimeWindowError.

    Returns:
        Speed in miles per hour, capped at MAX_SPEED

    Raises:
        DegenerateTimeWindowError: Elapsed time under one hour with the
            "error" policy.
        ValueError: Unknown zero_window policy.
    """
    if zero_window not in ZERO_WINDOW_POLICIES:
        raise ValueError(f"Unknown zero_window policy: {zero_window!r}")

    distance = haversine_miles(origin, destination)
    hours = elapsed_seconds // SECONDS_PER_HOUR

    if hours == 0:
        if zero_window == ZERO_WINDOW_ERROR:
            raise DegenerateTimeWindowError(elapsed_seconds)
        if distance == 0.0:
            return 0
        return MAX_SPEED

    speed = int(distance / hours)
    return max(-MAX_SPEED, min(MAX_SPEED, speed))


def format_speed(speed: int) -> str:
    """Format a speed for human-readable output."""
    if speed >= MAX_SPEED:
        return "instantaneous"
    return f"{speed} mph"
