"""Impossible travel detection for a single access event."""

import logging
from typing import Optional

from travelguard.errors import DetectionError
from travelguard.geo.reader import GeoResolver
from travelguard.geo.velocity import (
    ZERO_WINDOW_POLICIES,
    ZERO_WINDOW_UNBOUNDED,
    estimate_speed,
    format_speed,
)
from travelguard.history import SCOPE_USER, SCOPES, AccessHistoryStore
from travelguard.models.events import (
    AccessEvent,
    AccessRecord,
    DetectionResult,
    GeoPoint,
    NeighborAccess,
)
from travelguard.rules.speed import DEFAULT_SPEED_THRESHOLD, SpeedThresholdRule

logger = logging.getLogger(__name__)


class TravelAnomalyDetector:
    """Compares each new access with its nearest recorded neighbours in time.

    Every call to detect() resolves the access location, stores the access,
    then scores travel from the nearest earlier access and to the nearest
    later one. The detector holds no state of its own; ordering between
    concurrent callers is whatever the history store provides.
    """

    def __init__(
        self,
        resolver: GeoResolver,
        store: AccessHistoryStore,
        speed_threshold: int = DEFAULT_SPEED_THRESHOLD,
        zero_window: str = ZERO_WINDOW_UNBOUNDED,
        scope: str = SCOPE_USER,
    ):
        """Initialize the detector.

        Args:
            resolver: Maps IP addresses to locations
            store: Access history to record into and compare against
            speed_threshold: Speeds above this (mph) are suspicious
            zero_window: Policy for accesses less than an hour apart,
                "unbounded" or "error"
            scope: "user" compares only with the same username,
                "global" compares with every account's history
        """
        if scope not in SCOPES:
            raise ValueError(f"Unknown scope: {scope!r}")
        if zero_window not in ZERO_WINDOW_POLICIES:
            raise ValueError(f"Unknown zero_window policy: {zero_window!r}")
        if isinstance(speed_threshold, bool) or not isinstance(speed_threshold, int):
            raise ValueError(f"speed_threshold must be an integer, got {speed_threshold!r}")
        self.resolver = resolver
        self.store = store
        self.rule = SpeedThresholdRule(speed_threshold)
        self.zero_window = zero_window
        self.scope = scope

    @classmethod
    def from_config(cls, config, resolver: GeoResolver, store: AccessHistoryStore) -> "TravelAnomalyDetector":
        return cls(
            resolver,
            store,
            speed_threshold=config.detection.speed_threshold,
            zero_window=config.detection.zero_window,
            scope=config.detection.scope,
        )

    def detect(self, event: AccessEvent) -> DetectionResult:
        """Record an access and score the travel it implies.

        Args:
            event: The access to evaluate

        Returns:
            DetectionResult for the access. Neighbour fields and flags are
            None when there is no earlier or later access to compare with.

        Raises:
            GeoResolutionError: The IP address could not be located.
            DuplicateRecordError: event.event_id was already recorded.
            StoreUnavailableError: The history store failed.
            DegenerateTimeWindowError: A neighbour is under an hour away
                and the zero_window policy is "error".
        """
        current_geo = self.resolver.resolve(event.ip_address)
        logger.debug(
            f"Resolved {event.ip_address} to ({current_geo.latitude}, {current_geo.longitude}) "
            f"±{current_geo.accuracy_radius}km"
        )

        record = AccessRecord.from_event(event, current_geo)
        self.store.insert(record)

        result = DetectionResult(current_geo=current_geo)
        username = event.username if self.scope == SCOPE_USER else None

        before = self.store.nearest_before(event.timestamp, username)
        if before is not None:
            result.preceding = self._score(
                before, current_geo, event.timestamp - before.timestamp, origin_is_neighbor=True
            )
            result.travel_to_current_suspicious = self.rule.evaluate(result.preceding.implied_speed)
            logger.info(
                f"Preceding access for {event.event_id}: {before.ip_address} "
                f"at {before.timestamp}, {format_speed(result.preceding.implied_speed)}"
            )
        else:
            logger.debug(f"No preceding access for {event.event_id}")

        after = self.store.nearest_after(event.timestamp, username)
        if after is not None:
            result.subsequent = self._score(
                after, current_geo, after.timestamp - event.timestamp, origin_is_neighbor=False
            )
            result.travel_from_current_suspicious = self.rule.evaluate(result.subsequent.implied_speed)
            logger.info(
                f"Subsequent access for {event.event_id}: {after.ip_address} "
                f"at {after.timestamp}, {format_speed(result.subsequent.implied_speed)}"
            )
        else:
            logger.debug(f"No subsequent access for {event.event_id}")

        if result.is_suspicious:
            logger.warning(f"Impossible travel for '{event.username}' at event {event.event_id}")

        return result

    def _score(
        self,
        neighbor: AccessRecord,
        current_geo: GeoPoint,
        elapsed_seconds: int,
        origin_is_neighbor: bool,
    ) -> NeighborAccess:
        """Estimate speed between a neighbour and the current location.

        Travel always runs from the earlier access to the later one.
        """
        if origin_is_neighbor:
            origin, destination = neighbor.geo, current_geo
        else:
            origin, destination = current_geo, neighbor.geo
        speed = estimate_speed(origin, destination, elapsed_seconds, self.zero_window)
        return NeighborAccess.from_record(neighbor, speed)


Outcome = tuple[AccessEvent, Optional[DetectionResult], Optional[DetectionError]]


def detect_all(detector: TravelAnomalyDetector, events: list[AccessEvent]) -> list[Outcome]:
    """Run detection over a batch of events in order.

    Per-event DetectionErrors are collected instead of stopping the batch.

    Returns:
        (event, result, error) triples; exactly one of result/error is set.
    """
    outcomes = []
    for event in events:
        try:
            outcomes.append((event, detector.detect(event), None))
        except DetectionError as e:
            logger.warning(f"Detection failed for {event.event_id}: {e}")
            outcomes.append((event, None, e))
    return outcomes
