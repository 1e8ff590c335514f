"""Error taxonomy for travel anomaly detection.

Every failure that aborts a detection request derives from DetectionError,
so a transport layer can catch one type and still tell the kinds apart.
"""


class DetectionError(Exception):
    """Base class for errors that abort a detection request."""

    kind = "detection_error"


class GeoResolutionError(DetectionError):
    """The IP address could not be parsed or has no location data."""

    kind = "geo_resolution_error"


class DuplicateRecordError(DetectionError):
    """An access record with the same event_id is already stored."""

    kind = "duplicate_record"

    def __init__(self, event_id: str):
        super().__init__(f"Access record already exists for event_id '{event_id}'")
        self.event_id = event_id


class StoreUnavailableError(DetectionError):
    """The access history store cannot be read or written."""

    kind = "store_unavailable"


class DegenerateTimeWindowError(DetectionError):
    """Two accesses fall within the same hour, so no speed can be computed."""

    kind = "degenerate_time_window"

    def __init__(self, elapsed_seconds: int):
        super().__init__(
            f"Elapsed time of {elapsed_seconds}s is under one hour; "
            "cannot compute a travel speed"
        )
        self.elapsed_seconds = elapsed_seconds
