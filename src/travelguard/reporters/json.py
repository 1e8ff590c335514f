"""JSON reporter for machine-readable output."""

import json

from travelguard.models.events import AccessEvent, DetectionResult


class JSONReporter:
    """JSON reporter for API integrations and pipelines.

    Absent neighbours and flags are written as null, never as false.
    """

    name = "json"

    def __init__(self, indent: int | None = 2):
        """Initialize JSON reporter.

        Args:
            indent: Number of spaces for JSON indentation (None for compact).
        """
        self.indent = indent

    def generate(self, event: AccessEvent, result: DetectionResult) -> str:
        data = {"event_id": event.event_id, "username": event.username, **result.to_dict()}
        return json.dumps(data, indent=self.indent)
