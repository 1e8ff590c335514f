"""Reporter protocol for detection results."""

from typing import Protocol

from travelguard.models.events import AccessEvent, DetectionResult


class Reporter(Protocol):
    """Protocol for detection result renderers."""

    name: str

    def generate(self, event: AccessEvent, result: DetectionResult) -> str:
        """Render the result of detecting one access event.

        Args:
            event: The access that was evaluated.
            result: Its DetectionResult.

        Returns:
            Formatted output as a string.
        """
        ...
