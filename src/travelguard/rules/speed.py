"""Speed threshold rule for impossible travel."""

import logging

logger = logging.getLogger(__name__)

# Faster than any ground vehicle, slower than a commercial jet
DEFAULT_SPEED_THRESHOLD = 500


def is_suspicious(speed: int, threshold: int) -> bool:
    """Return True if speed strictly exceeds threshold."""
    return speed > threshold


class SpeedThresholdRule:
    """Flags travel that only an aircraft could have made."""

    def __init__(self, threshold: int = DEFAULT_SPEED_THRESHOLD):
        self.name = "speed_threshold"
        self.threshold = threshold

    def evaluate(self, speed: int) -> bool:
        suspicious = is_suspicious(speed, self.threshold)
        if suspicious:
            logger.warning(f"Implied speed {speed} mph exceeds threshold {self.threshold} mph")
        return suspicious
