"""Detection rules module."""

from travelguard.rules.speed import DEFAULT_SPEED_THRESHOLD, SpeedThresholdRule, is_suspicious

__all__ = [
    "DEFAULT_SPEED_THRESHOLD",
    "SpeedThresholdRule",
    "is_suspicious",
]
