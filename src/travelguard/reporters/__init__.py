"""Reporters for rendering detection results."""

from .base import Reporter
from .json import JSONReporter
from .terminal import TerminalReporter


def get_reporter(format: str) -> Reporter:
    """Get reporter instance by format name.

    Args:
        format: Reporter format ("terminal" or "json").

    Returns:
        Reporter instance for the specified format.
        Defaults to TerminalReporter if format is unknown.
    """
    reporters = {
        "terminal": TerminalReporter(),
        "json": JSONReporter(),
    }
    return reporters.get(format, TerminalReporter())


__all__ = [
    "Reporter",
    "TerminalReporter",
    "JSONReporter",
    "get_reporter",
]
