"""Terminal reporter using Rich for console output."""

from datetime import datetime, timezone
from typing import Optional

from rich.console import Console
from rich.table import Table

from travelguard.geo.velocity import format_speed
from travelguard.models.events import AccessEvent, DetectionResult, NeighborAccess


def format_timestamp(timestamp: int) -> str:
    """Format a unix timestamp as UTC."""
    return datetime.fromtimestamp(timestamp, tz=timezone.utc).strftime("%Y-%m-%d %H:%M:%S UTC")


def format_flag(flag: Optional[bool]) -> str:
    if flag is None:
        return "[dim]n/a[/dim]"
    if flag:
        return "[bold red]SUSPICIOUS[/bold red]"
    return "[green]ok[/green]"


class TerminalReporter:
    """Terminal reporter with Rich formatting."""

    name = "terminal"

    def __init__(self, width: int = 120):
        self.width = width

    def generate(self, event: AccessEvent, result: DetectionResult) -> str:
        console = Console(record=True, width=self.width)
        self.render(event, result, console)
        return console.export_text()

    def render(self, event: AccessEvent, result: DetectionResult, console: Console) -> None:
        geo = result.current_geo
        console.print(
            f"[bold]{event.username}[/bold] from [yellow]{event.ip_address}[/yellow] "
            f"at {format_timestamp(event.timestamp)} "
            f"({geo.latitude:.4f}, {geo.longitude:.4f} ±{geo.accuracy_radius}km)"
        )

        table = Table(title=f"Event {event.event_id}", show_lines=False)
        table.add_column("Direction", style="cyan", no_wrap=True)
        table.add_column("IP", style="yellow")
        table.add_column("Time", style="white")
        table.add_column("Location", style="blue")
        table.add_column("Speed", justify="right")
        table.add_column("Verdict")

        self._add_row(table, "preceding", result.preceding, result.travel_to_current_suspicious)
        self._add_row(table, "subsequent", result.subsequent, result.travel_from_current_suspicious)
        console.print(table)

        if result.is_suspicious:
            console.print("[bold red]Impossible travel detected[/bold red]")
        else:
            console.print("[green]No impossible travel detected[/green]")

    def _add_row(
        self,
        table: Table,
        direction: str,
        neighbor: Optional[NeighborAccess],
        flag: Optional[bool],
    ) -> None:
        if neighbor is None:
            table.add_row(direction, "-", "-", "-", "-", format_flag(None))
            return
        table.add_row(
            direction,
            neighbor.ip_address,
            format_timestamp(neighbor.timestamp),
            f"{neighbor.latitude:.4f}, {neighbor.longitude:.4f}",
            format_speed(neighbor.implied_speed),
            format_flag(flag),
        )
