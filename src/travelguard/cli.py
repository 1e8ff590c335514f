"""CLI interface for TravelGuard."""

import json
import logging
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from travelguard.config import TravelGuardConfig, load_config, validate_config
from travelguard.detector import TravelAnomalyDetector, detect_all
from travelguard.errors import DetectionError
from travelguard.geo import (
    GeoIPReader,
    GeoResolver,
    StaticGeoResolver,
    format_speed,
    get_database_info,
    get_default_db_path,
)
from travelguard.history import SQLiteAccessHistory
from travelguard.models.events import AccessEvent
from travelguard.reporters import get_reporter
from travelguard.reporters.terminal import format_timestamp

app = typer.Typer(
    name="travelguard",
    help="Impossible travel detection for account access events",
    add_completion=False,
)
console = Console()

DEFAULT_CONFIG = """# TravelGuard Configuration

[detection]
# Speeds above this many miles per hour are flagged
speed_threshold = 500
# Accesses under an hour apart: "unbounded" (always flagged) or "error"
zero_window = "unbounded"
# "user" compares accesses of the same account, "global" compares all accounts
scope = "user"

[geoip]
# db_path = "~/.travelguard/GeoLite2-City.mmdb"

[geoip.static]
# "10.0.0.1" = [34.0549, -118.2578, 200]

[history]
# db_path = "~/.travelguard/access.db"
reset_on_start = false

[output]
format = "terminal"
"""


def setup_logging(verbose: bool = False) -> None:
    level = logging.DEBUG if verbose else logging.WARNING
    logging.basicConfig(
        level=level,
        format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


def _load_config(config_path: Optional[Path]) -> TravelGuardConfig:
    """Load and validate configuration, exiting on errors."""
    try:
        config = load_config(config_path)
    except (FileNotFoundError, ValueError) as e:
        console.print(f"[red]Error: {escape(str(e))}[/red]")
        raise typer.Exit(1)

    warnings = validate_config(config)
    if warnings:
        for warning in warnings:
            console.print(f"[red]Config error: {escape(warning)}[/red]")
        raise typer.Exit(1)
    return config


def _build_resolver(config: TravelGuardConfig, geoip_db: Optional[Path]) -> GeoResolver:
    """Build the resolver: static entries first, then the GeoLite2 database.

    Without a database on disk, static entries alone are used.
    """
    static = StaticGeoResolver(config.geoip.static_points())
    if geoip_db is not None:
        db_path = geoip_db
    elif config.geoip.db_path:
        db_path = Path(config.geoip.db_path).expanduser()
    else:
        db_path = get_default_db_path()

    if db_path.exists():
        return GeoIPReader(db_path, static=static)
    if len(static) == 0:
        raise FileNotFoundError(
            f"GeoIP database not found: {db_path}. "
            "Download GeoLite2-City.mmdb or configure [geoip.static] entries."
        )
    return static


def _open_history(
    config: TravelGuardConfig,
    history_db: Optional[str],
    reset: bool = False,
    apply_reset_on_start: bool = False,
) -> SQLiteAccessHistory:
    """Open the access history.

    history.reset_on_start only applies when apply_reset_on_start is set,
    so read-only commands never clear stored accesses.
    """
    db_path = history_db or config.history.db_path
    if db_path and db_path != ":memory:":
        db_path = str(Path(db_path).expanduser())
    if apply_reset_on_start and config.history.reset_on_start:
        reset = True
    return SQLiteAccessHistory(db_path, reset=reset)


def _build_detector(
    config_path: Optional[Path],
    geoip_db: Optional[Path],
    history_db: Optional[str],
    reset: bool,
) -> tuple[TravelAnomalyDetector, SQLiteAccessHistory, TravelGuardConfig]:
    config = _load_config(config_path)
    try:
        resolver = _build_resolver(config, geoip_db)
    except (FileNotFoundError, ValueError, DetectionError) as e:
        console.print(f"[red]Error: {escape(str(e))}[/red]")
        raise typer.Exit(1)

    try:
        store = _open_history(config, history_db, reset, apply_reset_on_start=True)
    except (ValueError, DetectionError) as e:
        if isinstance(resolver, GeoIPReader):
            resolver.close()
        console.print(f"[red]Error: {escape(str(e))}[/red]")
        raise typer.Exit(1)
    return TravelAnomalyDetector.from_config(config, resolver, store), store, config


def _close(detector: TravelAnomalyDetector, store: SQLiteAccessHistory) -> None:
    store.close()
    if isinstance(detector.resolver, GeoIPReader):
        detector.resolver.close()


@app.command()
def detect(
    username: str = typer.Option(..., "--username", "-u", help="Account name"),
    timestamp: int = typer.Option(..., "--timestamp", "-t", help="Unix timestamp of the access"),
    event_id: str = typer.Option(..., "--event-id", "-e", help="Unique event identifier"),
    ip_address: str = typer.Option(..., "--ip", help="Source IP address"),
    config_path: Optional[Path] = typer.Option(None, "--config", "-c", help="TOML config file"),
    geoip_db: Optional[Path] = typer.Option(None, "--geoip-db", help="GeoLite2-City.mmdb path"),
    history_db: Optional[str] = typer.Option(None, "--history-db", help="Access history database path"),
    format: Optional[str] = typer.Option(None, "--format", help="Output format: terminal, json"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
):
    """Record one access event and check it for impossible travel."""
    setup_logging(verbose)
    detector, store, config = _build_detector(config_path, geoip_db, history_db, reset=False)
    event = AccessEvent(username=username, timestamp=timestamp, event_id=event_id, ip_address=ip_address)

    try:
        result = detector.detect(event)
    except DetectionError as e:
        console.print(f"[red]Error ({e.kind}): {escape(str(e))}[/red]")
        raise typer.Exit(1)
    finally:
        _close(detector, store)

    output_format = format or config.output.format
    if output_format == "json":
        print(get_reporter("json").generate(event, result))
    else:
        get_reporter("terminal").render(event, result, console)


def _read_events(path: Path) -> tuple[list[AccessEvent], list[str]]:
    """Read JSON Lines access events, collecting per-line errors."""
    events = []
    errors = []
    for line_no, line in enumerate(path.read_text(encoding="utf-8").splitlines(), start=1):
        line = line.strip()
        if not line:
            continue
        try:
            events.append(AccessEvent.from_dict(json.loads(line)))
        except (json.JSONDecodeError, ValueError, AttributeError) as e:
            errors.append(f"line {line_no}: {e}")
    return events, errors


@app.command()
def replay(
    file_path: Path = typer.Argument(..., help="JSON Lines file of access events"),
    config_path: Optional[Path] = typer.Option(None, "--config", "-c", help="TOML config file"),
    geoip_db: Optional[Path] = typer.Option(None, "--geoip-db", help="GeoLite2-City.mmdb path"),
    history_db: Optional[str] = typer.Option(None, "--history-db", help="Access history database path"),
    reset: bool = typer.Option(False, "--reset", help="Clear access history before replaying"),
    format: Optional[str] = typer.Option(None, "--format", help="Output format: terminal, json"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
):
    """Run detection over every event in a JSON Lines file, in file order."""
    setup_logging(verbose)
    if not file_path.exists():
        console.print(f"[red]Error: File not found: {file_path}[/red]")
        raise typer.Exit(1)

    events, parse_errors = _read_events(file_path)
    detector, store, config = _build_detector(config_path, geoip_db, history_db, reset)
    try:
        outcomes = detect_all(detector, events)
    finally:
        _close(detector, store)

    failed = [(event, error) for event, _, error in outcomes if error is not None]
    flagged = [(event, result) for event, result, _ in outcomes if result is not None and result.is_suspicious]

    output_format = format or config.output.format
    if output_format == "json":
        output = {
            "total_events": len(events),
            "parse_errors": parse_errors,
            "results": [
                {"event_id": event.event_id, "username": event.username, **result.to_dict()}
                for event, result, _ in outcomes if result is not None
            ],
            "errors": [
                {"event_id": event.event_id, "kind": error.kind, "message": str(error)}
                for event, error in failed
            ],
        }
        print(json.dumps(output, indent=2))
    else:
        _display_replay_summary(len(events), flagged, failed, parse_errors)

    if failed or parse_errors:
        raise typer.Exit(1)


def _display_replay_summary(total, flagged, failed, parse_errors):
    summary = Text()
    summary.append("Events: ", style="bold")
    summary.append(f"{total}\n", style="cyan")
    summary.append("Suspicious: ", style="bold")
    summary.append(f"{len(flagged)}\n", style="red" if flagged else "green")
    summary.append("Failed: ", style="bold")
    summary.append(f"{len(failed)}\n", style="red" if failed else "green")
    summary.append("Unreadable lines: ", style="bold")
    summary.append(f"{len(parse_errors)}", style="yellow" if parse_errors else "green")
    console.print(Panel(summary, title="Replay", border_style="blue"))

    if flagged:
        table = Table(title="Impossible Travel", show_lines=False)
        table.add_column("Event", style="cyan", no_wrap=True)
        table.add_column("User", style="green")
        table.add_column("IP", style="yellow")
        table.add_column("Time", style="white")
        table.add_column("From previous", justify="right")
        table.add_column("To next", justify="right")
        for event, result in flagged:
            table.add_row(
                event.event_id,
                event.username,
                event.ip_address,
                format_timestamp(event.timestamp),
                format_speed(result.preceding.implied_speed) if result.preceding else "-",
                format_speed(result.subsequent.implied_speed) if result.subsequent else "-",
            )
        console.print(table)

    for event, error in failed:
        console.print(f"[red]{event.event_id}: {error.kind}: {escape(str(error))}[/red]")
    for error in parse_errors[:10]:
        console.print(f"[yellow]{escape(error)}[/yellow]")


@app.command()
def history(
    config_path: Optional[Path] = typer.Option(None, "--config", "-c", help="TOML config file"),
    history_db: Optional[str] = typer.Option(None, "--history-db", help="Access history database path"),
    username: Optional[str] = typer.Option(None, "--username", "-u", help="Only show this account"),
    limit: int = typer.Option(20, "--limit", help="Number of records to show"),
):
    """Show the most recent recorded accesses."""
    config = _load_config(config_path)
    try:
        with _open_history(config, history_db) as store:
            records = store.recent(limit=limit, username=username)
            total = store.count()
    except (ValueError, DetectionError) as e:
        console.print(f"[red]Error: {escape(str(e))}[/red]")
        raise typer.Exit(1)

    if not records:
        console.print("[yellow]No accesses recorded.[/yellow]")
        return

    table = Table(title=f"Recent Accesses ({len(records)} of {total})", show_lines=False)
    table.add_column("Time", style="cyan", no_wrap=True)
    table.add_column("User", style="green")
    table.add_column("IP", style="yellow")
    table.add_column("Location", style="blue")
    table.add_column("Event", style="dim")
    for record in records:
        table.add_row(
            format_timestamp(record.timestamp),
            record.username,
            record.ip_address,
            f"{record.latitude:.4f}, {record.longitude:.4f} ±{record.accuracy_radius}km",
            record.event_id,
        )
    console.print(table)


@app.command()
def geoip(
    db_path: Optional[Path] = typer.Option(None, "--db", help="GeoLite2-City.mmdb path"),
):
    """Show GeoIP database status."""
    info = get_database_info(db_path)

    status = Text()
    status.append("Path: ", style="bold")
    status.append(f"{info.path}\n")
    status.append("Status: ", style="bold")
    status.append(info.status, style="green" if info.status == "Ready" else "red")
    if info.exists:
        status.append("\nType: ", style="bold")
        status.append(str(info.database_type))
        status.append("\nSize: ", style="bold")
        status.append(f"{info.size_mb:.1f} MB")
        status.append("\nModified: ", style="bold")
        status.append(info.modified.strftime("%Y-%m-%d %H:%M:%S"))
    console.print(Panel(status, title="GeoIP Database", border_style="blue"))

    if info.status != "Ready":
        raise typer.Exit(1)


@app.command()
def init(
    output: str = typer.Option("travelguard.toml", "--output", help="Output config file path"),
    force: bool = typer.Option(False, "--force", help="Force overwrite existing file"),
):
    """Initialize a default configuration file."""
    output_path = Path(output)

    if output_path.exists() and not force:
        console.print(f"[yellow]Config file already exists: {output}[/yellow]")
        console.print("[yellow]Use --force to overwrite[/yellow]")
        raise typer.Exit(1)

    output_path.write_text(DEFAULT_CONFIG, encoding="utf-8")
    console.print(f"[green]Created configuration file: {output}[/green]")
    console.print("\n[cyan]Next steps:[/cyan]")
    console.print(f"  1. Edit {output} to set the speed threshold and database paths")
    console.print("  2. Run 'travelguard geoip' to check the GeoLite2 database")
    console.print(f"  3. Run 'travelguard replay events.jsonl --config {output}'")


@app.callback()
def main():
    """Impossible travel detection for account access events."""
    pass


if __name__ == "__main__":
    app()
