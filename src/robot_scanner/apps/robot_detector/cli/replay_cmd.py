"""CLI command for replaying recorded ticks through the detector.

Run the same detection engine over a CSV of historical ticks, using tick time
as the clock, and print the detections plus a summary of robots still active
at the end of the file.
"""

import asyncio
from pathlib import Path
from typing import Annotated

import typer

from robot_scanner.apps.robot_detector.cli._helpers import (
    build_detector_config,
    build_sink,
    configure_logging,
    load_tickers,
    parse_instrument_ids,
)
from robot_scanner.apps.robot_detector.csv_feed import CsvTickFeed
from robot_scanner.apps.robot_detector.engine import DetectionEngine
from robot_scanner.apps.robot_detector.exceptions import InstrumentDirectoryError
from robot_scanner.core.timestamps import parse_timestamp

_MS_PER_SECOND = 1000


def replay(
    csv_path: Annotated[Path, typer.Argument(help="CSV with instrument_id,timestamp,quantity")],
    instruments: Annotated[
        str, typer.Option(help="Comma-separated instrument ids to keep (default: all)")
    ] = "",
    start: Annotated[
        str | None, typer.Option(help="Skip ticks before this date or Unix timestamp")
    ] = None,
    end: Annotated[
        str | None, typer.Option(help="Skip ticks after this date or Unix timestamp")
    ] = None,
    min_lot: Annotated[int | None, typer.Option(help="Drop ticks below this size")] = None,
    lot_tolerance: Annotated[
        int | None, typer.Option(help="Max lot difference within a group")
    ] = None,
    interval_tolerance: Annotated[
        float | None, typer.Option(help="Max interval coefficient of variation")
    ] = None,
    output: Annotated[
        Path | None, typer.Option(help="Append detections to this JSON-lines file")
    ] = None,
    verbose: Annotated[  # noqa: FBT002
        bool, typer.Option("--verbose", "-v", help="Enable debug logging")
    ] = False,
) -> None:
    """Replay a CSV of recorded ticks and report detected robots."""
    configure_logging(verbose=verbose)
    if not csv_path.exists():
        typer.echo(f"Error: file not found: {csv_path}", err=True)
        raise typer.Exit(code=1)

    try:
        start_ms = parse_timestamp(start) * _MS_PER_SECOND if start else None
        end_ms = parse_timestamp(end) * _MS_PER_SECOND if end else None
    except ValueError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from exc

    config = build_detector_config(
        min_lot=min_lot,
        lot_tolerance=lot_tolerance,
        interval_tolerance=interval_tolerance,
    )

    try:
        tickers = asyncio.run(load_tickers(None, None))
    except InstrumentDirectoryError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from exc

    feed = CsvTickFeed(csv_path, start_ms=start_ms, end_ms=end_ms)
    engine = DetectionEngine(
        config,
        build_sink(config.display_timezone, output),
        tickers,
        replay=True,
    )
    asyncio.run(engine.run(feed, parse_instrument_ids(instruments)))

    typer.echo(
        f"Processed {engine.total_ticks} ticks: "
        f"{engine.total_detections} robots detected, "
        f"{len(engine.active_robots())} still active"
    )
    for state in engine.active_robots():
        typer.echo(
            f"  {state.ticker} lot={state.lot_size} interval={state.interval_seconds}s"
        )
