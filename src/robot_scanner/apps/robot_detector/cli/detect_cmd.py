"""CLI command for live robot detection on a trade stream.

Load the instrument universe, connect to the WebSocket trade stream, and
report every newly detected robot until interrupted.
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
from robot_scanner.apps.robot_detector.engine import DetectionEngine
from robot_scanner.apps.robot_detector.exceptions import InstrumentDirectoryError
from robot_scanner.apps.robot_detector.ws_client import TradeFeed
from robot_scanner.core.config import get_config

_DEFAULT_RECONNECT_BASE_DELAY = 5.0


def detect(
    instruments: Annotated[
        str,
        typer.Option(help="Comma-separated instrument ids (default: whole directory)"),
    ] = "",
    url: Annotated[
        str | None, typer.Option(help="Trade stream WebSocket URL (default: feed.url)")
    ] = None,
    instruments_url: Annotated[
        str | None, typer.Option(help="Instrument directory URL (default: instruments.url)")
    ] = None,
    currency: Annotated[
        str | None, typer.Option(help="Only watch instruments in this currency")
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
    quiet: Annotated[  # noqa: FBT002
        bool, typer.Option("--quiet", "-q", help="Log detections instead of printing")
    ] = False,
    verbose: Annotated[  # noqa: FBT002
        bool, typer.Option("--verbose", "-v", help="Enable debug logging")
    ] = False,
) -> None:
    """Detect trading robots on a live trade stream.

    Subscribe to trades for the selected instruments and print one line per
    newly detected robot: ticker, interval, lot size and last tick time.
    """
    configure_logging(verbose=verbose)
    config = build_detector_config(
        min_lot=min_lot,
        lot_tolerance=lot_tolerance,
        interval_tolerance=interval_tolerance,
    )

    try:
        tickers = asyncio.run(load_tickers(instruments_url, currency))
    except InstrumentDirectoryError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from exc

    instrument_ids = parse_instrument_ids(instruments) or list(tickers)
    if not instrument_ids:
        typer.echo(
            "Error: no instruments to watch; pass --instruments or configure a directory",
            err=True,
        )
        raise typer.Exit(code=1)

    settings = get_config()
    feed_url = url or settings.get("feed.url")
    if not feed_url:
        typer.echo("Error: no trade stream URL; pass --url or set feed.url", err=True)
        raise typer.Exit(code=1)
    reconnect_delay = float(
        settings.get("feed.reconnect_base_delay", _DEFAULT_RECONNECT_BASE_DELAY)
    )

    typer.echo(f"Watching {len(instrument_ids)} instruments on {feed_url}")

    feed = TradeFeed(str(feed_url), reconnect_base_delay=reconnect_delay)
    engine = DetectionEngine(
        config,
        build_sink(config.display_timezone, output, quiet=quiet),
        tickers,
    )
    asyncio.run(engine.run(feed, instrument_ids))
