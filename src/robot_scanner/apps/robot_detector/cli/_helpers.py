"""Shared helpers for the robot scanner CLI commands.

Centralise logging setup, detector configuration with CLI overrides, sink
construction, and instrument directory resolution so the command modules
stay thin.
"""

import logging
from dataclasses import replace
from pathlib import Path
from typing import Any

import typer

from robot_scanner.apps.robot_detector.config import DetectorConfig
from robot_scanner.apps.robot_detector.instruments import (
    HttpInstrumentDirectory,
    StaticInstrumentDirectory,
)
from robot_scanner.apps.robot_detector.sinks import EchoSink, JsonLinesSink, LogSink, MultiSink
from robot_scanner.core.config import ConfigError, get_config


def configure_logging(*, verbose: bool) -> None:
    """Configure root logging once for a CLI run."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


def build_detector_config(**overrides: Any) -> DetectorConfig:
    """Load ``DetectorConfig`` from settings and apply CLI overrides.

    ``None`` overrides are ignored so unset options keep the configured value.
    Abort with exit code 1 on invalid configuration.
    """
    try:
        base = DetectorConfig.from_loader(get_config())
        changes = {k: v for k, v in overrides.items() if v is not None}
        return replace(base, **changes)
    except (ConfigError, ValueError) as exc:
        typer.echo(f"Error: invalid detector configuration: {exc}", err=True)
        raise typer.Exit(code=1) from exc


def build_sink(timezone: str, output: Path | None, *, quiet: bool = False) -> MultiSink:
    """Build the reporting sink.

    Print detections to the terminal, or only log them when ``quiet`` is set.
    Also append them to a JSON-lines file when ``output`` is given.
    """
    primary = LogSink(timezone) if quiet else EchoSink(timezone)
    if output is None:
        return MultiSink(primary)
    return MultiSink(primary, JsonLinesSink(output))


async def load_tickers(url: str | None, currency: str | None) -> dict[str, str]:
    """Load the instrument id to ticker mapping.

    Use the HTTP directory when a URL is given (from the option or
    ``instruments.url``), otherwise the static ``instruments.tickers``
    mapping from settings.

    Raises:
        InstrumentDirectoryError: If the HTTP directory cannot be loaded.

    """
    config = get_config()
    url = url or config.get("instruments.url") or None
    currency = currency or config.get("instruments.currency") or None
    if url:
        async with HttpInstrumentDirectory(url, currency=currency) as directory:
            return await directory.load()
    tickers: Any = config.get("instruments.tickers", {})
    return await StaticInstrumentDirectory(tickers or {}).load()


def parse_instrument_ids(raw: str) -> list[str]:
    """Split a comma-separated instrument list, dropping blanks."""
    return [i.strip() for i in raw.split(",") if i.strip()]

