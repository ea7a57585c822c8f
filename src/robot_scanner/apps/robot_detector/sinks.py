"""Reporting sinks for robot detections.

Render each ``RobotDetection`` as one human-readable line (ticker, interval,
lot size with tolerance, and the last tick time in the display timezone) and
deliver it to the log, the terminal, or a JSON-lines file.
"""

import json
import logging
from dataclasses import asdict
from pathlib import Path

import typer

from robot_scanner.apps.robot_detector.exceptions import DeliveryError
from robot_scanner.core.models import RobotDetection
from robot_scanner.core.protocols import DetectionSink
from robot_scanner.core.timestamps import format_clock_time

logger = logging.getLogger(__name__)


def format_detection(detection: RobotDetection, timezone: str) -> str:
    """Render a detection as a single report line.

    Args:
        detection: Newly created robot.
        timezone: IANA timezone for the last tick time.

    Returns:
        Report line, e.g.
        ``Robot: SBER interval=5s lot=100 (±0) last tick=12:00:05 (Europe/Moscow)``.

    """
    clock = format_clock_time(detection.last_tick_at, timezone)
    return (
        f"Robot: {detection.ticker} interval={detection.interval_seconds}s "
        f"lot={detection.lot_size} (±{detection.lot_tolerance}) "
        f"last tick={clock} ({timezone})"
    )


class LogSink:
    """Write detections to the application log at INFO level.

    Args:
        timezone: IANA timezone for rendering tick times.

    """

    def __init__(self, timezone: str) -> None:
        """Initialize the sink."""
        self._timezone = timezone

    def emit(self, detection: RobotDetection) -> None:
        """Log one detection."""
        logger.info("%s", format_detection(detection, self._timezone))


class EchoSink:
    """Print detections to standard output via ``typer.echo``.

    Args:
        timezone: IANA timezone for rendering tick times.

    """

    def __init__(self, timezone: str) -> None:
        """Initialize the sink."""
        self._timezone = timezone

    def emit(self, detection: RobotDetection) -> None:
        """Print one detection."""
        typer.echo(format_detection(detection, self._timezone))


class JsonLinesSink:
    """Append detections to a file, one JSON object per line.

    Args:
        path: Output file; created on first write, appended to afterwards.

    """

    def __init__(self, path: Path) -> None:
        """Initialize the sink."""
        self._path = path

    def emit(self, detection: RobotDetection) -> None:
        """Append one detection as a JSON line."""
        with self._path.open("a") as f:
            f.write(json.dumps(asdict(detection)) + "\n")
        logger.debug("Wrote detection for %s to %s", detection.ticker, self._path)


class MultiSink:
    """Fan a detection out to several sinks in order.

    A failing sink is logged and skipped so the remaining sinks still receive
    the detection.
    """

    def __init__(self, *sinks: DetectionSink) -> None:
        """Initialize with the sinks to forward to."""
        self._sinks = sinks

    def emit(self, detection: RobotDetection) -> None:
        """Forward one detection to every sink.

        Raises:
            DeliveryError: If every sink failed.

        """
        delivered = 0
        first_error: Exception | None = None
        for sink in self._sinks:
            try:
                sink.emit(detection)
            except Exception as exc:
                logger.exception("Sink %s failed for %s", type(sink).__name__, detection.ticker)
                first_error = first_error or exc
            else:
                delivered += 1
        if first_error is not None and delivered == 0:
            msg = f"No sink accepted the detection for {detection.ticker}"
            raise DeliveryError(msg) from first_error
