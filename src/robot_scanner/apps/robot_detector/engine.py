"""Main orchestrator for the robot detection service.

Wire together a tick feed, the per-instrument aggregator, the robot detector
and a reporting sink. Process every tick synchronously in arrival order,
isolate per-tick failures, log heartbeat stats, and shut down gracefully.
"""

from __future__ import annotations

import asyncio
import logging
import signal
import time
from typing import TYPE_CHECKING

from robot_scanner.apps.robot_detector.aggregator import TickAggregator
from robot_scanner.apps.robot_detector.detector import RobotDetector

if TYPE_CHECKING:
    from collections.abc import Mapping

    from robot_scanner.apps.robot_detector.config import DetectorConfig
    from robot_scanner.core.models import RobotDetection, RobotState, Tick
    from robot_scanner.core.protocols import DetectionSink, TickFeed

logger = logging.getLogger(__name__)

_HEARTBEAT_INTERVAL_SECONDS = 60
_MS_PER_SECOND = 1000


class DetectionEngine:
    """Own all detection state for one sequential stream of ticks.

    Buffers and the robot registry live on the instance, so separate engines
    never share state. Ticks for one instrument must be processed in order;
    ``process`` never blocks or awaits.

    Args:
        config: Detection thresholds.
        sink: Receiver of detections for newly created robots.
        tickers: Instrument id to display ticker mapping.
        replay: Use each tick's timestamp as "now" for retention trimming
            instead of the wall clock. Needed when processing recorded data.

    """

    def __init__(
        self,
        config: DetectorConfig,
        sink: DetectionSink,
        tickers: Mapping[str, str] | None = None,
        *,
        replay: bool = False,
    ) -> None:
        """Initialize the engine with empty buffers and registry.

        Args:
            config: Detection thresholds.
            sink: Receiver of new-robot detections.
            tickers: Instrument id to display ticker mapping.
            replay: Trim buffers by tick time instead of wall-clock time.

        """
        self._config = config
        self._sink = sink
        self._tickers = dict(tickers or {})
        self._replay = replay
        self._aggregator = TickAggregator(config)
        self._detector = RobotDetector(config)
        self._shutdown = False
        self._ticks_since_heartbeat = 0
        self.total_ticks = 0
        self.total_detections = 0
        self.failed_ticks = 0

    @property
    def aggregator(self) -> TickAggregator:
        """Return the per-instrument tick aggregator."""
        return self._aggregator

    @property
    def detector(self) -> RobotDetector:
        """Return the robot detector."""
        return self._detector

    def active_robots(self) -> list[RobotState]:
        """Return every robot currently tracked by the registry."""
        return list(self._detector.registry)

    def process(self, tick: Tick) -> RobotDetection | None:
        """Ingest one tick and run detection when the buffer is large enough.

        Args:
            tick: Incoming trade tick.

        If the sink fails, the new robot is dropped from the registry again
        so the next qualifying tick detects it anew, and the error propagates.

        Returns:
            The detection emitted for a newly created robot, otherwise ``None``.

        """
        self.total_ticks += 1
        self._ticks_since_heartbeat += 1

        now_ms = tick.timestamp if self._replay else _now_ms()
        buffer = self._aggregator.ingest(tick, now_ms)
        if buffer is None or not self._aggregator.is_ready(buffer):
            return None

        detection = self._detector.evaluate(
            tick.instrument_id,
            buffer,
            self._tickers.get(tick.instrument_id),
        )
        if detection is None:
            return None

        try:
            self._sink.emit(detection)
        except Exception:
            self._detector.registry.remove(detection.key)
            raise
        self.total_detections += 1
        return detection

    async def run(self, feed: TickFeed, instrument_ids: list[str]) -> None:
        """Consume the feed until it ends or a shutdown signal arrives.

        A failure while processing one tick is logged and the loop moves on
        to the next tick.

        Args:
            feed: Source of ticks.
            instrument_ids: Instruments to subscribe to.

        """
        loop = asyncio.get_running_loop()
        loop.add_signal_handler(signal.SIGINT, self._handle_shutdown)
        loop.add_signal_handler(signal.SIGTERM, self._handle_shutdown)

        logger.info("Starting robot detection for %d instruments", len(instrument_ids))
        heartbeat_task = asyncio.create_task(self._periodic_heartbeat())

        try:
            async for tick in feed.stream(instrument_ids):
                if self._shutdown:
                    break
                try:
                    self.process(tick)
                except Exception:
                    self.failed_ticks += 1
                    logger.exception("Failed to process tick %s", tick)
        finally:
            heartbeat_task.cancel()
            loop.remove_signal_handler(signal.SIGINT)
            loop.remove_signal_handler(signal.SIGTERM)
            await feed.close()
            logger.info(
                "Robot detection stopped: %d ticks, %d detections, %d active robots",
                self.total_ticks,
                self.total_detections,
                len(self._detector.registry),
            )

    def _handle_shutdown(self) -> None:
        """Set the shutdown flag for graceful exit on SIGINT/SIGTERM."""
        logger.info("Shutdown signal received")
        self._shutdown = True

    async def _periodic_heartbeat(self) -> None:
        """Log processing stats at regular intervals for monitoring."""
        while not self._shutdown:
            await asyncio.sleep(_HEARTBEAT_INTERVAL_SECONDS)
            if self._shutdown:
                break
            logger.info(
                "[ROBOT-SCANNER] ticks_last_min=%d instruments=%d active_robots=%d",
                self._ticks_since_heartbeat,
                self._aggregator.instrument_count,
                len(self._detector.registry),
            )
            self._ticks_since_heartbeat = 0


def _now_ms() -> int:
    """Return the current time as epoch milliseconds.

    Returns:
        Integer epoch milliseconds.

    """
    return int(time.time() * _MS_PER_SECOND)
