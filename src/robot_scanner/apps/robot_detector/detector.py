"""Robot detection over the recent samples of an instrument buffer.

Group the most recent samples into lot-size buckets, test each bucket for
regular inter-arrival intervals, and keep a registry of detected robots with
creation, silent refresh and inactivity eviction. Every evaluation works on a
bounded window of samples, so the cost per tick does not grow with history.
"""

import logging
import math
from collections.abc import Iterable, Iterator, Sequence
from dataclasses import dataclass, field

from robot_scanner.apps.robot_detector.aggregator import InstrumentBuffer
from robot_scanner.apps.robot_detector.config import DetectorConfig
from robot_scanner.core.models import (
    AggregatedSample,
    RobotDetection,
    RobotKey,
    RobotState,
)

logger = logging.getLogger(__name__)

_MS_PER_SECOND = 1000


@dataclass
class LotBucket:
    """Samples grouped under one representative lot size.

    Attributes:
        lot_size: Quantity of the sample that opened the bucket.
        timestamps: Timestamps of every sample assigned to the bucket, in
            window order.

    """

    lot_size: int
    timestamps: list[int] = field(default_factory=list)


class RobotRegistry:
    """Mapping of ``RobotKey`` to ``RobotState`` for all tracked robots.

    The registry is the only shared mutable state of the detector. Lookups are
    by key; eviction is scoped to one instrument at a time.
    """

    def __init__(self) -> None:
        """Initialize an empty registry."""
        self._robots: dict[RobotKey, RobotState] = {}

    def __len__(self) -> int:
        """Return the number of tracked robots."""
        return len(self._robots)

    def __contains__(self, key: object) -> bool:
        """Return True if a robot is tracked under ``key``."""
        return key in self._robots

    def __iter__(self) -> Iterator[RobotState]:
        """Iterate over tracked robot states."""
        return iter(list(self._robots.values()))

    def get(self, key: RobotKey) -> RobotState | None:
        """Return the robot tracked under ``key``, if any."""
        return self._robots.get(key)

    def add(self, state: RobotState) -> None:
        """Start tracking a robot under its own key."""
        self._robots[state.key] = state

    def remove(self, key: RobotKey) -> RobotState | None:
        """Stop tracking the robot under ``key`` and return it, if any."""
        return self._robots.pop(key, None)

    def for_instrument(self, instrument_id: str) -> list[RobotState]:
        """Return all robots tracked for an instrument."""
        return [s for s in self._robots.values() if s.instrument_id == instrument_id]

    def evict_stale(self, instrument_id: str, now_ms: int, timeout_ms: int) -> list[RobotState]:
        """Remove an instrument's robots that have been silent too long.

        Args:
            instrument_id: Only robots of this instrument are considered.
            now_ms: Reference time (latest sample timestamp).
            timeout_ms: Inactivity threshold in milliseconds.

        Returns:
            The evicted robot states.

        """
        stale = [s for s in self.for_instrument(instrument_id) if s.is_stale(now_ms, timeout_ms)]
        for state in stale:
            self.remove(state.key)
        return stale


def group_by_lot(samples: Iterable[AggregatedSample], lot_tolerance: int) -> list[LotBucket]:
    """Greedily assign samples to lot-size buckets.

    Each sample joins the first open bucket (in opening order) whose lot size
    is within ``lot_tolerance`` of the sample's quantity; otherwise it opens a
    new bucket keyed by its own quantity. The result depends on sample order.

    Args:
        samples: Samples in chronological order.
        lot_tolerance: Maximum absolute quantity difference within a bucket.

    Returns:
        Buckets in the order they were opened.

    """
    buckets: list[LotBucket] = []
    for sample in samples:
        for bucket in buckets:
            if abs(bucket.lot_size - sample.quantity) <= lot_tolerance:
                bucket.timestamps.append(sample.timestamp)
                break
        else:
            buckets.append(LotBucket(lot_size=sample.quantity, timestamps=[sample.timestamp]))
    return buckets


def regular_interval(timestamps: Sequence[int], tolerance: float) -> float | None:
    """Return the mean inter-arrival interval if the series is regular.

    Compute consecutive differences, their mean and standard deviation
    (normalised by the number of intervals), and accept the series when the
    mean is non-zero and the coefficient of variation is within tolerance.

    Args:
        timestamps: Chronological timestamps in milliseconds.
        tolerance: Maximum accepted ``stddev / mean``.

    Returns:
        Mean interval in milliseconds, or ``None`` if the series has fewer
        than two points or is not regular.

    """
    if len(timestamps) < 2:  # noqa: PLR2004
        return None

    intervals = [b - a for a, b in zip(timestamps, timestamps[1:], strict=False)]
    mean = sum(intervals) / len(intervals)
    if mean == 0:
        return None

    variance = sum((d - mean) ** 2 for d in intervals) / len(intervals)
    if math.sqrt(variance) / mean > tolerance:
        return None
    return mean


def _round_seconds(interval_ms: float) -> int:
    """Round a millisecond interval to whole seconds, halves rounding up."""
    return math.floor(interval_ms / _MS_PER_SECOND + 0.5)


class RobotDetector:
    """Stateful engine that turns regular lot buckets into tracked robots.

    Args:
        config: Detection thresholds.
        registry: Registry to mutate. A fresh one is created when omitted.

    """

    def __init__(self, config: DetectorConfig, registry: RobotRegistry | None = None) -> None:
        """Initialize the detector."""
        self._config = config
        self.registry = registry if registry is not None else RobotRegistry()

    def evaluate(
        self,
        instrument_id: str,
        buffer: InstrumentBuffer,
        ticker: str | None = None,
    ) -> RobotDetection | None:
        """Evaluate an instrument's recent samples and update the registry.

        Steps:
            1. Take the most recent ``recent_samples`` samples.
            2. Evict this instrument's robots silent for longer than
               ``robot_timeout_ms`` relative to the newest sample.
            3. Group the window into lot buckets.
            4. Test buckets with at least ``min_series_length`` timestamps
               for interval regularity.
            5. For the first regular bucket, create or refresh its robot and
               stop; later buckets wait for the next tick.

        Args:
            instrument_id: Instrument being evaluated.
            buffer: The instrument's current buffer.
            ticker: Display ticker; defaults to the instrument id.

        Returns:
            A ``RobotDetection`` when a new robot was created, otherwise ``None``.

        """
        window = buffer.recent(self._config.recent_samples)
        if not window:
            return None
        latest_ts = window[-1].timestamp

        evicted = self.registry.evict_stale(
            instrument_id, latest_ts, self._config.robot_timeout_ms
        )
        for state in evicted:
            logger.info(
                "Robot on %s (lot %d) timed out after %d ms of silence",
                state.ticker,
                state.lot_size,
                latest_ts - state.last_tick_at,
            )

        for bucket in group_by_lot(window, self._config.lot_tolerance):
            if len(bucket.timestamps) < self._config.min_series_length:
                continue
            mean_interval = regular_interval(bucket.timestamps, self._config.interval_tolerance)
            if mean_interval is None:
                continue
            return self._record(instrument_id, ticker or instrument_id, bucket, mean_interval)

        return None

    def _record(
        self,
        instrument_id: str,
        ticker: str,
        bucket: LotBucket,
        mean_interval: float,
    ) -> RobotDetection | None:
        """Create or refresh the robot for an accepted bucket."""
        interval_seconds = _round_seconds(mean_interval)
        last_tick_at = bucket.timestamps[-1]
        key = RobotKey(instrument_id, bucket.lot_size)

        state = self.registry.get(key)
        if state is not None:
            state.refresh(interval_seconds, last_tick_at)
            logger.debug(
                "Refreshed robot %s lot %d: interval=%ds",
                ticker,
                bucket.lot_size,
                interval_seconds,
            )
            return None

        self.registry.add(
            RobotState(
                instrument_id=instrument_id,
                ticker=ticker,
                lot_size=bucket.lot_size,
                interval_seconds=interval_seconds,
                first_detected_at=last_tick_at,
                last_tick_at=last_tick_at,
            )
        )
        return RobotDetection(
            instrument_id=instrument_id,
            ticker=ticker,
            interval_seconds=interval_seconds,
            lot_size=bucket.lot_size,
            lot_tolerance=self._config.lot_tolerance,
            last_tick_at=last_tick_at,
        )
