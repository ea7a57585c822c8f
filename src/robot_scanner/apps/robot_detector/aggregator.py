"""Per-instrument tick buffering with noise aggregation and retention trimming.

Each instrument gets its own ``InstrumentBuffer``, created lazily on the first
tick that passes the minimum-lot filter. Ticks arriving within the aggregation
window of the previous sample are merged into it so that bursts of partial
fills collapse into one sample; samples older than the retention window are
dropped from the front after every insert.
"""

import logging
from collections import deque
from collections.abc import Iterator

from robot_scanner.apps.robot_detector.config import DetectorConfig
from robot_scanner.core.models import AggregatedSample, Tick

logger = logging.getLogger(__name__)


class InstrumentBuffer:
    """Oldest-first sequence of aggregated samples for one instrument.

    Invariants maintained by ``add`` and ``trim``: sample timestamps are
    non-decreasing, the last two samples are more than the aggregation window
    apart, and after trimming no sample is older than ``now - time_window_ms``.

    Args:
        instrument_id: Instrument the buffer belongs to.

    """

    def __init__(self, instrument_id: str) -> None:
        """Initialize an empty buffer."""
        self.instrument_id = instrument_id
        self._samples: deque[AggregatedSample] = deque()

    def __len__(self) -> int:
        """Return the number of samples currently buffered."""
        return len(self._samples)

    def __iter__(self) -> Iterator[AggregatedSample]:
        """Iterate samples oldest-first."""
        return iter(self._samples)

    @property
    def last(self) -> AggregatedSample | None:
        """Return the newest sample, or ``None`` when the buffer is empty."""
        return self._samples[-1] if self._samples else None

    def add(self, tick: Tick, aggregation_window_ms: int) -> bool:
        """Append a tick, merging it into the last sample when close enough.

        Args:
            tick: Incoming tick for this buffer's instrument.
            aggregation_window_ms: Merge distance in milliseconds (inclusive).

        Returns:
            True if the tick was merged, False if a new sample was appended.

        """
        last = self.last
        if last is not None and tick.timestamp - last.timestamp <= aggregation_window_ms:
            last.merge(tick)
            return True
        self._samples.append(AggregatedSample.from_tick(tick))
        return False

    def trim(self, now_ms: int, time_window_ms: int) -> int:
        """Drop leading samples older than the retention horizon.

        Args:
            now_ms: Current time in epoch milliseconds.
            time_window_ms: Retention window in milliseconds.

        Returns:
            Number of samples removed.

        """
        horizon = now_ms - time_window_ms
        removed = 0
        while self._samples and self._samples[0].timestamp < horizon:
            self._samples.popleft()
            removed += 1
        return removed

    def recent(self, count: int) -> list[AggregatedSample]:
        """Return up to ``count`` most recent samples, oldest-first."""
        start = max(0, len(self._samples) - count)
        return [self._samples[i] for i in range(start, len(self._samples))]


class TickAggregator:
    """Route ticks into per-instrument buffers.

    Drop ticks below the minimum lot, aggregate the rest into the owning
    instrument's buffer, and trim stale samples using the caller's clock.

    Args:
        config: Detection thresholds (min lot, aggregation and retention windows).

    """

    def __init__(self, config: DetectorConfig) -> None:
        """Initialize with no buffers."""
        self._config = config
        self._buffers: dict[str, InstrumentBuffer] = {}

    @property
    def instrument_count(self) -> int:
        """Return how many instruments have a buffer."""
        return len(self._buffers)

    def buffer(self, instrument_id: str) -> InstrumentBuffer | None:
        """Return the buffer for an instrument, if one has been created."""
        return self._buffers.get(instrument_id)

    def ingest(self, tick: Tick, now_ms: int) -> InstrumentBuffer | None:
        """Add a tick to its instrument buffer and trim expired samples.

        Trimming uses ``now_ms`` rather than the tick's own timestamp so that
        buffers stay bounded by wall-clock time.

        Args:
            tick: Incoming trade tick.
            now_ms: Processing time in epoch milliseconds.

        Returns:
            The updated buffer, or ``None`` if the tick was below the
            minimum lot and dropped.

        """
        if tick.quantity < self._config.min_lot:
            logger.debug(
                "Dropping %s tick of %d lots (min %d)",
                tick.instrument_id,
                tick.quantity,
                self._config.min_lot,
            )
            return None

        buffer = self._buffers.get(tick.instrument_id)
        if buffer is None:
            buffer = InstrumentBuffer(tick.instrument_id)
            self._buffers[tick.instrument_id] = buffer

        buffer.add(tick, self._config.aggregation_window_ms)
        buffer.trim(now_ms, self._config.time_window_ms)
        return buffer

    def is_ready(self, buffer: InstrumentBuffer) -> bool:
        """Return True when a buffer holds enough samples to evaluate."""
        return len(buffer) >= self._config.min_series_length
