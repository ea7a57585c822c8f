"""Core data models shared across the robot scanner application.

Define the immutable input record (Tick), the mutable per-instrument buffer
entry (AggregatedSample), the registry key and state for tracked robots, and
the detection event handed to reporting sinks.
"""

from dataclasses import dataclass


@dataclass(frozen=True)
class Tick:
    """A single reported trade for an instrument.

    Attributes:
        timestamp: Epoch milliseconds of the trade.
        quantity: Trade size in lots.
        instrument_id: Opaque instrument key (e.g. a FIGI).

    """

    timestamp: int
    quantity: int
    instrument_id: str


@dataclass
class AggregatedSample:
    """A buffered sample built from one or more merged ticks.

    Rapid ticks that arrive within the aggregation window are folded into a
    single sample: the timestamp advances to the newest tick and the
    quantities are summed.
    """

    timestamp: int
    quantity: int

    @classmethod
    def from_tick(cls, tick: Tick) -> "AggregatedSample":
        """Start a new sample from a single tick."""
        return cls(timestamp=tick.timestamp, quantity=tick.quantity)

    def merge(self, tick: Tick) -> None:
        """Fold a tick into this sample.

        Args:
            tick: Tick arriving within the aggregation window of this sample.

        """
        self.timestamp = tick.timestamp
        self.quantity += tick.quantity


@dataclass(frozen=True)
class RobotKey:
    """Registry key identifying one candidate robot: instrument plus lot size."""

    instrument_id: str
    lot_size: int


@dataclass
class RobotState:
    """Tracked state of a detected robot.

    Created the first time a lot-size group passes the regularity test and
    refreshed on every later pass. ``first_detected_at`` never changes;
    ``last_tick_at`` and ``interval_seconds`` follow the latest evaluation.

    Attributes:
        instrument_id: Instrument the robot trades.
        ticker: Display ticker for reporting.
        lot_size: Representative lot size of the pattern.
        interval_seconds: Last estimated mean interval, whole seconds.
        first_detected_at: Epoch ms of the bucket's last tick at creation.
        last_tick_at: Epoch ms of the most recent tick attributed to the robot.

    """

    instrument_id: str
    ticker: str
    lot_size: int
    interval_seconds: int
    first_detected_at: int
    last_tick_at: int

    @property
    def key(self) -> RobotKey:
        """Return the registry key for this robot."""
        return RobotKey(self.instrument_id, self.lot_size)

    def refresh(self, interval_seconds: int, last_tick_at: int) -> None:
        """Update the interval estimate and last activity time in place."""
        self.interval_seconds = interval_seconds
        self.last_tick_at = last_tick_at

    def is_stale(self, now_ms: int, timeout_ms: int) -> bool:
        """Return True when the robot has been silent longer than ``timeout_ms``."""
        return now_ms - self.last_tick_at > timeout_ms


@dataclass(frozen=True)
class RobotDetection:
    """Event emitted when a new robot is first detected.

    Updates to an already tracked robot never produce a detection.

    Attributes:
        instrument_id: Instrument the robot trades.
        ticker: Display ticker (falls back to the instrument id).
        interval_seconds: Estimated mean interval in whole seconds.
        lot_size: Representative lot size.
        lot_tolerance: Lot tolerance used for grouping.
        last_tick_at: Epoch ms of the tick that triggered the detection.

    """

    instrument_id: str
    ticker: str
    interval_seconds: int
    lot_size: int
    lot_tolerance: int
    last_tick_at: int

    @property
    def key(self) -> RobotKey:
        """Return the registry key of the robot this detection announced."""
        return RobotKey(self.instrument_id, self.lot_size)
