"""Configuration dataclass for the robot detection engine.

Hold every tuneable detection constant: series length, interval variation
tolerance, buffer retention, lot filtering and grouping, tick aggregation,
robot inactivity timeout, and the recent-sample window cap. Immutable after
construction so a running engine cannot have its thresholds changed under it.
"""

from dataclasses import dataclass, fields
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from robot_scanner.core.config import ConfigLoader

_DEFAULT_MIN_SERIES_LENGTH = 3
_DEFAULT_INTERVAL_TOLERANCE = 0.3
_DEFAULT_TIME_WINDOW_MS = 240_000
_DEFAULT_MIN_LOT = 5
_DEFAULT_LOT_TOLERANCE = 0
_DEFAULT_AGGREGATION_WINDOW_MS = 50
_DEFAULT_ROBOT_TIMEOUT_MS = 180_000
_DEFAULT_RECENT_SAMPLES = 10
_DEFAULT_DISPLAY_TIMEZONE = "Europe/Moscow"

_MIN_INTERVALS = 2


@dataclass(frozen=True)
class DetectorConfig:
    """Immutable configuration for a detection engine.

    Attributes:
        min_series_length: Minimum samples in a buffer before evaluating, and
            minimum timestamps in a lot bucket before testing regularity.
        interval_tolerance: Maximum coefficient of variation (stddev / mean)
            of inter-arrival intervals for a bucket to count as regular.
        time_window_ms: Buffer retention horizon in milliseconds.
        min_lot: Ticks with a smaller quantity are dropped on ingest.
        lot_tolerance: Maximum absolute lot difference for two samples to
            share a bucket. Zero means exact-match grouping.
        aggregation_window_ms: Ticks within this many milliseconds of the
            previous sample are merged into it.
        robot_timeout_ms: Silence after which a tracked robot is evicted.
        recent_samples: Number of most recent samples considered per
            evaluation.
        display_timezone: IANA timezone used when reporting tick times.

    """

    min_series_length: int = _DEFAULT_MIN_SERIES_LENGTH
    interval_tolerance: float = _DEFAULT_INTERVAL_TOLERANCE
    time_window_ms: int = _DEFAULT_TIME_WINDOW_MS
    min_lot: int = _DEFAULT_MIN_LOT
    lot_tolerance: int = _DEFAULT_LOT_TOLERANCE
    aggregation_window_ms: int = _DEFAULT_AGGREGATION_WINDOW_MS
    robot_timeout_ms: int = _DEFAULT_ROBOT_TIMEOUT_MS
    recent_samples: int = _DEFAULT_RECENT_SAMPLES
    display_timezone: str = _DEFAULT_DISPLAY_TIMEZONE

    def __post_init__(self) -> None:
        """Validate thresholds and the display timezone."""
        if self.min_series_length < _MIN_INTERVALS:
            msg = f"min_series_length must be at least 2, got {self.min_series_length}"
            raise ValueError(msg)
        if self.recent_samples < self.min_series_length:
            msg = (
                f"recent_samples ({self.recent_samples}) must not be smaller than "
                f"min_series_length ({self.min_series_length})"
            )
            raise ValueError(msg)
        if self.interval_tolerance < 0:
            msg = f"interval_tolerance must be non-negative, got {self.interval_tolerance}"
            raise ValueError(msg)
        if self.lot_tolerance < 0:
            msg = f"lot_tolerance must be non-negative, got {self.lot_tolerance}"
            raise ValueError(msg)
        if self.min_lot < 1:
            msg = f"min_lot must be positive, got {self.min_lot}"
            raise ValueError(msg)
        for name in ("time_window_ms", "robot_timeout_ms"):
            if getattr(self, name) <= 0:
                msg = f"{name} must be positive, got {getattr(self, name)}"
                raise ValueError(msg)
        if self.aggregation_window_ms < 0:
            msg = f"aggregation_window_ms must be non-negative, got {self.aggregation_window_ms}"
            raise ValueError(msg)
        try:
            ZoneInfo(self.display_timezone)
        except (ZoneInfoNotFoundError, ValueError) as exc:
            msg = f"Unknown display_timezone: {self.display_timezone!r}"
            raise ValueError(msg) from exc

    @classmethod
    def from_loader(cls, loader: ConfigLoader) -> "DetectorConfig":
        """Build a config from the ``detector`` section of loaded settings.

        Keys absent from the section keep their defaults. Each field's
        default value fixes the type its setting is converted to.

        Args:
            loader: Loaded configuration.

        Returns:
            A validated ``DetectorConfig``.

        Raises:
            ConfigError: If the section has unknown keys or a value does not
                fit its field type.

        """
        schema = {f.name: type(f.default) for f in fields(cls)}
        return cls(**loader.get_typed_section("detector", schema))
