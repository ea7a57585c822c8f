"""Tests for core data models."""

import dataclasses

import pytest

from robot_scanner.core.models import (
    AggregatedSample,
    RobotDetection,
    RobotKey,
    RobotState,
    Tick,
)

_FIGI = "BBG004730N88"
_MERGED_QUANTITY = 30
_TIMEOUT_MS = 180_000


def _make_state(last_tick_at: int = 10_000) -> RobotState:
    """Create a RobotState for testing."""
    return RobotState(
        instrument_id=_FIGI,
        ticker="SBER",
        lot_size=100,
        interval_seconds=5,
        first_detected_at=last_tick_at,
        last_tick_at=last_tick_at,
    )


class TestTick:
    """Tests for the Tick value object."""

    def test_is_frozen(self) -> None:
        """Reject mutation of a tick."""
        tick = Tick(timestamp=1, quantity=10, instrument_id=_FIGI)
        with pytest.raises(dataclasses.FrozenInstanceError):
            tick.quantity = 20  # type: ignore[misc]


class TestAggregatedSample:
    """Tests for sample creation and merging."""

    def test_from_tick(self) -> None:
        """Copy timestamp and quantity from the tick."""
        sample = AggregatedSample.from_tick(Tick(timestamp=1_000, quantity=10, instrument_id=_FIGI))
        assert sample == AggregatedSample(timestamp=1_000, quantity=10)

    def test_merge_advances_timestamp_and_sums_quantity(self) -> None:
        """Move the timestamp to the merged tick and add its quantity."""
        sample = AggregatedSample(timestamp=1_000, quantity=10)
        sample.merge(Tick(timestamp=1_040, quantity=20, instrument_id=_FIGI))
        assert sample.timestamp == 1_040  # noqa: PLR2004
        assert sample.quantity == _MERGED_QUANTITY


class TestRobotKey:
    """Tests for the registry key."""

    def test_equal_keys_hash_equal(self) -> None:
        """Use value equality so keys work in dictionaries."""
        assert RobotKey(_FIGI, 100) == RobotKey(_FIGI, 100)
        assert len({RobotKey(_FIGI, 100), RobotKey(_FIGI, 100), RobotKey(_FIGI, 50)}) == 2  # noqa: PLR2004


class TestRobotState:
    """Tests for robot state behaviour."""

    def test_key(self) -> None:
        """Derive the key from instrument and lot size."""
        assert _make_state().key == RobotKey(_FIGI, 100)

    def test_refresh_keeps_first_detected(self) -> None:
        """Update interval and last tick but never the first detection time."""
        state = _make_state(last_tick_at=10_000)
        state.refresh(interval_seconds=6, last_tick_at=16_000)
        assert state.interval_seconds == 6  # noqa: PLR2004
        assert state.last_tick_at == 16_000  # noqa: PLR2004
        assert state.first_detected_at == 10_000  # noqa: PLR2004

    def test_is_stale_strictly_after_timeout(self) -> None:
        """Become stale only once silence exceeds the timeout."""
        state = _make_state(last_tick_at=0)
        assert not state.is_stale(_TIMEOUT_MS, _TIMEOUT_MS)
        assert state.is_stale(_TIMEOUT_MS + 1, _TIMEOUT_MS)


class TestRobotDetection:
    """Tests for the detection event."""

    def test_is_frozen(self) -> None:
        """Reject mutation of an emitted detection."""
        detection = RobotDetection(
            instrument_id=_FIGI,
            ticker="SBER",
            interval_seconds=5,
            lot_size=100,
            lot_tolerance=0,
            last_tick_at=15_000,
        )
        with pytest.raises(dataclasses.FrozenInstanceError):
            detection.lot_size = 1  # type: ignore[misc]
