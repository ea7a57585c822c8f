"""Tests for core protocols."""

from collections.abc import AsyncIterator
from pathlib import Path

from robot_scanner.apps.robot_detector.csv_feed import CsvTickFeed
from robot_scanner.apps.robot_detector.instruments import StaticInstrumentDirectory
from robot_scanner.apps.robot_detector.sinks import EchoSink, JsonLinesSink, LogSink
from robot_scanner.apps.robot_detector.ws_client import TradeFeed
from robot_scanner.core.models import RobotDetection, Tick
from robot_scanner.core.protocols import DetectionSink, InstrumentDirectory, TickFeed


class FakeFeed:
    """A class that structurally satisfies TickFeed."""

    async def stream(self, instrument_ids: list[str]) -> AsyncIterator[Tick]:  # noqa: ARG002
        """Yield nothing."""
        return
        yield  # type: ignore[misc]

    async def close(self) -> None:
        """Do nothing."""


class FakeSink:
    """A class that structurally satisfies DetectionSink."""

    def emit(self, detection: RobotDetection) -> None:
        """Discard the detection."""


class BadFeed:
    """Missing close method."""

    async def stream(self, instrument_ids: list[str]) -> AsyncIterator[Tick]:  # noqa: ARG002
        """Yield nothing."""
        return
        yield  # type: ignore[misc]


class BadSink:
    """Missing emit method."""


class TestTickFeed:
    """Tests for TickFeed protocol."""

    def test_structural_match(self) -> None:
        """Accept any class with stream and close."""
        assert isinstance(FakeFeed(), TickFeed)

    def test_structural_mismatch(self) -> None:
        """Reject a class without close."""
        assert not isinstance(BadFeed(), TickFeed)

    def test_concrete_feeds_match(self, tmp_path: Path) -> None:
        """Both shipped feeds satisfy the protocol."""
        assert isinstance(TradeFeed("ws://localhost:1"), TickFeed)
        assert isinstance(CsvTickFeed(tmp_path / "ticks.csv"), TickFeed)


class TestInstrumentDirectory:
    """Tests for InstrumentDirectory protocol."""

    def test_static_directory_matches(self) -> None:
        """The static directory satisfies the protocol."""
        assert isinstance(StaticInstrumentDirectory({}), InstrumentDirectory)

    def test_sink_is_not_a_directory(self) -> None:
        """Reject a class without load."""
        assert not isinstance(FakeSink(), InstrumentDirectory)


class TestDetectionSink:
    """Tests for DetectionSink protocol."""

    def test_structural_match(self) -> None:
        """Accept any class with emit."""
        assert isinstance(FakeSink(), DetectionSink)

    def test_structural_mismatch(self) -> None:
        """Reject a class without emit."""
        assert not isinstance(BadSink(), DetectionSink)

    def test_concrete_sinks_match(self, tmp_path: Path) -> None:
        """All shipped sinks satisfy the protocol."""
        assert isinstance(LogSink("UTC"), DetectionSink)
        assert isinstance(EchoSink("UTC"), DetectionSink)
        assert isinstance(JsonLinesSink(tmp_path / "out.jsonl"), DetectionSink)
