"""Structural protocols for the external collaborators of the scanner.

Define the ``TickFeed``, ``InstrumentDirectory`` and ``DetectionSink``
interfaces that decouple the detection engine from transports, metadata
sources and reporting outputs. Any class whose shape matches these protocols
can be used without explicit inheritance (structural subtyping).
"""

from collections.abc import AsyncIterator
from typing import Protocol, runtime_checkable

from robot_scanner.core.models import RobotDetection, Tick


@runtime_checkable
class TickFeed(Protocol):
    """Async source of trade ticks.

    Implementors deliver ticks for each instrument in chronological order.
    Ticks of different instruments may interleave freely.
    """

    def stream(self, instrument_ids: list[str]) -> AsyncIterator[Tick]:
        """Yield ticks for the given instruments until closed or exhausted."""
        ...

    async def close(self) -> None:
        """Release the underlying transport."""
        ...


@runtime_checkable
class InstrumentDirectory(Protocol):
    """Lookup of instrument identifiers to display tickers.

    Queried once at startup; detection never depends on the ticker value.
    """

    async def load(self) -> dict[str, str]:
        """Return a mapping of instrument id to display ticker."""
        ...


@runtime_checkable
class DetectionSink(Protocol):
    """Reporting output for newly detected robots."""

    def emit(self, detection: RobotDetection) -> None:
        """Report a single detection."""
        ...
