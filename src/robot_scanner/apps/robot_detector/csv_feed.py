"""CSV-based tick feed for offline replay and testing.

Read trade ticks from a local CSV file instead of a live stream. This is
useful for re-running detection over a recorded session, for deterministic
testing, or when no stream endpoint is available.
"""

import csv
import logging
from collections.abc import AsyncIterator
from pathlib import Path

from robot_scanner.core.models import Tick

logger = logging.getLogger(__name__)


class CsvTickFeed:
    """Replay ticks from a CSV file.

    Implement the ``TickFeed`` protocol by reading rows with columns
    ``instrument_id``, ``timestamp`` (epoch ms) and ``quantity``. Rows are
    yielded in file order, filtered by instrument and an optional time range.
    Rows that cannot be parsed are logged and skipped.

    Args:
        file_path: Path to the CSV file.
        start_ms: Inclusive lower bound on tick timestamps, if given.
        end_ms: Inclusive upper bound on tick timestamps, if given.

    """

    def __init__(
        self,
        file_path: Path,
        *,
        start_ms: int | None = None,
        end_ms: int | None = None,
    ) -> None:
        """Initialize the feed with the path to the CSV file."""
        self._file_path = file_path
        self._start_ms = start_ms
        self._end_ms = end_ms
        self._closed = False

    async def stream(self, instrument_ids: list[str]) -> AsyncIterator[Tick]:
        """Yield ticks from the file.

        Args:
            instrument_ids: Instruments to keep. An empty list keeps all.

        Yields:
            Parsed ticks in file order.

        """
        wanted = set(instrument_ids)
        with self._file_path.open(newline="") as f:
            reader = csv.DictReader(f)
            for line_no, row in enumerate(reader, start=2):
                if self._closed:
                    return
                try:
                    tick = Tick(
                        timestamp=int(row["timestamp"]),
                        quantity=int(row["quantity"]),
                        instrument_id=row["instrument_id"],
                    )
                except (KeyError, TypeError, ValueError):
                    logger.debug("Skipping malformed row %d: %s", line_no, row)
                    continue
                if wanted and tick.instrument_id not in wanted:
                    continue
                if self._start_ms is not None and tick.timestamp < self._start_ms:
                    continue
                if self._end_ms is not None and tick.timestamp > self._end_ms:
                    continue
                yield tick

    async def close(self) -> None:
        """Stop yielding further rows."""
        self._closed = True
