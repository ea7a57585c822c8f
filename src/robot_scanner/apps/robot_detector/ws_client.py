"""Async WebSocket client for a market-data trade stream.

Connect to a trade stream endpoint, subscribe to trades for a set of
instruments, and yield each trade as a ``Tick``. Handle auto-reconnect with
exponential backoff, ping/pong keepalive, and graceful shutdown.

Expected trade message shape (single object or array of objects)::

    {"event_type": "trade", "instrument_id": "BBG004730N88",
     "quantity": 10, "timestamp": 1700000000123}

``timestamp`` may also be an ISO 8601 string (``2024-01-01T10:00:00.123Z``).
"""

from __future__ import annotations

import asyncio
import json
import logging
from datetime import datetime
from typing import TYPE_CHECKING, Any, cast

from websockets import ConnectionClosed
from websockets.asyncio.client import ClientConnection, connect

from robot_scanner.core.models import Tick

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

logger = logging.getLogger(__name__)

_RECONNECT_MAX_DELAY = 60.0
_PING_INTERVAL = 20
_PING_TIMEOUT = 10
_MS_PER_SECOND = 1000
_TRADE_EVENT = "trade"


class TradeFeed:
    """Async WebSocket client for streaming trade ticks.

    Connect to the trade stream, subscribe to one or more instruments, and
    yield parsed ``Tick`` objects. Automatically reconnect with exponential
    backoff on connection failures.

    Args:
        url: WebSocket endpoint of the trade stream.
        reconnect_base_delay: Initial reconnect wait in seconds, doubled on
            each consecutive failure up to 60 seconds.

    """

    def __init__(self, url: str, *, reconnect_base_delay: float = 5.0) -> None:
        """Initialize the trade feed.

        Args:
            url: WebSocket endpoint of the trade stream.
            reconnect_base_delay: Initial delay in seconds between reconnect
                attempts.

        """
        self._url = url
        self._reconnect_base_delay = reconnect_base_delay
        self._ws: ClientConnection | None = None
        self._closed = False

    async def stream(self, instrument_ids: list[str]) -> AsyncIterator[Tick]:
        """Connect and yield trade ticks until closed.

        Automatically reconnect on failures with exponential backoff. The
        delay resets after any successfully received tick.

        Args:
            instrument_ids: Instruments to subscribe to.

        Yields:
            Parsed ticks in the order the server sends them.

        """
        delay = self._reconnect_base_delay
        while not self._closed:
            try:
                async for tick in self._connect_and_listen(instrument_ids):
                    yield tick
                    delay = self._reconnect_base_delay
                if not self._closed:
                    logger.info("Trade stream completed by server")
            except ConnectionClosed as exc:
                if self._closed:
                    return
                logger.warning("Trade stream connection closed: %s", exc)
            except OSError as exc:
                if self._closed:
                    return
                logger.warning("Trade stream connection error: %s", exc)

            if self._closed:
                return

            logger.info("Reconnecting in %.1fs...", delay)
            await asyncio.sleep(delay)
            delay = min(delay * 2, _RECONNECT_MAX_DELAY)

    async def close(self) -> None:
        """Gracefully close the WebSocket connection."""
        self._closed = True
        if self._ws is not None:
            await self._ws.close()
            self._ws = None
        logger.info("TradeFeed closed")

    async def _connect_and_listen(self, instrument_ids: list[str]) -> AsyncIterator[Tick]:
        """Open a connection, subscribe, and yield ticks.

        Args:
            instrument_ids: Instruments to subscribe to.

        Yields:
            Parsed ticks.

        """
        async with connect(
            self._url,
            ping_interval=_PING_INTERVAL,
            ping_timeout=_PING_TIMEOUT,
        ) as ws:
            self._ws = ws
            await ws.send(json.dumps(_build_subscribe_message(instrument_ids)))
            logger.info("Connected and subscribed to %d instruments", len(instrument_ids))

            async for raw in ws:
                for tick in _parse_message(raw):
                    yield tick


def _build_subscribe_message(instrument_ids: list[str]) -> dict[str, object]:
    """Build a trade subscription message.

    Args:
        instrument_ids: Instruments to subscribe to.

    Returns:
        Subscription message dictionary.

    """
    return {
        "type": "subscribe",
        "channel": "trades",
        "instruments": instrument_ids,
    }


def _parse_message(raw: str | bytes) -> list[Tick]:
    """Parse a raw WebSocket message into ticks.

    Non-trade events and malformed trades are skipped.

    Args:
        raw: Raw WebSocket message (string or bytes).

    Returns:
        Ticks contained in the message, possibly empty.

    """
    try:
        data: Any = json.loads(raw)
    except (json.JSONDecodeError, TypeError):
        logger.debug("Ignoring unparseable message: %s", raw[:100] if raw else raw)
        return []

    if isinstance(data, dict):
        items: list[Any] = [data]
    elif isinstance(data, list):
        items = cast("list[Any]", data)
    else:
        return []

    ticks: list[Tick] = []
    for item in items:
        if not isinstance(item, dict):
            continue
        event = cast("dict[str, Any]", item)
        if event.get("event_type") != _TRADE_EVENT:
            continue
        tick = parse_trade_event(event)
        if tick is not None:
            ticks.append(tick)
    return ticks


def parse_trade_event(event: dict[str, Any]) -> Tick | None:
    """Convert a trade event dictionary into a ``Tick``.

    Args:
        event: Trade event with ``instrument_id``, ``quantity`` and
            ``timestamp`` fields.

    Returns:
        The parsed tick, or ``None`` if a field is missing or malformed.

    """
    try:
        instrument_id = str(event["instrument_id"])
        quantity = int(event["quantity"])
        timestamp = _parse_event_time(event["timestamp"])
    except (KeyError, TypeError, ValueError):
        logger.debug("Skipping malformed trade event: %s", event)
        return None
    if not instrument_id:
        logger.debug("Skipping trade event without instrument: %s", event)
        return None
    return Tick(timestamp=timestamp, quantity=quantity, instrument_id=instrument_id)


def _parse_event_time(value: Any) -> int:
    """Return epoch milliseconds from a numeric or ISO 8601 timestamp."""
    if isinstance(value, str) and not value.lstrip("-").isdigit():
        dt = datetime.fromisoformat(value)
        if dt.tzinfo is None:
            msg = f"Timestamp without timezone: {value!r}"
            raise ValueError(msg)
        return round(dt.timestamp() * _MS_PER_SECOND)
    return int(value)
