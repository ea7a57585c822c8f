"""Instrument directories mapping instrument ids to display tickers.

The directory is queried once at startup. Its keys double as the subscription
list for the live feed, so a currency filter narrows both the watched universe
and the reported tickers.
"""

import logging
from collections.abc import Mapping
from typing import Any, cast

import httpx

from robot_scanner.apps.robot_detector.exceptions import InstrumentDirectoryError

logger = logging.getLogger(__name__)

_HTTP_BAD_REQUEST = 400


class StaticInstrumentDirectory:
    """Directory backed by a fixed id-to-ticker mapping (e.g. from settings.yaml)."""

    def __init__(self, tickers: Mapping[str, str]) -> None:
        """Initialize with a mapping of instrument id to ticker."""
        self._tickers = {str(k): str(v) for k, v in tickers.items()}

    async def load(self) -> dict[str, str]:
        """Return a copy of the configured mapping."""
        return dict(self._tickers)


class HttpInstrumentDirectory:
    """Directory loaded from a JSON instruments endpoint.

    The endpoint returns either a list of instrument objects or an object
    with an ``instruments`` list. Each instrument needs ``instrument_id``
    (or ``figi``) and ``ticker``; ``currency`` is used for filtering.

    Args:
        url: Full URL of the instruments endpoint.
        currency: Keep only instruments quoted in this currency
            (case-insensitive). ``None`` keeps everything.
        timeout: Request timeout in seconds.

    """

    def __init__(self, url: str, *, currency: str | None = None, timeout: float = 30.0) -> None:
        """Initialize the directory client."""
        self.url = url
        self._currency = currency.upper() if currency else None
        self._http_client = httpx.AsyncClient(timeout=timeout)

    async def load(self) -> dict[str, str]:
        """Fetch instruments and return the id-to-ticker mapping.

        Returns:
            Mapping of instrument id to ticker for matching instruments.

        Raises:
            InstrumentDirectoryError: On a transport failure, an HTTP error
                response, or a payload that is not a list of instrument objects.

        """
        try:
            response = await self._http_client.request("GET", self.url)
        except httpx.HTTPError as exc:
            msg = f"Instrument lookup failed for {self.url}: {exc}"
            raise InstrumentDirectoryError(msg) from exc
        if response.status_code >= _HTTP_BAD_REQUEST:
            msg = f"Instrument lookup failed for {self.url}"
            raise InstrumentDirectoryError(msg, status_code=response.status_code)

        try:
            payload: Any = response.json()
        except ValueError as exc:
            msg = f"Instrument endpoint returned invalid JSON: {exc}"
            raise InstrumentDirectoryError(msg) from exc

        if isinstance(payload, dict):
            payload = cast("dict[str, Any]", payload).get("instruments")
        if not isinstance(payload, list):
            msg = "Instrument payload must be a list or contain an 'instruments' list"
            raise InstrumentDirectoryError(msg)

        tickers: dict[str, str] = {}
        for item in cast("list[Any]", payload):
            if not isinstance(item, dict):
                continue
            entry = cast("dict[str, Any]", item)
            instrument_id = entry.get("instrument_id") or entry.get("figi")
            ticker = entry.get("ticker")
            if not instrument_id or not ticker:
                logger.debug("Skipping incomplete instrument entry: %s", entry)
                continue
            if self._currency and str(entry.get("currency", "")).upper() != self._currency:
                continue
            tickers[str(instrument_id)] = str(ticker)

        logger.info("Loaded %d instruments from %s", len(tickers), self.url)
        return tickers

    async def close(self) -> None:
        """Close the underlying HTTP client."""
        await self._http_client.aclose()

    async def __aenter__(self) -> "HttpInstrumentDirectory":
        """Enter async context manager."""
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        """Exit async context manager."""
        await self.close()
