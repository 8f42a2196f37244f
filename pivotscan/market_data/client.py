"""Historical candle REST API async client.

Fetches daily and intraday candles for one instrument and date range.
Transport failures, timeouts and non-success envelopes all come back as
``None`` ("no data") so the engine never sees a raw transport error.
"""

import asyncio
import logging
from typing import Optional
from urllib.parse import quote

import httpx

from pivotscan.config import Config
from pivotscan.errors import ConfigurationError
from pivotscan.market_data.models import Candle

logger = logging.getLogger("pivotscan.market_data")

USER_AGENT = "pivotscan/0.1.0"

# Retry settings
_MAX_RETRIES = 3
_RETRY_BASE_DELAY = 1.0  # seconds; doubles each attempt
_RETRYABLE_STATUS_CODES = {502, 503, 504, 429}


class MarketDataClient:
    """Async client for the market-data provider's historical candle API."""

    def __init__(self, config: Config) -> None:
        self._config = config
        self._base_url = config.market_data_api_url
        self._timeout = config.request_timeout_seconds
        self._headers = {
            "Accept": "application/json",
            "User-Agent": USER_AGENT,
        }
        if config.market_data_api_token:
            self._headers["Authorization"] = f"Bearer {config.market_data_api_token}"

    def build_url(
        self,
        instrument_key: str,
        unit: str,
        interval: int,
        from_date: str,
        to_date: str,
    ) -> str:
        """Return the candle endpoint URL.

        The provider expects the newer bound first:
        ``{base}/{key}/{unit}/{interval}/{to_date}/{from_date}``.
        """
        if not self._base_url:
            raise ConfigurationError("Market data API URL not configured")
        return (
            f"{self._base_url}/{quote(instrument_key, safe='')}"
            f"/{unit}/{interval}/{to_date}/{from_date}"
        )

    # ── Retry helper ─────────────────────────────────────────────────────

    async def _request_with_retry(self, url: str) -> Optional[httpx.Response]:
        """GET *url* with exponential-backoff retry.

        Retries on transient server errors (502, 503, 504), rate-limits
        (429) and transport errors including timeouts.  Returns ``None``
        once retries are exhausted or on a non-retryable HTTP error.
        """
        for attempt in range(_MAX_RETRIES):
            try:
                async with httpx.AsyncClient() as client:
                    resp = await client.get(
                        url,
                        headers=self._headers,
                        timeout=self._timeout,
                    )

                if resp.status_code in _RETRYABLE_STATUS_CODES:
                    delay = _RETRY_BASE_DELAY * (2 ** attempt)
                    logger.warning(
                        "GET %s returned %d, retry %d/%d in %.1fs",
                        url, resp.status_code, attempt + 1, _MAX_RETRIES, delay,
                    )
                    if attempt < _MAX_RETRIES - 1:
                        await asyncio.sleep(delay)
                    continue

                if resp.status_code != 200:
                    logger.error("GET %s failed with HTTP %d", url, resp.status_code)
                    return None
                return resp

            except httpx.TransportError as exc:
                delay = _RETRY_BASE_DELAY * (2 ** attempt)
                logger.warning(
                    "GET %s transport error (%s), retry %d/%d in %.1fs",
                    url, exc.__class__.__name__, attempt + 1, _MAX_RETRIES, delay,
                )
                if attempt < _MAX_RETRIES - 1:
                    await asyncio.sleep(delay)

        logger.error("GET %s gave up after %d attempts", url, _MAX_RETRIES)
        return None

    # ── Candle data ──────────────────────────────────────────────────────

    async def fetch_candles(
        self,
        instrument_key: str,
        unit: str,
        interval: int,
        from_date: str,
        to_date: str,
    ) -> Optional[list[Candle]]:
        """Fetch candlestick data for one instrument.

        Args:
            instrument_key: provider key, e.g. ``"NSE_EQ|INE002A01018"``
            unit: ``"days"`` or ``"minutes"``
            interval: candle size in *unit*
            from_date: ISO date, inclusive
            to_date: ISO date, inclusive

        Returns:
            List of ``Candle`` objects ordered **newest-first** as the
            provider sends them, or ``None`` if no usable data came back.
        """
        url = self.build_url(instrument_key, unit, interval, from_date, to_date)
        logger.debug("Fetching candles from %s", url)

        resp = await self._request_with_retry(url)
        if resp is None:
            return None

        try:
            payload = resp.json()
        except ValueError:
            logger.error("GET %s returned a non-JSON body", url)
            return None

        if not isinstance(payload, dict) or payload.get("status") != "success":
            logger.error("GET %s returned no success envelope", url)
            return None

        rows = (payload.get("data") or {}).get("candles") or []
        try:
            return [Candle.from_row(row) for row in rows]
        except (IndexError, TypeError, ValueError) as exc:
            logger.error("GET %s returned malformed candle rows: %s", url, exc)
            return None

    async def fetch_reference_candles(
        self, instrument_key: str, session_date: str,
    ) -> Optional[list[Candle]]:
        """Fetch the single daily candle for *session_date*."""
        return await self.fetch_candles(
            instrument_key, "days", 1, session_date, session_date,
        )

    async def fetch_session_candles(
        self, instrument_key: str, session_date: str,
    ) -> Optional[list[Candle]]:
        """Fetch intraday candles for *session_date* at the configured interval."""
        return await self.fetch_candles(
            instrument_key,
            "minutes",
            self._config.candle_interval_minutes,
            session_date,
            session_date,
        )
