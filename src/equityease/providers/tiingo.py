"""Tiingo: primary daily-bar provider.

Best history depth on the free tier and the only source whose daily bars
reliably carry volume. Requires an API token, sent as an ``Authorization``
header rather than a query parameter so it never shows up in logged URLs.
"""

from __future__ import annotations

import logging
from datetime import date
from typing import Any

from equityease.core.exceptions import ProviderError
from equityease.core.models import DataSource, Granularity, ProviderBar, ProviderQuote
from equityease.providers.base import HttpPriceProvider, make_bar

logger = logging.getLogger(__name__)

_BASE_URL = "https://api.tiingo.com"
_PRICES_PATH = "/tiingo/daily/{ticker}/prices"
_IEX_PATH = "/iex/{ticker}"


class TiingoAdapter:
    """Transforms Tiingo JSON payloads into canonical records."""

    def adapt_history(self, raw_data: Any, ticker: str) -> list[ProviderBar]:
        """Parse the ``/tiingo/daily/{ticker}/prices`` array.

        Each entry's ``date`` is an ISO timestamp at midnight UTC labelling
        the trading day, so the calendar date is taken verbatim from its
        first ten characters.
        """
        if not isinstance(raw_data, list):
            raise ProviderError(
                f"expected a JSON array, got {type(raw_data).__name__}",
                context={"provider": "tiingo", "ticker": ticker},
            )

        bars: list[ProviderBar] = []
        for item in raw_data:
            raw_date = item.get("date") if isinstance(item, dict) else None
            if not isinstance(raw_date, str):
                continue
            try:
                trading_date = date.fromisoformat(raw_date[:10])
            except ValueError:
                continue
            bar = make_bar(
                DataSource.TIINGO,
                ticker,
                trading_date,
                item.get("open"),
                item.get("high"),
                item.get("low"),
                item.get("close"),
                item.get("volume"),
                item.get("adjClose"),
            )
            if bar is not None:
                bars.append(bar)
        return bars

    def adapt_quote(self, raw_data: Any) -> ProviderQuote:
        """Parse an ``/iex/{ticker}`` response (a one-element array)."""
        if isinstance(raw_data, list):
            if not raw_data:
                return ProviderQuote.zeroed(DataSource.TIINGO)
            raw_data = raw_data[0]

        price = raw_data.get("last") or raw_data.get("tngoLast") or 0.0
        prev_close = raw_data.get("prevClose") or 0.0
        change = price - prev_close if price and prev_close else 0.0
        return ProviderQuote(
            price=float(price),
            high=float(raw_data.get("high") or 0.0),
            low=float(raw_data.get("low") or 0.0),
            open=float(raw_data.get("open") or 0.0),
            change=change,
            change_percent=(change / prev_close * 100.0) if change else 0.0,
            volume=int(raw_data.get("volume") or 0),
            source=DataSource.TIINGO,
        )


class TiingoProvider(HttpPriceProvider):
    """Primary provider. Daily granularity only."""

    name = DataSource.TIINGO

    def __init__(
        self,
        api_key: str,
        base_url: str = _BASE_URL,
        requests_per_minute: int = 50,
        request_timeout: float = 15.0,
        adapter: TiingoAdapter | None = None,
    ) -> None:
        super().__init__(
            base_url,
            requests_per_minute=requests_per_minute,
            request_timeout=request_timeout,
            headers={
                "Authorization": f"Token {api_key}",
                "Content-Type": "application/json",
            },
        )
        self._adapter = adapter or TiingoAdapter()

    async def _fetch_history(
        self, ticker: str, start: date, end: date, granularity: Granularity
    ) -> list[ProviderBar]:
        if granularity != Granularity.DAILY:
            logger.debug("Tiingo does not serve %s bars; skipping %s", granularity, ticker)
            return []

        raw = await self._get_json(
            _PRICES_PATH.format(ticker=ticker),
            ticker,
            params={
                "startDate": start.isoformat(),
                "endDate": end.isoformat(),
                "resampleFreq": "daily",
            },
        )
        return self._adapter.adapt_history(raw, ticker)

    async def _fetch_quote(self, ticker: str) -> ProviderQuote:
        raw = await self._get_json(_IEX_PATH.format(ticker=ticker), ticker)
        return self._adapter.adapt_quote(raw)
