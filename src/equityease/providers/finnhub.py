"""Finnhub: tertiary, quote-only provider.

The free tier no longer serves candles, so this adapter contributes a live
headline price and nothing else. ``fetch_history`` is always empty and
never touches the network.
"""

from __future__ import annotations

from datetime import date
from typing import Any

from equityease.core.models import DataSource, Granularity, ProviderBar, ProviderQuote
from equityease.providers.base import HttpPriceProvider

_BASE_URL = "https://finnhub.io/api/v1"
_QUOTE_PATH = "/quote"


def adapt_quote(raw_data: Any) -> ProviderQuote:
    """Parse ``{c, d, dp, h, l, o, pc}``; ``c == 0`` means unknown symbol."""
    price = raw_data.get("c") or 0.0
    if not price:
        return ProviderQuote.zeroed(DataSource.FINNHUB)
    return ProviderQuote(
        price=float(price),
        high=float(raw_data.get("h") or 0.0),
        low=float(raw_data.get("l") or 0.0),
        open=float(raw_data.get("o") or 0.0),
        change=float(raw_data.get("d") or 0.0),
        change_percent=float(raw_data.get("dp") or 0.0),
        source=DataSource.FINNHUB,
    )


class FinnhubProvider(HttpPriceProvider):
    name = DataSource.FINNHUB

    def __init__(
        self,
        api_key: str,
        base_url: str = _BASE_URL,
        requests_per_minute: int = 60,
        request_timeout: float = 10.0,
    ) -> None:
        super().__init__(
            base_url,
            requests_per_minute=requests_per_minute,
            request_timeout=request_timeout,
            headers={"X-Finnhub-Token": api_key},
        )

    async def _fetch_history(
        self, ticker: str, start: date, end: date, granularity: Granularity
    ) -> list[ProviderBar]:
        return []

    async def _fetch_quote(self, ticker: str) -> ProviderQuote:
        raw = await self._get_json(_QUOTE_PATH, ticker, params={"symbol": ticker})
        return adapt_quote(raw)
