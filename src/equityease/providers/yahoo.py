"""Yahoo Finance: secondary, intraday-capable provider.

Uses the unauthenticated ``/v8/finance/chart/`` endpoint via httpx. Used
when the primary has exhausted its quota; volume is populated for daily
bars but the most recent bar is often a partial intraday snapshot.
"""

from __future__ import annotations

import logging
from datetime import date, datetime, time, timedelta
from typing import Any

from equityease.core.exceptions import ProviderError
from equityease.core.market_calendar import EASTERN, eastern_date_from_timestamp
from equityease.core.models import DataSource, Granularity, ProviderBar, ProviderQuote
from equityease.providers.base import HttpPriceProvider, make_bar

logger = logging.getLogger(__name__)

_BASE_URL = "https://query2.finance.yahoo.com"
_CHART_PATH = "/v8/finance/chart/{ticker}"

# Map our granularities to Yahoo Finance interval strings
_INTERVAL_MAP: dict[Granularity, str] = {
    Granularity.DAILY: "1d",
    Granularity.HOURLY: "1h",
    Granularity.THIRTY_MINUTES: "30m",
}


class YahooFinanceAdapter:
    """Transforms raw Yahoo Finance chart JSON into canonical records.

    This adapter understands the ``/v8/finance/chart/`` response format.
    """

    def extract_result(self, raw_data: Any, ticker: str) -> dict:
        """Return ``chart.result[0]`` or raise ProviderError."""
        chart = raw_data.get("chart") or {}
        if chart.get("error"):
            err = chart["error"]
            raise ProviderError(
                f"chart error {err.get('code')}: {err.get('description')}",
                context={"provider": "yahoo", "ticker": ticker},
            )
        results = chart.get("result")
        if not results:
            raise ProviderError(
                "chart returned no results",
                context={"provider": "yahoo", "ticker": ticker},
            )
        return results[0]

    def adapt_history(self, result: dict, ticker: str) -> list[ProviderBar]:
        """Parse a chart result into ProviderBars.

        Parameters
        ----------
        result : dict
            The ``chart.result[0]`` object from a Yahoo Finance chart response.
        ticker : str
            The ticker symbol.

        Returns
        -------
        list[ProviderBar]
            Bars with null values are skipped. Timestamps are mapped to the
            US/Eastern calendar date of the session they belong to.
        """
        timestamps: list[int] = result.get("timestamp") or []
        if not timestamps:
            return []

        indicators = result.get("indicators") or {}
        quotes = (indicators.get("quote") or [{}])[0]
        adjclose_data = indicators.get("adjclose") or []
        adj_closes: list[float | None] = (
            adjclose_data[0].get("adjclose", []) if adjclose_data else []
        )

        opens: list[float | None] = quotes.get("open") or []
        highs: list[float | None] = quotes.get("high") or []
        lows: list[float | None] = quotes.get("low") or []
        closes: list[float | None] = quotes.get("close") or []
        volumes: list[int | None] = quotes.get("volume") or []

        def at(values: list, i: int) -> Any:
            return values[i] if i < len(values) else None

        bars: list[ProviderBar] = []
        for i, ts in enumerate(timestamps):
            bar = make_bar(
                DataSource.YAHOO,
                ticker,
                eastern_date_from_timestamp(ts),
                at(opens, i),
                at(highs, i),
                at(lows, i),
                at(closes, i),
                at(volumes, i),
                at(adj_closes, i),
            )
            if bar is not None:
                bars.append(bar)
        return bars

    def adapt_quote(self, result: dict) -> ProviderQuote:
        """Headline quote from the chart ``meta`` block plus the day's open."""
        meta = result.get("meta") or {}
        price = meta.get("regularMarketPrice") or 0.0
        prev_close = meta.get("chartPreviousClose") or meta.get("previousClose") or 0.0

        quotes = ((result.get("indicators") or {}).get("quote") or [{}])[0]
        opens = [o for o in (quotes.get("open") or []) if o is not None]

        change = price - prev_close if price and prev_close else 0.0
        return ProviderQuote(
            price=float(price),
            high=float(meta.get("regularMarketDayHigh") or 0.0),
            low=float(meta.get("regularMarketDayLow") or 0.0),
            open=float(opens[0]) if opens else 0.0,
            change=change,
            change_percent=(change / prev_close * 100.0) if change else 0.0,
            volume=int(meta.get("regularMarketVolume") or 0),
            source=DataSource.YAHOO,
        )


class YahooFinanceProvider(HttpPriceProvider):
    """Fetches price data from Yahoo Finance's chart API."""

    name = DataSource.YAHOO

    def __init__(
        self,
        base_url: str = _BASE_URL,
        requests_per_minute: int = 60,
        request_timeout: float = 15.0,
        adapter: YahooFinanceAdapter | None = None,
    ) -> None:
        super().__init__(
            base_url,
            requests_per_minute=requests_per_minute,
            request_timeout=request_timeout,
        )
        self._adapter = adapter or YahooFinanceAdapter()

    async def _fetch_history(
        self, ticker: str, start: date, end: date, granularity: Granularity
    ) -> list[ProviderBar]:
        # period2 is exclusive, so extend to the start of the following day
        period1 = int(datetime.combine(start, time.min, tzinfo=EASTERN).timestamp())
        period2 = int(
            datetime.combine(end + timedelta(days=1), time.min, tzinfo=EASTERN).timestamp()
        )
        raw = await self._get_json(
            _CHART_PATH.format(ticker=ticker),
            ticker,
            params={
                "interval": _INTERVAL_MAP[granularity],
                "period1": str(period1),
                "period2": str(period2),
                "events": "div,split",
            },
        )
        result = self._adapter.extract_result(raw, ticker)
        return self._adapter.adapt_history(result, ticker)

    async def _fetch_quote(self, ticker: str) -> ProviderQuote:
        raw = await self._get_json(
            _CHART_PATH.format(ticker=ticker),
            ticker,
            params={"interval": "1d", "range": "1d"},
        )
        result = self._adapter.extract_result(raw, ticker)
        return self._adapter.adapt_quote(result)
