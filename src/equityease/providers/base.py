"""Provider protocol and shared HTTP plumbing.

Architecture
------------
Every upstream market-data source is wrapped by one adapter class that
turns the source's idiosyncratic JSON into canonical ``ProviderBar`` and
``ProviderQuote`` records:

    Upstream REST API → HttpPriceProvider subclass → ProviderBar / ProviderQuote

The public ``fetch_history`` / ``fetch_quote`` methods never raise for an
upstream failure. Subclasses implement ``_fetch_history`` / ``_fetch_quote``
and may raise ``ProviderError`` (or simply hit a ``KeyError`` on a
malformed payload); the base class logs the reason and hands back an empty
sequence or a zeroed quote so the chain can fall through.
"""

from __future__ import annotations

import logging
from datetime import date
from typing import Any, ClassVar, Protocol, runtime_checkable

import httpx
from aiolimiter import AsyncLimiter
from pydantic import ValidationError

from equityease.core.exceptions import ProviderError, RateLimitError
from equityease.core.models import DataSource, Granularity, ProviderBar, ProviderQuote

logger = logging.getLogger(__name__)

_USER_AGENT = "Mozilla/5.0 (compatible; equityease/0.1)"

# Payload shape problems surface as one of these while parsing.
_MALFORMED_PAYLOAD = (KeyError, IndexError, TypeError, ValueError, AttributeError)


@runtime_checkable
class PriceProvider(Protocol):
    """Consumer-facing interface for one upstream price source.

    All code that needs prices should depend on this protocol, never on a
    concrete adapter. Both fetch methods must degrade instead of raising.
    """

    name: DataSource

    async def fetch_history(
        self,
        ticker: str,
        start: date,
        end: date,
        granularity: Granularity = Granularity.DAILY,
    ) -> list[ProviderBar]:
        """Bars in [start, end] sorted ascending, or [] on any failure."""
        ...

    async def fetch_quote(self, ticker: str) -> ProviderQuote:
        """Latest quote, or a zeroed quote on any failure."""
        ...

    async def close(self) -> None: ...


def make_bar(
    source: DataSource,
    ticker: str,
    trading_date: date,
    open_: Any,
    high: Any,
    low: Any,
    close: Any,
    volume: Any = None,
    adj_close: Any = None,
) -> ProviderBar | None:
    """Build a ProviderBar from raw values, or None if the values are unusable.

    Null OHLC values, high < low and negative volume all drop the bar.
    """
    if any(x is None for x in (open_, high, low, close)):
        return None
    try:
        return ProviderBar(
            ticker=ticker,
            trading_date=trading_date,
            open=float(open_),
            high=float(high),
            low=float(low),
            close=float(close),
            volume=int(volume) if volume is not None else 0,
            adj_close=float(adj_close) if adj_close is not None else None,
            source=source,
        )
    except (ValidationError, TypeError, ValueError):
        logger.debug(
            "Dropping malformed %s bar for %s on %s", source, ticker, trading_date
        )
        return None


class HttpPriceProvider:
    """Base class for adapters backed by a rate-limited REST API.

    Parameters
    ----------
    base_url : str
        Root URL of the provider (no trailing slash needed).
    requests_per_minute : int
        Token-bucket size for the adapter's own ``AsyncLimiter``.
    request_timeout : float
        httpx timeout in seconds.
    headers : dict | None
        Extra headers (auth tokens) sent with every request.
    """

    name: ClassVar[DataSource]

    def __init__(
        self,
        base_url: str,
        requests_per_minute: int = 60,
        request_timeout: float = 15.0,
        headers: dict[str, str] | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._limiter = AsyncLimiter(max_rate=requests_per_minute, time_period=60.0)
        self._client = httpx.AsyncClient(
            headers={"User-Agent": _USER_AGENT, **(headers or {})},
            timeout=httpx.Timeout(request_timeout),
            follow_redirects=True,
        )

    async def __aenter__(self) -> HttpPriceProvider:
        return self

    async def __aexit__(self, *exc: object) -> None:
        await self.close()

    async def close(self) -> None:
        """Close the underlying HTTP client."""
        await self._client.aclose()

    # --- Public, never-raising contract ---

    async def fetch_history(
        self,
        ticker: str,
        start: date,
        end: date,
        granularity: Granularity = Granularity.DAILY,
    ) -> list[ProviderBar]:
        try:
            bars = await self._fetch_history(ticker, start, end, granularity)
        except ProviderError as e:
            logger.warning("%s history unavailable for %s: %s", self.name, ticker, e)
            return []
        except _MALFORMED_PAYLOAD as e:
            logger.warning(
                "%s returned a malformed history payload for %s: %r",
                self.name, ticker, e,
            )
            return []

        bars = [b for b in bars if start <= b.trading_date <= end]
        logger.debug(
            "%s returned %d bars for %s (%s..%s)",
            self.name, len(bars), ticker, start, end,
        )
        return sorted(bars, key=lambda b: b.trading_date)

    async def fetch_quote(self, ticker: str) -> ProviderQuote:
        try:
            return await self._fetch_quote(ticker)
        except ProviderError as e:
            logger.warning("%s quote unavailable for %s: %s", self.name, ticker, e)
        except _MALFORMED_PAYLOAD as e:
            logger.warning(
                "%s returned a malformed quote payload for %s: %r",
                self.name, ticker, e,
            )
        return ProviderQuote.zeroed(self.name)

    # --- Subclass hooks ---

    async def _fetch_history(
        self, ticker: str, start: date, end: date, granularity: Granularity
    ) -> list[ProviderBar]:
        raise NotImplementedError

    async def _fetch_quote(self, ticker: str) -> ProviderQuote:
        raise NotImplementedError

    # --- HTTP ---

    async def _get_json(
        self,
        path: str,
        ticker: str,
        params: dict[str, str] | None = None,
    ) -> Any:
        """GET ``path`` under the base URL and decode the JSON body.

        Raises:
            RateLimitError: On HTTP 429.
            ProviderError: On any other non-2xx status, transport failure or
                a body that is not JSON.
        """
        url = f"{self._base_url}{path}"
        context = {"provider": str(self.name), "ticker": ticker}

        await self._limiter.acquire()
        try:
            response = await self._client.get(url, params=params)
        except httpx.RequestError as e:
            raise ProviderError(
                f"request error: {e}", context={**context, "status_code": None}
            ) from e

        if response.status_code == 429:
            retry_after = response.headers.get("Retry-After")
            raise RateLimitError(
                "rate limit exceeded",
                context={
                    **context,
                    "status_code": 429,
                    "retry_after": int(retry_after) if retry_after and retry_after.isdigit() else None,
                },
            )
        if response.status_code >= 400:
            raise ProviderError(
                f"HTTP {response.status_code}: {response.text[:200]}",
                context={**context, "status_code": response.status_code},
            )

        try:
            return response.json()
        except ValueError as e:
            raise ProviderError(
                "response body is not JSON",
                context={**context, "status_code": response.status_code},
            ) from e
