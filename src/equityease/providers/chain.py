"""Ordered fallback across provider adapters."""

from __future__ import annotations

import asyncio
import logging
from datetime import date
from typing import Sequence

from equityease.core.models import DataSource, Granularity, ProviderBar, ProviderQuote
from equityease.providers.base import PriceProvider

logger = logging.getLogger(__name__)


class ProviderChain:
    """Tries providers in priority order until one returns data.

    Each call is bounded by ``call_timeout`` seconds; a provider that times
    out or raises is treated exactly like one that returned nothing.
    """

    def __init__(
        self,
        providers: Sequence[PriceProvider],
        call_timeout: float = 20.0,
    ) -> None:
        self._providers = list(providers)
        self._call_timeout = call_timeout

    @property
    def names(self) -> list[DataSource]:
        return [p.name for p in self._providers]

    def __len__(self) -> int:
        return len(self._providers)

    async def __aenter__(self) -> ProviderChain:
        return self

    async def __aexit__(self, *exc: object) -> None:
        await self.close()

    async def close(self) -> None:
        for provider in self._providers:
            await provider.close()

    async def fetch_history(
        self,
        ticker: str,
        start: date,
        end: date,
        granularity: Granularity = Granularity.DAILY,
    ) -> tuple[DataSource | None, list[ProviderBar]]:
        """First non-empty history in priority order.

        Returns:
            ``(source, bars)``; ``(None, [])`` when every provider came back
            empty.
        """
        for provider in self._providers:
            try:
                bars = await asyncio.wait_for(
                    provider.fetch_history(ticker, start, end, granularity),
                    timeout=self._call_timeout,
                )
            except asyncio.TimeoutError:
                logger.warning(
                    "%s timed out after %.1fs fetching history for %s",
                    provider.name, self._call_timeout, ticker,
                )
                continue
            except Exception:
                logger.exception(
                    "%s raised while fetching history for %s", provider.name, ticker
                )
                continue

            if bars:
                logger.info(
                    "History for %s served by %s (%d bars)",
                    ticker, provider.name, len(bars),
                )
                return provider.name, bars
            logger.info("%s returned no history for %s, falling through", provider.name, ticker)

        logger.warning("All providers returned empty history for %s", ticker)
        return None, []

    async def fetch_quote(self, ticker: str) -> ProviderQuote:
        """First non-zero quote in priority order, else a zeroed quote."""
        for provider in self._providers:
            try:
                quote = await asyncio.wait_for(
                    provider.fetch_quote(ticker), timeout=self._call_timeout
                )
            except asyncio.TimeoutError:
                logger.warning(
                    "%s timed out after %.1fs fetching quote for %s",
                    provider.name, self._call_timeout, ticker,
                )
                continue
            except Exception:
                logger.exception(
                    "%s raised while fetching quote for %s", provider.name, ticker
                )
                continue

            if not quote.is_empty:
                return quote

        logger.warning("No provider returned a quote for %s", ticker)
        return ProviderQuote.zeroed()
