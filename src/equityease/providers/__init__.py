"""Upstream market-data providers.

Architecture
------------
    Upstream API → HttpPriceProvider subclass → ProviderBar → ProviderChain → Consumer

Built-in implementations, in default priority order:

- ``TiingoProvider``: primary; deepest daily history, needs an API key.
- ``YahooFinanceProvider``: secondary; keyless, intraday-capable.
- ``FinnhubProvider``: tertiary; quote-only, needs an API key.

Adding a fourth source means writing one ``HttpPriceProvider`` subclass and
naming it in ``providers.order``; consumers only ever see ``ProviderChain``.
"""

from __future__ import annotations

import logging

from equityease.core.config import ProvidersConfig
from equityease.providers.base import HttpPriceProvider, PriceProvider, make_bar
from equityease.providers.chain import ProviderChain
from equityease.providers.finnhub import FinnhubProvider
from equityease.providers.tiingo import TiingoAdapter, TiingoProvider
from equityease.providers.yahoo import YahooFinanceAdapter, YahooFinanceProvider

logger = logging.getLogger(__name__)


def build_provider(name: str, config: ProvidersConfig) -> PriceProvider | None:
    """Instantiate one provider by name, or None if it lacks credentials."""
    if name == "tiingo":
        if not config.tiingo.api_key:
            logger.warning("Tiingo API key not configured; skipping provider")
            return None
        return TiingoProvider(
            api_key=config.tiingo.api_key,
            base_url=config.tiingo.base_url,
            requests_per_minute=config.tiingo.requests_per_minute,
            request_timeout=config.tiingo.request_timeout,
        )
    if name == "yahoo":
        return YahooFinanceProvider(
            base_url=config.yahoo.base_url,
            requests_per_minute=config.yahoo.requests_per_minute,
            request_timeout=config.yahoo.request_timeout,
        )
    if name == "finnhub":
        if not config.finnhub.api_key:
            logger.warning("Finnhub API key not configured; skipping provider")
            return None
        return FinnhubProvider(
            api_key=config.finnhub.api_key,
            base_url=config.finnhub.base_url,
            requests_per_minute=config.finnhub.requests_per_minute,
            request_timeout=config.finnhub.request_timeout,
        )
    raise ValueError(f"unknown provider: {name!r}")


def build_provider_chain(config: ProvidersConfig) -> ProviderChain:
    """Build the fallback chain in ``config.order``, skipping keyless providers."""
    providers = [
        provider
        for provider in (build_provider(name, config) for name in config.order)
        if provider is not None
    ]
    if not providers:
        logger.warning("No providers available; only cached data can be served")
    else:
        logger.info("Provider chain: %s", " -> ".join(p.name for p in providers))
    return ProviderChain(providers, call_timeout=config.call_timeout)


__all__ = [
    "FinnhubProvider",
    "HttpPriceProvider",
    "PriceProvider",
    "ProviderChain",
    "TiingoAdapter",
    "TiingoProvider",
    "YahooFinanceAdapter",
    "YahooFinanceProvider",
    "build_provider",
    "build_provider_chain",
    "make_bar",
]
