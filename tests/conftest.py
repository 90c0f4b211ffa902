"""Shared pytest fixtures for equityease."""

from __future__ import annotations

import asyncio
from datetime import date, datetime, timedelta

import pytest

from equityease.core.config import (
    CacheConfig,
    EquityEaseConfig,
    MaintenanceConfig,
    StorageConfig,
)
from equityease.core.market_calendar import EASTERN, is_weekend
from equityease.core.models import (
    DataSource,
    Granularity,
    ProviderBar,
    ProviderQuote,
)
from equityease.providers.chain import ProviderChain
from equityease.storage.database import Database

# Wednesday afternoon on the exchange.
PINNED_NOW = datetime(2024, 3, 13, 15, 0, tzinfo=EASTERN)
PINNED_TODAY = PINNED_NOW.date()


def weekdays_back(end: date, count: int) -> list[date]:
    """The ``count`` weekdays ending at ``end`` (inclusive), ascending."""
    days: list[date] = []
    current = end
    while len(days) < count:
        if not is_weekend(current):
            days.append(current)
        current -= timedelta(days=1)
    return sorted(days)


def bar_for(
    day: date,
    ticker: str = "TQQQ",
    source: DataSource = DataSource.TIINGO,
    close: float = 50.0,
    volume: int = 1_000_000,
) -> ProviderBar:
    return ProviderBar(
        ticker=ticker,
        trading_date=day,
        open=close - 0.5,
        high=close + 1.0,
        low=close - 1.0,
        close=close,
        volume=volume,
        source=source,
    )


def bars_for(
    days: list[date],
    ticker: str = "TQQQ",
    source: DataSource = DataSource.TIINGO,
    volume: int = 1_000_000,
) -> list[ProviderBar]:
    """One bar per day with a gently rising close."""
    return [
        bar_for(d, ticker, source, close=50.0 + i, volume=volume)
        for i, d in enumerate(days)
    ]


class FakeProvider:
    """In-memory PriceProvider that records every call."""

    def __init__(
        self,
        name: DataSource,
        bars: list[ProviderBar] | None = None,
        quote: ProviderQuote | None = None,
        delay: float = 0.0,
        error: Exception | None = None,
    ) -> None:
        self.name = name
        self.bars = list(bars or [])
        self.quote = quote or ProviderQuote.zeroed(name)
        self.delay = delay
        self.error = error
        self.history_calls: list[tuple[str, date, date]] = []
        self.quote_calls: list[str] = []
        self.closed = False

    async def fetch_history(
        self,
        ticker: str,
        start: date,
        end: date,
        granularity: Granularity = Granularity.DAILY,
    ) -> list[ProviderBar]:
        self.history_calls.append((ticker, start, end))
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return [
            b for b in self.bars
            if b.ticker == ticker and start <= b.trading_date <= end
        ]

    async def fetch_quote(self, ticker: str) -> ProviderQuote:
        self.quote_calls.append(ticker)
        if self.error is not None:
            raise self.error
        return self.quote

    async def close(self) -> None:
        self.closed = True


@pytest.fixture
def clock():
    return lambda: PINNED_NOW


@pytest.fixture
def make_provider():
    def _make(name: DataSource = DataSource.TIINGO, **kwargs) -> FakeProvider:
        return FakeProvider(name, **kwargs)

    return _make


@pytest.fixture
def make_chain():
    def _make(*providers, call_timeout: float = 1.0) -> ProviderChain:
        return ProviderChain(list(providers), call_timeout=call_timeout)

    return _make


@pytest.fixture
async def db() -> Database:
    """An initialized in-memory Database."""
    database = Database(StorageConfig(sqlite_path=":memory:"))
    await database.initialize()
    yield database
    await database.close()


@pytest.fixture
def cache_config() -> CacheConfig:
    return CacheConfig()


@pytest.fixture
def maintenance_config() -> MaintenanceConfig:
    return MaintenanceConfig(retry_delay=0.0)


@pytest.fixture
def app_config(tmp_path) -> EquityEaseConfig:
    return EquityEaseConfig(
        storage=StorageConfig(sqlite_path=str(tmp_path / "test.db")),
        maintenance=MaintenanceConfig(retry_delay=0.0),
    )


@pytest.fixture
def now() -> datetime:
    return PINNED_NOW


@pytest.fixture
def today() -> date:
    return PINNED_TODAY


@pytest.fixture
def weekdays():
    return weekdays_back


@pytest.fixture
def make_bar():
    return bar_for


@pytest.fixture
def make_bars():
    return bars_for
