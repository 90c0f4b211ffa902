"""Pydantic data models: the system's type contracts."""

from __future__ import annotations

from datetime import date, datetime, timedelta
from enum import StrEnum
from typing import Iterable

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

# --- Type Aliases ---

Ticker = str
SymbolId = int

# --- Enumerations ---


class TimeRange(StrEnum):
    """Chart windows a caller may request."""

    ONE_MONTH = "1m"
    THREE_MONTHS = "3m"
    SIX_MONTHS = "6m"

    @property
    def days(self) -> int:
        """Calendar-day lookback covered by this range."""
        return _TIME_RANGE_DAYS[self]


_TIME_RANGE_DAYS: dict[TimeRange, int] = {
    TimeRange.ONE_MONTH: 30,
    TimeRange.THREE_MONTHS: 90,
    TimeRange.SIX_MONTHS: 180,
}


class DataSource(StrEnum):
    """Where a price series (or a single bar) came from."""

    TIINGO = "tiingo"
    YAHOO = "yahoo"
    FINNHUB = "finnhub"
    HISTORICAL_CACHE = "historical_cache"
    ERROR = "error"


class Granularity(StrEnum):
    """Bar sizes an adapter may be asked for."""

    DAILY = "1d"
    HOURLY = "1h"
    THIRTY_MINUTES = "30m"


class MaintenanceAction(StrEnum):
    """Manual maintenance actions."""

    MAINTAIN = "maintain"
    FORCE_REFRESH = "force_refresh"


class MaintenanceStatus(StrEnum):
    """Per-symbol outcome of a maintenance run."""

    UP_TO_DATE = "up_to_date"
    UPDATED = "updated"
    NO_DATA = "no_data"
    FORCE_REFRESHED = "force_refreshed"
    ERROR = "error"


def normalize_tickers(raw: Iterable[object]) -> list[Ticker]:
    """Strip, upper-case and de-duplicate tickers, keeping first-seen order.

    Non-string and blank entries are dropped.
    """
    seen: dict[str, None] = {}
    for item in raw:
        if not isinstance(item, str):
            continue
        ticker = item.strip().upper()
        if ticker:
            seen.setdefault(ticker, None)
    return list(seen)


# --- Reference Data ---


class Symbol(BaseModel):
    """A tracked instrument. ``id`` never changes once assigned."""

    model_config = ConfigDict(frozen=True)

    id: SymbolId
    ticker: Ticker
    display_name: str

    @field_validator("ticker")
    @classmethod
    def ticker_upper(cls, v: str) -> str:
        v = v.strip().upper()
        if not v:
            raise ValueError("ticker must not be blank")
        return v


# --- Price Records ---


class ProviderBar(BaseModel):
    """One OHLCV bar as normalised by a provider adapter.

    Every adapter produces this shape regardless of the upstream payload.
    """

    model_config = ConfigDict(frozen=True)

    ticker: Ticker
    trading_date: date
    open: float
    high: float
    low: float
    close: float
    volume: int = 0
    adj_close: float | None = None
    source: DataSource

    @field_validator("volume")
    @classmethod
    def volume_non_negative(cls, v: int) -> int:
        if v < 0:
            raise ValueError(f"volume must be >= 0, got {v}")
        return v

    @model_validator(mode="after")
    def high_gte_low(self) -> ProviderBar:
        if self.high < self.low:
            raise ValueError(
                f"high ({self.high}) must be >= low ({self.low})"
            )
        return self

    @property
    def adjusted_close(self) -> float:
        """Return adj_close if available, otherwise close."""
        return self.adj_close if self.adj_close is not None else self.close


class DailyBar(BaseModel):
    """A cached trading day; (symbol_id, trading_date) is the natural key."""

    model_config = ConfigDict(frozen=True)

    symbol_id: SymbolId
    trading_date: date
    open: float
    high: float
    low: float
    close: float
    adjusted_close: float
    volume: int
    source: DataSource

    @field_validator("volume")
    @classmethod
    def volume_non_negative(cls, v: int) -> int:
        if v < 0:
            raise ValueError(f"volume must be >= 0, got {v}")
        return v

    @classmethod
    def from_provider_bar(cls, symbol_id: SymbolId, bar: ProviderBar) -> DailyBar:
        return cls(
            symbol_id=symbol_id,
            trading_date=bar.trading_date,
            open=bar.open,
            high=bar.high,
            low=bar.low,
            close=bar.close,
            adjusted_close=bar.adjusted_close,
            volume=bar.volume,
            source=bar.source,
        )


class PointQuote(BaseModel):
    """The single most recent price observation kept for a symbol."""

    model_config = ConfigDict(frozen=True)

    symbol_id: SymbolId
    observed_at: datetime
    price: float
    source: DataSource

    def is_stale(self, now: datetime, ttl: timedelta) -> bool:
        """Stale once ``ttl`` or more has elapsed since observation."""
        return now - self.observed_at >= ttl


class ProviderQuote(BaseModel):
    """Headline quote from a provider; all zeros when the call failed."""

    model_config = ConfigDict(frozen=True)

    price: float = 0.0
    high: float = 0.0
    low: float = 0.0
    open: float = 0.0
    change: float = 0.0
    change_percent: float = 0.0
    volume: int = 0
    source: DataSource | None = None

    @classmethod
    def zeroed(cls, source: DataSource | None = None) -> ProviderQuote:
        return cls(source=source)

    @property
    def is_empty(self) -> bool:
        return self.price <= 0


# --- Response Shapes ---


class ChartData(BaseModel):
    """Parallel arrays keyed by ISO date label."""

    labels: list[str] = []
    open: list[float] = []
    high: list[float] = []
    low: list[float] = []
    close: list[float] = []
    volume: list[int] = []

    @model_validator(mode="after")
    def arrays_aligned(self) -> ChartData:
        n = len(self.labels)
        for name in ("open", "high", "low", "close", "volume"):
            if len(getattr(self, name)) != n:
                raise ValueError(
                    f"chart array '{name}' has {len(getattr(self, name))} "
                    f"entries, expected {n}"
                )
        return self


class StockSnapshot(BaseModel):
    """Uniform per-symbol result, whichever path produced it."""

    symbol: Ticker
    name: str
    current_price: float = 0.0
    change: float = 0.0
    change_percent: float = 0.0
    volume: int = 0
    high: float = 0.0
    low: float = 0.0
    open: float = 0.0
    data_source: DataSource
    chart_data: ChartData = Field(default_factory=ChartData)

    @property
    def is_error(self) -> bool:
        return self.data_source == DataSource.ERROR


class StockRequest(BaseModel):
    """A batch price request for one chart window."""

    model_config = ConfigDict(frozen=True)

    symbols: list[Ticker]
    time_range: TimeRange
    force_refresh: bool = False
    refresh_daily_only: bool = False

    @field_validator("symbols", mode="before")
    @classmethod
    def symbols_normalized(cls, v: object) -> list[str]:
        if isinstance(v, str):
            v = [v]
        if not isinstance(v, (list, tuple)):
            raise ValueError("symbols must be a list of tickers")
        tickers = normalize_tickers(v)
        if not tickers:
            raise ValueError("symbols must contain at least one ticker")
        return tickers


# --- Maintenance ---


class MaintenanceResult(BaseModel):
    """Outcome of maintaining a single symbol."""

    symbol: Ticker
    status: MaintenanceStatus
    missing_dates: int = 0
    filled_gaps: int = 0
    updated_records: int = 0
    error: str | None = None
