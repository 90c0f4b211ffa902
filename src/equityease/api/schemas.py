"""API-specific request/response schemas (Pydantic v2).

Request and response bodies are camelCase on the wire; field names stay
snake_case in Python.
"""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from equityease.core.models import (
    DataSource,
    MaintenanceResult,
    MaintenanceStatus,
    StockSnapshot,
    TimeRange,
)


class CamelModel(BaseModel):
    """Base for wire models: camelCase aliases, snake_case attributes."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# -- Error --


class ErrorResponse(BaseModel):
    """Standard error envelope."""

    error: str
    detail: str | None = None


# -- Stocks --


class StockCacheRequest(CamelModel):
    """Body for POST /api/stocks/cache."""

    symbols: list[str]
    time_range: TimeRange
    force_refresh: bool = False
    refresh_daily_only: bool = False


class ChartDataResponse(CamelModel):
    labels: list[str] = []
    open: list[float] = []
    high: list[float] = []
    low: list[float] = []
    close: list[float] = []
    volume: list[int] = []


class StockResponse(CamelModel):
    """One symbol's result, whichever path produced it."""

    symbol: str
    name: str
    current_price: float
    change: float
    change_percent: float
    volume: int
    high: float
    low: float
    open: float
    data_source: DataSource
    chart_data: ChartDataResponse

    @classmethod
    def from_snapshot(cls, snapshot: StockSnapshot) -> StockResponse:
        return cls.model_validate(snapshot.model_dump())


# -- Maintenance --


class MaintenanceRequest(CamelModel):
    """Body for POST /api/data-maintenance."""

    action: str
    symbols: list[str] | None = None
    lookback_days: int | None = Field(None, ge=1)
    force_refresh_days: int | None = Field(None, ge=1)


class MaintenanceResultResponse(CamelModel):
    symbol: str
    status: MaintenanceStatus
    missing_dates: int = 0
    filled_gaps: int = 0
    updated_records: int = 0
    error: str | None = None

    @classmethod
    def from_result(cls, result: MaintenanceResult) -> MaintenanceResultResponse:
        return cls.model_validate(result.model_dump())


class MaintenanceResponse(CamelModel):
    success: bool = True
    action: str
    results: list[MaintenanceResultResponse]
    timestamp: datetime


# -- Health --


class HealthResponse(BaseModel):
    """Response for GET /api/health."""

    status: str = "ok"
    version: str
    tracked_symbols: int
    daily_bars: int
