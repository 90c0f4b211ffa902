"""Maintenance Sweeper: find and backfill gaps in the Historical Cache.

Runs independently of live requests, either on a schedule (cron hits the
API, or ``equityease maintain``) or on demand. Uses the same provider chain
as the orchestrator.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import date, datetime, timedelta
from typing import Callable, Iterable

from equityease.core.config import MaintenanceConfig
from equityease.core.market_calendar import (
    is_weekend,
    now_eastern,
    today_eastern,
    weekdays_between,
)
from equityease.core.models import (
    DataSource,
    MaintenanceResult,
    MaintenanceStatus,
    ProviderBar,
    SymbolId,
    normalize_tickers,
)
from equityease.providers.chain import ProviderChain
from equityease.storage.database import Database

logger = logging.getLogger(__name__)


class MaintenanceSweeper:
    """Gap detection, gap backfill and forced re-fetch over tracked symbols.

    Parameters
    ----------
    db : Database
        Initialized store.
    providers : ProviderChain
        Adapters in priority order.
    config : MaintenanceConfig | None
        Lookbacks, buffers and retry policy. Defaults if None.
    clock : callable
        Returns the current timezone-aware time. Pinned in tests.
    """

    def __init__(
        self,
        db: Database,
        providers: ProviderChain,
        config: MaintenanceConfig | None = None,
        clock: Callable[[], datetime] = now_eastern,
    ) -> None:
        self._db = db
        self._providers = providers
        self._config = config or MaintenanceConfig()
        self._clock = clock

    def _today(self) -> date:
        return today_eastern(self._clock())

    # --- Single-symbol operations ---

    async def find_gaps(self, symbol_id: SymbolId, lookback_days: int) -> list[date]:
        """Weekdays in [today - lookback_days, today] with no cached bar."""
        today = self._today()
        start = today - timedelta(days=lookback_days)
        present = await self._db.daily_bars.list_dates(symbol_id, start, today)
        return [d for d in weekdays_between(start, today) if d not in present]

    async def backfill(self, symbol_id: SymbolId, missing_dates: Iterable[date]) -> int:
        """Fetch the covering range once and upsert only the missing dates.

        Returns the number of gaps filled. No provider call is made when
        there is nothing missing.
        """
        missing = {d for d in missing_dates if not is_weekend(d)}
        if not missing:
            return 0

        ticker = await self._ticker_for(symbol_id)
        start = min(missing) - timedelta(days=self._config.lead_buffer_days)
        end = self._today() + timedelta(days=self._config.trail_buffer_days)

        _, bars = await self._fetch_with_retry(ticker, start, end)
        relevant = [b for b in bars if b.trading_date in missing]
        if not relevant:
            logger.warning(
                "No provider data for %d missing dates of %s", len(missing), ticker
            )
            return 0

        filled = await self._db.daily_bars.upsert_many(symbol_id, relevant)
        logger.info("Filled %d of %d gaps for %s", filled, len(missing), ticker)
        return filled

    async def force_refresh(self, symbol_id: SymbolId, days: int) -> int:
        """Re-fetch and overwrite the last ``days`` of history, no gap check."""
        ticker = await self._ticker_for(symbol_id)
        today = self._today()
        _, bars = await self._fetch_with_retry(
            ticker, today - timedelta(days=days), today
        )
        if not bars:
            return 0
        updated = await self._db.daily_bars.upsert_many(symbol_id, bars)
        logger.info("Force refreshed %d bars for %s over %d days", updated, ticker, days)
        return updated

    # --- Per-symbol wrappers that never raise ---

    async def maintain_symbol(self, ticker: str, lookback_days: int) -> MaintenanceResult:
        logger.info("Starting data maintenance for %s (lookback %d days)", ticker, lookback_days)
        try:
            symbol_id = await self._db.symbols.resolve(ticker)
            missing = await self.find_gaps(symbol_id, lookback_days)
            if not missing:
                logger.info("No data gaps found for %s", ticker)
                return MaintenanceResult(symbol=ticker, status=MaintenanceStatus.UP_TO_DATE)

            logger.info(
                "Found %d missing dates for %s: %s",
                len(missing), ticker, ", ".join(d.isoformat() for d in missing),
            )
            filled = await self.backfill(symbol_id, missing)
        except Exception as e:
            logger.exception("Data maintenance failed for %s", ticker)
            return MaintenanceResult(
                symbol=ticker, status=MaintenanceStatus.ERROR, error=str(e)
            )

        return MaintenanceResult(
            symbol=ticker,
            status=MaintenanceStatus.UPDATED if filled else MaintenanceStatus.NO_DATA,
            missing_dates=len(missing),
            filled_gaps=filled,
        )

    async def force_refresh_symbol(self, ticker: str, days: int) -> MaintenanceResult:
        logger.info("Force refreshing %s for last %d days", ticker, days)
        try:
            symbol_id = await self._db.symbols.resolve(ticker)
            updated = await self.force_refresh(symbol_id, days)
        except Exception as e:
            logger.exception("Force refresh failed for %s", ticker)
            return MaintenanceResult(
                symbol=ticker, status=MaintenanceStatus.ERROR, error=str(e)
            )

        return MaintenanceResult(
            symbol=ticker,
            status=MaintenanceStatus.FORCE_REFRESHED if updated else MaintenanceStatus.NO_DATA,
            updated_records=updated,
        )

    # --- Batch entry points ---

    async def maintain(
        self,
        symbols: Iterable[str] | None = None,
        lookback_days: int | None = None,
    ) -> list[MaintenanceResult]:
        """Gap-fill each symbol in turn; one failure never stops the batch."""
        days = lookback_days or self._config.lookback_days
        return [
            await self.maintain_symbol(ticker, days)
            for ticker in self._targets(symbols)
        ]

    async def force_refresh_all(
        self,
        symbols: Iterable[str] | None = None,
        days: int | None = None,
    ) -> list[MaintenanceResult]:
        days = days or self._config.force_refresh_days
        return [
            await self.force_refresh_symbol(ticker, days)
            for ticker in self._targets(symbols)
        ]

    async def run_scheduled(self, now: datetime | None = None) -> list[MaintenanceResult]:
        """Scheduled sweep: short lookback on weekdays, long one at weekends."""
        now = now or self._clock()
        weekend = is_weekend(today_eastern(now))
        lookback = (
            self._config.weekend_lookback_days if weekend else self._config.lookback_days
        )
        logger.info(
            "Scheduled maintenance (%s run, lookback %d days)",
            "weekly" if weekend else "daily", lookback,
        )
        return await self.maintain(lookback_days=lookback)

    # --- Internals ---

    def _targets(self, symbols: Iterable[str] | None) -> list[str]:
        if symbols is None:
            return list(self._config.symbols)
        return normalize_tickers(symbols)

    async def _ticker_for(self, symbol_id: SymbolId) -> str:
        symbol = await self._db.symbols.get_by_id(symbol_id)
        if symbol is None:
            raise LookupError(f"unknown symbol id {symbol_id}")
        return symbol.ticker

    async def _fetch_with_retry(
        self, ticker: str, start: date, end: date
    ) -> tuple[DataSource | None, list[ProviderBar]]:
        """Ask the chain for history, backing off while it returns nothing."""
        attempts = self._config.max_retries
        for attempt in range(attempts):
            source, bars = await self._providers.fetch_history(ticker, start, end)
            if bars:
                return source, bars
            if attempt < attempts - 1:
                delay = self._config.retry_delay * 2**attempt
                logger.warning(
                    "No history for %s, retrying in %.1fs (attempt %d/%d)",
                    ticker, delay, attempt + 1, attempts,
                )
                await asyncio.sleep(delay)
        return None, []
