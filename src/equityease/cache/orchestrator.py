"""Cache Orchestrator: decide, per symbol, where a price series comes from.

Resolution order for one (symbol, window) request, strictly in this order:

1. ``force_refresh`` skips straight to step 3.
2. Historical Cache: if it holds enough bars for the window, serve them
   and top up a stale Point Cache from the latest close. Terminal.
3. Provider escalation: the first provider in the chain with a non-empty
   history wins; its series is written to the Historical Cache, its last
   close to the Point Cache, and it is returned. Terminal.
4. Degraded: whatever partial series the Historical Cache holds, with a
   live quote as the headline price if any provider can supply one.
5. Nothing anywhere: an ``error`` record with empty arrays.

A fresh Point Cache alone never satisfies a request; charts need a series.
"""

from __future__ import annotations

import asyncio
import logging
import math
from datetime import date, datetime, timedelta
from typing import Callable, Sequence

from equityease.cache.series import error_snapshot, snapshot_from_bars
from equityease.core.config import CacheConfig
from equityease.core.exceptions import StorageError
from equityease.core.market_calendar import is_weekend, now_eastern, today_eastern
from equityease.core.models import (
    DailyBar,
    DataSource,
    ProviderBar,
    StockRequest,
    StockSnapshot,
    SymbolId,
    TimeRange,
)
from equityease.providers.chain import ProviderChain
from equityease.storage.database import Database

logger = logging.getLogger(__name__)


class CacheOrchestrator:
    """Serves batch price requests from the caches, falling back to providers.

    Parameters
    ----------
    db : Database
        Initialized store; the registry and both caches hang off it.
    providers : ProviderChain
        Adapters in priority order.
    config : CacheConfig | None
        Staleness and sufficiency thresholds. Defaults if None.
    clock : callable
        Returns the current timezone-aware time. Pinned in tests.
    """

    def __init__(
        self,
        db: Database,
        providers: ProviderChain,
        config: CacheConfig | None = None,
        clock: Callable[[], datetime] = now_eastern,
    ) -> None:
        self._db = db
        self._providers = providers
        self._config = config or CacheConfig()
        self._clock = clock

    @property
    def point_cache_ttl(self) -> timedelta:
        return timedelta(minutes=self._config.point_cache_ttl_minutes)

    def required_bars(self, days: int) -> int:
        """Bars needed to serve a ``days``-long window from cache."""
        return math.ceil(
            min(days * self._config.sufficiency_ratio, self._config.sufficiency_floor)
        )

    def is_sufficient(self, bar_count: int, days: int) -> bool:
        return bar_count >= self.required_bars(days)

    async def get_stocks(self, request: StockRequest) -> list[StockSnapshot]:
        """Resolve every requested symbol concurrently, in request order.

        A symbol that fails unexpectedly yields an ``error`` record without
        affecting its siblings. ``StorageError`` fails the whole batch and
        cancels the symbols still in flight.
        """
        logger.info(
            "Resolving %d symbols for %s (force=%s, daily_only=%s)",
            len(request.symbols), request.time_range,
            request.force_refresh, request.refresh_daily_only,
        )
        try:
            async with asyncio.TaskGroup() as tg:
                tasks = [
                    tg.create_task(
                        self._resolve_or_error(
                            ticker,
                            request.time_range,
                            force_refresh=request.force_refresh,
                            refresh_daily_only=request.refresh_daily_only,
                        )
                    )
                    for ticker in request.symbols
                ]
        except BaseExceptionGroup as group:
            # _resolve_or_error only lets StorageError escape
            matched = group.subgroup(StorageError)
            if matched is None:
                raise
            logger.error("Storage failure; aborting batch of %d symbols", len(request.symbols))
            raise matched.exceptions[0] from None
        return [task.result() for task in tasks]

    async def _resolve_or_error(
        self,
        ticker: str,
        time_range: TimeRange,
        force_refresh: bool,
        refresh_daily_only: bool,
    ) -> StockSnapshot:
        try:
            return await self.resolve_symbol(
                ticker,
                time_range,
                force_refresh=force_refresh,
                refresh_daily_only=refresh_daily_only,
            )
        except StorageError:
            raise
        except Exception:
            logger.exception("Unexpected failure resolving %s", ticker)
            return error_snapshot(ticker)

    async def resolve_symbol(
        self,
        ticker: str,
        time_range: TimeRange,
        force_refresh: bool = False,
        refresh_daily_only: bool = False,
    ) -> StockSnapshot:
        """Run the resolution state machine for one symbol."""
        now = self._clock()
        today = today_eastern(now)
        days = time_range.days
        start = today - timedelta(days=days)

        symbol_id = await self._db.symbols.resolve(ticker)
        symbol = await self._db.symbols.get_by_id(symbol_id)
        name = symbol.display_name if symbol is not None else ticker

        cached: list[DailyBar] | None = None
        if force_refresh:
            logger.info("Force refresh requested for %s; bypassing caches", ticker)
        else:
            cached = await self._db.daily_bars.get_range(symbol_id, start, today)
            if self.is_sufficient(len(cached), days):
                logger.info(
                    "Serving %s from historical cache (%d bars, need %d)",
                    ticker, len(cached), self.required_bars(days),
                )
                if not refresh_daily_only:
                    await self.refresh_point_cache_if_stale(symbol_id, cached[-1], now)
                return snapshot_from_bars(ticker, name, cached, DataSource.HISTORICAL_CACHE)
            logger.info(
                "Historical cache insufficient for %s: %d bars, need %d",
                ticker, len(cached), self.required_bars(days),
            )

        source, bars = await self._providers.fetch_history(ticker, start, today)
        bars = self._drop_weekends(ticker, bars)
        if source is not None and bars:
            await self._write_series(symbol_id, bars, force_refresh)
            if not refresh_daily_only:
                await self._db.point_cache.put(symbol_id, bars[-1].close, source, now)
            return snapshot_from_bars(ticker, name, bars, source)

        return await self._degraded(
            ticker, name, symbol_id, start, today, now, cached, refresh_daily_only
        )

    async def refresh_point_cache_if_stale(
        self, symbol_id: SymbolId, latest: DailyBar, now: datetime | None = None
    ) -> bool:
        """Warm the Point Cache from the latest cached close if it is stale.

        Makes no provider call. Returns True if a new quote was written.
        """
        now = now or self._clock()
        current = await self._db.point_cache.get(symbol_id)
        if current is not None and not current.is_stale(now, self.point_cache_ttl):
            return False
        logger.debug(
            "Point cache %s for symbol %d; refreshing from %s close",
            "stale" if current is not None else "empty", symbol_id, latest.trading_date,
        )
        await self._db.point_cache.put(
            symbol_id, latest.close, DataSource.HISTORICAL_CACHE, now
        )
        return True

    async def _write_series(
        self, symbol_id: SymbolId, bars: Sequence[ProviderBar], force_refresh: bool
    ) -> int:
        """Persist a provider series.

        A normal escalation only fills missing days and corrects zero-volume
        rows. A forced refresh overwrites the most recent
        ``refresh_window_days`` bars and merges anything older.
        """
        if not force_refresh:
            return await self._db.daily_bars.merge_many(symbol_id, bars)

        window = self._config.refresh_window_days
        recent, older = list(bars[-window:]), list(bars[:-window])
        written = await self._db.daily_bars.upsert_many(symbol_id, recent)
        if older:
            written += await self._db.daily_bars.merge_many(symbol_id, older)
        logger.info(
            "Force refresh overwrote %d recent bars for symbol %d", len(recent), symbol_id
        )
        return written

    async def _degraded(
        self,
        ticker: str,
        name: str,
        symbol_id: SymbolId,
        start: date,
        today: date,
        now: datetime,
        cached: list[DailyBar] | None,
        refresh_daily_only: bool,
    ) -> StockSnapshot:
        if cached is None:
            cached = await self._db.daily_bars.get_range(symbol_id, start, today)
        if not cached:
            logger.error("No data available for %s from any provider or cache", ticker)
            return error_snapshot(ticker, name)

        logger.warning(
            "All providers empty for %s; serving %d cached bars as degraded response",
            ticker, len(cached),
        )
        snapshot = snapshot_from_bars(ticker, name, cached, DataSource.HISTORICAL_CACHE)

        quote = await self._providers.fetch_quote(ticker)
        if quote.is_empty:
            return snapshot
        if not refresh_daily_only:
            await self._db.point_cache.put(
                symbol_id, quote.price, quote.source or DataSource.HISTORICAL_CACHE, now
            )
        return snapshot.model_copy(update={"current_price": quote.price})

    @staticmethod
    def _drop_weekends(ticker: str, bars: list[ProviderBar]) -> list[ProviderBar]:
        kept = [b for b in bars if not is_weekend(b.trading_date)]
        if len(kept) != len(bars):
            logger.warning(
                "Discarded %d weekend bars for %s", len(bars) - len(kept), ticker
            )
        return kept
