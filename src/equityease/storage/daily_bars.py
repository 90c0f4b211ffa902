"""Historical Cache Store: one OHLCV bar per (symbol, trading day)."""

from __future__ import annotations

import logging
from datetime import date
from typing import TYPE_CHECKING, Iterable

from equityease.core.exceptions import StorageError
from equityease.core.market_calendar import is_weekend
from equityease.core.models import DailyBar, DataSource, ProviderBar, SymbolId

if TYPE_CHECKING:
    from equityease.storage.database import Database

logger = logging.getLogger(__name__)

_COLUMNS = (
    "symbol_id, trading_date, open, high, low, close, adjusted_close, volume, source"
)

_UPSERT_SQL = f"""INSERT INTO daily_bars ({_COLUMNS})
    VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
    ON CONFLICT(symbol_id, trading_date) DO UPDATE SET
        open = excluded.open,
        high = excluded.high,
        low = excluded.low,
        close = excluded.close,
        adjusted_close = excluded.adjusted_close,
        volume = excluded.volume,
        source = excluded.source"""

# Existing rows are kept unless they are a zero-volume snapshot being
# replaced by a bar that carries real volume.
_MERGE_SQL = _UPSERT_SQL + "\n    WHERE daily_bars.volume = 0 AND excluded.volume > 0"


class HistoricalCache:
    """Accessor for the ``daily_bars`` table.

    Weekend dates (US/Eastern) are never written, whatever the caller
    passes in.
    """

    def __init__(self, db: Database) -> None:
        self._db = db

    async def get_range(
        self, symbol_id: SymbolId, start: date, end: date
    ) -> list[DailyBar]:
        """Bars in [start, end], ascending by date."""
        try:
            async with self._db.connection.execute(
                f"""SELECT {_COLUMNS} FROM daily_bars
                    WHERE symbol_id = ? AND trading_date >= ? AND trading_date <= ?
                    ORDER BY trading_date""",
                (symbol_id, start.isoformat(), end.isoformat()),
            ) as cursor:
                rows = await cursor.fetchall()
            return [self._row_to_bar(row) for row in rows]
        except Exception as e:
            if isinstance(e, StorageError):
                raise
            raise StorageError(
                f"Failed to get daily bars: {e}",
                context={"operation": "query", "table": "daily_bars", "symbol_id": symbol_id},
            ) from e

    async def list_dates(
        self, symbol_id: SymbolId, start: date, end: date
    ) -> set[date]:
        """Trading dates already cached in [start, end]."""
        try:
            async with self._db.connection.execute(
                """SELECT trading_date FROM daily_bars
                   WHERE symbol_id = ? AND trading_date >= ? AND trading_date <= ?""",
                (symbol_id, start.isoformat(), end.isoformat()),
            ) as cursor:
                rows = await cursor.fetchall()
            return {date.fromisoformat(row["trading_date"]) for row in rows}
        except Exception as e:
            if isinstance(e, StorageError):
                raise
            raise StorageError(
                f"Failed to list cached dates: {e}",
                context={"operation": "query", "table": "daily_bars", "symbol_id": symbol_id},
            ) from e

    async def count(self, symbol_id: SymbolId | None = None) -> int:
        query = "SELECT COUNT(*) FROM daily_bars"
        params: tuple = ()
        if symbol_id is not None:
            query += " WHERE symbol_id = ?"
            params = (symbol_id,)
        try:
            async with self._db.connection.execute(query, params) as cursor:
                row = await cursor.fetchone()
            return int(row[0])
        except Exception as e:
            if isinstance(e, StorageError):
                raise
            raise StorageError(
                f"Failed to count daily bars: {e}",
                context={"operation": "query", "table": "daily_bars"},
            ) from e

    async def upsert_many(
        self, symbol_id: SymbolId, bars: Iterable[ProviderBar | DailyBar]
    ) -> int:
        """Insert or overwrite each bar keyed by (symbol_id, trading_date).

        Idempotent: re-running with the same bars leaves the table unchanged.
        Returns the number of rows written.
        """
        return await self._write(symbol_id, bars, _UPSERT_SQL, "upsert")

    async def merge_many(
        self, symbol_id: SymbolId, bars: Iterable[ProviderBar | DailyBar]
    ) -> int:
        """Insert missing days; only rewrite a cached day whose volume is 0.

        A cached zero-volume bar is updated in place when the incoming bar
        has non-zero volume. Every other cached row is left untouched.
        Returns the number of rows inserted or corrected.
        """
        return await self._write(symbol_id, bars, _MERGE_SQL, "merge")

    async def _write(
        self,
        symbol_id: SymbolId,
        bars: Iterable[ProviderBar | DailyBar],
        sql: str,
        operation: str,
    ) -> int:
        params = []
        for bar in bars:
            if is_weekend(bar.trading_date):
                logger.warning(
                    "Dropping weekend bar for symbol %d on %s (%s)",
                    symbol_id, bar.trading_date, bar.source,
                )
                continue
            if isinstance(bar, ProviderBar):
                bar = DailyBar.from_provider_bar(symbol_id, bar)
            params.append(self._bar_to_params(symbol_id, bar))

        if not params:
            return 0

        written = 0
        try:
            conn = self._db.connection
            for row in params:
                cursor = await conn.execute(sql, row)
                written += max(cursor.rowcount, 0)
            await conn.commit()
        except Exception as e:
            if isinstance(e, StorageError):
                raise
            raise StorageError(
                f"Failed to {operation} daily bars: {e}",
                context={"operation": operation, "table": "daily_bars", "symbol_id": symbol_id},
            ) from e

        logger.debug(
            "%s daily_bars for symbol %d: %d of %d rows written",
            operation, symbol_id, written, len(params),
        )
        return written

    @staticmethod
    def _bar_to_params(symbol_id: SymbolId, bar: DailyBar) -> tuple:
        return (
            symbol_id,
            bar.trading_date.isoformat(),
            bar.open,
            bar.high,
            bar.low,
            bar.close,
            bar.adjusted_close,
            bar.volume,
            str(bar.source),
        )

    @staticmethod
    def _row_to_bar(row) -> DailyBar:
        return DailyBar(
            symbol_id=row["symbol_id"],
            trading_date=date.fromisoformat(row["trading_date"]),
            open=row["open"],
            high=row["high"],
            low=row["low"],
            close=row["close"],
            adjusted_close=row["adjusted_close"],
            volume=row["volume"],
            source=DataSource(row["source"]),
        )
