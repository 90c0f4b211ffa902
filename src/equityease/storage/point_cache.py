"""Point Cache Store: the latest quote per symbol, nothing more."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import TYPE_CHECKING

from equityease.core.exceptions import StorageError
from equityease.core.models import DataSource, PointQuote, SymbolId

if TYPE_CHECKING:
    from equityease.storage.database import Database

logger = logging.getLogger(__name__)


class PointCache:
    """Accessor for ``point_quotes``. Last write wins; no history is kept."""

    def __init__(self, db: Database) -> None:
        self._db = db

    async def get(self, symbol_id: SymbolId) -> PointQuote | None:
        try:
            async with self._db.connection.execute(
                """SELECT symbol_id, price, source, observed_at FROM point_quotes
                   WHERE symbol_id = ?""",
                (symbol_id,),
            ) as cursor:
                row = await cursor.fetchone()
        except Exception as e:
            if isinstance(e, StorageError):
                raise
            raise StorageError(
                f"Failed to get point quote: {e}",
                context={"operation": "query", "table": "point_quotes", "symbol_id": symbol_id},
            ) from e
        if row is None:
            return None
        return PointQuote(
            symbol_id=row["symbol_id"],
            price=row["price"],
            source=DataSource(row["source"]),
            observed_at=datetime.fromisoformat(row["observed_at"]),
        )

    async def put(
        self,
        symbol_id: SymbolId,
        price: float,
        source: DataSource,
        observed_at: datetime | None = None,
    ) -> PointQuote:
        """Replace the symbol's quote.

        A single statement keyed on ``symbol_id``, so concurrent puts for the
        same symbol still leave exactly one row.
        """
        observed_at = observed_at or datetime.now(timezone.utc)
        try:
            conn = self._db.connection
            await conn.execute(
                """INSERT INTO point_quotes (symbol_id, price, source, observed_at)
                   VALUES (?, ?, ?, ?)
                   ON CONFLICT(symbol_id) DO UPDATE SET
                       price = excluded.price,
                       source = excluded.source,
                       observed_at = excluded.observed_at""",
                (symbol_id, price, str(source), observed_at.isoformat()),
            )
            await conn.commit()
        except Exception as e:
            if isinstance(e, StorageError):
                raise
            raise StorageError(
                f"Failed to put point quote: {e}",
                context={"operation": "insert", "table": "point_quotes", "symbol_id": symbol_id},
            ) from e
        logger.debug("Point cache for symbol %d set to %.4f (%s)", symbol_id, price, source)
        return PointQuote(
            symbol_id=symbol_id, observed_at=observed_at, price=price, source=source
        )

    async def count(self, symbol_id: SymbolId | None = None) -> int:
        query = "SELECT COUNT(*) FROM point_quotes"
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
                f"Failed to count point quotes: {e}",
                context={"operation": "query", "table": "point_quotes"},
            ) from e
