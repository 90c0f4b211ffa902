"""Symbol Registry: ticker -> stable internal id, created on first sight."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Iterable

from equityease.core.config import SymbolSeed
from equityease.core.exceptions import StorageError
from equityease.core.models import Symbol, SymbolId

if TYPE_CHECKING:
    from equityease.storage.database import Database

logger = logging.getLogger(__name__)


class SymbolRegistry:
    """Resolve-or-create mapping from ticker to ``symbols.id``.

    Ids never change once assigned, so resolved ids are memoised for the
    lifetime of the registry.
    """

    def __init__(self, db: Database) -> None:
        self._db = db
        self._ids: dict[str, SymbolId] = {}

    async def resolve(self, ticker: str) -> SymbolId:
        """Return the id for ``ticker``, inserting a row on first reference.

        A newly created symbol uses the ticker as its display name.
        """
        ticker = ticker.strip().upper()
        cached = self._ids.get(ticker)
        if cached is not None:
            return cached

        try:
            conn = self._db.connection
            cursor = await conn.execute(
                "INSERT OR IGNORE INTO symbols (ticker, display_name) VALUES (?, ?)",
                (ticker, ticker),
            )
            if cursor.rowcount:
                logger.info("Registered new symbol %s", ticker)
            await conn.commit()
            async with conn.execute(
                "SELECT id FROM symbols WHERE ticker = ?", (ticker,)
            ) as cursor:
                row = await cursor.fetchone()
        except Exception as e:
            if isinstance(e, StorageError):
                raise
            raise StorageError(
                f"Failed to resolve symbol: {e}",
                context={"operation": "upsert", "table": "symbols", "ticker": ticker},
            ) from e

        symbol_id = int(row["id"])
        self._ids[ticker] = symbol_id
        return symbol_id

    async def seed(self, seeds: Iterable[SymbolSeed]) -> list[Symbol]:
        """Register configured symbols, refreshing their display names."""
        try:
            conn = self._db.connection
            for seed in seeds:
                await conn.execute(
                    """INSERT INTO symbols (ticker, display_name) VALUES (?, ?)
                       ON CONFLICT(ticker) DO UPDATE SET display_name = excluded.display_name""",
                    (seed.ticker, seed.name),
                )
            await conn.commit()
        except Exception as e:
            if isinstance(e, StorageError):
                raise
            raise StorageError(
                f"Failed to seed symbols: {e}",
                context={"operation": "upsert", "table": "symbols"},
            ) from e
        return await self.list_all()

    async def get(self, ticker: str) -> Symbol | None:
        return await self._fetch_one(
            "SELECT * FROM symbols WHERE ticker = ?", (ticker.strip().upper(),)
        )

    async def get_by_id(self, symbol_id: SymbolId) -> Symbol | None:
        return await self._fetch_one("SELECT * FROM symbols WHERE id = ?", (symbol_id,))

    async def list_all(self) -> list[Symbol]:
        try:
            async with self._db.connection.execute(
                "SELECT * FROM symbols ORDER BY ticker"
            ) as cursor:
                rows = await cursor.fetchall()
        except Exception as e:
            if isinstance(e, StorageError):
                raise
            raise StorageError(
                f"Failed to list symbols: {e}",
                context={"operation": "query", "table": "symbols"},
            ) from e
        return [self._row_to_symbol(row) for row in rows]

    async def _fetch_one(self, query: str, params: tuple) -> Symbol | None:
        try:
            async with self._db.connection.execute(query, params) as cursor:
                row = await cursor.fetchone()
        except Exception as e:
            if isinstance(e, StorageError):
                raise
            raise StorageError(
                f"Failed to get symbol: {e}",
                context={"operation": "query", "table": "symbols"},
            ) from e
        return self._row_to_symbol(row) if row is not None else None

    @staticmethod
    def _row_to_symbol(row) -> Symbol:
        return Symbol(id=row["id"], ticker=row["ticker"], display_name=row["display_name"])
