"""SQLite connection, schema migrations, and store factory."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import ClassVar

import aiosqlite

from equityease.core.config import StorageConfig
from equityease.core.exceptions import StorageError
from equityease.storage.daily_bars import HistoricalCache
from equityease.storage.point_cache import PointCache
from equityease.storage.symbols import SymbolRegistry

logger = logging.getLogger(__name__)


class Database:
    """Owns the single aiosqlite connection shared by all cache accessors.

    Uses WAL mode for concurrent reads and a version-tracked migration
    system. The Symbol Registry, Historical Cache and Point Cache are thin
    accessors over this connection, exposed as attributes.
    """

    _MIGRATIONS: ClassVar[dict[int, tuple[str, list[str]]]] = {
        1: (
            "Initial schema",
            [
                """CREATE TABLE IF NOT EXISTS schema_version (
                    version INTEGER PRIMARY KEY,
                    applied_at TEXT DEFAULT (datetime('now'))
                )""",
                """CREATE TABLE IF NOT EXISTS symbols (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    ticker TEXT NOT NULL UNIQUE,
                    display_name TEXT NOT NULL,
                    created_at TEXT DEFAULT (datetime('now'))
                )""",
                """CREATE TABLE IF NOT EXISTS daily_bars (
                    symbol_id INTEGER NOT NULL REFERENCES symbols(id),
                    trading_date TEXT NOT NULL,
                    open REAL NOT NULL,
                    high REAL NOT NULL,
                    low REAL NOT NULL,
                    close REAL NOT NULL,
                    adjusted_close REAL NOT NULL,
                    volume INTEGER NOT NULL,
                    source TEXT NOT NULL,
                    PRIMARY KEY(symbol_id, trading_date)
                )""",
                """CREATE TABLE IF NOT EXISTS point_quotes (
                    symbol_id INTEGER PRIMARY KEY REFERENCES symbols(id),
                    price REAL NOT NULL,
                    source TEXT NOT NULL,
                    observed_at TEXT NOT NULL
                )""",
            ],
        ),
    }

    def __init__(self, config: StorageConfig) -> None:
        self._path = config.sqlite_path
        self._db: aiosqlite.Connection | None = None
        self.symbols = SymbolRegistry(self)
        self.daily_bars = HistoricalCache(self)
        self.point_cache = PointCache(self)

    @property
    def path(self) -> str:
        return self._path

    @property
    def connection(self) -> aiosqlite.Connection:
        if self._db is None:
            raise StorageError(
                "Database is not initialized",
                context={"operation": "connect", "path": self._path},
            )
        return self._db

    async def initialize(self) -> None:
        """Open connection, enable WAL + FK, run migrations."""
        try:
            if self._path != ":memory:":
                Path(self._path).parent.mkdir(parents=True, exist_ok=True)
            self._db = await aiosqlite.connect(self._path)
            self._db.row_factory = aiosqlite.Row
            await self._db.execute("PRAGMA journal_mode=WAL")
            await self._db.execute("PRAGMA foreign_keys=ON")
            current = await self._get_schema_version()
            await self._apply_migrations(current)
            await self._db.commit()
        except Exception as e:
            raise StorageError(
                f"Failed to initialize SQLite store: {e}",
                context={"operation": "initialize", "path": self._path},
            ) from e

    async def close(self) -> None:
        if self._db is not None:
            await self._db.close()
            self._db = None

    async def __aenter__(self) -> Database:
        return self

    async def __aexit__(self, *exc: object) -> None:
        await self.close()

    async def health_check(self) -> bool:
        if self._db is None:
            return False
        try:
            async with self._db.execute("SELECT 1") as cursor:
                row = await cursor.fetchone()
            return row is not None
        except Exception:
            return False

    # --- Schema Migration ---

    async def _get_schema_version(self) -> int:
        try:
            async with self._db.execute(
                "SELECT MAX(version) FROM schema_version"
            ) as cursor:
                row = await cursor.fetchone()
            return row[0] if row[0] is not None else 0
        except aiosqlite.OperationalError:
            return 0

    async def _apply_migrations(self, current_version: int) -> None:
        for version in sorted(self._MIGRATIONS.keys()):
            if version <= current_version:
                continue
            desc, statements = self._MIGRATIONS[version]
            logger.info("Applying migration %d: %s", version, desc)
            for sql in statements:
                await self._db.execute(sql)
            await self._db.execute(
                "INSERT INTO schema_version (version) VALUES (?)", (version,)
            )


async def create_store(config: StorageConfig) -> Database:
    """Create and initialize the SQLite store from configuration."""
    db = Database(config)
    await db.initialize()
    return db
