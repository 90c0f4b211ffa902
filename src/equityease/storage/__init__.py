"""equityease.storage: SQLite-backed symbol registry and price caches."""

from equityease.storage.daily_bars import HistoricalCache
from equityease.storage.database import Database, create_store
from equityease.storage.point_cache import PointCache
from equityease.storage.symbols import SymbolRegistry

__all__ = [
    "Database",
    "HistoricalCache",
    "PointCache",
    "SymbolRegistry",
    "create_store",
]
