"""equityease.core: Foundation types, config, and exceptions."""

from equityease.core.config import (
    APIConfig,
    CacheConfig,
    EquityEaseConfig,
    MaintenanceConfig,
    ProvidersConfig,
    StorageConfig,
    SymbolSeed,
    load_config,
)
from equityease.core.exceptions import (
    ConfigError,
    EquityEaseError,
    InvalidRequestError,
    ProviderError,
    RateLimitError,
    StorageError,
)
from equityease.core.models import (
    ChartData,
    DailyBar,
    DataSource,
    Granularity,
    MaintenanceAction,
    MaintenanceResult,
    MaintenanceStatus,
    PointQuote,
    ProviderBar,
    ProviderQuote,
    StockRequest,
    StockSnapshot,
    Symbol,
    SymbolId,
    Ticker,
    TimeRange,
    normalize_tickers,
)

__all__ = [
    # Type aliases
    "SymbolId",
    "Ticker",
    # Enums
    "DataSource",
    "Granularity",
    "MaintenanceAction",
    "MaintenanceStatus",
    "TimeRange",
    # Models
    "ChartData",
    "DailyBar",
    "MaintenanceResult",
    "PointQuote",
    "ProviderBar",
    "ProviderQuote",
    "StockRequest",
    "StockSnapshot",
    "Symbol",
    "normalize_tickers",
    # Config
    "APIConfig",
    "CacheConfig",
    "EquityEaseConfig",
    "MaintenanceConfig",
    "ProvidersConfig",
    "StorageConfig",
    "SymbolSeed",
    "load_config",
    # Exceptions
    "ConfigError",
    "EquityEaseError",
    "InvalidRequestError",
    "ProviderError",
    "RateLimitError",
    "StorageError",
]
