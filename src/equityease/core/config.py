"""Configuration loading, validation, and access."""

from __future__ import annotations

import os
from pathlib import Path

import yaml
from pydantic import BaseModel, ConfigDict, field_validator, model_validator

from equityease.core.exceptions import ConfigError


class TiingoConfig(BaseModel):
    """Primary daily-bar provider."""

    model_config = ConfigDict(frozen=True)

    api_key: str | None = None
    base_url: str = "https://api.tiingo.com"
    requests_per_minute: int = 50
    request_timeout: float = 15.0


class YahooConfig(BaseModel):
    """Secondary, intraday-capable provider (no key required)."""

    model_config = ConfigDict(frozen=True)

    base_url: str = "https://query2.finance.yahoo.com"
    requests_per_minute: int = 60
    request_timeout: float = 15.0


class FinnhubConfig(BaseModel):
    """Tertiary, quote-only provider."""

    model_config = ConfigDict(frozen=True)

    api_key: str | None = None
    base_url: str = "https://finnhub.io/api/v1"
    requests_per_minute: int = 60
    request_timeout: float = 10.0


_KNOWN_PROVIDERS = ("tiingo", "yahoo", "finnhub")


class ProvidersConfig(BaseModel):
    """Provider priority and per-provider access settings."""

    model_config = ConfigDict(frozen=True)

    order: list[str] = list(_KNOWN_PROVIDERS)
    call_timeout: float = 20.0
    tiingo: TiingoConfig = TiingoConfig()
    yahoo: YahooConfig = YahooConfig()
    finnhub: FinnhubConfig = FinnhubConfig()

    @field_validator("order")
    @classmethod
    def order_known_providers(cls, v: list[str]) -> list[str]:
        normalized = [name.strip().lower() for name in v]
        unknown = [name for name in normalized if name not in _KNOWN_PROVIDERS]
        if unknown:
            raise ValueError(
                f"unknown providers in order: {unknown}; "
                f"expected any of {list(_KNOWN_PROVIDERS)}"
            )
        if len(set(normalized)) != len(normalized):
            raise ValueError("provider order must not repeat a provider")
        return normalized

    @field_validator("call_timeout")
    @classmethod
    def call_timeout_positive(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("call_timeout must be > 0")
        return v


class StorageConfig(BaseModel):
    """Storage backend configuration."""

    model_config = ConfigDict(frozen=True)

    sqlite_path: str = "./data/equityease.db"


class CacheConfig(BaseModel):
    """Freshness and sufficiency thresholds for the cache orchestrator."""

    model_config = ConfigDict(frozen=True)

    point_cache_ttl_minutes: int = 20
    sufficiency_ratio: float = 0.7
    sufficiency_floor: int = 10
    refresh_window_days: int = 20

    @field_validator("sufficiency_ratio")
    @classmethod
    def ratio_in_range(cls, v: float) -> float:
        if not 0.0 < v <= 1.0:
            raise ValueError("sufficiency_ratio must be in (0, 1]")
        return v

    @field_validator("point_cache_ttl_minutes", "sufficiency_floor", "refresh_window_days")
    @classmethod
    def positive(cls, v: int) -> int:
        if v < 1:
            raise ValueError("must be >= 1")
        return v


class MaintenanceConfig(BaseModel):
    """Gap sweeping and backfill settings."""

    model_config = ConfigDict(frozen=True)

    symbols: list[str] = ["TQQQ", "SQQQ"]
    lookback_days: int = 5
    weekend_lookback_days: int = 180
    force_refresh_days: int = 30
    lead_buffer_days: int = 2
    trail_buffer_days: int = 1
    max_retries: int = 3
    retry_delay: float = 2.0

    @field_validator("symbols")
    @classmethod
    def symbols_upper(cls, v: list[str]) -> list[str]:
        return [s.strip().upper() for s in v if s.strip()]

    @field_validator("lookback_days", "weekend_lookback_days", "force_refresh_days")
    @classmethod
    def days_positive(cls, v: int) -> int:
        if v < 1:
            raise ValueError("day counts must be >= 1")
        return v

    @field_validator("max_retries")
    @classmethod
    def retries_positive(cls, v: int) -> int:
        if v < 1:
            raise ValueError("max_retries must be >= 1")
        return v

    @field_validator("lead_buffer_days", "trail_buffer_days")
    @classmethod
    def buffer_non_negative(cls, v: int) -> int:
        if v < 0:
            raise ValueError("buffer days must be >= 0")
        return v


class SymbolSeed(BaseModel):
    """A symbol registered at startup."""

    model_config = ConfigDict(frozen=True)

    ticker: str
    name: str

    @field_validator("ticker")
    @classmethod
    def ticker_upper(cls, v: str) -> str:
        v = v.strip().upper()
        if not v:
            raise ValueError("ticker must not be blank")
        return v


_DEFAULT_SYMBOLS = [
    SymbolSeed(ticker="TQQQ", name="ProShares UltraPro QQQ"),
    SymbolSeed(ticker="SQQQ", name="ProShares UltraPro Short QQQ"),
]


class APIConfig(BaseModel):
    """FastAPI server configuration."""

    model_config = ConfigDict(frozen=True)

    host: str = "0.0.0.0"
    port: int = 8000
    api_key: str | None = None
    cron_secret: str | None = None


class EquityEaseConfig(BaseModel):
    """Root configuration for the whole service."""

    model_config = ConfigDict(frozen=True)

    providers: ProvidersConfig = ProvidersConfig()
    storage: StorageConfig = StorageConfig()
    cache: CacheConfig = CacheConfig()
    maintenance: MaintenanceConfig = MaintenanceConfig()
    symbols: list[SymbolSeed] = _DEFAULT_SYMBOLS
    api: APIConfig = APIConfig()
    log_level: str = "INFO"

    @field_validator("log_level")
    @classmethod
    def log_level_known(cls, v: str) -> str:
        level = v.strip().upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"unknown log_level: {v!r}")
        return level

    @model_validator(mode="after")
    def seed_tickers_unique(self) -> EquityEaseConfig:
        tickers = [s.ticker for s in self.symbols]
        if len(set(tickers)) != len(tickers):
            raise ValueError("symbols must not list the same ticker twice")
        return self


def load_config(
    config_path: str | None = None,
    env_prefix: str = "EQUITYEASE_",
) -> EquityEaseConfig:
    """Load configuration from environment + YAML file + defaults.

    Resolution order (highest priority first):
    1. Environment variables (EQUITYEASE_PROVIDERS__TIINGO__API_KEY, etc.)
    2. YAML file at config_path
    3. Built-in defaults

    Nested keys use double-underscore in env vars:
        EQUITYEASE_CACHE__POINT_CACHE_TTL_MINUTES=10  ->  cache.point_cache_ttl_minutes = 10
    """
    try:
        yaml_path = _resolve_config_path(config_path)
        base: dict = {}
        if yaml_path is not None:
            base = _load_yaml(yaml_path)

        merged = _merge_env_vars(base, env_prefix)
        return EquityEaseConfig.model_validate(merged)
    except Exception as e:
        if isinstance(e, ConfigError):
            raise
        raise ConfigError(str(e), context={"source": "load_config"}) from e


def _resolve_config_path(explicit: str | None) -> Path | None:
    """Determine config file path."""
    if explicit is not None:
        p = Path(explicit)
        if not p.exists():
            raise ConfigError(
                f"Config file not found: {explicit}",
                context={"field": "config_path", "value": explicit},
            )
        return p

    env_path = os.environ.get("EQUITYEASE_CONFIG")
    if env_path:
        p = Path(env_path)
        if not p.exists():
            raise ConfigError(
                f"Config file from EQUITYEASE_CONFIG not found: {env_path}",
                context={"field": "EQUITYEASE_CONFIG", "value": env_path},
            )
        return p

    default = Path("equityease.yml")
    if default.exists():
        return default

    return None


def _load_yaml(path: Path) -> dict:
    """Load and parse YAML file."""
    try:
        with open(path) as f:
            data = yaml.safe_load(f)
        if data is None:
            return {}
        if not isinstance(data, dict):
            raise ConfigError(
                f"YAML config must be a mapping, got {type(data).__name__}",
                context={"field": "config_file", "value": str(path)},
            )
        return data
    except yaml.YAMLError as e:
        raise ConfigError(
            f"Failed to parse YAML config: {e}",
            context={"field": "config_file", "value": str(path)},
        ) from e


def _merge_env_vars(base: dict, prefix: str) -> dict:
    """Overlay environment variables onto base config dict.

    Double-underscore separates nesting levels.
    Values are auto-cast: "true"/"false" -> bool, numeric strings -> int.
    Comma-separated values for list fields (symbols, order) are split.
    """
    result = dict(base)

    for key, value in os.environ.items():
        if not key.startswith(prefix):
            continue

        remainder = key[len(prefix) :]
        parts = [p.lower() for p in remainder.split("__")]

        # Skip the CONFIG env var itself
        if parts == ["config"]:
            continue

        if parts[-1] in _LIST_FIELDS:
            cast_value: object = [v.strip() for v in value.split(",") if v.strip()]
        else:
            cast_value = _auto_cast(value)

        target = result
        for part in parts[:-1]:
            if not isinstance(target.get(part), dict):
                target[part] = dict(target.get(part) or {})
            target = target[part]
        target[parts[-1]] = cast_value

    return result


# Leaf keys that accept a comma-separated env var value.
_LIST_FIELDS = {"order"}


def _auto_cast(value: str) -> str | int | float | bool:
    """Auto-cast string values from environment variables."""
    if value.lower() == "true":
        return True
    if value.lower() == "false":
        return False
    try:
        return int(value)
    except ValueError:
        pass
    try:
        return float(value)
    except ValueError:
        pass
    return value
