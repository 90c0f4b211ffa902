"""Tests for equityease.core.config."""

import os

import pytest
from pydantic import ValidationError

from equityease.core.config import (
    CacheConfig,
    EquityEaseConfig,
    MaintenanceConfig,
    ProvidersConfig,
    SymbolSeed,
    _auto_cast,
    _merge_env_vars,
    load_config,
)
from equityease.core.exceptions import ConfigError


@pytest.fixture(autouse=True)
def clean_env(monkeypatch, tmp_path):
    """Isolate from real EQUITYEASE_* variables and any ./equityease.yml."""
    for key in list(os.environ):
        if key.startswith("EQUITYEASE_"):
            monkeypatch.delenv(key, raising=False)
    monkeypatch.chdir(tmp_path)


class TestProvidersConfig:
    def test_default_order(self):
        c = ProvidersConfig()
        assert c.order == ["tiingo", "yahoo", "finnhub"]
        assert c.call_timeout == 20.0

    def test_order_normalized(self):
        c = ProvidersConfig(order=[" Yahoo", "TIINGO"])
        assert c.order == ["yahoo", "tiingo"]

    def test_unknown_provider_rejected(self):
        with pytest.raises(ValidationError, match="unknown providers"):
            ProvidersConfig(order=["tiingo", "polygon"])

    def test_duplicate_provider_rejected(self):
        with pytest.raises(ValidationError, match="must not repeat"):
            ProvidersConfig(order=["yahoo", "yahoo"])

    def test_call_timeout_positive(self):
        with pytest.raises(ValidationError, match="call_timeout"):
            ProvidersConfig(call_timeout=0)


class TestCacheConfig:
    def test_defaults(self):
        c = CacheConfig()
        assert c.point_cache_ttl_minutes == 20
        assert c.sufficiency_ratio == 0.7
        assert c.sufficiency_floor == 10
        assert c.refresh_window_days == 20

    def test_ratio_bounds(self):
        with pytest.raises(ValidationError, match="sufficiency_ratio"):
            CacheConfig(sufficiency_ratio=1.5)

    def test_ttl_positive(self):
        with pytest.raises(ValidationError):
            CacheConfig(point_cache_ttl_minutes=0)


class TestMaintenanceConfig:
    def test_defaults(self):
        c = MaintenanceConfig()
        assert c.symbols == ["TQQQ", "SQQQ"]
        assert c.lookback_days == 5
        assert c.weekend_lookback_days == 180
        assert c.force_refresh_days == 30
        assert c.lead_buffer_days == 2
        assert c.trail_buffer_days == 1

    def test_symbols_uppercased(self):
        c = MaintenanceConfig(symbols=["tqqq", " ", "sqqq "])
        assert c.symbols == ["TQQQ", "SQQQ"]

    def test_negative_buffer_rejected(self):
        with pytest.raises(ValidationError, match="buffer days"):
            MaintenanceConfig(lead_buffer_days=-1)


class TestEquityEaseConfig:
    def test_default_symbol_seeds(self):
        c = EquityEaseConfig()
        assert [s.ticker for s in c.symbols] == ["TQQQ", "SQQQ"]
        assert c.symbols[0].name == "ProShares UltraPro QQQ"

    def test_duplicate_seed_rejected(self):
        with pytest.raises(ValidationError, match="same ticker twice"):
            EquityEaseConfig(
                symbols=[
                    SymbolSeed(ticker="TQQQ", name="a"),
                    SymbolSeed(ticker="tqqq", name="b"),
                ]
            )

    def test_log_level_normalized(self):
        assert EquityEaseConfig(log_level="debug").log_level == "DEBUG"

    def test_unknown_log_level_rejected(self):
        with pytest.raises(ValidationError, match="log_level"):
            EquityEaseConfig(log_level="chatty")

    def test_frozen(self):
        c = EquityEaseConfig()
        with pytest.raises(ValidationError):
            c.log_level = "DEBUG"


class TestLoadConfig:
    def test_defaults_without_file(self):
        config = load_config()
        assert config.storage.sqlite_path == "./data/equityease.db"
        assert config.providers.tiingo.api_key is None

    def test_yaml_loading(self, tmp_path):
        yaml_file = tmp_path / "config.yml"
        yaml_file.write_text(
            "providers:\n  tiingo:\n    api_key: abc123\n"
            "cache:\n  point_cache_ttl_minutes: 5\n"
        )
        config = load_config(config_path=str(yaml_file))
        assert config.providers.tiingo.api_key == "abc123"
        assert config.cache.point_cache_ttl_minutes == 5

    def test_default_file_picked_up(self, tmp_path):
        (tmp_path / "equityease.yml").write_text("log_level: WARNING\n")
        assert load_config().log_level == "WARNING"

    def test_env_config_path(self, tmp_path, monkeypatch):
        yaml_file = tmp_path / "other.yml"
        yaml_file.write_text("api:\n  port: 9000\n")
        monkeypatch.setenv("EQUITYEASE_CONFIG", str(yaml_file))
        assert load_config().api.port == 9000

    def test_env_overrides_yaml(self, tmp_path, monkeypatch):
        yaml_file = tmp_path / "config.yml"
        yaml_file.write_text("cache:\n  refresh_window_days: 15\n")
        monkeypatch.setenv("EQUITYEASE_CACHE__REFRESH_WINDOW_DAYS", "25")
        config = load_config(config_path=str(yaml_file))
        assert config.cache.refresh_window_days == 25

    def test_env_list_for_order(self, monkeypatch):
        monkeypatch.setenv("EQUITYEASE_PROVIDERS__ORDER", "yahoo,tiingo")
        assert load_config().providers.order == ["yahoo", "tiingo"]

    def test_missing_file_raises(self):
        with pytest.raises(ConfigError, match="not found"):
            load_config(config_path="/nonexistent/equityease.yml")

    def test_missing_env_file_raises(self, monkeypatch):
        monkeypatch.setenv("EQUITYEASE_CONFIG", "/nonexistent/equityease.yml")
        with pytest.raises(ConfigError, match="EQUITYEASE_CONFIG"):
            load_config()

    def test_non_mapping_yaml_raises(self, tmp_path):
        yaml_file = tmp_path / "config.yml"
        yaml_file.write_text("- just\n- a list\n")
        with pytest.raises(ConfigError, match="must be a mapping"):
            load_config(config_path=str(yaml_file))

    def test_invalid_yaml_raises(self, tmp_path):
        yaml_file = tmp_path / "config.yml"
        yaml_file.write_text("cache: [unclosed\n")
        with pytest.raises(ConfigError, match="Failed to parse"):
            load_config(config_path=str(yaml_file))

    def test_validation_error_wrapped(self, monkeypatch):
        monkeypatch.setenv("EQUITYEASE_CACHE__SUFFICIENCY_RATIO", "3")
        with pytest.raises(ConfigError):
            load_config()

    def test_empty_yaml_is_defaults(self, tmp_path):
        yaml_file = tmp_path / "config.yml"
        yaml_file.write_text("")
        assert load_config(config_path=str(yaml_file)) == EquityEaseConfig()


class TestMergeEnvVars:
    def test_nested_keys(self, monkeypatch):
        monkeypatch.setenv("EQUITYEASE_API__CRON_SECRET", "s3cret")
        result = _merge_env_vars({"api": {"port": 1}}, "EQUITYEASE_")
        assert result["api"] == {"port": 1, "cron_secret": "s3cret"}

    def test_config_var_skipped(self, monkeypatch):
        monkeypatch.setenv("EQUITYEASE_CONFIG", "/tmp/x.yml")
        assert "config" not in _merge_env_vars({}, "EQUITYEASE_")


class TestAutoCast:
    @pytest.mark.parametrize(
        "raw, expected",
        [
            ("true", True),
            ("FALSE", False),
            ("42", 42),
            ("2.5", 2.5),
            ("hello", "hello"),
        ],
    )
    def test_cast(self, raw, expected):
        assert _auto_cast(raw) == expected
