"""Tests for the FastAPI REST API module."""

from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from equityease.api.app import create_app
from equityease.core.config import APIConfig, EquityEaseConfig, MaintenanceConfig, StorageConfig
from equityease.core.exceptions import StorageError
from equityease.core.models import DataSource, MaintenanceStatus, ProviderQuote


# -- Fixtures --


def _make_config(tmp_path, api_key=None, cron_secret=None):
    return EquityEaseConfig(
        storage=StorageConfig(sqlite_path=str(tmp_path / "test.db")),
        maintenance=MaintenanceConfig(max_retries=1, retry_delay=0.0),
        api=APIConfig(api_key=api_key, cron_secret=cron_secret),
    )


@pytest.fixture
def tiingo(make_provider, make_bars, weekdays, today):
    days = weekdays(today, 22)
    return make_provider(
        DataSource.TIINGO,
        bars=make_bars(days, ticker="TQQQ") + make_bars(days, ticker="SQQQ"),
    )


@pytest.fixture
def finnhub(make_provider):
    return make_provider(
        DataSource.FINNHUB, quote=ProviderQuote(price=42.0, source=DataSource.FINNHUB)
    )


@pytest.fixture
def client(tmp_path, tiingo, finnhub, make_chain, clock):
    app = create_app(
        config=_make_config(tmp_path), providers=make_chain(tiingo, finnhub), clock=clock
    )
    with TestClient(app) as c:
        yield c


@pytest.fixture
def authed_client(tmp_path, tiingo, make_chain, clock):
    app = create_app(
        config=_make_config(tmp_path, api_key="test-secret-key", cron_secret="cron-secret"),
        providers=make_chain(tiingo),
        clock=clock,
    )
    with TestClient(app) as c:
        yield c


def _stocks(client, **body):
    payload = {"symbols": ["TQQQ"], "timeRange": "1m"}
    payload.update(body)
    return client.post("/api/stocks/cache", json=payload)


# -- Health --


class TestHealth:
    def test_health_returns_ok(self, client):
        response = client.get("/api/health")
        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "ok"
        assert data["tracked_symbols"] == 2
        assert data["daily_bars"] == 0
        assert "version" in data


# -- Stocks --


class TestStocksCache:
    def test_cold_request_returns_camel_case(self, client):
        response = _stocks(client)
        assert response.status_code == 200
        (stock,) = response.json()

        assert stock["symbol"] == "TQQQ"
        assert stock["name"] == "ProShares UltraPro QQQ"
        assert stock["dataSource"] == "tiingo"
        assert stock["currentPrice"] == 71.0
        assert "changePercent" in stock
        assert len(stock["chartData"]["labels"]) == 22
        assert stock["chartData"]["labels"][-1] == "2024-03-13"

    def test_warm_request_served_from_cache(self, client, tiingo):
        _stocks(client)
        (stock,) = _stocks(client).json()
        assert stock["dataSource"] == "historical_cache"
        assert len(tiingo.history_calls) == 1

    def test_multiple_symbols_in_order(self, client):
        response = _stocks(client, symbols=["sqqq", "TQQQ", "NOPE"])
        data = response.json()
        assert [s["symbol"] for s in data] == ["SQQQ", "TQQQ", "NOPE"]
        assert data[2]["dataSource"] == "error"
        assert data[2]["currentPrice"] == 0
        assert data[2]["chartData"]["labels"] == []

    def test_force_refresh_flag(self, client, tiingo):
        _stocks(client)
        (stock,) = _stocks(client, forceRefresh=True).json()
        assert stock["dataSource"] == "tiingo"
        assert len(tiingo.history_calls) == 2

    def test_empty_symbols_is_400(self, client):
        response = _stocks(client, symbols=[])
        assert response.status_code == 400
        assert response.json() == {
            "error": "InvalidRequestError",
            "detail": "Symbols array is required",
        }

    def test_blank_symbols_is_400(self, client):
        assert _stocks(client, symbols=["", "  "]).status_code == 400

    def test_missing_symbols_is_400(self, client):
        response = client.post("/api/stocks/cache", json={"timeRange": "1m"})
        assert response.status_code == 400
        assert response.json()["error"] == "InvalidRequestError"

    def test_invalid_time_range_is_400(self, client):
        assert _stocks(client, timeRange="5y").status_code == 400

    def test_storage_error_is_500(self, client, monkeypatch):
        store = client.app.state.app_state.store

        async def broken(ticker):
            raise StorageError("disk I/O error")

        monkeypatch.setattr(store.symbols, "resolve", broken)

        response = _stocks(client)
        assert response.status_code == 500
        assert response.json()["error"] == "StorageError"


# -- Maintenance --


class TestMaintenance:
    def test_maintain_action(self, client):
        response = client.post(
            "/api/data-maintenance",
            json={"action": "maintain", "symbols": ["TQQQ"], "lookbackDays": 5},
        )
        assert response.status_code == 200
        data = response.json()
        assert data["success"] is True
        assert data["action"] == "maintain"
        (result,) = data["results"]
        assert result["symbol"] == "TQQQ"
        assert result["status"] == MaintenanceStatus.UPDATED
        assert result["missingDates"] == 4
        assert result["filledGaps"] == 4
        assert "timestamp" in data

    def test_force_refresh_action(self, client):
        response = client.post(
            "/api/data-maintenance",
            json={"action": "force_refresh", "forceRefreshDays": 10},
        )
        data = response.json()
        assert data["action"] == "force_refresh"
        assert [r["symbol"] for r in data["results"]] == ["TQQQ", "SQQQ"]
        assert all(r["status"] == "force_refreshed" for r in data["results"])
        assert data["results"][0]["updatedRecords"] == 8

    def test_invalid_action_is_400(self, client):
        response = client.post("/api/data-maintenance", json={"action": "explode"})
        assert response.status_code == 400
        assert response.json()["detail"] == 'Invalid action. Use "maintain" or "force_refresh"'

    def test_invalid_lookback_is_400(self, client):
        response = client.post(
            "/api/data-maintenance", json={"action": "maintain", "lookbackDays": 0}
        )
        assert response.status_code == 400

    def test_scheduled_get(self, client):
        response = client.get("/api/data-maintenance")
        assert response.status_code == 200
        data = response.json()
        assert data["action"] == "scheduled_maintenance"
        assert len(data["results"]) == 2

    def test_cron_without_secret_configured(self, client):
        assert client.get("/api/cron/data-maintenance").status_code == 200


# -- Auth --


class TestAuth:
    def test_missing_key_is_401(self, authed_client):
        response = _stocks(authed_client)
        assert response.status_code == 401
        assert response.json()["error"] == "Unauthorized"

    def test_valid_key(self, authed_client):
        response = authed_client.post(
            "/api/stocks/cache",
            json={"symbols": ["TQQQ"], "timeRange": "1m"},
            headers={"X-API-Key": "test-secret-key"},
        )
        assert response.status_code == 200

    def test_health_exempt(self, authed_client):
        assert authed_client.get("/api/health").status_code == 200

    def test_cron_requires_bearer_secret(self, authed_client):
        assert authed_client.get("/api/cron/data-maintenance").status_code == 401
        response = authed_client.get(
            "/api/cron/data-maintenance",
            headers={"Authorization": "Bearer wrong"},
        )
        assert response.status_code == 401

    def test_cron_rejection_uses_error_envelope(self, authed_client):
        response = authed_client.get(
            "/api/cron/data-maintenance",
            headers={"Authorization": "Bearer wrong"},
        )
        assert response.json() == {
            "error": "Unauthorized",
            "detail": "Invalid or missing cron secret",
        }

    def test_cron_with_secret(self, authed_client):
        response = authed_client.get(
            "/api/cron/data-maintenance",
            headers={"Authorization": "Bearer cron-secret"},
        )
        assert response.status_code == 200
        assert response.json()["action"] == "scheduled_maintenance"


# -- OpenAPI --


class TestOpenAPI:
    def test_error_responses_documented(self, client):
        spec = client.get("/openapi.json").json()
        stocks = spec["paths"]["/api/stocks/cache"]["post"]["responses"]
        assert stocks["400"]["content"]["application/json"]["schema"]["$ref"].endswith(
            "/ErrorResponse"
        )
        assert "500" in stocks
        cron = spec["paths"]["/api/cron/data-maintenance"]["get"]["responses"]
        assert "401" in cron
        assert "ErrorResponse" in spec["components"]["schemas"]
