"""Integration test fixtures: real SQLite files and real adapters, no network."""

from __future__ import annotations

from datetime import date, datetime, time
from pathlib import Path

import pytest

from equityease.core.config import StorageConfig
from equityease.core.market_calendar import EASTERN
from equityease.providers.chain import ProviderChain
from equityease.providers.tiingo import TiingoProvider
from equityease.providers.yahoo import YahooFinanceProvider
from equityease.storage.database import Database, create_store


def _tiingo_payload(days: list[date], base: float = 50.0, volume: int = 1_000_000) -> list[dict]:
    """A ``/tiingo/daily/{ticker}/prices`` body, one row per day."""
    return [
        {
            "date": f"{d.isoformat()}T00:00:00.000Z",
            "open": base + i - 0.5,
            "high": base + i + 1.0,
            "low": base + i - 1.0,
            "close": base + i,
            "adjClose": base + i,
            "volume": volume,
        }
        for i, d in enumerate(days)
    ]


def _yahoo_payload(days: list[date], base: float = 50.0, volume: int = 800_000) -> dict:
    """A ``/v8/finance/chart/{ticker}`` body with daily bars stamped at the open."""
    closes = [base + i for i in range(len(days))]
    return {
        "chart": {
            "result": [
                {
                    "meta": {"regularMarketPrice": closes[-1] if closes else 0.0},
                    "timestamp": [
                        int(datetime.combine(d, time(9, 30), tzinfo=EASTERN).timestamp())
                        for d in days
                    ],
                    "indicators": {
                        "quote": [
                            {
                                "open": [c - 0.5 for c in closes],
                                "high": [c + 1.0 for c in closes],
                                "low": [c - 1.0 for c in closes],
                                "close": closes,
                                "volume": [volume for _ in closes],
                            }
                        ]
                    },
                }
            ],
            "error": None,
        }
    }


@pytest.fixture
def db_path(tmp_path: Path) -> str:
    return str(tmp_path / "integration.db")


@pytest.fixture
async def integration_db(db_path: str) -> Database:
    """An initialized file-backed Database."""
    db = await create_store(StorageConfig(sqlite_path=db_path))
    yield db
    await db.close()


@pytest.fixture
async def real_chain() -> ProviderChain:
    """Tiingo then Yahoo, both real adapters; respx stands in for the network."""
    chain = ProviderChain(
        [TiingoProvider(api_key="integration-token"), YahooFinanceProvider()],
        call_timeout=5.0,
    )
    yield chain
    await chain.close()


@pytest.fixture
def tiingo_payload():
    return _tiingo_payload


@pytest.fixture
def yahoo_payload():
    return _yahoo_payload
