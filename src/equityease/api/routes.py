"""FastAPI route definitions for the equityease API."""

from __future__ import annotations

import logging
from datetime import UTC as _UTC, datetime

from fastapi import APIRouter, Depends, Header, HTTPException
from pydantic import ValidationError

import equityease
from equityease.api.deps import get_config, get_orchestrator, get_store, get_sweeper
from equityease.api.schemas import (
    ErrorResponse,
    HealthResponse,
    MaintenanceRequest,
    MaintenanceResponse,
    MaintenanceResultResponse,
    StockCacheRequest,
    StockResponse,
)
from equityease.cache.orchestrator import CacheOrchestrator
from equityease.core.config import EquityEaseConfig
from equityease.core.exceptions import InvalidRequestError
from equityease.core.models import MaintenanceAction, MaintenanceResult, StockRequest
from equityease.maintenance.sweeper import MaintenanceSweeper
from equityease.storage.database import Database

logger = logging.getLogger(__name__)

router = APIRouter()

_BAD_REQUEST = {400: {"model": ErrorResponse, "description": "Invalid request"}}
_STORAGE_FAILURE = {500: {"model": ErrorResponse, "description": "Cache store unavailable"}}


# -- Health --


@router.get("/health", response_model=HealthResponse)
async def health_check(store: Database = Depends(get_store)):
    """System health and basic statistics."""
    symbols = await store.symbols.list_all()
    return HealthResponse(
        status="ok",
        version=equityease.__version__,
        tracked_symbols=len(symbols),
        daily_bars=await store.daily_bars.count(),
    )


# -- Stocks --


@router.post(
    "/stocks/cache",
    response_model=list[StockResponse],
    responses={**_BAD_REQUEST, **_STORAGE_FAILURE},
)
async def get_cached_stocks(
    body: StockCacheRequest,
    orchestrator: CacheOrchestrator = Depends(get_orchestrator),
):
    """Serve price series for a batch of symbols, cache first."""
    try:
        request = StockRequest(
            symbols=body.symbols,
            time_range=body.time_range,
            force_refresh=body.force_refresh,
            refresh_daily_only=body.refresh_daily_only,
        )
    except ValidationError as e:
        raise InvalidRequestError(
            "Symbols array is required",
            context={"field": "symbols", "value": body.symbols},
        ) from e

    snapshots = await orchestrator.get_stocks(request)
    return [StockResponse.from_snapshot(s) for s in snapshots]


# -- Data Maintenance --


def _maintenance_response(action: str, results: list[MaintenanceResult]) -> MaintenanceResponse:
    return MaintenanceResponse(
        success=True,
        action=action,
        results=[MaintenanceResultResponse.from_result(r) for r in results],
        timestamp=datetime.now(_UTC),
    )


@router.post(
    "/data-maintenance",
    response_model=MaintenanceResponse,
    responses={**_BAD_REQUEST, **_STORAGE_FAILURE},
)
async def run_maintenance(
    body: MaintenanceRequest,
    sweeper: MaintenanceSweeper = Depends(get_sweeper),
):
    """Manual maintenance: gap-fill (``maintain``) or ``force_refresh``."""
    try:
        action = MaintenanceAction(body.action)
    except ValueError as e:
        raise InvalidRequestError(
            'Invalid action. Use "maintain" or "force_refresh"',
            context={"field": "action", "value": body.action},
        ) from e

    logger.info("Data maintenance request: action=%s, symbols=%s", action, body.symbols)
    if action == MaintenanceAction.MAINTAIN:
        results = await sweeper.maintain(body.symbols, body.lookback_days)
    else:
        results = await sweeper.force_refresh_all(body.symbols, body.force_refresh_days)
    return _maintenance_response(str(action), results)


@router.get("/data-maintenance", response_model=MaintenanceResponse)
async def scheduled_maintenance(sweeper: MaintenanceSweeper = Depends(get_sweeper)):
    """Scheduled maintenance over the configured symbols."""
    results = await sweeper.run_scheduled()
    return _maintenance_response("scheduled_maintenance", results)


def require_cron_secret(
    authorization: str | None = Header(None),
    config: EquityEaseConfig = Depends(get_config),
) -> None:
    """Dependency: check ``Authorization: Bearer <cron_secret>`` if configured."""
    secret = config.api.cron_secret
    if secret and authorization != f"Bearer {secret}":
        raise HTTPException(status_code=401, detail="Invalid or missing cron secret")


@router.get(
    "/cron/data-maintenance",
    response_model=MaintenanceResponse,
    dependencies=[Depends(require_cron_secret)],
    responses={401: {"model": ErrorResponse, "description": "Invalid or missing cron secret"}},
)
async def cron_maintenance(sweeper: MaintenanceSweeper = Depends(get_sweeper)):
    """Time-triggered entry point for an external scheduler."""
    results = await sweeper.run_scheduled()
    return _maintenance_response("scheduled_maintenance", results)
