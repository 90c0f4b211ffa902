"""Request-scoped accessors for the services built during app lifespan."""

from __future__ import annotations

from dataclasses import dataclass

from fastapi import Request
from fastapi.responses import JSONResponse

from equityease.cache.orchestrator import CacheOrchestrator
from equityease.core.config import EquityEaseConfig
from equityease.maintenance.sweeper import MaintenanceSweeper
from equityease.providers.chain import ProviderChain
from equityease.storage.database import Database


@dataclass
class AppState:
    """Store, provider chain and the services built on them, one per process."""

    config: EquityEaseConfig
    store: Database
    providers: ProviderChain
    orchestrator: CacheOrchestrator
    sweeper: MaintenanceSweeper


def get_app_state(request: Request) -> AppState:
    """Dependency: the AppState for this app instance."""
    return request.app.state.app_state


def get_config(request: Request) -> EquityEaseConfig:
    """Dependency: the loaded EquityEaseConfig."""
    return request.app.state.app_state.config


def get_store(request: Request) -> Database:
    """Dependency: the shared Database (registry and both caches)."""
    return request.app.state.app_state.store


def get_orchestrator(request: Request) -> CacheOrchestrator:
    return request.app.state.app_state.orchestrator


def get_sweeper(request: Request) -> MaintenanceSweeper:
    return request.app.state.app_state.sweeper


# The cron trigger carries its own bearer-secret check.
EXEMPT_PATHS = {"/api/health", "/api/cron/data-maintenance"}


async def api_key_middleware(request: Request, call_next):  # type: ignore[no-untyped-def]
    """Reject requests whose X-API-Key does not match api.api_key, when one is set."""
    if request.url.path in EXEMPT_PATHS:
        return await call_next(request)

    config = request.app.state.app_state.config
    if config.api.api_key:
        api_key = request.headers.get("X-API-Key")
        if api_key != config.api.api_key:
            return JSONResponse(
                status_code=401,
                content={"error": "Unauthorized", "detail": "Invalid or missing API key"},
            )
    return await call_next(request)
