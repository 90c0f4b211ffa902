"""FastAPI application factory."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from datetime import datetime
from http import HTTPStatus
from typing import Callable

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from equityease.api.deps import AppState, api_key_middleware
from equityease.api.routes import router
from equityease.cache.orchestrator import CacheOrchestrator
from equityease.core.config import EquityEaseConfig, load_config
from equityease.core.exceptions import (
    ConfigError,
    EquityEaseError,
    InvalidRequestError,
    ProviderError,
    StorageError,
)
from equityease.core.market_calendar import now_eastern
from equityease.maintenance.sweeper import MaintenanceSweeper
from equityease.providers import build_provider_chain
from equityease.providers.chain import ProviderChain
from equityease.storage.database import create_store

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application startup/shutdown lifecycle."""
    config = app.state._pending_config or load_config()
    clock = app.state._pending_clock or now_eastern
    store = await create_store(config.storage)
    await store.symbols.seed(config.symbols)
    providers = app.state._pending_providers or build_provider_chain(config.providers)

    app.state.app_state = AppState(
        config=config,
        store=store,
        providers=providers,
        orchestrator=CacheOrchestrator(store, providers, config.cache, clock=clock),
        sweeper=MaintenanceSweeper(store, providers, config.maintenance, clock=clock),
    )
    logger.info("equityease API ready (db=%s)", config.storage.sqlite_path)

    yield

    await providers.close()
    await store.close()


def create_app(
    config: EquityEaseConfig | None = None,
    providers: ProviderChain | None = None,
    clock: Callable[[], datetime] | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application."""
    import equityease

    app = FastAPI(
        title="equityease API",
        description="Multi-provider price caching for a leveraged-ETF portfolio tracker",
        version=equityease.__version__,
        lifespan=lifespan,
    )

    # Stash overrides so lifespan can retrieve them
    app.state._pending_config = config
    app.state._pending_providers = providers
    app.state._pending_clock = clock

    # CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # API key middleware; a no-op unless api.api_key is set
    app.middleware("http")(api_key_middleware)

    app.include_router(router, prefix="/api")

    # Exception handlers
    @app.exception_handler(EquityEaseError)
    async def equityease_exception_handler(request: Request, exc: EquityEaseError):
        status_map = {
            ConfigError: 400,
            InvalidRequestError: 400,
            StorageError: 500,
            ProviderError: 502,
        }
        status = status_map.get(type(exc), 500)
        if status >= 500:
            logger.error("%s on %s: %s", type(exc).__name__, request.url.path, exc)
        return JSONResponse(
            status_code=status,
            content={"error": type(exc).__name__, "detail": str(exc)},
        )

    @app.exception_handler(HTTPException)
    async def http_exception_handler(request: Request, exc: HTTPException):
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": HTTPStatus(exc.status_code).phrase, "detail": exc.detail},
            headers=exc.headers,
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        return JSONResponse(
            status_code=400,
            content={"error": "InvalidRequestError", "detail": str(exc.errors())},
        )

    return app
