"""
FastAPI application for the Intent Ledger.
"""

from __future__ import annotations

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from typing import Optional

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from . import __version__
from .config import Settings, get_settings
from .core.context import LedgerContext, build_context
from .db.base import init_database
from .logging_config import configure_logging
from .records.routes import router as ledger_router

logger = structlog.get_logger()


def create_app(
    settings: Optional[Settings] = None,
    context: Optional[LedgerContext] = None,
) -> FastAPI:
    """Build the application.

    Passing ``context`` replaces the configured event sink, provider and
    detached runner, which is how tests observe side effects.
    """
    settings = settings or get_settings()
    configure_logging(settings.log_level, settings.log_format)
    ledger_context = context or build_context(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        """Application lifespan manager."""
        logger.info("ledger_starting", environment=settings.environment)
        try:
            init_database()
        except Exception as e:
            logger.error("ledger_start_failed", error=str(e))
            raise

        yield

        logger.info("ledger_shutting_down")
        ledger_context.close()
        logger.info("ledger_shutdown_complete")

    app = FastAPI(
        title="Intent Ledger",
        description="Project memory: intents, decisions, assumptions, risks and tasks",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.ledger_context = ledger_context

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.get("/health", tags=["system"])
    def health() -> dict:
        """Basic health check: the API is reachable and the AI provider state."""
        return {
            "status": "ok",
            "provider": ledger_context.provider.name,
            "provider_available": ledger_context.provider.is_available(),
        }

    @app.get("/healthz", tags=["system"])
    def healthz() -> dict[str, str]:
        return {"status": "ok"}

    @app.get("/version", tags=["system"])
    def version() -> dict[str, str]:
        """Return the version of the application."""
        return {"version": __version__}

    app.include_router(ledger_router)
    return app


app = create_app()
