"""
Main FastAPI application entry point for the subscription ledger.
"""

from typing import Any

import structlog
from fastapi import FastAPI

from subledger.db import check_database_health
from subledger.ledger.dependencies import get_ledger_gateway
from subledger.ledger.gateway import LedgerGateway
from subledger.ledger.router import router as ledger_router
from subledger.settings import StorageBackend, get_settings

logger = structlog.get_logger(__name__)


def create_app(gateway: LedgerGateway | None = None) -> FastAPI:
    """
    Build the HTTP application.

    Args:
        gateway: Ledger gateway to serve; when omitted, one is built from
            settings on first use
    """
    settings = get_settings()
    app = FastAPI(title=settings.app_name, version=settings.app_version, debug=settings.debug)

    if gateway is not None:
        app.dependency_overrides[get_ledger_gateway] = lambda: gateway

    app.include_router(ledger_router)

    @app.get("/health")
    def health() -> dict[str, Any]:
        backend = get_settings().ledger.storage_backend
        checks: dict[str, Any] = {"storage_backend": backend.value}
        healthy = True
        if backend == StorageBackend.SQL:
            healthy = check_database_health()
            checks["database"] = "ok" if healthy else "unavailable"
        return {"status": "healthy" if healthy else "degraded", "checks": checks}

    logger.info(
        "Application created",
        app_name=settings.app_name,
        environment=settings.environment.value,
        storage_backend=settings.ledger.storage_backend.value,
    )
    return app
