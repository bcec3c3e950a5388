"""
FastAPI application.

Routes are thin wrappers over the Services container created in the
lifespan handler: tender queries go to the QueryFacade, admin actions
to the ScraperOrchestrator.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Awaitable, Callable, Optional

from fastapi import Depends, FastAPI, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from tenderwatch import __version__
from tenderwatch.core.config.models import AppConfig
from tenderwatch.core.logging import get_logger
from tenderwatch.core.models import isoformat, utcnow
from tenderwatch.core.pagination import parse_pagination_params
from tenderwatch.core.query import UNKNOWN_SOURCE
from tenderwatch.core.services import Services, build_services

logger = get_logger("api")

ServicesFactory = Callable[[AppConfig], Awaitable[Services]]

DEFAULT_TEST_CAMPUS = "basar"


class AdminAction(BaseModel):
    """Body of POST /api/admin/scraper."""

    action: str = Field(..., description="start, stop or force-run")
    campus: Optional[str] = Field(default=None, description="Source id for force-run")


def get_services(request: Request) -> Services:
    return request.app.state.services


def _error(status_code: int, message: str, **extra: Any) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"success": False, "error": message, **extra},
    )


def create_app(
    config: AppConfig | None = None,
    services_factory: ServicesFactory | None = None,
) -> FastAPI:
    """Build the FastAPI app.

    Args:
        config: Application configuration (default: built-in defaults)
        services_factory: Async callable creating Services (tests inject fakes)
    """
    config = config or AppConfig()
    factory = services_factory or build_services

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        services = await factory(config)
        app.state.services = services
        if config.scheduler.autostart:
            services.orchestrator.start()
        logger.info("API started")
        try:
            yield
        finally:
            await services.aclose()
            logger.info("API stopped")

    app = FastAPI(
        title="TenderWatch API",
        version=__version__,
        lifespan=lifespan,
    )

    # =========================================================================
    # Health
    # =========================================================================

    @app.get("/api/health")
    async def health(services: Services = Depends(get_services)) -> dict[str, Any]:
        return {
            "status": "ok",
            "schedulerRunning": services.orchestrator.is_running,
            "timestamp": isoformat(utcnow()),
        }

    # =========================================================================
    # Tenders
    # =========================================================================

    @app.get("/api/tenders/{source_id}")
    async def get_tenders(
        source_id: str,
        page: Optional[str] = None,
        limit: Optional[str] = None,
        services: Services = Depends(get_services),
    ) -> Any:
        if not services.query.knows(source_id):
            return _error(404, UNKNOWN_SOURCE, source=source_id)

        response = await services.query.get_cached_tender_data(source_id)
        if page is None and limit is None:
            return response.to_dict()

        page_number, page_size = parse_pagination_params(
            page,
            limit,
            default_limit=services.config.query.default_page_size,
            max_limit=services.config.query.max_page_size,
        )
        return response.to_paginated_dict(page_number, page_size)

    # =========================================================================
    # Admin
    # =========================================================================

    @app.get("/api/admin/scraper")
    async def admin_query(
        action: Optional[str] = None,
        campus: Optional[str] = None,
        services: Services = Depends(get_services),
    ) -> Any:
        if action == "status":
            statuses = services.orchestrator.get_job_statuses()
            return {
                "success": True,
                "isRunning": services.orchestrator.is_running,
                "jobs": [state.to_dict() for state in statuses.values()],
                "timestamp": isoformat(utcnow()),
            }

        if action == "test-cache":
            campus_id = campus or DEFAULT_TEST_CAMPUS
            response = await services.query.get_cached_tender_data(campus_id)
            return {"success": True, "campus": campus_id, "data": response.to_dict()}

        return _error(400, "Invalid action. Use: status, test-cache")

    @app.post("/api/admin/scraper")
    async def admin_command(
        body: AdminAction,
        services: Services = Depends(get_services),
    ) -> Any:
        orchestrator = services.orchestrator

        if body.action == "start":
            started = orchestrator.start()
            return {
                "success": True,
                "message": "Centralized scraper started" if started else "Centralized scraper already running",
                "timestamp": isoformat(utcnow()),
            }

        if body.action == "stop":
            stopped = orchestrator.stop()
            return {
                "success": True,
                "message": "Centralized scraper stopped" if stopped else "Centralized scraper was not running",
                "timestamp": isoformat(utcnow()),
            }

        if body.action == "force-run":
            if body.campus:
                executed = await orchestrator.force_run(body.campus)
                return {
                    "success": True,
                    "message": (
                        f"Force run completed for {body.campus}"
                        if executed
                        else f"{body.campus} is already running, ran too recently, or was not found"
                    ),
                    "campus": body.campus,
                    "executed": executed,
                }

            results = await orchestrator.force_run_all()
            return {
                "success": True,
                "message": "Force run completed for all campuses",
                "executed": results,
            }

        return _error(400, "Invalid action. Use: start, stop, force-run")

    return app
