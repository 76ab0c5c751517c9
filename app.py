"""
app.py: FastAPI application factory and startup lifecycle.

This is the ASGI application object imported by uvicorn.
It wires the ledgers, the recommendation engine and the allocation executor,
registers routers, and reconciles shelter occupancy before serving traffic.

Usage (via launcher):
    python main.py

Usage (direct uvicorn):
    uvicorn app:app --reload
"""

from __future__ import annotations

from contextlib import asynccontextmanager

from fastapi import FastAPI

from relief_backend.controllers.dashboard_controller import router as dashboard_router
from relief_backend.controllers.intake_controller import router as intake_router
from relief_backend.repository.data_repository import DataRepository
from relief_backend.services.allocation_service import AllocationExecutorService
from relief_backend.services.capacity_ledger_service import CapacityLedgerService
from relief_backend.services.dashboard_service import DashboardWorkflowService
from relief_backend.services.inventory_service import ResourceInventoryService
from relief_backend.services.recommendation_service import RecommendationService
from relief_backend.services.request_queue_service import RequestQueueService
from relief_backend.utils.config import Settings, get_settings
from relief_backend.utils.logger import get_logger


logger = get_logger(__name__)


def create_app(settings: Settings | None = None) -> FastAPI:
    """
    Build and wire the FastAPI application.

    Every service shares one repository and one capacity ledger, and all of
    them are exposed on app.state for the controller dependency providers.
    """
    settings = settings or get_settings()

    repository = DataRepository(settings)

    ledger_service = CapacityLedgerService(repository=repository, settings=settings)
    inventory_service = ResourceInventoryService(repository=repository, settings=settings)
    request_queue_service = RequestQueueService(
        repository=repository,
        ledger=ledger_service,
        settings=settings,
    )
    recommendation_service = RecommendationService(repository=repository, settings=settings)
    executor = AllocationExecutorService(
        repository=repository,
        ledger=ledger_service,
        settings=settings,
    )
    dashboard_service = DashboardWorkflowService(
        repository=repository,
        ledger=ledger_service,
        inventory_service=inventory_service,
        request_queue=request_queue_service,
        recommendation_service=recommendation_service,
        executor=executor,
        settings=settings,
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Run startup initialization before accepting requests."""
        _startup(app)
        yield

    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        lifespan=lifespan,
    )

    app.include_router(intake_router)
    app.include_router(dashboard_router)

    @app.get("/health", tags=["system"])
    async def health() -> dict[str, str]:
        return {"status": "ok", "version": settings.app_version}

    app.state.settings = settings
    app.state.repository = repository
    app.state.ledger_service = ledger_service
    app.state.inventory_service = inventory_service
    app.state.request_queue_service = request_queue_service
    app.state.recommendation_service = recommendation_service
    app.state.executor = executor
    app.state.dashboard_service = dashboard_service

    return app


def _startup(app: FastAPI) -> None:
    """
    Idempotent startup sequence. Safe to re-run on server restarts.

    Order matters:
      1. Schema must exist before seeding.
      2. Demo data is only inserted into an empty database.
      3. Occupancy is rebuilt from the request ledger last, so stored values
         written by any earlier process are never trusted.
    """
    settings: Settings = app.state.settings
    repository: DataRepository = app.state.repository
    ledger_service: CapacityLedgerService = app.state.ledger_service

    logger.info("Startup: initializing database schema | path=%s", repository.database_path)
    repository.initialize_database()

    if settings.seed_demo_data:
        logger.info("Startup: seeding demo relief data (skipped if Shelters table not empty)")
        repository.seed_demo_data_if_empty()

    logger.info("Startup: reconciling shelter occupancy with the request ledger")
    shelters = ledger_service.recompute_all()

    logger.info("Startup complete | shelters=%s", len(shelters))


# Module-level app object for uvicorn
app = create_app()
