"""Shared FastAPI dependency providers for controller layer."""

from __future__ import annotations

from typing import Any

from fastapi import HTTPException, Request, status

from relief_backend.domain.errors import (
    AlreadyTerminalError,
    PersistenceError,
    ReliefError,
    StockConflictError,
    UnknownReferenceError,
)
from relief_backend.services.capacity_ledger_service import CapacityLedgerService
from relief_backend.services.dashboard_service import DashboardWorkflowService
from relief_backend.services.inventory_service import ResourceInventoryService
from relief_backend.services.request_queue_service import RequestQueueService


def _require_state(request: Request, attribute: str, label: str) -> Any:
    service = getattr(request.app.state, attribute, None)
    if service is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=f"{label} is not initialized",
        )
    return service


def get_dashboard_service(request: Request) -> DashboardWorkflowService:
    return _require_state(request, "dashboard_service", "Dashboard service")


def get_ledger_service(request: Request) -> CapacityLedgerService:
    return _require_state(request, "ledger_service", "Capacity ledger service")


def get_inventory_service(request: Request) -> ResourceInventoryService:
    return _require_state(request, "inventory_service", "Inventory service")


def get_request_queue_service(request: Request) -> RequestQueueService:
    return _require_state(request, "request_queue_service", "Request queue service")


def to_http_exception(exc: ReliefError) -> HTTPException:
    """Map the domain error taxonomy onto HTTP status codes."""
    if isinstance(exc, UnknownReferenceError):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc))
    if isinstance(exc, StockConflictError):
        return HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail={
                "error": "stock_conflict",
                "message": str(exc),
                "resource_id": exc.resource_id,
                "requested_quantity": exc.requested_quantity,
                "available_quantity": exc.available_quantity,
            },
        )
    if isinstance(exc, AlreadyTerminalError):
        return HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail={
                "error": "already_terminal",
                "message": str(exc),
                "request_id": exc.request_id,
                "status": exc.status,
            },
        )
    if isinstance(exc, PersistenceError):
        return HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={
                "error": "persistence_failure",
                "message": str(exc),
                "failed_ids": exc.failed_ids,
            },
        )
    return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))
