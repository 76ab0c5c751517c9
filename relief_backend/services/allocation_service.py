"""Allocation executor: applies approved quantities to the ledgers.

Each execution is one transaction covering the stock decrement, the request
status change, the audit log row and the shelter capacity recompute. Stock is
re-read at execution time, never taken from the recommendation snapshot.
"""

from __future__ import annotations

import sqlite3
from typing import Optional

from relief_backend.domain.errors import (
    AlreadyTerminalError,
    ReliefValidationError,
    StockConflictError,
    UnknownReferenceError,
)
from relief_backend.domain.models import AllocationOutcome, RequestStatus, ResourceRequest
from relief_backend.repository.data_repository import DataRepository
from relief_backend.services.capacity_ledger_service import CapacityLedgerService
from relief_backend.utils.config import Settings, get_settings
from relief_backend.utils.logger import get_logger


logger = get_logger(__name__)

APPROVE_AS_IS_COMMENT = "Approved as requested"


class AllocationExecutorService:
    """Executes, approves and rejects requests."""

    def __init__(
        self,
        repository: Optional[DataRepository] = None,
        ledger: Optional[CapacityLedgerService] = None,
        settings: Optional[Settings] = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._repository = repository or DataRepository(self._settings)
        self._ledger = ledger or CapacityLedgerService(
            repository=self._repository,
            settings=self._settings,
        )

    def execute(
        self,
        *,
        request_id: int,
        approved_quantity: int,
        comments: Optional[str] = None,
    ) -> AllocationOutcome:
        """Allocate ``approved_quantity`` units to a request.

        A request that receives less than its outstanding quantity becomes
        Approved and stays open for a later execution; once fully satisfied
        it becomes Fulfilled.

        Raises:
            ReliefValidationError: non-positive or excess quantity, unknown ids.
            AlreadyTerminalError: request already Fulfilled or Rejected.
            StockConflictError: current stock is below ``approved_quantity``.
        """
        if approved_quantity <= 0:
            raise ReliefValidationError("approved_quantity must be > 0")
        return self._apply(request_id, approved_quantity, comments)

    def approve(self, request_id: int) -> AllocationOutcome:
        """Fulfil the full outstanding quantity in one execution."""
        return self._apply(request_id, None, APPROVE_AS_IS_COMMENT)

    def _apply(
        self,
        request_id: int,
        approved_quantity: Optional[int],
        comments: Optional[str],
    ) -> AllocationOutcome:
        with self._repository.transaction() as conn:
            request = self._load_open_request(request_id, conn)
            if approved_quantity is None:
                approved_quantity = request.outstanding_quantity
            if approved_quantity > request.outstanding_quantity:
                raise ReliefValidationError(
                    f"approved_quantity {approved_quantity} exceeds outstanding quantity "
                    f"{request.outstanding_quantity} for request id={request_id}"
                )

            resource = self._repository.get_resource(request.resource_id, conn=conn)
            if resource is None:
                raise UnknownReferenceError("resource", request.resource_id)
            if approved_quantity > resource.stock_level:
                logger.warning(
                    "Stock conflict | request_id=%s | resource_id=%s | approved=%s | in_stock=%s",
                    request_id,
                    resource.resource_id,
                    approved_quantity,
                    resource.stock_level,
                )
                raise StockConflictError(resource.resource_id, approved_quantity, resource.stock_level)
            if not self._repository.decrement_stock(resource.resource_id, approved_quantity, conn=conn):
                raise StockConflictError(resource.resource_id, approved_quantity, resource.stock_level)

            fulfilled_total = request.quantity_fulfilled + approved_quantity
            resulting_status = (
                RequestStatus.FULFILLED
                if fulfilled_total >= request.quantity_requested
                else RequestStatus.APPROVED
            )
            if not self._repository.transition_request(
                request_id,
                new_status=resulting_status,
                quantity_fulfilled=fulfilled_total,
                conn=conn,
            ):
                current = self._repository.get_request(request_id, conn=conn)
                raise AlreadyTerminalError(request_id, current.status.value if current else "deleted")

            self._repository.save_allocation_log(
                request_id=request_id,
                resource_id=resource.resource_id,
                quantity=approved_quantity,
                resulting_status=resulting_status,
                comments=comments,
                conn=conn,
            )
            (shelter,) = self._ledger.recompute({request.shelter_id}, conn=conn)

        remaining_stock = resource.stock_level - approved_quantity
        unit = resource.unit or "units"
        message = (
            f"Allocated {approved_quantity} {unit} of {resource.name} to {shelter.name}; "
            f"request {request_id} is now {resulting_status.value}"
        )
        if resulting_status is RequestStatus.APPROVED:
            message += f" ({request.quantity_requested - fulfilled_total} still outstanding)"

        logger.info(
            "Allocation executed | request_id=%s | resource_id=%s | quantity=%s | status=%s | remaining_stock=%s",
            request_id,
            resource.resource_id,
            approved_quantity,
            resulting_status.value,
            remaining_stock,
        )
        return AllocationOutcome(
            request_id=request_id,
            resource_id=resource.resource_id,
            shelter_id=shelter.shelter_id,
            approved_quantity=approved_quantity,
            resulting_status=resulting_status,
            remaining_stock=remaining_stock,
            shelter_occupancy=shelter.current_occupancy,
            message=message,
        )

    def reject(self, request_id: int, comments: Optional[str] = None) -> str:
        """Close a request without touching inventory or shelter capacity."""
        with self._repository.transaction() as conn:
            request = self._load_open_request(request_id, conn)
            if not self._repository.transition_request(
                request_id,
                new_status=RequestStatus.REJECTED,
                quantity_fulfilled=request.quantity_fulfilled,
                conn=conn,
            ):
                current = self._repository.get_request(request_id, conn=conn)
                raise AlreadyTerminalError(request_id, current.status.value if current else "deleted")

        logger.info("Request rejected | request_id=%s | comments=%s", request_id, comments)
        return f"Request {request_id} rejected"

    def _load_open_request(self, request_id: int, conn: sqlite3.Connection) -> ResourceRequest:
        request = self._repository.get_request(request_id, conn=conn)
        if request is None:
            raise UnknownReferenceError("request", request_id)
        if request.is_terminal:
            raise AlreadyTerminalError(request_id, request.status.value)
        return request
