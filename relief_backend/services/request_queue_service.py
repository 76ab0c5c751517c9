"""Request queue: open demand and the request mutation path.

Every insert, update and delete runs in one transaction together with the
capacity ledger recompute of the old and new shelters, so shelter occupancy
is never observable out of step with the request ledger.
"""

from __future__ import annotations

import sqlite3
from datetime import datetime, timezone
from typing import Optional

from relief_backend.domain.errors import (
    AlreadyTerminalError,
    ReliefValidationError,
    UnknownReferenceError,
)
from relief_backend.domain.models import (
    PendingRequest,
    RequestPriority,
    RequestStatus,
    ResourceRequest,
)
from relief_backend.repository.data_repository import DataRepository
from relief_backend.services.capacity_ledger_service import CapacityLedgerService
from relief_backend.utils.config import Settings, get_settings
from relief_backend.utils.logger import get_logger


logger = get_logger(__name__)


def _parse_priority(value: int) -> RequestPriority:
    try:
        return RequestPriority(int(value))
    except (TypeError, ValueError) as exc:
        raise ReliefValidationError("priority must be an integer between 1 and 5") from exc


def _normalize_timestamp(value: str) -> str:
    """Rewrite an ISO-8601 timestamp as UTC with microsecond precision.

    Queue ordering compares ``requested_at`` as text, so every stored value
    must share one offset and one precision. Naive timestamps are taken as UTC.
    """
    text = value.strip()
    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError as exc:
        raise ReliefValidationError("requested_at must be an ISO-8601 timestamp") from exc
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc).isoformat(timespec="microseconds")


class RequestQueueService:
    """Lists open requests and applies intake changes to the request ledger."""

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

    def list_pending(self, disaster_id: Optional[int] = None) -> list[PendingRequest]:
        """Pending/Approved requests, highest priority first, FIFO within a priority."""
        return self._repository.list_open_requests(disaster_id=disaster_id)

    def get_request(self, request_id: int) -> ResourceRequest:
        request = self._repository.get_request(request_id)
        if request is None:
            raise UnknownReferenceError("request", request_id)
        return request

    def _require_references(
        self,
        shelter_id: int,
        resource_id: int,
        conn: sqlite3.Connection,
    ) -> None:
        if self._repository.get_shelter(shelter_id, conn=conn) is None:
            raise UnknownReferenceError("shelter", shelter_id)
        if self._repository.get_resource(resource_id, conn=conn) is None:
            raise UnknownReferenceError("resource", resource_id)

    def create_request(
        self,
        *,
        shelter_id: int,
        resource_id: int,
        quantity_requested: int,
        priority: int,
        status: RequestStatus | str = RequestStatus.PENDING,
        requested_at: Optional[str] = None,
    ) -> ResourceRequest:
        """Record a field request.

        Intake may import an already Fulfilled request; its fulfilled quantity
        is the full requested quantity and it counts toward occupancy at once.
        """
        if quantity_requested <= 0:
            raise ReliefValidationError("quantity_requested must be > 0")
        parsed_priority = _parse_priority(priority)
        try:
            parsed_status = RequestStatus(status)
        except ValueError as exc:
            raise ReliefValidationError(f"unknown request status '{status}'") from exc
        if requested_at is not None:
            requested_at = _normalize_timestamp(requested_at)

        with self._repository.transaction() as conn:
            self._require_references(shelter_id, resource_id, conn)
            request_id = self._repository.create_request(
                shelter_id=shelter_id,
                resource_id=resource_id,
                quantity_requested=quantity_requested,
                priority=parsed_priority,
                status=parsed_status,
                requested_at=requested_at,
                quantity_fulfilled=quantity_requested if parsed_status is RequestStatus.FULFILLED else 0,
                conn=conn,
            )
            self._ledger.recompute({shelter_id}, conn=conn)
            request = self._repository.get_request(request_id, conn=conn)

        logger.info(
            "Request created | request_id=%s | shelter_id=%s | resource_id=%s | quantity=%s | priority=%s | status=%s",
            request_id,
            shelter_id,
            resource_id,
            quantity_requested,
            int(parsed_priority),
            parsed_status.value,
        )
        return request

    def update_request(
        self,
        request_id: int,
        *,
        shelter_id: Optional[int] = None,
        resource_id: Optional[int] = None,
        quantity_requested: Optional[int] = None,
        priority: Optional[int] = None,
    ) -> ResourceRequest:
        """Correct intake fields of an open request; terminal requests are immutable."""
        with self._repository.transaction() as conn:
            current = self._repository.get_request(request_id, conn=conn)
            if current is None:
                raise UnknownReferenceError("request", request_id)
            if current.is_terminal:
                raise AlreadyTerminalError(request_id, current.status.value)

            new_shelter_id = shelter_id if shelter_id is not None else current.shelter_id
            new_resource_id = resource_id if resource_id is not None else current.resource_id
            new_quantity = quantity_requested if quantity_requested is not None else current.quantity_requested
            new_priority = _parse_priority(priority) if priority is not None else current.priority

            if new_quantity <= 0:
                raise ReliefValidationError("quantity_requested must be > 0")
            if current.quantity_fulfilled > 0:
                if new_quantity <= current.quantity_fulfilled:
                    raise ReliefValidationError(
                        "quantity_requested must exceed the quantity already fulfilled "
                        f"({current.quantity_fulfilled})"
                    )
                if new_shelter_id != current.shelter_id or new_resource_id != current.resource_id:
                    raise ReliefValidationError(
                        "a partially fulfilled request cannot move to another shelter or resource"
                    )

            self._require_references(new_shelter_id, new_resource_id, conn)
            if not self._repository.update_open_request(
                request_id,
                shelter_id=new_shelter_id,
                resource_id=new_resource_id,
                quantity_requested=new_quantity,
                priority=new_priority,
                conn=conn,
            ):
                raise AlreadyTerminalError(request_id, "closed")
            self._ledger.recompute({current.shelter_id, new_shelter_id}, conn=conn)
            updated = self._repository.get_request(request_id, conn=conn)

        logger.info(
            "Request updated | request_id=%s | shelter_id=%s->%s | resource_id=%s->%s",
            request_id,
            current.shelter_id,
            new_shelter_id,
            current.resource_id,
            new_resource_id,
        )
        return updated

    def delete_request(self, request_id: int) -> None:
        with self._repository.transaction() as conn:
            current = self._repository.get_request(request_id, conn=conn)
            if current is None:
                raise UnknownReferenceError("request", request_id)
            self._repository.delete_request(request_id, conn=conn)
            self._ledger.recompute({current.shelter_id}, conn=conn)
        logger.info(
            "Request deleted | request_id=%s | shelter_id=%s | status=%s",
            request_id,
            current.shelter_id,
            current.status.value,
        )
