"""Controller layer for field intake: disasters, shelters, supplies and requests."""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Response, status
from pydantic import BaseModel, Field, field_validator

from relief_backend.controllers.dependencies import (
    get_dashboard_service,
    get_inventory_service,
    get_ledger_service,
    get_request_queue_service,
    to_http_exception,
)
from relief_backend.domain.errors import ReliefError
from relief_backend.domain.models import RequestStatus, Resource, ResourceRequest, ResourceType, Shelter
from relief_backend.services.capacity_ledger_service import CapacityLedgerService
from relief_backend.services.dashboard_service import DashboardWorkflowService
from relief_backend.services.inventory_service import ResourceInventoryService
from relief_backend.services.request_queue_service import RequestQueueService
from relief_backend.utils.logger import get_logger


logger = get_logger(__name__)

router = APIRouter(tags=["intake"])


class DisasterCreateRequest(BaseModel):
    name: str = Field(min_length=1, max_length=200)
    disaster_type: str = Field(default="Unspecified", min_length=1, max_length=100)
    status: str = Field(default="Active", min_length=1, max_length=50)
    started_on: Optional[str] = None


class DisasterResponse(BaseModel):
    disaster_id: int = Field(gt=0)
    name: str
    disaster_type: str
    status: str
    started_on: Optional[str] = None


class ShelterCreateRequest(BaseModel):
    name: str = Field(min_length=1, max_length=200)
    capacity: int = Field(ge=0)
    disaster_id: Optional[int] = Field(default=None, gt=0)
    location: Optional[str] = Field(default=None, max_length=300)


class ShelterResponse(BaseModel):
    shelter_id: int = Field(gt=0)
    name: str
    capacity: int = Field(ge=0)
    current_occupancy: int = Field(ge=0)
    operational_status: str
    disaster_id: Optional[int] = None
    location: Optional[str] = None


class ResourceCreateRequest(BaseModel):
    name: str = Field(min_length=1, max_length=200)
    resource_type: str
    stock_level: int = Field(ge=0)
    minimum_threshold: int = Field(default=0, ge=0)
    disaster_id: Optional[int] = Field(default=None, gt=0)
    unit: Optional[str] = Field(default=None, max_length=50)

    @field_validator("resource_type")
    @classmethod
    def validate_resource_type(cls, value: str) -> str:
        allowed = {item.value for item in ResourceType}
        if value not in allowed:
            raise ValueError(f"resource_type must be one of {sorted(allowed)}")
        return value


class RestockRequest(BaseModel):
    quantity: int = Field(gt=0)


class ResourceResponse(BaseModel):
    resource_id: int = Field(gt=0)
    name: str
    resource_type: str
    stock_level: int = Field(ge=0)
    minimum_threshold: int = Field(ge=0)
    is_critical: bool
    disaster_id: Optional[int] = None
    unit: Optional[str] = None


class RequestCreateRequest(BaseModel):
    shelter_id: int = Field(gt=0)
    resource_id: int = Field(gt=0)
    quantity_requested: int = Field(gt=0)
    priority: int = Field(ge=1, le=5)
    status: str = Field(default=RequestStatus.PENDING.value)
    requested_at: Optional[str] = None

    @field_validator("status")
    @classmethod
    def validate_status(cls, value: str) -> str:
        allowed = {item.value for item in RequestStatus}
        if value not in allowed:
            raise ValueError(f"status must be one of {sorted(allowed)}")
        return value


class RequestUpdateRequest(BaseModel):
    shelter_id: Optional[int] = Field(default=None, gt=0)
    resource_id: Optional[int] = Field(default=None, gt=0)
    quantity_requested: Optional[int] = Field(default=None, gt=0)
    priority: Optional[int] = Field(default=None, ge=1, le=5)


class RequestResponse(BaseModel):
    request_id: int = Field(gt=0)
    shelter_id: int = Field(gt=0)
    resource_id: int = Field(gt=0)
    quantity_requested: int = Field(gt=0)
    quantity_fulfilled: int = Field(ge=0)
    priority: int = Field(ge=1, le=5)
    status: str
    requested_at: str


def _shelter_response(shelter: Shelter) -> ShelterResponse:
    return ShelterResponse(
        shelter_id=shelter.shelter_id,
        name=shelter.name,
        capacity=shelter.capacity,
        current_occupancy=shelter.current_occupancy,
        operational_status=shelter.operational_status.value,
        disaster_id=shelter.disaster_id,
        location=shelter.location,
    )


def _resource_response(resource: Resource) -> ResourceResponse:
    return ResourceResponse(
        resource_id=resource.resource_id,
        name=resource.name,
        resource_type=resource.resource_type.value,
        stock_level=resource.stock_level,
        minimum_threshold=resource.minimum_threshold,
        is_critical=resource.is_critical,
        disaster_id=resource.disaster_id,
        unit=resource.unit,
    )


def _request_response(request: ResourceRequest) -> RequestResponse:
    return RequestResponse(
        request_id=request.request_id,
        shelter_id=request.shelter_id,
        resource_id=request.resource_id,
        quantity_requested=request.quantity_requested,
        quantity_fulfilled=request.quantity_fulfilled,
        priority=int(request.priority),
        status=request.status.value,
        requested_at=request.requested_at,
    )


def _unexpected(action: str) -> HTTPException:
    logger.exception("Unexpected intake failure | action=%s", action)
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail=f"Failed to {action}",
    )


@router.post("/disasters", response_model=DisasterResponse, status_code=status.HTTP_201_CREATED)
async def create_disaster(
    payload: DisasterCreateRequest,
    workflow_service: DashboardWorkflowService = Depends(get_dashboard_service),
) -> DisasterResponse:
    try:
        disaster = workflow_service.register_disaster(
            name=payload.name,
            disaster_type=payload.disaster_type,
            status=payload.status,
            started_on=payload.started_on,
        )
    except ReliefError as exc:
        raise to_http_exception(exc) from exc
    except Exception as exc:  # pragma: no cover - defensive fallback
        raise _unexpected("register disaster") from exc
    return DisasterResponse(
        disaster_id=disaster.disaster_id,
        name=disaster.name,
        disaster_type=disaster.disaster_type,
        status=disaster.status,
        started_on=disaster.started_on,
    )


@router.post("/shelters", response_model=ShelterResponse, status_code=status.HTTP_201_CREATED)
async def create_shelter(
    payload: ShelterCreateRequest,
    ledger: CapacityLedgerService = Depends(get_ledger_service),
) -> ShelterResponse:
    try:
        shelter = ledger.register_shelter(
            name=payload.name,
            capacity=payload.capacity,
            disaster_id=payload.disaster_id,
            location=payload.location,
        )
    except ReliefError as exc:
        raise to_http_exception(exc) from exc
    except Exception as exc:  # pragma: no cover - defensive fallback
        raise _unexpected("register shelter") from exc
    return _shelter_response(shelter)


@router.post("/shelters/{shelter_id}/close", response_model=ShelterResponse, status_code=status.HTTP_200_OK)
async def close_shelter(
    shelter_id: int,
    ledger: CapacityLedgerService = Depends(get_ledger_service),
) -> ShelterResponse:
    try:
        return _shelter_response(ledger.close_shelter(shelter_id))
    except ReliefError as exc:
        raise to_http_exception(exc) from exc
    except Exception as exc:  # pragma: no cover - defensive fallback
        raise _unexpected("close shelter") from exc


@router.post("/shelters/{shelter_id}/reopen", response_model=ShelterResponse, status_code=status.HTTP_200_OK)
async def reopen_shelter(
    shelter_id: int,
    ledger: CapacityLedgerService = Depends(get_ledger_service),
) -> ShelterResponse:
    try:
        return _shelter_response(ledger.reopen_shelter(shelter_id))
    except ReliefError as exc:
        raise to_http_exception(exc) from exc
    except Exception as exc:  # pragma: no cover - defensive fallback
        raise _unexpected("reopen shelter") from exc


@router.post("/resources", response_model=ResourceResponse, status_code=status.HTTP_201_CREATED)
async def create_resource(
    payload: ResourceCreateRequest,
    inventory: ResourceInventoryService = Depends(get_inventory_service),
) -> ResourceResponse:
    try:
        resource = inventory.register_resource(
            name=payload.name,
            resource_type=payload.resource_type,
            stock_level=payload.stock_level,
            minimum_threshold=payload.minimum_threshold,
            disaster_id=payload.disaster_id,
            unit=payload.unit,
        )
    except ReliefError as exc:
        raise to_http_exception(exc) from exc
    except Exception as exc:  # pragma: no cover - defensive fallback
        raise _unexpected("register resource") from exc
    return _resource_response(resource)


@router.post(
    "/resources/{resource_id}/restock",
    response_model=ResourceResponse,
    status_code=status.HTTP_200_OK,
)
async def restock_resource(
    resource_id: int,
    payload: RestockRequest,
    inventory: ResourceInventoryService = Depends(get_inventory_service),
) -> ResourceResponse:
    try:
        return _resource_response(inventory.restock(resource_id, payload.quantity))
    except ReliefError as exc:
        raise to_http_exception(exc) from exc
    except Exception as exc:  # pragma: no cover - defensive fallback
        raise _unexpected("restock resource") from exc


@router.post("/requests", response_model=RequestResponse, status_code=status.HTTP_201_CREATED)
async def create_request(
    payload: RequestCreateRequest,
    request_queue: RequestQueueService = Depends(get_request_queue_service),
) -> RequestResponse:
    try:
        created = request_queue.create_request(
            shelter_id=payload.shelter_id,
            resource_id=payload.resource_id,
            quantity_requested=payload.quantity_requested,
            priority=payload.priority,
            status=payload.status,
            requested_at=payload.requested_at,
        )
    except ReliefError as exc:
        raise to_http_exception(exc) from exc
    except Exception as exc:  # pragma: no cover - defensive fallback
        raise _unexpected("create request") from exc
    return _request_response(created)


@router.patch("/requests/{request_id}", response_model=RequestResponse, status_code=status.HTTP_200_OK)
async def update_request(
    request_id: int,
    payload: RequestUpdateRequest,
    request_queue: RequestQueueService = Depends(get_request_queue_service),
) -> RequestResponse:
    try:
        updated = request_queue.update_request(
            request_id,
            shelter_id=payload.shelter_id,
            resource_id=payload.resource_id,
            quantity_requested=payload.quantity_requested,
            priority=payload.priority,
        )
    except ReliefError as exc:
        raise to_http_exception(exc) from exc
    except Exception as exc:  # pragma: no cover - defensive fallback
        raise _unexpected("update request") from exc
    return _request_response(updated)


@router.delete("/requests/{request_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_request(
    request_id: int,
    request_queue: RequestQueueService = Depends(get_request_queue_service),
) -> Response:
    try:
        request_queue.delete_request(request_id)
    except ReliefError as exc:
        raise to_http_exception(exc) from exc
    except Exception as exc:  # pragma: no cover - defensive fallback
        raise _unexpected("delete request") from exc
    return Response(status_code=status.HTTP_204_NO_CONTENT)
