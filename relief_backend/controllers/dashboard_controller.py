"""Controller layer for dashboard read views and operator actions."""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel, Field

from relief_backend.controllers.dependencies import get_dashboard_service, to_http_exception
from relief_backend.domain.errors import ReliefError
from relief_backend.services.dashboard_service import DashboardWorkflowService
from relief_backend.utils.logger import get_logger


logger = get_logger(__name__)

router = APIRouter(tags=["dashboard"])


class CriticalResourceRow(BaseModel):
    resource_id: int = Field(gt=0)
    name: str
    resource_type: str
    unit: Optional[str] = None
    stock_level: int = Field(ge=0)
    minimum_threshold: int = Field(ge=0)
    stock_margin: int
    is_critical: bool


class CriticalResourcesResponse(BaseModel):
    resources: list[CriticalResourceRow]


class ShelterCapacityRow(BaseModel):
    shelter_id: int = Field(gt=0)
    name: str
    location: Optional[str] = None
    capacity: int = Field(ge=0)
    current_occupancy: int = Field(ge=0)
    available_capacity: int = Field(ge=0)
    utilization_percentage: float = Field(ge=0.0)
    operational_status: str


class ShelterCapacityResponse(BaseModel):
    shelters: list[ShelterCapacityRow]


class PendingRequestRow(BaseModel):
    request_id: int = Field(gt=0)
    shelter_id: int = Field(gt=0)
    shelter_name: str
    resource_id: int = Field(gt=0)
    resource_name: str
    resource_type: str
    quantity_requested: int = Field(gt=0)
    quantity_fulfilled: int = Field(ge=0)
    outstanding_quantity: int = Field(ge=0)
    priority: int = Field(ge=1, le=5)
    priority_label: str
    status: str
    requested_at: str


class PendingRequestsResponse(BaseModel):
    requests: list[PendingRequestRow]


class DisasterSummaryResponse(BaseModel):
    disaster_id: int = Field(gt=0)
    name: str
    disaster_type: str
    status: str
    started_on: Optional[str] = None
    total_shelters: int = Field(ge=0)
    total_capacity: int = Field(ge=0)
    total_occupancy: int = Field(ge=0)
    average_utilization_percentage: float = Field(ge=0.0)
    pending_requests: int = Field(ge=0)
    critical_resources: int = Field(ge=0)


class RecommendationRow(BaseModel):
    request_id: int = Field(gt=0)
    shelter_id: int = Field(gt=0)
    shelter_name: str
    resource_id: int = Field(gt=0)
    resource_name: str
    resource_type: str
    priority: int = Field(ge=1, le=5)
    priority_variant: str
    requested_at: str
    quantity_requested: int = Field(gt=0)
    outstanding_quantity: int = Field(ge=0)
    recommended_quantity: int = Field(ge=0)
    urgency_score: float = Field(ge=0.0)


class RecommendationsResponse(BaseModel):
    recommendations: list[RecommendationRow]
    unserviceable_request_ids: list[int]


class ExecuteRecommendationRequest(BaseModel):
    request_id: int = Field(gt=0)
    approved_quantity: int = Field(gt=0)
    comments: Optional[str] = Field(default=None, max_length=1000)


class RejectRequest(BaseModel):
    comments: Optional[str] = Field(default=None, max_length=1000)


class ActionResponse(BaseModel):
    request_id: int = Field(gt=0)
    status: str
    message: str
    approved_quantity: Optional[int] = Field(default=None, gt=0)
    remaining_stock: Optional[int] = Field(default=None, ge=0)
    shelter_occupancy: Optional[int] = Field(default=None, ge=0)


@router.get("/critical_resources", response_model=CriticalResourcesResponse, status_code=status.HTTP_200_OK)
async def get_critical_resources(
    disaster_id: Optional[int] = Query(default=None, gt=0),
    workflow_service: DashboardWorkflowService = Depends(get_dashboard_service),
) -> CriticalResourcesResponse:
    try:
        return CriticalResourcesResponse(**workflow_service.get_critical_resources(disaster_id))
    except ReliefError as exc:
        raise to_http_exception(exc) from exc
    except Exception as exc:  # pragma: no cover - defensive fallback
        logger.exception("Unexpected critical resources failure")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to load critical resources",
        ) from exc


@router.get("/shelter_capacity", response_model=ShelterCapacityResponse, status_code=status.HTTP_200_OK)
async def get_shelter_capacity(
    disaster_id: Optional[int] = Query(default=None, gt=0),
    workflow_service: DashboardWorkflowService = Depends(get_dashboard_service),
) -> ShelterCapacityResponse:
    try:
        return ShelterCapacityResponse(**workflow_service.get_shelter_capacity(disaster_id))
    except ReliefError as exc:
        raise to_http_exception(exc) from exc
    except Exception as exc:  # pragma: no cover - defensive fallback
        logger.exception("Unexpected shelter capacity failure")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to load shelter capacity",
        ) from exc


@router.get("/pending_requests", response_model=PendingRequestsResponse, status_code=status.HTTP_200_OK)
async def get_pending_requests(
    disaster_id: Optional[int] = Query(default=None, gt=0),
    workflow_service: DashboardWorkflowService = Depends(get_dashboard_service),
) -> PendingRequestsResponse:
    try:
        return PendingRequestsResponse(**workflow_service.get_pending_requests(disaster_id))
    except ReliefError as exc:
        raise to_http_exception(exc) from exc
    except Exception as exc:  # pragma: no cover - defensive fallback
        logger.exception("Unexpected pending requests failure")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to load pending requests",
        ) from exc


@router.get(
    "/disasters/{disaster_id}/summary",
    response_model=DisasterSummaryResponse,
    status_code=status.HTTP_200_OK,
)
async def get_disaster_summary(
    disaster_id: int,
    workflow_service: DashboardWorkflowService = Depends(get_dashboard_service),
) -> DisasterSummaryResponse:
    try:
        return DisasterSummaryResponse(**workflow_service.get_disaster_summary(disaster_id))
    except ReliefError as exc:
        raise to_http_exception(exc) from exc
    except Exception as exc:  # pragma: no cover - defensive fallback
        logger.exception("Unexpected disaster summary failure")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to load disaster summary",
        ) from exc


@router.get("/recommendations", response_model=RecommendationsResponse, status_code=status.HTTP_200_OK)
async def get_resource_recommendations(
    disaster_id: Optional[int] = Query(default=None, gt=0),
    workflow_service: DashboardWorkflowService = Depends(get_dashboard_service),
) -> RecommendationsResponse:
    """Generate a fresh ranked allocation plan; nothing is reserved."""
    try:
        return RecommendationsResponse(**workflow_service.get_resource_recommendations(disaster_id))
    except ReliefError as exc:
        raise to_http_exception(exc) from exc
    except Exception as exc:  # pragma: no cover - defensive fallback
        logger.exception("Unexpected recommendation failure")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to generate recommendations",
        ) from exc


@router.post("/requests/{request_id}/approve", response_model=ActionResponse, status_code=status.HTTP_200_OK)
async def approve_request(
    request_id: int,
    workflow_service: DashboardWorkflowService = Depends(get_dashboard_service),
) -> ActionResponse:
    try:
        return ActionResponse(**workflow_service.approve_request(request_id))
    except ReliefError as exc:
        raise to_http_exception(exc) from exc
    except Exception as exc:  # pragma: no cover - defensive fallback
        logger.exception("Unexpected approval failure")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to approve request",
        ) from exc


@router.post("/requests/{request_id}/reject", response_model=ActionResponse, status_code=status.HTTP_200_OK)
async def reject_request(
    request_id: int,
    payload: Optional[RejectRequest] = None,
    workflow_service: DashboardWorkflowService = Depends(get_dashboard_service),
) -> ActionResponse:
    try:
        comments = payload.comments if payload is not None else None
        return ActionResponse(**workflow_service.reject_request(request_id, comments=comments))
    except ReliefError as exc:
        raise to_http_exception(exc) from exc
    except Exception as exc:  # pragma: no cover - defensive fallback
        logger.exception("Unexpected rejection failure")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to reject request",
        ) from exc


@router.post("/recommendations/execute", response_model=ActionResponse, status_code=status.HTTP_200_OK)
async def execute_recommendation(
    payload: ExecuteRecommendationRequest,
    workflow_service: DashboardWorkflowService = Depends(get_dashboard_service),
) -> ActionResponse:
    """Apply an approved (possibly partial) quantity; stock is re-checked now."""
    try:
        result = workflow_service.execute_recommendation(
            request_id=payload.request_id,
            approved_quantity=payload.approved_quantity,
            comments=payload.comments,
        )
        return ActionResponse(**result)
    except ReliefError as exc:
        raise to_http_exception(exc) from exc
    except Exception as exc:  # pragma: no cover - defensive fallback
        logger.exception("Unexpected execution failure")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to execute recommendation",
        ) from exc
