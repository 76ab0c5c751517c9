"""Dashboard orchestration service: pull-based views and operator actions."""

from __future__ import annotations

from typing import Any, Optional

from relief_backend.domain.errors import ReliefValidationError, UnknownReferenceError
from relief_backend.domain.models import (
    AllocationOutcome,
    Disaster,
    DisasterSummary,
    Recommendation,
    RequestStatus,
    Resource,
    Shelter,
    ShelterStats,
)
from relief_backend.repository.data_repository import DataRepository
from relief_backend.services.allocation_service import AllocationExecutorService
from relief_backend.services.capacity_ledger_service import CapacityLedgerService
from relief_backend.services.inventory_service import ResourceInventoryService
from relief_backend.services.recommendation_service import RecommendationService
from relief_backend.services.request_queue_service import RequestQueueService
from relief_backend.utils.config import Settings, get_settings
from relief_backend.utils.logger import get_logger


logger = get_logger(__name__)

DASHBOARD_EXECUTION_COMMENT = "Approved via dashboard"


def _percent(ratio: float) -> float:
    return round(ratio * 100.0, 2)


def _resource_row(resource: Resource) -> dict[str, Any]:
    return {
        "resource_id": resource.resource_id,
        "name": resource.name,
        "resource_type": resource.resource_type.value,
        "unit": resource.unit,
        "stock_level": resource.stock_level,
        "minimum_threshold": resource.minimum_threshold,
        "stock_margin": resource.stock_margin,
        "is_critical": resource.is_critical,
    }


def _shelter_row(shelter: Shelter) -> dict[str, Any]:
    return {
        "shelter_id": shelter.shelter_id,
        "name": shelter.name,
        "location": shelter.location,
        "capacity": shelter.capacity,
        "current_occupancy": shelter.current_occupancy,
        "available_capacity": shelter.available_capacity,
        "utilization_percentage": _percent(shelter.utilization),
        "operational_status": shelter.operational_status.value,
    }


def _recommendation_row(item: Recommendation) -> dict[str, Any]:
    return {
        "request_id": item.request_id,
        "shelter_id": item.shelter_id,
        "shelter_name": item.shelter_name,
        "resource_id": item.resource_id,
        "resource_name": item.resource_name,
        "resource_type": item.resource_type.value,
        "priority": int(item.priority),
        "priority_variant": item.priority_variant,
        "requested_at": item.requested_at,
        "quantity_requested": item.quantity_requested,
        "outstanding_quantity": item.outstanding_quantity,
        "recommended_quantity": item.recommended_quantity,
        "urgency_score": item.urgency_score,
    }


def _outcome_payload(outcome: AllocationOutcome) -> dict[str, Any]:
    return {
        "request_id": outcome.request_id,
        "status": outcome.resulting_status.value,
        "approved_quantity": outcome.approved_quantity,
        "remaining_stock": outcome.remaining_stock,
        "shelter_occupancy": outcome.shelter_occupancy,
        "message": outcome.message,
    }


def summarize_shelters(shelters: list[Shelter]) -> ShelterStats:
    if not shelters:
        return ShelterStats(total_shelters=0, total_capacity=0, total_occupancy=0, average_utilization=0.0)
    return ShelterStats(
        total_shelters=len(shelters),
        total_capacity=sum(shelter.capacity for shelter in shelters),
        total_occupancy=sum(shelter.current_occupancy for shelter in shelters),
        average_utilization=sum(shelter.utilization for shelter in shelters) / len(shelters),
    )


class DashboardWorkflowService:
    """Coordinates read views and approve/reject/execute actions for operators."""

    def __init__(
        self,
        repository: Optional[DataRepository] = None,
        ledger: Optional[CapacityLedgerService] = None,
        inventory_service: Optional[ResourceInventoryService] = None,
        request_queue: Optional[RequestQueueService] = None,
        recommendation_service: Optional[RecommendationService] = None,
        executor: Optional[AllocationExecutorService] = None,
        settings: Optional[Settings] = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._repository = repository or DataRepository(self._settings)
        self._ledger = ledger or CapacityLedgerService(
            repository=self._repository,
            settings=self._settings,
        )
        self._inventory = inventory_service or ResourceInventoryService(
            repository=self._repository,
            settings=self._settings,
        )
        self._request_queue = request_queue or RequestQueueService(
            repository=self._repository,
            ledger=self._ledger,
            settings=self._settings,
        )
        self._recommendations = recommendation_service or RecommendationService(
            repository=self._repository,
            settings=self._settings,
        )
        self._executor = executor or AllocationExecutorService(
            repository=self._repository,
            ledger=self._ledger,
            settings=self._settings,
        )

    def register_disaster(
        self,
        *,
        name: str,
        disaster_type: str = "Unspecified",
        status: str = "Active",
        started_on: Optional[str] = None,
    ) -> Disaster:
        if not name.strip():
            raise ReliefValidationError("disaster name must be non-empty")
        disaster_id = self._repository.create_disaster(
            name=name.strip(),
            disaster_type=disaster_type,
            status=status,
            started_on=started_on,
        )
        logger.info("Disaster registered | disaster_id=%s | name=%s", disaster_id, name)
        return self._repository.get_disaster(disaster_id)

    def get_critical_resources(self, disaster_id: Optional[int] = None) -> dict[str, list[dict[str, Any]]]:
        return {"resources": [_resource_row(item) for item in self._inventory.list_critical(disaster_id)]}

    def get_shelter_capacity(self, disaster_id: Optional[int] = None) -> dict[str, list[dict[str, Any]]]:
        return {"shelters": [_shelter_row(item) for item in self._ledger.list_shelter_capacity(disaster_id)]}

    def get_pending_requests(self, disaster_id: Optional[int] = None) -> dict[str, list[dict[str, Any]]]:
        rows = []
        for item in self._request_queue.list_pending(disaster_id):
            request = item.request
            rows.append(
                {
                    "request_id": request.request_id,
                    "shelter_id": item.shelter.shelter_id,
                    "shelter_name": item.shelter.name,
                    "resource_id": item.resource.resource_id,
                    "resource_name": item.resource.name,
                    "resource_type": item.resource.resource_type.value,
                    "quantity_requested": request.quantity_requested,
                    "quantity_fulfilled": request.quantity_fulfilled,
                    "outstanding_quantity": request.outstanding_quantity,
                    "priority": int(request.priority),
                    "priority_label": request.priority.name.title(),
                    "status": request.status.value,
                    "requested_at": request.requested_at,
                }
            )
        return {"requests": rows}

    def get_disaster_summary(self, disaster_id: int) -> dict[str, Any]:
        disaster = self._repository.get_disaster(disaster_id)
        if disaster is None:
            raise UnknownReferenceError("disaster", disaster_id)

        summary = DisasterSummary(
            disaster=disaster,
            shelter_stats=summarize_shelters(self._repository.list_shelters(disaster_id=disaster_id)),
            pending_requests=self._repository.count_open_requests(disaster_id=disaster_id),
            critical_resources=len(self._inventory.list_critical(disaster_id)),
        )
        stats = summary.shelter_stats
        return {
            "disaster_id": disaster.disaster_id,
            "name": disaster.name,
            "disaster_type": disaster.disaster_type,
            "status": disaster.status,
            "started_on": disaster.started_on,
            "total_shelters": stats.total_shelters,
            "total_capacity": stats.total_capacity,
            "total_occupancy": stats.total_occupancy,
            "average_utilization_percentage": _percent(stats.average_utilization),
            "pending_requests": summary.pending_requests,
            "critical_resources": summary.critical_resources,
        }

    def get_resource_recommendations(self, disaster_id: Optional[int] = None) -> dict[str, Any]:
        recommendations = self._recommendations.generate(disaster_id)
        return {
            "recommendations": [_recommendation_row(item) for item in recommendations],
            "unserviceable_request_ids": [
                item.request_id for item in recommendations if not item.is_serviceable
            ],
        }

    def approve_request(self, request_id: int) -> dict[str, Any]:
        return _outcome_payload(self._executor.approve(request_id))

    def execute_recommendation(
        self,
        *,
        request_id: int,
        approved_quantity: int,
        comments: Optional[str] = None,
    ) -> dict[str, Any]:
        outcome = self._executor.execute(
            request_id=request_id,
            approved_quantity=approved_quantity,
            comments=comments or DASHBOARD_EXECUTION_COMMENT,
        )
        return _outcome_payload(outcome)

    def reject_request(self, request_id: int, comments: Optional[str] = None) -> dict[str, Any]:
        message = self._executor.reject(request_id, comments=comments)
        return {"request_id": request_id, "status": RequestStatus.REJECTED.value, "message": message}
