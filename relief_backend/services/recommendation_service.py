"""Urgency-ranked greedy allocation recommendations.

The engine reads one snapshot of open requests (with shelter and resource
state joined in), scores each request, and walks the ranking once while
drawing down a per-resource stock counter. The result is advisory: nothing is
reserved, and the allocation executor re-checks stock when a recommendation
is acted upon.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from relief_backend.domain.constraints import UrgencyWeights, validate_urgency_weights
from relief_backend.domain.models import (
    PendingRequest,
    Recommendation,
    RequestPriority,
    ResourceType,
)
from relief_backend.repository.data_repository import DataRepository
from relief_backend.utils.config import Settings, get_settings
from relief_backend.utils.logger import get_logger


logger = get_logger(__name__)


@dataclass(frozen=True)
class ScoredRequest:
    pending: PendingRequest
    urgency_score: float


def compute_urgency_score(
    *,
    priority: int,
    utilization: float,
    is_occupancy: bool,
    is_critical: bool,
    weights: UrgencyWeights,
) -> float:
    """Weighted urgency; non-decreasing in priority, utilization and scarcity."""
    score = weights.priority_weight * float(priority)
    if is_occupancy:
        score += weights.utilization_weight * min(max(utilization, 0.0), weights.utilization_cap)
    if is_critical:
        score += weights.scarcity_weight
    return round(score, 4)


def priority_variant(priority: int) -> str:
    """Display badge for a priority level."""
    if priority >= RequestPriority.CRITICAL:
        return "error"
    if priority >= RequestPriority.URGENT:
        return "warning"
    if priority >= RequestPriority.HIGH:
        return "info"
    return "success"


def score_requests(
    pending_requests: list[PendingRequest],
    weights: UrgencyWeights,
) -> list[ScoredRequest]:
    """Score and rank requests: urgency desc, then oldest first, then id."""
    scored = [
        ScoredRequest(
            pending=item,
            urgency_score=compute_urgency_score(
                priority=int(item.request.priority),
                utilization=item.shelter.utilization,
                is_occupancy=item.resource.resource_type is ResourceType.OCCUPANCY,
                is_critical=item.resource.is_critical,
                weights=weights,
            ),
        )
        for item in pending_requests
    ]
    return sorted(
        scored,
        key=lambda entry: (
            -entry.urgency_score,
            entry.pending.request.requested_at,
            entry.pending.request.request_id,
        ),
    )


def allocate_greedily(ranked: list[ScoredRequest]) -> list[Recommendation]:
    """Single pass over the ranking with a remaining-stock counter per resource.

    Requests that get nothing are still emitted with recommended_quantity=0.
    """
    remaining_stock: dict[int, int] = {}
    for entry in ranked:
        resource = entry.pending.resource
        remaining_stock.setdefault(resource.resource_id, max(0, resource.stock_level))

    recommendations: list[Recommendation] = []
    for entry in ranked:
        request = entry.pending.request
        shelter = entry.pending.shelter
        resource = entry.pending.resource

        available = remaining_stock[resource.resource_id]
        recommended_quantity = min(request.outstanding_quantity, available)
        remaining_stock[resource.resource_id] = available - recommended_quantity

        recommendations.append(
            Recommendation(
                request_id=request.request_id,
                shelter_id=shelter.shelter_id,
                shelter_name=shelter.name,
                resource_id=resource.resource_id,
                resource_name=resource.name,
                resource_type=resource.resource_type,
                priority=request.priority,
                requested_at=request.requested_at,
                quantity_requested=request.quantity_requested,
                outstanding_quantity=request.outstanding_quantity,
                recommended_quantity=recommended_quantity,
                urgency_score=entry.urgency_score,
                priority_variant=priority_variant(int(request.priority)),
            )
        )
    return recommendations


class RecommendationService:
    """Produces a fresh, ranked allocation plan on every call."""

    def __init__(
        self,
        repository: Optional[DataRepository] = None,
        settings: Optional[Settings] = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._repository = repository or DataRepository(self._settings)
        self._weights = UrgencyWeights(
            priority_weight=self._settings.urgency_priority_weight,
            utilization_weight=self._settings.urgency_utilization_weight,
            utilization_cap=self._settings.urgency_utilization_cap,
            scarcity_weight=self._settings.urgency_scarcity_weight,
        )
        validate_urgency_weights(self._weights)

    @property
    def weights(self) -> UrgencyWeights:
        return self._weights

    def generate(self, disaster_id: Optional[int] = None) -> list[Recommendation]:
        # One read gives a consistent snapshot of requests, shelters and stock.
        pending_requests = self._repository.list_open_requests(disaster_id=disaster_id)
        recommendations = allocate_greedily(score_requests(pending_requests, self._weights))

        unserviceable = [item.request_id for item in recommendations if not item.is_serviceable]
        logger.info(
            "Recommendations generated | disaster_id=%s | total=%s | unserviceable=%s",
            disaster_id,
            len(recommendations),
            unserviceable,
        )
        return recommendations
