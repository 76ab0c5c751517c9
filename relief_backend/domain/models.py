"""Domain models for shelter capacity tracking and relief allocation."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum, IntEnum
from typing import Optional


class OperationalStatus(str, Enum):
    AVAILABLE = "Available"
    NEAR_CAPACITY = "Near Capacity"
    AT_CAPACITY = "At Capacity"
    CLOSED = "Closed"


class ResourceType(str, Enum):
    OCCUPANCY = "Occupancy"
    FOOD = "Food"
    WATER = "Water"
    MEDICAL_SUPPLIES = "Medical Supplies"
    HYGIENE = "Hygiene"
    BEDDING = "Bedding"
    PERSONNEL = "Personnel"
    OTHER = "Other"


class RequestStatus(str, Enum):
    PENDING = "Pending"
    APPROVED = "Approved"
    FULFILLED = "Fulfilled"
    REJECTED = "Rejected"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES


TERMINAL_STATUSES = frozenset({RequestStatus.FULFILLED, RequestStatus.REJECTED})
OPEN_STATUSES = (RequestStatus.PENDING, RequestStatus.APPROVED)


class RequestPriority(IntEnum):
    LOW = 1
    MEDIUM = 2
    HIGH = 3
    URGENT = 4
    CRITICAL = 5


@dataclass(frozen=True)
class Disaster:
    disaster_id: int
    name: str
    disaster_type: str
    status: str
    started_on: Optional[str] = None


@dataclass(frozen=True)
class Shelter:
    shelter_id: int
    name: str
    capacity: int
    current_occupancy: int
    operational_status: OperationalStatus
    disaster_id: Optional[int] = None
    location: Optional[str] = None

    @property
    def utilization(self) -> float:
        if self.capacity <= 0:
            return 0.0
        return self.current_occupancy / self.capacity

    @property
    def available_capacity(self) -> int:
        return max(0, self.capacity - self.current_occupancy)


@dataclass(frozen=True)
class Resource:
    resource_id: int
    name: str
    resource_type: ResourceType
    stock_level: int
    minimum_threshold: int
    disaster_id: Optional[int] = None
    unit: Optional[str] = None

    @property
    def is_critical(self) -> bool:
        return self.stock_level <= self.minimum_threshold

    @property
    def stock_margin(self) -> int:
        """Distance above the minimum threshold; negative once below it."""
        return self.stock_level - self.minimum_threshold


@dataclass(frozen=True)
class ResourceRequest:
    request_id: int
    shelter_id: int
    resource_id: int
    quantity_requested: int
    priority: RequestPriority
    status: RequestStatus
    requested_at: str
    quantity_fulfilled: int = 0

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal

    @property
    def outstanding_quantity(self) -> int:
        return max(0, self.quantity_requested - self.quantity_fulfilled)


@dataclass(frozen=True)
class PendingRequest:
    """Open request resolved together with its shelter and resource."""

    request: ResourceRequest
    shelter: Shelter
    resource: Resource


@dataclass(frozen=True)
class Recommendation:
    request_id: int
    shelter_id: int
    shelter_name: str
    resource_id: int
    resource_name: str
    resource_type: ResourceType
    priority: RequestPriority
    requested_at: str
    quantity_requested: int
    outstanding_quantity: int
    recommended_quantity: int
    urgency_score: float
    priority_variant: str

    @property
    def is_serviceable(self) -> bool:
        return self.recommended_quantity > 0

    @property
    def is_partial(self) -> bool:
        return 0 < self.recommended_quantity < self.outstanding_quantity


@dataclass(frozen=True)
class AllocationOutcome:
    request_id: int
    resource_id: int
    shelter_id: int
    approved_quantity: int
    resulting_status: RequestStatus
    remaining_stock: int
    shelter_occupancy: int
    message: str


@dataclass(frozen=True)
class ShelterStats:
    total_shelters: int
    total_capacity: int
    total_occupancy: int
    average_utilization: float


@dataclass(frozen=True)
class DisasterSummary:
    disaster: Disaster
    shelter_stats: ShelterStats
    pending_requests: int
    critical_resources: int
