"""Resource inventory view: stock levels and critical-stock detection."""

from __future__ import annotations

from typing import Optional

from relief_backend.domain.errors import ReliefValidationError, UnknownReferenceError
from relief_backend.domain.models import Resource, ResourceType
from relief_backend.repository.data_repository import DataRepository
from relief_backend.utils.config import Settings, get_settings
from relief_backend.utils.logger import get_logger


logger = get_logger(__name__)


class ResourceInventoryService:
    """Read-side inventory queries plus supply intake."""

    def __init__(
        self,
        repository: Optional[DataRepository] = None,
        settings: Optional[Settings] = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._repository = repository or DataRepository(self._settings)

    def list_critical(self, disaster_id: Optional[int] = None) -> list[Resource]:
        """Resources at or below their minimum threshold, most depleted first."""
        return self._repository.list_resources(disaster_id=disaster_id, critical_only=True)

    def list_resources(self, disaster_id: Optional[int] = None) -> list[Resource]:
        return self._repository.list_resources(disaster_id=disaster_id)

    def get_resource(self, resource_id: int) -> Resource:
        resource = self._repository.get_resource(resource_id)
        if resource is None:
            raise UnknownReferenceError("resource", resource_id)
        return resource

    def register_resource(
        self,
        *,
        name: str,
        resource_type: ResourceType | str,
        stock_level: int,
        minimum_threshold: int = 0,
        disaster_id: Optional[int] = None,
        unit: Optional[str] = None,
    ) -> Resource:
        if not name.strip():
            raise ReliefValidationError("resource name must be non-empty")
        if stock_level < 0:
            raise ReliefValidationError("stock_level must be >= 0")
        if minimum_threshold < 0:
            raise ReliefValidationError("minimum_threshold must be >= 0")
        try:
            parsed_type = ResourceType(resource_type)
        except ValueError as exc:
            raise ReliefValidationError(f"unknown resource_type '{resource_type}'") from exc

        with self._repository.transaction() as conn:
            if disaster_id is not None and self._repository.get_disaster(disaster_id, conn=conn) is None:
                raise UnknownReferenceError("disaster", disaster_id)
            resource_id = self._repository.create_resource(
                name=name.strip(),
                resource_type=parsed_type,
                stock_level=stock_level,
                minimum_threshold=minimum_threshold,
                disaster_id=disaster_id,
                unit=unit,
                conn=conn,
            )
            resource = self._repository.get_resource(resource_id, conn=conn)
        logger.info(
            "Resource registered | resource_id=%s | type=%s | stock=%s",
            resource_id,
            parsed_type.value,
            stock_level,
        )
        return resource

    def restock(self, resource_id: int, quantity: int) -> Resource:
        """Add newly received supply to a resource's stock."""
        if quantity <= 0:
            raise ReliefValidationError("restock quantity must be > 0")
        with self._repository.transaction() as conn:
            if not self._repository.increment_stock(resource_id, quantity, conn=conn):
                raise UnknownReferenceError("resource", resource_id)
            resource = self._repository.get_resource(resource_id, conn=conn)
        logger.info(
            "Resource restocked | resource_id=%s | added=%s | stock=%s",
            resource_id,
            quantity,
            resource.stock_level,
        )
        return resource
