from __future__ import annotations

from dataclasses import replace

import pytest

from relief_backend.domain.errors import ReliefValidationError, UnknownReferenceError
from relief_backend.domain.models import ResourceType
from relief_backend.repository.data_repository import DataRepository
from relief_backend.services.inventory_service import ResourceInventoryService
from relief_backend.utils.config import get_settings


def _build_test_settings(tmp_path, filename: str):
    get_settings.cache_clear()
    base = get_settings()
    return replace(base, database_path=tmp_path / filename, seed_demo_data=False)


def _build_service(tmp_path, filename: str) -> tuple[DataRepository, ResourceInventoryService]:
    settings = _build_test_settings(tmp_path, filename)
    repository = DataRepository(settings)
    repository.initialize_database()
    return repository, ResourceInventoryService(repository=repository, settings=settings)


def test_critical_resources_are_at_or_below_threshold_most_depleted_first(tmp_path):
    _, service = _build_service(tmp_path, "critical_order.db")
    healthy = service.register_resource(name="Water", resource_type="Water", stock_level=400, minimum_threshold=100)
    at_threshold = service.register_resource(
        name="Blankets",
        resource_type=ResourceType.BEDDING,
        stock_level=50,
        minimum_threshold=50,
    )
    depleted = service.register_resource(name="Meals", resource_type="Food", stock_level=10, minimum_threshold=120)
    short = service.register_resource(
        name="Insulin",
        resource_type="Medical Supplies",
        stock_level=3,
        minimum_threshold=8,
    )

    critical = service.list_critical()

    assert [item.resource_id for item in critical] == [
        depleted.resource_id,
        short.resource_id,
        at_threshold.resource_id,
    ]
    assert healthy.resource_id not in {item.resource_id for item in critical}
    assert all(item.is_critical for item in critical)


def test_critical_resources_are_scoped_by_disaster(tmp_path):
    repository, service = _build_service(tmp_path, "critical_scope.db")
    flood = repository.create_disaster("Flood")
    fire = repository.create_disaster("Wildfire")
    flood_meals = service.register_resource(
        name="Meals",
        resource_type="Food",
        stock_level=0,
        minimum_threshold=10,
        disaster_id=flood,
    )
    service.register_resource(name="Masks", resource_type="Medical Supplies", stock_level=0, minimum_threshold=10, disaster_id=fire)

    assert [item.resource_id for item in service.list_critical(flood)] == [flood_meals.resource_id]
    assert len(service.list_critical()) == 2


def test_restock_adds_supply_and_clears_critical_flag(tmp_path):
    _, service = _build_service(tmp_path, "restock.db")
    meals = service.register_resource(name="Meals", resource_type="Food", stock_level=5, minimum_threshold=20, unit="boxes")
    assert meals.is_critical

    restocked = service.restock(meals.resource_id, 30)

    assert restocked.stock_level == 35
    assert not restocked.is_critical
    assert service.list_critical() == []


def test_restock_rejects_non_positive_quantity(tmp_path):
    _, service = _build_service(tmp_path, "restock_invalid.db")
    meals = service.register_resource(name="Meals", resource_type="Food", stock_level=5)
    with pytest.raises(ReliefValidationError):
        service.restock(meals.resource_id, 0)


def test_restock_unknown_resource_raises(tmp_path):
    _, service = _build_service(tmp_path, "restock_unknown.db")
    with pytest.raises(UnknownReferenceError):
        service.restock(404, 5)


def test_register_resource_validates_input(tmp_path):
    _, service = _build_service(tmp_path, "register_invalid.db")
    with pytest.raises(ReliefValidationError):
        service.register_resource(name="Fuel", resource_type="Petrol", stock_level=5)
    with pytest.raises(ReliefValidationError):
        service.register_resource(name="Water", resource_type="Water", stock_level=-1)
    with pytest.raises(ReliefValidationError):
        service.register_resource(name="  ", resource_type="Water", stock_level=1)
    with pytest.raises(UnknownReferenceError):
        service.register_resource(name="Water", resource_type="Water", stock_level=1, disaster_id=77)
