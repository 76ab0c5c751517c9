from __future__ import annotations

from dataclasses import replace

import pytest

from relief_backend.domain.constraints import CapacityThresholds
from relief_backend.domain.errors import PersistenceError, UnknownReferenceError
from relief_backend.domain.models import OperationalStatus, RequestStatus, ResourceType
from relief_backend.repository.data_repository import DataRepository
from relief_backend.services.capacity_ledger_service import (
    CapacityLedgerService,
    classify_operational_status,
)
from relief_backend.services.request_queue_service import RequestQueueService
from relief_backend.utils.config import get_settings


def _build_test_settings(tmp_path, filename: str):
    get_settings.cache_clear()
    base = get_settings()
    return replace(
        base,
        database_path=tmp_path / filename,
        seed_demo_data=False,
        capacity_near_capacity_ratio=0.8,
        capacity_at_capacity_ratio=1.0,
    )


def _build_services(tmp_path, filename: str):
    settings = _build_test_settings(tmp_path, filename)
    repository = DataRepository(settings)
    repository.initialize_database()
    ledger = CapacityLedgerService(repository=repository, settings=settings)
    queue = RequestQueueService(repository=repository, ledger=ledger, settings=settings)
    return repository, ledger, queue


DEFAULT_THRESHOLDS = CapacityThresholds(near_capacity_ratio=0.8, at_capacity_ratio=1.0)


@pytest.mark.parametrize(
    ("capacity", "occupancy", "expected"),
    [
        (100, 0, OperationalStatus.AVAILABLE),
        (100, 79, OperationalStatus.AVAILABLE),
        (100, 80, OperationalStatus.NEAR_CAPACITY),
        (100, 99, OperationalStatus.NEAR_CAPACITY),
        (100, 100, OperationalStatus.AT_CAPACITY),
        (100, 130, OperationalStatus.AT_CAPACITY),
        (0, 0, OperationalStatus.AT_CAPACITY),
    ],
)
def test_classify_operational_status_thresholds(capacity, occupancy, expected):
    status = classify_operational_status(
        capacity=capacity,
        occupancy=occupancy,
        current_status=OperationalStatus.AVAILABLE,
        thresholds=DEFAULT_THRESHOLDS,
    )
    assert status is expected


def test_closed_status_is_never_overridden_by_utilization():
    status = classify_operational_status(
        capacity=100,
        occupancy=10,
        current_status=OperationalStatus.CLOSED,
        thresholds=DEFAULT_THRESHOLDS,
    )
    assert status is OperationalStatus.CLOSED


def test_fulfilled_occupancy_requests_drive_shelter_occupancy(tmp_path):
    repository, ledger, queue = _build_services(tmp_path, "scenario_a.db")
    shelter = ledger.register_shelter(name="Shelter S", capacity=100)
    beds = repository.create_resource("Beds", ResourceType.OCCUPANCY, 500, 10)

    for quantity in (30, 20, 10):
        queue.create_request(
            shelter_id=shelter.shelter_id,
            resource_id=beds,
            quantity_requested=quantity,
            priority=3,
            status=RequestStatus.FULFILLED,
        )

    (recomputed,) = ledger.recompute([shelter.shelter_id])
    assert recomputed.current_occupancy == 60
    assert recomputed.operational_status is OperationalStatus.AVAILABLE
    stored = repository.get_shelter(shelter.shelter_id)
    assert stored.current_occupancy == 60
    assert stored.operational_status is OperationalStatus.AVAILABLE


def test_only_fulfilled_occupancy_requests_count(tmp_path):
    repository, ledger, queue = _build_services(tmp_path, "occupancy_filter.db")
    shelter = ledger.register_shelter(name="Gym", capacity=50)
    beds = repository.create_resource("Beds", ResourceType.OCCUPANCY, 500, 10)
    water = repository.create_resource("Water", ResourceType.WATER, 500, 10)

    queue.create_request(
        shelter_id=shelter.shelter_id,
        resource_id=water,
        quantity_requested=40,
        priority=2,
        status=RequestStatus.FULFILLED,
    )
    queue.create_request(shelter_id=shelter.shelter_id, resource_id=beds, quantity_requested=45, priority=5)
    queue.create_request(
        shelter_id=shelter.shelter_id,
        resource_id=beds,
        quantity_requested=41,
        priority=2,
        status=RequestStatus.FULFILLED,
    )

    stored = repository.get_shelter(shelter.shelter_id)
    assert stored.current_occupancy == 41
    assert stored.operational_status is OperationalStatus.NEAR_CAPACITY
    assert stored.current_occupancy == repository.sum_fulfilled_occupancy(shelter.shelter_id)


def test_deleting_fulfilled_request_releases_occupancy(tmp_path):
    repository, ledger, queue = _build_services(tmp_path, "delete_release.db")
    shelter = ledger.register_shelter(name="Church Hall", capacity=20)
    beds = repository.create_resource("Beds", ResourceType.OCCUPANCY, 100, 5)
    request = queue.create_request(
        shelter_id=shelter.shelter_id,
        resource_id=beds,
        quantity_requested=20,
        priority=4,
        status=RequestStatus.FULFILLED,
    )
    assert repository.get_shelter(shelter.shelter_id).operational_status is OperationalStatus.AT_CAPACITY

    queue.delete_request(request.request_id)

    stored = repository.get_shelter(shelter.shelter_id)
    assert stored.current_occupancy == 0
    assert stored.operational_status is OperationalStatus.AVAILABLE


def test_recompute_all_reconciles_stale_occupancy(tmp_path):
    repository, ledger, _ = _build_services(tmp_path, "recompute_all.db")
    first = repository.create_shelter("North", 10)
    second = repository.create_shelter("South", 40)
    beds = repository.create_resource("Beds", ResourceType.OCCUPANCY, 100, 5)
    repository.create_request(first, beds, 9, 3, status=RequestStatus.FULFILLED, quantity_fulfilled=9)
    repository.create_request(second, beds, 12, 3, status=RequestStatus.FULFILLED, quantity_fulfilled=12)

    assert repository.get_shelter(first).current_occupancy == 0

    shelters = {shelter.shelter_id: shelter for shelter in ledger.recompute_all()}

    assert shelters[first].current_occupancy == 9
    assert shelters[first].operational_status is OperationalStatus.NEAR_CAPACITY
    assert shelters[second].current_occupancy == 12
    assert shelters[second].operational_status is OperationalStatus.AVAILABLE


def test_batch_recompute_is_all_or_nothing(tmp_path):
    repository, ledger, _ = _build_services(tmp_path, "batch_atomic.db")
    shelter_id = repository.create_shelter("East", 10)
    beds = repository.create_resource("Beds", ResourceType.OCCUPANCY, 100, 5)
    repository.create_request(shelter_id, beds, 7, 3, status=RequestStatus.FULFILLED, quantity_fulfilled=7)

    with pytest.raises(PersistenceError) as exc_info:
        ledger.recompute([shelter_id, 9999, 8888])

    assert exc_info.value.failed_ids == [8888, 9999]
    # The valid shelter in the failed batch must not have been written.
    assert repository.get_shelter(shelter_id).current_occupancy == 0


def test_recompute_of_empty_batch_is_noop(tmp_path):
    _, ledger, _ = _build_services(tmp_path, "empty_batch.db")
    assert ledger.recompute([]) == []


def test_zero_capacity_shelter_is_at_capacity(tmp_path):
    _, ledger, _ = _build_services(tmp_path, "zero_capacity.db")
    shelter = ledger.register_shelter(name="Pending Inspection", capacity=0)
    assert shelter.operational_status is OperationalStatus.AT_CAPACITY
    assert shelter.utilization == 0.0


def test_closed_shelter_stays_closed_until_reopened(tmp_path):
    repository, ledger, queue = _build_services(tmp_path, "closed_override.db")
    shelter = ledger.register_shelter(name="Library", capacity=10)
    beds = repository.create_resource("Beds", ResourceType.OCCUPANCY, 100, 5)

    closed = ledger.close_shelter(shelter.shelter_id)
    assert closed.operational_status is OperationalStatus.CLOSED

    queue.create_request(
        shelter_id=shelter.shelter_id,
        resource_id=beds,
        quantity_requested=9,
        priority=3,
        status=RequestStatus.FULFILLED,
    )
    stored = repository.get_shelter(shelter.shelter_id)
    assert stored.current_occupancy == 9
    assert stored.operational_status is OperationalStatus.CLOSED

    reopened = ledger.reopen_shelter(shelter.shelter_id)
    assert reopened.current_occupancy == 9
    assert reopened.operational_status is OperationalStatus.NEAR_CAPACITY


def test_register_shelter_rejects_unknown_disaster(tmp_path):
    _, ledger, _ = _build_services(tmp_path, "unknown_disaster.db")
    with pytest.raises(UnknownReferenceError):
        ledger.register_shelter(name="Orphan", capacity=10, disaster_id=42)


def test_shelter_capacity_view_orders_by_utilization(tmp_path):
    repository, ledger, queue = _build_services(tmp_path, "capacity_view.db")
    quiet = ledger.register_shelter(name="Quiet", capacity=100)
    busy = ledger.register_shelter(name="Busy", capacity=10)
    beds = repository.create_resource("Beds", ResourceType.OCCUPANCY, 100, 5)
    queue.create_request(
        shelter_id=busy.shelter_id,
        resource_id=beds,
        quantity_requested=5,
        priority=3,
        status=RequestStatus.FULFILLED,
    )

    ordered = ledger.list_shelter_capacity()
    assert [shelter.shelter_id for shelter in ordered] == [busy.shelter_id, quiet.shelter_id]
