from __future__ import annotations

import sqlite3
import threading
from dataclasses import replace

import pytest

from relief_backend.domain.errors import (
    AlreadyTerminalError,
    PersistenceError,
    ReliefValidationError,
    StockConflictError,
    UnknownReferenceError,
)
from relief_backend.domain.models import OperationalStatus, RequestStatus, ResourceType
from relief_backend.repository.data_repository import DataRepository
from relief_backend.services.allocation_service import AllocationExecutorService
from relief_backend.services.capacity_ledger_service import CapacityLedgerService
from relief_backend.services.recommendation_service import RecommendationService
from relief_backend.utils.config import get_settings


def _build_test_settings(tmp_path, filename: str):
    get_settings.cache_clear()
    base = get_settings()
    return replace(base, database_path=tmp_path / filename, seed_demo_data=False)


def _build_services(tmp_path, filename: str):
    settings = _build_test_settings(tmp_path, filename)
    repository = DataRepository(settings)
    repository.initialize_database()
    ledger = CapacityLedgerService(repository=repository, settings=settings)
    executor = AllocationExecutorService(repository=repository, ledger=ledger, settings=settings)
    recommendations = RecommendationService(repository=repository, settings=settings)
    return repository, executor, recommendations


def _allocation_log_rows(repository: DataRepository, request_id: int) -> list[sqlite3.Row]:
    with repository.transaction(immediate=False) as conn:
        return conn.execute(
            "SELECT quantity, resulting_status, comments FROM AllocationLogs WHERE request_id = ? ORDER BY id;",
            (request_id,),
        ).fetchall()


def test_execution_after_concurrent_drawdown_raises_stock_conflict(tmp_path):
    repository, executor, recommendations = _build_services(tmp_path, "scenario_c.db")
    shelter = repository.create_shelter("Arena", 100)
    water = repository.create_resource("Water", ResourceType.WATER, 15, 2)
    first = repository.create_request(shelter, water, 10, 5, requested_at="2026-03-01T08:00:00")
    second = repository.create_request(shelter, water, 10, 4, requested_at="2026-03-01T08:05:00")

    # Both operators act on the same snapshot.
    snapshot = {item.request_id: item for item in recommendations.generate()}
    assert snapshot[first].recommended_quantity == 10

    executor.execute(request_id=first, approved_quantity=10)
    assert repository.get_resource(water).stock_level == 5

    with pytest.raises(StockConflictError) as exc_info:
        executor.execute(request_id=second, approved_quantity=10)

    assert exc_info.value.available_quantity == 5
    assert exc_info.value.requested_quantity == 10
    assert repository.get_resource(water).stock_level == 5
    assert repository.get_request(second).status is RequestStatus.PENDING
    assert repository.get_request(second).quantity_fulfilled == 0
    assert _allocation_log_rows(repository, second) == []


def test_stock_conflict_is_recoverable_with_smaller_quantity(tmp_path):
    repository, executor, _ = _build_services(tmp_path, "conflict_retry.db")
    shelter = repository.create_shelter("Arena", 100)
    water = repository.create_resource("Water", ResourceType.WATER, 5, 2)
    request_id = repository.create_request(shelter, water, 10, 3)

    with pytest.raises(StockConflictError) as exc_info:
        executor.execute(request_id=request_id, approved_quantity=10)

    outcome = executor.execute(request_id=request_id, approved_quantity=exc_info.value.available_quantity)
    assert outcome.approved_quantity == 5
    assert outcome.remaining_stock == 0
    assert outcome.resulting_status is RequestStatus.APPROVED
    assert repository.get_resource(water).stock_level == 0


def test_approved_request_cannot_be_rejected(tmp_path):
    repository, executor, _ = _build_services(tmp_path, "scenario_d.db")
    shelter = repository.create_shelter("Arena", 100)
    water = repository.create_resource("Water", ResourceType.WATER, 50, 2)
    request_id = repository.create_request(shelter, water, 10, 3)

    outcome = executor.approve(request_id)
    assert outcome.resulting_status is RequestStatus.FULFILLED

    with pytest.raises(AlreadyTerminalError) as exc_info:
        executor.reject(request_id)

    assert exc_info.value.status == RequestStatus.FULFILLED.value
    assert repository.get_request(request_id).status is RequestStatus.FULFILLED
    assert repository.get_resource(water).stock_level == 40


def test_rejecting_twice_raises_and_leaves_state_unchanged(tmp_path):
    repository, executor, _ = _build_services(tmp_path, "reject_twice.db")
    shelter = repository.create_shelter("Arena", 100)
    water = repository.create_resource("Water", ResourceType.WATER, 50, 2)
    request_id = repository.create_request(shelter, water, 10, 3)

    message = executor.reject(request_id, comments="duplicate request")
    assert message == f"Request {request_id} rejected"

    with pytest.raises(AlreadyTerminalError):
        executor.reject(request_id)

    request = repository.get_request(request_id)
    assert request.status is RequestStatus.REJECTED
    assert request.quantity_fulfilled == 0
    assert repository.get_resource(water).stock_level == 50


def test_partial_execution_then_completion(tmp_path):
    repository, executor, _ = _build_services(tmp_path, "partial_then_full.db")
    shelter = repository.create_shelter("Gym", 20)
    beds = repository.create_resource("Cots", ResourceType.OCCUPANCY, 30, 2, unit="cots")
    request_id = repository.create_request(shelter, beds, 18, 4)

    partial = executor.execute(request_id=request_id, approved_quantity=8, comments="first truck")
    assert partial.resulting_status is RequestStatus.APPROVED
    assert partial.remaining_stock == 22
    assert "10 still outstanding" in partial.message
    # Occupancy counts Fulfilled requests only.
    assert partial.shelter_occupancy == 0

    complete = executor.execute(request_id=request_id, approved_quantity=10)
    assert complete.resulting_status is RequestStatus.FULFILLED
    assert complete.remaining_stock == 12
    assert complete.shelter_occupancy == 18
    assert "Allocated 10 cots of Cots to Gym" in complete.message

    stored = repository.get_shelter(shelter)
    assert stored.current_occupancy == 18
    assert stored.operational_status is OperationalStatus.NEAR_CAPACITY

    logs = _allocation_log_rows(repository, request_id)
    assert [(row["quantity"], row["resulting_status"]) for row in logs] == [
        (8, RequestStatus.APPROVED.value),
        (10, RequestStatus.FULFILLED.value),
    ]
    assert logs[0]["comments"] == "first truck"


def test_approve_fulfils_remaining_outstanding_quantity(tmp_path):
    repository, executor, _ = _build_services(tmp_path, "approve_outstanding.db")
    shelter = repository.create_shelter("Arena", 100)
    water = repository.create_resource("Water", ResourceType.WATER, 50, 2)
    request_id = repository.create_request(shelter, water, 12, 3)
    executor.execute(request_id=request_id, approved_quantity=5)

    outcome = executor.approve(request_id)

    assert outcome.approved_quantity == 7
    assert outcome.resulting_status is RequestStatus.FULFILLED
    assert repository.get_resource(water).stock_level == 38


def test_execute_rejects_invalid_quantities(tmp_path):
    repository, executor, _ = _build_services(tmp_path, "invalid_quantity.db")
    shelter = repository.create_shelter("Arena", 100)
    water = repository.create_resource("Water", ResourceType.WATER, 50, 2)
    request_id = repository.create_request(shelter, water, 10, 3)

    with pytest.raises(ReliefValidationError):
        executor.execute(request_id=request_id, approved_quantity=0)
    with pytest.raises(ReliefValidationError):
        executor.execute(request_id=request_id, approved_quantity=11)
    with pytest.raises(UnknownReferenceError):
        executor.execute(request_id=999, approved_quantity=1)

    assert repository.get_resource(water).stock_level == 50
    assert repository.count_allocation_logs() == 0


def test_fulfilled_request_cannot_be_executed_again(tmp_path):
    repository, executor, _ = _build_services(tmp_path, "double_execute.db")
    shelter = repository.create_shelter("Arena", 100)
    water = repository.create_resource("Water", ResourceType.WATER, 50, 2)
    request_id = repository.create_request(shelter, water, 10, 3)
    executor.approve(request_id)

    with pytest.raises(AlreadyTerminalError):
        executor.approve(request_id)
    assert repository.get_resource(water).stock_level == 40


def test_stock_never_goes_negative_across_executions(tmp_path):
    repository, executor, recommendations = _build_services(tmp_path, "non_negative.db")
    shelters = [repository.create_shelter(f"Shelter {index}", 50) for index in range(3)]
    kits = repository.create_resource("Kits", ResourceType.MEDICAL_SUPPLIES, 20, 5)
    request_ids = [repository.create_request(shelter, kits, 9, 3) for shelter in shelters]

    conflicts = 0
    for request_id in request_ids:
        try:
            executor.execute(request_id=request_id, approved_quantity=9)
        except StockConflictError:
            conflicts += 1
        assert repository.get_resource(kits).stock_level >= 0

    assert conflicts == 1
    assert repository.get_resource(kits).stock_level == 2
    remaining = recommendations.generate()
    assert [item.recommended_quantity for item in remaining] == [2]


def test_concurrent_approvals_of_one_request_fulfil_it_once(tmp_path):
    repository, executor, _ = _build_services(tmp_path, "concurrent_approve.db")
    shelter = repository.create_shelter("Arena", 100)
    water = repository.create_resource("Water", ResourceType.WATER, 100, 2)
    request_id = repository.create_request(shelter, water, 10, 3)

    workers = 4
    barrier = threading.Barrier(workers)
    results: list[str] = []
    results_lock = threading.Lock()

    def operator() -> None:
        barrier.wait()
        try:
            executor.approve(request_id)
            outcome = "ok"
        except AlreadyTerminalError:
            outcome = "terminal"
        with results_lock:
            results.append(outcome)

    threads = [threading.Thread(target=operator) for _ in range(workers)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert sorted(results) == ["ok"] + ["terminal"] * (workers - 1)
    assert repository.get_resource(water).stock_level == 90
    assert repository.get_request(request_id).status is RequestStatus.FULFILLED
    assert len(_allocation_log_rows(repository, request_id)) == 1


def test_failed_capacity_recompute_rolls_back_execution(tmp_path, monkeypatch):
    repository, executor, _ = _build_services(tmp_path, "recompute_rollback.db")
    shelter = repository.create_shelter("Gym", 20)
    beds = repository.create_resource("Cots", ResourceType.OCCUPANCY, 100, 2)
    request_id = repository.create_request(shelter, beds, 10, 4)

    monkeypatch.setattr(repository, "update_shelter_capacity_state", lambda *args, **kwargs: False)

    with pytest.raises(PersistenceError) as exc_info:
        executor.execute(request_id=request_id, approved_quantity=10)

    assert exc_info.value.failed_ids == [shelter]
    request = repository.get_request(request_id)
    assert request.status is RequestStatus.PENDING
    assert request.quantity_fulfilled == 0
    assert repository.get_resource(beds).stock_level == 100
    assert repository.get_shelter(shelter).current_occupancy == 0
    assert repository.count_allocation_logs() == 0


def test_reject_losing_status_race_reports_current_status(tmp_path, monkeypatch):
    repository, executor, _ = _build_services(tmp_path, "reject_race.db")
    shelter = repository.create_shelter("Arena", 100)
    water = repository.create_resource("Water", ResourceType.WATER, 50, 2)
    request_id = repository.create_request(shelter, water, 10, 3)
    real_transition = repository.transition_request

    def fulfilled_first(request_id, new_status, quantity_fulfilled, conn=None, **kwargs):
        # Another operator fulfils the request between the read and the update.
        real_transition(request_id, new_status=RequestStatus.FULFILLED, quantity_fulfilled=10, conn=conn)
        return False

    monkeypatch.setattr(repository, "transition_request", fulfilled_first)

    with pytest.raises(AlreadyTerminalError) as exc_info:
        executor.reject(request_id)

    assert exc_info.value.status == RequestStatus.FULFILLED.value
