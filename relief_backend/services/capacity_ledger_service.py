"""Capacity ledger: shelter occupancy as a projection over the request ledger.

Occupancy is never written from anywhere else. It is always recomputed from
Fulfilled, Occupancy-type requests, inside the transaction of whatever
request mutation made the recompute necessary.
"""

from __future__ import annotations

import sqlite3
from dataclasses import replace
from typing import Iterable, Optional

from relief_backend.domain.constraints import CapacityThresholds, validate_capacity_thresholds
from relief_backend.domain.errors import PersistenceError, ReliefValidationError, UnknownReferenceError
from relief_backend.domain.models import OperationalStatus, Shelter
from relief_backend.repository.data_repository import DataRepository
from relief_backend.utils.config import Settings, get_settings
from relief_backend.utils.logger import get_logger


logger = get_logger(__name__)


def classify_operational_status(
    *,
    capacity: int,
    occupancy: int,
    current_status: OperationalStatus,
    thresholds: CapacityThresholds,
) -> OperationalStatus:
    """Derive status from utilization; an operator-closed shelter stays closed."""
    if current_status is OperationalStatus.CLOSED:
        return OperationalStatus.CLOSED
    if capacity <= 0:
        return OperationalStatus.AT_CAPACITY
    utilization = occupancy / capacity
    if utilization >= thresholds.at_capacity_ratio:
        return OperationalStatus.AT_CAPACITY
    if utilization >= thresholds.near_capacity_ratio:
        return OperationalStatus.NEAR_CAPACITY
    return OperationalStatus.AVAILABLE


class CapacityLedgerService:
    """Keeps shelter occupancy and operational status consistent with requests."""

    def __init__(
        self,
        repository: Optional[DataRepository] = None,
        settings: Optional[Settings] = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._repository = repository or DataRepository(self._settings)
        self._thresholds = CapacityThresholds(
            near_capacity_ratio=self._settings.capacity_near_capacity_ratio,
            at_capacity_ratio=self._settings.capacity_at_capacity_ratio,
        )
        validate_capacity_thresholds(self._thresholds)

    @property
    def thresholds(self) -> CapacityThresholds:
        return self._thresholds

    def recompute(
        self,
        shelter_ids: Iterable[int],
        *,
        conn: Optional[sqlite3.Connection] = None,
    ) -> list[Shelter]:
        """Recompute occupancy and status for every shelter in ``shelter_ids``.

        The batch is all-or-nothing: if any shelter cannot be persisted the
        transaction is rolled back and PersistenceError lists every failed id.
        When ``conn`` is given the writes join the caller's transaction.
        """
        unique_ids = sorted({int(shelter_id) for shelter_id in shelter_ids})
        if not unique_ids:
            return []

        if conn is None:
            with self._repository.transaction() as owned:
                return self._recompute_batch(unique_ids, owned)
        return self._recompute_batch(unique_ids, conn)

    def _recompute_batch(
        self,
        shelter_ids: list[int],
        conn: sqlite3.Connection,
    ) -> list[Shelter]:
        updated: list[Shelter] = []
        failed_ids: list[int] = []

        for shelter_id in shelter_ids:
            shelter = self._repository.get_shelter(shelter_id, conn=conn)
            if shelter is None:
                failed_ids.append(shelter_id)
                continue

            occupancy = self._repository.sum_fulfilled_occupancy(shelter_id, conn=conn)
            status = classify_operational_status(
                capacity=shelter.capacity,
                occupancy=occupancy,
                current_status=shelter.operational_status,
                thresholds=self._thresholds,
            )
            try:
                persisted = self._repository.update_shelter_capacity_state(
                    shelter_id,
                    current_occupancy=occupancy,
                    operational_status=status,
                    conn=conn,
                )
            except PersistenceError:
                persisted = False
            if not persisted:
                failed_ids.append(shelter_id)
                continue

            updated.append(replace(shelter, current_occupancy=occupancy, operational_status=status))

        if failed_ids:
            logger.warning(
                "Capacity recompute failed | failed_shelter_ids=%s | batch=%s",
                failed_ids,
                shelter_ids,
            )
            raise PersistenceError("Capacity recompute could not persist shelters", failed_ids=failed_ids)

        logger.info(
            "Capacity recompute completed | shelters=%s",
            [(shelter.shelter_id, shelter.current_occupancy, shelter.operational_status.value) for shelter in updated],
        )
        return updated

    def recompute_all(self) -> list[Shelter]:
        """Reconcile every shelter against the request ledger."""
        with self._repository.transaction() as conn:
            shelter_ids = self._repository.list_shelter_ids(conn=conn)
            return self.recompute(shelter_ids, conn=conn)

    def register_shelter(
        self,
        *,
        name: str,
        capacity: int,
        disaster_id: Optional[int] = None,
        location: Optional[str] = None,
    ) -> Shelter:
        if not name.strip():
            raise ReliefValidationError("shelter name must be non-empty")
        if capacity < 0:
            raise ReliefValidationError("capacity must be >= 0")

        with self._repository.transaction() as conn:
            if disaster_id is not None and self._repository.get_disaster(disaster_id, conn=conn) is None:
                raise UnknownReferenceError("disaster", disaster_id)
            shelter_id = self._repository.create_shelter(
                name=name.strip(),
                capacity=capacity,
                disaster_id=disaster_id,
                location=location,
                conn=conn,
            )
            (shelter,) = self.recompute({shelter_id}, conn=conn)
        logger.info("Shelter registered | shelter_id=%s | capacity=%s", shelter_id, capacity)
        return shelter

    def close_shelter(self, shelter_id: int) -> Shelter:
        return self._set_closed(shelter_id, closed=True)

    def reopen_shelter(self, shelter_id: int) -> Shelter:
        return self._set_closed(shelter_id, closed=False)

    def _set_closed(self, shelter_id: int, *, closed: bool) -> Shelter:
        with self._repository.transaction() as conn:
            shelter = self._repository.get_shelter(shelter_id, conn=conn)
            if shelter is None:
                raise UnknownReferenceError("shelter", shelter_id)
            # Reopening clears the override so the next recompute re-derives status.
            status = OperationalStatus.CLOSED if closed else OperationalStatus.AVAILABLE
            self._repository.update_shelter_capacity_state(
                shelter_id,
                current_occupancy=shelter.current_occupancy,
                operational_status=status,
                conn=conn,
            )
            (updated,) = self.recompute({shelter_id}, conn=conn)
        logger.info(
            "Shelter status override | shelter_id=%s | status=%s",
            shelter_id,
            updated.operational_status.value,
        )
        return updated

    def list_shelter_capacity(self, disaster_id: Optional[int] = None) -> list[Shelter]:
        """Return shelters in scope, most utilized first."""
        shelters = self._repository.list_shelters(disaster_id=disaster_id)
        return sorted(shelters, key=lambda shelter: (-shelter.utilization, shelter.name, shelter.shelter_id))
