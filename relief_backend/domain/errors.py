"""Error taxonomy shared by the repository, services and controllers."""

from __future__ import annotations

from typing import Iterable, Optional


class ReliefError(Exception):
    """Base class for relief coordination failures."""


class ReliefValidationError(ReliefError):
    """Raised for malformed input before any mutation happens."""


class UnknownReferenceError(ReliefValidationError):
    """Raised when an id does not resolve to a stored record."""

    def __init__(self, entity: str, entity_id: int) -> None:
        super().__init__(f"{entity} id={entity_id} does not exist")
        self.entity = entity
        self.entity_id = entity_id


class StockConflictError(ReliefError):
    """Raised when an execution asks for more stock than is currently on hand.

    Recoverable: re-fetch the resource and retry with a smaller quantity.
    """

    def __init__(self, resource_id: int, requested_quantity: int, available_quantity: int) -> None:
        super().__init__(
            f"Resource id={resource_id} has {available_quantity} units in stock; "
            f"cannot allocate {requested_quantity}"
        )
        self.resource_id = resource_id
        self.requested_quantity = requested_quantity
        self.available_quantity = available_quantity


class AlreadyTerminalError(ReliefError):
    """Raised when a request is already Fulfilled or Rejected."""

    def __init__(self, request_id: int, status: str) -> None:
        super().__init__(f"Request id={request_id} is already {status}")
        self.request_id = request_id
        self.status = status


class PersistenceError(ReliefError):
    """Raised when the data store fails to apply a write."""

    def __init__(self, message: str, failed_ids: Optional[Iterable[int]] = None) -> None:
        self.failed_ids = sorted(failed_ids or [])
        if self.failed_ids:
            message = f"{message} (failed ids: {self.failed_ids})"
        super().__init__(message)
