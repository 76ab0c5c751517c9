"""Repository layer responsible for all database access."""

from __future__ import annotations

import sqlite3
from contextlib import closing, contextmanager
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Iterator, Optional, Sequence

from relief_backend.domain.errors import PersistenceError
from relief_backend.domain.models import (
    OPEN_STATUSES,
    Disaster,
    OperationalStatus,
    PendingRequest,
    RequestPriority,
    RequestStatus,
    Resource,
    ResourceRequest,
    ResourceType,
    Shelter,
)
from relief_backend.utils.config import Settings, get_settings
from relief_backend.utils.logger import get_logger


logger = get_logger(__name__)

_OPEN_STATUS_VALUES = tuple(status.value for status in OPEN_STATUSES)

_SCHEMA = """
CREATE TABLE IF NOT EXISTS Disasters (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    name TEXT NOT NULL,
    disaster_type TEXT NOT NULL DEFAULT 'Unspecified',
    status TEXT NOT NULL DEFAULT 'Active',
    started_on TEXT,
    created_at DATETIME DEFAULT CURRENT_TIMESTAMP
);

CREATE TABLE IF NOT EXISTS Shelters (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    disaster_id INTEGER,
    name TEXT NOT NULL,
    location TEXT,
    capacity INTEGER NOT NULL CHECK (capacity >= 0),
    current_occupancy INTEGER NOT NULL DEFAULT 0 CHECK (current_occupancy >= 0),
    operational_status TEXT NOT NULL DEFAULT 'Available',
    FOREIGN KEY (disaster_id) REFERENCES Disasters(id)
);

CREATE TABLE IF NOT EXISTS Resources (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    disaster_id INTEGER,
    name TEXT NOT NULL,
    resource_type TEXT NOT NULL,
    unit TEXT,
    stock_level INTEGER NOT NULL CHECK (stock_level >= 0),
    minimum_threshold INTEGER NOT NULL DEFAULT 0 CHECK (minimum_threshold >= 0),
    FOREIGN KEY (disaster_id) REFERENCES Disasters(id)
);

CREATE TABLE IF NOT EXISTS Requests (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    shelter_id INTEGER NOT NULL,
    resource_id INTEGER NOT NULL,
    quantity_requested INTEGER NOT NULL CHECK (quantity_requested > 0),
    quantity_fulfilled INTEGER NOT NULL DEFAULT 0
        CHECK (quantity_fulfilled >= 0 AND quantity_fulfilled <= quantity_requested),
    priority INTEGER NOT NULL CHECK (priority BETWEEN 1 AND 5),
    status TEXT NOT NULL DEFAULT 'Pending',
    requested_at TEXT NOT NULL,
    FOREIGN KEY (shelter_id) REFERENCES Shelters(id),
    FOREIGN KEY (resource_id) REFERENCES Resources(id)
);

CREATE TABLE IF NOT EXISTS AllocationLogs (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    request_id INTEGER,
    resource_id INTEGER NOT NULL,
    quantity INTEGER NOT NULL CHECK (quantity > 0),
    resulting_status TEXT NOT NULL,
    comments TEXT,
    allocated_at DATETIME DEFAULT CURRENT_TIMESTAMP,
    FOREIGN KEY (request_id) REFERENCES Requests(id) ON DELETE SET NULL,
    FOREIGN KEY (resource_id) REFERENCES Resources(id)
);

CREATE INDEX IF NOT EXISTS idx_requests_status_shelter
ON Requests(status, shelter_id);

CREATE INDEX IF NOT EXISTS idx_requests_resource
ON Requests(resource_id);

CREATE INDEX IF NOT EXISTS idx_shelters_disaster
ON Shelters(disaster_id);

CREATE INDEX IF NOT EXISTS idx_resources_disaster
ON Resources(disaster_id);
"""

_REQUEST_COLUMNS = """
    rq.id AS request_id,
    rq.shelter_id,
    rq.resource_id,
    rq.quantity_requested,
    rq.quantity_fulfilled,
    rq.priority,
    rq.status,
    rq.requested_at
"""


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="microseconds")


def _row_to_disaster(row: sqlite3.Row) -> Disaster:
    return Disaster(
        disaster_id=int(row["id"]),
        name=str(row["name"]),
        disaster_type=str(row["disaster_type"]),
        status=str(row["status"]),
        started_on=row["started_on"],
    )


def _row_to_shelter(row: sqlite3.Row, prefix: str = "") -> Shelter:
    disaster_id = row[f"{prefix}disaster_id"]
    return Shelter(
        shelter_id=int(row[f"{prefix}id"]),
        name=str(row[f"{prefix}name"]),
        capacity=int(row[f"{prefix}capacity"]),
        current_occupancy=int(row[f"{prefix}current_occupancy"]),
        operational_status=OperationalStatus(row[f"{prefix}operational_status"]),
        disaster_id=int(disaster_id) if disaster_id is not None else None,
        location=row[f"{prefix}location"],
    )


def _row_to_resource(row: sqlite3.Row, prefix: str = "") -> Resource:
    disaster_id = row[f"{prefix}disaster_id"]
    return Resource(
        resource_id=int(row[f"{prefix}id"]),
        name=str(row[f"{prefix}name"]),
        resource_type=ResourceType(row[f"{prefix}resource_type"]),
        stock_level=int(row[f"{prefix}stock_level"]),
        minimum_threshold=int(row[f"{prefix}minimum_threshold"]),
        disaster_id=int(disaster_id) if disaster_id is not None else None,
        unit=row[f"{prefix}unit"],
    )


def _row_to_request(row: sqlite3.Row) -> ResourceRequest:
    return ResourceRequest(
        request_id=int(row["request_id"]),
        shelter_id=int(row["shelter_id"]),
        resource_id=int(row["resource_id"]),
        quantity_requested=int(row["quantity_requested"]),
        quantity_fulfilled=int(row["quantity_fulfilled"]),
        priority=RequestPriority(int(row["priority"])),
        status=RequestStatus(row["status"]),
        requested_at=str(row["requested_at"]),
    )


class DataRepository:
    """Encapsulates SQLite access so business logic stays storage-agnostic.

    Every public method accepts an optional ``conn``. Passing the connection
    yielded by :meth:`transaction` makes the call part of that unit of work;
    omitting it runs the call in its own short transaction.
    """

    def __init__(self, settings: Optional[Settings] = None) -> None:
        self._settings = settings or get_settings()
        self._db_path = Path(self._settings.database_path)
        self._db_path.parent.mkdir(parents=True, exist_ok=True)

    @property
    def database_path(self) -> Path:
        return self._db_path

    def _connect(self) -> sqlite3.Connection:
        # Autocommit mode; transactions are opened explicitly in transaction().
        connection = sqlite3.connect(
            self._db_path,
            timeout=self._settings.sqlite_busy_timeout_seconds,
            isolation_level=None,
        )
        connection.row_factory = sqlite3.Row
        connection.execute("PRAGMA foreign_keys = ON;")
        return connection

    @contextmanager
    def transaction(self, immediate: bool = True) -> Iterator[sqlite3.Connection]:
        """Open a bounded unit of work that commits on success or rolls back.

        ``BEGIN IMMEDIATE`` takes the write lock up front so concurrent
        writers are serialized; waiting is bounded by the busy timeout.
        Store errors surface as :class:`PersistenceError`; any other
        exception rolls back and propagates unchanged.
        """
        try:
            connection = self._connect()
        except sqlite3.Error as exc:
            raise PersistenceError(f"Could not open database {self._db_path}: {exc}") from exc

        try:
            connection.execute("BEGIN IMMEDIATE;" if immediate else "BEGIN;")
            yield connection
            connection.execute("COMMIT;")
        except sqlite3.Error as exc:
            if connection.in_transaction:
                connection.execute("ROLLBACK;")
            raise PersistenceError(f"Database transaction failed: {exc}") from exc
        except BaseException:
            if connection.in_transaction:
                connection.execute("ROLLBACK;")
            raise
        finally:
            connection.close()

    @contextmanager
    def _session(
        self,
        conn: Optional[sqlite3.Connection],
        immediate: bool = False,
    ) -> Iterator[sqlite3.Connection]:
        if conn is not None:
            yield conn
            return
        with self.transaction(immediate=immediate) as owned:
            yield owned

    def initialize_database(self) -> None:
        """Create all persistence artifacts before API startup."""
        try:
            with closing(self._connect()) as conn:
                conn.executescript(_SCHEMA)
            logger.info("Database initialized at %s", self._db_path)
        except sqlite3.Error as exc:
            raise PersistenceError(f"Database initialization failed: {exc}") from exc

    def seed_demo_data_if_empty(self) -> bool:
        """Seed one demo disaster with shelters, stock and requests.

        Returns False without writing when any shelter already exists.
        Shelter occupancy is left at zero; the caller reconciles it through
        the capacity ledger afterwards.
        """
        with self.transaction() as conn:
            row = conn.execute("SELECT COUNT(*) AS count FROM Shelters;").fetchone()
            if int(row["count"]) > 0:
                logger.info("Demo data already present; skipping seed")
                return False

            disaster_id = self.create_disaster(
                name="River Valley Flood",
                disaster_type="Flood",
                started_on=(datetime.now(timezone.utc).date() - timedelta(days=3)).isoformat(),
                conn=conn,
            )
            shelter_ids = [
                self.create_shelter("Northside High School", 120, disaster_id, "North district", conn=conn),
                self.create_shelter("Community Center", 60, disaster_id, "Downtown", conn=conn),
                self.create_shelter("Fairgrounds Hall", 200, disaster_id, "East district", conn=conn),
            ]
            beds = self.create_resource("Shelter beds", ResourceType.OCCUPANCY, 80, 10, disaster_id, "beds", conn=conn)
            water = self.create_resource("Bottled water", ResourceType.WATER, 400, 150, disaster_id, "cases", conn=conn)
            meals = self.create_resource("Ready meals", ResourceType.FOOD, 90, 120, disaster_id, "boxes", conn=conn)
            kits = self.create_resource("First aid kits", ResourceType.MEDICAL_SUPPLIES, 12, 15, disaster_id, "kits", conn=conn)

            base = datetime.now(timezone.utc) - timedelta(hours=12)
            seed_requests = [
                (shelter_ids[0], beds, 70, RequestPriority.HIGH, RequestStatus.FULFILLED),
                (shelter_ids[1], beds, 50, RequestPriority.CRITICAL, RequestStatus.FULFILLED),
                (shelter_ids[2], beds, 40, RequestPriority.MEDIUM, RequestStatus.FULFILLED),
                (shelter_ids[0], water, 120, RequestPriority.HIGH, RequestStatus.PENDING),
                (shelter_ids[1], meals, 60, RequestPriority.CRITICAL, RequestStatus.PENDING),
                (shelter_ids[2], meals, 80, RequestPriority.MEDIUM, RequestStatus.PENDING),
                (shelter_ids[1], kits, 10, RequestPriority.URGENT, RequestStatus.PENDING),
                (shelter_ids[0], beds, 30, RequestPriority.HIGH, RequestStatus.PENDING),
            ]
            for offset, (shelter_id, resource_id, quantity, priority, status) in enumerate(seed_requests):
                self.create_request(
                    shelter_id=shelter_id,
                    resource_id=resource_id,
                    quantity_requested=quantity,
                    priority=priority,
                    status=status,
                    requested_at=(base + timedelta(minutes=15 * offset)).isoformat(timespec="microseconds"),
                    quantity_fulfilled=quantity if status is RequestStatus.FULFILLED else 0,
                    conn=conn,
                )
        logger.info(
            "Demo seed completed | disaster_id=%s | shelters=%s | requests=%s",
            disaster_id,
            len(shelter_ids),
            len(seed_requests),
        )
        return True

    # --- Disasters ---

    def create_disaster(
        self,
        name: str,
        disaster_type: str = "Unspecified",
        status: str = "Active",
        started_on: Optional[str] = None,
        conn: Optional[sqlite3.Connection] = None,
    ) -> int:
        with self._session(conn, immediate=True) as session:
            cursor = session.execute(
                """
                INSERT INTO Disasters (name, disaster_type, status, started_on)
                VALUES (?, ?, ?, ?);
                """,
                (name, disaster_type, status, started_on),
            )
            return int(cursor.lastrowid)

    def get_disaster(
        self,
        disaster_id: int,
        conn: Optional[sqlite3.Connection] = None,
    ) -> Optional[Disaster]:
        with self._session(conn) as session:
            row = session.execute(
                """
                SELECT id, name, disaster_type, status, started_on
                FROM Disasters
                WHERE id = ?;
                """,
                (disaster_id,),
            ).fetchone()
            return _row_to_disaster(row) if row is not None else None

    # --- Shelters ---

    def create_shelter(
        self,
        name: str,
        capacity: int,
        disaster_id: Optional[int] = None,
        location: Optional[str] = None,
        conn: Optional[sqlite3.Connection] = None,
    ) -> int:
        with self._session(conn, immediate=True) as session:
            cursor = session.execute(
                """
                INSERT INTO Shelters (disaster_id, name, location, capacity)
                VALUES (?, ?, ?, ?);
                """,
                (disaster_id, name, location, capacity),
            )
            return int(cursor.lastrowid)

    def get_shelter(
        self,
        shelter_id: int,
        conn: Optional[sqlite3.Connection] = None,
    ) -> Optional[Shelter]:
        with self._session(conn) as session:
            row = session.execute(
                """
                SELECT id, disaster_id, name, location, capacity,
                       current_occupancy, operational_status
                FROM Shelters
                WHERE id = ?;
                """,
                (shelter_id,),
            ).fetchone()
            return _row_to_shelter(row) if row is not None else None

    def list_shelters(
        self,
        disaster_id: Optional[int] = None,
        conn: Optional[sqlite3.Connection] = None,
    ) -> list[Shelter]:
        with self._session(conn) as session:
            rows = session.execute(
                """
                SELECT id, disaster_id, name, location, capacity,
                       current_occupancy, operational_status
                FROM Shelters
                WHERE (? IS NULL OR disaster_id = ?)
                ORDER BY id ASC;
                """,
                (disaster_id, disaster_id),
            ).fetchall()
            return [_row_to_shelter(row) for row in rows]

    def list_shelter_ids(self, conn: Optional[sqlite3.Connection] = None) -> list[int]:
        with self._session(conn) as session:
            rows = session.execute("SELECT id FROM Shelters ORDER BY id ASC;").fetchall()
            return [int(row["id"]) for row in rows]

    def update_shelter_capacity_state(
        self,
        shelter_id: int,
        current_occupancy: int,
        operational_status: OperationalStatus,
        conn: Optional[sqlite3.Connection] = None,
    ) -> bool:
        """Write derived occupancy/status; False when the shelter row is gone."""
        with self._session(conn, immediate=True) as session:
            try:
                cursor = session.execute(
                    """
                    UPDATE Shelters
                    SET current_occupancy = ?, operational_status = ?
                    WHERE id = ?;
                    """,
                    (current_occupancy, operational_status.value, shelter_id),
                )
            except sqlite3.Error as exc:
                raise PersistenceError(
                    f"Shelter capacity update failed: {exc}",
                    failed_ids=[shelter_id],
                ) from exc
            return cursor.rowcount == 1

    def sum_fulfilled_occupancy(
        self,
        shelter_id: int,
        conn: Optional[sqlite3.Connection] = None,
    ) -> int:
        """Sum of Fulfilled, Occupancy-type request quantities for a shelter."""
        with self._session(conn) as session:
            row = session.execute(
                """
                SELECT COALESCE(SUM(rq.quantity_requested), 0) AS occupancy
                FROM Requests AS rq
                INNER JOIN Resources AS rs ON rs.id = rq.resource_id
                WHERE rq.shelter_id = ?
                  AND rq.status = ?
                  AND rs.resource_type = ?;
                """,
                (shelter_id, RequestStatus.FULFILLED.value, ResourceType.OCCUPANCY.value),
            ).fetchone()
            return int(row["occupancy"])

    # --- Resources ---

    def create_resource(
        self,
        name: str,
        resource_type: ResourceType,
        stock_level: int,
        minimum_threshold: int = 0,
        disaster_id: Optional[int] = None,
        unit: Optional[str] = None,
        conn: Optional[sqlite3.Connection] = None,
    ) -> int:
        with self._session(conn, immediate=True) as session:
            cursor = session.execute(
                """
                INSERT INTO Resources (
                    disaster_id, name, resource_type, unit, stock_level, minimum_threshold
                )
                VALUES (?, ?, ?, ?, ?, ?);
                """,
                (disaster_id, name, ResourceType(resource_type).value, unit, stock_level, minimum_threshold),
            )
            return int(cursor.lastrowid)

    def get_resource(
        self,
        resource_id: int,
        conn: Optional[sqlite3.Connection] = None,
    ) -> Optional[Resource]:
        with self._session(conn) as session:
            row = session.execute(
                """
                SELECT id, disaster_id, name, resource_type, unit, stock_level, minimum_threshold
                FROM Resources
                WHERE id = ?;
                """,
                (resource_id,),
            ).fetchone()
            return _row_to_resource(row) if row is not None else None

    def list_resources(
        self,
        disaster_id: Optional[int] = None,
        critical_only: bool = False,
        conn: Optional[sqlite3.Connection] = None,
    ) -> list[Resource]:
        """Return resources in scope, most depleted relative to threshold first."""
        with self._session(conn) as session:
            rows = session.execute(
                """
                SELECT id, disaster_id, name, resource_type, unit, stock_level, minimum_threshold
                FROM Resources
                WHERE (? IS NULL OR disaster_id = ?)
                  AND (? = 0 OR stock_level <= minimum_threshold)
                ORDER BY (stock_level - minimum_threshold) ASC, id ASC;
                """,
                (disaster_id, disaster_id, 1 if critical_only else 0),
            ).fetchall()
            return [_row_to_resource(row) for row in rows]

    def decrement_stock(
        self,
        resource_id: int,
        quantity: int,
        conn: Optional[sqlite3.Connection] = None,
    ) -> bool:
        """Guarded decrement; False when stock is insufficient at write time."""
        with self._session(conn, immediate=True) as session:
            cursor = session.execute(
                """
                UPDATE Resources
                SET stock_level = stock_level - ?
                WHERE id = ? AND stock_level >= ?;
                """,
                (quantity, resource_id, quantity),
            )
            return cursor.rowcount == 1

    def increment_stock(
        self,
        resource_id: int,
        quantity: int,
        conn: Optional[sqlite3.Connection] = None,
    ) -> bool:
        with self._session(conn, immediate=True) as session:
            cursor = session.execute(
                "UPDATE Resources SET stock_level = stock_level + ? WHERE id = ?;",
                (quantity, resource_id),
            )
            return cursor.rowcount == 1

    # --- Requests ---

    def create_request(
        self,
        shelter_id: int,
        resource_id: int,
        quantity_requested: int,
        priority: int,
        status: RequestStatus = RequestStatus.PENDING,
        requested_at: Optional[str] = None,
        quantity_fulfilled: int = 0,
        conn: Optional[sqlite3.Connection] = None,
    ) -> int:
        """Insert request row and return the created id."""
        with self._session(conn, immediate=True) as session:
            cursor = session.execute(
                """
                INSERT INTO Requests (
                    shelter_id,
                    resource_id,
                    quantity_requested,
                    quantity_fulfilled,
                    priority,
                    status,
                    requested_at
                )
                VALUES (?, ?, ?, ?, ?, ?, ?);
                """,
                (
                    shelter_id,
                    resource_id,
                    quantity_requested,
                    quantity_fulfilled,
                    int(priority),
                    RequestStatus(status).value,
                    requested_at or utc_now_iso(),
                ),
            )
            return int(cursor.lastrowid)

    def get_request(
        self,
        request_id: int,
        conn: Optional[sqlite3.Connection] = None,
    ) -> Optional[ResourceRequest]:
        with self._session(conn) as session:
            row = session.execute(
                f"SELECT {_REQUEST_COLUMNS} FROM Requests AS rq WHERE rq.id = ?;",
                (request_id,),
            ).fetchone()
            return _row_to_request(row) if row is not None else None

    def update_open_request(
        self,
        request_id: int,
        shelter_id: int,
        resource_id: int,
        quantity_requested: int,
        priority: int,
        conn: Optional[sqlite3.Connection] = None,
    ) -> bool:
        """Rewrite intake fields of a non-terminal request; False if it is terminal or gone."""
        placeholders = ",".join("?" for _ in _OPEN_STATUS_VALUES)
        with self._session(conn, immediate=True) as session:
            cursor = session.execute(
                f"""
                UPDATE Requests
                SET shelter_id = ?, resource_id = ?, quantity_requested = ?, priority = ?
                WHERE id = ? AND status IN ({placeholders});
                """,
                (shelter_id, resource_id, quantity_requested, int(priority), request_id, *_OPEN_STATUS_VALUES),
            )
            return cursor.rowcount == 1

    def transition_request(
        self,
        request_id: int,
        new_status: RequestStatus,
        quantity_fulfilled: int,
        expected_statuses: Sequence[RequestStatus] = OPEN_STATUSES,
        conn: Optional[sqlite3.Connection] = None,
    ) -> bool:
        """Compare-and-set status update; False when another actor moved it first."""
        expected_values = tuple(status.value for status in expected_statuses)
        placeholders = ",".join("?" for _ in expected_values)
        with self._session(conn, immediate=True) as session:
            cursor = session.execute(
                f"""
                UPDATE Requests
                SET status = ?, quantity_fulfilled = ?
                WHERE id = ? AND status IN ({placeholders});
                """,
                (new_status.value, quantity_fulfilled, request_id, *expected_values),
            )
            return cursor.rowcount == 1

    def delete_request(
        self,
        request_id: int,
        conn: Optional[sqlite3.Connection] = None,
    ) -> bool:
        with self._session(conn, immediate=True) as session:
            cursor = session.execute("DELETE FROM Requests WHERE id = ?;", (request_id,))
            return cursor.rowcount == 1

    def list_open_requests(
        self,
        disaster_id: Optional[int] = None,
        conn: Optional[sqlite3.Connection] = None,
    ) -> list[PendingRequest]:
        """Return Pending/Approved requests joined with shelter and resource.

        Ordered by priority descending, then oldest first, then id.
        """
        placeholders = ",".join("?" for _ in _OPEN_STATUS_VALUES)
        with self._session(conn) as session:
            rows = session.execute(
                f"""
                SELECT
                    {_REQUEST_COLUMNS},
                    sh.id AS sh_id,
                    sh.disaster_id AS sh_disaster_id,
                    sh.name AS sh_name,
                    sh.location AS sh_location,
                    sh.capacity AS sh_capacity,
                    sh.current_occupancy AS sh_current_occupancy,
                    sh.operational_status AS sh_operational_status,
                    rs.id AS rs_id,
                    rs.disaster_id AS rs_disaster_id,
                    rs.name AS rs_name,
                    rs.resource_type AS rs_resource_type,
                    rs.unit AS rs_unit,
                    rs.stock_level AS rs_stock_level,
                    rs.minimum_threshold AS rs_minimum_threshold
                FROM Requests AS rq
                INNER JOIN Shelters AS sh ON sh.id = rq.shelter_id
                INNER JOIN Resources AS rs ON rs.id = rq.resource_id
                WHERE rq.status IN ({placeholders})
                  AND (? IS NULL OR sh.disaster_id = ?)
                ORDER BY rq.priority DESC, rq.requested_at ASC, rq.id ASC;
                """,
                (*_OPEN_STATUS_VALUES, disaster_id, disaster_id),
            ).fetchall()
            return [
                PendingRequest(
                    request=_row_to_request(row),
                    shelter=_row_to_shelter(row, prefix="sh_"),
                    resource=_row_to_resource(row, prefix="rs_"),
                )
                for row in rows
            ]

    def count_open_requests(
        self,
        disaster_id: Optional[int] = None,
        conn: Optional[sqlite3.Connection] = None,
    ) -> int:
        placeholders = ",".join("?" for _ in _OPEN_STATUS_VALUES)
        with self._session(conn) as session:
            row = session.execute(
                f"""
                SELECT COUNT(*) AS count
                FROM Requests AS rq
                INNER JOIN Shelters AS sh ON sh.id = rq.shelter_id
                WHERE rq.status IN ({placeholders})
                  AND (? IS NULL OR sh.disaster_id = ?);
                """,
                (*_OPEN_STATUS_VALUES, disaster_id, disaster_id),
            ).fetchone()
            return int(row["count"])

    # --- Allocation logs ---

    def save_allocation_log(
        self,
        request_id: int,
        resource_id: int,
        quantity: int,
        resulting_status: RequestStatus,
        comments: Optional[str] = None,
        conn: Optional[sqlite3.Connection] = None,
    ) -> None:
        """Persist an executed allocation for audit trails."""
        with self._session(conn, immediate=True) as session:
            session.execute(
                """
                INSERT INTO AllocationLogs (request_id, resource_id, quantity, resulting_status, comments)
                VALUES (?, ?, ?, ?, ?);
                """,
                (request_id, resource_id, quantity, resulting_status.value, comments),
            )

    def count_allocation_logs(self, conn: Optional[sqlite3.Connection] = None) -> int:
        with self._session(conn) as session:
            row = session.execute("SELECT COUNT(*) AS count FROM AllocationLogs;").fetchone()
            return int(row["count"])
