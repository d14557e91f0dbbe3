"""
DuckDB storage implementation for StatusWatch.

Provides the local storage backend for the check log and the incident
ledger. Checks are append-only with a sequence-backed insertion id used as
the deterministic tie-break between equal timestamps. Incident mutations
run under a process-wide write lock inside explicit transactions so the
read-latest -> decide -> write pattern never races with itself.

Key features:
- Thread-local connections
- Automatic, idempotent schema creation
- Window-function reads for latest-per-service and bounded history
- Comprehensive error handling with structured logging
"""

import os
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Optional

import duckdb
import structlog

from statuswatch.models.checks import Check
from statuswatch.models.incidents import Incident

from .base import StorageBackend, StorageError

logger = structlog.get_logger(__name__)


_CHECK_COLUMNS = """
    id, checked_at, region_id, region_name, service_id, service_name,
    status, status_code, latency_ms, error
"""

_INCIDENT_COLUMNS = """
    id, service_id, service_name, region_id, region_name,
    started_at, resolved_at, last_error
"""


def _row_to_check(row) -> Check:
    return Check(
        id=row[0],
        timestamp=row[1],
        region_id=row[2],
        region_name=row[3],
        service_id=row[4],
        service_name=row[5],
        status=row[6],
        status_code=row[7],
        latency_ms=row[8],
        error=row[9],
    )


def _row_to_incident(row) -> Incident:
    return Incident(
        id=row[0],
        service_id=row[1],
        service_name=row[2],
        region_id=row[3],
        region_name=row[4],
        started_at=row[5],
        resolved_at=row[6],
        last_error=row[7],
    )


class DuckDBStorage(StorageBackend):
    """
    DuckDB implementation of the storage backend.

    Attributes:
        db_path: Path to the DuckDB database file
        _local: Thread-local storage for per-thread connections
        _lock: Thread lock for schema initialization
        _write_lock: Serializes incident read-modify-write operations
        _initialized: Flag tracking whether schema is initialized
    """

    def __init__(self, db_path: str = "./data/statuswatch.duckdb"):
        """
        Initialize DuckDB storage backend.

        Args:
            db_path: Path to DuckDB database file
        """
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)

        self._local = threading.local()
        self._lock = threading.Lock()
        self._write_lock = threading.RLock()
        self._initialized = False

        logger.info("duckdb_storage_initialized", db_path=str(self.db_path))

        self._initialize_schema()

    @contextmanager
    def _get_connection(self):
        """
        Get a thread-local DuckDB connection.

        Yields:
            DuckDB connection instance

        Raises:
            StorageError: If connection cannot be established
        """
        if not hasattr(self._local, "connection"):
            try:
                self._local.connection = duckdb.connect(str(self.db_path))
                logger.debug("duckdb_connection_created", thread_id=threading.get_ident())
            except Exception as e:
                logger.error("duckdb_connection_failed", error=str(e))
                raise StorageError(f"Failed to connect to DuckDB: {e}") from e

        try:
            yield self._local.connection
        except Exception:
            try:
                self._local.connection.rollback()
            except duckdb.Error:
                # No transaction was active
                pass
            raise

    @contextmanager
    def _transaction(self):
        """Run a serialized read-modify-write transaction."""
        with self._write_lock, self._get_connection() as conn:
            conn.begin()
            yield conn
            conn.commit()

    def _initialize_schema(self):
        """
        Create tables, sequences and indexes.

        This method is idempotent and safe to call multiple times.

        Raises:
            StorageError: If schema creation fails
        """
        if self._initialized:
            return

        with self._lock:
            if self._initialized:
                return

            try:
                with self._get_connection() as conn:
                    # =========================================================
                    # Check log (append-only)
                    # =========================================================

                    conn.execute("CREATE SEQUENCE IF NOT EXISTS checks_id_seq START 1")

                    conn.execute("""
                        CREATE TABLE IF NOT EXISTS checks (
                            id BIGINT PRIMARY KEY DEFAULT nextval('checks_id_seq'),
                            checked_at BIGINT NOT NULL,
                            region_id VARCHAR NOT NULL,
                            region_name VARCHAR NOT NULL,
                            service_id VARCHAR NOT NULL,
                            service_name VARCHAR NOT NULL,
                            status VARCHAR NOT NULL,
                            status_code INTEGER NOT NULL,
                            latency_ms INTEGER NOT NULL,
                            error VARCHAR
                        )
                    """)

                    conn.execute("""
                        CREATE INDEX IF NOT EXISTS idx_checks_service_id
                        ON checks(service_id)
                    """)

                    conn.execute("""
                        CREATE INDEX IF NOT EXISTS idx_checks_checked_at
                        ON checks(checked_at)
                    """)

                    # =========================================================
                    # Incident ledger
                    # =========================================================

                    conn.execute("CREATE SEQUENCE IF NOT EXISTS incidents_id_seq START 1")

                    conn.execute("""
                        CREATE TABLE IF NOT EXISTS incidents (
                            id BIGINT PRIMARY KEY DEFAULT nextval('incidents_id_seq'),
                            service_id VARCHAR NOT NULL,
                            service_name VARCHAR NOT NULL,
                            region_id VARCHAR NOT NULL,
                            region_name VARCHAR NOT NULL,
                            started_at BIGINT NOT NULL,
                            resolved_at BIGINT,
                            last_error VARCHAR
                        )
                    """)

                    conn.execute("""
                        CREATE INDEX IF NOT EXISTS idx_incidents_service_id
                        ON incidents(service_id)
                    """)

                    conn.execute("""
                        CREATE INDEX IF NOT EXISTS idx_incidents_started_at
                        ON incidents(started_at)
                    """)

                    logger.info("duckdb_schema_initialized")
                    self._initialized = True

            except Exception as e:
                logger.error("duckdb_schema_initialization_failed", error=str(e))
                raise StorageError(f"Failed to initialize schema: {e}") from e

    def clear_for_testing(self) -> None:
        """
        Delete all rows. For testing only, active when TESTING is set.
        """
        if not os.environ.get("TESTING"):
            return
        with self._write_lock, self._get_connection() as conn:
            conn.execute("DELETE FROM checks")
            conn.execute("DELETE FROM incidents")

    # =========================================================================
    # Check log
    # =========================================================================

    def insert_check(self, check: Check) -> int:
        """Append a check and return its insertion id."""
        try:
            with self._get_connection() as conn:
                row = conn.execute(
                    """
                    INSERT INTO checks (
                        checked_at, region_id, region_name, service_id, service_name,
                        status, status_code, latency_ms, error
                    ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                    RETURNING id
                    """,
                    [
                        check.timestamp,
                        check.region_id,
                        check.region_name,
                        check.service_id,
                        check.service_name,
                        check.status.value,
                        check.status_code,
                        check.latency_ms,
                        check.error,
                    ],
                ).fetchone()
                logger.debug("check_written", service_id=check.service_id, check_id=row[0])
                return row[0]

        except Exception as e:
            logger.error(
                "insert_check_failed",
                service_id=check.service_id,
                error=str(e),
            )
            raise StorageError(f"Failed to insert check: {e}") from e

    def read_latest_checks(
        self, service_ids: Optional[list[str]] = None
    ) -> dict[str, Check]:
        """Read the latest check per service, ordered by region then service name."""
        if service_ids is not None and not service_ids:
            return {}

        try:
            with self._get_connection() as conn:
                query = f"SELECT {_CHECK_COLUMNS} FROM checks"
                params: list = []

                if service_ids is not None:
                    placeholders = ", ".join("?" for _ in service_ids)
                    query += f" WHERE service_id IN ({placeholders})"
                    params.extend(service_ids)

                query += """
                    QUALIFY ROW_NUMBER() OVER (
                        PARTITION BY service_id ORDER BY checked_at DESC, id DESC
                    ) = 1
                    ORDER BY region_name, service_name, service_id
                """

                result = conn.execute(query, params).fetchall()
                latest = {row[4]: _row_to_check(row) for row in result}

                logger.debug("latest_checks_read", count=len(latest))
                return latest

        except Exception as e:
            logger.error("read_latest_checks_failed", error=str(e))
            raise StorageError(f"Failed to read latest checks: {e}") from e

    def read_check_history(
        self, since: int, limit_per_service: int
    ) -> dict[str, list[Check]]:
        """Read the most recent checks per service since a point in time."""
        try:
            with self._get_connection() as conn:
                result = conn.execute(
                    f"""
                    SELECT {_CHECK_COLUMNS}
                    FROM checks
                    WHERE checked_at >= ?
                    QUALIFY ROW_NUMBER() OVER (
                        PARTITION BY service_id ORDER BY checked_at DESC, id DESC
                    ) <= ?
                    ORDER BY service_id, checked_at ASC, id ASC
                    """,
                    [since, limit_per_service],
                ).fetchall()

                history: dict[str, list[Check]] = {}
                for row in result:
                    history.setdefault(row[4], []).append(_row_to_check(row))

                logger.debug("check_history_read", services=len(history), rows=len(result))
                return history

        except Exception as e:
            logger.error("read_check_history_failed", error=str(e))
            raise StorageError(f"Failed to read check history: {e}") from e

    # =========================================================================
    # Incident ledger
    # =========================================================================

    def _select_open_incident(self, conn, service_id: str) -> Optional[Incident]:
        row = conn.execute(
            f"""
            SELECT {_INCIDENT_COLUMNS}
            FROM incidents
            WHERE service_id = ? AND resolved_at IS NULL
            ORDER BY started_at DESC, id DESC
            LIMIT 1
            """,
            [service_id],
        ).fetchone()
        return _row_to_incident(row) if row else None

    def read_open_incident(self, service_id: str) -> Optional[Incident]:
        """Read the open incident of a service."""
        try:
            with self._get_connection() as conn:
                return self._select_open_incident(conn, service_id)

        except Exception as e:
            logger.error("read_open_incident_failed", service_id=service_id, error=str(e))
            raise StorageError(f"Failed to read open incident: {e}") from e

    def open_incident(self, incident: Incident) -> tuple[Incident, bool]:
        """Insert an open incident unless one already exists for the service."""
        try:
            with self._transaction() as conn:
                existing = self._select_open_incident(conn, incident.service_id)
                if existing is not None:
                    logger.debug(
                        "incident_already_open",
                        service_id=incident.service_id,
                        incident_id=existing.id,
                    )
                    return existing, False

                row = conn.execute(
                    """
                    INSERT INTO incidents (
                        service_id, service_name, region_id, region_name,
                        started_at, resolved_at, last_error
                    ) VALUES (?, ?, ?, ?, ?, NULL, ?)
                    RETURNING id
                    """,
                    [
                        incident.service_id,
                        incident.service_name,
                        incident.region_id,
                        incident.region_name,
                        incident.started_at,
                        incident.last_error,
                    ],
                ).fetchone()

                created = incident.model_copy(update={"id": row[0], "resolved_at": None})
                logger.info(
                    "incident_opened",
                    incident_id=created.id,
                    service_id=created.service_id,
                    started_at=created.started_at,
                )
                return created, True

        except Exception as e:
            logger.error(
                "open_incident_failed",
                service_id=incident.service_id,
                error=str(e),
            )
            raise StorageError(f"Failed to open incident: {e}") from e

    def update_incident_error(
        self, service_id: str, last_error: Optional[str]
    ) -> Optional[Incident]:
        """Refresh last_error on the open incident of a service."""
        try:
            with self._transaction() as conn:
                existing = self._select_open_incident(conn, service_id)
                if existing is None:
                    return None

                conn.execute(
                    "UPDATE incidents SET last_error = ? WHERE id = ?",
                    [last_error, existing.id],
                )
                logger.debug("incident_error_updated", incident_id=existing.id)
                return existing.model_copy(update={"last_error": last_error})

        except Exception as e:
            logger.error("update_incident_error_failed", service_id=service_id, error=str(e))
            raise StorageError(f"Failed to update incident: {e}") from e

    def resolve_incident(self, service_id: str, resolved_at: int) -> Optional[Incident]:
        """Close the open incident of a service."""
        try:
            with self._transaction() as conn:
                existing = self._select_open_incident(conn, service_id)
                if existing is None:
                    return None

                conn.execute(
                    "UPDATE incidents SET resolved_at = ? WHERE id = ?",
                    [resolved_at, existing.id],
                )
                resolved = existing.model_copy(update={"resolved_at": resolved_at})
                logger.info(
                    "incident_resolved",
                    incident_id=resolved.id,
                    service_id=service_id,
                    resolved_at=resolved_at,
                )
                return resolved

        except Exception as e:
            logger.error("resolve_incident_failed", service_id=service_id, error=str(e))
            raise StorageError(f"Failed to resolve incident: {e}") from e

    def read_incidents(self, limit: int = 10, open_only: bool = False) -> list[Incident]:
        """Read recent incidents, open ones first."""
        try:
            with self._get_connection() as conn:
                query = f"SELECT {_INCIDENT_COLUMNS} FROM incidents"
                if open_only:
                    query += " WHERE resolved_at IS NULL"
                query += """
                    ORDER BY (resolved_at IS NULL) DESC, started_at DESC, id DESC
                    LIMIT ?
                """

                result = conn.execute(query, [limit]).fetchall()
                incidents = [_row_to_incident(row) for row in result]

                logger.debug("incidents_read", count=len(incidents))
                return incidents

        except Exception as e:
            logger.error("read_incidents_failed", error=str(e))
            raise StorageError(f"Failed to read incidents: {e}") from e
