"""
Integration tests for the DuckDB storage backend.
"""

from statuswatch.models.enums import Status
from statuswatch.storage.duckdb_storage import DuckDBStorage
from tests.conftest import BASE_TIME_MS, CYCLE_MS, make_check, make_incident


class TestCheckLog:
    """Check log reads and writes."""

    def test_insert_returns_increasing_ids(self, duckdb_storage):
        first = duckdb_storage.insert_check(make_check())
        second = duckdb_storage.insert_check(make_check())

        assert second > first

    def test_latest_check_per_service(self, duckdb_storage):
        duckdb_storage.insert_check(make_check(service_id="r:a", status=Status.DOWN, timestamp=BASE_TIME_MS))
        duckdb_storage.insert_check(make_check(service_id="r:a", timestamp=BASE_TIME_MS + CYCLE_MS))
        duckdb_storage.insert_check(make_check(service_id="r:b", status=Status.DEGRADED))

        latest = duckdb_storage.read_latest_checks()

        assert set(latest) == {"r:a", "r:b"}
        assert latest["r:a"].status is Status.OPERATIONAL
        assert latest["r:a"].timestamp == BASE_TIME_MS + CYCLE_MS
        assert latest["r:b"].status is Status.DEGRADED

    def test_latest_tie_break_by_insertion_order(self, duckdb_storage):
        duckdb_storage.insert_check(make_check(service_id="r:a", status=Status.DOWN))
        last_id = duckdb_storage.insert_check(make_check(service_id="r:a", status=Status.DEGRADED))

        for _ in range(3):
            latest = duckdb_storage.read_latest_checks()["r:a"]
            assert latest.id == last_id
            assert latest.status is Status.DEGRADED

    def test_latest_filtered_by_service_ids(self, duckdb_storage):
        duckdb_storage.insert_check(make_check(service_id="r:a"))
        duckdb_storage.insert_check(make_check(service_id="r:b"))

        assert set(duckdb_storage.read_latest_checks(["r:b", "r:missing"])) == {"r:b"}
        assert duckdb_storage.read_latest_checks([]) == {}

    def test_check_round_trips_fields(self, duckdb_storage):
        check = make_check(
            service_id="eu-west-2:db-cluster",
            region_id="eu-west-2",
            region_name="EU West (London)",
            service_name="Database Cluster",
            status=Status.DEGRADED,
            status_code=200,
            latency_ms=1800,
            error="High CPU Load",
        )
        duckdb_storage.insert_check(check)

        stored = duckdb_storage.read_latest_checks()["eu-west-2:db-cluster"]

        assert stored.model_dump(exclude={"id"}) == check.model_dump(exclude={"id"})

    def test_history_window_limit_and_order(self, duckdb_storage):
        for i in range(6):
            duckdb_storage.insert_check(
                make_check(service_id="r:a", timestamp=BASE_TIME_MS + i * CYCLE_MS, latency_ms=i)
            )
        duckdb_storage.insert_check(make_check(service_id="r:b", timestamp=BASE_TIME_MS - CYCLE_MS))

        history = duckdb_storage.read_check_history(since=BASE_TIME_MS + CYCLE_MS, limit_per_service=3)

        assert set(history) == {"r:a"}
        assert [check.latency_ms for check in history["r:a"]] == [3, 4, 5]


class TestIncidentLedger:
    """Incident ledger reads and writes."""

    def test_open_incident_is_idempotent(self, duckdb_storage):
        created, was_created = duckdb_storage.open_incident(make_incident(service_id="r:a"))
        again, created_again = duckdb_storage.open_incident(
            make_incident(service_id="r:a", started_at=BASE_TIME_MS + CYCLE_MS)
        )

        assert was_created is True
        assert created_again is False
        assert again.id == created.id
        assert again.started_at == BASE_TIME_MS
        assert len(duckdb_storage.read_incidents(open_only=True)) == 1

    def test_update_incident_error(self, duckdb_storage):
        duckdb_storage.open_incident(make_incident(service_id="r:a", last_error="first"))

        updated = duckdb_storage.update_incident_error("r:a", "second")

        assert updated.last_error == "second"
        assert duckdb_storage.read_open_incident("r:a").last_error == "second"
        assert duckdb_storage.update_incident_error("r:missing", "x") is None

    def test_resolve_incident(self, duckdb_storage):
        duckdb_storage.open_incident(make_incident(service_id="r:a"))

        resolved = duckdb_storage.resolve_incident("r:a", BASE_TIME_MS + 2 * CYCLE_MS)

        assert resolved.resolved_at == BASE_TIME_MS + 2 * CYCLE_MS
        assert duckdb_storage.read_open_incident("r:a") is None
        assert duckdb_storage.resolve_incident("r:a", BASE_TIME_MS + 3 * CYCLE_MS) is None

    def test_reopen_after_resolve_creates_new_incident(self, duckdb_storage):
        first, _ = duckdb_storage.open_incident(make_incident(service_id="r:a"))
        duckdb_storage.resolve_incident("r:a", BASE_TIME_MS + CYCLE_MS)

        second, created = duckdb_storage.open_incident(
            make_incident(service_id="r:a", started_at=BASE_TIME_MS + 5 * CYCLE_MS)
        )

        assert created is True
        assert second.id != first.id
        assert len(duckdb_storage.read_incidents()) == 2

    def test_read_incidents_open_first(self, duckdb_storage):
        duckdb_storage.open_incident(make_incident(service_id="r:open", started_at=BASE_TIME_MS - 10 * CYCLE_MS))
        duckdb_storage.open_incident(make_incident(service_id="r:recent", started_at=BASE_TIME_MS))
        duckdb_storage.resolve_incident("r:recent", BASE_TIME_MS + CYCLE_MS)
        duckdb_storage.open_incident(make_incident(service_id="r:old", started_at=BASE_TIME_MS - 20 * CYCLE_MS))
        duckdb_storage.resolve_incident("r:old", BASE_TIME_MS - 15 * CYCLE_MS)

        incidents = duckdb_storage.read_incidents(limit=10)

        assert [i.service_id for i in incidents] == ["r:open", "r:recent", "r:old"]
        assert [i.service_id for i in duckdb_storage.read_incidents(limit=2)] == ["r:open", "r:recent"]
        assert [i.service_id for i in duckdb_storage.read_incidents(open_only=True)] == ["r:open"]


class TestPersistence:
    """State survives a new storage instance on the same file."""

    def test_reopen_database(self, tmp_path):
        db_path = str(tmp_path / "persist.duckdb")
        storage = DuckDBStorage(db_path=db_path)
        storage.insert_check(make_check(service_id="r:a", status=Status.DOWN))
        storage.open_incident(make_incident(service_id="r:a"))

        reopened = DuckDBStorage(db_path=db_path)

        assert reopened.read_latest_checks()["r:a"].status is Status.DOWN
        assert reopened.read_open_incident("r:a") is not None
