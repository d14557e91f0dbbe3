"""
Pytest configuration and shared fixtures for the StatusWatch test suite.

Provides model factories, an in-memory storage backend, a scripted upstream,
a recording notifier and a controllable clock, reusable across unit,
property-based and integration tests.
"""

import json
import os
import tempfile
import uuid as _uuid
from typing import Optional

import pytest

# Set testing environment BEFORE importing the app. DuckDB creates the file;
# :memory: would give every thread-local connection its own database.
_test_db_path = os.path.join(
    tempfile.gettempdir(), f"statuswatch_test_{_uuid.uuid4().hex[:8]}.duckdb"
)
os.environ["TESTING"] = "true"
os.environ["DB_PATH"] = _test_db_path
os.environ["CRON_SECRET"] = "test-cron-secret"
os.environ["UPSTREAM_STATUS_API_URL"] = "http://upstream.test/api/status"
os.environ["DISCORD_WEBHOOK_URL"] = ""
os.environ["LOG_LEVEL"] = "warning"


from statuswatch.connectors.notifier import Notification, Notifier
from statuswatch.connectors.upstream_client import UpstreamResponse
from statuswatch.models.checks import Check
from statuswatch.models.enums import Status
from statuswatch.models.incidents import Incident
from statuswatch.storage.base import StorageBackend, StorageError


BASE_TIME_MS = 1_700_000_000_000
CYCLE_MS = 60_000


# ---------------------------------------------------------------------------
# Model factories
# ---------------------------------------------------------------------------


def make_check(
    service_id: str = "us-east-1:api-gateway",
    status: Status = Status.OPERATIONAL,
    timestamp: int = BASE_TIME_MS,
    region_id: str = "us-east-1",
    region_name: str = "US East (N. Virginia)",
    service_name: Optional[str] = None,
    status_code: Optional[int] = None,
    latency_ms: int = 42,
    error: Optional[str] = None,
    **overrides,
) -> Check:
    """Factory function for creating test Check objects."""
    if status_code is None:
        status_code = 0 if status is Status.DOWN else 200
    defaults = dict(
        timestamp=timestamp,
        region_id=region_id,
        region_name=region_name,
        service_id=service_id,
        service_name=service_name or service_id.split(":")[-1],
        status=status,
        status_code=status_code,
        latency_ms=latency_ms,
        error=error,
    )
    defaults.update(overrides)
    return Check(**defaults)


def make_incident(
    service_id: str = "us-east-1:api-gateway",
    started_at: int = BASE_TIME_MS,
    resolved_at: Optional[int] = None,
    last_error: Optional[str] = "connection refused",
    **overrides,
) -> Incident:
    """Factory function for creating test Incident objects."""
    defaults = dict(
        service_id=service_id,
        service_name=service_id.split(":")[-1],
        region_id="us-east-1",
        region_name="US East (N. Virginia)",
        started_at=started_at,
        resolved_at=resolved_at,
        last_error=last_error,
    )
    defaults.update(overrides)
    return Incident(**defaults)


def make_service_probe(
    service_id: str = "us-east-1:api-gateway",
    status: str = "operational",
    status_code: int = 200,
    latency: float = 42,
    error: Optional[str] = None,
    name: Optional[str] = None,
) -> dict:
    """Raw upstream service entry (camelCase, as sent by the upstream)."""
    return {
        "id": service_id,
        "name": name or service_id.split(":")[-1],
        "status": status,
        "statusCode": status_code,
        "latency": latency,
        "error": error,
    }


def make_payload(*regions: tuple[str, str, list[dict]]) -> dict:
    """Raw upstream payload from (region_id, region_name, services) tuples."""
    return {
        "regions": [
            {"id": region_id, "name": region_name, "services": services}
            for region_id, region_name, services in regions
        ]
    }


def single_service_payload(
    status_code: int = 200,
    service_id: str = "us-east-1:api-gateway",
    error: Optional[str] = None,
    latency: float = 42,
) -> dict:
    """Payload with one service in one region."""
    return make_payload(
        (
            "us-east-1",
            "US East (N. Virginia)",
            [
                make_service_probe(
                    service_id=service_id,
                    status="operational" if status_code == 200 else "down",
                    status_code=status_code,
                    latency=latency,
                    error=error,
                )
            ],
        )
    )


# ---------------------------------------------------------------------------
# Test doubles
# ---------------------------------------------------------------------------


class MockStorage(StorageBackend):
    """
    In-memory StorageBackend for unit tests.

    Mirrors the DuckDB ordering rules: latest check by (timestamp, id),
    incidents open-first then started_at descending.
    """

    def __init__(self):
        self.checks: list[Check] = []
        self.incidents: list[Incident] = []
        self.fail_insert_for: set[str] = set()
        self.fail_reads = False
        self._next_check_id = 1
        self._next_incident_id = 1

    # --- Check log ---
    def insert_check(self, check):
        if check.service_id in self.fail_insert_for:
            raise StorageError(f"insert failed for {check.service_id}")
        stored = check.model_copy(update={"id": self._next_check_id})
        self._next_check_id += 1
        self.checks.append(stored)
        return stored.id

    def read_latest_checks(self, service_ids=None):
        if self.fail_reads:
            raise StorageError("read failed")
        latest: dict[str, Check] = {}
        for check in self.checks:
            if service_ids is not None and check.service_id not in service_ids:
                continue
            current = latest.get(check.service_id)
            if current is None or (check.timestamp, check.id) > (current.timestamp, current.id):
                latest[check.service_id] = check
        return latest

    def read_check_history(self, since, limit_per_service):
        history: dict[str, list[Check]] = {}
        for check in sorted(self.checks, key=lambda c: (c.timestamp, c.id)):
            if check.timestamp >= since:
                history.setdefault(check.service_id, []).append(check)
        return {sid: checks[-limit_per_service:] for sid, checks in history.items()}

    def checks_for(self, service_id: str) -> list[Check]:
        return [c for c in self.checks if c.service_id == service_id]

    # --- Incident ledger ---
    def _open_index(self, service_id):
        for index, incident in enumerate(self.incidents):
            if incident.service_id == service_id and incident.resolved_at is None:
                return index
        return None

    def read_open_incident(self, service_id):
        index = self._open_index(service_id)
        return None if index is None else self.incidents[index]

    def open_incident(self, incident):
        existing = self.read_open_incident(incident.service_id)
        if existing is not None:
            return existing, False
        created = incident.model_copy(update={"id": self._next_incident_id})
        self._next_incident_id += 1
        self.incidents.append(created)
        return created, True

    def update_incident_error(self, service_id, last_error):
        index = self._open_index(service_id)
        if index is None:
            return None
        self.incidents[index] = self.incidents[index].model_copy(update={"last_error": last_error})
        return self.incidents[index]

    def resolve_incident(self, service_id, resolved_at):
        index = self._open_index(service_id)
        if index is None:
            return None
        self.incidents[index] = self.incidents[index].model_copy(update={"resolved_at": resolved_at})
        return self.incidents[index]

    def read_incidents(self, limit=10, open_only=False):
        incidents = [i for i in self.incidents if not open_only or i.resolved_at is None]
        incidents.sort(key=lambda i: (i.resolved_at is None, i.started_at, i.id), reverse=True)
        return incidents[:limit]


class FakeUpstream:
    """Scripted upstream source returning queued responses (last one repeats)."""

    def __init__(self, *responses: UpstreamResponse):
        self.responses = list(responses)
        self.calls = 0

    def push(self, response: UpstreamResponse) -> None:
        self.responses.append(response)

    async def fetch(self) -> UpstreamResponse:
        self.calls += 1
        if len(self.responses) > 1:
            return self.responses.pop(0)
        return self.responses[0]


def upstream_ok(payload: dict, latency_ms: int = 120) -> UpstreamResponse:
    return UpstreamResponse(
        status_code=200, latency_ms=latency_ms, body=json.dumps(payload).encode("utf-8")
    )


def upstream_unreachable(error: str = "Upstream API unreachable: connection refused") -> UpstreamResponse:
    return UpstreamResponse(status_code=0, latency_ms=3, error=error)


class RecordingNotifier(Notifier):
    """Notifier that records every notification it is asked to send."""

    def __init__(self, fail: bool = False):
        self.sent: list[Notification] = []
        self.fail = fail

    async def send(self, notification):
        self.sent.append(notification)
        if self.fail:
            raise RuntimeError("webhook exploded")
        return True


class FakeClock:
    """Deterministic epoch-millisecond clock."""

    def __init__(self, start: int = BASE_TIME_MS):
        self.now = start

    def __call__(self) -> int:
        return self.now

    def advance(self, ms: int = CYCLE_MS) -> int:
        self.now += ms
        return self.now


# ---------------------------------------------------------------------------
# Pytest fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def mock_storage():
    """Fresh MockStorage instance for each test."""
    return MockStorage()


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def duckdb_storage(tmp_path):
    """Real DuckDB storage in a per-test temporary file."""
    from statuswatch.storage.duckdb_storage import DuckDBStorage

    return DuckDBStorage(db_path=str(tmp_path / "statuswatch.duckdb"))


@pytest.fixture
def auth_headers():
    """Authenticated request headers for the ingest trigger."""
    return {
        "Authorization": "Bearer test-cron-secret",
        "X-Request-ID": str(_uuid.uuid4()),
    }
