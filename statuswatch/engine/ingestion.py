"""
Ingestion Engine: one cycle of fetch -> classify -> detect -> track -> persist -> notify.

Cycle flow:
1. Take one cycle timestamp shared by every check written in the cycle
2. Fetch the upstream payload under one deadline and record it as a check
   of the upstream monitor pseudo-service, through the same pipeline as
   real services. A fetch that raises or overruns counts as unreachable
3. If the upstream monitor is down, stop: downstream data is not trusted
4. Parse the payload (malformed payload -> MalformedPayloadError)
5. Batch-read the previous latest check of every service once
6. Per service, under its lock: classify, detect transition, apply to the
   incident ledger, append the check, then notify if the ledger accepted a
   transition. A service whose lock was held by an overlapping cycle is
   re-read once the lock is acquired, so it never decides on stale state

Per-service failures are recorded on the CycleResult and never abort
sibling services. Notifications are sent after the writes they describe,
so a crash in between can lose a notification but never a state write.
"""

import asyncio
import time
from typing import Callable, Optional, Protocol

import structlog
from pydantic import ValidationError

from statuswatch.config import Settings
from statuswatch.connectors.notifier import Notification, Notifier
from statuswatch.connectors.upstream_client import UpstreamResponse
from statuswatch.engine.classifier import ClassifierPolicy, classify
from statuswatch.engine.incident_tracker import IncidentTracker
from statuswatch.engine.transitions import detect
from statuswatch.models.checks import Check, UpstreamPayload
from statuswatch.models.enums import IncidentAction, NotificationType, Status, Transition
from statuswatch.models.incidents import IncidentDelta
from statuswatch.models.status import CycleResult, ServiceFailure
from statuswatch.storage.base import StorageBackend, StorageError
from statuswatch.utils.timeutils import ms_to_datetime, now_ms

logger = structlog.get_logger()


# Upstream monitor pseudo-service
UPSTREAM_REGION_ID = "monitoring"
UPSTREAM_REGION_NAME = "Monitoring"
UPSTREAM_SERVICE_ID = "upstream-api"
UPSTREAM_SERVICE_NAME = "Upstream Status API"


class IngestionError(Exception):
    """Raised when a cycle cannot make progress at all."""

    pass


class MalformedPayloadError(IngestionError):
    """Raised when the upstream responded but its payload has the wrong shape."""

    pass


class UpstreamSource(Protocol):
    async def fetch(self) -> UpstreamResponse: ...


class IngestionEngine:
    """
    Orchestrates ingestion cycles.

    Attributes:
        storage: Repository for checks and incidents
        upstream: Source of the raw probe payload
        notifier: Sink for transition notifications
        policy: Classification thresholds
        upstream_timeout_seconds: Deadline for the whole upstream fetch
        notification_timeout_seconds: Upper bound on one notification
        tracker: Incident lifecycle manager
        clock: Returns the current time in epoch milliseconds

    Example:
        >>> engine = IngestionEngine(storage, upstream, notifier)
        >>> result = await engine.run_cycle()
        >>> result.upstream, result.processed
        (<Status.OPERATIONAL: 'operational'>, 12)
    """

    def __init__(
        self,
        storage: StorageBackend,
        upstream: UpstreamSource,
        notifier: Notifier,
        policy: Optional[ClassifierPolicy] = None,
        upstream_timeout_seconds: float = 10.0,
        notification_timeout_seconds: float = 5.0,
        clock: Optional[Callable[[], int]] = None,
        service_locks: Optional[dict[str, asyncio.Lock]] = None,
    ):
        self.storage = storage
        self.upstream = upstream
        self.notifier = notifier
        self.policy = policy or ClassifierPolicy()
        self.upstream_timeout_seconds = upstream_timeout_seconds
        self.notification_timeout_seconds = notification_timeout_seconds
        self.tracker = IncidentTracker(storage)
        self.clock = clock or now_ms

        # Serializes read-decide-write per service; shared across engines of one process
        self._service_locks: dict[str, asyncio.Lock] = (
            service_locks if service_locks is not None else {}
        )

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        storage: StorageBackend,
        upstream: UpstreamSource,
        notifier: Notifier,
        clock: Optional[Callable[[], int]] = None,
        service_locks: Optional[dict[str, asyncio.Lock]] = None,
    ) -> "IngestionEngine":
        """Build an engine from explicit application settings."""
        return cls(
            storage=storage,
            upstream=upstream,
            notifier=notifier,
            policy=ClassifierPolicy(
                latency_degraded_ms=settings.latency_degraded_ms,
                success_status_min=settings.success_status_min,
                success_status_max=settings.success_status_max,
            ),
            upstream_timeout_seconds=settings.upstream_timeout_seconds,
            notification_timeout_seconds=settings.notification_timeout_seconds,
            clock=clock,
            service_locks=service_locks,
        )

    async def run_cycle(self) -> CycleResult:
        """
        Run one ingestion cycle.

        Returns:
            CycleResult with the upstream monitor status, the number of
            services processed and any per-service failures

        Raises:
            MalformedPayloadError: Upstream responded but the payload did not parse
            IngestionError: Previous state could not be read at all
        """
        timestamp = self.clock()
        log = logger.bind(cycle_timestamp=timestamp)
        log.info("ingestion_cycle_started")

        failures: list[ServiceFailure] = []

        response = await self._fetch_upstream()
        upstream_check = Check(
            timestamp=timestamp,
            region_id=UPSTREAM_REGION_ID,
            region_name=UPSTREAM_REGION_NAME,
            service_id=UPSTREAM_SERVICE_ID,
            service_name=UPSTREAM_SERVICE_NAME,
            status=classify(
                response.latency_ms, response.status_code, response.error, self.policy
            ),
            status_code=response.status_code,
            latency_ms=response.latency_ms,
            error=response.error,
        )

        previous = self._read_previous([UPSTREAM_SERVICE_ID])
        failure = await self._process_service(upstream_check, previous.get(UPSTREAM_SERVICE_ID))
        if failure:
            failures.append(failure)

        if upstream_check.status is Status.DOWN:
            log.warning(
                "ingestion_cycle_upstream_down",
                status_code=response.status_code,
                error=response.error,
            )
            return CycleResult(timestamp=timestamp, upstream=Status.DOWN, failures=failures)

        payload = self._parse_payload(response)

        latest = self._read_previous(payload.service_ids())
        processed = 0

        for region in payload.regions:
            for probe in region.services:
                check = Check(
                    timestamp=timestamp,
                    region_id=region.id,
                    region_name=region.name,
                    service_id=probe.id,
                    service_name=probe.name,
                    status=classify(
                        probe.latency_ms,
                        probe.status_code,
                        probe.error,
                        self.policy,
                        reported_status=probe.status,
                    ),
                    status_code=probe.status_code,
                    latency_ms=probe.latency_ms,
                    error=probe.error or None,
                )

                failure = await self._process_service(check, latest.get(check.service_id))
                if failure:
                    failures.append(failure)
                    continue

                # A service repeated within one payload compares against this cycle's check
                latest[check.service_id] = check
                processed += 1

        result = CycleResult(
            timestamp=timestamp,
            upstream=upstream_check.status,
            processed=processed,
            failures=failures,
        )
        log.info(
            "ingestion_cycle_completed",
            upstream=result.upstream.value,
            processed=result.processed,
            failures=len(result.failures),
        )
        return result

    async def _fetch_upstream(self) -> UpstreamResponse:
        """Fetch once under the whole-fetch deadline; failures become a no-response result."""
        started = time.monotonic()
        try:
            return await asyncio.wait_for(
                self.upstream.fetch(), timeout=self.upstream_timeout_seconds
            )
        except asyncio.TimeoutError:
            error = f"Upstream API timeout after {self.upstream_timeout_seconds}s"
            logger.warning(
                "upstream_fetch_deadline_exceeded",
                timeout_seconds=self.upstream_timeout_seconds,
            )
        except Exception as e:
            error = f"Upstream API unreachable: {e}"
            logger.error("upstream_fetch_raised", error=str(e), exc_info=True)

        return UpstreamResponse(
            status_code=0,
            latency_ms=int((time.monotonic() - started) * 1000),
            error=error,
        )

    def _read_previous(self, service_ids: list[str]) -> dict[str, Check]:
        try:
            return self.storage.read_latest_checks(service_ids)
        except StorageError as e:
            logger.error("previous_state_read_failed", services=len(service_ids), error=str(e))
            raise IngestionError(f"Failed to read previous checks: {e}") from e

    def _parse_payload(self, response: UpstreamResponse) -> UpstreamPayload:
        try:
            return UpstreamPayload.model_validate_json(response.body or b"")
        except ValidationError as e:
            logger.error(
                "upstream_payload_malformed",
                error_count=e.error_count(),
                error=str(e)[:500],
            )
            raise MalformedPayloadError(f"Malformed upstream payload: {e.error_count()} errors") from e

    def _lock_for(self, service_id: str) -> asyncio.Lock:
        lock = self._service_locks.get(service_id)
        if lock is None:
            lock = self._service_locks[service_id] = asyncio.Lock()
        return lock

    async def _process_service(
        self, check: Check, previous: Optional[Check]
    ) -> Optional[ServiceFailure]:
        """Detect, track and persist one check; notify after the writes."""
        lock = self._lock_for(check.service_id)
        overlapped = lock.locked()

        async with lock:
            try:
                if overlapped:
                    # Another cycle wrote this service while we waited
                    previous = self.storage.read_latest_checks([check.service_id]).get(
                        check.service_id
                    )
                transition = detect(previous.status if previous else None, check.status)
                delta = self.tracker.apply(check, transition)
                self.storage.insert_check(check)
            except Exception as e:
                logger.error(
                    "service_processing_failed",
                    service_id=check.service_id,
                    error=str(e),
                    exc_info=True,
                )
                return ServiceFailure(service_id=check.service_id, error=str(e))

            if transition is not Transition.NONE:
                logger.info(
                    "service_transition",
                    service_id=check.service_id,
                    transition=transition.value,
                    incident_action=delta.action.value,
                    status=check.status.value,
                )

            notification = self._notification_for(check, delta)
            if notification is not None:
                await self._notify(notification)

        return None

    def _notification_for(self, check: Check, delta: IncidentDelta) -> Optional[Notification]:
        occurred_at = ms_to_datetime(check.timestamp)

        if delta.action is IncidentAction.OPENED:
            return Notification(
                kind=NotificationType.DOWN,
                service_name=check.service_name,
                region_name=check.region_name,
                error=check.error or "Unknown error",
                occurred_at=occurred_at,
            )

        if delta.action is IncidentAction.RESOLVED:
            return Notification(
                kind=NotificationType.RECOVERED,
                service_name=check.service_name,
                region_name=check.region_name,
                duration=delta.incident.format_duration(check.timestamp),
                occurred_at=occurred_at,
            )

        return None

    async def _notify(self, notification: Notification) -> None:
        try:
            await asyncio.wait_for(
                self.notifier.send(notification),
                timeout=self.notification_timeout_seconds,
            )
        except asyncio.TimeoutError:
            logger.error(
                "notification_timeout",
                kind=notification.kind.value,
                service_name=notification.service_name,
            )
        except Exception as e:
            logger.error(
                "notification_failed",
                kind=notification.kind.value,
                service_name=notification.service_name,
                error=str(e),
            )
