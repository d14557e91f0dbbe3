"""
Status Aggregator: read-path rollup of system, region and service status.

Pure read/derive over the repository. The latest check per service drives
current status; a bounded, time-windowed slice of history is attached to
each service for charting. The upstream monitor region is shown but kept
out of the system rollup. Readers may observe a cycle that is still in
flight: per-service latest state is eventually consistent, not a
cycle-wide snapshot.
"""

from typing import Callable, Optional

import structlog

from statuswatch.config import Settings
from statuswatch.engine.classifier import rollup
from statuswatch.engine.ingestion import UPSTREAM_REGION_ID
from statuswatch.models.checks import Check
from statuswatch.models.status import (
    HistoryPoint,
    IncidentView,
    RegionStatus,
    ServiceStatus,
    SystemStatus,
)
from statuswatch.storage.base import StorageBackend
from statuswatch.utils.timeutils import ms_to_datetime, now_ms

logger = structlog.get_logger()


HOUR_MS = 60 * 60 * 1000


class StatusAggregator:
    """
    Builds SystemStatus views from stored checks and incidents.

    Attributes:
        storage: Repository to read from
        history_window_hours: Age limit of history points
        history_max_points: Most recent points kept per service
        incident_limit: Incidents attached to the system view
        clock: Returns the current time in epoch milliseconds
    """

    def __init__(
        self,
        storage: StorageBackend,
        history_window_hours: float = 2.0,
        history_max_points: int = 60,
        incident_limit: int = 10,
        clock: Optional[Callable[[], int]] = None,
    ):
        self.storage = storage
        self.history_window_hours = history_window_hours
        self.history_max_points = history_max_points
        self.incident_limit = incident_limit
        self.clock = clock or now_ms

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        storage: StorageBackend,
        clock: Optional[Callable[[], int]] = None,
    ) -> "StatusAggregator":
        return cls(
            storage=storage,
            history_window_hours=settings.history_window_hours,
            history_max_points=settings.history_max_points,
            incident_limit=settings.incident_limit,
            clock=clock,
        )

    def get_system_status(self) -> SystemStatus:
        """
        Reconstruct the current system status.

        Returns:
            SystemStatus with regions and services ordered by name, each
            service carrying its ascending history, and the most recent
            incidents (open first)

        Raises:
            StorageError: If the repository cannot be read
        """
        now = self.clock()
        latest = self.storage.read_latest_checks()
        since = now - int(self.history_window_hours * HOUR_MS)
        history = self.storage.read_check_history(since, self.history_max_points)

        regions: dict[str, RegionStatus] = {}
        for check in sorted(latest.values(), key=_display_order):
            region = regions.get(check.region_id)
            if region is None:
                region = regions[check.region_id] = RegionStatus(
                    id=check.region_id,
                    name=check.region_name,
                    status=check.status,
                )
            region.services.append(_service_status(check, history.get(check.service_id, [])))

        for region in regions.values():
            region.status = rollup(service.status for service in region.services)

        latest_timestamp = max((check.timestamp for check in latest.values()), default=None)

        status = SystemStatus(
            status=rollup(
                check.status for check in latest.values() if check.region_id != UPSTREAM_REGION_ID
            ),
            timestamp=ms_to_datetime(latest_timestamp) if latest_timestamp is not None else None,
            regions=list(regions.values()),
            incidents=self.list_incidents(self.incident_limit, now=now),
        )

        logger.debug(
            "system_status_built",
            status=status.status.value,
            regions=len(status.regions),
            services=len(latest),
        )
        return status

    def list_incidents(
        self,
        limit: int,
        open_only: bool = False,
        now: Optional[int] = None,
    ) -> list[IncidentView]:
        """Recent incidents with formatted durations, open ones first."""
        now = self.clock() if now is None else now
        incidents = self.storage.read_incidents(limit=limit, open_only=open_only)
        return [IncidentView.from_incident(incident, now) for incident in incidents]


def _display_order(check: Check) -> tuple[str, str, str]:
    return (check.region_name, check.service_name, check.service_id)


def _service_status(check: Check, history: list[Check]) -> ServiceStatus:
    return ServiceStatus(
        id=check.service_id,
        name=check.service_name,
        status=check.status,
        status_code=check.status_code,
        latency_ms=check.latency_ms,
        last_checked=ms_to_datetime(check.timestamp),
        error=check.error,
        history=[
            HistoryPoint(status=point.status, latency_ms=point.latency_ms, timestamp=point.timestamp)
            for point in history
        ],
    )
