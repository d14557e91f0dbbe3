"""
Incident ledger models for StatusWatch.

An incident covers one continuous ``down`` period of one service. It is
opened on onset, kept open while the service stays down, and resolved on
recovery. The persisted start/resolve timestamps are the single source of
truth for downtime duration.
"""

from typing import Optional

from pydantic import BaseModel, Field

from .enums import IncidentAction


def format_duration(elapsed_ms: int) -> str:
    """
    Format an elapsed period for notifications and views.

    Under an hour renders as ``"{minutes}m {seconds}s"``, otherwise as
    ``"{hours}h {minutes}m"``.

    Example:
        >>> format_duration(95_000)
        '1m 35s'
        >>> format_duration(125 * 60_000)
        '2h 5m'
    """
    elapsed_ms = max(0, elapsed_ms)
    minutes = elapsed_ms // 60_000
    seconds = (elapsed_ms % 60_000) // 1000
    if minutes < 60:
        return f"{minutes}m {seconds}s"
    return f"{minutes // 60}h {minutes % 60}m"


class Incident(BaseModel):
    """
    One continuous unhealthy period for one service.

    Attributes:
        id: Storage-assigned identifier (None before insert)
        service_id: Affected service
        service_name: Affected service display name
        region_id: Region of the affected service
        region_name: Region display name
        started_at: Epoch millis of the cycle that first observed down
        resolved_at: Epoch millis of the cycle that first observed recovery
        last_error: Latest known error text during the period
    """

    id: Optional[int] = Field(default=None, description="Storage-assigned identifier")
    service_id: str = Field(description="Affected service")
    service_name: str = Field(description="Affected service display name")
    region_id: str = Field(description="Region of the affected service")
    region_name: str = Field(description="Region display name")
    started_at: int = Field(ge=0, description="Onset time in epoch milliseconds")
    resolved_at: Optional[int] = Field(
        default=None, description="Recovery time in epoch milliseconds"
    )
    last_error: Optional[str] = Field(default=None, description="Latest known error")

    @property
    def is_open(self) -> bool:
        return self.resolved_at is None

    def duration_ms(self, now_ms: int) -> int:
        """Elapsed downtime, measured up to ``now_ms`` while still open."""
        end = self.resolved_at if self.resolved_at is not None else now_ms
        return max(0, end - self.started_at)

    def format_duration(self, now_ms: int) -> str:
        return format_duration(self.duration_ms(now_ms))


class IncidentDelta(BaseModel):
    """Result of applying one check to the incident ledger."""

    action: IncidentAction = IncidentAction.NONE
    incident: Optional[Incident] = None
