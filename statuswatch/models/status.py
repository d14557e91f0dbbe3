"""
Read-path views and ingestion cycle results.

These models are derived per request from the check log and the incident
ledger; none of them is persisted.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from .enums import Status
from .incidents import Incident


class HistoryPoint(BaseModel):
    """One historical check, trimmed for charting."""

    status: Status
    latency_ms: int
    timestamp: int = Field(description="Epoch milliseconds")


class ServiceStatus(BaseModel):
    """A service with its latest check and bounded history (ascending)."""

    id: str
    name: str
    status: Status
    status_code: int
    latency_ms: int
    last_checked: datetime
    error: Optional[str] = None
    history: list[HistoryPoint] = Field(default_factory=list)


class RegionStatus(BaseModel):
    """A region with rolled-up status over its services."""

    id: str
    name: str
    status: Status
    services: list[ServiceStatus] = Field(default_factory=list)


class IncidentView(Incident):
    """Incident enriched with presentation fields."""

    open: bool = Field(description="True while the incident is unresolved")
    duration: str = Field(description="Formatted downtime, measured to now while open")

    @classmethod
    def from_incident(cls, incident: Incident, now_ms: int) -> "IncidentView":
        return cls(
            **incident.model_dump(),
            open=incident.is_open,
            duration=incident.format_duration(now_ms),
        )


class SystemStatus(BaseModel):
    """
    Top-level status rollup.

    Attributes:
        status: Rollup over every downstream service's latest status (monitor excluded)
        timestamp: Most recent check time across the latest batch (None if empty)
        regions: Regions ordered by name
        incidents: Recent incidents, open ones first
    """

    status: Status
    timestamp: Optional[datetime] = None
    regions: list[RegionStatus] = Field(default_factory=list)
    incidents: list[IncidentView] = Field(default_factory=list)


class ServiceFailure(BaseModel):
    """A service whose processing failed during a cycle."""

    service_id: str
    error: str


class CycleResult(BaseModel):
    """Outcome of one ingestion cycle."""

    timestamp: int = Field(description="Cycle time in epoch milliseconds")
    upstream: Status = Field(description="Status of the upstream monitor for this cycle")
    processed: int = Field(default=0, ge=0, description="Services processed successfully")
    failures: list[ServiceFailure] = Field(default_factory=list)
