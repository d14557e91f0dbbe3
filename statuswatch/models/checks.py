"""
Check and upstream payload models.

A Check is one immutable observation of one service in one ingestion cycle.
The upstream payload models describe the raw per-region/per-service probe
results delivered by the external status API.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .enums import Status


class Check(BaseModel):
    """
    Append-only health observation for a single service.

    Attributes:
        id: Storage-assigned insertion id (None before insert)
        timestamp: Epoch millis of the cycle that produced this check
        region_id: Region identifier
        region_name: Human-readable region name
        service_id: Service identifier, unique across regions
        service_name: Human-readable service name
        status: Classified status
        status_code: Raw probe status code (0 when unreachable)
        latency_ms: Probe latency in milliseconds
        error: Probe error text, if any
    """

    model_config = ConfigDict(frozen=True)

    id: Optional[int] = Field(default=None, description="Storage-assigned insertion id")
    timestamp: int = Field(ge=0, description="Cycle time in epoch milliseconds")
    region_id: str = Field(description="Region identifier")
    region_name: str = Field(description="Region display name")
    service_id: str = Field(description="Service identifier")
    service_name: str = Field(description="Service display name")
    status: Status = Field(description="Classified status")
    status_code: int = Field(default=0, ge=0, description="Raw probe status code")
    latency_ms: int = Field(default=0, ge=0, description="Probe latency in ms")
    error: Optional[str] = Field(default=None, description="Probe error text")


class ServiceProbe(BaseModel):
    """Raw probe result for one service as reported by the upstream API."""

    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(min_length=1)
    name: str
    status: Optional[Status] = Field(
        default=None, description="Status reported by the upstream, used as a soft signal"
    )
    status_code: int = Field(alias="statusCode", ge=0)
    latency_ms: int = Field(alias="latency", ge=0)
    error: Optional[str] = None

    @field_validator("latency_ms", mode="before")
    @classmethod
    def round_latency(cls, v):
        """Upstream latencies may carry fractional milliseconds."""
        if isinstance(v, float):
            return int(round(v))
        return v


class RegionProbe(BaseModel):
    """A region and the probe results of its services."""

    id: str = Field(min_length=1)
    name: str
    services: list[ServiceProbe] = Field(default_factory=list)


class UpstreamPayload(BaseModel):
    """Top-level upstream status API response."""

    regions: list[RegionProbe]

    def service_ids(self) -> list[str]:
        return [service.id for region in self.regions for service in region.services]
