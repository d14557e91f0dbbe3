"""
Pydantic v2 data models for StatusWatch.

Model Organization:
    - enums: Status, Transition, IncidentAction, NotificationType
    - checks: append-only Check records and the upstream payload schema
    - incidents: Incident ledger rows and duration formatting
    - status: read-path views and ingestion cycle results

Usage:
    >>> from statuswatch.models import Check, Status
    >>> check = Check(
    ...     timestamp=1700000000000,
    ...     region_id="us-east-1",
    ...     region_name="US East (N. Virginia)",
    ...     service_id="us-east-1:api-gateway",
    ...     service_name="API Gateway",
    ...     status=Status.OPERATIONAL,
    ...     status_code=200,
    ...     latency_ms=42,
    ... )
"""

from .checks import Check, RegionProbe, ServiceProbe, UpstreamPayload
from .enums import IncidentAction, NotificationType, Status, Transition
from .incidents import Incident, IncidentDelta, format_duration
from .status import (
    CycleResult,
    HistoryPoint,
    IncidentView,
    RegionStatus,
    ServiceFailure,
    ServiceStatus,
    SystemStatus,
)

__all__ = [
    # Enums
    "IncidentAction",
    "NotificationType",
    "Status",
    "Transition",
    # Checks
    "Check",
    "RegionProbe",
    "ServiceProbe",
    "UpstreamPayload",
    # Incidents
    "Incident",
    "IncidentDelta",
    "format_duration",
    # Views
    "CycleResult",
    "HistoryPoint",
    "IncidentView",
    "RegionStatus",
    "ServiceFailure",
    "ServiceStatus",
    "SystemStatus",
]
