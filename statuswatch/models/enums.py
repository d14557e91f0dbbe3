"""
Enumeration types for StatusWatch.

This module defines all enum types used across the system for type safety
and consistent validation. All enums inherit from str to ensure JSON
serialization compatibility.
"""

from enum import Enum


class Status(str, Enum):
    """
    Availability state of a service, region, or the whole system.

    Ordered by severity: operational < degraded < down. Compare through
    ``severity`` rather than the raw string values.
    """

    OPERATIONAL = "operational"
    DEGRADED = "degraded"
    DOWN = "down"

    @property
    def severity(self) -> int:
        """Numeric severity rank, higher is worse."""
        return _STATUS_SEVERITY[self]

    @property
    def is_down(self) -> bool:
        return self is Status.DOWN


_STATUS_SEVERITY = {
    Status.OPERATIONAL: 0,
    Status.DEGRADED: 1,
    Status.DOWN: 2,
}


class Transition(str, Enum):
    """
    Change of a service across the ``down`` boundary between two checks.

    Only ``down`` boundaries count; moving between operational and degraded
    is not a transition.
    """

    NONE = "none"
    ONSET = "onset"
    RECOVERY = "recovery"


class IncidentAction(str, Enum):
    """Effect of one check on the incident ledger."""

    NONE = "none"
    OPENED = "opened"
    UPDATED = "updated"
    RESOLVED = "resolved"


class NotificationType(str, Enum):
    """Kinds of outbound transition notifications."""

    DOWN = "DOWN"
    RECOVERED = "RECOVERED"
