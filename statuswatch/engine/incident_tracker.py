"""
Incident Tracker: incident lifecycle per service.

Per service_id the ledger is either CLOSED (no open incident) or OPEN (one
open incident row):

    CLOSED + ONSET            -> OPEN    new incident, started_at = cycle time
    OPEN   + NONE, still down -> OPEN    last_error refreshed
    OPEN   + RECOVERY         -> CLOSED  resolved_at = cycle time
    CLOSED + NONE             -> CLOSED  no-op

Opening is an upsert against the storage, so an overlapping duplicate cycle
that sees a stale ONSET lands on the already-open incident instead of
creating a second one. Only ``down`` opens incidents; ``degraded`` is
tracked in the check log only.
"""

import structlog

from statuswatch.models.checks import Check
from statuswatch.models.enums import IncidentAction, Transition
from statuswatch.models.incidents import Incident, IncidentDelta
from statuswatch.storage.base import StorageBackend

logger = structlog.get_logger()


class IncidentTracker:
    """
    Applies transitions to the incident ledger.

    Attributes:
        storage: Storage backend holding the incident ledger

    Example:
        >>> tracker = IncidentTracker(storage=duckdb_storage)
        >>> delta = tracker.apply(check, Transition.ONSET)
        >>> delta.action
        <IncidentAction.OPENED: 'opened'>
    """

    def __init__(self, storage: StorageBackend):
        self.storage = storage

    def apply(self, check: Check, transition: Transition) -> IncidentDelta:
        """
        Apply one classified check and its transition to the ledger.

        Args:
            check: The check observed in this cycle
            transition: Transition detected against the previous check

        Returns:
            IncidentDelta describing what changed. OPENED and RESOLVED are
            only reported when this call actually created or closed the row.

        Raises:
            StorageError: If the ledger cannot be read or written
        """
        if transition is Transition.ONSET:
            return self._open(check)

        if transition is Transition.RECOVERY:
            return self._resolve(check)

        if check.status.is_down:
            return self._refresh(check)

        return IncidentDelta()

    def _open(self, check: Check) -> IncidentDelta:
        incident, created = self.storage.open_incident(
            Incident(
                service_id=check.service_id,
                service_name=check.service_name,
                region_id=check.region_id,
                region_name=check.region_name,
                started_at=check.timestamp,
                last_error=check.error,
            )
        )
        if created:
            return IncidentDelta(action=IncidentAction.OPENED, incident=incident)

        logger.info(
            "incident_onset_already_open",
            service_id=check.service_id,
            incident_id=incident.id,
        )
        return self._refresh(check)

    def _refresh(self, check: Check) -> IncidentDelta:
        if not check.error:
            incident = self.storage.read_open_incident(check.service_id)
        else:
            incident = self.storage.update_incident_error(check.service_id, check.error)

        if incident is None:
            return IncidentDelta()
        return IncidentDelta(action=IncidentAction.UPDATED, incident=incident)

    def _resolve(self, check: Check) -> IncidentDelta:
        incident = self.storage.resolve_incident(check.service_id, check.timestamp)
        if incident is None:
            logger.warning(
                "recovery_without_open_incident",
                service_id=check.service_id,
                timestamp=check.timestamp,
            )
            return IncidentDelta()
        return IncidentDelta(action=IncidentAction.RESOLVED, incident=incident)
