"""
Abstract storage interface for StatusWatch.

This module defines the repository the ingestion engine and the status
aggregator depend on. It carries no business logic: append-only writes of
checks, row-level mutation of incidents, and the specific read patterns the
engine needs (latest check per service, windowed history per service,
open/recent incidents).
"""

from abc import ABC, abstractmethod
from typing import Optional

from statuswatch.models.checks import Check
from statuswatch.models.incidents import Incident


class StorageError(Exception):
    """Base exception for all storage operation failures."""

    pass


class StorageBackend(ABC):
    """
    Abstract base class for all storage implementations.

    Implementations must guarantee:
    - Checks are append-only; insertion ids increase monotonically
    - At most one open incident (resolved_at IS NULL) per service_id
    - Incident read-modify-write operations are serialized per service
    - Every failure surfaces as StorageError
    """

    # =========================================================================
    # Check log
    # =========================================================================

    @abstractmethod
    def insert_check(self, check: Check) -> int:
        """
        Append a check to the log.

        Args:
            check: Check to persist (its id is ignored)

        Returns:
            Storage-assigned insertion id

        Raises:
            StorageError: If write operation fails
        """
        pass

    @abstractmethod
    def read_latest_checks(
        self, service_ids: Optional[list[str]] = None
    ) -> dict[str, Check]:
        """
        Read the single latest check per service.

        Latest means highest timestamp; equal timestamps are broken by the
        highest insertion id, so repeated calls always pick the same row.

        Args:
            service_ids: Optional restriction to these services (None for all)

        Returns:
            Mapping of service_id to its latest Check

        Raises:
            StorageError: If read operation fails
        """
        pass

    @abstractmethod
    def read_check_history(
        self, since: int, limit_per_service: int
    ) -> dict[str, list[Check]]:
        """
        Read a bounded history slice per service.

        Args:
            since: Epoch millis; only checks at or after this time are returned
            limit_per_service: Keep only the most recent N checks per service

        Returns:
            Mapping of service_id to checks ordered by timestamp ascending

        Raises:
            StorageError: If read operation fails
        """
        pass

    # =========================================================================
    # Incident ledger
    # =========================================================================

    @abstractmethod
    def read_open_incident(self, service_id: str) -> Optional[Incident]:
        """
        Read the open incident for a service, if any.

        Raises:
            StorageError: If read operation fails
        """
        pass

    @abstractmethod
    def open_incident(self, incident: Incident) -> tuple[Incident, bool]:
        """
        Insert an open incident unless the service already has one.

        Upsert semantics: when an open incident already exists for
        ``incident.service_id`` it is returned unchanged and nothing is
        inserted.

        Args:
            incident: Incident to open (resolved_at must be None)

        Returns:
            Tuple of (open incident, True if it was created by this call)

        Raises:
            StorageError: If write operation fails
        """
        pass

    @abstractmethod
    def update_incident_error(
        self, service_id: str, last_error: Optional[str]
    ) -> Optional[Incident]:
        """
        Refresh last_error on the open incident of a service.

        Returns:
            The updated incident, or None if the service has no open incident

        Raises:
            StorageError: If write operation fails
        """
        pass

    @abstractmethod
    def resolve_incident(self, service_id: str, resolved_at: int) -> Optional[Incident]:
        """
        Close the open incident of a service.

        Args:
            service_id: Service whose open incident should be resolved
            resolved_at: Epoch millis of the recovering cycle

        Returns:
            The resolved incident, or None if nothing was open

        Raises:
            StorageError: If write operation fails
        """
        pass

    @abstractmethod
    def read_incidents(self, limit: int = 10, open_only: bool = False) -> list[Incident]:
        """
        Read recent incidents.

        Open incidents come first, then by started_at descending.

        Args:
            limit: Maximum number of incidents to return
            open_only: Only return unresolved incidents

        Raises:
            StorageError: If read operation fails
        """
        pass
