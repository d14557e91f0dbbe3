"""
Status router - System status rollup and incident history for dashboards.
"""

from fastapi import APIRouter, Depends, Query

from statuswatch.config import Settings, get_settings
from statuswatch.engine.aggregator import StatusAggregator
from statuswatch.models.status import IncidentView, SystemStatus
from statuswatch.storage import StorageBackend, get_storage
from statuswatch.utils.logging import get_logger

logger = get_logger(__name__)
router = APIRouter()


def get_aggregator(
    settings: Settings = Depends(get_settings),
    storage: StorageBackend = Depends(get_storage),
) -> StatusAggregator:
    return StatusAggregator.from_settings(settings, storage=storage)


@router.get("/status", response_model=SystemStatus)
def get_system_status(aggregator: StatusAggregator = Depends(get_aggregator)):
    """
    Current system, region and service status with recent history and incidents.
    """
    status = aggregator.get_system_status()
    logger.info(
        "system_status_served",
        status=status.status.value,
        regions=len(status.regions),
        incidents=len(status.incidents),
    )
    return status


@router.get("/incidents", response_model=list[IncidentView])
def list_incidents(
    limit: int = Query(default=25, ge=1, le=100),
    open_only: bool = False,
    aggregator: StatusAggregator = Depends(get_aggregator),
):
    """
    Recent incidents, open ones first, then most recently started.

    Args:
        limit: Maximum incidents to return (1-100)
        open_only: Only unresolved incidents
    """
    logger.info("incidents_list", limit=limit, open_only=open_only)
    return aggregator.list_incidents(limit=limit, open_only=open_only)
