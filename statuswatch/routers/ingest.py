"""
Ingest router - Authenticated trigger for one ingestion cycle.

Called by a scheduler (or manually) with the cron secret as bearer token.
"""

import asyncio
from typing import AsyncGenerator

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from statuswatch.auth.dependencies import ConfigurationError, verify_cron_secret
from statuswatch.config import Settings, get_settings
from statuswatch.connectors.notifier import Notifier, WebhookNotifier
from statuswatch.connectors.upstream_client import UpstreamClient
from statuswatch.engine.ingestion import IngestionEngine, IngestionError
from statuswatch.storage import StorageBackend, get_storage
from statuswatch.utils.logging import get_logger

logger = get_logger(__name__)
router = APIRouter()

# Shared by every engine built in this process
_SERVICE_LOCKS: dict[str, asyncio.Lock] = {}


async def get_upstream_client(
    settings: Settings = Depends(get_settings),
) -> AsyncGenerator[UpstreamClient, None]:
    """Yield an upstream client for the duration of one request."""
    if not settings.upstream_status_api_url:
        logger.error("ingest_misconfigured", reason="missing_upstream_url")
        raise ConfigurationError("Upstream URL not configured")

    async with UpstreamClient(
        url=settings.upstream_status_api_url,
        token=settings.upstream_bearer_token,
        timeout_seconds=settings.upstream_timeout_seconds,
    ) as client:
        yield client


def get_notifier(settings: Settings = Depends(get_settings)) -> Notifier:
    return WebhookNotifier(
        webhook_url=settings.discord_webhook_url,
        timeout_seconds=settings.notification_timeout_seconds,
        footer=settings.notification_footer,
    )


@router.get("/ingest", dependencies=[Depends(verify_cron_secret)])
async def ingest(
    settings: Settings = Depends(get_settings),
    storage: StorageBackend = Depends(get_storage),
    upstream: UpstreamClient = Depends(get_upstream_client),
    notifier: Notifier = Depends(get_notifier),
):
    """
    Run one ingestion cycle.

    Returns:
        200 {success, processed, upstream, failures} on completion,
        500 {error} when the cycle cannot complete
    """
    engine = IngestionEngine.from_settings(
        settings,
        storage=storage,
        upstream=upstream,
        notifier=notifier,
        service_locks=_SERVICE_LOCKS,
    )

    try:
        result = await engine.run_cycle()
    except IngestionError as e:
        logger.error("ingest_failed", error=str(e))
        return JSONResponse(status_code=500, content={"error": str(e)})

    logger.info(
        "ingest_completed",
        processed=result.processed,
        upstream=result.upstream.value,
        failures=len(result.failures),
    )

    return {
        "success": True,
        "processed": result.processed,
        "upstream": result.upstream.value,
        "timestamp": result.timestamp,
        "failures": [failure.model_dump() for failure in result.failures],
    }
