"""
FastAPI dependencies for authenticating the ingest trigger.
"""

import hmac
from typing import Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from statuswatch.config import Settings, get_settings
from statuswatch.utils.logging import get_logger

logger = get_logger(__name__)
security = HTTPBearer(auto_error=False)


class ConfigurationError(Exception):
    """Raised when required configuration is missing."""

    pass


async def verify_cron_secret(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    settings: Settings = Depends(get_settings),
) -> None:
    """
    Require ``Authorization: Bearer <cron_secret>``.

    Raises:
        ConfigurationError: If no cron secret is configured
        HTTPException: 401 if the token is missing or does not match
    """
    if not settings.cron_secret:
        logger.error("auth_misconfigured", reason="missing_cron_secret")
        raise ConfigurationError("Cron secret not configured")

    if not credentials:
        logger.warning("auth_failed", reason="missing_token")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unauthorized",
            headers={"WWW-Authenticate": "Bearer"},
        )

    if not hmac.compare_digest(
        credentials.credentials.encode("utf-8"), settings.cron_secret.encode("utf-8")
    ):
        logger.warning("auth_failed", reason="token_mismatch")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unauthorized",
            headers={"WWW-Authenticate": "Bearer"},
        )

    logger.debug("auth_success")
