"""Authentication for the ingest trigger."""

from statuswatch.auth.dependencies import ConfigurationError, verify_cron_secret

__all__ = ["ConfigurationError", "verify_cron_secret"]
