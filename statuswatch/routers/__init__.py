"""
API routers for StatusWatch.
"""

from statuswatch.routers import ingest, status

__all__ = ["ingest", "status"]
