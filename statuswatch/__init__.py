"""StatusWatch - service availability ingestion, incident tracking and status rollups."""

__version__ = "0.1.0"
