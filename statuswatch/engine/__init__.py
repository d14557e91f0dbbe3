"""
Status engine: classification, transition detection, incident tracking,
ingestion orchestration and read-path aggregation.
"""

from statuswatch.engine.aggregator import StatusAggregator
from statuswatch.engine.classifier import DEFAULT_POLICY, ClassifierPolicy, classify, rollup
from statuswatch.engine.incident_tracker import IncidentTracker
from statuswatch.engine.ingestion import (
    IngestionEngine,
    IngestionError,
    MalformedPayloadError,
)
from statuswatch.engine.transitions import detect

__all__ = [
    "DEFAULT_POLICY",
    "ClassifierPolicy",
    "IncidentTracker",
    "IngestionEngine",
    "IngestionError",
    "MalformedPayloadError",
    "StatusAggregator",
    "classify",
    "detect",
    "rollup",
]
