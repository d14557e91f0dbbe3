#!/usr/bin/env python3
"""
Seed demo check history for StatusWatch.

Writes roughly a day of five-minute checks for a handful of services in
three regions, including a scripted degradation of the EU database cluster
four hours ago and occasional random latency spikes, so the dashboard has
realistic history to render.

Usage:
    python scripts/seed_demo_checks.py
    python scripts/seed_demo_checks.py --hours 6 --db-path ./data/demo.duckdb
"""

import argparse
import random
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from statuswatch.config import get_settings
from statuswatch.engine.classifier import ClassifierPolicy, classify
from statuswatch.models.checks import Check
from statuswatch.storage.duckdb_storage import DuckDBStorage
from statuswatch.utils.logging import configure_logging, get_logger
from statuswatch.utils.timeutils import now_ms

REGIONS = [
    ("us-east-1", "US East (N. Virginia)", 0),
    ("eu-west-2", "EU West (London)", 30),
    ("ap-south-1", "AP South (Mumbai)", 80),
]

SERVICES = [
    ("api-gateway", "API Gateway"),
    ("auth-service", "Authentication"),
    ("db-cluster", "Database Cluster"),
    ("storage", "Object Storage"),
]

STEP_MS = 5 * 60 * 1000
HOUR_MS = 60 * 60 * 1000


def generate_checks(hours: float, end_ms: int, policy: ClassifierPolicy, rng: random.Random) -> list[Check]:
    """Generate the demo history ending at ``end_ms``."""
    start_ms = end_ms - int(hours * HOUR_MS)
    incident_start = end_ms - 4 * HOUR_MS
    incident_end = incident_start + 30 * 60 * 1000

    checks = []
    for region_id, region_name, regional_latency in REGIONS:
        for service_id, service_name in SERVICES:
            current = start_ms
            while current <= end_ms:
                latency = rng.randint(20, 80) + regional_latency
                error = None

                if (
                    region_id == "eu-west-2"
                    and service_id == "db-cluster"
                    and incident_start < current < incident_end
                ):
                    latency += rng.randint(1500, 2000)
                    error = "High CPU Load"

                if rng.random() > 0.98:
                    latency += rng.randint(100, 300)

                checks.append(
                    Check(
                        timestamp=current,
                        region_id=region_id,
                        region_name=region_name,
                        service_id=f"{region_id}:{service_id}",
                        service_name=service_name,
                        status=classify(latency, 200, error, policy),
                        status_code=200,
                        latency_ms=latency,
                        error=error,
                    )
                )
                current += STEP_MS

    return checks


def main() -> int:
    settings = get_settings()

    parser = argparse.ArgumentParser(description="Seed demo check history")
    parser.add_argument("--db-path", default=settings.db_path, help="DuckDB file to write")
    parser.add_argument("--hours", type=float, default=25.0, help="Hours of history to generate")
    parser.add_argument("--seed", type=int, default=None, help="Random seed for reproducible data")
    args = parser.parse_args()

    configure_logging()
    logger = get_logger("seed_demo_checks")

    policy = ClassifierPolicy(
        latency_degraded_ms=settings.latency_degraded_ms,
        success_status_min=settings.success_status_min,
        success_status_max=settings.success_status_max,
    )
    checks = generate_checks(args.hours, now_ms(), policy, random.Random(args.seed))

    storage = DuckDBStorage(db_path=args.db_path)
    for check in checks:
        storage.insert_check(check)

    logger.info("demo_checks_seeded", count=len(checks), db_path=args.db_path, hours=args.hours)
    print(f"Seeded {len(checks)} checks into {args.db_path}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
