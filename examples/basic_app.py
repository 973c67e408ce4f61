# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Example: back up, list and restore datasets from Python.

Runs against the in-memory warehouse by default so it works without a GCP
project. Set BQ_BACKUP_PROJECT_ID and USE_BIGQUERY=1 to run it against
BigQuery instead (credentials from the usual Google application-default
lookup).

Run with:
    python -m examples.basic_app
"""

import asyncio
import os

from bqbackup import create_config_from_env, group_by_instant, restore_backup_set, run_backup
from bqbackup.builder import (
    build_from_steps,
    retain_snapshots_for,
    with_max_concurrent_ops,
    with_project,
)
from bqbackup.listing import list_backup_containers
from bqbackup.logconfig import configure_logging
from bqbackup.warehouse import BigQueryWarehouse, InMemoryWarehouse


def create_warehouse() -> tuple:
    """Pick the warehouse and a matching configuration."""
    if os.getenv("USE_BIGQUERY") == "1":
        config = create_config_from_env()
        return config, BigQueryWarehouse(config.project_id, optimization=config.optimization)

    config = build_from_steps(
        lambda c: with_project(c, "example-project"),
        lambda c: retain_snapshots_for(c, 30),
        lambda c: with_max_concurrent_ops(c, 4),
    )
    warehouse = InMemoryWarehouse(project_id=config.project_id)
    warehouse.add_resource("analytics", location="EU")
    warehouse.add_table("analytics", "events")
    warehouse.add_table("analytics", "users")
    warehouse.add_materialized_view(
        "analytics", "daily_events", "SELECT DATE(ts) d, COUNT(*) n FROM analytics.events GROUP BY d"
    )
    return config, warehouse


async def main() -> None:
    configure_logging("info")
    config, warehouse = create_warehouse()

    try:
        results = await run_backup(config, warehouse)
        for result in results:
            print(
                f"{result.source_resource_id}: {result.success_count} table(s) "
                f"-> {result.produced_container_id}"
            )

        groups = group_by_instant(await list_backup_containers(warehouse, config.backup_prefix))
        latest = groups[0]
        print(f"Latest backup set: {latest.key} ({', '.join(latest.source_resource_ids)})")

        outcomes = await restore_backup_set(config, warehouse, latest.instant, overwrite=True)
        for outcome in outcomes:
            print(
                f"{outcome.target_resource_id}: {outcome.members_restored} table(s) restored, "
                f"{outcome.views_recreated} view(s) recreated"
            )
    finally:
        warehouse.close()


if __name__ == "__main__":
    asyncio.run(main())
