# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Restore manager - Point-in-time restore of a backup set.

Restores every backup dataset sharing one instant back into its source
dataset:
1. Resolve the backup set from the live dataset list
2. Per backup dataset (sequentially): ensure the target dataset exists,
   then clone every snapshot back concurrently
3. After the clones join, rebuild the target's materialized views one at
   a time so they pick up the restored tables

Materialized views are not snapshotted, so their definitions are read from
the target dataset as it is now. A view that fails to rebuild is reported
separately and does not fail the table restore.
"""

from datetime import datetime
from typing import Any, List, Tuple

import structlog
from ulid import ULID

from bqbackup.config import BackupConfig
from bqbackup.exceptions import CollisionError, NotFoundError, TargetExistsError, ValidationError
from bqbackup.fanout import count_outcomes, fan_out
from bqbackup.listing import list_backup_containers, list_derived_views, list_snapshot_records
from bqbackup.models import (
    BackupContainer,
    DerivedViewDefinition,
    RestoreOutcome,
    SnapshotRecord,
)
from bqbackup.naming import instant_key
from bqbackup.retention import ensure_utc
from bqbackup.warehouse.base import TableRef, Warehouse

logger = structlog.get_logger()


async def list_backups_for_instant(
    config: BackupConfig,
    warehouse: Warehouse,
    instant: datetime,
) -> List[BackupContainer]:
    """List the backup datasets whose encoded instant equals instant."""
    key = instant_key(instant)
    return [
        container
        for container in await list_backup_containers(warehouse, config.backup_prefix)
        if instant_key(container.instant) == key
    ]


async def ensure_target_resource(
    config: BackupConfig,
    warehouse: Warehouse,
    container: BackupContainer,
    dry_run: bool = False,
) -> bool:
    """
    Make sure the dataset a backup restores into exists.

    A missing target is created in the backup dataset's location.

    Returns:
        True if the target exists afterwards (False only in dry-run mode)
    """
    target_id = container.source_resource_id
    if await warehouse.resource_exists(target_id):
        return True

    backup_info = await warehouse.get_resource(container.container_id)
    location = backup_info.location or config.default_location

    if dry_run:
        logger.info("target_dataset_would_create", dataset=target_id, location=location)
        return False

    await warehouse.create_resource(
        target_id,
        location,
        description=f"Restored from backup {container.container_id}",
    )
    logger.info("target_dataset_created", dataset=target_id, location=location)
    return True


async def restore_member(
    warehouse: Warehouse,
    record: SnapshotRecord,
    target_resource_id: str,
    overwrite: bool,
    dry_run: bool = False,
) -> None:
    """
    Clone one snapshot back into a same-named regular table.

    Raises:
        TargetExistsError: If the target table exists and overwrite is off
    """
    target_ref = f"{target_resource_id}.{record.member_id}"

    if not overwrite and await warehouse.member_exists(target_resource_id, record.member_id):
        raise TargetExistsError(
            f"Target table {target_ref} already exists. Use --overwrite to replace it.",
            details={"table": target_ref},
        )

    if dry_run:
        logger.info("table_would_restore", table=target_ref, overwrite=overwrite)
        return

    try:
        await warehouse.clone_back(
            TableRef(record.container_id, record.member_id),
            target_resource_id,
            record.member_id,
            overwrite,
        )
    except CollisionError as e:
        raise TargetExistsError(
            f"Target table {target_ref} already exists. Use --overwrite to replace it.",
            details={"table": target_ref},
        ) from e

    logger.debug("table_restored", table=target_ref, overwrite=overwrite)


async def recreate_derived_view(
    warehouse: Warehouse,
    resource_id: str,
    view: DerivedViewDefinition,
    dry_run: bool = False,
) -> None:
    """Drop a materialized view (if present) and create it again."""
    if dry_run:
        logger.info("materialized_view_would_recreate", dataset=resource_id, view=view.view_id)
        return

    if await warehouse.member_exists(resource_id, view.view_id):
        await warehouse.delete_member(resource_id, view.view_id)
        logger.debug("materialized_view_dropped", dataset=resource_id, view=view.view_id)

    await warehouse.create_materialized_view(resource_id, view)


async def recreate_derived_views(
    warehouse: Warehouse,
    resource_id: str,
    dry_run: bool = False,
) -> Tuple[int, List[str]]:
    """
    Rebuild every materialized view in a dataset, one after another.

    Returns:
        Tuple of (views recreated, error messages)
    """
    try:
        views = await list_derived_views(warehouse, resource_id)
    except Exception as e:
        logger.warning("materialized_view_listing_failed", dataset=resource_id, error=str(e))
        return (0, [f"Error listing materialized views in dataset {resource_id}: {e}"])

    if not views:
        logger.debug("no_materialized_views", dataset=resource_id)
        return (0, [])

    logger.info("recreating_materialized_views", dataset=resource_id, count=len(views))

    recreated = 0
    errors: List[str] = []
    for view in views:
        try:
            await recreate_derived_view(warehouse, resource_id, view, dry_run)
            recreated += 1
            logger.info("materialized_view_recreated", dataset=resource_id, view=view.view_id)
        except Exception as e:
            errors.append(f"Failed to recreate materialized view {view.view_id}: {e}")
            logger.error(
                "materialized_view_recreate_failed",
                dataset=resource_id,
                view=view.view_id,
                error=str(e),
            )

    return (recreated, errors)


async def _restore_container(
    config: BackupConfig,
    warehouse: Warehouse,
    container: BackupContainer,
    overwrite: bool,
    dry_run: bool,
    log: Any,
) -> RestoreOutcome:
    """Restore one backup dataset; never raises."""
    target_id = container.source_resource_id
    outcome = RestoreOutcome(
        source_backup_container_id=container.container_id,
        target_resource_id=target_id,
    )
    records: List[SnapshotRecord] = []

    try:
        records = await list_snapshot_records(warehouse, container.container_id)
        log.info(
            "restoring_from_backup",
            backup_dataset=container.container_id,
            target_dataset=target_id,
            tables=len(records),
        )

        if not records:
            log.warning("no_tables_to_restore", backup_dataset=container.container_id)
            return outcome

        target_ready = await ensure_target_resource(config, warehouse, container, dry_run)

    except Exception as e:
        error_msg = f"Error restoring from backup {container.container_id}: {e}"
        log.error("backup_restore_failed", backup_dataset=container.container_id, error=str(e))
        outcome.member_failures = max(len(records), 1)
        outcome.errors = [error_msg]
        return outcome

    outcomes = await fan_out(
        records,
        lambda record: restore_member(warehouse, record, target_id, overwrite, dry_run),
        target_id=lambda record: record.member_id,
        max_concurrency=config.max_concurrent_ops,
        failure_message="Failed to restore table",
    )

    successes, failures, errors = count_outcomes(outcomes)
    outcome.outcomes = outcomes
    outcome.members_restored = successes
    outcome.member_failures = failures
    outcome.errors = errors

    # Views are rebuilt only after every clone above has finished
    if target_ready:
        recreated, view_errors = await recreate_derived_views(warehouse, target_id, dry_run)
        outcome.views_recreated = recreated
        outcome.views_failed = len(view_errors)
        outcome.view_errors = view_errors

    if failures:
        log.warning(
            "backup_restore_partial",
            backup_dataset=container.container_id,
            failed=failures,
            total=len(records),
        )
    else:
        log.info(
            "backup_restore_completed",
            backup_dataset=container.container_id,
            target_dataset=target_id,
            tables=successes,
            views=outcome.views_recreated,
        )

    return outcome


async def restore_backup_set(
    config: BackupConfig,
    warehouse: Warehouse,
    instant: datetime | None,
    overwrite: bool = False,
    dry_run: bool = False,
) -> List[RestoreOutcome]:
    """
    Restore every backup dataset taken at instant.

    Args:
        config: Backup configuration
        warehouse: Warehouse to operate on
        instant: Instant of the backup set (required)
        overwrite: Replace existing tables atomically instead of failing them
        dry_run: If True, only report what would be restored

    Returns:
        One RestoreOutcome per backup dataset

    Raises:
        ValidationError: If no instant is given
        NotFoundError: If no backup dataset exists for instant
    """
    if instant is None:
        raise ValidationError("Backup timestamp is required")
    instant = ensure_utc(instant)

    log = logger.bind(run_id=str(ULID()))

    containers = await list_backups_for_instant(config, warehouse, instant)
    if not containers:
        raise NotFoundError(
            f"No backup datasets found for timestamp: {instant.isoformat()}",
            details={"timestamp": instant.isoformat()},
        )

    log.info(
        "restore_started",
        instant=instant.isoformat(),
        backup_datasets=len(containers),
        overwrite=overwrite,
        dry_run=dry_run,
    )

    results: List[RestoreOutcome] = []
    for container in containers:
        results.append(
            await _restore_container(config, warehouse, container, overwrite, dry_run, log)
        )

    log.info(
        "restore_completed",
        backup_datasets=len(results),
        failed=sum(1 for r in results if not r.success),
        tables=sum(r.members_restored for r in results),
        views=sum(r.views_recreated for r in results),
    )
    return results
