# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Backup deletion.

Deletes backup datasets together with their snapshot tables. This module
never asks for confirmation: callers obtain it first (see
bqbackup.selection) and everything passed in here is deleted.
"""

from typing import Iterable, List

import structlog
from ulid import ULID

from bqbackup.config import BackupConfig
from bqbackup.exceptions import NotFoundError
from bqbackup.fanout import fan_out
from bqbackup.models import BackupContainer, DeletionSummary
from bqbackup.warehouse.base import Warehouse

logger = structlog.get_logger()


async def delete_backup_container(
    warehouse: Warehouse,
    container_id: str,
    dry_run: bool = False,
) -> bool:
    """
    Delete one backup dataset and all its tables.

    Returns:
        True if it was deleted, False if it was already gone
    """
    if not await warehouse.resource_exists(container_id):
        logger.warning("backup_dataset_already_deleted", dataset=container_id)
        return False

    if dry_run:
        logger.info("backup_dataset_would_delete", dataset=container_id)
        return True

    try:
        await warehouse.delete_resource(container_id)
    except NotFoundError:
        logger.warning("backup_dataset_already_deleted", dataset=container_id)
        return False

    logger.info("backup_dataset_deleted", dataset=container_id)
    return True


async def delete_backup_containers(
    config: BackupConfig,
    warehouse: Warehouse,
    containers: Iterable[BackupContainer],
    dry_run: bool = False,
) -> DeletionSummary:
    """
    Delete backup datasets independently of each other.

    A dataset that no longer exists counts as deleted. One failed deletion
    does not stop the others.

    Args:
        config: Backup configuration
        warehouse: Warehouse to operate on
        containers: Backup datasets to delete
        dry_run: If True, only report what would be deleted

    Returns:
        DeletionSummary with counts, errors and the ids handled
    """
    containers = list(containers)
    log = logger.bind(run_id=str(ULID()))
    log.info("backup_deletion_started", datasets=len(containers), dry_run=dry_run)

    summary = DeletionSummary()
    skipped: List[str] = []

    async def delete_one(container: BackupContainer) -> None:
        deleted = await delete_backup_container(warehouse, container.container_id, dry_run)
        if not deleted:
            skipped.append(container.container_id)

    outcomes = await fan_out(
        containers,
        delete_one,
        target_id=lambda c: c.container_id,
        max_concurrency=config.max_concurrent_ops,
        failure_message="Failed to delete",
    )

    for outcome in outcomes:
        if outcome.success:
            summary.success_count += 1
            if outcome.target_id not in skipped:
                summary.deleted_ids.append(outcome.target_id)
        else:
            summary.failure_count += 1
            summary.errors.append(outcome.error or "Unknown error")

    # Keep the input order rather than completion order
    summary.skipped_ids = [c.container_id for c in containers if c.container_id in skipped]

    log.info(
        "backup_deletion_completed",
        succeeded=summary.success_count,
        failed=summary.failure_count,
        already_deleted=len(summary.skipped_ids),
    )
    return summary
