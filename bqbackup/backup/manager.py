# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Backup manager - Point-in-time snapshot backups of datasets.

One backup call picks a single instant and snapshots every regular table
of every requested dataset as of that instant, so the whole backup set is
consistent even while the source tables keep changing.

Scheduling:
1. Datasets are processed one after another, in input order
2. Per dataset, the backup dataset is created before any snapshot
3. Snapshots within a dataset run concurrently (bounded)

A failure is contained to the smallest unit it affects: a failed snapshot
fails that table, a name collision fails that dataset, and neither stops
the rest of the batch.
"""

from datetime import datetime, UTC
from typing import Any, List

import structlog
from ulid import ULID

from bqbackup.config import BackupConfig
from bqbackup.exceptions import CollisionError, ValidationError
from bqbackup.fanout import count_outcomes, fan_out
from bqbackup.listing import list_members, list_source_resources
from bqbackup.models import BatchResult, Member, MemberKind, SourceResource
from bqbackup.naming import encode
from bqbackup.retention import compute_expiration, ensure_utc, validate_time_travel_instant
from bqbackup.warehouse.base import TableRef, Warehouse

logger = structlog.get_logger()

BACKUP_DATASET_DESCRIPTION = "Backup dataset created by bq-backup-and-restore"


def resolve_backup_instant(
    config: BackupConfig,
    instant: datetime | None = None,
    now: datetime | None = None,
) -> datetime:
    """
    Decide the instant a backup captures.

    Without an explicit instant this is the current time. An explicit
    instant must lie inside the time-travel window. Either way the result
    is truncated to whole seconds, the resolution backup names carry, so
    the snapshot instant and the encoded instant are the same.

    Raises:
        ValidationError: If an explicit instant is outside the window
    """
    if instant is None:
        resolved = ensure_utc(now) if now is not None else datetime.now(UTC)
    else:
        resolved = validate_time_travel_instant(instant, config.time_travel_days, now=now)
    return resolved.replace(microsecond=0)


async def create_backup_container(
    warehouse: Warehouse,
    container_id: str,
    location: str,
    dry_run: bool = False,
) -> None:
    """
    Create the backup dataset for one source dataset.

    Raises:
        CollisionError: If a dataset with that name already exists
    """
    if await warehouse.resource_exists(container_id):
        raise CollisionError(
            f"Backup dataset {container_id} already exists",
            details={"dataset": container_id},
        )

    if dry_run:
        logger.info("backup_dataset_would_create", dataset=container_id, location=location)
        return

    await warehouse.create_resource(
        container_id,
        location,
        description=BACKUP_DATASET_DESCRIPTION,
    )
    logger.debug("backup_dataset_created", dataset=container_id, location=location)


async def _backup_resource(
    config: BackupConfig,
    warehouse: Warehouse,
    resource: SourceResource,
    instant: datetime,
    expiration: datetime | None,
    dry_run: bool,
    log: Any,
) -> BatchResult:
    """Back up one dataset; never raises."""
    result = BatchResult(source_resource_id=resource.resource_id, instant=instant)
    eligible: List[Member] = []

    try:
        members = resource.members
        if members is None:
            members = await list_members(warehouse, resource.resource_id)
        eligible = [m for m in members if m.kind == MemberKind.PLAIN]

        log.info(
            "backing_up_dataset",
            dataset=resource.resource_id,
            tables=len(eligible),
            skipped=len(members) - len(eligible),
        )

        if not eligible:
            log.warning("no_tables_to_backup", dataset=resource.resource_id)
            return result

        container_id = encode(config.backup_prefix, instant, resource.resource_id)
        result.produced_container_id = container_id

        if not resource.location:
            raise ValidationError(
                f"Dataset {resource.resource_id} does not have a location specified",
                details={"dataset": resource.resource_id},
            )

        await create_backup_container(warehouse, container_id, resource.location, dry_run)
        log.info("backup_dataset_ready", dataset=resource.resource_id, backup_dataset=container_id)

    except Exception as e:
        error_msg = f"Error backing up dataset {resource.resource_id}: {e}"
        log.error("dataset_backup_failed", dataset=resource.resource_id, error=str(e))
        result.failure_count = max(len(eligible), 1)
        result.errors = [error_msg]
        return result

    async def snapshot_member(member: Member) -> None:
        source = TableRef(resource.resource_id, member.member_id)
        if dry_run:
            log.info("snapshot_would_create", table=str(source), backup_dataset=container_id)
            return
        await warehouse.create_snapshot(source, container_id, instant, expiration)
        log.info("snapshot_created", table=str(source), backup_dataset=container_id)

    outcomes = await fan_out(
        eligible,
        snapshot_member,
        target_id=lambda m: m.member_id,
        max_concurrency=config.max_concurrent_ops,
        failure_message="Failed to create snapshot",
    )

    successes, failures, errors = count_outcomes(outcomes)
    result.outcomes = outcomes
    result.success_count = successes
    result.failure_count = failures
    result.errors = errors

    if failures:
        log.warning(
            "dataset_backup_partial",
            dataset=resource.resource_id,
            failed=failures,
            total=len(eligible),
        )
    else:
        log.info(
            "dataset_backup_completed",
            dataset=resource.resource_id,
            backup_dataset=container_id,
            tables=successes,
        )

    return result


async def backup_resources(
    config: BackupConfig,
    warehouse: Warehouse,
    resources: List[SourceResource],
    instant: datetime | None = None,
    retention_days: int | None = None,
    dry_run: bool = False,
) -> List[BatchResult]:
    """
    Back up datasets as of one shared instant.

    Args:
        config: Backup configuration
        warehouse: Warehouse to operate on
        resources: Datasets to back up
        instant: Point in time to capture (default: now)
        retention_days: Snapshot retention, 0 = forever (default: config)
        dry_run: If True, only report what would be created

    Returns:
        One BatchResult per dataset, in input order

    Raises:
        ValidationError: If instant is outside the time-travel window
    """
    return await _backup_at(
        config,
        warehouse,
        resources,
        resolve_backup_instant(config, instant),
        retention_days,
        dry_run,
    )


async def _backup_at(
    config: BackupConfig,
    warehouse: Warehouse,
    resources: List[SourceResource],
    instant: datetime,
    retention_days: int | None,
    dry_run: bool,
) -> List[BatchResult]:
    days = config.expiration_days if retention_days is None else retention_days
    expiration = compute_expiration(instant, days)

    log = logger.bind(run_id=str(ULID()))
    log.info(
        "backup_started",
        instant=instant.isoformat(),
        datasets=len(resources),
        expiration=expiration.isoformat() if expiration else None,
        dry_run=dry_run,
    )

    results: List[BatchResult] = []
    for resource in resources:
        results.append(
            await _backup_resource(config, warehouse, resource, instant, expiration, dry_run, log)
        )

    log.info(
        "backup_completed",
        datasets=len(results),
        failed_datasets=sum(1 for r in results if not r.success),
        tables=sum(r.success_count for r in results),
    )
    return results


async def run_backup(
    config: BackupConfig,
    warehouse: Warehouse,
    resource_ids: List[str] | None = None,
    instant: datetime | None = None,
    retention_days: int | None = None,
    dry_run: bool = False,
) -> List[BatchResult]:
    """
    List the datasets to cover, then back them up.

    The instant is resolved and validated once, before anything is listed
    or created.

    Raises:
        ValidationError: If instant is outside the time-travel window
        NotFoundError: If an explicitly requested dataset does not exist
    """
    instant = resolve_backup_instant(config, instant)
    resources = await list_source_resources(warehouse, config.backup_prefix, resource_ids)
    logger.info("datasets_to_backup", count=len(resources))
    return await _backup_at(config, warehouse, resources, instant, retention_days, dry_run)
