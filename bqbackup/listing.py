# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Dataset, table and backup enumeration.

Reads the warehouse catalog and turns it into the model types the
orchestrators work with. Listing never fails because of a single odd
object: unknown table types, unreadable metadata and names that merely
look like backups are logged and skipped.
"""

from typing import Dict, List

import structlog

from bqbackup.exceptions import NotFoundError
from bqbackup.models import (
    BackupContainer,
    DerivedViewDefinition,
    Member,
    MemberKind,
    SnapshotRecord,
    SourceResource,
)
from bqbackup.naming import BACKUP_PREFIX, decode, is_backup_name
from bqbackup.warehouse.base import CatalogAPI

logger = structlog.get_logger()

# Raw warehouse table types and how backup treats them
TABLE_TYPE_KINDS: Dict[str, MemberKind] = {
    "TABLE": MemberKind.PLAIN,
    "MATERIALIZED_VIEW": MemberKind.DERIVED_VIEW,
    "VIEW": MemberKind.OTHER,
    "SNAPSHOT": MemberKind.OTHER,
    "CLONE": MemberKind.OTHER,
    "EXTERNAL": MemberKind.OTHER,
    "MODEL": MemberKind.OTHER,
}

SNAPSHOT_TABLE_TYPE = "SNAPSHOT"


def classify_table_type(table_type: str | None) -> MemberKind | None:
    """Map a raw table type to a MemberKind, or None if unknown."""
    if not table_type:
        return None
    return TABLE_TYPE_KINDS.get(table_type.upper())


async def list_source_resources(
    catalog: CatalogAPI,
    prefix: str = BACKUP_PREFIX,
    resource_ids: List[str] | None = None,
) -> List[SourceResource]:
    """
    List the datasets a backup should cover.

    Args:
        catalog: Warehouse catalog
        prefix: Backup dataset prefix; matching datasets are never sources
        resource_ids: Explicit dataset ids; every one must exist

    Returns:
        SourceResources in the order given (or the catalog's order)

    Raises:
        NotFoundError: If an explicitly named dataset does not exist
    """
    if resource_ids:
        resources: List[SourceResource] = []
        for resource_id in resource_ids:
            try:
                info = await catalog.get_resource(resource_id)
            except NotFoundError:
                logger.error("source_dataset_not_found", dataset=resource_id)
                raise
            resources.append(SourceResource(resource_id=info.resource_id, location=info.location))
        return resources

    logger.debug("listing_all_datasets")
    resources = []
    for info in await catalog.list_resources():
        if is_backup_name(info.resource_id, prefix):
            logger.debug("skipping_backup_dataset", dataset=info.resource_id)
            continue
        resources.append(SourceResource(resource_id=info.resource_id, location=info.location))
    return resources


async def list_members(catalog: CatalogAPI, resource_id: str) -> List[Member]:
    """
    List and classify the tables of a dataset.

    Tables whose metadata cannot be read, or whose type is unknown, are
    logged and left out.
    """
    members: List[Member] = []
    for member_id in await catalog.list_members(resource_id):
        try:
            metadata = await catalog.get_member_metadata(resource_id, member_id)
        except Exception as e:
            logger.warning(
                "table_metadata_unavailable",
                dataset=resource_id,
                table=member_id,
                error=str(e),
            )
            continue

        kind = classify_table_type(metadata.table_type)
        if kind is None:
            logger.warning(
                "unsupported_table_type",
                dataset=resource_id,
                table=member_id,
                table_type=metadata.table_type,
            )
            continue

        members.append(
            Member(
                member_id=member_id,
                kind=kind,
                table_type=metadata.table_type,
                location=metadata.location,
            )
        )
    return members


async def list_backup_containers(
    catalog: CatalogAPI,
    prefix: str = BACKUP_PREFIX,
) -> List[BackupContainer]:
    """
    List every backup dataset in the project, newest first.

    Datasets that carry the prefix but do not decode are skipped.
    """
    containers: List[BackupContainer] = []
    for info in await catalog.list_resources():
        if not is_backup_name(info.resource_id, prefix):
            continue
        decoded = decode(info.resource_id, prefix)
        if decoded is None:
            logger.debug("undecodable_backup_name", dataset=info.resource_id)
            continue
        containers.append(
            BackupContainer(
                container_id=info.resource_id,
                source_resource_id=decoded.source_id,
                instant=decoded.instant,
            )
        )

    containers.sort(key=lambda c: c.instant, reverse=True)
    return containers


async def list_snapshot_records(catalog: CatalogAPI, container_id: str) -> List[SnapshotRecord]:
    """List the snapshot tables inside a backup dataset."""
    records: List[SnapshotRecord] = []
    for member_id in await catalog.list_members(container_id):
        try:
            metadata = await catalog.get_member_metadata(container_id, member_id)
        except Exception as e:
            logger.warning(
                "table_metadata_unavailable",
                dataset=container_id,
                table=member_id,
                error=str(e),
            )
            continue

        if (metadata.table_type or "").upper() != SNAPSHOT_TABLE_TYPE:
            logger.warning(
                "skipping_non_snapshot_table",
                dataset=container_id,
                table=member_id,
                table_type=metadata.table_type,
            )
            continue

        records.append(
            SnapshotRecord(
                container_id=container_id,
                member_id=member_id,
                snapshot_time=metadata.snapshot_time,
                expiration=metadata.expiration,
            )
        )
    return records


async def list_derived_views(catalog: CatalogAPI, resource_id: str) -> List[DerivedViewDefinition]:
    """Capture the definitions of the materialized views in a dataset."""
    views: List[DerivedViewDefinition] = []
    for member_id in await catalog.list_members(resource_id):
        try:
            metadata = await catalog.get_member_metadata(resource_id, member_id)
        except Exception as e:
            logger.warning(
                "table_metadata_unavailable",
                dataset=resource_id,
                table=member_id,
                error=str(e),
            )
            continue

        if classify_table_type(metadata.table_type) != MemberKind.DERIVED_VIEW:
            continue

        if not metadata.view_query:
            logger.warning("materialized_view_without_query", dataset=resource_id, view=member_id)
            continue

        views.append(
            DerivedViewDefinition(
                view_id=member_id,
                query=metadata.view_query,
                refresh_enabled=metadata.refresh_enabled,
                refresh_interval_ms=metadata.refresh_interval_ms,
            )
        )
    return views
