# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Backup set grouping and deletion tests.
"""

from datetime import datetime, UTC

import pytest

from bqbackup.backup import delete_backup_containers, find_backup_set, group_by_instant
from bqbackup.listing import list_backup_containers
from bqbackup.models import BackupContainer

NEWER = datetime(2024, 12, 15, 14, 30, 22, tzinfo=UTC)
OLDER = datetime(2024, 12, 14, 9, 0, 0, tzinfo=UTC)


def container(source_id, instant):
    stamp = instant.strftime("%Y%m%d_%H%M%S")
    return BackupContainer(f"zzz_backup_{stamp}_{source_id}", source_id, instant)


# ============================================================================
# Grouping
# ============================================================================

def test_groups_by_instant_newest_first():
    containers = [
        container("analytics", OLDER),
        container("sales", NEWER),
        container("analytics", NEWER),
    ]

    groups = group_by_instant(containers)

    assert [g.instant for g in groups] == [NEWER, OLDER]
    assert groups[0].source_resource_ids == ["sales", "analytics"]
    assert groups[1].source_resource_ids == ["analytics"]
    assert groups[0].key == "2024-12-15T14:30:22+00:00"


def test_grouping_ignores_sub_second_differences():
    a = container("analytics", NEWER)
    b = BackupContainer(a.container_id.replace("analytics", "sales"), "sales", NEWER.replace(microsecond=5))

    groups = group_by_instant([a, b])

    assert len(groups) == 1


def test_grouping_nothing_gives_nothing():
    assert group_by_instant([]) == []


def test_find_backup_set():
    groups = group_by_instant([container("analytics", NEWER), container("analytics", OLDER)])

    assert find_backup_set(groups, OLDER).instant == OLDER
    assert find_backup_set(groups, datetime(2020, 1, 1, tzinfo=UTC)) is None


# ============================================================================
# Deletion
# ============================================================================

@pytest.mark.asyncio
async def test_delete_selected_backup_set(config, warehouse):
    for c in (container("analytics", NEWER), container("sales", NEWER), container("analytics", OLDER)):
        warehouse.add_resource(c.container_id)
        warehouse.add_table(c.container_id, "events", table_type="SNAPSHOT")

    groups = group_by_instant(await list_backup_containers(warehouse))
    summary = await delete_backup_containers(config, warehouse, groups[0].containers)

    assert summary.success
    assert summary.success_count == 2
    assert sorted(summary.deleted_ids) == sorted(c.container_id for c in groups[0].containers)
    assert warehouse.dataset_ids() == [container("analytics", OLDER).container_id]


@pytest.mark.asyncio
async def test_already_deleted_counts_as_success(config, warehouse):
    present = container("analytics", NEWER)
    gone = container("sales", NEWER)
    warehouse.add_resource(present.container_id)

    summary = await delete_backup_containers(config, warehouse, [gone, present])

    assert summary.success
    assert summary.success_count == 2
    assert summary.skipped_ids == [gone.container_id]
    assert summary.deleted_ids == [present.container_id]


@pytest.mark.asyncio
async def test_failed_deletion_does_not_stop_others(config, warehouse):
    first = container("analytics", NEWER)
    second = container("sales", NEWER)
    warehouse.add_resource(first.container_id)
    warehouse.add_resource(second.container_id)
    warehouse.fail_on("delete_resource", first.container_id)

    summary = await delete_backup_containers(config, warehouse, [first, second])

    assert not summary.success
    assert summary.success_count == 1
    assert summary.failure_count == 1
    assert first.container_id in summary.errors[0]
    assert warehouse.dataset_ids() == [first.container_id]


@pytest.mark.asyncio
async def test_dry_run_deletes_nothing(config, warehouse):
    c = container("analytics", NEWER)
    warehouse.add_resource(c.container_id)

    summary = await delete_backup_containers(config, warehouse, [c], dry_run=True)

    assert summary.success_count == 1
    assert warehouse.dataset_ids() == [c.container_id]
