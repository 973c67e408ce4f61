# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Backup orchestrator tests.

These tests verify the backup guarantees:
1. One instant per call - every snapshot and every backup name share it
2. Failure containment - a failed table or dataset never stops the rest
3. Ordering - the backup dataset exists before any snapshot is attempted
4. Validation first - a bad instant creates nothing
5. Bounded concurrency - at most max_concurrent_ops snapshots in flight
"""

from datetime import datetime, timedelta, UTC

import pytest

from bqbackup.backup import backup_resources, resolve_backup_instant, run_backup
from bqbackup.exceptions import NotFoundError, ValidationError
from bqbackup.models import SourceResource
from bqbackup.naming import decode, encode
from bqbackup.warehouse.memory import InMemoryWarehouse

from conftest import seed_source_dataset


# ============================================================================
# Test 1: ONE INSTANT PER CALL
# ============================================================================

@pytest.mark.asyncio
async def test_backup_snapshots_every_plain_table(config, warehouse, recent_instant):
    seed_source_dataset(warehouse, "analytics", ["events", "users"])
    warehouse.add_table("analytics", "daily", table_type="VIEW")
    warehouse.add_materialized_view("analytics", "events_mv", "SELECT 1")

    results = await run_backup(config, warehouse, instant=recent_instant)

    assert len(results) == 1
    result = results[0]
    container_id = encode(config.backup_prefix, recent_instant, "analytics")
    assert result.success
    assert result.produced_container_id == container_id
    assert result.success_count == 2
    assert sorted(warehouse.table_ids(container_id)) == ["events", "users"]

    snapshot = warehouse.table(container_id, "events")
    assert snapshot.metadata.table_type == "SNAPSHOT"
    assert snapshot.metadata.snapshot_time == recent_instant
    assert snapshot.origin == "analytics.events"


@pytest.mark.asyncio
async def test_all_datasets_share_one_instant(config, warehouse, recent_instant):
    seed_source_dataset(warehouse, "analytics", ["events"])
    seed_source_dataset(warehouse, "sales", ["orders"])

    results = await run_backup(config, warehouse, instant=recent_instant)

    instants = {decode(r.produced_container_id).instant for r in results}
    assert instants == {recent_instant}
    assert {r.instant for r in results} == {recent_instant}


@pytest.mark.asyncio
async def test_default_instant_is_now_truncated_to_seconds(config, warehouse):
    seed_source_dataset(warehouse, "analytics", ["events"])
    before = datetime.now(UTC).replace(microsecond=0)

    results = await run_backup(config, warehouse)

    instant = results[0].instant
    assert instant.microsecond == 0
    assert before <= instant <= datetime.now(UTC)
    snapshot = warehouse.table(results[0].produced_container_id, "events")
    assert snapshot.metadata.snapshot_time == instant


@pytest.mark.asyncio
async def test_expiration_follows_retention(config, warehouse, recent_instant):
    seed_source_dataset(warehouse, "analytics", ["events"])

    results = await run_backup(config, warehouse, instant=recent_instant, retention_days=30)

    snapshot = warehouse.table(results[0].produced_container_id, "events")
    assert snapshot.metadata.expiration == recent_instant + timedelta(days=30)


@pytest.mark.asyncio
async def test_zero_retention_keeps_snapshots_forever(config, warehouse, recent_instant):
    seed_source_dataset(warehouse, "analytics", ["events"])

    results = await run_backup(config, warehouse, instant=recent_instant, retention_days=0)

    snapshot = warehouse.table(results[0].produced_container_id, "events")
    assert snapshot.metadata.expiration is None


# ============================================================================
# Test 2: FAILURE CONTAINMENT
# ============================================================================

@pytest.mark.asyncio
async def test_one_failed_snapshot_is_counted_and_siblings_succeed(
    config, warehouse, recent_instant
):
    seed_source_dataset(warehouse, "analytics", ["a", "b", "c"])
    warehouse.fail_on("create_snapshot", "analytics.b")

    result = (await run_backup(config, warehouse, instant=recent_instant))[0]

    assert not result.success
    assert result.success_count == 2
    assert result.failure_count == 1
    assert len(result.errors) == 1
    assert "b" in result.errors[0]
    assert sorted(warehouse.table_ids(result.produced_container_id)) == ["a", "c"]
    failed = [o for o in result.outcomes if not o.success]
    assert [o.target_id for o in failed] == ["b"]
    assert failed[0].error_type == "RemoteOperationError"


@pytest.mark.asyncio
async def test_collision_fails_only_that_dataset(config, warehouse, recent_instant):
    seed_source_dataset(warehouse, "analytics", ["events", "users"])
    seed_source_dataset(warehouse, "sales", ["orders"])
    warehouse.add_resource(encode(config.backup_prefix, recent_instant, "analytics"))

    results = await run_backup(config, warehouse, instant=recent_instant)

    by_source = {r.source_resource_id: r for r in results}
    assert not by_source["analytics"].success
    assert by_source["analytics"].success_count == 0
    assert by_source["analytics"].failure_count == 2
    assert "already exists" in by_source["analytics"].errors[0]
    assert by_source["sales"].success
    assert warehouse.calls_for("create_snapshot") == ["sales.orders"]


@pytest.mark.asyncio
async def test_dataset_without_location_fails_without_creating(config, warehouse, recent_instant):
    seed_source_dataset(warehouse, "analytics", ["events"], location=None)

    result = (await run_backup(config, warehouse, instant=recent_instant))[0]

    assert not result.success
    assert "location" in result.errors[0]
    assert warehouse.calls_for("create_resource") == []


@pytest.mark.asyncio
async def test_dataset_without_tables_is_a_vacuous_success(config, warehouse, recent_instant):
    warehouse.add_resource("empty")
    warehouse.add_table("empty", "v", table_type="VIEW")

    result = (await run_backup(config, warehouse, instant=recent_instant))[0]

    assert result.success
    assert result.success_count == 0
    assert result.produced_container_id is None
    assert warehouse.calls_for("create_resource") == []


# ============================================================================
# Test 3: ORDERING
# ============================================================================

@pytest.mark.asyncio
async def test_backup_dataset_created_before_snapshots(config, warehouse, recent_instant):
    seed_source_dataset(warehouse, "analytics", ["a", "b"])

    await run_backup(config, warehouse, instant=recent_instant)

    operations = [op for op, _ in warehouse.calls if op in ("create_resource", "create_snapshot")]
    assert operations == ["create_resource", "create_snapshot", "create_snapshot"]


@pytest.mark.asyncio
async def test_backup_dataset_inherits_source_location(config, warehouse, recent_instant):
    seed_source_dataset(warehouse, "analytics", ["events"], location="EU")

    result = (await run_backup(config, warehouse, instant=recent_instant))[0]

    info = await warehouse.get_resource(result.produced_container_id)
    assert info.location == "EU"
    assert info.description


# ============================================================================
# Test 4: VALIDATION FIRST
# ============================================================================

@pytest.mark.asyncio
async def test_instant_outside_window_creates_nothing(config, warehouse):
    seed_source_dataset(warehouse, "analytics", ["events"])
    too_old = datetime.now(UTC) - timedelta(days=8)

    with pytest.raises(ValidationError):
        await run_backup(config, warehouse, instant=too_old)

    assert warehouse.calls == []


@pytest.mark.asyncio
async def test_future_instant_is_rejected(config, warehouse):
    seed_source_dataset(warehouse, "analytics", ["events"])

    with pytest.raises(ValidationError):
        await backup_resources(
            config,
            warehouse,
            [SourceResource("analytics", "US")],
            instant=datetime.now(UTC) + timedelta(hours=1),
        )

    assert warehouse.dataset_ids() == ["analytics"]


@pytest.mark.asyncio
async def test_missing_requested_dataset_fails_the_call(config, warehouse, recent_instant):
    seed_source_dataset(warehouse, "analytics", ["events"])

    with pytest.raises(NotFoundError):
        await run_backup(config, warehouse, ["analytics", "missing"], instant=recent_instant)

    assert warehouse.calls_for("create_resource") == []


def test_resolve_backup_instant_truncates(config):
    now = datetime(2024, 12, 15, 14, 30, 22, 999999, tzinfo=UTC)

    assert resolve_backup_instant(config, now=now) == now.replace(microsecond=0)
    assert resolve_backup_instant(
        config, now - timedelta(days=1), now=now
    ) == (now - timedelta(days=1)).replace(microsecond=0)


@pytest.mark.asyncio
async def test_run_backup_validates_instant_once(config, warehouse, recent_instant, monkeypatch):
    import bqbackup.backup.manager as manager

    seed_source_dataset(warehouse, "analytics", ["events"])
    seen = []
    original = manager.validate_time_travel_instant

    def counting_validate(instant, *args, **kwargs):
        seen.append(instant)
        return original(instant, *args, **kwargs)

    monkeypatch.setattr(manager, "validate_time_travel_instant", counting_validate)

    results = await run_backup(config, warehouse, instant=recent_instant)

    assert results[0].success
    assert seen == [recent_instant]


# ============================================================================
# Test 5: DRY RUN AND CONCURRENCY
# ============================================================================

@pytest.mark.asyncio
async def test_dry_run_changes_nothing(config, warehouse, recent_instant):
    seed_source_dataset(warehouse, "analytics", ["events", "users"])

    result = (await run_backup(config, warehouse, instant=recent_instant, dry_run=True))[0]

    assert result.success
    assert result.success_count == 2
    assert warehouse.dataset_ids() == ["analytics"]
    assert warehouse.calls_for("create_snapshot") == []


@pytest.mark.asyncio
async def test_snapshot_concurrency_is_bounded(config, recent_instant):
    warehouse = InMemoryWarehouse(latency=0.01)
    seed_source_dataset(warehouse, "analytics", [f"t{i}" for i in range(12)])

    result = (await run_backup(config, warehouse, instant=recent_instant))[0]

    assert result.success_count == 12
    assert 1 < warehouse.max_in_flight <= config.max_concurrent_ops
