# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
BigQuery adapter tests.

Statement builders are checked as text; the adapter itself runs against a
stand-in client object so no BigQuery project is needed.
"""

from datetime import datetime, timedelta, UTC
from types import SimpleNamespace

import pytest
from google.api_core import exceptions as google_exceptions

from bqbackup.backup import run_backup
from bqbackup.config import BackupConfig, JobOptimization, PricingMode
from bqbackup.exceptions import CollisionError, NotFoundError, RemoteOperationError
from bqbackup.models import DerivedViewDefinition
from bqbackup.naming import encode
from bqbackup.warehouse.base import TableRef
from bqbackup.warehouse.bigquery import (
    BigQueryWarehouse,
    apply_optimization,
    build_clone_statement,
    build_materialized_view_statement,
    build_snapshot_statement,
    reservation_path,
    to_millis,
    translate_error,
)

INSTANT = datetime(2024, 12, 15, 14, 30, 22, tzinfo=UTC)
INSTANT_MS = 1734273022000


# ============================================================================
# Statement builders
# ============================================================================

def test_to_millis_is_exact():
    assert to_millis(INSTANT) == INSTANT_MS
    assert to_millis(INSTANT + timedelta(microseconds=1500)) == INSTANT_MS + 1


def test_snapshot_statement():
    statement = build_snapshot_statement(
        "proj",
        TableRef("analytics", "events"),
        "zzz_backup_20241215_143022_analytics",
        INSTANT,
        INSTANT + timedelta(days=1),
    )

    assert statement == (
        "CREATE SNAPSHOT TABLE `proj.zzz_backup_20241215_143022_analytics.events`\n"
        "CLONE `proj.analytics.events`\n"
        f"FOR SYSTEM_TIME AS OF TIMESTAMP_MILLIS({INSTANT_MS})\n"
        f"OPTIONS(expiration_timestamp = TIMESTAMP_MILLIS({INSTANT_MS + 86_400_000}))"
    )


def test_snapshot_statement_without_expiration():
    statement = build_snapshot_statement("proj", TableRef("a", "t"), "bk", INSTANT)

    assert "OPTIONS" not in statement


def test_clone_statement_overwrite():
    snapshot = TableRef("zzz_backup_20241215_143022_analytics", "events")

    assert build_clone_statement("proj", snapshot, "analytics", "events", False) == (
        "CREATE TABLE `proj.analytics.events`\n"
        "CLONE `proj.zzz_backup_20241215_143022_analytics.events`"
    )
    assert build_clone_statement("proj", snapshot, "analytics", "events", True).startswith(
        "CREATE OR REPLACE TABLE `proj.analytics.events`"
    )


def test_materialized_view_statement():
    definition = DerivedViewDefinition(
        "events_mv",
        "SELECT COUNT(*) FROM analytics.events",
        refresh_enabled=True,
        refresh_interval_ms=1_800_000,
    )

    assert build_materialized_view_statement("proj", "analytics", definition) == (
        "CREATE MATERIALIZED VIEW `proj.analytics.events_mv` AS\n"
        "SELECT COUNT(*) FROM analytics.events\n"
        "OPTIONS(enable_refresh = true, refresh_interval_minutes = 30)"
    )


def test_materialized_view_interval_rounds_up_to_minutes():
    definition = DerivedViewDefinition("mv", "SELECT 1", refresh_interval_ms=90_000)

    statement = build_materialized_view_statement("proj", "ds", definition)

    assert statement.endswith("OPTIONS(refresh_interval_minutes = 2)")


def test_materialized_view_without_options():
    statement = build_materialized_view_statement("proj", "ds", DerivedViewDefinition("mv", "SELECT 1"))

    assert "OPTIONS" not in statement


# ============================================================================
# Job optimization
# ============================================================================

@pytest.mark.parametrize(
    "reservation,expected",
    [
        ("projects/admin/locations/EU/reservations/etl", "projects/admin/locations/EU/reservations/etl"),
        ("admin:EU.etl", "projects/admin/locations/EU/reservations/etl"),
        ("etl", "projects/proj/locations/US/reservations/etl"),
    ],
)
def test_reservation_path(reservation, expected):
    assert reservation_path("proj", "US", reservation) == expected


def test_on_demand_statements_are_unchanged():
    optimization = JobOptimization(PricingMode.ON_DEMAND, ["etl"])

    assert apply_optimization("SELECT 1", "proj", "US", optimization) == "SELECT 1"
    assert apply_optimization("SELECT 1", "proj", "US", None) == "SELECT 1"


def test_slot_based_statements_set_reservation():
    optimization = JobOptimization(PricingMode.SLOT_BASED, ["admin:US.etl"])

    assert apply_optimization("SELECT 1", "proj", "US", optimization) == (
        "SET @@reservation = 'projects/admin/locations/US/reservations/etl';\nSELECT 1"
    )


# ============================================================================
# Error translation
# ============================================================================

@pytest.mark.parametrize(
    "error,expected",
    [
        (google_exceptions.NotFound("gone"), NotFoundError),
        (google_exceptions.Conflict("exists"), CollisionError),
        (google_exceptions.Forbidden("denied"), RemoteOperationError),
    ],
)
def test_translate_error(error, expected):
    translated = translate_error(error, "Do thing")

    assert isinstance(translated, expected)
    assert "Do thing" in str(translated)


# ============================================================================
# Adapter against a stand-in client
# ============================================================================

class FakeJob:
    def result(self):
        return []


class FakeDataset:
    def __init__(self, location):
        self.location = location
        self.description = None


class FakeClient:
    """Records submitted statements; rejects reservation-scoped jobs if asked."""

    def __init__(self, reject_reservation=False):
        self.reject_reservation = reject_reservation
        self.statements = []
        self.deleted = []

    def query(self, statement, job_config=None, location=None):
        self.statements.append(statement)
        if self.reject_reservation and statement.startswith("SET @@reservation"):
            raise google_exceptions.BadRequest("reservation not assignable")
        return FakeJob()

    def get_dataset(self, ref):
        if ref.endswith("missing"):
            raise google_exceptions.NotFound(ref)
        return FakeDataset("EU")

    def delete_dataset(self, ref, delete_contents=False):
        self.deleted.append((ref, delete_contents))

    def close(self):
        pass


@pytest.mark.asyncio
async def test_snapshot_is_submitted_as_query():
    client = FakeClient()
    warehouse = BigQueryWarehouse("proj", client=client)

    await warehouse.create_snapshot(TableRef("analytics", "events"), "bk", INSTANT)

    assert client.statements == [
        build_snapshot_statement("proj", TableRef("analytics", "events"), "bk", INSTANT)
    ]
    warehouse.close()


@pytest.mark.asyncio
async def test_optimized_job_falls_back_once_without_reservation():
    client = FakeClient(reject_reservation=True)
    optimization = JobOptimization(PricingMode.SLOT_BASED, ["admin:EU.etl"])
    warehouse = BigQueryWarehouse("proj", client=client, optimization=optimization)

    await warehouse.clone_back(TableRef("bk", "events"), "analytics", "events", overwrite=True)

    assert len(client.statements) == 2
    assert client.statements[0].startswith("SET @@reservation")
    assert client.statements[1].startswith("CREATE OR REPLACE TABLE")
    warehouse.close()


@pytest.mark.asyncio
async def test_missing_dataset_is_translated():
    warehouse = BigQueryWarehouse("proj", client=FakeClient())

    assert not await warehouse.resource_exists("missing")
    with pytest.raises(NotFoundError):
        await warehouse.get_resource("missing")
    warehouse.close()


@pytest.mark.asyncio
async def test_dataset_delete_removes_contents():
    client = FakeClient()
    warehouse = BigQueryWarehouse("proj", client=client)

    await warehouse.delete_resource("zzz_backup_20241215_143022_analytics")

    assert client.deleted == [("proj.zzz_backup_20241215_143022_analytics", True)]
    warehouse.close()


class CatalogClient(FakeClient):
    """Stand-in client that also keeps a small dataset and table catalog."""

    def __init__(self, datasets):
        super().__init__()
        self.datasets = dict(datasets)
        self.tables = {dataset_id: ["events"] for dataset_id in datasets}
        self.fetched = []

    def list_datasets(self, project=None):
        return [SimpleNamespace(dataset_id=dataset_id) for dataset_id in self.datasets]

    def get_dataset(self, ref):
        self.fetched.append(ref)
        dataset_id = ref.split(".", 1)[1]
        if dataset_id not in self.datasets:
            raise google_exceptions.NotFound(ref)
        return FakeDataset(self.datasets[dataset_id])

    def create_dataset(self, dataset):
        self.datasets[dataset.dataset_id] = dataset.location
        self.tables[dataset.dataset_id] = []

    def list_tables(self, ref):
        return [SimpleNamespace(table_id=table_id) for table_id in self.tables[ref.split(".", 1)[1]]]

    def get_table(self, ref):
        return SimpleNamespace(
            table_type="TABLE",
            location=self.datasets[ref.split(".")[1]],
            mview_query=None,
            mview_enable_refresh=None,
            mview_refresh_interval=None,
            snapshot_definition=None,
            expires=None,
        )


@pytest.mark.asyncio
async def test_listed_datasets_carry_their_location():
    client = CatalogClient({"analytics": "EU", "sales": "US"})
    warehouse = BigQueryWarehouse("proj", client=client)

    resources = await warehouse.list_resources()

    assert [(r.resource_id, r.location) for r in resources] == [
        ("analytics", "EU"),
        ("sales", "US"),
    ]
    assert client.fetched == ["proj.analytics", "proj.sales"]
    warehouse.close()


@pytest.mark.asyncio
async def test_backup_of_all_datasets_through_adapter():
    client = CatalogClient({"analytics": "EU"})
    warehouse = BigQueryWarehouse("proj", client=client)
    config = BackupConfig(project_id="proj", max_concurrent_ops=2)
    instant = (datetime.now(UTC) - timedelta(hours=1)).replace(microsecond=0)

    results = await run_backup(config, warehouse, instant=instant)

    container_id = encode(config.backup_prefix, instant, "analytics")
    assert [r.errors for r in results] == [[]]
    assert results[0].success_count == 1
    assert client.datasets[container_id] == "EU"
    assert any(
        s.startswith(f"CREATE SNAPSHOT TABLE `proj.{container_id}.events`")
        for s in client.statements
    )
    warehouse.close()
