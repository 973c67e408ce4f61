# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
BigQuery Warehouse implementation.

Snapshot, clone and materialized-view creation are DDL statements submitted
as query jobs; catalog operations go through the client's dataset and
table APIs. The google-cloud-bigquery client is blocking, so every call
runs in a thread pool and the orchestrators' fan-out gets real concurrency.

Statement text is produced by pure builder functions so it can be checked
without a BigQuery project.
"""

import asyncio
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timedelta, UTC
from functools import partial
from typing import Callable, List, TypeVar

import structlog
from google.api_core import exceptions as google_exceptions
from google.cloud import bigquery

from bqbackup.config import JobOptimization
from bqbackup.exceptions import CollisionError, NotFoundError, RemoteOperationError
from bqbackup.models import DerivedViewDefinition
from bqbackup.retention import ensure_utc
from bqbackup.warehouse.base import MemberMetadata, ResourceInfo, TableRef, Warehouse

logger = structlog.get_logger()

T = TypeVar("T")

EPOCH = datetime(1970, 1, 1, tzinfo=UTC)

# Label attached to optimized jobs so they can be found in INFORMATION_SCHEMA
OPTIMIZATION_LABEL = "bq-backup-optimized"


# =============================================================================
# Statement builders
# =============================================================================


def to_millis(instant: datetime) -> int:
    """Milliseconds since the Unix epoch, exact."""
    return (ensure_utc(instant) - EPOCH) // timedelta(milliseconds=1)


def quote_table(project_id: str, resource_id: str, member_id: str) -> str:
    return f"`{project_id}.{resource_id}.{member_id}`"


def build_snapshot_statement(
    project_id: str,
    source: TableRef,
    container_id: str,
    instant: datetime,
    expiration: datetime | None = None,
) -> str:
    """
    CREATE SNAPSHOT TABLE statement reading source as of instant.

    The snapshot keeps the source table's name inside the container.
    """
    statement = (
        f"CREATE SNAPSHOT TABLE {quote_table(project_id, container_id, source.member_id)}\n"
        f"CLONE {quote_table(project_id, source.resource_id, source.member_id)}\n"
        f"FOR SYSTEM_TIME AS OF TIMESTAMP_MILLIS({to_millis(instant)})"
    )
    if expiration is not None:
        statement += (
            f"\nOPTIONS(expiration_timestamp = TIMESTAMP_MILLIS({to_millis(expiration)}))"
        )
    return statement


def build_clone_statement(
    project_id: str,
    snapshot: TableRef,
    target_resource_id: str,
    target_member_id: str,
    overwrite: bool,
) -> str:
    """CREATE [OR REPLACE] TABLE ... CLONE statement restoring a snapshot."""
    verb = "CREATE OR REPLACE TABLE" if overwrite else "CREATE TABLE"
    return (
        f"{verb} {quote_table(project_id, target_resource_id, target_member_id)}\n"
        f"CLONE {quote_table(project_id, snapshot.resource_id, snapshot.member_id)}"
    )


def build_materialized_view_statement(
    project_id: str,
    resource_id: str,
    definition: DerivedViewDefinition,
) -> str:
    """
    CREATE MATERIALIZED VIEW statement replaying a captured definition.

    BigQuery takes the refresh interval in minutes; sub-minute intervals
    round up to one minute.
    """
    statement = (
        f"CREATE MATERIALIZED VIEW {quote_table(project_id, resource_id, definition.view_id)} AS\n"
        f"{definition.query}"
    )

    options: List[str] = []
    if definition.refresh_enabled is not None:
        options.append(f"enable_refresh = {str(definition.refresh_enabled).lower()}")
    if definition.refresh_interval_ms is not None:
        minutes = max(1, -(-definition.refresh_interval_ms // 60_000))
        options.append(f"refresh_interval_minutes = {minutes}")
    if options:
        statement += f"\nOPTIONS({', '.join(options)})"
    return statement


def reservation_path(project_id: str, location: str | None, reservation_id: str) -> str:
    """
    Expand a reservation id to its full resource path.

    Accepts a full "projects/.../reservations/..." path, the short
    "project:location.name" form, or a bare name resolved against the
    job's project and location.
    """
    if reservation_id.startswith("projects/"):
        return reservation_id
    if ":" in reservation_id and "." in reservation_id:
        project, rest = reservation_id.split(":", 1)
        res_location, name = rest.split(".", 1)
        return f"projects/{project}/locations/{res_location}/reservations/{name}"
    return f"projects/{project_id}/locations/{location or 'US'}/reservations/{reservation_id}"


def apply_optimization(
    statement: str,
    project_id: str,
    location: str | None,
    optimization: JobOptimization | None,
) -> str:
    """Prefix a statement with the reservation assignment, if any."""
    if optimization is None or optimization.reservation is None:
        return statement
    path = reservation_path(project_id, location, optimization.reservation)
    return f"SET @@reservation = '{path}';\n{statement}"


def translate_error(error: Exception, action: str) -> Exception:
    """Map a google-api-core error to the package's exception types."""
    if isinstance(error, google_exceptions.NotFound):
        return NotFoundError(f"{action}: not found", details={"cause": str(error)})
    if isinstance(error, google_exceptions.Conflict):
        return CollisionError(f"{action}: already exists", details={"cause": str(error)})
    return RemoteOperationError(f"{action} failed", details={"cause": str(error)})


# =============================================================================
# Warehouse
# =============================================================================


class BigQueryWarehouse(Warehouse):
    """
    Warehouse backed by a google-cloud-bigquery Client.

    Example:
        >>> wh = BigQueryWarehouse("my-project", optimization=config.optimization)
        >>> await wh.list_resources()
    """

    def __init__(
        self,
        project_id: str,
        client: bigquery.Client | None = None,
        optimization: JobOptimization | None = None,
        max_workers: int = 16,
    ) -> None:
        self.project_id = project_id
        self.client = client or bigquery.Client(project=project_id)
        self.optimization = optimization
        self._executor = ThreadPoolExecutor(max_workers=max_workers)

    def close(self) -> None:
        """Release the thread pool and the client's HTTP session."""
        self._executor.shutdown(wait=False)
        self.client.close()

    async def _call(self, action: str, func: Callable[..., T], *args, **kwargs) -> T:
        loop = asyncio.get_running_loop()
        try:
            return await loop.run_in_executor(self._executor, partial(func, *args, **kwargs))
        except google_exceptions.GoogleAPIError as e:
            raise translate_error(e, action) from e

    def _dataset_ref(self, resource_id: str) -> str:
        return f"{self.project_id}.{resource_id}"

    def _table_ref(self, resource_id: str, member_id: str) -> str:
        return f"{self.project_id}.{resource_id}.{member_id}"

    # ------------------------------------------------------------------
    # Query jobs
    # ------------------------------------------------------------------

    def _run_statement_sync(self, statement: str, location: str | None) -> None:
        job_config = bigquery.QueryJobConfig(use_legacy_sql=False)
        self.client.query(statement, job_config=job_config, location=location).result()

    def _run_optimized_sync(self, statement: str, location: str | None) -> None:
        optimized = apply_optimization(statement, self.project_id, location, self.optimization)
        if optimized == statement:
            self._run_statement_sync(statement, location)
            return

        job_config = bigquery.QueryJobConfig(
            use_legacy_sql=False,
            labels={OPTIMIZATION_LABEL: "true"},
        )
        try:
            job = self.client.query(optimized, job_config=job_config, location=location)
        except google_exceptions.GoogleAPIError as e:
            logger.warning(
                "optimized_job_submit_failed",
                error=str(e),
                reservation=self.optimization.reservation,
            )
            self._run_statement_sync(statement, location)
            return
        job.result()

    async def _run_statement(self, action: str, statement: str, location: str | None) -> None:
        logger.debug("submitting_statement", action=action, statement=statement)
        await self._call(action, self._run_optimized_sync, statement, location)

    # ------------------------------------------------------------------
    # CatalogAPI
    # ------------------------------------------------------------------

    async def list_resources(self) -> List[ResourceInfo]:
        # List items carry no location, so each dataset is fetched in full
        def _list() -> List[ResourceInfo]:
            resources: List[ResourceInfo] = []
            for item in self.client.list_datasets(project=self.project_id):
                dataset = self.client.get_dataset(self._dataset_ref(item.dataset_id))
                resources.append(
                    ResourceInfo(item.dataset_id, dataset.location, dataset.description)
                )
            return resources

        return await self._call("List datasets", _list)

    async def get_resource(self, resource_id: str) -> ResourceInfo:
        dataset = await self._call(
            f"Get dataset {resource_id}",
            self.client.get_dataset,
            self._dataset_ref(resource_id),
        )
        return ResourceInfo(resource_id, dataset.location, dataset.description)

    async def create_resource(
        self,
        resource_id: str,
        location: str,
        description: str | None = None,
    ) -> ResourceInfo:
        dataset = bigquery.Dataset(self._dataset_ref(resource_id))
        dataset.location = location
        dataset.description = description
        await self._call(f"Create dataset {resource_id}", self.client.create_dataset, dataset)
        return ResourceInfo(resource_id, location, description)

    async def resource_exists(self, resource_id: str) -> bool:
        try:
            await self.get_resource(resource_id)
        except NotFoundError:
            return False
        return True

    async def list_members(self, resource_id: str) -> List[str]:
        def _list() -> List[str]:
            return [
                item.table_id
                for item in self.client.list_tables(self._dataset_ref(resource_id))
            ]

        return await self._call(f"List tables in {resource_id}", _list)

    async def get_member_metadata(self, resource_id: str, member_id: str) -> MemberMetadata:
        table = await self._call(
            f"Get table {resource_id}.{member_id}",
            self.client.get_table,
            self._table_ref(resource_id, member_id),
        )

        interval = table.mview_refresh_interval
        snapshot = table.snapshot_definition
        return MemberMetadata(
            member_id=member_id,
            table_type=table.table_type or "TABLE",
            location=table.location,
            view_query=table.mview_query,
            refresh_enabled=table.mview_enable_refresh,
            refresh_interval_ms=(
                interval // timedelta(milliseconds=1) if interval is not None else None
            ),
            snapshot_time=snapshot.snapshot_time if snapshot is not None else None,
            expiration=table.expires,
        )

    async def member_exists(self, resource_id: str, member_id: str) -> bool:
        try:
            await self._call(
                f"Get table {resource_id}.{member_id}",
                self.client.get_table,
                self._table_ref(resource_id, member_id),
            )
        except NotFoundError:
            return False
        return True

    async def delete_member(self, resource_id: str, member_id: str) -> None:
        await self._call(
            f"Delete table {resource_id}.{member_id}",
            self.client.delete_table,
            self._table_ref(resource_id, member_id),
        )

    # ------------------------------------------------------------------
    # SnapshotAPI
    # ------------------------------------------------------------------

    async def _location_of(self, resource_id: str) -> str | None:
        return (await self.get_resource(resource_id)).location

    async def create_snapshot(
        self,
        source: TableRef,
        target_container_id: str,
        instant: datetime,
        expiration: datetime | None = None,
    ) -> None:
        statement = build_snapshot_statement(
            self.project_id, source, target_container_id, instant, expiration
        )
        await self._run_statement(
            f"Snapshot {source}",
            statement,
            await self._location_of(target_container_id),
        )

    async def clone_back(
        self,
        snapshot: TableRef,
        target_resource_id: str,
        target_member_id: str,
        overwrite: bool,
    ) -> None:
        statement = build_clone_statement(
            self.project_id, snapshot, target_resource_id, target_member_id, overwrite
        )
        await self._run_statement(
            f"Restore {target_resource_id}.{target_member_id}",
            statement,
            await self._location_of(target_resource_id),
        )

    async def create_materialized_view(
        self,
        resource_id: str,
        definition: DerivedViewDefinition,
    ) -> None:
        statement = build_materialized_view_statement(self.project_id, resource_id, definition)
        await self._run_statement(
            f"Create materialized view {resource_id}.{definition.view_id}",
            statement,
            await self._location_of(resource_id),
        )

    async def delete_resource(self, resource_id: str) -> None:
        await self._call(
            f"Delete dataset {resource_id}",
            partial(self.client.delete_dataset, delete_contents=True),
            self._dataset_ref(resource_id),
        )
