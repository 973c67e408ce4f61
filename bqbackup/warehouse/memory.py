# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
In-memory Warehouse implementation.

Keeps datasets and tables in dicts so the orchestrators can run without
BigQuery:
- Unit and integration tests
- Local experimentation

Besides the Warehouse interface it offers seeding helpers (add_resource,
add_table, add_materialized_view), failure injection (fail_on) and a call
journal (calls) for asserting ordering. All data is lost on process exit.
"""

import asyncio
from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Dict, List, Tuple

from bqbackup.exceptions import CollisionError, NotFoundError, RemoteOperationError
from bqbackup.models import DerivedViewDefinition
from bqbackup.warehouse.base import MemberMetadata, ResourceInfo, TableRef, Warehouse


@dataclass
class StoredTable:
    """A table held by the in-memory warehouse."""

    metadata: MemberMetadata
    # Where the contents came from, e.g. "analytics.events" for a snapshot
    origin: str | None = None


@dataclass
class StoredDataset:
    """A dataset held by the in-memory warehouse."""

    info: ResourceInfo
    tables: Dict[str, StoredTable] = field(default_factory=dict)


class InMemoryWarehouse(Warehouse):
    """
    Warehouse backed by process memory.

    Example:
        >>> wh = InMemoryWarehouse()
        >>> wh.add_resource("analytics", location="EU")
        >>> wh.add_table("analytics", "events")
        >>> wh.fail_on("create_snapshot", "analytics.events")
    """

    def __init__(self, project_id: str = "test-project", latency: float = 0.0) -> None:
        self.project_id = project_id
        self.latency = latency
        self.calls: List[Tuple[str, str]] = []
        self.in_flight = 0
        self.max_in_flight = 0
        self._datasets: Dict[str, StoredDataset] = {}
        self._failures: Dict[Tuple[str, str], Exception] = {}

    # ------------------------------------------------------------------
    # Seeding and inspection helpers
    # ------------------------------------------------------------------

    def add_resource(
        self,
        resource_id: str,
        location: str | None = "US",
        description: str | None = None,
    ) -> None:
        self._datasets[resource_id] = StoredDataset(
            info=ResourceInfo(resource_id, location, description)
        )

    def add_table(
        self,
        resource_id: str,
        member_id: str,
        table_type: str = "TABLE",
        **metadata,
    ) -> None:
        dataset = self._datasets[resource_id]
        dataset.tables[member_id] = StoredTable(
            metadata=MemberMetadata(
                member_id=member_id,
                table_type=table_type,
                location=metadata.pop("location", dataset.info.location),
                **metadata,
            )
        )

    def add_materialized_view(
        self,
        resource_id: str,
        view_id: str,
        query: str | None,
        refresh_enabled: bool | None = None,
        refresh_interval_ms: int | None = None,
    ) -> None:
        self.add_table(
            resource_id,
            view_id,
            table_type="MATERIALIZED_VIEW",
            view_query=query,
            refresh_enabled=refresh_enabled,
            refresh_interval_ms=refresh_interval_ms,
        )

    def fail_on(self, operation: str, target: str, error: Exception | None = None) -> None:
        """
        Make operation fail for target.

        target is a dataset id for dataset operations and either a table id
        or "dataset.table" for table operations.
        """
        self._failures[(operation, target)] = error or RemoteOperationError(
            f"injected failure: {operation} {target}"
        )

    def dataset_ids(self) -> List[str]:
        return list(self._datasets)

    def table(self, resource_id: str, member_id: str) -> StoredTable:
        return self._require_dataset(resource_id).tables[member_id]

    def table_ids(self, resource_id: str) -> List[str]:
        return list(self._require_dataset(resource_id).tables)

    def calls_for(self, operation: str) -> List[str]:
        return [target for op, target in self.calls if op == operation]

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _enter(self, operation: str, *targets: str) -> None:
        self.calls.append((operation, targets[0] if targets else ""))
        for target in targets:
            error = self._failures.get((operation, target))
            if error is not None:
                raise error
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            await asyncio.sleep(self.latency)
        finally:
            self.in_flight -= 1

    def _require_dataset(self, resource_id: str) -> StoredDataset:
        dataset = self._datasets.get(resource_id)
        if dataset is None:
            raise NotFoundError(
                f"Dataset {resource_id} not found",
                details={"dataset": resource_id},
            )
        return dataset

    def _require_table(self, resource_id: str, member_id: str) -> StoredTable:
        table = self._require_dataset(resource_id).tables.get(member_id)
        if table is None:
            raise NotFoundError(
                f"Table {resource_id}.{member_id} not found",
                details={"dataset": resource_id, "table": member_id},
            )
        return table

    # ------------------------------------------------------------------
    # CatalogAPI
    # ------------------------------------------------------------------

    async def list_resources(self) -> List[ResourceInfo]:
        await self._enter("list_resources")
        return [d.info for d in self._datasets.values()]

    async def get_resource(self, resource_id: str) -> ResourceInfo:
        await self._enter("get_resource", resource_id)
        return self._require_dataset(resource_id).info

    async def create_resource(
        self,
        resource_id: str,
        location: str,
        description: str | None = None,
    ) -> ResourceInfo:
        await self._enter("create_resource", resource_id)
        if resource_id in self._datasets:
            raise CollisionError(
                f"Dataset {resource_id} already exists",
                details={"dataset": resource_id},
            )
        self.add_resource(resource_id, location, description)
        return self._datasets[resource_id].info

    async def resource_exists(self, resource_id: str) -> bool:
        await self._enter("resource_exists", resource_id)
        return resource_id in self._datasets

    async def list_members(self, resource_id: str) -> List[str]:
        await self._enter("list_members", resource_id)
        return list(self._require_dataset(resource_id).tables)

    async def get_member_metadata(self, resource_id: str, member_id: str) -> MemberMetadata:
        await self._enter("get_member_metadata", f"{resource_id}.{member_id}", member_id)
        return self._require_table(resource_id, member_id).metadata

    async def member_exists(self, resource_id: str, member_id: str) -> bool:
        await self._enter("member_exists", f"{resource_id}.{member_id}", member_id)
        dataset = self._datasets.get(resource_id)
        return dataset is not None and member_id in dataset.tables

    async def delete_member(self, resource_id: str, member_id: str) -> None:
        await self._enter("delete_member", f"{resource_id}.{member_id}", member_id)
        self._require_table(resource_id, member_id)
        del self._datasets[resource_id].tables[member_id]

    # ------------------------------------------------------------------
    # SnapshotAPI
    # ------------------------------------------------------------------

    async def create_snapshot(
        self,
        source: TableRef,
        target_container_id: str,
        instant: datetime,
        expiration: datetime | None = None,
    ) -> None:
        await self._enter("create_snapshot", str(source), source.member_id)
        source_table = self._require_table(source.resource_id, source.member_id)
        container = self._require_dataset(target_container_id)
        if source.member_id in container.tables:
            raise CollisionError(
                f"Table {target_container_id}.{source.member_id} already exists",
                details={"dataset": target_container_id, "table": source.member_id},
            )
        container.tables[source.member_id] = StoredTable(
            metadata=MemberMetadata(
                member_id=source.member_id,
                table_type="SNAPSHOT",
                location=container.info.location,
                snapshot_time=instant,
                expiration=expiration,
            ),
            origin=source_table.origin or str(source),
        )

    async def clone_back(
        self,
        snapshot: TableRef,
        target_resource_id: str,
        target_member_id: str,
        overwrite: bool,
    ) -> None:
        await self._enter("clone_back", f"{target_resource_id}.{target_member_id}", target_member_id)
        snapshot_table = self._require_table(snapshot.resource_id, snapshot.member_id)
        target = self._require_dataset(target_resource_id)
        if target_member_id in target.tables and not overwrite:
            raise CollisionError(
                f"Table {target_resource_id}.{target_member_id} already exists",
                details={"dataset": target_resource_id, "table": target_member_id},
            )
        target.tables[target_member_id] = StoredTable(
            metadata=replace(
                snapshot_table.metadata,
                member_id=target_member_id,
                table_type="TABLE",
                location=target.info.location,
                snapshot_time=None,
                expiration=None,
            ),
            origin=str(snapshot),
        )

    async def create_materialized_view(
        self,
        resource_id: str,
        definition: DerivedViewDefinition,
    ) -> None:
        await self._enter(
            "create_materialized_view", f"{resource_id}.{definition.view_id}", definition.view_id
        )
        dataset = self._require_dataset(resource_id)
        if definition.view_id in dataset.tables:
            raise CollisionError(
                f"Table {resource_id}.{definition.view_id} already exists",
                details={"dataset": resource_id, "table": definition.view_id},
            )
        self.add_materialized_view(
            resource_id,
            definition.view_id,
            definition.query,
            refresh_enabled=definition.refresh_enabled,
            refresh_interval_ms=definition.refresh_interval_ms,
        )

    async def delete_resource(self, resource_id: str) -> None:
        await self._enter("delete_resource", resource_id)
        self._require_dataset(resource_id)
        del self._datasets[resource_id]
