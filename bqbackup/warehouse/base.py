# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Warehouse interface consumed by the orchestrators.

The orchestrators never talk to BigQuery directly. They sequence calls on a
Warehouse, which bundles two capabilities:

- CatalogAPI: datasets and table metadata
- SnapshotAPI: snapshot, clone, view and dataset-delete primitives

Every method is a coroutine and is attempted once; retries, if any, belong
to the implementation. Implementations signal missing objects with
NotFoundError, name collisions with CollisionError and any other remote
failure with RemoteOperationError.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from typing import List

from bqbackup.models import DerivedViewDefinition


@dataclass(frozen=True)
class ResourceInfo:
    """Dataset metadata."""

    resource_id: str
    location: str | None = None
    description: str | None = None


@dataclass(frozen=True)
class TableRef:
    """Fully-resolved table address within the project."""

    resource_id: str
    member_id: str

    def __str__(self) -> str:
        return f"{self.resource_id}.{self.member_id}"


@dataclass(frozen=True)
class MemberMetadata:
    """
    Table metadata as reported by the warehouse.

    table_type carries the raw warehouse type (TABLE, VIEW,
    MATERIALIZED_VIEW, SNAPSHOT, ...); classification happens in
    bqbackup.listing.
    """

    member_id: str
    table_type: str
    location: str | None = None
    view_query: str | None = None
    refresh_enabled: bool | None = None
    refresh_interval_ms: int | None = None
    snapshot_time: datetime | None = None
    expiration: datetime | None = None


class CatalogAPI(ABC):
    """Dataset and table catalog."""

    @abstractmethod
    async def list_resources(self) -> List[ResourceInfo]:
        """List every dataset in the project."""

    @abstractmethod
    async def get_resource(self, resource_id: str) -> ResourceInfo:
        """Get one dataset. Raises NotFoundError if absent."""

    @abstractmethod
    async def create_resource(
        self,
        resource_id: str,
        location: str,
        description: str | None = None,
    ) -> ResourceInfo:
        """Create a dataset. Raises CollisionError if it already exists."""

    @abstractmethod
    async def resource_exists(self, resource_id: str) -> bool:
        """True if the dataset exists."""

    @abstractmethod
    async def list_members(self, resource_id: str) -> List[str]:
        """List table ids in a dataset. Raises NotFoundError if absent."""

    @abstractmethod
    async def get_member_metadata(self, resource_id: str, member_id: str) -> MemberMetadata:
        """Get table metadata. Raises NotFoundError if absent."""

    @abstractmethod
    async def member_exists(self, resource_id: str, member_id: str) -> bool:
        """True if the table exists."""

    @abstractmethod
    async def delete_member(self, resource_id: str, member_id: str) -> None:
        """Delete a table. Raises NotFoundError if absent."""


class SnapshotAPI(ABC):
    """Point-in-time copy primitives."""

    @abstractmethod
    async def create_snapshot(
        self,
        source: TableRef,
        target_container_id: str,
        instant: datetime,
        expiration: datetime | None = None,
    ) -> None:
        """
        Snapshot source as of instant into a same-named table of the
        target container.
        """

    @abstractmethod
    async def clone_back(
        self,
        snapshot: TableRef,
        target_resource_id: str,
        target_member_id: str,
        overwrite: bool,
    ) -> None:
        """
        Clone a snapshot into a regular table.

        With overwrite the target is replaced atomically; without it the
        call fails with CollisionError if the target exists.
        """

    @abstractmethod
    async def create_materialized_view(
        self,
        resource_id: str,
        definition: DerivedViewDefinition,
    ) -> None:
        """Create a materialized view from a captured definition."""

    @abstractmethod
    async def delete_resource(self, resource_id: str) -> None:
        """Delete a dataset and all its tables. Raises NotFoundError if absent."""


class Warehouse(CatalogAPI, SnapshotAPI):
    """Everything the orchestrators need from the warehouse."""

    project_id: str

    def close(self) -> None:
        """Release client resources. Nothing to do by default."""
