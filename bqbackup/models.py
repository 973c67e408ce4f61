# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Data model shared by the backup, restore and delete orchestrators.

Result types record partial success: a batch reports exactly what
succeeded next to what failed instead of collapsing into one error.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import List


class MemberKind(str, Enum):
    """How a table inside a dataset is treated by backup and restore."""

    PLAIN = "plain"  # Regular table, snapshotted
    DERIVED_VIEW = "derived_view"  # Materialized view, rebuilt after restore
    OTHER = "other"  # Views, models, external tables: ignored


@dataclass(frozen=True)
class Member:
    """One table-like object inside a dataset."""

    member_id: str
    kind: MemberKind
    table_type: str
    location: str | None = None


@dataclass
class SourceResource:
    """
    A dataset to back up.

    members is None until listed; the backup manager lists them live.
    """

    resource_id: str
    location: str | None = None
    members: List[Member] | None = None


@dataclass(frozen=True)
class BackupContainer:
    """A backup dataset decoded from its name."""

    container_id: str
    source_resource_id: str
    instant: datetime


@dataclass(frozen=True)
class SnapshotRecord:
    """A snapshot table inside a backup dataset."""

    container_id: str
    member_id: str
    snapshot_time: datetime | None = None
    expiration: datetime | None = None


@dataclass(frozen=True)
class DerivedViewDefinition:
    """Definition of a materialized view, captured so it can be recreated."""

    view_id: str
    query: str
    refresh_enabled: bool | None = None
    refresh_interval_ms: int | None = None


@dataclass(frozen=True)
class OperationOutcome:
    """Outcome of one remote operation inside a fan-out."""

    target_id: str
    success: bool
    error: str | None = None
    error_type: str | None = None


@dataclass
class BackupSetView:
    """All backup datasets sharing one instant."""

    instant: datetime
    key: str
    containers: List[BackupContainer] = field(default_factory=list)

    @property
    def source_resource_ids(self) -> List[str]:
        return [c.source_resource_id for c in self.containers]


@dataclass
class BatchResult:
    """Result of backing up one source dataset."""

    source_resource_id: str
    instant: datetime
    produced_container_id: str | None = None
    success_count: int = 0
    failure_count: int = 0
    errors: List[str] = field(default_factory=list)
    outcomes: List[OperationOutcome] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return self.failure_count == 0


@dataclass
class RestoreOutcome:
    """
    Result of restoring one backup dataset.

    View failures are reported next to table results but never affect
    success.
    """

    source_backup_container_id: str
    target_resource_id: str
    members_restored: int = 0
    member_failures: int = 0
    views_recreated: int = 0
    views_failed: int = 0
    errors: List[str] = field(default_factory=list)
    view_errors: List[str] = field(default_factory=list)
    outcomes: List[OperationOutcome] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return self.member_failures == 0


@dataclass
class DeletionSummary:
    """Aggregate result of deleting a set of backup datasets."""

    success_count: int = 0
    failure_count: int = 0
    errors: List[str] = field(default_factory=list)
    deleted_ids: List[str] = field(default_factory=list)
    skipped_ids: List[str] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return self.failure_count == 0
