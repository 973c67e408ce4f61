# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Warehouse adapters - BigQuery for production, in-memory for tests.
"""

from bqbackup.warehouse.base import (
    CatalogAPI,
    MemberMetadata,
    ResourceInfo,
    SnapshotAPI,
    TableRef,
    Warehouse,
)
from bqbackup.warehouse.bigquery import BigQueryWarehouse
from bqbackup.warehouse.memory import InMemoryWarehouse

__all__ = [
    # Interface
    "CatalogAPI",
    "SnapshotAPI",
    "Warehouse",
    "ResourceInfo",
    "TableRef",
    "MemberMetadata",
    # Implementations
    "BigQueryWarehouse",
    "InMemoryWarehouse",
]
