# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Test fixtures for bqbackup tests.

Provides an in-memory warehouse, test configuration and time helpers.
"""

from datetime import datetime, timedelta, UTC
from typing import Generator

import pytest
import structlog

from bqbackup.config import BackupConfig
from bqbackup.warehouse.memory import InMemoryWarehouse

PROJECT_ID = "test-project"


@pytest.fixture(autouse=True)
def reset_logging() -> Generator[None, None, None]:
    """Undo any structlog configuration made by a test (the CLI configures it)."""
    yield
    structlog.reset_defaults()


@pytest.fixture
def config() -> BackupConfig:
    """Create a test configuration."""
    return BackupConfig(project_id=PROJECT_ID, max_concurrent_ops=4)


@pytest.fixture
def warehouse() -> InMemoryWarehouse:
    """Create an empty in-memory warehouse."""
    return InMemoryWarehouse(project_id=PROJECT_ID)


@pytest.fixture
def recent_instant() -> datetime:
    """An instant one hour ago, whole seconds, inside the time-travel window."""
    return (datetime.now(UTC) - timedelta(hours=1)).replace(microsecond=0)


def seed_source_dataset(
    warehouse: InMemoryWarehouse,
    resource_id: str,
    tables: list[str],
    location: str = "US",
) -> None:
    """Add a dataset holding plain tables."""
    warehouse.add_resource(resource_id, location=location)
    for table in tables:
        warehouse.add_table(resource_id, table)
