# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
BQ Backup and Restore - Point-in-time backups of BigQuery datasets.

Snapshots every table of a dataset as of one instant into a backup dataset
named after that instant, restores whole backup sets by cloning the
snapshots back (rebuilding materialized views afterwards) and deletes
backup sets. Package name: bqbackup.
"""

__version__ = "0.1.0"

# Configuration creation (user-facing API)
from bqbackup.builder import create_config
from bqbackup.config import BackupConfig, JobOptimization, PricingMode
from bqbackup.env import create_config_from_env

# Orchestrators
from bqbackup.backup import (
    backup_resources,
    delete_backup_containers,
    find_backup_set,
    group_by_instant,
    restore_backup_set,
    run_backup,
)
from bqbackup.listing import list_backup_containers, list_source_resources

__all__ = [
    # Version
    "__version__",
    # Configuration
    "create_config",
    "create_config_from_env",
    "BackupConfig",
    "JobOptimization",
    "PricingMode",
    # Orchestration
    "run_backup",
    "backup_resources",
    "restore_backup_set",
    "delete_backup_containers",
    "group_by_instant",
    "find_backup_set",
    "list_backup_containers",
    "list_source_resources",
]
