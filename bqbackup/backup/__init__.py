# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Backup Engine - Backup, restore, grouping and deletion of backup sets.
"""

from bqbackup.backup.manager import (
    backup_resources,
    run_backup,
    resolve_backup_instant,
)

from bqbackup.backup.restore import (
    restore_backup_set,
    list_backups_for_instant,
    recreate_derived_views,
)

from bqbackup.backup.groups import (
    group_by_instant,
    find_backup_set,
)

from bqbackup.backup.delete import (
    delete_backup_containers,
)

__all__ = [
    # Manager
    "backup_resources",
    "run_backup",
    "resolve_backup_instant",
    # Restore
    "restore_backup_set",
    "list_backups_for_instant",
    "recreate_derived_views",
    # Grouping
    "group_by_instant",
    "find_backup_set",
    # Deletion
    "delete_backup_containers",
]
