# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Backup set grouping.

A backup set is every backup dataset sharing one instant. Sets are never
stored; they are recomputed from the live dataset list each time.
"""

from datetime import datetime
from typing import Dict, Iterable, List

from bqbackup.models import BackupContainer, BackupSetView
from bqbackup.naming import instant_key


def group_by_instant(containers: Iterable[BackupContainer]) -> List[BackupSetView]:
    """
    Group backup datasets by instant, newest first.

    Groups are keyed on the instant's canonical string, so containers
    decoded by separate listing calls still land in the same group.
    Within a group, containers keep their input order.
    """
    groups: Dict[str, BackupSetView] = {}

    for container in containers:
        key = instant_key(container.instant)
        group = groups.get(key)
        if group is None:
            group = BackupSetView(instant=container.instant, key=key)
            groups[key] = group
        group.containers.append(container)

    return sorted(groups.values(), key=lambda g: g.instant, reverse=True)


def find_backup_set(groups: Iterable[BackupSetView], instant: datetime) -> BackupSetView | None:
    """Return the group for instant, or None."""
    key = instant_key(instant)
    for group in groups:
        if group.key == key:
            return group
    return None
