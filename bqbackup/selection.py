# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Selection and confirmation protocol for interactive front ends.

The orchestrators never prompt. A front end shows the grouped backup sets,
reads the user's answers and runs them through these functions to obtain
one concrete backup set and an explicit confirmation.
"""

from typing import List, Sequence

from bqbackup.exceptions import ValidationError
from bqbackup.models import BackupSetView

QUIT_ANSWERS = ("q", "quit")
CONFIRM_ANSWERS = ("yes", "y")


def parse_selection(answer: str, count: int) -> int | None:
    """
    Turn a 1-based menu answer into a 0-based index.

    Returns:
        The index, or None if the user chose to quit

    Raises:
        ValidationError: If the answer is not a number between 1 and count
    """
    value = (answer or "").strip().lower()
    if value in QUIT_ANSWERS:
        return None

    try:
        index = int(value)
    except ValueError:
        index = 0

    if not 1 <= index <= count:
        raise ValidationError(
            f"Invalid selection. Please enter a number between 1 and {count}.",
            details={"answer": answer},
        )
    return index - 1


def is_confirmed(answer: str) -> bool:
    """True only for an explicit yes."""
    return (answer or "").strip().lower() in CONFIRM_ANSWERS


def describe_backup_sets(groups: Sequence[BackupSetView]) -> List[str]:
    """Render backup sets as numbered menu lines."""
    lines: List[str] = []
    for number, group in enumerate(groups, start=1):
        lines.append(f"[{number}] {group.key}")
        lines.append(f"    Datasets ({len(group.containers)}):")
        for container in group.containers:
            lines.append(
                f"      - {container.container_id} (source: {container.source_resource_id})"
            )
    return lines
