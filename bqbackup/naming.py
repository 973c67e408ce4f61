# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Backup container naming.

A backup container (dataset) name embeds the backup instant and the source
dataset it was taken from:

    zzz_backup_20241215_143022_analytics
    └─prefix──┘└─instant─────┘└─source─┘

The name is the only record of backup-set membership, so encode() and
decode() must stay byte-for-byte compatible with existing datasets.

Source datasets whose own name starts with "<8 digits>_<6 digits>_" cannot
be told apart from the instant. decode() always takes the first two
segments after the prefix as the instant.
"""

import re
from datetime import datetime, UTC
from typing import NamedTuple

from bqbackup.exceptions import ValidationError
from bqbackup.retention import ensure_utc

# 'zzz_' keeps backup datasets at the end of dataset listings
BACKUP_PREFIX = "zzz_backup_"

INSTANT_FORMAT = "%Y%m%d_%H%M%S"

SEPARATOR = "_"

_DATE_SEGMENT = re.compile(r"[0-9]{8}")
_TIME_SEGMENT = re.compile(r"[0-9]{6}")


class DecodedName(NamedTuple):
    """Result of decoding a backup container name."""

    source_id: str
    instant: datetime


def format_instant(instant: datetime) -> str:
    """Format an instant as YYYYMMDD_HHMMSS in UTC."""
    instant = ensure_utc(instant)
    # Built by hand so the result never depends on the process locale
    return (
        f"{instant.year:04d}{instant.month:02d}{instant.day:02d}"
        f"{SEPARATOR}"
        f"{instant.hour:02d}{instant.minute:02d}{instant.second:02d}"
    )


def instant_key(instant: datetime) -> str:
    """Canonical string for an instant at the resolution names carry."""
    return ensure_utc(instant).replace(microsecond=0).isoformat()


def encode(prefix: str, instant: datetime, source_id: str) -> str:
    """
    Build the backup container name for source_id at instant.

    Raises:
        ValidationError: If source_id is empty
    """
    if not source_id:
        raise ValidationError("source dataset id is required to name a backup")
    return f"{prefix}{format_instant(instant)}{SEPARATOR}{source_id}"


def decode(name: str, prefix: str = BACKUP_PREFIX) -> DecodedName | None:
    """
    Parse a backup container name.

    Returns None for anything that is not a backup container: wrong prefix,
    too few segments, digit runs of the wrong width, or an impossible
    calendar date/time.
    """
    if not name or not name.startswith(prefix):
        return None

    segments = name[len(prefix):].split(SEPARATOR)
    if len(segments) < 3:
        return None

    date_part, time_part = segments[0], segments[1]
    if not _DATE_SEGMENT.fullmatch(date_part) or not _TIME_SEGMENT.fullmatch(time_part):
        return None

    try:
        instant = datetime(
            int(date_part[0:4]),
            int(date_part[4:6]),
            int(date_part[6:8]),
            int(time_part[0:2]),
            int(time_part[2:4]),
            int(time_part[4:6]),
            tzinfo=UTC,
        )
    except ValueError:
        return None

    source_id = SEPARATOR.join(segments[2:])
    if not source_id:
        return None

    return DecodedName(source_id=source_id, instant=instant)


def is_backup_name(name: str, prefix: str = BACKUP_PREFIX) -> bool:
    """True if name carries the backup prefix (decodable or not)."""
    return bool(name) and name.startswith(prefix)
