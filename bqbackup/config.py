# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Backup configuration - Immutable configuration data structures.

All configuration is frozen (immutable) after creation so a running
backup or restore always sees one consistent set of settings. Nothing
here is read from the environment; see bqbackup.env for that.
"""

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import List
import re

from bqbackup.errors import explain_invalid_pricing_mode, explain_missing_reservation_ids
from bqbackup.naming import BACKUP_PREFIX
from bqbackup.retention import DEFAULT_EXPIRATION_DAYS, TIME_TRAVEL_WINDOW_DAYS


class PricingMode(str, Enum):
    """How query jobs issued by the tool are billed."""

    ON_DEMAND = "on_demand"
    SLOT_BASED = "slot_based"


# Optional "domain.com:" scope, then 6-30 chars of lowercase, digits, hyphens
_PROJECT_ID_RE = re.compile(r"^(?:[a-z0-9.-]+:)?[a-z][a-z0-9-]{4,28}[a-z0-9]$")

# Dataset ids: letters, digits, underscores
_DATASET_PREFIX_RE = re.compile(r"^[A-Za-z0-9_]+$")


def _validate_project_id(project_id: str) -> bool:
    """
    Validate a GCP project id.

    Rules:
    - 6-30 characters
    - Lowercase letters, digits, hyphens
    - Starts with a letter, does not end with a hyphen
    - May carry a legacy "domain:" scope
    """
    if not project_id:
        return False
    return bool(_PROJECT_ID_RE.match(project_id))


@dataclass(frozen=True)
class JobOptimization:
    """
    Settings applied to query jobs submitted by the BigQuery adapter.

    Passed explicitly through BackupConfig; the adapter never looks at
    process-wide state to decide how a job is billed.
    """

    default_pricing_mode: PricingMode = PricingMode.ON_DEMAND
    reservation_ids: List[str] = field(default_factory=list)

    def __post_init__(self) -> None:
        if not isinstance(self.default_pricing_mode, PricingMode):
            try:
                mode = PricingMode(str(self.default_pricing_mode).lower())
            except ValueError as exc:
                from bqbackup.exceptions import ConfigurationError

                raise ConfigurationError(
                    explain_invalid_pricing_mode(self.default_pricing_mode)
                ) from exc
            object.__setattr__(self, "default_pricing_mode", mode)

        if self.default_pricing_mode == PricingMode.SLOT_BASED and not self.reservation_ids:
            from bqbackup.exceptions import ConfigurationError

            raise ConfigurationError(explain_missing_reservation_ids())

    @property
    def reservation(self) -> str | None:
        """Reservation jobs should run in, or None for on-demand billing."""
        if self.default_pricing_mode == PricingMode.SLOT_BASED and self.reservation_ids:
            return self.reservation_ids[0]
        return None


@dataclass(frozen=True)
class BackupConfig:
    """
    Immutable configuration for backup, restore and delete operations.
    """

    # Required: GCP project holding the datasets
    project_id: str

    # Prefix of backup dataset names
    backup_prefix: str = BACKUP_PREFIX

    # Days to keep snapshots (0 = keep forever)
    expiration_days: int = DEFAULT_EXPIRATION_DAYS

    # How far back a point-in-time backup may read
    time_travel_days: int = TIME_TRAVEL_WINDOW_DAYS

    # Maximum concurrent table operations within one dataset
    max_concurrent_ops: int = 10

    # Location for restored datasets when the backup reports none
    default_location: str = "US"

    # Billing settings for query jobs (None = project defaults)
    optimization: JobOptimization | None = None

    def __post_init__(self) -> None:
        """Validate configuration after creation."""
        errors: List[str] = []

        if not _validate_project_id(self.project_id):
            errors.append(f"Invalid project id: {self.project_id!r}")

        if not self.backup_prefix or not _DATASET_PREFIX_RE.match(self.backup_prefix):
            errors.append(
                f"backup_prefix must be a non-empty dataset-safe string, got {self.backup_prefix!r}"
            )

        if self.expiration_days < 0:
            errors.append(f"expiration_days must be >= 0, got {self.expiration_days}")

        if not 0 < self.time_travel_days <= TIME_TRAVEL_WINDOW_DAYS:
            errors.append(
                f"time_travel_days must be between 1 and {TIME_TRAVEL_WINDOW_DAYS}, "
                f"got {self.time_travel_days}"
            )

        if self.max_concurrent_ops < 1:
            errors.append(f"max_concurrent_ops must be >= 1, got {self.max_concurrent_ops}")

        if not self.default_location:
            errors.append("default_location must not be empty")

        if errors:
            from bqbackup.exceptions import ConfigurationError

            raise ConfigurationError(
                "Configuration validation failed",
                details={"errors": errors},
            )

    def with_updates(self, **kwargs) -> "BackupConfig":
        """
        Create a new config with updated values.

        Since the config is frozen, this creates a new instance.
        """
        return replace(self, **kwargs)
