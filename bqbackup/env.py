# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Environment-based configuration helpers.

Environment variables are read here, at the edge, and turned into an
explicit BackupConfig. Nothing below this layer looks at os.environ.
"""

from __future__ import annotations

import os
from typing import List

from bqbackup.builder import create_config
from bqbackup.config import BackupConfig, PricingMode
from bqbackup.errors import (
    explain_invalid_expiration_days_env,
    explain_invalid_max_concurrent_ops_env,
    explain_invalid_pricing_mode,
    explain_missing_project_env,
)
from bqbackup.exceptions import ConfigurationError
from bqbackup.naming import BACKUP_PREFIX
from bqbackup.retention import DEFAULT_EXPIRATION_DAYS


def _parse_expiration_days(value: str | None) -> int:
    if not value:
        return DEFAULT_EXPIRATION_DAYS
    try:
        days = int(value)
    except (TypeError, ValueError) as exc:
        raise ConfigurationError(explain_invalid_expiration_days_env(value)) from exc
    if days < 0:
        raise ConfigurationError(explain_invalid_expiration_days_env(value))
    return days


def _parse_max_concurrent_ops(value: str | None) -> int:
    if not value:
        return 10
    try:
        ops = int(value)
    except (TypeError, ValueError) as exc:
        raise ConfigurationError(explain_invalid_max_concurrent_ops_env(value)) from exc
    if ops < 1:
        raise ConfigurationError(explain_invalid_max_concurrent_ops_env(value))
    return ops


def _parse_pricing_mode(value: str | None) -> PricingMode | None:
    if not value:
        return None
    try:
        return PricingMode(value.strip().lower())
    except ValueError as exc:
        raise ConfigurationError(explain_invalid_pricing_mode(value)) from exc


def _parse_reservation_ids(value: str | None) -> List[str]:
    if not value:
        return []
    return [r.strip() for r in value.split(",") if r.strip()]


def create_config_from_env(*, project_id: str | None = None) -> BackupConfig:
    """
    Create a BackupConfig from environment variables.

    An explicit project_id wins over the environment.

    Environment variables:
        - BQ_BACKUP_PROJECT_ID: GCP project (falls back to GOOGLE_CLOUD_PROJECT)
        - BQ_BACKUP_PREFIX: Backup dataset prefix (default: zzz_backup_)
        - BQ_BACKUP_EXPIRATION_DAYS: Snapshot retention, 0 = forever (default: 90)
        - BQ_BACKUP_MAX_CONCURRENT_OPS: Concurrent table operations (default: 10)
        - BQ_BACKUP_DEFAULT_LOCATION: Location for restored datasets (default: US)
        - BQ_OPTIMIZER_DEFAULT_PRICING_MODE: 'on_demand' | 'slot_based' (optional)
        - BQ_OPTIMIZER_RESERVATION_IDS: Comma-separated reservations (optional)
    """

    project = (
        project_id
        or os.getenv("BQ_BACKUP_PROJECT_ID")
        or os.getenv("GOOGLE_CLOUD_PROJECT")
    )
    if not project:
        raise ConfigurationError(explain_missing_project_env())

    pricing_mode = _parse_pricing_mode(os.getenv("BQ_OPTIMIZER_DEFAULT_PRICING_MODE"))
    reservation_ids = _parse_reservation_ids(os.getenv("BQ_OPTIMIZER_RESERVATION_IDS"))

    return create_config(
        project,
        backup_prefix=os.getenv("BQ_BACKUP_PREFIX") or BACKUP_PREFIX,
        expiration_days=_parse_expiration_days(os.getenv("BQ_BACKUP_EXPIRATION_DAYS")),
        max_concurrent_ops=_parse_max_concurrent_ops(
            os.getenv("BQ_BACKUP_MAX_CONCURRENT_OPS")
        ),
        default_location=os.getenv("BQ_BACKUP_DEFAULT_LOCATION"),
        pricing_mode=pricing_mode,
        reservation_ids=reservation_ids,
    )
