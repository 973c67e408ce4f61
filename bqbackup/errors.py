# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Human-friendly error message helpers for bq-backup-and-restore.

These helpers centralize wording for common configuration and input errors
so that the library and the CLI present consistent, actionable messages.
"""


def explain_missing_project_env() -> str:
    """
    Explain that no GCP project is configured.
    """

    return (
        "GCP project is not configured. "
        "Set the BQ_BACKUP_PROJECT_ID (or GOOGLE_CLOUD_PROJECT) environment variable "
        "or pass project_id=... to create_config()."
    )


def explain_invalid_expiration_days_env(value: str | None) -> str:
    """
    Explain that BQ_BACKUP_EXPIRATION_DAYS is invalid.
    """

    return (
        f"Invalid BQ_BACKUP_EXPIRATION_DAYS value: {value!r}. "
        "It must be a non-negative integer number of days (0 keeps snapshots forever)."
    )


def explain_invalid_max_concurrent_ops_env(value: str | None) -> str:
    """
    Explain that BQ_BACKUP_MAX_CONCURRENT_OPS is invalid.
    """

    return (
        f"Invalid BQ_BACKUP_MAX_CONCURRENT_OPS value: {value!r}. "
        "It must be a positive integer."
    )


def explain_invalid_pricing_mode(value: str | None) -> str:
    """
    Explain that the default pricing mode is invalid.
    """

    return (
        f"Invalid default pricing mode: {value!r}. "
        "Expected 'on_demand' or 'slot_based'."
    )


def explain_missing_reservation_ids() -> str:
    """
    Explain that slot-based pricing needs at least one reservation.
    """

    return (
        "default_pricing_mode 'slot_based' requires at least one reservation id. "
        "Set BQ_OPTIMIZER_RESERVATION_IDS to a comma-separated list of reservations."
    )


def explain_invalid_timestamp(value: str) -> str:
    """
    Explain that a timestamp argument could not be parsed.
    """

    return (
        f"Invalid timestamp format: {value!r}. "
        "Expected ISO 8601, e.g. 2024-12-15T14:30:22Z."
    )


def explain_time_travel_window(days: int) -> str:
    """
    Explain the time-travel restriction on backup timestamps.
    """

    return (
        f"Point-in-time backups can only read up to {days} days into the past. "
        "Pick a timestamp inside the time-travel window or omit it to back up now."
    )
