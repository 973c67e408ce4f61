# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Backup config builder - Functional builder pattern for configuration.

This module provides pure functions for building BackupConfig objects.
Each function takes a config dict and returns a new dict with the
modification applied (immutable updates).
"""

from typing import Any, Callable, Dict, List

from bqbackup.config import BackupConfig, JobOptimization, PricingMode
from bqbackup.naming import BACKUP_PREFIX
from bqbackup.retention import DEFAULT_EXPIRATION_DAYS, TIME_TRAVEL_WINDOW_DAYS


# Type alias for builder functions
ConfigDict = Dict[str, Any]
BuilderFunc = Callable[[ConfigDict], ConfigDict]


def create_empty_config() -> ConfigDict:
    """
    Create an initial empty configuration dictionary.

    Returns:
        Dict with default values for all configuration fields
    """
    return {
        "project_id": "",
        "backup_prefix": BACKUP_PREFIX,
        "expiration_days": DEFAULT_EXPIRATION_DAYS,
        "time_travel_days": TIME_TRAVEL_WINDOW_DAYS,
        "max_concurrent_ops": 10,
        "default_location": "US",
        "optimization": None,
    }


def with_project(config: ConfigDict, project_id: str) -> ConfigDict:
    """
    Set the GCP project holding the datasets.

    Args:
        config: Current configuration dictionary
        project_id: GCP project id

    Returns:
        New configuration dictionary with project set
    """
    return {**config, "project_id": project_id}


def with_backup_prefix(config: ConfigDict, prefix: str) -> ConfigDict:
    """
    Set the prefix used to name backup datasets.

    Changing this on an existing project hides older backups from listing.
    """
    return {**config, "backup_prefix": prefix}


def retain_snapshots_for(config: ConfigDict, days: int) -> ConfigDict:
    """
    Set how long snapshots are kept before BigQuery expires them.

    Args:
        config: Current configuration dictionary
        days: Retention in days (0 keeps snapshots forever)

    Returns:
        New configuration dictionary with expiration set
    """
    if days < 0:
        raise ValueError(f"expiration days must be >= 0, got {days}")
    return {**config, "expiration_days": days}


def keep_snapshots_forever(config: ConfigDict) -> ConfigDict:
    """Disable snapshot expiration."""
    return retain_snapshots_for(config, 0)


def with_time_travel_window(config: ConfigDict, days: int) -> ConfigDict:
    """
    Narrow the window point-in-time backups may read from.

    BigQuery's own window is 7 days; a project configured with a shorter
    time-travel window should pass its value here.
    """
    if not 0 < days <= TIME_TRAVEL_WINDOW_DAYS:
        raise ValueError(
            f"time travel window must be 1-{TIME_TRAVEL_WINDOW_DAYS} days, got {days}"
        )
    return {**config, "time_travel_days": days}


def with_max_concurrent_ops(config: ConfigDict, max_ops: int) -> ConfigDict:
    """
    Set the maximum number of concurrent table operations per dataset.

    Args:
        config: Current configuration dictionary
        max_ops: Maximum concurrent operations

    Returns:
        New configuration dictionary with max_concurrent_ops set
    """
    if max_ops < 1:
        raise ValueError(f"max_concurrent_ops must be >= 1, got {max_ops}")
    return {**config, "max_concurrent_ops": max_ops}


def with_default_location(config: ConfigDict, location: str) -> ConfigDict:
    """Set the location used for restored datasets when a backup has none."""
    return {**config, "default_location": location}


def use_job_optimization(
    config: ConfigDict,
    pricing_mode: PricingMode | str,
    reservation_ids: List[str] | None = None,
) -> ConfigDict:
    """
    Attach billing settings to the query jobs the tool submits.

    Args:
        config: Current configuration dictionary
        pricing_mode: 'on_demand' or 'slot_based'
        reservation_ids: Reservations to run slot-based jobs in

    Returns:
        New configuration dictionary with optimization set
    """
    optimization = JobOptimization(
        default_pricing_mode=pricing_mode,
        reservation_ids=list(reservation_ids or []),
    )
    return {**config, "optimization": optimization}


def build_config(config_dict: ConfigDict) -> BackupConfig:
    """
    Validate and build an immutable BackupConfig from a configuration dictionary.

    Args:
        config_dict: Configuration dictionary built using builder functions

    Returns:
        Validated, immutable BackupConfig instance

    Raises:
        ConfigurationError: If validation fails
    """
    if not config_dict.get("project_id"):
        from bqbackup.errors import explain_missing_project_env
        from bqbackup.exceptions import ConfigurationError

        raise ConfigurationError(explain_missing_project_env())

    return BackupConfig(**config_dict)


def pipe(*funcs: BuilderFunc) -> BuilderFunc:
    """
    Compose multiple builder functions into a single function.

        config = pipe(
            lambda c: with_project(c, "my-project"),
            keep_snapshots_forever,
        )(create_empty_config())
    """

    def composed(config: ConfigDict) -> ConfigDict:
        result = config
        for func in funcs:
            result = func(result)
        return result

    return composed


def build_from_steps(*steps: BuilderFunc) -> BackupConfig:
    """
    Build config by applying a sequence of builder functions.

    This is a convenience function that combines pipe() and build_config().
    """
    return build_config(pipe(*steps)(create_empty_config()))


def create_config(
    project_id: str,
    *,
    backup_prefix: str = BACKUP_PREFIX,
    expiration_days: int | None = DEFAULT_EXPIRATION_DAYS,
    max_concurrent_ops: int = 10,
    default_location: str | None = None,
    pricing_mode: PricingMode | str | None = None,
    reservation_ids: List[str] | None = None,
    **kwargs: Any,
) -> BackupConfig:
    """
    Create a backup configuration from simple parameters.

    This is the recommended user-facing API for creating configurations.

    Args:
        project_id: GCP project id (required)
        backup_prefix: Prefix for backup dataset names (default: "zzz_backup_")
        expiration_days: Snapshot retention in days, 0 for forever (default: 90)
        max_concurrent_ops: Concurrent table operations per dataset (default: 10)
        default_location: Location for restored datasets lacking one (default: "US")
        pricing_mode: 'on_demand' or 'slot_based' (optional)
        reservation_ids: Reservations for slot-based jobs (optional)
        **kwargs: Additional configuration options

    Returns:
        Validated, immutable BackupConfig instance

    Example:
        config = create_config(
            "my-analytics-project",
            expiration_days=30,
            pricing_mode="slot_based",
            reservation_ids=["my-analytics-project:US.backups"],
        )
    """
    config_dict = with_project(create_empty_config(), project_id)

    if backup_prefix:
        config_dict = with_backup_prefix(config_dict, backup_prefix)

    if expiration_days is not None:
        config_dict = retain_snapshots_for(config_dict, expiration_days)

    config_dict = with_max_concurrent_ops(config_dict, max_concurrent_ops)

    if default_location:
        config_dict = with_default_location(config_dict, default_location)

    if pricing_mode:
        config_dict = use_job_optimization(config_dict, pricing_mode, reservation_ids)

    for key, value in kwargs.items():
        if key in config_dict:
            config_dict[key] = value

    return build_config(config_dict)
