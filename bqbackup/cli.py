# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""Command line interface for bq-backup-and-restore."""

import asyncio
from datetime import datetime
from typing import Any, Callable, List

import click

from bqbackup import __version__
from bqbackup.backup import (
    delete_backup_containers,
    group_by_instant,
    restore_backup_set,
    run_backup,
)
from bqbackup.config import BackupConfig
from bqbackup.env import create_config_from_env
from bqbackup.exceptions import BQBackupError, ValidationError
from bqbackup.listing import list_backup_containers
from bqbackup.logconfig import LOG_LEVELS, configure_logging
from bqbackup.models import BackupSetView
from bqbackup.retention import parse_timestamp
from bqbackup.selection import describe_backup_sets, is_confirmed, parse_selection
from bqbackup.warehouse import BigQueryWarehouse, Warehouse

WarehouseFactory = Callable[[BackupConfig], Warehouse]


def default_warehouse_factory(config: BackupConfig) -> Warehouse:
    return BigQueryWarehouse(config.project_id, optimization=config.optimization)


def common_options(func: Callable[..., Any]) -> Callable[..., Any]:
    """Options shared by every command."""
    func = click.option(
        "--log-level",
        type=click.Choice(sorted(LOG_LEVELS), case_sensitive=False),
        default="info",
        show_default=True,
        help="Log verbosity",
    )(func)
    func = click.option(
        "--project-id",
        envvar="BQ_BACKUP_PROJECT_ID",
        help="GCP project holding the datasets",
    )(func)
    return func


def load_config(project_id: str | None) -> BackupConfig:
    try:
        return create_config_from_env(project_id=project_id)
    except BQBackupError as e:
        raise click.ClickException(str(e)) from e


def open_warehouse(ctx: click.Context, config: BackupConfig) -> Warehouse:
    factory: WarehouseFactory = ctx.obj.get("warehouse_factory", default_warehouse_factory)
    return factory(config)


def run_async(coro: Any) -> Any:
    """Run a coroutine, turning package errors into a clean CLI error."""
    try:
        return asyncio.run(coro)
    except BQBackupError as e:
        raise click.ClickException(str(e)) from e


def parse_instant_option(value: str | None) -> datetime | None:
    if value is None:
        return None
    try:
        return parse_timestamp(value)
    except ValidationError as e:
        raise click.BadParameter(e.message) from e


def choose_backup_set(groups: List[BackupSetView], action: str) -> BackupSetView | None:
    """
    Show grouped backups and ask for one.

    Returns None if the user quits. Invalid answers are reported and
    asked again.
    """
    click.echo(f"\nFound {len(groups)} backup timestamp(s):\n")
    for line in describe_backup_sets(groups):
        click.echo(line)
    click.echo("")

    while True:
        answer = click.prompt(
            f"Select a backup to {action} (1-{len(groups)}, or q to quit)",
            default="",
            show_default=False,
        )
        try:
            index = parse_selection(answer, len(groups))
        except ValidationError as e:
            click.echo(e.message, err=True)
            continue
        if index is None:
            return None
        return groups[index]


@click.group()
@click.version_option(version=__version__, prog_name="bq-backup-and-restore")
@click.pass_context
def main(ctx: click.Context) -> None:
    """Point-in-time backup and restore of BigQuery datasets.

    Backups are snapshot tables grouped in datasets named
    <prefix>YYYYMMDD_HHMMSS_<source dataset>.
    """
    ctx.ensure_object(dict)


@main.command()
@common_options
@click.option(
    "--datasets",
    help="Comma-separated datasets to back up (default: every non-backup dataset)",
)
@click.option(
    "--timestamp",
    help="Point in time to capture, ISO 8601, within the last 7 days (default: now)",
)
@click.option(
    "--expiration-days",
    type=click.IntRange(min=0),
    help="Days to keep the snapshots, 0 to keep forever (default: 90)",
)
@click.option("--dry-run", "-n", is_flag=True, help="Show what would be done without making changes")
@click.pass_context
def backup(
    ctx: click.Context,
    project_id: str | None,
    log_level: str,
    datasets: str | None,
    timestamp: str | None,
    expiration_days: int | None,
    dry_run: bool,
) -> None:
    """Snapshot datasets into timestamped backup datasets."""
    configure_logging(log_level)
    config = load_config(project_id)
    instant = parse_instant_option(timestamp)
    resource_ids = [d.strip() for d in datasets.split(",") if d.strip()] if datasets else None

    warehouse = open_warehouse(ctx, config)
    try:
        results = run_async(
            run_backup(
                config,
                warehouse,
                resource_ids=resource_ids,
                instant=instant,
                retention_days=expiration_days,
                dry_run=dry_run,
            )
        )
    finally:
        warehouse.close()

    prefix = "[DRY RUN] " if dry_run else ""
    for result in results:
        status = "OK" if result.success else "FAILED"
        click.echo(
            f"{prefix}{status} {result.source_resource_id} -> "
            f"{result.produced_container_id or '-'}: "
            f"{result.success_count} table(s) backed up, {result.failure_count} failed"
        )
        for error in result.errors:
            click.echo(f"    {error}", err=True)

    if any(not r.success for r in results):
        ctx.exit(1)


@main.command("list-backups")
@common_options
@click.pass_context
def list_backups(ctx: click.Context, project_id: str | None, log_level: str) -> None:
    """List backup datasets, newest first."""
    configure_logging(log_level)
    config = load_config(project_id)

    warehouse = open_warehouse(ctx, config)
    try:
        containers = run_async(list_backup_containers(warehouse, config.backup_prefix))
    finally:
        warehouse.close()

    if not containers:
        click.echo("No backups found.")
        return

    for container in containers:
        click.echo(
            f"{container.container_id}\t{container.source_resource_id}\t"
            f"{container.instant.isoformat()}"
        )


@main.command()
@common_options
@click.option(
    "--backup-timestamp",
    help="Timestamp of the backup set to restore, ISO 8601 (default: choose interactively)",
)
@click.option("--overwrite", is_flag=True, help="Replace tables that already exist")
@click.option("--dry-run", "-n", is_flag=True, help="Show what would be done without making changes")
@click.pass_context
def restore(
    ctx: click.Context,
    project_id: str | None,
    log_level: str,
    backup_timestamp: str | None,
    overwrite: bool,
    dry_run: bool,
) -> None:
    """Restore every dataset of one backup set."""
    configure_logging(log_level)
    config = load_config(project_id)
    instant = parse_instant_option(backup_timestamp)

    warehouse = open_warehouse(ctx, config)
    try:
        if instant is None:
            groups = group_by_instant(
                run_async(list_backup_containers(warehouse, config.backup_prefix))
            )
            if not groups:
                click.echo("No backups found.")
                return
            selected = choose_backup_set(groups, "restore")
            if selected is None:
                click.echo("Restore cancelled.")
                return
            instant = selected.instant

        outcomes = run_async(
            restore_backup_set(config, warehouse, instant, overwrite=overwrite, dry_run=dry_run)
        )
    finally:
        warehouse.close()

    prefix = "[DRY RUN] " if dry_run else ""
    for outcome in outcomes:
        status = "OK" if outcome.success else "FAILED"
        click.echo(
            f"{prefix}{status} {outcome.source_backup_container_id} -> "
            f"{outcome.target_resource_id}: {outcome.members_restored} table(s) restored, "
            f"{outcome.member_failures} failed, {outcome.views_recreated} view(s) recreated, "
            f"{outcome.views_failed} view(s) failed"
        )
        for error in outcome.errors + outcome.view_errors:
            click.echo(f"    {error}", err=True)

    if any(not o.success for o in outcomes):
        ctx.exit(1)


@main.command("delete-backups")
@common_options
@click.option("--yes", "-y", "assume_yes", is_flag=True, help="Skip the confirmation prompt")
@click.option("--dry-run", "-n", is_flag=True, help="Show what would be done without making changes")
@click.pass_context
def delete_backups(
    ctx: click.Context,
    project_id: str | None,
    log_level: str,
    assume_yes: bool,
    dry_run: bool,
) -> None:
    """Delete every dataset of one backup set."""
    configure_logging(log_level)
    config = load_config(project_id)

    warehouse = open_warehouse(ctx, config)
    try:
        groups = group_by_instant(
            run_async(list_backup_containers(warehouse, config.backup_prefix))
        )
        if not groups:
            click.echo("No backups found.")
            return

        selected = choose_backup_set(groups, "delete")
        if selected is None:
            click.echo("Deletion cancelled.")
            return

        if not assume_yes:
            answer = click.prompt(
                f"Delete {len(selected.containers)} backup dataset(s) from {selected.key}? "
                "This cannot be undone (yes/no)",
                default="no",
            )
            if not is_confirmed(answer):
                click.echo("Deletion cancelled.")
                return

        summary = run_async(
            delete_backup_containers(config, warehouse, selected.containers, dry_run=dry_run)
        )
    finally:
        warehouse.close()

    prefix = "[DRY RUN] " if dry_run else ""
    click.echo(
        f"{prefix}Deleted {summary.success_count} backup dataset(s), "
        f"{summary.failure_count} failed"
    )
    for error in summary.errors:
        click.echo(f"    {error}", err=True)

    if not summary.success:
        ctx.exit(1)
