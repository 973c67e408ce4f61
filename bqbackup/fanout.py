# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Bounded concurrent fan-out with per-operation outcome capture.

One coroutine per item, at most max_concurrency running at a time, joined
with asyncio.gather before the caller aggregates. A failing operation is
turned into a failed OperationOutcome; it never cancels its siblings.
"""

import asyncio
from typing import Awaitable, Callable, Iterable, List, TypeVar

import structlog

from bqbackup.models import OperationOutcome

logger = structlog.get_logger()

T = TypeVar("T")


def outcome_from_error(target_id: str, error: Exception, message: str) -> OperationOutcome:
    """Build a failed outcome for target_id."""
    return OperationOutcome(
        target_id=target_id,
        success=False,
        error=f"{message}: {error}",
        error_type=type(error).__name__,
    )


async def fan_out(
    items: Iterable[T],
    operation: Callable[[T], Awaitable[None]],
    *,
    target_id: Callable[[T], str],
    max_concurrency: int,
    failure_message: str = "Operation failed",
) -> List[OperationOutcome]:
    """
    Run operation once per item with bounded concurrency.

    Args:
        items: Items to process
        operation: Coroutine function applied to each item
        target_id: Names the item in its outcome
        max_concurrency: Upper bound on operations in flight
        failure_message: Prefix for captured error messages

    Returns:
        One OperationOutcome per item, in input order
    """
    semaphore = asyncio.Semaphore(max_concurrency)

    async def run_one(item: T) -> OperationOutcome:
        name = target_id(item)
        async with semaphore:
            try:
                await operation(item)
            except Exception as e:
                logger.error("fan_out_operation_failed", target=name, error=str(e))
                return outcome_from_error(name, e, f"{failure_message} for {name}")
        return OperationOutcome(target_id=name, success=True)

    return list(await asyncio.gather(*[run_one(item) for item in items]))


def count_outcomes(outcomes: Iterable[OperationOutcome]) -> tuple[int, int, List[str]]:
    """Return (successes, failures, error messages) for a set of outcomes."""
    successes = 0
    failures = 0
    errors: List[str] = []
    for outcome in outcomes:
        if outcome.success:
            successes += 1
        else:
            failures += 1
            errors.append(outcome.error or "Unknown error")
    return successes, failures, errors
