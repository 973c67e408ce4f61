# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Logging setup for command-line use.

Library code only calls structlog.get_logger(); applications decide how
events are rendered. configure_logging() is what the CLI uses.
"""

import logging
import sys

import structlog

LOG_LEVELS = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warn": logging.WARNING,
    "warning": logging.WARNING,
    "error": logging.ERROR,
}


def parse_log_level(value: str) -> int:
    """
    Parse a log level name.

    Raises:
        ValueError: If the name is not one of debug, info, warn, error
    """
    normalized = (value or "").strip().lower()
    if normalized not in LOG_LEVELS:
        raise ValueError(
            f"Invalid log level: {value}. Must be one of: debug, info, warn, error"
        )
    return LOG_LEVELS[normalized]


def configure_logging(level: str = "info", json_output: bool = False) -> None:
    """
    Configure structlog for console output on stderr.

    Args:
        level: debug, info, warn or error
        json_output: Emit JSON lines instead of the human-readable renderer
    """
    renderer = (
        structlog.processors.JSONRenderer()
        if json_output
        else structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty())
    )

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(parse_log_level(level)),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=False,
    )
