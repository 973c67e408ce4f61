# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
BQ Backup Exceptions - Custom exceptions for the bqbackup package.
"""


class BQBackupError(Exception):
    """Base exception for all bqbackup errors."""

    def __init__(self, message: str, details: dict | None = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} | Details: {self.details}"
        return self.message


class ConfigurationError(BQBackupError):
    """Raised when configuration is invalid."""

    pass


class ValidationError(BQBackupError):
    """Raised when call arguments are invalid (bad instant, missing identifier)."""

    pass


class CollisionError(BQBackupError):
    """Raised when a backup container already exists at the target name."""

    pass


class TargetExistsError(BQBackupError):
    """Raised when a restore target table exists and overwrite is off."""

    pass


class NotFoundError(BQBackupError):
    """Raised when a dataset, table or backup set does not exist."""

    pass


class RemoteOperationError(BQBackupError):
    """Raised when a warehouse call fails (transport, permission, quota)."""

    pass
