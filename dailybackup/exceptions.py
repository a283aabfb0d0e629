# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
DailyBackup Exceptions - Custom exceptions for the dailybackup package.
"""


class DailyBackupError(Exception):
    """Base exception for all DailyBackup errors."""

    def __init__(self, message: str, details: dict | None = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} | Details: {self.details}"
        return self.message


class ConfigurationError(DailyBackupError):
    """Raised when configuration is invalid."""

    pass


class BackupError(DailyBackupError):
    """Raised when creating an archive fails."""

    pass


class ArchiveNameTooLongError(BackupError):
    """Raised when a generated archive path reaches the path length limit."""

    pass


class ManifestError(DailyBackupError):
    """Raised when a manifest cannot be persisted."""

    pass


class RestoreError(DailyBackupError):
    """Raised when restore operations fail."""

    pass


class VerificationError(DailyBackupError):
    """Raised when a verification run cannot start."""

    pass


class PruneError(DailyBackupError):
    """Raised when retention pruning cannot start."""

    pass
