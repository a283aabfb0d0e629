# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Human-friendly error message helpers for DailyBackup.

These helpers centralize wording for common configuration errors so that
all modules present consistent, actionable messages.
"""


def explain_missing_destination_env() -> str:
    """
    Explain that the backup destination environment variable is missing.
    """

    return (
        "Backup destination is not configured. "
        "Set the DAILYBACKUP_DESTINATION environment variable or pass "
        "destination=... to create_config()."
    )


def explain_invalid_keep_env(value: str | None) -> str:
    """
    Explain that DAILYBACKUP_KEEP is invalid.
    """

    return (
        f"Invalid DAILYBACKUP_KEEP value: {value!r}. "
        "It must be a non-negative integer number of date directories, "
        "or -1 / 'unlimited' to disable pruning."
    )


def explain_invalid_mode_env(value: str | None) -> str:
    """
    Explain that DAILYBACKUP_MODE is invalid.
    """

    return (
        f"Invalid DAILYBACKUP_MODE value: {value!r}. "
        "Expected one of: 'auto', 'individual', or 'combined'."
    )


def explain_invalid_hash_algorithm_env(value: str | None) -> str:
    """
    Explain that DAILYBACKUP_HASH_ALGORITHM is invalid.
    """

    return (
        f"Invalid DAILYBACKUP_HASH_ALGORITHM value: {value!r}. "
        "Expected one of: 'SHA256', 'SHA1', 'SHA384', 'SHA512', or 'MD5'."
    )


def explain_invalid_date(value: str | None) -> str:
    """
    Explain that a backup date argument does not use the yyyy-MM-dd format.
    """

    return (
        f"Invalid backup date: {value!r}. "
        "Dates must use the yyyy-MM-dd format, e.g. '2026-01-31'."
    )


def explain_missing_backup_root(path: object) -> str:
    """
    Explain that the backup root directory does not exist.
    """

    return (
        f"Backup root does not exist: {path}. "
        "Point to the destination directory used when the backups were created."
    )
