# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Backup Engine - Archive writing, retention, verification and restore.
"""

from dailybackup.backup.manager import (
    write_individual_archive,
    write_combined_archive,
    list_backups,
    get_backup_stats,
    entry_matches,
    ArchiveResult,
    BackupListing,
)

from dailybackup.backup.retention import (
    prune_by_count,
    prune_by_date,
    PruneResult,
)

from dailybackup.backup.verify import (
    verify_backups,
    summarize_verification,
    VerificationState,
    VerificationResult,
    VerificationSummary,
)

from dailybackup.backup.restore import (
    restore_backups,
    summarize_restore,
    RestoreResult,
    RestoreSummary,
)

__all__ = [
    # Manager
    "write_individual_archive",
    "write_combined_archive",
    "list_backups",
    "get_backup_stats",
    "entry_matches",
    "ArchiveResult",
    "BackupListing",
    # Retention
    "prune_by_count",
    "prune_by_date",
    "PruneResult",
    # Verify
    "verify_backups",
    "summarize_verification",
    "VerificationState",
    "VerificationResult",
    "VerificationSummary",
    # Restore
    "restore_backups",
    "summarize_restore",
    "RestoreResult",
    "RestoreSummary",
]
