# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
DailyBackup - Date-partitioned ZIP backups for files and directories.

Each run writes archives into <destination>/<yyyy-MM-dd>/, records every
archive in that day's backup-manifest.json, and prunes old date
directories. Backups can be listed, verified against recorded hashes and
restored. Package name: dailybackup.
"""

__version__ = "0.1.0"

# Configuration creation (user-facing API)
from dailybackup.builder import create_config

# Core functions
from dailybackup.core import (
    choose_mode,
    initialize_backup_state,
    run_backup,
    get_metrics,
)

# Environment-based configuration
from dailybackup.env import create_config_from_env

# Read paths and maintenance
from dailybackup.backup import (
    list_backups,
    get_backup_stats,
    prune_by_count,
    prune_by_date,
    verify_backups,
    restore_backups,
)

__all__ = [
    # Version
    "__version__",
    # Configuration creation (primary user-facing APIs)
    "create_config",
    "create_config_from_env",
    # Core orchestration functions
    "choose_mode",
    "initialize_backup_state",
    "run_backup",
    "get_metrics",
    # Read paths and maintenance
    "list_backups",
    "get_backup_stats",
    "prune_by_count",
    "prune_by_date",
    "verify_backups",
    "restore_backups",
]
