# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
DailyBackup Retention - Pruning of date directories.

Only directories directly under the backup root whose name is exactly
``yyyy-MM-dd`` are considered. Everything else is never touched.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import List

import structlog

from dailybackup.errors import explain_invalid_date, explain_missing_backup_root
from dailybackup.exceptions import PruneError
from dailybackup.fs import (
    directory_size,
    list_date_directories,
    parse_backup_date,
    remove_tree,
)

logger = structlog.get_logger()


@dataclass
class PruneResult:
    """Result of a pruning call."""

    backup_root: str
    dry_run: bool
    deleted_dates: List[str] = field(default_factory=list)
    kept_dates: List[str] = field(default_factory=list)
    skipped: List[str] = field(default_factory=list)
    failed_dates: List[str] = field(default_factory=list)
    failed_items: List[str] = field(default_factory=list)
    files_deleted: int = 0
    bytes_freed: int = 0

    @property
    def deleted_count(self) -> int:
        return len(self.deleted_dates)


def _require_root(backup_root: Path) -> None:
    if not backup_root.is_dir():
        raise PruneError(
            explain_missing_backup_root(backup_root),
            details={"backup_root": str(backup_root)},
        )


def _delete_date_dir(date_dir: Path, result: PruneResult) -> None:
    if result.dry_run:
        result.files_deleted += sum(1 for p in date_dir.rglob("*") if p.is_file())
        result.bytes_freed += directory_size(date_dir)
        result.deleted_dates.append(date_dir.name)
        logger.info("date_directory_would_prune", path=str(date_dir))
        return

    report = remove_tree(date_dir)
    result.files_deleted += report.files_deleted
    result.bytes_freed += report.bytes_freed
    result.failed_items.extend(report.failed)
    if not report.complete:
        result.failed_dates.append(date_dir.name)
        logger.warning(
            "date_directory_prune_incomplete",
            path=str(date_dir),
            failed_items=len(report.failed),
        )
        return

    result.deleted_dates.append(date_dir.name)
    logger.info(
        "date_directory_pruned",
        path=str(date_dir),
        files_deleted=report.files_deleted,
        bytes_freed=report.bytes_freed,
    )


async def prune_by_count(
    backup_root: Path,
    keep: int,
    dry_run: bool = False,
) -> PruneResult:
    """
    Keep the `keep` most recent date directories and delete the rest.

    Args:
        backup_root: Backup root directory
        keep: Number of date directories to retain (0 deletes all)
        dry_run: If True, only report what would be deleted

    Returns:
        PruneResult with deleted and kept dates

    Raises:
        ValueError: If keep is negative
        PruneError: If the backup root does not exist
    """
    if keep < 0:
        raise ValueError("keep must be >= 0")

    _require_root(backup_root)

    dated, unparseable = list_date_directories(backup_root)
    result = PruneResult(backup_root=str(backup_root), dry_run=dry_run)

    for path in unparseable:
        logger.warning("date_directory_unparseable", path=str(path))
        result.skipped.append(path.name)

    excess = len(dated) - keep
    to_delete = dated[:excess] if excess > 0 else []
    result.kept_dates = [path.name for _, path in dated[len(to_delete):]]

    for _, date_dir in to_delete:
        _delete_date_dir(date_dir, result)

    logger.info(
        "backup_pruning_complete",
        backup_root=str(backup_root),
        keep=keep,
        deleted=result.deleted_count,
        kept=len(result.kept_dates),
        failed_dates=len(result.failed_dates),
        failed_items=len(result.failed_items),
        dry_run=dry_run,
    )

    return result


async def prune_by_date(
    backup_root: Path,
    backup_date: str,
    dry_run: bool = False,
) -> PruneResult:
    """
    Delete the one date directory for a given date.

    A date with no directory is reported as a warning, not an error.

    Raises:
        PruneError: If the backup root does not exist or the date is invalid
    """
    _require_root(backup_root)

    try:
        parse_backup_date(backup_date)
    except ValueError:
        raise PruneError(explain_invalid_date(backup_date))

    result = PruneResult(backup_root=str(backup_root), dry_run=dry_run)
    date_dir = backup_root / backup_date

    if not date_dir.is_dir():
        logger.warning("date_directory_not_found", path=str(date_dir))
        return result

    _delete_date_dir(date_dir, result)
    return result
