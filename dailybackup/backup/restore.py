# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
DailyBackup Restore - Extract archives back onto the filesystem.

Entries are looked up in the manifest of one date directory (the most
recent one unless a date is given). Each entry is restored either to an
explicit destination or, with ``use_original_paths``, back to where the
source lived. When a date directory has no usable manifest, its ``*.zip``
files are restored as anonymous entries, which requires an explicit
destination.
"""

import asyncio
import os
import tempfile
from dataclasses import dataclass
from datetime import datetime, UTC
from pathlib import Path
from typing import List, Tuple

import structlog

from dailybackup.backup.manager import entry_matches
from dailybackup.config import ARCHIVE_EXTENSION, PathType
from dailybackup.errors import explain_invalid_date, explain_missing_backup_root
from dailybackup.exceptions import DailyBackupError, RestoreError
from dailybackup.fs import (
    list_date_directories,
    merge_tree,
    parse_backup_date,
    remove_tree,
)
from dailybackup.vault.compressor import (
    extract_archive,
    list_archive_members,
    member_root,
)
from dailybackup.vault.manifest import BackupEntry, parse_timestamp, read_manifest

logger = structlog.get_logger()


@dataclass
class RestoreResult:
    """Result of restoring (or simulating the restore of) one entry."""

    success: bool
    archive_path: str
    destination: str | None
    backup_date: str
    message: str
    dry_run: bool
    entry: BackupEntry | None = None
    files_restored: int = 0


@dataclass
class RestoreSummary:
    total: int = 0
    succeeded: int = 0
    failed: int = 0


def _resolve_date_dir(backup_root: Path, backup_date: str | None) -> Path:
    if backup_date is not None:
        try:
            parse_backup_date(backup_date)
        except ValueError:
            raise RestoreError(explain_invalid_date(backup_date))
        date_dir = backup_root / backup_date
        if not date_dir.is_dir():
            raise RestoreError(
                f"No backups found for {backup_date}",
                details={"date_dir": str(date_dir)},
            )
        return date_dir

    dated, _ = list_date_directories(backup_root)
    if not dated:
        raise RestoreError(
            "No backup date directories found",
            details={"backup_root": str(backup_root)},
        )
    return dated[-1][1]


async def _load_entries(date_dir: Path) -> List[BackupEntry]:
    manifest = await read_manifest(date_dir)
    if manifest is not None:
        return manifest.entries

    archives = sorted(date_dir.glob(f"*{ARCHIVE_EXTENSION}"))
    logger.warning(
        "manifest_missing_using_archives",
        date_dir=str(date_dir),
        archive_count=len(archives),
    )
    return [
        BackupEntry(
            archive_name=archive.name,
            source_path=None,
            path_type=None,
            backup_created_at="",
        )
        for archive in archives
    ]


def _source_root_name(entry: BackupEntry) -> str | None:
    """Top-level name this entry's source has inside its archive."""
    if not entry.source_path:
        return None
    return Path(entry.source_path).name or "root"


def _resolve_destination(
    entry: BackupEntry,
    destination: Path | None,
    use_original_paths: bool,
) -> Tuple[Path, Path] | None:
    """
    Work out where to extract an entry.

    Returns:
        (extract_root, reported_destination), or None if unresolvable
    """
    if use_original_paths and entry.source_path:
        source = Path(entry.source_path)
        if entry.path_type == PathType.DIRECTORY:
            return source.parent, source
        return source.parent, source.parent

    if destination is not None:
        return destination, destination

    return None


def _apply_last_write_time(entry: BackupEntry, extract_root: Path) -> None:
    if entry.path_type != PathType.FILE or not entry.last_write_time:
        return

    name = _source_root_name(entry) or entry.original_name
    when = parse_timestamp(entry.last_write_time)
    if not name or when is None:
        return

    target = extract_root / name
    try:
        ts = when.timestamp()
        os.utime(target, (ts, ts))
    except OSError as e:
        logger.warning("restore_timestamp_failed", path=str(target), error=str(e))


async def _restore_entry(
    date_dir: Path,
    entry: BackupEntry,
    destination: Path | None,
    use_original_paths: bool,
    preserve_structure: bool,
    force: bool,
    dry_run: bool,
) -> RestoreResult:
    archive_path = date_dir / entry.archive_name
    result = RestoreResult(
        success=False,
        archive_path=str(archive_path),
        destination=None,
        backup_date=date_dir.name,
        message="",
        dry_run=dry_run,
        entry=entry,
    )

    if not archive_path.is_file():
        result.message = "Archive not found"
        return result

    resolved = _resolve_destination(entry, destination, use_original_paths)
    if resolved is None:
        result.message = "Cannot determine destination"
        return result

    extract_root, reported = resolved
    result.destination = str(reported)

    root_name = _source_root_name(entry)
    members = [
        m for m in await list_archive_members(archive_path)
        if root_name is None or member_root(m) == root_name
    ]

    conflicts = [m for m in members if (extract_root / m).exists()]
    if conflicts and not force:
        result.message = (
            f"{len(conflicts)} file(s) already exist at {reported}; use force to overwrite"
        )
        return result

    if dry_run:
        result.success = True
        result.files_restored = len(members)
        result.message = f"Would restore {entry.archive_name} to {reported}"
        return result

    if preserve_structure:
        result.files_restored = await extract_archive(archive_path, extract_root, root_name)
    else:
        scratch = Path(tempfile.mkdtemp(prefix="dailybackup-restore-"))
        try:
            await extract_archive(archive_path, scratch, root_name)
            loop = asyncio.get_running_loop()
            result.files_restored = await loop.run_in_executor(
                None, merge_tree, scratch, extract_root
            )
        finally:
            remove_tree(scratch)

    _apply_last_write_time(entry, extract_root)

    result.success = True
    result.message = f"Restored {entry.archive_name} to {reported}"
    return result


async def restore_backups(
    backup_root: Path,
    destination: Path | None = None,
    backup_date: str | None = None,
    name_pattern: str | None = None,
    use_original_paths: bool = False,
    preserve_structure: bool = False,
    force: bool = False,
    dry_run: bool = False,
) -> List[RestoreResult]:
    """
    Restore backups from one date directory.

    This is the main entry point for restores. Every matching entry yields
    a RestoreResult, including failed and simulated ones.

    Args:
        backup_root: Backup root directory
        destination: Directory to restore into
        backup_date: yyyy-MM-dd date to restore (default: most recent)
        name_pattern: Glob on the archive name
        use_original_paths: Restore to the recorded source locations
        preserve_structure: Extract directly instead of via a scratch directory
        force: Overwrite files that already exist
        dry_run: If True, only report what would be restored

    Returns:
        List of RestoreResult

    Raises:
        RestoreError: If the backup root or date directory cannot be used,
            or no destination is given and original paths are not requested
    """
    start_time = datetime.now(UTC)

    if not backup_root.is_dir():
        raise RestoreError(
            explain_missing_backup_root(backup_root),
            details={"backup_root": str(backup_root)},
        )

    if destination is None and not use_original_paths:
        raise RestoreError(
            "A destination is required unless restoring to original paths",
        )

    date_dir = _resolve_date_dir(backup_root, backup_date)

    logger.info(
        "restore_started",
        date_dir=str(date_dir),
        destination=str(destination) if destination else None,
        use_original_paths=use_original_paths,
        dry_run=dry_run,
    )

    entries = [e for e in await _load_entries(date_dir) if entry_matches(e, name_pattern)]
    if not entries:
        logger.warning(
            "no_matching_backups",
            date_dir=str(date_dir),
            name_pattern=name_pattern,
        )
        return []

    results: List[RestoreResult] = []

    for entry in entries:
        try:
            result = await _restore_entry(
                date_dir,
                entry,
                destination,
                use_original_paths,
                preserve_structure,
                force,
                dry_run,
            )
        except (DailyBackupError, OSError) as e:
            result = RestoreResult(
                success=False,
                archive_path=str(date_dir / entry.archive_name),
                destination=None,
                backup_date=date_dir.name,
                message=str(e),
                dry_run=dry_run,
                entry=entry,
            )

        if result.success:
            logger.info(
                "backup_restored" if not dry_run else "backup_would_restore",
                archive_name=entry.archive_name,
                destination=result.destination,
                files=result.files_restored,
            )
        else:
            logger.error(
                "restore_entry_failed",
                archive_name=entry.archive_name,
                error=result.message,
            )
        results.append(result)

    summary = summarize_restore(results)
    duration = (datetime.now(UTC) - start_time).total_seconds()

    logger.info(
        "restore_completed",
        date_dir=str(date_dir),
        restored=summary.succeeded,
        failed=summary.failed,
        duration=duration,
        dry_run=dry_run,
    )

    return results


def summarize_restore(results: List[RestoreResult]) -> RestoreSummary:
    succeeded = sum(1 for r in results if r.success)
    return RestoreSummary(
        total=len(results),
        succeeded=succeeded,
        failed=len(results) - succeeded,
    )
