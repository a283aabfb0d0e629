# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
DailyBackup Filesystem helpers - Date directory discovery and safe deletion.

Deletion is done item by item (files first, then directories bottom-up,
then the root) because some cloud-synced folders reject a recursive delete
of a non-empty tree in one call.
"""

import os
import shutil
import stat
from dataclasses import dataclass, field
from datetime import date, datetime
from pathlib import Path
from typing import List, Tuple

import structlog

from dailybackup.config import DATE_DIR_PATTERN, DATE_FORMAT

logger = structlog.get_logger()


@dataclass
class DeletionReport:
    """Outcome of a two-phase tree deletion."""

    path: str
    files_deleted: int = 0
    dirs_deleted: int = 0
    bytes_freed: int = 0
    failed: List[str] = field(default_factory=list)

    @property
    def complete(self) -> bool:
        return not self.failed


def is_date_directory_name(name: str) -> bool:
    """True for names shaped exactly like yyyy-MM-dd."""
    return bool(DATE_DIR_PATTERN.match(name))


def parse_backup_date(value: str) -> date:
    """
    Parse a yyyy-MM-dd string.

    Raises:
        ValueError: If the value is not a real calendar date in that format
    """
    if not is_date_directory_name(value):
        raise ValueError(f"not a yyyy-MM-dd date: {value!r}")
    return datetime.strptime(value, DATE_FORMAT).date()


def list_date_directories(root: Path) -> Tuple[List[Tuple[date, Path]], List[Path]]:
    """
    Find date directories directly under a backup root.

    Directories whose name is not date-shaped are ignored entirely.
    Date-shaped names that are not real dates (e.g. 2026-13-45) are returned
    separately so callers can warn about them.

    Returns:
        Tuple of (sorted [(date, path)] ascending, [unparseable paths])
    """
    dated: List[Tuple[date, Path]] = []
    unparseable: List[Path] = []

    if not root.is_dir():
        return dated, unparseable

    for child in root.iterdir():
        if not child.is_dir() or not is_date_directory_name(child.name):
            continue
        try:
            dated.append((parse_backup_date(child.name), child))
        except ValueError:
            unparseable.append(child)

    dated.sort(key=lambda item: item[0])
    return dated, unparseable


def directory_size(path: Path) -> int:
    """Total size in bytes of regular files below path."""
    total = 0
    for item in path.rglob("*"):
        try:
            if item.is_file():
                total += item.stat().st_size
        except OSError:
            continue
    return total


def _make_writable(path: str) -> None:
    try:
        mode = os.stat(path, follow_symlinks=False).st_mode
        if not mode & stat.S_IWRITE:
            os.chmod(path, mode | stat.S_IWRITE)
    except (OSError, NotImplementedError):
        # chmod on a symlink is unsupported on some platforms
        pass


def remove_tree(path: Path) -> DeletionReport:
    """
    Delete a directory tree one item at a time.

    Every directory is made writable first. Phase 1 then deletes every
    file (clearing read-only flags first), phase 2 removes the now-empty
    directories bottom-up, and finally the root.
    A failure on one item is logged and recorded; it never stops the rest.

    Args:
        path: Directory to delete

    Returns:
        DeletionReport with counts and failed items
    """
    report = DeletionReport(path=str(path))

    if not path.exists():
        return report

    # A read-only directory blocks unlinking its children
    _make_writable(str(path))
    for dirpath, dirnames, _ in os.walk(path):
        for dirname in dirnames:
            dir_path = os.path.join(dirpath, dirname)
            if not os.path.islink(dir_path):
                _make_writable(dir_path)

    walked = list(os.walk(path, topdown=False))

    for dirpath, _, filenames in walked:
        for filename in filenames:
            file_path = os.path.join(dirpath, filename)
            try:
                size = os.lstat(file_path).st_size
                _make_writable(file_path)
                os.unlink(file_path)
                report.files_deleted += 1
                report.bytes_freed += size
            except OSError as e:
                report.failed.append(file_path)
                logger.warning("prune_item_failed", path=file_path, error=str(e))

    for dirpath, dirnames, _ in walked:
        for dirname in dirnames:
            dir_path = os.path.join(dirpath, dirname)
            try:
                if os.path.islink(dir_path):
                    os.unlink(dir_path)
                else:
                    _make_writable(dir_path)
                    os.rmdir(dir_path)
                report.dirs_deleted += 1
            except OSError as e:
                report.failed.append(dir_path)
                logger.warning("prune_item_failed", path=dir_path, error=str(e))

    try:
        _make_writable(str(path))
        os.rmdir(path)
        report.dirs_deleted += 1
    except OSError as e:
        report.failed.append(str(path))
        logger.warning("prune_item_failed", path=str(path), error=str(e))

    return report


def merge_tree(source: Path, destination: Path) -> int:
    """
    Copy every file below source into destination, keeping relative paths.

    Existing files at the same relative path are overwritten; other files
    already in destination are left alone.

    Returns:
        Number of files copied
    """
    copied = 0
    for dirpath, _, filenames in os.walk(source):
        relative = Path(dirpath).relative_to(source)
        target_dir = destination / relative
        target_dir.mkdir(parents=True, exist_ok=True)
        for filename in filenames:
            target = target_dir / filename
            if target.exists():
                _make_writable(str(target))
            shutil.copy2(Path(dirpath) / filename, target)
            copied += 1
    return copied
