# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
DailyBackup Paths - Source classification and archive naming.

Archive names are derived from the full source path so that two sources
with the same leaf name never share an archive, e.g.

    /home/me/notes/todo.txt  ->  home__me__notes__todo.txt.zip
    /home/me/notes           ->  home__me__notes.zip
"""

import ntpath
import os
from dataclasses import dataclass
from pathlib import Path

import structlog
from ulid import ULID

from dailybackup.config import ARCHIVE_EXTENSION, NAME_DELIMITER, PathType
from dailybackup.exceptions import ArchiveNameTooLongError, BackupError

logger = structlog.get_logger()

DEFAULT_MAX_PATH_LENGTH = 255


@dataclass(frozen=True)
class ArchiveName:
    """Outcome of archive name generation."""

    base_path: Path  # Without the .zip extension
    intended_name: str
    unique_suffix: str | None = None

    @property
    def archive_path(self) -> Path:
        return self.base_path.with_name(self.base_path.name + ARCHIVE_EXTENSION)

    @property
    def renamed(self) -> bool:
        return self.unique_suffix is not None


def classify_path(path: Path | str) -> PathType:
    """
    Decide whether a path is a file or a directory.

    Existing paths are classified by what they are. Paths that do not exist
    are treated as files when the last segment carries an extension and as
    directories otherwise.
    """
    p = Path(path)
    if p.is_file():
        return PathType.FILE
    if p.is_dir():
        return PathType.DIRECTORY
    _, extension = os.path.splitext(p.name)
    return PathType.FILE if extension else PathType.DIRECTORY


def _strip_drive(path: str) -> str:
    """Remove drive/UNC prefixes and leading separators."""
    _, rest = ntpath.splitdrive(path)
    return rest.lstrip("/\\")


def _segments(path: str) -> list[str]:
    return [s for s in path.replace("\\", "/").split("/") if s]


def flatten_source_name(source_path: Path | str, path_type: PathType) -> str:
    """
    Turn a source path into a single file-system-safe name segment.

    Args:
        source_path: Absolute source path
        path_type: Classification of the source

    Returns:
        Name without archive extension
    """
    relative = _strip_drive(str(source_path))

    if path_type == PathType.FILE:
        parts = _segments(relative)
        if not parts:
            return ""
        leaf = parts[-1]
        parent = NAME_DELIMITER.join(parts[:-1])
        return f"{parent}{NAME_DELIMITER}{leaf}" if parent else leaf

    name = relative.replace("\\", NAME_DELIMITER).replace("/", NAME_DELIMITER)
    while name.startswith(NAME_DELIMITER):
        name = name[len(NAME_DELIMITER):]
    while name.endswith(NAME_DELIMITER):
        name = name[: -len(NAME_DELIMITER)]
    return name


def generate_archive_base(
    source_path: Path | str,
    destination_dir: Path,
    path_type: PathType | None = None,
    max_path_length: int = DEFAULT_MAX_PATH_LENGTH,
) -> ArchiveName:
    """
    Generate a collision-free archive base path inside a date directory.

    If ``<candidate>.zip`` already exists, a random ULID suffix is appended
    and the rename is reported as a warning.

    Args:
        source_path: Absolute source path
        destination_dir: Date directory receiving the archive
        path_type: Classification (computed when omitted)
        max_path_length: Generated paths at or above this length are rejected

    Returns:
        ArchiveName describing the chosen path

    Raises:
        ArchiveNameTooLongError: If the candidate path is too long
        BackupError: If no name can be derived from the source
    """
    if path_type is None:
        path_type = classify_path(source_path)

    intended = flatten_source_name(source_path, path_type)
    if not intended:
        raise BackupError(
            f"Cannot derive an archive name from {source_path}",
            details={"source_path": str(source_path)},
        )

    candidate = destination_dir / intended
    suffix = None

    if (destination_dir / f"{intended}{ARCHIVE_EXTENSION}").exists():
        suffix = str(ULID())
        candidate = destination_dir / f"{intended}{NAME_DELIMITER}{suffix}"
        logger.warning(
            "archive_name_collision",
            intended_name=f"{intended}{ARCHIVE_EXTENSION}",
            unique_suffix=suffix,
            archive_name=f"{candidate.name}{ARCHIVE_EXTENSION}",
        )

    if len(str(candidate)) >= max_path_length:
        raise ArchiveNameTooLongError(
            f"Archive path is too long ({len(str(candidate))} >= {max_path_length})",
            details={"source_path": str(source_path), "archive_path": str(candidate)},
        )

    return ArchiveName(base_path=candidate, intended_name=intended, unique_suffix=suffix)
