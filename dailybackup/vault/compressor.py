# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
DailyBackup Compressor - ZIP archive primitive.

Each source lands at the archive root under its own base name:

    a.txt         ->  a.txt
    /srv/photos   ->  photos/, photos/2024/img.jpg, ...

Archives are written to a temporary file and renamed into place, so a
partially written archive never carries the final name. ZIP work is
CPU/disk bound and runs in a small thread pool.
"""

import asyncio
import os
import zipfile
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path, PurePosixPath
from typing import List, Sequence

import structlog

from dailybackup.exceptions import BackupError, RestoreError

logger = structlog.get_logger()

# Thread pool for blocking ZIP operations
_executor = ThreadPoolExecutor(max_workers=2)

DEFAULT_COMPRESSION = zipfile.ZIP_DEFLATED
DEFAULT_COMPRESS_LEVEL = 6


async def compress_paths(
    sources: Sequence[Path],
    archive_path: Path,
    compress_level: int = DEFAULT_COMPRESS_LEVEL,
) -> int:
    """
    Create a ZIP archive containing every source.

    Args:
        sources: Files and/or directories to include
        archive_path: Final archive path
        compress_level: Deflate level (0-9)

    Returns:
        Size of the created archive in bytes

    Raises:
        BackupError: If any source cannot be archived (no archive is left behind)
    """
    loop = asyncio.get_running_loop()
    try:
        return await loop.run_in_executor(
            _executor,
            _compress_paths_sync,
            list(sources),
            archive_path,
            compress_level,
        )
    except BackupError:
        raise
    except Exception as e:
        raise BackupError(
            f"Failed to create archive: {e}",
            details={
                "archive_path": str(archive_path),
                "sources": [str(s) for s in sources],
            },
        )


def _compress_paths_sync(
    sources: List[Path],
    archive_path: Path,
    compress_level: int,
) -> int:
    """Synchronous archive creation."""
    archive_path.parent.mkdir(parents=True, exist_ok=True)
    temp_path = archive_path.with_name(archive_path.name + ".tmp")

    try:
        with zipfile.ZipFile(
            temp_path,
            "w",
            compression=DEFAULT_COMPRESSION,
            compresslevel=compress_level,
        ) as zf:
            for source in sources:
                _add_source(zf, source)

        # Rename to final path (atomic on most filesystems)
        os.replace(temp_path, archive_path)
    except BaseException:
        temp_path.unlink(missing_ok=True)
        raise

    return archive_path.stat().st_size


def _add_source(zf: zipfile.ZipFile, source: Path) -> None:
    if source.is_file():
        zf.write(source, source.name)
        return

    if not source.is_dir():
        raise BackupError(
            f"Source does not exist: {source}",
            details={"source_path": str(source)},
        )

    root_name = source.name or "root"
    zf.write(source, f"{root_name}/")
    for dirpath, dirnames, filenames in os.walk(source):
        dirnames.sort()
        base = Path(dirpath)
        relative_dir = base.relative_to(source)
        for dirname in dirnames:
            arcname = PurePosixPath(root_name, *relative_dir.parts, dirname)
            zf.write(base / dirname, f"{arcname}/")
        for filename in sorted(filenames):
            arcname = PurePosixPath(root_name, *relative_dir.parts, filename)
            zf.write(base / filename, str(arcname))


def member_root(name: str) -> str:
    """Top-level path component of an archive member."""
    return PurePosixPath(name).parts[0]


def _safe_members(zf: zipfile.ZipFile, archive_path: Path) -> List[zipfile.ZipInfo]:
    """Reject absolute paths and parent traversal."""
    members = zf.infolist()
    for member in members:
        name = member.filename
        if name.startswith(("/", "\\")) or ".." in PurePosixPath(name).parts:
            raise RestoreError(
                f"Unsafe path in archive: {name}",
                details={"archive_path": str(archive_path)},
            )
    return members


async def list_archive_members(archive_path: Path) -> List[str]:
    """
    List the file (non-directory) member names of an archive.

    Raises:
        RestoreError: If the archive is unreadable or contains unsafe paths
    """
    loop = asyncio.get_running_loop()
    try:
        return await loop.run_in_executor(_executor, _list_archive_members_sync, archive_path)
    except RestoreError:
        raise
    except (OSError, zipfile.BadZipFile) as e:
        raise RestoreError(
            f"Failed to read archive: {e}",
            details={"archive_path": str(archive_path)},
        )


def _list_archive_members_sync(archive_path: Path) -> List[str]:
    with zipfile.ZipFile(archive_path, "r") as zf:
        return [m.filename for m in _safe_members(zf, archive_path) if not m.is_dir()]


async def extract_archive(
    archive_path: Path,
    destination: Path,
    root_name: str | None = None,
) -> int:
    """
    Extract an archive into a directory.

    Args:
        archive_path: ZIP file
        destination: Directory to extract to (created if missing)
        root_name: Only extract members below this top-level name
            (default: everything)

    Returns:
        Number of files extracted

    Raises:
        RestoreError: If the archive is unreadable or contains unsafe paths
    """
    loop = asyncio.get_running_loop()
    try:
        return await loop.run_in_executor(
            _executor, _extract_archive_sync, archive_path, destination, root_name
        )
    except RestoreError:
        raise
    except Exception as e:
        raise RestoreError(
            f"Failed to extract archive: {e}",
            details={"archive_path": str(archive_path), "destination": str(destination)},
        )


def _extract_archive_sync(
    archive_path: Path,
    destination: Path,
    root_name: str | None,
) -> int:
    """Synchronous extraction."""
    destination.mkdir(parents=True, exist_ok=True)
    count = 0
    with zipfile.ZipFile(archive_path, "r") as zf:
        for member in _safe_members(zf, archive_path):
            if root_name is not None and member_root(member.filename) != root_name:
                continue
            zf.extract(member, destination)
            if not member.is_dir():
                count += 1
    return count
