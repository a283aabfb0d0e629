# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
DailyBackup Backup Manager - Archive writing and backup listing.

This module turns sources into ZIP archives inside a date directory and
records one manifest entry per source. Individual mode writes one archive
per source; combined mode writes a single archive for several sources.
"""

import contextlib
import fnmatch
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import List, Sequence

import structlog
from ulid import ULID

from dailybackup.config import (
    ARCHIVE_EXTENSION,
    HashAlgorithm,
    NAME_DELIMITER,
)
from dailybackup.errors import explain_invalid_date
from dailybackup.exceptions import BackupError, DailyBackupError, ManifestError
from dailybackup.fs import list_date_directories, parse_backup_date
from dailybackup.paths import classify_path, generate_archive_base
from dailybackup.vault.compressor import compress_paths
from dailybackup.vault.hashing import compute_hash
from dailybackup.vault.manifest import (
    BackupEntry,
    append_manifest_entries,
    append_manifest_entry,
    build_entry,
    read_manifest,
)

logger = structlog.get_logger()

COMBINED_PREFIX = "combined_backup"


@dataclass
class ArchiveResult:
    """Result of writing (or simulating) one archive."""

    archive_path: Path
    sources: List[str]
    dry_run: bool
    entries: List[BackupEntry] = field(default_factory=list)
    size_bytes: int = 0
    renamed_from: str | None = None


@dataclass
class BackupListing:
    """One manifest entry together with where its archive lives."""

    backup_date: str
    archive_path: Path
    entry: BackupEntry

    @property
    def archive_exists(self) -> bool:
        return self.archive_path.is_file()


def _discard_archive(archive_path: Path) -> None:
    """Remove an archive whose manifest entry could not be recorded."""
    with contextlib.suppress(OSError):
        archive_path.unlink(missing_ok=True)
    logger.warning("archive_discarded", archive_path=str(archive_path))


async def _hash_pair(
    source: Path,
    archive_path: Path,
    algorithm: HashAlgorithm,
) -> tuple[str | None, str | None]:
    source_hash = await compute_hash(source, algorithm)
    archive_hash = await compute_hash(archive_path, algorithm)
    if source_hash is None or archive_hash is None:
        logger.warning(
            "hash_unavailable",
            source_path=str(source),
            archive_path=str(archive_path),
        )
    return source_hash, archive_hash


async def write_individual_archive(
    source: Path,
    date_dir: Path,
    *,
    hash_enabled: bool = True,
    hash_algorithm: HashAlgorithm = HashAlgorithm.SHA256,
    dry_run: bool = False,
    max_path_length: int = 255,
) -> ArchiveResult:
    """
    Archive a single file or directory and record it in the manifest.

    Args:
        source: Absolute path of the file or directory
        date_dir: Date directory receiving the archive
        hash_enabled: Record source and archive hashes
        hash_algorithm: Digest for both hashes
        dry_run: Only report what would be written
        max_path_length: Limit for the generated archive path

    Returns:
        ArchiveResult describing the archive

    Raises:
        ArchiveNameTooLongError: If the generated path is too long
        BackupError: If the source is missing or compression fails
        ManifestError: If the entry cannot be recorded (the archive is removed)
    """
    if not source.exists():
        raise BackupError(
            f"Source does not exist: {source}",
            details={"source_path": str(source)},
        )

    path_type = classify_path(source)
    name = generate_archive_base(source, date_dir, path_type, max_path_length)
    archive_path = name.archive_path
    renamed_from = (
        f"{name.intended_name}{ARCHIVE_EXTENSION}" if name.renamed else None
    )

    if dry_run:
        logger.info(
            "archive_would_create",
            source_path=str(source),
            archive_path=str(archive_path),
            path_type=path_type.value,
        )
        return ArchiveResult(
            archive_path=archive_path,
            sources=[str(source)],
            dry_run=True,
            renamed_from=renamed_from,
        )

    size = await compress_paths([source], archive_path)

    source_hash = archive_hash = None
    if hash_enabled:
        source_hash, archive_hash = await _hash_pair(source, archive_path, hash_algorithm)

    entry = build_entry(
        source,
        archive_path.name,
        path_type,
        source_hash=source_hash,
        archive_hash=archive_hash,
        hash_algorithm=hash_algorithm if hash_enabled else None,
    )
    try:
        await append_manifest_entry(date_dir, entry)
    except ManifestError:
        _discard_archive(archive_path)
        raise

    logger.info(
        "archive_created",
        source_path=str(source),
        archive_path=str(archive_path),
        size=size,
        hashed=entry.has_hash_data,
    )

    return ArchiveResult(
        archive_path=archive_path,
        sources=[str(source)],
        dry_run=False,
        entries=[entry],
        size_bytes=size,
        renamed_from=renamed_from,
    )


def combined_archive_path(date_dir: Path, now: datetime | None = None) -> Path:
    """Time-of-day based name for a combined archive."""
    now = now or datetime.now()
    base = f"{COMBINED_PREFIX}_{now:%H%M%S}"
    path = date_dir / f"{base}{ARCHIVE_EXTENSION}"
    if path.exists():
        path = date_dir / f"{base}{NAME_DELIMITER}{ULID()}{ARCHIVE_EXTENSION}"
    return path


async def write_combined_archive(
    sources: Sequence[Path],
    date_dir: Path,
    *,
    hash_enabled: bool = True,
    hash_algorithm: HashAlgorithm = HashAlgorithm.SHA256,
    dry_run: bool = False,
) -> ArchiveResult:
    """
    Archive several sources into one ZIP and record one entry per source.

    Each source appears at the archive root under its base name. Any
    failure aborts the whole archive; no partial archive or entry is kept.

    Raises:
        BackupError: If a source is missing, two sources share a base name,
            or compression fails
        ManifestError: If the entries cannot be recorded (the archive is removed)
    """
    sources = list(sources)
    if not sources:
        raise BackupError("No sources given for combined archive")

    missing = [str(s) for s in sources if not s.exists()]
    if missing:
        raise BackupError(
            "Sources do not exist",
            details={"missing": missing},
        )

    names = [s.name for s in sources]
    duplicates = sorted({n for n in names if names.count(n) > 1})
    if duplicates:
        raise BackupError(
            "Sources share a base name and cannot be combined",
            details={"duplicates": duplicates},
        )

    archive_path = combined_archive_path(date_dir)

    if dry_run:
        logger.info(
            "archive_would_create",
            archive_path=str(archive_path),
            source_count=len(sources),
            combined=True,
        )
        return ArchiveResult(
            archive_path=archive_path,
            sources=[str(s) for s in sources],
            dry_run=True,
        )

    size = await compress_paths(sources, archive_path)

    archive_hash = None
    if hash_enabled:
        archive_hash = await compute_hash(archive_path, hash_algorithm)

    entries: List[BackupEntry] = []
    for source in sources:
        source_hash = None
        if hash_enabled:
            source_hash = await compute_hash(source, hash_algorithm)
            if source_hash is None or archive_hash is None:
                logger.warning(
                    "hash_unavailable",
                    source_path=str(source),
                    archive_path=str(archive_path),
                )

        entry = build_entry(
            source,
            archive_path.name,
            classify_path(source),
            source_hash=source_hash,
            archive_hash=archive_hash,
            hash_algorithm=hash_algorithm if hash_enabled else None,
        )
        entries.append(entry)

    try:
        await append_manifest_entries(date_dir, entries)
    except ManifestError:
        _discard_archive(archive_path)
        raise

    logger.info(
        "combined_archive_created",
        archive_path=str(archive_path),
        source_count=len(sources),
        size=size,
    )

    return ArchiveResult(
        archive_path=archive_path,
        sources=[str(s) for s in sources],
        dry_run=False,
        entries=entries,
        size_bytes=size,
    )


async def list_backups(
    backup_root: Path,
    backup_date: str | None = None,
    name_pattern: str | None = None,
) -> List[BackupListing]:
    """
    List manifest entries, oldest date first.

    Args:
        backup_root: Backup root directory
        backup_date: Restrict to one yyyy-MM-dd date
        name_pattern: Glob on the archive name

    Returns:
        Listings in manifest order within each date
    """
    if backup_date is not None:
        try:
            parse_backup_date(backup_date)
        except ValueError:
            raise DailyBackupError(explain_invalid_date(backup_date))
        date_dirs = [backup_root / backup_date]
    else:
        dated, _ = list_date_directories(backup_root)
        date_dirs = [path for _, path in dated]

    listings: List[BackupListing] = []
    for date_dir in date_dirs:
        manifest = await read_manifest(date_dir)
        if manifest is None:
            continue
        for entry in manifest.entries:
            if not entry_matches(entry, name_pattern):
                continue
            listings.append(
                BackupListing(
                    backup_date=date_dir.name,
                    archive_path=date_dir / entry.archive_name,
                    entry=entry,
                )
            )

    return listings


async def get_backup_stats(backup_root: Path) -> dict:
    """
    Get statistics about backup storage.

    Args:
        backup_root: Backup root directory

    Returns:
        Dict with backup statistics
    """
    stats = {
        "date_directories": 0,
        "archive_files": 0,
        "archive_bytes": 0,
        "manifest_entries": 0,
        "oldest_date": None,
        "newest_date": None,
    }

    dated, _ = list_date_directories(backup_root)
    stats["date_directories"] = len(dated)

    if dated:
        stats["oldest_date"] = dated[0][1].name
        stats["newest_date"] = dated[-1][1].name

    for _, date_dir in dated:
        for archive in date_dir.glob(f"*{ARCHIVE_EXTENSION}"):
            stats["archive_files"] += 1
            stats["archive_bytes"] += archive.stat().st_size

        manifest = await read_manifest(date_dir)
        if manifest is not None:
            stats["manifest_entries"] += len(manifest.entries)

    return stats


def entry_matches(entry: BackupEntry, name_pattern: str | None) -> bool:
    """Case-insensitive glob match on the archive name, with or without .zip."""
    if not name_pattern:
        return True
    pattern = name_pattern.lower()
    name = entry.archive_name.lower()
    stem = name[: -len(ARCHIVE_EXTENSION)] if name.endswith(ARCHIVE_EXTENSION) else name
    return fnmatch.fnmatchcase(name, pattern) or fnmatch.fnmatchcase(stem, pattern)
