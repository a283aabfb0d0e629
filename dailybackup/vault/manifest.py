# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
DailyBackup Manifest - Per-day record of every archive written.

Each date directory holds one ``backup-manifest.json``:

    {
      "backupDate": "2026-01-31",
      "backupVersion": "1.0",
      "moduleVersion": "0.1.0",
      "Backups": [ {entry}, ... ]
    }

Entries are append-only: backing up the same source twice on one day adds
two entries. Updates read the whole file, append in memory and replace the
file atomically (temp file + rename). Appends for the same date directory
are serialized within a process; separate processes writing the same date
directory concurrently can still lose entries.
"""

import asyncio
import contextlib
import json
import os
import stat
import sys
import weakref
from dataclasses import dataclass, field
from datetime import datetime, UTC
from pathlib import Path
from typing import Any, Dict, List, Sequence, Tuple

import aiofiles
import structlog

from dailybackup.config import (
    HashAlgorithm,
    MANIFEST_FILENAME,
    MANIFEST_SCHEMA_VERSION,
    PathType,
)
from dailybackup.exceptions import ManifestError

logger = structlog.get_logger()

ENTRIES_KEY = "Backups"

LockTable = Dict[str, Tuple[asyncio.Lock, int]]

# Per event loop: date directory -> (lock, number of holders and waiters)
_manifest_locks: "weakref.WeakKeyDictionary[asyncio.AbstractEventLoop, LockTable]" = (
    weakref.WeakKeyDictionary()
)


def format_timestamp(value: datetime) -> str:
    """UTC ISO-8601 with millisecond precision and a Z suffix."""
    return value.astimezone(UTC).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def parse_timestamp(value: str | None) -> datetime | None:
    if not value:
        return None
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None


@dataclass
class BackupEntry:
    """One source-to-archive backup recorded in a manifest."""

    archive_name: str
    source_path: str | None
    path_type: PathType | None
    backup_created_at: str
    original_name: str | None = None
    last_write_time: str | None = None
    attributes: str | None = None
    size: int | None = None
    extension: str | None = None
    source_hash: str | None = None
    archive_hash: str | None = None
    hash_algorithm: str | None = None

    @property
    def has_hash_data(self) -> bool:
        return bool(self.source_hash or self.archive_hash)

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "archiveName": self.archive_name,
            "sourcePath": self.source_path,
            "pathType": self.path_type.value if self.path_type else None,
            "backupCreatedAt": self.backup_created_at,
        }
        optional = {
            "originalName": self.original_name,
            "lastWriteTime": self.last_write_time,
            "attributes": self.attributes,
            "size": self.size,
            "extension": self.extension,
            "sourceHash": self.source_hash,
            "archiveHash": self.archive_hash,
            "hashAlgorithm": self.hash_algorithm,
        }
        data.update({k: v for k, v in optional.items() if v is not None})
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "BackupEntry":
        path_type = data.get("pathType")
        return cls(
            archive_name=data["archiveName"],
            source_path=data.get("sourcePath"),
            path_type=PathType(path_type) if path_type else None,
            backup_created_at=data.get("backupCreatedAt", ""),
            original_name=data.get("originalName"),
            last_write_time=data.get("lastWriteTime"),
            attributes=data.get("attributes"),
            size=data.get("size"),
            extension=data.get("extension"),
            source_hash=data.get("sourceHash") or None,
            archive_hash=data.get("archiveHash") or None,
            hash_algorithm=data.get("hashAlgorithm") or None,
        )


@dataclass
class BackupManifest:
    """All entries of one date directory, in chronological order."""

    backup_date: str
    module_version: str
    backup_version: str = MANIFEST_SCHEMA_VERSION
    entries: List[BackupEntry] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "backupDate": self.backup_date,
            "backupVersion": self.backup_version,
            "moduleVersion": self.module_version,
            ENTRIES_KEY: [e.to_dict() for e in self.entries],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "BackupManifest":
        return cls(
            backup_date=data.get("backupDate", ""),
            module_version=data.get("moduleVersion", "unknown"),
            backup_version=data.get("backupVersion", ""),
            entries=[BackupEntry.from_dict(e) for e in data[ENTRIES_KEY]],
        )


def manifest_path(date_dir: Path) -> Path:
    return date_dir / MANIFEST_FILENAME


def _module_version() -> str:
    try:
        from dailybackup import __version__

        return __version__
    except ImportError:
        return "unknown"


def _is_structurally_valid(data: Any) -> bool:
    if not isinstance(data, dict):
        return False
    entries = data.get(ENTRIES_KEY)
    if not isinstance(entries, list):
        return False
    if data.get("backupVersion") != MANIFEST_SCHEMA_VERSION:
        return False
    return all(isinstance(e, dict) and e.get("archiveName") for e in entries)


async def read_manifest(date_dir: Path) -> BackupManifest | None:
    """
    Load the manifest of a date directory.

    Returns:
        The manifest, or None when it is absent. Unreadable or malformed
        manifests are reported as a warning and also yield None.
    """
    path = manifest_path(date_dir)
    if not path.exists():
        return None

    try:
        async with aiofiles.open(path, "r", encoding="utf-8") as f:
            content = await f.read()
        data = json.loads(content)
    except (OSError, UnicodeDecodeError, json.JSONDecodeError) as e:
        logger.warning("manifest_unreadable", path=str(path), error=str(e))
        return None

    if not _is_structurally_valid(data):
        logger.warning(
            "manifest_malformed",
            path=str(path),
            expected_version=MANIFEST_SCHEMA_VERSION,
        )
        return None

    try:
        return BackupManifest.from_dict(data)
    except (KeyError, TypeError, ValueError) as e:
        logger.warning("manifest_malformed", path=str(path), error=str(e))
        return None


async def _write_manifest(path: Path, manifest: BackupManifest) -> None:
    """Write the manifest atomically (temp file -> rename)."""
    temp_path = path.with_name(path.name + ".tmp")
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        async with aiofiles.open(temp_path, "w", encoding="utf-8") as f:
            await f.write(json.dumps(manifest.to_dict(), indent=2, ensure_ascii=False))
        os.replace(temp_path, path)
    except OSError as e:
        with contextlib.suppress(OSError):
            temp_path.unlink(missing_ok=True)
        raise ManifestError(
            f"Failed to write manifest: {e}",
            details={"manifest_path": str(path)},
        )


@contextlib.asynccontextmanager
async def _date_dir_lock(date_dir: Path):
    """Serialize manifest updates for one date directory on the running loop."""
    locks = _manifest_locks.setdefault(asyncio.get_running_loop(), {})
    key = str(date_dir.resolve())
    lock, users = locks.get(key, (None, 0))
    if lock is None:
        lock = asyncio.Lock()
    locks[key] = (lock, users + 1)

    try:
        async with lock:
            yield
    finally:
        lock, users = locks[key]
        if users <= 1:
            del locks[key]
        else:
            locks[key] = (lock, users - 1)


async def append_manifest_entries(
    date_dir: Path,
    entries: Sequence[BackupEntry],
    module_version: str | None = None,
) -> BackupManifest:
    """
    Append entries to a date directory's manifest in one update.

    Either every entry is persisted or none is. A missing, unreadable or
    malformed manifest is replaced by a fresh one for that date.

    Args:
        date_dir: Date directory holding the archive(s)
        entries: Entries to append, in order
        module_version: Producing tool version (defaults to this package's)

    Returns:
        The manifest as persisted

    Raises:
        ManifestError: If the manifest cannot be written
    """
    async with _date_dir_lock(date_dir):
        manifest = await read_manifest(date_dir)
        if manifest is None:
            manifest = BackupManifest(
                backup_date=date_dir.name,
                module_version=module_version or _module_version(),
            )

        manifest.entries.extend(entries)
        await _write_manifest(manifest_path(date_dir), manifest)

    logger.debug(
        "manifest_entries_appended",
        date_dir=str(date_dir),
        archive_names=[e.archive_name for e in entries],
        entry_count=len(manifest.entries),
    )
    return manifest


async def append_manifest_entry(
    date_dir: Path,
    entry: BackupEntry,
    module_version: str | None = None,
) -> BackupManifest:
    """Append one entry to a date directory's manifest."""
    return await append_manifest_entries(date_dir, [entry], module_version)


async def find_entry_by_archive_name(
    date_dir: Path,
    archive_name: str,
) -> BackupEntry | None:
    """Return the most recent entry recorded for an archive name."""
    manifest = await read_manifest(date_dir)
    if manifest is None:
        return None
    for entry in reversed(manifest.entries):
        if entry.archive_name == archive_name:
            return entry
    return None


def _describe_attributes(path: Path, st: os.stat_result) -> str:
    """Render file attributes as a comma separated list."""
    file_attributes = getattr(st, "st_file_attributes", None)
    if sys.platform == "win32" and file_attributes is not None:
        names = [
            (stat.FILE_ATTRIBUTE_READONLY, "ReadOnly"),
            (stat.FILE_ATTRIBUTE_HIDDEN, "Hidden"),
            (stat.FILE_ATTRIBUTE_SYSTEM, "System"),
            (stat.FILE_ATTRIBUTE_DIRECTORY, "Directory"),
            (stat.FILE_ATTRIBUTE_ARCHIVE, "Archive"),
        ]
        found = [label for flag, label in names if file_attributes & flag]
        return ", ".join(found) or "Normal"

    found = []
    if stat.S_ISDIR(st.st_mode):
        found.append("Directory")
    if not st.st_mode & stat.S_IWUSR:
        found.append("ReadOnly")
    if path.name.startswith("."):
        found.append("Hidden")
    if stat.S_ISLNK(os.lstat(path).st_mode):
        found.append("ReparsePoint")
    return ", ".join(found) or "Normal"


def build_entry(
    source_path: Path,
    archive_name: str,
    path_type: PathType,
    source_hash: str | None = None,
    archive_hash: str | None = None,
    hash_algorithm: HashAlgorithm | None = None,
    created_at: datetime | None = None,
) -> BackupEntry:
    """
    Build a manifest entry, copying provenance metadata from the source.

    Metadata is best-effort: if the source cannot be stat'ed, the
    provenance fields are left out. Hash fields are only recorded when both
    hashes are available.
    """
    entry = BackupEntry(
        archive_name=archive_name,
        source_path=str(source_path),
        path_type=path_type,
        backup_created_at=format_timestamp(created_at or datetime.now(UTC)),
    )

    try:
        st = source_path.stat()
        entry.original_name = source_path.name
        entry.last_write_time = format_timestamp(
            datetime.fromtimestamp(st.st_mtime, UTC)
        )
        entry.attributes = _describe_attributes(source_path, st)
        if path_type == PathType.FILE:
            entry.size = st.st_size
            entry.extension = source_path.suffix
    except OSError as e:
        logger.warning("source_metadata_unavailable", path=str(source_path), error=str(e))

    if source_hash and archive_hash and hash_algorithm is not None:
        entry.source_hash = source_hash
        entry.archive_hash = archive_hash
        entry.hash_algorithm = hash_algorithm.value

    return entry
