# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
DailyBackup Verification - Recompute hashes and compare against manifests.

An entry without hash data is reported as NO_HASH_DATA, which is distinct
from a failed check. Source verification is optional and never changes the
archive verdict of an entry.
"""

from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import List

import structlog

from dailybackup.backup.manager import entry_matches
from dailybackup.config import HashAlgorithm
from dailybackup.errors import explain_invalid_date, explain_missing_backup_root
from dailybackup.exceptions import VerificationError
from dailybackup.fs import list_date_directories, parse_backup_date
from dailybackup.vault.hashing import compute_hash
from dailybackup.vault.manifest import BackupEntry, read_manifest

logger = structlog.get_logger()

NO_HASH_MESSAGE = "No hash data available for verification"
ARCHIVE_MISSING_MESSAGE = "Archive not found"
ARCHIVE_CORRUPTED_MESSAGE = "Archive hash mismatch - archive possibly corrupted"
SOURCE_MISSING_MESSAGE = "Source no longer exists"
SOURCE_CHANGED_MESSAGE = "Source changed since backup"


class VerificationState(str, Enum):
    VALID = "Valid"
    NO_HASH_DATA = "NoHashData"
    ARCHIVE_NOT_FOUND = "ArchiveNotFound"
    ARCHIVE_INTEGRITY_INVALID = "ArchiveIntegrityInvalid"
    SOURCE_INTEGRITY_INVALID = "SourceIntegrityInvalid"


@dataclass
class VerificationResult:
    """Outcome of checking one manifest entry."""

    backup_date: str
    archive_name: str
    archive_path: str
    source_path: str | None
    state: VerificationState
    has_hash_data: bool
    message: str
    archive_integrity_valid: bool | None = None
    source_integrity_valid: bool | None = None
    hash_algorithm: str | None = None
    recorded_archive_hash: str | None = None
    actual_archive_hash: str | None = None


@dataclass
class VerificationSummary:
    total: int = 0
    archive_valid: int = 0
    source_valid: int = 0
    no_hash: int = 0
    failed: int = 0


def _resolve_algorithm(entry: BackupEntry) -> HashAlgorithm:
    return HashAlgorithm((entry.hash_algorithm or HashAlgorithm.SHA256.value).upper())


async def _verify_entry(
    date_dir: Path,
    entry: BackupEntry,
    verify_source: bool,
) -> VerificationResult:
    archive_path = date_dir / entry.archive_name
    result = VerificationResult(
        backup_date=date_dir.name,
        archive_name=entry.archive_name,
        archive_path=str(archive_path),
        source_path=entry.source_path,
        state=VerificationState.VALID,
        has_hash_data=entry.has_hash_data,
        message="",
        hash_algorithm=entry.hash_algorithm,
        recorded_archive_hash=entry.archive_hash,
    )

    if not entry.has_hash_data:
        result.state = VerificationState.NO_HASH_DATA
        result.message = NO_HASH_MESSAGE
        return result

    if not archive_path.is_file():
        result.state = VerificationState.ARCHIVE_NOT_FOUND
        result.archive_integrity_valid = False
        result.message = ARCHIVE_MISSING_MESSAGE
        return result

    try:
        algorithm = _resolve_algorithm(entry)
    except ValueError:
        result.state = VerificationState.ARCHIVE_INTEGRITY_INVALID
        result.archive_integrity_valid = False
        result.message = f"Unsupported hash algorithm: {entry.hash_algorithm}"
        return result

    messages: List[str] = []

    if entry.archive_hash:
        actual = await compute_hash(archive_path, algorithm)
        result.actual_archive_hash = actual
        result.archive_integrity_valid = actual == entry.archive_hash.upper()
        if result.archive_integrity_valid:
            messages.append("Archive integrity valid")
        else:
            result.state = VerificationState.ARCHIVE_INTEGRITY_INVALID
            messages.append(ARCHIVE_CORRUPTED_MESSAGE)

    if verify_source and entry.source_hash:
        source = Path(entry.source_path) if entry.source_path else None
        if source is None or not source.exists():
            result.source_integrity_valid = False
            messages.append(SOURCE_MISSING_MESSAGE)
        else:
            actual = await compute_hash(source, algorithm)
            result.source_integrity_valid = actual == entry.source_hash.upper()
            messages.append(
                "Source unchanged" if result.source_integrity_valid else SOURCE_CHANGED_MESSAGE
            )

        if not result.source_integrity_valid and result.state == VerificationState.VALID:
            result.state = VerificationState.SOURCE_INTEGRITY_INVALID

    result.message = "; ".join(messages)
    return result


async def verify_backups(
    backup_root: Path,
    backup_date: str | None = None,
    name_pattern: str | None = None,
    verify_source: bool = False,
) -> List[VerificationResult]:
    """
    Verify recorded hashes of backups under a root.

    Args:
        backup_root: Backup root directory
        backup_date: Only this yyyy-MM-dd date (default: every date directory)
        name_pattern: Glob on the archive name
        verify_source: Also re-hash the live source paths

    Returns:
        One VerificationResult per matching manifest entry

    Raises:
        VerificationError: If the backup root does not exist or the date is invalid
    """
    if not backup_root.is_dir():
        raise VerificationError(
            explain_missing_backup_root(backup_root),
            details={"backup_root": str(backup_root)},
        )

    if backup_date is not None:
        try:
            parse_backup_date(backup_date)
        except ValueError:
            raise VerificationError(explain_invalid_date(backup_date))
        date_dirs = [backup_root / backup_date]
    else:
        dated, _ = list_date_directories(backup_root)
        date_dirs = [path for _, path in dated]

    results: List[VerificationResult] = []

    for date_dir in date_dirs:
        manifest = await read_manifest(date_dir)
        if manifest is None:
            logger.warning("manifest_missing", date_dir=str(date_dir))
            continue

        for entry in manifest.entries:
            if not entry_matches(entry, name_pattern):
                continue

            result = await _verify_entry(date_dir, entry, verify_source)
            results.append(result)

            log = logger.info if result.state == VerificationState.VALID else logger.warning
            log(
                "backup_verified",
                archive_name=entry.archive_name,
                backup_date=date_dir.name,
                state=result.state.value,
                message=result.message,
            )

    summary = summarize_verification(results)
    logger.info(
        "verification_completed",
        backup_root=str(backup_root),
        total=summary.total,
        archive_valid=summary.archive_valid,
        source_valid=summary.source_valid,
        no_hash=summary.no_hash,
        failed=summary.failed,
    )

    return results


def summarize_verification(results: List[VerificationResult]) -> VerificationSummary:
    summary = VerificationSummary(total=len(results))
    for result in results:
        if result.archive_integrity_valid:
            summary.archive_valid += 1
        if result.source_integrity_valid:
            summary.source_valid += 1
        if result.state == VerificationState.NO_HASH_DATA:
            summary.no_hash += 1
        elif result.state != VerificationState.VALID:
            summary.failed += 1
    return summary
