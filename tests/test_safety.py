# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Critical Safety Tests for DailyBackup.

These tests verify the core guarantees:
1. Retention boundary - Only the oldest date directories are pruned, even read-only ones
2. Unrelated directories - Non-date directories are NEVER touched
3. Integrity - Corrupted archives are detected, missing hashes are not failures
4. Round-trip restore - Restored files match what was backed up
5. Manifest failures - An archive is never kept without its manifest entry
6. Collision uniqueness - Same-named sources never overwrite each other
7. Dry-run safety - Dry-run mode NEVER writes or deletes anything
"""

import json
import os
import stat
from datetime import datetime
from pathlib import Path

import pytest

from dailybackup.backup.manager import write_individual_archive
from dailybackup.backup.restore import restore_backups, summarize_restore
from dailybackup.backup.retention import prune_by_count, prune_by_date
from dailybackup.backup.verify import (
    VerificationState,
    summarize_verification,
    verify_backups,
)
from dailybackup.config import (
    ArchiveMode,
    DailyBackupConfig,
    DATE_FORMAT,
    MANIFEST_FILENAME,
)
from dailybackup.core import run_backup
from dailybackup.exceptions import (
    ManifestError,
    PruneError,
    RestoreError,
    VerificationError,
)
from dailybackup.vault.compressor import list_archive_members
from dailybackup.vault.hashing import compute_hash

from conftest import make_date_dirs, make_tree, write_file


def _today() -> str:
    return datetime.now().strftime(DATE_FORMAT)


# ============================================================================
# Test 1: BASIC BACKUP
# ============================================================================

@pytest.mark.asyncio
async def test_single_file_backup_creates_archive_and_manifest(
    source_dir: Path, backup_root: Path
):
    """
    Backing up one small file yields one archive and a one-entry manifest.
    """
    source = write_file(source_dir / "a.txt", b"0123456789")
    config = DailyBackupConfig(destination=backup_root)

    result = await run_backup(config, sources=[source])

    date_dir = backup_root / _today()
    assert result.created_count == 1
    assert len(list(date_dir.glob("*.zip"))) == 1

    manifest = json.loads((date_dir / MANIFEST_FILENAME).read_text(encoding="utf-8"))
    assert len(manifest["Backups"]) == 1
    entry = manifest["Backups"][0]
    assert entry["pathType"] == "File"
    assert entry["size"] == 10
    assert entry["sourcePath"] == str(source)
    assert entry["hashAlgorithm"] == "SHA256"


@pytest.mark.asyncio
async def test_same_source_twice_appends_two_entries(source_dir: Path, backup_root: Path):
    """
    Re-backing-up a source on the same day adds a second entry and archive.
    """
    source = write_file(source_dir / "a.txt", b"content")
    config = DailyBackupConfig(destination=backup_root)

    await run_backup(config, sources=[source])
    await run_backup(config, sources=[source])

    date_dir = backup_root / _today()
    manifest = json.loads((date_dir / MANIFEST_FILENAME).read_text(encoding="utf-8"))
    names = [e["archiveName"] for e in manifest["Backups"]]
    assert len(names) == 2
    assert len(set(names)) == 2
    assert len(list(date_dir.glob("*.zip"))) == 2


# ============================================================================
# Test 2: RETENTION BOUNDARY
# ============================================================================

@pytest.mark.asyncio
async def test_prune_keeps_most_recent_dates(backup_root: Path):
    """
    CRITICAL: With N date directories and keep=K < N, exactly the K most
    recent remain.
    """
    dates = ["2026-01-03", "2025-12-31", "2026-01-01", "2026-01-02", "2025-06-15"]
    make_date_dirs(backup_root, dates)

    result = await prune_by_count(backup_root, keep=2)

    remaining = sorted(p.name for p in backup_root.iterdir())
    assert remaining == ["2026-01-02", "2026-01-03"]
    assert result.deleted_dates == ["2025-06-15", "2025-12-31", "2026-01-01"]


@pytest.mark.asyncio
async def test_prune_keep_zero_deletes_all_dates(backup_root: Path):
    make_date_dirs(backup_root, ["2026-01-01", "2026-01-02"])

    await prune_by_count(backup_root, keep=0)

    assert list(backup_root.iterdir()) == []


@pytest.mark.asyncio
async def test_prune_with_fewer_dates_than_keep_is_noop(backup_root: Path):
    make_date_dirs(backup_root, ["2026-01-01", "2026-01-02"])

    result = await prune_by_count(backup_root, keep=5)

    assert result.deleted_dates == []
    assert len(list(backup_root.iterdir())) == 2


@pytest.mark.asyncio
async def test_prune_negative_keep_rejected(backup_root: Path):
    with pytest.raises(ValueError):
        await prune_by_count(backup_root, keep=-1)


@pytest.mark.asyncio
async def test_prune_missing_root_is_fatal(temp_dir: Path):
    with pytest.raises(PruneError):
        await prune_by_count(temp_dir / "missing", keep=1)


# ============================================================================
# Test 3: UNRELATED DIRECTORIES ARE NEVER TOUCHED
# ============================================================================

@pytest.mark.asyncio
async def test_prune_ignores_non_date_directories(source_dir: Path, backup_root: Path):
    """
    CRITICAL: Backing up 3 files and a directory, then pruning with keep=0,
    removes every archive but leaves unrelated directories intact.
    """
    files = [write_file(source_dir / f"f{i}.txt", f"file {i}") for i in range(3)]
    folder = make_tree(source_dir / "folder", {"x.txt": b"x", "y/z.txt": b"z"})
    unrelated = make_tree(backup_root / "keep-me", {"notes.txt": b"mine"})
    invalid_date = backup_root / "2026-13-45"
    invalid_date.mkdir()

    config = DailyBackupConfig(
        destination=backup_root,
        keep=None,
        archive_mode=ArchiveMode.INDIVIDUAL,
    )
    result = await run_backup(config, sources=[*files, folder])
    assert result.created_count == 4

    prune = await prune_by_count(backup_root, keep=0)

    assert not (backup_root / _today()).exists()
    assert list(backup_root.rglob("*.zip")) == []
    assert (unrelated / "notes.txt").read_bytes() == b"mine"
    assert invalid_date.is_dir()
    assert prune.skipped == ["2026-13-45"]


@pytest.mark.asyncio
async def test_prune_deletes_read_only_files(backup_root: Path):
    """Read-only content does not block deletion of a date directory."""
    date_dir = make_date_dirs(backup_root, ["2026-01-01"])[0]
    locked = write_file(date_dir / "nested" / "locked.zip", b"PK")
    os.chmod(locked, stat.S_IREAD)

    result = await prune_by_count(backup_root, keep=0)

    assert not date_dir.exists()
    assert result.failed_items == []


@pytest.mark.asyncio
async def test_prune_by_date_missing_is_warning(backup_root: Path):
    """Pruning a date that has no directory reports nothing deleted."""
    make_date_dirs(backup_root, ["2026-01-01"])

    result = await prune_by_date(backup_root, "2026-02-02")

    assert result.deleted_dates == []
    assert (backup_root / "2026-01-01").is_dir()


@pytest.mark.asyncio
async def test_prune_by_date_deletes_only_that_date(backup_root: Path):
    make_date_dirs(backup_root, ["2026-01-01", "2026-01-02"])

    result = await prune_by_date(backup_root, "2026-01-01")

    assert result.deleted_dates == ["2026-01-01"]
    assert [p.name for p in backup_root.iterdir()] == ["2026-01-02"]


@pytest.mark.asyncio
async def test_prune_deletes_read_only_date_directory(backup_root: Path):
    """A read-only date directory (and read-only subdirectory) is still pruned."""
    date_dir = make_date_dirs(backup_root, ["2020-01-01"])[0]
    nested = write_file(date_dir / "nested" / "b.zip", b"PK").parent
    os.chmod(nested, 0o555)
    os.chmod(date_dir, 0o555)

    try:
        result = await prune_by_count(backup_root, keep=0)
    finally:
        for path in (date_dir, nested):
            if path.exists():
                os.chmod(path, 0o755)

    assert not date_dir.exists()
    assert result.deleted_dates == ["2020-01-01"]
    assert result.failed_dates == []


@pytest.mark.asyncio
async def test_incomplete_deletion_is_not_reported_as_deleted(backup_root: Path, monkeypatch):
    """A date directory that could not be fully removed is a failed date."""
    from dailybackup.backup import retention
    from dailybackup.fs import DeletionReport

    date_dir = make_date_dirs(backup_root, ["2020-01-01"])[0]

    def stuck_remove_tree(path: Path) -> DeletionReport:
        return DeletionReport(path=str(path), failed=[str(path / "dummy.zip"), str(path)])

    monkeypatch.setattr(retention, "remove_tree", stuck_remove_tree)

    result = await prune_by_count(backup_root, keep=0)

    assert result.deleted_dates == []
    assert result.failed_dates == ["2020-01-01"]
    assert str(date_dir) in result.failed_items


# ============================================================================
# Test 4: INTEGRITY VERIFICATION
# ============================================================================

@pytest.mark.asyncio
async def test_verify_detects_corrupted_archive(source_dir: Path, backup_root: Path):
    """
    CRITICAL: Appending a byte to an archive makes verification fail with a
    'corrupted' message while hash data is still reported as present.
    """
    source = write_file(source_dir / "a.txt", b"important")
    result = await run_backup(DailyBackupConfig(destination=backup_root), sources=[source])
    archive = result.archives[0].archive_path

    with open(archive, "ab") as f:
        f.write(b"\x00")

    results = await verify_backups(backup_root)

    assert len(results) == 1
    assert results[0].has_hash_data is True
    assert results[0].archive_integrity_valid is False
    assert results[0].state == VerificationState.ARCHIVE_INTEGRITY_INVALID
    assert "corrupted" in results[0].message


@pytest.mark.asyncio
async def test_verify_without_hash_data_is_not_a_failure(source_dir: Path, backup_root: Path):
    """
    Entries written with hashing disabled report 'no hash data', not failure.
    """
    source = write_file(source_dir / "a.txt", b"data")
    config = DailyBackupConfig(destination=backup_root, hash_enabled=False)
    await run_backup(config, sources=[source])

    results = await verify_backups(backup_root)
    summary = summarize_verification(results)

    assert results[0].has_hash_data is False
    assert results[0].state == VerificationState.NO_HASH_DATA
    assert "no hash data" in results[0].message.lower()
    assert summary.no_hash == 1
    assert summary.failed == 0


@pytest.mark.asyncio
async def test_verify_valid_and_source_changes(source_dir: Path, backup_root: Path):
    """Source changes are reported without affecting the archive verdict."""
    source = write_file(source_dir / "a.txt", b"v1")
    await run_backup(DailyBackupConfig(destination=backup_root), sources=[source])

    results = await verify_backups(backup_root, verify_source=True)
    assert results[0].state == VerificationState.VALID
    assert results[0].source_integrity_valid is True

    write_file(source, b"v2")
    results = await verify_backups(backup_root, verify_source=True)
    assert results[0].archive_integrity_valid is True
    assert results[0].source_integrity_valid is False
    assert "changed" in results[0].message

    source.unlink()
    results = await verify_backups(backup_root, verify_source=True)
    assert results[0].archive_integrity_valid is True
    assert "no longer exists" in results[0].message


@pytest.mark.asyncio
async def test_verify_missing_archive(source_dir: Path, backup_root: Path):
    source = write_file(source_dir / "a.txt", b"data")
    result = await run_backup(DailyBackupConfig(destination=backup_root), sources=[source])
    result.archives[0].archive_path.unlink()

    results = await verify_backups(backup_root)

    assert results[0].state == VerificationState.ARCHIVE_NOT_FOUND


@pytest.mark.asyncio
async def test_verify_missing_root_is_fatal(temp_dir: Path):
    with pytest.raises(VerificationError):
        await verify_backups(temp_dir / "missing")


# ============================================================================
# Test 5: ROUND-TRIP RESTORE
# ============================================================================

@pytest.mark.asyncio
async def test_restore_to_original_path_recovers_exact_content(
    source_dir: Path, backup_root: Path
):
    """
    CRITICAL: A restored file has the original bytes and its recorded
    source hash matches a fresh hash of the restored content.
    """
    source = write_file(source_dir / "a.txt", b"precious bytes")
    run = await run_backup(DailyBackupConfig(destination=backup_root), sources=[source])
    recorded_hash = run.archives[0].entries[0].source_hash
    original_mtime = int(source.stat().st_mtime)

    source.unlink()

    results = await restore_backups(backup_root, use_original_paths=True)

    assert summarize_restore(results).succeeded == 1
    assert source.read_bytes() == b"precious bytes"
    assert await compute_hash(source) == recorded_hash
    assert int(source.stat().st_mtime) == original_mtime


@pytest.mark.asyncio
async def test_restore_directory_to_explicit_destination(
    source_dir: Path, backup_root: Path, temp_dir: Path
):
    """Directory archives restore under their base name and merge safely."""
    folder = make_tree(source_dir / "project", {"a.txt": b"a", "sub/b.txt": b"b"})
    await run_backup(DailyBackupConfig(destination=backup_root), sources=[folder])

    target = temp_dir / "restored"
    write_file(target / "unrelated.txt", b"keep")

    results = await restore_backups(backup_root, destination=target)

    assert results[0].success
    assert (target / "project" / "a.txt").read_bytes() == b"a"
    assert (target / "project" / "sub" / "b.txt").read_bytes() == b"b"
    assert (target / "unrelated.txt").read_bytes() == b"keep"


@pytest.mark.asyncio
async def test_restore_refuses_to_overwrite_without_force(
    source_dir: Path, backup_root: Path
):
    """Existing files fail the entry unless force is given."""
    source = write_file(source_dir / "a.txt", b"old")
    await run_backup(DailyBackupConfig(destination=backup_root), sources=[source])
    write_file(source, b"new")

    results = await restore_backups(backup_root, use_original_paths=True)
    assert not results[0].success
    assert source.read_bytes() == b"new"

    results = await restore_backups(backup_root, use_original_paths=True, force=True)
    assert results[0].success
    assert source.read_bytes() == b"old"


@pytest.mark.asyncio
async def test_restore_no_match_returns_empty(source_dir: Path, backup_root: Path, temp_dir: Path):
    source = write_file(source_dir / "a.txt", b"x")
    await run_backup(DailyBackupConfig(destination=backup_root), sources=[source])

    results = await restore_backups(backup_root, destination=temp_dir / "out", name_pattern="zzz*")

    assert results == []


@pytest.mark.asyncio
async def test_restore_requires_destination(backup_root: Path):
    make_date_dirs(backup_root, ["2026-01-01"])
    with pytest.raises(RestoreError):
        await restore_backups(backup_root)


@pytest.mark.asyncio
async def test_restore_without_manifest_uses_archives(
    source_dir: Path, backup_root: Path, temp_dir: Path
):
    """A date directory without a manifest still restores its archives."""
    source = write_file(source_dir / "a.txt", b"orphan")
    await run_backup(DailyBackupConfig(destination=backup_root), sources=[source])
    (backup_root / _today() / MANIFEST_FILENAME).unlink()

    target = temp_dir / "out"
    results = await restore_backups(backup_root, destination=target)

    assert results[0].success
    assert (target / "a.txt").read_bytes() == b"orphan"


@pytest.mark.asyncio
async def test_restore_preserve_structure_extracts_directly(
    source_dir: Path, backup_root: Path, temp_dir: Path
):
    """Direct extraction keeps unrelated files beside the restored tree."""
    folder = make_tree(source_dir / "proj", {"a.txt": b"a", "sub/b.txt": b"b"})
    await run_backup(DailyBackupConfig(destination=backup_root), sources=[folder])

    target = temp_dir / "restored"
    write_file(target / "keep.txt", b"keep")

    results = await restore_backups(backup_root, destination=target, preserve_structure=True)

    assert results[0].success
    assert results[0].files_restored == 2
    assert (target / "proj" / "sub" / "b.txt").read_bytes() == b"b"
    assert (target / "keep.txt").read_bytes() == b"keep"


@pytest.mark.asyncio
async def test_list_archive_members_returns_file_names(source_dir: Path, backup_root: Path):
    folder = make_tree(source_dir / "proj", {"a.txt": b"a", "sub/b.txt": b"b"})
    result = await run_backup(DailyBackupConfig(destination=backup_root), sources=[folder])

    members = await list_archive_members(result.archives[0].archive_path)

    assert sorted(members) == ["proj/a.txt", "proj/sub/b.txt"]


@pytest.mark.asyncio
async def test_list_archive_members_rejects_corrupt_archive(temp_dir: Path):
    broken = write_file(temp_dir / "broken.zip", b"not a zip")

    with pytest.raises(RestoreError):
        await list_archive_members(broken)


# ============================================================================
# Test 6: MANIFEST FAILURES LEAVE NO ORPHAN ARCHIVES
# ============================================================================

async def _failing_write(path, manifest):
    raise ManifestError("Failed to write manifest: [Errno 28] No space left on device")


@pytest.mark.asyncio
async def test_manifest_failure_discards_individual_archive(
    source_dir: Path, backup_root: Path, monkeypatch
):
    """
    CRITICAL: An archive whose entry cannot be recorded is removed, and the
    run reports the source as failed instead of aborting.
    """
    from dailybackup.vault import manifest

    monkeypatch.setattr(manifest, "_write_manifest", _failing_write)
    first = write_file(source_dir / "a.txt", b"a")
    second = write_file(source_dir / "b.txt", b"b")

    result = await run_backup(DailyBackupConfig(destination=backup_root), sources=[first, second])

    assert result.failed_sources == [str(first), str(second)]
    assert "No space left" in result.errors[0]
    assert list(backup_root.rglob("*.zip")) == []
    assert list(backup_root.rglob(MANIFEST_FILENAME)) == []


@pytest.mark.asyncio
async def test_manifest_failure_discards_combined_archive(
    source_dir: Path, backup_root: Path, monkeypatch
):
    """A combined archive is recorded for every source or not kept at all."""
    from dailybackup.vault import manifest

    monkeypatch.setattr(manifest, "_write_manifest", _failing_write)
    files = [write_file(source_dir / f"f{i}.txt", f"{i}") for i in range(4)]
    config = DailyBackupConfig(destination=backup_root, archive_mode=ArchiveMode.COMBINED)

    with pytest.raises(ManifestError):
        await run_backup(config, sources=files)

    assert list(backup_root.rglob("*.zip")) == []


# ============================================================================
# Test 7: COLLISION UNIQUENESS
# ============================================================================

@pytest.mark.asyncio
async def test_colliding_names_produce_distinct_archives(temp_dir: Path, backup_root: Path):
    """
    Two distinct sources that flatten to the same name get two archives and
    two resolvable manifest entries.
    """
    first = make_tree(temp_dir / "a" / "b__c", {"one.txt": b"1"})
    second = make_tree(temp_dir / "a__b" / "c", {"two.txt": b"2"})
    date_dir = backup_root / _today()

    one = await write_individual_archive(first, date_dir)
    two = await write_individual_archive(second, date_dir)

    assert one.archive_path != two.archive_path
    assert two.renamed_from == one.archive_path.name
    assert one.archive_path.is_file() and two.archive_path.is_file()

    results = await verify_backups(backup_root)
    assert [r.state for r in results] == [VerificationState.VALID] * 2


# ============================================================================
# Test 8: DRY-RUN SAFETY
# ============================================================================

@pytest.mark.asyncio
async def test_dry_run_backup_writes_nothing(source_dir: Path, backup_root: Path):
    """
    CRITICAL: Dry-run mode must NEVER create archives or manifests.
    """
    source = write_file(source_dir / "a.txt", b"x")
    config = DailyBackupConfig(destination=backup_root, dry_run=True)

    result = await run_backup(config, sources=[source])

    assert result.dry_run
    assert result.created_count == 1
    assert not (backup_root / _today()).exists()


@pytest.mark.asyncio
async def test_dry_run_prune_deletes_nothing(backup_root: Path):
    make_date_dirs(backup_root, ["2026-01-01", "2026-01-02"])

    result = await prune_by_count(backup_root, keep=0, dry_run=True)

    assert result.deleted_dates == ["2026-01-01", "2026-01-02"]
    assert len(list(backup_root.iterdir())) == 2


@pytest.mark.asyncio
async def test_dry_run_restore_writes_nothing(source_dir: Path, backup_root: Path, temp_dir: Path):
    source = write_file(source_dir / "a.txt", b"x")
    await run_backup(DailyBackupConfig(destination=backup_root), sources=[source])
    target = temp_dir / "out"

    results = await restore_backups(backup_root, destination=target, dry_run=True)

    assert results[0].success
    assert results[0].message.startswith("Would restore")
    assert not target.exists()
