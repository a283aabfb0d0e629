# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
DailyBackup Core - Main orchestrator for a backup run.

A run resolves its sources, writes today's archives (individually or
combined), records each one in the date directory's manifest, and finally
applies retention pruning.
"""

from dataclasses import dataclass, field
from datetime import datetime, UTC
from pathlib import Path
from typing import List, Sequence, TypedDict

import structlog
from ulid import ULID

from dailybackup.backup.manager import (
    ArchiveResult,
    get_backup_stats,
    write_combined_archive,
    write_individual_archive,
)
from dailybackup.backup.retention import prune_by_count
from dailybackup.config import ArchiveMode, DailyBackupConfig, DATE_FORMAT
from dailybackup.exceptions import BackupError, DailyBackupError
from dailybackup.paths import classify_path

logger = structlog.get_logger()


@dataclass
class BackupRunResult:
    """Result of one backup run."""

    run_id: str  # ULID
    backup_date: str
    mode: str
    dry_run: bool
    archives: List[ArchiveResult] = field(default_factory=list)
    failed_sources: List[str] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)
    pruned_dates: List[str] = field(default_factory=list)
    duration_seconds: float = 0.0

    @property
    def created_count(self) -> int:
        return len(self.archives)

    @property
    def success(self) -> bool:
        return not self.errors


@dataclass
class BackupMetrics:
    """Metrics for backup runs."""

    total_runs: int
    last_run_at: datetime | None
    total_archives: int
    total_failures: int
    date_directories: int
    archive_bytes: int
    last_error: str | None


class BackupState(TypedDict):
    """Runtime state shared by scheduled and on-demand runs."""

    destination: Path
    last_run_at: datetime | None
    last_run_id: str | None
    total_runs: int
    total_archives: int
    total_failures: int
    last_error: str | None


def initialize_backup_state(config: DailyBackupConfig) -> BackupState:
    """
    Initialize runtime state for backup runs.

    Creates the backup root if it does not exist yet.

    Args:
        config: DailyBackup configuration

    Returns:
        Initialized BackupState dictionary
    """
    config.destination.mkdir(parents=True, exist_ok=True)

    return BackupState(
        destination=config.destination,
        last_run_at=None,
        last_run_id=None,
        total_runs=0,
        total_archives=0,
        total_failures=0,
        last_error=None,
    )


def choose_mode(
    sources: Sequence[Path],
    mode: ArchiveMode = ArchiveMode.AUTO,
    threshold: int = 3,
) -> ArchiveMode:
    """
    Decide between individual and combined archives.

    AUTO picks individual archives for up to `threshold` sources, for a mix
    of files and directories, and when two sources share a base name;
    otherwise a single combined archive.
    """
    if mode != ArchiveMode.AUTO:
        return mode

    if len(sources) <= threshold:
        return ArchiveMode.INDIVIDUAL

    kinds = {classify_path(s) for s in sources}
    if len(kinds) > 1:
        return ArchiveMode.INDIVIDUAL

    names = [s.name for s in sources]
    if len(set(names)) != len(names):
        return ArchiveMode.INDIVIDUAL

    return ArchiveMode.COMBINED


def _resolve_sources(sources: Sequence[Path | str], result: BackupRunResult) -> List[Path]:
    resolved: List[Path] = []
    for source in sources:
        path = Path(source).expanduser()
        try:
            path = path.resolve(strict=True)
        except (OSError, RuntimeError) as e:
            logger.warning("source_unresolvable", source_path=str(source), error=str(e))
            result.failed_sources.append(str(source))
            result.errors.append(f"{source}: path not found")
            continue
        resolved.append(path)
    return resolved


async def run_backup(
    config: DailyBackupConfig,
    state: BackupState | None = None,
    sources: Sequence[Path | str] | None = None,
    dry_run: bool | None = None,
) -> BackupRunResult:
    """
    Run one backup.

    Sources that cannot be resolved or archived are reported and skipped;
    the run continues with the rest. A combined archive failure aborts the
    run and propagates.

    Args:
        config: DailyBackup configuration
        state: Runtime state to update (optional)
        sources: Sources for this run (default: config.sources)
        dry_run: Override config.dry_run

    Returns:
        BackupRunResult with run details

    Raises:
        BackupError: If no sources are given or a combined archive fails
    """
    start_time = datetime.now(UTC)
    dry_run = config.dry_run if dry_run is None else dry_run
    requested = list(sources) if sources is not None else list(config.sources)

    if not requested:
        raise BackupError("No sources to back up")

    backup_date = datetime.now().strftime(DATE_FORMAT)
    date_dir = config.destination / backup_date

    result = BackupRunResult(
        run_id=str(ULID()),
        backup_date=backup_date,
        mode=config.archive_mode.value,
        dry_run=dry_run,
    )

    logger.info(
        "backup_run_started",
        run_id=result.run_id,
        destination=str(config.destination),
        source_count=len(requested),
        dry_run=dry_run,
    )

    resolved = _resolve_sources(requested, result)
    mode = choose_mode(resolved, config.archive_mode, config.combined_threshold)
    result.mode = mode.value

    try:
        if not resolved:
            logger.warning("no_sources_resolved", run_id=result.run_id)
        elif mode == ArchiveMode.COMBINED:
            archive = await write_combined_archive(
                resolved,
                date_dir,
                hash_enabled=config.hash_enabled,
                hash_algorithm=config.hash_algorithm,
                dry_run=dry_run,
            )
            result.archives.append(archive)
        else:
            for index, source in enumerate(resolved, start=1):
                logger.info(
                    "backup_source_started",
                    item=index,
                    total=len(resolved),
                    source_path=str(source),
                )
                try:
                    archive = await write_individual_archive(
                        source,
                        date_dir,
                        hash_enabled=config.hash_enabled,
                        hash_algorithm=config.hash_algorithm,
                        dry_run=dry_run,
                        max_path_length=config.max_path_length,
                    )
                    result.archives.append(archive)
                except DailyBackupError as e:
                    result.failed_sources.append(str(source))
                    result.errors.append(f"{source}: {e.message}")
                    logger.error(
                        "backup_source_failed",
                        source_path=str(source),
                        error=str(e),
                    )

        if config.keep is not None and config.destination.is_dir():
            pruned = await prune_by_count(config.destination, config.keep, dry_run=dry_run)
            result.pruned_dates = pruned.deleted_dates

    except DailyBackupError as e:
        if state is not None:
            state["last_error"] = str(e)
        logger.error("backup_run_failed", run_id=result.run_id, error=str(e))
        raise

    finally:
        result.duration_seconds = (datetime.now(UTC) - start_time).total_seconds()

    if state is not None:
        state["last_run_at"] = start_time
        state["last_run_id"] = result.run_id
        state["total_runs"] += 1
        if not dry_run:
            state["total_archives"] += result.created_count
        state["total_failures"] += len(result.failed_sources)
        state["last_error"] = result.errors[-1] if result.errors else None

    logger.info(
        "backup_run_completed",
        run_id=result.run_id,
        backup_date=backup_date,
        mode=result.mode,
        created=result.created_count,
        failed=len(result.failed_sources),
        pruned=len(result.pruned_dates),
        duration=result.duration_seconds,
        dry_run=dry_run,
    )

    return result


async def get_metrics(config: DailyBackupConfig, state: BackupState) -> BackupMetrics:
    """
    Get current backup metrics.

    Args:
        config: DailyBackup configuration
        state: Runtime state

    Returns:
        BackupMetrics with current statistics
    """
    stats = await get_backup_stats(config.destination)

    return BackupMetrics(
        total_runs=state["total_runs"],
        last_run_at=state["last_run_at"],
        total_archives=state["total_archives"],
        total_failures=state["total_failures"],
        date_directories=stats["date_directories"],
        archive_bytes=stats["archive_bytes"],
        last_error=state["last_error"],
    )
