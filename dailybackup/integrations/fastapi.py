# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
DailyBackup FastAPI Integration - Plugin for FastAPI applications.

This module provides a complete integration with FastAPI including:
- Protected admin endpoints (run, list, verify, restore, prune)
- Scheduled daily runs
- Health checks
"""

import os
from contextlib import asynccontextmanager
from dataclasses import asdict
from datetime import datetime, UTC
from pathlib import Path
from typing import List

import structlog
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger
from fastapi import Depends, FastAPI, HTTPException
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from pydantic import BaseModel, Field

from dailybackup.backup.manager import BackupListing, get_backup_stats, list_backups
from dailybackup.backup.restore import restore_backups, summarize_restore
from dailybackup.backup.retention import prune_by_count, prune_by_date
from dailybackup.backup.verify import summarize_verification, verify_backups
from dailybackup.config import DailyBackupConfig
from dailybackup.core import (
    BackupState,
    get_metrics,
    initialize_backup_state,
    run_backup,
)
from dailybackup.exceptions import DailyBackupError

logger = structlog.get_logger()

# Security
security = HTTPBearer(auto_error=False)

SCHEDULER_JOB_ID = "dailybackup_scheduled"


async def verify_api_key(
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
) -> bool:
    """
    Verify API key from Authorization header.

    The API key is read from the DAILYBACKUP_ADMIN_API_KEY environment variable.
    Requests must include: Authorization: Bearer <api_key>

    Raises:
        HTTPException: If API key is missing or invalid
    """
    api_key = os.getenv("DAILYBACKUP_ADMIN_API_KEY")

    if not api_key:
        raise HTTPException(
            status_code=500,
            detail="DAILYBACKUP_ADMIN_API_KEY environment variable not set",
        )

    if not credentials:
        raise HTTPException(
            status_code=401,
            detail="Authorization header required",
        )

    if credentials.credentials != api_key:
        raise HTTPException(
            status_code=403,
            detail="Invalid API key",
        )

    return True


class RunRequest(BaseModel):
    """Body of an on-demand backup run."""

    sources: List[str] | None = Field(None, description="Override configured sources")
    dry_run: bool | None = Field(None, description="Override configured dry-run")


class VerifyRequest(BaseModel):
    date: str | None = Field(None, description="yyyy-MM-dd; default all dates")
    name_pattern: str | None = Field(None, description="Glob on archive name")
    verify_source: bool = Field(False, description="Also re-hash live sources")


class RestoreRequest(BaseModel):
    destination: str | None = Field(None, description="Directory to restore into")
    date: str | None = Field(None, description="yyyy-MM-dd; default most recent")
    name_pattern: str | None = Field(None, description="Glob on archive name")
    use_original_paths: bool = False
    preserve_structure: bool = False
    force: bool = False
    dry_run: bool = True


class PruneRequest(BaseModel):
    keep: int | None = Field(None, ge=0, description="Date directories to retain")
    date: str | None = Field(None, description="Delete exactly this yyyy-MM-dd")
    dry_run: bool = True


def _listing_to_dict(listing: BackupListing) -> dict:
    return {
        "backup_date": listing.backup_date,
        "archive_path": str(listing.archive_path),
        "archive_exists": listing.archive_exists,
        **listing.entry.to_dict(),
    }


def register_dailybackup_routes(
    app: FastAPI,
    config: DailyBackupConfig,
    state: BackupState,
    prefix: str = "/admin/dailybackup",
) -> None:
    """
    Register DailyBackup admin endpoints on a FastAPI app.

    All endpoints require Bearer token authentication.

    Args:
        app: FastAPI application
        config: DailyBackup configuration
        state: Runtime state
        prefix: URL prefix for endpoints (default: /admin/dailybackup)
    """

    @app.post(f"{prefix}/run", dependencies=[Depends(verify_api_key)])
    async def trigger_backup(request: RunRequest | None = None) -> dict:
        """
        Manually trigger a backup run.

        Returns the run result including created archives.
        """
        request = request or RunRequest()
        try:
            result = await run_backup(
                config,
                state,
                sources=request.sources,
                dry_run=request.dry_run,
            )
        except DailyBackupError as e:
            raise HTTPException(status_code=400, detail=e.message)
        return asdict(result)

    @app.get(f"{prefix}/backups", dependencies=[Depends(verify_api_key)])
    async def get_backups(
        date: str | None = None,
        name_pattern: str | None = None,
    ) -> list:
        """
        List recorded backups, oldest date first.

        Args:
            date: Restrict to one yyyy-MM-dd date
            name_pattern: Glob on the archive name
        """
        try:
            listings = await list_backups(config.destination, date, name_pattern)
        except DailyBackupError as e:
            raise HTTPException(status_code=400, detail=e.message)
        return [_listing_to_dict(listing) for listing in listings]

    @app.get(f"{prefix}/stats", dependencies=[Depends(verify_api_key)])
    async def get_storage_stats() -> dict:
        """
        Get backup storage statistics.
        """
        return await get_backup_stats(config.destination)

    @app.post(f"{prefix}/verify", dependencies=[Depends(verify_api_key)])
    async def verify(request: VerifyRequest) -> dict:
        """
        Verify recorded hashes against archives (and optionally sources).
        """
        try:
            results = await verify_backups(
                config.destination,
                request.date,
                request.name_pattern,
                request.verify_source,
            )
        except DailyBackupError as e:
            raise HTTPException(status_code=400, detail=e.message)
        return {
            "summary": asdict(summarize_verification(results)),
            "results": [asdict(r) for r in results],
        }

    @app.post(f"{prefix}/restore", dependencies=[Depends(verify_api_key)])
    async def restore(request: RestoreRequest) -> dict:
        """
        Restore backups from one date directory.

        Defaults to a dry run; send dry_run=false to write files.
        """
        try:
            results = await restore_backups(
                config.destination,
                destination=Path(request.destination) if request.destination else None,
                backup_date=request.date,
                name_pattern=request.name_pattern,
                use_original_paths=request.use_original_paths,
                preserve_structure=request.preserve_structure,
                force=request.force,
                dry_run=request.dry_run,
            )
        except DailyBackupError as e:
            raise HTTPException(status_code=400, detail=e.message)
        return {
            "summary": asdict(summarize_restore(results)),
            "results": [asdict(r) for r in results],
        }

    @app.post(f"{prefix}/prune", dependencies=[Depends(verify_api_key)])
    async def prune(request: PruneRequest) -> dict:
        """
        Prune date directories by keep-count or by one date.

        Defaults to a dry run; send dry_run=false to delete.
        """
        if (request.keep is None) == (request.date is None):
            raise HTTPException(
                status_code=400,
                detail="Provide exactly one of 'keep' or 'date'",
            )
        try:
            if request.date is not None:
                result = await prune_by_date(config.destination, request.date, request.dry_run)
            else:
                result = await prune_by_count(config.destination, request.keep, request.dry_run)
        except DailyBackupError as e:
            raise HTTPException(status_code=400, detail=e.message)
        return asdict(result)

    @app.get(f"{prefix}/status", dependencies=[Depends(verify_api_key)])
    async def get_status() -> dict:
        """
        Get current backup status.

        Returns last run time, totals and key configuration.
        """
        metrics = await get_metrics(config, state)
        return {
            "last_run_at": (
                metrics.last_run_at.isoformat() if metrics.last_run_at else None
            ),
            "last_run_id": state["last_run_id"],
            "total_runs": metrics.total_runs,
            "total_archives": metrics.total_archives,
            "total_failures": metrics.total_failures,
            "date_directories": metrics.date_directories,
            "archive_size_mb": round(metrics.archive_bytes / (1024 * 1024), 2),
            "last_error": metrics.last_error,
            "mode": config.archive_mode.value,
            "keep": config.keep,
        }

    @app.get(f"{prefix}/health", dependencies=[Depends(verify_api_key)])
    async def health_check() -> dict:
        """
        Health check endpoint.

        Verifies the destination exists and is writable.
        """
        destination_exists = config.destination.is_dir()
        writable = destination_exists and os.access(config.destination, os.W_OK)

        status = "healthy"
        if not writable:
            status = "degraded" if destination_exists else "unhealthy"

        return {
            "status": status,
            "destination_exists": destination_exists,
            "destination_writable": writable,
            "last_error": state["last_error"],
            "timestamp": datetime.now(UTC).isoformat(),
        }

    @app.get(f"{prefix}/config", dependencies=[Depends(verify_api_key)])
    async def get_config() -> dict:
        """
        Get current configuration.
        """
        return {
            "destination": str(config.destination),
            "sources": [str(s) for s in config.sources],
            "keep": config.keep,
            "archive_mode": config.archive_mode.value,
            "hash_enabled": config.hash_enabled,
            "hash_algorithm": config.hash_algorithm.value,
            "dry_run": config.dry_run,
            "combined_threshold": config.combined_threshold,
            "schedule_cron": config.schedule_cron,
        }


def setup_dailybackup_plugin(
    app: FastAPI,
    config: DailyBackupConfig,
    prefix: str = "/admin/dailybackup",
) -> BackupState:
    """
    Set up the DailyBackup plugin.

    This is the main entry point for integrating DailyBackup with a FastAPI
    app. It registers the admin endpoints right away and, when a schedule is
    configured, runs the scheduler for the lifetime of the app.

    Args:
        app: FastAPI application
        config: DailyBackup configuration
        prefix: URL prefix for admin endpoints

    Returns:
        The runtime state shared by the endpoints
    """
    state = initialize_backup_state(config)

    # Store state in app.state for access across requests
    app.state.dailybackup_config = config
    app.state.dailybackup_state = state

    register_dailybackup_routes(app, config, state, prefix)

    if config.schedule_cron:
        inner_lifespan = app.router.lifespan_context

        @asynccontextmanager
        async def lifespan(app_: FastAPI):
            scheduler = _setup_scheduled_task(config, state)
            try:
                async with inner_lifespan(app_) as inner_state:
                    yield inner_state
            finally:
                scheduler.shutdown(wait=False)
                logger.info("scheduler_stopped")

        app.router.lifespan_context = lifespan

    logger.info(
        "dailybackup_plugin_registered",
        destination=str(config.destination),
        prefix=prefix,
        scheduled=bool(config.schedule_cron),
    )

    return state


def _setup_scheduled_task(config: DailyBackupConfig, state: BackupState) -> AsyncIOScheduler:
    """Set up APScheduler for scheduled backup runs."""
    scheduler = AsyncIOScheduler()

    # Parse HH:MM format
    hour, minute = map(int, config.schedule_cron.split(":"))

    async def scheduled_backup():
        """Run scheduled backup."""
        logger.info("scheduled_backup_starting")
        try:
            result = await run_backup(config, state)
            logger.info(
                "scheduled_backup_completed",
                created=result.created_count,
                errors=len(result.errors),
            )
        except DailyBackupError as e:
            logger.error("scheduled_backup_failed", error=str(e))

    scheduler.add_job(
        scheduled_backup,
        trigger=CronTrigger(hour=hour, minute=minute),
        id=SCHEDULER_JOB_ID,
        replace_existing=True,
    )
    scheduler.start()

    logger.info(
        "scheduler_started",
        schedule=config.schedule_cron,
        next_run=scheduler.get_job(SCHEDULER_JOB_ID).next_run_time.isoformat(),
    )

    return scheduler


@asynccontextmanager
async def dailybackup_lifespan(app: FastAPI, config: DailyBackupConfig):
    """
    Alternative lifespan context manager for FastAPI.

    Use this instead of setup_dailybackup_plugin if you prefer the
    lifespan pattern:

        app = FastAPI(lifespan=lambda app: dailybackup_lifespan(app, config))

    Args:
        app: FastAPI application
        config: DailyBackup configuration
    """
    logger.info("dailybackup_lifespan_starting")

    state = initialize_backup_state(config)
    app.state.dailybackup_state = state
    app.state.dailybackup_config = config

    register_dailybackup_routes(app, config, state)

    scheduler = None
    if config.schedule_cron:
        scheduler = _setup_scheduled_task(config, state)

    logger.info("dailybackup_lifespan_started")

    try:
        yield
    finally:
        logger.info("dailybackup_lifespan_stopping")
        if scheduler is not None:
            scheduler.shutdown(wait=False)
        logger.info("dailybackup_lifespan_stopped")


def get_dailybackup_state(app: FastAPI) -> BackupState:
    """
    Get DailyBackup state from a FastAPI app.

    Raises:
        RuntimeError: If DailyBackup is not initialized
    """
    state = getattr(app.state, "dailybackup_state", None)
    if not state:
        raise RuntimeError(
            "DailyBackup not initialized. Call setup_dailybackup_plugin first."
        )
    return state
