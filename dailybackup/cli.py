# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""Command-line interface for dailybackup.

Built with Typer for commands and Rich for output.
"""

import asyncio
import logging
from pathlib import Path
from typing import List, Optional

import structlog
import typer
from rich.console import Console
from rich.table import Table

from dailybackup.backup.manager import list_backups
from dailybackup.backup.restore import restore_backups, summarize_restore
from dailybackup.backup.retention import prune_by_count, prune_by_date
from dailybackup.backup.verify import (
    VerificationState,
    summarize_verification,
    verify_backups,
)
from dailybackup.builder import create_config
from dailybackup.config import ArchiveMode, HashAlgorithm
from dailybackup.core import run_backup
from dailybackup.exceptions import DailyBackupError

app = typer.Typer(
    name="dailybackup",
    help="Date-partitioned ZIP backups with manifests, verification and restore.",
    no_args_is_help=True,
)

console = Console()

DESTINATION_OPTION = typer.Option(
    ...,
    "--destination",
    "-d",
    envvar="DAILYBACKUP_DESTINATION",
    help="Backup root holding the yyyy-MM-dd directories",
)


# ============================================================================
# Helper Functions
# ============================================================================


def print_error(message: str) -> None:
    console.print(f"[bold red]Error:[/bold red] {message}")


def print_success(message: str) -> None:
    console.print(f"[bold green]Success:[/bold green] {message}")


def print_warning(message: str) -> None:
    console.print(f"[bold yellow]Warning:[/bold yellow] {message}")


def format_size(size: int | None) -> str:
    if size is None:
        return "-"
    for unit in ("B", "KB", "MB", "GB"):
        if size < 1024 or unit == "GB":
            return f"{size:.0f} {unit}" if unit == "B" else f"{size:.1f} {unit}"
        size /= 1024
    return f"{size:.1f} GB"


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show info-level logs"),
) -> None:
    """Date-partitioned ZIP backups with manifests, verification and restore."""
    level = logging.INFO if verbose else logging.WARNING
    structlog.configure(wrapper_class=structlog.make_filtering_bound_logger(level))


# ============================================================================
# Commands
# ============================================================================


@app.command()
def backup(
    sources: List[Path] = typer.Argument(..., help="Files or directories to back up"),
    destination: Path = DESTINATION_OPTION,
    keep: int = typer.Option(
        7, "--keep", "-k", min=-1, help="Date directories to retain (-1 keeps all)"
    ),
    mode: ArchiveMode = typer.Option(ArchiveMode.AUTO, "--mode", "-m", help="Archive mode"),
    no_hash: bool = typer.Option(False, "--no-hash", help="Skip hash computation"),
    hash_algorithm: HashAlgorithm = typer.Option(
        HashAlgorithm.SHA256, "--hash-algorithm", help="Digest for source and archive"
    ),
    dry_run: bool = typer.Option(False, "--dry-run", "-n", help="Show what would happen"),
) -> None:
    """Back up files and directories into today's date directory."""
    try:
        config = create_config(
            destination,
            sources=sources,
            keep=None if keep < 0 else keep,
            mode=mode,
            hash_enabled=not no_hash,
            hash_algorithm=hash_algorithm,
            dry_run=dry_run,
        )
        result = asyncio.run(run_backup(config))
    except DailyBackupError as e:
        print_error(str(e))
        raise typer.Exit(1)

    verb = "Would create" if result.dry_run else "Created"
    for archive in result.archives:
        console.print(f"{verb} [cyan]{archive.archive_path}[/cyan]")
        if archive.renamed_from:
            print_warning(
                f"{archive.renamed_from} already existed; wrote {archive.archive_path.name}"
            )

    for error in result.errors:
        print_error(error)

    if result.pruned_dates:
        pruned_verb = "Would prune" if result.dry_run else "Pruned"
        console.print(f"{pruned_verb}: {', '.join(result.pruned_dates)}")

    summary = (
        f"{result.created_count} archive(s), {len(result.failed_sources)} failure(s) "
        f"in {result.backup_date} ({result.mode})"
    )
    if result.failed_sources:
        print_warning(summary)
        raise typer.Exit(1)
    print_success(summary)


@app.command("list")
def list_command(
    destination: Path = DESTINATION_OPTION,
    date: Optional[str] = typer.Option(None, "--date", help="Only this yyyy-MM-dd date"),
    pattern: Optional[str] = typer.Option(None, "--pattern", "-p", help="Glob on archive name"),
) -> None:
    """List recorded backups."""
    try:
        listings = asyncio.run(list_backups(destination, date, pattern))
    except DailyBackupError as e:
        print_error(str(e))
        raise typer.Exit(1)

    if not listings:
        console.print("[dim]No backups found.[/dim]")
        return

    table = Table(title="Backups", show_header=True, header_style="bold magenta")
    table.add_column("Date", style="yellow", no_wrap=True)
    table.add_column("Archive", style="cyan", no_wrap=False)
    table.add_column("Source", style="green", no_wrap=False)
    table.add_column("Type")
    table.add_column("Size", justify="right")
    table.add_column("Hash", justify="center")

    for listing in listings:
        entry = listing.entry
        table.add_row(
            listing.backup_date,
            entry.archive_name if listing.archive_exists else f"{entry.archive_name} (missing)",
            entry.source_path or "-",
            entry.path_type.value if entry.path_type else "-",
            format_size(entry.size),
            entry.hash_algorithm or "-",
        )

    console.print(table)


@app.command()
def verify(
    destination: Path = DESTINATION_OPTION,
    date: Optional[str] = typer.Option(None, "--date", help="Only this yyyy-MM-dd date"),
    pattern: Optional[str] = typer.Option(None, "--pattern", "-p", help="Glob on archive name"),
    verify_source: bool = typer.Option(
        False, "--verify-source", help="Also re-hash the original sources"
    ),
) -> None:
    """Verify archive (and optionally source) hashes."""
    try:
        results = asyncio.run(verify_backups(destination, date, pattern, verify_source))
    except DailyBackupError as e:
        print_error(str(e))
        raise typer.Exit(1)

    styles = {
        VerificationState.VALID: "green",
        VerificationState.NO_HASH_DATA: "yellow",
    }
    for result in results:
        style = styles.get(result.state, "red")
        console.print(
            f"[{style}]{result.state.value}[/{style}] "
            f"{result.backup_date}/{result.archive_name}: {result.message}"
        )

    summary = summarize_verification(results)
    console.print(
        f"Checked {summary.total}: {summary.archive_valid} archive(s) valid, "
        f"{summary.source_valid} source(s) valid, {summary.no_hash} without hash data, "
        f"{summary.failed} failed"
    )
    if summary.failed:
        raise typer.Exit(1)


@app.command()
def restore(
    destination: Path = DESTINATION_OPTION,
    target: Optional[Path] = typer.Option(
        None, "--target", "-t", help="Directory to restore into"
    ),
    date: Optional[str] = typer.Option(None, "--date", help="yyyy-MM-dd (default: latest)"),
    pattern: Optional[str] = typer.Option(None, "--pattern", "-p", help="Glob on archive name"),
    original_paths: bool = typer.Option(
        False, "--original-paths", help="Restore to the recorded source locations"
    ),
    preserve_structure: bool = typer.Option(
        False, "--preserve-structure", help="Extract directly into the target"
    ),
    force: bool = typer.Option(False, "--force", "-f", help="Overwrite existing files"),
    dry_run: bool = typer.Option(False, "--dry-run", "-n", help="Show what would happen"),
) -> None:
    """Restore backups from one date directory."""
    try:
        results = asyncio.run(
            restore_backups(
                destination,
                destination=target,
                backup_date=date,
                name_pattern=pattern,
                use_original_paths=original_paths,
                preserve_structure=preserve_structure,
                force=force,
                dry_run=dry_run,
            )
        )
    except DailyBackupError as e:
        print_error(str(e))
        raise typer.Exit(1)

    if not results:
        print_warning("No matching backups found.")
        return

    for result in results:
        style = "green" if result.success else "red"
        console.print(f"[{style}]{result.message}[/{style}]")

    summary = summarize_restore(results)
    console.print(f"Restored {summary.succeeded} of {summary.total}, {summary.failed} failed")
    if summary.failed:
        raise typer.Exit(1)


@app.command()
def prune(
    destination: Path = DESTINATION_OPTION,
    keep: Optional[int] = typer.Option(
        None, "--keep", "-k", min=0, help="Date directories to retain"
    ),
    date: Optional[str] = typer.Option(None, "--date", help="Delete exactly this date"),
    dry_run: bool = typer.Option(False, "--dry-run", "-n", help="Show what would happen"),
) -> None:
    """Delete old date directories."""
    if (keep is None) == (date is None):
        print_error("Provide exactly one of --keep or --date")
        raise typer.Exit(2)

    try:
        if date is not None:
            result = asyncio.run(prune_by_date(destination, date, dry_run))
        else:
            result = asyncio.run(prune_by_count(destination, keep, dry_run))
    except DailyBackupError as e:
        print_error(str(e))
        raise typer.Exit(1)

    for name in result.skipped:
        print_warning(f"Skipped unparseable directory {name}")
    for item in result.failed_items:
        print_warning(f"Could not delete {item}")

    verb = "Would delete" if dry_run else "Deleted"
    deleted = ", ".join(result.deleted_dates) or "nothing"
    print_success(f"{verb} {deleted} ({format_size(result.bytes_freed)})")

    if result.failed_dates:
        print_error(f"Could not fully delete {', '.join(result.failed_dates)}")
        raise typer.Exit(1)


@app.command()
def version() -> None:
    """Show version information."""
    from dailybackup import __version__

    console.print(f"dailybackup version {__version__}")


if __name__ == "__main__":
    app()
