# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""Tests for the CLI interface."""

from datetime import datetime
from pathlib import Path

import pytest
from typer.testing import CliRunner

from dailybackup.cli import app
from dailybackup.config import DATE_FORMAT

from conftest import make_date_dirs, write_file


@pytest.fixture
def runner():
    """Create a CLI test runner."""
    return CliRunner()


def _today() -> str:
    return datetime.now().strftime(DATE_FORMAT)


class TestCLIBasics:
    """Tests for basic CLI functionality."""

    def test_help(self, runner: CliRunner):
        result = runner.invoke(app, ["--help"])
        assert result.exit_code == 0
        assert "backup" in result.stdout

    def test_version(self, runner: CliRunner):
        result = runner.invoke(app, ["version"])
        assert result.exit_code == 0
        assert "0.1.0" in result.stdout


class TestBackupCommand:
    """Tests for the backup command."""

    def test_backup_creates_archive(self, runner: CliRunner, source_dir: Path, backup_root: Path):
        source = write_file(source_dir / "a.txt", b"0123456789")

        result = runner.invoke(app, ["backup", str(source), "-d", str(backup_root)])

        assert result.exit_code == 0, result.stdout
        assert "Created" in result.stdout
        assert len(list((backup_root / _today()).glob("*.zip"))) == 1

    def test_backup_dry_run(self, runner: CliRunner, source_dir: Path, backup_root: Path):
        source = write_file(source_dir / "a.txt")

        result = runner.invoke(
            app, ["backup", str(source), "-d", str(backup_root), "--dry-run"]
        )

        assert result.exit_code == 0, result.stdout
        assert "Would create" in result.stdout
        assert not (backup_root / _today()).exists()

    def test_backup_reports_missing_source(
        self, runner: CliRunner, source_dir: Path, backup_root: Path
    ):
        """A missing source is reported and makes the exit code non-zero."""
        good = write_file(source_dir / "a.txt")

        result = runner.invoke(
            app,
            ["backup", str(good), str(source_dir / "nope.txt"), "-d", str(backup_root)],
        )

        assert result.exit_code == 1
        assert "1 failure(s)" in result.stdout
        assert len(list((backup_root / _today()).glob("*.zip"))) == 1

    def test_backup_destination_from_env(
        self, runner: CliRunner, source_dir: Path, backup_root: Path
    ):
        source = write_file(source_dir / "a.txt")

        result = runner.invoke(
            app,
            ["backup", str(source), "--no-hash"],
            env={"DAILYBACKUP_DESTINATION": str(backup_root)},
        )

        assert result.exit_code == 0, result.stdout
        assert (backup_root / _today()).is_dir()


class TestReadCommands:
    """Tests for list, verify and restore."""

    def test_list_shows_backups(self, runner: CliRunner, source_dir: Path, backup_root: Path):
        source = write_file(source_dir / "a.txt")
        runner.invoke(app, ["backup", str(source), "-d", str(backup_root)])

        result = runner.invoke(app, ["list", "-d", str(backup_root)])

        assert result.exit_code == 0
        assert _today() in result.stdout

    def test_list_empty(self, runner: CliRunner, backup_root: Path):
        result = runner.invoke(app, ["list", "-d", str(backup_root)])
        assert result.exit_code == 0
        assert "No backups found" in result.stdout

    def test_verify_fails_on_corruption(
        self, runner: CliRunner, source_dir: Path, backup_root: Path
    ):
        source = write_file(source_dir / "a.txt")
        runner.invoke(app, ["backup", str(source), "-d", str(backup_root)])

        result = runner.invoke(app, ["verify", "-d", str(backup_root)])
        assert result.exit_code == 0
        assert "Valid" in result.stdout

        archive = next((backup_root / _today()).glob("*.zip"))
        with open(archive, "ab") as f:
            f.write(b"\x00")

        result = runner.invoke(app, ["verify", "-d", str(backup_root)])
        assert result.exit_code == 1
        assert "corrupted" in result.stdout

    def test_verify_missing_root(self, runner: CliRunner, temp_dir: Path):
        result = runner.invoke(app, ["verify", "-d", str(temp_dir / "missing")])
        assert result.exit_code == 1
        assert "Error" in result.stdout

    def test_restore_to_target(
        self, runner: CliRunner, source_dir: Path, backup_root: Path, temp_dir: Path
    ):
        source = write_file(source_dir / "a.txt", b"restore me")
        runner.invoke(app, ["backup", str(source), "-d", str(backup_root)])
        target = temp_dir / "out"

        result = runner.invoke(
            app, ["restore", "-d", str(backup_root), "--target", str(target)]
        )

        assert result.exit_code == 0, result.stdout
        assert (target / "a.txt").read_bytes() == b"restore me"


class TestPruneCommand:
    """Tests for the prune command."""

    def test_prune_requires_keep_or_date(self, runner: CliRunner, backup_root: Path):
        result = runner.invoke(app, ["prune", "-d", str(backup_root)])
        assert result.exit_code == 2

    def test_prune_dry_run_keeps_everything(self, runner: CliRunner, backup_root: Path):
        make_date_dirs(backup_root, ["2026-01-01", "2026-01-02"])

        result = runner.invoke(
            app, ["prune", "-d", str(backup_root), "--keep", "1", "--dry-run"]
        )

        assert result.exit_code == 0
        assert "Would delete" in result.stdout
        assert "2026-01-01" in result.stdout
        assert (backup_root / "2026-01-01").is_dir()

    def test_prune_by_date(self, runner: CliRunner, backup_root: Path):
        make_date_dirs(backup_root, ["2026-01-01", "2026-01-02"])

        result = runner.invoke(
            app, ["prune", "-d", str(backup_root), "--date", "2026-01-01"]
        )

        assert result.exit_code == 0
        assert not (backup_root / "2026-01-01").exists()
        assert (backup_root / "2026-01-02").is_dir()

    def test_prune_incomplete_deletion_exits_nonzero(
        self, runner: CliRunner, backup_root: Path, monkeypatch
    ):
        from dailybackup.backup import retention
        from dailybackup.fs import DeletionReport

        make_date_dirs(backup_root, ["2026-01-01"])
        monkeypatch.setattr(
            retention,
            "remove_tree",
            lambda path: DeletionReport(path=str(path), failed=[str(path)]),
        )

        result = runner.invoke(app, ["prune", "-d", str(backup_root), "--keep", "0"])

        assert result.exit_code == 1
        assert "Could not fully delete 2026-01-01" in result.stdout
