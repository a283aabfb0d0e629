# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Test fixtures for DailyBackup tests.

Provides temporary source trees, backup roots and configuration helpers.
"""

import os
import tempfile
from pathlib import Path
from typing import Generator

import pytest

# Set test environment variables
os.environ["DAILYBACKUP_ADMIN_API_KEY"] = "test-api-key-12345"

AUTH_HEADERS = {"Authorization": "Bearer test-api-key-12345"}


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for tests."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir).resolve()


@pytest.fixture
def source_dir(temp_dir: Path) -> Path:
    """Directory holding the files that get backed up."""
    path = temp_dir / "source"
    path.mkdir()
    return path


@pytest.fixture
def backup_root(temp_dir: Path) -> Path:
    """Backup destination root."""
    path = temp_dir / "backups"
    path.mkdir()
    return path


@pytest.fixture
def test_config(backup_root: Path):
    """Create a test configuration."""
    from dailybackup.config import ArchiveMode, DailyBackupConfig

    return DailyBackupConfig(
        destination=backup_root,
        keep=7,
        archive_mode=ArchiveMode.INDIVIDUAL,
    )


def write_file(path: Path, content: bytes | str = b"test content") -> Path:
    """Write a file, creating parent directories."""
    path.parent.mkdir(parents=True, exist_ok=True)
    if isinstance(content, str):
        content = content.encode("utf-8")
    path.write_bytes(content)
    return path


def make_tree(root: Path, files: dict) -> Path:
    """Create files below root from a {relative_path: content} mapping."""
    for relative, content in files.items():
        write_file(root / relative, content)
    return root


def make_date_dirs(root: Path, dates: list) -> list:
    """Create date directories, each holding one dummy archive."""
    paths = []
    for name in dates:
        date_dir = root / name
        write_file(date_dir / "dummy.zip", b"PK")
        paths.append(date_dir)
    return paths
