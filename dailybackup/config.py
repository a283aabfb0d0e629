# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
DailyBackup Configuration - Immutable configuration data structures.

All configuration is frozen (immutable) after creation to prevent
accidental modification during runtime. Layout constants shared by every
component live here as module-level values rather than mutable state.
"""

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import List
import re


# Date directory layout: <destination>/<yyyy-MM-dd>/<archive>.zip
DATE_FORMAT = "%Y-%m-%d"
DATE_DIR_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2}$")

MANIFEST_FILENAME = "backup-manifest.json"
MANIFEST_SCHEMA_VERSION = "1.0"
ARCHIVE_EXTENSION = ".zip"

# Separator used when flattening a source path into an archive name
NAME_DELIMITER = "__"


class PathType(str, Enum):
    """Kind of source path recorded in a manifest entry."""

    FILE = "File"
    DIRECTORY = "Directory"


class ArchiveMode(str, Enum):
    """How sources are packaged into archives."""

    AUTO = "auto"  # Decide per run (see core.choose_mode)
    INDIVIDUAL = "individual"  # One archive per source
    COMBINED = "combined"  # One archive for all sources


class HashAlgorithm(str, Enum):
    """Digest algorithms accepted for source and archive hashes."""

    SHA256 = "SHA256"
    SHA1 = "SHA1"
    SHA384 = "SHA384"
    SHA512 = "SHA512"
    MD5 = "MD5"

    @property
    def hashlib_name(self) -> str:
        return self.value.lower()


def _validate_cron_time(time_str: str) -> bool:
    """Validate HH:MM time format."""
    if not time_str:
        return False
    try:
        parts = time_str.split(":")
        if len(parts) != 2:
            return False
        hour, minute = int(parts[0]), int(parts[1])
        return 0 <= hour <= 23 and 0 <= minute <= 59
    except (ValueError, AttributeError):
        return False


@dataclass(frozen=True)
class DailyBackupConfig:
    """
    Immutable configuration for daily backups.

    This configuration is frozen after creation so that a scheduled run
    and an ad-hoc run can share it without stepping on each other.
    """

    # Required: root directory that receives the date directories
    destination: Path

    # Default sources for scheduled and HTTP-triggered runs
    sources: List[Path] = field(default_factory=list)

    # Number of date directories to retain; None keeps everything
    keep: int | None = 7

    # Packaging policy
    archive_mode: ArchiveMode = ArchiveMode.AUTO

    # Record source/archive hashes in the manifest
    hash_enabled: bool = True

    # Digest used for both hashes of an entry
    hash_algorithm: HashAlgorithm = HashAlgorithm.SHA256

    # Report only, write nothing
    dry_run: bool = False

    # AUTO mode switches to a combined archive above this many sources
    combined_threshold: int = 3

    # Generated archive paths at or above this length are rejected
    max_path_length: int = 255

    # Schedule time in HH:MM format (local time)
    schedule_cron: str | None = None

    def __post_init__(self) -> None:
        """Validate configuration after creation."""
        errors: List[str] = []

        if not str(self.destination).strip():
            errors.append("destination is required")

        if self.keep is not None and self.keep < 0:
            errors.append(f"keep must be >= 0 or None, got {self.keep}")

        if not isinstance(self.archive_mode, ArchiveMode):
            errors.append(f"Invalid archive_mode: {self.archive_mode}")

        if not isinstance(self.hash_algorithm, HashAlgorithm):
            errors.append(f"Invalid hash_algorithm: {self.hash_algorithm}")

        if self.combined_threshold < 1:
            errors.append(
                f"combined_threshold must be >= 1, got {self.combined_threshold}"
            )

        if self.max_path_length < 16:
            errors.append(
                f"max_path_length must be >= 16, got {self.max_path_length}"
            )

        if self.schedule_cron and not _validate_cron_time(self.schedule_cron):
            errors.append(
                f"Invalid schedule_cron format: {self.schedule_cron}, expected HH:MM"
            )

        # Raise all errors at once
        if errors:
            from dailybackup.exceptions import ConfigurationError

            raise ConfigurationError(
                "Configuration validation failed",
                details={"errors": errors},
            )

    def with_updates(self, **kwargs) -> "DailyBackupConfig":
        """
        Create a new config with updated values.

        Since the config is frozen, this creates a new instance.
        """
        from dataclasses import asdict

        current = asdict(self)
        current.update(kwargs)
        return DailyBackupConfig(**current)
