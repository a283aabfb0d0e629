# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
DailyBackup Builder - Functional builder pattern for configuration.

This module provides pure functions for building DailyBackupConfig objects.
Each function takes a config dict and returns a new dict with the
modification applied (immutable updates).
"""

from pathlib import Path
from typing import Any, Callable, Dict, List

from dailybackup.config import ArchiveMode, DailyBackupConfig, HashAlgorithm


# Type alias for builder functions
ConfigDict = Dict[str, Any]
BuilderFunc = Callable[[ConfigDict], ConfigDict]


def create_empty_config() -> ConfigDict:
    """
    Create an initial empty configuration dictionary.

    Returns:
        Dict with default values for all configuration fields
    """
    return {
        "destination": Path(""),
        "sources": [],
        "keep": 7,
        "archive_mode": ArchiveMode.AUTO,
        "hash_enabled": True,
        "hash_algorithm": HashAlgorithm.SHA256,
        "dry_run": False,
        "combined_threshold": 3,
        "max_path_length": 255,
        "schedule_cron": None,
    }


def with_destination(config: ConfigDict, destination: Path | str) -> ConfigDict:
    """
    Set the backup root directory.

    Args:
        config: Current configuration dictionary
        destination: Directory that receives the yyyy-MM-dd date directories

    Returns:
        New configuration dictionary with destination set
    """
    return {**config, "destination": Path(destination)}


def add_sources(config: ConfigDict, sources: List[Path | str]) -> ConfigDict:
    """
    Add files or directories to back up on every run.

    Args:
        config: Current configuration dictionary
        sources: Paths to back up

    Returns:
        New configuration dictionary with sources appended
    """
    new_sources = list(config["sources"]) + [Path(s) for s in sources]
    return {**config, "sources": new_sources}


def add_source(config: ConfigDict, source: Path | str) -> ConfigDict:
    """
    Add a single file or directory to back up.

    Args:
        config: Current configuration dictionary
        source: Path to back up

    Returns:
        New configuration dictionary with source appended
    """
    return add_sources(config, [source])


def keep_last(config: ConfigDict, count: int) -> ConfigDict:
    """
    Retain only the most recent date directories after each run.

    Args:
        config: Current configuration dictionary
        count: Number of date directories to keep (0 removes all)

    Returns:
        New configuration dictionary with retention set
    """
    if count < 0:
        raise ValueError(f"keep count must be >= 0, got {count}")
    return {**config, "keep": count}


def keep_all(config: ConfigDict) -> ConfigDict:
    """
    Disable retention pruning entirely.

    Args:
        config: Current configuration dictionary

    Returns:
        New configuration dictionary with unlimited retention
    """
    return {**config, "keep": None}


def individual_mode(config: ConfigDict) -> ConfigDict:
    """Write one archive per source."""
    return {**config, "archive_mode": ArchiveMode.INDIVIDUAL}


def combined_mode(config: ConfigDict) -> ConfigDict:
    """Write one archive holding every source."""
    return {**config, "archive_mode": ArchiveMode.COMBINED}


def auto_mode(config: ConfigDict) -> ConfigDict:
    """Let each run pick individual or combined packaging."""
    return {**config, "archive_mode": ArchiveMode.AUTO}


def without_hashing(config: ConfigDict) -> ConfigDict:
    """
    Skip source and archive hashing.

    Entries written without hashes report "no hash data" on verification.

    Args:
        config: Current configuration dictionary

    Returns:
        New configuration dictionary with hashing disabled
    """
    return {**config, "hash_enabled": False}


def hash_with(config: ConfigDict, algorithm: HashAlgorithm | str) -> ConfigDict:
    """
    Select the digest used for source and archive hashes.

    Args:
        config: Current configuration dictionary
        algorithm: Algorithm name, e.g. 'SHA256'

    Returns:
        New configuration dictionary with hashing enabled and algorithm set
    """
    if isinstance(algorithm, str):
        algorithm = HashAlgorithm(algorithm.upper())
    return {**config, "hash_enabled": True, "hash_algorithm": algorithm}


def dry_run_mode(config: ConfigDict) -> ConfigDict:
    """
    Report what would happen without writing archives, manifests or deletions.

    Args:
        config: Current configuration dictionary

    Returns:
        New configuration dictionary with dry-run enabled
    """
    return {**config, "dry_run": True}


def run_daily_at(config: ConfigDict, time: str) -> ConfigDict:
    """
    Set the daily schedule time.

    Args:
        config: Current configuration dictionary
        time: Time in HH:MM format (e.g., '02:30')

    Returns:
        New configuration dictionary with schedule set
    """
    parts = time.split(":")
    if len(parts) != 2:
        raise ValueError(f"Invalid time format: {time}, expected HH:MM")
    try:
        hour, minute = int(parts[0]), int(parts[1])
        if not (0 <= hour <= 23 and 0 <= minute <= 59):
            raise ValueError(f"Invalid time: {time}")
    except ValueError:
        raise ValueError(f"Invalid time format: {time}, expected HH:MM")

    return {**config, "schedule_cron": time}


def build_config(config_dict: ConfigDict) -> DailyBackupConfig:
    """
    Validate and build an immutable DailyBackupConfig from a configuration dictionary.

    Args:
        config_dict: Configuration dictionary built using builder functions

    Returns:
        Validated, immutable DailyBackupConfig instance

    Raises:
        ConfigurationError: If validation fails
    """
    destination = config_dict.get("destination")
    if destination is None or not str(destination).strip() or str(destination) == ".":
        from dailybackup.exceptions import ConfigurationError

        raise ConfigurationError("destination is required")

    return DailyBackupConfig(**config_dict)


def pipe(*funcs: BuilderFunc) -> BuilderFunc:
    """
    Compose multiple builder functions into a single function.

    This allows a more readable pipeline style:

        config = pipe(
            lambda c: with_destination(c, "/backups"),
            lambda c: add_source(c, "/home/me/notes"),
            without_hashing,
        )(create_empty_config())

    Args:
        *funcs: Builder functions to compose

    Returns:
        A single function that applies all functions in sequence
    """

    def composed(config: ConfigDict) -> ConfigDict:
        result = config
        for func in funcs:
            result = func(result)
        return result

    return composed


def build_from_steps(*steps: BuilderFunc) -> DailyBackupConfig:
    """
    Build config by applying a sequence of builder functions.

    Example:
        config = build_from_steps(
            lambda c: with_destination(c, "/backups"),
            lambda c: keep_last(c, 14),
            individual_mode,
        )

    Args:
        *steps: Builder functions to apply in sequence

    Returns:
        Validated, immutable DailyBackupConfig instance
    """
    return build_config(pipe(*steps)(create_empty_config()))


def create_config(
    destination: str | Path,
    *,
    sources: List[str | Path] | None = None,
    keep: int | None = 7,
    mode: str | ArchiveMode = "auto",
    hash_enabled: bool = True,
    hash_algorithm: str | HashAlgorithm = "SHA256",
    dry_run: bool = False,
    schedule_cron: str | None = None,
    **kwargs: Any,
) -> DailyBackupConfig:
    """
    Create DailyBackup configuration from simple parameters.

    This is the recommended user-facing API for creating configurations.

    Args:
        destination: Backup root directory (required)
        sources: Files or directories backed up by scheduled runs
        keep: Date directories to retain (None disables pruning)
        mode: "auto", "individual" or "combined" (default: "auto")
        hash_enabled: Record source and archive hashes (default: True)
        hash_algorithm: Digest for both hashes (default: "SHA256")
        dry_run: Report only (default: False)
        schedule_cron: Daily schedule in HH:MM format (optional)
        **kwargs: Additional configuration options

    Returns:
        Validated, immutable DailyBackupConfig instance

    Example:
        config = create_config(
            "/mnt/backups",
            sources=["/home/me/Documents", "/home/me/.bashrc"],
            keep=14,
        )
    """
    config_dict = with_destination(create_empty_config(), destination)

    if sources:
        config_dict = add_sources(config_dict, list(sources))

    if keep is None:
        config_dict = keep_all(config_dict)
    else:
        config_dict = keep_last(config_dict, keep)

    mode_value = mode.value if isinstance(mode, ArchiveMode) else mode.lower()
    if mode_value == ArchiveMode.INDIVIDUAL.value:
        config_dict = individual_mode(config_dict)
    elif mode_value == ArchiveMode.COMBINED.value:
        config_dict = combined_mode(config_dict)
    else:
        config_dict = auto_mode(config_dict)

    if hash_enabled:
        config_dict = hash_with(config_dict, hash_algorithm)
    else:
        config_dict = without_hashing(config_dict)

    if dry_run:
        config_dict = dry_run_mode(config_dict)

    if schedule_cron:
        config_dict = run_daily_at(config_dict, schedule_cron)

    # Apply any additional kwargs
    for key, value in kwargs.items():
        if key in config_dict:
            config_dict[key] = value

    return build_config(config_dict)
