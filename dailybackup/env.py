# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Environment-based configuration helpers.

These helpers are small, convenient wrappers around create_config(). They
make it easy to build a configuration from environment variables, e.g.
for a scheduled service or a container.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import List

from dailybackup.builder import create_config
from dailybackup.config import ArchiveMode, DailyBackupConfig, HashAlgorithm
from dailybackup.errors import (
    explain_invalid_hash_algorithm_env,
    explain_invalid_keep_env,
    explain_invalid_mode_env,
    explain_missing_destination_env,
)
from dailybackup.exceptions import ConfigurationError

_FALSE_VALUES = {"0", "false", "no", "off"}
_UNLIMITED_VALUES = {"-1", "unlimited", "all"}


def _parse_mode(value: str | None) -> ArchiveMode:
    if not value:
        return ArchiveMode.AUTO
    try:
        return ArchiveMode(value.lower())
    except ValueError as exc:
        raise ConfigurationError(explain_invalid_mode_env(value)) from exc


def _parse_keep(value: str | None) -> int | None:
    if not value:
        return 7
    if value.strip().lower() in _UNLIMITED_VALUES:
        return None
    try:
        keep = int(value)
    except (TypeError, ValueError) as exc:
        raise ConfigurationError(explain_invalid_keep_env(value)) from exc
    if keep < 0:
        raise ConfigurationError(explain_invalid_keep_env(value))
    return keep


def _parse_hash_enabled(value: str | None) -> bool:
    if not value:
        return True
    return value.strip().lower() not in _FALSE_VALUES


def _parse_hash_algorithm(value: str | None) -> HashAlgorithm:
    if not value:
        return HashAlgorithm.SHA256
    try:
        return HashAlgorithm(value.strip().upper())
    except ValueError as exc:
        raise ConfigurationError(explain_invalid_hash_algorithm_env(value)) from exc


def _parse_sources(value: str | None) -> List[Path]:
    if not value:
        return []
    return [Path(p.strip()) for p in value.split(os.pathsep) if p.strip()]


def create_config_from_env(*, sources: List[str | Path] | None = None) -> DailyBackupConfig:
    """
    Create a DailyBackupConfig from environment variables.

    Required:
        - DAILYBACKUP_DESTINATION: Backup root directory

    Optional environment variables:
        - DAILYBACKUP_SOURCES: os.pathsep-separated sources (ignored when
          ``sources`` is passed explicitly)
        - DAILYBACKUP_KEEP: Non-negative integer, or -1 / 'unlimited' (default: 7)
        - DAILYBACKUP_MODE: 'auto' | 'individual' | 'combined' (default: auto)
        - DAILYBACKUP_HASH: '0' / 'false' / 'no' / 'off' disables hashing
        - DAILYBACKUP_HASH_ALGORITHM: 'SHA256' (default), 'SHA1', 'SHA384', 'SHA512', 'MD5'
        - DAILYBACKUP_SCHEDULE: Daily schedule in HH:MM
    """

    destination = os.getenv("DAILYBACKUP_DESTINATION")
    if not destination:
        raise ConfigurationError(explain_missing_destination_env())

    if sources is None:
        sources = list(_parse_sources(os.getenv("DAILYBACKUP_SOURCES")))

    return create_config(
        destination,
        sources=sources,
        keep=_parse_keep(os.getenv("DAILYBACKUP_KEEP")),
        mode=_parse_mode(os.getenv("DAILYBACKUP_MODE")),
        hash_enabled=_parse_hash_enabled(os.getenv("DAILYBACKUP_HASH")),
        hash_algorithm=_parse_hash_algorithm(os.getenv("DAILYBACKUP_HASH_ALGORITHM")),
        schedule_cron=os.getenv("DAILYBACKUP_SCHEDULE") or None,
    )
