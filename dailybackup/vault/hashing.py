# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
DailyBackup Hashing - Deterministic content hashes for files and directories.

Digests are uppercase hex without separators.

A directory hash is a composite: every file below the directory contributes
a line ``<relative/posix/path>:<file digest>``; lines are sorted by relative
path (case-sensitive) and joined with "\\n", and that text is digested.
A file that cannot be read contributes ``<path>:ERROR`` instead of failing
the whole directory, so such an entry never validates later.
"""

import hashlib
from pathlib import Path
from typing import List

import aiofiles
import structlog

from dailybackup.config import HashAlgorithm

logger = structlog.get_logger()

CHUNK_SIZE = 1024 * 1024
UNREADABLE_MARKER = "ERROR"


def _new_digest(algorithm: HashAlgorithm | str):
    if isinstance(algorithm, str):
        algorithm = HashAlgorithm(algorithm.upper())
    return hashlib.new(algorithm.hashlib_name)


def hash_bytes(data: bytes, algorithm: HashAlgorithm | str = HashAlgorithm.SHA256) -> str:
    """Digest raw bytes."""
    digest = _new_digest(algorithm)
    digest.update(data)
    return digest.hexdigest().upper()


async def compute_file_hash(
    path: Path,
    algorithm: HashAlgorithm | str = HashAlgorithm.SHA256,
) -> str:
    """
    Digest a file's bytes.

    Raises:
        OSError: If the file cannot be read
    """
    digest = _new_digest(algorithm)
    async with aiofiles.open(path, "rb") as f:
        while True:
            chunk = await f.read(CHUNK_SIZE)
            if not chunk:
                break
            digest.update(chunk)
    return digest.hexdigest().upper()


async def compute_directory_hash(
    path: Path,
    algorithm: HashAlgorithm | str = HashAlgorithm.SHA256,
) -> str:
    """
    Digest a directory tree as a composite of per-file digests.

    An empty directory hashes like the empty string.
    """
    files = sorted(
        (p.relative_to(path).as_posix(), p) for p in path.rglob("*") if p.is_file()
    )

    lines: List[str] = []
    for relative, file_path in files:
        try:
            file_digest = await compute_file_hash(file_path, algorithm)
        except OSError as e:
            logger.warning("hash_file_unreadable", path=str(file_path), error=str(e))
            file_digest = UNREADABLE_MARKER
        lines.append(f"{relative}:{file_digest}")

    return hash_bytes("\n".join(lines).encode("utf-8"), algorithm)


async def compute_hash(
    path: Path | str,
    algorithm: HashAlgorithm | str = HashAlgorithm.SHA256,
) -> str | None:
    """
    Hash a file or directory.

    Returns:
        Uppercase hex digest, or None when the path does not exist or the
        file cannot be read (the caller treats that as "hash unavailable")
    """
    p = Path(path)

    if p.is_dir():
        return await compute_directory_hash(p, algorithm)

    if not p.is_file():
        logger.debug("hash_path_missing", path=str(p))
        return None

    try:
        return await compute_file_hash(p, algorithm)
    except OSError as e:
        logger.warning("hash_file_unreadable", path=str(p), error=str(e))
        return None
