# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Backup Vault - Manifests, hashes and the ZIP archive primitive.
"""

from dailybackup.vault.manifest import (
    append_manifest_entry,
    append_manifest_entries,
    read_manifest,
    find_entry_by_archive_name,
    build_entry,
    manifest_path,
    BackupEntry,
    BackupManifest,
)

from dailybackup.vault.hashing import (
    compute_hash,
    compute_file_hash,
    compute_directory_hash,
)

from dailybackup.vault.compressor import (
    compress_paths,
    extract_archive,
    list_archive_members,
)

__all__ = [
    # Manifest functions
    "append_manifest_entry",
    "append_manifest_entries",
    "read_manifest",
    "find_entry_by_archive_name",
    "build_entry",
    "manifest_path",
    # Types
    "BackupEntry",
    "BackupManifest",
    # Hashing
    "compute_hash",
    "compute_file_hash",
    "compute_directory_hash",
    # Compressor
    "compress_paths",
    "extract_archive",
    "list_archive_members",
]
