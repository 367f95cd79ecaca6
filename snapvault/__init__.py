# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
SnapVault - Snapshot backups in a git object store.

Stores point-in-time snapshots of a directory tree as commits in a bare
git repository, with structural sharing of unchanged content, diff,
restore, retention-driven history rewriting, garbage collection and
compressed archive export. Package name: snapvault.
"""

__version__ = "0.1.0"

# Configuration creation (user-facing API)
from snapvault.builder import create_config
from snapvault.config import SnapVaultConfig

# Environment-based configuration
from snapvault.env import create_config_from_env

# Engine handle and records
from snapvault.core import (
    EngineState,
    GCReport,
    ModifiedFileRecord,
    PurgeResult,
    Snapshot,
    StoreMetrics,
    open_engine,
    close_engine,
    set_ignore_file,
    get_metrics,
)

# Operations
from snapvault.backup import (
    create_snapshot,
    list_snapshots,
    latest_snapshot,
    restore_snapshot,
    diff_snapshot,
)
from snapvault.archive import export_snapshot, export_snapshot_to_stream
from snapvault.retention import (
    KeepNewestCount,
    KeepNewerThan,
    MaxTotalSizeBytes,
    apply_retention,
    purge_snapshot,
    purge_keep_newest,
    purge_older_than,
    purge_over_size,
)
from snapvault.maintenance import collect_garbage

from snapvault.exceptions import (
    SnapVaultError,
    ConfigurationError,
    InvalidSnapshotIdError,
    SnapshotNotFoundError,
    EmptyHistoryError,
    CannotPurgeAllError,
    StoreIOError,
    GarbageCollectionError,
    ArchiveIOError,
)

__all__ = [
    # Version
    "__version__",
    # Configuration
    "create_config",
    "create_config_from_env",
    "SnapVaultConfig",
    # Engine
    "EngineState",
    "open_engine",
    "close_engine",
    "set_ignore_file",
    "get_metrics",
    # Records
    "Snapshot",
    "ModifiedFileRecord",
    "PurgeResult",
    "GCReport",
    "StoreMetrics",
    # Snapshots
    "create_snapshot",
    "list_snapshots",
    "latest_snapshot",
    "restore_snapshot",
    "diff_snapshot",
    # Export
    "export_snapshot",
    "export_snapshot_to_stream",
    # Retention
    "KeepNewestCount",
    "KeepNewerThan",
    "MaxTotalSizeBytes",
    "apply_retention",
    "purge_snapshot",
    "purge_keep_newest",
    "purge_older_than",
    "purge_over_size",
    # Maintenance
    "collect_garbage",
    # Exceptions
    "SnapVaultError",
    "ConfigurationError",
    "InvalidSnapshotIdError",
    "SnapshotNotFoundError",
    "EmptyHistoryError",
    "CannotPurgeAllError",
    "StoreIOError",
    "GarbageCollectionError",
    "ArchiveIOError",
]
