# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Backup Engine - Snapshot creation, restore and diff.
"""

from snapvault.backup.manager import (
    create_snapshot,
    list_snapshots,
    latest_snapshot,
)

from snapvault.backup.restore import (
    restore_snapshot,
    RestoreResult,
)

from snapvault.backup.diff import (
    diff_snapshot,
    diff_trees,
)

__all__ = [
    # Manager
    "create_snapshot",
    "list_snapshots",
    "latest_snapshot",
    # Restore
    "restore_snapshot",
    "RestoreResult",
    # Diff
    "diff_snapshot",
    "diff_trees",
]
