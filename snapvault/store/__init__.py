# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Object Store - dulwich-backed repository access and on-disk layout.
"""

from snapvault.store.repository import (
    open_repository,
    reopen_repository,
    validate_snapshot_id,
    resolve_commit,
    read_object,
    read_tree,
    read_blob,
    store_object,
    find_tip,
    iter_history,
    history_ids,
    snapshot_from_commit,
    update_tip,
)

__all__ = [
    # Repository
    "open_repository",
    "reopen_repository",
    "validate_snapshot_id",
    # Objects
    "resolve_commit",
    "read_object",
    "read_tree",
    "read_blob",
    "store_object",
    # History
    "find_tip",
    "iter_history",
    "history_ids",
    "snapshot_from_commit",
    "update_tip",
]
