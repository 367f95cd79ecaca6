# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
SnapVault Diff Engine - Per-file changes between a snapshot and its parent.

Trees are compared with an explicit worklist of (new tree, old tree,
path prefix) frames. Unchanged subtrees are skipped by hash, deleted
subtrees are flattened into one record per file, and a path that changed
kind (file <-> directory) is reported as a deletion plus an addition.
"""

import os
import stat
from typing import Dict, List, Tuple

import structlog
from dulwich.objects import Commit

from snapvault.core import EngineState, ModifiedFileRecord
from snapvault.exceptions import StoreIOError
from snapvault.store.repository import (
    iter_tree_entries,
    read_blob,
    read_object,
    read_tree,
    resolve_commit,
)

logger = structlog.get_logger()

# (new tree id or None, old tree id or None, path prefix)
_Frame = Tuple[bytes | None, bytes | None, str]


def _entries(state: EngineState, tree_id: bytes | None) -> Dict[bytes, Tuple[int, bytes]]:
    if tree_id is None:
        return {}
    tree = read_tree(state["repo"], tree_id)
    return {name: (mode, sha) for name, mode, sha in iter_tree_entries(tree)}


def diff_trees(
    state: EngineState,
    new_tree: bytes | None,
    old_tree: bytes | None,
) -> List[ModifiedFileRecord]:
    """
    Compare two trees and return one record per changed file.

    Either side may be None, meaning an empty tree.
    """
    repo = state["repo"]
    records: List[ModifiedFileRecord] = []
    worklist: List[_Frame] = [(new_tree, old_tree, "")]

    while worklist:
        new_id, old_id, prefix = worklist.pop()
        new_entries = _entries(state, new_id)
        old_entries = _entries(state, old_id)

        for name, (new_mode, new_sha) in new_entries.items():
            path = prefix + os.fsdecode(name)
            old = old_entries.get(name)
            new_is_dir = stat.S_ISDIR(new_mode)

            if old is None:
                if new_is_dir:
                    worklist.append((new_sha, None, path + "/"))
                else:
                    records.append(ModifiedFileRecord(path, None, read_blob(repo, new_sha)))
                continue

            old_mode, old_sha = old
            old_is_dir = stat.S_ISDIR(old_mode)

            if new_is_dir and old_is_dir:
                if new_sha != old_sha:
                    worklist.append((new_sha, old_sha, path + "/"))
            elif not new_is_dir and not old_is_dir:
                if new_sha != old_sha:
                    before = read_blob(repo, old_sha)
                    after = read_blob(repo, new_sha)
                    if before != after:
                        records.append(ModifiedFileRecord(path, before, after))
            elif new_is_dir:
                # File replaced by a directory
                records.append(ModifiedFileRecord(path, read_blob(repo, old_sha), None))
                worklist.append((new_sha, None, path + "/"))
            else:
                # Directory replaced by a file
                worklist.append((None, old_sha, path + "/"))
                records.append(ModifiedFileRecord(path, None, read_blob(repo, new_sha)))

        for name, (old_mode, old_sha) in old_entries.items():
            if name in new_entries:
                continue
            path = prefix + os.fsdecode(name)
            if stat.S_ISDIR(old_mode):
                worklist.append((None, old_sha, path + "/"))
            else:
                records.append(ModifiedFileRecord(path, read_blob(repo, old_sha), None))

    return records


def diff_snapshot(state: EngineState, snapshot_id: str) -> List[ModifiedFileRecord]:
    """
    List the files a snapshot changed relative to its parent.

    A snapshot without a parent reports every file as added.

    Args:
        state: Engine state
        snapshot_id: Snapshot to inspect

    Returns:
        ModifiedFileRecord list; empty when nothing changed

    Raises:
        InvalidSnapshotIdError: If the id is malformed or unknown
        StoreIOError: If the parent or any object cannot be read
    """
    repo = state["repo"]
    commit = resolve_commit(repo, snapshot_id)

    parent_tree = None
    if commit.parents:
        parent = read_object(repo, commit.parents[0])
        if not isinstance(parent, Commit):
            raise StoreIOError(
                f"Parent of {snapshot_id} is not a snapshot",
                details={"snapshot_id": snapshot_id, "parent": commit.parents[0].decode("ascii")},
            )
        parent_tree = parent.tree

    records = diff_trees(state, commit.tree, parent_tree)

    logger.debug(
        "snapshot_diffed",
        snapshot_id=snapshot_id,
        added=sum(1 for r in records if r.change == "added"),
        modified=sum(1 for r in records if r.change == "modified"),
        deleted=sum(1 for r in records if r.change == "deleted"),
    )
    return records
