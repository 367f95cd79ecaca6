# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
SnapVault Restore Engine - Force checkout of a snapshot into the working directory.

Restore makes the working directory match the snapshot tree exactly:
tracked files are overwritten, missing files are recreated, and anything
on disk that the tree does not contain is removed. Ignore rules do not
apply here. The only thing left alone is a store nested inside the
working directory.

Restore is always an explicit operation.
"""

import os
import shutil
import stat
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Set, Tuple

import structlog

from snapvault.core import EngineState
from snapvault.exceptions import StoreIOError
from snapvault.store.repository import (
    MODE_EXECUTABLE,
    iter_tree_entries,
    read_blob,
    read_tree,
    resolve_commit,
)

logger = structlog.get_logger()


@dataclass
class RestoreResult:
    """Result of a restore operation."""

    snapshot_id: str
    written_count: int
    removed_count: int
    unchanged_count: int


def _flatten_tree(state: EngineState, tree_id: bytes) -> Tuple[Dict[str, Tuple[int, bytes]], Set[str]]:
    """
    Expand a tree into its file and directory paths.

    Returns:
        (files as path -> (mode, blob id), set of directory paths)
    """
    repo = state["repo"]
    files: Dict[str, Tuple[int, bytes]] = {}
    directories: Set[str] = set()
    stack: List[Tuple[bytes, str]] = [(tree_id, "")]

    while stack:
        sha, prefix = stack.pop()
        tree = read_tree(repo, sha)
        for name, mode, entry_sha in iter_tree_entries(tree):
            path = f"{prefix}{os.fsdecode(name)}"
            if stat.S_ISDIR(mode):
                directories.add(path)
                stack.append((entry_sha, path + "/"))
            else:
                files[path] = (mode, entry_sha)

    return files, directories


def _remove_path(path: Path) -> None:
    if path.is_dir() and not path.is_symlink():
        shutil.rmtree(path)
    else:
        path.unlink()


def _remove_untracked(
    state: EngineState,
    files: Dict[str, Tuple[int, bytes]],
    directories: Set[str],
) -> int:
    """Remove every on-disk entry the target tree does not contain."""
    config = state["config"]
    removed = 0
    stack: List[Tuple[str, Path]] = [("", config.working_dir)]

    while stack:
        rel_dir, abs_dir = stack.pop()
        with os.scandir(abs_dir) as it:
            dir_entries = list(it)

        for entry in dir_entries:
            rel_path = f"{rel_dir}/{entry.name}" if rel_dir else entry.name
            abs_path = Path(entry.path)

            if config.exclude_store_dir and abs_path == config.store_dir:
                continue

            if entry.is_symlink():
                # Never follow; the tree holds no symlinks
                abs_path.unlink()
                removed += 1
            elif entry.is_dir(follow_symlinks=False):
                if rel_path in directories:
                    stack.append((rel_path, abs_path))
                elif config.exclude_store_dir and config.store_dir.is_relative_to(abs_path):
                    # Keep the path down to a nested store, clear the rest
                    stack.append((rel_path, abs_path))
                else:
                    _remove_path(abs_path)
                    removed += 1
            elif rel_path not in files:
                abs_path.unlink()
                removed += 1

    return removed


def _write_files(state: EngineState, files: Dict[str, Tuple[int, bytes]]) -> Tuple[int, int]:
    repo = state["repo"]
    root = state["config"].working_dir
    written = 0
    unchanged = 0

    for rel_path in sorted(files):
        mode, blob_id = files[rel_path]
        target = root.joinpath(*rel_path.split("/"))
        data = read_blob(repo, blob_id)
        file_mode = 0o755 if mode == MODE_EXECUTABLE else 0o644

        target.parent.mkdir(parents=True, exist_ok=True)
        try:
            if target.is_file() and not target.is_symlink() and target.read_bytes() == data:
                os.chmod(target, file_mode)
                unchanged += 1
                continue
        except OSError:
            pass

        target.write_bytes(data)
        os.chmod(target, file_mode)
        written += 1
        logger.debug("file_restored", path=rel_path, size=len(data))

    return written, unchanged


def restore_snapshot(state: EngineState, snapshot_id: str) -> RestoreResult:
    """
    Replace the working directory's contents with a snapshot's tree.

    Works whatever state the working directory has drifted into:
    files are overwritten, missing ones recreated, untracked ones removed.

    Args:
        state: Engine state
        snapshot_id: Snapshot to restore

    Returns:
        RestoreResult with counts

    Raises:
        InvalidSnapshotIdError: If the id is malformed or unknown
        StoreIOError: If reading objects or writing files fails
    """
    config = state["config"]
    commit = resolve_commit(state["repo"], snapshot_id)

    logger.info("restore_started", snapshot_id=snapshot_id, working_dir=str(config.working_dir))

    # Read the whole tree before touching the working directory
    files, directories = _flatten_tree(state, commit.tree)

    try:
        config.working_dir.mkdir(parents=True, exist_ok=True)
        removed = _remove_untracked(state, files, directories)
        # Directories come back implicitly through their files
        written, unchanged = _write_files(state, files)
    except OSError as e:
        raise StoreIOError(
            f"Failed to restore snapshot: {e}",
            details={"snapshot_id": snapshot_id, "working_dir": str(config.working_dir)},
        ) from e

    logger.info(
        "restore_complete",
        snapshot_id=snapshot_id,
        written=written,
        removed=removed,
        unchanged=unchanged,
    )

    return RestoreResult(
        snapshot_id=snapshot_id,
        written_count=written,
        removed_count=removed,
        unchanged_count=unchanged,
    )
