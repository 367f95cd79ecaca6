# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
SnapVault Snapshot Engine - Snapshot creation and history listing.

This module turns the current working directory into blob, tree and
commit objects, and resolves existing snapshots from the tracked ref.
"""

import os
from pathlib import Path
from typing import Dict, List, Tuple

import structlog
from dulwich.objects import Blob, Tree

from snapvault.core import EngineState, Snapshot, utc_now
from snapvault.exceptions import StoreIOError
from snapvault.store.repository import (
    MODE_TREE,
    file_mode_for,
    find_tip,
    iter_history,
    make_commit,
    read_object,
    read_tip,
    snapshot_from_commit,
    store_object,
    update_tip,
)

logger = structlog.get_logger()


def _is_protected_store(path: Path, state: EngineState) -> bool:
    config = state["config"]
    return config.exclude_store_dir and path == config.store_dir


def _scan_working_dir(state: EngineState) -> List[Tuple[str, List[Tuple[str, Path, bool]]]]:
    """
    Walk the working directory depth-first without recursion.

    Returns:
        Directories in pre-order as (relative_dir, entries) where each
        entry is (name, absolute_path, is_directory) for included items
    """
    config = state["config"]
    ruleset = state["ignore"]
    listing: List[Tuple[str, List[Tuple[str, Path, bool]]]] = []
    stack: List[Tuple[str, Path]] = [("", config.working_dir)]

    while stack:
        rel_dir, abs_dir = stack.pop()
        entries: List[Tuple[str, Path, bool]] = []
        subdirs: List[Tuple[str, Path]] = []

        try:
            with os.scandir(abs_dir) as it:
                dir_entries = sorted(it, key=lambda e: e.name)
        except OSError as e:
            raise StoreIOError(
                f"Failed to read directory: {e}",
                details={"path": str(abs_dir)},
            ) from e

        for entry in dir_entries:
            rel_path = f"{rel_dir}/{entry.name}" if rel_dir else entry.name
            abs_path = Path(entry.path)

            # Symlinks and special files are not captured
            if entry.is_symlink():
                logger.debug("symlink_skipped", path=rel_path)
                continue

            is_dir = entry.is_dir(follow_symlinks=False)
            if not is_dir and not entry.is_file(follow_symlinks=False):
                continue

            if is_dir and _is_protected_store(abs_path, state):
                continue

            if ruleset.is_excluded(rel_path, is_dir):
                logger.debug("entry_excluded", path=rel_path, is_directory=is_dir)
                continue

            entries.append((entry.name, abs_path, is_dir))
            if is_dir:
                subdirs.append((rel_path, abs_path))

        listing.append((rel_dir, entries))
        # Reverse so the alphabetically first subdirectory is visited first
        stack.extend(reversed(subdirs))

    return listing


def _build_trees(
    state: EngineState,
    listing: List[Tuple[str, List[Tuple[str, Path, bool]]]],
) -> Tuple[bytes, int, int]:
    """
    Store blobs and build trees bottom-up.

    Returns:
        (root tree id, files captured, objects written)
    """
    repo = state["repo"]
    tree_ids: Dict[str, bytes] = {}
    file_count = 0
    written = 0

    # Children appear after their parent in pre-order, so reversed order
    # builds every subtree before the tree that contains it
    for rel_dir, entries in reversed(listing):
        tree = Tree()

        for name, abs_path, is_dir in entries:
            encoded_name = os.fsencode(name)
            if is_dir:
                child_rel = f"{rel_dir}/{name}" if rel_dir else name
                child_id = tree_ids.get(child_rel)
                # Empty directories are not representable
                if child_id is None:
                    continue
                tree.add(encoded_name, MODE_TREE, child_id)
                continue

            try:
                st = os.lstat(abs_path)
                data = abs_path.read_bytes()
            except FileNotFoundError:
                # Vanished between scan and read
                logger.warning("file_vanished", path=str(abs_path))
                continue
            except OSError as e:
                raise StoreIOError(
                    f"Failed to read file: {e}",
                    details={"path": str(abs_path)},
                ) from e

            blob = Blob.from_string(data)
            if store_object(repo, blob):
                written += 1
            tree.add(encoded_name, file_mode_for(st.st_mode), blob.id)
            file_count += 1

        if len(tree) == 0 and rel_dir:
            continue

        if store_object(repo, tree):
            written += 1
        tree_ids[rel_dir] = tree.id

    return tree_ids[""], file_count, written


def _clear_stale_index(state: EngineState) -> None:
    index_path = state["config"].store_dir / "index"
    try:
        index_path.unlink()
        logger.debug("stale_index_removed", path=str(index_path))
    except FileNotFoundError:
        pass
    except OSError as e:
        raise StoreIOError(
            f"Failed to clear stale index: {e}",
            details={"path": str(index_path)},
        ) from e


def create_snapshot(state: EngineState, description: str | None = None) -> str:
    """
    Capture the working directory as a new snapshot.

    The new commit's parent is the current tip (none for the first
    snapshot). The tracked ref moves only after every object is stored.

    Args:
        state: Engine state
        description: Free-form text; the configured default when None

    Returns:
        The new snapshot id (40-char hex)
    """
    config = state["config"]
    repo = state["repo"]
    if description is None:
        description = config.default_description

    _clear_stale_index(state)

    if not config.working_dir.is_dir():
        raise StoreIOError(
            f"Working directory does not exist: {config.working_dir}",
            details={"working_dir": str(config.working_dir)},
        )

    listing = _scan_working_dir(state)
    tree_id, file_count, written = _build_trees(state, listing)

    _, parent = find_tip(repo, config.ref_name)
    commit = make_commit(
        tree=tree_id,
        parent=parent,
        identity=config.identity,
        timestamp=int(utc_now().timestamp()),
        message=description.encode("utf-8"),
    )
    store_object(repo, commit)

    summary = description.splitlines()[0] if description else ""
    update_tip(state, read_tip(repo, config.ref_name), commit.id, f"snapshot: {summary}")
    state["total_snapshots_created"] += 1

    snapshot_id = commit.id.decode("ascii")
    logger.info(
        "snapshot_created",
        snapshot_id=snapshot_id,
        parent=parent.decode("ascii") if parent else None,
        files=file_count,
        objects_written=written,
    )
    return snapshot_id


def list_snapshots(state: EngineState) -> List[Snapshot]:
    """
    List every snapshot, newest first.

    Never raises for an empty or absent history. An unreadable ancestor
    ends the listing with a warning instead of failing the call.
    """
    repo = state["repo"]
    try:
        _, tip = find_tip(repo, state["config"].ref_name)
    except Exception as e:
        logger.warning("snapshot_listing_failed", error=str(e))
        return []

    return [snapshot_from_commit(commit) for commit in iter_history(repo, tip)]


def latest_snapshot(state: EngineState) -> Snapshot | None:
    """
    Return the snapshot at the tip of the tracked ref.

    Returns None when the store has no snapshots yet.
    """
    repo = state["repo"]
    try:
        _, tip = find_tip(repo, state["config"].ref_name)
        if tip is None:
            return None
        return snapshot_from_commit(read_object(repo, tip))
    except StoreIOError as e:
        logger.warning("latest_snapshot_unreadable", error=str(e))
        return None

