# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
SnapVault Retention & Purge Engine - Removing snapshots from history.

History is the linear chain of first parents from the tracked tip. Every
purge builds the surviving chain as new commits, moves the ref once that
chain is fully stored, then runs garbage collection. The content (tree)
of every kept snapshot is unchanged; only ancestry and ids change.
"""

import time
from datetime import timedelta
from typing import List

import structlog
from ulid import ULID

from snapvault.core import EngineState, PurgeResult, utc_now
from snapvault.exceptions import (
    CannotPurgeAllError,
    EmptyHistoryError,
    SnapshotNotFoundError,
)
from snapvault.retention.criteria import (
    KeepNewerThan,
    KeepNewestCount,
    MaxTotalSizeBytes,
    RetentionCriterion,
)
from snapvault.retention.rewrite import rewrite_chain
from snapvault.store.layout import store_size_bytes
from snapvault.store.repository import (
    find_tip,
    history_ids,
    iter_history,
    read_tip,
    resolve_commit,
    update_tip,
)

logger = structlog.get_logger()


def _load_history(state: EngineState) -> List[bytes]:
    history = history_ids(state["repo"], state["config"].ref_name)
    if not history:
        raise EmptyHistoryError(
            "No snapshots to purge",
            details={"store_dir": str(state["config"].store_dir)},
        )
    return history


def _commit_new_tip(state: EngineState, new_tip: bytes, message: str) -> None:
    repo = state["repo"]
    update_tip(state, read_tip(repo, state["config"].ref_name), new_tip, message)


def _finish(
    state: EngineState,
    operation_id: str,
    strategy: str,
    history: List[bytes],
    kept: List[bytes],
    start: float,
    run_gc: bool = True,
) -> PurgeResult:
    from snapvault.maintenance.collector import collect_garbage

    gc_report = collect_garbage(state, operation_id) if run_gc else None

    _, tip = find_tip(state["repo"], state["config"].ref_name)
    kept_set = set(kept)
    removed = [sha.decode("ascii") for sha in history if sha not in kept_set]

    result = PurgeResult(
        operation_id=operation_id,
        strategy=strategy,
        removed_count=len(removed),
        kept_count=len(kept),
        new_tip=tip.decode("ascii") if tip else None,
        removed_ids=removed,
        gc=gc_report,
        duration_seconds=time.monotonic() - start,
    )

    logger.info(
        "purge_complete",
        operation_id=operation_id,
        strategy=strategy,
        removed=result.removed_count,
        kept=result.kept_count,
        new_tip=result.new_tip,
    )
    return result


def _keep_newest(state: EngineState, history: List[bytes], keep: int, operation_id: str) -> List[bytes]:
    """
    Collapse everything older than the keep-th newest snapshot into it.

    The oldest kept snapshot becomes a rootless base and the newer kept
    ones are replayed on top.

    Returns:
        The original ids of the kept snapshots
    """
    kept = history[:keep]
    if len(kept) == len(history):
        return kept

    new_tip = rewrite_chain(state["repo"], None, kept, operation_id)
    _commit_new_tip(state, new_tip, f"purge: keep newest {keep}")
    return kept


def purge_snapshot(state: EngineState, snapshot_id: str) -> PurgeResult:
    """
    Remove a single snapshot from history.

    Purging the newest snapshot moves the ref to its parent. Purging an
    older one replays every newer snapshot onto the purged snapshot's
    parent, or makes the next-newer snapshot the root when the purged one
    had no parent.

    Raises:
        InvalidSnapshotIdError: If the id is malformed or unknown
        SnapshotNotFoundError: If the id is not on the current history
        EmptyHistoryError: If there are no snapshots
        CannotPurgeAllError: If it is the only snapshot
    """
    operation_id = str(ULID())
    start = time.monotonic()
    repo = state["repo"]

    target = resolve_commit(repo, snapshot_id).id
    history = _load_history(state)

    if target not in history:
        raise SnapshotNotFoundError(
            f"Snapshot is not part of the current history: {snapshot_id}",
            details={"snapshot_id": snapshot_id},
        )
    if len(history) == 1:
        raise CannotPurgeAllError(
            "Refusing to purge the only snapshot",
            details={"snapshot_id": snapshot_id},
        )

    logger.info("purge_started", operation_id=operation_id, strategy="id", snapshot_id=snapshot_id)

    position = history.index(target)
    if position == 0:
        new_tip = history[1]
    else:
        base = history[position + 1] if position + 1 < len(history) else None
        new_tip = rewrite_chain(repo, base, history[:position], operation_id)

    _commit_new_tip(state, new_tip, f"purge: {snapshot_id}")

    kept = [sha for sha in history if sha != target]
    return _finish(state, operation_id, "id", history, kept, start)


def purge_keep_newest(state: EngineState, count: int) -> PurgeResult:
    """
    Keep only the newest `count` snapshots.

    Raises:
        CannotPurgeAllError: If count is below 1
        EmptyHistoryError: If there are no snapshots
    """
    if count < 1:
        raise CannotPurgeAllError(
            "Refusing to purge every snapshot",
            details={"count": count},
        )

    operation_id = str(ULID())
    start = time.monotonic()
    history = _load_history(state)

    logger.info("purge_started", operation_id=operation_id, strategy="count", keep=count, total=len(history))

    kept = _keep_newest(state, history, count, operation_id)
    return _finish(state, operation_id, "count", history, kept, start)


def purge_older_than(state: EngineState, duration: timedelta) -> PurgeResult:
    """
    Drop snapshots older than `duration`.

    Kept snapshots are the newest ones whose commit time is at or after
    now - duration.

    Raises:
        EmptyHistoryError: If there are no snapshots
        CannotPurgeAllError: If no snapshot is recent enough
    """
    operation_id = str(ULID())
    start = time.monotonic()
    repo = state["repo"]
    history = _load_history(state)
    cutoff = utc_now() - duration

    keep = 0
    _, tip = find_tip(repo, state["config"].ref_name)
    for commit in iter_history(repo, tip, strict=True):
        if commit.commit_time < cutoff.timestamp():
            break
        keep += 1

    if keep == 0:
        raise CannotPurgeAllError(
            "Every snapshot is older than the cutoff",
            details={"cutoff": cutoff.isoformat(), "snapshots": len(history)},
        )

    logger.info(
        "purge_started",
        operation_id=operation_id,
        strategy="age",
        cutoff=cutoff.isoformat(),
        keep=keep,
        total=len(history),
    )

    kept = _keep_newest(state, history, keep, operation_id)
    return _finish(state, operation_id, "age", history, kept, start)


def purge_over_size(state: EngineState, max_bytes: int) -> PurgeResult:
    """
    Shrink the store to at most `max_bytes` on disk.

    Runs garbage collection first, then halves the kept count (count
    purge + GC each round) until the store fits.

    Raises:
        EmptyHistoryError: If there are no snapshots
        CannotPurgeAllError: If one snapshot alone still exceeds the bound
    """
    from snapvault.maintenance.collector import collect_garbage

    operation_id = str(ULID())
    start = time.monotonic()
    store_dir = state["config"].store_dir
    original = _load_history(state)

    logger.info("purge_started", operation_id=operation_id, strategy="size", max_bytes=max_bytes)

    gc_report = collect_garbage(state, operation_id)
    size = store_size_bytes(store_dir)
    history = original
    keep = len(history)

    while size > max_bytes:
        if keep <= 1:
            raise CannotPurgeAllError(
                "Store exceeds the size bound with a single snapshot",
                details={"operation_id": operation_id, "size": size, "max_bytes": max_bytes},
            )
        keep = max(1, keep // 2)
        history = history_ids(state["repo"], state["config"].ref_name)
        _keep_newest(state, history, keep, operation_id)
        gc_report = collect_garbage(state, operation_id)
        size = store_size_bytes(store_dir)
        logger.debug("size_purge_round", operation_id=operation_id, keep=keep, size=size)

    result = _finish(state, operation_id, "size", original, original[:keep], start, run_gc=False)
    result.gc = gc_report
    return result


def apply_retention(state: EngineState, criterion: RetentionCriterion) -> PurgeResult:
    """Run the purge matching a retention criterion."""
    if isinstance(criterion, KeepNewestCount):
        return purge_keep_newest(state, criterion.count)
    if isinstance(criterion, KeepNewerThan):
        return purge_older_than(state, criterion.duration)
    if isinstance(criterion, MaxTotalSizeBytes):
        return purge_over_size(state, criterion.max_bytes)
    raise TypeError(f"Unknown retention criterion: {criterion!r}")
