# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
SnapVault Garbage Collector - Reclaims space after history rewrites.

Steps, in order:
1. Expire reflogs so old entries stop pinning dead objects
2. Compute the reachable set by traversing from every ref
3. Delete unreachable loose objects
4. Repack every reachable object into one pack
5. Fold loose refs into packed-refs

Nothing is deleted until step 2 has finished a complete traversal. A
traversal that cannot read a reachable object aborts the run. Steps 3-5
are best-effort: failures are logged and collected in the report.
"""

import time
from collections import deque
from typing import Set

import structlog
from dulwich.objects import S_ISGITLINK, Commit, Tag, Tree
from ulid import ULID

from snapvault.core import EngineState, GCReport, utc_now
from snapvault.exceptions import GarbageCollectionError
from snapvault.store.layout import iter_loose_objects, iter_reflog_files, remove_empty_buckets
from snapvault.store.repository import reopen_repository

logger = structlog.get_logger()


def expire_reflogs(state: EngineState, operation_id: str) -> int:
    """
    Truncate every reflog file.

    Returns:
        Number of reflog files expired
    """
    expired = 0
    for path in iter_reflog_files(state["config"].store_dir):
        if path.stat().st_size == 0:
            continue
        path.write_bytes(b"")
        expired += 1

    logger.debug("reflogs_expired", operation_id=operation_id, count=expired)
    return expired


def compute_reachable(state: EngineState, operation_id: str) -> Set[bytes]:
    """
    Breadth-first traversal from every ref to the full reachable object set.

    Raises:
        GarbageCollectionError: If any reachable object cannot be read
    """
    repo = state["repo"]

    try:
        roots = set(repo.get_refs().values())
    except Exception as e:
        raise GarbageCollectionError(
            f"Failed to enumerate references: {e}",
            details={"operation_id": operation_id},
        ) from e

    # The tracked tip is a root even if HEAD resolution fails
    try:
        roots.add(repo.refs[state["config"].ref_name])
    except KeyError:
        pass
    roots.discard(None)

    reachable: Set[bytes] = set()
    queue = deque(sorted(roots))

    while queue:
        sha = queue.popleft()
        if sha in reachable:
            continue

        try:
            obj = repo.object_store[sha]
        except Exception as e:
            raise GarbageCollectionError(
                f"Reachable object unreadable: {sha.decode('ascii')}",
                details={"operation_id": operation_id, "sha": sha.decode("ascii"), "error": str(e)},
            ) from e

        reachable.add(sha)

        if isinstance(obj, Commit):
            queue.append(obj.tree)
            queue.extend(obj.parents)
        elif isinstance(obj, Tag):
            queue.append(obj.object[1])
        elif isinstance(obj, Tree):
            # Every entry but submodule links (symlink blobs included)
            for entry in obj.items():
                if not S_ISGITLINK(entry.mode) and entry.sha not in reachable:
                    queue.append(entry.sha)

    logger.debug("reachability_computed", operation_id=operation_id, reachable=len(reachable), roots=len(roots))
    return reachable


def prune_loose_objects(state: EngineState, reachable: Set[bytes], report: GCReport) -> None:
    """Delete loose objects outside the reachable set, counting successes and failures."""
    store_dir = state["config"].store_dir

    for hex_sha, path in list(iter_loose_objects(store_dir)):
        if hex_sha.encode("ascii") in reachable:
            continue
        try:
            path.unlink()
            report.pruned_count += 1
        except FileNotFoundError:
            continue
        except OSError as e:
            report.prune_failed_count += 1
            report.errors.append(f"prune {hex_sha}: {e}")
            logger.warning("loose_object_prune_failed", operation_id=report.operation_id, sha=hex_sha, error=str(e))

    remove_empty_buckets(store_dir)


def collect_garbage(state: EngineState, operation_id: str | None = None) -> GCReport:
    """
    Run a full garbage collection cycle on the store.

    Purges call this as their last step; it can also be run on demand.

    Args:
        state: Engine state
        operation_id: ULID to tag log events with (generated when None)

    Returns:
        GCReport with per-step counts and collected errors

    Raises:
        GarbageCollectionError: If the reachability traversal fails
    """
    from snapvault.maintenance.packing import pack_refs, repack_reachable

    operation_id = operation_id or str(ULID())
    start = time.monotonic()
    store_dir = state["config"].store_dir
    report = GCReport(operation_id=operation_id)

    logger.info("gc_started", operation_id=operation_id, store_dir=str(store_dir))

    # Step 1: Expire reflogs
    try:
        report.reflogs_expired = expire_reflogs(state, operation_id)
    except OSError as e:
        report.errors.append(f"reflog expiry: {e}")
        logger.warning("reflog_expiry_failed", operation_id=operation_id, error=str(e))

    # Step 2: Reachability (aborts the run on failure)
    try:
        reachable = compute_reachable(state, operation_id)
    except GarbageCollectionError as e:
        state["last_error"] = str(e)
        logger.error("gc_traversal_failed", operation_id=operation_id, error=str(e))
        raise
    report.reachable_count = len(reachable)

    # Step 3: Prune unreachable loose objects
    prune_loose_objects(state, reachable, report)

    # Step 4: Repack
    try:
        packed, removed_packs, errors = repack_reachable(state["repo"], store_dir, reachable, operation_id)
        report.packed_count = packed
        report.superseded_packs_removed = removed_packs
        report.errors.extend(errors)
    except Exception as e:
        report.errors.append(f"repack: {e}")
        logger.error("repack_failed", operation_id=operation_id, error=str(e))

    # Step 5: Pack refs
    try:
        report.refs_packed = pack_refs(state["repo"], store_dir, operation_id)
    except Exception as e:
        report.errors.append(f"pack refs: {e}")
        logger.error("pack_refs_failed", operation_id=operation_id, error=str(e))

    # Packs and refs changed underneath dulwich's caches
    reopen_repository(state)

    report.duration_seconds = time.monotonic() - start
    state["total_gc_runs"] += 1
    state["last_gc_at"] = utc_now()
    if report.errors:
        state["last_error"] = report.errors[-1]

    logger.info(
        "gc_complete",
        operation_id=operation_id,
        reachable=report.reachable_count,
        pruned=report.pruned_count,
        prune_failed=report.prune_failed_count,
        packed=report.packed_count,
        superseded_packs=report.superseded_packs_removed,
        refs_packed=report.refs_packed,
        reflogs_expired=report.reflogs_expired,
        errors=len(report.errors),
        duration_seconds=report.duration_seconds,
    )
    return report
