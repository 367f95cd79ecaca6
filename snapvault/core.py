# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
SnapVault Core - Engine handle and shared result records.

The engine handle is an explicitly owned EngineState passed into every
operation; there is no process-wide repository singleton. One handle
owns one store, and callers serialize mutating calls per handle.
"""

from dataclasses import dataclass, field
from datetime import datetime, UTC
from pathlib import Path
from typing import Any, List, TypedDict

import structlog

from snapvault.config import SnapVaultConfig

logger = structlog.get_logger()


def utc_now() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(UTC)


@dataclass(frozen=True)
class Snapshot:
    """One point-in-time backup (a commit on the tracked branch)."""

    id: str  # 40-char hex commit id
    timestamp: datetime  # UTC commit time
    description: str
    parent: str | None
    tree: str


@dataclass(frozen=True)
class ModifiedFileRecord:
    """
    One changed path between a snapshot and its parent.

    content_before is None for additions, content_after is None for
    deletions; both present means the file was modified.
    """

    path: str
    content_before: bytes | None
    content_after: bytes | None

    def __post_init__(self) -> None:
        if self.content_before is None and self.content_after is None:
            raise ValueError(f"ModifiedFileRecord for {self.path!r} has no content on either side")

    @property
    def change(self) -> str:
        if self.content_before is None:
            return "added"
        if self.content_after is None:
            return "deleted"
        return "modified"


@dataclass
class GCReport:
    """Result of a garbage collection run."""

    operation_id: str  # ULID
    reachable_count: int = 0
    pruned_count: int = 0
    prune_failed_count: int = 0
    packed_count: int = 0
    superseded_packs_removed: int = 0
    refs_packed: int = 0
    reflogs_expired: int = 0
    errors: List[str] = field(default_factory=list)
    duration_seconds: float = 0.0


@dataclass
class PurgeResult:
    """Result of a purge operation."""

    operation_id: str  # ULID
    strategy: str
    removed_count: int
    kept_count: int
    new_tip: str | None
    removed_ids: List[str] = field(default_factory=list)
    gc: GCReport | None = None
    duration_seconds: float = 0.0


@dataclass
class StoreMetrics:
    """Metrics for one store."""

    snapshot_count: int
    store_size_bytes: int
    loose_object_count: int
    pack_count: int
    total_snapshots_created: int
    total_gc_runs: int
    last_gc_at: datetime | None
    last_error: str | None


class EngineState(TypedDict):
    """Runtime state for one backed-up target."""

    config: SnapVaultConfig
    repo: Any  # dulwich.repo.Repo
    ignore: Any  # snapvault.ignore.IgnoreRuleset
    opened_at: datetime
    total_snapshots_created: int
    total_gc_runs: int
    last_gc_at: datetime | None
    last_error: str | None


def open_engine(config: SnapVaultConfig) -> EngineState:
    """
    Initialize or attach to the store described by config.

    Creates the store directory when it holds no repository yet and
    loads the configured ignore file (a missing file is not an error).

    Args:
        config: SnapVault configuration

    Returns:
        Initialized EngineState dictionary
    """
    from snapvault.ignore import compile_ruleset
    from snapvault.store import open_repository

    repo = open_repository(config.store_dir, config.ref_name)
    ruleset = compile_ruleset(config.ignore_file, extra_names=config.extra_excludes)

    logger.info(
        "engine_opened",
        store_dir=str(config.store_dir),
        working_dir=str(config.working_dir),
        branch=config.branch,
        ignore_patterns=len(ruleset.patterns),
    )

    return EngineState(
        config=config,
        repo=repo,
        ignore=ruleset,
        opened_at=utc_now(),
        total_snapshots_created=0,
        total_gc_runs=0,
        last_gc_at=None,
        last_error=None,
    )


def close_engine(state: EngineState) -> None:
    """
    Release file handles held by the engine.

    Should be called when the hosting application shuts down.
    """
    state["repo"].close()
    logger.info("engine_closed", store_dir=str(state["config"].store_dir))


def set_ignore_file(state: EngineState, path: Path | str) -> None:
    """
    Load (or reload) the .gitignore-syntax ruleset from path.

    A missing file leaves only the built-in exclusions in place;
    malformed lines are skipped with a warning.
    """
    from snapvault.ignore import compile_ruleset

    config = state["config"].with_updates(ignore_file=Path(path))
    state["config"] = config
    state["ignore"] = compile_ruleset(config.ignore_file, extra_names=config.extra_excludes)


def get_metrics(state: EngineState) -> StoreMetrics:
    """
    Get current store metrics.

    Args:
        state: Engine state

    Returns:
        StoreMetrics with current values
    """
    from snapvault.backup.manager import list_snapshots
    from snapvault.store.layout import count_loose_objects, list_pack_names, store_size_bytes

    store_dir = state["config"].store_dir

    return StoreMetrics(
        snapshot_count=len(list_snapshots(state)),
        store_size_bytes=store_size_bytes(store_dir),
        loose_object_count=count_loose_objects(store_dir),
        pack_count=len(list_pack_names(store_dir)),
        total_snapshots_created=state["total_snapshots_created"],
        total_gc_runs=state["total_gc_runs"],
        last_gc_at=state["last_gc_at"],
        last_error=state["last_error"],
    )
