# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
SnapVault asyncio Integration - Non-blocking wrapper for async hosts.

Engine calls block on disk I/O. AsyncEngine runs each one on a worker
thread and holds a per-repository asyncio.Lock for the duration, so
calls against one store never overlap while separate stores run in
parallel.
"""

import asyncio
import functools
from concurrent.futures import ThreadPoolExecutor
from datetime import timedelta
from pathlib import Path
from typing import Any, BinaryIO, Callable, List

import structlog

from snapvault.config import SnapVaultConfig
from snapvault.core import (
    EngineState,
    GCReport,
    ModifiedFileRecord,
    PurgeResult,
    Snapshot,
    StoreMetrics,
    close_engine,
    get_metrics,
    open_engine,
    set_ignore_file,
)

logger = structlog.get_logger()

# Shared pool for blocking engine calls
_executor = ThreadPoolExecutor(max_workers=4, thread_name_prefix="snapvault")


class AsyncEngine:
    """
    One engine handle plus the lock that serializes work on it.

    Create with open_async_engine(); every method awaits the lock, then
    runs the matching blocking call on the worker pool.
    """

    def __init__(self, state: EngineState, executor: ThreadPoolExecutor | None = None):
        self.state = state
        self._lock = asyncio.Lock()
        self._executor = executor or _executor

    async def _run(self, func: Callable[..., Any], *args: Any) -> Any:
        async with self._lock:
            loop = asyncio.get_event_loop()
            return await loop.run_in_executor(
                self._executor, functools.partial(func, self.state, *args)
            )

    async def create_snapshot(self, description: str | None = None) -> str:
        from snapvault.backup import create_snapshot

        return await self._run(create_snapshot, description)

    async def list_snapshots(self) -> List[Snapshot]:
        from snapvault.backup import list_snapshots

        return await self._run(list_snapshots)

    async def latest_snapshot(self) -> Snapshot | None:
        from snapvault.backup import latest_snapshot

        return await self._run(latest_snapshot)

    async def restore_snapshot(self, snapshot_id: str):
        from snapvault.backup import restore_snapshot

        return await self._run(restore_snapshot, snapshot_id)

    async def diff_snapshot(self, snapshot_id: str) -> List[ModifiedFileRecord]:
        from snapvault.backup import diff_snapshot

        return await self._run(diff_snapshot, snapshot_id)

    async def export_snapshot(
        self, snapshot_id: str, destination: Path | str, level: int | None = None
    ) -> Path:
        from snapvault.archive import export_snapshot

        return await self._run(export_snapshot, snapshot_id, destination, level)

    async def export_snapshot_to_stream(
        self, snapshot_id: str, writer: BinaryIO, level: int | None = None
    ) -> int:
        from snapvault.archive import export_snapshot_to_stream

        return await self._run(export_snapshot_to_stream, snapshot_id, writer, level)

    async def purge_snapshot(self, snapshot_id: str) -> PurgeResult:
        from snapvault.retention import purge_snapshot

        return await self._run(purge_snapshot, snapshot_id)

    async def purge_keep_newest(self, count: int) -> PurgeResult:
        from snapvault.retention import purge_keep_newest

        return await self._run(purge_keep_newest, count)

    async def purge_older_than(self, duration: timedelta) -> PurgeResult:
        from snapvault.retention import purge_older_than

        return await self._run(purge_older_than, duration)

    async def purge_over_size(self, max_bytes: int) -> PurgeResult:
        from snapvault.retention import purge_over_size

        return await self._run(purge_over_size, max_bytes)

    async def collect_garbage(self) -> GCReport:
        from snapvault.maintenance import collect_garbage

        return await self._run(collect_garbage)

    async def set_ignore_file(self, path: Path | str) -> None:
        await self._run(set_ignore_file, path)

    async def get_metrics(self) -> StoreMetrics:
        return await self._run(get_metrics)

    async def close(self) -> None:
        await self._run(close_engine)
        logger.debug("async_engine_closed", store_dir=str(self.state["config"].store_dir))


async def open_async_engine(config: SnapVaultConfig) -> AsyncEngine:
    """
    Open an engine off the event loop and wrap it.

    Args:
        config: SnapVault configuration

    Returns:
        AsyncEngine ready for use
    """
    loop = asyncio.get_event_loop()
    state = await loop.run_in_executor(_executor, open_engine, config)
    return AsyncEngine(state)
