# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
SnapVault Archive Exporter - Snapshot trees as .tar.zst archives.

Blobs are streamed one at a time into a tar stream wrapped in zstd, so
large snapshots are never materialized in full. Directories get no entry
of their own; they are implied by the file paths.
"""

import io
import os
import stat
import tarfile
from pathlib import Path
from typing import BinaryIO, List, Tuple

import structlog
import zstandard as zstd

from snapvault.archive.compressor import clamp_level, open_compressed_writer
from snapvault.core import EngineState
from snapvault.exceptions import ArchiveIOError
from snapvault.store.repository import (
    MODE_EXECUTABLE,
    iter_tree_entries,
    read_blob,
    read_tree,
    resolve_commit,
)

logger = structlog.get_logger()


def _write_tree(state: EngineState, tar: tarfile.TarFile, tree_id: bytes, mtime: int) -> Tuple[int, int]:
    """
    Add every blob under tree_id to tar.

    Returns:
        (entries written, uncompressed bytes)
    """
    repo = state["repo"]
    entries = 0
    total = 0
    stack: List[Tuple[bytes, str]] = [(tree_id, "")]

    while stack:
        sha, prefix = stack.pop()
        tree = read_tree(repo, sha)
        subtrees = []
        for name, mode, entry_sha in iter_tree_entries(tree):
            path = prefix + os.fsdecode(name)
            if stat.S_ISDIR(mode):
                subtrees.append((entry_sha, path + "/"))
                continue

            data = read_blob(repo, entry_sha)
            info = tarfile.TarInfo(name=path)
            info.size = len(data)
            info.mtime = mtime
            info.mode = 0o755 if mode == MODE_EXECUTABLE else 0o644
            info.type = tarfile.REGTYPE
            tar.addfile(info, io.BytesIO(data))
            entries += 1
            total += len(data)

        # Keep archive order close to tree order
        stack.extend(reversed(subtrees))

    return entries, total


def export_snapshot_to_stream(
    state: EngineState,
    snapshot_id: str,
    writer: BinaryIO,
    level: int | None = None,
) -> int:
    """
    Stream a snapshot as a zstd-compressed tar into writer.

    writer is flushed but not closed.

    Args:
        state: Engine state
        snapshot_id: Snapshot to export
        writer: Any binary object with write()
        level: Compression level 0-9 (clamped); config default when None

    Returns:
        Number of file entries written

    Raises:
        InvalidSnapshotIdError: If the id is malformed or unknown
        StoreIOError: If reading objects fails
        ArchiveIOError: If compression or writing fails
    """
    commit = resolve_commit(state["repo"], snapshot_id)
    level = clamp_level(state["config"].export_level if level is None else level)

    try:
        compressed = open_compressed_writer(writer, level)
        with tarfile.open(fileobj=compressed, mode="w|", format=tarfile.PAX_FORMAT) as tar:
            entries, total = _write_tree(state, tar, commit.tree, commit.commit_time)
        compressed.close()
        if hasattr(writer, "flush"):
            writer.flush()
    except (OSError, tarfile.TarError, zstd.ZstdError) as e:
        raise ArchiveIOError(
            f"Failed to write archive: {e}",
            details={"snapshot_id": snapshot_id, "level": level},
        ) from e

    logger.info(
        "snapshot_exported",
        snapshot_id=snapshot_id,
        entries=entries,
        uncompressed_bytes=total,
        level=level,
    )
    return entries


def export_snapshot(
    state: EngineState,
    snapshot_id: str,
    destination: Path | str,
    level: int | None = None,
) -> Path:
    """
    Write a snapshot archive to a file.

    The archive is written to a temp file beside destination and renamed
    into place, so a failed export never leaves a partial archive.

    Returns:
        Path to the written archive
    """
    destination = Path(destination)
    temp_path = destination.with_name(destination.name + ".tmp")

    try:
        destination.parent.mkdir(parents=True, exist_ok=True)
        with open(temp_path, "wb") as f:
            export_snapshot_to_stream(state, snapshot_id, f, level)
            os.fsync(f.fileno())
        os.replace(temp_path, destination)
    except OSError as e:
        temp_path.unlink(missing_ok=True)
        raise ArchiveIOError(
            f"Failed to write archive file: {e}",
            details={"snapshot_id": snapshot_id, "destination": str(destination)},
        ) from e
    except Exception:
        temp_path.unlink(missing_ok=True)
        raise

    logger.debug("archive_written", destination=str(destination), size=destination.stat().st_size)
    return destination
