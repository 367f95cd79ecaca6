# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
On-disk layout helpers for the bare object store.

Loose objects live in objects/<2 hex>/<38 hex>, packs in
objects/pack/pack-<sha>.{pack,idx}, reflogs under logs/ and loose refs
under refs/.
"""

import os
from pathlib import Path
from typing import Iterator, List, Tuple

import structlog

logger = structlog.get_logger()

_HEX = frozenset("0123456789abcdef")

PACKED_REFS_HEADER = b"# pack-refs with: peeled fully-peeled sorted \n"


def objects_dir(store_dir: Path) -> Path:
    return store_dir / "objects"


def pack_dir(store_dir: Path) -> Path:
    return store_dir / "objects" / "pack"


def _is_hex(value: str) -> bool:
    return all(ch in _HEX for ch in value)


def iter_loose_objects(store_dir: Path) -> Iterator[Tuple[str, Path]]:
    """
    Yield (hex_sha, path) for every loose object file.

    Buckets are the two-hex-digit directories under objects/; anything
    else (pack/, info/, temp files) is ignored.
    """
    root = objects_dir(store_dir)
    try:
        buckets = sorted(os.listdir(root))
    except FileNotFoundError:
        return

    for bucket in buckets:
        if len(bucket) != 2 or not _is_hex(bucket):
            continue
        bucket_path = root / bucket
        try:
            names = sorted(os.listdir(bucket_path))
        except (FileNotFoundError, NotADirectoryError):
            continue
        for name in names:
            if len(name) == 38 and _is_hex(name):
                yield bucket + name, bucket_path / name


def count_loose_objects(store_dir: Path) -> int:
    return sum(1 for _ in iter_loose_objects(store_dir))


def remove_empty_buckets(store_dir: Path) -> int:
    """Remove empty loose-object bucket directories. Returns how many went."""
    root = objects_dir(store_dir)
    removed = 0
    try:
        buckets = os.listdir(root)
    except FileNotFoundError:
        return 0

    for bucket in buckets:
        if len(bucket) != 2 or not _is_hex(bucket):
            continue
        try:
            (root / bucket).rmdir()
            removed += 1
        except OSError:
            # Not empty or already gone
            continue
    return removed


def list_pack_names(store_dir: Path) -> List[str]:
    """
    List complete packs as base names (``pack-<sha>``).

    A pack counts only once both its .pack and .idx files exist.
    """
    try:
        names = set(os.listdir(pack_dir(store_dir)))
    except FileNotFoundError:
        return []

    packs = []
    for name in names:
        if name.startswith("pack-") and name.endswith(".pack"):
            base = name[: -len(".pack")]
            if base + ".idx" in names:
                packs.append(base)
    return sorted(packs)


def remove_pack(store_dir: Path, pack_name: str) -> None:
    """Delete a pack's .pack and .idx (plus any sidecar files)."""
    directory = pack_dir(store_dir)
    # Index first so a half-removed pack is never picked up as complete
    for suffix in (".idx", ".pack", ".bitmap", ".rev", ".keep"):
        path = directory / (pack_name + suffix)
        try:
            path.unlink()
        except FileNotFoundError:
            continue


def iter_reflog_files(store_dir: Path) -> Iterator[Path]:
    logs = store_dir / "logs"
    if not logs.is_dir():
        return
    for dirpath, _dirnames, filenames in os.walk(logs):
        for name in sorted(filenames):
            yield Path(dirpath) / name


def loose_ref_path(store_dir: Path, ref_name: bytes) -> Path:
    return store_dir.joinpath(*os.fsdecode(ref_name).split("/"))


def store_size_bytes(store_dir: Path) -> int:
    """Total size of every regular file in the store."""
    total = 0
    for dirpath, _dirnames, filenames in os.walk(store_dir):
        for name in filenames:
            try:
                total += os.lstat(os.path.join(dirpath, name)).st_size
            except FileNotFoundError:
                continue
    return total


def write_file_atomic(path: Path, data: bytes) -> None:
    """
    Write bytes to path atomically.

    The data goes to a temp file in the same directory which is then
    renamed over the target.
    """
    temp_path = path.with_name(path.name + ".tmp")
    with open(temp_path, "wb") as f:
        f.write(data)
        f.flush()
        os.fsync(f.fileno())
    os.replace(temp_path, path)
