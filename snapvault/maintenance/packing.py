# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Pack and ref compaction.

repack_reachable() writes every reachable object into one new pack and
only then drops superseded packs and loose copies. pack_refs() folds all
loose ref files into packed-refs.
"""

import os
from pathlib import Path
from typing import Dict, List, Set, Tuple

import structlog
from dulwich.objects import Tag, hex_to_sha
from dulwich.pack import Pack
from dulwich.repo import Repo

from snapvault.store.layout import (
    PACKED_REFS_HEADER,
    iter_loose_objects,
    list_pack_names,
    loose_ref_path,
    remove_empty_buckets,
    remove_pack,
    write_file_atomic,
)

logger = structlog.get_logger()


def _pack_name(pack: Pack) -> str:
    return os.path.basename(pack._basename)


def _pack_contains_exactly(pack: Pack, shas: Set[bytes]) -> bool:
    """Check a pack's index lists exactly the given objects."""
    index = pack.index
    if len(index) != len(shas):
        return False
    for sha in shas:
        try:
            index.object_offset(hex_to_sha(sha))
        except KeyError:
            return False
    return True


def _find_exact_pack(repo: Repo, shas: Set[bytes]) -> str | None:
    """Name of a pack the store has loaded that holds exactly shas, if any."""
    for pack in repo.object_store.packs:
        if _pack_contains_exactly(pack, shas):
            return _pack_name(pack)
    return None


def repack_reachable(
    repo: Repo,
    store_dir: Path,
    reachable: Set[bytes],
    operation_id: str,
) -> Tuple[int, int, List[str]]:
    """
    Consolidate all reachable objects into a single pack.

    Objects are copied out of loose files and older packs into one new
    pack. Superseded packs and loose copies are deleted only after the
    new pack's index is confirmed to hold every reachable object.

    Returns:
        (objects packed, superseded packs removed, errors)
    """
    errors: List[str] = []
    old_packs = list_pack_names(store_dir)
    loose = dict(iter_loose_objects(store_dir))

    if not reachable:
        # Nothing is reachable; every existing pack is garbage
        for name in old_packs:
            remove_pack(store_dir, name)
        return 0, len(old_packs), errors

    if not loose and len(old_packs) == 1 and _find_exact_pack(repo, reachable) == old_packs[0]:
        logger.debug("repack_skipped", operation_id=operation_id, pack=old_packs[0])
        return 0, 0, errors

    objects = [(repo.object_store[sha], None) for sha in sorted(reachable)]
    repo.object_store.add_objects(objects)

    new_pack = _find_exact_pack(repo, reachable)

    if new_pack is None:
        errors.append("new pack does not contain every reachable object")
        logger.error("repack_verification_failed", operation_id=operation_id)
        return 0, 0, errors

    removed_packs = 0
    for name in old_packs:
        if name == new_pack:
            continue
        try:
            remove_pack(store_dir, name)
            removed_packs += 1
        except OSError as e:
            errors.append(f"remove pack {name}: {e}")
            logger.warning("superseded_pack_remove_failed", operation_id=operation_id, pack=name, error=str(e))

    for hex_sha, path in loose.items():
        if hex_sha.encode("ascii") not in reachable:
            continue
        try:
            path.unlink()
        except FileNotFoundError:
            continue
        except OSError as e:
            errors.append(f"remove packed loose object {hex_sha}: {e}")
    remove_empty_buckets(store_dir)

    logger.info(
        "repack_complete",
        operation_id=operation_id,
        pack=new_pack,
        objects=len(reachable),
        superseded_packs=removed_packs,
    )
    return len(reachable), removed_packs, errors


def _read_packed_refs(store_dir: Path) -> Dict[bytes, bytes]:
    refs: Dict[bytes, bytes] = {}
    try:
        content = (store_dir / "packed-refs").read_bytes()
    except FileNotFoundError:
        return refs

    for line in content.splitlines():
        if not line or line.startswith((b"#", b"^")):
            continue
        sha, _, name = line.partition(b" ")
        refs[name] = sha
    return refs


def _peel(repo: Repo, sha: bytes) -> bytes | None:
    """Object an annotated tag ultimately points at; None for anything else."""
    obj = repo.object_store[sha]
    if not isinstance(obj, Tag):
        return None
    while isinstance(obj, Tag):
        obj = repo.object_store[obj.object[1]]
    return obj.id


def pack_refs(repo: Repo, store_dir: Path, operation_id: str) -> int:
    """
    Write every ref under refs/ into packed-refs and delete the loose files.

    Symbolic refs (HEAD) stay loose.

    Returns:
        Number of refs in the packed file
    """
    refs = _read_packed_refs(store_dir)
    loose: Dict[bytes, bytes] = {}

    for name, sha in repo.get_refs().items():
        if not name.startswith(b"refs/"):
            continue
        refs[name] = sha
        if loose_ref_path(store_dir, name).is_file():
            loose[name] = sha

    lines = [PACKED_REFS_HEADER]
    for name, sha in sorted(refs.items()):
        lines.append(sha + b" " + name + b"\n")
        peeled = _peel(repo, sha)
        if peeled is not None:
            lines.append(b"^" + peeled + b"\n")
    content = b"".join(lines)
    write_file_atomic(store_dir / "packed-refs", content)

    for name, sha in loose.items():
        path = loose_ref_path(store_dir, name)
        try:
            # Only drop the loose file if it still says what was packed
            if path.read_bytes().strip() == sha:
                path.unlink()
        except FileNotFoundError:
            continue

    _remove_empty_ref_dirs(store_dir)

    logger.debug("refs_packed", operation_id=operation_id, count=len(refs))
    return len(refs)


def _remove_empty_ref_dirs(store_dir: Path) -> None:
    # Keep refs/, refs/heads and refs/tags themselves
    keep = {store_dir / "refs", store_dir / "refs" / "heads", store_dir / "refs" / "tags"}
    for dirpath, _dirnames, _filenames in os.walk(store_dir / "refs", topdown=False):
        path = Path(dirpath)
        if path in keep:
            continue
        try:
            path.rmdir()
        except OSError:
            continue
