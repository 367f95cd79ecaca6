# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Object store glue - thin wrappers over dulwich primitives.

Everything here converts dulwich and filesystem failures into the
snapvault exception hierarchy so callers never see raw library errors.
"""

import stat
from datetime import datetime, UTC
from pathlib import Path
from typing import Iterator, List, Tuple

import structlog
from dulwich.errors import NotGitRepository
from dulwich.objects import S_ISGITLINK, Blob, Commit, ShaFile, Tree, valid_hexsha
from dulwich.repo import Repo

from snapvault.core import EngineState, Snapshot
from snapvault.exceptions import InvalidSnapshotIdError, StoreIOError

logger = structlog.get_logger()

# Git tree entry modes
MODE_FILE = 0o100644
MODE_EXECUTABLE = 0o100755
MODE_TREE = 0o040000

HEAD = b"HEAD"


def open_repository(store_dir: Path, ref_name: bytes) -> Repo:
    """
    Attach to the bare repository at store_dir, creating it if needed.

    HEAD is pointed at ref_name so stock git tools see the tracked branch.
    """
    try:
        if (store_dir / "objects").is_dir() and (store_dir / "refs").is_dir():
            repo = Repo(str(store_dir))
            logger.debug("store_attached", store_dir=str(store_dir))
        else:
            store_dir.mkdir(parents=True, exist_ok=True)
            repo = Repo.init_bare(str(store_dir))
            logger.info("store_initialized", store_dir=str(store_dir))

        if repo.refs.read_ref(HEAD) != b"ref: " + ref_name:
            repo.refs.set_symbolic_ref(HEAD, ref_name)
        return repo

    except NotGitRepository as e:
        raise StoreIOError(
            f"Not a usable object store: {store_dir}",
            details={"store_dir": str(store_dir)},
        ) from e
    except OSError as e:
        raise StoreIOError(
            f"Failed to open object store: {e}",
            details={"store_dir": str(store_dir)},
        ) from e


def reopen_repository(state: EngineState) -> None:
    """Drop cached pack and ref state by reopening the repository."""
    state["repo"].close()
    state["repo"] = open_repository(state["config"].store_dir, state["config"].ref_name)


def validate_snapshot_id(snapshot_id: str) -> bytes:
    """
    Check that snapshot_id is a 40-character hex id.

    Returns:
        The id as lowercase ASCII bytes
    """
    if not isinstance(snapshot_id, str) or len(snapshot_id) != 40:
        raise InvalidSnapshotIdError(
            f"Malformed snapshot id: {snapshot_id!r}",
            details={"snapshot_id": str(snapshot_id)},
        )
    sha = snapshot_id.lower().encode("ascii", errors="replace")
    if not valid_hexsha(sha):
        raise InvalidSnapshotIdError(
            f"Malformed snapshot id: {snapshot_id!r}",
            details={"snapshot_id": snapshot_id},
        )
    return sha


def read_object(repo: Repo, sha: bytes) -> ShaFile:
    """Read any object, wrapping missing/corrupt objects as StoreIOError."""
    try:
        return repo.object_store[sha]
    except KeyError as e:
        raise StoreIOError(
            f"Object not found in store: {sha.decode('ascii')}",
            details={"sha": sha.decode("ascii")},
        ) from e
    except Exception as e:
        raise StoreIOError(
            f"Failed to read object {sha.decode('ascii')}: {e}",
            details={"sha": sha.decode("ascii")},
        ) from e


def resolve_commit(repo: Repo, snapshot_id: str) -> Commit:
    """
    Resolve a snapshot id to its commit object.

    Raises:
        InvalidSnapshotIdError: If the id is malformed, unknown, or not a commit
        StoreIOError: If the object exists but cannot be read
    """
    sha = validate_snapshot_id(snapshot_id)
    if sha not in repo.object_store:
        raise InvalidSnapshotIdError(
            f"Snapshot id does not resolve to any object: {snapshot_id}",
            details={"snapshot_id": snapshot_id},
        )
    obj = read_object(repo, sha)
    if not isinstance(obj, Commit):
        raise InvalidSnapshotIdError(
            f"Snapshot id does not name a snapshot: {snapshot_id}",
            details={"snapshot_id": snapshot_id, "type": obj.type_name.decode("ascii")},
        )
    return obj


def read_tree(repo: Repo, sha: bytes) -> Tree:
    obj = read_object(repo, sha)
    if not isinstance(obj, Tree):
        raise StoreIOError(
            f"Expected a tree object at {sha.decode('ascii')}",
            details={"sha": sha.decode("ascii"), "type": obj.type_name.decode("ascii")},
        )
    return obj


def read_blob(repo: Repo, sha: bytes) -> bytes:
    obj = read_object(repo, sha)
    if not isinstance(obj, Blob):
        raise StoreIOError(
            f"Expected a blob object at {sha.decode('ascii')}",
            details={"sha": sha.decode("ascii"), "type": obj.type_name.decode("ascii")},
        )
    return obj.as_raw_string()


def store_object(repo: Repo, obj: ShaFile) -> bool:
    """
    Write obj as a loose object unless the store already has it.

    Returns:
        True if the object was written
    """
    try:
        if obj.id in repo.object_store:
            return False
        repo.object_store.add_object(obj)
        return True
    except OSError as e:
        raise StoreIOError(
            f"Failed to write object {obj.id.decode('ascii')}: {e}",
            details={"sha": obj.id.decode("ascii")},
        ) from e


def iter_tree_entries(tree: Tree) -> Iterator[Tuple[bytes, int, bytes]]:
    """Yield (name, mode, sha) for blob and tree entries; other kinds are skipped."""
    for entry in tree.items():
        if S_ISGITLINK(entry.mode):
            continue
        if stat.S_ISDIR(entry.mode) or stat.S_ISREG(entry.mode):
            yield entry.path, entry.mode, entry.sha


def file_mode_for(st_mode: int) -> int:
    """Git mode for a working-directory file: executable if any x bit is set."""
    if st_mode & (stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH):
        return MODE_EXECUTABLE
    return MODE_FILE


def read_tip(repo: Repo, ref_name: bytes) -> bytes | None:
    """Commit id the tracked ref points at, or None for an empty store."""
    try:
        return repo.refs[ref_name]
    except KeyError:
        return None


def find_tip(repo: Repo, ref_name: bytes) -> Tuple[bytes | None, bytes | None]:
    """
    Find the newest snapshot commit.

    Uses the tracked ref when it resolves to a commit; otherwise falls
    back to the first other ref that does.

    Returns:
        (ref name used, commit id), both None when nothing resolves
    """
    tip = read_tip(repo, ref_name)
    if tip is not None and _is_commit(repo, tip):
        return ref_name, tip

    if tip is not None:
        logger.warning("tracked_ref_broken", ref=ref_name.decode("utf-8", "replace"))

    for name, sha in sorted(repo.get_refs().items()):
        if name == ref_name or name == HEAD or not name.startswith(b"refs/"):
            continue
        if _is_commit(repo, sha):
            logger.warning(
                "using_fallback_ref",
                ref=name.decode("utf-8", "replace"),
                commit=sha.decode("ascii"),
            )
            return name, sha

    return None, None


def _is_commit(repo: Repo, sha: bytes) -> bool:
    try:
        return isinstance(repo.object_store[sha], Commit)
    except Exception:
        return False


def iter_history(repo: Repo, tip: bytes | None, strict: bool = False) -> Iterator[Commit]:
    """
    Walk first parents from tip, newest first.

    With strict=False an unreadable commit ends the walk with a warning;
    with strict=True it raises StoreIOError.
    """
    seen = set()
    sha = tip
    while sha is not None and sha not in seen:
        seen.add(sha)
        try:
            obj = read_object(repo, sha)
            if not isinstance(obj, Commit):
                raise StoreIOError(
                    f"History entry is not a commit: {sha.decode('ascii')}",
                    details={"sha": sha.decode("ascii")},
                )
        except StoreIOError as e:
            if strict:
                raise
            logger.warning("history_entry_skipped", commit=sha.decode("ascii"), error=str(e))
            return

        yield obj
        sha = obj.parents[0] if obj.parents else None


def history_ids(repo: Repo, ref_name: bytes) -> List[bytes]:
    """Commit ids of the full history, newest first. Unreadable entries raise."""
    _, tip = find_tip(repo, ref_name)
    return [commit.id for commit in iter_history(repo, tip, strict=True)]


def snapshot_from_commit(commit: Commit) -> Snapshot:
    return Snapshot(
        id=commit.id.decode("ascii"),
        timestamp=datetime.fromtimestamp(commit.commit_time, UTC),
        description=commit.message.decode("utf-8", errors="replace"),
        parent=commit.parents[0].decode("ascii") if commit.parents else None,
        tree=commit.tree.decode("ascii"),
    )


def make_commit(
    tree: bytes,
    parent: bytes | None,
    identity: bytes,
    timestamp: int,
    message: bytes,
) -> Commit:
    commit = Commit()
    commit.tree = tree
    commit.parents = [parent] if parent is not None else []
    commit.author = commit.committer = identity
    commit.author_time = commit.commit_time = timestamp
    commit.author_timezone = commit.commit_timezone = 0
    commit.encoding = b"UTF-8"
    commit.message = message
    return commit


def update_tip(
    state: EngineState,
    old: bytes | None,
    new: bytes,
    message: str,
) -> None:
    """
    Move the tracked ref from old to new, recording a reflog entry.

    Only called after every object the new tip needs has been stored.
    """
    config = state["config"]
    repo = state["repo"]
    try:
        updated = repo.refs.set_if_equals(
            config.ref_name,
            old,
            new,
            committer=config.identity,
            message=message.encode("utf-8"),
        )
    except OSError as e:
        raise StoreIOError(
            f"Failed to update reference: {e}",
            details={"ref": config.ref_name.decode("utf-8"), "new": new.decode("ascii")},
        ) from e

    if not updated:
        raise StoreIOError(
            "Reference changed during update",
            details={
                "ref": config.ref_name.decode("utf-8"),
                "expected": old.decode("ascii") if old else None,
                "new": new.decode("ascii"),
            },
        )
