# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
History rewriting.

Existing commits are never modified. Rewriting copies each kept commit
with a new parent, stores the copies, and leaves it to the caller to move
the ref once the whole chain is durable.
"""

from typing import List

import structlog
from dulwich.objects import Commit
from dulwich.repo import Repo

from snapvault.exceptions import StoreIOError
from snapvault.store.repository import read_object, store_object

logger = structlog.get_logger()


def copy_with_parent(source: Commit, parent: bytes | None) -> Commit:
    """
    Clone a commit onto a different parent.

    Tree, author, committer, timestamps and message are kept as-is so
    the snapshot content and metadata survive; only the identity changes.
    """
    commit = Commit()
    commit.tree = source.tree
    commit.parents = [parent] if parent is not None else []
    commit.author = source.author
    commit.committer = source.committer
    commit.author_time = source.author_time
    commit.commit_time = source.commit_time
    commit.author_timezone = source.author_timezone
    commit.commit_timezone = source.commit_timezone
    commit.encoding = source.encoding
    commit.message = source.message
    return commit


def rewrite_chain(repo: Repo, base: bytes | None, newest_first: List[bytes], operation_id: str) -> bytes:
    """
    Replay commits on top of a new base.

    Args:
        repo: Repository holding the commits
        base: Commit the oldest replayed commit should point at; None
            makes the oldest one a rootless chain base
        newest_first: Ids of the commits to replay, newest first
        operation_id: Purge operation this rewrite belongs to

    Returns:
        Id of the rewritten newest commit (the new tip)
    """
    if not newest_first:
        raise ValueError("rewrite_chain needs at least one commit")

    parent = base
    for sha in reversed(newest_first):
        source = read_object(repo, sha)
        if not isinstance(source, Commit):
            raise StoreIOError(
                f"History entry is not a commit: {sha.decode('ascii')}",
                details={"sha": sha.decode("ascii")},
            )
        rewritten = copy_with_parent(source, parent)
        store_object(repo, rewritten)
        logger.debug(
            "commit_rewritten",
            operation_id=operation_id,
            original=sha.decode("ascii"),
            rewritten=rewritten.id.decode("ascii"),
        )
        parent = rewritten.id

    return parent
