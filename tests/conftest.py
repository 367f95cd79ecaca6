# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Test fixtures for SnapVault tests.

Provides temporary directories, configured engine handles and helpers
for reading and writing working-directory files.
"""

import os
import tempfile
from pathlib import Path
from typing import Dict, Generator

import pytest


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for tests."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def working_dir(temp_dir: Path) -> Path:
    """Working directory that snapshots are taken from."""
    path = temp_dir / "work"
    path.mkdir()
    return path


@pytest.fixture
def store_dir(temp_dir: Path) -> Path:
    """Store directory (created on open)."""
    return temp_dir / "store"


@pytest.fixture
def test_config(store_dir: Path, working_dir: Path):
    """Create a test configuration."""
    from snapvault.builder import create_config

    return create_config(store_dir, working_dir)


@pytest.fixture
def engine(test_config):
    """Open an engine handle and close it after the test."""
    from snapvault.core import close_engine, open_engine

    state = open_engine(test_config)
    yield state
    close_engine(state)


def write_file(root: Path, rel_path: str, content: bytes | str) -> Path:
    """Write a file below root, creating parent directories."""
    path = root.joinpath(*rel_path.split("/"))
    path.parent.mkdir(parents=True, exist_ok=True)
    if isinstance(content, str):
        content = content.encode("utf-8")
    path.write_bytes(content)
    return path


def read_tree_from_disk(root: Path, skip: Path | None = None) -> Dict[str, bytes]:
    """Map every regular file below root (relative '/' path) to its bytes."""
    result: Dict[str, bytes] = {}
    for dirpath, dirnames, filenames in os.walk(root):
        if skip is not None:
            dirnames[:] = [d for d in dirnames if Path(dirpath, d) != skip]
        for name in filenames:
            path = Path(dirpath, name)
            result[path.relative_to(root).as_posix()] = path.read_bytes()
    return result


def snapshot_contents(state, snapshot_id: str) -> Dict[str, bytes]:
    """All files in a snapshot, read straight from the object store."""
    import stat

    from snapvault.store.repository import (
        iter_tree_entries,
        read_blob,
        read_tree,
        resolve_commit,
    )

    repo = state["repo"]
    commit = resolve_commit(repo, snapshot_id)
    contents: Dict[str, bytes] = {}
    stack = [(commit.tree, "")]
    while stack:
        sha, prefix = stack.pop()
        for name, mode, entry_sha in iter_tree_entries(read_tree(repo, sha)):
            path = prefix + name.decode("utf-8")
            if stat.S_ISDIR(mode):
                stack.append((entry_sha, path + "/"))
            else:
                contents[path] = read_blob(repo, entry_sha)
    return contents


def decompress_archive(compressed: bytes) -> bytes:
    """Decompress a whole .tar.zst stream (frames may omit the content size)."""
    import zstandard as zstd

    return zstd.ZstdDecompressor().decompressobj().decompress(compressed)
