# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Integration tests for SnapVault.

Tests complete workflows against a real on-disk store: snapshot
creation and listing, diff, restore, archive export and metrics.
"""

import io
import os
import stat
import tarfile
from pathlib import Path

import pytest

from conftest import decompress_archive, read_tree_from_disk, snapshot_contents, write_file
from snapvault.archive import zstd_level_for
from snapvault.archive.exporter import export_snapshot, export_snapshot_to_stream
from snapvault.backup import (
    create_snapshot,
    diff_snapshot,
    latest_snapshot,
    list_snapshots,
    restore_snapshot,
)
from snapvault.builder import create_config
from snapvault.core import close_engine, get_metrics, open_engine, set_ignore_file
from snapvault.exceptions import InvalidSnapshotIdError
from snapvault.maintenance import collect_garbage

EMPTY_TREE = "4b825dc642cb6eb9a060e54bf8d69288fbee4904"


def _as_set(records):
    return {(r.path, r.content_before, r.content_after) for r in records}


# ============================================================================
# Test 1: Basic Snapshot / Diff / Restore Scenario
# ============================================================================


def test_snapshot_diff_restore_scenario(engine, working_dir: Path):
    """Two snapshots of one file: diff shows the change, restore brings it back."""
    write_file(working_dir, "a.txt", "1")
    s1 = create_snapshot(engine, "first")

    write_file(working_dir, "a.txt", "2")
    s2 = create_snapshot(engine, "second")

    records = diff_snapshot(engine, s2)
    assert len(records) == 1
    assert records[0].path == "a.txt"
    assert records[0].content_before == b"1"
    assert records[0].content_after == b"2"
    assert records[0].change == "modified"

    restore_snapshot(engine, s1)
    assert (working_dir / "a.txt").read_text() == "1"


def test_backing_up_unchanged_tree_yields_empty_diff(engine, working_dir: Path):
    write_file(working_dir, "a.txt", "same")
    write_file(working_dir, "dir/b.txt", "same too")
    create_snapshot(engine, "first")
    second = create_snapshot(engine, "second")

    assert diff_snapshot(engine, second) == []


def test_empty_working_directory_snapshot(engine):
    snapshot_id = create_snapshot(engine, None)

    snapshot = latest_snapshot(engine)
    assert snapshot.id == snapshot_id
    assert snapshot.tree == EMPTY_TREE
    assert snapshot.description == "No description provided"
    assert snapshot.parent is None
    assert diff_snapshot(engine, snapshot_id) == []


def test_first_snapshot_diff_is_all_additions(engine, working_dir: Path):
    write_file(working_dir, "a.txt", "a")
    write_file(working_dir, "nested/deep/b.txt", "b")
    snapshot_id = create_snapshot(engine, "root")

    assert _as_set(diff_snapshot(engine, snapshot_id)) == {
        ("a.txt", None, b"a"),
        ("nested/deep/b.txt", None, b"b"),
    }


# ============================================================================
# Test 2: Diff Completeness
# ============================================================================


def test_diff_nested_added_deleted_and_kind_changes(engine, working_dir: Path):
    write_file(working_dir, "a.txt", "1")
    write_file(working_dir, "dir/x.txt", "x")
    write_file(working_dir, "dir/sub/y.txt", "y")
    write_file(working_dir, "k", "k")
    write_file(working_dir, "stay/same.txt", "unchanged")
    create_snapshot(engine, "before")

    import shutil

    write_file(working_dir, "a.txt", "2")
    shutil.rmtree(working_dir / "dir")
    (working_dir / "k").unlink()
    write_file(working_dir, "k/z.txt", "z")
    write_file(working_dir, "new.txt", "n")
    after = create_snapshot(engine, "after")

    assert _as_set(diff_snapshot(engine, after)) == {
        ("a.txt", b"1", b"2"),
        ("dir/x.txt", b"x", None),
        ("dir/sub/y.txt", b"y", None),
        ("k", b"k", None),
        ("k/z.txt", None, b"z"),
        ("new.txt", None, b"n"),
    }


def test_diff_directory_replaced_by_file(engine, working_dir: Path):
    write_file(working_dir, "thing/inner.txt", "inner")
    create_snapshot(engine, "dir")

    import shutil

    shutil.rmtree(working_dir / "thing")
    write_file(working_dir, "thing", "now a file")
    after = create_snapshot(engine, "file")

    assert _as_set(diff_snapshot(engine, after)) == {
        ("thing/inner.txt", b"inner", None),
        ("thing", None, b"now a file"),
    }


def test_diff_matches_symmetric_difference_of_snapshots(engine, working_dir: Path):
    write_file(working_dir, "keep.txt", "k")
    write_file(working_dir, "change.txt", "old")
    write_file(working_dir, "gone/a.txt", "a")
    first = create_snapshot(engine)

    write_file(working_dir, "change.txt", "new")
    (working_dir / "gone" / "a.txt").unlink()
    (working_dir / "gone").rmdir()
    write_file(working_dir, "added/b.txt", "b")
    second = create_snapshot(engine)

    before = snapshot_contents(engine, first)
    after = snapshot_contents(engine, second)
    expected = set(before) ^ set(after)
    expected |= {p for p in set(before) & set(after) if before[p] != after[p]}

    assert {r.path for r in diff_snapshot(engine, second)} == expected


def test_diff_rejects_bad_ids(engine, working_dir: Path):
    write_file(working_dir, "a.txt", "a")
    create_snapshot(engine)

    with pytest.raises(InvalidSnapshotIdError):
        diff_snapshot(engine, "not-a-snapshot")
    with pytest.raises(InvalidSnapshotIdError):
        diff_snapshot(engine, "0" * 40)
    with pytest.raises(InvalidSnapshotIdError):
        # A tree id resolves, but not to a snapshot
        diff_snapshot(engine, latest_snapshot(engine).tree)


# ============================================================================
# Test 3: Restore Round-Trip
# ============================================================================


def test_restore_round_trip_after_drift(engine, working_dir: Path):
    write_file(working_dir, "a.txt", "alpha")
    write_file(working_dir, "dir/b.txt", "beta")
    script = write_file(working_dir, "bin/run.sh", "#!/bin/sh\necho hi\n")
    os.chmod(script, 0o755)
    snapshot_id = create_snapshot(engine, "baseline")
    captured = snapshot_contents(engine, snapshot_id)

    # Drift in every way possible
    write_file(working_dir, "a.txt", "changed")
    (working_dir / "dir" / "b.txt").unlink()
    write_file(working_dir, "untracked.txt", "extra")
    write_file(working_dir, "junk/deep/file.bin", b"\x00\x01")
    os.chmod(script, 0o644)

    result = restore_snapshot(engine, snapshot_id)

    assert read_tree_from_disk(working_dir) == captured
    assert not (working_dir / "junk").exists()
    assert os.stat(working_dir / "bin" / "run.sh").st_mode & stat.S_IXUSR
    assert result.removed_count >= 2


def test_restore_replaces_file_with_directory(engine, working_dir: Path):
    write_file(working_dir, "node/leaf.txt", "leaf")
    snapshot_id = create_snapshot(engine)

    import shutil

    shutil.rmtree(working_dir / "node")
    write_file(working_dir, "node", "blocking file")

    restore_snapshot(engine, snapshot_id)

    assert (working_dir / "node" / "leaf.txt").read_text() == "leaf"


def test_restore_recreates_deleted_working_directory(engine, working_dir: Path):
    write_file(working_dir, "a/b/c.txt", "deep")
    snapshot_id = create_snapshot(engine)

    import shutil

    shutil.rmtree(working_dir)

    restore_snapshot(engine, snapshot_id)
    assert (working_dir / "a" / "b" / "c.txt").read_text() == "deep"


def test_restore_keeps_nested_store(temp_dir: Path):
    work = temp_dir / "work"
    work.mkdir()
    config = create_config(work / ".snapvault", work)
    state = open_engine(config)
    try:
        write_file(work, "data.txt", "v1")
        snapshot_id = create_snapshot(state, "nested")

        assert ".snapvault/HEAD" not in snapshot_contents(state, snapshot_id)

        write_file(work, "data.txt", "v2")
        restore_snapshot(state, snapshot_id)

        assert (work / "data.txt").read_text() == "v1"
        assert (work / ".snapvault" / "HEAD").is_file()
        assert latest_snapshot(state).id == snapshot_id
    finally:
        close_engine(state)


# ============================================================================
# Test 4: Listing
# ============================================================================


def test_list_and_latest_on_empty_store(engine):
    assert list_snapshots(engine) == []
    assert latest_snapshot(engine) is None


def test_list_is_newest_first_with_parent_links(engine, working_dir: Path):
    ids = []
    for i in range(3):
        write_file(working_dir, "counter.txt", str(i))
        ids.append(create_snapshot(engine, f"snapshot {i}"))

    snapshots = list_snapshots(engine)
    assert [s.id for s in snapshots] == list(reversed(ids))
    assert [s.description for s in snapshots] == ["snapshot 2", "snapshot 1", "snapshot 0"]
    assert snapshots[0].parent == ids[1]
    assert snapshots[-1].parent is None
    assert snapshots[0].timestamp.tzinfo is not None


def test_list_skips_unreadable_ancestor(engine, store_dir: Path, working_dir: Path):
    ids = []
    for i in range(3):
        write_file(working_dir, "counter.txt", str(i))
        ids.append(create_snapshot(engine))

    # Remove the root commit's loose object
    (store_dir / "objects" / ids[0][:2] / ids[0][2:]).unlink()

    assert [s.id for s in list_snapshots(engine)] == [ids[2], ids[1]]


def test_list_falls_back_to_other_ref(engine, store_dir: Path, working_dir: Path):
    write_file(working_dir, "a.txt", "a")
    tip = create_snapshot(engine)

    (store_dir / "refs" / "heads" / "master").unlink()
    (store_dir / "refs" / "heads" / "rescued").write_bytes(tip.encode("ascii") + b"\n")

    assert [s.id for s in list_snapshots(engine)] == [tip]
    assert latest_snapshot(engine).id == tip

    # New snapshots continue from the rescued history
    write_file(working_dir, "a.txt", "b")
    child = create_snapshot(engine)
    assert latest_snapshot(engine).parent == tip
    assert latest_snapshot(engine).id == child


def test_custom_branch_is_tracked(temp_dir: Path, working_dir: Path):
    config = create_config(temp_dir / "store", working_dir, branch="backups")
    state = open_engine(config)
    try:
        write_file(working_dir, "a.txt", "a")
        snapshot_id = create_snapshot(state)

        assert (temp_dir / "store" / "HEAD").read_bytes().strip() == b"ref: refs/heads/backups"
        assert latest_snapshot(state).id == snapshot_id
    finally:
        close_engine(state)


def test_reopening_store_keeps_history(test_config, working_dir: Path):
    state = open_engine(test_config)
    write_file(working_dir, "a.txt", "a")
    snapshot_id = create_snapshot(state)
    close_engine(state)

    reopened = open_engine(test_config)
    try:
        assert latest_snapshot(reopened).id == snapshot_id
    finally:
        close_engine(reopened)


# ============================================================================
# Test 5: Ignore Rules During Snapshot
# ============================================================================


def test_snapshot_respects_ignore_rules(temp_dir: Path, working_dir: Path):
    write_file(working_dir, ".backupignore", "*.log\n!keep.log\nbuild/\nlogs/\n!logs/keep.txt\n")
    write_file(working_dir, "main.py", "print()")
    write_file(working_dir, "debug.log", "noise")
    write_file(working_dir, "keep.log", "important")
    write_file(working_dir, "build/out.bin", b"\x00")
    write_file(working_dir, "src/build", "a file named build")
    write_file(working_dir, "logs/keep.txt", "still excluded")
    write_file(working_dir, ".git/config", "[core]")
    write_file(working_dir, "notes.swp", "swap")
    write_file(working_dir, "__pycache__/m.pyc", b"\x00")
    write_file(working_dir, ".DS_Store", b"\x00")

    config = create_config(temp_dir / "store", working_dir, ignore_file=working_dir / ".backupignore")
    state = open_engine(config)
    try:
        first = create_snapshot(state)
        assert set(snapshot_contents(state, first)) == {
            ".backupignore",
            "main.py",
            "keep.log",
            "src/build",
        }

        write_file(working_dir, "another.log", "more noise")
        second = create_snapshot(state)
        assert diff_snapshot(state, second) == []
    finally:
        close_engine(state)


def test_set_ignore_file_reloads_rules(engine, temp_dir: Path, working_dir: Path):
    write_file(working_dir, "a.txt", "a")
    write_file(working_dir, "b.cache", "b")

    set_ignore_file(engine, temp_dir / "missing-ignore")
    assert set(snapshot_contents(engine, create_snapshot(engine))) == {"a.txt", "b.cache"}

    ignore_file = write_file(temp_dir, "rules", "*.cache\n")
    set_ignore_file(engine, ignore_file)
    assert set(snapshot_contents(engine, create_snapshot(engine))) == {"a.txt"}


def test_symlinks_are_not_captured(engine, working_dir: Path):
    target = write_file(working_dir, "real.txt", "real")
    os.symlink(target, working_dir / "link.txt")

    snapshot_id = create_snapshot(engine)
    assert set(snapshot_contents(engine, snapshot_id)) == {"real.txt"}


# ============================================================================
# Test 6: Archive Export
# ============================================================================


def _read_archive(data: bytes) -> dict:
    tar_bytes = decompress_archive(data)
    with tarfile.open(fileobj=io.BytesIO(tar_bytes), mode="r:") as tar:
        members = tar.getmembers()
        return {
            m.name: (tar.extractfile(m).read(), m.mode, m.mtime, m.isfile())
            for m in members
        }


def test_export_to_stream(engine, working_dir: Path):
    write_file(working_dir, "a.txt", "alpha")
    write_file(working_dir, "dir/sub/b.txt", "beta")
    script = write_file(working_dir, "run.sh", "#!/bin/sh\n")
    os.chmod(script, 0o755)
    snapshot_id = create_snapshot(engine)
    snapshot = latest_snapshot(engine)

    buffer = io.BytesIO()
    entries = export_snapshot_to_stream(engine, snapshot_id, buffer, level=3)

    assert entries == 3
    assert not buffer.closed
    archive = _read_archive(buffer.getvalue())
    assert set(archive) == {"a.txt", "dir/sub/b.txt", "run.sh"}
    assert archive["dir/sub/b.txt"][0] == b"beta"
    assert archive["run.sh"][1] == 0o755
    assert archive["a.txt"][1] == 0o644
    assert all(is_file for *_, is_file in archive.values())
    assert archive["a.txt"][2] == int(snapshot.timestamp.timestamp())


def test_export_to_path(engine, temp_dir: Path, working_dir: Path):
    write_file(working_dir, "a.txt", "alpha" * 1000)
    snapshot_id = create_snapshot(engine)

    destination = temp_dir / "exports" / "backup.tar.zst"
    written = export_snapshot(engine, snapshot_id, destination)

    assert written == destination
    assert not destination.with_name("backup.tar.zst.tmp").exists()
    archive = _read_archive(destination.read_bytes())
    assert archive["a.txt"][0] == b"alpha" * 1000


def test_export_clamps_levels(engine, working_dir: Path):
    write_file(working_dir, "a.txt", "alpha")
    snapshot_id = create_snapshot(engine)

    for level in (-5, 0, 9, 42):
        buffer = io.BytesIO()
        export_snapshot_to_stream(engine, snapshot_id, buffer, level=level)
        assert set(_read_archive(buffer.getvalue())) == {"a.txt"}

    assert zstd_level_for(-5) == 1
    assert zstd_level_for(0) == 1
    assert zstd_level_for(5) == 11
    assert zstd_level_for(42) == 19


def test_export_empty_snapshot(engine):
    snapshot_id = create_snapshot(engine)
    buffer = io.BytesIO()

    assert export_snapshot_to_stream(engine, snapshot_id, buffer) == 0
    assert _read_archive(buffer.getvalue()) == {}


def test_export_invalid_id_leaves_no_file(engine, temp_dir: Path):
    destination = temp_dir / "bad.tar.zst"
    with pytest.raises(InvalidSnapshotIdError):
        export_snapshot(engine, "f" * 40, destination)

    assert not destination.exists()
    assert not destination.with_name("bad.tar.zst.tmp").exists()


# ============================================================================
# Test 7: Metrics
# ============================================================================


def test_metrics_before_and_after_gc(engine, working_dir: Path):
    write_file(working_dir, "a.txt", "a")
    create_snapshot(engine)
    write_file(working_dir, "a.txt", "b")
    create_snapshot(engine)

    before = get_metrics(engine)
    assert before.snapshot_count == 2
    assert before.loose_object_count > 0
    assert before.pack_count == 0
    assert before.total_snapshots_created == 2
    assert before.last_gc_at is None

    collect_garbage(engine)

    after = get_metrics(engine)
    assert after.snapshot_count == 2
    assert after.loose_object_count == 0
    assert after.pack_count == 1
    assert after.total_gc_runs == 1
    assert after.last_gc_at is not None
