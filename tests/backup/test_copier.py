"""Tests for the copy engine."""

import os

import pytest

from code_backup.backup.copier import (
    copy_file,
    copy_tree,
    directory_size,
    matches_filters,
    prune_empty_dirs,
    remove_path,
)
from code_backup.backup.exceptions import BackupCancelledError, BackupIOError
from tests.utils import make_tree, relative_dirs, relative_files


class CancelAfter:
    """Checkpoint that raises once it has been called ``limit`` times."""

    def __init__(self, limit):
        self.limit = limit
        self.calls = 0

    def __call__(self):
        self.calls += 1
        if self.calls > self.limit:
            raise BackupCancelledError()


@pytest.mark.parametrize("name, include, exclude, expected", [
    ("a.py", None, None, True),
    ("a.py", "*.py", None, True),
    ("a.txt", "*.py", None, False),
    ("a.tmp", None, "*.tmp", False),
    ("a.py", "*.py", "a.*", False),
])
def test_matches_filters(name, include, exclude, expected):
    assert matches_filters(name, include, exclude) is expected


def test_copy_file_byte_for_byte(tmp_path):
    payload = bytes(range(256)) * 10
    src = tmp_path / "src.bin"
    src.write_bytes(payload)

    copied = copy_file(str(src), str(tmp_path / "dst.bin"), chunk_size=7)

    assert copied == len(payload)
    assert (tmp_path / "dst.bin").read_bytes() == payload


def test_copy_empty_file(tmp_path):
    src = tmp_path / "empty"
    src.write_bytes(b"")

    assert copy_file(str(src), str(tmp_path / "copy")) == 0
    assert (tmp_path / "copy").read_bytes() == b""


def test_copy_file_missing_source_leaves_destination(tmp_path):
    dst = tmp_path / "dst.txt"
    dst.write_text("keep me")

    with pytest.raises(BackupIOError):
        copy_file(str(tmp_path / "missing.txt"), str(dst))

    assert dst.read_text() == "keep me"


def test_copy_file_missing_destination_parent(tmp_path):
    src = tmp_path / "src.txt"
    src.write_text("data")

    with pytest.raises(BackupIOError):
        copy_file(str(src), str(tmp_path / "no" / "such" / "dir" / "dst.txt"))


def test_copy_file_cancelled_mid_copy_removes_partial(tmp_path):
    src = tmp_path / "big.bin"
    src.write_bytes(b"x" * 100)
    dst = tmp_path / "big.copy"

    with pytest.raises(BackupCancelledError):
        copy_file(str(src), str(dst), checkpoint=CancelAfter(3), chunk_size=10)

    assert not dst.exists()


def test_copy_tree_exclude_at_depth(tmp_path):
    src = make_tree(tmp_path / "src", {
        "keep.py": "a",
        "drop.tmp": "b",
        "pkg/mod.py": "c",
        "pkg/cache.tmp": "d",
        "pkg/deep/er/data.json": "e",
        "pkg/deep/er/junk.tmp": "f",
    })
    (src / "empty_dir").mkdir()

    copied = copy_tree(str(src), str(tmp_path / "dst"), exclude_pattern="*.tmp")

    assert copied == 3
    assert relative_files(tmp_path / "dst") == {
        "keep.py": b"a",
        "pkg/mod.py": b"c",
        "pkg/deep/er/data.json": b"e",
    }
    assert relative_dirs(tmp_path / "dst") == relative_dirs(src)


def test_copy_tree_include_filters_files_not_directories(tmp_path):
    src = make_tree(tmp_path / "src", {
        "main.py": "a",
        "README.md": "b",
        "lib/util.py": "c",
        "lib/notes.txt": "d",
    })

    copy_tree(str(src), str(tmp_path / "dst"), include_pattern="*.py")

    assert set(relative_files(tmp_path / "dst")) == {"main.py", "lib/util.py"}


def test_copy_tree_checkpoint_between_files(tmp_path):
    """Cancellation is observed after the first file, before the rest are copied."""
    src = make_tree(tmp_path / "src", {"a.txt": "1", "b.txt": "2", "c.txt": "3"})
    dst = tmp_path / "dst"
    checkpoint = CancelAfter(2)  # before a.txt, inside a.txt

    with pytest.raises(BackupCancelledError):
        copy_tree(str(src), str(dst), checkpoint=checkpoint)

    assert relative_files(dst) == {"a.txt": b"1"}


def test_copy_tree_skips_store_directories(tmp_path):
    src = make_tree(tmp_path / "src", {"a.txt": "1", "store/old.txt": "2"})

    copy_tree(str(src), str(tmp_path / "dst"), skip_dirs=[str(src / "store")])

    assert relative_files(tmp_path / "dst") == {"a.txt": b"1"}


def test_copy_tree_missing_source(tmp_path):
    with pytest.raises(BackupIOError):
        copy_tree(str(tmp_path / "missing"), str(tmp_path / "dst"))


def test_remove_path_file_and_tree(tmp_path):
    make_tree(tmp_path, {"f.txt": "x", "d/e/g.txt": "y"})

    remove_path(str(tmp_path / "f.txt"))
    remove_path(str(tmp_path / "d"))
    remove_path(str(tmp_path / "never-existed"))

    assert list(tmp_path.iterdir()) == []


def test_prune_empty_dirs_stops_at_root(tmp_path):
    deep = tmp_path / "root" / "a" / "b" / "c"
    deep.mkdir(parents=True)
    (tmp_path / "root" / "a" / "keep.txt").write_text("k")

    prune_empty_dirs(str(deep), str(tmp_path / "root"))

    assert not (tmp_path / "root" / "a" / "b").exists()
    assert (tmp_path / "root" / "a").exists()


def test_prune_empty_dirs_never_removes_stop(tmp_path):
    root = tmp_path / "root"
    (root / "a").mkdir(parents=True)

    prune_empty_dirs(str(root / "a"), str(root))

    assert root.exists()
    assert not (root / "a").exists()


def test_directory_size(tmp_path):
    make_tree(tmp_path, {"a": b"12345", "b/c": b"123"})
    assert directory_size(str(tmp_path)) == 8
