"""Tests for filesystem helpers."""

import os

import pytest

from pluginhub.lib.fs_utils import (
    folder_size,
    format_size,
    first_regular_file,
    is_hardlinked_tree,
    is_under,
    iter_tree_entries,
    read_link_destination,
    relative_head,
    remove_path,
)


@pytest.fixture
def tree(tmp_path):
    root = tmp_path / "tree"
    (root / "b" / "nested").mkdir(parents=True)
    (root / "a.txt").write_text("aaaa")
    (root / "b" / "nested" / "c.txt").write_text("cc")
    (root / ".hidden").write_text("hidden")
    os.symlink("a.txt", root / "link")
    return root


class TestIterTreeEntries:
    def test_sorted_with_kinds(self, tree):
        entries = [(e.relative_path, e.kind) for e in iter_tree_entries(tree)]
        assert entries == [
            (".hidden", "file"),
            ("a.txt", "file"),
            ("b", "dir"),
            ("b/nested", "dir"),
            ("b/nested/c.txt", "file"),
            ("link", "symlink"),
        ]

    def test_skip_hidden(self, tree):
        names = [e.relative_path for e in iter_tree_entries(tree, include_hidden=False)]
        assert ".hidden" not in names


class TestFolderSize:
    def test_skips_hidden_and_symlinks(self, tree):
        assert folder_size(tree) == 6

    def test_include_hidden(self, tree):
        assert folder_size(tree, include_hidden=True) == 12

    def test_file_and_missing(self, tree):
        assert folder_size(tree / "a.txt") == 4
        assert folder_size(tree / "missing") == 0


class TestPaths:
    def test_is_under(self, tmp_path):
        assert is_under(tmp_path / "a" / "b", tmp_path)
        assert not is_under(tmp_path, tmp_path)
        assert not is_under(tmp_path.parent / (tmp_path.name + "-other"), tmp_path)

    def test_relative_head(self, tmp_path):
        assert relative_head(tmp_path / "abc" / "x" / "y", tmp_path) == "abc"
        assert relative_head("/elsewhere", tmp_path) is None

    def test_read_link_destination_is_absolute(self, tree):
        assert read_link_destination(tree / "link") == str(tree / "a.txt")


class TestHardlinks:
    def test_detects_shared_inodes(self, tree, tmp_path):
        copy = tmp_path / "copy"
        (copy / "b" / "nested").mkdir(parents=True)
        os.link(tree / "a.txt", copy / "a.txt")
        assert is_hardlinked_tree(tree, copy)

    def test_sample_includes_dotfiles(self, tmp_path):
        source = tmp_path / "source"
        source.mkdir()
        (source / ".vsixmanifest").write_text("m")
        copy = tmp_path / "copy"
        copy.mkdir()
        os.link(source / ".vsixmanifest", copy / ".vsixmanifest")

        assert first_regular_file(source) == ".vsixmanifest"
        assert is_hardlinked_tree(source, copy)

    def test_plain_copy_is_not_hardlinked(self, tree, tmp_path):
        copy = tmp_path / "copy"
        copy.mkdir()
        (copy / "a.txt").write_text("aaaa")
        assert not is_hardlinked_tree(tree, copy)


def test_remove_path(tree):
    assert remove_path(tree / "link") is True
    assert (tree / "a.txt").exists()
    assert remove_path(tree / "b") is True
    assert remove_path(tree / "b") is False


@pytest.mark.parametrize(
    "size,expected",
    [(0, "0 bytes"), (999, "999 bytes"), (1500, "1.5 KB"), (2_500_000, "2.5 MB"), (3 * 10**12, "3.0 TB")],
)
def test_format_size(size, expected):
    assert format_size(size) == expected
