"""
Filesystem helpers shared by the store, link engine and analyzer.
"""

import os
import shutil
from pathlib import Path
from typing import Iterator, Literal, NamedTuple, Optional

EntryKind = Literal["dir", "file", "symlink"]


class TreeEntry(NamedTuple):
    """One entry of a directory tree, relative to its root."""

    relative_path: str  # POSIX separators
    kind: EntryKind
    path: str


def iter_tree_entries(root: Path | str, include_hidden: bool = True) -> Iterator[TreeEntry]:
    """Yield every entry below root, sorted by relative path.

    Symlinks are reported as such and never followed. Entries that are
    neither directories, regular files nor symlinks are skipped.
    """
    entries: list[TreeEntry] = []
    stack = [("", os.fspath(root))]
    while stack:
        prefix, directory = stack.pop()
        with os.scandir(directory) as it:
            for entry in it:
                if not include_hidden and entry.name.startswith("."):
                    continue
                rel = f"{prefix}{entry.name}"
                if entry.is_symlink():
                    entries.append(TreeEntry(rel, "symlink", entry.path))
                elif entry.is_dir(follow_symlinks=False):
                    entries.append(TreeEntry(rel, "dir", entry.path))
                    stack.append((f"{rel}/", entry.path))
                elif entry.is_file(follow_symlinks=False):
                    entries.append(TreeEntry(rel, "file", entry.path))
    entries.sort(key=lambda e: e.relative_path)
    return iter(entries)


def folder_size(path: Path | str, include_hidden: bool = False) -> int:
    """Total size of regular files below path, skipping hidden entries unless asked.

    A symlinked root is followed (its target is measured); symlinks inside
    the tree are not.
    """
    root = os.fspath(path)
    if os.path.isfile(root):
        return os.path.getsize(root)
    if not os.path.isdir(root):
        return 0

    total = 0
    for dirpath, dirnames, filenames in os.walk(root):
        if not include_hidden:
            dirnames[:] = [d for d in dirnames if not d.startswith(".")]
        for name in filenames:
            if not include_hidden and name.startswith("."):
                continue
            full = os.path.join(dirpath, name)
            if os.path.islink(full):
                continue
            try:
                total += os.stat(full, follow_symlinks=False).st_size
            except OSError:
                continue
    return total


def normalized_path(path: Path | str) -> str:
    """Absolute, symlink-resolved, normalized form of path."""
    return os.path.realpath(os.path.expanduser(os.fspath(path)))


def is_under(path: Path | str, root: Path | str) -> bool:
    """True if path lies strictly below root (both normalized)."""
    normalized_root = normalized_path(root).rstrip(os.sep) + os.sep
    return normalized_path(path).startswith(normalized_root)


def relative_head(path: Path | str, root: Path | str) -> Optional[str]:
    """First path component of path relative to root, or None when outside root."""
    if not is_under(path, root):
        return None
    rel = os.path.relpath(normalized_path(path), normalized_path(root))
    return rel.split(os.sep, 1)[0]


def read_link_destination(path: Path | str) -> str:
    """Destination of a symlink, made absolute relative to the link's directory."""
    link = os.fspath(path)
    destination = os.readlink(link)
    if not os.path.isabs(destination):
        destination = os.path.join(os.path.dirname(os.path.abspath(link)), destination)
    return destination


def first_regular_file(root: Path | str) -> Optional[str]:
    """Relative path of the first regular file below root, hidden ones included, in sorted order."""
    if not os.path.isdir(root):
        return None
    for entry in iter_tree_entries(root):
        if entry.kind == "file":
            return entry.relative_path
    return None


def file_identity(path: Path | str) -> Optional[tuple[int, int]]:
    """(device, inode) of a file without following symlinks, or None if missing."""
    try:
        st = os.stat(path, follow_symlinks=False)
    except OSError:
        return None
    return st.st_dev, st.st_ino


def is_hardlinked_tree(source: Path | str, target: Path | str) -> bool:
    """True if target shares the inode of source's sample file at the same relative path."""
    if not os.path.isdir(source) or not os.path.isdir(target):
        return False
    sample = first_regular_file(source)
    if sample is None:
        return False
    source_id = file_identity(os.path.join(source, sample))
    target_id = file_identity(os.path.join(target, sample))
    return source_id is not None and source_id == target_id


def remove_path(path: Path | str) -> bool:
    """Delete whatever is at path (symlink, file or tree). Returns False if nothing was there."""
    p = os.fspath(path)
    if os.path.islink(p) or os.path.isfile(p):
        os.unlink(p)
        return True
    if os.path.isdir(p):
        shutil.rmtree(p)
        return True
    return False


def format_size(num_bytes: int) -> str:
    """Human-readable size (decimal units, like a file manager)."""
    if abs(num_bytes) < 1000:
        return f"{num_bytes} bytes"
    size = float(num_bytes)
    for unit in ("KB", "MB", "GB"):
        size /= 1000
        if abs(size) < 1000:
            return f"{size:.1f} {unit}"
    return f"{size / 1000:.1f} TB"
