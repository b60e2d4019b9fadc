"""
Content-addressed plugin store.

Every stored plugin tree lives under objects/sha256/<digest>, where the
digest is computed over a canonical manifest of the tree:

    sha256-dir-v1\\n
    D:<rel>\\n                     directories
    F:<rel>\\n<bytes>              regular files
    L:<rel>-><destination>\\n      symlinks (never followed)

Entries are fed in sorted relative-path order, hidden entries included.
Objects are written into a hidden staging entry and renamed into place, so
an object is either fully present under its digest or absent.
"""

import hashlib
import logging
import os
import shutil
import threading
import uuid
from pathlib import Path
from typing import Iterable, Optional

from pluginhub.core.errors import OperationCancelled, SourceNotFound, StoreWriteFailure
from pluginhub.lib.fs_utils import (
    file_identity,
    first_regular_file,
    folder_size,
    is_under,
    iter_tree_entries,
    read_link_destination,
    relative_head,
    remove_path,
)

logger = logging.getLogger(__name__)

HASH_HEADER = b"sha256-dir-v1\n"
DEFAULT_CHUNK_SIZE = 1024 * 1024
STAGING_PREFIX = ".tmp-"


def _feed_file(digest, path: str, chunk_size: int) -> None:
    with open(path, "rb") as f:
        while True:
            chunk = f.read(chunk_size)
            if not chunk:
                break
            digest.update(chunk)


def compute_content_hash(
    source: Path | str,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
    cancel_event: Optional[threading.Event] = None,
) -> str:
    """Hex SHA-256 of the canonical manifest of a file or directory tree."""
    root = os.fspath(source)
    digest = hashlib.sha256()
    digest.update(HASH_HEADER)

    if os.path.isfile(root):
        digest.update(b"F:root\n")
        _feed_file(digest, root, chunk_size)
        return digest.hexdigest()

    for entry in iter_tree_entries(root):
        if cancel_event is not None and cancel_event.is_set():
            raise OperationCancelled(f"Hashing cancelled: {root}", root)
        rel = entry.relative_path.encode("utf-8", "surrogateescape")
        if entry.kind == "dir":
            digest.update(b"D:" + rel + b"\n")
        elif entry.kind == "file":
            digest.update(b"F:" + rel + b"\n")
            _feed_file(digest, entry.path, chunk_size)
        else:
            destination = os.fsencode(os.readlink(entry.path))
            digest.update(b"L:" + rel + b"->" + destination + b"\n")
    return digest.hexdigest()


class ContentStore:
    """Owns <root>/objects/sha256 and everything below it."""

    def __init__(self, root: Path | str, chunk_size: int = DEFAULT_CHUNK_SIZE):
        self.root = Path(root).expanduser()
        self.objects_root = self.root / "objects" / "sha256"
        self.chunk_size = chunk_size
        self.objects_root.mkdir(parents=True, exist_ok=True)

    def object_path(self, digest: str) -> Path:
        return self.objects_root / digest

    def contains(self, digest: str) -> bool:
        return os.path.lexists(self.object_path(digest))

    def list_objects(self) -> list[str]:
        """Digests of all visible objects (staging entries excluded)."""
        if not self.objects_root.is_dir():
            return []
        return sorted(name for name in os.listdir(self.objects_root) if not name.startswith("."))

    def total_size(self) -> int:
        return folder_size(self.objects_root)

    # -----------------------------------------------------------------------
    # Ingest
    # -----------------------------------------------------------------------

    def ensure_stored_copy(
        self,
        source_path: Path | str,
        cancel_event: Optional[threading.Event] = None,
    ) -> Path:
        """Store source_path if its content is not stored yet; return the object path.

        Safe to call concurrently for identical content: exactly one staging
        copy wins the rename, the others are discarded.
        """
        source = os.fspath(Path(source_path).expanduser())
        if not os.path.exists(source):
            raise SourceNotFound(source)

        digest = compute_content_hash(source, self.chunk_size, cancel_event)
        destination = self.object_path(digest)
        if os.path.lexists(destination):
            logger.debug(f"Object {digest[:12]} already stored for {source}")
            return destination

        self.objects_root.mkdir(parents=True, exist_ok=True)
        staging = self.objects_root / f"{STAGING_PREFIX}{uuid.uuid4().hex}"
        try:
            if os.path.isdir(source):
                shutil.copytree(source, staging, symlinks=True)
            else:
                shutil.copy2(source, staging)
        except OSError as e:
            self._discard_staging(staging)
            raise StoreWriteFailure(f"Failed to copy {source} into the store: {e}", source) from e

        try:
            os.rename(staging, destination)
        except OSError as e:
            self._discard_staging(staging)
            if os.path.lexists(destination):
                logger.debug(f"Lost ingest race for {digest[:12]}, using existing object")
                return destination
            raise StoreWriteFailure(
                f"Failed to move {source} into the store: {e}", source
            ) from e

        logger.info(f"Stored {source} as {digest[:12]}", extra={"path": destination})
        return destination

    def _discard_staging(self, staging: Path) -> None:
        try:
            remove_path(staging)
        except OSError as e:
            logger.warning(f"Could not remove staging entry {staging}: {e}")

    def cleanup_staging(self) -> int:
        """Remove leaked staging entries. Returns how many were removed."""
        removed = 0
        if not self.objects_root.is_dir():
            return 0
        for name in os.listdir(self.objects_root):
            if not name.startswith(STAGING_PREFIX):
                continue
            try:
                if remove_path(self.objects_root / name):
                    removed += 1
            except FileNotFoundError:
                continue
        if removed:
            logger.info(f"Removed {removed} staging entries")
        return removed

    # -----------------------------------------------------------------------
    # Garbage collection
    # -----------------------------------------------------------------------

    def referenced_objects(
        self,
        candidates: Iterable[str],
        store_paths: Iterable[str] = (),
        editor_dirs: Iterable[Path | str] = (),
    ) -> set[str]:
        """Digests among candidates that an index path or editor entry still points at."""
        candidates = set(candidates)
        referenced: set[str] = set()

        for store_path in store_paths:
            head = relative_head(store_path, self.objects_root)
            if head in candidates:
                referenced.add(head)

        # Hardlink trees are recognised by their sampled file's inode
        identities: dict[tuple[int, int], str] = {}
        for digest in candidates:
            sample = first_regular_file(self.object_path(digest))
            if sample is None:
                continue
            identity = file_identity(self.object_path(digest) / sample)
            if identity is not None:
                identities[identity] = digest

        for editor_dir in editor_dirs:
            directory = os.fspath(editor_dir)
            if not os.path.isdir(directory):
                continue
            with os.scandir(directory) as it:
                entries = list(it)
            for entry in entries:
                if entry.is_symlink():
                    try:
                        destination = read_link_destination(entry.path)
                    except OSError:
                        continue
                    head = relative_head(destination, self.objects_root)
                    if head in candidates:
                        referenced.add(head)
                elif identities and entry.is_dir(follow_symlinks=False):
                    sample = first_regular_file(entry.path)
                    if sample is None:
                        continue
                    digest = identities.get(file_identity(os.path.join(entry.path, sample)))
                    if digest is not None:
                        referenced.add(digest)
        return referenced

    def garbage_collect(self, index=None, editor_dirs: Iterable[Path | str] = ()) -> int:
        """Delete objects nothing references; prune index records whose object is gone.

        `index` is a PluginIndex (or None). Returns the number of objects removed.
        """
        candidates = self.list_objects()
        store_paths = index.store_paths() if index is not None else []
        referenced = self.referenced_objects(candidates, store_paths, editor_dirs)

        removed = 0
        for digest in candidates:
            if digest in referenced:
                continue
            try:
                remove_path(self.object_path(digest))
            except FileNotFoundError:
                logger.warning(
                    f"GC race: object {digest[:12]} vanished before removal",
                    extra={"path": self.object_path(digest)},
                )
                continue
            removed += 1
            logger.debug(f"GC removed {digest[:12]}")

        if index is not None:
            index.prune_missing()

        logger.info(f"GC removed {removed} of {len(candidates)} objects")
        return removed

    def clear(self) -> None:
        """Remove everything under the store root and recreate an empty objects root."""
        if self.root.exists():
            for child in self.root.iterdir():
                remove_path(child)
        self.objects_root.mkdir(parents=True, exist_ok=True)
        logger.info(f"Cleared store at {self.root}")

    def owns(self, path: Path | str) -> bool:
        """True if path lies under the objects root."""
        return is_under(path, self.objects_root)

    def digest_of(self, path: Path | str) -> Optional[str]:
        """Digest of the object containing path, or None for paths outside the store."""
        head = relative_head(path, self.objects_root)
        if head is None or head.startswith("."):
            return None
        return head

