"""
Link materialization.

Puts a stored object at an editor path, preferring an absolute symlink,
then a tree of hard links, then a plain copy. Also answers whether a path
is backed by the store and swaps real installations for links.
"""

import logging
import os
import shutil
import uuid
from enum import Enum
from pathlib import Path
from typing import Optional

from pluginhub.core.errors import LinkFailed, SourceNotFound, TargetAlreadyExists
from pluginhub.lib.fs_utils import (
    file_identity,
    is_hardlinked_tree,
    is_under,
    iter_tree_entries,
    normalized_path,
    read_link_destination,
    remove_path,
)

logger = logging.getLogger(__name__)


class LinkKind(str, Enum):
    SYMLINK = "symlink"
    HARDLINK_TREE = "hardlink_tree"
    RAW_COPY = "raw_copy"


class LinkStatus(str, Enum):
    LINKED = "linked"
    NOT_LINKED = "not_linked"
    BROKEN = "broken"
    DIRECT_INSTALL = "direct_install"


class LinkEngine:
    """Creates, checks and removes links from editor directories into the store."""

    def __init__(self, objects_root: Path | str, enable_symlinks: bool = True):
        self.objects_root = Path(objects_root)
        self.enable_symlinks = enable_symlinks

    def materialize(
        self,
        object_path: Path | str,
        target_path: Path | str,
        overwrite: bool = False,
    ) -> LinkKind:
        """Make target_path resolve to object_path. Returns how it was done."""
        source = os.fspath(object_path)
        target = os.fspath(target_path)
        if not os.path.exists(source):
            raise SourceNotFound(source)

        self._clear_target(source, target, overwrite)
        os.makedirs(os.path.dirname(os.path.abspath(target)), exist_ok=True)
        return self._create(source, target)

    def _create(self, source: str, target: str) -> LinkKind:
        if self.enable_symlinks:
            try:
                os.symlink(os.path.abspath(source), target)
                logger.debug(f"Symlinked {target} -> {source}")
                return LinkKind.SYMLINK
            except OSError as e:
                logger.warning(f"Symlink failed for {target}, trying hard links: {e}")

        try:
            self._build_hardlink_tree(source, target)
            logger.debug(f"Hard-linked {target} from {source}")
            return LinkKind.HARDLINK_TREE
        except OSError as e:
            logger.warning(f"Hard links failed for {target}, copying instead: {e}")
            self._remove_partial(target)

        try:
            if os.path.isdir(source):
                shutil.copytree(source, target, symlinks=True)
            else:
                shutil.copy2(source, target)
        except OSError as e:
            self._remove_partial(target)
            raise LinkFailed(f"Could not link or copy {source} to {target}: {e}", target) from e
        logger.info(f"Copied {source} to {target} (no link possible)", extra={"path": target})
        return LinkKind.RAW_COPY

    @staticmethod
    def _build_hardlink_tree(source: str, target: str) -> None:
        if not os.path.isdir(source):
            os.link(source, target)
            return
        os.mkdir(target)
        # Sorted order creates parents before their children
        for entry in iter_tree_entries(source):
            dest = os.path.join(target, *entry.relative_path.split("/"))
            if entry.kind == "dir":
                os.mkdir(dest)
            elif entry.kind == "file":
                os.link(entry.path, dest)
            else:
                os.symlink(os.readlink(entry.path), dest)

    @staticmethod
    def _remove_partial(target: str) -> None:
        try:
            remove_path(target)
        except OSError as e:
            logger.warning(f"Could not remove partial output at {target}: {e}")

    def _clear_target(self, source: str, target: str, overwrite: bool) -> None:
        if not os.path.lexists(target):
            return
        if os.path.islink(target):
            os.unlink(target)
            return
        if not os.path.isdir(target):
            if overwrite or os.path.getsize(target) == 0 or self.is_linked(target, source):
                os.unlink(target)
                return
            raise TargetAlreadyExists(target)
        if not os.listdir(target):
            os.rmdir(target)
            return
        if overwrite or self.is_linked(target, source):
            shutil.rmtree(target)
            return
        raise TargetAlreadyExists(target)

    def replace_with_link(self, object_path: Path | str, target_path: Path | str) -> LinkKind:
        """Swap an existing installation for a link without a half-replaced window.

        The link is built in a hidden sibling first. The original is only
        deleted once the link has been renamed into its place.
        """
        source = os.fspath(object_path)
        target = os.fspath(target_path)
        if not os.path.exists(source):
            raise SourceNotFound(source)

        parent, name = os.path.split(os.path.abspath(target))
        token = uuid.uuid4().hex[:12]
        staging = os.path.join(parent, f".{name}.pluginhub-{token}")
        backup = os.path.join(parent, f".{name}.pluginhub-old-{token}")

        kind = self._create(source, staging)
        if not os.path.lexists(staging) or (
            kind != LinkKind.RAW_COPY and not self.is_linked(staging, source)
        ):
            self._remove_partial(staging)
            raise LinkFailed(f"Staged link for {target} could not be verified", target)

        had_original = os.path.lexists(target)
        if had_original:
            try:
                os.rename(target, backup)
            except OSError as e:
                self._remove_partial(staging)
                raise LinkFailed(f"Could not move {target} aside: {e}", target) from e

        try:
            os.rename(staging, target)
        except OSError as e:
            self._remove_partial(staging)
            if had_original:
                try:
                    os.rename(backup, target)
                except OSError as restore_error:
                    logger.error(
                        f"Could not restore {target}; original left at {backup}: {restore_error}",
                        extra={"path": backup},
                    )
                    raise LinkFailed(
                        f"Could not put link in place at {target}: {e}; "
                        f"restoring failed too ({restore_error}), original left at {backup}",
                        target,
                    ) from restore_error
            raise LinkFailed(f"Could not put link in place at {target}: {e}", target) from e

        if had_original:
            try:
                remove_path(backup)
            except OSError as e:
                logger.warning(f"Linked {target} but could not delete old copy {backup}: {e}")

        logger.info(
            f"Replaced {target} with {kind.value} to {os.path.basename(source)[:12]}",
            extra={"path": target},
        )
        return kind

    def is_linked(self, path: Path | str, object_path: Path | str) -> bool:
        """True if path is a symlink into the store or a hard-link tree of object_path."""
        target = os.fspath(path)
        source = os.fspath(object_path)
        if os.path.islink(target):
            destination = read_link_destination(target)
            return normalized_path(destination) == normalized_path(source) or is_under(
                destination, self.objects_root
            )
        if os.path.isdir(source):
            return is_hardlinked_tree(source, target)
        if os.path.isfile(target):
            identity = file_identity(target)
            return identity is not None and identity == file_identity(source)
        return False

    def link_status(
        self, path: Path | str, object_path: Optional[Path | str] = None
    ) -> LinkStatus:
        target = os.fspath(path)
        if not os.path.lexists(target):
            return LinkStatus.NOT_LINKED

        if os.path.islink(target):
            destination = read_link_destination(target)
            if not os.path.exists(destination):
                return LinkStatus.BROKEN
            if object_path is not None and normalized_path(destination) == normalized_path(
                object_path
            ):
                return LinkStatus.LINKED
            if is_under(destination, self.objects_root):
                return LinkStatus.LINKED
            return LinkStatus.BROKEN

        if object_path is not None and self.is_linked(target, object_path):
            return LinkStatus.LINKED
        return LinkStatus.DIRECT_INSTALL

    def remove_link(self, path: Path | str) -> bool:
        """Remove whatever is at path. Removing a missing path is not an error."""
        removed = remove_path(path)
        if removed:
            logger.info(f"Removed {path}", extra={"path": path})
        return removed
