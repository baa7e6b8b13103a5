# src/storage/tree.py — v2
"""Whole-tree filesystem operations used by the publisher and the cache.

Every operation replaces rather than merges: after a call the destination
holds exactly what the source held (apart from explicitly protected names).
"""

from __future__ import annotations

import logging
import shutil
from pathlib import Path
from typing import Iterable

logger = logging.getLogger(__name__)


def remove_path(path: Path) -> None:
    """Delete a file, symlink or directory tree if it exists."""
    if path.is_symlink() or path.is_file():
        path.unlink()
    elif path.is_dir():
        shutil.rmtree(path)


def replace_tree(src: Path, dst: Path) -> None:
    """Make ``dst`` an exact copy of directory ``src``."""
    if not src.is_dir():
        raise FileNotFoundError(f"Source directory does not exist: {src}")
    remove_path(dst)
    dst.parent.mkdir(parents=True, exist_ok=True)
    shutil.copytree(src, dst, symlinks=True)


def clear_directory(root: Path, keep: Iterable[str] = ()) -> list[str]:
    """Delete every entry of ``root`` except the names in ``keep``.

    Returns:
        Names that were removed.
    """
    protected = set(keep)
    removed: list[str] = []
    if not root.is_dir():
        return removed
    for entry in sorted(root.iterdir()):
        if entry.name in protected:
            continue
        remove_path(entry)
        removed.append(entry.name)
    return removed


def copy_contents(src: Path, dst: Path) -> None:
    """Copy the entries of ``src`` into existing directory ``dst``."""
    dst.mkdir(parents=True, exist_ok=True)
    for entry in sorted(src.iterdir()):
        target = dst / entry.name
        if entry.is_dir() and not entry.is_symlink():
            shutil.copytree(entry, target, symlinks=True, dirs_exist_ok=True)
        else:
            shutil.copy2(entry, target, follow_symlinks=False)


def mirror_into(src: Path, root: Path, keep: Iterable[str] = ()) -> None:
    """Make ``root`` hold exactly the contents of ``src`` plus the ``keep`` names.

    A kept name that also exists in ``src`` is overwritten by the source copy.
    """
    removed = clear_directory(root, keep=keep)
    logger.debug("Cleared %d entries from %s", len(removed), root)
    copy_contents(src, root)


def list_subdirectories(root: Path) -> list[str]:
    """Names of the immediate subdirectories of ``root`` (unordered)."""
    if not root.is_dir():
        return []
    return [e.name for e in root.iterdir() if e.is_dir() and not e.is_symlink()]
