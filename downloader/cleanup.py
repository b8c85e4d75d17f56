"""
Stale-state cleanup for the mirror tree.

Release directories must follow the tag convention (``v...``).  Anything else
directly under a repository directory (``latest``, ``nightly``, leftovers of
older layouts) is removed before the manifest is built, so the manifest scan
only ever sees conforming releases.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Iterable

from utils.patterns import is_release_dir_name, is_reserved_name
from utils.store import remove_tree

logger = logging.getLogger(__name__)


def protected_top_level_names(root: Path, paths: Iterable[Path] = ()) -> set[str]:
    """Top-level entries of *root* that contain any of *paths*.

    Used to keep directories the pipeline itself writes into (such as a
    custom logs directory) out of the repository walk.  Paths outside
    *root* contribute nothing.
    """
    root = Path(root).resolve()
    names = set()
    for path in paths:
        try:
            relative = Path(path).resolve().relative_to(root)
        except ValueError:
            continue
        if relative.parts:
            names.add(relative.parts[0])
    return names


def cleanup_non_release_dirs(root: Path = Path("."),
                             protect: Iterable[Path] = ()) -> list[Path]:
    """Remove non-``v``-prefixed release directories under every repository.

    Errors inside one repository are logged and that repository is skipped.

    Args:
        root: Mirror root.
        protect: Paths that must survive; the top-level directory holding
                 each of them is not treated as a repository.

    Returns:
        The directories that were removed.

    Raises:
        OSError: If *root* itself cannot be listed.
    """
    root = Path(root)
    skip = protected_top_level_names(root, protect)
    logger.info("Cleaning up non-v-prefixed release directories...")
    removed: list[Path] = []

    for repo_dir in sorted(root.iterdir()):
        if not repo_dir.is_dir() or is_reserved_name(repo_dir.name) or repo_dir.name in skip:
            continue
        try:
            for release_dir in sorted(repo_dir.iterdir()):
                if release_dir.is_dir() and not is_release_dir_name(release_dir.name):
                    logger.info("Removing non-v-prefixed release directory: %s", release_dir)
                    remove_tree(release_dir)
                    removed.append(release_dir)
        except OSError as e:
            logger.warning("Error processing repository %s: %s", repo_dir.name, e)

    logger.info("Cleanup completed: %d directories removed", len(removed))
    return removed
