"""
packages.json generation for the mirror.

The manifest is rebuilt from scratch on every run in two explicit passes:

1. ``scan_tree()`` walks the mirror directory, which is the ground truth, and
   derives repositories, releases and asset counts from what is on disk.
2. ``apply_repository_metadata()`` overlays the ``archived`` flag observed by
   the sync step, keyed by repository name.

Pass 1 needs no network and no sync results, so the manifest can always be
regenerated by hand (``scripts/generate_packages.py``).

Output shape (consumed by the published site; field names are load-bearing)::

    {
      "lastUpdated": "2026-01-01T00:00:00.000Z",
      "repositories": [
        {"name": "tool", "archived": false,
         "releases": [{"tag": "v1.2.0", "assetCount": 3}]}
      ],
      "stats": {"totalRepositories": 1, "totalReleases": 1, "totalAssets": 3}
    }
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterable

from downloader.cleanup import cleanup_non_release_dirs, protected_top_level_names
from downloader.metadata import DEFAULT_METADATA_PATH, load_repo_metadata
from utils.hashing import HASH_ALGORITHMS
from utils.patterns import (
    NON_ASSET_FILENAMES,
    is_release_dir_name,
    is_reserved_name,
    version_sort_key,
)
from utils.store import atomic_write_json

logger = logging.getLogger(__name__)

PACKAGES_FILENAME = "packages.json"

_HASH_SUFFIXES = tuple(f".{algo}" for algo in HASH_ALGORITHMS)


def is_qualifying_asset(filename: str) -> bool:
    """True for files that count as mirrored assets.

    Hash artifacts, README files and hidden files (in-progress downloads and
    temporary files are dot-prefixed) do not count.
    """
    return not (
        filename.endswith(_HASH_SUFFIXES)
        or filename in NON_ASSET_FILENAMES
        or filename.startswith(".")
    )


def sort_releases(releases: list[dict]) -> list[dict]:
    """Newest tag first, comparing digit runs numerically."""
    return sorted(releases, key=lambda r: version_sort_key(r["tag"]), reverse=True)


# ── Pass 1: disk scan ─────────────────────────────────────────────────────────


def scan_release_directory(release_path: Path) -> dict | None:
    """Count the qualifying asset files of one release directory.

    Returns:
        ``{"tag", "assetCount"}`` or None if the directory holds no assets
        or cannot be read.
    """
    release_path = Path(release_path)
    try:
        count = sum(
            1 for entry in release_path.iterdir()
            if entry.is_file() and is_qualifying_asset(entry.name)
        )
    except OSError as e:
        logger.error("Error processing release %s: %s", release_path.name, e)
        return None
    if count == 0:
        return None
    return {"tag": release_path.name, "assetCount": count}


def scan_repository_directory(repo_path: Path) -> dict | None:
    """Collect the ``v``-prefixed releases of one repository directory.

    Returns:
        ``{"name", "archived", "releases"}`` with ``archived`` False (the
        overlay pass fills it in), or None if no release has assets.
    """
    repo_path = Path(repo_path)
    releases = []
    try:
        for entry in repo_path.iterdir():
            if entry.is_dir() and is_release_dir_name(entry.name):
                release = scan_release_directory(entry)
                if release:
                    releases.append(release)
    except OSError as e:
        logger.error("Error processing repository %s: %s", repo_path.name, e)
        return None

    if not releases:
        return None
    return {"name": repo_path.name, "archived": False, "releases": sort_releases(releases)}


def scan_tree(root: Path = Path("."), protect: Iterable[Path] = ()) -> list[dict]:
    """Derive every repository entry from the mirror tree, sorted by name.

    Top-level directories holding any path in *protect* are not repositories.

    Raises:
        OSError: If *root* itself cannot be listed.
    """
    root = Path(root)
    skip = protected_top_level_names(root, protect)
    logger.info("Scanning dist directory: %s", root)
    repositories = []
    for entry in root.iterdir():
        if not entry.is_dir() or is_reserved_name(entry.name) or entry.name in skip:
            continue
        repo = scan_repository_directory(entry)
        if repo:
            logger.debug("  %s: %d releases", entry.name, len(repo["releases"]))
            repositories.append(repo)
        else:
            logger.debug("  %s: no releases with assets", entry.name)
    repositories.sort(key=lambda r: (r["name"].casefold(), r["name"]))
    return repositories


# ── Pass 2: metadata overlay ──────────────────────────────────────────────────


def apply_repository_metadata(repositories: list[dict],
                              metadata: Iterable[dict]) -> list[dict]:
    """Overlay ``archived`` from sync metadata by exact repository name.

    Repositories without a metadata entry keep ``archived=False``.
    """
    archived_by_name = {
        m["name"]: bool(m.get("archived", False))
        for m in metadata if isinstance(m, dict) and "name" in m
    }
    for repo in repositories:
        if repo["name"] in archived_by_name:
            repo["archived"] = archived_by_name[repo["name"]]
    return repositories


def compute_stats(repositories: list[dict]) -> dict[str, int]:
    return {
        "totalRepositories": len(repositories),
        "totalReleases": sum(len(r["releases"]) for r in repositories),
        "totalAssets": sum(rel["assetCount"] for r in repositories for rel in r["releases"]),
    }


def _iso_now() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def generate_packages_json(root: Path = Path("."), metadata: Iterable[dict] = (),
                           now: str | None = None, protect: Iterable[Path] = ()) -> dict:
    """Build the manifest from the tree at *root* plus sync metadata."""
    repositories = apply_repository_metadata(scan_tree(root, protect), metadata)
    stats = compute_stats(repositories)
    logger.info("Generated packages data: %d repositories, %d releases, %d assets",
                stats["totalRepositories"], stats["totalReleases"], stats["totalAssets"])
    return {
        "lastUpdated": now or _iso_now(),
        "repositories": repositories,
        "stats": stats,
    }


def write_packages_json(packages_data: dict, output_path: Path = Path(PACKAGES_FILENAME)) -> None:
    """Write the manifest atomically.  Errors propagate to the caller."""
    atomic_write_json(Path(output_path), packages_data)
    logger.info("Generated packages.json: %s", output_path)


def generate_packages_with_cleanup(root: Path = Path("."),
                                   metadata_path: Path | None = None,
                                   output_path: Path | None = None,
                                   protect: Iterable[Path] = ()) -> dict:
    """Prune stale release directories, then regenerate ``packages.json``.

    Args:
        root: Mirror root.
        metadata_path: ``repo-metadata.json`` from the sync step
                       (default: inside *root*).  May be absent.
        output_path: Manifest destination (default: ``<root>/packages.json``).
        protect: Paths inside *root* the pipeline writes to (e.g. the logs
                 directory); never cleaned up or scanned as repositories.

    Returns:
        The manifest that was written.
    """
    root = Path(root)
    logger.info("Starting packages.json generation process...")
    protect = list(protect)
    cleanup_non_release_dirs(root, protect)
    metadata = load_repo_metadata(
        metadata_path if metadata_path is not None else root / DEFAULT_METADATA_PATH
    )
    packages_data = generate_packages_json(root, metadata, protect=protect)
    write_packages_json(packages_data, output_path or root / PACKAGES_FILENAME)
    return packages_data
