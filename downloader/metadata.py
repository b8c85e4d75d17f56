"""
Repository metadata hand-off between the sync and manifest steps.

The sync step knows each repository's ``archived`` flag from discovery; the
manifest step rebuilds everything else from disk and must be runnable on its
own (no network).  ``repo-metadata.json`` carries the flags across:

    [{"name": "tool", "archived": false, "releases": [{"tag": "v1.0.0", "assetCount": 2}]}, ...]
"""

from __future__ import annotations

import json
import logging
from pathlib import Path

from downloader.core import SyncOptions, SyncResult, sync_release_assets
from utils.store import atomic_write_json, read_json

logger = logging.getLogger(__name__)

DEFAULT_METADATA_PATH = Path("repo-metadata.json")


def build_repo_metadata(result: SyncResult) -> list[dict]:
    """One entry per enumerated repository, with releases where mirrored."""
    records = {r.name: r for r in result.repositories}
    entries = []
    for repo in result.seen:
        record = records.get(repo.name)
        entries.append({
            "name": repo.name,
            "archived": repo.archived,
            "releases": record.to_dict()["releases"] if record else [],
        })
    return entries


def write_repo_metadata(entries: list[dict], path: Path = DEFAULT_METADATA_PATH) -> None:
    atomic_write_json(Path(path), entries)
    logger.info("Stored metadata for %d repositories in %s", len(entries), path)


def load_repo_metadata(path: Path = DEFAULT_METADATA_PATH) -> list[dict]:
    """Read ``repo-metadata.json``; an absent or unreadable file yields ``[]``.

    Manifest generation must still succeed without it, with every repository
    reported as not archived.
    """
    path = Path(path)
    try:
        data = read_json(path)
    except FileNotFoundError:
        logger.info("No repository metadata found, continuing without archived status")
        return []
    except (OSError, json.JSONDecodeError) as e:
        logger.warning("Could not read repository metadata %s: %s", path, e)
        return []

    if not isinstance(data, list):
        logger.warning("Ignoring repository metadata %s: expected a list", path)
        return []
    entries = [e for e in data if isinstance(e, dict) and isinstance(e.get("name"), str)]
    logger.info("Loaded metadata for %d repositories", len(entries))
    return entries


def sync_assets_with_metadata(client, root: Path, fetch, options: SyncOptions | None = None,
                              metadata_path: Path | None = None) -> SyncResult:
    """Run the sync walk and store the repository metadata for the next step."""
    logger.info("Starting asset synchronization process...")
    result = sync_release_assets(client, root, fetch, options)
    path = metadata_path if metadata_path is not None else Path(root) / DEFAULT_METADATA_PATH
    write_repo_metadata(build_repo_metadata(result), path)
    logger.info("Asset synchronization completed successfully")
    return result
