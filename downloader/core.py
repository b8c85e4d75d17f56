"""
Core synchronization pipeline for the release mirror.

Walks every repository of the organization, every published release of each
repository and every asset of each release, and decides per asset whether it
must be downloaded (size ceiling, already present, legacy oversized file).
Run-wide counters are carried in an explicit ``RunCounters`` accumulator that
each step receives and the top-level walk returns.

Layout written under the mirror root::

    <repository>/<tag>/<asset>
    <repository>/<tag>/<asset>.sha256 | .sha512 | .md5
"""

from __future__ import annotations

import functools
import logging
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Optional

import requests

from downloader.sources import AssetInfo, ReleaseInfo, RepoInfo
from utils.common import format_bytes, elapsed
from utils.config import CONSTRAINED_RELEASE_LIMIT, DEFAULT_MAX_ASSET_MB
from utils.hashing import HashError, generate_hash_files, remove_hash_files
from utils.http import DownloadError, download_file
from utils.patterns import version_sort_key
from utils.store import ensure_dir, file_exists, remove_file

logger = logging.getLogger(__name__)


# ---- Configuration ----

MAX_ASSET_BYTES = DEFAULT_MAX_ASSET_MB * 1024 * 1024

# Asset outcomes
STATUS_OK = "ok"                          # newly downloaded and hashed
STATUS_EXISTS = "exists"                  # already on disk within the ceiling
STATUS_SKIP_OVERSIZED = "skip_oversized"  # too large, nothing on disk
STATUS_EVICTED = "evicted"                # too large, previous copy removed
STATUS_FAIL = "fail"                      # download or hashing failed

# (url, dest_path) -> bytes written; raises DownloadError
Fetcher = Callable[[str, Path], int]


# ---- Result and state records ----


@dataclass(frozen=True)
class AssetResult:
    status: str

    @property
    def qualifying(self) -> bool:
        """Counts towards the release's asset count."""
        return self.status in (STATUS_OK, STATUS_EXISTS)

    @property
    def is_new(self) -> bool:
        return self.status == STATUS_OK


@dataclass
class RunCounters:
    """Per-run accounting.  Lives only for one invocation; never persisted."""

    total_assets: int = 0
    new_assets: int = 0
    processed_releases: int = 0
    failed_assets: int = 0
    failed_repositories: int = 0

    def quota_reached(self, max_new_assets: int) -> bool:
        """True once the new-asset quota is used up (0 means unlimited)."""
        return max_new_assets > 0 and self.new_assets >= max_new_assets


@dataclass
class SyncOptions:
    """Knobs for one sync run."""

    constrained: bool = False
    max_new_assets: int = 0
    release_limit: int = CONSTRAINED_RELEASE_LIMIT
    max_asset_bytes: int = MAX_ASSET_BYTES
    max_retries: int = 3
    backoff_base: float = 1.0
    timeout: float = 120

    @property
    def release_cap(self) -> Optional[int]:
        """Releases-with-assets cap per repository, or None when unlimited."""
        return self.release_limit if self.constrained else None


@dataclass
class ReleaseRecord:
    tag: str
    asset_count: int

    def to_dict(self) -> dict:
        return {"tag": self.tag, "assetCount": self.asset_count}


@dataclass
class RepositoryRecord:
    name: str
    archived: bool = False
    releases: list[ReleaseRecord] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "archived": self.archived,
            "releases": [r.to_dict() for r in self.releases],
        }


@dataclass
class SyncResult:
    """What a sync run produced.

    ``repositories`` holds only repositories with at least one release that
    has a qualifying asset.  ``seen`` holds every repository that was
    enumerated, so archived flags are known even for repositories that
    contributed nothing this run.
    """

    repositories: list[RepositoryRecord]
    counters: RunCounters
    seen: list[RepoInfo] = field(default_factory=list)


def make_fetcher(session: requests.Session, token: Optional[str],
                 options: SyncOptions) -> Fetcher:
    """Bind the retrying downloader to a session, credential and retry policy."""
    return functools.partial(
        download_file,
        token=token,
        session=session,
        max_retries=options.max_retries,
        backoff_base=options.backoff_base,
        timeout=options.timeout,
    )


# ---- Asset ----


def _evict(asset_path: Path) -> None:
    """Remove an asset and its hash artifacts.  Failures are logged only."""
    try:
        remove_file(asset_path)
        for hash_path in remove_hash_files(asset_path):
            logger.info("Removed hash file: %s", hash_path)
    except OSError as e:
        logger.error("Failed to remove oversized file %s: %s", asset_path, e)


def process_asset(release_dir: Path, asset: AssetInfo, fetch: Fetcher,
                  max_asset_bytes: int = MAX_ASSET_BYTES) -> AssetResult:
    """Bring one asset in line with the size policy, downloading if needed.

    Args:
        release_dir: Existing ``<root>/<repo>/<tag>`` directory.
        asset: Remote asset description.
        fetch: Downloader; raises DownloadError when every attempt failed.
        max_asset_bytes: Size ceiling.  Larger assets are never kept.

    Returns:
        AssetResult with one of the ``STATUS_*`` values.
    """
    asset_path = Path(release_dir) / asset.name
    limit = format_bytes(max_asset_bytes)

    if asset.size > max_asset_bytes:
        logger.info("Skipping %s (%s) - exceeds %s limit",
                    asset.name, format_bytes(asset.size), limit)
        if file_exists(asset_path):
            logger.info("Removing existing oversized file: %s", asset_path)
            _evict(asset_path)
            return AssetResult(STATUS_EVICTED)
        return AssetResult(STATUS_SKIP_OVERSIZED)

    if file_exists(asset_path):
        try:
            local_size = asset_path.stat().st_size
        except OSError as e:
            logger.error("Error checking existing file size for %s: %s", asset_path, e)
            return AssetResult(STATUS_EXISTS)
        if local_size <= max_asset_bytes:
            logger.debug("Asset already exists: %s", asset_path)
            return AssetResult(STATUS_EXISTS)
        # Left over from a looser policy.  The remote copy is within the
        # ceiling (checked above), so replace it.
        logger.info("Removing existing oversized file: %s (%s)",
                    asset_path, format_bytes(local_size))
        _evict(asset_path)

    logger.info("Downloading: %s (%s)", asset.name, format_bytes(asset.size))
    try:
        fetch(asset.download_url, asset_path)
    except (DownloadError, OSError) as e:
        logger.error("Failed to download %s: %s", asset.name, e)
        return AssetResult(STATUS_FAIL)

    try:
        generate_hash_files(asset_path)
    except HashError as e:
        logger.error("%s", e)
        return AssetResult(STATUS_FAIL)

    logger.info("Successfully downloaded: %s", asset_path)
    return AssetResult(STATUS_OK)


# ---- Release / repository walk ----


def process_release(root: Path, repo_name: str, release: ReleaseInfo,
                    counters: RunCounters, options: SyncOptions,
                    fetch: Fetcher) -> int:
    """Process every asset of one release, honouring the new-asset quota.

    Returns:
        Number of qualifying assets (new or already present) in the release.
    """
    logger.info("Processing release: %s", release.tag_name)
    if not release.assets:
        logger.info("No assets found for release %s", release.tag_name)
        return 0

    release_dir = ensure_dir(Path(root) / repo_name / release.tag_name)
    asset_count = 0

    for asset in release.assets:
        if counters.quota_reached(options.max_new_assets):
            logger.info("Reached maximum new assets limit (%d). "
                        "Stopping asset processing for release %s.",
                        options.max_new_assets, release.tag_name)
            break

        result = process_asset(release_dir, asset, fetch, options.max_asset_bytes)
        if result.qualifying:
            asset_count += 1
            counters.total_assets += 1
        if result.is_new:
            counters.new_assets += 1
        if result.status == STATUS_FAIL:
            counters.failed_assets += 1

    return asset_count


def process_repository(client, root: Path, repo: RepoInfo, counters: RunCounters,
                       options: SyncOptions, fetch: Fetcher) -> Optional[RepositoryRecord]:
    """Mirror the published releases of one repository.

    Any error while listing the releases, or an OSError while mirroring them,
    is logged and the repository skipped; the caller moves on to the next one.

    Returns:
        RepositoryRecord with releases newest-first, or None if no release
        yielded a qualifying asset.
    """
    logger.info("Processing repository: %s", repo.name)

    try:
        releases = client.list_releases(repo.name)
    except Exception as e:
        logger.error("Error processing repository %s: %s", repo.name, e)
        counters.failed_repositories += 1
        return None

    published = [r for r in releases if r.is_published]
    if not published:
        logger.info("No published releases found for %s", repo.name)
        return None

    record = RepositoryRecord(name=repo.name, archived=repo.archived)
    cap = options.release_cap

    try:
        for release in published:
            if counters.quota_reached(options.max_new_assets):
                logger.info("Reached maximum new assets limit (%d). Stopping processing for %s.",
                            options.max_new_assets, repo.name)
                break
            if cap is not None and len(record.releases) >= cap:
                logger.info("Constrained run: reached limit of %d releases with assets for %s",
                            cap, repo.name)
                break

            asset_count = process_release(root, repo.name, release, counters,
                                          options, fetch)
            if asset_count > 0:
                record.releases.append(ReleaseRecord(release.tag_name, asset_count))
                counters.processed_releases += 1
    except OSError as e:
        logger.error("Error processing repository %s: %s", repo.name, e)
        counters.failed_repositories += 1
        return None

    if not record.releases:
        return None
    record.releases.sort(key=lambda r: version_sort_key(r.tag), reverse=True)
    return record


def sync_release_assets(client, root: Path, fetch: Fetcher,
                        options: Optional[SyncOptions] = None) -> SyncResult:
    """Mirror the release assets of every repository of the organization.

    Args:
        client: Discovery client (see ``downloader.sources.GitHubClient``).
        root: Mirror root directory.
        fetch: Downloader used for new assets (see ``make_fetcher``).
        options: Run options; defaults to an unconstrained, unlimited run.

    Returns:
        SyncResult with the non-empty repository records and final counters.

    Raises:
        DiscoveryError / requests.RequestException: If the organization's
            repositories cannot be listed at all.
    """
    options = options or SyncOptions()
    start = time.time()
    counters = RunCounters()
    records: list[RepositoryRecord] = []

    if options.constrained:
        logger.info("Constrained run - limiting to %d releases with assets per repository",
                    options.release_limit)
    if options.max_new_assets > 0:
        logger.info("Asset download limit: %d new assets per run", options.max_new_assets)
    else:
        logger.info("Asset download limit: unlimited")

    logger.info("Getting repositories from organization...")
    repos = client.list_repositories()
    logger.info("Found %d repositories", len(repos))
    seen = list(repos)

    for repo in repos:
        if counters.quota_reached(options.max_new_assets):
            logger.info("Reached maximum new assets limit (%d). Stopping processing.",
                        options.max_new_assets)
            break
        record = process_repository(client, root, repo, counters, options, fetch)
        if record is not None:
            records.append(record)

    logger.info("Processed %d repositories with %d releases containing assets (%s)",
                len(records), counters.processed_releases, elapsed(start))
    if options.max_new_assets > 0:
        logger.info("Downloaded %d new assets (limit: %d)",
                    counters.new_assets, options.max_new_assets)
    else:
        logger.info("Downloaded %d new assets", counters.new_assets)
    if counters.failed_assets or counters.failed_repositories:
        logger.warning("%d asset(s) and %d repositories failed",
                       counters.failed_assets, counters.failed_repositories)

    return SyncResult(repositories=records, counters=counters, seen=seen)
