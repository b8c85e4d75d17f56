"""
Release Mirror Downloader Package.

Mirrors the release assets of every repository of one organization into a
``<repository>/<tag>/<asset>`` tree, writes hash files next to each asset and
publishes ``packages.json`` describing what is on disk.

    from downloader import GitHubClient, sync_assets_with_metadata
"""

# ---- Sources: discovery client and record types ----
from downloader.sources import (
    AssetInfo,
    DiscoveryError,
    GitHubClient,
    ReleaseInfo,
    RepoInfo,
)

# ---- Core: repository / release / asset walk ----
from downloader.core import (
    AssetResult,
    RunCounters,
    SyncOptions,
    SyncResult,
    make_fetcher,
    process_asset,
    process_release,
    process_repository,
    sync_release_assets,
)

# ---- Metadata hand-off ----
from downloader.metadata import (
    build_repo_metadata,
    load_repo_metadata,
    sync_assets_with_metadata,
    write_repo_metadata,
)

# ---- Cleanup and manifest ----
from downloader.cleanup import cleanup_non_release_dirs
from downloader.manifest import (
    generate_packages_json,
    generate_packages_with_cleanup,
    write_packages_json,
)

__all__ = [
    # Sources
    "AssetInfo",
    "DiscoveryError",
    "GitHubClient",
    "ReleaseInfo",
    "RepoInfo",
    # Core
    "AssetResult",
    "RunCounters",
    "SyncOptions",
    "SyncResult",
    "make_fetcher",
    "process_asset",
    "process_release",
    "process_repository",
    "sync_release_assets",
    # Metadata
    "build_repo_metadata",
    "load_repo_metadata",
    "sync_assets_with_metadata",
    "write_repo_metadata",
    # Cleanup / manifest
    "cleanup_non_release_dirs",
    "generate_packages_json",
    "generate_packages_with_cleanup",
    "write_packages_json",
]
