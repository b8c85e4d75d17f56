"""
Pytest fixtures for the release mirror tests.

Provides an in-memory discovery client and a fetcher that writes bytes to disk
instead of touching the network, plus helpers for building mirror trees.
"""
import sys
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from downloader.sources import AssetInfo, DiscoveryError, ReleaseInfo, RepoInfo
from utils.http import DownloadError


def make_asset(name: str, size: int = 10) -> AssetInfo:
    return AssetInfo(name=name, size=size,
                     download_url=f"https://example.invalid/download/{name}")


def make_release(tag: str, *assets: AssetInfo, draft: bool = False,
                 prerelease: bool = False) -> ReleaseInfo:
    return ReleaseInfo(tag_name=tag, draft=draft, prerelease=prerelease,
                       assets=tuple(assets))


class FakeClient:
    """Stands in for GitHubClient.

    ``releases`` maps repository name to a list of ReleaseInfo, or to an
    exception instance that ``list_releases`` raises.
    """

    def __init__(self, repos=None, releases=None):
        self.repos = list(repos or [])
        self.releases = dict(releases or {})
        self.release_calls: list[str] = []

    def list_repositories(self):
        return list(self.repos)

    def list_releases(self, repo_name):
        self.release_calls.append(repo_name)
        value = self.releases.get(repo_name, [])
        if isinstance(value, Exception):
            raise value
        return list(value)


class FakeFetcher:
    """Writes ``size`` bytes for each requested URL; fails for ``fail_urls``."""

    def __init__(self, sizes=None, fail_urls=()):
        self.sizes = dict(sizes or {})
        self.fail_urls = set(fail_urls)
        self.calls: list[tuple[str, Path]] = []

    def __call__(self, url, dest_path):
        self.calls.append((url, Path(dest_path)))
        if url in self.fail_urls:
            raise DownloadError(url, 3, ConnectionError("boom"))
        data = b"x" * self.sizes.get(url, 10)
        Path(dest_path).write_bytes(data)
        return len(data)

    @property
    def downloaded_names(self) -> list[str]:
        return [p.name for _, p in self.calls]


def write_release(root: Path, repo: str, tag: str, files: dict) -> Path:
    """Create ``root/repo/tag`` holding *files* (name -> bytes)."""
    release_dir = root / repo / tag
    release_dir.mkdir(parents=True, exist_ok=True)
    for name, content in files.items():
        (release_dir / name).write_bytes(content)
    return release_dir


@pytest.fixture
def fetcher():
    return FakeFetcher()


@pytest.fixture
def mirror_root(tmp_path):
    root = tmp_path / "mirror"
    root.mkdir()
    return root


@pytest.fixture
def three_repo_client():
    """alpha and gamma have one release each; beta's release listing fails."""
    return FakeClient(
        repos=[RepoInfo("alpha"), RepoInfo("beta"), RepoInfo("gamma", archived=True)],
        releases={
            "alpha": [make_release("v1.0.0", make_asset("a.tar.gz"))],
            "beta": DiscoveryError("GET /repos/org/beta/releases returned HTTP 500"),
            "gamma": [make_release("v2.0.0", make_asset("g.zip"))],
        },
    )
