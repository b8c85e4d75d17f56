"""
Release discovery for the mirror.

Wraps the GitHub REST API behind a small client that lists an organization's
repositories and each repository's releases, following ``Link: rel="next"``
pagination.  API payloads are turned into explicit record types
(``RepoInfo``, ``ReleaseInfo``, ``AssetInfo``) at this boundary so the rest of
the pipeline never touches raw JSON.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Iterator

import requests

from utils.config import DEFAULT_API_URL

logger = logging.getLogger(__name__)

PER_PAGE = 100


class DiscoveryError(Exception):
    """Raised for unusable discovery responses (bad status, bad shape)."""


# ---- Record types ----


def _require(data: dict, key: str, kind: type | tuple[type, ...], ctx: str) -> Any:
    if not isinstance(data, dict):
        raise DiscoveryError(f"{ctx}: expected an object, got {type(data).__name__}")
    value = data.get(key)
    # bool is a subclass of int; a size of True is not a size
    if value is None or not isinstance(value, kind) or (
        kind is int and isinstance(value, bool)
    ):
        raise DiscoveryError(f"{ctx}: missing or invalid field {key!r}")
    return value


def _is_safe_path_component(name: str) -> bool:
    return bool(name) and name not in (".", "..") and "/" not in name and "\\" not in name


@dataclass(frozen=True)
class AssetInfo:
    """One downloadable file attached to a release."""

    name: str
    size: int
    download_url: str

    @classmethod
    def from_api(cls, data: dict) -> "AssetInfo":
        name = _require(data, "name", str, "asset")
        if not _is_safe_path_component(name):
            raise DiscoveryError(f"asset: unsafe file name {name!r}")
        size = _require(data, "size", int, f"asset {name}")
        if size < 0:
            raise DiscoveryError(f"asset {name}: negative size {size}")
        url = _require(data, "browser_download_url", str, f"asset {name}")
        return cls(name=name, size=size, download_url=url)


@dataclass(frozen=True)
class ReleaseInfo:
    """A published (or draft/pre-) release of one repository."""

    tag_name: str
    draft: bool = False
    prerelease: bool = False
    assets: tuple[AssetInfo, ...] = field(default_factory=tuple)

    @property
    def is_published(self) -> bool:
        """Generally available: neither a draft nor a prerelease."""
        return not self.draft and not self.prerelease

    @classmethod
    def from_api(cls, data: dict) -> "ReleaseInfo":
        """Build a release record, dropping (and logging) malformed assets."""
        tag = _require(data, "tag_name", str, "release")
        if not _is_safe_path_component(tag):
            raise DiscoveryError(f"release: unsafe tag {tag!r}")
        raw_assets = data.get("assets") or []
        if not isinstance(raw_assets, list):
            raise DiscoveryError(f"release {tag}: 'assets' is not a list")
        assets = []
        for raw in raw_assets:
            try:
                assets.append(AssetInfo.from_api(raw))
            except DiscoveryError as e:
                logger.warning("Ignoring asset of release %s: %s", tag, e)
        return cls(
            tag_name=tag,
            draft=bool(data.get("draft", False)),
            prerelease=bool(data.get("prerelease", False)),
            assets=tuple(assets),
        )


@dataclass(frozen=True)
class RepoInfo:
    """A repository of the mirrored organization."""

    name: str
    archived: bool = False

    @classmethod
    def from_api(cls, data: dict) -> "RepoInfo":
        name = _require(data, "name", str, "repository")
        if not _is_safe_path_component(name):
            raise DiscoveryError(f"repository: unsafe name {name!r}")
        return cls(name=name, archived=bool(data.get("archived", False)))


# ---- Client ----


class GitHubClient:
    """Paginated access to the repository and release listings of one org.

    Any object exposing ``list_repositories()`` and ``list_releases(name)``
    with the same return types can stand in for this class (tests use a
    fake).
    """

    def __init__(self, org: str, session: requests.Session,
                 api_url: str = DEFAULT_API_URL, timeout: float = 30):
        self.org = org
        self.session = session
        self.api_url = api_url.rstrip("/")
        self.timeout = timeout

    def _get(self, url: str, params: dict | None = None) -> requests.Response:
        resp = self.session.get(url, params=params, timeout=self.timeout,
                                headers={"Accept": "application/vnd.github+json"})
        if resp.status_code >= 400:
            raise DiscoveryError(f"GET {url} returned HTTP {resp.status_code}")
        return resp

    def paginate(self, path: str, params: dict | None = None) -> Iterator[dict]:
        """Yield every item of a list endpoint, across all pages.

        The first request carries *params* plus ``per_page``; later pages are
        fetched from the ``next`` link, which already encodes the query.
        """
        url: str | None = f"{self.api_url}{path}"
        query: dict | None = {**(params or {}), "per_page": PER_PAGE}
        page = 0
        while url:
            page += 1
            resp = self._get(url, params=query)
            try:
                items = resp.json()
            except ValueError as e:
                raise DiscoveryError(f"GET {url} returned invalid JSON: {e}") from e
            if not isinstance(items, list):
                raise DiscoveryError(f"GET {url} did not return a list")
            logger.debug("Fetched page %d of %s (%d items)", page, path, len(items))
            yield from items
            url = resp.links.get("next", {}).get("url")
            query = None

    def list_repositories(self) -> list[RepoInfo]:
        """All repositories of the organization, in API order."""
        repos = []
        for raw in self.paginate(f"/orgs/{self.org}/repos", {"type": "all"}):
            try:
                repos.append(RepoInfo.from_api(raw))
            except DiscoveryError as e:
                logger.warning("Ignoring repository entry: %s", e)
        return repos

    def list_releases(self, repo_name: str) -> list[ReleaseInfo]:
        """All releases of one repository, drafts and prereleases included."""
        releases = []
        for raw in self.paginate(f"/repos/{self.org}/{repo_name}/releases"):
            try:
                releases.append(ReleaseInfo.from_api(raw))
            except DiscoveryError as e:
                logger.warning("Ignoring release of %s: %s", repo_name, e)
        return releases
