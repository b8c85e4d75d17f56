"""
Tests for downloader/metadata.py
"""
import json
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from conftest import FakeClient, make_asset, make_release, write_release
from downloader.core import ReleaseRecord, RepositoryRecord, RunCounters, SyncOptions, SyncResult
from downloader.manifest import generate_packages_with_cleanup
from downloader.metadata import (
    build_repo_metadata,
    load_repo_metadata,
    sync_assets_with_metadata,
    write_repo_metadata,
)
from downloader.sources import RepoInfo


class TestBuildRepoMetadata:
    def test_every_seen_repository_listed(self):
        result = SyncResult(
            repositories=[RepositoryRecord("a", False, [ReleaseRecord("v1", 2)])],
            counters=RunCounters(),
            seen=[RepoInfo("a"), RepoInfo("old", archived=True)],
        )
        assert build_repo_metadata(result) == [
            {"name": "a", "archived": False,
             "releases": [{"tag": "v1", "assetCount": 2}]},
            {"name": "old", "archived": True, "releases": []},
        ]


class TestLoadRepoMetadata:
    def test_missing_file(self, tmp_path):
        assert load_repo_metadata(tmp_path / "missing.json") == []

    def test_invalid_json(self, tmp_path):
        path = tmp_path / "m.json"
        path.write_text("{not json")
        assert load_repo_metadata(path) == []

    def test_not_a_list(self, tmp_path):
        path = tmp_path / "m.json"
        path.write_text('{"name": "a"}')
        assert load_repo_metadata(path) == []

    def test_bad_entries_filtered(self, tmp_path):
        path = tmp_path / "m.json"
        path.write_text(json.dumps([{"name": "a", "archived": True}, {"archived": True},
                                    "b", {"name": 3}]))
        assert load_repo_metadata(path) == [{"name": "a", "archived": True}]

    def test_round_trip(self, tmp_path):
        path = tmp_path / "m.json"
        entries = [{"name": "a", "archived": True, "releases": []}]
        write_repo_metadata(entries, path)
        assert load_repo_metadata(path) == entries


class TestSyncAssetsWithMetadata:
    def test_writes_metadata_in_root(self, mirror_root, fetcher, three_repo_client):
        result = sync_assets_with_metadata(three_repo_client, mirror_root, fetcher)

        data = json.loads((mirror_root / "repo-metadata.json").read_text())
        assert [e["name"] for e in data] == ["alpha", "beta", "gamma"]
        assert {e["name"]: e["archived"] for e in data}["gamma"] is True
        assert result.counters.new_assets == 2

    def test_custom_metadata_path(self, mirror_root, fetcher, three_repo_client, tmp_path):
        path = tmp_path / "meta.json"
        sync_assets_with_metadata(three_repo_client, mirror_root, fetcher,
                                  metadata_path=path)
        assert path.exists()
        assert not (mirror_root / "repo-metadata.json").exists()

    def test_archived_flag_kept_for_repositories_after_quota(self, mirror_root, fetcher):
        write_release(mirror_root, "zeta", "v1.0.0", {"z.zip": b"1"})
        client = FakeClient(
            repos=[RepoInfo("alpha"), RepoInfo("zeta", archived=True)],
            releases={"alpha": [make_release("v1.0.0", make_asset("a1.zip"),
                                             make_asset("a2.zip"))]},
        )

        sync_assets_with_metadata(client, mirror_root, fetcher,
                                  SyncOptions(max_new_assets=1))
        packages = generate_packages_with_cleanup(mirror_root)

        assert client.release_calls == ["alpha"]
        data = json.loads((mirror_root / "repo-metadata.json").read_text())
        assert {e["name"]: e["archived"] for e in data} == {"alpha": False, "zeta": True}
        assert {r["name"]: r["archived"] for r in packages["repositories"]} == \
            {"alpha": False, "zeta": True}
