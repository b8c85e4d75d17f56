"""
Tests for downloader/manifest.py

packages.json must describe what is on disk: counts come from the tree, not
from any sync bookkeeping, and archived flags are overlaid from metadata.
"""
import json
import re
import sys
from pathlib import Path
from unittest.mock import patch

import pytest

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from conftest import write_release
from downloader.manifest import (
    apply_repository_metadata,
    compute_stats,
    generate_packages_json,
    generate_packages_with_cleanup,
    is_qualifying_asset,
    scan_release_directory,
    scan_tree,
    write_packages_json,
)


@pytest.fixture
def populated(mirror_root):
    write_release(mirror_root, "Zeta", "v1.0.0", {
        "z.tar.gz": b"1", "z.tar.gz.sha256": b"h", "z.tar.gz.sha512": b"h",
        "z.tar.gz.md5": b"h", "README.md": b"r",
    })
    write_release(mirror_root, "alpha", "v1.9.0", {"a": b"1"})
    write_release(mirror_root, "alpha", "v1.10.0", {"a": b"1", "b": b"2"})
    write_release(mirror_root, "alpha", "v2.0.0", {"a": b"1"})
    write_release(mirror_root, "empty", "v1.0.0", {"a.md5": b"h"})
    return mirror_root


class TestIsQualifyingAsset:
    @pytest.mark.parametrize("name", ["tool.tar.gz", "setup.exe", "checksums.txt"])
    def test_assets(self, name):
        assert is_qualifying_asset(name)

    @pytest.mark.parametrize("name", ["a.zip.sha256", "a.zip.sha512", "a.zip.md5",
                                      "README.md", ".a.zip.part", ".a.zip.x1.tmp"])
    def test_non_assets(self, name):
        assert not is_qualifying_asset(name)


class TestScan:
    def test_release_counts_only_assets(self, populated):
        assert scan_release_directory(populated / "Zeta" / "v1.0.0") == \
            {"tag": "v1.0.0", "assetCount": 1}

    def test_release_without_assets(self, populated):
        assert scan_release_directory(populated / "empty" / "v1.0.0") is None

    def test_tree(self, populated):
        repos = scan_tree(populated)

        assert [r["name"] for r in repos] == ["alpha", "Zeta"]
        alpha = repos[0]
        assert [r["tag"] for r in alpha["releases"]] == ["v2.0.0", "v1.10.0", "v1.9.0"]
        assert [r["assetCount"] for r in alpha["releases"]] == [1, 2, 1]
        assert all(r["archived"] is False for r in repos)

    def test_non_v_and_reserved_excluded(self, populated):
        write_release(populated, "alpha", "latest", {"a": b"1"})
        write_release(populated, "assets", "v1", {"x.css": b"1"})
        (populated / "packages.json").write_text("{}")

        repos = scan_tree(populated)
        assert [r["name"] for r in repos] == ["alpha", "Zeta"]
        assert "latest" not in [r["tag"] for r in repos[0]["releases"]]

    def test_protected_directory_not_a_repository(self, populated, tmp_path):
        write_release(populated, "runlogs", "v20261018", {"summary.json": b"{}"})

        repos = scan_tree(populated, protect=[populated / "runlogs" / "v20261018",
                                              tmp_path / "elsewhere"])
        assert [r["name"] for r in repos] == ["alpha", "Zeta"]
        assert "runlogs" in [r["name"] for r in scan_tree(populated)]


class TestMetadataOverlay:
    def test_archived_applied_by_name(self):
        repos = [{"name": "a", "archived": False, "releases": []},
                 {"name": "b", "archived": False, "releases": []}]
        apply_repository_metadata(repos, [{"name": "b", "archived": True},
                                          {"name": "gone", "archived": True}])
        assert [r["archived"] for r in repos] == [False, True]

    def test_no_metadata(self):
        repos = [{"name": "a", "archived": False, "releases": []}]
        assert apply_repository_metadata(repos, [])[0]["archived"] is False


class TestGeneratePackagesJson:
    def test_stats_match_content(self, populated):
        data = generate_packages_json(populated)
        assert data["stats"] == compute_stats(data["repositories"])
        assert data["stats"] == {"totalRepositories": 2, "totalReleases": 4,
                                 "totalAssets": 5}

    def test_last_updated_format(self, populated):
        stamp = generate_packages_json(populated)["lastUpdated"]
        assert re.fullmatch(r"\d{4}-\d\d-\d\dT\d\d:\d\d:\d\d\.\d{3}Z", stamp)

    def test_deleting_asset_reduces_count(self, populated):
        before = generate_packages_json(populated)["stats"]["totalAssets"]
        (populated / "alpha" / "v1.10.0" / "b").unlink()
        after = generate_packages_json(populated)["stats"]["totalAssets"]
        assert after == before - 1

    def test_empty_root(self, mirror_root):
        data = generate_packages_json(mirror_root, now="2026-01-01T00:00:00.000Z")
        assert data == {
            "lastUpdated": "2026-01-01T00:00:00.000Z",
            "repositories": [],
            "stats": {"totalRepositories": 0, "totalReleases": 0, "totalAssets": 0},
        }


class TestWritePackagesJson:
    def test_writes_json(self, tmp_path):
        out = tmp_path / "packages.json"
        write_packages_json({"stats": {}}, out)
        assert json.loads(out.read_text()) == {"stats": {}}
        assert [p.name for p in tmp_path.iterdir()] == ["packages.json"]

    def test_failed_write_keeps_previous(self, tmp_path):
        out = tmp_path / "packages.json"
        out.write_text('{"old": true}')
        with patch("utils.store.os.replace", side_effect=OSError("disk full")):
            with pytest.raises(OSError):
                write_packages_json({"new": True}, out)
        assert json.loads(out.read_text()) == {"old": True}


class TestGenerateWithCleanup:
    def test_end_to_end(self, populated):
        write_release(populated, "alpha", "latest", {"a": b"1"})
        (populated / "repo-metadata.json").write_text(json.dumps([
            {"name": "Zeta", "archived": True, "releases": []},
        ]))

        data = generate_packages_with_cleanup(populated)

        assert not (populated / "alpha" / "latest").exists()
        written = json.loads((populated / "packages.json").read_text())
        assert written == data
        assert {r["name"]: r["archived"] for r in written["repositories"]} == \
            {"alpha": False, "Zeta": True}

    def test_without_metadata(self, populated):
        data = generate_packages_with_cleanup(populated)
        assert all(r["archived"] is False for r in data["repositories"])

    def test_custom_paths(self, populated, tmp_path):
        meta = tmp_path / "meta.json"
        meta.write_text(json.dumps([{"name": "alpha", "archived": True}]))
        out = tmp_path / "out.json"

        generate_packages_with_cleanup(populated, metadata_path=meta, output_path=out)

        written = json.loads(out.read_text())
        assert written["repositories"][0]["archived"] is True
        assert not (populated / "packages.json").exists()

    def test_rerun_is_stable(self, populated):
        first = generate_packages_with_cleanup(populated)
        second = generate_packages_with_cleanup(populated)
        assert first["repositories"] == second["repositories"]
        assert first["stats"] == second["stats"]
