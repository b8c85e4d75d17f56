"""
Tests for utils/hashing.py

Hash artifacts must hold the plain hex digest, one file per algorithm.
"""
import hashlib
import sys
from pathlib import Path
from unittest.mock import patch

import pytest

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from utils.hashing import (
    HASH_ALGORITHMS,
    HashError,
    compute_file_hashes,
    generate_hash_files,
    hash_file_paths,
    remove_hash_files,
)


@pytest.fixture
def asset(tmp_path):
    f = tmp_path / "tool.tar.gz"
    f.write_bytes(b"release payload" * 10000)
    return f


class TestComputeFileHashes:
    def test_matches_hashlib(self, asset):
        data = asset.read_bytes()
        digests = compute_file_hashes(asset)
        assert digests == {
            "sha256": hashlib.sha256(data).hexdigest(),
            "sha512": hashlib.sha512(data).hexdigest(),
            "md5": hashlib.md5(data).hexdigest(),
        }

    def test_empty_file(self, tmp_path):
        f = tmp_path / "empty"
        f.write_bytes(b"")
        assert compute_file_hashes(f)["sha256"] == hashlib.sha256(b"").hexdigest()


class TestGenerateHashFiles:
    def test_writes_one_file_per_algorithm(self, asset):
        generate_hash_files(asset)
        for algo in HASH_ALGORITHMS:
            path = asset.with_name(f"{asset.name}.{algo}")
            expected = hashlib.new(algo, asset.read_bytes()).hexdigest()
            assert path.read_text() == expected

    def test_content_is_bare_hex(self, asset):
        generate_hash_files(asset)
        content = asset.with_name(asset.name + ".sha256").read_text()
        assert len(content) == 64
        assert all(c in "0123456789abcdef" for c in content)

    def test_overwrites_stale_artifacts(self, asset):
        stale = asset.with_name(asset.name + ".md5")
        stale.write_text("stale")
        generate_hash_files(asset)
        assert stale.read_text() == hashlib.md5(asset.read_bytes()).hexdigest()

    def test_missing_asset_raises_hash_error(self, tmp_path):
        with pytest.raises(HashError) as exc_info:
            generate_hash_files(tmp_path / "missing.bin")
        assert exc_info.value.file_path.name == "missing.bin"
        assert isinstance(exc_info.value.cause, OSError)

    def test_write_failure_raises_hash_error(self, asset):
        with patch("utils.hashing.atomic_write", side_effect=OSError("read-only")):
            with pytest.raises(HashError):
                generate_hash_files(asset)


class TestHashFilePaths:
    def test_siblings(self, tmp_path):
        paths = hash_file_paths(tmp_path / "a.zip")
        assert [p.name for p in paths] == ["a.zip.sha256", "a.zip.sha512", "a.zip.md5"]


class TestRemoveHashFiles:
    def test_removes_present_only(self, asset):
        asset.with_name(asset.name + ".sha256").write_text("x")
        removed = remove_hash_files(asset)
        assert [p.name for p in removed] == [asset.name + ".sha256"]
        assert asset.exists()

    def test_nothing_to_remove(self, asset):
        assert remove_hash_files(asset) == []
