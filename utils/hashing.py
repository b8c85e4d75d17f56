"""Hash artifact generation for mirrored assets.

Each downloaded asset gets one sibling file per algorithm holding the plain
hex digest, e.g. ``tool.tar.gz.sha256``.  These are for downstream consumers;
the mirror itself never verifies them against upstream checksums.
"""

import hashlib
from pathlib import Path

from utils.store import atomic_write, remove_file


# Order matters only for the order artifacts are written in.
HASH_ALGORITHMS: tuple[str, ...] = ("sha256", "sha512", "md5")

_CHUNK_SIZE = 65536


class HashError(Exception):
    """Raised when any hash artifact for an asset cannot be produced."""

    def __init__(self, file_path: Path, cause: Exception):
        self.file_path = Path(file_path)
        self.cause = cause
        super().__init__(f"Failed to generate hash files for {file_path}: {cause}")


def hash_file_paths(asset_path: Path) -> list[Path]:
    """Return the sibling artifact path for every configured algorithm."""
    asset_path = Path(asset_path)
    return [asset_path.with_name(f"{asset_path.name}.{algo}") for algo in HASH_ALGORITHMS]


def compute_file_hashes(file_path: Path) -> dict[str, str]:
    """Compute every configured digest of a file in a single read pass.

    Reads in 64 KB chunks to avoid loading large files into memory.

    Returns:
        Mapping of algorithm name to hex digest.
    """
    hashers = {algo: hashlib.new(algo) for algo in HASH_ALGORITHMS}
    with open(file_path, "rb") as fh:
        for chunk in iter(lambda: fh.read(_CHUNK_SIZE), b""):
            for h in hashers.values():
                h.update(chunk)
    return {algo: h.hexdigest() for algo, h in hashers.items()}


def generate_hash_files(asset_path: Path) -> dict[str, str]:
    """Write ``<asset>.<algorithm>`` for every configured algorithm.

    Args:
        asset_path: The downloaded asset.

    Returns:
        The digests that were written, keyed by algorithm.

    Raises:
        HashError: If the asset cannot be read or any artifact cannot be
            written.  The caller must treat the asset as not fully processed.
    """
    asset_path = Path(asset_path)
    try:
        digests = compute_file_hashes(asset_path)
        for algo, hash_path in zip(HASH_ALGORITHMS, hash_file_paths(asset_path)):
            atomic_write(hash_path, digests[algo])
    except OSError as e:
        raise HashError(asset_path, e) from e
    return digests


def remove_hash_files(asset_path: Path) -> list[Path]:
    """Delete any existing hash artifacts for *asset_path*.

    Returns:
        The artifact paths that were actually removed.
    """
    return [p for p in hash_file_paths(asset_path) if remove_file(p)]
