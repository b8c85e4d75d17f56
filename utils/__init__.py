"""Shared utilities for the release mirror tools."""

# Common utilities
from utils.common import format_bytes, elapsed

# Naming conventions
from utils.patterns import (
    RELEASE_TAG_PREFIX,
    is_release_dir_name,
    is_reserved_name,
    version_sort_key,
)

# Filesystem primitives
from utils.store import (
    atomic_write,
    atomic_write_json,
    ensure_dir,
    file_exists,
    read_file,
    read_json,
    remove_file,
    remove_tree,
)

# Hash artifacts
from utils.hashing import (
    HASH_ALGORITHMS,
    HashError,
    compute_file_hashes,
    generate_hash_files,
    remove_hash_files,
)

# HTTP utilities
from utils.http import (
    DownloadError,
    RetryStrategy,
    SessionManager,
    download_file,
)

# Configuration
from utils.config import ConfigError, MirrorConfig

__all__ = [
    # Common
    "format_bytes",
    "elapsed",
    # Patterns
    "RELEASE_TAG_PREFIX",
    "is_release_dir_name",
    "is_reserved_name",
    "version_sort_key",
    # Store
    "atomic_write",
    "atomic_write_json",
    "ensure_dir",
    "file_exists",
    "read_file",
    "read_json",
    "remove_file",
    "remove_tree",
    # Hashing
    "HASH_ALGORITHMS",
    "HashError",
    "compute_file_hashes",
    "generate_hash_files",
    "remove_hash_files",
    # HTTP
    "DownloadError",
    "RetryStrategy",
    "SessionManager",
    "download_file",
    # Config
    "ConfigError",
    "MirrorConfig",
]
