"""Naming conventions and pre-compiled patterns for the mirror tree.

Usage:
    from utils.patterns import is_release_dir_name, version_sort_key

    tags.sort(key=version_sort_key, reverse=True)
"""

import re

# Release directories must start with this prefix; anything else is pruned
RELEASE_TAG_PREFIX = "v"

# Non-asset files that may live inside a release directory
NON_ASSET_FILENAMES = frozenset({"README.md"})

# Top-level entries that are never treated as repositories
RESERVED_TOP_LEVEL_NAMES = frozenset({
    "packages.json",
    "repo-metadata.json",
    "assets",           # static files of the published site
    "logs",             # pipeline run logs (default --logs-dir)
})

# Digit runs inside a tag, e.g. "v1.10.0" -> 1, 10, 0
DIGIT_RUN = re.compile(r"(\d+)")


def is_release_dir_name(name: str) -> bool:
    """True if *name* follows the release-tag directory convention."""
    return name.startswith(RELEASE_TAG_PREFIX)


def is_reserved_name(name: str) -> bool:
    """True for top-level names that are not repositories (``.git`` etc.)."""
    return name.startswith(".") or name in RESERVED_TOP_LEVEL_NAMES


def version_sort_key(tag: str) -> tuple:
    """Numeric-aware, case-insensitive sort key for release tags.

    ``re.split`` with a capturing group alternates text and digit runs, so
    even positions are always text and odd positions always numbers and two
    keys never compare a str against an int.

    Examples:
        sorted(["v1.9.0", "v1.10.0", "v2.0.0"], key=version_sort_key,
               reverse=True) == ["v2.0.0", "v1.10.0", "v1.9.0"]
    """
    parts = DIGIT_RUN.split(tag)
    return tuple(int(p) if i % 2 else p.casefold() for i, p in enumerate(parts))
