#!/usr/bin/env python3
"""
Regenerate packages.json for an existing mirror tree, without any network.

Prunes non-``v`` release directories, rescans the tree and writes the
manifest, overlaying archived flags from repo-metadata.json when present.

Usage:
    python scripts/generate_packages.py [--root DIR] [--metadata FILE] \\
        [--output FILE]

Exit codes:
    0 -- packages.json written
    1 -- the mirror root could not be read or the manifest could not be written
"""

import argparse
import logging
import sys
from pathlib import Path

# Ensure the project root is on sys.path so we can import the downloader
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from downloader.manifest import generate_packages_with_cleanup  # noqa: E402

logger = logging.getLogger("generate_packages")


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        description="Clean up the mirror tree and regenerate packages.json",
    )
    parser.add_argument("--root", type=Path, default=Path("."),
                        help="Mirror root directory (default: current directory)")
    parser.add_argument("--metadata", type=Path, default=None,
                        help="repo-metadata.json (default: <root>/repo-metadata.json)")
    parser.add_argument("--output", type=Path, default=None,
                        help="Manifest path (default: <root>/packages.json)")
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.INFO, format="%(message)s", force=True)

    try:
        data = generate_packages_with_cleanup(args.root, args.metadata, args.output)
    except OSError as e:
        logger.error("Failed to generate packages.json: %s", e)
        return 1

    stats = data["stats"]
    print(f"packages.json: {stats['totalRepositories']} repositories, "
          f"{stats['totalReleases']} releases, {stats['totalAssets']} assets")
    return 0


if __name__ == "__main__":
    sys.exit(main())
