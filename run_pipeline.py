"""
Full mirror pipeline -- syncs release assets, then publishes packages.json.

Steps (in order):
  1. sync      -- walk every repository/release/asset of the organization,
                  download new assets (size-gated, quota-bounded) and write
                  hash files; store repo-metadata.json
  2. packages  -- prune non-``v`` release directories, rescan the tree and
                  write packages.json with archived flags overlaid

Configuration comes from the environment (see ``utils.config.MirrorConfig``);
command-line flags override it.

Usage:
    python run_pipeline.py                          # full run
    python run_pipeline.py --constrained            # at most 2 releases per repo
    python run_pipeline.py --max-new-assets 50      # download at most 50 new assets
    python run_pipeline.py --skip-sync              # regenerate packages.json only

Exit codes:
    0 -- pipeline finished (individual asset/repository failures are logged)
    1 -- run-fatal error: bad configuration, repositories could not be
         listed, or packages.json could not be written
"""

from __future__ import annotations

import argparse
import logging
import sys
import time
from pathlib import Path

import requests

from downloader.core import SyncOptions, SyncResult, make_fetcher
from downloader.manifest import generate_packages_with_cleanup
from downloader.metadata import sync_assets_with_metadata
from downloader.sources import DiscoveryError, GitHubClient
from pipeline.logging import PipelineLogger, StepReport
from pipeline.run_ledger import append_to_ledger
from utils.config import ConfigError, MirrorConfig
from utils.http import RetryStrategy, SessionManager

logger = logging.getLogger("run_pipeline")

# Effective settings of a run, token redacted
CONFIG_FILENAME = "config.json"


def _banner(text: str) -> None:
    bar = "=" * 60
    print(f"\n{bar}")
    print(f"  {text}")
    print(f"{bar}\n", flush=True)


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    p = argparse.ArgumentParser(
        description="Mirror release assets of an organization and publish packages.json",
    )
    p.add_argument(
        "--root", default=None,
        help="Mirror root directory (default: $MIRROR_ROOT or current directory)",
    )
    p.add_argument(
        "--org", default=None,
        help="Organization to mirror (default: $GITHUB_ORG)",
    )
    p.add_argument(
        "--constrained", action="store_true",
        help="Constrained run: at most 2 releases with assets per repository",
    )
    p.add_argument(
        "--max-new-assets", type=int, default=None, metavar="N",
        help="Stop after N newly downloaded assets, 0 = unlimited (default: $MAX_NEW_ASSETS or 0)",
    )
    p.add_argument(
        "--metadata", default=None,
        help="Path of repo-metadata.json (default: <root>/repo-metadata.json)",
    )
    p.add_argument(
        "--skip-sync", action="store_true",
        help="Skip the sync step; only clean up and regenerate packages.json",
    )
    p.add_argument(
        "--skip-packages", action="store_true",
        help="Skip packages.json generation",
    )
    p.add_argument(
        "--logs-dir", default="logs/pipeline",
        help="Directory for pipeline run logs (default: logs/pipeline)",
    )
    p.add_argument(
        "-v", "--verbose", action="store_true",
        help="Show debug output on the console",
    )
    args = p.parse_args(argv)
    if args.max_new_assets is not None and args.max_new_assets < 0:
        p.error("--max-new-assets must not be negative")
    return args


def _load_config(args: argparse.Namespace) -> MirrorConfig:
    config = MirrorConfig.from_env()
    if args.root:
        config.root = Path(args.root)
    if args.org:
        config.org = args.org
    if args.constrained:
        config.constrained = True
    if args.max_new_assets is not None:
        config.max_new_assets = args.max_new_assets
    config.validate(require_org=not args.skip_sync)
    return config


def sync_options_from_config(config: MirrorConfig) -> SyncOptions:
    return SyncOptions(
        constrained=config.constrained,
        max_new_assets=config.max_new_assets,
        max_asset_bytes=config.max_asset_bytes,
        max_retries=config.max_retries,
        backoff_base=config.backoff_seconds,
        timeout=config.timeout_seconds,
    )


def _build_report_from_sync(report: StepReport, result: SyncResult,
                            options: SyncOptions) -> None:
    counters = result.counters
    report.items_processed = counters.total_assets
    report.metrics = {
        "new_assets": counters.new_assets,
        "processed_releases": counters.processed_releases,
        "repositories": len(result.repositories),
    }
    if counters.quota_reached(options.max_new_assets):
        report.add_skip("quota_reached",
                        f"new-asset quota of {options.max_new_assets} used up")
    for _ in range(counters.failed_repositories):
        report.add_skip("failed_repository", "release listing failed")
    if counters.failed_assets:
        report.add_error(f"{counters.failed_assets} asset(s) could not be downloaded or hashed")


def run_sync(config: MirrorConfig, metadata_path: Path) -> tuple[SyncResult, SyncOptions]:
    """Sync step.  Raises if the organization's repositories cannot be listed."""
    options = sync_options_from_config(config)
    config.root.mkdir(parents=True, exist_ok=True)
    with SessionManager(token=config.token,
                        retry_strategy=RetryStrategy(max_retries=config.max_retries)) as sm:
        client = GitHubClient(config.org, sm.session, api_url=config.api_url)
        fetch = make_fetcher(sm.session, config.token, options)
        result = sync_assets_with_metadata(client, config.root, fetch, options,
                                           metadata_path=metadata_path)
    return result, options


def main(argv: list[str] | None = None) -> int:
    args = _parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(message)s",
        force=True,
    )

    try:
        config = _load_config(args)
    except ConfigError as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return 1

    metadata_path = Path(args.metadata) if args.metadata else config.metadata_path

    pl = PipelineLogger(logs_dir=args.logs_dir)
    pl.args_dict = {
        k: v for k, v in vars(args).items()
        if v is not None and v is not False
    }
    config.save_json(pl.run_dir / CONFIG_FILENAME)

    pipeline_start = time.monotonic()
    print("\nRelease Mirror Pipeline")
    print(f"  Root        : {config.root}")
    print(f"  Org         : {config.org or '-'}")
    print(f"  Constrained : {'yes' if config.constrained else 'no'}")
    print(f"  New assets  : {config.max_new_assets or 'unlimited'}")
    print(f"  Logs        : {pl.run_dir}")

    exit_code = 0

    # ── Step 1: Sync ─────────────────────────────────────────────────────
    if args.skip_sync:
        pl.record_user_skip("sync", "--skip-sync")
    else:
        _banner("Step 1 / 2 -- Sync release assets")
        report = pl.start_step("sync")
        try:
            result, options = run_sync(config, metadata_path)
        except (DiscoveryError, requests.RequestException, OSError) as e:
            logger.error("Sync failed: %s", e)
            report.status = "failed"
            report.add_error(str(e))
            exit_code = 1
        else:
            _build_report_from_sync(report, result, options)
        pl.finish_step("sync", report)

    # ── Step 2: packages.json ────────────────────────────────────────────
    if exit_code:
        print("\nPipeline aborted: sync step failed.", flush=True)
    elif args.skip_packages:
        pl.record_user_skip("packages", "--skip-packages")
    else:
        _banner("Step 2 / 2 -- Generate packages.json")
        report = pl.start_step("packages")
        try:
            packages = generate_packages_with_cleanup(config.root, metadata_path,
                                                      config.packages_path,
                                                      protect=[pl.logs_root])
        except OSError as e:
            logger.error("packages.json generation failed: %s", e)
            report.status = "failed"
            report.add_error(str(e))
            exit_code = 1
        else:
            stats = packages["stats"]
            report.items_processed = stats["totalAssets"]
            report.metrics = dict(stats)
        pl.finish_step("packages", report)

    summary_path = pl.write_summary()
    append_to_ledger(pl, exit_code)
    total = time.monotonic() - pipeline_start
    _banner(f"Pipeline {'FAILED' if exit_code else 'complete'} -- {total:.1f}s total")
    print(f"  Run logs : {pl.run_dir}", flush=True)
    print(f"  Summary  : {summary_path}", flush=True)
    return exit_code


if __name__ == "__main__":
    sys.exit(main())
