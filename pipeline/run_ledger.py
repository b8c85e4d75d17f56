"""
Mirror run history -- one JSON line per pipeline run.

``run_pipeline.py`` appends a record to ``logs/pipeline/ledger.jsonl`` after
every run, whether it succeeded or not.  Per-run directories come and go; the
ledger is the place to answer "how many assets did the last runs pull in?"::

    tail -5 logs/pipeline/ledger.jsonl | jq '{run_id, exit_code, new_assets}'

Records are only ever appended.
"""

from __future__ import annotations

import json
import time
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from pipeline.logging import PipelineLogger, StepReport

LEDGER_FILENAME = "ledger.jsonl"


def _step_entry(report: StepReport) -> dict[str, Any]:
    entry: dict[str, Any] = {
        "status": report.status,
        "elapsed": round(report.elapsed_seconds, 1),
        "processed": report.items_processed,
    }
    if report.items_errored:
        entry["errored"] = report.items_errored
    skips = report.skip_counts_by_category()
    if skips:
        entry["skips"] = skips
    return entry


def build_ledger_record(pl: PipelineLogger, exit_code: int) -> dict[str, Any]:
    """Summarise the run held by *pl* as a flat, greppable record."""
    reports = pl.get_reports()
    sync = reports.get("sync")
    packages = reports.get("packages")
    return {
        "run_id": pl.run_id,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "total_seconds": round(time.monotonic() - pl.pipeline_start, 1),
        "exit_code": exit_code,
        "new_assets": sync.metrics.get("new_assets", 0) if sync else 0,
        "total_assets": packages.metrics.get("totalAssets") if packages else None,
        "args": pl.args_dict,
        "steps": {name: _step_entry(rpt) for name, rpt in reports.items()},
    }


def append_to_ledger(pl: PipelineLogger, exit_code: int,
                     ledger_path: Path | None = None) -> Path:
    """Append this run's record to the ledger.

    Args:
        pl: Logger of the current run.
        exit_code: Pipeline exit code (0 = success).
        ledger_path: Defaults to ``<logs root>/ledger.jsonl``.

    Returns:
        The ledger path.
    """
    if ledger_path is None:
        ledger_path = pl.logs_root / LEDGER_FILENAME
    ledger_path = Path(ledger_path)
    ledger_path.parent.mkdir(parents=True, exist_ok=True)
    record = build_ledger_record(pl, exit_code)
    with open(ledger_path, "a", encoding="utf-8") as f:
        f.write(json.dumps(record, separators=(",", ":"), default=str) + "\n")
    return ledger_path
