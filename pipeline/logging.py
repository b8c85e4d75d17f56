"""
Run bookkeeping for the mirror pipeline: one log file per step, one JSON
summary per run.

    pl = PipelineLogger()                    # logs/pipeline/<run_id>/
    report = pl.start_step("sync")           # root logger also writes sync.log
    report.add_skip("quota_reached", "new-asset quota of 50 used up")
    pl.finish_step("sync", report)           # footer appended, handler removed
    pl.write_summary()                       # <run_id>/summary.json

Skip categories used by run_pipeline.py:
    user_skipped        step disabled with --skip-sync / --skip-packages
    quota_reached       the new-asset quota stopped the walk early
    failed_repository   a repository's releases could not be listed
"""

from __future__ import annotations

import json
import logging
import time
from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

STEP_LOG_FORMAT = "%(asctime)s  %(levelname)-7s  %(name)s  %(message)s"

# Error lines copied into a step log footer
_MAX_LOGGED_ERRORS = 20


@dataclass
class SkipRecord:
    category: str
    detail: str
    item: str = ""

    def to_dict(self) -> dict[str, str]:
        data = {"category": self.category, "detail": self.detail}
        if self.item:
            data["item"] = self.item
        return data


@dataclass
class StepReport:
    """Outcome of one pipeline step.

    ``status`` moves from ``started`` to ``completed`` unless the step sets
    ``failed`` itself; steps disabled by flags are recorded as ``skipped``.
    """

    step_name: str
    status: str = "not_started"
    elapsed_seconds: float = 0.0
    items_processed: int = 0
    items_skipped: int = 0
    items_errored: int = 0
    skips: list[SkipRecord] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)
    metrics: dict[str, Any] = field(default_factory=dict)
    detail: str = ""

    def add_skip(self, category: str, detail: str, item: str = "") -> None:
        self.skips.append(SkipRecord(category, detail, item))
        self.items_skipped += 1

    def add_error(self, message: str) -> None:
        self.errors.append(message)
        self.items_errored += 1

    def skip_counts_by_category(self) -> dict[str, int]:
        return dict(Counter(s.category for s in self.skips))

    def console_summary(self) -> str:
        """Short ``a | b | c`` line printed when the step finishes."""
        parts = []
        if self.items_processed:
            parts.append(f"{self.items_processed:,} processed")
        if self.skips:
            by_cat = ", ".join(f"{n} {cat.replace('_', ' ')}"
                               for cat, n in sorted(self.skip_counts_by_category().items()))
            parts.append(f"{self.items_skipped:,} skipped ({by_cat})")
        if self.errors:
            parts.append(f"{self.items_errored:,} errors")
        if self.detail:
            parts.append(self.detail)
        # Flags such as booleans are noise on the console
        parts.extend(f"{k}: {v:,}" for k, v in self.metrics.items()
                     if isinstance(v, int) and not isinstance(v, bool))
        parts.extend(f"{k}: {v:.1f}" for k, v in self.metrics.items()
                     if isinstance(v, float))
        return " | ".join(parts) or "no activity"

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "step_name": self.step_name,
            "status": self.status,
            "elapsed_seconds": round(self.elapsed_seconds, 2),
            "items_processed": self.items_processed,
            "items_skipped": self.items_skipped,
            "items_errored": self.items_errored,
            "metrics": self.metrics,
        }
        optional = {
            "detail": self.detail,
            "skips": [s.to_dict() for s in self.skips],
            "errors": list(self.errors),
        }
        data.update({k: v for k, v in optional.items() if v})
        return data


def _summary_block(report: StepReport) -> str:
    """Plain-text footer appended to a step's log file."""
    rule = "-" * 60
    lines = [
        "",
        rule,
        f"{report.step_name}: {report.status} in {report.elapsed_seconds:.1f}s",
        f"  processed={report.items_processed} skipped={report.items_skipped} "
        f"errors={report.items_errored}",
    ]
    lines += [f"  {key}: {val}" for key, val in sorted(report.metrics.items())]
    for cat, count in sorted(report.skip_counts_by_category().items()):
        lines.append(f"  skipped ({cat}): {count}")
    shown = report.errors[:_MAX_LOGGED_ERRORS]
    lines += [f"  error: {err}" for err in shown]
    if len(report.errors) > len(shown):
        lines.append(f"  ... {len(report.errors) - len(shown)} more errors")
    lines.append(rule)
    return "\n".join(lines) + "\n"


class PipelineLogger:
    """Owns ``<logs_dir>/<run_id>/`` for one pipeline run.

    Layout::

        logs/pipeline/2026-02-22T14-30-00/
            sync.log
            packages.log
            summary.json
    """

    def __init__(self, logs_dir: Path | str = "logs/pipeline") -> None:
        self.logs_root = Path(logs_dir)
        self.run_id = datetime.now(timezone.utc).strftime("%Y-%m-%dT%H-%M-%S")
        self.run_dir = self.logs_root / self.run_id
        self.run_dir.mkdir(parents=True, exist_ok=True)
        self.pipeline_start = time.monotonic()
        self.args_dict: dict[str, Any] = {}

        self._reports: dict[str, StepReport] = {}
        self._open: dict[str, tuple[logging.FileHandler, float]] = {}

    def _step_handler(self, step_name: str) -> logging.FileHandler:
        handler = logging.FileHandler(self.run_dir / f"{step_name}.log", encoding="utf-8")
        handler.setLevel(logging.DEBUG)
        handler.setFormatter(logging.Formatter(STEP_LOG_FORMAT, datefmt="%H:%M:%S"))
        return handler

    def start_step(self, step_name: str) -> StepReport:
        """Begin *step_name*: every root-logger record also goes to its log file."""
        handler = self._step_handler(step_name)
        logging.getLogger().addHandler(handler)
        self._open[step_name] = (handler, time.monotonic())
        report = self._reports[step_name] = StepReport(step_name, status="started")
        return report

    def finish_step(self, step_name: str, report: StepReport | None = None) -> None:
        """End *step_name*: stamp the report, print it and close the log file."""
        handler, started = self._open.pop(step_name, (None, self.pipeline_start))
        report = report or self._reports.get(step_name) or StepReport(step_name)
        report.elapsed_seconds = time.monotonic() - started
        if report.status == "started":
            report.status = "completed"
        self._reports[step_name] = report

        print(f"  [{step_name}] {report.console_summary()}", flush=True)

        if handler is not None:
            logging.getLogger().removeHandler(handler)
            handler.stream.write(_summary_block(report))
            handler.close()

    def record_user_skip(self, step_name: str, reason: str) -> None:
        report = StepReport(step_name, status="skipped")
        report.add_skip("user_skipped", reason)
        self._reports[step_name] = report

    def get_reports(self) -> dict[str, StepReport]:
        return dict(self._reports)

    @property
    def summary_path(self) -> Path:
        return self.run_dir / "summary.json"

    def write_summary(self) -> Path:
        """Write ``summary.json`` for the whole run and return its path."""
        summary = {
            "run_id": self.run_id,
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "total_elapsed_seconds": round(time.monotonic() - self.pipeline_start, 2),
            "args": self.args_dict,
            "steps": {name: rpt.to_dict() for name, rpt in self._reports.items()},
        }
        with open(self.summary_path, "w", encoding="utf-8") as f:
            json.dump(summary, f, indent=2, default=str)
        return self.summary_path
