"""
Pipeline package -- run bookkeeping for the release mirror.

Re-exports key entry points so callers can do::

    from pipeline import PipelineLogger, append_to_ledger
"""

from pipeline.logging import PipelineLogger, SkipRecord, StepReport
from pipeline.run_ledger import append_to_ledger

__all__ = [
    "PipelineLogger",
    "SkipRecord",
    "StepReport",
    "append_to_ledger",
]
