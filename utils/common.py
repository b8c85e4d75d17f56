"""Formatting helpers shared by the mirror's log messages."""

import time
from typing import Optional

_UNITS = (("GB", 1024 ** 3, 2), ("MB", 1024 ** 2, 1), ("KB", 1024, 0))


def format_bytes(b: int) -> str:
    """Human-readable size for log lines.

    Examples:
        512 B, 12 KB, 1.5 MB, 2.34 GB
    """
    for unit, scale, digits in _UNITS:
        if b >= scale:
            return f"{b / scale:.{digits}f} {unit}"
    return f"{b} B"


def elapsed(start_time: float, now: Optional[float] = None) -> str:
    """Wall time since *start_time* (a ``time.time()`` value).

    Examples:
        0m 30s, 2m 15s, 1h 05m 30s
    """
    secs = int((time.time() if now is None else now) - start_time)
    mins, secs = divmod(secs, 60)
    hours, mins = divmod(mins, 60)
    if hours:
        return f"{hours}h {mins:02d}m {secs:02d}s"
    return f"{mins}m {secs:02d}s"
