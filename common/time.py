from __future__ import annotations

from datetime import datetime, timezone

# Frames are stamped in epoch milliseconds (float) throughout.


def now_ms() -> float:
    return datetime.now(tz=timezone.utc).timestamp() * 1000.0


def to_iso_utc(ts_ms: float) -> str:
    """Epoch ms -> ISO-8601 string in UTC (``...+00:00``)."""
    return datetime.fromtimestamp(float(ts_ms) / 1000.0, tz=timezone.utc).isoformat()
