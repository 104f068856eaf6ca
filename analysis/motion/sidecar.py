from __future__ import annotations

from pathlib import Path
from typing import Any, Callable, Optional

from common.frame import Frame
from common.time import now_ms, to_iso_utc
from sidecar.writer import JsonlWriter

from .events import KeyFrames, MotionStart, MotionStop, MotionStreamEvent


def _frame_ref(frame: Optional[Frame]) -> Optional[dict[str, Any]]:
    if frame is None:
        return None
    return {"frame_id": int(frame.frame_id), "pts_ms": float(frame.pts_ms)}


class JournalSink:
    """
    Event sink recording the episode lifecycle as JSON lines.

    Only lifecycle events are journaled (motion_start, motion_stop,
    key_frames); frame payloads are never written. Each line carries the
    frame ids / timestamps of the frames involved so a recorder can map an
    episode back onto its own storage.
    """

    def __init__(self, path: str | Path, clock: Callable[[], float] = now_ms):
        self._writer = JsonlWriter(path)
        self._clock = clock

    def __enter__(self) -> JournalSink:
        self._writer.__enter__()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self._writer.__exit__(exc_type, exc, tb)

    def handle(self, event: MotionStreamEvent) -> None:
        if isinstance(event, (MotionStart, MotionStop)):
            rec: dict[str, Any] = {"detect_frame": _frame_ref(event.detect_frame)}
        elif isinstance(event, KeyFrames):
            rec = {"frames": [_frame_ref(f) for f in event.frames]}
        else:
            return

        ts_ms = float(self._clock())
        rec = {"type": event.kind, "ts_ms": ts_ms, "ts": to_iso_utc(ts_ms), **rec}
        self._writer.append(rec)
        # Lifecycle lines are rare; keep the journal current for tailing.
        self._writer.flush()

    def close(self) -> None:
        self._writer.close()
