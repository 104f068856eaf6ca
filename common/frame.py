from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class Frame:
    payload: bytes  # encoded image as written to the stream (JPEG/PNG)
    pts_ms: float  # epoch ms at write time
    frame_id: int

    def __repr__(self) -> str:
        # Keep the payload out of logs.
        return f"Frame(frame_id={self.frame_id}, pts_ms={self.pts_ms:.3f}, bytes={len(self.payload)})"
