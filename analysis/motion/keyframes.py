from __future__ import annotations

from typing import List, Optional

from common.frame import Frame

from .events import KeyFrames


class KeyFrameCollector:
    """Stage the first few motion frames of an episode for a quick preview."""

    def __init__(self, cap: int = 5) -> None:
        if cap < 1:
            raise ValueError("cap must be >= 1")
        self._cap = cap
        # None means "not collecting".
        self._frames: Optional[List[Frame]] = None

    @property
    def cap(self) -> int:
        return self._cap

    @property
    def collecting(self) -> bool:
        return self._frames is not None

    def __len__(self) -> int:
        return len(self._frames) if self._frames is not None else 0

    def begin(self) -> None:
        self._frames = []

    def add(self, frame: Frame) -> Optional[KeyFrames]:
        """Stage ``frame``; returns the finished batch once the cap is reached."""
        if self._frames is None:
            return None
        if len(self._frames) < self._cap:
            self._frames.append(frame)
        if len(self._frames) >= self._cap:
            return self.finish()
        return None

    def finish(self) -> Optional[KeyFrames]:
        """Close the batch with whatever was collected."""
        if self._frames is None:
            return None
        frames, self._frames = self._frames, None
        if not frames:
            return None
        return KeyFrames(frames=tuple(frames))
