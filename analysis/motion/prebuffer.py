from __future__ import annotations

from collections import deque
from typing import Deque, List, Sequence

from common.frame import Frame


class PreBuffer:
    """
    Bounded look-back store of windows not yet known to be motion.

    Windows are kept newest-first (index 0 is the most recently cached) and
    the oldest ones fall off once ``cap`` is exceeded. Eviction is purely
    size-based; the cap itself is derived from time by the caller.
    """

    def __init__(self, cap: int) -> None:
        if cap < 1:
            raise ValueError("cap must be >= 1")
        self._cap = int(cap)
        self._windows: Deque[List[Frame]] = deque()
        self.evicted_count = 0

    @property
    def cap(self) -> int:
        return self._cap

    def __len__(self) -> int:
        return len(self._windows)

    @property
    def frame_count(self) -> int:
        return sum(len(w) for w in self._windows)

    def windows(self) -> List[List[Frame]]:
        """Snapshot of the cached windows, newest first."""
        return [list(w) for w in self._windows]

    def cache(self, window: Sequence[Frame]) -> None:
        self._windows.appendleft(list(window))
        while len(self._windows) > self._cap:
            self._windows.pop()
            self.evicted_count += 1

    def flush_with_current(self, current: Sequence[Frame]) -> List[Frame]:
        """Cached frames oldest window first, then ``current``. Does not clear."""
        out: List[Frame] = []
        for w in reversed(self._windows):
            out.extend(w)
        out.extend(current)
        return out

    def clear(self) -> None:
        self._windows.clear()
