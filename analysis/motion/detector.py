"""Frame-differencing motion detector.

Compares each image against the previous one: pixels whose intensity moved
by more than ``threshold`` count as changed, and the image is "motion" when
the changed fraction reaches ``min_change``. Deliberately simple; anything
exposing ``detect(image) -> bool`` can replace it.
"""

from __future__ import annotations

from typing import Optional

import cv2
import numpy as np


class FrameDiffDetector:
    def __init__(self, threshold: int = 25, min_change: float = 0.005, blur_kernel: int = 5) -> None:
        self.threshold = int(threshold)
        self.min_change = float(min_change)
        self.blur_kernel = int(blur_kernel)
        self._prev: Optional[np.ndarray] = None
        self.last_change_frac = 0.0

    def reset(self) -> None:
        self._prev = None
        self.last_change_frac = 0.0

    def _prepare(self, image: np.ndarray) -> np.ndarray:
        arr = np.asarray(image)
        if arr.ndim == 3:
            arr = cv2.cvtColor(arr, cv2.COLOR_BGR2GRAY)
        if arr.dtype != np.uint8:
            arr = arr.astype(np.uint8)
        if self.blur_kernel > 1:
            k = self.blur_kernel | 1
            arr = cv2.GaussianBlur(arr, (k, k), 0)
        return arr

    def detect(self, image: np.ndarray) -> bool:
        gray = self._prepare(image)
        prev, self._prev = self._prev, gray

        # First image, or the resolution changed underneath us: new reference.
        if prev is None or prev.shape != gray.shape:
            self.last_change_frac = 0.0
            return False

        delta = cv2.absdiff(prev, gray)
        _, mask = cv2.threshold(delta, self.threshold, 255, cv2.THRESH_BINARY)
        total_px = int(mask.size)
        changed_px = int(np.count_nonzero(mask))
        self.last_change_frac = float(changed_px) / float(total_px) if total_px > 0 else 0.0

        return changed_px > 0 and self.last_change_frac >= self.min_change
