from __future__ import annotations

from typing import Optional, Tuple

import cv2
import numpy as np


class MotionStreamError(Exception):
    """Base class for motion stream errors."""


class DecodeError(MotionStreamError):
    """The frame payload could not be turned into an image."""


def decode_frame(payload: bytes, resolution: Optional[Tuple[int, int]] = None) -> np.ndarray:
    """
    Decode an encoded frame (JPEG, PNG, ...) into a grayscale uint8 image.

    Parameters
    ----------
    payload:
        Encoded image bytes exactly as written to the stream.
    resolution:
        Optional ``(width, height)``; the image is resized to it so the
        detector always compares like with like.

    Raises
    ------
    DecodeError
        Empty or corrupt payload, or an unusable resolution.
    """
    if not payload:
        raise DecodeError("empty frame payload")

    buf = np.frombuffer(payload, dtype=np.uint8)
    try:
        img = cv2.imdecode(buf, cv2.IMREAD_GRAYSCALE)
    except cv2.error as exc:
        raise DecodeError(f"cv2.imdecode failed: {exc}") from exc
    if img is None:
        raise DecodeError(f"cv2.imdecode returned None for {len(payload)} bytes")

    if resolution is not None:
        width, height = int(resolution[0]), int(resolution[1])
        if width <= 0 or height <= 0:
            raise DecodeError(f"invalid resolution {resolution!r}")
        if (img.shape[1], img.shape[0]) != (width, height):
            img = cv2.resize(img, (width, height), interpolation=cv2.INTER_AREA)

    return img
