from __future__ import annotations

import math
from dataclasses import dataclass, fields
from enum import Enum
from typing import Any, Literal, Mapping, Optional, Tuple

from common.frame import Frame

DecodeErrorPolicy = Literal["no_motion", "previous"]

# Option names accepted by MotionStreamConfig.from_options, mapped to fields.
_OPTION_ALIASES = {
    "minimumMotion": "minimum_motion",
    "prebuffer": "prebuffer_s",
    "postbuffer": "postbuffer_s",
    "resolution": "resolution",
    "interval": "interval_ms",
    "threshold": "threshold",
    "minChange": "min_change",
    "keyFrameCount": "key_frame_count",
    "decodeErrorPolicy": "decode_error_policy",
}


@dataclass(frozen=True)
class MotionStreamConfig:
    """
    Configuration for a MotionStream.

    Time values follow the option they replace: buffers in seconds, the
    window interval in milliseconds.
    """

    # Consecutive motion windows required before an episode is confirmed.
    minimum_motion: int = 2

    # Look-back retention. Padded by minimum_motion so probing windows are
    # still around when the episode is confirmed.
    prebuffer_s: float = 4.0

    # Grace period after the motion test starts failing.
    postbuffer_s: float = 4.0

    # (width, height) handed to the decoder; None keeps the native size.
    resolution: Optional[Tuple[int, int]] = None

    # Window scheduler tick period.
    interval_ms: float = 1000.0

    # Detector knobs: per-pixel intensity delta and fraction of changed pixels.
    threshold: int = 25
    min_change: float = 0.005

    key_frame_count: int = 5
    decode_error_policy: DecodeErrorPolicy = "no_motion"

    def __post_init__(self) -> None:
        if self.minimum_motion < 1:
            raise ValueError("minimum_motion must be >= 1")
        if self.interval_ms <= 0:
            raise ValueError("interval_ms must be > 0")
        if self.prebuffer_s < 0 or self.postbuffer_s < 0:
            raise ValueError("prebuffer_s and postbuffer_s must be >= 0")
        if self.key_frame_count < 1:
            raise ValueError("key_frame_count must be >= 1")
        if self.decode_error_policy not in ("no_motion", "previous"):
            raise ValueError(f"unknown decode_error_policy: {self.decode_error_policy!r}")
        if self.resolution is not None and len(self.resolution) != 2:
            raise ValueError("resolution must be a (width, height) pair")

    @property
    def prebuffer_window_s(self) -> float:
        return float(self.prebuffer_s) + self.minimum_motion

    @property
    def prebuffer_cap(self) -> int:
        """Maximum number of windows held by the pre-buffer (always >= 1)."""
        return max(math.floor(self.prebuffer_window_s * 1000.0 / float(self.interval_ms)), 1)

    @property
    def postbuffer_ms(self) -> float:
        return float(self.postbuffer_s) * 1000.0

    @classmethod
    def from_options(cls, options: Optional[Mapping[str, Any]] = None) -> "MotionStreamConfig":
        """
        Build a config from a loose options mapping.

        Accepts both the camelCase option names (``minimumMotion``,
        ``prebuffer``, ``interval`` ...) and the field names. Falsy values
        fall back to the defaults.
        """
        names = {f.name for f in fields(cls)}
        kwargs: dict[str, Any] = {}
        for key, value in (options or {}).items():
            name = _OPTION_ALIASES.get(key, key)
            if name not in names:
                raise ValueError(f"unknown motion stream option: {key!r}")
            if not value:
                continue
            if name == "resolution":
                value = tuple(int(v) for v in value)
            kwargs[name] = value
        return cls(**kwargs)


class StreamState(str, Enum):
    """
    Hysteresis states.

    IDLE:     no confirmed motion, windows go to the pre-buffer
    PROBING:  motion windows accumulating towards minimum_motion
    ACTIVE:   confirmed motion, frames are emitted live
    DRAINING: motion test failing but still inside the post-buffer grace
    """

    IDLE = "idle"
    PROBING = "probing"
    ACTIVE = "active"
    DRAINING = "draining"

    @property
    def in_episode(self) -> bool:
        return self in (StreamState.ACTIVE, StreamState.DRAINING)


@dataclass
class MotionEpisode:
    """Counters and detect frame for the current (candidate) episode."""

    detect_frame: Optional[Frame] = None
    consecutive_successes: int = 0
    ticks_since_last_success: int = 0

    @property
    def is_open(self) -> bool:
        return self.detect_frame is not None

    def open(self, frame: Frame) -> None:
        self.detect_frame = frame

    def reset(self) -> None:
        self.detect_frame = None
        self.consecutive_successes = 0
        self.ticks_since_last_success = 0
