from __future__ import annotations

import logging
from typing import Any, Callable, List, Optional, Protocol, Sequence, Tuple

from common.frame import Frame

from .decode import DecodeError, decode_frame
from .events import MotionStreamEvent
from .keyframes import KeyFrameCollector
from .model import DecodeErrorPolicy, MotionEpisode

_LOG = logging.getLogger(__name__)

Decoder = Callable[[bytes, Optional[Tuple[int, int]]], Any]


class Detector(Protocol):
    def detect(self, image: Any) -> bool: ...


class WindowEvaluator:
    """Decide whether a window is motion and keep key-frame staging in step.

    Only the first frame of a window is decoded and tested. ``classify`` is
    the pure-ish test the scheduler runs; ``observe`` applies the episode
    side effects and must be called once per window, in window order.
    """

    def __init__(
        self,
        detector: Detector,
        episode: MotionEpisode,
        key_frames: Optional[KeyFrameCollector] = None,
        decoder: Decoder = decode_frame,
        resolution: Optional[Tuple[int, int]] = None,
        decode_error_policy: DecodeErrorPolicy = "no_motion",
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self._detector = detector
        self._episode = episode
        self._key_frames = key_frames if key_frames is not None else KeyFrameCollector()
        self._decode = decoder
        self._resolution = resolution
        self._policy = decode_error_policy
        self._log = logger or _LOG

        self._last_result = False
        self.windows_tested = 0
        self.decode_errors = 0

    @property
    def key_frames(self) -> KeyFrameCollector:
        return self._key_frames

    def test(self, window: Sequence[Frame], done: Callable[[bool], None]) -> None:
        """Scheduler-facing async test: reports the classification via ``done``."""
        done(self.classify(window))

    def classify(self, window: Sequence[Frame]) -> bool:
        if not window:
            return False

        first = window[0]
        self.windows_tested += 1
        try:
            img = self._decode(first.payload, self._resolution)
        except DecodeError as exc:
            self.decode_errors += 1
            result = self._last_result if self._policy == "previous" else False
            self._log.warning(
                "decode failed for frame %d (%s); classifying window as %s",
                first.frame_id,
                exc,
                "motion" if result else "no motion",
            )
            return result

        result = bool(self._detector.detect(img))
        self._last_result = result
        self._log.debug("window @ frame %d: motion=%s", first.frame_id, result)
        return result

    def observe(self, window: Sequence[Frame], is_motion: bool) -> List[MotionStreamEvent]:
        events: List[MotionStreamEvent] = []
        if not window:
            is_motion = False

        if is_motion and not self._episode.is_open:
            self._episode.open(window[0])
            self._key_frames.begin()

        if self._key_frames.collecting:
            batch = self._key_frames.add(window[0]) if is_motion else self._key_frames.finish()
            if batch is not None:
                self._log.debug("key frames ready: %d", len(batch.frames))
                events.append(batch)

        return events
