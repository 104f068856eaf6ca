from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Any, Callable, Iterable, List, Mapping, Optional, Sequence

from capture.window_queue import TimedWindowQueue, WindowScheduler
from common.frame import Frame
from common.time import now_ms

from .decode import decode_frame
from .detector import FrameDiffDetector
from .evaluator import Decoder, Detector, WindowEvaluator
from .events import EventSink, MotionEventEmitter, MotionStreamEvent
from .hysteresis import HysteresisStateMachine
from .keyframes import KeyFrameCollector
from .model import MotionEpisode, MotionStreamConfig, StreamState

_LOG = logging.getLogger(__name__)

QueueFactory = Callable[..., WindowScheduler]


@dataclass
class MotionStreamStats:
    frames_written: int = 0
    frames_dropped: int = 0
    windows_tested: int = 0
    decode_errors: int = 0
    episodes: int = 0
    events_emitted: int = 0
    prebuffer_windows: int = 0
    state: str = StreamState.IDLE.value


class MotionStream:
    """Motion-gated frame stream.

    Frames written to the stream are batched into ``interval_ms`` windows,
    the first frame of each window is tested for motion, and sustained motion
    is surfaced to the subscribed sinks as:

        MotionStart -> DataFrame... -> MotionStop
        KeyFrames (once per episode, for previews)

    Usage:
        stream = MotionStream(MotionStreamConfig(postbuffer_s=2), sinks=[sink])
        stream.start()
        stream.write(jpeg_bytes)   # from the capture loop
        ...
        stream.end()

    Nothing is persisted or flushed on ``end()``: an episode still open at
    that point simply never gets its ``MotionStop``.
    """

    def __init__(
        self,
        config: Optional[MotionStreamConfig] = None,
        sinks: Optional[Iterable[EventSink]] = None,
        decoder: Decoder = decode_frame,
        detector: Optional[Detector] = None,
        queue_factory: QueueFactory = TimedWindowQueue,
        clock: Callable[[], float] = now_ms,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self._cfg = config or MotionStreamConfig()
        self._log = logger or _LOG
        self._clock = clock

        self._episode = MotionEpisode()
        self._machine = HysteresisStateMachine(self._cfg, episode=self._episode, logger=self._log)
        self._evaluator = WindowEvaluator(
            detector=detector or FrameDiffDetector(self._cfg.threshold, self._cfg.min_change),
            episode=self._episode,
            key_frames=KeyFrameCollector(self._cfg.key_frame_count),
            decoder=decoder,
            resolution=self._cfg.resolution,
            decode_error_policy=self._cfg.decode_error_policy,
            logger=self._log,
        )
        self._emitter = MotionEventEmitter(sinks, logger=self._log)
        self._queue = queue_factory(
            self._cfg.interval_ms,
            self._evaluator.test,
            self._on_success,
            self._on_fail,
            logger=self._log,
        )

        self._write_lock = threading.Lock()
        self._next_frame_id = 0
        self._writable = True
        self._frames_written = 0
        self._frames_dropped = 0

    @classmethod
    def from_options(cls, options: Optional[Mapping[str, Any]] = None, **kwargs: Any) -> "MotionStream":
        return cls(MotionStreamConfig.from_options(options), **kwargs)

    # ------------------------------------------------------------------ #
    # Properties
    # ------------------------------------------------------------------ #

    @property
    def config(self) -> MotionStreamConfig:
        return self._cfg

    @property
    def writable(self) -> bool:
        return self._writable

    @property
    def state(self) -> StreamState:
        return self._machine.state

    @property
    def has_motion(self) -> bool:
        return self._machine.has_motion

    # ------------------------------------------------------------------ #
    # Input
    # ------------------------------------------------------------------ #

    def subscribe(self, sink: EventSink) -> None:
        self._emitter.subscribe(sink)

    def write(self, payload: bytes) -> bool:
        """Timestamp ``payload`` and queue it for the current window.

        Returns False (and drops the frame) once the stream has ended.
        """
        with self._write_lock:
            if not self._writable:
                self._frames_dropped += 1
                self._log.warning("write after end; dropping frame (%d bytes)", len(payload or b""))
                return False
            frame = Frame(payload=payload, pts_ms=float(self._clock()), frame_id=self._next_frame_id)
            self._next_frame_id += 1
            self._frames_written += 1
        self._queue.push(frame)
        return True

    def tick(self) -> None:
        """Close the current window now instead of waiting for the ticker."""
        self._queue.tick()

    # ------------------------------------------------------------------ #
    # Lifecycle
    # ------------------------------------------------------------------ #

    def start(self) -> None:
        self._log.info(
            "motion stream starting: interval_ms=%s minimum_motion=%d prebuffer_cap=%d postbuffer_s=%s",
            self._cfg.interval_ms,
            self._cfg.minimum_motion,
            self._cfg.prebuffer_cap,
            self._cfg.postbuffer_s,
        )
        self._queue.start()

    def end(self) -> None:
        """Stop accepting frames. In-flight tests still land; nothing is flushed."""
        with self._write_lock:
            if not self._writable:
                return
            self._writable = False
        self._queue.stop()
        self._log.info("motion stream ended in state %s", self._machine.state.value)

    def destroy(self) -> None:
        self.end()

    def __enter__(self) -> MotionStream:
        self.start()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.end()

    # ------------------------------------------------------------------ #
    # Window results (called by the scheduler, in window order)
    # ------------------------------------------------------------------ #

    def _on_success(self, window: Sequence[Frame]) -> None:
        self._handle(window, True)

    def _on_fail(self, window: Sequence[Frame]) -> None:
        self._handle(window, False)

    def _handle(self, window: Sequence[Frame], is_motion: bool) -> None:
        events: List[MotionStreamEvent] = self._evaluator.observe(window, is_motion)
        events.extend(self._machine.apply(window, is_motion))
        self._emitter.emit(events)

    def stats(self) -> MotionStreamStats:
        return MotionStreamStats(
            frames_written=self._frames_written,
            frames_dropped=self._frames_dropped,
            windows_tested=self._evaluator.windows_tested,
            decode_errors=self._evaluator.decode_errors,
            episodes=self._machine.episodes_started,
            events_emitted=self._emitter.emitted,
            prebuffer_windows=len(self._machine.prebuffer),
            state=self._machine.state.value,
        )
