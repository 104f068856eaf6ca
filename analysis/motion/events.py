from __future__ import annotations

import logging
import queue
from dataclasses import dataclass, field
from typing import Callable, ClassVar, Iterable, List, Optional, Protocol, Tuple, Union

from common.frame import Frame

_LOG = logging.getLogger(__name__)


@dataclass(frozen=True)
class DataFrame:
    """One frame of a clip, handed downstream as soon as it is known."""

    kind: ClassVar[str] = "data"
    frame: Frame

    @property
    def payload(self) -> bytes:
        return self.frame.payload


@dataclass(frozen=True)
class MotionStart:
    kind: ClassVar[str] = "motion_start"
    detect_frame: Optional[Frame]


@dataclass(frozen=True)
class MotionStop:
    kind: ClassVar[str] = "motion_stop"
    detect_frame: Optional[Frame]


@dataclass(frozen=True)
class KeyFrames:
    """Early frames of an episode (1..key_frame_count), emitted once."""

    kind: ClassVar[str] = "key_frames"
    frames: Tuple[Frame, ...] = field(default_factory=tuple)


MotionStreamEvent = Union[DataFrame, MotionStart, MotionStop, KeyFrames]


def data_events(frames: Iterable[Frame]) -> List[MotionStreamEvent]:
    return [DataFrame(frame=f) for f in frames]


class EventSink(Protocol):
    def handle(self, event: MotionStreamEvent) -> None: ...


class CallbackSink:
    """
    Dispatch events to per-kind callables.

    ``on_data`` receives the raw payload bytes; the lifecycle callbacks
    receive the detect frame; ``on_key_frames`` receives a list of frames.
    """

    def __init__(
        self,
        on_data: Optional[Callable[[bytes], None]] = None,
        on_motion_start: Optional[Callable[[Optional[Frame]], None]] = None,
        on_motion_stop: Optional[Callable[[Optional[Frame]], None]] = None,
        on_key_frames: Optional[Callable[[List[Frame]], None]] = None,
    ) -> None:
        self._on_data = on_data
        self._on_motion_start = on_motion_start
        self._on_motion_stop = on_motion_stop
        self._on_key_frames = on_key_frames

    def handle(self, event: MotionStreamEvent) -> None:
        if isinstance(event, DataFrame):
            if self._on_data:
                self._on_data(event.payload)
        elif isinstance(event, MotionStart):
            if self._on_motion_start:
                self._on_motion_start(event.detect_frame)
        elif isinstance(event, MotionStop):
            if self._on_motion_stop:
                self._on_motion_stop(event.detect_frame)
        elif isinstance(event, KeyFrames):
            if self._on_key_frames:
                self._on_key_frames(list(event.frames))


class QueueSink:
    """Hand events to a consumer thread through a ``queue.Queue``."""

    def __init__(self, q: Optional["queue.Queue[MotionStreamEvent]"] = None) -> None:
        self.queue: "queue.Queue[MotionStreamEvent]" = q if q is not None else queue.Queue()

    def handle(self, event: MotionStreamEvent) -> None:
        self.queue.put_nowait(event)


class MotionEventEmitter:
    """Fan events out to the subscribed sinks, in order, without buffering."""

    def __init__(
        self,
        sinks: Optional[Iterable[EventSink]] = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self._sinks: List[EventSink] = list(sinks or [])
        self._log = logger or _LOG
        self.emitted = 0

    def subscribe(self, sink: EventSink) -> None:
        self._sinks.append(sink)

    def unsubscribe(self, sink: EventSink) -> None:
        self._sinks.remove(sink)

    def emit(self, events: Iterable[MotionStreamEvent]) -> None:
        for ev in events:
            self.emitted += 1
            for sink in self._sinks:
                try:
                    sink.handle(ev)
                except Exception:
                    # A broken consumer must not stall the stream.
                    self._log.exception("event sink %r failed on %s", sink, ev.kind)
