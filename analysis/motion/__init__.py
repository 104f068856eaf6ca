"""Public exports for the motion analysis package."""

from __future__ import annotations

from .decode import DecodeError, MotionStreamError, decode_frame
from .detector import FrameDiffDetector
from .evaluator import WindowEvaluator
from .events import (
    CallbackSink,
    DataFrame,
    EventSink,
    KeyFrames,
    MotionEventEmitter,
    MotionStart,
    MotionStop,
    MotionStreamEvent,
    QueueSink,
)
from .hysteresis import HysteresisStateMachine
from .keyframes import KeyFrameCollector
from .model import MotionEpisode, MotionStreamConfig, StreamState
from .prebuffer import PreBuffer
from .sidecar import JournalSink
from .stream import MotionStream, MotionStreamStats

__all__ = [
    "MotionStream",
    "MotionStreamStats",
    "MotionStreamConfig",
    "StreamState",
    "MotionEpisode",
    "HysteresisStateMachine",
    "PreBuffer",
    "KeyFrameCollector",
    "WindowEvaluator",
    "FrameDiffDetector",
    "decode_frame",
    "DecodeError",
    "MotionStreamError",
    "MotionStreamEvent",
    "DataFrame",
    "MotionStart",
    "MotionStop",
    "KeyFrames",
    "EventSink",
    "CallbackSink",
    "QueueSink",
    "MotionEventEmitter",
    "JournalSink",
]
