from __future__ import annotations

import itertools
import queue
import threading
from typing import List, Optional, Sequence

from analysis.motion import (
    CallbackSink,
    DataFrame,
    KeyFrames,
    MotionEventEmitter,
    MotionStart,
    MotionStop,
    MotionStream,
    MotionStreamConfig,
    QueueSink,
    StreamState,
)
from capture.window_queue import TimedWindowQueue


class _ScriptedDetector:
    def __init__(self, script: Sequence[bool]) -> None:
        self._script = list(script)

    def detect(self, image) -> bool:
        return self._script.pop(0)


def _passthrough_decoder(payload: bytes, resolution: Optional[tuple]) -> bytes:
    return payload


class _FakeSink:
    def __init__(self) -> None:
        self.events: List[object] = []

    def handle(self, event) -> None:
        self.events.append(event)

    @property
    def kinds(self) -> List[str]:
        return [e.kind for e in self.events]


class _CountingQueue(TimedWindowQueue):
    stop_calls = 0

    def stop(self) -> None:
        self.stop_calls += 1
        super().stop()


def _mk_stream(script: Sequence[bool], cfg: Optional[MotionStreamConfig] = None, **kwargs):
    sink = _FakeSink()
    clock = itertools.count(1_700_000_000_000, 100)
    stream = MotionStream(
        cfg or MotionStreamConfig(),
        sinks=[sink],
        decoder=_passthrough_decoder,
        detector=_ScriptedDetector(script),
        clock=lambda: next(clock),
        **kwargs,
    )
    return stream, sink


def _feed(stream: MotionStream, n_windows: int, per_window: int = 2) -> None:
    fid = 0
    for _ in range(n_windows):
        for _ in range(per_window):
            stream.write(b"frame-%d" % fid)
            fid += 1
        stream.tick()


def test_reference_scenario_end_to_end():
    cfg = MotionStreamConfig.from_options(
        {"interval": 1000, "minimumMotion": 2, "prebuffer": 4, "postbuffer": 2}
    )
    results = [False, False, False, True, True, False, False, False]
    stream, sink = _mk_stream(results, cfg)

    _feed(stream, len(results))

    assert sink.kinds == (
        ["motion_start"]
        + ["data"] * 10
        + ["key_frames"]
        + ["data"] * 4
        + ["motion_stop"]
    )
    start, stop = sink.events[0], sink.events[-1]
    assert isinstance(start, MotionStart) and isinstance(stop, MotionStop)
    # The first motion window (frames 6, 7) opened the episode.
    assert start.detect_frame.frame_id == 6
    assert stop.detect_frame is start.detect_frame

    payloads = [e.payload for e in sink.events if isinstance(e, DataFrame)]
    assert payloads == [b"frame-%d" % i for i in range(14)]

    key_frames = [e for e in sink.events if isinstance(e, KeyFrames)]
    assert [f.frame_id for f in key_frames[0].frames] == [6, 8]

    assert stream.state is StreamState.IDLE
    st = stream.stats()
    assert st.frames_written == 16
    assert st.windows_tested == 8
    assert st.episodes == 1
    assert st.events_emitted == len(sink.events)
    assert st.prebuffer_windows == 1


def test_blip_emits_key_frame_but_no_episode():
    stream, sink = _mk_stream([False, True, False, False])

    _feed(stream, 4, per_window=1)

    assert sink.kinds == ["key_frames"]
    assert [f.frame_id for f in sink.events[0].frames] == [1]


def test_episode_after_blip_keeps_blip_detect_frame():
    cfg = MotionStreamConfig(minimum_motion=2, postbuffer_s=0)
    stream, sink = _mk_stream([True, False, True, True, False], cfg)

    _feed(stream, 5, per_window=1)

    assert sink.kinds == ["key_frames", "motion_start"] + ["data"] * 4 + ["motion_stop"]
    start, stop = sink.events[1], sink.events[-1]
    assert start.detect_frame.frame_id == 0
    assert stop.detect_frame is start.detect_frame
    assert [f.frame_id for f in sink.events[0].frames] == [0]


def test_flickering_scene_emits_key_frames_once():
    stream, sink = _mk_stream([True, False] * 6)

    _feed(stream, 12, per_window=1)

    assert sink.kinds == ["key_frames"]
    assert stream.state is StreamState.IDLE
    assert stream.stats().episodes == 0


def test_frames_are_timestamped_with_clock():
    stream, sink = _mk_stream([True], MotionStreamConfig(minimum_motion=1))

    stream.write(b"a")
    stream.write(b"b")
    stream.tick()

    frames = [e.frame for e in sink.events if isinstance(e, DataFrame)]
    assert [f.pts_ms for f in frames] == [1_700_000_000_000, 1_700_000_000_100]
    assert [f.frame_id for f in frames] == [0, 1]


def test_end_is_idempotent_and_rejects_further_writes():
    stream, sink = _mk_stream([], queue_factory=_CountingQueue)

    assert stream.writable
    stream.end()
    stream.end()
    stream.destroy()

    assert not stream.writable
    assert stream._queue.stop_calls == 1
    assert stream.write(b"late") is False
    assert stream.stats().frames_dropped == 1
    assert stream.stats().frames_written == 0


def test_end_does_not_flush_open_episode():
    stream, sink = _mk_stream([True, True], MotionStreamConfig(minimum_motion=1))

    _feed(stream, 2, per_window=1)
    stream.end()

    assert stream.has_motion
    assert "motion_stop" not in sink.kinds


def test_context_manager_starts_and_ends():
    stream, _ = _mk_stream([], MotionStreamConfig(interval_ms=50))

    with stream as s:
        assert s._queue.running
    assert not stream.writable
    assert not stream._queue.running


def test_callback_and_queue_sinks():
    data: List[bytes] = []
    started = []
    stopped = []
    q: "queue.Queue" = queue.Queue()
    cfg = MotionStreamConfig(minimum_motion=1, postbuffer_s=0)
    stream, _ = _mk_stream([True, False], cfg)
    stream.subscribe(
        CallbackSink(
            on_data=data.append,
            on_motion_start=started.append,
            on_motion_stop=stopped.append,
        )
    )
    stream.subscribe(QueueSink(q))

    _feed(stream, 2, per_window=1)

    assert data == [b"frame-0"]
    assert len(started) == 1 and len(stopped) == 1
    drained = []
    while not q.empty():
        drained.append(q.get_nowait().kind)
    assert drained == ["motion_start", "data", "key_frames", "motion_stop"]


def test_sink_may_tick_the_stream():
    stream, sink = _mk_stream([True, False])
    stream.subscribe(CallbackSink(on_key_frames=lambda frames: stream.tick()))

    worker = threading.Thread(target=_feed, args=(stream, 2), kwargs={"per_window": 1}, daemon=True)
    worker.start()
    worker.join(timeout=3.0)

    assert not worker.is_alive()
    assert sink.kinds == ["key_frames"]
    assert stream._queue.stats().windows_applied == 3


def test_failing_sink_does_not_stop_delivery():
    class _Broken:
        def handle(self, event) -> None:
            raise RuntimeError("consumer bug")

    good = _FakeSink()
    emitter = MotionEventEmitter([_Broken(), good])
    emitter.emit([MotionStart(detect_frame=None), MotionStop(detect_frame=None)])

    assert good.kinds == ["motion_start", "motion_stop"]
    assert emitter.emitted == 2


def test_from_options_builds_config():
    stream = MotionStream.from_options(
        {"minimumMotion": 3, "interval": 500},
        decoder=_passthrough_decoder,
        detector=_ScriptedDetector([]),
    )
    assert stream.config.minimum_motion == 3
    assert stream.config.interval_ms == 500
    assert stream.state is StreamState.IDLE
