"""Hysteresis policy turning per-window motion results into clip events.

The machine sees one window at a time together with its motion test result
and returns the events that window produces. It owns the pre-buffer and the
episode counters; nothing else mutates them.

    IDLE --success--> PROBING --success x minimum_motion--> ACTIVE
    ACTIVE --fail (within post-buffer)--> DRAINING --success--> ACTIVE
    ACTIVE/DRAINING --fail (post-buffer exceeded)--> IDLE
    IDLE/PROBING --fail--> IDLE

Confirmation flushes the pre-buffer (oldest window first) behind a single
``MotionStart``; the grace period keeps emitting failed windows until
``ticks * interval_ms`` exceeds the post-buffer, then a single ``MotionStop``
closes the episode and the failed window goes back to the pre-buffer.
"""

from __future__ import annotations

import logging
from typing import List, Optional, Sequence

from common.frame import Frame

from .events import MotionStart, MotionStop, MotionStreamEvent, data_events
from .model import MotionEpisode, MotionStreamConfig, StreamState
from .prebuffer import PreBuffer

_LOG = logging.getLogger(__name__)


class HysteresisStateMachine:
    def __init__(
        self,
        config: Optional[MotionStreamConfig] = None,
        episode: Optional[MotionEpisode] = None,
        prebuffer: Optional[PreBuffer] = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self._cfg = config or MotionStreamConfig()
        self._episode = episode if episode is not None else MotionEpisode()
        self._prebuffer = prebuffer if prebuffer is not None else PreBuffer(self._cfg.prebuffer_cap)
        self._log = logger or _LOG
        self._state = StreamState.IDLE
        self.episodes_started = 0

    # ------------------------------------------------------------------ #
    # Introspection
    # ------------------------------------------------------------------ #

    @property
    def state(self) -> StreamState:
        return self._state

    @property
    def has_motion(self) -> bool:
        return self._state.in_episode

    @property
    def episode(self) -> MotionEpisode:
        return self._episode

    @property
    def prebuffer(self) -> PreBuffer:
        return self._prebuffer

    # ------------------------------------------------------------------ #
    # Transitions
    # ------------------------------------------------------------------ #

    def apply(self, window: Sequence[Frame], is_motion: bool) -> List[MotionStreamEvent]:
        if is_motion:
            return self.on_success(window)
        return self.on_failure(window)

    def on_success(self, window: Sequence[Frame]) -> List[MotionStreamEvent]:
        ep = self._episode
        ep.consecutive_successes += 1
        events: List[MotionStreamEvent] = []

        if self._state.in_episode:
            events.extend(data_events(window))
            self._set_state(StreamState.ACTIVE)
        elif ep.consecutive_successes >= self._cfg.minimum_motion:
            events.extend(self._confirm(window))
        else:
            self._prebuffer.cache(window)
            self._set_state(StreamState.PROBING)

        ep.ticks_since_last_success = 0
        return events

    def on_failure(self, window: Sequence[Frame]) -> List[MotionStreamEvent]:
        ep = self._episode
        ep.consecutive_successes = 0
        events: List[MotionStreamEvent] = []

        if self._state.in_episode:
            if self._post_buffering():
                events.extend(data_events(window))
                self._set_state(StreamState.DRAINING)
                return events
            events.append(self._stop())

        # An unconfirmed candidate keeps its detect frame until a confirmed stop.
        self._prebuffer.cache(window)
        self._set_state(StreamState.IDLE)
        return events

    # ------------------------------------------------------------------ #
    # Helpers
    # ------------------------------------------------------------------ #

    def _post_buffering(self) -> bool:
        ep = self._episode
        ep.ticks_since_last_success += 1
        elapsed_ms = ep.ticks_since_last_success * float(self._cfg.interval_ms)
        return elapsed_ms <= self._cfg.postbuffer_ms

    def _confirm(self, window: Sequence[Frame]) -> List[MotionStreamEvent]:
        ep = self._episode
        frames = self._prebuffer.flush_with_current(window)
        self._prebuffer.clear()
        if ep.detect_frame is None and frames:
            # Driven without an evaluator; use the confirming window.
            ep.open(window[0] if window else frames[0])

        self._set_state(StreamState.ACTIVE)
        self.episodes_started += 1
        self._log.info(
            "motion start: detect_frame=%r flushed_frames=%d",
            ep.detect_frame,
            len(frames),
        )
        events: List[MotionStreamEvent] = [MotionStart(detect_frame=ep.detect_frame)]
        events.extend(data_events(frames))
        return events

    def _stop(self) -> MotionStreamEvent:
        ep = self._episode
        ev = MotionStop(detect_frame=ep.detect_frame)
        self._log.info(
            "motion stop: detect_frame=%r after %d quiet windows",
            ep.detect_frame,
            ep.ticks_since_last_success,
        )
        ep.reset()
        return ev

    def _set_state(self, state: StreamState) -> None:
        if state is not self._state:
            self._log.debug("state %s -> %s", self._state.value, state.value)
            self._state = state
