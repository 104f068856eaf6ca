from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from functools import partial
from typing import Callable, Dict, List, Optional, Protocol, Tuple

from common.frame import Frame

_LOG = logging.getLogger(__name__)

Window = List[Frame]
Done = Callable[[bool], None]
WindowTest = Callable[[Window, Done], None]
WindowHandler = Callable[[Window], None]


class WindowScheduler(Protocol):
    def push(self, frame: Frame) -> None: ...
    def tick(self) -> None: ...
    def start(self) -> None: ...
    def stop(self) -> None: ...


@dataclass
class WindowQueueStats:
    frames_in: int = 0
    windows_submitted: int = 0
    windows_applied: int = 0
    successes: int = 0
    failures: int = 0
    test_errors: int = 0
    late_completions: int = 0

    @property
    def in_flight(self) -> int:
        return self.windows_submitted - self.windows_applied


class TimedWindowQueue:
    """
    Batch pushed frames into fixed-interval windows and test each window:
      - a ticker thread cuts a window every ``interval_ms`` (empty windows too)
      - ``test(window, done)`` may call ``done`` from any thread, at any time
      - results are applied to ``success``/``fail`` strictly in submission
        order, one at a time, so the handlers never race each other
      - handlers run outside the result lock and may call ``tick`` again
    """

    def __init__(
        self,
        interval_ms: float,
        test: WindowTest,
        success: WindowHandler,
        fail: WindowHandler,
        logger: Optional[logging.Logger] = None,
        name: str = "window-queue",
    ) -> None:
        if interval_ms <= 0:
            raise ValueError("interval_ms must be > 0")
        self._interval_s = float(interval_ms) / 1000.0
        self._test = test
        self._success = success
        self._fail = fail
        self._log = logger or _LOG
        self._name = name

        self._pending: Window = []
        self._pending_lock = threading.Lock()

        # Parked results keyed by window sequence number.
        self._results: Dict[int, Tuple[Window, bool]] = {}
        self._apply_lock = threading.Lock()
        self._applying = False
        self._test_lock = threading.RLock()
        self._next_seq = 0
        self._next_apply = 0

        self._stop_ev = threading.Event()
        self._thr: Optional[threading.Thread] = None
        self._stats = WindowQueueStats()

    @property
    def running(self) -> bool:
        return self._thr is not None and self._thr.is_alive()

    def push(self, frame: Frame) -> None:
        with self._pending_lock:
            self._pending.append(frame)
            self._stats.frames_in += 1

    def tick(self) -> None:
        """Cut the pending frames into a window and submit it for testing."""
        # Tests run in sequence order; re-entrant so a handler may tick.
        with self._test_lock:
            with self._pending_lock:
                window, self._pending = self._pending, []
                seq = self._next_seq
                self._next_seq += 1
                self._stats.windows_submitted += 1

            done = partial(self._complete, seq, window)
            try:
                self._test(window, done)
            except Exception:
                self._log.exception("window %d test raised; treating as no motion", seq)
                self._stats.test_errors += 1
                done(False)

    def _complete(self, seq: int, window: Window, ok: bool) -> None:
        with self._apply_lock:
            if seq < self._next_apply or seq in self._results:
                self._log.warning("window %d completed more than once; ignoring", seq)
                self._stats.late_completions += 1
                return
            self._results[seq] = (window, bool(ok))
            if self._applying:
                # The active drainer picks this up once its handler returns.
                return
            self._applying = True

        try:
            while True:
                with self._apply_lock:
                    if self._next_apply not in self._results:
                        self._applying = False
                        return
                    w, res = self._results.pop(self._next_apply)
                    self._next_apply += 1
                    self._stats.windows_applied += 1
                    if res:
                        self._stats.successes += 1
                    else:
                        self._stats.failures += 1
                (self._success if res else self._fail)(w)
        except BaseException:
            with self._apply_lock:
                self._applying = False
            raise

    def start(self) -> None:
        if self._thr and self._thr.is_alive():
            return
        self._stop_ev.clear()
        self._thr = threading.Thread(target=self._worker, name=self._name, daemon=True)
        self._thr.start()

    def _worker(self) -> None:
        while not self._stop_ev.wait(self._interval_s):
            try:
                self.tick()
            except Exception:
                # A handler blew up; keep ticking so the stream self-heals.
                self._log.exception("window tick failed")

    def stop(self) -> None:
        self._stop_ev.set()
        thr, self._thr = self._thr, None
        if thr is not None and thr is not threading.current_thread():
            thr.join(timeout=max(self._interval_s, 0.5))

    def stats(self) -> WindowQueueStats:
        return self._stats
