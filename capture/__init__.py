# capture/__init__.py
"""Capture package: time-windowed batching of written frames."""

from .window_queue import TimedWindowQueue, WindowQueueStats, WindowScheduler

__all__ = [
    "TimedWindowQueue",
    "WindowQueueStats",
    "WindowScheduler",
]

__version__ = "0.1.0"
