"""Single-writer execution queue for feed state."""

from __future__ import annotations

import concurrent.futures
import logging
import threading
from typing import Any, Callable, Set

logger = logging.getLogger(__name__)


class SerialDispatcher:
    """Runs submitted callables one at a time, in order, on one worker thread."""

    def __init__(self, name: str = "feed-state"):
        self._executor = concurrent.futures.ThreadPoolExecutor(
            max_workers=1, thread_name_prefix=name
        )
        self._timers: Set[threading.Timer] = set()
        self._lock = threading.Lock()
        self._closed = False

    def submit(self, fn: Callable[..., Any], *args: Any) -> concurrent.futures.Future:
        return self._executor.submit(fn, *args)

    def call_later(self, delay: float, fn: Callable[..., Any], *args: Any) -> threading.Timer:
        """Submit ``fn`` after ``delay`` seconds; cancel via the returned timer."""

        def fire() -> None:
            with self._lock:
                self._timers.discard(timer)
                if self._closed:
                    return
            self.submit(fn, *args)

        timer = threading.Timer(delay, fire)
        timer.daemon = True
        with self._lock:
            self._timers.add(timer)
        timer.start()
        return timer

    def shutdown(self) -> None:
        with self._lock:
            self._closed = True
            timers = list(self._timers)
            self._timers.clear()
        for timer in timers:
            timer.cancel()
        self._executor.shutdown(wait=True)
        logger.debug("Dispatcher shut down")
