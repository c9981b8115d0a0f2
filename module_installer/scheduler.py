from __future__ import annotations

import logging
import time
from collections import deque
from typing import Callable, Deque, List, Optional

logger = logging.getLogger(__name__)

Callback = Callable[[], None]


class TickScheduler:
    """Single-threaded cooperative loop.

    Two kinds of work, both run on the thread calling :meth:`tick`:

    - deferred calls (``call_soon``): run once, on the next tick;
    - update callbacks (``add_update``): run on every tick until removed.

    Deferred calls queued while a tick is running wait for the following
    tick, so continuations never run synchronously inside their caller.
    """

    def __init__(self) -> None:
        self._deferred: Deque[Callback] = deque()
        self._updates: List[Callback] = []
        self.ticks = 0

    def call_soon(self, callback: Callback) -> None:
        self._deferred.append(callback)

    def add_update(self, callback: Callback) -> None:
        if callback not in self._updates:
            self._updates.append(callback)

    def remove_update(self, callback: Callback) -> None:
        try:
            self._updates.remove(callback)
        except ValueError:
            pass

    def has_pending(self) -> bool:
        return bool(self._deferred) or bool(self._updates)

    def tick(self) -> None:
        self.ticks += 1

        batch = list(self._deferred)
        self._deferred.clear()
        for cb in batch:
            cb()

        for cb in list(self._updates):
            if cb in self._updates:
                cb()

    def run(self, *, max_ticks: Optional[int] = None, tick_interval: float = 0.0) -> int:
        """Tick until no work is left (or ``max_ticks``). Returns ticks run."""

        ran = 0
        while self.has_pending():
            if max_ticks is not None and ran >= max_ticks:
                logger.warning("Scheduler stopped after %d ticks with work pending", ran)
                break
            self.tick()
            ran += 1
            if tick_interval > 0 and self.has_pending():
                time.sleep(tick_interval)
        return ran
