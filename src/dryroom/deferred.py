# ===============================================================
#  Deferred actions on the main timeline
#
#  Actions are queued with a due instant and a guard. They only
#  run from run_due(), which the main loop calls, so they never
#  race with ticks or commands. A guard that returns False drops
#  the action (the state it was meant for has moved on).
# ===============================================================

from __future__ import annotations

import heapq
import itertools
import logging
from typing import Callable, Optional

log = logging.getLogger(__name__)


class DeferredQueue:
    def __init__(self) -> None:
        self._heap: list = []
        self._seq = itertools.count()

    def __len__(self) -> int:
        return len(self._heap)

    def schedule(self, due: float, action: Callable[[], None],
                 guard: Optional[Callable[[], bool]] = None, name: str = "") -> None:
        heapq.heappush(self._heap, (due, next(self._seq), name, action, guard))

    def run_due(self, now: float) -> int:
        """Run every action due at ``now``; returns how many ran."""
        ran = 0
        while self._heap and self._heap[0][0] <= now:
            _, _, name, action, guard = heapq.heappop(self._heap)
            if guard is not None and not guard():
                log.debug("DEFER     | %s dropped (stale)", name or action)
                continue
            action()
            ran += 1
        return ran


class PulseTrain:
    """Click feedback on the auxiliary output.

    A new train supersedes one still running; the old train's
    remaining steps are dropped by their generation guard.
    """

    def __init__(self, queue: DeferredQueue, output: Callable[[bool], None],
                 on_s: float, off_s: float) -> None:
        self._queue = queue
        self._output = output
        self.on_s = on_s
        self.off_s = off_s
        self._generation = 0

    def pulse(self, count: int, now: float) -> None:
        self._generation += 1
        generation = self._generation

        def current() -> bool:
            return generation == self._generation

        t = now
        for _ in range(count):
            self._queue.schedule(t, lambda: self._output(True), current, name="click on")
            t += self.on_s
            self._queue.schedule(t, lambda: self._output(False), current, name="click off")
            t += self.off_s

    def cancel(self) -> None:
        self._generation += 1
        self._output(False)
