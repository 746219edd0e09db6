"""Throttled progress reporting for long-running export and import steps."""

from __future__ import annotations

import time
from collections.abc import Callable
from dataclasses import dataclass


@dataclass(frozen=True)
class Progress:
    stage: str
    percent: int
    detail: str = ""


ProgressCallback = Callable[[Progress], None]


class ProgressReporter:
    """Forwards progress to a callback at most once per ``interval`` seconds.

    Updates that arrive too soon after the previous one are dropped, except
    the final one (``percent >= 100``) which is always delivered.
    """

    def __init__(
        self,
        callback: ProgressCallback | None = None,
        interval: float = 0.2,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._callback = callback
        self._interval = interval
        self._clock = clock
        self._last: float | None = None
        self.delivered: list[Progress] = []

    def report(self, stage: str, percent: int, detail: str = "") -> bool:
        """Report progress. Returns True when the update was delivered."""
        if self._callback is None:
            return False
        percent = max(0, min(100, percent))
        now = self._clock()
        final = percent >= 100
        if not final and self._last is not None and now - self._last < self._interval:
            return False
        self._last = now
        update = Progress(stage, percent, detail)
        self.delivered.append(update)
        self._callback(update)
        return True
