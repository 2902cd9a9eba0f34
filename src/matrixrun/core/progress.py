"""Console narration helpers shared by the run passes."""

import time

INDENT = "  "


class StopWatch:
    """Elapsed-time stamps for progress lines."""

    def __init__(self, clock=time.monotonic):
        self._clock = clock
        self._start: float | None = None

    def start(self) -> "StopWatch":
        self._start = self._clock()
        return self

    def elapsed(self) -> float:
        if self._start is None:
            raise RuntimeError("StopWatch not started")
        return self._clock() - self._start

    def check(self) -> str:
        """Elapsed time as ``mm:ss`` (minutes keep growing past 59)."""
        minutes, seconds = divmod(int(self.elapsed()), 60)
        return f"{minutes:02d}:{seconds:02d}"
