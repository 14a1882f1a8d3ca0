"""Shared timing helper for job execution."""

import time


class Timer:
    """Lightweight timer that tracks elapsed milliseconds.

    Examples
    --------
    >>> timer = Timer()
    >>> assert timer.duration_ms >= 0
    """

    __slots__ = ("_start",)

    def __init__(self) -> None:
        self._start = time.perf_counter()

    @property
    def duration_ms(self) -> float:
        """Elapsed time in milliseconds since the timer started."""
        return (time.perf_counter() - self._start) * 1000

    @property
    def duration_str(self) -> str:
        """Elapsed time formatted as a string with 2 decimal places."""
        return f"{self.duration_ms:.2f}"
