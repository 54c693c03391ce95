# src/pagehealth/core/utils/run_timers.py
import time
from typing import Optional, Dict


class RunTimers:
    """
    A simple utility class for measuring elapsed execution time.
    Supports named laps so one instance can time every validator of a run.
    """

    def __init__(self):
        self._start_time: Optional[float] = None
        self._end_time: Optional[float] = None
        self._laps: Dict[str, float] = {}

    def start(self) -> None:
        """Starts the timer."""
        self._start_time = time.perf_counter()
        self._end_time = None
        self._laps = {}

    def stop(self) -> None:
        """Stops the timer."""
        if self._start_time is not None:
            self._end_time = time.perf_counter()

    def lap(self, name: str) -> float:
        """Records the elapsed time under `name` and returns it in milliseconds."""
        elapsed_ms = round(self.duration * 1000, 2)
        self._laps[name] = elapsed_ms
        return elapsed_ms

    @property
    def laps(self) -> Dict[str, float]:
        return dict(self._laps)

    @property
    def duration(self) -> float:
        """Returns the elapsed time in seconds."""
        if self._start_time is None:
            return 0.0

        if self._end_time is None:
            # If the timer is still running, return the current duration
            return time.perf_counter() - self._start_time

        # If the timer has stopped, return the final calculated duration
        return self._end_time - self._start_time

    def __repr__(self) -> str:
        """Provides a string representation of the timer's duration."""
        return f"<RunTimers duration={self.duration:.4f}s laps={len(self._laps)}>"
