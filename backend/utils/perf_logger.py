import itertools
import logging
import time
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Dict, Iterator

logger = logging.getLogger(__name__)

class PerformanceLogger:
    """
    Times the phases of the transcription pipeline (extract, download, transcribe).
    Timestamps are UTC.
    """

    def __init__(self):
        self._start_times: Dict[str, float] = {}
        self._run_ids = itertools.count(1)

    def _now(self) -> str:
        return datetime.now(timezone.utc).strftime("%Y-%m-%d %H:%M:%S")

    def start_phase(self, phase_name: str) -> None:
        """Start tracking a phase."""
        self._start_times[phase_name] = time.perf_counter()
        logger.info(f"[{self._now()}] [START] {phase_name}")

    def end_phase(self, phase_name: str, extra_info: str = "") -> float:
        """
        End tracking a phase and log the duration.
        Returns the duration in seconds, 0.0 if the phase was never started.
        """
        start_time = self._start_times.pop(phase_name, None)
        if start_time is None:
            logger.warning(f"Attempted to end phase '{phase_name}' without starting it.")
            return 0.0

        duration = time.perf_counter() - start_time
        info_str = f" - {extra_info}" if extra_info else ""
        logger.info(f"[{self._now()}] [END]   {phase_name}{info_str} (Duration: {duration:.3f}s)")
        return duration

    @contextmanager
    def phase(self, phase_name: str) -> Iterator[str]:
        """
        Time a block; a raised exception ends the phase as FAILED and propagates.

        Each call gets its own tagged name, so concurrent runs of the same
        phase never share a start time. The tagged name is yielded.
        """
        tagged_name = f"{phase_name} #{next(self._run_ids)}"
        self.start_phase(tagged_name)
        try:
            yield tagged_name
        except BaseException:
            self.end_phase(tagged_name, "FAILED")
            raise
        self.end_phase(tagged_name)


# Singleton instance
perf_logger = PerformanceLogger()
