"""Periodic trigger for the analysis cycle."""

import logging
import math
import threading
import time
from typing import Any, Callable, Optional

logger = logging.getLogger(__name__)


class CycleDriver:
    """Runs a cycle callable at a fixed cadence on a daemon thread.

    One cycle always runs to completion before the next starts. When a cycle
    overruns its slot, the ticks it missed are dropped rather than queued, so
    output may go stale but latency never grows.

    An exception raised by the cycle stops the driver; it is kept on
    ``error`` and re-raised unchanged from ``join()``.

    Args:
        cycle: Callable invoked once per tick
        target_fps: Ticks per second
        name: Thread name
    """

    def __init__(self, cycle: Callable[[], Any], target_fps: float = 60.0,
                 name: str = 'intonation-cycle'):
        if target_fps <= 0:
            raise ValueError(f"target_fps must be positive, got {target_fps}")
        self.cycle = cycle
        self.target_fps = float(target_fps)
        self.name = name

        self.cycles_run = 0
        self.dropped_ticks = 0
        self.error: Optional[BaseException] = None

        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None

    @property
    def period(self) -> float:
        return 1.0 / self.target_fps

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        if self.is_running:
            return
        self._stop_event.clear()
        self.error = None
        self._thread = threading.Thread(target=self._run, name=self.name, daemon=True)
        self._thread.start()
        logger.info(f"Cycle driver started at {self.target_fps:.1f} fps")

    def stop(self, timeout: float = 1.0) -> None:
        """Halt the trigger and wait for the in-flight cycle to finish."""
        self._stop_event.set()
        thread = self._thread
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout=timeout)
            if thread.is_alive():
                logger.warning(f"Cycle driver did not stop within {timeout}s")
        logger.info(
            f"Cycle driver stopped after {self.cycles_run} cycles "
            f"({self.dropped_ticks} ticks dropped)"
        )

    def join(self, timeout: Optional[float] = None) -> None:
        """Wait for the driver thread and re-raise a cycle failure, if any."""
        thread = self._thread
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout=timeout)
        if self.error is not None:
            raise self.error

    def _run(self) -> None:
        period = self.period
        deadline = time.monotonic()

        while not self._stop_event.is_set():
            try:
                self.cycle()
            except Exception as e:
                self.error = e
                logger.error(f"Cycle failed, stopping driver: {e}", exc_info=True)
                break
            self.cycles_run += 1

            deadline += period
            now = time.monotonic()
            if now > deadline:
                missed = int(math.ceil((now - deadline) / period))
                self.dropped_ticks += missed
                deadline += missed * period
                logger.debug(f"Cycle overran, dropped {missed} tick(s)")

            self._stop_event.wait(max(0.0, deadline - now))
