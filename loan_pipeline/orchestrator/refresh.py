"""Periodic refresh of the categorized pipeline."""
from __future__ import annotations

import logging
import threading
from typing import Callable, Optional

from ..config import DEFAULT_REFRESH_SECONDS
from ..models import PipelineSnapshot
from .service import PipelineOrchestrator

LOGGER = logging.getLogger(__name__)

UpdateCallback = Callable[[PipelineSnapshot], None]
ErrorCallback = Callable[[str], None]


class PipelineRefresher:
    """Re-fetches the pipeline on a fixed interval until stopped.

    Each cycle is an independent full recomputation. Successful snapshots go to
    ``on_update``. Fetch failures and exceptions raised by ``on_update`` are
    logged and reported to ``on_error`` without stopping the loop.
    """

    def __init__(
        self,
        orchestrator: PipelineOrchestrator,
        on_update: UpdateCallback,
        *,
        interval_seconds: float = DEFAULT_REFRESH_SECONDS,
        on_error: Optional[ErrorCallback] = None,
        stop_event: Optional[threading.Event] = None,
    ) -> None:
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be > 0")
        self._orchestrator = orchestrator
        self._on_update = on_update
        self._on_error = on_error
        self._interval = interval_seconds
        self._stop_event = stop_event or threading.Event()
        self._thread: Optional[threading.Thread] = None
        self.cycles = 0

    @property
    def stopped(self) -> bool:
        return self._stop_event.is_set()

    def refresh_once(self) -> bool:
        """Run a single refresh cycle and return whether it succeeded."""

        self.cycles += 1
        LOGGER.debug("Periodic refresh cycle %s", self.cycles)
        try:
            result = self._orchestrator.fetch_pipeline()
            if result.success:
                self._on_update(result.data)
                return True
            error = result.error or "Unknown error"
            LOGGER.warning("Periodic refresh failed: %s", error)
        except Exception as exc:
            LOGGER.exception("Periodic refresh failed")
            error = str(exc) or type(exc).__name__

        if self._on_error is not None:
            self._on_error(error)
        return False

    def run(self, *, max_cycles: Optional[int] = None, immediate: bool = True) -> int:
        """Refresh in the calling thread until stopped or ``max_cycles`` is reached."""

        completed = 0
        if not immediate and self._stop_event.wait(self._interval):
            return completed
        while not self._stop_event.is_set():
            self.refresh_once()
            completed += 1
            if max_cycles is not None and completed >= max_cycles:
                break
            if self._stop_event.wait(self._interval):
                break
        return completed

    def start(self, *, immediate: bool = False) -> threading.Thread:
        """Run the refresh loop on a daemon thread."""

        if self._thread is not None and self._thread.is_alive():
            return self._thread
        self._stop_event.clear()
        self._thread = threading.Thread(
            target=self.run,
            kwargs={"immediate": immediate},
            name="pipeline-refresher",
            daemon=True,
        )
        self._thread.start()
        return self._thread

    def stop(self, timeout: Optional[float] = None) -> None:
        self._stop_event.set()
        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None


__all__ = ["PipelineRefresher"]
