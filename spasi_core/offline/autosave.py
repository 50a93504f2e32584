# =============================================================================
# spasi_core/offline/autosave.py
# Periodic Draft Autosave
# =============================================================================
"""
AutosaveScheduler - calls ``FormSession.autosave_tick`` on a fixed interval
from a daemon thread. Ticks that find a save in flight are dropped by the
session, so slow remote calls never pile up.
"""

from __future__ import annotations
import threading
from typing import Optional

from spasi_core.logging import get_logger

logger = get_logger(__name__)


class AutosaveScheduler:
    """
    Usage:
        scheduler = AutosaveScheduler(session, interval=settings.autosave_interval)
        scheduler.start()
        ...
        scheduler.stop()
    """

    DEFAULT_INTERVAL = 30.0

    def __init__(self, session, interval: Optional[float] = None):
        self.session = session
        self.interval = interval or self.DEFAULT_INTERVAL
        self._thread: Optional[threading.Thread] = None
        self._stop = threading.Event()
        self.ticks = 0

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        if self.is_running:
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self._loop, daemon=True, name="Autosave")
        self._thread.start()
        logger.debug(f"Autosave started (every {self.interval:.0f}s)")

    def stop(self) -> None:
        self._stop.set()
        if self._thread:
            self._thread.join(timeout=5)
        self._thread = None
        logger.debug("Autosave stopped")

    def _loop(self) -> None:
        while not self._stop.wait(timeout=self.interval):
            self.ticks += 1
            try:
                self.session.autosave_tick()
            except Exception as e:
                # Keep the timer alive; the next tick retries
                logger.error(f"Autosave failed: {e}")
