"""Threading-based scheduler backend (the default).

┌──────────────────────────────────────────────────────────────────────────────┐
│  THREAD BACKEND                                                               │
│                                                                               │
│   start()                                                                     │
│      │                                                                        │
│      ▼                                                                        │
│   ┌─────────────────────────────────────────────────────────┐                │
│   │              Daemon Thread (loop)                       │                │
│   │                                                         │                │
│   │   tick()                        ◄── once, immediately   │                │
│   │   while not stop_event.wait(interval):                  │                │
│   │       tick()                                            │                │
│   │                                                         │                │
│   │   tick(): asyncio.run(tick_callback())                  │                │
│   └─────────────────────────────────────────────────────────┘                │
│                                                                               │
│   stop()                                                                      │
│      │                                                                        │
│      ▼                                                                        │
│   stop_event.set()                                                            │
│   thread.join()          (warns every stop_timeout while a tick runs)         │
└──────────────────────────────────────────────────────────────────────────────┘
"""

from __future__ import annotations

import asyncio
import threading
from datetime import datetime

from fleet.core.logging import get_logger
from fleet.core.timestamps import utc_now

from .protocol import BackendHealth, TickCallback

logger = get_logger(__name__)


class ThreadSchedulerBackend:
    """Runs the tick callback on a daemon thread.

    Example:
        >>> backend = ThreadSchedulerBackend()
        >>> async def tick():
        ...     print("Tick!")
        >>> backend.start(tick, interval_seconds=5.0)
        >>> backend.stop()
    """

    name = "thread"

    def __init__(self, stop_timeout: float = 5.0) -> None:
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None
        self._tick_count = 0
        self._last_tick: datetime | None = None
        self._interval: float = 60.0
        self._stop_timeout = stop_timeout
        self._started = False
        self._lock = threading.Lock()

    def start(
        self,
        tick_callback: TickCallback,
        interval_seconds: float = 60.0,
    ) -> None:
        """Start the tick loop in a daemon thread; the first tick runs immediately."""
        if self._started:
            logger.warning("thread_backend_already_started")
            return

        self._interval = interval_seconds
        self._stop_event.clear()

        def _tick() -> None:
            with self._lock:
                self._tick_count += 1
                self._last_tick = utc_now()
            try:
                asyncio.run(tick_callback())
            except Exception:
                logger.exception("scheduler_tick_failed")

        def _loop() -> None:
            logger.info("thread_backend_started", interval_seconds=interval_seconds)
            _tick()
            while not self._stop_event.wait(interval_seconds):
                _tick()
            logger.info("thread_backend_stopped")

        self._thread = threading.Thread(target=_loop, daemon=True, name="fleet-scheduler")
        self._started = True
        self._thread.start()

    def stop(self) -> None:
        """Signal the loop and block until its thread has exited.

        An in-flight tick is always allowed to finish; no tick runs after
        this returns.  Each ``stop_timeout`` spent waiting is logged.
        """
        if not self._started:
            return

        self._stop_event.set()
        thread = self._thread
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout=self._stop_timeout)
            while thread.is_alive():
                logger.warning("scheduler_thread_still_running", timeout=self._stop_timeout)
                thread.join(timeout=self._stop_timeout)

        self._started = False

    def health(self) -> BackendHealth:
        return BackendHealth(
            healthy=self.is_running,
            backend=self.name,
            tick_count=self._tick_count,
            last_tick=self._last_tick,
            extra={"interval_seconds": self._interval},
        )

    @property
    def is_running(self) -> bool:
        return self._started and self._thread is not None and self._thread.is_alive()

    @property
    def tick_count(self) -> int:
        return self._tick_count

    @property
    def last_tick(self) -> datetime | None:
        return self._last_tick
