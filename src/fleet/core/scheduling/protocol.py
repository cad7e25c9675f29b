"""Scheduler backend protocol.

┌──────────────────────────────────────────────────────────────────────────────┐
│  SCHEDULER BACKEND PROTOCOL                                                   │
│                                                                               │
│  The scheduler operates as "beat-as-poller": backends control WHEN ticks     │
│  happen, while SchedulerService controls WHAT happens on each tick.          │
│                                                                               │
│   ┌─────────────────┐       tick()       ┌──────────────────────────┐        │
│   │  Thread Backend │ ─────────────────► │  SchedulerService        │        │
│   │  (default)      │                    │  - load enabled policies │        │
│   └─────────────────┘                    │  - evaluate each pair    │        │
│                                          │  - create tasks          │        │
│                                          │  - advance state         │        │
│                                          └──────────────────────────┘        │
└──────────────────────────────────────────────────────────────────────────────┘
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Protocol, runtime_checkable

TickCallback = Callable[[], Awaitable[None]]


@runtime_checkable
class SchedulerBackend(Protocol):
    """Protocol for pluggable scheduler timing backends.

    A backend is responsible ONLY for timing: calling the tick callback
    once on start and then at the specified interval.  All schedule
    evaluation lives in SchedulerService.
    """

    name: str

    def start(
        self,
        tick_callback: TickCallback,
        interval_seconds: float = 60.0,
    ) -> None:
        """Start the tick loop."""
        ...

    def stop(self) -> None:
        """Stop the tick loop; returns once no tick is in flight."""
        ...

    def health(self) -> BackendHealth:
        """Return backend health status."""
        ...


@dataclass
class BackendHealth:
    """Structured backend health response."""

    healthy: bool
    backend: str
    tick_count: int = 0
    last_tick: datetime | None = None
    extra: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "healthy": self.healthy,
            "backend": self.backend,
            "tick_count": self.tick_count,
            "last_tick": self.last_tick.isoformat() if self.last_tick else None,
            **self.extra,
        }
