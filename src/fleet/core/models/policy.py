"""Policy table models (``policies``).

Manifesto:
    A policy is declarative backup intent: what to back up, where to,
    how long to keep it, and on which schedules to back up, verify
    (check) and prune.  The scheduler turns it into tasks; it never runs
    anything itself.

Tags:
    fleet-core, models, policy, retention, dataclasses

Doc-Types:
    api-reference, data-model
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

DEFAULT_MAX_RETRIES = 3

_RETENTION_KEYS = (
    "keep_last",
    "keep_hourly",
    "keep_daily",
    "keep_weekly",
    "keep_monthly",
    "keep_yearly",
)


@dataclass(frozen=True)
class RetentionRules:
    """Snapshot retention counts; ``None`` means the bucket is unused."""

    keep_last: int | None = None
    keep_hourly: int | None = None
    keep_daily: int | None = None
    keep_weekly: int | None = None
    keep_monthly: int | None = None
    keep_yearly: int | None = None

    def to_dict(self) -> dict[str, int]:
        """Only the buckets that are set."""
        return {k: getattr(self, k) for k in _RETENTION_KEYS if getattr(self, k) is not None}

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> RetentionRules:
        if not data:
            return cls()
        return cls(**{k: data[k] for k in _RETENTION_KEYS if data.get(k) is not None})

    @property
    def is_empty(self) -> bool:
        return not self.to_dict()


@dataclass
class Policy:
    """Backup policy row (``policies``)."""

    id: str = ""
    name: str = ""
    enabled: bool = True
    schedule: str = ""  # backup schedule, always present
    check_schedule: str | None = None
    prune_schedule: str | None = None
    repository_url: str = ""
    include_paths: tuple[str, ...] = ()
    exclude_paths: tuple[str, ...] = ()
    retention: RetentionRules = field(default_factory=RetentionRules)
    max_retries: int | None = None
    created_at: str = ""
    updated_at: str = ""

    def retry_budget(self, default: int = DEFAULT_MAX_RETRIES) -> int:
        """Retry budget handed to generated tasks; *default* when unset."""
        return self.max_retries if self.max_retries is not None else default

    def schedules(self) -> list[tuple[str, str]]:
        """``(task_type, schedule)`` pairs the scheduler evaluates.

        Backup is always evaluated; check and prune only when configured.
        """
        pairs = [("backup", self.schedule)]
        if self.check_schedule:
            pairs.append(("check", self.check_schedule))
        if self.prune_schedule:
            pairs.append(("prune", self.prune_schedule))
        return pairs
