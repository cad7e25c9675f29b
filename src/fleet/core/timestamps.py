"""
UTC timestamp utilities (stdlib-only).

Shared clock and serialisation helpers for every fleet-core module that
persists or compares timestamps.

Manifesto:
    Scheduling decisions are comparisons between timestamps, and many of
    those comparisons happen inside SQL (``next_retry_at > ?``,
    ``ORDER BY scheduled_for``).  Stored values are TEXT, so the text form
    must sort exactly like the instant it encodes:

    - **utc_now():** Timezone-aware UTC datetime, the single clock
    - **to_iso8601():** Fixed-width UTC rendering (always microseconds,
      always ``+00:00``) so lexical order equals chronological order
    - **from_iso8601():** Tolerant parse back to an aware UTC datetime

Tags:
    timestamps, utc, datetime, fleet-core, stdlib-only, serialization

Doc-Types:
    - API Reference
    - Utility Documentation

STDLIB ONLY - NO PYDANTIC.
"""

from collections.abc import Callable
from datetime import UTC, datetime

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    """Get current UTC datetime."""
    return datetime.now(UTC)


def ensure_utc(dt: datetime) -> datetime:
    """Return *dt* as an aware UTC datetime (naive values are assumed UTC)."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=UTC)
    return dt.astimezone(UTC)


def to_iso8601(dt: datetime | None) -> str | None:
    """Convert datetime to a fixed-width ISO 8601 UTC string."""
    if dt is None:
        return None
    return ensure_utc(dt).isoformat(timespec="microseconds")


def from_iso8601(s: str | None) -> datetime | None:
    """Parse ISO 8601 string to an aware UTC datetime."""
    if s is None:
        return None
    return ensure_utc(datetime.fromisoformat(s))
