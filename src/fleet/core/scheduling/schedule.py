"""Schedule strings: parsing and next-run computation.

Manifesto:
    A policy carries its schedules as plain strings.  Everything the
    scheduler needs to know about time lives here: is the string valid,
    and when is the next run.

    Two forms are accepted::

        "<minute> <hour> <day> <month> <weekday>"   cron, evaluated by croniter
        "every <N><h|m>"                             fixed interval, N >= 1

Architecture:
    ::

        parse_schedule(text) ──► ScheduleSpec(kind="cron" | "interval")
                                      │
             compute_next_run(spec, now)
             compute_next_run_with_last(spec, now, last_run)
                                      │
                                      ▼
                               aware UTC datetime

    Catch-up rule for intervals: the next run is ``last_run + interval``
    unless that is not after ``now``, in which case it is re-anchored to
    ``now + interval``.  Any backlog collapses into a single run.

Examples:
    >>> from datetime import datetime, UTC
    >>> spec = parse_schedule("0 2 * * *")
    >>> compute_next_run(spec, datetime(2024, 1, 1, 10, 30, tzinfo=UTC))
    datetime.datetime(2024, 1, 2, 2, 0, tzinfo=datetime.timezone.utc)

Tags:
    fleet-core, scheduling, cron, croniter, interval

Doc-Types:
    api-reference
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import datetime, timedelta

from croniter import CroniterError, croniter

from fleet.core.errors import ScheduleParseError
from fleet.core.timestamps import ensure_utc, utc_now

_INTERVAL_RE = re.compile(r"^every\s+(\d+)([hm])$")
_CRON_FIELD_RE = re.compile(r"^[0-9*,/-]+$")

_UNITS = {
    "h": timedelta(hours=1),
    "m": timedelta(minutes=1),
}

CRON = "cron"
INTERVAL = "interval"


@dataclass(frozen=True)
class ScheduleSpec:
    """A parsed schedule string."""

    kind: str  # cron | interval
    expression: str
    interval: timedelta | None = None

    @property
    def is_interval(self) -> bool:
        return self.kind == INTERVAL

    def __str__(self) -> str:
        return self.expression


def parse_schedule(text: str) -> ScheduleSpec:
    """Parse a cron or interval schedule string.

    Raises:
        ScheduleParseError: Empty input, wrong cron field count, out-of-range
            or never-matching cron values, zero or oversized interval, or
            unknown interval unit.
    """
    if text is None or not text.strip():
        raise ScheduleParseError(text or "", "empty schedule")

    expression = text.strip()

    if expression.startswith("every"):
        match = _INTERVAL_RE.match(expression)
        if not match:
            raise ScheduleParseError(expression, "expected 'every <N>h' or 'every <N>m'")
        count = int(match.group(1))
        if count < 1:
            raise ScheduleParseError(expression, "interval must be at least 1")
        try:
            interval = count * _UNITS[match.group(2)]
            utc_now() + interval  # must stay addable to a timestamp
        except OverflowError:
            raise ScheduleParseError(expression, "interval out of range") from None
        return ScheduleSpec(kind=INTERVAL, expression=expression, interval=interval)

    fields = expression.split()
    if len(fields) != 5:
        raise ScheduleParseError(
            expression, f"cron schedule needs 5 fields, got {len(fields)}"
        )
    if not all(_CRON_FIELD_RE.match(f) for f in fields) or not croniter.is_valid(expression):
        raise ScheduleParseError(expression, "cron field out of range or malformed")

    normalized = " ".join(fields)
    try:
        _next_cron(normalized, utc_now())
    except (CroniterError, ValueError, OverflowError):
        raise ScheduleParseError(expression, "cron expression never matches") from None
    return ScheduleSpec(kind=CRON, expression=normalized)


def validate_schedule(text: str) -> None:
    """Raise :class:`ScheduleParseError` if *text* is not a valid schedule."""
    parse_schedule(text)


def _next_cron(expression: str, after: datetime) -> datetime:
    nxt = croniter(expression, ensure_utc(after)).get_next(datetime)
    return ensure_utc(nxt)


def compute_next_run(spec: ScheduleSpec, now: datetime) -> datetime:
    """Next run for *spec* with no history.

    Cron: next matching minute strictly after *now*.  Interval: ``now + interval``.
    """
    now = ensure_utc(now)
    if spec.is_interval:
        return now + spec.interval
    return _next_cron(spec.expression, now)


def compute_next_run_with_last(
    spec: ScheduleSpec,
    now: datetime,
    last_run: datetime | None,
) -> datetime:
    """Next run given the previous run time.

    Cron ignores *last_run*.  Interval anchors on ``last_run + interval`` and
    falls back to ``now + interval`` when that is not after *now*.
    """
    if last_run is None or not spec.is_interval:
        return compute_next_run(spec, now)

    now = ensure_utc(now)
    candidate = ensure_utc(last_run) + spec.interval
    if candidate <= now:
        return now + spec.interval
    return candidate


__all__ = [
    "CRON",
    "INTERVAL",
    "ScheduleSpec",
    "compute_next_run",
    "compute_next_run_with_last",
    "parse_schedule",
    "validate_schedule",
]
