"""Tests for schedule parsing and next-run computation."""

from datetime import UTC, datetime, timedelta

import pytest

from fleet.core.errors import ErrorCategory, ScheduleParseError
from fleet.core.scheduling import (
    ScheduleSpec,
    compute_next_run,
    compute_next_run_with_last,
    parse_schedule,
    validate_schedule,
)


class TestParseSchedule:
    """parse_schedule accepts cron and interval forms."""

    def test_cron_five_fields(self):
        spec = parse_schedule("0 2 * * *")
        assert spec.kind == "cron"
        assert spec.is_interval is False
        assert spec.interval is None

    @pytest.mark.parametrize(
        "text",
        ["*/15 * * * *", "0 9-17 * * 1-5", "0,30 * 1 * *", "0 0 * * 0", "0 0 * * 7"],
    )
    def test_cron_syntax_variants(self, text):
        assert parse_schedule(text).kind == "cron"

    @pytest.mark.parametrize(
        ("text", "expected"),
        [
            ("every 1m", timedelta(minutes=1)),
            ("every 30m", timedelta(minutes=30)),
            ("every 6h", timedelta(hours=6)),
            ("every  2h", timedelta(hours=2)),
        ],
    )
    def test_interval(self, text, expected):
        spec = parse_schedule(text)
        assert spec.is_interval
        assert spec.interval == expected

    def test_surrounding_whitespace_ignored(self):
        assert parse_schedule("  every 5m  ").interval == timedelta(minutes=5)

    @pytest.mark.parametrize(
        "text",
        [
            "",
            "   ",
            "* * * *",
            "* * * * * *",
            "60 * * * *",
            "* 24 * * *",
            "0 0 32 * *",
            "0 0 * 13 *",
            "0 0 * * 8",
            "every 0m",
            "every 5s",
            "every m",
            "every 1d",
            "every -1h",
            "daily",
        ],
    )
    def test_invalid_raises(self, text):
        with pytest.raises(ScheduleParseError):
            parse_schedule(text)

    @pytest.mark.parametrize(
        "text",
        ["0 0 L * *", "0 0 * * 5#3", "0 0 * * MON", "0 0 ? * *", "@daily x y z w", "0 0 1W * *"],
    )
    def test_cron_extensions_rejected(self, text):
        with pytest.raises(ScheduleParseError, match="malformed"):
            parse_schedule(text)

    @pytest.mark.parametrize("text", ["0 0 31 2 *", "0 0 30 2 *", "0 0 31 4,6 *"])
    def test_cron_that_never_matches_rejected(self, text):
        with pytest.raises(ScheduleParseError, match="never matches"):
            parse_schedule(text)

    def test_leap_day_accepted(self):
        assert parse_schedule("0 0 29 2 *").kind == "cron"

    @pytest.mark.parametrize("text", ["every 99999999h", "every 99999999999h", "every 9999999999999m"])
    def test_oversized_interval_rejected(self, text):
        with pytest.raises(ScheduleParseError, match="out of range"):
            parse_schedule(text)

    def test_parse_error_is_orchestration_error(self):
        with pytest.raises(ScheduleParseError) as exc_info:
            parse_schedule("every 0m")
        err = exc_info.value
        assert err.category == ErrorCategory.ORCHESTRATION
        assert err.schedule == "every 0m"
        assert "every 0m" in str(err)

    def test_validate_schedule(self):
        validate_schedule("every 1h")
        with pytest.raises(ScheduleParseError):
            validate_schedule("not a schedule")


class TestComputeNextRun:
    """compute_next_run for cron and interval specs."""

    def test_daily_cron_after_slot_goes_to_next_day(self, t0):
        assert compute_next_run(parse_schedule("0 2 * * *"), t0) == datetime(
            2024, 1, 2, 2, 0, tzinfo=UTC
        )

    def test_cron_is_strictly_after_now(self):
        now = datetime(2024, 1, 1, 10, 45, tzinfo=UTC)
        assert compute_next_run(parse_schedule("*/15 * * * *"), now) == datetime(
            2024, 1, 1, 11, 0, tzinfo=UTC
        )

    def test_cron_weekday_seven_is_sunday(self, t0):
        # 2024-01-01 is a Monday
        assert compute_next_run(parse_schedule("0 0 * * 7"), t0) == datetime(
            2024, 1, 7, 0, 0, tzinfo=UTC
        )

    def test_interval_adds_to_now(self, t0):
        assert compute_next_run(parse_schedule("every 6h"), t0) == t0 + timedelta(hours=6)

    def test_naive_now_treated_as_utc(self):
        naive = datetime(2024, 1, 1, 10, 30)
        result = compute_next_run(parse_schedule("0 2 * * *"), naive)
        assert result == datetime(2024, 1, 2, 2, 0, tzinfo=UTC)
        assert result.tzinfo is not None


class TestComputeNextRunWithLast:
    """Catch-up semantics when a previous run is known."""

    def test_no_last_run_matches_compute_next_run(self, t0):
        spec = parse_schedule("every 1h")
        assert compute_next_run_with_last(spec, t0, None) == compute_next_run(spec, t0)

    def test_interval_anchors_on_last_run(self, t0):
        spec = parse_schedule("every 1h")
        last = t0 - timedelta(minutes=10)
        assert compute_next_run_with_last(spec, t0, last) == last + timedelta(hours=1)

    def test_interval_backlog_coalesces_to_now_plus_interval(self, t0):
        spec = parse_schedule("every 1h")
        last = t0 - timedelta(hours=8)
        assert compute_next_run_with_last(spec, t0, last) == t0 + timedelta(hours=1)

    def test_interval_exact_boundary_reanchors(self, t0):
        spec = parse_schedule("every 1h")
        last = t0 - timedelta(hours=1)
        assert compute_next_run_with_last(spec, t0, last) == t0 + timedelta(hours=1)

    def test_cron_ignores_last_run(self, t0):
        spec = parse_schedule("0 2 * * *")
        last = t0 - timedelta(days=30)
        assert compute_next_run_with_last(spec, t0, last) == datetime(
            2024, 1, 2, 2, 0, tzinfo=UTC
        )

    def test_result_always_after_now(self, t0):
        for text in ("every 1m", "every 3h", "*/5 * * * *", "0 0 1 * *"):
            spec = parse_schedule(text)
            for last in (None, t0 - timedelta(days=3), t0 - timedelta(seconds=1)):
                assert compute_next_run_with_last(spec, t0, last) > t0


class TestScheduleSpec:
    def test_str_is_expression(self):
        assert str(parse_schedule("every 2h")) == "every 2h"

    def test_frozen(self):
        spec = ScheduleSpec(kind="cron", expression="* * * * *")
        with pytest.raises(AttributeError):
            spec.kind = "interval"
