"""Tests for fleet.core.timestamps."""

from datetime import UTC, datetime, timedelta, timezone

from fleet.core.timestamps import ensure_utc, from_iso8601, to_iso8601, utc_now


class TestTimestamps:
    def test_utc_now_is_aware(self):
        assert utc_now().tzinfo is not None

    def test_ensure_utc_naive(self):
        assert ensure_utc(datetime(2024, 1, 1, 12)) == datetime(2024, 1, 1, 12, tzinfo=UTC)

    def test_ensure_utc_converts_offset(self):
        plus_two = timezone(timedelta(hours=2))
        result = ensure_utc(datetime(2024, 1, 1, 12, tzinfo=plus_two))
        assert result == datetime(2024, 1, 1, 10, tzinfo=UTC)
        assert result.utcoffset() == timedelta(0)

    def test_to_iso8601_fixed_width(self):
        assert to_iso8601(datetime(2024, 1, 1, tzinfo=UTC)) == "2024-01-01T00:00:00.000000+00:00"
        assert to_iso8601(None) is None

    def test_from_iso8601(self):
        parsed = from_iso8601("2024-01-01T00:00:00.000000+00:00")
        assert parsed == datetime(2024, 1, 1, tzinfo=UTC)
        assert from_iso8601(None) is None

    def test_lexical_order_matches_time_order(self):
        base = datetime(2024, 1, 1, 10, 0, tzinfo=UTC)
        values = [base + timedelta(microseconds=n * 250_000) for n in range(12)]
        encoded = [to_iso8601(v) for v in values]
        assert sorted(encoded) == encoded
