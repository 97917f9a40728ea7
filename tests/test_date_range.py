from __future__ import annotations

from datetime import UTC, date, datetime, timedelta, timezone

import pytest

from loop_ledger.date_range import (
    ALL_TIME,
    DateRange,
    RangeKey,
    is_within_range,
    parse_local_date,
    resolve_range,
)

NOW = datetime(2024, 3, 10, 15, 30)


def test_rolling_window_includes_today_minus_six_days():
    rng = resolve_range("7D", NOW)

    assert rng.start == datetime(2024, 3, 4)
    assert rng.end == datetime(2024, 3, 10, 23, 59, 59, 999_000)
    assert is_within_range("2024-03-04", rng)
    assert not is_within_range("2024-03-03", rng)
    assert is_within_range("2024-03-10", rng)
    assert not is_within_range("2024-03-11", rng)


@pytest.mark.parametrize(
    "key, start",
    [("14D", datetime(2024, 2, 26)), ("30D", datetime(2024, 2, 10))],
)
def test_other_rolling_windows(key, start):
    assert resolve_range(key, NOW).start == start


def test_month_to_date_starts_on_the_first():
    assert resolve_range(RangeKey.MONTH_TO_DATE, NOW).start == datetime(2024, 3, 1)


def test_year_to_date_starts_on_january_first():
    rng = resolve_range("ytd", NOW)
    assert rng.start == datetime(2024, 1, 1)
    assert is_within_range("2024-01-01", rng)
    assert not is_within_range("2023-12-31", rng)


def test_all_is_unbounded_and_includes_undated_records():
    rng = resolve_range("ALL", NOW)

    assert rng == ALL_TIME
    assert not rng.is_bounded
    assert is_within_range("not a date", rng)
    assert is_within_range(None, rng)


def test_now_accepts_a_plain_date():
    assert resolve_range("7D", date(2024, 3, 10)) == resolve_range("7D", NOW)


def test_unknown_range_key_raises():
    with pytest.raises(ValueError, match="unknown range key"):
        RangeKey.parse("90D")


def test_bounded_range_excludes_unparsable_dates():
    rng = resolve_range("YTD", NOW)
    assert not is_within_range("", rng)
    assert not is_within_range("soon", rng)
    assert not rng.contains(None)


# ---- Local date parsing --------------------------------------------------------


def test_iso_date_is_local_midnight():
    assert parse_local_date("2024-03-04") == datetime(2024, 3, 4)


def test_us_date_is_local_midnight():
    assert parse_local_date("3/4/2024") == datetime(2024, 3, 4)


def test_invalid_calendar_date_is_unreadable():
    assert parse_local_date("2024-02-30") is None


def test_aware_timestamp_is_converted_to_local():
    aware = datetime(2024, 3, 4, 12, 0, tzinfo=UTC)
    assert parse_local_date(aware) == aware.astimezone().replace(tzinfo=None)


def test_strings_without_a_year_are_unreadable():
    assert parse_local_date("March 4") is None
    assert parse_local_date("tomorrow") is None


def test_month_name_with_year_is_parsed():
    assert parse_local_date("March 4, 2024") == datetime(2024, 3, 4)


def test_date_range_is_inclusive_at_both_ends():
    rng = DateRange(start=datetime(2024, 3, 1), end=datetime(2024, 3, 1) + timedelta(days=1))
    assert rng.contains(date(2024, 3, 1))
    assert rng.contains(datetime(2024, 3, 2))
    assert not rng.contains(datetime(2024, 3, 2, 0, 0, 1))


@pytest.mark.parametrize(
    "value",
    [
        "9999-12-31T23:59:59-12:00",
        "0001-01-01T00:00:00+05:00",
        datetime(9999, 12, 31, 23, 59, tzinfo=timezone(timedelta(hours=-12))),
        datetime(1, 1, 1, 0, 0, tzinfo=timezone(timedelta(hours=5))),
    ],
)
def test_aware_timestamps_at_calendar_edges_are_unreadable(value):
    assert parse_local_date(value) is None
    assert not is_within_range(value, resolve_range("YTD", NOW))
