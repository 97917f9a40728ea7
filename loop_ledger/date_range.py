"""Range-key resolution and local-date parsing.

A range key (``7D``, ``14D``, ``30D``, ``MTD``, ``YTD``, ``ALL``) resolves
against a reference instant into a closed ``[start, end]`` window of naive
local datetimes, or an unbounded window for ``ALL``. The key strings are a
stable contract with the UI layer.

Calendar-date-only strings (``YYYY-MM-DD``) are always read as local dates,
never as UTC midnight, so a loop logged on the 4th stays on the 4th in every
time zone.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from enum import Enum
from typing import Any

from dateutil import parser as date_parser

_ISO_DATE_RE = re.compile(r"^(\d{4})-(\d{2})-(\d{2})$")
_MDY_RE = re.compile(r"^(\d{1,2})/(\d{1,2})/(\d{4})$")
# Generic fallback only for strings that carry an explicit 4-digit year;
# dateutil would otherwise fill missing parts from today's date.
_HAS_YEAR_RE = re.compile(r"\d{4}")


class RangeKey(str, Enum):
    """User-facing reporting windows."""

    LAST_7_DAYS = "7D"
    LAST_14_DAYS = "14D"
    LAST_30_DAYS = "30D"
    MONTH_TO_DATE = "MTD"
    YEAR_TO_DATE = "YTD"
    ALL = "ALL"

    @classmethod
    def parse(cls, value: RangeKey | str) -> RangeKey:
        """Accept the exact key strings and their lower-case spellings."""

        if isinstance(value, RangeKey):
            return value
        s = str(value).strip().upper()
        try:
            return cls(s)
        except ValueError:
            valid = ", ".join(k.value for k in cls)
            raise ValueError(f"unknown range key: {value!r} (expected one of {valid})") from None

    @property
    def days(self) -> int | None:
        return _ROLLING_DAYS.get(self)


_ROLLING_DAYS: dict[RangeKey, int] = {
    RangeKey.LAST_7_DAYS: 7,
    RangeKey.LAST_14_DAYS: 14,
    RangeKey.LAST_30_DAYS: 30,
}


@dataclass(frozen=True, slots=True)
class DateRange:
    """Closed interval of naive local datetimes; both bounds ``None`` for ALL."""

    start: datetime | None
    end: datetime | None

    @property
    def is_bounded(self) -> bool:
        return self.start is not None and self.end is not None

    def contains(self, value: Any) -> bool:
        return is_within_range(value, self)


ALL_TIME = DateRange(start=None, end=None)


def _to_local_naive(dt: datetime) -> datetime:
    if dt.tzinfo is None:
        return dt
    return dt.astimezone().replace(tzinfo=None)


def _record_local_naive(dt: datetime) -> datetime | None:
    # Aware timestamps at the edge of the calendar overflow on conversion.
    try:
        return _to_local_naive(dt)
    except (OverflowError, ValueError):
        return None


def parse_local_date(value: Any) -> datetime | None:
    """Parse a record date into a naive local ``datetime`` (``None`` if unreadable).

    - ``YYYY-MM-DD`` and ``MM/DD/YYYY``: local midnight of that calendar day.
    - ``datetime``: aware values are converted to local time; naive values are
      taken as local already.
    - ``date``: local midnight.
    - Anything else with a 4-digit year: ``dateutil`` parsing (ISO timestamps,
      month names, ...), aware results converted to local time.
    """

    if value is None:
        return None
    if isinstance(value, datetime):
        return _record_local_naive(value)
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)

    s = str(value).strip()
    if not s:
        return None

    m = _ISO_DATE_RE.match(s)
    if m:
        return _safe_datetime(int(m.group(1)), int(m.group(2)), int(m.group(3)))

    m = _MDY_RE.match(s)
    if m:
        return _safe_datetime(int(m.group(3)), int(m.group(1)), int(m.group(2)))

    if not _HAS_YEAR_RE.search(s):
        return None
    try:
        parsed = date_parser.parse(s)
    except (ValueError, OverflowError):
        return None
    return _record_local_naive(parsed)


def _safe_datetime(year: int, month: int, day: int) -> datetime | None:
    try:
        return datetime(year, month, day)
    except ValueError:
        return None


def _local_now(now: datetime | date | None) -> datetime:
    if now is None:
        return datetime.now()
    if isinstance(now, datetime):
        return _to_local_naive(now)
    return datetime(now.year, now.month, now.day)


def resolve_range(key: RangeKey | str, now: datetime | date | None = None) -> DateRange:
    """Resolve ``key`` against ``now`` (defaults to the current local time).

    ``end`` is the end of now's calendar day (23:59:59.999). Rolling keys span
    N full calendar days including today, MTD starts on the 1st of the month
    and YTD on January 1, all at local midnight.
    """

    k = RangeKey.parse(key)
    if k is RangeKey.ALL:
        return ALL_TIME

    current = _local_now(now)
    today = datetime(current.year, current.month, current.day)
    end = today.replace(hour=23, minute=59, second=59, microsecond=999_000)

    days = k.days
    if days is not None:
        start = today - timedelta(days=days - 1)
    elif k is RangeKey.MONTH_TO_DATE:
        start = today.replace(day=1)
    else:
        start = today.replace(month=1, day=1)
    return DateRange(start=start, end=end)


def is_within_range(value: Any, date_range: DateRange) -> bool:
    """Return True when ``start <= parsed(value) <= end``.

    Unbounded ranges include every record, dated or not. In a bounded range an
    unparsable date is never included.
    """

    if not date_range.is_bounded:
        return True
    parsed = parse_local_date(value)
    if parsed is None:
        return False
    assert date_range.start is not None and date_range.end is not None
    return date_range.start <= parsed <= date_range.end


__all__ = [
    "ALL_TIME",
    "DateRange",
    "RangeKey",
    "is_within_range",
    "parse_local_date",
    "resolve_range",
]
