"""Reduce canonical records into the reporting views.

Inputs are canonical :class:`~loop_ledger.records.Loop` /
:class:`~loop_ledger.records.Expense` records (see
:mod:`loop_ledger.normalizers`); aggregation assumes normalization already
happened and does not re-validate.

Division policy: every ratio goes through :func:`safe_ratio` or :func:`pct`,
which return exactly ``0`` for a zero, negative or non-finite denominator.
No view ever carries ``nan`` or ``inf``.

Time metrics only count loops that carry both timestamps of a pair and where
the later one is not earlier than the former; other loops are left out of
that metric (they are not counted as zero).
"""

from __future__ import annotations

import math
from collections import defaultdict
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum
from typing import Any

from .date_range import (
    ALL_TIME,
    DateRange,
    RangeKey,
    is_within_range,
    parse_local_date,
    resolve_range,
)
from .logging_setup import get_logger
from .records import EXPENSE_CATEGORY_OPTIONS, OTHER_CATEGORY, Expense, Loop

_logger = get_logger("loop_ledger.aggregation")

# ---------------------------------------------------------------------------
# Numeric helpers
# ---------------------------------------------------------------------------


def _round_half_up(x: float) -> int:
    return int(Decimal(str(x)).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def safe_ratio(numerator: float, denominator: float) -> float:
    """Return ``numerator / denominator`` or ``0.0`` when it is undefined."""

    if not math.isfinite(numerator) or not math.isfinite(denominator) or denominator <= 0:
        return 0.0
    result = numerator / denominator
    return result if math.isfinite(result) else 0.0


def pct(part: float, whole: float) -> int:
    """Whole-number share of ``part`` in ``whole``; 0 when ``whole <= 0``."""

    return _round_half_up(safe_ratio(part, whole) * 100)


def time_to_minutes(value: str | None) -> int | None:
    """``"HH:MM"`` (or ``"H:MM"``) -> minutes after midnight; ``None`` if unreadable."""

    if not value:
        return None
    parts = str(value).split(":")
    if len(parts) < 2:
        return None
    try:
        hours = int(parts[0])
        minutes = int(parts[1])
    except ValueError:
        return None
    return hours * 60 + minutes


def format_duration(minutes: float) -> str:
    """Render minutes as ``"4h 53m"`` / ``"53m"``; non-positive -> ``"0m"``."""

    if not math.isfinite(minutes) or minutes <= 0:
        return "0m"
    hours, mins = divmod(_round_half_up(minutes), 60)
    if hours <= 0:
        return f"{mins}m"
    return f"{hours}h {mins}m"


# ---------------------------------------------------------------------------
# Filtering
# ---------------------------------------------------------------------------


class LoopTypeFilter(Enum):
    """Loop-type facet of the insights view."""

    SINGLE = "single"
    DOUBLE = "double"
    FORECADDIE = "forecaddie"
    ALL = "all"

    @classmethod
    def parse(cls, value: LoopTypeFilter | str | None) -> LoopTypeFilter:
        if isinstance(value, LoopTypeFilter):
            return value
        s = (value or "all").strip().lower()
        if s == "fore":
            return cls.FORECADDIE
        try:
            return cls(s)
        except ValueError:
            valid = ", ".join(k.value for k in cls)
            raise ValueError(f"unknown loop type: {value!r} (expected one of {valid})") from None

    @property
    def label(self) -> str:
        return _FACET_LABELS[self]


# Substring matched against the lower-cased stored loop type.
_FACET_NEEDLES: dict[LoopTypeFilter, str] = {
    LoopTypeFilter.SINGLE: "single",
    LoopTypeFilter.DOUBLE: "double",
    LoopTypeFilter.FORECADDIE: "fore",
}

_FACET_LABELS: dict[LoopTypeFilter, str] = {
    LoopTypeFilter.SINGLE: "Single Bag",
    LoopTypeFilter.DOUBLE: "Double Bag",
    LoopTypeFilter.FORECADDIE: "Forecaddie",
    LoopTypeFilter.ALL: "ALL",
}


def matches_loop_type(loop: Loop, facet: LoopTypeFilter | str) -> bool:
    f = LoopTypeFilter.parse(facet)
    if f is LoopTypeFilter.ALL:
        return True
    return _FACET_NEEDLES[f] in loop.loop_type.lower()


def filter_loops(
    loops: Iterable[Loop],
    date_range: DateRange = ALL_TIME,
    loop_type: LoopTypeFilter | str = LoopTypeFilter.ALL,
) -> list[Loop]:
    facet = LoopTypeFilter.parse(loop_type)
    return [
        loop
        for loop in loops
        if is_within_range(loop.date, date_range) and matches_loop_type(loop, facet)
    ]


def filter_expenses(expenses: Iterable[Expense], date_range: DateRange = ALL_TIME) -> list[Expense]:
    return [e for e in expenses if is_within_range(e.date, date_range)]


# ---------------------------------------------------------------------------
# Report shapes
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class IncomeSummary:
    """Income view: category sums and each category's share of the total."""

    loop_count: int
    bag_fees: float
    cash_tips: float
    digital_tips: float
    pre_grat: float
    total_income: float
    bag_fees_pct: int
    cash_tips_pct: int
    digital_tips_pct: int
    pre_grat_pct: int


@dataclass(frozen=True, slots=True)
class InsightsReport:
    """Insights view: income KPIs plus time-based metrics.

    Attributes
    ----------
    tips_pct:
        ``(cash + digital + pre-grat) / total income * 100`` (bag fees are not
        tips); unrounded.
    on_bag_per_hour / overall_per_hour:
        Total income over the summed qualifying on-bag (tee -> end) and
        overall (report -> end) hours.
    avg_wait_minutes / avg_pace_minutes:
        Means over the qualifying loops only.
    """

    total_loops: int
    bag_fees: float
    cash_tips: float
    digital_tips: float
    pre_grat: float
    total_income: float
    tips_pct: float
    avg_earnings_per_loop: float
    on_bag_minutes: float
    overall_minutes: float
    on_bag_loops: int
    overall_loops: int
    wait_loops: int
    pace_loops: int
    on_bag_per_hour: float
    overall_per_hour: float
    avg_wait_minutes: float
    avg_pace_minutes: float

    @property
    def avg_wait(self) -> str:
        return format_duration(self.avg_wait_minutes)

    @property
    def avg_pace(self) -> str:
        return format_duration(self.avg_pace_minutes)


@dataclass(frozen=True, slots=True)
class ExpenseSummary:
    expense_count: int
    manual_total: float
    by_category: dict[str, float]
    mileage_miles: float
    mileage_total: float
    total_expenses: float


@dataclass(frozen=True, slots=True)
class LedgerSummary:
    total_income: float
    total_expenses: float
    net: float


@dataclass(frozen=True, slots=True)
class LoopTypeBreakdown:
    """One slice of the loop-count / tip distribution charts."""

    facet: LoopTypeFilter
    count: int
    tips: float
    income: float
    count_share: float
    tips_share: float


@dataclass(frozen=True, slots=True)
class DailyEarnings:
    day: date
    total: float


@dataclass(frozen=True, slots=True)
class LedgerReport:
    range_key: RangeKey
    date_range: DateRange
    loop_type: LoopTypeFilter
    income: IncomeSummary
    insights: InsightsReport
    expenses: ExpenseSummary
    ledger: LedgerSummary
    by_type: list[LoopTypeBreakdown] = field(default_factory=list)
    trend: list[DailyEarnings] = field(default_factory=list)
    undated_loops: int = 0


# ---------------------------------------------------------------------------
# Reductions
# ---------------------------------------------------------------------------


def _category_sums(loops: Sequence[Loop]) -> tuple[float, float, float, float]:
    bag = cash = digital = pre = 0.0
    for loop in loops:
        bag += loop.bag_fee
        cash += loop.cash_tip
        digital += loop.digital_tip
        pre += loop.pre_grat
    return bag, cash, digital, pre


def summarize_income(loops: Iterable[Loop]) -> IncomeSummary:
    items = list(loops)
    bag, cash, digital, pre = _category_sums(items)
    total = bag + cash + digital + pre
    return IncomeSummary(
        loop_count=len(items),
        bag_fees=bag,
        cash_tips=cash,
        digital_tips=digital,
        pre_grat=pre,
        total_income=total,
        bag_fees_pct=pct(bag, total),
        cash_tips_pct=pct(cash, total),
        digital_tips_pct=pct(digital, total),
        pre_grat_pct=pct(pre, total),
    )


def _span(earlier: str | None, later: str | None) -> int | None:
    """Minutes from ``earlier`` to ``later``; ``None`` when missing or negative."""

    a = time_to_minutes(earlier)
    b = time_to_minutes(later)
    if a is None or b is None or b < a:
        return None
    return b - a


def compute_insights(
    loops: Iterable[Loop],
    loop_type: LoopTypeFilter | str = LoopTypeFilter.ALL,
) -> InsightsReport:
    """Reduce (date-filtered) loops into the insights KPIs.

    ``loop_type`` applies the insights facet on top of whatever filtering the
    caller already did.
    """

    facet = LoopTypeFilter.parse(loop_type)
    items = [loop for loop in loops if matches_loop_type(loop, facet)]

    bag, cash, digital, pre = _category_sums(items)
    total = bag + cash + digital + pre
    count = len(items)

    on_bag_sum = overall_sum = wait_sum = pace_sum = 0
    on_bag_n = overall_n = wait_n = pace_n = 0
    for loop in items:
        on_bag = _span(loop.tee_time, loop.end_time)
        if on_bag is not None:
            on_bag_sum += on_bag
            on_bag_n += 1
            # Pace of play is the same tee -> end span, reported on its own.
            pace_sum += on_bag
            pace_n += 1

        overall = _span(loop.report_time, loop.end_time)
        if overall is not None:
            overall_sum += overall
            overall_n += 1

        wait = _span(loop.report_time, loop.tee_time)
        if wait is not None:
            wait_sum += wait
            wait_n += 1

    return InsightsReport(
        total_loops=count,
        bag_fees=bag,
        cash_tips=cash,
        digital_tips=digital,
        pre_grat=pre,
        total_income=total,
        tips_pct=safe_ratio(cash + digital + pre, total) * 100,
        avg_earnings_per_loop=safe_ratio(total, count),
        on_bag_minutes=float(on_bag_sum),
        overall_minutes=float(overall_sum),
        on_bag_loops=on_bag_n,
        overall_loops=overall_n,
        wait_loops=wait_n,
        pace_loops=pace_n,
        on_bag_per_hour=safe_ratio(total, on_bag_sum / 60),
        overall_per_hour=safe_ratio(total, overall_sum / 60),
        avg_wait_minutes=safe_ratio(wait_sum, wait_n),
        avg_pace_minutes=safe_ratio(pace_sum, pace_n),
    )


def expense_bucket(category: str | None) -> str:
    """Map a stored category onto the fixed option set (unknown -> ``Other``)."""

    c = (category or "").strip()
    return c if c in EXPENSE_CATEGORY_OPTIONS else OTHER_CATEGORY


def summarize_expenses(expenses: Iterable[Expense], loops: Iterable[Loop] = ()) -> ExpenseSummary:
    """Manual expenses plus the persisted mileage cost of ``loops``.

    Mileage is never recomputed here; the cost stored on each loop at save
    time is summed as-is.
    """

    by_category: dict[str, float] = defaultdict(float)
    manual = 0.0
    count = 0
    for e in expenses:
        manual += e.amount
        by_category[expense_bucket(e.category)] += e.amount
        count += 1

    miles = cost = 0.0
    for loop in loops:
        miles += loop.mileage_miles
        cost += loop.mileage_cost

    return ExpenseSummary(
        expense_count=count,
        manual_total=manual,
        by_category=dict(by_category),
        mileage_miles=miles,
        mileage_total=cost,
        total_expenses=manual + cost,
    )


def summarize_ledger(loops: Iterable[Loop], expenses: Iterable[Expense]) -> LedgerSummary:
    items = list(loops)
    income = sum(loop.total for loop in items)
    spent = summarize_expenses(expenses, items).total_expenses
    return LedgerSummary(total_income=income, total_expenses=spent, net=income - spent)


def breakdown_by_type(loops: Iterable[Loop]) -> list[LoopTypeBreakdown]:
    """Per-facet loop counts and tips, each with its share of the whole.

    Loops whose type matches none of the facets count towards neither the
    slices nor the denominators.
    """

    items = list(loops)
    rows: list[tuple[LoopTypeFilter, int, float, float]] = []
    for facet in (LoopTypeFilter.SINGLE, LoopTypeFilter.DOUBLE, LoopTypeFilter.FORECADDIE):
        matched = [loop for loop in items if matches_loop_type(loop, facet)]
        rows.append(
            (
                facet,
                len(matched),
                sum(loop.tips for loop in matched),
                sum(loop.total for loop in matched),
            )
        )

    count_total = sum(r[1] for r in rows)
    tips_total = sum(r[2] for r in rows)
    return [
        LoopTypeBreakdown(
            facet=facet,
            count=count,
            tips=tips,
            income=income,
            count_share=safe_ratio(count, count_total),
            tips_share=safe_ratio(tips, tips_total),
        )
        for facet, count, tips, income in rows
    ]


def earnings_by_day(loops: Iterable[Loop]) -> list[DailyEarnings]:
    """Daily income totals, oldest first; undated loops are skipped."""

    totals: dict[date, float] = defaultdict(float)
    for loop in loops:
        parsed = parse_local_date(loop.date)
        if parsed is None:
            continue
        totals[parsed.date()] += loop.total
    return [DailyEarnings(day=d, total=totals[d]) for d in sorted(totals)]


def count_undated(records: Iterable[Any]) -> int:
    return sum(1 for r in records if parse_local_date(r.date) is None)


def build_report(
    loops: Iterable[Loop],
    expenses: Iterable[Expense],
    key: RangeKey | str,
    *,
    loop_type: LoopTypeFilter | str = LoopTypeFilter.ALL,
    now: datetime | date | None = None,
) -> LedgerReport:
    """Resolve ``key`` and compute every view over the matching records.

    The loop-type facet only narrows the insights view; income, expenses and
    the distribution charts cover every loop type in the window.
    """

    range_key = RangeKey.parse(key)
    facet = LoopTypeFilter.parse(loop_type)
    window = resolve_range(range_key, now)

    all_loops = list(loops)
    in_range = filter_loops(all_loops, window)
    expenses_in_range = filter_expenses(expenses, window)
    undated = count_undated(all_loops)

    _logger.debug(
        "report:build range=%s loop_type=%s loops=%d in_range=%d undated=%d",
        range_key.value,
        facet.value,
        len(all_loops),
        len(in_range),
        undated,
    )

    return LedgerReport(
        range_key=range_key,
        date_range=window,
        loop_type=facet,
        income=summarize_income(in_range),
        insights=compute_insights(in_range, facet),
        expenses=summarize_expenses(expenses_in_range, in_range),
        ledger=summarize_ledger(in_range, expenses_in_range),
        by_type=breakdown_by_type(in_range),
        trend=earnings_by_day(in_range),
        undated_loops=undated,
    )


__all__ = [
    "DailyEarnings",
    "ExpenseSummary",
    "IncomeSummary",
    "InsightsReport",
    "LedgerReport",
    "LedgerSummary",
    "LoopTypeBreakdown",
    "LoopTypeFilter",
    "breakdown_by_type",
    "build_report",
    "compute_insights",
    "count_undated",
    "earnings_by_day",
    "expense_bucket",
    "filter_expenses",
    "filter_loops",
    "format_duration",
    "matches_loop_type",
    "pct",
    "safe_ratio",
    "summarize_expenses",
    "summarize_income",
    "summarize_ledger",
    "time_to_minutes",
]
