"""Turns a template's billing period and anchor into calendar dates.

Anchors are resolved once per call by resolve_anchor(); the no-anchor case is
its own branch and is the only path that lands on the 1st of the month by
default.
"""
import logging
from dataclasses import dataclass
from datetime import date, timedelta

from models.template import Template
from utils.constants import (
    BILLING_PERIODS, LAST_WEEK_OF_MONTH, SEMI_ANNUAL_MONTHS, WEEK_INTERVALS,
)
from utils.date_helpers import add_months, days_in_month, month_bounds, months_between, parse_date
from utils.errors import RecurrenceError

logger = logging.getLogger(__name__)

# Average occurrences per month, as (numerator, denominator)
_PER_MONTH = {
    "weekly": (52, 12),
    "bi_weekly": (26, 12),
    "monthly": (1, 1),
    "semi_annually": (1, 6),
}


@dataclass(frozen=True)
class Anchor:
    kind: str                       # 'day_of_month' | 'nth_weekday' | 'weekday' | 'start_date' | 'none'
    day: int | None = None          # target day of month
    week: int | None = None         # 1-4, 5 = last
    weekday: int | None = None      # 0=Sun..6=Sat
    start: date | None = None
    end: date | None = None

    @property
    def is_fallback(self) -> bool:
        return self.kind == "none"


def resolve_anchor(template: Template) -> Anchor:
    """Pick the anchor a template's dates are computed from.

    Raises RecurrenceError when a field is present but unusable, so a broken
    anchor is never mistaken for a missing one.
    """
    period = template.billing_period
    if period not in BILLING_PERIODS:
        raise RecurrenceError(f"Unknown billing period '{period}' on '{template.name}'.")

    start = _parse_optional(template.start_date, "start_date", template)
    end = _parse_optional(template.end_date, "end_date", template)

    day = template.day_of_month
    if day is not None and not 1 <= day <= 31:
        raise RecurrenceError(f"day_of_month {day} on '{template.name}' is not in 1-31.")

    week, weekday = template.recurrence_week, template.recurrence_day
    if (week is None) != (weekday is None):
        raise RecurrenceError(
            f"'{template.name}' needs both recurrence_week and recurrence_day."
        )
    if week is not None:
        if not 1 <= week <= LAST_WEEK_OF_MONTH:
            raise RecurrenceError(f"recurrence_week {week} on '{template.name}' is not in 1-5.")
        if not 0 <= weekday <= 6:
            raise RecurrenceError(f"recurrence_day {weekday} on '{template.name}' is not in 0-6.")

    if period == "monthly":
        if day is not None:
            return Anchor("day_of_month", day=day, start=start, end=end)
        if week is not None:
            return Anchor("nth_weekday", week=week, weekday=weekday, start=start, end=end)
        if start is not None:
            return Anchor("start_date", day=start.day, start=start, end=end)
        return Anchor("none", end=end)

    if period in WEEK_INTERVALS:
        if start is not None:
            return Anchor("start_date", start=start, end=end)
        if weekday is not None:
            if period == "bi_weekly":
                # a weekday alone cannot fix which alternate week the series is on
                raise RecurrenceError(
                    f"Bi-weekly template '{template.name}' needs a start_date, not just a weekday."
                )
            return Anchor("weekday", weekday=weekday, end=end)
        return Anchor("none", end=end)

    # semi_annually
    if start is not None:
        return Anchor("start_date", day=day or start.day, start=start, end=end)
    if day is not None:
        return Anchor("day_of_month", day=day, end=end)
    return Anchor("none", end=end)


def dates_in_month(template: Template, month: str) -> list[date]:
    """Ordered expected dates of a template within a YYYY-MM month."""
    first, last = month_bounds(month)
    anchor = resolve_anchor(template)
    period = template.billing_period

    if anchor.is_fallback:
        logger.warning(
            "Template '%s' (%s) has no recurrence anchor; using the 1st of %s",
            template.name, period, month,
        )

    if period == "monthly":
        dates = [_monthly_date(anchor, first.year, first.month)]
    elif period in WEEK_INTERVALS:
        dates = _interval_dates(anchor, WEEK_INTERVALS[period], first, last)
    else:
        dates = _semi_annual_dates(anchor, first)

    return [
        d for d in dates
        if (anchor.start is None or d >= anchor.start)
        and (anchor.end is None or d <= anchor.end)
    ]


def next_payment_date(last: date, billing_period: str, anchor_day: int | None = None) -> date:
    """The date one billing period after `last`.

    anchor_day keeps monthly and semi-annual steps on the intended day after
    a clamped month (Jan 31 -> Feb 28 -> Mar 31).
    """
    if billing_period in WEEK_INTERVALS:
        return last + timedelta(days=WEEK_INTERVALS[billing_period])
    if billing_period == "monthly":
        return add_months(last, 1, anchor_day)
    if billing_period == "semi_annually":
        return add_months(last, SEMI_ANNUAL_MONTHS, anchor_day)
    raise RecurrenceError(f"Unknown billing period '{billing_period}'.")


def anchor_day_of(template: Template) -> int | None:
    """Day-of-month a monthly or semi-annual template aims for, if it has one."""
    if template.billing_period not in ("monthly", "semi_annually"):
        return None
    anchor = resolve_anchor(template)
    return anchor.day


def monthly_equivalent(amount: int, billing_period: str) -> int:
    """Average monthly cost of a template amount, rounded half up to the cent."""
    num, den = _PER_MONTH[billing_period]
    return (amount * num * 2 + den) // (den * 2)


# ── Helpers ──────────────────────────────────────────────────────────────────

def _parse_optional(value: str | None, field: str, template: Template) -> date | None:
    if not value:
        return None
    d = parse_date(value)
    if d is None:
        raise RecurrenceError(f"Invalid {field} '{value}' on '{template.name}'.")
    return d


def _resolve_dom(target_day: int, y: int, m: int) -> int:
    """Clamp a day-of-month to the length of the given month."""
    return min(target_day, days_in_month(y, m))


def _nth_weekday(y: int, m: int, week: int, weekday: int) -> date:
    """week 1-4 = nth such weekday, 5 = last one. weekday uses 0=Sunday."""
    py_weekday = (weekday - 1) % 7
    if week == LAST_WEEK_OF_MONTH:
        last = date(y, m, days_in_month(y, m))
        return last - timedelta(days=(last.weekday() - py_weekday) % 7)
    first = date(y, m, 1)
    offset = (py_weekday - first.weekday()) % 7
    return first + timedelta(days=offset + 7 * (week - 1))


def _monthly_date(anchor: Anchor, y: int, m: int) -> date:
    if anchor.kind == "nth_weekday":
        return _nth_weekday(y, m, anchor.week, anchor.weekday)
    if anchor.kind == "none":
        return date(y, m, 1)
    return date(y, m, _resolve_dom(anchor.day, y, m))


def _first_nweekly_on_or_after(anchor: date, interval: int, from_date: date) -> date:
    """Return the first date in the anchor + k*interval series that is >= from_date."""
    if from_date <= anchor:
        return anchor
    days_since = (from_date - anchor).days
    n = days_since // interval
    candidate = anchor + timedelta(days=n * interval)
    if candidate < from_date:
        candidate += timedelta(days=interval)
    return candidate


def _interval_dates(anchor: Anchor, interval: int, first: date, last: date) -> list[date]:
    if anchor.kind == "start_date":
        series_start = anchor.start
    elif anchor.kind == "weekday":
        py_weekday = (anchor.weekday - 1) % 7
        series_start = first + timedelta(days=(py_weekday - first.weekday()) % 7)
    else:
        series_start = first

    result = []
    current = _first_nweekly_on_or_after(series_start, interval, first)
    while current <= last:
        result.append(current)
        current += timedelta(days=interval)
    return result


def _semi_annual_dates(anchor: Anchor, first: date) -> list[date]:
    if anchor.kind == "start_date":
        diff = months_between(anchor.start, first)
        if diff < 0 or diff % SEMI_ANNUAL_MONTHS:
            return []
        return [date(first.year, first.month, _resolve_dom(anchor.day, first.year, first.month))]
    if first.month not in (1, 7):
        return []
    day = anchor.day if anchor.kind == "day_of_month" else 1
    return [date(first.year, first.month, _resolve_dom(day, first.year, first.month))]
