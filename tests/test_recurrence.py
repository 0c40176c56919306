import calendar
import logging
from datetime import date

import pytest

from models.template import Template
from services.recurrence import (
    dates_in_month,
    monthly_equivalent,
    next_payment_date,
    resolve_anchor,
)
from utils.errors import RecurrenceError


def _template(billing_period="monthly", **kwargs) -> Template:
    return Template(
        id=1, kind="bill", name="Rent", amount=10000,
        billing_period=billing_period, **kwargs,
    )


MONTHS = [
    "2023-01", "2023-02", "2023-04", "2023-06", "2023-09", "2023-12",
    "2024-02", "2024-03", "2024-11", "2027-02", "2028-02",
]


class TestMonthlyClamping:
    """Monthly dates are day_of_month clamped to the month's last day."""

    @pytest.mark.parametrize("month", MONTHS)
    @pytest.mark.parametrize("day", range(1, 32))
    def test_day_is_clamped(self, month, day):
        y, m = int(month[:4]), int(month[5:])
        last = calendar.monthrange(y, m)[1]
        assert dates_in_month(_template(day_of_month=day), month) == [date(y, m, min(day, last))]

    def test_day_31_in_february_2027(self):
        assert dates_in_month(_template(day_of_month=31), "2027-02") == [date(2027, 2, 28)]

    def test_day_30_in_leap_february(self):
        assert dates_in_month(_template(day_of_month=30), "2024-02") == [date(2024, 2, 29)]

    def test_start_date_day_used_when_no_day_of_month(self):
        t = _template(start_date="2025-03-31")
        assert dates_in_month(t, "2026-04") == [date(2026, 4, 30)]
        assert dates_in_month(t, "2026-05") == [date(2026, 5, 31)]

    def test_nth_weekday(self):
        # January 2026 starts on a Thursday
        second_tuesday = _template(recurrence_week=2, recurrence_day=2)
        assert dates_in_month(second_tuesday, "2026-01") == [date(2026, 1, 13)]

    def test_last_weekday(self):
        last_friday = _template(recurrence_week=5, recurrence_day=5)
        assert dates_in_month(last_friday, "2026-01") == [date(2026, 1, 30)]
        assert dates_in_month(last_friday, "2026-02") == [date(2026, 2, 27)]

    def test_first_sunday(self):
        first_sunday = _template(recurrence_week=1, recurrence_day=0)
        assert dates_in_month(first_sunday, "2026-02") == [date(2026, 2, 1)]

    def test_dates_outside_start_and_end_are_dropped(self):
        t = _template(day_of_month=15, start_date="2026-03-01", end_date="2026-05-31")
        assert dates_in_month(t, "2026-02") == []
        assert dates_in_month(t, "2026-03") == [date(2026, 3, 15)]
        assert dates_in_month(t, "2026-05") == [date(2026, 5, 15)]
        assert dates_in_month(t, "2026-06") == []


class TestIntervalPeriods:
    def test_bi_weekly_from_start_date(self):
        t = _template("bi_weekly", start_date="2026-01-03")
        dates = dates_in_month(t, "2026-01")
        assert dates[:2] == [date(2026, 1, 3), date(2026, 1, 17)]
        # Fourteen days later is still January: this is a three-paycheck month
        assert dates[2:] == [date(2026, 1, 31)]

    def test_bi_weekly_continues_into_next_month(self):
        t = _template("bi_weekly", start_date="2026-01-03")
        assert dates_in_month(t, "2026-02") == [date(2026, 2, 14), date(2026, 2, 28)]

    def test_bi_weekly_keeps_phase_years_later(self):
        start = date(2019, 3, 8)
        t = _template("bi_weekly", start_date=start.isoformat())
        dates = dates_in_month(t, "2026-07")
        assert dates
        assert all((d - start).days % 14 == 0 for d in dates)
        assert all(d.year == 2026 and d.month == 7 for d in dates)
        assert all((b - a).days == 14 for a, b in zip(dates, dates[1:]))

    def test_weekly(self):
        t = _template("weekly", start_date="2026-01-05")
        assert dates_in_month(t, "2026-01") == [
            date(2026, 1, 5), date(2026, 1, 12), date(2026, 1, 19), date(2026, 1, 26),
        ]

    def test_interval_start_after_month_yields_nothing(self):
        t = _template("weekly", start_date="2026-03-02")
        assert dates_in_month(t, "2026-02") == []

    def test_weekly_on_weekday_without_start_date(self):
        mondays = _template("weekly", recurrence_week=1, recurrence_day=1)
        assert dates_in_month(mondays, "2026-02") == [
            date(2026, 2, 2), date(2026, 2, 9), date(2026, 2, 16), date(2026, 2, 23),
        ]

    def test_bi_weekly_on_weekday_without_start_date_is_rejected(self):
        fridays = _template("bi_weekly", recurrence_week=1, recurrence_day=5)
        with pytest.raises(RecurrenceError, match="start_date"):
            resolve_anchor(fridays)
        with pytest.raises(RecurrenceError):
            dates_in_month(fridays, "2026-02")


class TestSemiAnnual:
    def test_six_month_steps_clamp_to_anchor_day(self):
        t = _template("semi_annually", start_date="2025-08-31")
        assert dates_in_month(t, "2026-02") == [date(2026, 2, 28)]
        assert dates_in_month(t, "2026-08") == [date(2026, 8, 31)]

    def test_off_months_and_months_before_start(self):
        t = _template("semi_annually", start_date="2025-08-31")
        assert dates_in_month(t, "2026-03") == []
        assert dates_in_month(t, "2025-02") == []


class TestMissingAnchor:
    """Landing on the 1st is reserved for templates with no anchor at all."""

    def test_monthly_without_anchor_falls_back_to_first(self, caplog):
        t = _template()
        assert resolve_anchor(t).is_fallback
        with caplog.at_level(logging.WARNING):
            assert dates_in_month(t, "2026-04") == [date(2026, 4, 1)]
        assert "no recurrence anchor" in caplog.text

    @pytest.mark.parametrize("kwargs", [
        {"day_of_month": 20},
        {"day_of_month": 31},
        {"start_date": "2020-05-20"},
        {"recurrence_week": 3, "recurrence_day": 4},
    ])
    def test_anchored_templates_never_use_fallback(self, kwargs, caplog):
        t = _template(**kwargs)
        assert not resolve_anchor(t).is_fallback
        with caplog.at_level(logging.WARNING):
            for month in MONTHS:
                assert dates_in_month(t, month)[0].day != 1
        assert "no recurrence anchor" not in caplog.text

    def test_interval_without_anchor_starts_on_first(self):
        t = _template("bi_weekly")
        assert resolve_anchor(t).is_fallback
        assert dates_in_month(t, "2026-03") == [date(2026, 3, 1), date(2026, 3, 15), date(2026, 3, 29)]

    def test_semi_annual_without_anchor(self):
        t = _template("semi_annually")
        assert dates_in_month(t, "2026-07") == [date(2026, 7, 1)]
        assert dates_in_month(t, "2026-06") == []


class TestBrokenAnchors:
    @pytest.mark.parametrize("kwargs", [
        {"day_of_month": 0},
        {"day_of_month": 32},
        {"start_date": "2026-13-01"},
        {"recurrence_week": 2},
        {"recurrence_week": 6, "recurrence_day": 1},
        {"recurrence_week": 1, "recurrence_day": 7},
        {"day_of_month": 5, "end_date": "soon"},
    ])
    def test_raises_recurrence_error(self, kwargs):
        with pytest.raises(RecurrenceError):
            dates_in_month(_template(**kwargs), "2026-01")

    def test_unknown_period(self):
        with pytest.raises(RecurrenceError):
            dates_in_month(_template("fortnightly", start_date="2026-01-01"), "2026-01")


class TestNextPaymentDate:
    def test_monthly_recovers_anchor_after_short_month(self):
        feb = next_payment_date(date(2026, 1, 31), "monthly", anchor_day=31)
        assert feb == date(2026, 2, 28)
        assert next_payment_date(feb, "monthly", anchor_day=31) == date(2026, 3, 31)

    def test_monthly_without_anchor_day_keeps_day(self):
        assert next_payment_date(date(2026, 2, 28), "monthly") == date(2026, 3, 28)

    def test_interval_periods(self):
        assert next_payment_date(date(2026, 1, 3), "weekly") == date(2026, 1, 10)
        assert next_payment_date(date(2026, 1, 31), "bi_weekly") == date(2026, 2, 14)

    def test_semi_annual(self):
        assert next_payment_date(date(2025, 8, 31), "semi_annually") == date(2026, 2, 28)

    def test_year_rollover(self):
        assert next_payment_date(date(2026, 12, 15), "monthly") == date(2027, 1, 15)

    def test_unknown_period(self):
        with pytest.raises(RecurrenceError):
            next_payment_date(date(2026, 1, 1), "yearly")


def test_monthly_equivalent():
    assert monthly_equivalent(10000, "monthly") == 10000
    assert monthly_equivalent(10000, "weekly") == 43333
    assert monthly_equivalent(10000, "bi_weekly") == 21667
    assert monthly_equivalent(12000, "semi_annually") == 2000
