from datetime import date

import pytest
from freezegun import freeze_time

from utils.errors import NotFoundError, ValidationError


class TestCreate:
    def test_monthly_bill(self, templates, sources):
        checking = sources.create("Checking")
        t = templates.create("bill", " Rent ", 150000, "monthly",
                             day_of_month=1, payment_source_id=checking.id)
        assert t.name == "Rent"
        assert t.is_bill
        assert t.is_active
        assert t.payment_source_name == "Checking"

    @pytest.mark.parametrize("kwargs", [
        {"name": ""},
        {"kind": "transfer"},
        {"amount": 0},
        {"amount": 99.5},
        {"billing_period": "yearly"},
        {"day_of_month": 32},
        {"day_of_month": None},
        {"recurrence_week": 2, "recurrence_day": None, "day_of_month": None},
        {"recurrence_week": 2, "recurrence_day": 3},
        {"start_date": "2026-02-30"},
        {"start_date": "2026-05-01", "end_date": "2026-04-01"},
    ])
    def test_rejects_invalid(self, templates, kwargs):
        fields = dict(kind="bill", name="Rent", amount=100, billing_period="monthly", day_of_month=1)
        fields.update(kwargs)
        with pytest.raises(ValidationError):
            templates.create(**fields)

    def test_interval_periods_need_start_date(self, templates):
        with pytest.raises(ValidationError) as exc:
            templates.create("income", "Paycheck", 200000, "bi_weekly")
        assert exc.value.field == "start_date"

    def test_only_bills_fund_goals(self, templates, goals):
        goal = goals.create("Trip", 100000, "2026-12-31")
        with pytest.raises(ValidationError):
            templates.create("income", "Salary", 1000, "monthly", day_of_month=1, goal_id=goal.id)


class TestMaintain:
    def test_update_and_deactivate(self, templates, make_bill):
        t = make_bill("Rent", 150000)
        updated = templates.update(t.id, "bill", "Rent", 155000, "monthly", day_of_month=3)
        assert updated.amount == 155000
        templates.set_active(t.id, False)
        assert templates.get_active("bill") == []

    def test_delete(self, templates, make_bill):
        t = make_bill()
        templates.delete(t.id)
        with pytest.raises(NotFoundError):
            templates.get_by_id(t.id)


class TestNextDueDate:
    def test_after_given_date(self, templates, make_bill):
        t = make_bill(day_of_month=31)
        assert templates.next_due_date(t, after=date(2026, 2, 1)) == date(2026, 2, 28)
        assert templates.next_due_date(t, after=date(2026, 2, 28)) == date(2026, 3, 31)

    @freeze_time("2026-01-10")
    def test_defaults_to_today(self, templates, make_income):
        t = make_income("Paycheck", 200000, "bi_weekly", start_date="2026-01-03")
        assert templates.next_due_date(t) == date(2026, 1, 17)

    def test_ended_template(self, templates, make_bill):
        t = make_bill(day_of_month=5, end_date="2026-01-31")
        assert templates.next_due_date(t, after=date(2026, 2, 1)) is None


def test_monthly_cost(templates, make_income):
    t = make_income("Paycheck", 200000, "bi_weekly", start_date="2026-01-03")
    assert templates.monthly_cost(t) == 433333
