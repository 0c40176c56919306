from datetime import date

import pytest
from freezegun import freeze_time

from utils.constants import SCHEDULE_ENDED_NOTE
from utils.errors import ReadOnlyError, ValidationError

FUNDED_MONTHS = ["2025-06", "2025-07", "2025-08", "2025-09", "2025-10", "2025-11", "2025-12", "2026-01"]


@pytest.fixture
def laptop(goals):
    return goals.create("Laptop", 100000, "2026-06-01", created_at="2025-06-01T00:00:00Z")


@pytest.fixture
def funded(laptop, make_bill, synchronizer, month_dao, payments, occurrences, instance_for):
    """A monthly 10000 transfer on the 15th toward the laptop, paid June 2025 through January 2026."""
    transfer = make_bill("Laptop fund", 10000, day_of_month=15, goal_id=laptop.id)
    for month in FUNDED_MONTHS:
        synchronizer.sync(month)
        data = month_dao.get(month)
        inst = instance_for(data, transfer.id)
        occ = inst.occurrences[0]
        payments.add_payment(month, inst.id, occ.id, 10000, occ.expected_date)
        occurrences.close(month, inst.id, occ.id, closed_date=occ.expected_date)
    return transfer


class TestLifecycle:
    def test_pause_resume(self, goals, laptop):
        assert goals.pause(laptop.id).status == "paused"
        assert goals.resume(laptop.id).status == "saving"

    def test_complete(self, goals, laptop):
        goal = goals.complete(laptop.id)
        assert goal.status == "bought"
        assert goal.completed_at
        with pytest.raises(ValidationError):
            goals.pause(laptop.id)

    def test_archive_restores_previous_status(self, goals, laptop):
        goals.pause(laptop.id)
        archived = goals.archive(laptop.id)
        assert archived.status == "archived"
        assert archived.previous_status == "paused"
        assert goals.unarchive(laptop.id).status == "paused"

    def test_invalid_goal(self, goals):
        with pytest.raises(ValidationError):
            goals.create("Car", 0, "2027-01-01")
        with pytest.raises(ValidationError):
            goals.create("Car", 100, "next year")

    def test_only_bills_can_be_linked(self, goals, laptop, make_income):
        salary = make_income()
        with pytest.raises(ValidationError):
            goals.link_template(laptop.id, salary.id)

    def test_link_and_unlink(self, goals, laptop, make_bill):
        bill = make_bill("Savings transfer", 5000)
        assert goals.link_template(laptop.id, bill.id).goal_id == laptop.id
        assert [t.id for t in goals.linked_templates(laptop.id)] == [bill.id]
        assert goals.unlink_template(laptop.id, bill.id).goal_id is None


class TestSavedAmount:
    def test_sums_every_linked_payment(self, goals, laptop, funded):
        assert goals.calculate_saved_amount(laptop.id) == 80000

    def test_unpaid_closures_do_not_count(self, goals, laptop, make_bill, synchronizer, occurrences, instance_for):
        bill = make_bill("Laptop fund", 10000, goal_id=laptop.id)
        data, _ = synchronizer.generate("2026-02")
        inst = instance_for(data, bill.id)
        occurrences.close("2026-02", inst.id, inst.occurrences[0].id, closed_date="2026-02-15")
        assert goals.calculate_saved_amount(laptop.id) == 0

    def test_direct_contribution_counts(self, goals, laptop, funded, month_dao):
        inst = goals.contribute(laptop.id, 5000, "2026-01-20")
        assert inst.goal_id == laptop.id
        assert inst.is_adhoc
        assert inst.is_closed
        assert goals.calculate_saved_amount(laptop.id) == 85000

    def test_contribution_generates_missing_month(self, goals, laptop, month_dao):
        goals.contribute(laptop.id, 2500, "2026-04-02")
        assert month_dao.exists("2026-04")
        assert goals.calculate_saved_amount(laptop.id) == 2500

    def test_contribution_to_locked_month(self, goals, laptop, funded, months):
        months.set_read_only("2026-01", True)
        with pytest.raises(ReadOnlyError):
            goals.contribute(laptop.id, 5000, "2026-01-20")

    def test_contribution_to_finished_goal(self, goals, laptop):
        goals.abandon(laptop.id)
        with pytest.raises(ValidationError):
            goals.contribute(laptop.id, 5000, "2026-01-20")


class TestTemperature:
    @pytest.fixture
    def yearly(self, goals):
        # 36400 over 364 days: 100 per day
        return goals.create("Bike", 36400, "2026-12-31", created_at="2026-01-01T00:00:00Z")

    def test_expected_is_linear(self, goals, yearly):
        assert goals.expected_amount(yearly, date(2026, 1, 1)) == 0
        assert goals.expected_amount(yearly, date(2026, 7, 1)) == 18100
        assert goals.expected_amount(yearly, date(2027, 3, 1)) == 36400

    @pytest.mark.parametrize("saved, expected", [
        (20000, "ahead"),
        (15000, "on_track"),
        (10000, "behind"),
        (36400, "ahead"),
    ])
    def test_buckets(self, goals, yearly, saved, expected):
        assert goals.temperature(yearly, saved, date(2026, 7, 1)) == expected

    @freeze_time("2026-01-20")
    def test_progress(self, goals, laptop, funded):
        progress = goals.get_progress(laptop.id)
        assert progress.saved_amount == 80000
        # 233 of 365 days elapsed
        assert progress.expected_amount == 63836
        assert progress.temperature == "ahead"


class TestProjection:
    def test_simulates_until_target(self, goals, laptop, funded):
        result = goals.get_goal_payments(laptop.id, as_of=date(2026, 1, 20))

        completed = [p for p in result.payments if p.status == "completed"]
        simulated = [p for p in result.payments if p.is_simulated]
        assert len(completed) == 8
        assert [p.date for p in simulated] == ["2026-02-15", "2026-03-15"]
        assert result.payments[-1].balance == 100000
        assert result.total_saved == 80000
        assert result.total_remaining == 20000
        assert result.progress_percentage == 80
        assert result.projected_completion_date == "2026-03-15"

    def test_open_occurrence_counts_as_upcoming(self, goals, laptop, funded, synchronizer):
        synchronizer.sync("2026-02")
        result = goals.get_goal_payments(laptop.id, as_of=date(2026, 1, 20))
        upcoming = [p for p in result.payments if p.status == "upcoming"]
        assert [(p.date, p.is_simulated) for p in upcoming] == [
            ("2026-02-15", False), ("2026-03-15", True),
        ]
        assert result.projected_completion_date == "2026-03-15"

    def test_mixed_schedule_is_ordered_with_rising_balance(
        self, goals, make_bill, synchronizer, month_dao, payments, occurrences, instance_for
    ):
        goal = goals.create("Car", 100000, "2026-12-31", created_at="2026-01-01T00:00:00Z")
        jar = make_bill("Coffee jar", 2000, "weekly", start_date="2026-01-02", goal_id=goal.id)
        transfer = make_bill("Car fund", 10000, day_of_month=15, goal_id=goal.id)
        synchronizer.sync("2026-01")
        synchronizer.sync("2026-02")
        january = month_dao.get("2026-01")
        for template in (jar, transfer):
            inst = instance_for(january, template.id)
            for occ in inst.occurrences:
                payments.add_payment("2026-01", inst.id, occ.id, template.amount, occ.expected_date)
                occurrences.close("2026-01", inst.id, occ.id, closed_date=occ.expected_date)

        result = goals.get_goal_payments(goal.id, as_of=date(2026, 1, 31))
        entries = result.payments

        completed = [p for p in entries if p.status == "completed"]
        scheduled = [p for p in entries if p.status == "upcoming" and not p.is_simulated]
        simulated = [p for p in entries if p.is_simulated]
        assert len(completed) == 6          # five Fridays plus the 15th
        assert len(scheduled) == 5          # February, still open
        assert {p.description for p in simulated} == {"Coffee jar", "Car fund"}
        assert result.total_saved == 20000

        dates = [p.date for p in entries]
        assert dates == sorted(dates)
        balances = [p.balance for p in entries]
        assert all(a <= b for a, b in zip(balances, balances[1:]))
        assert balances[-1] == sum(p.amount for p in entries)
        assert balances[-1] >= goal.target_amount
        assert min(p.date for p in simulated) > max(p.date for p in scheduled)

    def test_paused_goal_is_not_simulated(self, goals, laptop, funded):
        goals.pause(laptop.id)
        result = goals.get_goal_payments(laptop.id, as_of=date(2026, 1, 20))
        assert all(not p.is_simulated for p in result.payments)
        assert result.projected_completion_date is None

    def test_wire_shape(self, goals, laptop, funded):
        d = goals.get_goal_payments(laptop.id, as_of=date(2026, 1, 20)).to_dict()
        assert set(d["summary"]) == {
            "total_saved", "total_remaining", "progress_percentage", "projected_completion_date",
        }
        assert set(d["payments"][0]) == {"date", "description", "amount", "balance", "status"}


class TestRemoveSchedule:
    def test_closes_future_occurrences_and_keeps_history(
        self, goals, laptop, funded, synchronizer, month_dao, template_dao, instance_for
    ):
        synchronizer.sync("2026-02")
        result = goals.remove_schedule(laptop.id, funded.id, as_of=date(2026, 1, 20))

        assert result.closed_count == 1
        template = template_dao.get_by_id(funded.id)
        assert not template.is_active
        assert "[Schedule ended on Jan 20, 2026]" in template.notes
        occ = instance_for(month_dao.get("2026-02"), funded.id).occurrences[0]
        assert occ.is_closed
        assert occ.paid_amount == 0
        assert SCHEDULE_ENDED_NOTE in occ.notes
        assert goals.calculate_saved_amount(laptop.id) == 80000

    def test_stops_simulation(self, goals, laptop, funded):
        goals.remove_schedule(laptop.id, funded.id, as_of=date(2026, 1, 20))
        result = goals.get_goal_payments(laptop.id, as_of=date(2026, 1, 20))
        assert not any(p.is_simulated for p in result.payments)

    def test_locked_months_are_skipped(self, goals, laptop, funded, synchronizer, months):
        synchronizer.sync("2026-02")
        months.set_read_only("2026-02", True)
        result = goals.remove_schedule(laptop.id, funded.id, as_of=date(2026, 1, 20))
        assert result.closed_count == 0
        assert result.skipped_months == ["2026-02"]

    def test_unlinked_template(self, goals, laptop, make_bill):
        other = make_bill("Gym")
        with pytest.raises(ValidationError):
            goals.remove_schedule(laptop.id, other.id)
