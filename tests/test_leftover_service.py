import pytest

from utils.errors import NotFoundError


@pytest.fixture
def accounts(sources):
    return {
        "checking": sources.create("Checking"),
        "savings": sources.create("Savings", "savings"),
        "card": sources.create("Visa", "credit_card", pay_off_monthly=True),
        "joint": sources.create("Joint", exclude_from_leftover=True),
    }


@pytest.fixture
def march(accounts, make_bill, make_income, synchronizer, months, occurrences, payments, instance_for):
    """March 2026: rent paid and closed, phone part-paid, salary still expected."""
    rent = make_bill("Rent", 150000, day_of_month=1)
    phone = make_bill("Phone", 8000, day_of_month=20)
    salary = make_income("Salary", 400000, day_of_month=25)
    data, _ = synchronizer.generate("2026-03")

    rent_inst = instance_for(data, rent.id)
    rent_occ = rent_inst.occurrences[0]
    payments.add_payment("2026-03", rent_inst.id, rent_occ.id, 150000, "2026-03-01")
    occurrences.close("2026-03", rent_inst.id, rent_occ.id, closed_date="2026-03-01")

    phone_inst = instance_for(data, phone.id)
    payments.add_payment("2026-03", phone_inst.id, phone_inst.occurrences[0].id, 3000, "2026-03-10")

    months.add_expense("2026-03", "Groceries", 12000, date="2026-03-08")
    months.update_bank_balances("2026-03", {
        accounts["checking"].id: 500000,
        accounts["savings"].id: 1000000,
        accounts["card"].id: -45000,
        accounts["joint"].id: 70000,
    })
    return {"phone": phone_inst, "salary": instance_for(data, salary.id)}


class TestLeftover:
    def test_leftover(self, leftover, march):
        summary = leftover.calculate_leftover("2026-03")

        assert summary.starting_balance == 500000
        assert summary.balance_source == "entered"
        assert summary.bills.expected == 203000
        assert summary.bills.actual == 153000
        assert summary.bills.remaining == 50000
        assert (summary.bills.closed_count, summary.bills.total_count) == (1, 3)
        assert summary.incomes.expected == 400000
        assert summary.incomes.actual == 0
        assert summary.variable_expenses_total == 12000
        # 500000 + 400000 - (150000 + 8000 + 45000 owed on the card) - 12000
        assert summary.leftover == 685000
        assert summary.missing_balances == []

    def test_closing_short_uses_actual_payments(self, leftover, occurrences, march):
        phone = march["phone"]
        occurrences.close("2026-03", phone.id, phone.occurrences[0].id, closed_date="2026-03-20")
        assert leftover.calculate_leftover("2026-03").leftover == 690000

    def test_received_income_counts_what_arrived(self, leftover, payments, occurrences, march):
        salary = march["salary"]
        oid = salary.occurrences[0].id
        payments.add_payment("2026-03", salary.id, oid, 390000, "2026-03-25")
        occurrences.close("2026-03", salary.id, oid, closed_date="2026-03-25")
        assert leftover.calculate_leftover("2026-03").leftover == 675000

    def test_recomputed_on_every_call(self, leftover, months, march):
        before = leftover.calculate_leftover("2026-03").leftover
        months.add_expense("2026-03", "Gas", 4000)
        assert leftover.calculate_leftover("2026-03").leftover == before - 4000

    def test_wire_shape(self, leftover, march):
        d = leftover.calculate_leftover("2026-03").to_dict()
        assert {"starting_balance", "bills", "incomes", "variable_expenses_total", "leftover"} <= d.keys()
        assert set(d["bills"]) == {"expected", "actual", "remaining", "closed_count", "total_count"}

    def test_missing_balance_is_reported(self, leftover, months, accounts, march):
        months.update_bank_balances("2026-03", {accounts["checking"].id: None})
        summary = leftover.calculate_leftover("2026-03")
        assert summary.missing_balances == [accounts["checking"].id]

    def test_carries_forward_previous_leftover(self, leftover, synchronizer, march):
        synchronizer.sync("2026-04")
        summary = leftover.calculate_leftover("2026-04")
        assert summary.balance_source == "carried_forward"
        assert summary.starting_balance == 685000

    def test_no_balances_anywhere(self, leftover, make_bill, synchronizer):
        make_bill("Rent", 100000)
        synchronizer.generate("2026-05")
        summary = leftover.calculate_leftover("2026-05")
        assert summary.balance_source == "none"
        assert summary.starting_balance == 0
        assert summary.leftover == -100000

    def test_card_owed_is_subtracted(self, leftover, sources, months, make_bill, synchronizer):
        checking = sources.create("Checking")
        card = sources.create("Visa", "credit_card", pay_off_monthly=True)
        make_bill("Rent", 100000)
        synchronizer.generate("2026-06")
        months.update_bank_balances("2026-06", {checking.id: 500000, card.id: -45000})

        summary = leftover.calculate_leftover("2026-06")

        assert summary.starting_balance == 500000
        assert summary.bills.expected == 145000
        assert summary.leftover == 355000

    def test_unknown_month(self, leftover):
        with pytest.raises(NotFoundError):
            leftover.calculate_leftover("2031-01")
