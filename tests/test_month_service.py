import pytest
from freezegun import freeze_time

from utils.errors import NotFoundError, ReadOnlyError, ValidationError


@pytest.fixture
def april(synchronizer, make_bill):
    make_bill("Rent", 150000, day_of_month=1)
    data, _ = synchronizer.generate("2026-04")
    return data


class TestReadOnly:
    def test_toggle(self, months, april):
        assert months.toggle_read_only("2026-04") is True
        assert months.get_month("2026-04").is_read_only
        assert months.toggle_read_only("2026-04") is False

    def test_locked_month_rejects_edits(self, months, april):
        months.set_read_only("2026-04", True)
        with pytest.raises(ReadOnlyError):
            months.add_expense("2026-04", "Coffee", 500)
        with pytest.raises(ReadOnlyError):
            months.create_adhoc_instance("2026-04", "bill", "Gift", 3000)

    def test_unknown_month(self, months):
        with pytest.raises(NotFoundError):
            months.set_read_only("2026-09", True)
        assert months.find_month("2026-09") is None

    def test_list_months(self, months, synchronizer, april):
        synchronizer.generate("2026-05")
        assert [r.month for r in months.list_months()] == ["2026-05", "2026-04"]


class TestBalances:
    def test_unknown_source(self, months, april):
        with pytest.raises(NotFoundError):
            months.update_bank_balances("2026-04", {99: 100})

    def test_negative_balance_allowed(self, months, sources, april):
        card = sources.create("Visa", "credit_card")
        data = months.update_bank_balances("2026-04", {card.id: -12000})
        assert data.bank_balances == {card.id: -12000}

    def test_savings_balances(self, months, sources, april):
        savings = sources.create("Emergency", "savings")
        months.update_savings_balances("2026-04", start={savings.id: 100000}, end={savings.id: 125000})
        data = months.get_month("2026-04")
        assert data.savings_balances_start == {savings.id: 100000}
        assert data.savings_balances_end == {savings.id: 125000}


class TestPayoffBills:
    @pytest.fixture
    def visa(self, sources):
        return sources.create("Visa", "credit_card", pay_off_monthly=True)

    @staticmethod
    def payoff(data):
        return [i for i in data.bill_instances if i.is_payoff_bill]

    def test_balance_creates_payoff_bill(self, months, visa, april):
        data = months.update_bank_balances("2026-04", {visa.id: -45000})

        [bill] = self.payoff(data)
        assert bill.name == "Visa Payoff"
        assert bill.payoff_source_id == visa.id
        assert bill.payment_source_id == visa.id
        assert bill.template_id is None
        assert not bill.is_adhoc
        assert [(o.expected_date, o.expected_amount, o.is_closed) for o in bill.occurrences] == [
            ("2026-04-28", 45000, False),
        ]

    def test_new_balance_updates_open_occurrence(self, months, visa, april):
        months.update_bank_balances("2026-04", {visa.id: -45000})
        data = months.update_bank_balances("2026-04", {visa.id: -52000})

        [bill] = self.payoff(data)
        assert [o.expected_amount for o in bill.occurrences] == [52000]
        assert not bill.is_closed

    @freeze_time("2026-04-20")
    def test_zero_balance_closes_it(self, months, visa, april):
        months.update_bank_balances("2026-04", {visa.id: -45000})
        data = months.update_bank_balances("2026-04", {visa.id: 0})

        [bill] = self.payoff(data)
        occ = bill.occurrences[0]
        assert occ.is_closed
        assert occ.expected_amount == 0
        assert occ.closed_date == "2026-04-20"

    @freeze_time("2026-04-20")
    def test_balance_after_payoff_adds_occurrence(self, months, visa, april):
        months.update_bank_balances("2026-04", {visa.id: -45000})
        months.update_bank_balances("2026-04", {visa.id: 0})
        data = months.update_bank_balances("2026-04", {visa.id: -3000})

        [bill] = self.payoff(data)
        assert [(o.sequence, o.expected_amount, o.is_closed) for o in bill.occurrences] == [
            (1, 0, True), (2, 3000, False),
        ]

    def test_cleared_balance_leaves_bill_alone(self, months, visa, april):
        months.update_bank_balances("2026-04", {visa.id: -45000})
        data = months.update_bank_balances("2026-04", {visa.id: None})

        [bill] = self.payoff(data)
        assert bill.occurrences[0].expected_amount == 45000

    def test_card_not_paid_off_monthly_gets_no_bill(self, months, sources, april):
        card = sources.create("Store card", "credit_card")
        data = months.update_bank_balances("2026-04", {card.id: -12000})
        assert self.payoff(data) == []

    def test_sync_keeps_payoff_bill(self, months, visa, synchronizer, month_dao, april):
        months.update_bank_balances("2026-04", {visa.id: -45000})
        synchronizer.sync("2026-04")
        assert len(self.payoff(month_dao.get("2026-04"))) == 1


class TestExpenses:
    def test_add_update_remove(self, months, april):
        expense = months.add_expense("2026-04", "Groceries", 8000, date="2026-04-03")
        months.update_expense("2026-04", expense.id, amount=8500)
        assert months.get_month("2026-04").variable_expenses_total == 8500

        months.remove_expense("2026-04", expense.id)
        assert months.get_month("2026-04").variable_expenses == []

    def test_blank_name(self, months, april):
        with pytest.raises(ValidationError):
            months.add_expense("2026-04", "  ", 100)


class TestAdhocInstances:
    def test_defaults_to_first_of_month(self, months, april):
        inst = months.create_adhoc_instance("2026-04", "income", "Tax refund", 60000)
        assert inst.is_adhoc
        assert inst.template_id is None
        assert inst.occurrences[0].expected_date == "2026-04-01"
        assert not inst.is_closed

    def test_paid_adhoc_is_closed_with_full_payment(self, months, april):
        inst = months.create_adhoc_instance("2026-04", "bill", "Vet", 30000, date="2026-04-11", paid=True)
        occ = inst.occurrences[0]
        assert occ.is_closed
        assert occ.paid_amount == 30000

    def test_date_outside_month(self, months, april):
        with pytest.raises(ValidationError):
            months.create_adhoc_instance("2026-04", "bill", "Vet", 30000, date="2026-05-11")

    def test_rename_and_delete(self, months, april):
        inst = months.create_adhoc_instance("2026-04", "bill", "Vet", 30000)
        months.rename_instance("2026-04", inst.id, "Vet visit")
        assert months.get_month("2026-04").find_instance(inst.id)[1].name == "Vet visit"

        months.delete_instance("2026-04", inst.id)
        assert months.get_month("2026-04").find_instance(inst.id) is None

    def test_generated_instance_cannot_be_deleted(self, months, april):
        with pytest.raises(ValidationError):
            months.delete_instance("2026-04", april.bill_instances[0].id)
