import pytest

from utils.errors import NotFoundError, ReadOnlyError, ValidationError


@pytest.fixture
def phone(make_bill, synchronizer, instance_for):
    template = make_bill("Phone", 8000, day_of_month=20)
    data, _ = synchronizer.generate("2026-03")
    inst = instance_for(data, template.id)
    return inst, inst.occurrences[0]


class TestPayments:
    def test_partial_payments_leave_occurrence_open(self, payments, phone, month_dao):
        inst, occ = phone
        payments.add_payment("2026-03", inst.id, occ.id, 3000, "2026-03-05")
        payments.add_payment("2026-03", inst.id, occ.id, 2000, "2026-03-12")

        stored = month_dao.get("2026-03").find_instance(inst.id)[1].occurrences[0]
        assert not stored.is_closed
        assert stored.paid_amount == 5000
        assert stored.remaining == 3000
        assert payments.total_paid("2026-03", inst.id, occ.id) == 5000

    def test_overpayment_is_allowed(self, payments, phone):
        inst, occ = phone
        payments.add_payment("2026-03", inst.id, occ.id, 9000, "2026-03-05")
        assert payments.total_paid("2026-03", inst.id, occ.id) == 9000

    def test_update_and_remove(self, payments, phone):
        inst, occ = phone
        p = payments.add_payment("2026-03", inst.id, occ.id, 3000, "2026-03-05", payment_source_id=None)
        payments.update_payment("2026-03", inst.id, occ.id, p.id, amount=3500, date="2026-03-06")

        [stored] = payments.list_payments("2026-03", inst.id, occ.id)
        assert (stored.amount, stored.date) == (3500, "2026-03-06")

        payments.remove_payment("2026-03", inst.id, occ.id, p.id)
        assert payments.list_payments("2026-03", inst.id, occ.id) == []

    def test_add_then_remove_restores_prior_total(self, payments, phone, month_dao):
        inst, occ = phone
        payments.add_payment("2026-03", inst.id, occ.id, 2500, "2026-03-02")
        payments.add_payment("2026-03", inst.id, occ.id, 1500, "2026-03-09")
        before = payments.total_paid("2026-03", inst.id, occ.id)

        extra = payments.add_payment("2026-03", inst.id, occ.id, 1200, "2026-03-15")
        assert payments.total_paid("2026-03", inst.id, occ.id) == before + 1200

        payments.remove_payment("2026-03", inst.id, occ.id, extra.id)
        assert payments.total_paid("2026-03", inst.id, occ.id) == before == 4000
        stored = month_dao.get("2026-03").find_instance(inst.id)[1].occurrences[0]
        assert [p.amount for p in stored.payments] == [2500, 1500]
        assert stored.remaining == 4000

    def test_unknown_payment(self, payments, phone):
        inst, occ = phone
        with pytest.raises(NotFoundError):
            payments.remove_payment("2026-03", inst.id, occ.id, "missing")

    @pytest.mark.parametrize("amount", [0, -500, 12.5, True, "100"])
    def test_amount_must_be_positive_cents(self, payments, phone, amount):
        inst, occ = phone
        with pytest.raises(ValidationError):
            payments.add_payment("2026-03", inst.id, occ.id, amount, "2026-03-05")

    def test_date_must_be_iso(self, payments, phone):
        inst, occ = phone
        with pytest.raises(ValidationError):
            payments.add_payment("2026-03", inst.id, occ.id, 100, "03/05/2026")

    def test_locked_month(self, payments, months, phone):
        inst, occ = phone
        months.set_read_only("2026-03", True)
        with pytest.raises(ReadOnlyError):
            payments.add_payment("2026-03", inst.id, occ.id, 100, "2026-03-05")
        # reads still work
        assert payments.total_paid("2026-03", inst.id, occ.id) == 0
