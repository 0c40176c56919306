import pytest
from freezegun import freeze_time

from utils.constants import ADHOC_REMAINDER_NOTE
from utils.errors import NotFoundError, ReadOnlyError, ValidationError


@pytest.fixture
def rent(make_bill, synchronizer, instance_for):
    """Generated 'Rent' instance for 2026-03: 150000 due on the 1st."""
    template = make_bill("Rent", 150000, day_of_month=1)
    data, _ = synchronizer.generate("2026-03")
    return instance_for(data, template.id)


@pytest.fixture
def paycheck(make_income, synchronizer, instance_for):
    """Bi-weekly paycheck in January 2026: the 3rd, 17th and 31st."""
    template = make_income("Paycheck", 200000, "bi_weekly", start_date="2026-01-03")
    data, _ = synchronizer.generate("2026-01")
    return instance_for(data, template.id)


def _reload(month_dao, month, instance_id):
    return month_dao.get(month).find_instance(instance_id)[1]


class TestCloseReopen:
    def test_close_without_payments(self, occurrences, rent, month_dao):
        occ = rent.occurrences[0]
        occurrences.close("2026-03", rent.id, occ.id, closed_date="2026-03-02")

        stored = _reload(month_dao, "2026-03", rent.id)
        assert stored.occurrences[0].is_closed
        assert stored.occurrences[0].closed_date == "2026-03-02"
        assert stored.paid_amount == 0
        assert stored.is_closed

    @freeze_time("2026-03-04")
    def test_close_defaults_to_today(self, occurrences, rent):
        occ = occurrences.close("2026-03", rent.id, rent.occurrences[0].id)
        assert occ.closed_date == "2026-03-04"

    def test_close_is_idempotent(self, occurrences, rent, month_dao):
        oid = rent.occurrences[0].id
        occurrences.close("2026-03", rent.id, oid, closed_date="2026-03-02")
        version = month_dao.get("2026-03").version
        occ = occurrences.close("2026-03", rent.id, oid, closed_date="2026-03-09")
        assert occ.closed_date == "2026-03-02"
        assert month_dao.get("2026-03").version == version

    def test_reopen_keeps_payments(self, occurrences, payments, rent, month_dao):
        oid = rent.occurrences[0].id
        payments.add_payment("2026-03", rent.id, oid, 50000, "2026-03-01")
        occurrences.close("2026-03", rent.id, oid, closed_date="2026-03-01")
        occurrences.reopen("2026-03", rent.id, oid)

        occ = _reload(month_dao, "2026-03", rent.id).occurrences[0]
        assert not occ.is_closed
        assert occ.closed_date is None
        assert occ.paid_amount == 50000

    def test_instance_closed_only_when_all_occurrences_closed(self, occurrences, paycheck, month_dao):
        first, second, _ = paycheck.occurrences
        occurrences.close("2026-01", paycheck.id, first.id, closed_date="2026-01-03")
        occurrences.close("2026-01", paycheck.id, second.id, closed_date="2026-01-17")
        assert not _reload(month_dao, "2026-01", paycheck.id).is_closed

        occurrences.close_instance("2026-01", paycheck.id, closed_date="2026-01-31")
        inst = _reload(month_dao, "2026-01", paycheck.id)
        assert inst.is_closed
        assert inst.occurrences[0].closed_date == "2026-01-03"

        occurrences.reopen_instance("2026-01", paycheck.id)
        assert _reload(month_dao, "2026-01", paycheck.id).closed_count == 0

    def test_locked_month_refuses_writes(self, occurrences, months, rent):
        months.set_read_only("2026-03", True)
        with pytest.raises(ReadOnlyError):
            occurrences.close("2026-03", rent.id, rent.occurrences[0].id)

    def test_unknown_ids(self, occurrences, rent):
        with pytest.raises(NotFoundError):
            occurrences.close("2026-03", "nope", rent.occurrences[0].id)
        with pytest.raises(NotFoundError):
            occurrences.close("2026-03", rent.id, "nope")
        with pytest.raises(NotFoundError):
            occurrences.close("2026-04", rent.id, rent.occurrences[0].id)


class TestTogglePaid:
    @freeze_time("2026-01-03")
    def test_income_with_actual_amount(self, occurrences, paycheck, month_dao):
        oid = paycheck.occurrences[0].id
        occ = occurrences.toggle_paid("2026-01", paycheck.id, oid, actual_amount=198000)
        assert occ.is_closed
        assert occ.closed_date == "2026-01-03"
        assert occ.paid_amount == 198000

        occ = occurrences.toggle_paid("2026-01", paycheck.id, oid)
        assert not occ.is_closed
        assert _reload(month_dao, "2026-01", paycheck.id).occurrences[0].paid_amount == 198000

    def test_actual_amount_rejected_for_bills(self, occurrences, rent):
        with pytest.raises(ValidationError):
            occurrences.toggle_paid("2026-03", rent.id, rent.occurrences[0].id, actual_amount=100)


class TestUpdate:
    def test_moving_a_date_resequences(self, occurrences, paycheck, month_dao):
        first = paycheck.occurrences[0]
        occurrences.update("2026-01", paycheck.id, first.id, expected_date="2026-01-20")

        occs = _reload(month_dao, "2026-01", paycheck.id).occurrences
        assert [o.expected_date for o in occs] == ["2026-01-17", "2026-01-20", "2026-01-31"]
        assert [o.sequence for o in occs] == [1, 2, 3]
        assert occs[1].id == first.id

    def test_date_must_stay_in_month(self, occurrences, rent):
        with pytest.raises(ValidationError):
            occurrences.update("2026-03", rent.id, rent.occurrences[0].id, expected_date="2026-04-01")

    def test_zero_amount_allowed(self, occurrences, rent):
        occ = occurrences.update("2026-03", rent.id, rent.occurrences[0].id, expected_amount=0)
        assert occ.expected_amount == 0

    def test_negative_amount_rejected(self, occurrences, rent):
        with pytest.raises(ValidationError):
            occurrences.update("2026-03", rent.id, rent.occurrences[0].id, expected_amount=-1)


class TestAdhoc:
    def test_add_and_remove(self, occurrences, rent, month_dao):
        occ = occurrences.add_adhoc("2026-03", rent.id, "2026-03-20", 2500, notes="Late fee")
        inst = _reload(month_dao, "2026-03", rent.id)
        assert len(inst.occurrences) == 2
        assert inst.expected_amount == 152500
        assert inst.occurrences[1].is_adhoc

        occurrences.remove("2026-03", rent.id, occ.id)
        assert len(_reload(month_dao, "2026-03", rent.id).occurrences) == 1

    def test_generated_occurrence_cannot_be_removed(self, occurrences, rent):
        with pytest.raises(ValidationError):
            occurrences.remove("2026-03", rent.id, rent.occurrences[0].id)

    def test_closed_adhoc_with_payments_cannot_be_removed(self, occurrences, payments, rent):
        occ = occurrences.add_adhoc("2026-03", rent.id, "2026-03-20", 2500)
        payments.add_payment("2026-03", rent.id, occ.id, 2500, "2026-03-20")
        occurrences.close("2026-03", rent.id, occ.id, closed_date="2026-03-20")
        with pytest.raises(ValidationError):
            occurrences.remove("2026-03", rent.id, occ.id)


class TestSplit:
    def test_split_closes_paid_part_and_carries_remainder(self, occurrences, rent, month_dao):
        oid = rent.occurrences[0].id
        closed, remainder = occurrences.split(
            "2026-03", rent.id, oid, 100000, closed_date="2026-03-01",
        )

        assert closed.is_closed
        assert closed.expected_amount == 100000
        assert closed.paid_amount == 100000
        assert remainder.expected_amount == 50000
        assert remainder.expected_date == "2026-03-31"
        assert remainder.is_adhoc
        assert remainder.notes == ADHOC_REMAINDER_NOTE

        inst = _reload(month_dao, "2026-03", rent.id)
        assert inst.expected_amount == 150000
        assert not inst.is_closed

    def test_existing_payments_count_toward_paid_amount(self, occurrences, payments, rent):
        oid = rent.occurrences[0].id
        payments.add_payment("2026-03", rent.id, oid, 60000, "2026-03-01")
        closed, _ = occurrences.split("2026-03", rent.id, oid, 100000, closed_date="2026-03-05")
        assert [p.amount for p in closed.payments] == [60000, 40000]

    @pytest.mark.parametrize("amount", [0, 150000, 200000])
    def test_paid_amount_must_be_partial(self, occurrences, rent, amount):
        with pytest.raises(ValidationError):
            occurrences.split("2026-03", rent.id, rent.occurrences[0].id, amount)

    def test_closed_occurrence_cannot_be_split(self, occurrences, rent):
        oid = rent.occurrences[0].id
        occurrences.close("2026-03", rent.id, oid, closed_date="2026-03-01")
        with pytest.raises(ValidationError):
            occurrences.split("2026-03", rent.id, oid, 1000)
