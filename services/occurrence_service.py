import logging

from database.month_dao import MonthDAO
from models.instance import Instance, Occurrence, Payment, new_id
from models.monthly_data import MonthlyData
from services.month_access import (
    find_instance, find_occurrence, load_writable, validate_amount, validate_date,
)
from utils.constants import ADHOC_REMAINDER_NOTE
from utils.date_helpers import month_range, now_iso, today_str
from utils.errors import ValidationError

logger = logging.getLogger(__name__)


class OccurrenceService:
    """Open/closed lifecycle of occurrences, plus ad-hoc add, remove and split.

    Closing means "no more payments expected" and never looks at the payment
    total. Every write reloads the month and refuses locked months first.
    """

    def __init__(self, month_dao: MonthDAO):
        self._month_dao = month_dao

    # ── Open / closed ────────────────────────────────────────────────────────

    def close(
        self,
        month: str,
        instance_id: str,
        occurrence_id: str,
        closed_date: str | None = None,
        notes: str | None = None,
        payment_source_id: int | None = None,
    ) -> Occurrence:
        data = load_writable(self._month_dao, month)
        _, instance, occ = find_occurrence(data, instance_id, occurrence_id)
        if occ.is_closed:
            return occ
        closed_date = validate_date(closed_date, "closed_date") if closed_date else today_str()
        self._close(occ, closed_date)
        if notes is not None:
            occ.notes = notes.strip()
        if payment_source_id is not None:
            occ.payment_source_id = payment_source_id
        self._save(data, instance)
        logger.info("Closed occurrence %s of '%s' (%s)", occ.id, instance.name, month)
        return occ

    def reopen(self, month: str, instance_id: str, occurrence_id: str) -> Occurrence:
        data = load_writable(self._month_dao, month)
        _, instance, occ = find_occurrence(data, instance_id, occurrence_id)
        if not occ.is_closed:
            return occ
        self._reopen(occ)
        self._save(data, instance)
        logger.info("Reopened occurrence %s of '%s' (%s)", occ.id, instance.name, month)
        return occ

    def toggle_paid(
        self,
        month: str,
        instance_id: str,
        occurrence_id: str,
        actual_amount: int | None = None,
    ) -> Occurrence:
        """Flip closed state. Closing an income with actual_amount records it as received."""
        data = load_writable(self._month_dao, month)
        kind, instance, occ = find_occurrence(data, instance_id, occurrence_id)

        if occ.is_closed:
            self._reopen(occ)
        else:
            if actual_amount is not None:
                if kind != "income":
                    raise ValidationError(
                        "actual_amount can only be recorded when closing an income.",
                        field="actual_amount",
                    )
                validate_amount(actual_amount, "actual_amount")
            closed_date = today_str()
            self._close(occ, closed_date)
            if actual_amount is not None:
                occ.payments.append(Payment(
                    id=new_id(), amount=actual_amount, date=closed_date,
                    payment_source_id=instance.payment_source_id, created_at=now_iso(),
                ))

        self._save(data, instance)
        return occ

    def close_instance(self, month: str, instance_id: str, closed_date: str | None = None) -> Instance:
        data = load_writable(self._month_dao, month)
        _, instance = find_instance(data, instance_id)
        closed_date = validate_date(closed_date, "closed_date") if closed_date else today_str()
        for occ in instance.occurrences:
            if not occ.is_closed:
                self._close(occ, closed_date)
        self._save(data, instance)
        return instance

    def reopen_instance(self, month: str, instance_id: str) -> Instance:
        data = load_writable(self._month_dao, month)
        _, instance = find_instance(data, instance_id)
        for occ in instance.occurrences:
            if occ.is_closed:
                self._reopen(occ)
        self._save(data, instance)
        return instance

    # ── Edits ────────────────────────────────────────────────────────────────

    def update(
        self,
        month: str,
        instance_id: str,
        occurrence_id: str,
        expected_date: str | None = None,
        expected_amount: int | None = None,
        notes: str | None = None,
    ) -> Occurrence:
        """Edit expected fields. Payments and closed state are left alone."""
        data = load_writable(self._month_dao, month)
        _, instance, occ = find_occurrence(data, instance_id, occurrence_id)
        if expected_date is not None:
            occ.expected_date = self._date_in_month(expected_date, month)
        if expected_amount is not None:
            occ.expected_amount = validate_amount(expected_amount, "expected_amount", allow_zero=True)
        if notes is not None:
            occ.notes = notes.strip()
        occ.updated_at = now_iso()
        instance.resequence()
        self._save(data, instance)
        return occ

    def add_adhoc(
        self,
        month: str,
        instance_id: str,
        expected_date: str,
        expected_amount: int,
        notes: str = "",
    ) -> Occurrence:
        data = load_writable(self._month_dao, month)
        _, instance = find_instance(data, instance_id)
        stamp = now_iso()
        occ = Occurrence(
            id=new_id(),
            sequence=len(instance.occurrences) + 1,
            expected_date=self._date_in_month(expected_date, month),
            expected_amount=validate_amount(expected_amount, "expected_amount"),
            is_adhoc=True,
            notes=(notes or "").strip(),
            created_at=stamp,
            updated_at=stamp,
        )
        instance.occurrences.append(occ)
        instance.resequence()
        self._save(data, instance)
        logger.info("Added ad-hoc occurrence to '%s' (%s)", instance.name, month)
        return occ

    def remove(self, month: str, instance_id: str, occurrence_id: str):
        """Hard-delete an ad-hoc occurrence that carries no settled history."""
        data = load_writable(self._month_dao, month)
        _, instance, occ = find_occurrence(data, instance_id, occurrence_id)
        if not occ.is_adhoc:
            raise ValidationError("Only ad-hoc occurrences can be removed.", field="occurrence_id")
        if occ.is_closed and occ.payments:
            raise ValidationError(
                "Reopen the occurrence or remove its payments before deleting it.",
                field="occurrence_id",
            )
        instance.occurrences.remove(occ)
        instance.resequence()
        self._save(data, instance)
        logger.info("Removed ad-hoc occurrence %s from '%s' (%s)", occurrence_id, instance.name, month)

    def split(
        self,
        month: str,
        instance_id: str,
        occurrence_id: str,
        paid_amount: int,
        closed_date: str | None = None,
        payment_source_id: int | None = None,
        notes: str | None = None,
    ) -> tuple[Occurrence, Occurrence]:
        """Close the paid part of an occurrence and carry the rest to month end.

        Returns (closed_occurrence, remainder_occurrence).
        """
        data = load_writable(self._month_dao, month)
        _, instance, occ = find_occurrence(data, instance_id, occurrence_id)
        if occ.is_closed:
            raise ValidationError("Cannot split an already closed occurrence.", field="occurrence_id")
        validate_amount(paid_amount, "paid_amount")
        if paid_amount >= occ.expected_amount:
            raise ValidationError("Paid amount must be less than the expected amount.", field="paid_amount")
        closed_date = validate_date(closed_date, "closed_date") if closed_date else today_str()

        stamp = now_iso()
        remainder_amount = occ.expected_amount - paid_amount
        shortfall = paid_amount - occ.paid_amount
        if shortfall > 0:
            occ.payments.append(Payment(
                id=new_id(), amount=shortfall, date=closed_date,
                payment_source_id=payment_source_id, created_at=stamp,
            ))
        occ.expected_amount = paid_amount
        self._close(occ, closed_date)
        if payment_source_id is not None:
            occ.payment_source_id = payment_source_id
        if notes is not None:
            occ.notes = notes.strip()

        remainder = Occurrence(
            id=new_id(),
            sequence=len(instance.occurrences) + 1,
            expected_date=month_range(month)[1],
            expected_amount=remainder_amount,
            is_adhoc=True,
            notes=ADHOC_REMAINDER_NOTE,
            created_at=stamp,
            updated_at=stamp,
        )
        instance.occurrences.append(remainder)
        instance.resequence()
        self._save(data, instance)
        logger.info(
            "Split occurrence of '%s' (%s): paid %d, remaining %d",
            instance.name, month, paid_amount, remainder_amount,
        )
        return occ, remainder

    # ── Helpers ──────────────────────────────────────────────────────────────

    @staticmethod
    def _close(occ: Occurrence, closed_date: str):
        occ.is_closed = True
        occ.closed_date = closed_date
        occ.updated_at = now_iso()

    @staticmethod
    def _reopen(occ: Occurrence):
        occ.is_closed = False
        occ.closed_date = None
        occ.updated_at = now_iso()

    @staticmethod
    def _date_in_month(value: str, month: str) -> str:
        validate_date(value, "expected_date")
        if not value.startswith(month):
            raise ValidationError(
                f"Date {value} is outside {month}.", field="expected_date"
            )
        return value

    def _save(self, data: MonthlyData, instance: Instance):
        instance.updated_at = now_iso()
        self._month_dao.save(data)
