import logging

from database.month_dao import MonthDAO
from models.instance import Payment, new_id, sum_payments
from services.month_access import (
    find_occurrence, load_month, load_writable, validate_amount, validate_date,
)
from utils.date_helpers import now_iso
from utils.errors import NotFoundError

logger = logging.getLogger(__name__)


class PaymentService:
    """Partial payments on an occurrence. Adding a payment never closes it."""

    def __init__(self, month_dao: MonthDAO):
        self._month_dao = month_dao

    def list_payments(self, month: str, instance_id: str, occurrence_id: str) -> list[Payment]:
        data = load_month(self._month_dao, month)
        _, _, occ = find_occurrence(data, instance_id, occurrence_id)
        return list(occ.payments)

    def total_paid(self, month: str, instance_id: str, occurrence_id: str) -> int:
        data = load_month(self._month_dao, month)
        _, _, occ = find_occurrence(data, instance_id, occurrence_id)
        return sum_payments(occ)

    def add_payment(
        self,
        month: str,
        instance_id: str,
        occurrence_id: str,
        amount: int,
        date: str,
        payment_source_id: int | None = None,
    ) -> Payment:
        validate_amount(amount)
        validate_date(date)
        data = load_writable(self._month_dao, month)
        _, instance, occ = find_occurrence(data, instance_id, occurrence_id)
        stamp = now_iso()
        payment = Payment(
            id=new_id(),
            amount=amount,
            date=date,
            payment_source_id=payment_source_id,
            created_at=stamp,
        )
        occ.payments.append(payment)
        occ.updated_at = stamp
        instance.updated_at = stamp
        self._month_dao.save(data)
        logger.info("Payment of %d added to '%s' (%s)", amount, instance.name, month)
        return payment

    def update_payment(
        self,
        month: str,
        instance_id: str,
        occurrence_id: str,
        payment_id: str,
        amount: int | None = None,
        date: str | None = None,
        payment_source_id: int | None = None,
    ) -> Payment:
        if amount is not None:
            validate_amount(amount)
        if date is not None:
            validate_date(date)
        data = load_writable(self._month_dao, month)
        _, instance, occ = find_occurrence(data, instance_id, occurrence_id)
        payment = occ.find_payment(payment_id)
        if payment is None:
            raise NotFoundError("Payment", payment_id)
        if amount is not None:
            payment.amount = amount
        if date is not None:
            payment.date = date
        if payment_source_id is not None:
            payment.payment_source_id = payment_source_id
        stamp = now_iso()
        occ.updated_at = stamp
        instance.updated_at = stamp
        self._month_dao.save(data)
        return payment

    def remove_payment(self, month: str, instance_id: str, occurrence_id: str, payment_id: str):
        data = load_writable(self._month_dao, month)
        _, instance, occ = find_occurrence(data, instance_id, occurrence_id)
        payment = occ.find_payment(payment_id)
        if payment is None:
            raise NotFoundError("Payment", payment_id)
        occ.payments.remove(payment)
        stamp = now_iso()
        occ.updated_at = stamp
        instance.updated_at = stamp
        self._month_dao.save(data)
        logger.info("Payment %s removed from '%s' (%s)", payment_id, instance.name, month)
