import logging

from database.month_dao import MonthDAO
from database.payment_source_dao import PaymentSourceDAO
from models.instance import Instance, Occurrence, Payment, new_id
from models.monthly_data import MonthlyData, MonthRef, VariableExpense
from services.month_access import (
    find_instance, load_month, load_writable, validate_amount, validate_date, validate_month,
)
from utils.constants import PAYOFF_DUE_DAY, TEMPLATE_KINDS
from utils.date_helpers import now_iso, today_str
from utils.errors import NotFoundError, ValidationError

logger = logging.getLogger(__name__)


class MonthService:
    def __init__(self, month_dao: MonthDAO, source_dao: PaymentSourceDAO):
        self._month_dao = month_dao
        self._source_dao = source_dao

    def get_month(self, month: str) -> MonthlyData:
        return load_month(self._month_dao, month)

    def find_month(self, month: str) -> MonthlyData | None:
        validate_month(month)
        return self._month_dao.get(month)

    def list_months(self) -> list[MonthRef]:
        return self._month_dao.list()

    # ── Lock ─────────────────────────────────────────────────────────────────

    def set_read_only(self, month: str, is_read_only: bool) -> bool:
        validate_month(month)
        if not self._month_dao.set_read_only(month, is_read_only):
            raise NotFoundError("Month", month)
        logger.info("Month %s %s", month, "locked" if is_read_only else "unlocked")
        return is_read_only

    def toggle_read_only(self, month: str) -> bool:
        data = load_month(self._month_dao, month)
        return self.set_read_only(month, not data.is_read_only)

    # ── Balances ─────────────────────────────────────────────────────────────

    def update_bank_balances(self, month: str, balances: dict[int, int | None]) -> MonthlyData:
        """Set balances per payment source; a None value clears that source."""
        data = load_writable(self._month_dao, month)
        for source_id, amount in balances.items():
            source_id = self._known_source(source_id)
            if amount is None:
                data.bank_balances.pop(source_id, None)
            else:
                data.bank_balances[source_id] = self._balance(amount)
        self._reconcile_payoff_bills(data)
        return self._month_dao.save(data)

    def _reconcile_payoff_bills(self, data: MonthlyData):
        """Keep one '<card> Payoff' bill per pay-off-monthly source in step with its balance.

        The amount owed is the absolute balance. A zero balance closes the open
        occurrence; a source with no entered balance is left alone.
        """
        stamp = now_iso()
        due = f"{data.month}-{PAYOFF_DUE_DAY:02d}"
        covered = set()
        for instance in data.bill_instances:
            if not instance.is_payoff_bill:
                continue
            covered.add(instance.payoff_source_id)
            balance = data.bank_balances.get(instance.payoff_source_id)
            if balance is None:
                continue
            owed = abs(balance)
            open_occ = next((o for o in instance.occurrences if not o.is_closed), None)
            if owed > 0:
                if open_occ is not None:
                    open_occ.expected_amount = owed
                    open_occ.updated_at = stamp
                else:
                    instance.occurrences.append(Occurrence(
                        id=new_id(), sequence=len(instance.occurrences) + 1,
                        expected_date=due, expected_amount=owed,
                        payment_source_id=instance.payment_source_id,
                        created_at=stamp, updated_at=stamp,
                    ))
            elif open_occ is not None:
                open_occ.expected_amount = 0
                open_occ.is_closed = True
                open_occ.closed_date = today_str()
                open_occ.updated_at = stamp
            instance.resequence()
            instance.updated_at = stamp
            logger.info("Payoff bill '%s' in %s now owes %d", instance.name, data.month, owed)

        for source in self._source_dao.get_all():
            if not (source.pay_off_monthly and source.is_active) or source.id in covered:
                continue
            balance = data.bank_balances.get(source.id)
            if not balance:
                continue
            owed = abs(balance)
            data.bill_instances.append(Instance(
                id=new_id(), month=data.month, name=f"{source.name} Payoff",
                billing_period="monthly", default_amount=owed, template_id=None,
                occurrences=[Occurrence(
                    id=new_id(), sequence=1, expected_date=due, expected_amount=owed,
                    payment_source_id=source.id, created_at=stamp, updated_at=stamp,
                )],
                is_adhoc=False, is_default=False,
                is_payoff_bill=True, payoff_source_id=source.id,
                payment_source_id=source.id, created_at=stamp, updated_at=stamp,
            ))
            logger.info("Created payoff bill for '%s' in %s (%d owed)", source.name, data.month, owed)

    def update_savings_balances(
        self,
        month: str,
        start: dict[int, int] | None = None,
        end: dict[int, int] | None = None,
    ) -> MonthlyData:
        data = load_writable(self._month_dao, month)
        if start is not None:
            data.savings_balances_start = {
                self._known_source(k): self._balance(v) for k, v in start.items()
            }
        if end is not None:
            data.savings_balances_end = {
                self._known_source(k): self._balance(v) for k, v in end.items()
            }
        return self._month_dao.save(data)

    # ── Variable expenses ────────────────────────────────────────────────────

    def add_expense(
        self,
        month: str,
        name: str,
        amount: int,
        date: str | None = None,
        payment_source_id: int | None = None,
    ) -> VariableExpense:
        name = (name or "").strip()
        if not name:
            raise ValidationError("Expense name cannot be empty.", field="name")
        validate_amount(amount)
        if date:
            validate_date(date)
        data = load_writable(self._month_dao, month)
        stamp = now_iso()
        expense = VariableExpense(
            id=new_id(), name=name, amount=amount, date=date or None,
            payment_source_id=payment_source_id, created_at=stamp, updated_at=stamp,
        )
        data.variable_expenses.append(expense)
        self._month_dao.save(data)
        return expense

    def update_expense(
        self,
        month: str,
        expense_id: str,
        name: str | None = None,
        amount: int | None = None,
        date: str | None = None,
        payment_source_id: int | None = None,
    ) -> VariableExpense:
        if amount is not None:
            validate_amount(amount)
        if date:
            validate_date(date)
        data = load_writable(self._month_dao, month)
        expense = data.find_expense(expense_id)
        if expense is None:
            raise NotFoundError("Expense", expense_id)
        if name is not None:
            if not name.strip():
                raise ValidationError("Expense name cannot be empty.", field="name")
            expense.name = name.strip()
        if amount is not None:
            expense.amount = amount
        if date is not None:
            expense.date = date or None
        if payment_source_id is not None:
            expense.payment_source_id = payment_source_id
        expense.updated_at = now_iso()
        self._month_dao.save(data)
        return expense

    def remove_expense(self, month: str, expense_id: str):
        data = load_writable(self._month_dao, month)
        expense = data.find_expense(expense_id)
        if expense is None:
            raise NotFoundError("Expense", expense_id)
        data.variable_expenses.remove(expense)
        self._month_dao.save(data)

    # ── Instances ────────────────────────────────────────────────────────────

    def create_adhoc_instance(
        self,
        month: str,
        kind: str,
        name: str,
        amount: int,
        date: str | None = None,
        payment_source_id: int | None = None,
        category_id: int | None = None,
        goal_id: int | None = None,
        paid: bool = False,
    ) -> Instance:
        """A one-off bill or income with a single occurrence (default: the 1st).

        paid=True closes the occurrence and records the full amount as paid.
        """
        if kind not in TEMPLATE_KINDS:
            raise ValidationError(f"Kind must be one of {', '.join(TEMPLATE_KINDS)}.", field="kind")
        name = (name or "").strip()
        if not name:
            raise ValidationError("Name cannot be empty.", field="name")
        validate_amount(amount)
        date = date or f"{month}-01"
        validate_date(date)
        if not date.startswith(month):
            raise ValidationError(f"Date {date} is outside {month}.", field="date")

        data = load_writable(self._month_dao, month)
        stamp = now_iso()
        occ = Occurrence(
            id=new_id(), sequence=1, expected_date=date, expected_amount=amount,
            is_adhoc=True, payment_source_id=payment_source_id,
            created_at=stamp, updated_at=stamp,
        )
        if paid:
            occ.is_closed = True
            occ.closed_date = date
            occ.payments.append(Payment(
                id=new_id(), amount=amount, date=date,
                payment_source_id=payment_source_id, created_at=stamp,
            ))
        instance = Instance(
            id=new_id(), month=month, name=name, billing_period="monthly",
            default_amount=amount, template_id=None, occurrences=[occ],
            is_adhoc=True, is_default=False, goal_id=goal_id,
            payment_source_id=payment_source_id, category_id=category_id,
            created_at=stamp, updated_at=stamp,
        )
        data.instances(kind).append(instance)
        self._month_dao.save(data)
        logger.info("Added ad-hoc %s '%s' to %s", kind, name, month)
        return instance

    def rename_instance(self, month: str, instance_id: str, name: str) -> Instance:
        name = (name or "").strip()
        if not name:
            raise ValidationError("Name cannot be empty.", field="name")
        data = load_writable(self._month_dao, month)
        _, instance = find_instance(data, instance_id)
        instance.name = name
        instance.updated_at = now_iso()
        self._month_dao.save(data)
        return instance

    def delete_instance(self, month: str, instance_id: str):
        """Delete an ad-hoc instance. Generated ones would come back on the next sync."""
        data = load_writable(self._month_dao, month)
        kind, instance = find_instance(data, instance_id)
        if not instance.is_adhoc:
            raise ValidationError("Only ad-hoc instances can be deleted.", field="instance_id")
        data.instances(kind).remove(instance)
        self._month_dao.save(data)
        logger.info("Deleted ad-hoc %s '%s' from %s", kind, instance.name, month)

    # ── Helpers ──────────────────────────────────────────────────────────────

    def _known_source(self, source_id) -> int:
        try:
            source_id = int(source_id)
        except (TypeError, ValueError):
            raise ValidationError(f"Invalid payment source id '{source_id}'.", field="payment_source_id") from None
        if self._source_dao.get_by_id(source_id) is None:
            raise NotFoundError("Payment source", source_id)
        return source_id

    @staticmethod
    def _balance(amount) -> int:
        # Balances may be negative (overdrawn, credit owed)
        if isinstance(amount, bool) or not isinstance(amount, int):
            raise ValidationError("Balance must be a whole number of cents.", field="balance")
        return amount
