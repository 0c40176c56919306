import uuid
from dataclasses import dataclass, field
from datetime import date
from typing import Optional

from utils.date_helpers import parse_date


def new_id() -> str:
    return str(uuid.uuid4())


@dataclass
class Payment:
    id: str
    amount: int             # cents, > 0
    date: str               # 'YYYY-MM-DD'
    payment_source_id: Optional[int] = None
    created_at: str = ""

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "amount": self.amount,
            "date": self.date,
            "payment_source_id": self.payment_source_id,
            "created_at": self.created_at,
        }

    @classmethod
    def from_dict(cls, d: dict) -> "Payment":
        return cls(
            id=d["id"],
            amount=int(d["amount"]),
            date=d["date"],
            payment_source_id=d.get("payment_source_id"),
            created_at=d.get("created_at", ""),
        )


def sum_payments(occurrence: "Occurrence") -> int:
    """Total paid on an occurrence, whether it is open or closed."""
    return sum(p.amount for p in occurrence.payments)


@dataclass
class Occurrence:
    id: str
    sequence: int
    expected_date: str      # 'YYYY-MM-DD'
    expected_amount: int    # cents
    is_closed: bool = False
    closed_date: Optional[str] = None
    is_adhoc: bool = False
    payments: list[Payment] = field(default_factory=list)
    notes: str = ""
    payment_source_id: Optional[int] = None
    created_at: str = ""
    updated_at: str = ""

    @property
    def paid_amount(self) -> int:
        return sum_payments(self)

    @property
    def remaining(self) -> int:
        return max(0, self.expected_amount - self.paid_amount)

    def find_payment(self, payment_id: str) -> Payment | None:
        return next((p for p in self.payments if p.id == payment_id), None)

    def is_overdue(self, as_of: date) -> bool:
        due = parse_date(self.expected_date)
        return not self.is_closed and due is not None and due < as_of

    def days_overdue(self, as_of: date) -> int:
        if not self.is_overdue(as_of):
            return 0
        return (as_of - parse_date(self.expected_date)).days

    def is_due_soon(self, as_of: date, days: int) -> bool:
        due = parse_date(self.expected_date)
        if self.is_closed or due is None:
            return False
        return 0 <= (due - as_of).days <= days

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "sequence": self.sequence,
            "expected_date": self.expected_date,
            "expected_amount": self.expected_amount,
            "is_closed": self.is_closed,
            "closed_date": self.closed_date,
            "is_adhoc": self.is_adhoc,
            "payments": [p.to_dict() for p in self.payments],
            "notes": self.notes,
            "payment_source_id": self.payment_source_id,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }

    @classmethod
    def from_dict(cls, d: dict) -> "Occurrence":
        return cls(
            id=d["id"],
            sequence=int(d.get("sequence", 1)),
            expected_date=d["expected_date"],
            expected_amount=int(d["expected_amount"]),
            is_closed=bool(d.get("is_closed", False)),
            closed_date=d.get("closed_date"),
            is_adhoc=bool(d.get("is_adhoc", False)),
            payments=[Payment.from_dict(p) for p in d.get("payments") or []],
            notes=d.get("notes") or "",
            payment_source_id=d.get("payment_source_id"),
            created_at=d.get("created_at", ""),
            updated_at=d.get("updated_at", ""),
        )


@dataclass
class Instance:
    """One month's materialization of a bill or income template (or an ad-hoc item).

    is_closed and expected_amount are always derived from the occurrences.
    """
    id: str
    month: str              # 'YYYY-MM'
    name: str
    billing_period: str
    default_amount: int     # template amount when generated
    template_id: Optional[int] = None   # None for ad-hoc
    occurrences: list[Occurrence] = field(default_factory=list)
    is_adhoc: bool = False
    is_default: bool = True
    goal_id: Optional[int] = None       # direct goal contribution
    is_payoff_bill: bool = False        # card balance owed, kept in step with bank_balances
    payoff_source_id: Optional[int] = None
    payment_source_id: Optional[int] = None
    category_id: Optional[int] = None
    created_at: str = ""
    updated_at: str = ""

    @property
    def expected_amount(self) -> int:
        return sum(o.expected_amount for o in self.occurrences)

    @property
    def paid_amount(self) -> int:
        return sum(o.paid_amount for o in self.occurrences)

    @property
    def is_closed(self) -> bool:
        return bool(self.occurrences) and all(o.is_closed for o in self.occurrences)

    @property
    def closed_count(self) -> int:
        return sum(1 for o in self.occurrences if o.is_closed)

    def find_occurrence(self, occurrence_id: str) -> Occurrence | None:
        return next((o for o in self.occurrences if o.id == occurrence_id), None)

    def resequence(self):
        """Sort occurrences by date and renumber from 1."""
        self.occurrences.sort(key=lambda o: (o.expected_date, o.sequence))
        for i, occ in enumerate(self.occurrences, start=1):
            occ.sequence = i

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "template_id": self.template_id,
            "month": self.month,
            "name": self.name,
            "billing_period": self.billing_period,
            "default_amount": self.default_amount,
            "occurrences": [o.to_dict() for o in self.occurrences],
            "is_adhoc": self.is_adhoc,
            "is_default": self.is_default,
            "goal_id": self.goal_id,
            "is_payoff_bill": self.is_payoff_bill,
            "payoff_source_id": self.payoff_source_id,
            "payment_source_id": self.payment_source_id,
            "category_id": self.category_id,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }

    @classmethod
    def from_dict(cls, d: dict) -> "Instance":
        return cls(
            id=d["id"],
            month=d["month"],
            name=d.get("name") or "",
            billing_period=d.get("billing_period") or "monthly",
            default_amount=int(d.get("default_amount", 0)),
            template_id=d.get("template_id"),
            occurrences=[Occurrence.from_dict(o) for o in d.get("occurrences") or []],
            is_adhoc=bool(d.get("is_adhoc", False)),
            is_default=bool(d.get("is_default", True)),
            goal_id=d.get("goal_id"),
            is_payoff_bill=bool(d.get("is_payoff_bill", False)),
            payoff_source_id=d.get("payoff_source_id"),
            payment_source_id=d.get("payment_source_id"),
            category_id=d.get("category_id"),
            created_at=d.get("created_at", ""),
            updated_at=d.get("updated_at", ""),
        )
