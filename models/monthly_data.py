from dataclasses import dataclass, field
from typing import Optional

from models.instance import Instance


@dataclass
class VariableExpense:
    id: str
    name: str
    amount: int             # cents
    date: Optional[str] = None
    payment_source_id: Optional[int] = None
    created_at: str = ""
    updated_at: str = ""

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "amount": self.amount,
            "date": self.date,
            "payment_source_id": self.payment_source_id,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }

    @classmethod
    def from_dict(cls, d: dict) -> "VariableExpense":
        return cls(
            id=d["id"],
            name=d.get("name") or "",
            amount=int(d["amount"]),
            date=d.get("date"),
            payment_source_id=d.get("payment_source_id"),
            created_at=d.get("created_at", ""),
            updated_at=d.get("updated_at", ""),
        )


def _int_keys(raw: dict | None) -> dict[int, int]:
    # JSON object keys are always strings
    return {int(k): int(v) for k, v in (raw or {}).items()}


@dataclass
class MonthlyData:
    month: str              # 'YYYY-MM'
    bill_instances: list[Instance] = field(default_factory=list)
    income_instances: list[Instance] = field(default_factory=list)
    variable_expenses: list[VariableExpense] = field(default_factory=list)
    bank_balances: dict[int, int] = field(default_factory=dict)          # source id -> cents
    savings_balances_start: dict[int, int] = field(default_factory=dict)
    savings_balances_end: dict[int, int] = field(default_factory=dict)
    is_read_only: bool = False
    version: int = 0
    created_at: str = ""
    updated_at: str = ""

    def instances(self, kind: str) -> list[Instance]:
        if kind == "bill":
            return self.bill_instances
        if kind == "income":
            return self.income_instances
        raise ValueError(f"Unknown instance kind: {kind}")

    def all_instances(self) -> list[tuple[str, Instance]]:
        return ([("bill", i) for i in self.bill_instances]
                + [("income", i) for i in self.income_instances])

    def find_instance(self, instance_id: str) -> tuple[str, Instance] | None:
        return next(
            ((kind, inst) for kind, inst in self.all_instances() if inst.id == instance_id),
            None,
        )

    def find_expense(self, expense_id: str) -> VariableExpense | None:
        return next((e for e in self.variable_expenses if e.id == expense_id), None)

    @property
    def variable_expenses_total(self) -> int:
        return sum(e.amount for e in self.variable_expenses)

    def to_dict(self) -> dict:
        return {
            "month": self.month,
            "bill_instances": [i.to_dict() for i in self.bill_instances],
            "income_instances": [i.to_dict() for i in self.income_instances],
            "variable_expenses": [e.to_dict() for e in self.variable_expenses],
            "bank_balances": {str(k): v for k, v in self.bank_balances.items()},
            "savings_balances_start": {str(k): v for k, v in self.savings_balances_start.items()},
            "savings_balances_end": {str(k): v for k, v in self.savings_balances_end.items()},
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }

    @classmethod
    def from_dict(cls, d: dict, is_read_only: bool = False, version: int = 0) -> "MonthlyData":
        return cls(
            month=d["month"],
            bill_instances=[Instance.from_dict(i) for i in d.get("bill_instances") or []],
            income_instances=[Instance.from_dict(i) for i in d.get("income_instances") or []],
            variable_expenses=[VariableExpense.from_dict(e) for e in d.get("variable_expenses") or []],
            bank_balances=_int_keys(d.get("bank_balances")),
            savings_balances_start=_int_keys(d.get("savings_balances_start")),
            savings_balances_end=_int_keys(d.get("savings_balances_end")),
            is_read_only=is_read_only,
            version=version,
            created_at=d.get("created_at", ""),
            updated_at=d.get("updated_at", ""),
        )


@dataclass
class MonthRef:
    month: str
    exists: bool
    is_read_only: bool = False
