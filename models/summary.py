from dataclasses import dataclass, field
from typing import Optional


@dataclass
class SectionSummary:
    expected: int = 0
    actual: int = 0
    remaining: int = 0
    closed_count: int = 0
    total_count: int = 0

    @property
    def progress(self) -> float:
        if self.expected <= 0:
            return 0.0
        return self.actual / self.expected

    def to_dict(self) -> dict:
        return {
            "expected": self.expected,
            "actual": self.actual,
            "remaining": self.remaining,
            "closed_count": self.closed_count,
            "total_count": self.total_count,
        }


@dataclass
class LeftoverSummary:
    month: str
    starting_balance: int
    bills: SectionSummary
    incomes: SectionSummary
    variable_expenses_total: int
    leftover: int
    balance_source: str = "entered"     # 'entered' | 'carried_forward' | 'none'
    missing_balances: list[int] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "starting_balance": self.starting_balance,
            "bills": self.bills.to_dict(),
            "incomes": self.incomes.to_dict(),
            "variable_expenses_total": self.variable_expenses_total,
            "leftover": self.leftover,
            "month": self.month,
            "balance_source": self.balance_source,
            "missing_balances": list(self.missing_balances),
        }


@dataclass
class GoalPayment:
    date: str
    description: str
    amount: int
    balance: int = 0
    status: str = "completed"   # 'completed' | 'upcoming'
    is_simulated: bool = False

    def to_dict(self) -> dict:
        return {
            "date": self.date,
            "description": self.description,
            "amount": self.amount,
            "balance": self.balance,
            "status": self.status,
        }


@dataclass
class GoalPayments:
    goal_id: int
    target_amount: int
    payments: list[GoalPayment]
    total_saved: int
    total_remaining: int
    progress_percentage: int     # 0-100, rounded
    projected_completion_date: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "goal_id": self.goal_id,
            "target_amount": self.target_amount,
            "payments": [p.to_dict() for p in self.payments],
            "summary": {
                "total_saved": self.total_saved,
                "total_remaining": self.total_remaining,
                "progress_percentage": self.progress_percentage,
                "projected_completion_date": self.projected_completion_date,
            },
        }


@dataclass
class GoalProgress:
    goal_id: int
    saved_amount: int
    expected_amount: int
    temperature: str        # 'ahead' | 'on_track' | 'behind'

    @property
    def ratio(self) -> float:
        if self.expected_amount <= 0:
            return 1.0
        return self.saved_amount / self.expected_amount
