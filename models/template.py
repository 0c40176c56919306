from dataclasses import dataclass
from typing import Optional


@dataclass
class Template:
    id: int
    kind: str               # 'bill' | 'income'
    name: str
    amount: int             # cents
    billing_period: str     # 'weekly' | 'bi_weekly' | 'monthly' | 'semi_annually'
    is_active: bool = True
    day_of_month: Optional[int] = None      # 1-31, clamped to month length
    recurrence_week: Optional[int] = None   # 1-4, or 5 = last
    recurrence_day: Optional[int] = None    # 0=Sun..6=Sat
    start_date: Optional[str] = None        # 'YYYY-MM-DD'
    end_date: Optional[str] = None
    payment_source_id: Optional[int] = None
    category_id: Optional[int] = None
    goal_id: Optional[int] = None
    notes: str = ""
    created_at: str = ""
    updated_at: str = ""
    payment_source_name: str = ""

    @property
    def is_bill(self) -> bool:
        return self.kind == "bill"
