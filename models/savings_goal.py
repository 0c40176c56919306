from dataclasses import dataclass
from typing import Optional, Union


@dataclass
class SavingsGoal:
    id: int
    name: str
    target_amount: int          # cents
    target_date: str            # 'YYYY-MM-DD'
    status: str = "saving"      # 'saving' | 'paused' | 'bought' | 'abandoned' | 'archived'
    current_amount: int = 0     # fallback only; saved amount is derived from payments
    linked_account_id: Optional[int] = None
    previous_status: Optional[str] = None
    notes: str = ""
    paused_at: Optional[str] = None
    completed_at: Optional[str] = None
    archived_at: Optional[str] = None
    created_at: str = ""
    updated_at: str = ""

    @property
    def is_saving(self) -> bool:
        return self.status == "saving"


# ── Goal linkage ─────────────────────────────────────────────────────────────
# An instance contributes to a goal either through its template's goal_id or
# through its own goal_id (one-time contributions).

@dataclass(frozen=True)
class ViaTemplate:
    template_id: int


@dataclass(frozen=True)
class Direct:
    instance_id: str


GoalLink = Union[ViaTemplate, Direct]
