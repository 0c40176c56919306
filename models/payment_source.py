from dataclasses import dataclass

from utils.constants import SAVINGS_SOURCE_TYPES

PAYMENT_SOURCE_TYPE_LABELS = {
    "bank_account": "Bank Account",
    "credit_card": "Credit Card",
    "line_of_credit": "Line of Credit",
    "cash": "Cash",
    "savings": "Savings",
    "investment": "Investment",
}


@dataclass
class PaymentSource:
    id: int
    name: str
    type: str = "bank_account"
    is_active: bool = True
    exclude_from_leftover: bool = False
    pay_off_monthly: bool = False
    created_at: str = ""

    @property
    def is_savings(self) -> bool:
        return self.type in SAVINGS_SOURCE_TYPES

    @property
    def counts_toward_leftover(self) -> bool:
        return not (self.is_savings or self.exclude_from_leftover or self.pay_off_monthly)
