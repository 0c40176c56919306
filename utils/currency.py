from decimal import Decimal, InvalidOperation, ROUND_HALF_UP


def format_currency(cents: int, symbol: str = "$") -> str:
    """Format an amount in cents as currency string, e.g. '$1,234.56'."""
    sign = "-" if cents < 0 else ""
    return f"{sign}{symbol}{abs(cents) / 100:,.2f}"


def parse_amount(text: str) -> int:
    """Parse user input such as '1,234.5' or '$12' into integer cents.

    Raises ValueError on anything that is not a plain decimal amount.
    """
    cleaned = (text or "").strip().replace(",", "").lstrip("$")
    if not cleaned:
        raise ValueError("Amount is required.")
    try:
        value = Decimal(cleaned)
    except InvalidOperation:
        raise ValueError(f"Invalid amount: {text}") from None
    if not value.is_finite():
        raise ValueError(f"Invalid amount: {text}")
    return int((value * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))
