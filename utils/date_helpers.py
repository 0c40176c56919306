from datetime import date, datetime, timezone
import calendar
from utils.constants import DATE_FORMAT, MONTH_FORMAT

# ── Display date format options ───────────────────────────────────────────────

_STRFTIME_MAP = {
    "MM/DD/YYYY": "%m/%d/%Y",
    "DD/MM/YYYY": "%d/%m/%Y",
    "YYYY-MM-DD": "%Y-%m-%d",
    "DD.MM.YYYY": "%d.%m.%Y",
    "MM-DD-YYYY": "%m-%d-%Y",
}


def today() -> date:
    return date.today()


def today_str() -> str:
    return date.today().strftime(DATE_FORMAT)


def current_month_str() -> str:
    return date.today().strftime(MONTH_FORMAT)


def now_iso() -> str:
    """UTC timestamp used for created_at / updated_at fields."""
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def parse_date(date_str: str) -> date | None:
    """Parse a date string in YYYY-MM-DD format, returning None on failure."""
    if not date_str:
        return None
    for fmt in ("%Y-%m-%d", "%Y/%m/%d", "%Y.%m.%d"):
        try:
            return datetime.strptime(date_str, fmt).date()
        except ValueError:
            continue
    return None


def parse_timestamp(value: str) -> date | None:
    """Date part of an ISO timestamp ('2025-06-01T10:00:00Z' or a bare date)."""
    if not value:
        return None
    return parse_date(value[:10])


def is_iso_date(date_str) -> bool:
    """Strict YYYY-MM-DD check used when validating stored dates."""
    if not isinstance(date_str, str) or len(date_str) != 10:
        return False
    try:
        datetime.strptime(date_str, DATE_FORMAT)
    except ValueError:
        return False
    return True


def format_date(d: date) -> str:
    return d.strftime(DATE_FORMAT)


def format_month(d: date) -> str:
    return d.strftime(MONTH_FORMAT)


def parse_month(month_str: str) -> date | None:
    """Return the first day of the given YYYY-MM month string."""
    if not month_str:
        return None
    try:
        return datetime.strptime(month_str, MONTH_FORMAT).date()
    except ValueError:
        return None


def require_month(month_str: str) -> date:
    d = parse_month(month_str)
    if d is None or len(month_str) != 7:
        raise ValueError(f"Invalid month: {month_str}")
    return d


def days_in_month(year: int, month: int) -> int:
    return calendar.monthrange(year, month)[1]


def month_bounds(month_str: str) -> tuple[date, date]:
    """Return (first_day, last_day) dates for a YYYY-MM month."""
    d = require_month(month_str)
    return d, d.replace(day=days_in_month(d.year, d.month))


def month_range(month_str: str) -> tuple[str, str]:
    """Return (first_day_str, last_day_str) for a YYYY-MM month."""
    first, last = month_bounds(month_str)
    return format_date(first), format_date(last)


def prev_month(month_str: str) -> str:
    d = require_month(month_str)
    if d.month == 1:
        return format_month(d.replace(year=d.year - 1, month=12))
    return format_month(d.replace(month=d.month - 1))


def next_month(month_str: str) -> str:
    d = require_month(month_str)
    if d.month == 12:
        return format_month(d.replace(year=d.year + 1, month=1))
    return format_month(d.replace(month=d.month + 1))


def clamp_day_to_month(year: int, month: int, day: int) -> int:
    """Clamp day to valid range for the given year/month."""
    return min(day, days_in_month(year, month))


def add_months(d: date, n: int, anchor_day: int | None = None) -> date:
    """Add n months to date d, clamping to month end.

    anchor_day, when given, is the day to aim for instead of d.day so that
    repeated steps from a clamped date (Feb 28) recover the 31st afterwards.
    """
    month = d.month - 1 + n
    year = d.year + month // 12
    month = month % 12 + 1
    day = clamp_day_to_month(year, month, anchor_day or d.day)
    return date(year, month, day)


def months_between(start: date, end: date) -> int:
    """Whole calendar months from start's month to end's month."""
    return (end.year - start.year) * 12 + (end.month - start.month)


def friendly_month(month_str: str) -> str:
    """Convert YYYY-MM to e.g. 'February 2026'."""
    d = parse_month(month_str)
    if d is None:
        return month_str
    return d.strftime("%B %Y")


def format_display_date(date_str: str, fmt_key: str = "MM/DD/YYYY") -> str:
    """Convert a YYYY-MM-DD storage string to the user-facing display format."""
    if not date_str:
        return date_str
    d = parse_date(date_str)
    if d is None:
        return date_str
    return d.strftime(_STRFTIME_MAP.get(fmt_key, "%m/%d/%Y"))


def parse_display_date(display_str: str, fmt_key: str) -> date | None:
    """Parse a date in the given display format. Returns None on failure.

    Falls back to ISO 8601 parse if the display format doesn't match.
    """
    if not display_str:
        return None
    fmt = _STRFTIME_MAP.get(fmt_key, "%m/%d/%Y")
    try:
        return datetime.strptime(display_str.strip(), fmt).date()
    except ValueError:
        return parse_date(display_str)
