"""Lookup and guard helpers shared by the services that write month documents."""
from database.month_dao import MonthDAO
from models.instance import Instance, Occurrence
from models.monthly_data import MonthlyData
from utils.date_helpers import is_iso_date, parse_month
from utils.errors import NotFoundError, ReadOnlyError, ValidationError


def validate_month(month: str) -> str:
    if not isinstance(month, str) or len(month) != 7 or parse_month(month) is None:
        raise ValidationError(f"Invalid month '{month}', expected YYYY-MM.", field="month")
    return month


def validate_date(value: str, field: str = "date") -> str:
    if not is_iso_date(value):
        raise ValidationError(f"Invalid {field} '{value}', expected YYYY-MM-DD.", field=field)
    return value


def validate_amount(value, field: str = "amount", allow_zero: bool = False) -> int:
    """Amounts are integer cents. bool is rejected even though it is an int."""
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError(f"{field} must be a whole number of cents.", field=field)
    if value < 0 or (value == 0 and not allow_zero):
        raise ValidationError(
            f"{field} must be {'zero or more' if allow_zero else 'greater than zero'}.",
            field=field,
        )
    return value


def load_month(month_dao: MonthDAO, month: str) -> MonthlyData:
    validate_month(month)
    data = month_dao.get(month)
    if data is None:
        raise NotFoundError("Month", month)
    return data


def load_writable(month_dao: MonthDAO, month: str) -> MonthlyData:
    """Load a month for a write, refusing locked months before anything changes."""
    data = load_month(month_dao, month)
    if data.is_read_only:
        raise ReadOnlyError(month)
    return data


def find_instance(data: MonthlyData, instance_id: str) -> tuple[str, Instance]:
    found = data.find_instance(instance_id)
    if found is None:
        raise NotFoundError("Instance", instance_id)
    return found


def find_occurrence(
    data: MonthlyData, instance_id: str, occurrence_id: str
) -> tuple[str, Instance, Occurrence]:
    kind, instance = find_instance(data, instance_id)
    occurrence = instance.find_occurrence(occurrence_id)
    if occurrence is None:
        raise NotFoundError("Occurrence", occurrence_id)
    return kind, instance, occurrence
