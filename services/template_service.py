import logging
from datetime import date

from database.template_dao import TemplateDAO
from models.template import Template
from services.month_access import validate_amount
from services.recurrence import dates_in_month, monthly_equivalent
from utils.constants import BILLING_PERIODS, LAST_WEEK_OF_MONTH, TEMPLATE_KINDS
from utils.date_helpers import format_month, next_month, parse_date, today
from utils.errors import NotFoundError, RecurrenceError, ValidationError

logger = logging.getLogger(__name__)

# How far ahead next_due_date looks before giving up
_LOOKAHEAD_MONTHS = 13


class TemplateService:
    def __init__(self, template_dao: TemplateDAO):
        self._dao = template_dao

    def get_all(self, kind: str | None = None) -> list[Template]:
        return self._dao.get_all(kind)

    def get_active(self, kind: str | None = None) -> list[Template]:
        return self._dao.get_active(kind)

    def get_by_id(self, template_id: int) -> Template:
        template = self._dao.get_by_id(template_id)
        if template is None:
            raise NotFoundError("Template", template_id)
        return template

    def create(
        self,
        kind: str,
        name: str,
        amount: int,
        billing_period: str,
        day_of_month: int | None = None,
        recurrence_week: int | None = None,
        recurrence_day: int | None = None,
        start_date: str | None = None,
        end_date: str | None = None,
        payment_source_id: int | None = None,
        category_id: int | None = None,
        goal_id: int | None = None,
        notes: str = "",
    ) -> Template:
        fields = dict(
            kind=kind, name=(name or "").strip(), amount=amount,
            billing_period=billing_period, day_of_month=day_of_month,
            recurrence_week=recurrence_week, recurrence_day=recurrence_day,
            start_date=start_date or None, end_date=end_date or None,
            payment_source_id=payment_source_id, category_id=category_id,
            goal_id=goal_id, notes=(notes or "").strip(),
        )
        self._validate(fields)
        template = self._dao.create(**fields)
        logger.info("Created %s template '%s'", template.kind, template.name)
        return template

    def update(
        self,
        template_id: int,
        kind: str,
        name: str,
        amount: int,
        billing_period: str,
        day_of_month: int | None = None,
        recurrence_week: int | None = None,
        recurrence_day: int | None = None,
        start_date: str | None = None,
        end_date: str | None = None,
        payment_source_id: int | None = None,
        category_id: int | None = None,
        goal_id: int | None = None,
        notes: str = "",
        is_active: bool = True,
    ) -> Template:
        self.get_by_id(template_id)
        fields = dict(
            kind=kind, name=(name or "").strip(), amount=amount,
            billing_period=billing_period, day_of_month=day_of_month,
            recurrence_week=recurrence_week, recurrence_day=recurrence_day,
            start_date=start_date or None, end_date=end_date or None,
            payment_source_id=payment_source_id, category_id=category_id,
            goal_id=goal_id, notes=(notes or "").strip(),
        )
        self._validate(fields)
        return self._dao.update(template_id, is_active=is_active, **fields)

    def set_active(self, template_id: int, is_active: bool):
        self.get_by_id(template_id)
        self._dao.set_active(template_id, is_active)

    def delete(self, template_id: int):
        self.get_by_id(template_id)
        self._dao.delete(template_id)

    def next_due_date(self, template: Template, after: date | None = None) -> date | None:
        """Return the next date the template is due after `after` (default: today)."""
        ref = after or today()
        month = format_month(ref)
        try:
            for _ in range(_LOOKAHEAD_MONTHS):
                for d in dates_in_month(template, month):
                    if d > ref:
                        return d
                month = next_month(month)
        except RecurrenceError as e:
            logger.warning("No next due date for '%s': %s", template.name, e)
        return None

    @staticmethod
    def monthly_cost(template: Template) -> int:
        return monthly_equivalent(template.amount, template.billing_period)

    def _validate(self, f: dict):
        if not f["name"]:
            raise ValidationError("Name cannot be empty.", field="name")
        if f["kind"] not in TEMPLATE_KINDS:
            raise ValidationError("Kind must be bill or income.", field="kind")
        validate_amount(f["amount"])
        period = f["billing_period"]
        if period not in BILLING_PERIODS:
            raise ValidationError("Invalid billing period.", field="billing_period")

        day = f["day_of_month"]
        if day is not None and not 1 <= day <= 31:
            raise ValidationError("Day of month must be between 1 and 31.", field="day_of_month")
        week, weekday = f["recurrence_week"], f["recurrence_day"]
        if (week is None) != (weekday is None):
            raise ValidationError(
                "Set both the week and the weekday, or neither.", field="recurrence_week"
            )
        if week is not None:
            if period != "monthly":
                raise ValidationError(
                    "Nth-weekday rules only apply to monthly templates.", field="recurrence_week"
                )
            if not 1 <= week <= LAST_WEEK_OF_MONTH or not 0 <= weekday <= 6:
                raise ValidationError("Invalid week or weekday.", field="recurrence_week")
            if day is not None:
                raise ValidationError(
                    "Use either a day of month or an nth-weekday rule, not both.",
                    field="day_of_month",
                )

        start = parse_date(f["start_date"]) if f["start_date"] else None
        if f["start_date"] and start is None:
            raise ValidationError("Invalid start date.", field="start_date")
        end = parse_date(f["end_date"]) if f["end_date"] else None
        if f["end_date"] and end is None:
            raise ValidationError("Invalid end date.", field="end_date")
        if start and end and end < start:
            raise ValidationError("End date is before the start date.", field="end_date")

        if period == "monthly":
            if day is None and week is None and start is None:
                raise ValidationError(
                    "Monthly templates need a day of month, an nth-weekday rule or a start date.",
                    field="day_of_month",
                )
        elif start is None:
            raise ValidationError(
                f"A start date is required for {period.replace('_', '-')} templates.",
                field="start_date",
            )

        if f["goal_id"] is not None and f["kind"] != "bill":
            raise ValidationError("Only bills can fund a savings goal.", field="goal_id")
