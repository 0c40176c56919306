import logging
from dataclasses import dataclass, field
from datetime import date

from database.month_dao import MonthDAO
from database.template_dao import TemplateDAO
from models.instance import Instance, Occurrence, new_id
from models.monthly_data import MonthlyData
from models.template import Template
from services.month_access import validate_month
from services.recurrence import dates_in_month
from utils.constants import TEMPLATE_KINDS
from utils.date_helpers import format_date, now_iso
from utils.errors import ConflictError, ReadOnlyError, RecurrenceError

logger = logging.getLogger(__name__)


@dataclass
class SyncFailure:
    template_id: int
    template_name: str
    message: str


@dataclass
class SyncResult:
    month: str
    created_month: bool = False
    instances_added: int = 0
    occurrences_added: int = 0
    failures: list[SyncFailure] = field(default_factory=list)

    @property
    def changed(self) -> bool:
        return self.created_month or self.instances_added > 0 or self.occurrences_added > 0

    @property
    def ok(self) -> bool:
        return not self.failures


class InstanceSynchronizer:
    """Materializes active templates into a month without disturbing what is there.

    Existing instances, user edits, closures and payments are never rewritten;
    ad-hoc instances and ad-hoc occurrences are never touched.
    """

    def __init__(self, month_dao: MonthDAO, template_dao: TemplateDAO):
        self._month_dao = month_dao
        self._template_dao = template_dao

    def generate(self, month: str) -> tuple[MonthlyData, SyncResult]:
        """Build a fresh month document and report templates that could not be scheduled.

        Raises ConflictError if the month already exists.
        """
        validate_month(month)
        if self._month_dao.exists(month):
            raise ConflictError(f"Month {month} already exists; sync it instead.")
        return self._build(month)

    def sync(self, month: str) -> SyncResult:
        validate_month(month)
        data = self._month_dao.get(month)
        if data is None:
            _, result = self._build(month)
            return result
        if data.is_read_only:
            raise ReadOnlyError(month)

        result = SyncResult(month=month)
        for kind in TEMPLATE_KINDS:
            instances = data.instances(kind)
            by_template = {
                inst.template_id: inst
                for inst in instances
                if inst.template_id is not None and not inst.is_adhoc
            }
            for template in self._template_dao.get_active(kind):
                dates = self._evaluate(template, month, result)
                if not dates:
                    continue
                existing = by_template.get(template.id)
                if existing is None:
                    instances.append(self._new_instance(template, month, dates))
                    result.instances_added += 1
                else:
                    result.occurrences_added += self._append_missing(existing, template, dates)

        if result.changed:
            self._month_dao.save(data)
            logger.info(
                "Synced %s: %d instance(s), %d occurrence(s) added",
                month, result.instances_added, result.occurrences_added,
            )
        return result

    # ── Helpers ──────────────────────────────────────────────────────────────

    def _build(self, month: str) -> tuple[MonthlyData, SyncResult]:
        result = SyncResult(month=month, created_month=True)
        data = MonthlyData(month=month)
        for kind in TEMPLATE_KINDS:
            for template in self._template_dao.get_active(kind):
                dates = self._evaluate(template, month, result)
                if dates:
                    data.instances(kind).append(self._new_instance(template, month, dates))
                    result.instances_added += 1
        self._month_dao.create(data)
        logger.info("Generated %s with %d instance(s)", month, result.instances_added)
        return data, result

    @staticmethod
    def _evaluate(template: Template, month: str, result: SyncResult) -> list[date]:
        # One bad template must not stop the rest of the month
        try:
            return dates_in_month(template, month)
        except (RecurrenceError, ValueError) as e:
            logger.warning("Skipping template '%s' for %s: %s", template.name, month, e)
            result.failures.append(SyncFailure(template.id, template.name, str(e)))
            return []

    @staticmethod
    def _new_occurrence(template: Template, d: date, sequence: int, stamp: str) -> Occurrence:
        return Occurrence(
            id=new_id(),
            sequence=sequence,
            expected_date=format_date(d),
            expected_amount=template.amount,
            payment_source_id=template.payment_source_id,
            created_at=stamp,
            updated_at=stamp,
        )

    def _new_instance(self, template: Template, month: str, dates: list[date]) -> Instance:
        stamp = now_iso()
        return Instance(
            id=new_id(),
            template_id=template.id,
            month=month,
            name=template.name,
            billing_period=template.billing_period,
            default_amount=template.amount,
            occurrences=[
                self._new_occurrence(template, d, i, stamp)
                for i, d in enumerate(dates, start=1)
            ],
            is_adhoc=False,
            is_default=True,
            payment_source_id=template.payment_source_id,
            category_id=template.category_id,
            created_at=stamp,
            updated_at=stamp,
        )

    def _append_missing(self, instance: Instance, template: Template, dates: list[date]) -> int:
        """Add generated dates the instance lacks, never beyond the rule's count."""
        generated = [o for o in instance.occurrences if not o.is_adhoc]
        have = {o.expected_date for o in generated}
        room = max(0, len(dates) - len(generated))
        missing = [d for d in dates if format_date(d) not in have][:room]
        if not missing:
            return 0
        stamp = now_iso()
        for d in missing:
            instance.occurrences.append(
                self._new_occurrence(template, d, len(instance.occurrences) + 1, stamp)
            )
        instance.resequence()
        instance.updated_at = stamp
        return len(missing)
