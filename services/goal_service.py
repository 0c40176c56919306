import logging
from dataclasses import dataclass, field
from datetime import date

from database.month_dao import MonthDAO
from database.savings_goal_dao import SavingsGoalDAO
from database.template_dao import TemplateDAO
from models.instance import Instance
from models.savings_goal import Direct, GoalLink, SavingsGoal, ViaTemplate
from models.summary import GoalPayment, GoalPayments, GoalProgress
from models.template import Template
from services.month_access import validate_amount, validate_date
from services.month_service import MonthService
from services.recurrence import anchor_day_of, dates_in_month, next_payment_date
from services.sync_service import InstanceSynchronizer
from utils.app_config import get_goal_thresholds
from utils.constants import GOAL_MAX_SIMULATED_PAYMENTS, SCHEDULE_ENDED_NOTE
from utils.date_helpers import (
    format_date, format_month, next_month, now_iso, parse_date, parse_timestamp, today,
)
from utils.errors import NotFoundError, RecurrenceError, ValidationError

logger = logging.getLogger(__name__)

# Upper bound on steps taken to fast-forward a stale template past today
_MAX_CATCHUP_STEPS = 2000


def goal_link(instance: Instance, goal_id: int, linked_template_ids: set[int]) -> GoalLink | None:
    """How an instance contributes to a goal, or None when it does not."""
    if instance.template_id is not None and instance.template_id in linked_template_ids:
        return ViaTemplate(instance.template_id)
    if instance.goal_id is not None and instance.goal_id == goal_id:
        return Direct(instance.id)
    return None


@dataclass
class ScheduleRemoval:
    goal_id: int
    template_id: int
    closed_count: int = 0
    skipped_months: list[str] = field(default_factory=list)


class GoalService:
    """Savings goals: lifecycle, derived saved amount, temperature and projection."""

    def __init__(
        self,
        goal_dao: SavingsGoalDAO,
        template_dao: TemplateDAO,
        month_dao: MonthDAO,
        month_service: MonthService,
        synchronizer: InstanceSynchronizer,
        thresholds: tuple[float, float] | None = None,
    ):
        self._dao = goal_dao
        self._template_dao = template_dao
        self._month_dao = month_dao
        self._month_svc = month_service
        self._sync = synchronizer
        self._on_track_ratio, self._ahead_ratio = thresholds or get_goal_thresholds()

    # ── CRUD ─────────────────────────────────────────────────────────────────

    def get_all(self) -> list[SavingsGoal]:
        return self._dao.get_all()

    def get_by_id(self, goal_id: int) -> SavingsGoal:
        goal = self._dao.get_by_id(goal_id)
        if goal is None:
            raise NotFoundError("Savings goal", goal_id)
        return goal

    def create(
        self,
        name: str,
        target_amount: int,
        target_date: str,
        linked_account_id: int | None = None,
        notes: str = "",
        created_at: str | None = None,
    ) -> SavingsGoal:
        name = self._validate(name, target_amount, target_date)
        goal = self._dao.create(
            name=name, target_amount=target_amount, target_date=target_date,
            linked_account_id=linked_account_id, notes=(notes or "").strip(),
            created_at=created_at,
        )
        logger.info("Created savings goal '%s'", goal.name)
        return goal

    def update(
        self,
        goal_id: int,
        name: str,
        target_amount: int,
        target_date: str,
        linked_account_id: int | None = None,
        notes: str = "",
    ) -> SavingsGoal:
        current = self.get_by_id(goal_id)
        name = self._validate(name, target_amount, target_date)
        return self._dao.update(
            goal_id, name=name, target_amount=target_amount, target_date=target_date,
            linked_account_id=linked_account_id, current_amount=current.current_amount,
            notes=(notes or "").strip(),
        )

    def delete(self, goal_id: int):
        self.get_by_id(goal_id)
        self._dao.delete(goal_id)

    def link_template(self, goal_id: int, template_id: int) -> Template:
        self.get_by_id(goal_id)
        template = self._template(template_id)
        if not template.is_bill:
            raise ValidationError("Only bills can fund a savings goal.", field="template_id")
        self._template_dao.set_goal(template_id, goal_id)
        return self._template_dao.get_by_id(template_id)

    def linked_templates(self, goal_id: int) -> list[Template]:
        self.get_by_id(goal_id)
        return self._template_dao.get_by_goal_id(goal_id)

    def unlink_template(self, goal_id: int, template_id: int) -> Template:
        template = self._template(template_id)
        if template.goal_id != goal_id:
            raise ValidationError("Bill is not linked to this goal.", field="template_id")
        self._template_dao.set_goal(template_id, None)
        return self._template_dao.get_by_id(template_id)

    # ── Status transitions ───────────────────────────────────────────────────

    def pause(self, goal_id: int) -> SavingsGoal:
        goal = self._require_status(goal_id, ("saving",), "pause")
        return self._dao.update_status(
            goal.id, "paused", paused_at=now_iso(), completed_at=goal.completed_at,
        )

    def resume(self, goal_id: int) -> SavingsGoal:
        goal = self._require_status(goal_id, ("paused",), "resume")
        return self._dao.update_status(goal.id, "saving", completed_at=goal.completed_at)

    def complete(self, goal_id: int) -> SavingsGoal:
        goal = self._require_status(goal_id, ("saving", "paused"), "mark as bought")
        return self._dao.update_status(goal.id, "bought", completed_at=now_iso())

    def abandon(self, goal_id: int) -> SavingsGoal:
        goal = self._require_status(goal_id, ("saving", "paused"), "abandon")
        return self._dao.update_status(goal.id, "abandoned", completed_at=now_iso())

    def archive(self, goal_id: int) -> SavingsGoal:
        goal = self.get_by_id(goal_id)
        if goal.status == "archived":
            raise ValidationError("Goal is already archived.", field="status")
        return self._dao.update_status(
            goal.id, "archived", previous_status=goal.status, paused_at=goal.paused_at,
            completed_at=goal.completed_at, archived_at=now_iso(),
        )

    def unarchive(self, goal_id: int) -> SavingsGoal:
        goal = self._require_status(goal_id, ("archived",), "unarchive")
        return self._dao.update_status(
            goal.id, goal.previous_status or "saving",
            paused_at=goal.paused_at, completed_at=goal.completed_at,
        )

    # ── Derived amounts ──────────────────────────────────────────────────────

    def calculate_saved_amount(self, goal_id: int) -> int:
        """Sum of every payment on every linked instance across all months."""
        goal = self.get_by_id(goal_id)
        linked = {t.id for t in self._template_dao.get_by_goal_id(goal.id)}
        total = 0
        for data in self._month_dao.get_all():
            for _, inst in data.all_instances():
                if goal_link(inst, goal.id, linked) is not None:
                    total += inst.paid_amount
        return total

    def expected_amount(self, goal: SavingsGoal, as_of: date | None = None) -> int:
        """Linear expectation between the goal's creation and target dates."""
        as_of = as_of or today()
        created = parse_timestamp(goal.created_at) or as_of
        target = parse_date(goal.target_date)
        if target is None or as_of >= target:
            return goal.target_amount
        if as_of <= created:
            return 0
        total = (target - created).days
        if total <= 0:
            return goal.target_amount
        elapsed = (as_of - created).days
        return (goal.target_amount * elapsed * 2 + total) // (total * 2)

    def temperature(self, goal: SavingsGoal, saved_amount: int, as_of: date | None = None) -> str:
        expected = self.expected_amount(goal, as_of)
        if saved_amount >= goal.target_amount:
            return "ahead"
        if expected <= 0:
            return "on_track"
        ratio = saved_amount / expected
        if ratio >= self._ahead_ratio:
            return "ahead"
        if ratio >= self._on_track_ratio:
            return "on_track"
        return "behind"

    def get_progress(self, goal_id: int, as_of: date | None = None) -> GoalProgress:
        goal = self.get_by_id(goal_id)
        saved = self.calculate_saved_amount(goal.id)
        return GoalProgress(
            goal_id=goal.id,
            saved_amount=saved,
            expected_amount=self.expected_amount(goal, as_of),
            temperature=self.temperature(goal, saved, as_of),
        )

    # ── Projection ───────────────────────────────────────────────────────────

    def get_goal_payments(self, goal_id: int, as_of: date | None = None) -> GoalPayments:
        """Completed, scheduled and simulated payments in date order with a running balance."""
        as_of = as_of or today()
        as_of_str = format_date(as_of)
        goal = self.get_by_id(goal_id)
        templates = self._template_dao.get_by_goal_id(goal.id)
        linked = {t.id for t in templates}

        completed: list[GoalPayment] = []
        upcoming: list[GoalPayment] = []
        last_dates: dict[int, str] = {}

        for data in self._month_dao.get_all():
            for _, inst in data.all_instances():
                link = goal_link(inst, goal.id, linked)
                if link is None:
                    continue
                for occ in inst.occurrences:
                    for p in occ.payments:
                        completed.append(GoalPayment(p.date, inst.name, p.amount))
                    if not occ.is_closed and occ.expected_date > as_of_str and occ.remaining > 0:
                        upcoming.append(
                            GoalPayment(occ.expected_date, inst.name, occ.remaining, status="upcoming")
                        )
                    if isinstance(link, ViaTemplate) and not occ.is_adhoc:
                        tid = link.template_id
                        last_dates[tid] = max(last_dates.get(tid, ""), occ.expected_date)

        total_saved = sum(p.amount for p in completed)
        scheduled = total_saved + sum(p.amount for p in upcoming)

        simulated: list[GoalPayment] = []
        if goal.is_saving and scheduled < goal.target_amount:
            active = [t for t in templates if t.is_active]
            simulated = self._simulate(active, last_dates, as_of, goal.target_amount - scheduled)

        # Completed before upcoming on the same day
        merged = sorted(
            completed + upcoming + simulated,
            key=lambda p: (p.date, p.status != "completed"),
        )
        balance = 0
        projected = None
        for p in merged:
            balance += p.amount
            p.balance = balance
            if projected is None and balance >= goal.target_amount:
                projected = p.date

        target = goal.target_amount
        return GoalPayments(
            goal_id=goal.id,
            target_amount=target,
            payments=merged,
            total_saved=total_saved,
            total_remaining=max(0, target - total_saved),
            progress_percentage=min(100, (total_saved * 200 + target) // (target * 2)),
            projected_completion_date=projected,
        )

    def _simulate(
        self,
        templates: list[Template],
        last_dates: dict[int, str],
        as_of: date,
        shortfall: int,
    ) -> list[GoalPayment]:
        """Step linked templates forward, earliest date first, until the shortfall is covered."""
        cursors: dict[int, date] = {}
        by_id = {t.id: t for t in templates}
        for t in templates:
            try:
                first = self._first_simulated_date(t, last_dates.get(t.id), as_of)
            except RecurrenceError as e:
                logger.warning("Cannot project template '%s': %s", t.name, e)
                continue
            if first is not None:
                cursors[t.id] = first

        result: list[GoalPayment] = []
        covered = 0
        while cursors and covered < shortfall and len(result) < GOAL_MAX_SIMULATED_PAYMENTS:
            tid = min(cursors, key=lambda k: (cursors[k], k))
            template = by_id[tid]
            d = cursors[tid]
            result.append(GoalPayment(
                format_date(d), template.name, template.amount,
                status="upcoming", is_simulated=True,
            ))
            covered += template.amount
            nxt = next_payment_date(d, template.billing_period, anchor_day_of(template))
            if self._past_end(template, nxt):
                del cursors[tid]
            else:
                cursors[tid] = nxt
        return result

    def _first_simulated_date(self, template: Template, last: str | None, as_of: date) -> date | None:
        """First date after both the last generated occurrence and today."""
        anchor_day = anchor_day_of(template)
        if last:
            d = next_payment_date(parse_date(last), template.billing_period, anchor_day)
        else:
            d = self._first_scheduled_date(template, as_of)
            if d is None:
                return None
        steps = 0
        while d <= as_of:
            d = next_payment_date(d, template.billing_period, anchor_day)
            steps += 1
            if steps > _MAX_CATCHUP_STEPS:
                return None
        return None if self._past_end(template, d) else d

    @staticmethod
    def _first_scheduled_date(template: Template, as_of: date) -> date | None:
        # A template with no generated history: look ahead a year for its next date
        month = format_month(as_of)
        for _ in range(13):
            for d in dates_in_month(template, month):
                if d > as_of:
                    return d
            month = next_month(month)
        return None

    @staticmethod
    def _past_end(template: Template, d: date) -> bool:
        end = parse_date(template.end_date) if template.end_date else None
        return end is not None and d > end

    # ── Schedule removal & contributions ─────────────────────────────────────

    def remove_schedule(self, goal_id: int, template_id: int, as_of: date | None = None) -> ScheduleRemoval:
        """Stop a bill's contributions while keeping every payment already made.

        Locked months are left as they are and reported in skipped_months.
        """
        as_of = as_of or today()
        as_of_str = format_date(as_of)
        goal = self.get_by_id(goal_id)
        template = self._template(template_id)
        if template.goal_id != goal.id:
            raise ValidationError("Bill is not linked to this goal.", field="template_id")

        stamp = f"[Schedule ended on {as_of.strftime('%b %d, %Y')}]"
        notes = f"{template.notes}\n{stamp}" if template.notes else stamp
        self._template_dao.end_schedule(template.id, notes)

        result = ScheduleRemoval(goal_id=goal.id, template_id=template.id)
        for data in self._month_dao.get_all():
            targets = [
                (inst, occ)
                for _, inst in data.all_instances()
                if inst.template_id == template.id and not inst.is_adhoc
                for occ in inst.occurrences
                if not occ.is_closed and occ.expected_date > as_of_str
            ]
            if not targets:
                continue
            if data.is_read_only:
                logger.warning(
                    "Month %s is read-only; left %d future occurrence(s) of '%s' open",
                    data.month, len(targets), template.name,
                )
                result.skipped_months.append(data.month)
                continue
            now = now_iso()
            for inst, occ in targets:
                occ.is_closed = True
                occ.closed_date = as_of_str
                occ.notes = f"{occ.notes}\n{SCHEDULE_ENDED_NOTE}" if occ.notes else SCHEDULE_ENDED_NOTE
                occ.updated_at = now
                inst.updated_at = now
            self._month_dao.save(data)
            result.closed_count += len(targets)

        logger.info(
            "Ended schedule of '%s' for goal '%s': %d occurrence(s) closed",
            template.name, goal.name, result.closed_count,
        )
        return result

    def contribute(
        self,
        goal_id: int,
        amount: int,
        date_str: str,
        payment_source_id: int | None = None,
        name: str | None = None,
    ) -> Instance:
        """Record a one-time contribution as a paid ad-hoc bill in that date's month."""
        goal = self.get_by_id(goal_id)
        if goal.status not in ("saving", "paused"):
            raise ValidationError(f"Cannot contribute to a goal that is {goal.status}.", field="status")
        validate_amount(amount)
        validate_date(date_str)
        month = date_str[:7]
        if not self._month_dao.exists(month):
            self._sync.sync(month)
        return self._month_svc.create_adhoc_instance(
            month, "bill", name or f"Contribution: {goal.name}", amount,
            date=date_str, payment_source_id=payment_source_id,
            goal_id=goal.id, paid=True,
        )

    # ── Helpers ──────────────────────────────────────────────────────────────

    def _template(self, template_id: int) -> Template:
        template = self._template_dao.get_by_id(template_id)
        if template is None:
            raise NotFoundError("Template", template_id)
        return template

    def _require_status(self, goal_id: int, allowed: tuple[str, ...], action: str) -> SavingsGoal:
        goal = self.get_by_id(goal_id)
        if goal.status not in allowed:
            raise ValidationError(f"Cannot {action} a goal that is {goal.status}.", field="status")
        return goal

    @staticmethod
    def _validate(name: str, target_amount: int, target_date: str) -> str:
        name = (name or "").strip()
        if not name:
            raise ValidationError("Goal name cannot be empty.", field="name")
        validate_amount(target_amount, "target_amount")
        validate_date(target_date, "target_date")
        return name
