import logging

from database.month_dao import MonthDAO
from database.payment_source_dao import PaymentSourceDAO
from models.instance import Instance
from models.monthly_data import MonthlyData
from models.payment_source import PaymentSource
from models.summary import LeftoverSummary, SectionSummary
from services.month_access import load_month
from utils.date_helpers import prev_month

logger = logging.getLogger(__name__)


class LeftoverService:
    """Derives a month's financial position from its raw occurrences.

    Nothing here is cached; every call recomputes from the stored documents.
    """

    def __init__(self, month_dao: MonthDAO, source_dao: PaymentSourceDAO):
        self._month_dao = month_dao
        self._source_dao = source_dao

    def calculate_leftover(self, month: str) -> LeftoverSummary:
        data = load_month(self._month_dao, month)
        sources = {s.id: s for s in self._source_dao.get_all()}

        # Walk back to the nearest month with entered balances, then carry forward
        chain = [data]
        while not chain[-1].bank_balances:
            prev = self._month_dao.get(prev_month(chain[-1].month))
            if prev is None:
                break
            chain.append(prev)

        carried: int | None = None
        summary = None
        for doc in reversed(chain):
            summary = self._summarize(doc, sources, carried)
            carried = summary.leftover
        return summary

    def starting_balance(self, data: MonthlyData, sources: dict[int, PaymentSource]) -> int:
        """Sum of entered balances for sources that count toward leftover."""
        total = 0
        for source_id, amount in data.bank_balances.items():
            source = sources.get(source_id)
            if source is None:
                logger.debug("Ignoring balance for unknown source %s in %s", source_id, data.month)
                continue
            if source.counts_toward_leftover:
                total += amount
        return total

    @staticmethod
    def summarize_section(instances: list[Instance]) -> tuple[SectionSummary, int]:
        """Return the section totals and its leftover contribution.

        The contribution counts what was actually paid on closed occurrences
        and what is still expected on open ones.
        """
        section = SectionSummary()
        contribution = 0
        for inst in instances:
            for occ in inst.occurrences:
                paid = occ.paid_amount
                section.expected += occ.expected_amount
                section.actual += paid
                section.total_count += 1
                if occ.is_closed:
                    section.closed_count += 1
                    contribution += paid
                else:
                    section.remaining += max(0, occ.expected_amount - paid)
                    contribution += occ.expected_amount
        return section, contribution

    def _summarize(
        self,
        data: MonthlyData,
        sources: dict[int, PaymentSource],
        carried: int | None,
    ) -> LeftoverSummary:
        if data.bank_balances:
            start, balance_source = self.starting_balance(data, sources), "entered"
        elif carried is not None:
            start, balance_source = carried, "carried_forward"
        else:
            start, balance_source = 0, "none"

        bills, bills_out = self.summarize_section(data.bill_instances)
        incomes, incomes_in = self.summarize_section(data.income_instances)
        expenses = data.variable_expenses_total
        missing = [
            s.id for s in sources.values()
            if s.is_active and s.counts_toward_leftover and s.id not in data.bank_balances
        ]
        return LeftoverSummary(
            month=data.month,
            starting_balance=start,
            bills=bills,
            incomes=incomes,
            variable_expenses_total=expenses,
            leftover=start + incomes_in - bills_out - expenses,
            balance_source=balance_source,
            missing_balances=missing,
        )
