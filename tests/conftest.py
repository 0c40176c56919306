"""Shared fixtures: an in-memory database and the full service graph per test."""
import sys
from pathlib import Path

import pytest

# The app uses a flat layout; make the repository root importable.
ROOT = Path(__file__).resolve().parent.parent
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from database.db_manager import DatabaseManager  # noqa: E402
from database.month_dao import MonthDAO  # noqa: E402
from database.payment_source_dao import PaymentSourceDAO  # noqa: E402
from database.savings_goal_dao import SavingsGoalDAO  # noqa: E402
from database.template_dao import TemplateDAO  # noqa: E402
from services.goal_service import GoalService  # noqa: E402
from services.leftover_service import LeftoverService  # noqa: E402
from services.month_service import MonthService  # noqa: E402
from services.occurrence_service import OccurrenceService  # noqa: E402
from services.payment_service import PaymentService  # noqa: E402
from services.payment_source_service import PaymentSourceService  # noqa: E402
from services.sync_service import InstanceSynchronizer  # noqa: E402
from services.template_service import TemplateService  # noqa: E402


@pytest.fixture
def db():
    manager = DatabaseManager(":memory:")
    manager.initialize()
    yield manager
    manager.close()


@pytest.fixture
def month_dao(db):
    return MonthDAO(db)


@pytest.fixture
def template_dao(db):
    return TemplateDAO(db)


@pytest.fixture
def source_dao(db):
    return PaymentSourceDAO(db)


@pytest.fixture
def goal_dao(db):
    return SavingsGoalDAO(db)


@pytest.fixture
def synchronizer(month_dao, template_dao):
    return InstanceSynchronizer(month_dao, template_dao)


@pytest.fixture
def occurrences(month_dao):
    return OccurrenceService(month_dao)


@pytest.fixture
def payments(month_dao):
    return PaymentService(month_dao)


@pytest.fixture
def months(month_dao, source_dao):
    return MonthService(month_dao, source_dao)


@pytest.fixture
def leftover(month_dao, source_dao):
    return LeftoverService(month_dao, source_dao)


@pytest.fixture
def templates(template_dao):
    return TemplateService(template_dao)


@pytest.fixture
def sources(source_dao):
    return PaymentSourceService(source_dao)


@pytest.fixture
def goals(goal_dao, template_dao, month_dao, months, synchronizer):
    return GoalService(
        goal_dao, template_dao, month_dao, months, synchronizer,
        thresholds=(0.75, 1.10),
    )


@pytest.fixture
def make_bill(templates):
    """Create a bill template; keyword arguments override the defaults."""
    def _make(name="Rent", amount=10000, billing_period="monthly", **kwargs):
        if billing_period == "monthly" and not {"day_of_month", "recurrence_week", "start_date"} & kwargs.keys():
            kwargs["day_of_month"] = 15
        return templates.create("bill", name, amount, billing_period, **kwargs)
    return _make


@pytest.fixture
def make_income(templates):
    def _make(name="Salary", amount=400000, billing_period="monthly", **kwargs):
        if billing_period == "monthly" and not {"day_of_month", "recurrence_week", "start_date"} & kwargs.keys():
            kwargs["day_of_month"] = 25
        return templates.create("income", name, amount, billing_period, **kwargs)
    return _make


@pytest.fixture
def instance_for():
    """Look up the generated instance of a template in a month document."""
    def _find(data, template_id):
        return next(i for _, i in data.all_instances() if i.template_id == template_id)
    return _find
