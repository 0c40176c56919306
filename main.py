import logging
import os
import sys
import customtkinter as ctk

# Ensure project root is on sys.path when run directly
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from database.db_manager import DatabaseManager
from database.month_dao import MonthDAO
from database.payment_source_dao import PaymentSourceDAO
from database.savings_goal_dao import SavingsGoalDAO
from database.template_dao import TemplateDAO

from services.goal_service import GoalService
from services.leftover_service import LeftoverService
from services.month_service import MonthService
from services.occurrence_service import OccurrenceService
from services.payment_service import PaymentService
from services.payment_source_service import PaymentSourceService
from services.sync_service import InstanceSynchronizer
from services.template_service import TemplateService

from ui.app_window import AppWindow
from utils.app_config import get_db_folder, get_goal_thresholds, get_log_level
from utils.date_helpers import current_month_str
from utils.errors import BillfoldError

logger = logging.getLogger(__name__)


def main():
    # ── Logging ──────────────────────────────────────────────────────────────
    logging.basicConfig(
        level=get_log_level(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    # ── Database ─────────────────────────────────────────────────────────────
    db = DatabaseManager.open_in_folder(get_db_folder())

    # ── DAOs ─────────────────────────────────────────────────────────────────
    source_dao = PaymentSourceDAO(db)
    template_dao = TemplateDAO(db)
    goal_dao = SavingsGoalDAO(db)
    month_dao = MonthDAO(db)

    # ── Services ─────────────────────────────────────────────────────────────
    source_svc = PaymentSourceService(source_dao)
    template_svc = TemplateService(template_dao)
    synchronizer = InstanceSynchronizer(month_dao, template_dao)
    month_svc = MonthService(month_dao, source_dao)
    occurrence_svc = OccurrenceService(month_dao)
    payment_svc = PaymentService(month_dao)
    leftover_svc = LeftoverService(month_dao, source_dao)
    goal_svc = GoalService(
        goal_dao, template_dao, month_dao, month_svc, synchronizer,
        thresholds=get_goal_thresholds(),
    )

    # ── Bring the current month up to date ───────────────────────────────────
    this_month = current_month_str()
    startup_sync = None
    try:
        startup_sync = synchronizer.sync(this_month)
    except BillfoldError as e:
        logger.warning("Could not sync %s at startup: %s", this_month, e)

    # ── Appearance ───────────────────────────────────────────────────────────
    appearance = db.get_setting("appearance_mode", "system")
    date_format = db.get_setting("date_format", "MM/DD/YYYY")
    ctk.set_appearance_mode(appearance)
    ctk.set_default_color_theme("blue")

    # ── Launch UI ────────────────────────────────────────────────────────────
    app = AppWindow(
        month_service=month_svc,
        occurrence_service=occurrence_svc,
        payment_service=payment_svc,
        leftover_service=leftover_svc,
        synchronizer=synchronizer,
        template_service=template_svc,
        goal_service=goal_svc,
        source_service=source_svc,
        db=db,
        initial_month=this_month,
        startup_sync=startup_sync,
        date_format=date_format,
    )

    def on_close():
        db.close()
        app.destroy()

    app.protocol("WM_DELETE_WINDOW", on_close)
    app.mainloop()


if __name__ == "__main__":
    main()
