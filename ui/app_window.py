import logging

import customtkinter as ctk
from database.db_manager import DatabaseManager
from models.payment_source import PAYMENT_SOURCE_TYPE_LABELS, PaymentSource
from services.goal_service import GoalService
from services.leftover_service import LeftoverService
from services.month_service import MonthService
from services.occurrence_service import OccurrenceService
from services.payment_service import PaymentService
from services.payment_source_service import PaymentSourceService
from services.sync_service import InstanceSynchronizer, SyncResult
from services.template_service import TemplateService
from ui.components.alert_banner import AlertBanner
from ui.components.source_form import PaymentSourceForm
from ui.tabs.goals_tab import GoalsTab
from ui.tabs.month_tab import MonthTab
from ui.tabs.templates_tab import TemplatesTab
from utils.constants import APP_HEIGHT, APP_NAME, APP_WIDTH
from utils.date_helpers import friendly_month

logger = logging.getLogger(__name__)

_REFRESH_SCOPES: dict[str, set[str]] = {
    "month":    {"month", "goals"},
    "template": {"month", "templates", "goals"},
    "goal":     {"goals", "templates"},
    "source":   {"month", "templates"},
    "full":     {"month", "goals", "templates"},
}


class AppWindow(ctk.CTk):
    def __init__(
        self,
        month_service: MonthService,
        occurrence_service: OccurrenceService,
        payment_service: PaymentService,
        leftover_service: LeftoverService,
        synchronizer: InstanceSynchronizer,
        template_service: TemplateService,
        goal_service: GoalService,
        source_service: PaymentSourceService,
        db: DatabaseManager | None = None,
        initial_month: str | None = None,
        startup_sync: SyncResult | None = None,
        date_format: str = "MM/DD/YYYY",
        **kwargs,
    ):
        super().__init__(**kwargs)
        self._month_svc = month_service
        self._occ_svc = occurrence_service
        self._pay_svc = payment_service
        self._leftover_svc = leftover_service
        self._sync = synchronizer
        self._template_svc = template_service
        self._goal_svc = goal_service
        self._source_svc = source_service
        self._db = db
        self._date_format = date_format

        self.title(APP_NAME)
        self.minsize(APP_WIDTH, APP_HEIGHT)
        self.geometry(f"{APP_WIDTH}x{APP_HEIGHT}")

        self._sources: list[PaymentSource] = self._source_svc.get_all()
        self._current_source: PaymentSource | None = self._sources[0] if self._sources else None

        self.grid_columnconfigure(0, weight=1)
        self.grid_rowconfigure(2, weight=1)

        self._build_source_bar()
        self._build_banner_area()
        self._build_tabs(initial_month)

        if startup_sync is not None:
            self.after(300, lambda: self._show_sync_banner(startup_sync))

    # ── Payment source bar ───────────────────────────────────────────────────
    def _build_source_bar(self):
        bar = ctk.CTkFrame(self, fg_color=("gray85", "gray15"), corner_radius=0, height=44)
        bar.grid(row=0, column=0, sticky="ew")
        bar.grid_propagate(False)

        ctk.CTkLabel(bar, text="Payment source:", anchor="e").pack(side="left", padx=(12, 4), pady=8)

        current_name = self._current_source.name if self._current_source else ""
        self._source_combo_var = ctk.StringVar(value=current_name)
        self._source_combo = ctk.CTkComboBox(
            bar,
            values=[s.name for s in self._sources],
            variable=self._source_combo_var,
            width=200,
            state="readonly",
            command=self._on_source_changed,
        )
        self._source_combo.pack(side="left", padx=4)

        ctk.CTkButton(
            bar, text="+ New Source", width=110,
            command=self._open_new_source,
        ).pack(side="left", padx=4)

        ctk.CTkButton(
            bar, text="Edit Source", width=100,
            fg_color="transparent", border_width=1,
            text_color=("gray10", "gray90"),
            command=self._open_edit_source,
        ).pack(side="left", padx=4)

        self._source_type_label = ctk.CTkLabel(bar, text="", text_color="gray60", width=120)
        self._source_type_label.pack(side="left", padx=(4, 8))
        self._update_source_type_label()

        mode = self._db.get_setting("appearance_mode", "system") if self._db else "system"
        self._appearance_var = ctk.StringVar(value=mode.title())
        ctk.CTkSegmentedButton(
            bar, values=["Light", "Dark", "System"], variable=self._appearance_var,
            command=self._on_appearance_changed,
        ).pack(side="right", padx=12)

    def _build_banner_area(self):
        self._banner_frame = ctk.CTkFrame(self, fg_color="transparent", height=0)
        self._banner_frame.grid(row=1, column=0, sticky="ew", padx=8)

    def _build_tabs(self, initial_month: str | None):
        self._tabview = ctk.CTkTabview(self)
        self._tabview.grid(row=2, column=0, sticky="nsew", padx=8, pady=(0, 8))

        for tab_name in ("Month", "Goals", "Templates"):
            self._tabview.add(tab_name)
            self._tabview.tab(tab_name).grid_columnconfigure(0, weight=1)
            self._tabview.tab(tab_name).grid_rowconfigure(0, weight=1)

        self._month_tab = MonthTab(
            self._tabview.tab("Month"),
            month_service=self._month_svc,
            occurrence_service=self._occ_svc,
            payment_service=self._pay_svc,
            leftover_service=self._leftover_svc,
            synchronizer=self._sync,
            source_service=self._source_svc,
            notify_refresh=self.notify_tabs_refresh,
            show_message=self.show_banner,
            date_format=self._date_format,
            initial_month=initial_month,
        )
        self._month_tab.grid(row=0, column=0, sticky="nsew")

        self._goals_tab = GoalsTab(
            self._tabview.tab("Goals"),
            goal_service=self._goal_svc,
            source_service=self._source_svc,
            notify_refresh=self.notify_tabs_refresh,
            show_message=self.show_banner,
            date_format=self._date_format,
        )
        self._goals_tab.grid(row=0, column=0, sticky="nsew")

        self._templates_tab = TemplatesTab(
            self._tabview.tab("Templates"),
            template_service=self._template_svc,
            source_service=self._source_svc,
            goal_service=self._goal_svc,
            notify_refresh=self.notify_tabs_refresh,
            date_format=self._date_format,
        )
        self._templates_tab.grid(row=0, column=0, sticky="nsew")

    # ── Payment source management ────────────────────────────────────────────
    def _on_source_changed(self, value=None):
        name = self._source_combo_var.get()
        self._current_source = next((s for s in self._sources if s.name == name), None)
        self._update_source_type_label()

    def _open_new_source(self):
        form = PaymentSourceForm(self, self._source_svc)
        self.wait_window(form)
        if form.saved:
            self._refresh_source_bar()
            self.notify_tabs_refresh("source")

    def _open_edit_source(self):
        if not self._current_source:
            return
        form = PaymentSourceForm(self, self._source_svc, source=self._current_source)
        self.wait_window(form)
        if form.saved:
            self._refresh_source_bar()
            self.notify_tabs_refresh("source")

    def _refresh_source_bar(self):
        self._sources = self._source_svc.get_all()
        self._source_combo.configure(values=[s.name for s in self._sources])
        if self._current_source:
            match = next((s for s in self._sources if s.id == self._current_source.id), None)
            self._current_source = match or (self._sources[0] if self._sources else None)
        else:
            self._current_source = self._sources[0] if self._sources else None
        new_name = self._current_source.name if self._current_source else ""
        self._source_combo_var.set(new_name)
        self._source_combo.set(new_name)
        self._update_source_type_label()

    def _update_source_type_label(self):
        if self._current_source:
            label = PAYMENT_SOURCE_TYPE_LABELS.get(self._current_source.type, "")
            if not self._current_source.is_active:
                label += ", inactive"
            self._source_type_label.configure(text=f"[{label}]")
        else:
            self._source_type_label.configure(text="")

    def _on_appearance_changed(self, value: str):
        mode = value.lower()
        ctk.set_appearance_mode(mode)
        if self._db:
            self._db.set_setting("appearance_mode", mode)
        self._goals_tab.refresh()

    # ── Refresh ──────────────────────────────────────────────────────────────
    def notify_tabs_refresh(self, scope: str = "full"):
        tabs = _REFRESH_SCOPES.get(scope, _REFRESH_SCOPES["full"])
        if "month"     in tabs: self._month_tab.refresh()
        if "goals"     in tabs: self._goals_tab.refresh()
        if "templates" in tabs: self._templates_tab.refresh()

    # ── Banners ──────────────────────────────────────────────────────────────
    def show_banner(self, message: str, severity: str = "info", action_text=None, action_cmd=None):
        for w in self._banner_frame.winfo_children():
            w.destroy()
        AlertBanner(
            self._banner_frame, message=message, severity=severity,
            action_text=action_text, action_cmd=action_cmd,
        ).pack(fill="x", pady=2)

    def _show_sync_banner(self, result: SyncResult):
        if result.failures:
            details = "; ".join(f"{f.template_name}: {f.message}" for f in result.failures)
            self.show_banner(
                f"Some templates could not be scheduled for {friendly_month(result.month)}. {details}",
                "warning", action_text="Templates", action_cmd=lambda: self._tabview.set("Templates"),
            )
        elif result.created_month:
            self.show_banner(
                f"{friendly_month(result.month)} was set up with "
                f"{result.instances_added} bill(s) and income(s).", "info",
            )
        elif result.changed:
            self.show_banner(
                f"{result.instances_added} new item(s) and {result.occurrences_added} occurrence(s) "
                f"added to {friendly_month(result.month)}.", "info",
            )

    def report_callback_exception(self, exc, val, tb):
        # last stop for anything a tab did not handle itself
        logger.error("Unhandled error in UI callback", exc_info=(exc, val, tb))
        self.show_banner(f"Internal error: {val}", "error")
