import customtkinter as ctk
from models.template import Template
from services.goal_service import GoalService
from services.payment_source_service import PaymentSourceService
from services.template_service import TemplateService
from ui.components.template_form import TemplateForm
from utils.constants import BILLING_PERIOD_LABELS, DAYS_OF_WEEK, LAST_WEEK_OF_MONTH
from utils.currency import format_currency
from utils.date_helpers import format_date, format_display_date

_ORDINALS = {1: "1st", 2: "2nd", 3: "3rd", 4: "4th", LAST_WEEK_OF_MONTH: "Last"}


def describe_schedule(t: Template, date_format: str) -> str:
    if t.billing_period == "monthly":
        if t.day_of_month:
            return f"Day {t.day_of_month}"
        if t.recurrence_week is not None:
            return f"{_ORDINALS[t.recurrence_week]} {DAYS_OF_WEEK[t.recurrence_day]}"
    if t.start_date:
        return f"From {format_display_date(t.start_date, date_format)}"
    return "No anchor"


class TemplatesTab(ctk.CTkFrame):
    def __init__(
        self,
        master,
        template_service: TemplateService,
        source_service: PaymentSourceService,
        goal_service: GoalService,
        notify_refresh,
        date_format: str = "MM/DD/YYYY",
        **kwargs,
    ):
        super().__init__(master, fg_color="transparent", **kwargs)
        self._svc = template_service
        self._source_svc = source_service
        self._goal_svc = goal_service
        self._notify_refresh = notify_refresh
        self._date_format = date_format
        self._kind_var = ctk.StringVar(value="Bills")

        self.grid_columnconfigure(0, weight=1)
        self.grid_rowconfigure(1, weight=1)

        self._build_toolbar()
        self._build_list()
        self._load()

    def refresh(self):
        self._load()

    def _kind(self) -> str:
        return "bill" if self._kind_var.get() == "Bills" else "income"

    def _build_toolbar(self):
        bar = ctk.CTkFrame(self, fg_color=("gray88", "gray18"), corner_radius=8)
        bar.grid(row=0, column=0, sticky="ew", padx=8, pady=(8, 0))
        ctk.CTkLabel(
            bar, text="Recurring Templates",
            font=ctk.CTkFont(size=14, weight="bold"),
        ).pack(side="left", padx=12, pady=8)
        ctk.CTkSegmentedButton(
            bar, values=["Bills", "Incomes"], variable=self._kind_var,
            command=lambda _: self._load(),
        ).pack(side="left", padx=8)
        self._monthly_label = ctk.CTkLabel(bar, text="", text_color="gray60")
        self._monthly_label.pack(side="left", padx=12)
        ctk.CTkButton(bar, text="+ Add", command=self._open_add).pack(
            side="right", padx=8, pady=6
        )

    def _build_list(self):
        self._scroll = ctk.CTkScrollableFrame(self)
        self._scroll.grid(row=1, column=0, sticky="nsew", padx=8, pady=8)
        self._scroll.grid_columnconfigure(0, weight=1)

    def _load(self):
        for w in self._scroll.winfo_children():
            w.destroy()

        kind = self._kind()
        templates = self._svc.get_all(kind)
        active = [t for t in templates if t.is_active]
        monthly = sum(self._svc.monthly_cost(t) for t in active)
        self._monthly_label.configure(
            text=f"Active: {len(active)}  |  ~{format_currency(monthly)} per month"
        )

        if not templates:
            ctk.CTkLabel(
                self._scroll,
                text="Nothing here yet. Click '+ Add' to create one.",
                text_color="gray60",
            ).grid(row=0, column=0, pady=40)
            return

        hdr = ctk.CTkFrame(self._scroll, fg_color=("gray82", "gray22"), corner_radius=0)
        hdr.grid(row=0, column=0, sticky="ew", pady=(0, 2))
        for i, (col, w) in enumerate([
            ("Name", 170), ("Amount", 90), ("Repeats", 110), ("Schedule", 130),
            ("Source", 110), ("Goal", 110), ("Next Due", 100), ("Status", 70), ("Actions", 90),
        ]):
            ctk.CTkLabel(
                hdr, text=col, width=w, anchor="w",
                font=ctk.CTkFont(weight="bold"),
            ).grid(row=0, column=i, padx=4, pady=4)

        goal_names = {g.id: g.name for g in self._goal_svc.get_all()}
        for idx, t in enumerate(templates):
            self._add_row(idx + 1, t, goal_names)

    def _add_row(self, idx: int, t: Template, goal_names: dict[int, str]):
        bg = ("gray92", "gray17") if idx % 2 == 0 else ("gray88", "gray21")
        row = ctk.CTkFrame(self._scroll, fg_color=bg, corner_radius=4)
        row.grid(row=idx, column=0, sticky="ew", pady=1, padx=2)

        next_due = self._svc.next_due_date(t) if t.is_active else None
        next_due_str = format_display_date(format_date(next_due), self._date_format) if next_due else "-"

        cells = [
            (t.name, 170),
            (format_currency(t.amount), 90),
            (BILLING_PERIOD_LABELS.get(t.billing_period, t.billing_period), 110),
            (describe_schedule(t, self._date_format), 130),
            (t.payment_source_name or "-", 110),
            (goal_names.get(t.goal_id, "-"), 110),
            (next_due_str, 100),
        ]
        for i, (text, width) in enumerate(cells):
            ctk.CTkLabel(row, text=text, width=width, anchor="w").grid(
                row=0, column=i, padx=4, pady=4
            )

        ctk.CTkLabel(
            row, text="Active" if t.is_active else "Inactive", width=70, anchor="w",
            text_color="#4CAF50" if t.is_active else "gray60",
        ).grid(row=0, column=7, padx=4)

        acts = ctk.CTkFrame(row, fg_color="transparent")
        acts.grid(row=0, column=8, padx=(4, 6))
        ctk.CTkButton(
            acts, text="Edit", width=40, height=24,
            command=lambda tpl=t: self._open_form(tpl),
        ).pack(side="left", padx=2)
        ctk.CTkButton(
            acts, text="Pause" if t.is_active else "Resume", width=52, height=24,
            fg_color="transparent", border_width=1,
            text_color=("gray10", "gray90"),
            command=lambda tpl=t: self._toggle_active(tpl),
        ).pack(side="left")

    def _open_add(self):
        self._open_form(None)

    def _open_form(self, template: Template | None):
        form = TemplateForm(
            self.winfo_toplevel(),
            self._svc, self._source_svc, self._goal_svc,
            template=template,
            kind=self._kind(),
            date_format=self._date_format,
        )
        self.wait_window(form)
        if form.saved:
            self._notify_refresh("template")

    def _toggle_active(self, t: Template):
        self._svc.set_active(t.id, not t.is_active)
        self._notify_refresh("template")
