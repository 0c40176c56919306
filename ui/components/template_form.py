import customtkinter as ctk
from models.template import Template
from services.goal_service import GoalService
from services.payment_source_service import PaymentSourceService
from services.template_service import TemplateService
from ui.components.confirm_dialog import ConfirmDialog
from ui.components.date_picker import DatePickerWidget
from utils.constants import (
    BILLING_PERIOD_LABELS, BILLING_PERIODS, DAYS_OF_WEEK, LAST_WEEK_OF_MONTH,
)
from utils.currency import parse_amount
from utils.date_helpers import today_str
from utils.errors import BillfoldError

_NONE = "(none)"
_WEEK_LABELS = ["1st", "2nd", "3rd", "4th", "Last"]
_ANCHOR_MODES = ["Day of month", "Nth weekday", "Start date"]
_PERIOD_BY_LABEL = {BILLING_PERIOD_LABELS[p]: p for p in BILLING_PERIODS}


class TemplateForm(ctk.CTkToplevel):
    """Add or edit a bill or income template."""

    def __init__(
        self,
        master,
        template_service: TemplateService,
        source_service: PaymentSourceService,
        goal_service: GoalService,
        template: Template | None = None,
        kind: str = "bill",
        date_format: str = "MM/DD/YYYY",
        **kwargs,
    ):
        super().__init__(master, **kwargs)
        self._svc = template_service
        self._template = template
        self._date_format = date_format
        self.saved = False

        t = template
        self._kind = t.kind if t else kind
        noun = "Bill" if self._kind == "bill" else "Income"
        self.title(f"Edit {noun}" if t else f"New {noun}")
        self.resizable(False, False)
        self.grid_columnconfigure(1, weight=1)

        self._sources = source_service.get_active()
        self._goals = [g for g in goal_service.get_all() if g.status in ("saving", "paused")]

        r = 0
        self._add_label("Name:", r)
        self._name_var = ctk.StringVar(value=t.name if t else "")
        ctk.CTkEntry(self, textvariable=self._name_var, width=220).grid(
            row=r, column=1, padx=(0, 16), pady=4, sticky="ew"
        )
        r += 1

        self._add_label("Amount:", r)
        self._amount_var = ctk.StringVar(value=f"{t.amount / 100:.2f}" if t else "")
        ctk.CTkEntry(self, textvariable=self._amount_var, width=220).grid(
            row=r, column=1, padx=(0, 16), pady=4, sticky="ew"
        )
        r += 1

        self._add_label("Repeats:", r)
        self._period_var = ctk.StringVar(
            value=BILLING_PERIOD_LABELS[t.billing_period if t else "monthly"]
        )
        ctk.CTkComboBox(
            self, values=list(_PERIOD_BY_LABEL), variable=self._period_var,
            width=220, state="readonly", command=lambda _: self._refresh_anchor_fields(),
        ).grid(row=r, column=1, padx=(0, 16), pady=4, sticky="ew")
        r += 1

        # Anchor fields (dynamic)
        self._anchor_frame = ctk.CTkFrame(self, fg_color="transparent")
        self._anchor_frame.grid(row=r, column=0, columnspan=2, padx=16, pady=2, sticky="ew")
        r += 1
        if t and t.recurrence_week is not None and t.billing_period == "monthly":
            mode = "Nth weekday"
        elif t and t.day_of_month is None and t.start_date:
            mode = "Start date"
        else:
            mode = "Day of month"
        self._mode_var = ctk.StringVar(value=mode)
        self._dom_var = ctk.StringVar(value=str(t.day_of_month) if t and t.day_of_month else "1")
        self._week_var = ctk.StringVar(
            value=_WEEK_LABELS[t.recurrence_week - 1] if t and t.recurrence_week else "1st"
        )
        self._weekday_var = ctk.StringVar(
            value=DAYS_OF_WEEK[t.recurrence_day] if t and t.recurrence_day is not None else "Mon"
        )
        self._refresh_anchor_fields()

        self._add_label("Start Date:", r)
        self._start_picker = DatePickerWidget(
            self, initial_date=t.start_date if t else today_str(), date_format=date_format,
        )
        self._start_picker.grid(row=r, column=1, padx=(0, 16), pady=4, sticky="w")
        r += 1

        self._add_label("End Date:", r)
        self._end_picker = DatePickerWidget(
            self, initial_date=t.end_date if t else "", date_format=date_format,
        )
        self._end_picker.grid(row=r, column=1, padx=(0, 16), pady=4, sticky="w")
        ctk.CTkLabel(self, text="(optional)", text_color="gray60", font=ctk.CTkFont(size=11)).grid(
            row=r, column=1, padx=(160, 0), pady=4, sticky="w"
        )
        r += 1

        self._add_label("Paid From:" if self._kind == "bill" else "Paid Into:", r)
        source_name = next((s.name for s in self._sources if t and s.id == t.payment_source_id), _NONE)
        self._source_var = ctk.StringVar(value=source_name)
        ctk.CTkComboBox(
            self, values=[_NONE] + [s.name for s in self._sources],
            variable=self._source_var, width=220, state="readonly",
        ).grid(row=r, column=1, padx=(0, 16), pady=4, sticky="ew")
        r += 1

        self._goal_var = ctk.StringVar(
            value=next((g.name for g in self._goals if t and g.id == t.goal_id), _NONE)
        )
        if self._kind == "bill":
            self._add_label("Savings Goal:", r)
            ctk.CTkComboBox(
                self, values=[_NONE] + [g.name for g in self._goals],
                variable=self._goal_var, width=220, state="readonly",
            ).grid(row=r, column=1, padx=(0, 16), pady=4, sticky="ew")
            r += 1

        self._add_label("Notes:", r)
        self._notes_var = ctk.StringVar(value=t.notes if t else "")
        ctk.CTkEntry(self, textvariable=self._notes_var, width=220).grid(
            row=r, column=1, padx=(0, 16), pady=4, sticky="ew"
        )
        r += 1

        self._error_var = ctk.StringVar()
        ctk.CTkLabel(
            self, textvariable=self._error_var,
            text_color="#F44336", wraplength=280, anchor="w",
        ).grid(row=r, column=0, columnspan=2, padx=16, pady=(0, 4), sticky="ew")
        r += 1

        btn_frame = ctk.CTkFrame(self, fg_color="transparent")
        btn_frame.grid(row=r, column=0, columnspan=2, padx=16, pady=(4, 16), sticky="ew")
        ctk.CTkButton(
            btn_frame, text="Cancel", width=90,
            fg_color="transparent", border_width=1,
            text_color=("gray10", "gray90"),
            command=self.destroy,
        ).pack(side="left")
        if t:
            ctk.CTkButton(
                btn_frame, text="Delete", width=80,
                fg_color="#F44336", hover_color="#D32F2F",
                command=self._on_delete,
            ).pack(side="left", padx=8)
        ctk.CTkButton(btn_frame, text="Save", width=90, command=self._on_save).pack(side="right")

        self.transient(master)
        self.grab_set()
        self._center()

    def _add_label(self, text, row):
        ctk.CTkLabel(self, text=text).grid(
            row=row, column=0, padx=(16, 8), pady=4, sticky="e"
        )

    def _period(self) -> str:
        return _PERIOD_BY_LABEL[self._period_var.get()]

    def _refresh_anchor_fields(self):
        for w in self._anchor_frame.winfo_children():
            w.destroy()

        period = self._period()
        if period != "monthly":
            hint = "Repeats from the start date." if period != "semi_annually" else \
                "Every 6 months from the start date's month."
            ctk.CTkLabel(self._anchor_frame, text=hint, text_color="gray60").grid(
                row=0, column=0, columnspan=4, sticky="w"
            )
            return

        ctk.CTkSegmentedButton(
            self._anchor_frame, values=_ANCHOR_MODES, variable=self._mode_var,
            command=lambda _: self._refresh_anchor_fields(),
        ).grid(row=0, column=0, columnspan=4, sticky="w", pady=(0, 4))

        mode = self._mode_var.get()
        if mode == "Day of month":
            ctk.CTkLabel(self._anchor_frame, text="Day:").grid(row=1, column=0, padx=(0, 8), sticky="e")
            ctk.CTkComboBox(
                self._anchor_frame, values=[str(i) for i in range(1, 32)],
                variable=self._dom_var, width=80, state="readonly",
            ).grid(row=1, column=1, sticky="w")
        elif mode == "Nth weekday":
            ctk.CTkComboBox(
                self._anchor_frame, values=_WEEK_LABELS,
                variable=self._week_var, width=80, state="readonly",
            ).grid(row=1, column=0, sticky="w")
            ctk.CTkComboBox(
                self._anchor_frame, values=DAYS_OF_WEEK,
                variable=self._weekday_var, width=80, state="readonly",
            ).grid(row=1, column=1, padx=(8, 0), sticky="w")
        else:
            ctk.CTkLabel(
                self._anchor_frame, text="Same day of month as the start date.", text_color="gray60",
            ).grid(row=1, column=0, columnspan=4, sticky="w")

    def _on_save(self):
        try:
            amount = parse_amount(self._amount_var.get())
        except ValueError as e:
            self._error_var.set(str(e))
            return

        start_date = self._start_picker.get() or None
        if start_date and not self._start_picker.is_valid():
            self._error_var.set("Invalid start date.")
            return
        end_date = self._end_picker.get() or None
        if end_date and not self._end_picker.is_valid():
            self._error_var.set("Invalid end date.")
            return

        period = self._period()
        day_of_month = week = weekday = None
        if period == "monthly":
            mode = self._mode_var.get()
            if mode == "Day of month":
                day_of_month = int(self._dom_var.get())
            elif mode == "Nth weekday":
                week = min(_WEEK_LABELS.index(self._week_var.get()) + 1, LAST_WEEK_OF_MONTH)
                weekday = DAYS_OF_WEEK.index(self._weekday_var.get())

        source = next((s for s in self._sources if s.name == self._source_var.get()), None)
        goal = next((g for g in self._goals if g.name == self._goal_var.get()), None)

        fields = dict(
            kind=self._kind,
            name=self._name_var.get(),
            amount=amount,
            billing_period=period,
            day_of_month=day_of_month,
            recurrence_week=week,
            recurrence_day=weekday,
            start_date=start_date,
            end_date=end_date,
            payment_source_id=source.id if source else None,
            goal_id=goal.id if goal and self._kind == "bill" else None,
            notes=self._notes_var.get(),
        )
        try:
            if self._template:
                self._svc.update(self._template.id, is_active=self._template.is_active, **fields)
            else:
                self._svc.create(**fields)
        except BillfoldError as e:
            self._error_var.set(str(e))
            return
        self.saved = True
        self.destroy()

    def _on_delete(self):
        dlg = ConfirmDialog(
            self, "Delete", f"Delete '{self._template.name}'? Months already generated keep their copies.",
            confirm_text="Delete",
        )
        if not dlg.result:
            return
        self._svc.delete(self._template.id)
        self.saved = True
        self.destroy()

    def _center(self):
        self.update_idletasks()
        mw = self.master.winfo_x() + self.master.winfo_width() // 2
        mh = self.master.winfo_y() + self.master.winfo_height() // 2
        w, h = self.winfo_reqwidth(), self.winfo_reqheight()
        self.geometry(f"+{mw - w//2}+{mh - h//2}")
