import logging

import customtkinter as ctk
from models.instance import Instance, Occurrence
from models.monthly_data import MonthlyData
from models.summary import LeftoverSummary
from services.leftover_service import LeftoverService
from services.month_service import MonthService
from services.occurrence_service import OccurrenceService
from services.payment_service import PaymentService
from services.payment_source_service import PaymentSourceService
from services.sync_service import InstanceSynchronizer
from ui.components.confirm_dialog import ConfirmDialog
from ui.components.item_form import ItemForm
from ui.components.payment_form import PaymentForm
from utils.constants import DUE_SOON_DAYS
from utils.currency import format_currency, parse_amount
from utils.date_helpers import (
    current_month_str, format_display_date, friendly_month, next_month, prev_month, today,
)
from utils.errors import BillfoldError

logger = logging.getLogger(__name__)

_GREEN, _RED, _ORANGE = "#4CAF50", "#F44336", "#FF9800"


class MonthTab(ctk.CTkFrame):
    """One month at a time: bills, incomes, expenses, balances and leftover."""

    def __init__(
        self,
        master,
        month_service: MonthService,
        occurrence_service: OccurrenceService,
        payment_service: PaymentService,
        leftover_service: LeftoverService,
        synchronizer: InstanceSynchronizer,
        source_service: PaymentSourceService,
        notify_refresh,
        show_message,
        date_format: str = "MM/DD/YYYY",
        initial_month: str | None = None,
        **kwargs,
    ):
        super().__init__(master, fg_color="transparent", **kwargs)
        self._months = month_service
        self._occ_svc = occurrence_service
        self._pay_svc = payment_service
        self._leftover_svc = leftover_service
        self._sync = synchronizer
        self._source_svc = source_service
        self._notify_refresh = notify_refresh
        self._show_message = show_message
        self._date_format = date_format
        self._month = initial_month or current_month_str()
        self._data: MonthlyData | None = None

        self.grid_columnconfigure(0, weight=1)
        self.grid_rowconfigure(2, weight=1)

        self._build_toolbar()
        self._build_summary()
        self._build_body()
        self._load()

    def refresh(self):
        self._load()

    # ── Layout ───────────────────────────────────────────────────────────────

    def _build_toolbar(self):
        bar = ctk.CTkFrame(self, fg_color=("gray88", "gray18"), corner_radius=8)
        bar.grid(row=0, column=0, sticky="ew", padx=8, pady=(8, 0))

        ctk.CTkButton(bar, text="◀", width=32, command=lambda: self._go(prev_month(self._month))).pack(
            side="left", padx=(8, 2), pady=6
        )
        self._month_label = ctk.CTkLabel(
            bar, text="", width=150, font=ctk.CTkFont(size=14, weight="bold"),
        )
        self._month_label.pack(side="left", padx=4)
        ctk.CTkButton(bar, text="▶", width=32, command=lambda: self._go(next_month(self._month))).pack(
            side="left", padx=(2, 8)
        )
        ctk.CTkButton(
            bar, text="Today", width=60,
            fg_color="transparent", border_width=1, text_color=("gray10", "gray90"),
            command=lambda: self._go(current_month_str()),
        ).pack(side="left")

        self._lock_btn = ctk.CTkButton(bar, text="", width=90, command=self._toggle_lock)
        self._lock_btn.pack(side="right", padx=8)
        self._sync_btn = ctk.CTkButton(bar, text="Sync", width=70, command=self._on_sync)
        self._sync_btn.pack(side="right", padx=(8, 0))

        self._add_buttons = []
        for text, cmd in (
            ("+ Expense", self._add_expense),
            ("+ One-off Income", lambda: self._add_adhoc("income")),
            ("+ One-off Bill", lambda: self._add_adhoc("bill")),
        ):
            btn = ctk.CTkButton(bar, text=text, width=110, command=cmd)
            btn.pack(side="right", padx=(4, 0))
            self._add_buttons.append(btn)

    def _build_summary(self):
        card = ctk.CTkFrame(self, fg_color=("gray88", "gray18"), corner_radius=8)
        card.grid(row=1, column=0, sticky="ew", padx=8, pady=(8, 0))
        self._summary_labels: dict[str, ctk.CTkLabel] = {}
        for col, (key, title) in enumerate([
            ("start", "Starting Balance"), ("income", "Income"), ("bills", "Bills"),
            ("expenses", "Variable Expenses"), ("leftover", "Leftover"),
        ]):
            card.grid_columnconfigure(col, weight=1)
            ctk.CTkLabel(card, text=title, text_color="gray60").grid(row=0, column=col, pady=(8, 0))
            lbl = ctk.CTkLabel(card, text="", font=ctk.CTkFont(size=16, weight="bold"))
            lbl.grid(row=1, column=col)
            self._summary_labels[key] = lbl
        self._summary_note = ctk.CTkLabel(card, text="", text_color="gray60", font=ctk.CTkFont(size=11))
        self._summary_note.grid(row=2, column=0, columnspan=5, pady=(0, 8))

    def _build_body(self):
        self._scroll = ctk.CTkScrollableFrame(self)
        self._scroll.grid(row=2, column=0, sticky="nsew", padx=8, pady=8)
        self._scroll.grid_columnconfigure(0, weight=1)

    # ── Data ─────────────────────────────────────────────────────────────────

    def _go(self, month: str):
        self._month = month
        self._load()

    def _load(self):
        for w in self._scroll.winfo_children():
            w.destroy()
        self._month_label.configure(text=friendly_month(self._month))

        self._data = self._months.find_month(self._month)
        if self._data is None:
            self._show_empty()
            return

        locked = self._data.is_read_only
        self._lock_btn.configure(text="🔒 Locked" if locked else "Lock month", state="normal")
        state = "disabled" if locked else "normal"
        self._sync_btn.configure(state=state)
        for btn in self._add_buttons:
            btn.configure(state=state)

        self._render_summary(self._leftover_svc.calculate_leftover(self._month))

        row = 0
        row = self._render_section(row, "Income", self._data.income_instances, "income")
        row = self._render_section(row, "Bills", self._data.bill_instances, "bill")
        row = self._render_expenses(row)
        self._render_balances(row)

    def _show_empty(self):
        self._lock_btn.configure(text="Lock month", state="disabled")
        self._sync_btn.configure(state="normal")
        for btn in self._add_buttons:
            btn.configure(state="disabled")
        for lbl in self._summary_labels.values():
            lbl.configure(text="-", text_color=("gray10", "gray90"))
        self._summary_note.configure(text="")

        ctk.CTkLabel(
            self._scroll, text=f"{friendly_month(self._month)} has not been set up yet.",
            text_color="gray60",
        ).grid(row=0, column=0, pady=(40, 8))
        ctk.CTkButton(self._scroll, text="Create month from templates", command=self._on_sync).grid(
            row=1, column=0
        )

    def _render_summary(self, s: LeftoverSummary):
        labels = self._summary_labels
        labels["start"].configure(text=format_currency(s.starting_balance), text_color=("gray10", "gray90"))
        labels["income"].configure(
            text=f"{format_currency(s.incomes.actual)} / {format_currency(s.incomes.expected)}",
            text_color=_GREEN,
        )
        labels["bills"].configure(
            text=f"{format_currency(s.bills.actual)} / {format_currency(s.bills.expected)}",
            text_color=_RED,
        )
        labels["expenses"].configure(text=format_currency(s.variable_expenses_total), text_color=_RED)
        labels["leftover"].configure(
            text=format_currency(s.leftover), text_color=_GREEN if s.leftover >= 0 else _RED,
        )

        notes = {
            "entered": "Starting balance from entered account balances.",
            "carried_forward": "Starting balance carried forward from the previous month's leftover.",
            "none": "No account balances entered yet.",
        }
        note = notes.get(s.balance_source, "")
        if s.missing_balances and s.balance_source == "entered":
            note += f"  {len(s.missing_balances)} account(s) have no balance for this month."
        self._summary_note.configure(text=note)

    def _section_header(self, row: int, title: str) -> int:
        ctk.CTkLabel(
            self._scroll, text=title, anchor="w",
            font=ctk.CTkFont(size=14, weight="bold"),
        ).grid(row=row, column=0, sticky="ew", padx=4, pady=(10, 2))
        return row + 1

    def _render_section(self, row: int, title: str, instances: list[Instance], kind: str) -> int:
        row = self._section_header(row, title)
        if not instances:
            ctk.CTkLabel(self._scroll, text="None this month.", text_color="gray60", anchor="w").grid(
                row=row, column=0, sticky="ew", padx=12
            )
            return row + 1
        ref = today()
        for inst in sorted(instances, key=lambda i: (i.occurrences[0].expected_date if i.occurrences else "", i.name)):
            frame = ctk.CTkFrame(self._scroll, fg_color=("gray92", "gray17"), corner_radius=6)
            frame.grid(row=row, column=0, sticky="ew", pady=2, padx=2)
            frame.grid_columnconfigure(0, weight=1)
            self._render_instance(frame, inst, kind, ref)
            row += 1
        return row

    def _render_instance(self, frame, inst: Instance, kind: str, ref):
        head = ctk.CTkFrame(frame, fg_color="transparent")
        head.grid(row=0, column=0, sticky="ew", padx=6, pady=(4, 0))
        head.grid_columnconfigure(0, weight=1)

        title = inst.name + ("  (one-off)" if inst.is_adhoc else "  (card payoff)" if inst.is_payoff_bill else "")
        ctk.CTkLabel(head, text=title, anchor="w", font=ctk.CTkFont(weight="bold")).grid(
            row=0, column=0, sticky="w"
        )
        status = "Closed" if inst.is_closed else f"{inst.closed_count}/{len(inst.occurrences)} closed"
        ctk.CTkLabel(
            head,
            text=f"{format_currency(inst.paid_amount)} of {format_currency(inst.expected_amount)}  ·  {status}",
            text_color=_GREEN if inst.is_closed else "gray60",
        ).grid(row=0, column=1, padx=8)

        writable = not self._data.is_read_only
        if writable:
            acts = ctk.CTkFrame(head, fg_color="transparent")
            acts.grid(row=0, column=2)
            ctk.CTkButton(
                acts, text="+ Occurrence", width=90, height=24,
                fg_color="transparent", border_width=1, text_color=("gray10", "gray90"),
                command=lambda: self._add_occurrence(inst),
            ).pack(side="left", padx=2)
            if inst.is_adhoc:
                ctk.CTkButton(
                    acts, text="Delete", width=60, height=24,
                    fg_color=_RED, hover_color="#D32F2F",
                    command=lambda: self._delete_instance(inst),
                ).pack(side="left", padx=2)

        for r, occ in enumerate(inst.occurrences, start=1):
            self._render_occurrence(frame, r, inst, occ, kind, ref, writable)

    def _render_occurrence(self, frame, r: int, inst: Instance, occ: Occurrence, kind: str, ref, writable: bool):
        line = ctk.CTkFrame(frame, fg_color="transparent")
        line.grid(row=r, column=0, sticky="ew", padx=(24, 6), pady=1)

        if occ.is_overdue(ref):
            date_color = _RED
        elif occ.is_due_soon(ref, DUE_SOON_DAYS):
            date_color = _ORANGE
        else:
            date_color = ("gray10", "gray90")
        date_text = format_display_date(occ.expected_date, self._date_format)
        if occ.is_overdue(ref):
            date_text += f"  ({occ.days_overdue(ref)}d overdue)"

        cells = [
            (date_text, 190, date_color),
            (format_currency(occ.expected_amount), 90, None),
            (f"paid {format_currency(occ.paid_amount)}", 110, None),
            ("✓ closed" if occ.is_closed else "open", 70, _GREEN if occ.is_closed else "gray60"),
            (occ.notes.replace("\n", " · "), 220, "gray60"),
        ]
        for i, (text, width, color) in enumerate(cells):
            ctk.CTkLabel(
                line, text=text, width=width, anchor="w",
                text_color=color or ("gray10", "gray90"),
            ).grid(row=0, column=i, padx=4)

        if not writable:
            return
        acts = ctk.CTkFrame(line, fg_color="transparent")
        acts.grid(row=0, column=len(cells), padx=4)
        small = {"height": 22, "width": 58}
        if not occ.is_closed:
            ctk.CTkButton(
                acts, text="Pay" if kind == "bill" else "Receive", command=lambda: self._add_payment(inst, occ),
                **small,
            ).pack(side="left", padx=1)
            ctk.CTkButton(
                acts, text="Close", command=lambda: self._close(inst, occ), **small,
            ).pack(side="left", padx=1)
            if occ.expected_amount > 0:
                ctk.CTkButton(
                    acts, text="Split", command=lambda: self._split(inst, occ),
                    fg_color="transparent", border_width=1, text_color=("gray10", "gray90"), **small,
                ).pack(side="left", padx=1)
        else:
            ctk.CTkButton(
                acts, text="Reopen", command=lambda: self._reopen(inst, occ),
                fg_color="transparent", border_width=1, text_color=("gray10", "gray90"), **small,
            ).pack(side="left", padx=1)
        if occ.is_adhoc and not inst.is_adhoc:
            ctk.CTkButton(
                acts, text="✕", width=26, height=22, fg_color="transparent", text_color=_RED,
                command=lambda: self._remove_occurrence(inst, occ),
            ).pack(side="left", padx=1)

    def _render_expenses(self, row: int) -> int:
        row = self._section_header(row, "Variable Expenses")
        if not self._data.variable_expenses:
            ctk.CTkLabel(self._scroll, text="None recorded.", text_color="gray60", anchor="w").grid(
                row=row, column=0, sticky="ew", padx=12
            )
            return row + 1
        for exp in self._data.variable_expenses:
            line = ctk.CTkFrame(self._scroll, fg_color="transparent")
            line.grid(row=row, column=0, sticky="ew", padx=12, pady=1)
            date_text = format_display_date(exp.date, self._date_format) if exp.date else "-"
            for i, (text, width) in enumerate(((date_text, 110), (exp.name, 220), (format_currency(exp.amount), 100))):
                ctk.CTkLabel(line, text=text, width=width, anchor="w").grid(row=0, column=i, padx=4)
            if not self._data.is_read_only:
                ctk.CTkButton(
                    line, text="✕", width=26, height=22, fg_color="transparent", text_color=_RED,
                    command=lambda e=exp: self._remove_expense(e.id),
                ).grid(row=0, column=3, padx=4)
            row += 1
        return row

    def _render_balances(self, row: int):
        row = self._section_header(row, "Account Balances (start of month)")
        sources = [s for s in self._source_svc.get_active() if not s.is_savings]
        if not sources:
            ctk.CTkLabel(
                self._scroll, text="No payment sources yet.", text_color="gray60", anchor="w",
            ).grid(row=row, column=0, sticky="ew", padx=12)
            return
        panel = ctk.CTkFrame(self._scroll, fg_color="transparent")
        panel.grid(row=row, column=0, sticky="w", padx=12)
        self._balance_vars: dict[int, ctk.StringVar] = {}
        for i, src in enumerate(sources):
            amount = self._data.bank_balances.get(src.id)
            label = src.name if src.counts_toward_leftover else f"{src.name} (not in leftover)"
            ctk.CTkLabel(panel, text=label, anchor="w", width=200).grid(row=i, column=0, sticky="w", pady=1)
            var = ctk.StringVar(value=f"{amount / 100:.2f}" if amount is not None else "")
            ctk.CTkEntry(
                panel, textvariable=var, width=120,
                state="disabled" if self._data.is_read_only else "normal",
            ).grid(row=i, column=1, padx=8, pady=1)
            self._balance_vars[src.id] = var
        if not self._data.is_read_only:
            ctk.CTkButton(panel, text="Save Balances", width=110, command=self._save_balances).grid(
                row=len(sources), column=1, pady=(6, 0), sticky="e", padx=8
            )

    # ── Actions ──────────────────────────────────────────────────────────────

    def _run(self, action, *args, **kwargs) -> bool:
        try:
            action(*args, **kwargs)
        except BillfoldError as e:
            logger.warning("Month action failed: %s", e)
            self._show_message(str(e), "error")
            return False
        self._notify_refresh("month")
        return True

    def _on_sync(self):
        try:
            result = self._sync.sync(self._month)
        except BillfoldError as e:
            self._show_message(str(e), "error")
            return
        if result.failures:
            names = ", ".join(f.template_name for f in result.failures)
            self._show_message(f"Some templates could not be scheduled: {names}", "warning")
        elif result.changed:
            self._show_message(
                f"{friendly_month(self._month)}: {result.instances_added} item(s) and "
                f"{result.occurrences_added} occurrence(s) added.", "info",
            )
        self._notify_refresh("month")

    def _toggle_lock(self):
        self._run(self._months.toggle_read_only, self._month)

    def _sources(self):
        return self._source_svc.get_active()

    def _add_payment(self, inst: Instance, occ: Occurrence):
        form = PaymentForm(
            self.winfo_toplevel(), f"Payment: {inst.name}",
            on_submit=lambda amount, date, source_id: self._pay_svc.add_payment(
                self._month, inst.id, occ.id, amount, date, source_id,
            ),
            month=self._month, sources=self._sources(),
            expected_amount=occ.expected_amount, paid_so_far=occ.paid_amount,
            default_source_id=occ.payment_source_id or inst.payment_source_id,
            date_format=self._date_format,
        )
        self.wait_window(form)
        if form.saved:
            self._notify_refresh("month")

    def _split(self, inst: Instance, occ: Occurrence):
        form = PaymentForm(
            self.winfo_toplevel(), f"Split: {inst.name}",
            on_submit=lambda amount, date, source_id: self._occ_svc.split(
                self._month, inst.id, occ.id, amount, closed_date=date, payment_source_id=source_id,
            ),
            month=self._month, sources=self._sources(),
            expected_amount=occ.expected_amount, paid_so_far=occ.paid_amount,
            default_source_id=occ.payment_source_id or inst.payment_source_id,
            submit_text="Split", date_format=self._date_format,
        )
        self.wait_window(form)
        if form.saved:
            self._notify_refresh("month")

    def _close(self, inst: Instance, occ: Occurrence):
        if occ.paid_amount < occ.expected_amount:
            dlg = ConfirmDialog(
                self.winfo_toplevel(), "Close occurrence",
                f"{inst.name} has {format_currency(occ.paid_amount)} paid of "
                f"{format_currency(occ.expected_amount)}. Close it anyway? "
                "Nothing more will be expected for it this month.",
                confirm_text="Close", destructive=False,
            )
            if not dlg.result:
                return
        self._run(self._occ_svc.close, self._month, inst.id, occ.id)

    def _reopen(self, inst: Instance, occ: Occurrence):
        self._run(self._occ_svc.reopen, self._month, inst.id, occ.id)

    def _add_occurrence(self, inst: Instance):
        form = ItemForm(
            self.winfo_toplevel(), f"Extra occurrence: {inst.name}",
            on_submit=lambda _name, amount, date: self._occ_svc.add_adhoc(
                self._month, inst.id, date, amount,
            ),
            month=self._month, with_name=False, amount=inst.default_amount,
            date_format=self._date_format,
        )
        self.wait_window(form)
        if form.saved:
            self._notify_refresh("month")

    def _remove_occurrence(self, inst: Instance, occ: Occurrence):
        dlg = ConfirmDialog(self.winfo_toplevel(), "Remove", "Remove this extra occurrence?", confirm_text="Remove")
        if dlg.result:
            self._run(self._occ_svc.remove, self._month, inst.id, occ.id)

    def _add_adhoc(self, kind: str):
        form = ItemForm(
            self.winfo_toplevel(), "One-off bill" if kind == "bill" else "One-off income",
            on_submit=lambda name, amount, date: self._months.create_adhoc_instance(
                self._month, kind, name, amount, date=date,
            ),
            month=self._month, date_optional=True, date_format=self._date_format,
        )
        self.wait_window(form)
        if form.saved:
            self._notify_refresh("month")

    def _delete_instance(self, inst: Instance):
        dlg = ConfirmDialog(self.winfo_toplevel(), "Delete", f"Delete '{inst.name}' from this month?",
                            confirm_text="Delete")
        if dlg.result:
            self._run(self._months.delete_instance, self._month, inst.id)

    def _add_expense(self):
        form = ItemForm(
            self.winfo_toplevel(), "Variable expense",
            on_submit=lambda name, amount, date: self._months.add_expense(
                self._month, name, amount, date=date,
            ),
            month=self._month, date_optional=True, date_format=self._date_format,
        )
        self.wait_window(form)
        if form.saved:
            self._notify_refresh("month")

    def _remove_expense(self, expense_id: str):
        self._run(self._months.remove_expense, self._month, expense_id)

    def _save_balances(self):
        balances: dict[int, int | None] = {}
        for source_id, var in self._balance_vars.items():
            text = var.get().strip()
            if not text:
                balances[source_id] = None
                continue
            try:
                balances[source_id] = parse_amount(text)
            except ValueError as e:
                self._show_message(str(e), "error")
                return
        self._run(self._months.update_bank_balances, self._month, balances)
