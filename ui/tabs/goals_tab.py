import logging
import threading
import tkinter as tk

import customtkinter as ctk
from matplotlib.backends.backend_tkagg import FigureCanvasTkAgg
from matplotlib.figure import Figure

from models.savings_goal import SavingsGoal
from models.summary import GoalPayments
from services.goal_service import GoalService
from services.payment_source_service import PaymentSourceService
from ui.components.confirm_dialog import ConfirmDialog
from ui.components.goal_form import GoalForm
from ui.components.payment_form import PaymentForm
from utils.constants import TEMPERATURE_COLORS
from utils.currency import format_currency
from utils.date_helpers import current_month_str, format_display_date, parse_date
from utils.errors import BillfoldError

logger = logging.getLogger(__name__)

_STATUS_LABELS = {
    "saving": "Saving",
    "paused": "Paused",
    "bought": "Bought",
    "abandoned": "Abandoned",
    "archived": "Archived",
}
_TEMPERATURE_LABELS = {"ahead": "Ahead", "on_track": "On track", "behind": "Behind"}


def fetch_projection(goal_service: GoalService, goal_id: int) -> GoalPayments | None:
    """Worker-thread body for the chart load; any failure becomes "no projection"."""
    try:
        return goal_service.get_goal_payments(goal_id)
    except Exception:
        logger.exception("Could not project goal %s", goal_id)
        return None


class GoalsTab(ctk.CTkFrame):
    def __init__(
        self,
        master,
        goal_service: GoalService,
        source_service: PaymentSourceService,
        notify_refresh,
        show_message,
        date_format: str = "MM/DD/YYYY",
        **kwargs,
    ):
        super().__init__(master, fg_color="transparent", **kwargs)
        self._svc = goal_service
        self._source_svc = source_service
        self._notify_refresh = notify_refresh
        self._show_message = show_message
        self._date_format = date_format
        self._selected_id: int | None = None
        self._show_archived = ctk.BooleanVar(value=False)
        self._load_gen = 0

        self.grid_columnconfigure(0, weight=0, minsize=340)
        self.grid_columnconfigure(1, weight=1)
        self.grid_rowconfigure(1, weight=1)

        self._build_toolbar()
        self._build_list()
        self._build_detail()
        self._load()

    def refresh(self):
        self._load()

    def _style_ax(self, ax, fig):
        is_dark = ctk.get_appearance_mode() == "Dark"
        bg = "#2b2b2b" if is_dark else "#e4e4e4"
        fg = "#aaaaaa" if is_dark else "#444444"
        fig.patch.set_facecolor(bg)
        ax.set_facecolor(bg)
        ax.tick_params(colors=fg, labelsize=8)
        for spine in ax.spines.values():
            spine.set_edgecolor(fg)

    # ── Layout ───────────────────────────────────────────────────────────────

    def _build_toolbar(self):
        bar = ctk.CTkFrame(self, fg_color=("gray88", "gray18"), corner_radius=8)
        bar.grid(row=0, column=0, columnspan=2, sticky="ew", padx=8, pady=(8, 0))
        ctk.CTkLabel(
            bar, text="Savings Goals",
            font=ctk.CTkFont(size=14, weight="bold"),
        ).pack(side="left", padx=12, pady=8)
        ctk.CTkCheckBox(
            bar, text="Show archived", variable=self._show_archived,
            command=self._load,
        ).pack(side="left", padx=8)
        ctk.CTkButton(bar, text="+ New Goal", command=self._open_add).pack(
            side="right", padx=8, pady=6
        )

    def _build_list(self):
        self._list = ctk.CTkScrollableFrame(self, width=320)
        self._list.grid(row=1, column=0, sticky="nsew", padx=(8, 4), pady=8)
        self._list.grid_columnconfigure(0, weight=1)

    def _build_detail(self):
        outer = ctk.CTkFrame(self, fg_color=("gray90", "gray20"), corner_radius=8)
        outer.grid(row=1, column=1, sticky="nsew", padx=(4, 8), pady=8)
        outer.grid_columnconfigure(0, weight=1)
        outer.grid_rowconfigure(4, weight=1)

        self._detail_title = ctk.CTkLabel(
            outer, text="Select a goal", font=ctk.CTkFont(size=15, weight="bold"), anchor="w",
        )
        self._detail_title.grid(row=0, column=0, sticky="ew", padx=12, pady=(10, 0))
        self._detail_summary = ctk.CTkLabel(outer, text="", text_color="gray60", anchor="w")
        self._detail_summary.grid(row=1, column=0, sticky="ew", padx=12)

        self._actions = ctk.CTkFrame(outer, fg_color="transparent")
        self._actions.grid(row=2, column=0, sticky="ew", padx=8, pady=(4, 0))

        chart = ctk.CTkFrame(outer, fg_color="transparent")
        chart.grid(row=3, column=0, sticky="ew", padx=4)
        legend = ctk.CTkFrame(chart, fg_color="transparent")
        legend.pack()
        for color, label in (("#4CAF50", "Saved"), ("#2196F3", "Scheduled"), ("#9E9E9E", "Target")):
            tk.Label(legend, bg=color, width=2).pack(side="left", padx=(8, 2))
            ctk.CTkLabel(legend, text=label, font=ctk.CTkFont(size=11)).pack(side="left", padx=(0, 8))
        self._fig = Figure(figsize=(7, 2.6), dpi=80, tight_layout=True)
        self._ax = self._fig.add_subplot(111)
        self._canvas = FigureCanvasTkAgg(self._fig, master=chart)
        self._canvas.get_tk_widget().pack(fill="x", expand=True, padx=8, pady=(4, 4))

        self._payments = ctk.CTkScrollableFrame(outer, fg_color="transparent")
        self._payments.grid(row=4, column=0, sticky="nsew", padx=4, pady=(0, 8))
        self._payments.grid_columnconfigure(1, weight=1)

    # ── List ─────────────────────────────────────────────────────────────────

    def _load(self):
        for w in self._list.winfo_children():
            w.destroy()

        goals = self._svc.get_all()
        if not self._show_archived.get():
            goals = [g for g in goals if g.status != "archived"]

        if not goals:
            ctk.CTkLabel(
                self._list, text="No goals yet. Click '+ New Goal' to start one.",
                text_color="gray60", wraplength=280,
            ).grid(row=0, column=0, pady=40)
            self._selected_id = None
            self._show_detail(None)
            return

        if self._selected_id not in {g.id for g in goals}:
            self._selected_id = goals[0].id
        for idx, goal in enumerate(goals):
            self._add_card(idx, goal)
        self._show_detail(next(g for g in goals if g.id == self._selected_id))

    def _add_card(self, idx: int, goal: SavingsGoal):
        selected = goal.id == self._selected_id
        card = ctk.CTkFrame(
            self._list, corner_radius=6,
            fg_color=("gray80", "gray28") if selected else ("gray92", "gray17"),
        )
        card.grid(row=idx, column=0, sticky="ew", pady=2, padx=2)
        card.grid_columnconfigure(0, weight=1)

        progress = self._svc.get_progress(goal.id)
        color = TEMPERATURE_COLORS.get(progress.temperature, "gray60")
        active = goal.status in ("saving", "paused")

        ctk.CTkLabel(card, text=goal.name, anchor="w", font=ctk.CTkFont(weight="bold")).grid(
            row=0, column=0, sticky="w", padx=8, pady=(6, 0)
        )
        badge = _TEMPERATURE_LABELS.get(progress.temperature, "") if active else _STATUS_LABELS[goal.status]
        ctk.CTkLabel(card, text=badge, text_color=color if active else "gray60").grid(
            row=0, column=1, padx=8, pady=(6, 0)
        )

        bar = ctk.CTkProgressBar(card, progress_color=color if active else "gray50")
        bar.set(min(1.0, progress.saved_amount / goal.target_amount) if goal.target_amount else 0)
        bar.grid(row=1, column=0, columnspan=2, sticky="ew", padx=8, pady=4)

        by = format_display_date(goal.target_date, self._date_format)
        ctk.CTkLabel(
            card, text=f"{format_currency(progress.saved_amount)} of {format_currency(goal.target_amount)}  ·  by {by}",
            text_color="gray60", anchor="w", font=ctk.CTkFont(size=11),
        ).grid(row=2, column=0, columnspan=2, sticky="w", padx=8, pady=(0, 6))

        for w in (card, *card.winfo_children()):
            w.bind("<Button-1>", lambda _e, gid=goal.id: self._select(gid))

    def _select(self, goal_id: int):
        self._selected_id = goal_id
        self._load()

    # ── Detail ───────────────────────────────────────────────────────────────

    def _show_detail(self, goal: SavingsGoal | None):
        for w in self._actions.winfo_children():
            w.destroy()
        for w in self._payments.winfo_children():
            w.destroy()

        if goal is None:
            self._detail_title.configure(text="Select a goal")
            self._detail_summary.configure(text="")
            self._draw_chart(None)
            return

        self._detail_title.configure(text=f"{goal.name}  ({_STATUS_LABELS[goal.status]})")
        self._detail_summary.configure(text="Loading…")
        self._build_actions(goal)
        self._load_payments(goal)

    def _build_actions(self, goal: SavingsGoal):
        buttons = [("Edit", lambda: self._open_form(goal))]
        if goal.status == "saving":
            buttons.append(("Pause", lambda: self._transition(self._svc.pause, goal)))
        if goal.status == "paused":
            buttons.append(("Resume", lambda: self._transition(self._svc.resume, goal)))
        if goal.status in ("saving", "paused"):
            buttons += [
                ("Contribute", lambda: self._contribute(goal)),
                ("Bought it", lambda: self._transition(self._svc.complete, goal)),
                ("Abandon", lambda: self._confirm_transition(
                    self._svc.abandon, goal, f"Abandon '{goal.name}'? Payments already made are kept.")),
            ]
        if goal.status == "archived":
            buttons.append(("Unarchive", lambda: self._transition(self._svc.unarchive, goal)))
        else:
            buttons.append(("Archive", lambda: self._transition(self._svc.archive, goal)))

        for text, cmd in buttons:
            ctk.CTkButton(self._actions, text=text, width=80, height=26, command=cmd).pack(
                side="left", padx=3, pady=2
            )
        ctk.CTkButton(
            self._actions, text="Delete", width=70, height=26,
            fg_color="#F44336", hover_color="#D32F2F",
            command=lambda: self._delete(goal),
        ).pack(side="right", padx=3)

        active = [t for t in self._svc.linked_templates(goal.id) if t.is_active]
        for r, template in enumerate(active):
            line = ctk.CTkFrame(self._payments, fg_color=("gray85", "gray24"), corner_radius=4)
            line.grid(row=r, column=0, columnspan=4, sticky="ew", pady=(0, 6))
            ctk.CTkLabel(
                line, text=f"Funded by '{template.name}' ({format_currency(template.amount)})", anchor="w",
            ).pack(side="left", padx=8, pady=4)
            ctk.CTkButton(
                line, text="End schedule", width=100, height=24,
                fg_color="transparent", border_width=1, text_color=("gray10", "gray90"),
                command=lambda t=template: self._remove_schedule(goal, t),
            ).pack(side="right", padx=6)

    def _load_payments(self, goal: SavingsGoal):
        self._load_gen += 1
        gen = self._load_gen

        def fetch():
            data = fetch_projection(self._svc, goal.id)
            self.after(0, lambda: self._on_payments_ready(gen, goal, data))

        threading.Thread(target=fetch, daemon=True).start()

    def _on_payments_ready(self, gen: int, goal: SavingsGoal, data: GoalPayments | None):
        if gen != self._load_gen:
            return  # superseded by a newer load
        if not self.winfo_exists():
            return
        if data is None:
            self._detail_summary.configure(text="Projection unavailable.")
            self._draw_chart(None)
            return

        projected = data.projected_completion_date
        summary = (
            f"{format_currency(data.total_saved)} saved, {format_currency(data.total_remaining)} to go "
            f"({data.progress_percentage}%)"
        )
        if projected:
            summary += f"  ·  projected {format_display_date(projected, self._date_format)}"
        self._detail_summary.configure(text=summary)
        self._draw_chart(data)
        self._populate_payments(data)

    def _draw_chart(self, data: GoalPayments | None):
        ax = self._ax
        ax.clear()
        self._style_ax(ax, self._fig)

        if data is None or not data.payments:
            ax.text(0.5, 0.5, "No payments yet", ha="center", va="center",
                    transform=ax.transAxes, color="gray")
            self._canvas.draw_idle()
            return

        done = [p for p in data.payments if p.status == "completed"]
        ahead = [p for p in data.payments if p.status != "completed"]
        if done:
            ax.plot([parse_date(p.date) for p in done], [p.balance / 100 for p in done],
                    color="#4CAF50", marker="o", markersize=3)
        if ahead:
            # join the projection to the last saved point
            head = done[-1:] + ahead
            ax.plot([parse_date(p.date) for p in head], [p.balance / 100 for p in head],
                    color="#2196F3", linestyle="--", marker="o", markersize=3)
        ax.axhline(data.target_amount / 100, color="#9E9E9E", linestyle=":")
        ax.yaxis.set_major_formatter(
            lambda v, _: f"{v/1000:.0f}k" if abs(v) >= 1000 else f"{v:.0f}"
        )
        self._fig.autofmt_xdate()
        self._canvas.draw_idle()

    def _populate_payments(self, data: GoalPayments):
        start = len(self._payments.winfo_children())
        for i, p in enumerate(reversed(data.payments)):
            color = ("gray10", "gray90") if p.status == "completed" else "gray60"
            label = p.description + ("  (projected)" if p.is_simulated else "")
            for col, (text, anchor) in enumerate([
                (format_display_date(p.date, self._date_format), "w"),
                (label, "w"),
                (format_currency(p.amount), "e"),
                (format_currency(p.balance), "e"),
            ]):
                ctk.CTkLabel(self._payments, text=text, text_color=color, anchor=anchor).grid(
                    row=start + i, column=col, sticky="ew", padx=6, pady=1
                )

    # ── Actions ──────────────────────────────────────────────────────────────

    def _run(self, action, *args) -> bool:
        try:
            action(*args)
        except BillfoldError as e:
            logger.warning("Goal action failed: %s", e)
            self._show_message(str(e), "error")
            return False
        return True

    def _transition(self, action, goal: SavingsGoal):
        if self._run(action, goal.id):
            self._notify_refresh("goal")

    def _confirm_transition(self, action, goal: SavingsGoal, message: str):
        dlg = ConfirmDialog(self.winfo_toplevel(), "Confirm", message, confirm_text="Yes")
        if dlg.result:
            self._transition(action, goal)

    def _delete(self, goal: SavingsGoal):
        dlg = ConfirmDialog(
            self.winfo_toplevel(), "Delete Goal",
            f"Delete '{goal.name}'? Linked bills keep running but stop counting toward it.",
            confirm_text="Delete",
        )
        if dlg.result and self._run(self._svc.delete, goal.id):
            self._selected_id = None
            self._notify_refresh("goal")

    def _remove_schedule(self, goal: SavingsGoal, template):
        dlg = ConfirmDialog(
            self.winfo_toplevel(), "End Schedule",
            f"Stop '{template.name}'? Future occurrences are closed and past payments stay counted.",
            confirm_text="End schedule",
        )
        if not dlg.result:
            return
        try:
            result = self._svc.remove_schedule(goal.id, template.id)
        except BillfoldError as e:
            self._show_message(str(e), "error")
            return
        if result.skipped_months:
            self._show_message(
                f"Locked months left unchanged: {', '.join(result.skipped_months)}", "warning",
            )
        self._notify_refresh("full")

    def _contribute(self, goal: SavingsGoal):
        form = PaymentForm(
            self.winfo_toplevel(), f"Contribute to {goal.name}",
            on_submit=lambda amount, date, source_id: self._svc.contribute(
                goal.id, amount, date, payment_source_id=source_id,
            ),
            month=current_month_str(), sources=self._source_svc.get_active(),
            submit_text="Contribute", date_format=self._date_format,
        )
        self.wait_window(form)
        if form.saved:
            self._notify_refresh("full")

    def _open_add(self):
        self._open_form(None)

    def _open_form(self, goal: SavingsGoal | None):
        form = GoalForm(self.winfo_toplevel(), self._svc, goal=goal, date_format=self._date_format)
        self.wait_window(form)
        if form.saved:
            self._notify_refresh("goal")
