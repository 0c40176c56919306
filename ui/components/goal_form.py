import customtkinter as ctk
from models.savings_goal import SavingsGoal
from services.goal_service import GoalService
from ui.components.date_picker import DatePickerWidget
from utils.currency import parse_amount
from utils.errors import BillfoldError


class GoalForm(ctk.CTkToplevel):
    """Add or edit a savings goal."""

    def __init__(
        self,
        master,
        goal_service: GoalService,
        goal: SavingsGoal | None = None,
        date_format: str = "MM/DD/YYYY",
        **kwargs,
    ):
        super().__init__(master, **kwargs)
        self._svc = goal_service
        self._goal = goal
        self.saved = False

        self.title("Edit Goal" if goal else "New Goal")
        self.resizable(False, False)
        self.grid_columnconfigure(1, weight=1)

        r = 0
        self._add_label("Name:", r)
        self._name_var = ctk.StringVar(value=goal.name if goal else "")
        ctk.CTkEntry(self, textvariable=self._name_var, width=220).grid(
            row=r, column=1, padx=(0, 16), pady=(12, 4), sticky="ew"
        )
        r += 1

        self._add_label("Target:", r)
        self._target_var = ctk.StringVar(value=f"{goal.target_amount / 100:.2f}" if goal else "")
        ctk.CTkEntry(self, textvariable=self._target_var, width=220).grid(
            row=r, column=1, padx=(0, 16), pady=4, sticky="ew"
        )
        r += 1

        self._add_label("Target Date:", r)
        self._date_picker = DatePickerWidget(
            self, initial_date=goal.target_date if goal else "", date_format=date_format,
        )
        self._date_picker.grid(row=r, column=1, padx=(0, 16), pady=4, sticky="w")
        r += 1

        self._add_label("Notes:", r)
        self._notes_var = ctk.StringVar(value=goal.notes if goal else "")
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
        ctk.CTkButton(btn_frame, text="Save", width=90, command=self._on_save).pack(side="right")

        self.transient(master)
        self.grab_set()
        self._center()

    def _add_label(self, text, row):
        ctk.CTkLabel(self, text=text).grid(
            row=row, column=0, padx=(16, 8), pady=4, sticky="e"
        )

    def _on_save(self):
        try:
            target = parse_amount(self._target_var.get())
        except ValueError as e:
            self._error_var.set(str(e))
            return
        if not self._date_picker.is_valid():
            self._error_var.set("Invalid target date.")
            return
        try:
            if self._goal:
                self._svc.update(
                    self._goal.id, self._name_var.get(), target, self._date_picker.get(),
                    linked_account_id=self._goal.linked_account_id, notes=self._notes_var.get(),
                )
            else:
                self._svc.create(
                    self._name_var.get(), target, self._date_picker.get(),
                    notes=self._notes_var.get(),
                )
        except BillfoldError as e:
            self._error_var.set(str(e))
            return
        self.saved = True
        self.destroy()

    def _center(self):
        self.update_idletasks()
        mw = self.master.winfo_x() + self.master.winfo_width() // 2
        mh = self.master.winfo_y() + self.master.winfo_height() // 2
        w, h = self.winfo_reqwidth(), self.winfo_reqheight()
        self.geometry(f"+{mw - w//2}+{mh - h//2}")
