import customtkinter as ctk
from ui.components.date_picker import DatePickerWidget
from utils.currency import parse_amount
from utils.date_helpers import month_range
from utils.errors import BillfoldError


class ItemForm(ctk.CTkToplevel):
    """Name + amount + date inside one month, handed to on_submit(name, amount, date).

    Backs variable expenses, one-off bills/incomes and extra occurrences.
    with_name=False hides the name field and passes ''.
    """

    def __init__(
        self,
        master,
        title: str,
        on_submit,
        month: str,
        with_name: bool = True,
        name: str = "",
        amount: int | None = None,
        date: str | None = None,
        date_optional: bool = False,
        date_format: str = "MM/DD/YYYY",
        **kwargs,
    ):
        super().__init__(master, **kwargs)
        self._on_submit = on_submit
        self._date_optional = date_optional
        self.saved = False

        self.title(title)
        self.resizable(False, False)
        self.grid_columnconfigure(1, weight=1)

        r = 0
        self._name_var = ctk.StringVar(value=name)
        if with_name:
            self._add_label("Name:", r)
            ctk.CTkEntry(self, textvariable=self._name_var, width=200).grid(
                row=r, column=1, padx=(0, 16), pady=(12, 4), sticky="ew"
            )
            r += 1

        self._add_label("Amount:", r)
        self._amount_var = ctk.StringVar(value=f"{amount / 100:.2f}" if amount is not None else "")
        ctk.CTkEntry(self, textvariable=self._amount_var, width=200).grid(
            row=r, column=1, padx=(0, 16), pady=4, sticky="ew"
        )
        r += 1

        self._add_label("Date:", r)
        first, last = month_range(month)
        self._date_picker = DatePickerWidget(
            self,
            initial_date=date if date is not None else ("" if date_optional else first),
            date_format=date_format,
            min_date=first,
            max_date=last,
        )
        self._date_picker.grid(row=r, column=1, padx=(0, 16), pady=4, sticky="w")
        r += 1

        self._error_var = ctk.StringVar()
        ctk.CTkLabel(
            self, textvariable=self._error_var,
            text_color="#F44336", wraplength=260, anchor="w",
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
            amount = parse_amount(self._amount_var.get())
        except ValueError as e:
            self._error_var.set(str(e))
            return
        date = self._date_picker.get()
        if date and not self._date_picker.is_valid():
            self._error_var.set("Date must fall inside this month.")
            return
        if not date and not self._date_optional:
            self._error_var.set("Date is required.")
            return
        try:
            self._on_submit(self._name_var.get(), amount, date or None)
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
