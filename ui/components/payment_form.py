import customtkinter as ctk
from models.payment_source import PaymentSource
from ui.components.date_picker import DatePickerWidget
from utils.currency import format_currency, parse_amount
from utils.date_helpers import month_range, today_str
from utils.errors import BillfoldError

_NONE = "(none)"


class PaymentForm(ctk.CTkToplevel):
    """Amount + date + payment source, handed to on_submit(amount, date, source_id).

    Used for recording a payment and for splitting an occurrence; the caller
    decides which service call on_submit makes. Service errors are shown inline.
    """

    def __init__(
        self,
        master,
        title: str,
        on_submit,
        month: str,
        sources: list[PaymentSource],
        expected_amount: int | None = None,
        paid_so_far: int = 0,
        default_source_id: int | None = None,
        submit_text: str = "Save",
        date_format: str = "MM/DD/YYYY",
        **kwargs,
    ):
        super().__init__(master, **kwargs)
        self._on_submit = on_submit
        self._sources = sources
        self.saved = False

        self.title(title)
        self.resizable(False, False)
        self.grid_columnconfigure(1, weight=1)

        r = 0
        if expected_amount is not None:
            ctk.CTkLabel(
                self,
                text=f"Expected {format_currency(expected_amount)}, "
                     f"paid so far {format_currency(paid_so_far)}",
                text_color="gray60",
            ).grid(row=r, column=0, columnspan=2, padx=16, pady=(12, 4), sticky="w")
            r += 1

        self._add_label("Amount:", r)
        remaining = max(0, (expected_amount or 0) - paid_so_far)
        self._amount_var = ctk.StringVar(value=f"{remaining / 100:.2f}" if remaining else "")
        ctk.CTkEntry(self, textvariable=self._amount_var, width=200).grid(
            row=r, column=1, padx=(0, 16), pady=4, sticky="ew"
        )
        r += 1

        self._add_label("Date:", r)
        first, last = month_range(month)
        initial = today_str() if first <= today_str() <= last else first
        self._date_picker = DatePickerWidget(
            self, initial_date=initial, date_format=date_format,
        )
        self._date_picker.grid(row=r, column=1, padx=(0, 16), pady=4, sticky="w")
        r += 1

        self._add_label("Source:", r)
        default = next((s.name for s in sources if s.id == default_source_id), _NONE)
        self._source_var = ctk.StringVar(value=default)
        ctk.CTkComboBox(
            self, values=[_NONE] + [s.name for s in sources],
            variable=self._source_var, width=200, state="readonly",
        ).grid(row=r, column=1, padx=(0, 16), pady=4, sticky="ew")
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
        ctk.CTkButton(btn_frame, text=submit_text, width=90, command=self._on_save).pack(side="right")

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
        if not self._date_picker.is_valid():
            self._error_var.set("Invalid date.")
            return
        source = next((s for s in self._sources if s.name == self._source_var.get()), None)
        try:
            self._on_submit(amount, self._date_picker.get(), source.id if source else None)
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
