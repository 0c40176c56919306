import customtkinter as ctk
from tkcalendar import Calendar
import tkinter as tk
from tkinter import ttk
from datetime import date
from utils.date_helpers import (
    parse_date, format_date, format_display_date, parse_display_date,
)


class DatePickerWidget(ctk.CTkFrame):
    """Entry in the display format plus a calendar popup.

    .get() returns YYYY-MM-DD (or '' when empty). min_date/max_date limit the
    popup, e.g. to the month being edited.
    """

    def __init__(
        self,
        master,
        initial_date: str | None = None,
        date_format: str = "MM/DD/YYYY",
        min_date: str | None = None,
        max_date: str | None = None,
        **kwargs,
    ):
        super().__init__(master, fg_color="transparent", **kwargs)
        self.grid_columnconfigure(0, weight=1)

        self._date_format = date_format
        self._min = parse_date(min_date) if min_date else None
        self._max = parse_date(max_date) if max_date else None
        self._popup: ctk.CTkToplevel | None = None

        self._var = tk.StringVar(
            value=format_display_date(initial_date, date_format) if initial_date else ""
        )
        self._entry = ctk.CTkEntry(self, textvariable=self._var, width=110)
        self._entry.grid(row=0, column=0, sticky="ew")
        self._entry.bind("<FocusOut>", self._on_focus_out)
        self._entry.bind("<Return>", self._on_focus_out)

        ctk.CTkButton(self, text="📅", width=32, command=self._open_popup).grid(
            row=0, column=1, padx=(4, 0)
        )

    def get(self) -> str:
        raw = self._var.get().strip()
        if not raw:
            return ""
        d = self._parse(raw)
        return format_date(d) if d else raw

    def set(self, date_str: str):
        d = parse_date(date_str) if date_str else None
        self._var.set(format_display_date(format_date(d), self._date_format) if d else (date_str or ""))
        self._reset_border()

    def is_valid(self) -> bool:
        raw = self._var.get().strip()
        return bool(raw) and self._in_range(self._parse(raw))

    # ── Internals ────────────────────────────────────────────────────────────

    def _parse(self, raw: str) -> date | None:
        d = parse_display_date(raw, self._date_format)
        if d is None:
            d = parse_date(raw.replace("/", "-").replace(".", "-"))
        return d

    def _in_range(self, d: date | None) -> bool:
        if d is None:
            return False
        return (self._min is None or d >= self._min) and (self._max is None or d <= self._max)

    def _on_focus_out(self, _event=None):
        raw = self._var.get().strip()
        if not raw:
            self._reset_border()
            return
        d = self._parse(raw)
        if self._in_range(d):
            self._var.set(format_display_date(format_date(d), self._date_format))
            self._reset_border()
        else:
            self._entry.configure(border_color="#F44336")

    def _reset_border(self):
        self._entry.configure(border_color=("gray65", "gray35"))

    def _open_popup(self):
        if self._popup and self._popup.winfo_exists():
            self._popup.destroy()
            self._popup = None
            return

        popup = ctk.CTkToplevel(self)
        popup.overrideredirect(True)
        popup.resizable(False, False)
        self._popup = popup

        dark = ctk.get_appearance_mode() == "Dark"
        bg, fg = ("#2b2b2b", "#ffffff") if dark else ("#ffffff", "#000000")
        style = ttk.Style(popup)
        style.theme_use("default")
        style.configure("Calendar.Treeview", background=bg, foreground=fg, fieldbackground=bg)

        raw = self._var.get().strip()
        current = self._parse(raw) if raw else None
        if current is None:
            current = self._min or date.today()

        cal = Calendar(
            popup,
            selectmode="day",
            year=current.year,
            month=current.month,
            day=current.day,
            mindate=self._min,
            maxdate=self._max,
            date_pattern="yyyy-mm-dd",
            background=bg,
            foreground=fg,
            headersbackground=bg,
            headersforeground=fg,
            selectbackground="#1f6aa5",
            weekendbackground=bg,
            weekendforeground=fg,
            othermonthforeground="gray60",
            bordercolor=bg,
        )
        cal.pack(padx=4, pady=4)
        cal.bind("<<CalendarSelected>>", lambda e: self._on_date_selected(cal, popup))

        self._entry.update_idletasks()
        x = self._entry.winfo_rootx()
        y = self._entry.winfo_rooty() + self._entry.winfo_height() + 2
        popup.geometry(f"+{x}+{y}")
        popup.bind("<FocusOut>", lambda e: self._maybe_close(popup))

    def _on_date_selected(self, cal, popup):
        self.set(cal.get_date())
        popup.destroy()
        self._popup = None

    def _maybe_close(self, popup):
        if not popup.winfo_exists():
            return
        focused = popup.focus_get()
        if focused is None or not str(focused).startswith(str(popup)):
            popup.destroy()
            self._popup = None
