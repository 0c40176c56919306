import customtkinter as ctk
from models.payment_source import PAYMENT_SOURCE_TYPE_LABELS, PaymentSource
from services.payment_source_service import PaymentSourceService
from ui.components.confirm_dialog import ConfirmDialog
from utils.errors import BillfoldError


class PaymentSourceForm(ctk.CTkToplevel):
    """Add or edit a payment source. Sets self.saved = True on success."""

    _TYPE_OPTIONS = list(PAYMENT_SOURCE_TYPE_LABELS.values())
    _LABEL_TO_KEY = {v: k for k, v in PAYMENT_SOURCE_TYPE_LABELS.items()}

    def __init__(
        self,
        master,
        source_service: PaymentSourceService,
        source: PaymentSource | None = None,
        **kwargs,
    ):
        super().__init__(master, **kwargs)
        self._svc = source_service
        self._source = source
        self.saved = False

        self.title("Edit Payment Source" if source else "New Payment Source")
        self.resizable(False, False)
        self.grid_columnconfigure(1, weight=1)

        ctk.CTkLabel(self, text="Name:").grid(
            row=0, column=0, padx=(16, 8), pady=(16, 4), sticky="e"
        )
        self._name_var = ctk.StringVar(value=source.name if source else "")
        self._name_entry = ctk.CTkEntry(self, textvariable=self._name_var, width=240)
        self._name_entry.grid(row=0, column=1, padx=(0, 16), pady=(16, 4), sticky="ew")

        ctk.CTkLabel(self, text="Type:").grid(
            row=1, column=0, padx=(16, 8), pady=4, sticky="e"
        )
        self._type_var = ctk.StringVar(
            value=PAYMENT_SOURCE_TYPE_LABELS[source.type if source else "bank_account"]
        )
        ctk.CTkComboBox(
            self, values=self._TYPE_OPTIONS, variable=self._type_var,
            width=240, state="readonly",
        ).grid(row=1, column=1, padx=(0, 16), pady=4, sticky="ew")

        self._exclude_var = ctk.BooleanVar(value=source.exclude_from_leftover if source else False)
        ctk.CTkCheckBox(self, text="Exclude from leftover", variable=self._exclude_var).grid(
            row=2, column=1, padx=(0, 16), pady=4, sticky="w"
        )
        self._pay_off_var = ctk.BooleanVar(value=source.pay_off_monthly if source else False)
        ctk.CTkCheckBox(self, text="Paid off in full every month", variable=self._pay_off_var).grid(
            row=3, column=1, padx=(0, 16), pady=4, sticky="w"
        )
        self._active_var = ctk.BooleanVar(value=source.is_active if source else True)
        if source:
            ctk.CTkCheckBox(self, text="Active", variable=self._active_var).grid(
                row=4, column=1, padx=(0, 16), pady=4, sticky="w"
            )

        self._error_var = ctk.StringVar()
        ctk.CTkLabel(
            self, textvariable=self._error_var, text_color="#F44336",
            wraplength=280, anchor="w",
        ).grid(row=5, column=0, columnspan=2, padx=16, pady=(0, 4), sticky="ew")

        btn_frame = ctk.CTkFrame(self, fg_color="transparent")
        btn_frame.grid(row=6, column=0, columnspan=2, padx=16, pady=(4, 16), sticky="ew")

        ctk.CTkButton(
            btn_frame, text="Cancel", width=90,
            fg_color="transparent", border_width=1,
            text_color=("gray10", "gray90"),
            command=self.destroy,
        ).pack(side="left")

        if source:
            ctk.CTkButton(
                btn_frame, text="Delete", width=90,
                fg_color="#F44336", hover_color="#D32F2F",
                command=self._on_delete_click,
            ).pack(side="left", padx=8)

        ctk.CTkButton(
            btn_frame, text="Save", width=90,
            command=self._on_save,
        ).pack(side="right")

        self.transient(master)
        self.grab_set()
        self._center()
        self._name_entry.focus_set()

    def _on_save(self):
        type_ = self._LABEL_TO_KEY.get(self._type_var.get(), "bank_account")
        try:
            if self._source:
                self._svc.update(
                    self._source.id, self._name_var.get(), type_,
                    is_active=self._active_var.get(),
                    exclude_from_leftover=self._exclude_var.get(),
                    pay_off_monthly=self._pay_off_var.get(),
                )
            else:
                self._svc.create(
                    self._name_var.get(), type_,
                    exclude_from_leftover=self._exclude_var.get(),
                    pay_off_monthly=self._pay_off_var.get(),
                )
        except BillfoldError as e:
            self._error_var.set(str(e))
            return
        self.saved = True
        self.destroy()

    def _on_delete_click(self):
        dlg = ConfirmDialog(
            self, "Delete Payment Source",
            f"Delete '{self._source.name}'? Templates using it keep running without a source.",
            confirm_text="Delete",
        )
        if not dlg.result:
            return
        try:
            self._svc.delete(self._source.id)
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
