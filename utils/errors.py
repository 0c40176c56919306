class BillfoldError(Exception):
    """Base class for every error the engine raises on purpose."""


class ValidationError(BillfoldError, ValueError):
    """Malformed or missing input. Carries the offending field when known."""

    def __init__(self, message: str, field: str | None = None):
        super().__init__(message)
        self.field = field


class NotFoundError(BillfoldError, LookupError):
    """Unknown template, instance, occurrence, payment or goal id."""

    def __init__(self, kind: str, ident):
        super().__init__(f"{kind} not found: {ident}")
        self.kind = kind
        self.ident = ident


class ReadOnlyError(BillfoldError, PermissionError):
    def __init__(self, month: str):
        super().__init__(f"Month {month} is read-only.")
        self.month = month


class ConflictError(BillfoldError):
    """The stored state does not allow this write (month exists, stale version)."""


class RecurrenceError(BillfoldError):
    """A template's recurrence anchor cannot be evaluated."""
