from models.payment_source import PaymentSource
from database.payment_source_dao import PaymentSourceDAO
from utils.constants import PAYMENT_SOURCE_TYPES
from utils.errors import NotFoundError, ValidationError


class PaymentSourceService:
    def __init__(self, source_dao: PaymentSourceDAO):
        self._dao = source_dao

    def get_all(self) -> list[PaymentSource]:
        return self._dao.get_all()

    def get_active(self) -> list[PaymentSource]:
        return [s for s in self._dao.get_all() if s.is_active]

    def get_by_id(self, source_id: int) -> PaymentSource:
        source = self._dao.get_by_id(source_id)
        if source is None:
            raise NotFoundError("Payment source", source_id)
        return source

    def create(
        self,
        name: str,
        type_: str = "bank_account",
        exclude_from_leftover: bool = False,
        pay_off_monthly: bool = False,
    ) -> PaymentSource:
        name = self._validate_name(name)
        self._validate_type(type_)
        return self._dao.create(name, type_, exclude_from_leftover, pay_off_monthly)

    def update(
        self,
        source_id: int,
        name: str,
        type_: str = "bank_account",
        is_active: bool = True,
        exclude_from_leftover: bool = False,
        pay_off_monthly: bool = False,
    ) -> PaymentSource:
        self.get_by_id(source_id)
        name = self._validate_name(name, source_id)
        self._validate_type(type_)
        return self._dao.update(
            source_id, name, type_, is_active, exclude_from_leftover, pay_off_monthly
        )

    def delete(self, source_id: int):
        self.get_by_id(source_id)
        self._dao.delete(source_id)

    # ── Helpers ──────────────────────────────────────────────────────────────

    def _validate_name(self, name: str, source_id: int | None = None) -> str:
        name = (name or "").strip()
        if not name:
            raise ValidationError("Payment source name cannot be empty.", field="name")
        clash = next((s for s in self._dao.get_all() if s.name == name), None)
        if clash and clash.id != source_id:
            raise ValidationError(f"A payment source named '{name}' already exists.", field="name")
        return name

    @staticmethod
    def _validate_type(type_: str):
        if type_ not in PAYMENT_SOURCE_TYPES:
            raise ValidationError(
                f"Invalid payment source type '{type_}'. "
                f"Must be one of: {', '.join(PAYMENT_SOURCE_TYPES)}.",
                field="type",
            )
