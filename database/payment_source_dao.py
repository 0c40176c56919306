from typing import Optional
from database.db_manager import DatabaseManager
from models.payment_source import PaymentSource


class PaymentSourceDAO:
    def __init__(self, db: DatabaseManager):
        self._db = db

    def _row_to_model(self, row) -> PaymentSource:
        return PaymentSource(
            id=row["id"],
            name=row["name"],
            type=row["type"],
            is_active=bool(row["is_active"]),
            exclude_from_leftover=bool(row["exclude_from_leftover"]),
            pay_off_monthly=bool(row["pay_off_monthly"]),
            created_at=row["created_at"],
        )

    def get_all(self) -> list[PaymentSource]:
        conn = self._db.get_connection()
        rows = conn.execute(
            "SELECT * FROM payment_sources ORDER BY name"
        ).fetchall()
        return [self._row_to_model(r) for r in rows]

    def get_by_id(self, source_id: int) -> Optional[PaymentSource]:
        conn = self._db.get_connection()
        row = conn.execute(
            "SELECT * FROM payment_sources WHERE id = ?", (source_id,)
        ).fetchone()
        return self._row_to_model(row) if row else None

    def create(
        self,
        name: str,
        type_: str = "bank_account",
        exclude_from_leftover: bool = False,
        pay_off_monthly: bool = False,
    ) -> PaymentSource:
        conn = self._db.get_connection()
        cursor = conn.execute(
            """INSERT INTO payment_sources(name, type, exclude_from_leftover, pay_off_monthly)
               VALUES (?, ?, ?, ?)""",
            (name, type_, int(exclude_from_leftover), int(pay_off_monthly)),
        )
        conn.commit()
        return self.get_by_id(cursor.lastrowid)

    def update(
        self,
        source_id: int,
        name: str,
        type_: str = "bank_account",
        is_active: bool = True,
        exclude_from_leftover: bool = False,
        pay_off_monthly: bool = False,
    ) -> PaymentSource:
        conn = self._db.get_connection()
        conn.execute(
            """UPDATE payment_sources SET
               name=?, type=?, is_active=?, exclude_from_leftover=?, pay_off_monthly=?
               WHERE id=?""",
            (name, type_, int(is_active), int(exclude_from_leftover),
             int(pay_off_monthly), source_id),
        )
        conn.commit()
        return self.get_by_id(source_id)

    def delete(self, source_id: int):
        conn = self._db.get_connection()
        conn.execute("DELETE FROM payment_sources WHERE id = ?", (source_id,))
        conn.commit()
