from typing import Optional
from database.db_manager import DatabaseManager
from models.template import Template

_FIELDS = (
    "kind", "name", "amount", "billing_period", "day_of_month",
    "recurrence_week", "recurrence_day", "start_date", "end_date",
    "payment_source_id", "category_id", "goal_id", "notes",
)


class TemplateDAO:
    """Bill and income templates share one table, split by kind."""

    def __init__(self, db: DatabaseManager):
        self._db = db

    def _row_to_model(self, row) -> Template:
        return Template(
            id=row["id"],
            kind=row["kind"],
            name=row["name"],
            amount=row["amount"],
            billing_period=row["billing_period"],
            is_active=bool(row["is_active"]),
            day_of_month=row["day_of_month"],
            recurrence_week=row["recurrence_week"],
            recurrence_day=row["recurrence_day"],
            start_date=row["start_date"],
            end_date=row["end_date"],
            payment_source_id=row["payment_source_id"],
            category_id=row["category_id"],
            goal_id=row["goal_id"],
            notes=row["notes"],
            created_at=row["created_at"],
            updated_at=row["updated_at"],
            payment_source_name=row["payment_source_name"] or "",
        )

    def _select(self) -> str:
        return """
            SELECT t.*,
                   ps.name AS payment_source_name
            FROM templates t
            LEFT JOIN payment_sources ps ON t.payment_source_id = ps.id
        """

    def get_all(self, kind: str | None = None) -> list[Template]:
        conn = self._db.get_connection()
        if kind:
            rows = conn.execute(
                self._select() + " WHERE t.kind = ? ORDER BY t.name", (kind,)
            ).fetchall()
        else:
            rows = conn.execute(
                self._select() + " ORDER BY t.kind, t.name"
            ).fetchall()
        return [self._row_to_model(r) for r in rows]

    def get_active(self, kind: str | None = None) -> list[Template]:
        return [t for t in self.get_all(kind) if t.is_active]

    def get_by_id(self, template_id: int) -> Optional[Template]:
        conn = self._db.get_connection()
        row = conn.execute(
            self._select() + " WHERE t.id = ?", (template_id,)
        ).fetchone()
        return self._row_to_model(row) if row else None

    def get_by_goal_id(self, goal_id: int) -> list[Template]:
        conn = self._db.get_connection()
        rows = conn.execute(
            self._select() + " WHERE t.goal_id = ? ORDER BY t.name", (goal_id,)
        ).fetchall()
        return [self._row_to_model(r) for r in rows]

    @staticmethod
    def _values(fields: dict) -> list:
        values = [fields.get(f) for f in _FIELDS]
        values[_FIELDS.index("notes")] = fields.get("notes") or ""
        return values

    def create(self, **fields) -> Template:
        conn = self._db.get_connection()
        cursor = conn.execute(
            f"INSERT INTO templates ({', '.join(_FIELDS)}) "
            f"VALUES ({', '.join('?' for _ in _FIELDS)})",
            self._values(fields),
        )
        conn.commit()
        return self.get_by_id(cursor.lastrowid)

    def update(self, template_id: int, is_active: bool = True, **fields) -> Template:
        values = self._values(fields)
        conn = self._db.get_connection()
        conn.execute(
            f"UPDATE templates SET {', '.join(f + '=?' for f in _FIELDS)}, "
            "is_active=?, updated_at=datetime('now') WHERE id=?",
            (*values, 1 if is_active else 0, template_id),
        )
        conn.commit()
        return self.get_by_id(template_id)

    def set_active(self, template_id: int, is_active: bool):
        conn = self._db.get_connection()
        conn.execute(
            "UPDATE templates SET is_active = ?, updated_at = datetime('now') WHERE id = ?",
            (1 if is_active else 0, template_id),
        )
        conn.commit()

    def set_goal(self, template_id: int, goal_id: int | None):
        conn = self._db.get_connection()
        conn.execute(
            "UPDATE templates SET goal_id = ?, updated_at = datetime('now') WHERE id = ?",
            (goal_id, template_id),
        )
        conn.commit()

    def end_schedule(self, template_id: int, notes: str):
        """Deactivate a template and replace its notes in one write."""
        conn = self._db.get_connection()
        conn.execute(
            "UPDATE templates SET is_active = 0, notes = ?, updated_at = datetime('now') "
            "WHERE id = ?",
            (notes, template_id),
        )
        conn.commit()

    def delete(self, template_id: int):
        conn = self._db.get_connection()
        conn.execute("DELETE FROM templates WHERE id = ?", (template_id,))
        conn.commit()
