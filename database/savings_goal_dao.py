from typing import Optional
from database.db_manager import DatabaseManager
from models.savings_goal import SavingsGoal


class SavingsGoalDAO:
    def __init__(self, db: DatabaseManager):
        self._db = db

    def _row_to_model(self, row) -> SavingsGoal:
        return SavingsGoal(
            id=row["id"],
            name=row["name"],
            target_amount=row["target_amount"],
            target_date=row["target_date"],
            status=row["status"],
            current_amount=row["current_amount"],
            linked_account_id=row["linked_account_id"],
            previous_status=row["previous_status"],
            notes=row["notes"],
            paused_at=row["paused_at"],
            completed_at=row["completed_at"],
            archived_at=row["archived_at"],
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )

    def get_all(self) -> list[SavingsGoal]:
        conn = self._db.get_connection()
        rows = conn.execute(
            "SELECT * FROM savings_goals ORDER BY target_date, name"
        ).fetchall()
        return [self._row_to_model(r) for r in rows]

    def get_by_id(self, goal_id: int) -> Optional[SavingsGoal]:
        conn = self._db.get_connection()
        row = conn.execute(
            "SELECT * FROM savings_goals WHERE id = ?", (goal_id,)
        ).fetchone()
        return self._row_to_model(row) if row else None

    def create(
        self,
        name: str,
        target_amount: int,
        target_date: str,
        linked_account_id: int | None = None,
        current_amount: int = 0,
        notes: str = "",
        created_at: str | None = None,
    ) -> SavingsGoal:
        conn = self._db.get_connection()
        cursor = conn.execute(
            """INSERT INTO savings_goals
               (name, target_amount, target_date, linked_account_id, current_amount,
                notes, created_at, updated_at)
               VALUES (?, ?, ?, ?, ?, ?,
                       COALESCE(?, datetime('now')), COALESCE(?, datetime('now')))""",
            (name, target_amount, target_date, linked_account_id, current_amount,
             notes, created_at, created_at),
        )
        conn.commit()
        return self.get_by_id(cursor.lastrowid)

    def update(
        self,
        goal_id: int,
        name: str,
        target_amount: int,
        target_date: str,
        linked_account_id: int | None = None,
        current_amount: int = 0,
        notes: str = "",
    ) -> SavingsGoal:
        conn = self._db.get_connection()
        conn.execute(
            """UPDATE savings_goals SET
               name=?, target_amount=?, target_date=?, linked_account_id=?,
               current_amount=?, notes=?, updated_at=datetime('now')
               WHERE id=?""",
            (name, target_amount, target_date, linked_account_id,
             current_amount, notes, goal_id),
        )
        conn.commit()
        return self.get_by_id(goal_id)

    def update_status(
        self,
        goal_id: int,
        status: str,
        previous_status: str | None = None,
        paused_at: str | None = None,
        completed_at: str | None = None,
        archived_at: str | None = None,
    ) -> SavingsGoal:
        conn = self._db.get_connection()
        conn.execute(
            """UPDATE savings_goals SET
               status=?, previous_status=?, paused_at=?, completed_at=?, archived_at=?,
               updated_at=datetime('now')
               WHERE id=?""",
            (status, previous_status, paused_at, completed_at, archived_at, goal_id),
        )
        conn.commit()
        return self.get_by_id(goal_id)

    def delete(self, goal_id: int):
        conn = self._db.get_connection()
        conn.execute("DELETE FROM savings_goals WHERE id = ?", (goal_id,))
        conn.commit()
