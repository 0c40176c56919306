import json
import logging
from typing import Optional

from database.db_manager import DatabaseManager
from models.monthly_data import MonthlyData, MonthRef
from utils.date_helpers import now_iso
from utils.errors import ConflictError

logger = logging.getLogger(__name__)


class MonthDAO:
    """Month documents stored as JSON, one row per YYYY-MM.

    Writes are optimistic: save() only succeeds when the stored version still
    matches the version the caller read, and bumps it on success.
    """

    def __init__(self, db: DatabaseManager):
        self._db = db

    def _row_to_model(self, row) -> MonthlyData:
        return MonthlyData.from_dict(
            json.loads(row["data"]),
            is_read_only=bool(row["is_read_only"]),
            version=row["version"],
        )

    def get(self, month: str) -> Optional[MonthlyData]:
        conn = self._db.get_connection()
        row = conn.execute(
            "SELECT * FROM months WHERE month = ?", (month,)
        ).fetchone()
        return self._row_to_model(row) if row else None

    def get_all(self) -> list[MonthlyData]:
        conn = self._db.get_connection()
        rows = conn.execute("SELECT * FROM months ORDER BY month").fetchall()
        return [self._row_to_model(r) for r in rows]

    def exists(self, month: str) -> bool:
        conn = self._db.get_connection()
        row = conn.execute(
            "SELECT 1 FROM months WHERE month = ?", (month,)
        ).fetchone()
        return row is not None

    def list(self) -> list[MonthRef]:
        conn = self._db.get_connection()
        rows = conn.execute(
            "SELECT month, is_read_only FROM months ORDER BY month DESC"
        ).fetchall()
        return [MonthRef(r["month"], True, bool(r["is_read_only"])) for r in rows]

    def is_read_only(self, month: str) -> bool:
        conn = self._db.get_connection()
        row = conn.execute(
            "SELECT is_read_only FROM months WHERE month = ?", (month,)
        ).fetchone()
        return bool(row["is_read_only"]) if row else False

    def create(self, data: MonthlyData) -> MonthlyData:
        if self.exists(data.month):
            raise ConflictError(f"Month {data.month} already exists.")
        stamp = now_iso()
        data.created_at = data.created_at or stamp
        data.updated_at = stamp
        conn = self._db.get_connection()
        conn.execute(
            "INSERT INTO months(month, data, is_read_only, version) VALUES (?, ?, ?, 1)",
            (data.month, json.dumps(data.to_dict()), int(data.is_read_only)),
        )
        conn.commit()
        data.version = 1
        logger.info("Created month %s", data.month)
        return data

    def save(self, data: MonthlyData) -> MonthlyData:
        """Write the document back if nobody else wrote it since it was read."""
        if data.version == 0:
            return self.create(data)
        data.updated_at = now_iso()
        conn = self._db.get_connection()
        cursor = conn.execute(
            """UPDATE months SET data = ?, version = version + 1, updated_at = datetime('now')
               WHERE month = ? AND version = ?""",
            (json.dumps(data.to_dict()), data.month, data.version),
        )
        conn.commit()
        if cursor.rowcount == 0:
            raise ConflictError(
                f"Month {data.month} was changed by another writer; reload and retry."
            )
        data.version += 1
        return data

    def set_read_only(self, month: str, is_read_only: bool) -> bool:
        conn = self._db.get_connection()
        cursor = conn.execute(
            """UPDATE months SET is_read_only = ?, version = version + 1,
               updated_at = datetime('now') WHERE month = ?""",
            (int(is_read_only), month),
        )
        conn.commit()
        return cursor.rowcount > 0
