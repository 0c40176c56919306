import logging
import os
import sqlite3

from utils.constants import DB_FILE

logger = logging.getLogger(__name__)


class DatabaseManager:
    def __init__(self, db_path: str | None = None):
        self.db_path = db_path or DB_FILE
        self._conn: sqlite3.Connection | None = None

    def get_connection(self) -> sqlite3.Connection:
        if self._conn is None:
            self._conn = sqlite3.connect(self.db_path, check_same_thread=False)
            self._conn.row_factory = sqlite3.Row
            self._conn.execute("PRAGMA foreign_keys = ON")
            self._conn.execute("PRAGMA journal_mode = WAL")
        return self._conn

    def initialize(self):
        """Create schema and seed defaults."""
        conn = self.get_connection()
        self._create_schema(conn)
        self._seed_defaults(conn)
        conn.commit()
        logger.debug("Database ready at %s", self.db_path)

    def _create_schema(self, conn: sqlite3.Connection):
        conn.executescript("""
            CREATE TABLE IF NOT EXISTS payment_sources (
                id                    INTEGER PRIMARY KEY AUTOINCREMENT,
                name                  TEXT    NOT NULL UNIQUE,
                type                  TEXT    NOT NULL DEFAULT 'bank_account'
                                      CHECK(type IN ('bank_account','credit_card','line_of_credit',
                                                     'cash','savings','investment')),
                is_active             INTEGER NOT NULL DEFAULT 1,
                exclude_from_leftover INTEGER NOT NULL DEFAULT 0,
                pay_off_monthly       INTEGER NOT NULL DEFAULT 0,
                created_at            TEXT    NOT NULL DEFAULT (datetime('now'))
            );

            CREATE TABLE IF NOT EXISTS savings_goals (
                id                INTEGER PRIMARY KEY AUTOINCREMENT,
                name              TEXT    NOT NULL,
                target_amount     INTEGER NOT NULL CHECK(target_amount > 0),
                current_amount    INTEGER NOT NULL DEFAULT 0,
                target_date       TEXT    NOT NULL,
                linked_account_id INTEGER REFERENCES payment_sources(id) ON DELETE SET NULL,
                status            TEXT    NOT NULL DEFAULT 'saving'
                                  CHECK(status IN ('saving','paused','bought','abandoned','archived')),
                previous_status   TEXT,
                notes             TEXT    NOT NULL DEFAULT '',
                paused_at         TEXT,
                completed_at      TEXT,
                archived_at       TEXT,
                created_at        TEXT    NOT NULL DEFAULT (datetime('now')),
                updated_at        TEXT    NOT NULL DEFAULT (datetime('now'))
            );

            CREATE TABLE IF NOT EXISTS templates (
                id                INTEGER PRIMARY KEY AUTOINCREMENT,
                kind              TEXT    NOT NULL CHECK(kind IN ('bill','income')),
                name              TEXT    NOT NULL,
                amount            INTEGER NOT NULL CHECK(amount > 0),
                billing_period    TEXT    NOT NULL
                                  CHECK(billing_period IN ('weekly','bi_weekly','monthly','semi_annually')),
                day_of_month      INTEGER,
                recurrence_week   INTEGER,
                recurrence_day    INTEGER,
                start_date        TEXT,
                end_date          TEXT,
                payment_source_id INTEGER REFERENCES payment_sources(id) ON DELETE SET NULL,
                category_id       INTEGER,
                goal_id           INTEGER REFERENCES savings_goals(id) ON DELETE SET NULL,
                is_active         INTEGER NOT NULL DEFAULT 1,
                notes             TEXT    NOT NULL DEFAULT '',
                created_at        TEXT    NOT NULL DEFAULT (datetime('now')),
                updated_at        TEXT    NOT NULL DEFAULT (datetime('now'))
            );

            CREATE TABLE IF NOT EXISTS months (
                month        TEXT    PRIMARY KEY,
                data         TEXT    NOT NULL,
                is_read_only INTEGER NOT NULL DEFAULT 0,
                version      INTEGER NOT NULL DEFAULT 1,
                created_at   TEXT    NOT NULL DEFAULT (datetime('now')),
                updated_at   TEXT    NOT NULL DEFAULT (datetime('now'))
            );

            CREATE INDEX IF NOT EXISTS idx_templates_kind    ON templates(kind);
            CREATE INDEX IF NOT EXISTS idx_templates_goal_id ON templates(goal_id);

            CREATE TABLE IF NOT EXISTS app_settings (
                key   TEXT PRIMARY KEY,
                value TEXT NOT NULL
            );
        """)

    def _seed_defaults(self, conn: sqlite3.Connection):
        defaults = [
            ("appearance_mode", "system"),
            ("date_format", "MM/DD/YYYY"),
        ]
        for key, value in defaults:
            conn.execute(
                "INSERT OR IGNORE INTO app_settings(key, value) VALUES (?, ?)",
                (key, value),
            )

    def get_setting(self, key: str, default: str = "") -> str:
        conn = self.get_connection()
        row = conn.execute(
            "SELECT value FROM app_settings WHERE key = ?", (key,)
        ).fetchone()
        return row["value"] if row else default

    def set_setting(self, key: str, value: str):
        conn = self.get_connection()
        conn.execute(
            "INSERT OR REPLACE INTO app_settings(key, value) VALUES (?, ?)",
            (key, value),
        )
        conn.commit()

    @staticmethod
    def open_in_folder(db_folder: str | None = None) -> "DatabaseManager":
        """Startup factory: opens billfold.db in db_folder (or the working directory)."""
        if db_folder:
            os.makedirs(db_folder, exist_ok=True)
            path = os.path.join(db_folder, DB_FILE)
        else:
            path = DB_FILE
        db = DatabaseManager(path)
        db.initialize()
        return db

    def close(self):
        if self._conn:
            self._conn.close()
            self._conn = None
