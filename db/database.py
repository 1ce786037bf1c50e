import logging
import sqlite3
import threading
import uuid
from datetime import datetime, timezone
from pathlib import Path

from db.models import DEFAULT_TITLE, SCHEMA_SQL, SESSION_STATUSES, UPDATABLE_FIELDS

logger = logging.getLogger(__name__)


class StoreError(RuntimeError):
    pass


class StoreUnavailable(StoreError):
    """The backing store could not complete the operation."""


class NotFound(StoreError):
    def __init__(self, session_id: str):
        super().__init__(f"Session {session_id} not found")
        self.session_id = session_id


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class SessionStore:
    """Session rows in sqlite.

    Finalize runs store calls on worker threads, so each thread keeps its own
    connection. Every write is a single statement and commits on its own.
    """

    def __init__(self, db_path: Path):
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._local = threading.local()
        self._init_schema()

    def _get_conn(self) -> sqlite3.Connection:
        conn = getattr(self._local, "conn", None)
        if conn is None:
            conn = sqlite3.connect(str(self.db_path), timeout=10)
            conn.row_factory = sqlite3.Row
            conn.execute("PRAGMA journal_mode=WAL")
            self._local.conn = conn
        return conn

    def _init_schema(self):
        try:
            conn = self._get_conn()
            conn.executescript(SCHEMA_SQL)
            conn.commit()
        except sqlite3.Error as e:
            raise StoreUnavailable(f"Could not initialize schema: {e}") from e

    def execute(self, sql: str, params: tuple = ()) -> sqlite3.Cursor:
        conn = self._get_conn()
        try:
            cursor = conn.execute(sql, params)
            conn.commit()
        except sqlite3.Error as e:
            conn.rollback()
            raise StoreUnavailable(str(e)) from e
        return cursor

    def fetchone(self, sql: str, params: tuple = ()) -> dict | None:
        try:
            row = self._get_conn().execute(sql, params).fetchone()
        except sqlite3.Error as e:
            raise StoreUnavailable(str(e)) from e
        return dict(row) if row else None

    def fetchall(self, sql: str, params: tuple = ()) -> list[dict]:
        try:
            rows = self._get_conn().execute(sql, params).fetchall()
        except sqlite3.Error as e:
            raise StoreUnavailable(str(e)) from e
        return [dict(row) for row in rows]

    def create(self, title: str | None = None, user_id: str | None = None,
               recording_type: str | None = None, status: str = "pending",
               transcript: str | None = None, summary: str | None = None,
               duration: int = 0) -> dict:
        if status not in SESSION_STATUSES:
            raise ValueError(f"Unknown session status '{status}'")
        session_id = uuid.uuid4().hex
        now = _now()
        self.execute(
            "INSERT INTO sessions (id, title, user_id, recording_type, status, transcript,"
            " summary, duration, created_at, updated_at)"
            " VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
            (session_id, title or DEFAULT_TITLE, user_id, recording_type, status,
             transcript, summary, int(duration or 0), now, now),
        )
        logger.info("Session %s created (status=%s)", session_id, status)
        return self.find(session_id)

    def find(self, session_id: str) -> dict | None:
        return self.fetchone("SELECT * FROM sessions WHERE id = ?", (session_id,))

    def update(self, session_id: str, **fields) -> dict:
        unknown = set(fields) - UPDATABLE_FIELDS
        if unknown:
            raise ValueError(f"Fields not updatable: {', '.join(sorted(unknown))}")
        if "status" in fields and fields["status"] not in SESSION_STATUSES:
            raise ValueError(f"Unknown session status '{fields['status']}'")

        fields["updated_at"] = _now()
        set_clause = ", ".join(f"{k} = ?" for k in fields)
        values = list(fields.values()) + [session_id]
        cursor = self.execute(f"UPDATE sessions SET {set_clause} WHERE id = ?", tuple(values))
        if cursor.rowcount == 0:
            raise NotFound(session_id)
        return self.find(session_id)

    def list_sessions(self, limit: int = 10, offset: int = 0,
                      status: str | None = None) -> list[dict]:
        if status:
            return self.fetchall(
                "SELECT * FROM sessions WHERE status = ? ORDER BY created_at DESC, rowid DESC LIMIT ? OFFSET ?",
                (status, limit, offset),
            )
        return self.fetchall(
            "SELECT * FROM sessions ORDER BY created_at DESC, rowid DESC LIMIT ? OFFSET ?",
            (limit, offset),
        )

    def delete(self, session_id: str) -> bool:
        cursor = self.execute("DELETE FROM sessions WHERE id = ?", (session_id,))
        return cursor.rowcount > 0
