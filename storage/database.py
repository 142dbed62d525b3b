"""SQLite storage for reading sessions."""
import sqlite3
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional, List, Dict, Any
from contextlib import contextmanager

from utils.logger import setup_logger
import config

logger = setup_logger(__name__)

INCOMPLETE_LIMIT = 5
HISTORY_LIMIT = 50

RESUME_COLUMNS = (
    "id, title, source_type, source_url, content_text, word_count, current_position, "
    "time_spent_seconds, average_wpm, last_read_at"
)
HISTORY_COLUMNS = (
    "id, title, source_type, source_url, word_count, current_position, completed, "
    "time_spent_seconds, average_wpm, created_at, last_read_at"
)


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class SessionStore:
    """Manages reading session records."""

    def __init__(self, db_path: Path = config.DB_PATH):
        """Initialize database connection.

        Args:
            db_path: Path to SQLite database file
        """
        self.db_path = db_path
        self._initialize_schema()

    def _initialize_schema(self):
        """Create tables if they don't exist."""
        schema_path = Path(__file__).parent / "schema.sql"
        with open(schema_path, 'r') as f:
            schema_sql = f.read()

        with self._get_connection() as conn:
            conn.executescript(schema_sql)
            conn.commit()

        logger.debug(f"Session store initialized at {self.db_path}")

    @contextmanager
    def _get_connection(self):
        """Context manager for database connections."""
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        try:
            yield conn
        finally:
            conn.close()

    def create_session(
        self,
        user_id: str,
        content_text: str,
        word_count: int,
        title: Optional[str] = None,
        source_type: str = "paste",
        source_url: Optional[str] = None,
        session_id: Optional[str] = None
    ) -> Dict[str, Any]:
        """Insert a new reading session.

        Args:
            user_id: Reader id
            content_text: Normalized document text
            word_count: Real words in the document
            title: Document title
            source_type: paste, url, txt, pdf or file
            source_url: Origin URL for url sources
            session_id: Explicit id (used when syncing offline sessions)

        Returns:
            The stored session row
        """
        session_id = session_id or str(uuid.uuid4())
        now = _now()

        with self._get_connection() as conn:
            conn.execute(
                """
                INSERT INTO reading_sessions
                    (id, user_id, title, source_type, source_url, content_text, word_count,
                     current_position, completed, time_spent_seconds, average_wpm,
                     created_at, last_read_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, 0, 0, 0, NULL, ?, ?)
                """,
                (session_id, user_id, title or "Untitled", source_type, source_url,
                 content_text, word_count, now, now)
            )
            conn.commit()

        logger.info(f"Created session: {title or 'Untitled'} (ID: {session_id})")
        return self.get_session(session_id)

    def update_progress(
        self,
        session_id: str,
        current_position: int,
        time_spent_seconds: int,
        average_wpm: Optional[int]
    ) -> bool:
        """Record reading progress.

        Returns:
            True if the session exists
        """
        with self._get_connection() as conn:
            cursor = conn.execute(
                """
                UPDATE reading_sessions
                SET current_position = ?, time_spent_seconds = ?, average_wpm = ?, last_read_at = ?
                WHERE id = ?
                """,
                (current_position, time_spent_seconds, average_wpm, _now(), session_id)
            )
            conn.commit()
            return cursor.rowcount > 0

    def complete_session(
        self,
        session_id: str,
        time_spent_seconds: int,
        average_wpm: Optional[int],
        words_read: int
    ) -> bool:
        """Mark a session finished."""
        with self._get_connection() as conn:
            cursor = conn.execute(
                """
                UPDATE reading_sessions
                SET completed = 1, current_position = ?, time_spent_seconds = ?,
                    average_wpm = ?, last_read_at = ?
                WHERE id = ?
                """,
                (words_read, time_spent_seconds, average_wpm, _now(), session_id)
            )
            conn.commit()
            return cursor.rowcount > 0

    def get_session(self, session_id: str) -> Optional[Dict[str, Any]]:
        with self._get_connection() as conn:
            row = conn.execute(
                "SELECT * FROM reading_sessions WHERE id = ?",
                (session_id,)
            ).fetchone()
            return self._to_dict(row) if row else None

    def get_incomplete_sessions(self, user_id: str) -> List[Dict[str, Any]]:
        """Most recently read unfinished sessions, for resuming."""
        with self._get_connection() as conn:
            rows = conn.execute(
                f"""
                SELECT {RESUME_COLUMNS} FROM reading_sessions
                WHERE user_id = ? AND completed = 0
                ORDER BY last_read_at DESC
                LIMIT ?
                """,
                (user_id, INCOMPLETE_LIMIT)
            ).fetchall()
            return [self._to_dict(row) for row in rows]

    def get_all_sessions(self, user_id: str) -> List[Dict[str, Any]]:
        """Reading history, newest first."""
        with self._get_connection() as conn:
            rows = conn.execute(
                f"""
                SELECT {HISTORY_COLUMNS} FROM reading_sessions
                WHERE user_id = ?
                ORDER BY last_read_at DESC
                LIMIT ?
                """,
                (user_id, HISTORY_LIMIT)
            ).fetchall()
            return [self._to_dict(row) for row in rows]

    def delete_session(self, session_id: str) -> bool:
        with self._get_connection() as conn:
            cursor = conn.execute("DELETE FROM reading_sessions WHERE id = ?", (session_id,))
            conn.commit()
            return cursor.rowcount > 0

    def _to_dict(self, row: sqlite3.Row) -> Dict[str, Any]:
        data = dict(row)
        if 'completed' in data:
            data['completed'] = bool(data['completed'])
        return data
