"""
SQLite-backed relational store for session memory.

Uses SQLite with one table per record shape:
- memories: (session_id, key) → value, category, importance, access metadata
- conversations: per-session conversation rows holding the digest
- messages: conversation transcript, cascaded with its conversation

Memories owned by a conversation are removed with it (ON DELETE CASCADE).
"""

import logging
import sqlite3
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Iterator, List, Optional, Sequence, Union

logger = logging.getLogger(__name__)


class StorageError(RuntimeError):
    """Raised when the underlying database rejects a read or write."""


_SCHEMA = [
    """
    CREATE TABLE IF NOT EXISTS conversations (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        session_id TEXT NOT NULL,
        title TEXT,
        summary TEXT,
        created_at REAL NOT NULL,
        updated_at REAL NOT NULL,
        last_message_at REAL,
        message_count INTEGER NOT NULL DEFAULT 0,
        is_active INTEGER NOT NULL DEFAULT 1
    )
    """,
    "CREATE INDEX IF NOT EXISTS conversation_session_idx ON conversations(session_id)",
    """
    CREATE TABLE IF NOT EXISTS messages (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        conversation_id INTEGER NOT NULL
            REFERENCES conversations(id) ON DELETE CASCADE,
        role TEXT NOT NULL,
        content TEXT NOT NULL,
        metadata TEXT,
        created_at REAL NOT NULL
    )
    """,
    "CREATE INDEX IF NOT EXISTS message_conversation_idx ON messages(conversation_id)",
    """
    CREATE TABLE IF NOT EXISTS memories (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        session_id TEXT NOT NULL,
        key TEXT NOT NULL,
        value TEXT NOT NULL,
        category TEXT NOT NULL DEFAULT 'general',
        importance INTEGER NOT NULL DEFAULT 5,
        conversation_id INTEGER
            REFERENCES conversations(id) ON DELETE CASCADE,
        embedding BLOB,
        created_at REAL NOT NULL,
        updated_at REAL NOT NULL,
        last_accessed_at REAL,
        access_count INTEGER NOT NULL DEFAULT 0,
        UNIQUE (session_id, key)
    )
    """,
    "CREATE INDEX IF NOT EXISTS memory_session_idx ON memories(session_id)",
    "CREATE INDEX IF NOT EXISTS memory_category_idx ON memories(category)",
]


class Database:
    """
    File-backed SQLite database shared by the memory and conversation stores.

    Thread-safe: a single connection guarded by a re-entrant lock, WAL mode
    for file databases. Every statement outside an explicit transaction is
    committed immediately, so each record write is atomic on its own.
    """

    def __init__(self, db_path: Union[Path, str]):
        """
        Open (and initialize) the database.

        Args:
            db_path: Path to SQLite database file, or ":memory:"
        """
        self.db_path = str(db_path)
        in_memory = self.db_path == ":memory:"

        if not in_memory:
            Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)

        self._lock = threading.RLock()
        self._depth = 0

        try:
            self._conn = sqlite3.connect(
                self.db_path,
                check_same_thread=False,  # Allow multi-threaded access
                timeout=10.0,
            )
            self._conn.row_factory = sqlite3.Row
            self._conn.execute("PRAGMA foreign_keys=ON")
            if not in_memory:
                self._conn.execute("PRAGMA journal_mode=WAL")
                self._conn.execute("PRAGMA synchronous=NORMAL")
            self._init_tables()
        except sqlite3.Error as e:
            raise StorageError(f"Failed to open database {self.db_path}: {e}") from e

    def _init_tables(self) -> None:
        """Create tables and indexes if they don't exist."""
        for statement in _SCHEMA:
            self._conn.execute(statement)
        self._conn.commit()

    def _rollback(self) -> None:
        try:
            self._conn.rollback()
        except sqlite3.Error as e:
            logger.warning(f"Rollback failed on {self.db_path}: {e}")

    @contextmanager
    def transaction(self) -> Iterator["Database"]:
        """
        Group several statements into one atomic unit.

        Nested calls join the outermost transaction.
        """
        with self._lock:
            self._depth += 1
            try:
                yield self
            except BaseException:
                if self._depth == 1:
                    self._rollback()
                raise
            else:
                if self._depth == 1:
                    try:
                        self._conn.commit()
                    except sqlite3.Error as e:
                        raise StorageError(f"Commit failed: {e}") from e
            finally:
                self._depth -= 1

    def execute(self, sql: str, params: Sequence[Any] = ()) -> sqlite3.Cursor:
        """
        Execute one statement, committing unless inside a transaction.

        Raises:
            StorageError: If SQLite rejects the statement.
        """
        with self._lock:
            try:
                cursor = self._conn.execute(sql, params)
                if self._depth == 0:
                    self._conn.commit()
                return cursor
            except sqlite3.Error as e:
                if self._depth == 0:
                    self._rollback()
                raise StorageError(f"Statement failed: {e}") from e

    def fetchone(self, sql: str, params: Sequence[Any] = ()) -> Optional[sqlite3.Row]:
        """Execute a query and return the first row, if any."""
        with self._lock:
            return self.execute(sql, params).fetchone()

    def fetchall(self, sql: str, params: Sequence[Any] = ()) -> List[sqlite3.Row]:
        """Execute a query and return all rows."""
        with self._lock:
            return self.execute(sql, params).fetchall()

    def close(self) -> None:
        """Close database connection."""
        with self._lock:
            self._conn.close()

    def __enter__(self):
        """Context manager entry."""
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Context manager exit."""
        self.close()
