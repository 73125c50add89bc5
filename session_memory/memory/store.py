"""
Memory persistence layer on the SQLite `memories` table.

Session-scoped upsert and query; reads made through `query` also update the
access metadata (read-with-touch).
"""

import time
from typing import List, Optional, Sequence, Union

from session_memory.persist.sqlite_store import Database
from .schemas import (
    MAX_IMPORTANCE,
    MIN_IMPORTANCE,
    MemoryCategory,
    MemoryRecord,
    encode_embedding,
)


CategoryArg = Union[MemoryCategory, str]


def _coerce_category(category: CategoryArg) -> MemoryCategory:
    parsed = MemoryCategory.parse(category)
    if parsed is None:
        raise ValueError(
            f"Invalid category '{category}'. "
            f"Must be one of: {', '.join(c.value for c in MemoryCategory)}"
        )
    return parsed


def _check_importance(importance: int) -> int:
    if not MIN_IMPORTANCE <= int(importance) <= MAX_IMPORTANCE:
        raise ValueError(f"Importance must be in [{MIN_IMPORTANCE}, {MAX_IMPORTANCE}], got {importance}")
    return int(importance)


def _like_pattern(text: str) -> str:
    """Substring LIKE pattern with `\\`, `%` and `_` matched literally."""
    escaped = text.lower().replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"%{escaped}%"


class MemoryStore:
    """
    Persistent storage for memory records.

    Features:
    - Upsert keyed by (session_id, key), last-write-wins on value/importance
    - Filtered queries ordered by importance, then recency
    - Access tracking (access_count, last_accessed_at)
    """

    def __init__(self, db: Database, default_importance: int = 5):
        """
        Initialize memory store.

        Args:
            db: Shared database handle
            default_importance: Importance given to new records when none is supplied
        """
        self.db = db
        self.default_importance = _check_importance(default_importance)

    def get(self, session_id: str, key: str) -> Optional[MemoryRecord]:
        """
        Retrieve a memory by key without touching its access metadata.

        Returns:
            MemoryRecord if found, else None
        """
        row = self.db.fetchone(
            "SELECT * FROM memories WHERE session_id = ? AND key = ?",
            (session_id, key),
        )
        return MemoryRecord.from_row(row) if row else None

    def upsert(
        self,
        session_id: str,
        key: str,
        value: str,
        category: Optional[CategoryArg] = None,
        importance: Optional[int] = None,
        *,
        conversation_id: Optional[int] = None,
        embedding: Optional[List[float]] = None,
    ) -> MemoryRecord:
        """
        Insert a memory or update the existing one with the same key.

        On update: value is overwritten; category and importance are replaced
        only when supplied (None keeps the stored value); access_count is
        incremented by one; updated_at is refreshed. A new value without a new
        embedding drops the stored embedding.

        On insert: access_count starts at 0, category defaults to general.

        Raises:
            ValueError: On empty key, unknown category or importance outside [1, 10]
            StorageError: If the write fails
        """
        if not key:
            raise ValueError("Memory key must be non-empty")
        new_category = _coerce_category(category) if category is not None else None
        new_importance = _check_importance(importance) if importance is not None else None
        blob = encode_embedding(embedding)
        now = time.time()

        with self.db.transaction():
            existing = self.get(session_id, key)

            if existing is not None:
                if blob is None and existing.value == value and existing.embedding:
                    blob = encode_embedding(existing.embedding)
                self.db.execute(
                    """
                    UPDATE memories SET
                        value = ?,
                        category = ?,
                        importance = ?,
                        embedding = ?,
                        updated_at = ?,
                        access_count = access_count + 1
                    WHERE id = ?
                    """,
                    (
                        value,
                        (new_category or existing.category).value,
                        new_importance if new_importance is not None else existing.importance,
                        blob,
                        now,
                        existing.id,
                    ),
                )
            else:
                self.db.execute(
                    """
                    INSERT INTO memories (
                        session_id, key, value, category, importance,
                        conversation_id, embedding, created_at, updated_at, access_count
                    ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, 0)
                    """,
                    (
                        session_id,
                        key,
                        value,
                        (new_category or MemoryCategory.GENERAL).value,
                        new_importance if new_importance is not None else self.default_importance,
                        conversation_id,
                        blob,
                        now,
                        now,
                    ),
                )

            return self.get(session_id, key)

    def query(
        self,
        session_id: str,
        category: Optional[CategoryArg] = None,
        text_match: Optional[str] = None,
        min_importance: Optional[int] = None,
        limit: Optional[int] = 20,
        touch: bool = True,
    ) -> List[MemoryRecord]:
        """
        List a session's memories, most important and most recent first.

        Args:
            session_id: Session to read
            category: Only this category
            text_match: Case-insensitive substring of key or value
            min_importance: Only records at or above this importance
            limit: Maximum results (None for all)
            touch: Refresh last_accessed_at and increment access_count
                on every returned record

        Returns:
            List of MemoryRecord objects (reflecting the touch)
        """
        conditions = ["session_id = ?"]
        params: list = [session_id]

        if category is not None:
            conditions.append("category = ?")
            params.append(_coerce_category(category).value)

        if text_match:
            pattern = _like_pattern(text_match)
            conditions.append("(LOWER(key) LIKE ? ESCAPE '\\' OR LOWER(value) LIKE ? ESCAPE '\\')")
            params.extend([pattern, pattern])

        if min_importance is not None:
            conditions.append("importance >= ?")
            params.append(int(min_importance))

        params.append(-1 if limit is None else int(limit))

        rows = self.db.fetchall(
            f"""
            SELECT * FROM memories
            WHERE {' AND '.join(conditions)}
            ORDER BY importance DESC, updated_at DESC, id DESC
            LIMIT ?
            """,
            params,
        )
        records = [MemoryRecord.from_row(row) for row in rows]

        if touch and records:
            now = self.touch(session_id, [r.id for r in records])
            for record in records:
                record.last_accessed_at = now
                record.access_count += 1

        return records

    def touch(self, session_id: str, ids: Sequence[int]) -> float:
        """
        Mark memories as read: refresh last_accessed_at, increment access_count.

        Returns:
            The access timestamp written
        """
        now = time.time()
        if not ids:
            return now

        placeholders = ", ".join("?" for _ in ids)
        self.db.execute(
            f"""
            UPDATE memories SET
                last_accessed_at = ?,
                access_count = access_count + 1
            WHERE session_id = ? AND id IN ({placeholders})
            """,
            (now, session_id, *ids),
        )
        return now

    def count(self, session_id: str) -> int:
        """Count a session's memories."""
        row = self.db.fetchone(
            "SELECT COUNT(*) FROM memories WHERE session_id = ?",
            (session_id,),
        )
        return int(row[0]) if row else 0

    def delete_session(self, session_id: str) -> int:
        """
        Delete every memory belonging to a session.

        Returns:
            Number of memories deleted
        """
        cursor = self.db.execute(
            "DELETE FROM memories WHERE session_id = ?",
            (session_id,),
        )
        return cursor.rowcount
