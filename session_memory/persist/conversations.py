"""
Conversation persistence for multi-turn sessions.

Stores conversation rows (title, digest, counters) and their messages. The
transcript is replaced wholesale on every save; a non-empty digest replaces
the previous one.
"""

import json
import time
from typing import Any, Dict, List, Optional, Sequence, Union

from pydantic import BaseModel, Field

from .sqlite_store import Database


class ChatMessage(BaseModel):
    """Single transcript entry. Content is plain text or a list of parts."""

    role: str  # "user", "assistant" or "system"
    content: Union[str, List[Dict[str, Any]]] = ""
    type: str = "message"
    metadata: Optional[Dict[str, Any]] = None
    created_at: float = Field(default_factory=time.time)

    @property
    def text(self) -> str:
        """Plain text of the message, joining text parts."""
        if isinstance(self.content, str):
            return self.content
        return " ".join(
            str(part.get("text", "")) for part in self.content
            if isinstance(part, dict) and part.get("text")
        )


MessageLike = Union[ChatMessage, Dict[str, Any]]


def to_messages(messages: Sequence[MessageLike]) -> List[ChatMessage]:
    """Normalize dicts and ChatMessage objects into ChatMessage objects."""
    return [m if isinstance(m, ChatMessage) else ChatMessage.model_validate(m) for m in messages]


class Conversation(BaseModel):
    """Conversation row; `summary` is the digest."""

    id: int
    session_id: str
    title: Optional[str] = None
    summary: Optional[str] = None
    created_at: float
    updated_at: float
    last_message_at: Optional[float] = None
    message_count: int = 0
    is_active: bool = True
    messages: List[ChatMessage] = Field(default_factory=list)


class ConversationStore:
    """Session-scoped conversation and transcript storage."""

    def __init__(self, db: Database):
        self.db = db

    def save_conversation(
        self,
        session_id: str,
        messages: Sequence[MessageLike],
        conversation_id: Optional[int] = None,
        title: Optional[str] = None,
        summary: Optional[str] = None,
    ) -> Conversation:
        """
        Create or update a conversation and replace its transcript.

        Args:
            session_id: Owning session
            messages: Full transcript
            conversation_id: Existing conversation to update (None creates one)
            title: New title (None keeps the existing one)
            summary: New digest; empty/None keeps the existing one

        Returns:
            The saved conversation, with messages

        Raises:
            KeyError: If *conversation_id* does not exist in this session
            StorageError: If the write fails
        """
        msgs = to_messages(messages)
        now = time.time()

        with self.db.transaction():
            if conversation_id is not None:
                if self.get_conversation(session_id, conversation_id, with_messages=False) is None:
                    raise KeyError(f"Conversation {conversation_id} not found")

                self.db.execute(
                    """
                    UPDATE conversations SET
                        title = COALESCE(?, title),
                        summary = CASE WHEN ? IS NOT NULL AND ? != '' THEN ? ELSE summary END,
                        updated_at = ?,
                        last_message_at = ?,
                        message_count = ?
                    WHERE id = ?
                    """,
                    (title, summary, summary, summary, now, now, len(msgs), conversation_id),
                )
                self.db.execute("DELETE FROM messages WHERE conversation_id = ?", (conversation_id,))
            else:
                cursor = self.db.execute(
                    """
                    INSERT INTO conversations (
                        session_id, title, summary, created_at, updated_at,
                        last_message_at, message_count
                    ) VALUES (?, ?, ?, ?, ?, ?, ?)
                    """,
                    (session_id, title or "New Conversation", summary or None, now, now, now, len(msgs)),
                )
                conversation_id = cursor.lastrowid

            for msg in msgs:
                self.db.execute(
                    """
                    INSERT INTO messages (conversation_id, role, content, metadata, created_at)
                    VALUES (?, ?, ?, ?, ?)
                    """,
                    (
                        conversation_id,
                        msg.role,
                        json.dumps({"type": msg.type, "content": msg.content}, ensure_ascii=False),
                        json.dumps(msg.metadata) if msg.metadata is not None else None,
                        msg.created_at,
                    ),
                )

            return self.get_conversation(session_id, conversation_id)

    def get_conversation(
        self,
        session_id: str,
        conversation_id: int,
        with_messages: bool = True,
    ) -> Optional[Conversation]:
        """Load a conversation of this session, or None."""
        row = self.db.fetchone(
            "SELECT * FROM conversations WHERE id = ? AND session_id = ?",
            (conversation_id, session_id),
        )
        if row is None:
            return None

        conversation = Conversation(**dict(row))
        if with_messages:
            conversation.messages = self._load_messages(conversation_id)
        return conversation

    def _load_messages(self, conversation_id: int) -> List[ChatMessage]:
        rows = self.db.fetchall(
            "SELECT * FROM messages WHERE conversation_id = ? ORDER BY id",
            (conversation_id,),
        )

        messages = []
        for row in rows:
            body = json.loads(row["content"])
            messages.append(ChatMessage(
                role=row["role"],
                content=body.get("content", ""),
                type=body.get("type", "message"),
                metadata=json.loads(row["metadata"]) if row["metadata"] else None,
                created_at=row["created_at"],
            ))
        return messages

    def list_conversations(self, session_id: str, limit: Optional[int] = None) -> List[Conversation]:
        """A session's conversations, most recently updated first (no messages)."""
        rows = self.db.fetchall(
            "SELECT * FROM conversations WHERE session_id = ? ORDER BY updated_at DESC, id DESC LIMIT ?",
            (session_id, -1 if limit is None else int(limit)),
        )
        return [Conversation(**dict(row)) for row in rows]

    def delete_conversation(self, session_id: str, conversation_id: int) -> bool:
        """
        Delete a conversation; its messages and memories cascade.

        Returns:
            True if deleted, False if not found
        """
        cursor = self.db.execute(
            "DELETE FROM conversations WHERE id = ? AND session_id = ?",
            (conversation_id, session_id),
        )
        return cursor.rowcount > 0
