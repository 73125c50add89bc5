"""
Persistence layer.

Provides:
- SQLite database handle shared by all stores
- Conversation and transcript storage
"""

from .sqlite_store import Database, StorageError
from .conversations import ChatMessage, Conversation, ConversationStore, to_messages

__all__ = [
    "Database",
    "StorageError",
    "ChatMessage",
    "Conversation",
    "ConversationStore",
    "to_messages",
]
