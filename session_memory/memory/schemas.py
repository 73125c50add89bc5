"""
Memory system data models.

Defines the memory record, extraction candidates and scored results.
"""

from enum import Enum
from typing import Any, Dict, List, Optional

import numpy as np
from pydantic import BaseModel, Field


class MemoryCategory(str, Enum):
    """Closed set of memory categories; GENERAL is the fallback."""

    PERSONAL_INFO = "personal_info"
    PREFERENCES = "preferences"
    GOALS = "goals"
    CONTEXT = "context"
    TECHNICAL = "technical"
    GENERAL = "general"

    @classmethod
    def parse(cls, value: Any) -> Optional["MemoryCategory"]:
        """Return the matching category, or None for unknown values."""
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            try:
                return cls(value.strip().lower())
            except ValueError:
                return None
        return None


# Human-readable headers used when grouping memories in assembled context.
CATEGORY_LABELS: Dict[MemoryCategory, str] = {
    MemoryCategory.PERSONAL_INFO: "Personal Info",
    MemoryCategory.PREFERENCES: "Preferences",
    MemoryCategory.GOALS: "Goals",
    MemoryCategory.CONTEXT: "Context",
    MemoryCategory.TECHNICAL: "Technical",
    MemoryCategory.GENERAL: "General",
}

MIN_IMPORTANCE = 1
MAX_IMPORTANCE = 10


def clamp_importance(value: Any, default: int) -> int:
    """Coerce an importance value into [1, 10], using *default* when unusable."""
    try:
        importance = int(value)
    except (TypeError, ValueError):
        importance = default
    return max(MIN_IMPORTANCE, min(MAX_IMPORTANCE, importance))


def encode_embedding(vector: Optional[List[float]]) -> Optional[bytes]:
    """Serialize an embedding as float32 bytes for storage."""
    if not vector:
        return None
    return np.asarray(vector, dtype=np.float32).tobytes()


def decode_embedding(blob: Optional[bytes]) -> Optional[List[float]]:
    """Load an embedding stored by `encode_embedding`."""
    if not blob:
        return None
    return np.frombuffer(blob, dtype=np.float32).tolist()


class MemoryRecord(BaseModel):
    """
    A single stored fact, preference or context item.

    Unique per (session_id, key). Created on first extraction and updated in
    place when the same key is written again.
    """

    id: int = Field(..., description="Database row id")
    session_id: str = Field(..., description="Owning session")
    key: str = Field(..., description="Upsert key, unique within the session")
    value: str = Field(..., description="Memory content")
    category: MemoryCategory = Field(MemoryCategory.GENERAL)
    importance: int = Field(5, ge=MIN_IMPORTANCE, le=MAX_IMPORTANCE)
    conversation_id: Optional[int] = Field(None, description="Conversation that produced it")

    created_at: float = Field(..., description="Unix timestamp")
    updated_at: float = Field(..., description="Unix timestamp of last write")
    last_accessed_at: Optional[float] = Field(None, description="Last retrieval time")
    access_count: int = Field(0, ge=0, description="Writes after creation plus retrievals")

    # Stored vector, if one was computed at write time (not serialized)
    embedding: Optional[List[float]] = Field(None, exclude=True, repr=False)

    class Config:
        json_schema_extra = {
            "example": {
                "id": 12,
                "session_id": "s1",
                "key": "user_name",
                "value": "User's name is Sam",
                "category": "personal_info",
                "importance": 9,
                "created_at": 1696723200.0,
                "updated_at": 1696723200.0,
                "last_accessed_at": None,
                "access_count": 0,
            }
        }

    @classmethod
    def from_row(cls, row: Any) -> "MemoryRecord":
        """Build a record from a `memories` table row."""
        data = dict(row)
        data["embedding"] = decode_embedding(data.get("embedding"))
        data["category"] = MemoryCategory.parse(data.get("category")) or MemoryCategory.GENERAL
        return cls(**data)


class ExtractedMemory(BaseModel):
    """A candidate memory produced by an extractor, not yet stored."""

    key: str
    value: str
    category: MemoryCategory = MemoryCategory.GENERAL
    importance: int = Field(5, ge=MIN_IMPORTANCE, le=MAX_IMPORTANCE)
    embedding: Optional[List[float]] = Field(None, repr=False)


class ScoredMemory(BaseModel):
    """A memory paired with its similarity to one query (never persisted)."""

    memory: MemoryRecord
    score: float = Field(0.0, ge=-1.0, le=1.0)

    @property
    def value(self) -> str:
        return self.memory.value

    @property
    def category(self) -> MemoryCategory:
        return self.memory.category
