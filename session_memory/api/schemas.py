"""Request and response models for the session memory API."""

from typing import List, Optional

from pydantic import BaseModel, Field

from session_memory.memory.recall import ScoredConversation
from session_memory.memory.schemas import MemoryCategory, MemoryRecord, ScoredMemory
from session_memory.persist.conversations import ChatMessage, Conversation
from session_memory.preferences.schemas import UserPreferences


class SaveMemoryRequest(BaseModel):
    """Request to store a memory explicitly."""

    value: str = Field(..., description="Memory content", min_length=1, max_length=2000)
    key: Optional[str] = Field(None, description="Upsert key (generated when omitted)")
    category: Optional[MemoryCategory] = Field(None, description="Memory category")
    importance: Optional[int] = Field(None, description="Importance 1-10", ge=1, le=10)

    class Config:
        json_schema_extra = {
            "example": {
                "key": "project_stack",
                "value": "Building a FastAPI service on PostgreSQL",
                "category": "context",
                "importance": 6,
            }
        }


class SaveMemoryResponse(BaseModel):
    """Response after storing a memory."""

    memory: MemoryRecord = Field(..., description="Stored record")
    message: str = Field(..., description="Status message")


class RetrieveMemoryResponse(BaseModel):
    """Ranked memories for a query and the gated context block."""

    memories: List[ScoredMemory] = Field(default_factory=list, description="Top memories by similarity")
    context: str = Field("", description="Relevance-gated memory block")
    count: int = Field(0, description="Number of memories returned")


class TurnContextRequest(BaseModel):
    """The user's latest message, sent before the model call."""

    message: str = Field(..., description="User message", min_length=1)
    base_prompt: Optional[str] = Field(None, description="Developer instructions (built-in prompt if omitted)")
    conversation_id: Optional[int] = Field(None, description="Conversation the message belongs to")

    class Config:
        json_schema_extra = {
            "example": {
                "message": "What's my name?",
                "conversation_id": 3,
            }
        }


class TurnContextResponse(BaseModel):
    """Assembled instructions for the next model call."""

    instructions: str = Field(..., description="Base prompt, memory block and preference block")


class PreferencesResponse(BaseModel):
    """The session's preference profile."""

    preferences: UserPreferences
    context: str = Field(..., description="Rendered preference block")


class SaveConversationRequest(BaseModel):
    """Full transcript of a conversation to persist."""

    messages: List[ChatMessage] = Field(..., description="Transcript, oldest first")
    conversation_id: Optional[int] = Field(None, description="Existing conversation to update")
    title: Optional[str] = Field(None, description="Conversation title")


class ConversationListResponse(BaseModel):
    conversations: List[Conversation] = Field(default_factory=list)
    count: int = Field(0)


class ConversationSearchResponse(BaseModel):
    results: List[ScoredConversation] = Field(default_factory=list)
    count: int = Field(0)


class DeleteConversationResponse(BaseModel):
    """Response after deleting a conversation."""

    deleted: bool = Field(..., description="Whether the conversation was deleted")
    message: str = Field(..., description="Status message")


class HealthResponse(BaseModel):
    """Health check response."""

    status: str = Field(..., description="Service status")
    version: str = Field(..., description="Package version")
