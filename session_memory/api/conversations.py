"""Conversation history endpoints."""

import logging

from fastapi import APIRouter, Depends, HTTPException, Query

from session_memory.memory.integrate import SessionMemory
from session_memory.persist.conversations import Conversation
from session_memory.persist.sqlite_store import StorageError
from .deps import get_session_id, get_session_memory
from .schemas import (
    ConversationListResponse,
    ConversationSearchResponse,
    DeleteConversationResponse,
    SaveConversationRequest,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/conversations")


@router.post("/save", response_model=Conversation)
async def save_conversation(
    request: SaveConversationRequest,
    session_id: str = Depends(get_session_id),
    memory: SessionMemory = Depends(get_session_memory),
):
    """
    Create or update a conversation.

    Conversations longer than the summary threshold get a fresh digest.
    """
    try:
        return await memory.save_conversation(
            session_id,
            request.messages,
            conversation_id=request.conversation_id,
            title=request.title,
        )
    except KeyError:
        raise HTTPException(status_code=404, detail=f"Conversation {request.conversation_id} not found")
    except StorageError as e:
        logger.error(f"Conversation save failed for session {session_id}: {e}")
        raise HTTPException(status_code=500, detail=f"Failed to save conversation: {e}")


@router.get("/list", response_model=ConversationListResponse)
async def list_conversations(
    limit: int = Query(50, ge=1, le=1000),
    session_id: str = Depends(get_session_id),
    memory: SessionMemory = Depends(get_session_memory),
):
    conversations = memory.conversations.list_conversations(session_id, limit=limit)
    return ConversationListResponse(conversations=conversations, count=len(conversations))


@router.get("/search", response_model=ConversationSearchResponse)
async def search_conversations(
    query: str = Query(..., min_length=1),
    limit: int = Query(5, ge=1, le=100),
    session_id: str = Depends(get_session_id),
    memory: SessionMemory = Depends(get_session_memory),
):
    """Conversations ranked by similarity of title and digest to *query*."""
    results = await memory.search_conversations(session_id, query, limit=limit)
    return ConversationSearchResponse(results=results, count=len(results))


@router.get("/{conversation_id}", response_model=Conversation)
async def get_conversation(
    conversation_id: int,
    session_id: str = Depends(get_session_id),
    memory: SessionMemory = Depends(get_session_memory),
):
    conversation = memory.conversations.get_conversation(session_id, conversation_id)
    if conversation is None:
        raise HTTPException(status_code=404, detail=f"Conversation {conversation_id} not found")
    return conversation


@router.delete("/{conversation_id}", response_model=DeleteConversationResponse)
async def delete_conversation(
    conversation_id: int,
    session_id: str = Depends(get_session_id),
    memory: SessionMemory = Depends(get_session_memory),
):
    """Delete a conversation with its messages and the memories it produced."""
    deleted = memory.conversations.delete_conversation(session_id, conversation_id)
    if not deleted:
        raise HTTPException(status_code=404, detail=f"Conversation {conversation_id} not found")
    return DeleteConversationResponse(deleted=True, message=f"Conversation {conversation_id} deleted")
