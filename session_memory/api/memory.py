"""
Memory API endpoints.

Explicit memory writes and lookups, per-turn instruction assembly and the
preference profile. Every route is scoped by the `X-Session-Id` header.
"""

import logging

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Query

from session_memory.memory.extractor import fresh_key
from session_memory.memory.integrate import SessionMemory
from session_memory.persist.sqlite_store import StorageError
from .deps import get_session_id, get_session_memory
from .schemas import (
    PreferencesResponse,
    RetrieveMemoryResponse,
    SaveMemoryRequest,
    SaveMemoryResponse,
    TurnContextRequest,
    TurnContextResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/memory/save", response_model=SaveMemoryResponse)
async def save_memory(
    request: SaveMemoryRequest,
    session_id: str = Depends(get_session_id),
    memory: SessionMemory = Depends(get_session_memory),
):
    """
    Store a memory for the session.

    Writing an existing key updates it in place.

    Example:
        POST /api/memory/save
        X-Session-Id: s1
        {"key": "project_stack", "value": "Building a FastAPI service", "category": "context"}
    """
    try:
        record = memory.store.upsert(
            session_id,
            request.key or fresh_key("memory"),
            request.value,
            category=request.category,
            importance=request.importance,
        )
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))
    except StorageError as e:
        logger.error(f"Memory save failed for session {session_id}: {e}")
        raise HTTPException(status_code=500, detail=f"Failed to save memory: {e}")

    return SaveMemoryResponse(memory=record, message=f"Memory '{record.key}' saved")


@router.get("/memory/retrieve", response_model=RetrieveMemoryResponse)
async def retrieve_memory(
    query: str = Query(..., min_length=1, description="Text to rank memories against"),
    session_id: str = Depends(get_session_id),
    memory: SessionMemory = Depends(get_session_memory),
):
    """Top memories by similarity to *query*, plus the gated context block."""
    memories = await memory.retrieve_memories(session_id, query)
    return RetrieveMemoryResponse(
        memories=memories,
        context=memory.composer.format_memory_block(memories),
        count=len(memories),
    )


@router.post("/turn/context", response_model=TurnContextResponse)
async def turn_context(
    request: TurnContextRequest,
    background_tasks: BackgroundTasks,
    session_id: str = Depends(get_session_id),
    memory: SessionMemory = Depends(get_session_memory),
):
    """
    Instructions for the next model call.

    Memory extraction and preference observation for the message run after
    the response is sent; they never delay the turn.
    """
    instructions = await memory.build_instructions(session_id, request.message, request.base_prompt)

    background_tasks.add_task(
        memory.extract_and_store_memory,
        session_id,
        request.message,
        "user",
        conversation_id=request.conversation_id,
    )
    background_tasks.add_task(memory.observe_user_message, session_id, request.message)

    return TurnContextResponse(instructions=instructions)


@router.get("/preferences", response_model=PreferencesResponse)
async def get_preferences(
    session_id: str = Depends(get_session_id),
    memory: SessionMemory = Depends(get_session_memory),
):
    """The session's full preference profile (defaults where nothing was observed)."""
    preferences = memory.preferences.load(session_id)
    return PreferencesResponse(
        preferences=preferences,
        context=memory.preferences.build_context(session_id, preferences),
    )
