"""Shared API dependencies."""

from typing import Optional

from fastapi import Header, HTTPException

from session_memory.config.settings import load_settings_from_env
from session_memory.memory.integrate import SessionMemory, create_session_memory

# Created on first use; tests override `get_session_memory`.
_session_memory: Optional[SessionMemory] = None


def get_session_memory() -> SessionMemory:
    """Get or create the session memory singleton."""
    global _session_memory
    if _session_memory is None:
        _session_memory = create_session_memory(load_settings_from_env())
    return _session_memory


def close_session_memory() -> None:
    global _session_memory
    if _session_memory is not None:
        _session_memory.store.db.close()
        _session_memory = None


def get_session_id(x_session_id: Optional[str] = Header(None)) -> str:
    """Session id from the `X-Session-Id` header; issuance is the host's job."""
    if not x_session_id or not x_session_id.strip():
        raise HTTPException(status_code=400, detail="Missing X-Session-Id header")
    return x_session_id.strip()
