"""Main FastAPI application."""

from fastapi import FastAPI

from session_memory import __version__
from .conversations import router as conversations_router
from .deps import close_session_memory
from .memory import router as memory_router
from .schemas import HealthResponse

app = FastAPI(
    title="Session Memory API",
    description="Session-scoped long-term memory for conversational assistants",
    version=__version__,
)

app.include_router(memory_router, prefix="/api", tags=["memory"])
app.include_router(conversations_router, prefix="/api", tags=["conversations"])


@app.on_event("shutdown")
async def shutdown_event():
    """Close the database on shutdown."""
    close_session_memory()


@app.get("/health", response_model=HealthResponse)
async def health():
    """Health check endpoint."""
    return HealthResponse(status="ok", version=__version__)
