"""Session-scoped long-term memory for conversational assistants."""

__version__ = "0.1.0"

from session_memory.memory.integrate import SessionMemory, create_session_memory

__all__ = ["SessionMemory", "create_session_memory", "__version__"]
