"""HTTP adapter for session memory."""
