"""Intelligence Service: embeddings, structured extraction and summaries."""

from typing import Optional

from session_memory.config.settings import IntelligenceCfg
from .service import IntelligenceService, call_with_fallback
from .mock import MockIntelligenceService
from .openai_service import OpenAIIntelligenceService


def create_intelligence_service(config: Optional[IntelligenceCfg] = None) -> IntelligenceService:
    """
    Build the configured provider.

    Raises:
        ValueError: For an unknown provider name
    """
    config = config or IntelligenceCfg()

    if config.provider == "openai":
        return OpenAIIntelligenceService(config)
    elif config.provider == "mock":
        return MockIntelligenceService(dim=config.embedding_dim)
    else:
        raise ValueError(f"Unsupported provider: {config.provider}")


__all__ = [
    "IntelligenceService",
    "call_with_fallback",
    "MockIntelligenceService",
    "OpenAIIntelligenceService",
    "create_intelligence_service",
]
