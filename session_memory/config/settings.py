"""Application settings and configuration schema."""

import os
from typing import Optional

from pydantic import BaseModel, Field


class MemoryCfg(BaseModel):
    """Thresholds and limits for memory extraction, recall and digests."""
    relevance_threshold: float = 0.7
    retrieval_limit: int = 5
    min_importance: int = 3
    default_importance: int = 5
    base_importance: int = 7
    enable_ai_extraction: bool = True
    summarize_after: int = 4
    summary_max_words: int = 200
    context_max_chars: int = 200


class IntelligenceCfg(BaseModel):
    """Configuration for the embedding/completion provider."""
    provider: str = "openai"  # "openai" or "mock"
    api_key: Optional[str] = None
    base_url: Optional[str] = None
    chat_model: str = "gpt-4o-mini"
    embedding_model: str = "text-embedding-3-small"
    embedding_dim: int = 1536
    timeout: float = Field(15.0, gt=0)
    max_retries: int = 2
    extraction_temperature: float = 0.3
    extraction_max_tokens: int = 200
    summary_temperature: float = 0.5
    summary_max_tokens: int = 250


class Paths(BaseModel):
    """File and directory paths configuration."""
    db_path: str = "data/memory/memory.db"


class Settings(BaseModel):
    """Main application settings."""
    memory: MemoryCfg = Field(default_factory=MemoryCfg)
    intelligence: IntelligenceCfg = Field(default_factory=IntelligenceCfg)
    paths: Paths = Field(default_factory=Paths)


def load_settings_from_env() -> Settings:
    """Build settings, overriding defaults from environment variables."""
    settings = Settings()

    if os.getenv("SESSION_MEMORY_DB"):
        settings.paths.db_path = os.environ["SESSION_MEMORY_DB"]

    intel = settings.intelligence
    intel.api_key = os.getenv("OPENAI_API_KEY", intel.api_key)
    intel.base_url = os.getenv("OPENAI_BASE_URL", intel.base_url)
    intel.chat_model = os.getenv("SESSION_MEMORY_CHAT_MODEL", intel.chat_model)
    intel.embedding_model = os.getenv("SESSION_MEMORY_EMBED_MODEL", intel.embedding_model)
    if os.getenv("SESSION_MEMORY_TIMEOUT"):
        intel.timeout = float(os.environ["SESSION_MEMORY_TIMEOUT"])
    if os.getenv("SESSION_MEMORY_PROVIDER"):
        intel.provider = os.environ["SESSION_MEMORY_PROVIDER"]
    elif not intel.api_key:
        # No credentials: run fully offline
        intel.provider = "mock"

    if os.getenv("SESSION_MEMORY_RELEVANCE_THRESHOLD"):
        settings.memory.relevance_threshold = float(os.environ["SESSION_MEMORY_RELEVANCE_THRESHOLD"])

    return settings
