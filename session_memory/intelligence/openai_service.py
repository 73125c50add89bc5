"""
OpenAI-backed Intelligence Service.

Embeddings via `text-embedding-3-small`, extraction and summaries via chat
completions. Extraction always requests a JSON object response.
"""

import json
from typing import Any, Dict, List, Optional

import openai

from session_memory.config.settings import IntelligenceCfg
from .service import IntelligenceService


EXTRACTION_SYSTEM_PROMPT = (
    "You extract and categorize important user information for memory storage. "
    "Always respond with valid JSON."
)

SUMMARY_SYSTEM_PROMPT = (
    "Summarize this conversation, highlighting key topics, decisions, and "
    "important information shared. Keep it concise (max {max_words} words)."
)


class OpenAIIntelligenceService(IntelligenceService):
    """Intelligence Service using the async OpenAI client."""

    def __init__(self, config: IntelligenceCfg, client: Optional[Any] = None):
        """
        Initialize the service.

        Args:
            config: Provider configuration
            client: Pre-built `openai.AsyncOpenAI`-compatible client (tests)
        """
        self.config = config
        self.client = client or self._initialize_client()

    def _initialize_client(self):
        """Initialize async OpenAI client."""
        return openai.AsyncOpenAI(
            api_key=self.config.api_key,
            base_url=self.config.base_url,
            timeout=self.config.timeout,
            max_retries=self.config.max_retries,
        )

    def is_available(self) -> bool:
        """The client can only be used with an API key."""
        return self.client is not None and bool(self.config.api_key)

    async def embed(self, text: str) -> List[float]:
        """Embed *text* with the configured embedding model."""
        response = await self.client.embeddings.create(
            model=self.config.embedding_model,
            input=text,
        )
        return list(response.data[0].embedding)

    async def extract(self, text: str, instruction: str) -> List[Dict[str, Any]]:
        """
        Ask the chat model for a `{"memories": [...]}` JSON object.

        Raises:
            ValueError: If the response is not the expected JSON shape
        """
        response = await self.client.chat.completions.create(
            model=self.config.chat_model,
            messages=[
                {"role": "system", "content": EXTRACTION_SYSTEM_PROMPT},
                {"role": "user", "content": instruction},
            ],
            temperature=self.config.extraction_temperature,
            max_tokens=self.config.extraction_max_tokens,
            response_format={"type": "json_object"},
        )

        content = response.choices[0].message.content or '{"memories": []}'
        payload = json.loads(content)
        memories = payload.get("memories", []) if isinstance(payload, dict) else None

        if not isinstance(memories, list):
            raise ValueError(f"Unexpected extraction payload: {content[:200]}")

        return memories

    async def summarize(self, transcript: str, max_words: int = 200) -> str:
        """Summarize a transcript with the chat model."""
        response = await self.client.chat.completions.create(
            model=self.config.chat_model,
            messages=[
                {"role": "system", "content": SUMMARY_SYSTEM_PROMPT.format(max_words=max_words)},
                {"role": "user", "content": transcript},
            ],
            temperature=self.config.summary_temperature,
            max_tokens=self.config.summary_max_tokens,
        )
        return (response.choices[0].message.content or "").strip()
