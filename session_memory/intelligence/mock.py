"""Offline Intelligence Service for development and when no API key is set."""

import hashlib
import re
from typing import Any, Dict, List

import numpy as np

from .service import IntelligenceService

_TOKEN_RE = re.compile(r"[a-z0-9']+")


class MockIntelligenceService(IntelligenceService):
    """
    Deterministic stand-in for a real provider.

    Embeddings are hashed bag-of-words vectors, so texts sharing words are
    similar; extraction finds nothing; summaries are the transcript's
    opening words.
    """

    def __init__(self, dim: int = 1536):
        self.dim = dim

    async def embed(self, text: str) -> List[float]:
        vector = np.zeros(self.dim, dtype=np.float32)

        for token in _TOKEN_RE.findall(text.lower()):
            digest = hashlib.blake2b(token.encode("utf-8"), digest_size=8).digest()
            vector[int.from_bytes(digest, "little") % self.dim] += 1.0

        norm = float(np.linalg.norm(vector))
        if norm > 0:
            vector /= norm
        return vector.tolist()

    async def extract(self, text: str, instruction: str) -> List[Dict[str, Any]]:
        return []

    async def summarize(self, transcript: str, max_words: int = 200) -> str:
        words = transcript.split()
        if len(words) <= max_words:
            return " ".join(words)
        return " ".join(words[:max_words]) + "..."
