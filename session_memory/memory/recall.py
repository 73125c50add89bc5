"""
Memory recall with embedding similarity.

Brute-force scan: the query and every candidate are embedded per call (stored
vectors are reused when present) and ranked by cosine similarity. No
relevance cutoff is applied here; gating belongs to the context composer.
"""

import asyncio
import logging
from typing import Iterable, List, Optional, Sequence

import numpy as np
from pydantic import BaseModel

from session_memory.intelligence.service import IntelligenceService, call_with_fallback
from session_memory.persist.conversations import Conversation, ConversationStore
from session_memory.persist.sqlite_store import StorageError
from .schemas import MemoryRecord, ScoredMemory
from .store import MemoryStore

logger = logging.getLogger(__name__)


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """
    Cosine similarity dot(a, b) / (|a| * |b|).

    Returns exactly 0.0 for empty, zero-norm, non-finite or
    different-length vectors; never raises on shape mismatch.
    """
    va = np.asarray(a, dtype=np.float64).ravel()
    vb = np.asarray(b, dtype=np.float64).ravel()

    if va.size == 0 or va.shape != vb.shape:
        return 0.0

    norm_a = np.linalg.norm(va)
    norm_b = np.linalg.norm(vb)
    if norm_a == 0 or norm_b == 0 or not np.isfinite(norm_a) or not np.isfinite(norm_b):
        return 0.0

    similarity = float(np.dot(va, vb) / (norm_a * norm_b))
    return max(-1.0, min(1.0, similarity))


class ScoredConversation(BaseModel):
    """A conversation paired with its similarity to one query."""

    conversation: Conversation
    score: float = 0.0


class SimilarityRanker:
    """
    Ranks a session's memories against a query.

    Embedding calls fan out concurrently; any single failure degrades that
    candidate's score to 0 without aborting the batch.
    """

    def __init__(
        self,
        store: MemoryStore,
        service: IntelligenceService,
        embedding_dim: int = 1536,
        timeout: float = 15.0,
        conversations: Optional[ConversationStore] = None,
        exclude_keys: Iterable[str] = (),
    ):
        """
        Initialize the ranker.

        Args:
            store: MemoryStore to read candidates from
            service: Embedding provider
            embedding_dim: Size of the zero vector used when the query can't be embedded
            timeout: Per-call timeout in seconds
            conversations: Optional conversation store for history search
            exclude_keys: Record keys never offered as recall candidates
        """
        self.store = store
        self.service = service
        self.embedding_dim = embedding_dim
        self.timeout = timeout
        self.conversations = conversations
        self.exclude_keys = frozenset(exclude_keys)

    async def _embed(self, text: str, what: str) -> List[float]:
        return await call_with_fallback(self.service.embed(text), [], self.timeout, what)

    async def embed_query(self, query: str) -> List[float]:
        """Embed the query, falling back to a zero vector."""
        vector = await self._embed(query, "Query embedding")
        return vector or [0.0] * self.embedding_dim

    async def _memory_vector(self, memory: MemoryRecord, dim: int) -> List[float]:
        if memory.embedding and len(memory.embedding) == dim:
            return memory.embedding
        return await self._embed(memory.value, f"Embedding for memory {memory.id}")

    async def retrieve(
        self,
        session_id: str,
        query: str,
        limit: int = 5,
        min_importance: int = 3,
    ) -> List[ScoredMemory]:
        """
        Score all session memories at or above *min_importance* against *query*.

        Returns:
            Up to *limit* memories by similarity desc, ties broken by recency.
            Returned memories have their access metadata touched.

        Raises:
            StorageError: If candidates can't be read
        """
        query_vector = await self.embed_query(query)

        candidates = [
            memory for memory in self.store.query(
                session_id,
                min_importance=min_importance,
                limit=None,
                touch=False,
            )
            if memory.key not in self.exclude_keys
        ]
        if not candidates:
            return []

        vectors = await asyncio.gather(*(
            self._memory_vector(memory, len(query_vector)) for memory in candidates
        ))

        scored = [
            ScoredMemory(memory=memory, score=cosine_similarity(query_vector, vector))
            for memory, vector in zip(candidates, vectors)
        ]
        scored.sort(key=lambda s: (s.score, s.memory.updated_at), reverse=True)
        top = scored[:limit]

        try:
            self.store.touch(session_id, [s.memory.id for s in top])
        except StorageError as e:
            logger.warning(f"Could not update access stats for session {session_id}: {e}")

        return top

    async def search_conversations(
        self,
        session_id: str,
        query: str,
        limit: int = 5,
    ) -> List[ScoredConversation]:
        """
        Rank a session's conversations by similarity of title and digest to *query*.
        """
        if self.conversations is None:
            return []

        conversations = self.conversations.list_conversations(session_id)
        if not conversations:
            return []

        query_vector = await self.embed_query(query)
        vectors = await asyncio.gather(*(
            self._embed(f"{c.title or ''} {c.summary or ''}".strip(), f"Embedding for conversation {c.id}")
            for c in conversations
        ))

        scored = [
            ScoredConversation(conversation=c, score=cosine_similarity(query_vector, v))
            for c, v in zip(conversations, vectors)
        ]
        scored.sort(key=lambda s: (s.score, s.conversation.updated_at), reverse=True)
        return scored[:limit]
