"""
Memory subsystem for cross-conversation recall.

Provides:
- Memory record storage keyed per session
- Rule-based and AI-assisted extraction
- Embedding-similarity recall with a relevance gate
- Conversation digests and instruction assembly

The `SessionMemory` façade lives in `session_memory.memory.integrate`.
"""

from .schemas import CATEGORY_LABELS, ExtractedMemory, MemoryCategory, MemoryRecord, ScoredMemory
from .store import MemoryStore
from .extractor import AIAssistedExtractor, MemoryExtractor, RuleBasedExtractor, categorize_memory
from .recall import ScoredConversation, SimilarityRanker, cosine_similarity
from .summarizer import ConversationSummarizer
from .composer import ContextComposer, build_developer_prompt

__all__ = [
    "CATEGORY_LABELS",
    "ExtractedMemory",
    "MemoryCategory",
    "MemoryRecord",
    "ScoredMemory",
    "MemoryStore",
    "AIAssistedExtractor",
    "MemoryExtractor",
    "RuleBasedExtractor",
    "categorize_memory",
    "ScoredConversation",
    "SimilarityRanker",
    "cosine_similarity",
    "ConversationSummarizer",
    "ContextComposer",
    "build_developer_prompt",
]
