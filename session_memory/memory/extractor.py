"""
Memory extraction from user utterances.

Two strategies implement `BaseExtractor` and run as an ordered pipeline:
- RuleBasedExtractor: fixed patterns for identity, preferences, goals, context
- AIAssistedExtractor: structured extraction through the Intelligence Service

Results are concatenated without content-level de-duplication; relevance
gating at retrieval time filters the overlap.
"""

import asyncio
import logging
import re
import time
import uuid
from abc import ABC, abstractmethod
from typing import Any, Iterable, List, Optional, Pattern, Tuple

from session_memory.intelligence.service import IntelligenceService, call_with_fallback
from .schemas import ExtractedMemory, MemoryCategory, clamp_importance

logger = logging.getLogger(__name__)


def fresh_key(kind: str) -> str:
    """Unique key for memories that should accumulate instead of overwrite."""
    return f"{kind}_{time.time_ns()}_{uuid.uuid4().hex[:8]}"


_CLAUSE_BREAK = re.compile(r"\s+(?:and|but|so|because|although)\s+", re.IGNORECASE)


def _clause(text: str, max_chars: int = 120) -> str:
    """Cut a captured phrase at the first conjunction and trim it."""
    head = _CLAUSE_BREAK.split(text, maxsplit=1)[0]
    return head.strip(" \t'\"")[:max_chars]


def categorize_memory(content: str) -> MemoryCategory:
    """
    Keyword categorizer used when a model omits or garbles the category.

    Falls back to GENERAL.
    """
    lower = content.lower()

    if any(w in lower for w in ("name", "age", "location", "live in", "born")):
        return MemoryCategory.PERSONAL_INFO
    elif any(w in lower for w in ("prefer", "like", "favorite", "favourite")):
        return MemoryCategory.PREFERENCES
    elif any(w in lower for w in ("goal", "want", "plan")):
        return MemoryCategory.GOALS
    elif any(w in lower for w in ("work", "project", "building")):
        return MemoryCategory.CONTEXT
    elif any(w in lower for w in ("using", "framework", "language", "library")):
        return MemoryCategory.TECHNICAL
    else:
        return MemoryCategory.GENERAL


class BaseExtractor(ABC):
    """Abstract base class for memory extraction strategies."""

    name: str = "base"

    @abstractmethod
    async def extract(self, text: str, base_importance: int) -> List[ExtractedMemory]:
        """Turn one user utterance into zero or more candidate memories."""
        pass


# (pattern, stable key, value template)
IDENTITY_RULES: List[Tuple[Pattern[str], str, str]] = [
    (re.compile(r"\bmy name is ([A-Za-z][\w'-]*)", re.I), "user_name", "User's name is {}"),
    (re.compile(r"\bcall me ([A-Za-z][\w'-]*)", re.I), "user_name", "User's name is {}"),
    (re.compile(r"\bI live in ([^.!?,;\n]+)", re.I), "user_location", "User lives in {}"),
    (re.compile(r"\bI work as an? ([^.!?,;\n]+)", re.I), "user_occupation", "User works as {}"),
    (re.compile(r"\bI(?:'m| am) (\d{1,3}) years old", re.I), "user_age", "User is {} years old"),
]

PREFERENCE_PATTERNS: List[Pattern[str]] = [
    re.compile(r"\bI prefer [^.!?,;\n]+", re.I),
    re.compile(r"\bI like [^.!?,;\n]+", re.I),
    re.compile(r"\bI always [^.!?,;\n]+", re.I),
    re.compile(r"\bI usually [^.!?,;\n]+", re.I),
]

GOAL_PATTERNS: List[Pattern[str]] = [
    re.compile(r"\bI want to [^.!?,;\n]+", re.I),
    re.compile(r"\bI'm trying to [^.!?,;\n]+", re.I),
    re.compile(r"\bmy goal is [^.!?,;\n]+", re.I),
    re.compile(r"\bI need to [^.!?,;\n]+", re.I),
]

CONTEXT_CUES = ("working on", "project", "building")

IDENTITY_IMPORTANCE = 9
PREFERENCE_IMPORTANCE = 6
GOAL_IMPORTANCE = 7
CONTEXT_IMPORTANCE = 5


class RuleBasedExtractor(BaseExtractor):
    """
    Deterministic pattern matching.

    Identity statements use stable keys (repeats overwrite); every other match
    gets a fresh key so repeated statements accumulate.
    """

    name = "rules"

    def __init__(self, context_max_chars: int = 200):
        self.context_max_chars = context_max_chars

    async def extract(self, text: str, base_importance: int) -> List[ExtractedMemory]:
        return self.match(text)

    def match(self, text: str) -> List[ExtractedMemory]:
        """Synchronous core of `extract`."""
        memories: List[ExtractedMemory] = []
        seen_keys = set()

        for pattern, key, template in IDENTITY_RULES:
            found = pattern.search(text)
            if found and key not in seen_keys:
                seen_keys.add(key)
                memories.append(ExtractedMemory(
                    key=key,
                    value=template.format(_clause(found.group(1))),
                    category=MemoryCategory.PERSONAL_INFO,
                    importance=IDENTITY_IMPORTANCE,
                ))

        for pattern in PREFERENCE_PATTERNS:
            found = pattern.search(text)
            if found:
                memories.append(ExtractedMemory(
                    key=fresh_key("preference"),
                    value=_clause(found.group(0)),
                    category=MemoryCategory.PREFERENCES,
                    importance=PREFERENCE_IMPORTANCE,
                ))

        for pattern in GOAL_PATTERNS:
            found = pattern.search(text)
            if found:
                memories.append(ExtractedMemory(
                    key=fresh_key("goal"),
                    value=_clause(found.group(0)),
                    category=MemoryCategory.GOALS,
                    importance=GOAL_IMPORTANCE,
                ))

        lower = text.lower()
        if any(cue in lower for cue in CONTEXT_CUES):
            memories.append(ExtractedMemory(
                key=fresh_key("context"),
                value=text[:self.context_max_chars],
                category=MemoryCategory.CONTEXT,
                importance=CONTEXT_IMPORTANCE,
            ))

        return memories


def build_extraction_prompt(message: str) -> str:
    """Instruction sent with each utterance for structured extraction."""
    categories = "|".join(c.value for c in MemoryCategory)
    return f"""Extract important information from this message that should be remembered for future conversations.

Assign an importance from 1 to 10:
HIGH (8-10): name, location, age, occupation, company, contact details
MEDIUM (6-8): preferences, goals, projects, challenges, technical choices
LOW (4-6): context, relationships, tools, background

Message: "{message}"

Respond with a JSON object:
{{"memories": [{{"content": "extracted info", "category": "{categories}", "importance": 1-10}}]}}

If nothing is worth remembering, respond with {{"memories": []}}"""


class AIAssistedExtractor(BaseExtractor):
    """
    Best-effort extraction through the Intelligence Service.

    Every returned item becomes a new memory with a synthetic key and its own
    embedding. Service errors, timeouts and malformed payloads yield [].
    """

    name = "ai"

    def __init__(self, service: IntelligenceService, timeout: float = 15.0):
        self.service = service
        self.timeout = timeout

    async def extract(self, text: str, base_importance: int) -> List[ExtractedMemory]:
        items = await call_with_fallback(
            self.service.extract(text, build_extraction_prompt(text)),
            [],
            self.timeout,
            "Memory extraction",
        )

        if not isinstance(items, list):
            logger.warning(f"Ignoring extraction payload of type {type(items).__name__}")
            return []

        memories = [m for m in (self._to_memory(item, base_importance) for item in items) if m]
        if not memories:
            return []

        embeddings = await asyncio.gather(*(
            call_with_fallback(self.service.embed(m.value), [], self.timeout, "Memory embedding")
            for m in memories
        ))
        for memory, vector in zip(memories, embeddings):
            memory.embedding = vector or None

        return memories

    def _to_memory(self, item: Any, base_importance: int) -> Optional[ExtractedMemory]:
        if not isinstance(item, dict):
            return None

        content = item.get("content")
        if not isinstance(content, str) or not content.strip():
            return None
        content = content.strip()

        category = MemoryCategory.parse(item.get("category")) or categorize_memory(content)
        raw_importance = item.get("importance")
        importance = clamp_importance(
            raw_importance if raw_importance not in (None, "", 0) else base_importance,
            base_importance,
        )

        return ExtractedMemory(
            key=fresh_key("memory"),
            value=content,
            category=category,
            importance=importance,
        )


class MemoryExtractor:
    """
    Ordered extraction pipeline.

    Only utterances authored by the user are eligible; the rule-based
    strategy always runs first and a failing strategy never blocks the others.
    """

    def __init__(self, extractors: Iterable[BaseExtractor]):
        self.extractors = list(extractors)

    @classmethod
    def default(
        cls,
        service: Optional[IntelligenceService] = None,
        timeout: float = 15.0,
        context_max_chars: int = 200,
    ) -> "MemoryExtractor":
        """Rules first, then AI-assisted extraction when a service is given."""
        extractors: List[BaseExtractor] = [RuleBasedExtractor(context_max_chars)]
        if service is not None:
            extractors.append(AIAssistedExtractor(service, timeout=timeout))
        return cls(extractors)

    async def extract(self, text: str, role: str, base_importance: int = 5) -> List[ExtractedMemory]:
        """
        Run every strategy and concatenate their results.

        Args:
            text: Utterance text
            role: Author role; anything but "user" yields []
            base_importance: Importance for AI items that omit one

        Returns:
            Candidate memories in strategy order
        """
        if role != "user" or not text or not text.strip():
            return []

        results: List[ExtractedMemory] = []
        for extractor in self.extractors:
            try:
                results.extend(await extractor.extract(text, base_importance))
            except Exception as e:
                logger.error(f"{extractor.name} extractor failed: {e}")

        return results
