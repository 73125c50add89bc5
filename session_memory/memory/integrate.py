"""
Session memory integration hooks for a chat loop.

Provides the operations a host calls around each turn: store memories from
the user's utterance, recall relevant context before the model call, track
preferences, and digest long conversations when they are saved.
"""

import asyncio
import logging
from typing import List, Optional, Sequence, Set

from session_memory.config.settings import Settings
from session_memory.intelligence import IntelligenceService, create_intelligence_service
from session_memory.persist.conversations import Conversation, ConversationStore, MessageLike
from session_memory.persist.sqlite_store import Database, StorageError
from session_memory.preferences import PROFILE_KEYS, PreferenceTracker, PreferenceUpdate
from .composer import ContextComposer, build_developer_prompt
from .extractor import MemoryExtractor
from .recall import ScoredConversation, SimilarityRanker
from .schemas import MemoryRecord
from .store import MemoryStore
from .summarizer import ConversationSummarizer

logger = logging.getLogger(__name__)


class SessionMemory:
    """
    Integration layer for the memory system.

    Provides:
    - Post-utterance memory extraction and storage
    - Pre-call memory recall and instruction assembly
    - Preference observation
    - Conversation save with digest

    None of the turn-level operations raise; each degrades to an empty result.
    """

    def __init__(
        self,
        store: MemoryStore,
        conversations: ConversationStore,
        extractor: MemoryExtractor,
        ranker: SimilarityRanker,
        preferences: PreferenceTracker,
        summarizer: ConversationSummarizer,
        composer: ContextComposer,
        settings: Optional[Settings] = None,
    ):
        """
        Initialize session memory.

        Args:
            store: Memory store
            conversations: Conversation store
            extractor: Extraction pipeline
            ranker: Similarity ranker
            preferences: Preference tracker
            summarizer: Conversation summarizer
            composer: Instruction composer
            settings: Limits and thresholds
        """
        self.store = store
        self.conversations = conversations
        self.extractor = extractor
        self.ranker = ranker
        self.preferences = preferences
        self.summarizer = summarizer
        self.composer = composer
        self.settings = settings or Settings()
        self._pending: Set[asyncio.Task] = set()

    async def extract_and_store_memory(
        self,
        session_id: str,
        utterance: str,
        role: str = "user",
        base_importance: Optional[int] = None,
        conversation_id: Optional[int] = None,
    ) -> List[MemoryRecord]:
        """
        Extract memories from one utterance and upsert them.

        Args:
            session_id: Owning session
            utterance: Message text
            role: Author role; only "user" utterances are considered
            base_importance: Importance for AI items that omit one
            conversation_id: Conversation the utterance belongs to; dropped
                when this session does not own it

        Returns:
            Records written; a record that fails to store is logged and skipped
        """
        if base_importance is None:
            base_importance = self.settings.memory.base_importance

        candidates = await self.extractor.extract(utterance, role, base_importance)
        if candidates and conversation_id is not None:
            conversation_id = self._owned_conversation(session_id, conversation_id)

        stored = []
        for candidate in candidates:
            try:
                record = self.store.upsert(
                    session_id,
                    candidate.key,
                    candidate.value,
                    category=candidate.category,
                    importance=candidate.importance,
                    conversation_id=conversation_id,
                    embedding=candidate.embedding,
                )
                stored.append(record)
            except (StorageError, ValueError) as e:
                logger.error(f"Failed to store memory '{candidate.key}' for session {session_id}: {e}")

        if stored:
            logger.info(f"Stored {len(stored)} memories for session {session_id}")
        return stored

    def _owned_conversation(self, session_id: str, conversation_id: int) -> Optional[int]:
        """*conversation_id* if this session owns it, else None (memories stay session-level)."""
        try:
            conversation = self.conversations.get_conversation(
                session_id, conversation_id, with_messages=False
            )
        except StorageError as e:
            logger.error(f"Conversation lookup failed for session {session_id}: {e}")
            return None

        if conversation is None:
            logger.warning(
                f"Conversation {conversation_id} not found for session {session_id}; "
                f"storing memories without it"
            )
            return None
        return conversation_id

    def schedule_extraction(
        self,
        session_id: str,
        utterance: str,
        role: str = "user",
        conversation_id: Optional[int] = None,
    ) -> asyncio.Task:
        """
        Run `extract_and_store_memory` in the background of the current loop.

        The caller's turn does not wait for it.
        """
        task = asyncio.create_task(
            self.extract_and_store_memory(session_id, utterance, role, conversation_id=conversation_id)
        )
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return task

    async def retrieve_memories(self, session_id: str, query: str):
        """Scored candidates for *query*; [] when the store can't be read."""
        try:
            return await self.ranker.retrieve(
                session_id,
                query,
                limit=self.settings.memory.retrieval_limit,
                min_importance=self.settings.memory.min_importance,
            )
        except StorageError as e:
            logger.error(f"Memory retrieval failed for session {session_id}: {e}")
            return []

    async def build_context_for_query(self, session_id: str, query: str) -> str:
        """
        Relevance-gated memory block for *query*.

        Returns:
            The block, or "" when nothing clears the gate or on failure
        """
        memories = await self.retrieve_memories(session_id, query)
        return self.composer.format_memory_block(memories)

    @staticmethod
    def analyze_preferences(text: str) -> PreferenceUpdate:
        return PreferenceTracker.analyze(text)

    def save_preferences(self, session_id: str, update: PreferenceUpdate) -> List[str]:
        return self.preferences.save(session_id, update)

    def build_preference_context(self, session_id: str) -> str:
        return self.preferences.build_context(session_id)

    def observe_user_message(self, session_id: str, text: str) -> List[str]:
        """
        Analyze a user message and persist any detected preferences.

        Returns:
            Preference categories written
        """
        update = self.analyze_preferences(text)
        if not update:
            return []
        return self.save_preferences(session_id, update)

    async def build_instructions(
        self,
        session_id: str,
        query: str,
        base_prompt: Optional[str] = None,
    ) -> str:
        """
        Full instructions for the next model call.

        Args:
            session_id: Owning session
            query: The user's latest message
            base_prompt: Developer instructions (defaults to the dated built-in prompt)

        Returns:
            Base prompt, memory block and preference block
        """
        memories = await self.retrieve_memories(session_id, query)
        return self.composer.compose(
            base_prompt if base_prompt is not None else build_developer_prompt(),
            memories,
            self.build_preference_context(session_id),
        )

    async def summarize_conversation(self, messages: Sequence[MessageLike], force: bool = False) -> str:
        return await self.summarizer.summarize(messages, force=force)

    async def save_conversation(
        self,
        session_id: str,
        messages: Sequence[MessageLike],
        conversation_id: Optional[int] = None,
        title: Optional[str] = None,
    ) -> Conversation:
        """
        Persist a conversation, digesting it first when it is long enough.

        An empty digest leaves any previous summary in place.

        Raises:
            KeyError: If *conversation_id* is not in this session
            StorageError: If the write fails
        """
        summary = await self.summarize_conversation(messages)
        return self.conversations.save_conversation(
            session_id,
            messages,
            conversation_id=conversation_id,
            title=title,
            summary=summary,
        )

    async def search_conversations(
        self,
        session_id: str,
        query: str,
        limit: int = 5,
    ) -> List[ScoredConversation]:
        """Conversations ranked by similarity; [] on failure."""
        try:
            return await self.ranker.search_conversations(session_id, query, limit=limit)
        except StorageError as e:
            logger.error(f"Conversation search failed for session {session_id}: {e}")
            return []

    async def drain(self) -> None:
        """Wait for scheduled background extractions to finish."""
        if self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)


def create_session_memory(
    settings: Optional[Settings] = None,
    service: Optional[IntelligenceService] = None,
    db: Optional[Database] = None,
) -> SessionMemory:
    """
    Factory function to create session memory.

    Args:
        settings: Configuration (defaults to built-in values)
        service: Intelligence provider (defaults to the configured one)
        db: Database handle (defaults to one at settings.paths.db_path)

    Returns:
        SessionMemory instance
    """
    settings = settings or Settings()
    cfg = settings.memory
    timeout = settings.intelligence.timeout

    if service is None:
        service = create_intelligence_service(settings.intelligence)

    if db is None:
        db = Database(settings.paths.db_path)

    store = MemoryStore(db, default_importance=cfg.default_importance)
    conversations = ConversationStore(db)

    extractor = MemoryExtractor.default(
        service if cfg.enable_ai_extraction else None,
        timeout=timeout,
        context_max_chars=cfg.context_max_chars,
    )
    ranker = SimilarityRanker(
        store,
        service,
        embedding_dim=settings.intelligence.embedding_dim,
        timeout=timeout,
        conversations=conversations,
        exclude_keys=PROFILE_KEYS,
    )
    summarizer = ConversationSummarizer(
        service,
        summarize_after=cfg.summarize_after,
        max_words=cfg.summary_max_words,
        timeout=timeout,
    )

    logger.info(f"Session memory ready (db={settings.paths.db_path}, provider={settings.intelligence.provider})")

    return SessionMemory(
        store=store,
        conversations=conversations,
        extractor=extractor,
        ranker=ranker,
        preferences=PreferenceTracker(store),
        summarizer=summarizer,
        composer=ContextComposer(cfg.relevance_threshold),
        settings=settings,
    )
