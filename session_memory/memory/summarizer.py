"""
Conversation digests.

Condenses a transcript into a short summary once it grows past a message
threshold. The digest replaces any previous one; it is never merged.
"""

import logging
from typing import Optional, Sequence

from session_memory.intelligence.service import IntelligenceService, call_with_fallback
from session_memory.persist.conversations import MessageLike, to_messages

logger = logging.getLogger(__name__)


class ConversationSummarizer:
    """
    Summarizes long conversations through the Intelligence Service.

    Failures return "", so a caller saving the conversation is never blocked.
    """

    def __init__(
        self,
        service: IntelligenceService,
        summarize_after: int = 4,
        max_words: int = 200,
        timeout: float = 15.0,
    ):
        """
        Initialize summarizer.

        Args:
            service: Provider used for the summary call
            summarize_after: Summarize only when the transcript has more messages than this
            max_words: Word bound for the digest
            timeout: Seconds before the call is abandoned
        """
        self.service = service
        self.summarize_after = summarize_after
        self.max_words = max_words
        self.timeout = timeout

    def should_summarize(self, message_count: int) -> bool:
        """True once the conversation has more messages than the threshold."""
        return message_count > self.summarize_after

    @staticmethod
    def format_transcript(messages: Sequence[MessageLike]) -> str:
        """Role-prefixed transcript of the `message` entries."""
        return "\n".join(
            f"{msg.role}: {msg.text}"
            for msg in to_messages(messages)
            if msg.type == "message"
        )

    def _bound(self, summary: str) -> str:
        words = summary.split()
        if len(words) <= self.max_words:
            return summary.strip()
        return " ".join(words[:self.max_words]) + "..."

    async def summarize(self, messages: Sequence[MessageLike], force: bool = False) -> str:
        """
        Produce a digest for *messages*.

        Args:
            messages: Full transcript (dicts or ChatMessage objects)
            force: Skip the message-count threshold

        Returns:
            Digest text, or "" when below threshold or on failure
        """
        if not force and not self.should_summarize(len(messages)):
            return ""

        try:
            transcript = self.format_transcript(messages)
        except ValueError as e:
            logger.warning(f"Could not read transcript for summary: {e}")
            return ""

        if not transcript.strip():
            return ""

        summary: Optional[str] = await call_with_fallback(
            self.service.summarize(transcript, self.max_words),
            "",
            self.timeout,
            "Conversation summary",
        )
        return self._bound(summary or "")
