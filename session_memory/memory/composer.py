"""
Instruction assembly for the next model call.

Base prompt, then the relevance-gated memory block grouped by category, then
the preference block. Empty sections are left out entirely.
"""

from datetime import datetime
from typing import Dict, Iterable, List, Optional

from .schemas import CATEGORY_LABELS, MemoryCategory, ScoredMemory

MEMORY_HEADER = "Relevant context from previous conversations:"

DEVELOPER_PROMPT = """
You are a helpful assistant with persistent memory. You remember important information users share with you and build on earlier conversations.

MEMORY:
- When users share personal details, preferences, goals or work context, keep them in mind for later turns
- Refer back to earlier discussions when they are relevant, without repeating them verbatim
- Adapt tone, depth and format to the user's stated and observed preferences

FORMATTING:
- Use markdown lists where they make an answer clearer
- Only use lists, bold, italics, links and blockquotes
"""


def build_developer_prompt(now: Optional[datetime] = None) -> str:
    """Base instructions with today's date appended."""
    now = now or datetime.now()
    today = f"{now.strftime('%A')}, {now.strftime('%B')} {now.day}, {now.year}"
    return f"{DEVELOPER_PROMPT.strip()}\n\nToday is {today}."


class ContextComposer:
    """Builds the final instruction text. Pure; no side effects."""

    def __init__(self, relevance_threshold: float = 0.7):
        self.relevance_threshold = relevance_threshold

    def gate(self, memories: Iterable[ScoredMemory]) -> List[ScoredMemory]:
        """Keep only memories scoring strictly above the relevance threshold."""
        return [m for m in memories if m.score > self.relevance_threshold]

    def format_memory_block(self, memories: Iterable[ScoredMemory]) -> str:
        """
        Gate and group memories by category.

        Returns:
            The memory block, or "" when nothing clears the gate
        """
        relevant = self.gate(memories)
        if not relevant:
            return ""

        grouped: Dict[MemoryCategory, List[str]] = {category: [] for category in MemoryCategory}
        for scored in relevant:
            grouped[scored.category].append(scored.value)

        lines = [MEMORY_HEADER]
        for category in MemoryCategory:
            if grouped[category]:
                lines.append(f"- {CATEGORY_LABELS[category]}: {'; '.join(grouped[category])}")

        return "\n".join(lines)

    def compose(
        self,
        base_prompt: str,
        memories: Iterable[ScoredMemory] = (),
        preference_context: str = "",
    ) -> str:
        """
        Assemble base prompt, memory block and preference block.

        Args:
            base_prompt: Developer instructions
            memories: Scored candidates (ungated)
            preference_context: Output of the preference tracker

        Returns:
            Sections joined by blank lines
        """
        sections = [base_prompt.strip()] if base_prompt and base_prompt.strip() else []

        memory_block = self.format_memory_block(memories)
        if memory_block:
            sections.append(memory_block)

        if preference_context and preference_context.strip():
            sections.append(preference_context.strip())

        return "\n\n".join(sections)
