"""
Rule-based preference inference.

`analyze` is pure: ordered keyword rules per field (first match wins) and
whole-token vocabulary matching for technical choices. `save` merges each
detected category onto the stored one and writes it back as a single record;
`load` overlays stored records onto defaults.
"""

import json
import logging
import re
from typing import Dict, List, Optional, Pattern, Tuple

from pydantic import ValidationError

from session_memory.memory.schemas import MemoryCategory
from session_memory.memory.store import MemoryStore
from session_memory.persist.sqlite_store import StorageError
from .schemas import (
    CATEGORY_MODELS,
    SET_CATEGORIES,
    PreferenceUpdate,
    UserPreferences,
    preference_key,
)

logger = logging.getLogger(__name__)

PREFERENCE_IMPORTANCE = 7

# category -> field -> ordered [(value, keywords)]; first matching rule wins
FIELD_RULES: Dict[str, Dict[str, List[Tuple[str, Tuple[str, ...]]]]] = {
    "communication": {
        "style": [
            ("formal", ("please", "could you", "would you", "kindly")),
            ("casual", ("hey", "gonna", "wanna", "lol")),
        ],
        "detail": [
            ("concise", ("concise", "brief", "quick", "summary", "short answer", "tl;dr")),
            ("detailed", ("detailed", "explain", "step by step", "in depth", "in-depth")),
        ],
        "technical_level": [
            ("beginner", ("beginner", "new to", "explain like")),
            ("advanced", ("advanced", "expert", "deep dive")),
        ],
    },
    "work_style": {
        "approach": [
            ("experimental", ("let me try", "experiment", "play around")),
            ("methodical", ("best practice", "correct way", "standard")),
        ],
        "collaboration": [
            ("solo", ("on my own", "by myself", "solo")),
            ("collaborative", ("pair program", "together", "my team", "collaborat")),
        ],
        "pace": [
            ("fast", ("asap", "quickly", "hurry", "right away")),
            ("careful", ("carefully", "double-check", "no rush", "take your time")),
        ],
    },
    "learning": {
        "format": [
            ("visual", ("diagram", "chart", "visual", "picture")),
            ("textual", ("in writing", "written", "text only")),
        ],
        "method": [
            ("examples", ("show me", "example", "demo")),
            ("theory", ("how does", "why", "concept")),
        ],
        "structure": [
            ("step-by-step", ("step by step", "step-by-step", "walk me through")),
            ("overview-first", ("overview", "big picture", "high level", "high-level")),
        ],
    },
}

TECH_VOCABULARY: Dict[str, Tuple[str, ...]] = {
    "languages": (
        "python", "javascript", "typescript", "java", "c++", "c#", "rust",
        "go", "ruby", "php", "swift", "kotlin",
    ),
    "frameworks": (
        "react", "vue", "angular", "django", "flask", "fastapi", "express",
        "spring", "rails", "laravel", "next.js",
    ),
    "tools": (
        "git", "docker", "kubernetes", "aws", "azure", "gcp", "vscode", "vim",
        "jenkins", "terraform",
    ),
    "platforms": ("linux", "windows", "macos", "ios", "android"),
}


def _token_pattern(tokens: Tuple[str, ...]) -> Pattern[str]:
    # Longest first so "javascript" wins over "java"; '+' and '#' count as
    # token characters so "c++" and "c#" match whole.
    alternatives = "|".join(re.escape(t) for t in sorted(tokens, key=len, reverse=True))
    return re.compile(rf"(?<![\w+#])({alternatives})(?![\w+#])", re.IGNORECASE)


TECH_PATTERNS: Dict[str, Pattern[str]] = {
    field: _token_pattern(tokens) for field, tokens in TECH_VOCABULARY.items()
}


class PreferenceTracker:
    """Infers, persists and renders a session's preference profile."""

    def __init__(self, store: MemoryStore):
        self.store = store

    @staticmethod
    def analyze(message: str) -> PreferenceUpdate:
        """
        Detect preferences in one message.

        Returns:
            Partial update holding only the categories and fields detected
        """
        update: PreferenceUpdate = {}
        lower = message.lower()

        for category, fields in FIELD_RULES.items():
            detected = {}
            for field, rules in fields.items():
                for value, keywords in rules:
                    if any(keyword in lower for keyword in keywords):
                        detected[field] = value
                        break
            if detected:
                update[category] = detected

        technical = {}
        for field, pattern in TECH_PATTERNS.items():
            tokens = list(dict.fromkeys(m.lower() for m in pattern.findall(message)))
            if tokens:
                technical[field] = tokens
        if technical:
            update["technical"] = technical

        return update

    def _load_category(self, session_id: str, category: str):
        model = CATEGORY_MODELS[category]
        record = self.store.get(session_id, preference_key(category))
        if record is None:
            return model()

        try:
            stored = json.loads(record.value)
            return model.model_validate({**model().model_dump(), **stored})
        except (json.JSONDecodeError, TypeError, ValidationError) as e:
            logger.error(f"Failed to parse preference '{category}' for session {session_id}: {e}")
            return model()

    def _merge(self, session_id: str, category: str, partial: Dict):
        current = self._load_category(session_id, category).model_dump()

        if category in SET_CATEGORIES:
            for field, tokens in partial.items():
                current[field] = list(current.get(field, [])) + list(tokens)
        else:
            current.update(partial)

        return CATEGORY_MODELS[category].model_validate(current)

    def save(self, session_id: str, update: PreferenceUpdate) -> List[str]:
        """
        Persist a partial update, one full-category record per category.

        A failing category is logged and skipped; the others are still written.

        Returns:
            Categories written
        """
        saved = []
        for category, partial in update.items():
            if category not in CATEGORY_MODELS or not isinstance(partial, dict) or not partial:
                logger.warning(f"Ignoring unknown preference category '{category}'")
                continue

            try:
                merged = self._merge(session_id, category, partial)
                self.store.upsert(
                    session_id,
                    preference_key(category),
                    json.dumps(merged.model_dump()),
                    category=MemoryCategory.PREFERENCES,
                    importance=PREFERENCE_IMPORTANCE,
                )
                saved.append(category)
            except (StorageError, ValidationError, ValueError) as e:
                logger.error(f"Failed to save preference '{category}' for session {session_id}: {e}")

        return saved

    def load(self, session_id: str) -> UserPreferences:
        """
        Full profile: stored categories overlaid on defaults.

        Never partially populated; unreadable categories keep their defaults.
        """
        categories = {}
        for category in CATEGORY_MODELS:
            try:
                categories[category] = self._load_category(session_id, category)
            except StorageError as e:
                logger.error(f"Failed to load preference '{category}' for session {session_id}: {e}")
        return UserPreferences(**categories)

    def build_context(self, session_id: str, preferences: Optional[UserPreferences] = None) -> str:
        """
        Preference block for the assembled instructions.

        Returns:
            "User preferences:" and one line per populated category
        """
        prefs = preferences or self.load(session_id)
        comm, work, learn, tech = prefs.communication, prefs.work_style, prefs.learning, prefs.technical

        lines = [
            "User preferences:",
            f"- Communication: {comm.style} style, {comm.detail} responses, "
            f"{comm.technical_level} technical level",
            f"- Work style: {work.approach} approach, {work.collaboration} work, {work.pace} pace",
            f"- Learning: prefers {learn.format} format, {learn.method} method, "
            f"{learn.structure} structure",
        ]

        tech_parts = [
            f"{field}: {', '.join(tokens)}"
            for field, tokens in (
                ("languages", tech.languages),
                ("frameworks", tech.frameworks),
                ("tools", tech.tools),
                ("platforms", tech.platforms),
            )
            if tokens
        ]
        if tech_parts:
            lines.append(f"- Technical: {'; '.join(tech_parts)}")

        return "\n".join(lines)
