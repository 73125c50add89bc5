"""
Preference profile models.

Four fixed categories; every field carries a neutral default so a loaded
profile is always complete.
"""

from typing import Any, Dict, List, Literal, Type

from pydantic import BaseModel, Field, field_validator


class CommunicationPrefs(BaseModel):
    style: Literal["formal", "casual", "mixed"] = "mixed"
    detail: Literal["concise", "detailed", "balanced"] = "balanced"
    technical_level: Literal["beginner", "intermediate", "advanced"] = "intermediate"


class WorkStylePrefs(BaseModel):
    approach: Literal["methodical", "experimental", "balanced"] = "balanced"
    collaboration: Literal["solo", "collaborative", "mixed"] = "mixed"
    pace: Literal["fast", "steady", "careful"] = "steady"


class LearningPrefs(BaseModel):
    format: Literal["visual", "textual", "mixed"] = "mixed"
    method: Literal["examples", "theory", "balanced"] = "balanced"
    structure: Literal["step-by-step", "overview-first", "flexible"] = "flexible"


class TechnicalPrefs(BaseModel):
    """Token sets; stored as de-duplicated lists in first-seen order."""

    languages: List[str] = Field(default_factory=list)
    frameworks: List[str] = Field(default_factory=list)
    tools: List[str] = Field(default_factory=list)
    platforms: List[str] = Field(default_factory=list)

    @field_validator("languages", "frameworks", "tools", "platforms")
    @classmethod
    def _dedupe(cls, tokens: List[str]) -> List[str]:
        return list(dict.fromkeys(t.lower() for t in tokens))


class UserPreferences(BaseModel):
    """Complete preference profile for one session."""

    communication: CommunicationPrefs = Field(default_factory=CommunicationPrefs)
    work_style: WorkStylePrefs = Field(default_factory=WorkStylePrefs)
    learning: LearningPrefs = Field(default_factory=LearningPrefs)
    technical: TechnicalPrefs = Field(default_factory=TechnicalPrefs)


# Partial update: category -> {field: value}; only detected fields present.
PreferenceUpdate = Dict[str, Dict[str, Any]]

CATEGORY_MODELS: Dict[str, Type[BaseModel]] = {
    "communication": CommunicationPrefs,
    "work_style": WorkStylePrefs,
    "learning": LearningPrefs,
    "technical": TechnicalPrefs,
}

SET_CATEGORIES = frozenset({"technical"})


def preference_key(category: str) -> str:
    """Storage key of a category record."""
    return f"preference_{category}"


# Profile records live in the memory table but are not recall candidates.
PROFILE_KEYS = frozenset(preference_key(category) for category in CATEGORY_MODELS)
