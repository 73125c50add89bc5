"""
Preference tracking.

Provides:
- Preference profile models with neutral defaults
- Rule-based preference inference and per-category persistence
"""

from .schemas import (
    CommunicationPrefs,
    LearningPrefs,
    PROFILE_KEYS,
    PreferenceUpdate,
    TechnicalPrefs,
    UserPreferences,
    WorkStylePrefs,
    preference_key,
)
from .tracker import PreferenceTracker

__all__ = [
    "CommunicationPrefs",
    "LearningPrefs",
    "PROFILE_KEYS",
    "PreferenceUpdate",
    "TechnicalPrefs",
    "UserPreferences",
    "WorkStylePrefs",
    "preference_key",
    "PreferenceTracker",
]
