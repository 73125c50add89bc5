"""
Unit tests for PreferenceTracker.

Tests:
- analyze(): keyword rules and technical vocabulary
- save()/load(): merge semantics, totality, corrupt records
- build_context(): rendering
"""

import json
from unittest.mock import patch

import pytest

from session_memory.memory.schemas import MemoryCategory
from session_memory.persist.sqlite_store import StorageError
from session_memory.preferences import PreferenceTracker, UserPreferences, preference_key


@pytest.fixture
def tracker(store):
    return PreferenceTracker(store)


# ============================================================================
# Analyze Tests
# ============================================================================

def test_concise_detail():
    update = PreferenceTracker.analyze("My name is Sam and I prefer concise answers")

    assert update["communication"]["detail"] == "concise"


def test_only_detected_fields_present():
    update = PreferenceTracker.analyze("Could you show me an example?")

    assert update == {
        "communication": {"style": "formal"},
        "learning": {"method": "examples"},
    }


def test_first_matching_rule_wins():
    # "quick" (concise) is listed before "explain" (detailed)
    update = PreferenceTracker.analyze("Give me a quick explain of this")

    assert update["communication"]["detail"] == "concise"


def test_nothing_detected():
    assert PreferenceTracker.analyze("ok") == {}


def test_technical_tokens():
    update = PreferenceTracker.analyze("I write JavaScript and C++ with React on Linux, deploying via Docker")

    tech = update["technical"]
    assert tech["languages"] == ["javascript", "c++"]
    assert tech["frameworks"] == ["react"]
    assert tech["tools"] == ["docker"]
    assert tech["platforms"] == ["linux"]


def test_technical_tokens_match_whole_words():
    update = PreferenceTracker.analyze("JavaScript is fun, let's go")

    # "java" must not match inside "javascript"; "go" is a real token here
    assert update["technical"]["languages"] == ["javascript", "go"]


def test_technical_tokens_deduplicated():
    update = PreferenceTracker.analyze("python, Python and PYTHON")

    assert update["technical"]["languages"] == ["python"]


# ============================================================================
# Save / Load Tests
# ============================================================================

def test_load_empty_session_returns_defaults(tracker):
    assert tracker.load("nobody") == UserPreferences()


def test_save_writes_one_record_per_category(tracker, store):
    saved = tracker.save("s1", {"communication": {"detail": "concise"}, "learning": {"format": "visual"}})

    assert saved == ["communication", "learning"]
    record = store.get("s1", preference_key("communication"))
    assert record.category == MemoryCategory.PREFERENCES
    assert record.importance == 7
    assert json.loads(record.value) == {"style": "mixed", "detail": "concise", "technical_level": "intermediate"}


def test_scalar_fields_last_write_wins(tracker):
    tracker.save("s1", {"communication": {"detail": "concise", "style": "formal"}})
    tracker.save("s1", {"communication": {"detail": "detailed"}})

    comm = tracker.load("s1").communication
    assert comm.detail == "detailed"
    assert comm.style == "formal"


def test_technical_sets_union(tracker):
    tracker.save("s1", {"technical": {"languages": ["python"]}})
    tracker.save("s1", {"technical": {"languages": ["rust", "python"], "tools": ["git"]}})

    tech = tracker.load("s1").technical
    assert tech.languages == ["python", "rust"]
    assert tech.tools == ["git"]


def test_invalid_value_skips_only_that_category(tracker):
    saved = tracker.save("s1", {
        "communication": {"detail": "rambling"},
        "work_style": {"pace": "fast"},
    })

    assert saved == ["work_style"]
    prefs = tracker.load("s1")
    assert prefs.communication.detail == "balanced"
    assert prefs.work_style.pace == "fast"


def test_unknown_category_ignored(tracker):
    assert tracker.save("s1", {"diet": {"vegan": True}}) == []


def test_storage_failure_is_logged_not_raised(tracker, store):
    with patch.object(store, "upsert", side_effect=StorageError("disk full")):
        assert tracker.save("s1", {"learning": {"format": "visual"}}) == []


def test_corrupt_record_falls_back_to_defaults(tracker, store):
    store.upsert("s1", preference_key("learning"), "{not json", "preferences", 7)
    tracker.save("s1", {"communication": {"style": "casual"}})

    prefs = tracker.load("s1")
    assert prefs.learning.format == "mixed"
    assert prefs.communication.style == "casual"


def test_sessions_are_isolated(tracker):
    tracker.save("s1", {"communication": {"detail": "concise"}})

    assert tracker.load("s2").communication.detail == "balanced"


# ============================================================================
# Context Tests
# ============================================================================

def test_build_context_defaults_has_no_technical_line(tracker):
    context = tracker.build_context("nobody")
    lines = context.splitlines()

    assert lines[0] == "User preferences:"
    assert len(lines) == 4
    assert "balanced responses" in lines[1]
    assert not any(line.startswith("- Technical") for line in lines)


def test_build_context_includes_technical_when_set(tracker):
    tracker.save("s1", {"technical": {"languages": ["python", "go"], "platforms": ["linux"]}})

    context = tracker.build_context("s1")

    assert "- Technical: languages: python, go; platforms: linux" in context
