"""Unit tests for ContextComposer."""

from datetime import datetime

import pytest

from session_memory.memory.composer import (
    MEMORY_HEADER,
    ContextComposer,
    build_developer_prompt,
)
from session_memory.memory.schemas import MemoryCategory, MemoryRecord, ScoredMemory


def _scored(value, category, score, key=None):
    record = MemoryRecord(
        id=abs(hash(value)) % 10000,
        session_id="s1",
        key=key or value,
        value=value,
        category=category,
        importance=5,
        created_at=0.0,
        updated_at=0.0,
    )
    return ScoredMemory(memory=record, score=score)


@pytest.fixture
def composer():
    return ContextComposer(relevance_threshold=0.7)


def test_gate_is_strictly_greater(composer):
    memories = [
        _scored("at threshold", MemoryCategory.GENERAL, 0.7),
        _scored("above", MemoryCategory.GENERAL, 0.71),
        _scored("below", MemoryCategory.GENERAL, 0.2),
    ]

    assert [m.value for m in composer.gate(memories)] == ["above"]


def test_memory_block_groups_in_category_order(composer):
    memories = [
        _scored("Wants to learn Rust", MemoryCategory.GOALS, 0.9),
        _scored("User's name is Sam", MemoryCategory.PERSONAL_INFO, 0.95),
        _scored("Lives in Lisbon", MemoryCategory.PERSONAL_INFO, 0.8),
    ]

    block = composer.format_memory_block(memories)

    assert block == (
        f"{MEMORY_HEADER}\n"
        "- Personal Info: User's name is Sam; Lives in Lisbon\n"
        "- Goals: Wants to learn Rust"
    )


def test_memory_block_empty_when_nothing_clears_gate(composer):
    assert composer.format_memory_block([_scored("x", MemoryCategory.GENERAL, 0.5)]) == ""


def test_compose_omits_empty_sections(composer):
    assert composer.compose("Base", [], "") == "Base"


def test_compose_joins_sections(composer):
    memories = [_scored("User's name is Sam", MemoryCategory.PERSONAL_INFO, 0.9)]

    result = composer.compose("Base", memories, "User preferences:\n- Communication: x")

    sections = result.split("\n\n")
    assert sections[0] == "Base"
    assert sections[1].startswith(MEMORY_HEADER)
    assert sections[2].startswith("User preferences:")


def test_every_category_has_a_label(composer):
    memories = [_scored(f"v-{c.value}", c, 0.9) for c in MemoryCategory]

    block = composer.format_memory_block(memories)

    assert len(block.splitlines()) == 1 + len(MemoryCategory)


def test_developer_prompt_has_date():
    prompt = build_developer_prompt(datetime(2024, 3, 5))

    assert prompt.endswith("Today is Tuesday, March 5, 2024.")
