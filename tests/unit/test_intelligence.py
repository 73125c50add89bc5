"""
Unit tests for the Intelligence Service implementations.

Tests:
- OpenAIIntelligenceService with a mocked async client
- MockIntelligenceService determinism
- call_with_fallback() fail-soft behavior
- create_intelligence_service() provider selection
"""

import asyncio
import json
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest

from session_memory.config.settings import IntelligenceCfg
from session_memory.intelligence import (
    MockIntelligenceService,
    OpenAIIntelligenceService,
    call_with_fallback,
    create_intelligence_service,
)
from session_memory.memory.recall import cosine_similarity


def _chat_response(content):
    return SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content=content))])


@pytest.fixture
def client():
    client = MagicMock()
    client.embeddings.create = AsyncMock(
        return_value=SimpleNamespace(data=[SimpleNamespace(embedding=[0.1, 0.2, 0.3])])
    )
    client.chat.completions.create = AsyncMock()
    return client


@pytest.fixture
def service(client):
    return OpenAIIntelligenceService(IntelligenceCfg(api_key="sk-test"), client=client)


# ============================================================================
# OpenAI Tests
# ============================================================================

def test_embed_uses_embedding_model(service, client):
    vector = asyncio.run(service.embed("hello"))

    assert vector == [0.1, 0.2, 0.3]
    client.embeddings.create.assert_awaited_once_with(model="text-embedding-3-small", input="hello")


def test_extract_requests_json_object(service, client):
    items = [{"content": "User's name is Sam", "category": "personal_info", "importance": 9}]
    client.chat.completions.create.return_value = _chat_response(json.dumps({"memories": items}))

    result = asyncio.run(service.extract("My name is Sam", "instruction"))

    assert result == items
    kwargs = client.chat.completions.create.await_args.kwargs
    assert kwargs["response_format"] == {"type": "json_object"}
    assert kwargs["model"] == "gpt-4o-mini"
    assert kwargs["messages"][1]["content"] == "instruction"


def test_extract_empty_content_is_no_memories(service, client):
    client.chat.completions.create.return_value = _chat_response(None)

    assert asyncio.run(service.extract("x", "instruction")) == []


def test_extract_bad_shape_raises(service, client):
    client.chat.completions.create.return_value = _chat_response('{"memories": "nope"}')

    with pytest.raises(ValueError):
        asyncio.run(service.extract("x", "instruction"))


def test_summarize_passes_word_bound(service, client):
    client.chat.completions.create.return_value = _chat_response("  A short digest.  ")

    summary = asyncio.run(service.summarize("user: hi", max_words=50))

    assert summary == "A short digest."
    system = client.chat.completions.create.await_args.kwargs["messages"][0]["content"]
    assert "max 50 words" in system


def test_is_available_requires_key(client):
    assert not OpenAIIntelligenceService(IntelligenceCfg(), client=client).is_available()


# ============================================================================
# Mock Service Tests
# ============================================================================

def test_mock_embeddings_are_deterministic_and_normalized():
    mock = MockIntelligenceService(dim=64)

    a = asyncio.run(mock.embed("User's name is Sam"))
    b = asyncio.run(mock.embed("User's name is Sam"))

    assert a == b
    assert len(a) == 64
    assert cosine_similarity(a, b) == pytest.approx(1.0)


def test_mock_embeddings_reflect_word_overlap():
    mock = MockIntelligenceService(dim=256)
    query = asyncio.run(mock.embed("what is my name"))
    near = asyncio.run(mock.embed("my name is Sam"))
    far = asyncio.run(mock.embed("volcanoes erupt lava"))

    assert cosine_similarity(query, near) > cosine_similarity(query, far)


def test_mock_extract_and_summarize():
    mock = MockIntelligenceService()

    assert asyncio.run(mock.extract("anything", "instruction")) == []
    assert asyncio.run(mock.summarize("one two three", max_words=2)) == "one two..."


# ============================================================================
# Fallback Tests
# ============================================================================

def test_call_with_fallback_returns_result():
    async def ok():
        return 42

    assert asyncio.run(call_with_fallback(ok(), 0, 1.0, "ok")) == 42


def test_call_with_fallback_on_error():
    async def broken():
        raise RuntimeError("boom")

    assert asyncio.run(call_with_fallback(broken(), "fallback", 1.0, "broken")) == "fallback"


def test_call_with_fallback_on_timeout():
    async def slow():
        await asyncio.sleep(1.0)
        return "late"

    assert asyncio.run(call_with_fallback(slow(), [], 0.01, "slow")) == []


# ============================================================================
# Factory Tests
# ============================================================================

def test_factory_mock():
    service = create_intelligence_service(IntelligenceCfg(provider="mock", embedding_dim=8))

    assert isinstance(service, MockIntelligenceService)
    assert service.dim == 8


def test_factory_openai():
    service = create_intelligence_service(IntelligenceCfg(provider="openai", api_key="sk-test"))

    assert isinstance(service, OpenAIIntelligenceService)


def test_factory_unknown_provider():
    with pytest.raises(ValueError, match="Unsupported provider"):
        create_intelligence_service(IntelligenceCfg(provider="carrier-pigeon"))
