"""
Unit tests for similarity recall.

Tests:
- cosine_similarity(): symmetry, bounds, degenerate vectors
- SimilarityRanker.retrieve(): ordering, limits, touch, fail-soft embedding
- SimilarityRanker.search_conversations()
"""

import asyncio
import math

import pytest

from session_memory.memory.recall import SimilarityRanker, cosine_similarity


# ============================================================================
# Cosine Tests
# ============================================================================

def test_cosine_self_similarity_is_one():
    assert cosine_similarity([0.3, 0.4, 0.5], [0.3, 0.4, 0.5]) == pytest.approx(1.0)


def test_cosine_is_symmetric():
    a, b = [1.0, 2.0, 3.0], [-2.0, 0.5, 1.0]
    assert cosine_similarity(a, b) == pytest.approx(cosine_similarity(b, a))


def test_cosine_orthogonal_and_opposite():
    assert cosine_similarity([1.0, 0.0], [0.0, 1.0]) == pytest.approx(0.0)
    assert cosine_similarity([1.0, 0.0], [-1.0, 0.0]) == pytest.approx(-1.0)


def test_cosine_zero_vector_is_zero():
    assert cosine_similarity([0.0, 0.0, 0.0], [1.0, 2.0, 3.0]) == 0.0


def test_cosine_mismatched_dimensions_is_zero():
    assert cosine_similarity([1.0, 0.0], [1.0, 0.0, 0.0]) == 0.0


def test_cosine_empty_is_zero():
    assert cosine_similarity([], []) == 0.0


def test_cosine_non_finite_is_zero():
    assert cosine_similarity([math.inf, 1.0], [1.0, 1.0]) == 0.0


# ============================================================================
# Ranker Tests
# ============================================================================

@pytest.fixture
def ranker(store, fake_service, conversations):
    return SimilarityRanker(store, fake_service, embedding_dim=3, timeout=1.0, conversations=conversations)


def test_retrieve_orders_by_similarity(store, ranker):
    store.upsert("s1", "user_name", "User's name is Sam", "personal_info", 9)
    store.upsert("s1", "pref", "I prefer concise answers", "preferences", 6)
    store.upsert("s1", "other", "Has a garden", "general", 5)

    results = asyncio.run(ranker.retrieve("s1", "What's my name?"))

    assert results[0].memory.key == "user_name"
    assert results[0].score == pytest.approx(1.0)
    assert {r.memory.key for r in results[1:]} == {"pref", "other"}


def test_retrieve_excludes_low_importance(store, ranker):
    store.upsert("s1", "trivial", "User's name trivia", importance=2)

    assert asyncio.run(ranker.retrieve("s1", "name", min_importance=3)) == []


def test_retrieve_respects_limit(store, ranker):
    for i in range(8):
        store.upsert("s1", f"k{i}", f"fact {i}")

    assert len(asyncio.run(ranker.retrieve("s1", "anything", limit=3))) == 3


def test_retrieve_touches_only_returned(store, ranker):
    store.upsert("s1", "user_name", "User's name is Sam", importance=9)
    store.upsert("s1", "garden", "Has a garden", importance=5)

    asyncio.run(ranker.retrieve("s1", "name", limit=1))

    assert store.get("s1", "user_name").access_count == 1
    assert store.get("s1", "garden").access_count == 0


def test_retrieve_uses_stored_embedding(store, ranker, fake_service):
    store.upsert("s1", "k", "Opaque text", embedding=[1.0, 0.0, 0.0])

    results = asyncio.run(ranker.retrieve("s1", "name"))

    assert results[0].score == pytest.approx(1.0)
    assert fake_service.embed_calls == ["name"]


def test_retrieve_re_embeds_mismatched_stored_vector(store, ranker, fake_service):
    store.upsert("s1", "k", "I prefer tea", embedding=[1.0, 0.0])

    results = asyncio.run(ranker.retrieve("s1", "concise please"))

    assert "I prefer tea" in fake_service.embed_calls
    assert results[0].score == pytest.approx(1.0)


def test_retrieve_empty_session(ranker):
    assert asyncio.run(ranker.retrieve("nobody", "name")) == []


def test_retrieve_embedding_failure_scores_zero(store, ranker, fake_service):
    store.upsert("s1", "user_name", "User's name is Sam", importance=9)
    fake_service.fail_embed = True

    results = asyncio.run(ranker.retrieve("s1", "name"))

    assert len(results) == 1
    assert results[0].score == 0.0


def test_one_failed_candidate_embedding_scores_only_that_candidate_zero(store, ranker, fake_service):
    store.upsert("s1", "user_name", "User's name is Sam", importance=9)
    store.upsert("s1", "pet_name", "Pet's name is Alex", importance=5)
    fake_service.fail_embed_on = ["Alex"]

    results = asyncio.run(ranker.retrieve("s1", "name"))

    scores = {r.memory.key: r.score for r in results}
    assert scores["user_name"] == pytest.approx(1.0)
    assert scores["pet_name"] == 0.0
    assert [r.memory.key for r in results] == ["user_name", "pet_name"]


def test_embed_query_falls_back_to_zero_vector(ranker, fake_service):
    fake_service.fail_embed = True

    assert asyncio.run(ranker.embed_query("anything")) == [0.0, 0.0, 0.0]


def test_search_conversations(conversations, ranker):
    conversations.save_conversation("s1", [{"role": "user", "content": "hi"}], title="Picking a name for my startup")
    conversations.save_conversation("s1", [{"role": "user", "content": "hi"}], title="Holiday plans")
    conversations.save_conversation("s2", [{"role": "user", "content": "hi"}], title="Name ideas")

    results = asyncio.run(ranker.search_conversations("s1", "name", limit=5))

    assert len(results) == 2
    assert results[0].conversation.title == "Picking a name for my startup"
    assert results[0].score == pytest.approx(1.0)


def test_search_conversations_without_store(store, fake_service):
    ranker = SimilarityRanker(store, fake_service, embedding_dim=3)

    assert asyncio.run(ranker.search_conversations("s1", "name")) == []
