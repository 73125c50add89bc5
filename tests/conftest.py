"""Test configuration and fixtures."""

import asyncio
from typing import Any, Dict, List, Optional, Sequence, Tuple

import pytest

from session_memory.config.settings import Settings
from session_memory.intelligence.service import IntelligenceService
from session_memory.memory.integrate import create_session_memory
from session_memory.memory.store import MemoryStore
from session_memory.persist.conversations import ConversationStore
from session_memory.persist.sqlite_store import Database

NAME_VEC = [1.0, 0.0, 0.0]
PREFERENCE_VEC = [0.0, 1.0, 0.0]
FAR_VEC = [0.0, 0.0, 1.0]


class FakeIntelligenceService(IntelligenceService):
    """
    Scripted provider.

    Embeddings come from the first keyword rule contained in the text;
    anything else gets `default_vector`. Setting a `fail_*` flag makes the
    matching call raise; `fail_embed_on` fails only embeddings of texts
    containing one of its substrings.
    """

    def __init__(self, rules: Optional[Sequence[Tuple[str, List[float]]]] = None):
        self.rules = list(rules) if rules is not None else [
            ("name", NAME_VEC),
            ("prefer", PREFERENCE_VEC),
            ("concise", PREFERENCE_VEC),
        ]
        self.default_vector = FAR_VEC
        self.extract_items: Any = []
        self.summary = "User introduced themselves and asked about Python."
        self.fail_embed = False
        self.fail_embed_on: List[str] = []
        self.fail_extract = False
        self.fail_summarize = False
        self.delay = 0.0
        self.embed_calls: List[str] = []
        self.summarize_calls = 0

    async def embed(self, text: str) -> List[float]:
        self.embed_calls.append(text)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.fail_embed or any(s in text for s in self.fail_embed_on):
            raise RuntimeError("embedding backend down")
        lower = text.lower()
        for keyword, vector in self.rules:
            if keyword in lower:
                return list(vector)
        return list(self.default_vector)

    async def extract(self, text: str, instruction: str) -> List[Dict[str, Any]]:
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.fail_extract:
            raise RuntimeError("extraction backend down")
        return self.extract_items

    async def summarize(self, transcript: str, max_words: int = 200) -> str:
        self.summarize_calls += 1
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.fail_summarize:
            raise RuntimeError("summary backend down")
        return self.summary


@pytest.fixture
def db(tmp_path):
    """Create a temporary SQLite database."""
    database = Database(tmp_path / "memory.db")
    yield database
    database.close()


@pytest.fixture
def store(db):
    return MemoryStore(db)


@pytest.fixture
def conversations(db):
    return ConversationStore(db)


@pytest.fixture
def fake_service():
    return FakeIntelligenceService()


@pytest.fixture
def settings():
    """Default settings with short timeouts."""
    settings = Settings()
    settings.intelligence.timeout = 1.0
    settings.intelligence.embedding_dim = 3
    return settings


@pytest.fixture
def session_memory(settings, fake_service, db):
    """SessionMemory wired to the fake service and temp database."""
    return create_session_memory(settings=settings, service=fake_service, db=db)
