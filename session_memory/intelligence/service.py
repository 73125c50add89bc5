"""Embedding and completion capability used by the memory components."""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Any, Awaitable, Dict, List, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class IntelligenceService(ABC):
    """
    Abstract embedding/extraction/summarization provider.

    Implementations raise on failure; callers decide the fallback through
    `call_with_fallback`.
    """

    @abstractmethod
    async def embed(self, text: str) -> List[float]:
        """Return a fixed-dimensionality embedding for *text*."""
        pass

    @abstractmethod
    async def extract(self, text: str, instruction: str) -> List[Dict[str, Any]]:
        """
        Run a structured extraction over *text*.

        Returns:
            List of {content, category, importance} items
        """
        pass

    @abstractmethod
    async def summarize(self, transcript: str, max_words: int = 200) -> str:
        """Condense a role-prefixed transcript into a short digest."""
        pass

    def is_available(self) -> bool:
        """Check if the service is configured and ready to use."""
        return True


async def call_with_fallback(
    call: Awaitable[T],
    fallback: T,
    timeout: float,
    what: str,
) -> T:
    """
    Await an external call with a timeout, degrading to *fallback* on any failure.

    Args:
        call: Awaitable external call
        fallback: Value returned on error or timeout
        timeout: Seconds before giving up
        what: Short description used in log messages

    Returns:
        The call's result, or *fallback*
    """
    try:
        return await asyncio.wait_for(call, timeout=timeout)
    except asyncio.TimeoutError:
        logger.warning(f"{what} timed out after {timeout:.1f}s")
    except Exception as e:
        logger.error(f"{what} failed: {e}")
    return fallback
