from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any


class TextGeneratorAPI(ABC):
    """Abstract base class for text generator providers.

    Implementations return the provider's raw response (decoded JSON or SDK
    object). Turning that into plain text is left to the caller, because the
    shape differs between providers and even between models of one provider.
    """

    @abstractmethod
    async def generate(self, prompt: str, *, instructions: str | None = None) -> Any:
        """Return the raw provider response for the given prompt."""
        raise NotImplementedError
