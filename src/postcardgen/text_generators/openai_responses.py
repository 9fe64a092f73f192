# text_generators/openai_responses.py
from __future__ import annotations

from typing import Any, Dict
import logging

from openai import AsyncOpenAI

from .base import TextGeneratorAPI

_CLIENT_CACHE: Dict[str, AsyncOpenAI] = {}
_LOG = logging.getLogger(__name__)


class OpenAIResponsesTextGenerator(TextGeneratorAPI):
    """Text-generation backend for OpenAI models via the Responses API.

    Requires OPENAI_API_KEY in the environment. Returns the SDK ``Response``
    object; its ``output_text`` property and ``output`` message list are both
    understood by the prompt extractor.
    """

    def __init__(self, model: str = "gpt-5-mini") -> None:
        self.model = model

    def _get_client(self) -> AsyncOpenAI:
        if "default" not in _CLIENT_CACHE:
            _CLIENT_CACHE["default"] = AsyncOpenAI()  # picks up OPENAI_API_KEY
        return _CLIENT_CACHE["default"]

    def _is_reasoning_model(self) -> bool:
        name = (self.model or "").lower()
        return name.startswith(("gpt-5", "o3", "o4"))

    async def generate(self, prompt: str, *, instructions: str | None = None) -> Any:
        kwargs: Dict[str, Any] = {"model": self.model, "input": prompt}
        if instructions:
            kwargs["instructions"] = instructions
        if self._is_reasoning_model():
            kwargs["reasoning"] = {"effort": "low"}
        _LOG.debug("OpenAI Responses: model=%s keys=%s", self.model, sorted(kwargs))
        return await self._get_client().responses.create(**kwargs)
