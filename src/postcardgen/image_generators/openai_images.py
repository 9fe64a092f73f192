from __future__ import annotations

import base64
import logging
import os
from typing import Any, Dict, Optional

from openai import APIConnectionError, APIStatusError, AsyncOpenAI

from postcardgen.errors import ImageBackendError

from .base import ImageGeneratorAPI

_LOG = logging.getLogger(__name__)

_CLIENT: Optional[AsyncOpenAI] = None


def _client() -> AsyncOpenAI:
    """Create or return a shared AsyncOpenAI client.

    SDK-level retries are disabled; retrying is the orchestrator's job.
    """
    global _CLIENT
    if _CLIENT is None:
        http_timeout = float(os.getenv("IMAGE_HTTP_TIMEOUT", "60"))
        _LOG.debug("Initializing AsyncOpenAI client (timeout=%ss)", http_timeout)
        _CLIENT = AsyncOpenAI(timeout=http_timeout, max_retries=0)
    return _CLIENT


class OpenAIImageGenerator(ImageGeneratorAPI):
    """Image backend for the OpenAI Images API (``gpt-image-1``, ``dall-e-3``)."""

    def __init__(self, model: str = "gpt-image-1", size: str = "1024x1024") -> None:
        self.model = model
        self.size = size

    def _is_dalle(self) -> bool:
        return self.model.lower().startswith("dall-e")

    async def generate(self, prompt: str, *, steps: int | None = None) -> bytes:
        kwargs: Dict[str, Any] = {"model": self.model, "prompt": prompt, "n": 1, "size": self.size}
        if self._is_dalle():
            # gpt-image models always answer with b64_json and reject this flag
            kwargs["response_format"] = "b64_json"
        try:
            resp = await _client().images.generate(**kwargs)
        except APIStatusError as exc:
            raise ImageBackendError(
                f"OpenAI image generation failed: {exc.message}",
                status_code=exc.status_code,
            ) from exc
        except APIConnectionError as exc:
            raise ImageBackendError(f"OpenAI connection failed: {exc}") from exc

        data = getattr(resp, "data", None) or []
        encoded = getattr(data[0], "b64_json", None) if data else None
        if not encoded:
            raise ImageBackendError(f"OpenAI {self.model} returned no image data")
        return base64.b64decode(encoded)
