"""Text-generation backend that calls Cloudflare Workers AI over REST."""
from __future__ import annotations

import logging
import os
from typing import Any, Dict, List

import aiohttp

from postcardgen.utils.workers_ai import first_error, workers_ai_url

from .base import TextGeneratorAPI

_LOG = logging.getLogger(__name__)


class CloudflareTextGenerator(TextGeneratorAPI):
    """Run a Workers AI text model (default: ``@cf/openai/gpt-oss-20b``).

    gpt-oss models take the Responses-style ``{input, instructions}`` body and
    answer with an ``output`` message list; the chat models (llama, mistral)
    take ``messages`` and answer with ``result.response``. The decoded JSON
    payload is returned unchanged.
    """

    def __init__(
        self,
        model: str = "@cf/openai/gpt-oss-20b",
        *,
        account_id: str | None = None,
        api_token: str | None = None,
    ) -> None:
        self.model = model
        self.account_id = account_id or os.getenv("CLOUDFLARE_ACCOUNT_ID", "")
        self.api_token = api_token or os.getenv("CLOUDFLARE_API_TOKEN", "")
        self.timeout = float(os.getenv("TEXT_HTTP_TIMEOUT", "60"))

    def _uses_responses_input(self) -> bool:
        return "gpt-oss" in self.model.lower()

    def build_payload(self, prompt: str, instructions: str | None) -> Dict[str, Any]:
        if self._uses_responses_input():
            payload: Dict[str, Any] = {"input": prompt}
            if instructions:
                payload["instructions"] = instructions
            return payload
        messages: List[Dict[str, str]] = []
        if instructions:
            messages.append({"role": "system", "content": instructions})
        messages.append({"role": "user", "content": prompt})
        return {"messages": messages}

    async def generate(self, prompt: str, *, instructions: str | None = None) -> Any:
        if not self.account_id or not self.api_token:
            raise RuntimeError("CLOUDFLARE_ACCOUNT_ID and CLOUDFLARE_API_TOKEN must be set")

        url = workers_ai_url(self.account_id, self.model)
        headers = {"Authorization": f"Bearer {self.api_token}"}
        timeout = aiohttp.ClientTimeout(total=self.timeout)
        async with aiohttp.ClientSession(timeout=timeout) as session:
            async with session.post(url, json=self.build_payload(prompt, instructions), headers=headers) as rsp:
                data = await rsp.json(content_type=None)
                if rsp.status != 200:
                    code, message = first_error(data)
                    raise RuntimeError(
                        f"Workers AI {self.model} failed (HTTP {rsp.status}, code {code}): {message}"
                    )
        _LOG.debug("Workers AI text response keys: %s", sorted(data) if isinstance(data, dict) else type(data))
        return data
