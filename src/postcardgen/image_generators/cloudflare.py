"""Image backend for Cloudflare Workers AI text-to-image models."""

from __future__ import annotations

import base64
import binascii
import logging
import os
from dataclasses import dataclass, field
from typing import Any

import aiohttp

from postcardgen.errors import ImageBackendError
from postcardgen.utils.workers_ai import first_error, workers_ai_url

from .base import ImageGeneratorAPI

_LOG = logging.getLogger(__name__)


@dataclass(slots=True)
class CloudflareImageGenerator(ImageGeneratorAPI):
    """
    Async Workers AI generator (REST API).

    Handles both response styles the catalogue uses:
      - JSON ``{"result": {"image": "<base64>"}}`` (lucid-origin, flux-1-schnell)
      - raw ``image/png`` bodies (stable-diffusion-xl)
    """

    model: str = "@cf/leonardo/lucid-origin"
    account_id: str = field(default_factory=lambda: os.getenv("CLOUDFLARE_ACCOUNT_ID", ""))
    api_token: str = field(default_factory=lambda: os.getenv("CLOUDFLARE_API_TOKEN", ""))
    timeout: float = field(default_factory=lambda: float(os.getenv("IMAGE_HTTP_TIMEOUT", "60")))
    _session: aiohttp.ClientSession | None = field(default=None, init=False, repr=False)

    async def __aenter__(self) -> "CloudflareImageGenerator":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self.timeout)
            )
        return self._session

    async def generate(self, prompt: str, *, steps: int | None = None) -> bytes:
        if not self.account_id or not self.api_token:
            raise ImageBackendError(
                "Workers AI credentials missing: set CLOUDFLARE_ACCOUNT_ID and CLOUDFLARE_API_TOKEN",
                status_code=401,
            )
        inputs: dict[str, Any] = {"prompt": prompt}
        if steps is not None:
            inputs["num_steps"] = steps
        headers = {"Authorization": f"Bearer {self.api_token}"}
        url = workers_ai_url(self.account_id, self.model)
        _LOG.info("Workers AI run model=%s keys=%s", self.model, sorted(inputs.keys()))

        session = self._get_session()
        try:
            async with session.post(url, json=inputs, headers=headers) as rsp:
                content_type = rsp.headers.get("Content-Type", "")
                if content_type.startswith("image/"):
                    if rsp.status != 200:
                        raise ImageBackendError(
                            f"Workers AI returned HTTP {rsp.status}", status_code=rsp.status
                        )
                    return await rsp.read()

                try:
                    payload = await rsp.json(content_type=None)
                except ValueError:
                    payload = None
                if rsp.status != 200 or not isinstance(payload, dict) or payload.get("success") is False:
                    code, message = first_error(payload)
                    raise ImageBackendError(
                        f"Workers AI {self.model} failed (HTTP {rsp.status}): "
                        f"{message or 'unexpected response'}",
                        status_code=rsp.status,
                        code=code,
                    )
        except aiohttp.ClientError as exc:
            raise ImageBackendError(f"Workers AI request failed: {exc}") from exc

        return self._decode_image(payload)

    def _decode_image(self, payload: dict[str, Any]) -> bytes:
        result = payload.get("result")
        encoded = result.get("image") if isinstance(result, dict) else None
        if not encoded:
            raise ImageBackendError(f"Workers AI {self.model} returned no image")
        try:
            return base64.b64decode(encoded, validate=True)
        except (binascii.Error, ValueError) as exc:
            raise ImageBackendError(f"Workers AI {self.model} returned invalid base64") from exc

    async def aclose(self) -> None:
        if self._session and not self._session.closed:
            await self._session.close()
