from __future__ import annotations

import asyncio
import logging
import os
from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Final, Sequence

import aiohttp
import replicate

from postcardgen.errors import ImageBackendError

from .base import ImageGeneratorAPI

_STREAM_TYPES: Final = (
    bytes,
    bytearray,
    replicate.helpers.FileOutput
    if hasattr(replicate.helpers, "FileOutput")
    else tuple(),
)


@dataclass(slots=True)
class ReplicateImageGenerator(ImageGeneratorAPI):
    """
    Async Replicate-backed generator.

    The step count is forwarded as ``num_inference_steps`` to models known to
    accept it (FLUX and SDXL families).
    """

    model: str = "black-forest-labs/flux-schnell"
    api_token: str = field(default_factory=lambda: os.getenv("REPLICATE_API_TOKEN", ""))
    timeout: float = field(default_factory=lambda: float(os.getenv("IMAGE_HTTP_TIMEOUT", "60")))
    _client: Any = field(default=None, init=False, repr=False)
    _session: aiohttp.ClientSession | None = field(default=None, init=False, repr=False)
    _log: logging.Logger = field(default=None, init=False, repr=False)  # type: ignore[assignment]

    def __post_init__(self) -> None:
        self._log = logging.getLogger(__name__)
        if self.api_token:
            self._client = replicate.Client(api_token=self.api_token)

    async def __aenter__(self) -> "ReplicateImageGenerator":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()

    def _supports_steps(self) -> bool:
        m = self.model.lower()
        return ("black-forest-labs/" in m) or ("flux" in m) or ("sdxl" in m)

    async def generate(self, prompt: str, *, steps: int | None = None) -> bytes:
        if self._client is None:
            raise ImageBackendError("Replicate credentials missing: set REPLICATE_API_TOKEN", status_code=401)
        inputs: dict[str, Any] = {"prompt": prompt, "output_format": "png"}
        if steps is not None and self._supports_steps():
            inputs["num_inference_steps"] = steps
        self._log.info("Replicate run model=%s keys=%s", self.model, sorted(inputs.keys()))
        try:
            raw_output = await self._client.async_run(self.model, input=inputs)
            return await self._normalise_output(raw_output)
        except ImageBackendError:
            raise
        except Exception as exc:
            raise ImageBackendError(
                f"Replicate generation failed: {exc}",
                status_code=getattr(exc, "status", None),
            ) from exc

    async def aclose(self) -> None:
        if self._session and not self._session.closed:
            await self._session.close()

    async def _normalise_output(self, data: Any) -> bytes:
        if (
            isinstance(data, (list, tuple))
            and data
            and all(isinstance(x, (bytes, bytearray)) for x in data)
        ):
            return b"".join(data)

        if isinstance(data, _STREAM_TYPES):
            if not isinstance(data, (bytes, bytearray)):
                return await self._download(str(data))
            return bytes(data)

        if isinstance(data, AsyncIterator) or hasattr(data, "__aiter__"):
            async for chunk in data:
                return await self._normalise_output(chunk)

        if isinstance(data, Sequence) and not isinstance(data, (str, bytes, bytearray)):
            if not data:
                raise ImageBackendError("Model returned an empty sequence.")
            return await self._normalise_output(data[0])

        if isinstance(data, str) and data.startswith(("http://", "https://")):
            return await self._download(data)

        raise ImageBackendError(f"Unsupported Replicate output type: {type(data).__name__}")

    async def _download(self, url: str) -> bytes:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self.timeout)
            )
        for delay in (0, 1.0):
            if delay:
                await asyncio.sleep(delay)
            async with self._session.get(url) as rsp:
                if rsp.status == 200:
                    return await rsp.read()
                if rsp.status >= 500:
                    continue
                raise ImageBackendError(f"Download failed: HTTP {rsp.status}", status_code=rsp.status)
        raise ImageBackendError(f"Download failed after retries: {url}")
