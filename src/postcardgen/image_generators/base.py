from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Final

__all__: Final = ["ImageGeneratorAPI"]


class ImageGeneratorAPI(ABC):
    """Async interface for all image-generation providers.

    Sub-classes **must** implement :meth:`generate` to return raw image
    bytes for a given prompt.  ``steps`` is the caller's quality/speed
    trade-off; providers that have no notion of inference steps ignore it.
    Failures are raised, preferably as
    :class:`~postcardgen.errors.ImageBackendError` carrying the provider's
    HTTP status so capacity errors can be told apart.

    A default no-op :meth:`aclose` is provided so that callers can safely
    ``await generator.aclose()`` regardless of whether the implementation
    needs explicit teardown.
    """

    @abstractmethod
    async def generate(self, prompt: str, *, steps: int | None = None) -> bytes: ...

    async def aclose(self) -> None:  # noqa: D401 – “Close …”
        """Release any open resources (optional)."""
        return None
