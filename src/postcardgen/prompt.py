"""Turn a place name into an image prompt using a text model.

The text model's response shape is not stable across providers and models,
so extraction is an ordered tuple of small strategies; the first one that
yields non-empty text wins. Prompt writing never blocks image generation:
any failure falls back to a templated sentence.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, Optional, Sequence

from postcardgen.errors import InvalidInput
from postcardgen.settings import (
    FALLBACK_PROMPT_TEMPLATE,
    POSTCARD_INSTRUCTIONS,
    PROMPT_REQUEST_TEMPLATE,
)
from postcardgen.text_generators import TextGeneratorAPI

__all__ = [
    "PromptResult",
    "PromptSynthesizer",
    "EXTRACTORS",
    "extract_prompt_text",
    "fallback_prompt",
]

_LOG = logging.getLogger(__name__)

Extractor = Callable[[Any], Optional[str]]


@dataclass(frozen=True, slots=True)
class PromptResult:
    place: str
    prompt: str
    used_fallback: bool = False


def _get(obj: Any, name: str) -> Any:
    """Read ``name`` from a mapping or an SDK object."""
    if isinstance(obj, dict):
        return obj.get(name)
    return getattr(obj, name, None)


def _text(value: Any) -> Optional[str]:
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None


def from_direct_field(response: Any) -> Optional[str]:
    if isinstance(response, str):
        return None
    for name in ("response", "output_text", "text"):
        found = _text(_get(response, name))
        if found:
            return found
    return None


def from_result_response(response: Any) -> Optional[str]:
    result = _get(response, "result")
    if result is None:
        return None
    return _text(_get(result, "response"))


def _assistant_text(output: Any) -> Optional[str]:
    if isinstance(output, (str, bytes)) or not isinstance(output, Sequence):
        return None
    for item in output:
        if _get(item, "role") != "assistant":
            continue
        kind = _get(item, "type")
        if kind is not None and kind != "message":
            continue
        content = _get(item, "content")
        if isinstance(content, str) or not isinstance(content, Sequence):
            continue
        for part in content:
            if _get(part, "type") == "output_text":
                found = _text(_get(part, "text"))
                if found:
                    return found
    return None


def from_assistant_message(response: Any) -> Optional[str]:
    found = _assistant_text(_get(response, "output"))
    if found:
        return found
    result = _get(response, "result")
    if result is not None:
        return _assistant_text(_get(result, "output"))
    return None


def from_raw_string(response: Any) -> Optional[str]:
    return _text(response)


# Priority order matters: earlier strategies win.
EXTRACTORS: tuple[Extractor, ...] = (
    from_direct_field,
    from_result_response,
    from_assistant_message,
    from_raw_string,
)


def extract_prompt_text(response: Any, extractors: Sequence[Extractor] = EXTRACTORS) -> str:
    """Return the first non-empty text any extractor finds, or ``""``."""
    if response is None:
        return ""
    for extractor in extractors:
        found = extractor(response)
        if found:
            return found
    return ""


def fallback_prompt(place: str) -> str:
    return FALLBACK_PROMPT_TEMPLATE.format(place=place.strip())


class PromptSynthesizer:
    """Write a postcard-style image prompt for a place name."""

    def __init__(
        self,
        text_generator: TextGeneratorAPI,
        *,
        instructions: str = POSTCARD_INSTRUCTIONS,
        extractors: Sequence[Extractor] = EXTRACTORS,
    ) -> None:
        self.text_generator = text_generator
        self.instructions = instructions
        self.extractors = tuple(extractors)

    async def synthesize(self, place: str | None) -> PromptResult:
        """Return a trimmed, non-empty prompt for ``place``.

        Raises :class:`InvalidInput` for an empty place before any outbound
        call. Every other failure is absorbed into :func:`fallback_prompt`.
        """
        if not isinstance(place, str) or not place.strip():
            raise InvalidInput("place must be a non-empty string")
        place = place.strip()

        try:
            response = await self.text_generator.generate(
                PROMPT_REQUEST_TEMPLATE.format(place=place),
                instructions=self.instructions,
            )
        except Exception as exc:  # noqa: BLE001 - prompt writing must not block the request
            _LOG.warning("Prompt generation failed for %r; using fallback: %s", place, exc)
            return PromptResult(place=place, prompt=fallback_prompt(place), used_fallback=True)

        text = extract_prompt_text(response, self.extractors)
        if not text:
            _LOG.warning(
                "No prompt text in %s response for %r; using fallback",
                type(response).__name__,
                place,
            )
            return PromptResult(place=place, prompt=fallback_prompt(place), used_fallback=True)

        _LOG.info("Prompt for %r: %s", place, text[:80])
        return PromptResult(place=place, prompt=text)
