"""Multi-backend image generation with bounded retries and fallback.

Backends are tried strictly one after another in rank order. Each gets up to
``max_retries`` attempts; only capacity-class failures are retried, after an
exponential backoff of ``base_delay * 2**attempt`` seconds. Any other failure,
or running out of attempts, moves on to the next backend without waiting.
The first non-empty image wins.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Awaitable, Callable, Sequence, Union

from postcardgen.classify import (
    AttemptOutcome,
    FailureClassifier,
    PermanentFailure,
    Success,
    TransientFailure,
    classify_failure,
)
from postcardgen.errors import InvalidInput
from postcardgen.image_generators import ImageGeneratorAPI, get_image_generator
from postcardgen.rate_limit import NullRateLimiter, RateLimiter
from postcardgen.settings import DEFAULT_PLACE, DEFAULT_SUBMITTER, BackendSpec

__all__ = [
    "GenerationRequest",
    "BackendDescriptor",
    "Delivered",
    "Exhausted",
    "GenerationResult",
    "ImageOrchestrator",
    "build_backends",
    "generate",
]

_LOG = logging.getLogger(__name__)

Sleep = Callable[[float], Awaitable[object]]
Clock = Callable[[], float]


@dataclass(frozen=True, slots=True)
class GenerationRequest:
    prompt: str
    place: str = DEFAULT_PLACE
    submitter: str = DEFAULT_SUBMITTER

    @classmethod
    def from_body(
        cls, prompt: str | None, place: str | None = None, submitter: str | None = None
    ) -> "GenerationRequest":
        """Build a request from loosely-typed boundary input; blank metadata gets defaults."""
        if not isinstance(prompt, str) or not prompt.strip():
            raise InvalidInput("imagePrompt is required")
        return cls(
            prompt=prompt.strip(),
            place=place.strip() if isinstance(place, str) and place.strip() else DEFAULT_PLACE,
            submitter=(
                submitter.strip()
                if isinstance(submitter, str) and submitter.strip()
                else DEFAULT_SUBMITTER
            ),
        )


@dataclass(frozen=True, slots=True)
class BackendDescriptor:
    identifier: str
    generator: ImageGeneratorAPI
    steps: int | None = None
    rank: int = 0

    async def invoke(self, prompt: str) -> bytes:
        return await self.generator.generate(prompt, steps=self.steps)


@dataclass(frozen=True, slots=True)
class Delivered:
    image: bytes = field(repr=False)
    backend_used: str
    timestamp: str
    place: str = DEFAULT_PLACE
    submitter: str = DEFAULT_SUBMITTER
    attempts: int = 1


@dataclass(frozen=True, slots=True)
class Exhausted:
    last_reason: str
    attempted_backends: tuple[str, ...]
    capacity: bool = False
    attempts: int = 0


GenerationResult = Union[Delivered, Exhausted]


def _utc_timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()


class ImageOrchestrator:
    """Drive one request through the ordered backend chain."""

    def __init__(
        self,
        backends: Sequence[BackendDescriptor],
        *,
        max_retries: int = 3,
        base_delay: float = 1.0,
        classifier: FailureClassifier = classify_failure,
        rate_limiter: RateLimiter | None = None,
        sleep: Sleep = asyncio.sleep,
        clock: Clock = time.monotonic,
    ) -> None:
        if not backends:
            raise ValueError("at least one backend is required")
        if max_retries < 1:
            raise ValueError("max_retries must be >= 1")
        if base_delay < 0:
            raise ValueError("base_delay must be >= 0")
        # sorted() is stable, so equal ranks keep configured order.
        self.backends: tuple[BackendDescriptor, ...] = tuple(sorted(backends, key=lambda b: b.rank))
        self.max_retries = max_retries
        self.base_delay = base_delay
        self.classifier = classifier
        self.rate_limiter = rate_limiter or NullRateLimiter()
        self._sleep = sleep
        self._clock = clock

    def backoff_delay(self, attempt: int) -> float:
        """Delay before retrying after failed attempt number ``attempt`` (0-based)."""
        return self.base_delay * (2 ** attempt)

    async def _throttle(self) -> None:
        wait = self.rate_limiter.should_delay(self._clock())
        if wait > 0:
            _LOG.debug("Throttling image call for %.2fs", wait)
            await self._sleep(wait)
        self.rate_limiter.record(self._clock())

    async def _attempt(self, backend: BackendDescriptor, prompt: str) -> AttemptOutcome:
        await self._throttle()
        try:
            image = await backend.invoke(prompt)
        except Exception as exc:  # noqa: BLE001 - every backend error is classified
            return self.classifier(exc)
        if not image:
            return PermanentFailure("empty image payload")
        return Success(bytes(image))

    async def generate(self, request: GenerationRequest) -> GenerationResult:
        if not request.prompt or not request.prompt.strip():
            raise InvalidInput("prompt must be a non-empty string")

        attempted: list[str] = []
        last_failure: TransientFailure | PermanentFailure | None = None
        total_attempts = 0

        for index, backend in enumerate(self.backends):
            attempted.append(backend.identifier)
            for attempt in range(self.max_retries):
                total_attempts += 1
                outcome = await self._attempt(backend, request.prompt)

                if isinstance(outcome, Success):
                    _LOG.info(
                        "Image delivered by %s on attempt %d (%d bytes)",
                        backend.identifier,
                        attempt + 1,
                        len(outcome.image),
                    )
                    return Delivered(
                        image=outcome.image,
                        backend_used=backend.identifier,
                        timestamp=_utc_timestamp(),
                        place=request.place,
                        submitter=request.submitter,
                        attempts=total_attempts,
                    )

                last_failure = outcome
                kind = type(outcome).__name__
                if isinstance(outcome, PermanentFailure):
                    _LOG.warning(
                        "Backend %s attempt %d/%d: %s (%s); skipping to next backend",
                        backend.identifier,
                        attempt + 1,
                        self.max_retries,
                        kind,
                        outcome.reason,
                    )
                    break
                if attempt + 1 >= self.max_retries:
                    _LOG.warning(
                        "Backend %s attempt %d/%d: %s (%s); retries exhausted",
                        backend.identifier,
                        attempt + 1,
                        self.max_retries,
                        kind,
                        outcome.reason,
                    )
                    break

                delay = self.backoff_delay(attempt)
                _LOG.warning(
                    "Backend %s attempt %d/%d: %s (%s); retrying in %.1fs",
                    backend.identifier,
                    attempt + 1,
                    self.max_retries,
                    kind,
                    outcome.reason,
                    delay,
                )
                await self._sleep(delay)

            if index + 1 < len(self.backends):
                _LOG.info("Falling back from %s to %s", backend.identifier, self.backends[index + 1].identifier)

        if last_failure is None:
            raise RuntimeError("no backend attempt was made")
        _LOG.error(
            "All image backends exhausted after %d attempts (%s): %s",
            total_attempts,
            ", ".join(attempted),
            last_failure.reason,
        )
        return Exhausted(
            last_reason=last_failure.reason,
            attempted_backends=tuple(attempted),
            capacity=isinstance(last_failure, TransientFailure),
            attempts=total_attempts,
        )

    async def aclose(self) -> None:
        for backend in self.backends:
            await backend.generator.aclose()


async def generate(
    request: GenerationRequest,
    backends: Sequence[BackendDescriptor],
    **options,
) -> GenerationResult:
    """One-shot helper: ``ImageOrchestrator(backends, **options).generate(request)``."""
    return await ImageOrchestrator(backends, **options).generate(request)


def build_backends(
    specs: Sequence[BackendSpec],
    factory: Callable[[str, str], ImageGeneratorAPI] = get_image_generator,
) -> tuple[BackendDescriptor, ...]:
    """Instantiate generators for ``specs``; list position becomes rank."""
    return tuple(
        BackendDescriptor(
            identifier=spec.model,
            generator=factory(spec.api, spec.model),
            steps=spec.steps,
            rank=rank,
        )
        for rank, spec in enumerate(specs)
    )
