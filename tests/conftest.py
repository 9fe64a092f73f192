"""Pytest configuration and shared fixtures."""

from __future__ import annotations

import tempfile
from pathlib import Path
from typing import Any, Sequence

import pytest

from postcardgen.errors import ImageBackendError
from postcardgen.image_generators import ImageGeneratorAPI
from postcardgen.orchestrator import BackendDescriptor
from postcardgen.text_generators import TextGeneratorAPI

PNG_BYTES = b"\x89PNG\r\n\x1a\nfake-image"


def capacity_error() -> ImageBackendError:
    return ImageBackendError("Capacity temporarily exceeded", status_code=429, code=3040)


def auth_error() -> ImageBackendError:
    return ImageBackendError("Authentication error", status_code=401, code=10000)


class ScriptedImageGenerator(ImageGeneratorAPI):
    """Replays a fixed list of outcomes; the last one repeats forever.

    Each outcome is either image bytes to return or an exception to raise.
    """

    def __init__(self, outcomes: Sequence[Any]) -> None:
        self.outcomes = list(outcomes)
        self.calls = 0
        self.steps_seen: list[int | None] = []
        self.closed = False

    async def generate(self, prompt: str, *, steps: int | None = None) -> bytes:
        self.steps_seen.append(steps)
        outcome = self.outcomes[min(self.calls, len(self.outcomes) - 1)]
        self.calls += 1
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome

    async def aclose(self) -> None:
        self.closed = True


class ScriptedTextGenerator(TextGeneratorAPI):
    def __init__(self, response: Any = None, error: BaseException | None = None) -> None:
        self.response = response
        self.error = error
        self.calls: list[tuple[str, str | None]] = []

    async def generate(self, prompt: str, *, instructions: str | None = None) -> Any:
        self.calls.append((prompt, instructions))
        if self.error is not None:
            raise self.error
        return self.response


class SleepRecorder:
    """Stand-in for ``asyncio.sleep`` that records delays instead of waiting."""

    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


@pytest.fixture
def temp_dir():
    """Create a temporary directory for tests."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def sleeper() -> SleepRecorder:
    return SleepRecorder()


@pytest.fixture
def make_backend():
    """Factory for a backend descriptor around a scripted generator."""

    def _factory(identifier: str, outcomes: Sequence[Any], *, steps: int | None = 4, rank: int = 0):
        gen = ScriptedImageGenerator(outcomes)
        return BackendDescriptor(identifier=identifier, generator=gen, steps=steps, rank=rank), gen

    return _factory
