"""Sort backend failures into capacity-class (retryable) and permanent ones."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Callable, Final, Union

__all__ = [
    "Success",
    "TransientFailure",
    "PermanentFailure",
    "AttemptOutcome",
    "FailureClassifier",
    "classify_failure",
]

# HTTP statuses that mean "busy, try again later".
CAPACITY_STATUSES: Final = frozenset({429, 503})

# Workers AI reports "Capacity temporarily exceeded" as error code 3040.
CAPACITY_CODES: Final = frozenset({3040, "3040"})

CAPACITY_SIGNATURES: Final = (
    "capacity",
    "overloaded",
    "rate limit",
    "too many requests",
    "3040:",
)


@dataclass(frozen=True, slots=True)
class Success:
    image: bytes


@dataclass(frozen=True, slots=True)
class TransientFailure:
    reason: str


@dataclass(frozen=True, slots=True)
class PermanentFailure:
    reason: str


AttemptOutcome = Union[Success, TransientFailure, PermanentFailure]
FailureClassifier = Callable[[BaseException], Union[TransientFailure, PermanentFailure]]


def _describe(exc: BaseException) -> str:
    text = str(exc).strip()
    return text or type(exc).__name__


def classify_failure(exc: BaseException) -> TransientFailure | PermanentFailure:
    """Default classifier.

    Looks at ``status_code``/``status`` and ``code`` attributes first, then at
    the message. Timeouts count as ordinary network failures.
    """
    reason = _describe(exc)
    if isinstance(exc, asyncio.TimeoutError):
        return PermanentFailure(reason)

    status = getattr(exc, "status_code", None)
    if status is None:
        status = getattr(exc, "status", None)
    if isinstance(status, int) and status in CAPACITY_STATUSES:
        return TransientFailure(reason)

    code = getattr(exc, "code", None)
    if isinstance(code, (int, str)) and code in CAPACITY_CODES:
        return TransientFailure(reason)

    lowered = reason.lower()
    if any(sig in lowered for sig in CAPACITY_SIGNATURES):
        return TransientFailure(reason)
    return PermanentFailure(reason)
