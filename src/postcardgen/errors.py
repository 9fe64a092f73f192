"""Exception types shared by the generators, the orchestrator and the API."""

from __future__ import annotations

__all__ = ["PostcardError", "InvalidInput", "ImageBackendError"]


class PostcardError(Exception):
    """Base class for errors raised by this package."""


class InvalidInput(PostcardError, ValueError):
    """A required request field is missing or blank."""


class ImageBackendError(PostcardError, RuntimeError):
    """An image backend call failed.

    ``status_code`` is the HTTP status returned by the provider (if any) and
    ``code`` is the provider's own error code (e.g. Cloudflare's ``3040``).
    Both are optional; the failure classifier falls back to the message text.
    """

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        code: int | str | None = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.code = code
