"""Helpers shared by the Cloudflare Workers AI text and image backends."""

from __future__ import annotations

from typing import Any

API_BASE = "https://api.cloudflare.com/client/v4/accounts/{account_id}/ai/run/{model}"


def workers_ai_url(account_id: str, model: str) -> str:
    return API_BASE.format(account_id=account_id, model=model)


def first_error(payload: Any) -> tuple[int | str | None, str]:
    """Return ``(code, message)`` of the first entry in a Workers AI ``errors`` list."""
    if not isinstance(payload, dict):
        return None, ""
    errors = payload.get("errors") or []
    if errors and isinstance(errors[0], dict):
        return errors[0].get("code"), str(errors[0].get("message") or "")
    return None, ""
