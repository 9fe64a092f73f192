"""Centralized settings.

Stable, non-secret texts live here in source control. Tunables are read from
the environment (``.env`` is loaded by the entry point). Secrets (API keys,
tokens) must remain in the environment.
"""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Mapping

_log = logging.getLogger(__name__)


# --------------------- Prompt writing ---------------------

POSTCARD_INSTRUCTIONS: str = (
    "You are an expert prompt engineer. You help the user write prompts that can be "
    "used to generate high quality images using AI image generation models. "
    "The style of the image should always be similar to a Postcard. "
    "If the user's prompt is not related to image generation, you politely inform them "
    "that you can only help with image generation prompts. "
    "You only return the detailed prompt. No other text should be returned."
)

PROMPT_REQUEST_TEMPLATE: str = "Write an image prompt for a postcard of {place}."

FALLBACK_PROMPT_TEMPLATE: str = (
    "A vintage travel postcard of {place}, showing its most recognisable landmarks "
    "under a warm golden-hour sky, rich saturated colours, and bold retro lettering "
    "that reads 'Greetings from {place}'."
)

DEFAULT_PLACE = "Unknown"
DEFAULT_SUBMITTER = "Anonymous"


# --------------------- Runtime tunables ---------------------

def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        _log.warning("Ignoring non-integer %s=%r; using %s", name, raw, default)
        return default


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        _log.warning("Ignoring non-numeric %s=%r; using %s", name, raw, default)
        return default


def max_retries() -> int:
    return max(1, _env_int("MAX_RETRIES", 3))


def backoff_base_seconds() -> float:
    return max(0.0, _env_float("BACKOFF_BASE_SECONDS", 1.0))


def min_request_interval() -> float:
    """Minimum seconds between image calls across the process (0 disables)."""
    return max(0.0, _env_float("MIN_REQUEST_INTERVAL_SECONDS", 0.0))


RESPONSE_MODES = ("binary", "json")


def response_mode() -> str:
    mode = os.getenv("RESPONSE_MODE", "json").strip().lower()
    if mode not in RESPONSE_MODES:
        _log.warning("Unknown RESPONSE_MODE=%r; using 'json'", mode)
        return "json"
    return mode


def text_api() -> str:
    return os.getenv("TEXT_API", "cloudflare").strip().lower()


def text_model() -> str:
    return os.getenv("TEXT_MODEL", "@cf/openai/gpt-oss-20b").strip()


# --------------------- Image backend chain ---------------------

@dataclass(frozen=True, slots=True)
class BackendSpec:
    api: str
    model: str
    steps: int | None = None


DEFAULT_BACKENDS: tuple[BackendSpec, ...] = (
    BackendSpec("cloudflare", "@cf/leonardo/lucid-origin", 3),
    BackendSpec("cloudflare", "@cf/black-forest-labs/flux-1-schnell", 4),
    BackendSpec("cloudflare", "@cf/stabilityai/stable-diffusion-xl-base-1.0", 20),
)


def _project_root() -> Path:
    """settings.py lives at src/postcardgen/settings.py; the repo root is two levels up."""
    return Path(__file__).resolve().parents[2]


def backends_config_path() -> Path:
    env_val = os.getenv("IMAGE_BACKENDS_FILE", "").strip()
    if env_val:
        p = Path(env_val).expanduser()
        return p if p.is_absolute() else _project_root() / p
    return _project_root() / "config" / "image_backends.json"


def parse_backend_specs(raw: Any) -> tuple[BackendSpec, ...]:
    """Turn the decoded JSON list into specs, keeping file order as rank order."""
    if not isinstance(raw, list) or not raw:
        raise ValueError("Backend config must be a non-empty JSON list")
    specs: list[BackendSpec] = []
    for entry in raw:
        if not isinstance(entry, Mapping):
            raise ValueError(f"Backend entry must be an object, got {entry!r}")
        steps = entry.get("steps")
        specs.append(
            BackendSpec(
                api=str(entry["api"]),
                model=str(entry["model"]),
                steps=int(steps) if steps is not None else None,
            )
        )
    return tuple(specs)


def load_backend_specs(path: Path | None = None) -> tuple[BackendSpec, ...]:
    """Load the ordered backend chain, falling back to :data:`DEFAULT_BACKENDS`."""
    cfg_path = path or backends_config_path()
    try:
        raw = json.loads(cfg_path.read_text("utf8"))
    except FileNotFoundError:
        _log.info("No backend config at %s; using built-in chain.", cfg_path)
        return DEFAULT_BACKENDS
    specs = parse_backend_specs(raw)
    _log.info("Loaded %d image backends from %s", len(specs), cfg_path)
    return specs
