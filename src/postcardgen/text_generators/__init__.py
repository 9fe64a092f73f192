# text_generators/__init__.py
from .base import TextGeneratorAPI
from .cloudflare import CloudflareTextGenerator
from .openai_responses import OpenAIResponsesTextGenerator

__all__ = [
    "TextGeneratorAPI",
    "CloudflareTextGenerator",
    "OpenAIResponsesTextGenerator",
    "get_text_generator",
]


def get_text_generator(api: str, model: str) -> TextGeneratorAPI:
    """Return an appropriate text-generator instance for the given API."""
    if api in ("cloudflare", "workers-ai"):
        return CloudflareTextGenerator(model)
    if api in ("openai", "chatgpt"):
        return OpenAIResponsesTextGenerator(model)
    raise ValueError(f"Unknown API: {api}")
