from .base import ImageGeneratorAPI
from .cloudflare import CloudflareImageGenerator
from .openai_images import OpenAIImageGenerator
from .replicate_api import ReplicateImageGenerator

__all__ = [
    "ImageGeneratorAPI",
    "CloudflareImageGenerator",
    "OpenAIImageGenerator",
    "ReplicateImageGenerator",
    "get_image_generator",
]


def get_image_generator(api: str, model: str) -> ImageGeneratorAPI:
    """Return an appropriate image generator instance for the given API."""
    if api in ("cloudflare", "workers-ai"):
        return CloudflareImageGenerator(model)
    if api == "replicate":
        return ReplicateImageGenerator(model)
    if api == "openai":
        return OpenAIImageGenerator(model)
    raise ValueError(f"Unknown API: {api}")
