"""Postcard API - HTTP endpoints for prompt writing and image generation.

POST /api/image/prompt       {city}                    -> {city, imagePrompt}
POST /api/image/generation   {imagePrompt, city, name} -> PNG bytes or JSON
GET  /health
"""

from __future__ import annotations

import base64
import logging
from contextlib import asynccontextmanager
from typing import Any

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, Response
from pydantic import BaseModel

from postcardgen import settings
from postcardgen.errors import InvalidInput
from postcardgen.orchestrator import (
    Delivered,
    Exhausted,
    GenerationRequest,
    ImageOrchestrator,
    build_backends,
)
from postcardgen.prompt import PromptSynthesizer
from postcardgen.rate_limit import MinIntervalRateLimiter, NullRateLimiter
from postcardgen.text_generators import get_text_generator

_LOG = logging.getLogger(__name__)


class PromptRequest(BaseModel):
    city: str | None = None


class PromptResponse(BaseModel):
    city: str
    imagePrompt: str


class GenerationBody(BaseModel):
    imagePrompt: str | None = None
    city: str | None = None
    name: str | None = None


# ==================== Error envelopes ====================


def error_response(status_code: int, error: str, message: str, code: str | None = None) -> JSONResponse:
    body: dict[str, Any] = {"error": error, "message": message}
    if code:
        body["code"] = code
    return JSONResponse(body, status_code=status_code)


def invalid_input(message: str) -> JSONResponse:
    return error_response(400, "Invalid input", message, code="INVALID_INPUT")


def exhausted_response(result: Exhausted) -> JSONResponse:
    if result.capacity:
        code = "CAPACITY_EXCEEDED" if len(result.attempted_backends) == 1 else "ALL_MODELS_UNAVAILABLE"
        return error_response(
            503,
            "Image generation unavailable",
            "All image models are busy right now. Please try again in a moment.",
            code=code,
        )
    return error_response(
        500,
        "Image generation failed",
        f"Failed to generate image: {result.last_reason}",
        code="GENERATION_FAILED",
    )


def delivered_response(result: Delivered, mode: str) -> Response:
    if mode == "binary":
        return Response(
            content=result.image,
            media_type="image/png",
            headers={"X-Model-Used": result.backend_used},
        )
    return JSONResponse(
        {
            "success": True,
            "image": base64.b64encode(result.image).decode("ascii"),
            "city": result.place,
            "name": result.submitter,
            "timestamp": result.timestamp,
            "modelUsed": result.backend_used,
        }
    )


# ==================== Wiring ====================


def build_synthesizer() -> PromptSynthesizer:
    return PromptSynthesizer(get_text_generator(settings.text_api(), settings.text_model()))


def build_orchestrator() -> ImageOrchestrator:
    interval = settings.min_request_interval()
    return ImageOrchestrator(
        build_backends(settings.load_backend_specs()),
        max_retries=settings.max_retries(),
        base_delay=settings.backoff_base_seconds(),
        rate_limiter=MinIntervalRateLimiter(interval) if interval > 0 else NullRateLimiter(),
    )


def create_app(
    *,
    synthesizer: PromptSynthesizer | None = None,
    orchestrator: ImageOrchestrator | None = None,
    response_mode: str | None = None,
) -> FastAPI:
    """Build the API. Collaborators default to the ones described by settings/env."""
    synthesizer = synthesizer or build_synthesizer()
    orchestrator = orchestrator or build_orchestrator()
    mode = response_mode or settings.response_mode()
    if mode not in settings.RESPONSE_MODES:
        raise ValueError(f"Unknown response mode: {mode}")

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        yield
        await orchestrator.aclose()

    app = FastAPI(title="Postcard API", lifespan=lifespan)
    app.state.synthesizer = synthesizer
    app.state.orchestrator = orchestrator
    app.state.response_mode = mode

    @app.exception_handler(RequestValidationError)
    async def _bad_body(request: Request, exc: RequestValidationError) -> JSONResponse:
        return invalid_input("Request body must be a JSON object")

    @app.post("/api/image/prompt", response_model=PromptResponse)
    async def image_prompt(body: PromptRequest):
        """Write an image prompt for a city."""
        try:
            result = await app.state.synthesizer.synthesize(body.city)
        except InvalidInput:
            return invalid_input("City is required")
        except Exception as e:
            _LOG.exception("Prompt endpoint failed")
            return error_response(500, "Internal server error", str(e), code="INTERNAL_ERROR")
        return PromptResponse(city=result.place, imagePrompt=result.prompt)

    @app.post("/api/image/generation")
    async def image_generation(body: GenerationBody):
        """Render a prompt into an image via the backend chain."""
        try:
            request = GenerationRequest.from_body(body.imagePrompt, body.city, body.name)
        except InvalidInput:
            return invalid_input("Image prompt is required")

        _LOG.info(
            "Generation request from %s for %s: %s",
            request.submitter,
            request.place,
            request.prompt[:80],
        )
        try:
            result = await app.state.orchestrator.generate(request)
        except Exception as e:
            _LOG.exception("Generation endpoint failed")
            return error_response(500, "Internal server error", str(e), code="INTERNAL_ERROR")

        if isinstance(result, Exhausted):
            return exhausted_response(result)
        return delivered_response(result, app.state.response_mode)

    @app.get("/health")
    async def health():
        return {
            "status": "ok",
            "backends": [b.identifier for b in app.state.orchestrator.backends],
        }

    return app
