"""Black-box tests for the HTTP boundary using FastAPI's TestClient."""

from __future__ import annotations

import base64
import json

import pytest
from fastapi.testclient import TestClient

from conftest import PNG_BYTES, ScriptedImageGenerator, ScriptedTextGenerator, auth_error, capacity_error
from postcardgen.api import create_app
from postcardgen.orchestrator import BackendDescriptor, GenerationRequest, ImageOrchestrator
from postcardgen.prompt import PromptSynthesizer


async def _no_sleep(delay: float) -> None:
    return None


def _orchestrator(*scripts) -> ImageOrchestrator:
    backends = [
        BackendDescriptor(identifier=f"model-{i}", generator=ScriptedImageGenerator(s), rank=i)
        for i, s in enumerate(scripts)
    ]
    return ImageOrchestrator(backends, max_retries=3, sleep=_no_sleep)


@pytest.fixture
def make_client():
    def _factory(*scripts, text_response="A postcard of Lisbon trams", text_error=None, mode="json"):
        app = create_app(
            synthesizer=PromptSynthesizer(ScriptedTextGenerator(text_response, error=text_error)),
            orchestrator=_orchestrator(*(scripts or ([PNG_BYTES],))),
            response_mode=mode,
        )
        return TestClient(app)

    return _factory


class TestPromptEndpoint:
    def test_returns_prompt(self, make_client):
        with make_client() as client:
            rsp = client.post("/api/image/prompt", json={"city": "Lisbon"})
        assert rsp.status_code == 200
        assert rsp.json() == {"city": "Lisbon", "imagePrompt": "A postcard of Lisbon trams"}

    @pytest.mark.parametrize("body", [{}, {"city": ""}, {"city": "   "}])
    def test_missing_city_is_400(self, make_client, body):
        with make_client() as client:
            rsp = client.post("/api/image/prompt", json=body)
        assert rsp.status_code == 400
        assert rsp.json()["code"] == "INVALID_INPUT"

    def test_text_model_failure_still_succeeds(self, make_client):
        with make_client(text_error=RuntimeError("down")) as client:
            rsp = client.post("/api/image/prompt", json={"city": "Lima"})
        assert rsp.status_code == 200
        assert "Lima" in rsp.json()["imagePrompt"]

    def test_malformed_body_is_400(self, make_client):
        with make_client() as client:
            rsp = client.post(
                "/api/image/prompt",
                content=b"not json",
                headers={"Content-Type": "application/json"},
            )
        assert rsp.status_code == 400


class TestGenerationEndpoint:
    def test_json_mode(self, make_client):
        with make_client([PNG_BYTES], mode="json") as client:
            rsp = client.post(
                "/api/image/generation",
                json={"imagePrompt": "a lighthouse", "city": "Porto", "name": "Rui"},
            )
        assert rsp.status_code == 200
        data = rsp.json()
        assert data["success"] is True
        assert base64.b64decode(data["image"]) == PNG_BYTES
        assert (data["city"], data["name"], data["modelUsed"]) == ("Porto", "Rui", "model-0")
        assert data["timestamp"]

    def test_json_mode_defaults_metadata(self, make_client):
        with make_client([PNG_BYTES]) as client:
            data = client.post("/api/image/generation", json={"imagePrompt": "a lighthouse"}).json()
        assert (data["city"], data["name"]) == ("Unknown", "Anonymous")

    def test_binary_mode(self, make_client):
        with make_client([capacity_error()], [PNG_BYTES], mode="binary") as client:
            rsp = client.post("/api/image/generation", json={"imagePrompt": "a lighthouse"})
        assert rsp.status_code == 200
        assert rsp.headers["content-type"] == "image/png"
        assert rsp.headers["x-model-used"] == "model-1"
        assert rsp.content == PNG_BYTES

    @pytest.mark.parametrize("body", [{}, {"imagePrompt": ""}, {"city": "Porto"}])
    def test_missing_prompt_is_400(self, make_client, body):
        with make_client() as client:
            rsp = client.post("/api/image/generation", json=body)
        assert rsp.status_code == 400
        assert rsp.json()["code"] == "INVALID_INPUT"

    def test_single_backend_capacity_is_503(self, make_client):
        with make_client([capacity_error()]) as client:
            rsp = client.post("/api/image/generation", json={"imagePrompt": "a lighthouse"})
        assert rsp.status_code == 503
        body = rsp.json()
        assert body["code"] == "CAPACITY_EXCEEDED"
        assert body["error"] and body["message"]

    def test_all_models_capacity_is_503(self, make_client):
        with make_client([capacity_error()], [capacity_error()]) as client:
            rsp = client.post("/api/image/generation", json={"imagePrompt": "a lighthouse"})
        assert rsp.status_code == 503
        assert rsp.json()["code"] == "ALL_MODELS_UNAVAILABLE"

    def test_non_capacity_exhaustion_is_500(self, make_client):
        with make_client([capacity_error()], [auth_error()]) as client:
            rsp = client.post("/api/image/generation", json={"imagePrompt": "a lighthouse"})
        assert rsp.status_code == 500
        body = rsp.json()
        assert body["code"] == "GENERATION_FAILED"
        assert "Authentication error" in body["message"]


def test_health_lists_backends(make_client):
    with make_client([PNG_BYTES], [PNG_BYTES]) as client:
        rsp = client.get("/health")
    assert rsp.json() == {"status": "ok", "backends": ["model-0", "model-1"]}


def test_unknown_response_mode_rejected():
    with pytest.raises(ValueError):
        create_app(
            synthesizer=PromptSynthesizer(ScriptedTextGenerator("x")),
            orchestrator=_orchestrator([PNG_BYTES]),
            response_mode="xml",
        )


def test_unexpected_generation_error_has_code():
    def broken_classifier(exc):
        raise RuntimeError("classifier exploded")

    orchestrator = ImageOrchestrator(
        [BackendDescriptor("model-0", ScriptedImageGenerator([capacity_error()]))],
        classifier=broken_classifier,
        sleep=_no_sleep,
    )
    app = create_app(
        synthesizer=PromptSynthesizer(ScriptedTextGenerator("x")),
        orchestrator=orchestrator,
    )
    with TestClient(app) as client:
        rsp = client.post("/api/image/generation", json={"imagePrompt": "a lighthouse"})

    assert rsp.status_code == 500
    body = rsp.json()
    assert body["code"] == "INTERNAL_ERROR"
    assert body["message"] == "classifier exploded"


def test_unexpected_prompt_error_has_code():
    class BrokenSynthesizer(PromptSynthesizer):
        async def synthesize(self, place):
            raise RuntimeError("synthesizer exploded")

    app = create_app(
        synthesizer=BrokenSynthesizer(ScriptedTextGenerator("x")),
        orchestrator=_orchestrator([PNG_BYTES]),
    )
    with TestClient(app) as client:
        rsp = client.post("/api/image/prompt", json={"city": "Lisbon"})

    assert rsp.status_code == 500
    assert rsp.json()["code"] == "INTERNAL_ERROR"


def test_starts_with_only_cloudflare_keys(temp_dir, monkeypatch):
    chain = [
        {"api": "cloudflare", "model": "@cf/leonardo/lucid-origin", "steps": 3},
        {"api": "replicate", "model": "black-forest-labs/flux-schnell", "steps": 4},
    ]
    path = temp_dir / "backends.json"
    path.write_text(json.dumps(chain))
    monkeypatch.setenv("IMAGE_BACKENDS_FILE", str(path))
    monkeypatch.setenv("CLOUDFLARE_ACCOUNT_ID", "acct")
    monkeypatch.setenv("CLOUDFLARE_API_TOKEN", "token")
    monkeypatch.delenv("REPLICATE_API_TOKEN", raising=False)

    app = create_app(synthesizer=PromptSynthesizer(ScriptedTextGenerator("x")))
    with TestClient(app) as client:
        rsp = client.get("/health")

    assert rsp.json()["backends"] == ["@cf/leonardo/lucid-origin", "black-forest-labs/flux-schnell"]


@pytest.mark.asyncio
async def test_backend_without_keys_is_skipped(monkeypatch):
    from postcardgen.image_generators import ReplicateImageGenerator

    monkeypatch.delenv("REPLICATE_API_TOKEN", raising=False)
    orchestrator = ImageOrchestrator(
        [
            BackendDescriptor("flux-schnell", ReplicateImageGenerator(), rank=0),
            BackendDescriptor("model-1", ScriptedImageGenerator([PNG_BYTES]), rank=1),
        ],
        sleep=_no_sleep,
    )

    result = await orchestrator.generate(GenerationRequest("a lighthouse"))

    assert result.backend_used == "model-1"
    assert result.attempts == 2
