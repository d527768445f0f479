"""Integration test fixtures.

The full FastAPI app runs in-process against a real OllamaEngine whose
HTTP transport is a scripted fake Ollama server, so the whole request path
(routing, classification, normalization, records) is exercised without a
running Ollama or Redis.
"""

import json

import httpx
import pytest
from fastapi.testclient import TestClient

from jobmail_inference.api.dependencies import get_service
from jobmail_inference.llm.ollama_client import OllamaEngine
from jobmail_inference.main import app
from jobmail_inference.persistence.memory_store import InMemoryRecordStore
from jobmail_inference.service import build_service

STAGE1_JOB = '{"is_job": true, "risk_level": "low"}'
STAGE2_FULL = '{"company": "Acme", "position": "Data Analyst", "status": "Applied", "confidence": 0.92}'


class FakeOllamaServer:
    """
    httpx.MockTransport handler imitating the Ollama endpoints we call.

    Generation output is chosen by the title of the JSON Schema sent as
    ``format``. Set ``generate_status`` to make /api/generate fail and
    ``healthy`` to make /api/tags fail.
    """

    def __init__(self):
        self.outputs = {"stage1_classification": STAGE1_JOB, "stage2_extraction": STAGE2_FULL}
        self.generate_status = 200
        self.healthy = True
        self.generated: list[str] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        if request.url.path == "/api/tags":
            return httpx.Response(200 if self.healthy else 503, json={"models": []})
        if request.url.path == "/api/show":
            return httpx.Response(200, json={"details": {"family": "llama"}})
        if request.url.path == "/api/generate":
            payload = json.loads(request.content)
            title = payload["format"].get("title", "") if isinstance(payload["format"], dict) else ""
            self.generated.append(title)
            if self.generate_status != 200:
                return httpx.Response(self.generate_status, text="model crashed")
            return httpx.Response(
                200,
                json={"model": payload["model"], "response": self.outputs[title], "done": True, "eval_count": 12},
            )
        return httpx.Response(404)


@pytest.fixture
def fake_ollama() -> FakeOllamaServer:
    return FakeOllamaServer()


@pytest.fixture
def api_service(test_settings, fake_ollama):
    """JobMailService over the fake Ollama server and an in-memory store."""
    engine = OllamaEngine(base_url="http://ollama.test", timeout=5)
    engine._client = httpx.AsyncClient(base_url=engine.base_url, transport=httpx.MockTransport(fake_ollama))
    return build_service(test_settings, engine=engine, store=InMemoryRecordStore())


@pytest.fixture
def client(api_service):
    """TestClient with the service dependency overridden.

    Not entered as a context manager: startup/shutdown hooks would build
    the process-wide service from real settings.
    """
    app.dependency_overrides[get_service] = lambda: api_service
    yield TestClient(app)
    app.dependency_overrides.clear()
