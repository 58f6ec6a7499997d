"""Tests for the HTTP API."""

import json

import pytest
from fastapi.testclient import TestClient

from backend.main import app
from backend.rewrite import service as service_module
from backend.rewrite.dispatcher import TransformDispatcher
from backend.rewrite.orchestrator import Orchestrator
from backend.rewrite.service import RewriteService

from conftest import FakeProvider


@pytest.fixture
def provider() -> FakeProvider:
    return FakeProvider(fail_on=("explode",))


@pytest.fixture
def client(provider, monkeypatch):
    dispatcher = TransformDispatcher(provider_factory=lambda name: provider)
    svc = RewriteService(orchestrator=Orchestrator(dispatcher=dispatcher, cooldowns={}))
    monkeypatch.setattr(service_module, "_service", svc)

    with TestClient(app) as test_client:
        yield test_client


class TestPlan:
    def test_single_chunk(self, client):
        response = client.post("/api/plan", json={"document": "Short text."})

        assert response.status_code == 200
        data = response.json()
        assert data["total_chunks"] == 1
        assert data["requires_selection"] is False
        assert data["chunks"][0] == {"index": 0, "text": "Short text.", "token_estimate": 3}

    def test_multi_chunk(self, client, make_document):
        response = client.post("/api/plan", json={"document": make_document(10), "budget": 35})

        data = response.json()
        assert data["total_chunks"] == 4
        assert data["requires_selection"] is True
        assert [c["index"] for c in data["chunks"]] == [0, 1, 2, 3]

    def test_empty_document_is_bad_request(self, client):
        response = client.post("/api/plan", json={"document": "  "})

        assert response.status_code == 400
        assert "enter or upload text" in response.json()["detail"]


class TestProcess:
    def test_process_document(self, client):
        response = client.post(
            "/api/process",
            json={"document": "Hello world.", "options": {"instructions": "Shout"}},
        )

        assert response.status_code == 200
        data = response.json()
        assert data["result"] == "HELLO WORLD."
        assert data["state"] == "completed"
        assert data["failed_chunks"] == []

    def test_process_chunks_with_selection_and_failure(self, client):
        response = client.post(
            "/api/process",
            json={
                "chunks": ["one.", "explode.", "three."],
                "selection": [1, 2],
                "options": {"instructions": "Shout"},
            },
        )

        data = response.json()
        assert data["result"].startswith("one.\n\n[Chunk 2 could not be transformed:")
        assert data["result"].endswith("explode.\n\nTHREE.")
        assert data["failed_chunks"][0]["index"] == 1
        assert data["total_chunks"] == 2

    def test_bad_selection_is_bad_request(self, client, provider):
        response = client.post(
            "/api/process",
            json={"chunks": ["one.", "two."], "selection": [5], "options": {"instructions": "x"}},
        )

        assert response.status_code == 400
        assert provider.requests == []

    def test_missing_document_and_chunks(self, client):
        response = client.post("/api/process", json={"options": {"instructions": "x"}})

        assert response.status_code == 400

    def test_stream_ndjson(self, client):
        response = client.post(
            "/api/process",
            json={
                "chunks": ["one.", "two."],
                "options": {"instructions": "x"},
                "stream": True,
                "session_id": "session-1",
            },
        )

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("application/x-ndjson")
        assert response.headers["x-session-id"] == "session-1"

        lines = [json.loads(line) for line in response.text.splitlines() if line]
        progress = [line for line in lines if "current_chunk" in line]
        assert [p["current_chunk"] for p in progress] == [1, 2, 2]
        assert progress[-1]["accumulated_result"] == "ONE.\n\nTWO."
        assert lines[-1] == {"session_id": "session-1", "state": "completed", "failed_chunks": []}

    def test_cancel_unknown_session(self, client):
        response = client.post("/api/process/nothing-running/cancel")

        assert response.status_code == 200
        assert response.json() == {"session_id": "nothing-running", "cancelled": False}


class TestReprocessAndRefine:
    def test_reprocess_then_refine(self, client):
        response = client.post(
            "/api/reprocess",
            json={"chunks": ["one.", "two.", "three."], "indices": [1], "instructions": "formal"},
        )

        assert response.status_code == 200
        assert response.json()["result"] == "one.\n\nTWO.\n\nthree."

        response = client.post("/api/refine", json={"instructions": "again"})

        assert response.status_code == 200
        data = response.json()
        assert data["result"] == "ONE.\n\nTWO.\n\nTHREE."
        assert data["history"]["original_text"] == "one.\n\ntwo.\n\nthree."
        assert data["history"]["pending_refinement"] == ""

    def test_refine_with_supplied_history(self, client):
        response = client.post(
            "/api/refine",
            json={
                "instructions": "again",
                "history": {
                    "original_text": "orig",
                    "previous_instructions": "prev",
                    "current_rewrite": "current",
                },
            },
        )

        assert response.json()["result"] == "CURRENT"

    def test_refine_without_history_is_bad_request(self, client):
        response = client.post("/api/refine", json={"instructions": "again"})

        assert response.status_code == 400

    def test_refine_provider_failure(self, client):
        response = client.post(
            "/api/refine",
            json={
                "instructions": "again",
                "history": {
                    "original_text": "orig",
                    "previous_instructions": "prev",
                    "current_rewrite": "explode",
                },
            },
        )

        assert response.status_code == 502

    def test_reprocess_empty_selection_is_bad_request(self, client):
        response = client.post(
            "/api/reprocess",
            json={"chunks": ["one.", "two."], "indices": [], "instructions": "formal"},
        )

        assert response.status_code == 400


def test_health(client, monkeypatch):
    from backend.config import get_settings

    monkeypatch.setenv("ANTHROPIC_API_KEY", "sk-test")
    get_settings.cache_clear()

    response = client.get("/api/health")

    data = response.json()
    assert data["status"] == "healthy"
    assert data["configured_providers"] == ["anthropic"]
