"""Tests for the HTTP job API."""
from __future__ import annotations

import time

import pytest
from fastapi.testclient import TestClient

from conftest import FakeBackend, FakeEncoder, GateBackend
from aurora_tts.api.dependencies import get_job_manager
from aurora_tts.core.config import ServiceConfig
from aurora_tts.main import create_app
from aurora_tts.services.job_manager import JobManager


def _client(backend=None):
    manager = JobManager(config=ServiceConfig(), backend=backend or FakeBackend(), encoder=FakeEncoder())
    app = create_app()
    app.dependency_overrides[get_job_manager] = lambda: manager
    return TestClient(app), manager


def _poll(client: TestClient, job_id: str, timeout: float = 5.0) -> dict:
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        body = client.get(f"/api/tts/{job_id}").json()
        if body["status"] in ("completed", "failed"):
            return body
        time.sleep(0.02)
    raise AssertionError(f"job {job_id} did not finish")


@pytest.fixture
def api():
    client, manager = _client()
    yield client
    manager.shutdown()


class TestSubmitJob:
    """POST /api/tts"""

    def test_accepted(self, api):
        r = api.post("/api/tts", json={"text": "Olá, mundo.", "voiceId": "fem-soft"})
        assert r.status_code == 202
        job_id = r.json()["jobId"]
        assert len(job_id) == 36

    def test_all_parameters(self, api):
        r = api.post("/api/tts", json={
            "text": "Olá.", "voiceId": "masc-deep", "speed": 1.2, "pitch": -2, "emotion": "épico",
        })
        assert r.status_code == 202

    @pytest.mark.parametrize("body", [
        {"voiceId": "fem-soft"},
        {"text": "   ", "voiceId": "fem-soft"},
        {"text": "...", "voiceId": "fem-soft"},
        {"text": "Olá."},
        {"text": "Olá.", "voiceId": "robot"},
        {"text": "Olá.", "voiceId": "fem-soft", "emotion": "raiva"},
        {"text": "x" * 100_001, "voiceId": "fem-soft"},
    ])
    def test_invalid_request(self, api, body):
        r = api.post("/api/tts", json=body)
        assert r.status_code == 400
        j = r.json()
        assert j["ok"] is False
        assert j["error"] == "INVALID_REQUEST"
        assert j["message"]

    def test_malformed_field_type(self, api):
        """Schema errors use the same 400 body as validation errors."""
        r = api.post("/api/tts", json={"text": "Olá.", "voiceId": "fem-soft", "speed": "fast"})
        assert r.status_code == 400
        assert r.json()["error"] == "INVALID_REQUEST"
        assert "speed" in r.json()["message"]

    def test_body_not_json_object(self, api):
        r = api.post("/api/tts", json=["Olá."])
        assert r.status_code == 400
        assert r.json()["error"] == "INVALID_REQUEST"


class TestJobStatus:
    """GET /api/tts/{jobId}"""

    def test_completed_job(self, api):
        job_id = api.post("/api/tts", json={"text": "A. B.", "voiceId": "fem-soft"}).json()["jobId"]
        body = _poll(api, job_id)

        assert body["status"] == "completed"
        assert body["progress"] == 100
        assert body["downloadUrl"] == f"/api/tts/{job_id}/audio"
        assert body["duration"] > 0
        assert "error" not in body

    def test_failed_job(self):
        def boom():
            raise RuntimeError("backend down")

        client, manager = _client(FakeBackend(hooks={"Olá.": boom}))
        try:
            job_id = client.post("/api/tts", json={"text": "Olá.", "voiceId": "fem-soft"}).json()["jobId"]
            body = _poll(client, job_id)
            assert body["status"] == "failed"
            assert "backend down" in body["error"]
            assert "downloadUrl" not in body

            r = client.get(f"/api/tts/{job_id}/audio")
            assert r.status_code == 409
        finally:
            manager.shutdown()

    def test_unknown_job(self, api):
        r = api.get("/api/tts/00000000-0000-0000-0000-000000000000")
        assert r.status_code == 404
        assert r.json()["error"] == "NOT_FOUND"


class TestDownloadAudio:
    """GET /api/tts/{jobId}/audio"""

    def test_download(self, api):
        job_id = api.post("/api/tts", json={"text": "Olá.", "voiceId": "fem-soft"}).json()["jobId"]
        _poll(api, job_id)

        r = api.get(f"/api/tts/{job_id}/audio")
        assert r.status_code == 200
        assert r.headers["content-type"] == "audio/mpeg"
        assert r.headers["content-disposition"] == f'attachment; filename="aurora-{job_id}.mp3"'
        assert int(r.headers["content-length"]) == len(r.content)
        assert r.headers["x-request-id"]
        assert r.content.startswith(b"ID3")

    def test_not_ready(self):
        backend = GateBackend()
        client, manager = _client(backend)
        try:
            job_id = client.post("/api/tts", json={"text": "Olá.", "voiceId": "fem-soft"}).json()["jobId"]
            r = client.get(f"/api/tts/{job_id}/audio")
            assert r.status_code == 409
            assert r.json()["error"] == "NOT_READY"

            status = client.get(f"/api/tts/{job_id}").json()
            assert status["status"] in ("queued", "processing")
            assert "downloadUrl" not in status
        finally:
            backend.release()
            manager.shutdown()

    def test_unknown_job(self, api):
        r = api.get("/api/tts/nope/audio")
        assert r.status_code == 404


class TestCatalogAndOps:
    def test_voices(self, api):
        r = api.get("/api/voices")
        assert r.status_code == 200
        j = r.json()
        ids = [v["id"] for v in j["voices"]]
        assert "masc-deep" in ids and "fem-soft" in ids
        assert "neutro" in j["emotions"]

    def test_health(self, api):
        r = api.get("/health")
        assert r.status_code == 200
        j = r.json()
        assert j["ok"] is True
        assert j["backend"] == "fake"
        assert "jobs" in j

    def test_metrics(self, api):
        r = api.get("/metrics")
        assert r.status_code == 200

    def test_lifespan_skips_warmup(self, monkeypatch):
        """With AURORA_TTS_SKIP_WARMUP=1 startup does not load the backend."""
        monkeypatch.setenv("AURORA_TTS_SKIP_WARMUP", "1")
        backend = FakeBackend()
        client, manager = _client(backend)
        with client:
            assert client.get("/health").status_code == 200
        assert backend.is_loaded() is False
        manager.shutdown()
