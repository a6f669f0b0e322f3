"""
HTTP API Tests
==============

Endpoints exercised through FastAPI's TestClient against a service
wired to fakes.
"""

import json

import pytest
from fastapi.testclient import TestClient

from bridgewatch.main import create_app
from bridgewatch.service import TrafficService

from conftest import STRUCTURED_ANSWER, FakeGrabber, FakeVisionClient, RecordingSink


@pytest.fixture
def service(test_settings):
    return TrafficService(
        test_settings,
        grabber=FakeGrabber(),
        classifier_client=FakeVisionClient(reply="BRIDGE"),
        answer_client=FakeVisionClient(reply=STRUCTURED_ANSWER),
        sink=RecordingSink(),
    )


@pytest.fixture
def client(service):
    with TestClient(create_app(service, run_scheduler=False)) as test_client:
        yield test_client


class TestInfo:
    """Service information and diagnostics."""

    def test_root(self, client):
        response = client.get("/")
        assert response.status_code == 200
        assert response.json()["service"] == "bridgewatch"

    def test_health(self, client):
        body = client.get("/api/health").json()

        assert body["status"] == "ok"
        assert body["last_capture"] == "none"
        assert body["scheduler"]["running"] is False
        for key in ("frames", "classifier", "detector", "analysis", "persistence"):
            assert key in body
        assert body["detector"]["configured"] is False


class TestStatus:
    """Unprompted updates."""

    def test_status_captures_then_answers(self, client, service):
        response = client.get("/api/status")

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["message"] == STRUCTURED_ANSWER
        assert body["frames_used"] == 1
        assert service.grabber.calls == 1

    def test_second_status_is_cached(self, client, service):
        client.get("/api/status")
        body = client.get("/api/status").json()

        assert body["cached"] is True
        assert service.grabber.calls == 1
        assert len(service.answer_client.calls) == 1

    def test_service_error_is_500(self, client, service):
        async def broken():
            raise RuntimeError("boom")

        service.status = broken
        response = client.get("/api/status")

        assert response.status_code == 500
        assert response.json() == {"success": False, "message": "Failed to get traffic status"}


class TestChat:
    """Question answering."""

    @pytest.mark.parametrize("payload", [{}, {"message": ""}, {"message": "   "}])
    def test_missing_message(self, client, payload):
        response = client.post("/api/chat", json=payload)

        assert response.status_code == 400
        assert response.json()["message"] == "Please provide a message"

    def test_answer(self, client, service):
        response = client.post("/api/chat", json={"message": "is it busy?"})

        assert response.status_code == 200
        assert response.json()["success"] is True
        assert service.answer_client.calls[0]["prompt"] == "Traveller's question: is it busy?"

    def test_stream(self, client):
        response = client.post("/api/chat/stream", json={"message": "is it busy?"})

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/event-stream")
        events = [event for event in response.text.split("\n\n") if event]
        chunks = [
            json.loads(event[len("data: "):])["text"]
            for event in events
            if event.startswith("data: {")
        ]
        assert "".join(chunks) == STRUCTURED_ANSWER
        assert events[-2].startswith("event: result\ndata: ")
        result = json.loads(events[-2].split("data: ", 1)[1])
        assert result["success"] is True
        assert events[-1] == "data: [DONE]"

    def test_stream_missing_message(self, client):
        response = client.post("/api/chat/stream", json={"message": ""})
        assert response.status_code == 400


class TestScreenshot:
    """Raw frame access."""

    def test_unavailable_before_capture(self, client):
        response = client.get("/api/screenshot")

        assert response.status_code == 503
        assert response.json()["message"] == "No screenshot available"

    def test_latest_frame_after_capture(self, client, service):
        client.get("/api/status")
        response = client.get("/api/screenshot")

        assert response.status_code == 200
        assert response.headers["content-type"] == "image/jpeg"
        assert response.content == service.latest_frame().image
