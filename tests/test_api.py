"""Tests for the HTTP, SSE and WebSocket surfaces."""

import asyncio
import json
from contextlib import suppress
from datetime import timedelta

import pytest
from fastapi.testclient import TestClient

from app.api.dependencies import get_sequencer, get_session_store
from app.api.routes.socket import parse_send_message
from app.main import app, sweep_expired_sessions
from app.middleware.llm_rate_limiter import LLMConcurrencyManager, configure_global_rate_limits


@pytest.fixture
def client(store, sequencer):
    app.dependency_overrides[get_session_store] = lambda: store
    app.dependency_overrides[get_sequencer] = lambda: sequencer
    yield TestClient(app)
    app.dependency_overrides.clear()


def parse_sse(body: str) -> list[tuple[str, dict]]:
    events = []
    for block in body.strip().split("\n\n"):
        lines = dict(line.split(": ", 1) for line in block.split("\n"))
        events.append((lines["event"], json.loads(lines["data"])))
    return events


def receive_until_complete(ws) -> list[dict]:
    frames = []
    while True:
        frame = ws.receive_json()
        frames.append(frame)
        if frame["event"] in ("all_responses_complete", "error"):
            return frames


class TestServiceEndpoints:
    def test_root_and_health(self, client):
        assert client.get("/").json()["service"] == "sequential-chat"
        assert client.get("/health").json() == {"status": "healthy"}
        assert client.get("/live").json() == {"status": "alive"}

    def test_ready_without_lifespan_reports_not_ready(self, client):
        assert client.get("/ready").json()["status"] == "not_ready"

    def test_ready_reports_models_and_llm_stats(self, client, sequencer, monkeypatch):
        monkeypatch.setattr(app.state, "sequencer", sequencer, raising=False)
        configure_global_rate_limits(max_concurrent=2, requests_per_second=1.0)

        body = client.get("/ready").json()

        assert body["status"] == "ready"
        assert body["models"] == ["A", "B"]
        assert body["llm"]["max_concurrent"] == 2
        assert body["llm"]["active_calls"] == 0

    def test_ready_without_manager_reports_no_llm_stats(self, client, sequencer, monkeypatch):
        monkeypatch.setattr(app.state, "sequencer", sequencer, raising=False)

        assert LLMConcurrencyManager.current() is None
        assert client.get("/ready").json()["llm"] is None

    def test_stream_health_lists_model_sequence(self, client):
        body = client.get("/chat/stream/health").json()
        assert body["models"] == [
            {"id": "A", "modelRef": "model-a", "order": 1},
            {"id": "B", "modelRef": "model-b", "order": 2},
        ]


class TestSessionSweeper:
    @pytest.mark.asyncio
    async def test_keeps_running_after_a_failed_purge(self, store, monkeypatch, caplog):
        purges: list[timedelta] = []

        def purge_expired(max_age, now=None):
            purges.append(max_age)
            if len(purges) == 1:
                raise RuntimeError("store unavailable")
            return 0

        monkeypatch.setattr(store, "purge_expired", purge_expired)
        sweeper = asyncio.create_task(sweep_expired_sessions(store, timedelta(minutes=5), 0))
        try:
            for _ in range(100):
                if len(purges) >= 2:
                    break
                await asyncio.sleep(0)

            assert len(purges) >= 2
            assert not sweeper.done()
            assert "Session expiry sweep failed" in caplog.text
        finally:
            sweeper.cancel()
            with suppress(asyncio.CancelledError):
                await sweeper


class TestSessionRoutes:
    def test_create_with_generated_id(self, client, store):
        response = client.post("/sessions")
        assert response.status_code == 201
        session_id = response.json()["sessionId"]
        assert session_id in store
        assert response.json()["messageCount"] == 0

    def test_create_with_supplied_id(self, client, store):
        response = client.post("/sessions", json={"sessionId": "mine"})
        assert response.status_code == 201
        assert response.json()["sessionId"] == "mine"
        assert "mine" in store

    def test_get_unknown_session_is_404(self, client):
        assert client.get("/sessions/nope").status_code == 404
        assert client.get("/sessions/nope/messages").status_code == 404
        assert client.delete("/sessions/nope").status_code == 404

    def test_delete(self, client, store):
        assert client.delete("/sessions/s1").status_code == 204
        assert "s1" not in store


class TestChatStream:
    def test_streams_all_models_in_order(self, client):
        response = client.post("/chat/stream", json={"message": "hi", "sessionId": "s1"})

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/event-stream")
        events = parse_sse(response.text)
        assert [name for name, _ in events] == [
            "receive_message",
            "receive_message",
            "model_complete",
            "receive_message",
            "receive_message",
            "model_complete",
            "all_responses_complete",
        ]
        assert events[0][1] == {
            "modelId": "A",
            "message": "hello",
            "isComplete": False,
            "sessionId": "s1",
            "order": 1,
        }
        assert events[3][1]["message"] == "hi, hello"
        assert events[4][1]["isComplete"] is True

    def test_transcript_available_after_stream(self, client):
        client.post("/chat/stream", json={"message": "hi", "sessionId": "s1"})

        body = client.get("/sessions/s1/messages").json()
        assert [(m["role"], m["modelId"], m["content"]) for m in body["messages"]] == [
            ("user", None, "hi"),
            ("assistant", "A", "hello"),
            ("assistant", "B", "hi, hello"),
        ]
        assert client.get("/sessions/s1").json()["messageCount"] == 3

    def test_history_reads_are_stable(self, client):
        client.post("/chat/stream", json={"message": "hi", "sessionId": "s1"})
        first = client.get("/sessions/s1/messages").json()
        second = client.get("/sessions/s1/messages").json()
        assert first == second

    def test_unknown_session_streams_single_error(self, client, generator):
        response = client.post("/chat/stream", json={"message": "hi", "sessionId": "nope"})

        assert parse_sse(response.text) == [
            ("error", {"code": "invalid_session", "message": "Invalid session ID"})
        ]
        assert generator.calls == []

    @pytest.mark.parametrize("body", [{"message": "hi"}, {"message": "hi", "sessionId": ""}])
    def test_missing_session_id_streams_invalid_session(self, client, generator, body):
        response = client.post("/chat/stream", json=body)

        assert response.status_code == 200
        assert parse_sse(response.text) == [
            ("error", {"code": "invalid_session", "message": "Invalid session ID"})
        ]
        assert generator.calls == []

    def test_empty_message_is_answered(self, client, generator, store):
        response = client.post("/chat/stream", json={"message": "", "sessionId": "s1"})

        assert parse_sse(response.text)[-1][0] == "all_responses_complete"
        assert [model_id for model_id, _ in generator.calls] == ["A", "B"]
        assert store.get_history("s1")[0].content == ""

    def test_body_without_message_rejected(self, client):
        assert client.post("/chat/stream", json={"sessionId": "s1"}).status_code == 422


class TestWebSocket:
    def test_send_message_round_trip(self, client, store):
        with client.websocket_connect("/ws") as ws:
            ws.send_json({"event": "send_message", "data": {"message": "hi", "sessionId": "s1"}})
            frames = receive_until_complete(ws)

        assert [f["event"] for f in frames] == [
            "receive_message",
            "receive_message",
            "model_complete",
            "receive_message",
            "receive_message",
            "model_complete",
            "all_responses_complete",
        ]
        assert frames[-1]["data"] == {"sessionId": "s1"}
        assert len(store.get_history("s1")) == 3

    def test_invalid_session(self, client):
        with client.websocket_connect("/ws") as ws:
            ws.send_json({"event": "send_message", "data": {"message": "hi", "sessionId": "nope"}})
            frames = receive_until_complete(ws)

        assert frames == [
            {"event": "error", "data": {"code": "invalid_session", "message": "Invalid session ID"}}
        ]

    def test_malformed_frame_keeps_socket_open(self, client):
        with client.websocket_connect("/ws") as ws:
            ws.send_text("not json")
            error = ws.receive_json()
            assert error["event"] == "error"
            assert error["data"]["code"] == "model_error"

            ws.send_json({"event": "send_message", "data": {"message": "hi", "sessionId": "s1"}})
            frames = receive_until_complete(ws)

        assert frames[-1]["event"] == "all_responses_complete"

    def test_missing_session_id_is_invalid_session(self, client, generator):
        with client.websocket_connect("/ws") as ws:
            ws.send_json({"event": "send_message", "data": {"message": "hi"}})
            frames = receive_until_complete(ws)

        assert frames == [
            {"event": "error", "data": {"code": "invalid_session", "message": "Invalid session ID"}}
        ]
        assert generator.calls == []

    def test_empty_message_runs_every_model(self, client, store):
        with client.websocket_connect("/ws") as ws:
            ws.send_json({"event": "send_message", "data": {"message": "", "sessionId": "s1"}})
            frames = receive_until_complete(ws)

        assert frames[-1]["event"] == "all_responses_complete"
        assert len(store.get_history("s1")) == 3

    def test_failing_model_reported_in_band(self, client, generator):
        generator.scripts["A"] = RuntimeError("backend down")

        with client.websocket_connect("/ws") as ws:
            ws.send_json({"event": "send_message", "data": {"message": "hi", "sessionId": "s1"}})
            frames = receive_until_complete(ws)

        chunks_a = [f["data"] for f in frames if f["event"] == "receive_message" and f["data"]["modelId"] == "A"]
        assert [c["message"] for c in chunks_a] == ["Error: backend down", ""]
        assert frames[-1]["event"] == "all_responses_complete"


class TestParseSendMessage:
    def test_valid_frame(self):
        request = parse_send_message(json.dumps({"event": "send_message", "data": {"message": "hi", "sessionId": "s1"}}))
        assert request.message == "hi"
        assert request.session_id == "s1"

    @pytest.mark.parametrize(
        "data, message, session_id",
        [
            ({"message": "hi"}, "hi", ""),
            ({"message": "", "sessionId": ""}, "", ""),
            ({"message": "", "sessionId": "s1"}, "", "s1"),
        ],
    )
    def test_empty_fields_left_to_the_sequencer(self, data, message, session_id):
        request = parse_send_message(json.dumps({"event": "send_message", "data": data}))
        assert request.message == message
        assert request.session_id == session_id

    @pytest.mark.parametrize(
        "raw",
        [
            "{",
            json.dumps(["send_message"]),
            json.dumps({"event": "other", "data": {}}),
            json.dumps({"event": "send_message"}),
            json.dumps({"event": "send_message", "data": {"message": 5, "sessionId": "s1"}}),
        ],
    )
    def test_invalid_frames(self, raw):
        with pytest.raises(ValueError):
            parse_send_message(raw)
