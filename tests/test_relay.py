import pytest
import requests
from fastapi.testclient import TestClient

from app import create_app


class UpstreamResponse:
    def __init__(self, status_code=200, payload=None, content=b"", text=""):
        self.status_code = status_code
        self.ok = 200 <= status_code < 300
        self._payload = payload
        self.content = content
        self.text = text

    def json(self):
        if isinstance(self._payload, Exception):
            raise self._payload
        return self._payload

    def iter_content(self, chunk_size=1):
        for i in range(0, len(self.content), chunk_size):
            yield self.content[i:i + chunk_size]


@pytest.fixture
def upstream(monkeypatch):
    calls = []
    responses = []

    def fake_post(url, *args, **kwargs):
        calls.append((url, kwargs))
        return responses.pop(0)

    monkeypatch.setattr(requests, "post", fake_post)
    fake_post.calls = calls
    fake_post.responses = responses
    return fake_post


@pytest.fixture
def client(monkeypatch):
    monkeypatch.setenv("DEEPGRAM_API_KEY", "dg-key")
    monkeypatch.setenv("OPENAI_API_KEY", "oa-key")
    return TestClient(create_app())


@pytest.fixture
def keyless_client(monkeypatch):
    monkeypatch.delenv("DEEPGRAM_API_KEY", raising=False)
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)
    return TestClient(create_app())


def test_health_reports_configured_keys(client):
    r = client.get("/api/health")

    assert r.status_code == 200
    assert r.json() == {"status": "ok", "deepgram": "configured", "openai": "configured"}


@pytest.mark.parametrize("path, body, provider", [
    ("/api/chat", {"messages": []}, "OpenAI"),
    ("/api/tts", {"text": "hi"}, "Deepgram"),
])
def test_missing_keys_are_reported(keyless_client, path, body, provider):
    r = keyless_client.post(path, json=body)

    assert r.status_code == 500
    assert r.json() == {"error": f"{provider} API key not configured"}


def test_stt_missing_key(keyless_client):
    r = keyless_client.post("/api/stt", content=b"RIFF", headers={"Content-Type": "audio/wav"})

    assert r.status_code == 500
    assert r.json() == {"error": "Deepgram API key not configured"}


def test_stt_forwards_body_and_content_type(client, upstream):
    payload = {"results": {"channels": [{"alternatives": [{"transcript": "Hello"}]}]}}
    upstream.responses.append(UpstreamResponse(payload=payload))

    r = client.post("/api/stt", content=b"RIFFdata", headers={"Content-Type": "audio/wav"})

    assert r.status_code == 200
    assert r.json() == payload
    url, kwargs = upstream.calls[0]
    assert url == "https://api.deepgram.com/v1/listen"
    assert kwargs["params"] == {"model": "nova-2", "smart_format": "true"}
    assert kwargs["headers"]["Authorization"] == "Token dg-key"
    assert kwargs["headers"]["Content-Type"] == "audio/wav"
    assert kwargs["data"] == b"RIFFdata"


def test_stt_passes_provider_status_through(client, upstream):
    upstream.responses.append(UpstreamResponse(status_code=401, text="bad key"))

    r = client.post("/api/stt", content=b"x", headers={"Content-Type": "audio/wav"})

    assert r.status_code == 401
    assert r.json() == {"error": "STT failed"}


def test_chat_prepends_system_prompt(client, upstream):
    completion = {"choices": [{"message": {"content": "Hi there!"}}]}
    upstream.responses.append(UpstreamResponse(payload=completion))
    messages = [{"role": "user", "content": "Hello"}]

    r = client.post("/api/chat", json={"messages": messages, "systemPrompt": "Be brief."})

    assert r.json() == completion
    url, kwargs = upstream.calls[0]
    assert url == "https://api.openai.com/v1/chat/completions"
    assert kwargs["json"]["model"] == "gpt-4o"
    assert kwargs["json"]["max_tokens"] == 1024
    assert kwargs["json"]["messages"] == [{"role": "system", "content": "Be brief."}] + messages


def test_chat_uses_default_system_prompt(client, upstream):
    upstream.responses.append(UpstreamResponse(payload={}))

    client.post("/api/chat", json={"messages": []})

    _, kwargs = upstream.calls[0]
    assert kwargs["json"]["messages"][0] == {"role": "system", "content": "You are a helpful voice assistant."}


@pytest.mark.parametrize("kwargs", [
    {},
    {"json": {}},
    {"json": {"messages": "hello"}},
    {"json": [{"role": "user", "content": "hi"}]},
    {"content": b"not json", "headers": {"Content-Type": "application/json"}},
])
def test_chat_rejects_bad_messages(client, kwargs):
    r = client.post("/api/chat", **kwargs)

    assert r.status_code == 400
    assert r.json() == {"error": "Invalid messages format"}


def test_chat_provider_failure(client, upstream):
    upstream.responses.append(UpstreamResponse(status_code=429, text="rate limited"))

    r = client.post("/api/chat", json={"messages": []})

    assert r.status_code == 429
    assert r.json() == {"error": "AI request failed"}


def test_chat_transport_error_is_internal(client, monkeypatch):
    def refuse(url, *args, **kwargs):
        raise requests.ConnectionError("down")

    monkeypatch.setattr(requests, "post", refuse)

    r = client.post("/api/chat", json={"messages": []})

    assert r.status_code == 500
    assert r.json() == {"error": "Internal server error"}


def test_tts_streams_audio(client, upstream):
    upstream.responses.append(UpstreamResponse(content=b"ID3" + b"\x00" * 20000))

    r = client.post("/api/tts", json={"text": "Hi there!", "voice": "aura-orion-en"})

    assert r.status_code == 200
    assert r.headers["content-type"] == "audio/mpeg"
    assert r.content.startswith(b"ID3")
    assert len(r.content) == 20003
    url, kwargs = upstream.calls[0]
    assert url == "https://api.deepgram.com/v1/speak"
    assert kwargs["params"] == {"model": "aura-orion-en"}
    assert kwargs["json"] == {"text": "Hi there!"}


def test_tts_defaults_voice(client, upstream):
    upstream.responses.append(UpstreamResponse(content=b"mp3"))

    client.post("/api/tts", json={"text": "Hi"})

    assert upstream.calls[0][1]["params"] == {"model": "aura-asteria-en"}


def test_tts_requires_text(client):
    r = client.post("/api/tts", json={"text": ""})

    assert r.status_code == 400
    assert r.json() == {"error": "Text is required"}


def test_tts_provider_failure(client, upstream):
    upstream.responses.append(UpstreamResponse(status_code=400, text="bad voice"))

    r = client.post("/api/tts", json={"text": "Hi", "voice": "nope"})

    assert r.status_code == 400
    assert r.json() == {"error": "TTS failed"}


@pytest.mark.parametrize("kwargs", [{}, {"json": ["Hi"]}])
def test_tts_without_object_body_requires_text(client, kwargs):
    r = client.post("/api/tts", **kwargs)

    assert r.status_code == 400
    assert r.json() == {"error": "Text is required"}


@pytest.mark.parametrize("path, kwargs", [
    ("/api/chat", {"json": {"messages": []}}),
    ("/api/stt", {"content": b"x", "headers": {"Content-Type": "audio/wav"}}),
])
def test_non_json_provider_reply_is_internal_error(client, upstream, path, kwargs):
    upstream.responses.append(UpstreamResponse(payload=ValueError("Expecting value"), text="<html>"))

    r = client.post(path, **kwargs)

    assert r.status_code == 500
    assert r.json() == {"error": "Internal server error"}
