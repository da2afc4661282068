import json

import pytest
import requests

from carelink.services import ai_assistant


class FakeResponse:
    def __init__(self, status_code=200, chunks=(), text=""):
        self.status_code = status_code
        self.ok = status_code < 400
        self.text = text
        self._chunks = chunks
        self.closed = False

    def iter_lines(self, decode_unicode=False):
        for chunk in self._chunks:
            yield "data: " + json.dumps({"choices": [{"delta": {"content": chunk}}]})
        yield "data: [DONE]"

    def close(self):
        self.closed = True


@pytest.fixture()
def openrouter(monkeypatch):
    """Queue fake responses per model and record which models were called."""
    replies = {}
    calls = []

    def fake_post(url, headers=None, json=None, stream=False):
        calls.append(json["model"])
        reply = replies.get(json["model"])
        if isinstance(reply, Exception):
            raise reply
        return reply or FakeResponse(status_code=503, text="unavailable")

    monkeypatch.setattr(ai_assistant.requests, "post", fake_post)
    return replies, calls


CHAT = {"messages": [{"role": "user", "content": "I have a headache"}], "api_key": "test-key"}


def test_falls_back_to_next_model(client, signup, openrouter):
    replies, calls = openrouter
    first, second = ai_assistant.settings.AI_MODELS[:2]
    replies[first] = FakeResponse(status_code=429, text="rate limited")
    replies[second] = FakeResponse(chunks=["Drink ", "water."])
    _, headers = signup("pat@example.com")

    res = client.post("/ai-doctor/chat", json={**CHAT, "stream": False}, headers=headers)
    assert res.status_code == 200, res.text
    assert res.json()["role"] == "assistant"
    assert res.json()["content"] == "Drink water."
    assert calls == [first, second]


def test_streaming_reply(client, signup, openrouter):
    replies, _ = openrouter
    first = ai_assistant.settings.AI_MODELS[0]
    replies[first] = FakeResponse(chunks=["Rest ", "and ", "hydrate."])
    _, headers = signup("pat@example.com")

    res = client.post("/ai-doctor/chat", json=CHAT, headers=headers)
    assert res.status_code == 200
    assert res.headers["content-type"].startswith("text/plain")
    assert res.text == "Rest and hydrate."


def test_all_models_failing_returns_apology(client, signup, openrouter):
    replies, calls = openrouter
    replies[ai_assistant.settings.AI_MODELS[0]] = requests.ConnectionError("boom")
    _, headers = signup("pat@example.com")

    res = client.post("/ai-doctor/chat", json=CHAT, headers=headers)
    assert res.status_code == 502
    body = res.json()
    assert body["detail"] == "All models failed to respond"
    assert "911" in body["reply"]
    assert calls == list(ai_assistant.settings.AI_MODELS)


def test_empty_reply_moves_to_next_model(openrouter):
    replies, calls = openrouter
    replies["a"] = FakeResponse(chunks=[])
    replies["b"] = FakeResponse(chunks=["ok"])
    assert "".join(ai_assistant.stream_reply("key", CHAT["messages"], models=["a", "b"])) == "ok"
    assert calls == ["a", "b"]


def test_transcript_must_end_with_user_message(client, signup, openrouter):
    _, headers = signup("pat@example.com")
    res = client.post(
        "/ai-doctor/chat",
        json={"messages": [{"role": "assistant", "content": "Hello"}], "api_key": "k"},
        headers=headers,
    )
    assert res.status_code == 400
    assert res.json()["detail"] == "Message cannot be empty"


def test_api_key_required(client, signup, openrouter, monkeypatch):
    monkeypatch.setattr(ai_assistant.settings, "OPENROUTER_API_KEY", None)
    _, headers = signup("pat@example.com")
    res = client.post("/ai-doctor/chat", json={"messages": CHAT["messages"]}, headers=headers)
    assert res.status_code == 400


def test_system_prompt_is_prepended():
    messages = ai_assistant.build_messages([{"role": "user", "content": "hi"}])
    assert messages[0]["role"] == "system"
    assert messages[1] == {"role": "user", "content": "hi"}


HISTORY = {
    "symptom": "Headache",
    "start_date": "2026-10-01",
    "end_date": "2026-10-05",
    "is_ongoing": True,
    "duration": "4 days",
    "chat_messages": [
        {"role": "user", "content": "I have a headache"},
        {"role": "assistant", "content": "How long has it lasted?"},
    ],
}


def test_chat_history_crud(client, signup):
    _, alice = signup("alice@example.com")
    _, bob = signup("bob@example.com")

    res = client.post("/ai-doctor/history", json=HISTORY, headers=alice)
    assert res.status_code == 201, res.text
    entry = res.json()
    assert entry["end_date"] is None
    assert len(entry["chat_messages"]) == 2

    assert [h["id"] for h in client.get("/ai-doctor/history", headers=alice).json()] == [entry["id"]]
    assert client.get("/ai-doctor/history", headers=bob).json() == []
    assert client.get(f"/ai-doctor/history/{entry['id']}", headers=bob).status_code == 404

    assert client.delete(f"/ai-doctor/history/{entry['id']}", headers=alice).status_code == 204
    assert client.get(f"/ai-doctor/history/{entry['id']}", headers=alice).status_code == 404


def test_chat_history_requires_symptom_and_messages(client, signup):
    _, headers = signup("alice@example.com")
    res = client.post("/ai-doctor/history", json={**HISTORY, "chat_messages": []}, headers=headers)
    assert res.status_code == 400
    assert res.json()["detail"] == "Please enter a symptom and have at least one message in the chat"
