import pytest
from starlette.websockets import WebSocketDisconnect

from carelink.core.db import get_db
from carelink.main import app
from carelink.services.messaging import ConversationView
from carelink.services.realtime import ChangeEvent


def test_conversation_is_merged_oldest_first(client, signup):
    alice_id, alice = signup("alice@example.com")
    bob_id, bob = signup("bob@example.com")

    client.post(f"/messages/{bob_id}", json={"content": "Hi Bob"}, headers=alice)
    client.post(f"/messages/{alice_id}", json={"content": "Hi Alice"}, headers=bob)
    client.post(f"/messages/{bob_id}", json={"content": "How are you?"}, headers=alice)

    body = client.get(f"/messages/{bob_id}", headers=alice).json()
    assert body["partner"]["user_id"] == bob_id
    assert [m["content"] for m in body["messages"]] == ["Hi Bob", "Hi Alice", "How are you?"]

    other = client.get(f"/messages/{alice_id}", headers=bob).json()
    assert [m["id"] for m in other["messages"]] == [m["id"] for m in body["messages"]]


def test_empty_message_and_unknown_receiver(client, signup):
    _, alice = signup("alice@example.com")
    bob_id, _ = signup("bob@example.com")
    res = client.post(f"/messages/{bob_id}", json={"content": "  "}, headers=alice)
    assert res.status_code == 400
    assert res.json()["detail"] == "Message cannot be empty"
    res = client.post("/messages/00000000-0000-0000-0000-000000000000", json={"content": "hi"}, headers=alice)
    assert res.status_code == 404


def test_mark_read(client, signup):
    alice_id, alice = signup("alice@example.com")
    bob_id, bob = signup("bob@example.com")
    client.post(f"/messages/{bob_id}", json={"content": "one"}, headers=alice)
    client.post(f"/messages/{bob_id}", json={"content": "two"}, headers=alice)

    assert client.post(f"/messages/{alice_id}/read", headers=bob).json() == {"updated": 2}
    assert client.post(f"/messages/{alice_id}/read", headers=bob).json() == {"updated": 0}
    messages = client.get(f"/messages/{bob_id}", headers=alice).json()["messages"]
    assert all(m["read_at"] for m in messages)


def _record(message_id, sender, receiver, content="hi"):
    return {"id": message_id, "sender_id": sender, "receiver_id": receiver, "content": content}


def test_conversation_view_ignores_duplicates_and_other_pairs():
    view = ConversationView("a", "b", [_record("1", "a", "b")])
    assert not view.apply(ChangeEvent("messages", "INSERT", _record("1", "a", "b")))
    assert view.apply(ChangeEvent("messages", "INSERT", _record("2", "b", "a")))
    assert not view.apply(ChangeEvent("messages", "INSERT", _record("3", "a", "c")))
    assert not view.apply(ChangeEvent("messages", "DELETE", _record("4", "a", "b")))
    assert [m["id"] for m in view.messages] == ["1", "2"]


def test_live_conversation_streams_new_messages(client, signup):
    alice_id, alice = signup("alice@example.com")
    bob_id, bob = signup("bob@example.com")
    client.post(f"/messages/{bob_id}", json={"content": "before"}, headers=alice)
    token = alice["Authorization"].split(" ", 1)[1]

    with client.websocket_connect(f"/messages/{bob_id}/live?token={token}") as ws:
        snapshot = ws.receive_json()
        assert snapshot["type"] == "snapshot"
        assert [m["content"] for m in snapshot["messages"]] == ["before"]

        client.post(f"/messages/{alice_id}", json={"content": "after"}, headers=bob)
        event = ws.receive_json()
        assert event["type"] == "message"
        assert event["message"]["content"] == "after"
        assert event["message"]["sender_id"] == bob_id


def test_live_conversation_releases_session_after_snapshot(client, signup, session_factory):
    alice_id, alice = signup("alice@example.com")
    bob_id, bob = signup("bob@example.com")
    token = alice["Authorization"].split(" ", 1)[1]
    opened = []

    def recording_get_db():
        session = session_factory()
        opened.append(session)
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = recording_get_db
    with client.websocket_connect(f"/messages/{bob_id}/live?token={token}") as ws:
        assert ws.receive_json()["type"] == "snapshot"
        assert len(opened) == 1
        assert not opened[0].in_transaction()

        client.post(f"/messages/{alice_id}", json={"content": "still live"}, headers=bob)
        assert ws.receive_json()["message"]["content"] == "still live"


@pytest.mark.parametrize("partner", ["00000000-0000-0000-0000-000000000000", "not-a-uuid"])
def test_live_conversation_with_unknown_partner_is_refused(client, signup, partner):
    _, alice = signup("alice@example.com")
    token = alice["Authorization"].split(" ", 1)[1]

    with pytest.raises(WebSocketDisconnect) as exc:
        with client.websocket_connect(f"/messages/{partner}/live?token={token}"):
            pass
    assert exc.value.code == 1008


def test_live_conversation_requires_token(client, signup):
    bob_id, _ = signup("bob@example.com")
    with pytest.raises(WebSocketDisconnect) as exc:
        with client.websocket_connect(f"/messages/{bob_id}/live"):
            pass
    assert exc.value.code == 1008
