from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from app.models import Message
from huddle.realtime import MessageType


def _auth(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture()
def seeded(session_factory) -> list[int]:
    base = datetime(2024, 1, 1, tzinfo=timezone.utc)
    with session_factory() as session:
        rows = [
            Message(
                username="alice" if index % 2 == 0 else "bob",
                channel="general",
                type=MessageType.CHAT,
                message=f"m{index}",
                timestamp=base + timedelta(minutes=index),
            )
            for index in range(60)
        ]
        rows.append(
            Message(username="bob", channel="random", message="elsewhere", timestamp=base)
        )
        session.add_all(rows)
        session.commit()
        return [row.id for row in rows]


def test_messages_require_authentication(client) -> None:
    assert client.get("/messages").status_code == 401
    assert client.put("/messages/1", json={"newMessage": "x"}).status_code == 401
    assert client.delete("/messages/1").status_code == 401


def test_history_pages_skip_from_newest(client, make_user, seeded) -> None:
    token = make_user("alice")

    first = client.get("/messages", headers=_auth(token))
    assert first.status_code == 200
    page = first.json()
    assert len(page) == 50
    assert page[0]["message"] == "m10"
    assert page[-1]["message"] == "m59"
    assert set(page[0]) >= {"id", "username", "channel", "type", "message", "imageUrl", "postId", "replyTo", "timestamp"}

    older = client.get("/messages", params={"skip": 50}, headers=_auth(token)).json()
    assert [item["message"] for item in older] == [f"m{index}" for index in range(10)]

    other = client.get("/messages", params={"channel": "random"}, headers=_auth(token)).json()
    assert [item["message"] for item in other] == ["elsewhere"]

    assert client.get("/messages", params={"skip": -1}, headers=_auth(token)).status_code == 422


def test_edit_own_message(client, make_user, seeded) -> None:
    token = make_user("alice")

    response = client.put(f"/messages/{seeded[0]}", json={"newMessage": "edited"}, headers=_auth(token))

    assert response.status_code == 200
    assert response.json()["message"] == "edited"
    assert response.json()["id"] == seeded[0]


def test_edit_rejects_foreign_missing_and_empty(client, make_user, seeded) -> None:
    token = make_user("alice")

    foreign = client.put(f"/messages/{seeded[1]}", json={"newMessage": "mine now"}, headers=_auth(token))
    assert foreign.status_code == 403
    assert foreign.json()["detail"] == "Forbidden: Not your message"

    missing = client.put("/messages/99999", json={"newMessage": "x"}, headers=_auth(token))
    assert missing.status_code == 404

    empty = client.put(f"/messages/{seeded[0]}", json={"newMessage": ""}, headers=_auth(token))
    assert empty.status_code == 400


def test_delete_own_message(client, make_user, seeded) -> None:
    token = make_user("bob")

    foreign = client.delete(f"/messages/{seeded[0]}", headers=_auth(token))
    assert foreign.status_code == 403

    response = client.delete(f"/messages/{seeded[1]}", headers=_auth(token))
    assert response.status_code == 200
    assert response.json() == {"success": True}

    assert client.delete(f"/messages/{seeded[1]}", headers=_auth(token)).status_code == 404


def test_edits_and_deletes_reach_every_channel(client, make_user, seeded) -> None:
    alice_token = make_user("alice")
    bob_token = make_user("bob")

    with client.websocket_connect(f"/ws/chat?token={alice_token}") as alice:
        alice.receive_json()
        alice.receive_json()
        with client.websocket_connect(f"/ws/chat?token={bob_token}") as bob:
            bob.receive_json()
            bob.receive_json()
            alice.receive_json()
            bob.send_json({"event": "join channel", "data": "random"})
            assert bob.receive_json()["event"] == "chat history"

            client.put(f"/messages/{seeded[0]}", json={"newMessage": "fixed"}, headers=_auth(alice_token))
            for connection in (alice, bob):
                frame = connection.receive_json()
                assert frame["event"] == "message edited"
                assert frame["data"]["id"] == seeded[0]
                assert frame["data"]["message"] == "fixed"

            client.delete(f"/messages/{seeded[0]}", headers=_auth(alice_token))
            for connection in (alice, bob):
                assert connection.receive_json() == {"event": "message deleted", "data": seeded[0]}


def test_foreign_edit_and_delete_change_nothing(client, make_user, seeded) -> None:
    alice_token = make_user("alice")
    bob_token = make_user("bob")

    with client.websocket_connect(f"/ws/chat?token={alice_token}") as alice:
        alice.receive_json()
        alice.receive_json()

        edit = client.put(f"/messages/{seeded[0]}", json={"newMessage": "bob was here"}, headers=_auth(bob_token))
        delete = client.delete(f"/messages/{seeded[0]}", headers=_auth(bob_token))
        assert edit.status_code == 403
        assert delete.status_code == 403

        # The next frame must answer the ping; no edit or delete was broadcast.
        alice.send_json({"event": "ping"})
        assert alice.receive_json() == {"event": "pong", "data": None}

    history = client.get("/messages", params={"skip": 50}, headers=_auth(alice_token)).json()
    first = next(item for item in history if item["id"] == seeded[0])
    assert first["message"] == "m0"
    assert first["username"] == "alice"
