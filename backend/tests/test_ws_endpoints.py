from __future__ import annotations

import pytest
from fastapi.testclient import TestClient
from starlette.websockets import WebSocketDisconnect

from factories import befriend, make_channel, make_user, make_workspace, token_for


@pytest.mark.parametrize("path", ["/ws/channels", "/ws/dm", "/ws/friends"])
def test_handshake_without_token_is_refused(client: TestClient, path: str) -> None:
    with pytest.raises(WebSocketDisconnect) as excinfo:
        with client.websocket_connect(path):
            pass

    assert excinfo.value.code == 1008


def test_handshake_with_invalid_token_is_refused(client: TestClient) -> None:
    with pytest.raises(WebSocketDisconnect) as excinfo:
        with client.websocket_connect("/ws/dm?token=not-a-jwt"):
            pass

    assert excinfo.value.code == 1008


def test_channels_connect_sends_welcome_and_channel_summary(client: TestClient, db_session) -> None:
    owner = make_user(db_session, "owner")
    member = make_user(db_session, "member")
    workspace = make_workspace(db_session, owner, member)
    general = make_channel(db_session, workspace, owner, "general")
    secret = make_channel(db_session, workspace, owner, "secret", is_private=True, allowed=(member,))

    with client.websocket_connect(f"/ws/channels?token={token_for(member)}") as connection:
        welcome = connection.receive_json()
        assert welcome == {"type": "welcome", "message": "Welcome member!", "user_id": member.id}

        summary = connection.receive_json()
        assert summary == {
            "type": "userChannels",
            "workspace_id": workspace.id,
            "public_channels": [general.id],
            "private_channels": [secret.id],
        }


def test_bad_frames_produce_errors_without_closing(client: TestClient, db_session) -> None:
    user = make_user(db_session, "loner")

    with client.websocket_connect(
        "/ws/channels", headers={"Authorization": f"Bearer {token_for(user)}"}
    ) as connection:
        assert connection.receive_json()["type"] == "welcome"

        connection.send_text("{broken")
        assert connection.receive_json() == {"type": "error", "message": "Invalid message format"}

        connection.send_json([1, 2, 3])
        assert connection.receive_json() == {
            "type": "error",
            "message": "Message payload must be a JSON object",
        }

        connection.send_json({"type": "mystery"})
        assert connection.receive_json() == {"type": "error", "message": "Unsupported payload type"}

        connection.send_json({"type": "joinChannel", "channel_id": 12345})
        assert connection.receive_json() == {
            "type": "error",
            "message": "Channel not found",
            "event": "joinChannel",
        }

        connection.send_text("ping")
        assert connection.receive_json() == {"type": "pong"}


def test_direct_message_between_connected_friends(client: TestClient, db_session) -> None:
    alice = make_user(db_session, "alice")
    bob = make_user(db_session, "bob")
    befriend(db_session, alice, bob)

    with client.websocket_connect(
        "/ws/dm", headers={"Cookie": f"jwt={token_for(bob)}"}
    ) as bob_socket, client.websocket_connect(f"/ws/dm?token={token_for(alice)}") as alice_socket:
        # A pong means the server loop is running, so both users are registered.
        for socket in (bob_socket, alice_socket):
            socket.send_text("ping")
            assert socket.receive_json() == {"type": "pong"}

        alice_socket.send_json({"type": "sendMessage", "receiver_id": bob.id, "content": "hello bob"})

        ack = alice_socket.receive_json()
        assert ack["type"] == "messageSent"
        assert ack["content"] == "hello bob"

        delivered = bob_socket.receive_json()
        assert delivered["type"] == "receiveDirectMessage"
        assert delivered["id"] == ack["id"]
        assert delivered["sender"]["username"] == "alice"
