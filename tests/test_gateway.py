"""Tests for the realtime gateway at /ws.

Tests cover:
- Handshake rejection for missing, invalid and orphaned tokens
- Room join authorization, leave acknowledgements and REST leave or delete eviction
- Message round trips, fan-out limited to joined sockets, REST broadcasts
- Typing relay, malformed and unknown events

Frames that must NOT arrive are checked by having the socket send itself a
`leave-*` event and asserting the very next frame is that acknowledgement.
"""
import json

import pytest
from fastapi.testclient import TestClient
from starlette.websockets import WebSocketDisconnect

from hive.api.gateway import conversation_room
from hive.api.utils import create_access_token
from hive.main import create_app
from tests.helpers import auth_headers, create_conversation, create_fade


def ws_url(token: str) -> str:
    return f"/ws?token={token}"


def send(ws, event: str, data=None) -> None:
    ws.send_json({"event": event, "data": data})


def expect(ws, event: str):
    frame = ws.receive_json()
    assert frame["event"] == event, frame
    return frame["data"]


def assert_nothing_pending(ws) -> None:
    """The next frame on `ws` is the reply to a probe it sends itself."""
    send(ws, "leave-conversation", "probe")
    assert ws.receive_json() == {"event": "left-conversation", "data": "probe"}


class TestHandshake:
    def test_missing_token(self, client):
        with client.websocket_connect("/ws") as ws:
            assert ws.receive_json() == {"event": "error", "data": "Authentication required"}
            with pytest.raises(WebSocketDisconnect):
                ws.receive_json()

    def test_invalid_token(self, client):
        with client.websocket_connect(ws_url("garbage")) as ws:
            assert ws.receive_json() == {"event": "error", "data": "Invalid token"}
            with pytest.raises(WebSocketDisconnect):
                ws.receive_json()

    def test_unknown_user(self, client):
        token = create_access_token({"sub": "deleted-user"})

        with client.websocket_connect(ws_url(token)) as ws:
            assert ws.receive_json() == {"event": "error", "data": "User not found"}
            with pytest.raises(WebSocketDisconnect):
                ws.receive_json()


class TestRooms:
    def test_participant_joins_and_leaves(self, client, alice):
        _, token = alice
        conversation = create_conversation(client, token)

        with client.websocket_connect(ws_url(token)) as ws:
            send(ws, "join-conversation", conversation["id"])
            assert expect(ws, "joined-conversation") == conversation["id"]
            send(ws, "leave-conversation", conversation["id"])
            assert expect(ws, "left-conversation") == conversation["id"]

    def test_non_participant_rejected(self, client, alice, bob):
        _, alice_token = alice
        _, bob_token = bob
        conversation = create_conversation(client, alice_token)

        with client.websocket_connect(ws_url(bob_token)) as ws:
            send(ws, "join-conversation", conversation["id"])
            assert expect(ws, "error") == "Not authorized to join this conversation"

    def test_fade_room_open_by_default(self, client, alice, bob):
        _, alice_token = alice
        _, bob_token = bob
        fade = create_fade(client, alice_token)

        with client.websocket_connect(ws_url(bob_token)) as ws:
            send(ws, "join-fade", fade["id"])
            assert expect(ws, "joined-fade") == fade["id"]
            send(ws, "leave-fade", fade["id"])
            assert expect(ws, "left-fade") == fade["id"]

    def test_fade_room_participant_check_when_enabled(self, tmp_path):
        app = create_app(database_url=f"sqlite:///{tmp_path / 'strict.db'}", fade_room_requires_participant=True)
        with TestClient(app) as client:
            alice = client.post(
                "/api/auth/signup", json={"email": "a@example.com", "password": "secret123", "name": "Alice"}
            ).json()
            bob = client.post(
                "/api/auth/signup", json={"email": "b@example.com", "password": "secret123", "name": "Bob"}
            ).json()
            fade = create_fade(client, alice["token"])

            with client.websocket_connect(ws_url(bob["token"])) as ws:
                send(ws, "join-fade", fade["id"])
                assert expect(ws, "error") == "Not authorized to join this fade"

            with client.websocket_connect(ws_url(alice["token"])) as ws:
                send(ws, "join-fade", fade["id"])
                assert expect(ws, "joined-fade") == fade["id"]

    def test_disconnect_leaves_rooms(self, client, app, alice):
        _, token = alice
        conversation = create_conversation(client, token)

        with client.websocket_connect(ws_url(token)) as ws:
            send(ws, "join-conversation", conversation["id"])
            expect(ws, "joined-conversation")
            assert len(app.state.hub.members(conversation_room(conversation["id"]))) == 1

        assert app.state.hub.members(conversation_room(conversation["id"])) == set()

    def test_rest_leave_stops_delivery(self, client, alice, bob):
        alice_user, alice_token = alice
        bob_user, bob_token = bob
        conversation = create_conversation(client, alice_token, participantIds=[bob_user["id"]])

        with client.websocket_connect(ws_url(alice_token)) as a, client.websocket_connect(ws_url(bob_token)) as b:
            for ws in (a, b):
                send(ws, "join-conversation", conversation["id"])
                expect(ws, "joined-conversation")

            response = client.post(f"/api/conversations/{conversation['id']}/leave", headers=auth_headers(bob_token))
            assert response.status_code == 200

            send(a, "send-message", {"conversationId": conversation["id"], "content": "secret", "userId": alice_user["id"]})
            assert expect(a, "new-message")["content"] == "secret"
            assert_nothing_pending(b)

    def test_rest_fade_leave_stops_delivery(self, client, alice, bob):
        alice_user, alice_token = alice
        _, bob_token = bob
        fade = create_fade(client, alice_token)
        client.post(f"/api/fades/{fade['id']}/join", headers=auth_headers(bob_token))

        with client.websocket_connect(ws_url(alice_token)) as a, client.websocket_connect(ws_url(bob_token)) as b:
            for ws in (a, b):
                send(ws, "join-fade", fade["id"])
                expect(ws, "joined-fade")

            response = client.post(f"/api/fades/{fade['id']}/leave", headers=auth_headers(bob_token))
            assert response.status_code == 200

            send(a, "send-message", {"fadeId": fade["id"], "content": "gone soon", "userId": alice_user["id"]})
            expect(a, "new-message")
            assert_nothing_pending(b)

    def test_delete_closes_room(self, client, app, alice, bob):
        _, alice_token = alice
        bob_user, bob_token = bob
        conversation = create_conversation(client, alice_token, participantIds=[bob_user["id"]])
        room = conversation_room(conversation["id"])

        with client.websocket_connect(ws_url(bob_token)) as b:
            send(b, "join-conversation", conversation["id"])
            expect(b, "joined-conversation")

            client.delete(f"/api/conversations/{conversation['id']}", headers=auth_headers(alice_token))

            assert app.state.hub.members(room) == set()
            assert_nothing_pending(b)


class TestSendMessage:
    def test_round_trip(self, client, alice, bob):
        """The echo keeps trimmed content, the conversation id and the client id."""
        alice_user, alice_token = alice
        bob_user, bob_token = bob
        conversation = create_conversation(client, alice_token, participantIds=[bob_user["id"]])

        with client.websocket_connect(ws_url(alice_token)) as a, client.websocket_connect(ws_url(bob_token)) as b:
            for ws in (a, b):
                send(ws, "join-conversation", conversation["id"])
                expect(ws, "joined-conversation")

            send(
                a,
                "send-message",
                {
                    "conversationId": conversation["id"],
                    "content": "  hello hive  ",
                    "userId": alice_user["id"],
                    "clientId": "tmp-42",
                },
            )
            echoed = expect(a, "new-message")
            delivered = expect(b, "new-message")

        assert echoed == delivered
        assert echoed["content"] == "hello hive"
        assert echoed["conversationId"] == conversation["id"]
        assert echoed["clientId"] == "tmp-42"
        assert echoed["user"]["id"] == alice_user["id"]

        history = client.get(
            f"/api/conversations/{conversation['id']}/messages", headers=auth_headers(alice_token)
        ).json()
        assert [m["id"] for m in history] == [echoed["id"]]

    def test_participant_outside_room_gets_nothing(self, client, alice, bob, carol):
        alice_user, alice_token = alice
        bob_user, bob_token = bob
        carol_user, carol_token = carol
        conversation = create_conversation(
            client, alice_token, participantIds=[bob_user["id"], carol_user["id"]]
        )

        with (
            client.websocket_connect(ws_url(alice_token)) as a,
            client.websocket_connect(ws_url(bob_token)) as b,
            client.websocket_connect(ws_url(carol_token)) as c,
        ):
            for ws in (a, b):
                send(ws, "join-conversation", conversation["id"])
                expect(ws, "joined-conversation")

            send(a, "send-message", {"conversationId": conversation["id"], "content": "hi", "userId": alice_user["id"]})
            expect(a, "new-message")
            expect(b, "new-message")
            assert_nothing_pending(c)

    def test_impersonation_rejected(self, client, alice, bob):
        alice_user, alice_token = alice
        bob_user, bob_token = bob
        conversation = create_conversation(client, alice_token, participantIds=[bob_user["id"]])

        with client.websocket_connect(ws_url(bob_token)) as b:
            send(b, "join-conversation", conversation["id"])
            expect(b, "joined-conversation")
            send(b, "send-message", {"conversationId": conversation["id"], "content": "x", "userId": alice_user["id"]})
            assert expect(b, "error") == "Unauthorized to send message"
            assert_nothing_pending(b)

    def test_validation_error_goes_to_sender_only(self, client, alice, bob):
        alice_user, alice_token = alice
        bob_user, bob_token = bob
        conversation = create_conversation(client, alice_token, participantIds=[bob_user["id"]])

        with client.websocket_connect(ws_url(alice_token)) as a, client.websocket_connect(ws_url(bob_token)) as b:
            for ws in (a, b):
                send(ws, "join-conversation", conversation["id"])
                expect(ws, "joined-conversation")

            send(a, "send-message", {"conversationId": conversation["id"], "content": "  ", "userId": alice_user["id"]})
            assert expect(a, "error") == "Message content is required"
            assert_nothing_pending(b)

    def test_non_participant_cannot_send(self, client, alice, bob):
        _, alice_token = alice
        bob_user, bob_token = bob
        conversation = create_conversation(client, alice_token)

        with client.websocket_connect(ws_url(bob_token)) as b:
            send(b, "send-message", {"conversationId": conversation["id"], "content": "hi", "userId": bob_user["id"]})
            assert expect(b, "error") == "You are not a participant in this conversation"

    def test_non_string_content_is_malformed(self, client, alice):
        alice_user, token = alice
        conversation = create_conversation(client, token)

        with client.websocket_connect(ws_url(token)) as ws:
            send(ws, "send-message", {"conversationId": conversation["id"], "content": 42, "userId": alice_user["id"]})
            assert expect(ws, "error") == "Malformed event"

    def test_fade_message_over_gateway(self, client, alice):
        alice_user, token = alice
        fade = create_fade(client, token)

        with client.websocket_connect(ws_url(token)) as ws:
            send(ws, "join-fade", fade["id"])
            expect(ws, "joined-fade")
            send(ws, "send-message", {"fadeId": fade["id"], "content": "poof", "userId": alice_user["id"]})
            message = expect(ws, "new-message")

        assert message["fadeId"] == fade["id"]
        assert message["content"] == "poof"

    def test_rest_send_is_broadcast(self, client, alice, bob):
        _, alice_token = alice
        bob_user, bob_token = bob
        conversation = create_conversation(client, alice_token, participantIds=[bob_user["id"]])

        with client.websocket_connect(ws_url(bob_token)) as b:
            send(b, "join-conversation", conversation["id"])
            expect(b, "joined-conversation")

            response = client.post(
                f"/api/messages/conversations/{conversation['id']}",
                json={"content": "via rest", "clientId": "rest-1"},
                headers=auth_headers(alice_token),
            )
            delivered = expect(b, "new-message")

        assert delivered == response.json()
        assert delivered["clientId"] == "rest-1"


class TestTypingAndProtocol:
    def test_typing_relayed_to_others_only(self, client, alice, bob):
        alice_user, alice_token = alice
        bob_user, bob_token = bob
        conversation = create_conversation(client, alice_token, participantIds=[bob_user["id"]])

        with client.websocket_connect(ws_url(alice_token)) as a, client.websocket_connect(ws_url(bob_token)) as b:
            for ws in (a, b):
                send(ws, "join-conversation", conversation["id"])
                expect(ws, "joined-conversation")

            send(a, "typing", {"conversationId": conversation["id"], "userId": alice_user["id"], "isTyping": True})

            assert expect(b, "user-typing") == {
                "userId": alice_user["id"],
                "isTyping": True,
                "conversationId": conversation["id"],
            }
            assert_nothing_pending(a)

    def test_typing_impersonation(self, client, alice, bob):
        _, alice_token = alice
        bob_user, _ = bob

        with client.websocket_connect(ws_url(alice_token)) as a:
            send(a, "typing", {"conversationId": "any", "userId": bob_user["id"], "isTyping": True})
            assert expect(a, "error") == "Unauthorized to send typing indicator"

    def test_unknown_event(self, client, alice):
        _, token = alice

        with client.websocket_connect(ws_url(token)) as ws:
            send(ws, "shout", "hey")
            assert expect(ws, "error") == "Unknown event: shout"

    def test_malformed_frame(self, client, alice):
        _, token = alice

        with client.websocket_connect(ws_url(token)) as ws:
            ws.send_text("not json")
            assert expect(ws, "error") == "Malformed event"
            ws.send_text(json.dumps(["event", "data"]))
            assert expect(ws, "error") == "Malformed event"
