"""
Realtime gateway: the `/ws` WebSocket endpoint and the in-process room hub.

Frames in both directions are JSON objects ``{"event": str, "data": Any}``.
A connection authenticates once with the ``token`` query parameter, then
joins rooms keyed ``conversation-<id>`` or ``fade-<id>``. Messages sent
here are persisted through the same service functions the REST routes use
and fanned out to every connection in the room.
"""
import json
import logging
from collections import defaultdict
from datetime import datetime, timezone

from fastapi import APIRouter, HTTPException, WebSocket, WebSocketDisconnect
from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool

from hive.api.models import FadeMessageOut, MessageOut
from hive.api.utils import load_user, verify_token
from hive.database.core import funcs
from hive.database.core.session import session_scope

logger = logging.getLogger(__name__)

router = APIRouter()

POLICY_VIOLATION = 1008


def conversation_room(conversation_id: str) -> str:
    return f"conversation-{conversation_id}"


def fade_room(fade_id: str) -> str:
    return f"fade-{fade_id}"


class RoomHub:
    """
    Room membership for this process.

    Every broadcast goes through this class; swapping it for a pub/sub
    backed implementation is what running several workers would take.
    Each socket is recorded with the user it authenticated as, so a user
    who stops participating over REST can be dropped from the room.
    """

    def __init__(self):
        self.rooms: dict[str, set[WebSocket]] = defaultdict(set)
        self.owners: dict[WebSocket, str] = {}

    def join(self, room: str, websocket: WebSocket, user_id: str) -> None:
        self.rooms[room].add(websocket)
        self.owners[websocket] = user_id

    def leave(self, room: str, websocket: WebSocket) -> None:
        members = self.rooms.get(room)
        if members is None:
            return
        members.discard(websocket)
        if not members:
            del self.rooms[room]

    def leave_all(self, websocket: WebSocket) -> None:
        for room in [room for room, members in self.rooms.items() if websocket in members]:
            self.leave(room, websocket)
        self.owners.pop(websocket, None)

    def evict_user(self, room: str, user_id: str) -> None:
        """Remove every socket `user_id` holds in `room`."""
        for websocket in self.members(room):
            if self.owners.get(websocket) == user_id:
                self.leave(room, websocket)
        logger.info("Evicted user %s from %s", user_id, room)

    def close_room(self, room: str) -> None:
        self.rooms.pop(room, None)

    def members(self, room: str) -> set[WebSocket]:
        return set(self.rooms.get(room, ()))

    async def broadcast(self, room: str, event: str, data, exclude: WebSocket | None = None) -> None:
        for websocket in self.members(room):
            if websocket is exclude:
                continue
            try:
                await emit(websocket, event, data)
            except (WebSocketDisconnect, RuntimeError):
                logger.warning("Dropping unreachable socket from %s", room)
                self.leave(room, websocket)


async def emit(websocket: WebSocket, event: str, data) -> None:
    await websocket.send_json({"event": event, "data": data})


# ============================================================================
# Persistence helpers shared with the REST message routes
# ============================================================================

def persist_conversation_message(
    db: Session,
    user_id: str,
    conversation_id: str,
    content: str | None,
    reply_to_id: str | None = None,
    client_id: str | None = None,
) -> dict:
    """Store a conversation message and return its `new-message` payload."""
    message = funcs.create_conversation_message(db, user_id, conversation_id, content, reply_to_id)
    return MessageOut.dump(message, client_id=client_id)


def persist_fade_message(
    db: Session,
    user_id: str,
    fade_id: str,
    content: str | None,
    reply_to_id: str | None = None,
    client_id: str | None = None,
    now: datetime | None = None,
) -> dict:
    message = funcs.create_fade_message(db, user_id, fade_id, content, reply_to_id, now)
    return FadeMessageOut.dump(message, client_id=client_id)


# ============================================================================
# Connection handling
# ============================================================================

class Connection:
    """One authenticated socket and the event handlers bound to it."""

    def __init__(self, websocket: WebSocket, user_id: str, email: str):
        self.websocket = websocket
        self.user_id = user_id
        self.email = email
        self.handlers = {
            "join-conversation": self.join_conversation,
            "leave-conversation": self.leave_conversation,
            "join-fade": self.join_fade,
            "leave-fade": self.leave_fade,
            "send-message": self.send_message,
            "typing": self.typing,
        }

    @property
    def hub(self) -> RoomHub:
        return self.websocket.app.state.hub

    def _session(self):
        return session_scope(self.websocket.app.state.session_factory)

    async def error(self, reason: str) -> None:
        await emit(self.websocket, "error", reason)

    async def dispatch(self, raw: str) -> None:
        try:
            frame = json.loads(raw)
        except ValueError:
            frame = None
        if not isinstance(frame, dict) or not isinstance(frame.get("event"), str):
            await self.error("Malformed event")
            return

        event = frame["event"]
        handler = self.handlers.get(event)
        if handler is None:
            await self.error(f"Unknown event: {event}")
            return
        await handler(frame.get("data"))

    # -- rooms ---------------------------------------------------------------

    def _check_conversation(self, conversation_id: str) -> bool:
        with self._session() as db:
            return funcs.can_join_conversation_room(db, self.user_id, conversation_id)

    def _check_fade(self, fade_id: str) -> bool:
        with self._session() as db:
            return funcs.can_join_fade_room(
                db, self.user_id, fade_id, self.websocket.app.state.fade_room_requires_participant
            )

    async def join_conversation(self, conversation_id) -> None:
        if not isinstance(conversation_id, str):
            await self.error("Malformed event")
            return
        try:
            allowed = await run_in_threadpool(self._check_conversation, conversation_id)
        except Exception:
            logger.exception("Error joining conversation %s", conversation_id)
            await self.error("Failed to join conversation")
            return
        if not allowed:
            await self.error("Not authorized to join this conversation")
            return
        self.hub.join(conversation_room(conversation_id), self.websocket, self.user_id)
        await emit(self.websocket, "joined-conversation", conversation_id)
        logger.info("User %s joined conversation %s", self.email, conversation_id)

    async def leave_conversation(self, conversation_id) -> None:
        if not isinstance(conversation_id, str):
            await self.error("Malformed event")
            return
        self.hub.leave(conversation_room(conversation_id), self.websocket)
        await emit(self.websocket, "left-conversation", conversation_id)
        logger.info("User %s left conversation %s", self.email, conversation_id)

    async def join_fade(self, fade_id) -> None:
        if not isinstance(fade_id, str):
            await self.error("Malformed event")
            return
        try:
            allowed = await run_in_threadpool(self._check_fade, fade_id)
        except Exception:
            logger.exception("Error joining fade %s", fade_id)
            await self.error("Failed to join fade")
            return
        if not allowed:
            await self.error("Not authorized to join this fade")
            return
        self.hub.join(fade_room(fade_id), self.websocket, self.user_id)
        await emit(self.websocket, "joined-fade", fade_id)
        logger.info("User %s joined fade %s", self.email, fade_id)

    async def leave_fade(self, fade_id) -> None:
        if not isinstance(fade_id, str):
            await self.error("Malformed event")
            return
        self.hub.leave(fade_room(fade_id), self.websocket)
        await emit(self.websocket, "left-fade", fade_id)
        logger.info("User %s left fade %s", self.email, fade_id)

    # -- messages ------------------------------------------------------------

    def _persist(self, data: dict) -> tuple[str, dict]:
        with self._session() as db:
            if data.get("fadeId"):
                payload = persist_fade_message(
                    db,
                    self.user_id,
                    data["fadeId"],
                    data.get("content"),
                    data.get("replyToId"),
                    data.get("clientId"),
                    now=datetime.now(timezone.utc),
                )
                return fade_room(data["fadeId"]), payload
            payload = persist_conversation_message(
                db,
                self.user_id,
                data["conversationId"],
                data.get("content"),
                data.get("replyToId"),
                data.get("clientId"),
            )
            return conversation_room(data["conversationId"]), payload

    async def send_message(self, data) -> None:
        if not isinstance(data, dict) or not (data.get("conversationId") or data.get("fadeId")):
            await self.error("Malformed event")
            return
        fields = ("content", "replyToId", "clientId")
        if any(data.get(key) is not None and not isinstance(data[key], str) for key in fields):
            await self.error("Malformed event")
            return
        if data.get("userId") != self.user_id:
            await self.error("Unauthorized to send message")
            return

        try:
            room, payload = await run_in_threadpool(self._persist, data)
        except HTTPException as e:
            await self.error(e.detail)
            return
        except Exception:
            logger.exception("Error sending message from %s", self.email)
            await self.error("Failed to send message")
            return
        await self.hub.broadcast(room, "new-message", payload)

    async def typing(self, data) -> None:
        if not isinstance(data, dict) or not (data.get("conversationId") or data.get("fadeId")):
            await self.error("Malformed event")
            return
        if data.get("userId") != self.user_id:
            await self.error("Unauthorized to send typing indicator")
            return

        indicator = {"userId": self.user_id, "isTyping": bool(data.get("isTyping"))}
        if data.get("fadeId"):
            room = fade_room(data["fadeId"])
            indicator["fadeId"] = data["fadeId"]
        else:
            room = conversation_room(data["conversationId"])
            indicator["conversationId"] = data["conversationId"]
        await self.hub.broadcast(room, "user-typing", indicator, exclude=self.websocket)


def _lookup_user(session_factory, user_id: str) -> tuple[str, str] | None:
    with session_scope(session_factory) as db:
        user = load_user(db, user_id)
        return (user.id, user.email) if user is not None else None


async def authenticate(websocket: WebSocket, token: str | None) -> Connection | None:
    """
    Resolve the handshake token to a connection, or reject the socket.

    A rejected socket receives one `error` frame and is then closed.
    """
    user_id = verify_token(token) if token else None
    if not token:
        reason = "Authentication required"
    elif user_id is None:
        reason = "Invalid token"
    else:
        try:
            found = await run_in_threadpool(_lookup_user, websocket.app.state.session_factory, user_id)
        except Exception:
            logger.exception("Database error during socket authentication")
            found, reason = None, "Authentication failed"
        else:
            reason = "User not found"
        if found is not None:
            logger.info("User authenticated: %s", found[1])
            return Connection(websocket, *found)

    logger.warning("Socket connection rejected: %s", reason)
    await emit(websocket, "error", reason)
    await websocket.close(code=POLICY_VIOLATION)
    return None


@router.websocket("/ws")
async def gateway(websocket: WebSocket, token: str | None = None):
    """
    Realtime endpoint.

    Inbound events: join-conversation, leave-conversation, join-fade,
    leave-fade, send-message, typing. Events from one socket are handled
    in arrival order.
    """
    await websocket.accept()
    connection = await authenticate(websocket, token)
    if connection is None:
        return

    try:
        while True:
            raw = await websocket.receive_text()
            await connection.dispatch(raw)
    except WebSocketDisconnect:
        pass
    finally:
        connection.hub.leave_all(websocket)
        logger.info("User %s disconnected", connection.email)
