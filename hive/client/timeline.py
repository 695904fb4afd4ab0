"""
Optimistic message timeline for one open room.

A frontend shows a message the moment the user sends it, then swaps that
placeholder for the server's record when the `new-message` echo arrives.
`MessageTimeline` holds that state over wire-format message dicts
(camelCase keys, ISO timestamps) and is independent of the transport
that carries them.

Matching an echo to its placeholder:

1. If the echo carries a ``clientId`` equal to a pending entry's, that
   entry is the one.
2. Without a ``clientId``, an echo from the local user whose trimmed
   content equals a pending entry's and whose ``createdAt`` lies within
   ``RECONCILE_WINDOW`` of it confirms that entry. The first such entry
   in send order wins.

Anything else is appended unless its id is already displayed.
"""
import enum
import inspect
import itertools
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, Callable

RECONCILE_WINDOW = timedelta(seconds=10)


class Outcome(str, enum.Enum):
    CONFIRMED = "confirmed"
    APPENDED = "appended"
    DUPLICATE = "duplicate"
    IGNORED = "ignored"


def parse_timestamp(value) -> datetime:
    """Read a wire timestamp; a trailing ``Z`` and naive values mean UTC."""
    if isinstance(value, datetime):
        parsed = value
    else:
        parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _iso(value: datetime) -> str:
    return value.astimezone(timezone.utc).isoformat()


class MessageTimeline:
    """
    Displayed messages plus the pending placeholders for one room.

    Args:
        user_id: The local user; only their echoes can confirm a pending
            entry by content.
        room_id: Id of the open conversation or fade.
        room_key: Key carrying the room id on a message, ``conversationId``
            or ``fadeId``.
        clock: Returns the client's current time; defaults to UTC now.
    """

    def __init__(
        self,
        user_id: str,
        room_id: str,
        room_key: str = "conversationId",
        clock: Callable[[], datetime] | None = None,
    ):
        self.user_id = user_id
        self.room_id = room_id
        self.room_key = room_key
        self.messages: list[dict] = []
        self.pending: dict[str, dict] = {}
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._counter = itertools.count()

    # -- sending -------------------------------------------------------------

    def compose(self, content: str) -> dict:
        """Append a pending placeholder for `content` and return it."""
        content = content.strip()
        if not content:
            raise ValueError("Message content is required")

        now = self._clock()
        temp_id = f"pending-{int(now.timestamp() * 1000)}-{next(self._counter)}"
        entry = {
            "id": temp_id,
            "content": content,
            "userId": self.user_id,
            self.room_key: self.room_id,
            "isPinned": False,
            "createdAt": _iso(now),
            "updatedAt": _iso(now),
            "clientId": str(uuid.uuid4()),
        }
        self.messages.append(entry)
        self.pending[temp_id] = entry
        return entry

    async def submit(self, content: str, deliver: Callable[[dict], Any]) -> dict:
        """
        Compose a placeholder and hand it to `deliver`.

        `deliver` may be sync or async. If it raises, the placeholder is
        removed and the error propagates. If it returns a message dict (a
        REST send answers with the stored record), that record is
        reconciled straight away; otherwise the placeholder stays pending
        until the echo arrives.
        """
        entry = self.compose(content)
        try:
            result = deliver(entry)
            if inspect.isawaitable(result):
                result = await result
        except Exception:
            self.rollback(entry["id"])
            raise
        if isinstance(result, dict) and "id" in result:
            self.receive(result)
        return entry

    def rollback(self, temp_id: str) -> bool:
        if self.pending.pop(temp_id, None) is None:
            return False
        self.messages = [m for m in self.messages if m["id"] != temp_id]
        return True

    # -- receiving -----------------------------------------------------------

    def receive(self, message: dict) -> Outcome:
        """Apply an echoed or foreign message to the timeline."""
        if message.get(self.room_key) != self.room_id:
            return Outcome.IGNORED

        temp_id = self._match(message)
        if temp_id is not None:
            del self.pending[temp_id]
            self.messages = [message if m["id"] == temp_id else m for m in self.messages]
            return Outcome.CONFIRMED

        if any(m["id"] == message.get("id") for m in self.messages):
            return Outcome.DUPLICATE
        self.messages.append(message)
        return Outcome.APPENDED

    def _match(self, message: dict) -> str | None:
        client_id = message.get("clientId")
        if client_id:
            for temp_id, entry in self.pending.items():
                if entry["clientId"] == client_id:
                    return temp_id
            return None

        if message.get("userId") != self.user_id or not self.pending or not message.get("createdAt"):
            return None
        content = (message.get("content") or "").strip()
        created_at = parse_timestamp(message["createdAt"])
        for temp_id, entry in self.pending.items():
            if entry["content"].strip() != content:
                continue
            if abs(created_at - parse_timestamp(entry["createdAt"])) <= RECONCILE_WINDOW:
                return temp_id
        return None

    # -- room state ----------------------------------------------------------

    def is_pending(self, message_id: str) -> bool:
        return message_id in self.pending

    def load(self, messages: list[dict]) -> None:
        """Replace the displayed history with a fetched page, keeping placeholders at the end."""
        self.messages = list(messages) + list(self.pending.values())

    def switch_room(self, room_id: str, room_key: str | None = None) -> None:
        self.room_id = room_id
        if room_key is not None:
            self.room_key = room_key
        self.messages = []
        self.pending = {}
