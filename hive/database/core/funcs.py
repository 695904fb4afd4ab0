"""
Service functions behind the REST routes and the realtime gateway.

Each function validates its input, talks to the DAOs and raises
``HTTPException`` with the status and message the client should see.
Both transports call the same functions, so a message sent over the
gateway gets exactly the checks a REST send gets.
"""
import logging
import re
from datetime import datetime

from fastapi import HTTPException
from sqlalchemy.orm import Session

from hive.api.models import (
    ConversationCreate,
    FadeCreate,
    LoginRequest,
    NotebookCreate,
    RoomUpdate,
    SignupRequest,
)
from hive.api.utils import check_password, create_access_token, hash_password
from hive.database.daos import ConversationDao, FadeDao, MessageDao, NotebookDao, UserDao
from hive.database.entities import (
    Conversation,
    Fade,
    FadeMessage,
    Message,
    Notebook,
    User,
    Visibility,
)
from hive.expiry import validate_expiry

logger = logging.getLogger(__name__)

EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
MAX_MESSAGE_LENGTH = 2000


# ============================================================================
# Validation helpers
# ============================================================================

def _bad_request(detail: str) -> HTTPException:
    return HTTPException(status_code=400, detail=detail)


def _clean_name(name: str | None, label: str, required: bool = True) -> str:
    if name is None or not name.strip():
        raise _bad_request(f"{label} name is required" if required else f"{label} name cannot be empty")
    name = name.strip()
    if len(name) < 2:
        raise _bad_request(f"{label} name must be at least 2 characters long")
    return name


def _clean_topics(topics) -> list[str]:
    if topics is None:
        return []
    if not isinstance(topics, list) or not all(isinstance(t, str) for t in topics):
        raise _bad_request("Topics must be an array")
    return [t.strip() for t in topics if t.strip()]


def _clean_visibility(visibility: str | None) -> Visibility:
    if visibility is None:
        return Visibility.PUBLIC
    try:
        return Visibility(visibility)
    except ValueError:
        raise _bad_request("Invalid visibility value")


def _clean_description(description: str | None) -> str | None:
    return (description.strip() or None) if description else None


def _clean_content(content: str | None) -> str:
    if content is None or not content.strip():
        raise _bad_request("Message content is required")
    content = content.strip()
    if len(content) > MAX_MESSAGE_LENGTH:
        raise _bad_request(f"Message content is too long (max {MAX_MESSAGE_LENGTH} characters)")
    return content


def _issue_token(user: User) -> str:
    return create_access_token({"sub": user.id})


# ============================================================================
# Authentication
# ============================================================================

def signup_user(db: Session, data: SignupRequest) -> tuple[User, str]:
    """
    Register a user and issue a token.

    Raises:
        HTTPException 400: Missing field, malformed email, short password
            or name.
        HTTPException 409: Email already registered.
    """
    if not data.email or not data.password or not data.name:
        raise _bad_request("Email, password, and name are required")
    email = data.email.strip().lower()
    if not EMAIL_RE.fullmatch(email):
        raise _bad_request("Invalid email format")
    if len(data.password) < 6:
        raise _bad_request("Password must be at least 6 characters long")
    if len(data.name.strip()) < 2:
        raise _bad_request("Name must be at least 2 characters long")
    if data.display_name and len(data.display_name.strip()) < 2:
        raise _bad_request("Display name must be at least 2 characters long")

    users = UserDao(db)
    if users.get_by_email(email) is not None:
        raise HTTPException(status_code=409, detail="User with this email already exists")

    name = data.name.strip()
    display_name = data.display_name.strip() if data.display_name else name
    user = users.create_user(email, hash_password(data.password), name, display_name)
    logger.info("User %s signed up", user.email)
    return user, _issue_token(user)


def login_user(db: Session, data: LoginRequest) -> tuple[User, str]:
    if not data.email or not data.password:
        raise _bad_request("Email and password are required")
    email = data.email.strip().lower()
    if not EMAIL_RE.fullmatch(email):
        raise _bad_request("Invalid email format")

    user = UserDao(db).get_by_email(email)
    if user is None or not check_password(data.password, user.password):
        raise HTTPException(status_code=401, detail="Invalid email or password")
    return user, _issue_token(user)


# ============================================================================
# Conversations
# ============================================================================

def list_conversations(db: Session, user: User) -> list[Conversation]:
    return ConversationDao(db).list_for_user(user.id)


def list_public_conversations(db: Session) -> list[Conversation]:
    return ConversationDao(db).list_public()


def get_conversation(db: Session, user: User, conversation_id: str) -> Conversation:
    conversation = ConversationDao(db).get_for_participant(conversation_id, user.id)
    if conversation is None:
        raise HTTPException(status_code=404, detail="Conversation not found")
    return conversation


def create_conversation(db: Session, user: User, data: ConversationCreate) -> Conversation:
    name = _clean_name(data.name, "Conversation")
    topics = _clean_topics(data.topics)
    visibility = _clean_visibility(data.visibility)

    participant_ids = [pid for pid in dict.fromkeys(data.participant_ids or []) if pid != user.id]
    if len(UserDao(db).get_many(participant_ids)) != len(participant_ids):
        raise _bad_request("Invalid participant id(s)")

    conversation = ConversationDao(db).create(
        user.id,
        participant_ids,
        name=name,
        description=_clean_description(data.description),
        topics=topics,
        visibility=visibility,
    )
    logger.info("User %s created conversation %s", user.id, conversation.id)
    return conversation


def _room_changes(data: RoomUpdate, label: str, allow_visibility: bool = True) -> dict:
    provided = data.model_fields_set
    changes = {}
    if "name" in provided:
        changes["name"] = _clean_name(data.name, label, required=False)
    if "description" in provided:
        changes["description"] = _clean_description(data.description)
    if "topics" in provided:
        changes["topics"] = _clean_topics(data.topics)
    if allow_visibility and "visibility" in provided:
        if data.visibility is None:
            raise _bad_request("Invalid visibility value")
        changes["visibility"] = _clean_visibility(data.visibility)
    return changes


def update_conversation(db: Session, user: User, conversation_id: str, data: RoomUpdate) -> Conversation:
    dao = ConversationDao(db)
    conversation = dao.get_owned(conversation_id, user.id)
    if conversation is None:
        raise HTTPException(
            status_code=404,
            detail="Conversation not found or you do not have permission to update it",
        )
    return dao.update(conversation, **_room_changes(data, "Conversation"))


def delete_conversation(db: Session, user: User, conversation_id: str) -> None:
    dao = ConversationDao(db)
    conversation = dao.get_owned(conversation_id, user.id)
    if conversation is None:
        raise HTTPException(
            status_code=404,
            detail="Conversation not found or you do not have permission to delete it",
        )
    dao.soft_delete(conversation)
    logger.info("User %s deleted conversation %s", user.id, conversation_id)


def join_conversation(db: Session, user: User, conversation_id: str) -> None:
    dao = ConversationDao(db)
    if dao.get_active(conversation_id, visibility=Visibility.PUBLIC) is None:
        raise HTTPException(status_code=404, detail="Conversation not found or not joinable")
    if dao.get_participant(conversation_id, user.id) is not None:
        raise HTTPException(status_code=409, detail="You are already a participant in this conversation")
    dao.add_participant(conversation_id, user.id)


def leave_conversation(db: Session, user: User, conversation_id: str) -> None:
    # No role check: a HOST may leave their own conversation.
    dao = ConversationDao(db)
    participant = dao.get_participant(conversation_id, user.id)
    if participant is None:
        raise HTTPException(status_code=404, detail="You are not a participant in this conversation")
    dao.remove_participant(participant)


def get_conversation_messages(
    db: Session, user: User, conversation_id: str, limit: int | None = None, offset: int | None = None
) -> list[Message]:
    if ConversationDao(db).get_participant(conversation_id, user.id) is None:
        raise HTTPException(status_code=403, detail="You are not a participant in this conversation")
    return MessageDao.for_conversations(db).list_messages(conversation_id, limit, offset)


# ============================================================================
# Fades
# ============================================================================

def list_fades(db: Session, user: User, now: datetime | None = None) -> list[Fade]:
    return FadeDao(db).list_for_user(user.id, now)


def list_public_fades(db: Session, now: datetime | None = None) -> list[Fade]:
    return FadeDao(db).list_public(now)


def get_fade(db: Session, user: User, fade_id: str) -> Fade:
    # An expired fade stays readable for its participants.
    fade = FadeDao(db).get_for_participant(fade_id, user.id)
    if fade is None:
        raise HTTPException(status_code=404, detail="Fade not found")
    return fade


def create_fade(db: Session, user: User, data: FadeCreate, now: datetime | None = None) -> Fade:
    name = _clean_name(data.name, "Fade")
    if data.expires_at is None:
        raise _bad_request("Expiry date is required")
    try:
        expires_at = validate_expiry(data.expires_at, now)
    except ValueError as e:
        raise _bad_request(str(e))
    topics = _clean_topics(data.topics)
    visibility = _clean_visibility(data.visibility)

    fade = FadeDao(db).create(
        user.id,
        name=name,
        description=_clean_description(data.description),
        topics=topics,
        visibility=visibility,
        expires_at=expires_at,
    )
    logger.info("User %s created fade %s expiring at %s", user.id, fade.id, expires_at.isoformat())
    return fade


def update_fade(db: Session, user: User, fade_id: str, data: RoomUpdate) -> Fade:
    dao = FadeDao(db)
    fade = dao.get_owned(fade_id, user.id)
    if fade is None:
        raise HTTPException(status_code=404, detail="Fade not found or you do not have permission to update it")
    return dao.update(fade, **_room_changes(data, "Fade"))


def delete_fade(db: Session, user: User, fade_id: str) -> None:
    dao = FadeDao(db)
    fade = dao.get_owned(fade_id, user.id)
    if fade is None:
        raise HTTPException(status_code=404, detail="Fade not found or you do not have permission to delete it")
    dao.soft_delete(fade)
    logger.info("User %s deleted fade %s", user.id, fade_id)


def join_fade(db: Session, user: User, fade_id: str, now: datetime | None = None) -> None:
    dao = FadeDao(db)
    if dao.get_visible(fade_id, now) is None:
        raise HTTPException(status_code=404, detail="Fade not found or has expired")
    if dao.get_participant(fade_id, user.id) is not None:
        raise HTTPException(status_code=409, detail="You are already a participant in this fade")
    dao.add_participant(fade_id, user.id)


def leave_fade(db: Session, user: User, fade_id: str) -> None:
    dao = FadeDao(db)
    participant = dao.get_participant(fade_id, user.id)
    if participant is None:
        raise HTTPException(status_code=404, detail="You are not a participant in this fade")
    dao.remove_participant(participant)


def get_fade_messages(
    db: Session, user: User, fade_id: str, limit: int | None = None, offset: int | None = None
) -> list[FadeMessage]:
    if FadeDao(db).get_participant(fade_id, user.id) is None:
        raise HTTPException(status_code=403, detail="You are not a participant in this fade")
    return MessageDao.for_fades(db).list_messages(fade_id, limit, offset)


# ============================================================================
# Messages
# ============================================================================

def create_conversation_message(
    db: Session, user_id: str, conversation_id: str, content: str | None, reply_to_id: str | None = None
) -> Message:
    """
    Persist a message in a conversation.

    Raises:
        HTTPException 400: Empty or oversized content, or a reply target
            outside this conversation.
        HTTPException 403: Sender is not a participant.
        HTTPException 404: Conversation missing or deleted.
    """
    content = _clean_content(content)
    conversations = ConversationDao(db)
    if conversations.get_participant(conversation_id, user_id) is None:
        raise HTTPException(status_code=403, detail="You are not a participant in this conversation")
    if conversations.get_active(conversation_id) is None:
        raise HTTPException(status_code=404, detail="Conversation not found")

    messages = MessageDao.for_conversations(db)
    if reply_to_id and messages.get_in_parent(reply_to_id, conversation_id) is None:
        raise _bad_request("Reply message not found")
    return messages.create(conversation_id, user_id, content, reply_to_id or None)


def create_fade_message(
    db: Session,
    user_id: str,
    fade_id: str,
    content: str | None,
    reply_to_id: str | None = None,
    now: datetime | None = None,
) -> FadeMessage:
    content = _clean_content(content)
    fades = FadeDao(db)
    if fades.get_participant(fade_id, user_id) is None:
        raise HTTPException(status_code=403, detail="You are not a participant in this fade")
    if fades.get_visible(fade_id, now) is None:
        raise HTTPException(status_code=404, detail="Fade not found or has expired")

    messages = MessageDao.for_fades(db)
    if reply_to_id and messages.get_in_parent(reply_to_id, fade_id) is None:
        raise _bad_request("Reply message not found")
    return messages.create(fade_id, user_id, content, reply_to_id or None)


# ============================================================================
# Notebook
# ============================================================================

def list_notebook(db: Session, user: User) -> list[Notebook]:
    return NotebookDao(db).list_for_user(user.id)


def save_to_notebook(db: Session, user: User, data: NotebookCreate) -> Notebook:
    if not data.message_id:
        raise _bad_request("Message id is required")
    message = MessageDao.for_conversations(db).get(data.message_id)
    if message is None:
        raise HTTPException(status_code=404, detail="Message not found")
    if ConversationDao(db).get_participant(message.conversation_id, user.id) is None:
        raise HTTPException(status_code=403, detail="You are not a participant in this conversation")

    notebook = NotebookDao(db)
    if notebook.get_by_message(user.id, message.id) is not None:
        raise HTTPException(status_code=409, detail="Message already saved to notebook")
    title = data.title.strip() if data.title and data.title.strip() else None
    return notebook.create(user.id, message.id, title)


def remove_from_notebook(db: Session, user: User, entry_id: str) -> None:
    notebook = NotebookDao(db)
    entry = notebook.get_owned(entry_id, user.id)
    if entry is None:
        raise HTTPException(status_code=404, detail="Notebook entry not found")
    notebook.delete(entry)


# ============================================================================
# Gateway room authorization
# ============================================================================

def can_join_conversation_room(db: Session, user_id: str, conversation_id: str) -> bool:
    return ConversationDao(db).get_participant(conversation_id, user_id) is not None


def can_join_fade_room(db: Session, user_id: str, fade_id: str, require_participant: bool) -> bool:
    # Fade rooms are open to any authenticated socket unless configured otherwise.
    if not require_participant:
        return True
    return FadeDao(db).get_participant(fade_id, user_id) is not None
