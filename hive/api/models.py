"""
Pydantic schemas for request/response validation.

Request bodies accept the camelCase keys the web client sends. Fields are
deliberately loose (mostly optional strings) so the service layer can
report the same field-level messages for a missing value as for a bad one.
Response schemas read straight from ORM entities and serialise to
camelCase, with nested creator/participant/sender profiles.
"""
from datetime import datetime
from typing import Any

from pydantic import AliasGenerator, BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from hive.database.entities import Role, Visibility


class RequestModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ResponseModel(BaseModel):
    model_config = ConfigDict(
        from_attributes=True,
        alias_generator=AliasGenerator(serialization_alias=to_camel),
    )

    @classmethod
    def dump(cls, obj, **extra) -> dict:
        """Validate `obj` (usually an ORM entity) and return its JSON-ready camelCase dict."""
        model = cls.model_validate(obj)
        for key, value in extra.items():
            setattr(model, key, value)
        return model.model_dump(mode="json", by_alias=True)

    @classmethod
    def dump_many(cls, objs) -> list[dict]:
        return [cls.dump(obj) for obj in objs]


# ---------------------------------------------------------------------------
# Requests
# ---------------------------------------------------------------------------

class SignupRequest(RequestModel):
    email: str | None = None
    password: str | None = None
    name: str | None = None
    display_name: str | None = None


class LoginRequest(RequestModel):
    email: str | None = None
    password: str | None = None


class RoomCreate(RequestModel):
    name: str | None = None
    description: str | None = None
    topics: Any = None
    visibility: str | None = None


class ConversationCreate(RoomCreate):
    participant_ids: list[str] | None = None


class FadeCreate(RoomCreate):
    expires_at: datetime | None = None


class RoomUpdate(RequestModel):
    """Partial update; only keys present in the body are applied."""

    name: str | None = None
    description: str | None = None
    topics: Any = None
    visibility: str | None = None


class MessageCreate(RequestModel):
    content: str | None = None
    reply_to_id: str | None = None
    client_id: str | None = None


class NotebookCreate(RequestModel):
    message_id: str | None = None
    title: str | None = None


# ---------------------------------------------------------------------------
# Responses
# ---------------------------------------------------------------------------

class PublicUser(ResponseModel):
    id: str
    name: str
    display_name: str | None = None
    avatar: str | None = None


class UserOut(PublicUser):
    email: str
    google_id: str | None = None
    created_at: datetime
    updated_at: datetime


class Counts(ResponseModel):
    participants: int
    messages: int


class ReplyOut(ResponseModel):
    id: str
    content: str
    user_id: str
    created_at: datetime
    user: PublicUser


class MessageBase(ResponseModel):
    id: str
    content: str
    user_id: str
    reply_to_id: str | None = None
    is_pinned: bool = False
    pinned_at: datetime | None = None
    pinned_by: str | None = None
    language: str | None = None
    created_at: datetime
    updated_at: datetime
    user: PublicUser
    reply_to: ReplyOut | None = None
    client_id: str | None = None


class MessageOut(MessageBase):
    conversation_id: str


class FadeMessageOut(MessageBase):
    fade_id: str


class ParticipantBase(ResponseModel):
    id: str
    user_id: str
    role: Role
    is_muted: bool
    joined_at: datetime
    user: PublicUser


class ConversationParticipantOut(ParticipantBase):
    conversation_id: str


class FadeParticipantOut(ParticipantBase):
    fade_id: str


class RoomBase(ResponseModel):
    id: str
    name: str
    description: str | None = None
    topics: list[str]
    visibility: Visibility
    default_mute: bool
    is_active: bool
    creator_id: str
    created_at: datetime
    updated_at: datetime
    creator: PublicUser
    counts: Counts = Field(serialization_alias="_count")


class ConversationOut(RoomBase):
    participants: list[ConversationParticipantOut]


class ConversationSummaryOut(ConversationOut):
    """List entry: carries only the latest message."""

    messages: list[MessageOut] = Field(validation_alias="latest_messages")


class ConversationDetailOut(ConversationOut):
    messages: list[MessageOut]


class FadeOut(RoomBase):
    expires_at: datetime
    converted_to_conversation: bool
    participants: list[FadeParticipantOut]


class FadeSummaryOut(FadeOut):
    messages: list[FadeMessageOut] = Field(validation_alias="latest_messages")


class FadeDetailOut(FadeOut):
    messages: list[FadeMessageOut]


class NotebookOut(ResponseModel):
    id: str
    user_id: str
    message_id: str
    title: str | None = None
    created_at: datetime
    message: MessageOut
