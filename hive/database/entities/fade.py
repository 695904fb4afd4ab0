from datetime import datetime
from typing import Optional

from sqlalchemy import JSON, Boolean, Enum as SAEnum, ForeignKey, String, Text, UniqueConstraint, func, select
from sqlalchemy.orm import Mapped, mapped_column, object_session, relationship

from hive.database.entities.base import Base, Role, UTCDateTime, Visibility, new_id, utcnow
from hive.database.entities.user import User


class Fade(Base):
    """
    A time-boxed chat room.

    `expires_at` is validated once at creation. Nothing reaps a fade when it
    elapses; discovery queries simply stop matching it.
    """

    __tablename__ = "fades"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    name: Mapped[str] = mapped_column(String(120), nullable=False)
    description: Mapped[str | None] = mapped_column(Text)
    topics: Mapped[list[str]] = mapped_column(JSON, default=list, nullable=False)
    visibility: Mapped[Visibility] = mapped_column(
        SAEnum(Visibility, name="visibility"), default=Visibility.PUBLIC, nullable=False
    )
    default_mute: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    expires_at: Mapped[datetime] = mapped_column(UTCDateTime, index=True, nullable=False)
    converted_to_conversation: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    creator_id: Mapped[str] = mapped_column(ForeignKey("users.id"), nullable=False)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        UTCDateTime, default=utcnow, onupdate=utcnow, nullable=False
    )

    creator: Mapped[User] = relationship(lazy="joined")
    participants: Mapped[list["FadeParticipant"]] = relationship(
        back_populates="fade",
        cascade="all, delete-orphan",
        order_by="FadeParticipant.joined_at",
    )
    messages: Mapped[list["FadeMessage"]] = relationship(
        back_populates="fade",
        order_by="FadeMessage.created_at",
        foreign_keys="FadeMessage.fade_id",
    )

    @property
    def latest_messages(self) -> list["FadeMessage"]:
        session = object_session(self)
        if session is None:
            return []
        stmt = (
            select(FadeMessage)
            .where(FadeMessage.fade_id == self.id)
            .order_by(FadeMessage.created_at.desc())
            .limit(1)
        )
        return list(session.scalars(stmt))

    @property
    def counts(self) -> dict:
        session = object_session(self)
        messages = 0
        if session is not None:
            messages = session.scalar(
                select(func.count(FadeMessage.id)).where(FadeMessage.fade_id == self.id)
            )
        return {"participants": len(self.participants), "messages": messages}


class FadeParticipant(Base):
    __tablename__ = "fade_participants"
    __table_args__ = (UniqueConstraint("fade_id", "user_id"),)

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    fade_id: Mapped[str] = mapped_column(ForeignKey("fades.id", ondelete="CASCADE"), index=True, nullable=False)
    user_id: Mapped[str] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), index=True, nullable=False)
    role: Mapped[Role] = mapped_column(SAEnum(Role, name="participant_role"), default=Role.CONVERSER, nullable=False)
    is_muted: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    joined_at: Mapped[datetime] = mapped_column(UTCDateTime, default=utcnow, nullable=False)

    fade: Mapped[Fade] = relationship(back_populates="participants")
    user: Mapped[User] = relationship(lazy="joined")


class FadeMessage(Base):
    __tablename__ = "fade_messages"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    fade_id: Mapped[str] = mapped_column(ForeignKey("fades.id", ondelete="CASCADE"), index=True, nullable=False)
    user_id: Mapped[str] = mapped_column(ForeignKey("users.id"), index=True, nullable=False)
    reply_to_id: Mapped[str | None] = mapped_column(ForeignKey("fade_messages.id", ondelete="SET NULL"))
    is_pinned: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    pinned_at: Mapped[datetime | None] = mapped_column(UTCDateTime)
    pinned_by: Mapped[str | None] = mapped_column(ForeignKey("users.id"))
    language: Mapped[str | None] = mapped_column(String(16))
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, default=utcnow, index=True, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        UTCDateTime, default=utcnow, onupdate=utcnow, nullable=False
    )

    fade: Mapped[Fade] = relationship(back_populates="messages", foreign_keys=[fade_id])
    user: Mapped[User] = relationship(lazy="joined", foreign_keys=[user_id])
    reply_to: Mapped[Optional["FadeMessage"]] = relationship(remote_side=[id])
