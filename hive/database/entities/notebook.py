from datetime import datetime

from sqlalchemy import ForeignKey, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from hive.database.entities.base import Base, UTCDateTime, new_id, utcnow
from hive.database.entities.conversation import Message


class Notebook(Base):
    """A message a user bookmarked, optionally with a title."""

    __tablename__ = "notebook"
    __table_args__ = (UniqueConstraint("user_id", "message_id"),)

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    user_id: Mapped[str] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), index=True, nullable=False)
    message_id: Mapped[str] = mapped_column(ForeignKey("messages.id", ondelete="CASCADE"), nullable=False)
    title: Mapped[str | None] = mapped_column(String(200))
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, default=utcnow, nullable=False)

    message: Mapped[Message] = relationship(lazy="joined")
