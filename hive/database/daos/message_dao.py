from sqlalchemy import select
from sqlalchemy.orm import Session, joinedload

from hive.database.entities import Conversation, Fade, FadeMessage, Message, utcnow


class MessageDao:
    """
    Persistence operations for the messages of one room type.

    Conversation and fade messages share the same shape, so a single DAO is
    bound to either ``(Message, Conversation)`` or ``(FadeMessage, Fade)``.
    Use :meth:`for_conversations` and :meth:`for_fades` to build one.
    """

    def __init__(self, session: Session, model, parent_model, parent_key: str):
        self.session = session
        self.model = model
        self.parent_model = parent_model
        self.parent_key = parent_key

    @classmethod
    def for_conversations(cls, session: Session) -> "MessageDao":
        return cls(session, Message, Conversation, "conversation_id")

    @classmethod
    def for_fades(cls, session: Session) -> "MessageDao":
        return cls(session, FadeMessage, Fade, "fade_id")

    @property
    def _parent_column(self):
        return getattr(self.model, self.parent_key)

    def list_messages(self, parent_id: str, limit: int | None = None, offset: int | None = None) -> list:
        stmt = (
            select(self.model)
            .options(joinedload(self.model.reply_to))
            .where(self._parent_column == parent_id)
            .order_by(self.model.created_at.asc())
        )
        if offset:
            stmt = stmt.offset(offset)
        if limit:
            stmt = stmt.limit(limit)
        return list(self.session.scalars(stmt).unique())

    def get_in_parent(self, message_id: str, parent_id: str):
        return self.session.scalar(
            select(self.model).where(self.model.id == message_id, self._parent_column == parent_id)
        )

    def get(self, message_id: str):
        return self.session.get(self.model, message_id)

    def create(self, parent_id: str, user_id: str, content: str, reply_to_id: str | None = None):
        """Insert a message and bump the parent's ``updated_at`` in the same commit."""
        message = self.model(user_id=user_id, content=content, reply_to_id=reply_to_id)
        setattr(message, self.parent_key, parent_id)
        self.session.add(message)

        parent = self.session.get(self.parent_model, parent_id)
        if parent is not None:
            parent.updated_at = utcnow()

        self.session.commit()
        return message
