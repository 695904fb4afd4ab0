from sqlalchemy import select
from sqlalchemy.orm import Session, selectinload

from hive.database.entities import Conversation, ConversationParticipant, Role, Visibility


class ConversationDao:
    """
    Persistence operations for conversations and their participant rows.

    Every read except :meth:`get_any` filters out soft-deleted rows.
    """

    def __init__(self, session: Session):
        self.session = session

    def _query(self):
        return select(Conversation).options(
            selectinload(Conversation.participants).joinedload(ConversationParticipant.user)
        )

    def list_for_user(self, user_id: str) -> list[Conversation]:
        stmt = (
            self._query()
            .where(
                Conversation.is_active.is_(True),
                Conversation.participants.any(ConversationParticipant.user_id == user_id),
            )
            .order_by(Conversation.updated_at.desc())
        )
        return list(self.session.scalars(stmt).unique())

    def list_public(self) -> list[Conversation]:
        stmt = (
            self._query()
            .where(Conversation.is_active.is_(True), Conversation.visibility == Visibility.PUBLIC)
            .order_by(Conversation.updated_at.desc())
        )
        return list(self.session.scalars(stmt).unique())

    def get_for_participant(self, conversation_id: str, user_id: str) -> Conversation | None:
        stmt = self._query().where(
            Conversation.id == conversation_id,
            Conversation.is_active.is_(True),
            Conversation.participants.any(ConversationParticipant.user_id == user_id),
        )
        return self.session.scalars(stmt).unique().first()

    def get_owned(self, conversation_id: str, creator_id: str) -> Conversation | None:
        stmt = self._query().where(
            Conversation.id == conversation_id,
            Conversation.creator_id == creator_id,
            Conversation.is_active.is_(True),
        )
        return self.session.scalars(stmt).unique().first()

    def get_active(self, conversation_id: str, visibility: Visibility | None = None) -> Conversation | None:
        stmt = select(Conversation).where(Conversation.id == conversation_id, Conversation.is_active.is_(True))
        if visibility is not None:
            stmt = stmt.where(Conversation.visibility == visibility)
        return self.session.scalar(stmt)

    def get_any(self, conversation_id: str) -> Conversation | None:
        """Unfiltered lookup by id, soft-deleted rows included."""
        return self.session.get(Conversation, conversation_id)

    def create(self, creator_id: str, participant_ids, **fields) -> Conversation:
        conversation = Conversation(creator_id=creator_id, **fields)
        conversation.participants.append(ConversationParticipant(user_id=creator_id, role=Role.HOST))
        for user_id in participant_ids:
            conversation.participants.append(ConversationParticipant(user_id=user_id, role=Role.CONVERSER))
        self.session.add(conversation)
        self.session.commit()
        return conversation

    def update(self, conversation: Conversation, **fields) -> Conversation:
        for key, value in fields.items():
            setattr(conversation, key, value)
        self.session.commit()
        return conversation

    def soft_delete(self, conversation: Conversation) -> None:
        conversation.is_active = False
        self.session.commit()

    def get_participant(self, conversation_id: str, user_id: str) -> ConversationParticipant | None:
        return self.session.scalar(
            select(ConversationParticipant).where(
                ConversationParticipant.conversation_id == conversation_id,
                ConversationParticipant.user_id == user_id,
            )
        )

    def add_participant(self, conversation_id: str, user_id: str, role: Role = Role.CONVERSER) -> ConversationParticipant:
        participant = ConversationParticipant(conversation_id=conversation_id, user_id=user_id, role=role)
        self.session.add(participant)
        self.session.commit()
        return participant

    def remove_participant(self, participant: ConversationParticipant) -> None:
        self.session.delete(participant)
        self.session.commit()
