from datetime import datetime

from sqlalchemy import select
from sqlalchemy.orm import Session, selectinload

from hive.database.entities import Fade, FadeParticipant, Role, Visibility
from hive.expiry import visible_clause


class FadeDao:
    """
    Persistence operations for fades and their participant rows.

    Discovery and join lookups apply the expiry policy's visibility clause;
    lookups for an already-open fade only require it to be active.
    """

    def __init__(self, session: Session):
        self.session = session

    def _query(self):
        return select(Fade).options(selectinload(Fade.participants).joinedload(FadeParticipant.user))

    def list_for_user(self, user_id: str, now: datetime | None = None) -> list[Fade]:
        stmt = (
            self._query()
            .where(visible_clause(Fade, now), Fade.participants.any(FadeParticipant.user_id == user_id))
            .order_by(Fade.created_at.desc())
        )
        return list(self.session.scalars(stmt).unique())

    def list_public(self, now: datetime | None = None) -> list[Fade]:
        stmt = (
            self._query()
            .where(visible_clause(Fade, now), Fade.visibility == Visibility.PUBLIC)
            .order_by(Fade.created_at.desc())
        )
        return list(self.session.scalars(stmt).unique())

    def get_for_participant(self, fade_id: str, user_id: str) -> Fade | None:
        stmt = self._query().where(
            Fade.id == fade_id,
            Fade.is_active.is_(True),
            Fade.participants.any(FadeParticipant.user_id == user_id),
        )
        return self.session.scalars(stmt).unique().first()

    def get_owned(self, fade_id: str, creator_id: str) -> Fade | None:
        stmt = self._query().where(Fade.id == fade_id, Fade.creator_id == creator_id, Fade.is_active.is_(True))
        return self.session.scalars(stmt).unique().first()

    def get_visible(self, fade_id: str, now: datetime | None = None) -> Fade | None:
        return self.session.scalar(select(Fade).where(Fade.id == fade_id, visible_clause(Fade, now)))

    def get_any(self, fade_id: str) -> Fade | None:
        return self.session.get(Fade, fade_id)

    def create(self, creator_id: str, **fields) -> Fade:
        fade = Fade(creator_id=creator_id, **fields)
        fade.participants.append(FadeParticipant(user_id=creator_id, role=Role.HOST))
        self.session.add(fade)
        self.session.commit()
        return fade

    def update(self, fade: Fade, **fields) -> Fade:
        for key, value in fields.items():
            setattr(fade, key, value)
        self.session.commit()
        return fade

    def soft_delete(self, fade: Fade) -> None:
        fade.is_active = False
        self.session.commit()

    def get_participant(self, fade_id: str, user_id: str) -> FadeParticipant | None:
        return self.session.scalar(
            select(FadeParticipant).where(FadeParticipant.fade_id == fade_id, FadeParticipant.user_id == user_id)
        )

    def add_participant(self, fade_id: str, user_id: str, role: Role = Role.CONVERSER) -> FadeParticipant:
        participant = FadeParticipant(fade_id=fade_id, user_id=user_id, role=role)
        self.session.add(participant)
        self.session.commit()
        return participant

    def remove_participant(self, participant: FadeParticipant) -> None:
        self.session.delete(participant)
        self.session.commit()
