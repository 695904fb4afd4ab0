from sqlalchemy import select
from sqlalchemy.orm import Session

from hive.database.entities import User


class UserDao:
    """Persistence operations for :class:`User` rows."""

    def __init__(self, session: Session):
        self.session = session

    def get_by_id(self, user_id: str) -> User | None:
        return self.session.get(User, user_id)

    def get_by_email(self, email: str) -> User | None:
        return self.session.scalar(select(User).where(User.email == email))

    def get_many(self, user_ids) -> list[User]:
        if not user_ids:
            return []
        return list(self.session.scalars(select(User).where(User.id.in_(user_ids))))

    def create_user(self, email: str, password_hash: str, name: str, display_name: str | None) -> User:
        user = User(email=email, password=password_hash, name=name, display_name=display_name)
        self.session.add(user)
        self.session.commit()
        return user
