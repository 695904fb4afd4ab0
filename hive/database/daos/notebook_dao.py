from sqlalchemy import select
from sqlalchemy.orm import Session

from hive.database.entities import Notebook


class NotebookDao:
    def __init__(self, session: Session):
        self.session = session

    def list_for_user(self, user_id: str) -> list[Notebook]:
        stmt = select(Notebook).where(Notebook.user_id == user_id).order_by(Notebook.created_at.desc())
        return list(self.session.scalars(stmt).unique())

    def get_owned(self, entry_id: str, user_id: str) -> Notebook | None:
        return self.session.scalar(select(Notebook).where(Notebook.id == entry_id, Notebook.user_id == user_id))

    def get_by_message(self, user_id: str, message_id: str) -> Notebook | None:
        return self.session.scalar(
            select(Notebook).where(Notebook.user_id == user_id, Notebook.message_id == message_id)
        )

    def create(self, user_id: str, message_id: str, title: str | None) -> Notebook:
        entry = Notebook(user_id=user_id, message_id=message_id, title=title)
        self.session.add(entry)
        self.session.commit()
        return entry

    def delete(self, entry: Notebook) -> None:
        self.session.delete(entry)
        self.session.commit()
