"""
FastAPI Router: Notebook

Per-user bookmarks of conversation messages.
"""
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from hive.api.models import NotebookCreate, NotebookOut
from hive.api.utils import get_current_user
from hive.database.core import funcs
from hive.database.core.session import get_db
from hive.database.entities import User

router = APIRouter(prefix="/api/notebook", tags=["notebook"])


@router.get("")
def list_entries(user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    """Saved messages, most recently saved first."""
    return NotebookOut.dump_many(funcs.list_notebook(db, user))


@router.post("", status_code=201)
def save_entry(data: NotebookCreate, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    """
    Save a conversation message.

    Request Body
    ------------
    NotebookCreate {messageId: str, title?: str}

    Raises
    ------
    HTTPException 403
        If the caller is not a participant of the message's conversation.
    HTTPException 404
        If the message does not exist.
    HTTPException 409
        If the message is already saved.
    """
    return NotebookOut.dump(funcs.save_to_notebook(db, user, data))


@router.delete("/{entry_id}")
def delete_entry(entry_id: str, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    funcs.remove_from_notebook(db, user, entry_id)
    return {"message": "Notebook entry removed"}
