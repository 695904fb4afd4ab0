"""
FastAPI Router: Conversations

Persistent rooms. Listing, discovery, creation, creator-only updates and
soft deletes, joining public rooms and leaving, plus paged message history.
"""

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool

from hive.api.gateway import conversation_room
from hive.api.models import (
    ConversationCreate,
    ConversationDetailOut,
    ConversationOut,
    ConversationSummaryOut,
    MessageOut,
    RoomUpdate,
)
from hive.api.utils import get_current_user
from hive.database.core import funcs
from hive.database.core.session import get_db
from hive.database.entities import User

router = APIRouter(prefix="/api/conversations", tags=["conversations"])


@router.get("/public")
def list_public(user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    """Active PUBLIC conversations, most recently updated first."""
    return ConversationSummaryOut.dump_many(funcs.list_public_conversations(db))


@router.get("")
def list_mine(user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    """
    The caller's active conversations.

    Returns
    -------
    list[dict]
        Newest update first, each carrying only its latest message.
    """
    return ConversationSummaryOut.dump_many(funcs.list_conversations(db, user))


@router.get("/{conversation_id}/messages")
def list_messages(
    conversation_id: str,
    limit: int | None = Query(None, ge=1),
    offset: int | None = Query(None, ge=0),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """
    Message history in ascending creation order.

    Raises
    ------
    HTTPException 403
        If the caller is not a participant.
    """
    messages = funcs.get_conversation_messages(db, user, conversation_id, limit, offset)
    return MessageOut.dump_many(messages)


@router.get("/{conversation_id}")
def get_conversation(conversation_id: str, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    """
    A single conversation with all of its messages.

    Raises
    ------
    HTTPException 404
        If it is missing, deleted, or the caller is not a participant.
    """
    return ConversationDetailOut.dump(funcs.get_conversation(db, user, conversation_id))


@router.post("", status_code=201)
def create_conversation(
    data: ConversationCreate, user: User = Depends(get_current_user), db: Session = Depends(get_db)
):
    """
    Create a conversation.

    Request Body
    ------------
    ConversationCreate {name: str, description?: str, topics?: list[str],
    visibility?: str, participantIds?: list[str]}

    Returns
    -------
    dict
        The conversation; the caller is its HOST and every listed
        participant a CONVERSER.

    Raises
    ------
    HTTPException 400
        If the name, topics, visibility or participant ids are invalid.
    """
    return ConversationOut.dump(funcs.create_conversation(db, user, data))


@router.put("/{conversation_id}")
def update_conversation(
    conversation_id: str, data: RoomUpdate, user: User = Depends(get_current_user), db: Session = Depends(get_db)
):
    """
    Update the keys present in the body. Creator only.

    Raises
    ------
    HTTPException 404
        If the conversation is missing or the caller did not create it.
    """
    return ConversationOut.dump(funcs.update_conversation(db, user, conversation_id, data))


@router.delete("/{conversation_id}")
async def delete_conversation(
    conversation_id: str, request: Request, user: User = Depends(get_current_user), db: Session = Depends(get_db)
):
    """Soft delete. Creator only. Open sockets stop receiving the room."""
    await run_in_threadpool(funcs.delete_conversation, db, user, conversation_id)
    request.app.state.hub.close_room(conversation_room(conversation_id))
    return {"message": "Conversation deleted successfully"}


@router.post("/{conversation_id}/join")
def join_conversation(conversation_id: str, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    """
    Join an active PUBLIC conversation as a CONVERSER.

    Raises
    ------
    HTTPException 404
        If the conversation is not joinable.
    HTTPException 409
        If the caller already participates.
    """
    funcs.join_conversation(db, user, conversation_id)
    return {"message": "Successfully joined conversation"}


@router.post("/{conversation_id}/leave")
async def leave_conversation(
    conversation_id: str, request: Request, user: User = Depends(get_current_user), db: Session = Depends(get_db)
):
    await run_in_threadpool(funcs.leave_conversation, db, user, conversation_id)
    request.app.state.hub.evict_user(conversation_room(conversation_id), user.id)
    return {"message": "Successfully left conversation"}
