"""
FastAPI Router: Messages

Sending over REST. A stored message is also broadcast as `new-message`
to the matching gateway room, so clients joined to the room see it no
matter which transport the sender used.
"""
from datetime import datetime

from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool

from hive.api.gateway import conversation_room, fade_room, persist_conversation_message, persist_fade_message
from hive.api.models import MessageCreate
from hive.api.utils import get_current_user, get_now
from hive.database.core.session import get_db
from hive.database.entities import User

router = APIRouter(prefix="/api/messages", tags=["messages"])


@router.post("/conversations/{conversation_id}", status_code=201)
async def send_conversation_message(
    conversation_id: str,
    data: MessageCreate,
    request: Request,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """
    Post a message to a conversation.

    Request Body
    ------------
    MessageCreate {content: str, replyToId?: str, clientId?: str}

    Returns
    -------
    dict
        The stored message with its sender's public profile; `clientId`
        is echoed back for optimistic reconciliation.

    Raises
    ------
    HTTPException 400
        If the content is empty, over 2000 characters, or the reply
        target is not in this conversation.
    HTTPException 403
        If the caller is not a participant.
    HTTPException 404
        If the conversation is missing or deleted.
    """
    payload = await run_in_threadpool(
        persist_conversation_message, db, user.id, conversation_id, data.content, data.reply_to_id, data.client_id
    )
    await request.app.state.hub.broadcast(conversation_room(conversation_id), "new-message", payload)
    return payload


@router.post("/fades/{fade_id}", status_code=201)
async def send_fade_message(
    fade_id: str,
    data: MessageCreate,
    request: Request,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    now: datetime = Depends(get_now),
):
    """
    Post a message to a fade. Same contract as the conversation route,
    except that an expired fade answers 404.
    """
    payload = await run_in_threadpool(
        persist_fade_message, db, user.id, fade_id, data.content, data.reply_to_id, data.client_id, now
    )
    await request.app.state.hub.broadcast(fade_room(fade_id), "new-message", payload)
    return payload
