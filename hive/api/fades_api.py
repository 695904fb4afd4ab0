"""
FastAPI Router: Fades

Ephemeral rooms. Same surface as conversations, with an expiry set at
creation. Discovery, listing and joining only see fades whose expiry is
still ahead of the request clock; a participant can still open an expired
fade and read its history.
"""
from datetime import datetime

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool

from hive.api.gateway import fade_room
from hive.api.models import FadeCreate, FadeDetailOut, FadeMessageOut, FadeOut, FadeSummaryOut, RoomUpdate
from hive.api.utils import get_current_user, get_now
from hive.database.core import funcs
from hive.database.core.session import get_db
from hive.database.entities import User

router = APIRouter(prefix="/api/fades", tags=["fades"])


@router.get("/public")
def list_public(
    user: User = Depends(get_current_user), db: Session = Depends(get_db), now: datetime = Depends(get_now)
):
    """Visible PUBLIC fades, newest first."""
    return FadeSummaryOut.dump_many(funcs.list_public_fades(db, now))


@router.get("")
def list_mine(
    user: User = Depends(get_current_user), db: Session = Depends(get_db), now: datetime = Depends(get_now)
):
    """The caller's fades that have not yet expired, newest first."""
    return FadeSummaryOut.dump_many(funcs.list_fades(db, user, now))


@router.get("/{fade_id}/messages")
def list_messages(
    fade_id: str,
    limit: int | None = Query(None, ge=1),
    offset: int | None = Query(None, ge=0),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return FadeMessageOut.dump_many(funcs.get_fade_messages(db, user, fade_id, limit, offset))


@router.get("/{fade_id}")
def get_fade(fade_id: str, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    return FadeDetailOut.dump(funcs.get_fade(db, user, fade_id))


@router.post("", status_code=201)
def create_fade(
    data: FadeCreate,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    now: datetime = Depends(get_now),
):
    """
    Create a fade.

    Request Body
    ------------
    FadeCreate {name: str, expiresAt: datetime, description?: str,
    topics?: list[str], visibility?: str}

    Returns
    -------
    dict
        The fade, with the caller as its HOST.

    Raises
    ------
    HTTPException 400
        If the name is invalid, or the expiry is missing, not in the
        future, or more than a week away.
    """
    return FadeOut.dump(funcs.create_fade(db, user, data, now))


@router.put("/{fade_id}")
def update_fade(fade_id: str, data: RoomUpdate, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    """Update the keys present in the body. Creator only; the expiry is fixed."""
    return FadeOut.dump(funcs.update_fade(db, user, fade_id, data))


@router.delete("/{fade_id}")
async def delete_fade(
    fade_id: str, request: Request, user: User = Depends(get_current_user), db: Session = Depends(get_db)
):
    await run_in_threadpool(funcs.delete_fade, db, user, fade_id)
    request.app.state.hub.close_room(fade_room(fade_id))
    return {"message": "Fade deleted successfully"}


@router.post("/{fade_id}/join")
def join_fade(
    fade_id: str,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    now: datetime = Depends(get_now),
):
    """
    Join a fade that is active and not yet expired.

    Raises
    ------
    HTTPException 404
        If the fade is missing, deleted or expired.
    HTTPException 409
        If the caller already participates.
    """
    funcs.join_fade(db, user, fade_id, now)
    return {"message": "Successfully joined fade"}


@router.post("/{fade_id}/leave")
async def leave_fade(
    fade_id: str, request: Request, user: User = Depends(get_current_user), db: Session = Depends(get_db)
):
    await run_in_threadpool(funcs.leave_fade, db, user, fade_id)
    request.app.state.hub.evict_user(fade_room(fade_id), user.id)
    return {"message": "Successfully left fade"}
