from __future__ import annotations

from fastapi import APIRouter, HTTPException, Request

from ..modules.notifications import notifier
from ._actor import current_actor

router = APIRouter(tags=["notifications"])


@router.get("")
@router.get("/")
def list_mine(request: Request, unreadOnly: bool = False):
    actor = current_actor(request)
    return {"ok": True, **notifier.list_notifications(user_id=actor.sub, unread_only=unreadOnly)}


@router.post("/read-all")
def read_all(request: Request):
    actor = current_actor(request)
    return {"ok": True, "updated": notifier.mark_all_read(user_id=actor.sub)}


@router.post("/{id}/read")
def read_one(request: Request, id: str):
    actor = current_actor(request)
    n = notifier.mark_read(user_id=actor.sub, notification_id=id)
    if not n:
        raise HTTPException(status_code=404, detail="Notification not found")
    return {"ok": True, "notification": n}
