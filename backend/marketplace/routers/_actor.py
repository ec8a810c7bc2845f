from __future__ import annotations

from fastapi import HTTPException, Request

from ..auth.identity import Actor


def current_actor(request: Request) -> Actor:
    user = getattr(request.state, "user", None)
    if not user or not str(getattr(user, "sub", "") or "").strip():
        raise HTTPException(status_code=401, detail="Unauthorized")
    return user


def optional_actor(request: Request) -> Actor | None:
    """Public routes: the caller is resolved only when a token was sent."""
    return getattr(request.state, "user", None)
