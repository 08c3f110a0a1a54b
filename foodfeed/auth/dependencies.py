from __future__ import annotations

from fastapi import HTTPException, Request

from ..backend.base import Backend
from .models import AuthUser


def get_current_user(request: Request) -> AuthUser | None:
    """Return the user from the session, or ``None``."""
    raw = request.session.get("user")
    return AuthUser(**raw) if raw else None


def require_user(request: Request) -> AuthUser:
    """Raise 401 if no user is logged in."""
    user = get_current_user(request)
    if user is None:
        raise HTTPException(status_code=401, detail="Not authenticated")
    return user


def get_backend(request: Request) -> Backend:
    """The application's backend, bound to whoever is logged in (if anyone)."""
    return request.app.state.backend.as_user(get_current_user(request))


def require_backend(request: Request) -> Backend:
    """Like :func:`get_backend`, but raise 401 when nobody is logged in."""
    return request.app.state.backend.as_user(require_user(request))
