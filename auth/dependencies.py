"""
auth/dependencies.py -- FastAPI Depends() helpers for authentication.

Two token sources are checked in priority order:
  1. JWT cookie ("token") -- set by sign-in / sign-up.
  2. Authorization: Bearer <token> header -- API clients.

read_token_claims() is the shared, store-free step: the admission gate uses
it to derive the caller's role before any route runs.

try_get_current_user() is the soft variant (returns None on failure).
get_current_user() wraps it and raises HTTP 401 if unauthenticated.
require_admin() wraps get_current_user() and raises HTTP 403 if not admin.

Layer rule: no imports from api/ or admission/.
  auth/dependencies.py may import from fastapi (for HTTPException/Request)
  because this module is part of the FastAPI dependency injection system.
"""

from __future__ import annotations

from fastapi import HTTPException, Request

from auth.errors import InvalidTokenError
from auth.models import User
from auth.tokens import COOKIE_NAME, decode_access_token


def read_token_claims(request: Request) -> dict | None:
    """Return verified JWT claims from the cookie or Bearer header, else None."""
    token: str | None = request.cookies.get(COOKIE_NAME)

    if not token:
        auth_header = request.headers.get("Authorization", "")
        if auth_header.startswith("Bearer "):
            token = auth_header[7:]

    if not token:
        return None
    try:
        return decode_access_token(token)
    except InvalidTokenError:
        return None


def try_get_current_user(request: Request) -> User | None:
    """Authenticate the request. Returns the User or None; never raises.

    The token alone is not trusted for existence: the user is re-read from
    the store so a deleted account stops authenticating immediately.
    """
    claims = read_token_claims(request)
    if claims is None:
        return None
    return request.app.state.user_store.get_by_id(claims["user_id"])


def get_current_user(request: Request) -> User:
    """Require authentication. Raises HTTP 401 if the request is not authenticated.

    Use as a FastAPI dependency:
        @router.get("/protected")
        def route(user: User = Depends(get_current_user)): ...
    """
    user = try_get_current_user(request)
    if user is None:
        raise HTTPException(
            status_code=401,
            detail={"code": "unauthorized", "message": "Authentication required."},
        )
    return user


def require_admin(request: Request) -> User:
    """Require admin role. Raises HTTP 401 if unauthenticated, HTTP 403 if not admin."""
    user = get_current_user(request)
    if user.role != "admin":
        raise HTTPException(
            status_code=403,
            detail={"code": "forbidden", "message": "Admin access required."},
        )
    return user
