"""
api/routes/auth.py -- Signup, signin, signout, and current-user endpoints.

Routes:
  POST /api/auth/sign-up   -- create account; 201 + session cookie
  POST /api/auth/sign-in   -- password login; sets session cookie
  POST /api/auth/sign-out  -- clears session cookie; always 200
  GET  /api/auth/me        -- current user's public projection (requires auth)

Every route except sign-out sits behind enforce_admission (attached in
api/main.py). sign-out lives on session_router, which is mounted without
admission so a throttled or flagged caller can still clear the cookie.

Security:
  [C1] authenticate_user() provides timing equalization -- use it, never inline.
  [M5] Cache-Control: no-store on sign-in / sign-up responses.
  Signup role: role=admin is honoured only for an authenticated admin caller,
       or when ALLOW_ADMIN_SIGNUP is set. Otherwise 403.
  Domain errors (DuplicateEmailError, InvalidCredentialsError, HashingError)
  propagate to the exception handlers in api/main.py.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import JSONResponse

from api.models import AuthResponse, MessageResponse, RoleEnum, SigninRequest, SignupRequest, UserResponse
from auth.dependencies import get_current_user, try_get_current_user
from auth.models import User
from auth.service import authenticate_user, register_user
from auth.store import UserStore
from auth.tokens import clear_auth_cookie, create_access_token, set_auth_cookie
from core.config import get_settings

# Auth policy:
# - POST /api/auth/sign-up:   public (admin role gated, see module docstring)
# - POST /api/auth/sign-in:   public
# - POST /api/auth/sign-out:  public, not admission-gated (session_router)
# - GET  /api/auth/me:        requires auth (get_current_user)
router = APIRouter()
session_router = APIRouter()


def _auth_response(status_code: int, message: str, user: User) -> JSONResponse:
    resp = JSONResponse(
        status_code=status_code,
        content=AuthResponse(message=message, user=UserResponse.from_user(user)).model_dump(mode="json"),
    )
    resp.headers["Cache-Control"] = "no-store"  # [M5]
    return resp


@router.post("/auth/sign-up", response_model=AuthResponse, status_code=201)
def sign_up(request: Request, body: SignupRequest) -> JSONResponse:
    """Register a new account and sign the caller in.

    When an admin creates an account on someone else's behalf, the admin's own
    session cookie is left untouched.
    """
    user_store: UserStore = request.app.state.user_store
    caller = try_get_current_user(request)

    if body.role == RoleEnum.admin and not get_settings().allow_admin_signup:
        if caller is None or caller.role != "admin":
            raise HTTPException(
                status_code=403,
                detail={"code": "forbidden", "message": "Only an admin can create admin accounts."},
            )

    user = register_user(user_store, body.name, body.email, body.password, body.role.value)

    resp = _auth_response(201, "User registered successfully.", user)
    if caller is None:
        set_auth_cookie(resp, create_access_token(user.id, user.email, user.role))
    return resp


@router.post("/auth/sign-in", response_model=AuthResponse)
def sign_in(request: Request, body: SigninRequest) -> JSONResponse:
    """Authenticate with email and password; set the session cookie.

    Unknown email and wrong password produce the same 401 body.
    """
    user_store: UserStore = request.app.state.user_store
    user = authenticate_user(user_store, body.email, body.password)

    resp = _auth_response(200, "User signed in successfully.", user)
    set_auth_cookie(resp, create_access_token(user.id, user.email, user.role))
    return resp


@session_router.post("/auth/sign-out", response_model=MessageResponse)
async def sign_out() -> JSONResponse:
    """Clear the session cookie. Idempotent; the token itself is not revoked."""
    resp = JSONResponse(content=MessageResponse(message="User signed out successfully.").model_dump())
    clear_auth_cookie(resp)
    return resp


@router.get("/auth/me", response_model=UserResponse)
def me(current_user: User = Depends(get_current_user)) -> UserResponse:
    """Return the public projection of the authenticated user."""
    return UserResponse.from_user(current_user)
