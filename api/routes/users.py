"""
api/routes/users.py -- Role-aware user CRUD.

Routes:
  GET    /api/users        -- list all users (admin only)
  GET    /api/users/{id}   -- one user (self or admin)
  PATCH  /api/users/{id}   -- update name/email/password (self or admin); role (admin only)
  DELETE /api/users/{id}   -- delete account (self or admin)

Security:
  IDOR guard: every {id} route checks the caller is the target or an admin.
  [M4] An admin cannot demote or delete their own account, so the last admin
       cannot lock everyone out through the API.
  Responses always use UserResponse; hashed_password never leaves the store.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Request, Response
from fastapi.responses import JSONResponse

from api.models import RoleEnum, UserResponse, UserUpdate
from auth.dependencies import get_current_user, require_admin
from auth.models import User
from auth.passwords import hash_password
from auth.store import UserStore
from auth.tokens import clear_auth_cookie, create_access_token, set_auth_cookie

router = APIRouter()


def _load_target(request: Request, user_id: int, current_user: User) -> User:
    """Return the target user, enforcing self-or-admin access."""
    if current_user.id != user_id and current_user.role != "admin":
        raise HTTPException(
            status_code=403,
            detail={"code": "forbidden", "message": "You can only access your own account."},
        )
    user_store: UserStore = request.app.state.user_store
    target = user_store.get_by_id(user_id)
    if target is None:
        raise HTTPException(
            status_code=404,
            detail={"code": "not_found", "message": "User not found."},
        )
    return target


@router.get("/users", response_model=list[UserResponse])
def list_users(request: Request, current_user: User = Depends(require_admin)) -> list[UserResponse]:
    """List all user accounts. Admin only."""
    user_store: UserStore = request.app.state.user_store
    return [UserResponse.from_user(u) for u in user_store.list_users()]


@router.get("/users/{user_id}", response_model=UserResponse)
def get_user(request: Request, user_id: int, current_user: User = Depends(get_current_user)) -> UserResponse:
    return UserResponse.from_user(_load_target(request, user_id, current_user))


@router.patch("/users/{user_id}", response_model=UserResponse)
def update_user(
    request: Request,
    user_id: int,
    body: UserUpdate,
    current_user: User = Depends(get_current_user),
) -> JSONResponse:
    """Update a user's profile. Role changes are admin-only.

    A user updating their own record gets a fresh session cookie so the token
    claims match the stored email and role.
    """
    target = _load_target(request, user_id, current_user)
    user_store: UserStore = request.app.state.user_store

    updates: dict = {}
    if body.name is not None:
        updates["name"] = body.name
    if body.email is not None:
        updates["email"] = body.email
    if body.password is not None:
        updates["hashed_password"] = hash_password(body.password)
    if body.role is not None and body.role.value != target.role:
        if current_user.role != "admin":
            raise HTTPException(
                status_code=403,
                detail={"code": "forbidden", "message": "Only an admin can change roles."},
            )
        if target.id == current_user.id and body.role != RoleEnum.admin:
            raise HTTPException(
                status_code=400,
                detail={"code": "self_demotion", "message": "You cannot remove your own admin role."},
            )
        updates["role"] = body.role.value

    if not updates:
        raise HTTPException(
            status_code=400,
            detail={"code": "no_changes", "message": "No fields to update."},
        )

    updated = user_store.update_user(user_id, **updates)
    if updated is None:
        raise HTTPException(
            status_code=404,
            detail={"code": "not_found", "message": "User not found."},
        )

    resp = JSONResponse(content=UserResponse.from_user(updated).model_dump(mode="json"))
    if updated.id == current_user.id:
        set_auth_cookie(resp, create_access_token(updated.id, updated.email, updated.role))
    return resp


@router.delete("/users/{user_id}", status_code=204)
def delete_user(request: Request, user_id: int, current_user: User = Depends(get_current_user)) -> Response:
    """Delete an account. Deleting yourself also ends your session."""
    target = _load_target(request, user_id, current_user)
    if target.id == current_user.id and current_user.role == "admin":
        raise HTTPException(
            status_code=400,
            detail={"code": "self_deletion", "message": "An admin cannot delete their own account."},
        )
    user_store: UserStore = request.app.state.user_store
    user_store.delete_user(user_id)

    resp = Response(status_code=204)
    if target.id == current_user.id:
        clear_auth_cookie(resp)
    return resp
