"""
api/routes/v1/users.py -- User management endpoints for the admin dashboard.

Routes:
  GET    /api/v1/users            -- list users, optional ?role= (admin, staff)
  GET    /api/v1/users/{id}       -- one user's public view (admin, staff)
  POST   /api/v1/users            -- create a user with any role (admin)
  PATCH  /api/v1/users/{id}       -- change role / last_donation (admin)
  DELETE /api/v1/users/{id}       -- delete a user (admin)

Guards:
  An admin cannot change their own role or delete their own account. The
  acting admin therefore always survives, so at least one admin remains.
"""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Request, Response

from api.models import ProfileResponse, UserCreate, UserPatch, UserResponse
from audit.models import AuditCategory
from audit.store import AuditLog
from auth.dependencies import require_admin, require_staff
from auth.flows import create_account, record_audit
from auth.models import Role, User
from auth.store import UserStore

router = APIRouter()


@router.get("/users", response_model=list[UserResponse])
def list_users(
    request: Request,
    role: Optional[Role] = None,
    current_user: User = Depends(require_staff),
) -> list[UserResponse]:
    """List user accounts ordered by email. Admin and staff."""
    user_store: UserStore = request.app.state.user_store
    return [UserResponse.from_user(u) for u in user_store.list_users(role)]


@router.get("/users/{user_id}", response_model=ProfileResponse)
def get_user(
    request: Request,
    user_id: int,
    current_user: User = Depends(require_staff),
) -> ProfileResponse:
    user_store: UserStore = request.app.state.user_store
    return ProfileResponse(user=UserResponse.from_user(_get_or_404(user_store, user_id)))


@router.post("/users", response_model=ProfileResponse, status_code=201)
def create_user(
    request: Request,
    body: UserCreate,
    current_user: User = Depends(require_admin),
) -> ProfileResponse:
    """Create an account with any role, including staff and admin. Admin only.

    No token is returned: the new user logs in with the password the admin set.
    """
    user_store: UserStore = request.app.state.user_store
    audit: AuditLog = request.app.state.audit_log
    profile = body.model_dump(exclude={"email", "password", "name", "role"}, exclude_none=True)
    created = create_account(
        user_store,
        audit,
        email=body.email,
        password=body.password,
        name=body.name,
        role=body.role,
        actor_id=current_user.id,
        **profile,
    )
    return ProfileResponse(user=UserResponse.from_user(created))


@router.patch("/users/{user_id}", response_model=ProfileResponse)
def update_user(
    request: Request,
    user_id: int,
    body: UserPatch,
    current_user: User = Depends(require_admin),
) -> ProfileResponse:
    """Change a user's role or record a donation date. Admin only."""
    user_store: UserStore = request.app.state.user_store
    target = _get_or_404(user_store, user_id)

    updates: dict = {}
    if body.role is not None and body.role != target.role:
        if target.id == current_user.id:
            raise HTTPException(
                status_code=400,
                detail={"code": "self_role_change", "message": "You cannot change your own role."},
            )
        updates["role"] = body.role
    if body.last_donation is not None:
        updates["last_donation"] = body.last_donation.isoformat()

    if not updates:
        raise HTTPException(
            status_code=400,
            detail={"code": "no_changes", "message": "No fields to update."},
        )

    user_store.update_user(user_id, **updates)
    record_audit(
        request.app.state.audit_log,
        AuditCategory.USER,
        f"User updated by admin: {target.email}",
        current_user.id,
        {"user_id": user_id, **{k: str(getattr(v, "value", v)) for k, v in updates.items()}},
    )
    return ProfileResponse(user=UserResponse.from_user(_get_or_404(user_store, user_id)))


@router.delete("/users/{user_id}", status_code=204)
def delete_user(
    request: Request,
    user_id: int,
    current_user: User = Depends(require_admin),
) -> Response:
    """Delete a user account. Admin only; an admin cannot delete themself.

    Tokens already issued to the deleted user are refused from the next
    request on, because the session resolver cannot find their subject.
    """
    user_store: UserStore = request.app.state.user_store
    if user_id == current_user.id:
        raise HTTPException(
            status_code=400,
            detail={"code": "self_deletion", "message": "You cannot delete your own account."},
        )
    target = _get_or_404(user_store, user_id)
    user_store.delete_user(user_id)
    record_audit(
        request.app.state.audit_log,
        AuditCategory.USER,
        f"User deleted by admin: {target.email}",
        current_user.id,
        {"user_id": user_id},
    )
    return Response(status_code=204)


def _get_or_404(user_store: UserStore, user_id: int) -> User:
    user = user_store.get_by_id(user_id)
    if user is None:
        raise HTTPException(
            status_code=404,
            detail={"code": "not_found", "message": "User not found."},
        )
    return user
