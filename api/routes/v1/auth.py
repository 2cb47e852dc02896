"""
api/routes/v1/auth.py -- Registration, login and self-service profile endpoints.

Routes:
  POST /api/v1/auth/register   -- self-registration (donor/recipient); 201 {user, token}
  POST /api/v1/auth/login      -- password login; 200 {user, token}
  POST /api/v1/auth/logout     -- audit only; the client discards its token
  GET  /api/v1/auth/profile    -- current user's public view (requires auth)
  PUT  /api/v1/auth/profile    -- update own contact fields (requires auth)

Security:
  register and login are rate-limited per IP (LOGIN_RATE_LIMIT).
  login goes through auth.flows.login_user(), which runs bcrypt even for
    unknown emails. Do not inline store lookups here.
  Cache-Control: no-store on every response that carries a token.

register/login/profile-update are plain `def` handlers so bcrypt and SQLite
work runs in FastAPI's threadpool instead of blocking the event loop.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import JSONResponse

from api.limiter import credential_limit, limiter
from api.models import (
    AuthResponse,
    LoginRequest,
    MessageResponse,
    ProfileResponse,
    ProfileUpdate,
    RegisterRequest,
    UserResponse,
)
from audit.models import AuditCategory
from audit.store import AuditLog
from auth.dependencies import get_current_user
from auth.flows import login_user, record_audit, register_user
from auth.models import User
from auth.store import UserStore
from core.config import get_settings

# Auth policy:
# - POST /api/v1/auth/register:  public -- rate limited
# - POST /api/v1/auth/login:     public -- rate limited
# - POST /api/v1/auth/logout:    requires auth (get_current_user)
# - GET  /api/v1/auth/profile:   requires auth (get_current_user)
# - PUT  /api/v1/auth/profile:   requires auth (get_current_user)
router = APIRouter()

_settings = get_settings()


# ---------------------------------------------------------------------------
# Public endpoints
# ---------------------------------------------------------------------------


@router.post("/auth/register", response_model=AuthResponse, status_code=201)
@limiter.limit(credential_limit)
def register(request: Request, body: RegisterRequest) -> JSONResponse:
    """Create a donor or recipient account and return it with a bearer token.

    409 if the email is already registered -- no record is created and no
    token is issued in that case.
    """
    user_store: UserStore = request.app.state.user_store
    audit: AuditLog = request.app.state.audit_log
    profile = body.model_dump(exclude={"email", "password", "name", "role"}, exclude_none=True)
    user, token = register_user(
        user_store,
        audit,
        email=body.email,
        password=body.password,
        name=body.name,
        role=body.role,
        **profile,
    )
    return _auth_response(user, token, status_code=201)


@router.post("/auth/login", response_model=AuthResponse)
@limiter.limit(credential_limit)
def login(request: Request, body: LoginRequest) -> JSONResponse:
    """Authenticate with email and password.

    Wrong password and unknown email both produce the same 401
    ("bad_credentials") so the response does not leak account existence.
    """
    user_store: UserStore = request.app.state.user_store
    audit: AuditLog = request.app.state.audit_log
    user, token = login_user(user_store, audit, body.email, body.password)
    return _auth_response(user, token, status_code=200)


# ---------------------------------------------------------------------------
# Authenticated endpoints
# ---------------------------------------------------------------------------


@router.post("/auth/logout", response_model=MessageResponse)
def logout(request: Request, current_user: User = Depends(get_current_user)) -> MessageResponse:
    """Record the logout. Tokens are stateless: the server keeps no session to end.

    The token stays cryptographically valid until its expiry; the client is
    responsible for discarding it.
    """
    record_audit(
        request.app.state.audit_log,
        AuditCategory.AUTH,
        f"User logged out: {current_user.email}",
        current_user.id,
    )
    return MessageResponse(message="Logged out.")


@router.get("/auth/profile", response_model=ProfileResponse)
def profile(current_user: User = Depends(get_current_user)) -> ProfileResponse:
    """Return the public view of the authenticated user."""
    return ProfileResponse(user=UserResponse.from_user(current_user))


@router.put("/auth/profile", response_model=ProfileResponse)
def update_profile(
    request: Request,
    body: ProfileUpdate,
    current_user: User = Depends(get_current_user),
) -> ProfileResponse:
    """Update the caller's own contact fields. email and role are not accepted (422)."""
    user_store: UserStore = request.app.state.user_store
    fields = body.model_dump(exclude_unset=True)
    if fields.get("name", "") is None:
        del fields["name"]  # name is NOT NULL; an explicit null means "leave it"
    if not fields:
        raise HTTPException(
            status_code=400,
            detail={"code": "no_changes", "message": "No fields to update."},
        )

    user_store.update_profile(current_user.id, **fields)
    record_audit(
        request.app.state.audit_log,
        AuditCategory.USER,
        f"Profile updated: {current_user.email}",
        current_user.id,
        {"fields": sorted(fields)},
    )
    updated = user_store.get_by_id(current_user.id)
    if updated is None:
        # Deleted between resolution and update; same answer as a stale token.
        raise HTTPException(
            status_code=401,
            detail={"code": "unauthorized", "message": "Authentication required."},
        )
    return ProfileResponse(user=UserResponse.from_user(updated))


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _auth_response(user: User, token: str, status_code: int) -> JSONResponse:
    body = AuthResponse(
        user=UserResponse.from_user(user),
        token=token,
        token_type="bearer",  # noqa: S106 # nosec B106 -- OAuth token type, not a password
        expires_in=_settings.token_expire_seconds,
    )
    resp = JSONResponse(status_code=status_code, content=body.model_dump(mode="json"))
    resp.headers["Cache-Control"] = "no-store"
    return resp
