"""
auth/flows.py -- Registration and login orchestration.

Each flow is a straight line over one request:

  register_user: email free? -> hash -> persist -> audit -> issue token
  login_user:    authenticate (constant-time) -> audit -> issue token

Failures raise the auth/errors.py taxonomy; route handlers do not build error
responses themselves. Audit writes go through record_audit(), which never
lets a logging failure undo a login or registration that already succeeded.

The flows are synchronous on purpose: bcrypt is CPU-bound, and the routes
that call these are plain `def` handlers that FastAPI runs in its threadpool.
"""

from __future__ import annotations

import logging
from typing import Any

from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from audit.models import AuditCategory
from audit.store import AuditLog
from auth.errors import ConflictError, InvalidCredentialsError
from auth.models import Role, User
from auth.passwords import hash_password
from auth.store import UserStore, normalize_email
from auth.tokens import authenticate_user, create_access_token

logger = logging.getLogger("bloodlink.audit")


def record_audit(
    audit: AuditLog,
    category: AuditCategory,
    message: str,
    actor_id: int | None = None,
    metadata: dict[str, Any] | None = None,
) -> None:
    """Append an audit entry; log and continue if the append fails."""
    try:
        audit.append(category, message, actor_id, metadata)
    except SQLAlchemyError:
        logger.exception("Audit append failed (category=%s actor=%s)", category, actor_id)


def create_account(
    store: UserStore,
    audit: AuditLog,
    *,
    email: str,
    password: str,
    name: str,
    role: Role,
    actor_id: int | None = None,
    **profile: Any,
) -> User:
    """Create a user with a freshly hashed password and record it in the audit log.

    actor_id is the admin who created the account, or None for
    self-registration (the new user is then the actor).

    Raises ConflictError if the email is taken -- either by the pre-check or,
    when two requests race, by the store's UNIQUE constraint.
    """
    email = normalize_email(email)
    if store.get_by_email(email) is not None:
        raise ConflictError()

    user = User(
        email=email,
        name=name,
        role=Role(role),
        hashed_password=hash_password(password),
        **profile,
    )
    try:
        user_id = store.create_user(user)
    except IntegrityError as exc:
        raise ConflictError() from exc

    created = store.get_by_id(user_id)
    if created is None:
        raise RuntimeError(f"User {user_id} missing immediately after insert")

    if actor_id is None:
        record_audit(audit, AuditCategory.AUTH, f"New user registered: {email}", created.id, {"role": created.role.value})
    else:
        record_audit(
            audit,
            AuditCategory.USER,
            f"User created by admin: {email}",
            actor_id,
            {"role": created.role.value, "user_id": created.id},
        )
    return created


def register_user(
    store: UserStore,
    audit: AuditLog,
    *,
    email: str,
    password: str,
    name: str,
    role: Role = Role.DONOR,
    **profile: Any,
) -> tuple[User, str]:
    """Self-registration. Returns (user, token); raises ConflictError on a taken email.

    On conflict nothing is written and no token is issued.
    """
    user = create_account(store, audit, email=email, password=password, name=name, role=role, **profile)
    return user, create_access_token(user.id)


def login_user(store: UserStore, audit: AuditLog, email: str, password: str) -> tuple[User, str]:
    """Password login. Returns (user, token).

    Unknown email and wrong password raise the same InvalidCredentialsError
    after the same bcrypt cost, so neither the response nor its timing tells
    the caller whether the account exists.
    """
    user = authenticate_user(store, normalize_email(email), password)
    if user is None:
        raise InvalidCredentialsError()
    record_audit(audit, AuditCategory.AUTH, f"User logged in: {user.email}", user.id)
    return user, create_access_token(user.id)
