"""
auth/dependencies.py -- FastAPI Depends() helpers for authentication and role gating.

One auth method: the Authorization: Bearer <token> header.

resolve_identity() is the session resolver. It turns a header value into a
User or raises UnauthenticatedError. Every failure mode -- no header, wrong
scheme, bad signature, expired token, deleted user, store unavailable --
raises the same error, so a client cannot tell a deleted account from a
forged token.

get_current_user() adapts it to FastAPI. Handlers receive the identity as an
explicit parameter (current_user: User = Depends(...)); nothing is attached
to the request object.

require_roles() combines the resolver with the role gate in
auth/permissions.py: 401 if unauthenticated, 403 if the role is not allowed.

Layer rule: no imports from api/, audit/, or client/.
  auth/dependencies.py may import from fastapi (for Depends/Request)
  because this module is part of the FastAPI dependency injection system.
"""

from __future__ import annotations

import logging
from collections.abc import Callable

from fastapi import Depends, Request
from sqlalchemy.exc import SQLAlchemyError

from auth.errors import UnauthenticatedError
from auth.models import Role, User
from auth.permissions import authorize
from auth.store import UserStore
from auth.tokens import decode_access_token

logger = logging.getLogger("bloodlink.auth")

_BEARER_PREFIX = "bearer "


def extract_bearer_token(header_value: str | None) -> str | None:
    """Return the token from an Authorization header value, or None.

    The scheme is matched case-insensitively ("Bearer", "bearer"); anything
    other than exactly "<scheme> <token>" yields None.
    """
    if not header_value or not header_value.lower().startswith(_BEARER_PREFIX):
        return None
    token = header_value[len(_BEARER_PREFIX) :].strip()
    if not token or " " in token:
        return None
    return token


def resolve_identity(store: UserStore, authorization: str | None) -> User:
    """Resolve an Authorization header value to a stored User.

    Raises UnauthenticatedError (uniformly) on any failure. A store error
    during the lookup is logged and treated as a failed verification; it is
    not retried.
    """
    token = extract_bearer_token(authorization)
    if token is None:
        raise UnauthenticatedError()

    user_id = decode_access_token(token)
    if user_id is None:
        raise UnauthenticatedError()

    try:
        user = store.get_by_id(user_id)
    except SQLAlchemyError:
        logger.exception("User lookup failed while resolving token subject")
        raise UnauthenticatedError() from None

    if user is None:
        raise UnauthenticatedError()
    return user


def get_current_user(request: Request) -> User:
    """Require authentication. Raises UnauthenticatedError (HTTP 401) otherwise.

    Use as a FastAPI dependency:
        @router.get("/protected")
        def route(current_user: User = Depends(get_current_user)): ...
    """
    user_store: UserStore = request.app.state.user_store
    return resolve_identity(user_store, request.headers.get("Authorization"))


def require_roles(*roles: Role) -> Callable[..., User]:
    """Build a dependency that allows only the given roles.

    Raises HTTP 401 if unauthenticated, HTTP 403 if the role is not allowed.

        @router.get("/users")
        def route(current_user: User = Depends(require_roles(Role.ADMIN, Role.STAFF))): ...
    """
    allowed = frozenset(Role(r) for r in roles)

    def dependency(current_user: User = Depends(get_current_user)) -> User:
        return authorize(current_user, allowed)

    return dependency


require_admin = require_roles(Role.ADMIN)
require_staff = require_roles(Role.ADMIN, Role.STAFF)
