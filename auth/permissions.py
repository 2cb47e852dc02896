"""
auth/permissions.py -- Role gate.

authorize() is a pure function of the resolved identity and the operation's
allowed-role set. It does no I/O; the FastAPI wiring lives in
auth/dependencies.py (require_roles).
"""

from __future__ import annotations

from collections.abc import Iterable

from auth.errors import ForbiddenError, UnauthenticatedError
from auth.models import Role, User


def authorize(identity: User | None, allowed_roles: Iterable[Role]) -> User:
    """Return the identity if its role is allowed, otherwise raise.

    None -> UnauthenticatedError (401). The session resolver normally rejects
    first; this branch covers callers that skip it.
    Role not in allowed_roles -> ForbiddenError (403).
    """
    if identity is None:
        raise UnauthenticatedError()
    if Role(identity.role) not in frozenset(allowed_roles):
        raise ForbiddenError()
    return identity
