"""
tests/test_dependencies.py -- Session resolver and role gate, without HTTP.

Coverage:
  - extract_bearer_token: scheme parsing edge cases
  - resolve_identity: success, and the uniform UnauthenticatedError for
    missing header, bad token, expired token, deleted user, store failure
  - authorize: None -> 401, disallowed role -> 403, allowed role -> identity
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from unittest.mock import patch

import pytest
from sqlalchemy.exc import OperationalError

from auth.dependencies import extract_bearer_token, resolve_identity
from auth.errors import ForbiddenError, UnauthenticatedError
from auth.models import Role, User
from auth.permissions import authorize
from auth.tokens import create_access_token

OTHER_SECRET = "another-secret-key-fedcba9876543210fedcba9876543210"


def _seed(store, role: Role = Role.DONOR) -> int:
    return store.create_user(User(email=f"{role.value}@x.com", name="N", role=role, hashed_password="$2b$04$x"))


class TestExtractBearerToken:
    @pytest.mark.parametrize(
        ("header", "expected"),
        [
            ("Bearer abc.def.ghi", "abc.def.ghi"),
            ("bearer abc.def.ghi", "abc.def.ghi"),
            ("Bearer   abc.def.ghi  ", "abc.def.ghi"),
            (None, None),
            ("", None),
            ("Bearer", None),
            ("Bearer ", None),
            ("Basic dXNlcjpwYXNz", None),
            ("abc.def.ghi", None),
            ("Bearer a b", None),
        ],
    )
    def test_parsing(self, header, expected) -> None:
        assert extract_bearer_token(header) == expected


class TestResolveIdentity:
    def test_valid_token_resolves_user(self, stores) -> None:
        store, _ = stores
        uid = _seed(store)
        user = resolve_identity(store, f"Bearer {create_access_token(uid)}")
        assert user.id == uid
        assert user.email == "donor@x.com"

    def test_failures_are_indistinguishable(self, stores) -> None:
        """Every failure mode raises the same error type, code and message."""
        store, _ = stores
        uid = _seed(store)
        deleted = _seed(store, Role.RECIPIENT)
        deleted_token = create_access_token(deleted)
        store.delete_user(deleted)
        expired = create_access_token(uid, issued_at=datetime.now(timezone.utc) - timedelta(days=8))

        headers = [
            None,
            "Token abc",
            "Bearer not-a-jwt",
            f"Bearer {create_access_token(uid, secret_key=OTHER_SECRET)}",
            f"Bearer {expired}",
            f"Bearer {deleted_token}",
        ]
        errors = []
        for header in headers:
            with pytest.raises(UnauthenticatedError) as exc_info:
                resolve_identity(store, header)
            errors.append((exc_info.value.status_code, exc_info.value.code, exc_info.value.message))
        assert len(set(errors)) == 1
        assert errors[0] == (401, "unauthorized", "Authentication required.")

    def test_store_failure_is_unauthenticated(self, stores) -> None:
        store, _ = stores
        uid = _seed(store)
        token = create_access_token(uid)
        with patch.object(store, "get_by_id", side_effect=OperationalError("SELECT", {}, Exception("locked"))):
            with pytest.raises(UnauthenticatedError):
                resolve_identity(store, f"Bearer {token}")


class TestAuthorize:
    def _user(self, role: Role) -> User:
        return User(email="u@x.com", name="U", role=role, hashed_password="h", id=1)

    def test_none_identity_is_unauthenticated(self) -> None:
        with pytest.raises(UnauthenticatedError) as exc_info:
            authorize(None, {Role.ADMIN})
        assert exc_info.value.status_code == 401

    def test_disallowed_role_is_forbidden(self) -> None:
        with pytest.raises(ForbiddenError) as exc_info:
            authorize(self._user(Role.DONOR), {Role.ADMIN, Role.STAFF})
        assert exc_info.value.status_code == 403

    @pytest.mark.parametrize("role", [Role.ADMIN, Role.STAFF])
    def test_allowed_role_passes(self, role: Role) -> None:
        user = self._user(role)
        assert authorize(user, [Role.ADMIN, Role.STAFF]) is user

    def test_empty_allowed_set_denies_everyone(self) -> None:
        with pytest.raises(ForbiddenError):
            authorize(self._user(Role.ADMIN), set())

    def test_role_stored_as_string_is_accepted(self) -> None:
        user = User(email="u@x.com", name="U", role="staff", hashed_password="h", id=1)  # type: ignore[arg-type]
        assert authorize(user, {Role.STAFF}) is user
