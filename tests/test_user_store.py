"""
tests/test_user_store.py -- UserStore (credential store) against in-memory SQLite.

Coverage:
  - create/get round trip; email normalization on write and lookup
  - UNIQUE(email) raises IntegrityError (case-insensitive via normalization)
  - profile updates accept only contact fields; email/role/password rejected
  - admin updates accept role and last_donation only
  - list filtering by role, delete, has_users
"""

from __future__ import annotations

import pytest
from sqlalchemy.exc import IntegrityError

from auth.models import BloodType, Role, User
from auth.store import UserStore


def _user(email: str = "a@x.com", role: Role = Role.DONOR, **extra) -> User:
    return User(email=email, name="Alice", role=role, hashed_password="$2b$04$placeholderhash", **extra)


class TestCreateAndLookup:
    def test_create_assigns_id_and_timestamps(self, stores) -> None:
        store, _ = stores
        uid = store.create_user(_user(blood_type=BloodType.O_NEG, city="Colombo"))
        user = store.get_by_id(uid)
        assert user is not None
        assert user.id == uid
        assert user.role is Role.DONOR
        assert user.blood_type is BloodType.O_NEG
        assert user.city == "Colombo"
        assert user.created_at and user.updated_at

    def test_email_normalized(self, stores) -> None:
        store, _ = stores
        uid = store.create_user(_user(email="  Alice@Example.COM "))
        assert store.get_by_id(uid).email == "alice@example.com"
        assert store.get_by_email("ALICE@example.com").id == uid

    def test_missing_user_returns_none(self, stores) -> None:
        store, _ = stores
        assert store.get_by_id(999) is None
        assert store.get_by_email("nobody@x.com") is None

    def test_duplicate_email_raises_integrity_error(self, stores) -> None:
        store, _ = stores
        store.create_user(_user(email="dup@x.com"))
        with pytest.raises(IntegrityError):
            store.create_user(_user(email="DUP@x.com"))
        assert len(store.list_users()) == 1

    def test_has_users(self, stores) -> None:
        store, _ = stores
        assert store.has_users() is False
        store.create_user(_user(email="a1@x.com", role=Role.ADMIN))
        store.create_user(_user(email="d1@x.com"))
        assert store.has_users() is True

    def test_list_users_filter_and_order(self, stores) -> None:
        store, _ = stores
        store.create_user(_user(email="c@x.com", role=Role.STAFF))
        store.create_user(_user(email="b@x.com"))
        store.create_user(_user(email="a@x.com"))
        assert [u.email for u in store.list_users()] == ["a@x.com", "b@x.com", "c@x.com"]
        assert [u.email for u in store.list_users(Role.STAFF)] == ["c@x.com"]
        assert store.list_users(Role.RECIPIENT) == []

    def test_ping(self, stores) -> None:
        store, _ = stores
        assert store.ping() is True


class TestUpdates:
    def test_profile_update_changes_contact_fields(self, stores) -> None:
        store, _ = stores
        uid = store.create_user(_user())
        assert store.update_profile(uid, name="Alice B", blood_type=BloodType.AB_POS, phone_number="+94771234567")
        user = store.get_by_id(uid)
        assert user.name == "Alice B"
        assert user.blood_type is BloodType.AB_POS
        assert user.phone_number == "+94771234567"

    @pytest.mark.parametrize("field", ["email", "role", "hashed_password", "last_donation"])
    def test_profile_update_rejects_protected_fields(self, stores, field: str) -> None:
        store: UserStore = stores[0]
        uid = store.create_user(_user())
        with pytest.raises(ValueError):
            store.update_profile(uid, **{field: "x"})
        assert store.get_by_id(uid).email == "a@x.com"

    def test_admin_update_role_and_donation(self, stores) -> None:
        store, _ = stores
        uid = store.create_user(_user())
        assert store.update_user(uid, role=Role.STAFF, last_donation="2026-01-15")
        user = store.get_by_id(uid)
        assert user.role is Role.STAFF
        assert user.last_donation == "2026-01-15"

    def test_admin_update_rejects_email(self, stores) -> None:
        store, _ = stores
        uid = store.create_user(_user())
        with pytest.raises(ValueError):
            store.update_user(uid, email="new@x.com")

    def test_update_missing_user_returns_false(self, stores) -> None:
        store, _ = stores
        assert store.update_profile(404, name="Nobody") is False

    def test_delete(self, stores) -> None:
        store, _ = stores
        uid = store.create_user(_user())
        assert store.delete_user(uid) is True
        assert store.get_by_id(uid) is None
        assert store.delete_user(uid) is False
