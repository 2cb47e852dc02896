"""
auth/models.py -- Domain dataclasses and enumerations for authentication entities.

Pattern: Data class (pure data container, zero logic). Dataclasses own domain
shape; stores and routes do the work. The HTTP contract lives separately in
api/models.py.

Layer rule: no imports from api/, audit/, or client/.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class Role(str, Enum):
    """The single closed role vocabulary used at every boundary.

    Self-registration may only choose from SELF_REGISTRABLE_ROLES; admin and
    staff accounts are created by an admin or by `python main.py create-admin`.
    """

    ADMIN = "admin"
    STAFF = "staff"
    DONOR = "donor"
    RECIPIENT = "recipient"


SELF_REGISTRABLE_ROLES: frozenset[Role] = frozenset({Role.DONOR, Role.RECIPIENT})


class BloodType(str, Enum):
    A_POS = "A+"
    A_NEG = "A-"
    B_POS = "B+"
    B_NEG = "B-"
    AB_POS = "AB+"
    AB_NEG = "AB-"
    O_POS = "O+"
    O_NEG = "O-"


@dataclass
class User:
    """A registered identity in BloodLink.

    email is the immutable login identifier, stored lower-cased. It is never
    changed through self-service profile updates; neither is role.

    hashed_password is a bcrypt digest. It stays inside the auth layer -- the
    public view (api.models.UserResponse) is an allow-list that omits it.
    """

    email: str
    name: str
    role: Role
    hashed_password: str
    id: int | None = None
    phone_number: str | None = None
    address: str | None = None
    district: str | None = None
    city: str | None = None
    blood_type: BloodType | None = None
    last_donation: str | None = None  # ISO 8601 date
    created_at: str | None = None
    updated_at: str | None = None
