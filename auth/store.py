"""
auth/store.py -- SQLAlchemy Core persistence layer for users (the credential store).

Pattern: Repository + Data Mapper.
UserStore is the repository; _row_to_user is the mapper.
Route, flow and dependency code never touches SQL directly.

Security:
  All queries use bound parameters. No f-strings in SQL.

  UNIQUE(email) is enforced by the schema. Concurrent registrations for the
  same email are resolved by the database: the loser gets IntegrityError,
  which auth/flows.py maps to ConflictError.

  Emails are normalized (stripped, lower-cased) on every write and lookup so
  "A@x.com" and "a@x.com" are the same account.

Layer rule: no imports from api/, audit/, or client/.
"""

from __future__ import annotations

from sqlalchemy import Column, Integer, MetaData, String, Table, Text, func, select
from sqlalchemy.engine import Engine

from auth.models import BloodType, Role, User
from core.config import get_settings, now_iso
from core.database import make_engine

# Columns a user may change on their own profile. email and role are excluded.
PROFILE_FIELDS: frozenset[str] = frozenset(
    {"name", "phone_number", "address", "district", "city", "blood_type"}
)
# Columns an admin may change on another account.
ADMIN_FIELDS: frozenset[str] = frozenset({"role", "last_donation"})

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

_metadata = MetaData()

_users = Table(
    "users",
    _metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("email", String(255), nullable=False, unique=True),
    Column("hashed_password", Text, nullable=False),
    Column("name", String(100), nullable=False),
    Column("role", String(30), nullable=False, server_default=Role.DONOR.value),
    Column("phone_number", String(20)),
    Column("address", String(255)),
    Column("district", String(100)),
    Column("city", String(100)),
    Column("blood_type", String(3)),
    Column("last_donation", String(32)),
    Column("created_at", String(32), nullable=False),
    Column("updated_at", String(32), nullable=False),
)


def normalize_email(email: str) -> str:
    return email.strip().lower()


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class UserStore:
    """Repository for User entities.

    Usage:
        store = UserStore()
        uid = store.create_user(User(email="a@x.com", name="A", role=Role.DONOR,
                                     hashed_password=hash_password("secret1")))
        user = store.get_by_email("a@x.com")
        store.close()
    """

    def __init__(self, db_url: str | None = None) -> None:
        self.engine: Engine = make_engine(db_url or get_settings().database_url)
        _metadata.create_all(self.engine)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def ping(self) -> bool:
        """Return True if the database answers a trivial query. Used by /health."""
        with self.engine.connect() as conn:
            conn.execute(select(1))
        return True

    def has_users(self) -> bool:
        with self.engine.connect() as conn:
            result = conn.execute(select(func.count()).select_from(_users)).scalar()
        return (result or 0) > 0

    def get_by_email(self, email: str) -> User | None:
        """Look up a user by email (normalized). Returns None if not found."""
        with self.engine.connect() as conn:
            row = conn.execute(_users.select().where(_users.c.email == normalize_email(email))).fetchone()
        return _row_to_user(row) if row is not None else None

    def get_by_id(self, user_id: int) -> User | None:
        """Look up a user by primary key. Returns None if not found."""
        with self.engine.connect() as conn:
            row = conn.execute(_users.select().where(_users.c.id == user_id)).fetchone()
        return _row_to_user(row) if row is not None else None

    def list_users(self, role: Role | None = None) -> list[User]:
        """Return users ordered by email, optionally filtered by role."""
        query = _users.select().order_by(_users.c.email)
        if role is not None:
            query = query.where(_users.c.role == Role(role).value)
        with self.engine.connect() as conn:
            rows = conn.execute(query).fetchall()
        return [_row_to_user(r) for r in rows]

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def create_user(self, user: User) -> int:
        """Insert a new user and return its assigned database ID.

        Raises sqlalchemy.exc.IntegrityError if the email already exists.
        Callers map that to a conflict -- it is the authoritative uniqueness
        check when two registrations race.
        """
        stamp = now_iso()
        with self.engine.connect() as conn:
            result = conn.execute(
                _users.insert().values(
                    email=normalize_email(user.email),
                    hashed_password=user.hashed_password,
                    name=user.name,
                    role=Role(user.role).value,
                    phone_number=user.phone_number,
                    address=user.address,
                    district=user.district,
                    city=user.city,
                    blood_type=BloodType(user.blood_type).value if user.blood_type else None,
                    last_donation=user.last_donation,
                    created_at=stamp,
                    updated_at=stamp,
                )
            )
            conn.commit()
            return result.inserted_primary_key[0]

    def update_profile(self, user_id: int, **fields) -> bool:
        """Apply a self-service profile update.

        Only PROFILE_FIELDS are accepted; anything else (email, role,
        hashed_password) raises ValueError rather than being silently dropped.
        Returns True if a row was updated, False if user_id was not found.
        """
        return self._update(user_id, PROFILE_FIELDS, fields)

    def update_user(self, user_id: int, **fields) -> bool:
        """Apply an admin update (role, last_donation). Same contract as update_profile()."""
        return self._update(user_id, ADMIN_FIELDS, fields)

    def _update(self, user_id: int, allowed: frozenset[str], fields: dict) -> bool:
        unknown = set(fields) - allowed
        if unknown:
            raise ValueError(f"Fields not updatable here: {sorted(unknown)!r}")
        values = {k: v.value if isinstance(v, (Role, BloodType)) else v for k, v in fields.items()}
        values["updated_at"] = now_iso()
        with self.engine.connect() as conn:
            result = conn.execute(_users.update().where(_users.c.id == user_id).values(**values))
            conn.commit()
        return result.rowcount > 0

    def delete_user(self, user_id: int) -> bool:
        """Permanently delete a user record. Returns True if deleted, False if not found.

        Outstanding tokens for the user stop working immediately: the session
        resolver refuses tokens whose subject no longer exists.
        """
        with self.engine.connect() as conn:
            result = conn.execute(_users.delete().where(_users.c.id == user_id))
            conn.commit()
        return result.rowcount > 0

    def close(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------------------------
# Row mapper (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _row_to_user(row) -> User:
    return User(
        id=row.id,
        email=row.email,
        hashed_password=row.hashed_password,
        name=row.name,
        role=Role(row.role),
        phone_number=row.phone_number,
        address=row.address,
        district=row.district,
        city=row.city,
        blood_type=BloodType(row.blood_type) if row.blood_type else None,
        last_donation=row.last_donation,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )
