"""
auth/tokens.py -- JWT issuance/verification and constant-time authentication.

Security design decisions:
  JWT: python-jose with HS256. Tokens carry only the subject (user id), the
       issue time and the expiry. Expiry is fixed at issuance as
       iat + Settings.token_expire_seconds (7 days by default). Verification
       returns None on any failure -- the session resolver turns that into a
       uniform 401.

  Stateless: there is no per-token record and no revocation list. Logout is
       the client discarding its token. A deny-list, if ever needed, belongs
       in the session resolver (auth/dependencies.py) so this module stays a
       pure function of (secret, token, clock).

  SECRET_KEY: sourced from core.config.get_settings(). Importing this module
       without a valid SECRET_KEY raises ConfigurationError -- the process
       refuses to start rather than signing with a placeholder.

Layer rule: no imports from api/, audit/, or client/.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING

from jose import JWTError, jwt

from auth.passwords import DUMMY_HASH, verify_password
from core.config import get_settings

if TYPE_CHECKING:
    from auth.models import User
    from auth.store import UserStore

logger = logging.getLogger("bloodlink.auth")

# ---------------------------------------------------------------------------
# Config -- read once at module load via the lru_cache singleton
# ---------------------------------------------------------------------------

_settings = get_settings()

_ALGORITHM = "HS256"

# ---------------------------------------------------------------------------
# JWT encode / decode
# ---------------------------------------------------------------------------


def create_access_token(
    user_id: int,
    *,
    secret_key: str | None = None,
    expire_seconds: int = 0,
    issued_at: datetime | None = None,
) -> str:
    """Encode a signed JWT whose subject is the given user id.

    Args:
        user_id:        Store-assigned user ID, carried as the "sub" claim.
        secret_key:     Signing key override. Defaults to Settings.secret_key.
        expire_seconds: Lifetime in seconds. If 0 (default), uses
                        Settings.token_expire_seconds.
        issued_at:      Issue time override (UTC). Defaults to now. Expiry is
                        always computed from this instant.
    """
    duration = expire_seconds if expire_seconds > 0 else _settings.token_expire_seconds
    iat = issued_at or datetime.now(timezone.utc)
    payload = {
        "sub": str(user_id),
        "iat": iat,
        "exp": iat + timedelta(seconds=duration),
    }
    return jwt.encode(payload, secret_key or _settings.secret_key, algorithm=_ALGORITHM)


def decode_access_token(token: str, *, secret_key: str | None = None) -> int | None:
    """Verify a JWT and return its subject user id, or None on any failure.

    Rejects malformed tokens, bad signatures, expired tokens (python-jose
    checks "exp" against the current clock), and tokens whose subject is not
    a user id. Returning None (rather than raising) keeps the caller simple:
    any invalid token is treated as unauthenticated.
    """
    try:
        payload = jwt.decode(token, secret_key or _settings.secret_key, algorithms=[_ALGORITHM])
    except JWTError:
        return None
    subject = payload.get("sub")
    if not isinstance(subject, str) or not subject.isdigit():
        return None
    if "exp" not in payload:
        return None
    return int(subject)


# ---------------------------------------------------------------------------
# User authentication (constant-time)
# ---------------------------------------------------------------------------


def authenticate_user(store: UserStore, email: str, password: str) -> User | None:
    """Authenticate an email/password pair with timing equalization.

    Always runs bcrypt whether or not the user exists, so an attacker cannot
    enumerate registered emails by measuring response times:
    - Unknown email: bcrypt runs against DUMMY_HASH (same cost as a real check)
    - Wrong password: bcrypt runs against the real hash (same cost)

    Returns the User on success, None on any failure.
    """
    user = store.get_by_email(email)
    if user is None:
        # Equalize timing -- do NOT return early before running bcrypt
        verify_password(password, DUMMY_HASH)
        return None
    if not verify_password(password, user.hashed_password):
        return None
    return user
