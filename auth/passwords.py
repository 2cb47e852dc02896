"""
auth/passwords.py -- One-way password hashing and verification.

bcrypt is used directly (no passlib wrapper). Every hash_password() call draws
a fresh salt from bcrypt.gensalt(), so two hashes of the same password differ;
bcrypt.checkpw() reads the salt and cost back out of the stored digest, so
verification works against any digest regardless of salt or cost.

The cost factor comes from Settings.bcrypt_rounds (BCRYPT_ROUNDS). Raising it
only affects new hashes; existing digests keep verifying at their own cost.

Layer rule: no imports from api/, audit/, or client/.
"""

from __future__ import annotations

import bcrypt

from core.config import get_settings

_settings = get_settings()

# bcrypt only reads the first 72 bytes of its input; newer releases refuse longer input.
PASSWORD_MAX_BYTES = 72


def hash_password(plain: str) -> str:
    """Return a salted bcrypt hash of the given plaintext password.

    Raises ValueError if the UTF-8 encoding is longer than PASSWORD_MAX_BYTES.
    The API models reject such passwords with 422 before they get here.
    """
    if len(plain.encode("utf-8")) > PASSWORD_MAX_BYTES:
        raise ValueError(f"Password must be at most {PASSWORD_MAX_BYTES} bytes when UTF-8 encoded.")
    salt = bcrypt.gensalt(rounds=_settings.bcrypt_rounds)
    return bcrypt.hashpw(plain.encode("utf-8"), salt).decode("utf-8")


def verify_password(plain: str, hashed: str) -> bool:
    """Return True if the plaintext password matches the bcrypt hash.

    Fails closed: a corrupted or non-bcrypt digest returns False rather than
    raising, so a damaged row can never authenticate anyone.
    """
    try:
        return bcrypt.checkpw(plain.encode("utf-8"), hashed.encode("utf-8"))
    except (ValueError, TypeError, AttributeError):
        return False


# Timing equalization dummy hash.
# Computed once at module load so the first login attempt is not measurably
# slower than subsequent ones. authenticate_user() verifies against this when
# the email does not exist, so response time does not reveal account existence.
DUMMY_HASH: str = hash_password("bloodlink_timing_dummy")
