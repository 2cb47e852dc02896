"""
api/limiter.py -- Shared slowapi rate limiter for the credential endpoints.

POST /auth/login and POST /auth/register are the only routes limited: both
run bcrypt, so an unthrottled client could burn CPU and brute-force passwords.
The limit string comes from Settings.login_rate_limit (LOGIN_RATE_LIMIT).

One shared instance means one in-memory counter store. A limiter per module
would give each module its own counters and the limits would never trigger.
RATE_LIMIT_ENABLED=false switches counting off (test suites log in many
times from one address).
"""

from slowapi import Limiter
from slowapi.util import get_remote_address

from core.config import get_settings

_settings = get_settings()

limiter = Limiter(
    key_func=get_remote_address,
    storage_uri="memory://",
    enabled=_settings.rate_limit_enabled,
)

credential_limit = _settings.login_rate_limit
