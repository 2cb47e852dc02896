"""
client/session.py -- Client-side session manager for the BloodLink API.

Holds the bearer token and the current user's public view, attaches the
token to outgoing requests, and exposes the authentication state as a small
state machine that listeners can subscribe to:

    UNKNOWN ---restore() ok------------> AUTHENTICATED
    UNKNOWN ---no token / restore fails-> UNAUTHENTICATED
    AUTHENTICATED ---logout / 401------> UNAUTHENTICATED
    UNAUTHENTICATED ---login/register--> AUTHENTICATED

UNKNOWN is the loading state: consumers must not render protected views (or
a login prompt) until restore() has resolved it. Any other transition raises
InvalidTransitionError.

The token is persisted through a TokenStore (memory or a JSON file). Only the
token's "exp" claim is read client-side, without signature verification --
the server is the authority on validity; the local check just avoids a
round-trip for a token that is certainly stale.

HTTP goes through a requests.Session by default. Any object with the same
request(method, url, json=, headers=) -> response(.status_code, .json())
shape can be injected instead (the test suite passes FastAPI's TestClient).
"""

from __future__ import annotations

import json
import logging
import os
import time
from collections.abc import Callable
from enum import Enum
from pathlib import Path
from typing import Any, Optional, Protocol

import requests
from jose import JWTError, jwt

logger = logging.getLogger("bloodlink.client")

API_PREFIX = "/api/v1"

Listener = Callable[["SessionState", "SessionState"], None]


class SessionState(str, Enum):
    UNKNOWN = "unknown"
    AUTHENTICATED = "authenticated"
    UNAUTHENTICATED = "unauthenticated"


_TRANSITIONS: dict[SessionState, frozenset[SessionState]] = {
    SessionState.UNKNOWN: frozenset({SessionState.AUTHENTICATED, SessionState.UNAUTHENTICATED}),
    SessionState.AUTHENTICATED: frozenset({SessionState.UNAUTHENTICATED}),
    SessionState.UNAUTHENTICATED: frozenset({SessionState.AUTHENTICATED}),
}


class InvalidTransitionError(RuntimeError):
    """Raised when an operation would move the session along an edge the state machine lacks."""


class ClientAuthError(Exception):
    """A login/registration/profile call failed. code is one of the constants below."""

    INVALID_CREDENTIALS = "INVALID_CREDENTIALS"
    EMAIL_EXISTS = "EMAIL_EXISTS"
    VALIDATION_ERROR = "VALIDATION_ERROR"
    INVALID_RESPONSE = "INVALID_RESPONSE"
    SERVER_ERROR = "SERVER_ERROR"
    NETWORK_ERROR = "NETWORK_ERROR"

    def __init__(self, code: str, message: str) -> None:
        super().__init__(message)
        self.code = code
        self.message = message


# ---------------------------------------------------------------------------
# Token storage
# ---------------------------------------------------------------------------


class TokenStore(Protocol):
    """Where the session keeps its bearer token between runs."""

    def load(self) -> Optional[str]: ...

    def save(self, token: str) -> None: ...

    def clear(self) -> None: ...


class MemoryTokenStore:
    """Keeps the token for the lifetime of the process only."""

    def __init__(self, token: Optional[str] = None) -> None:
        self._token = token

    def load(self) -> Optional[str]:
        return self._token

    def save(self, token: str) -> None:
        self._token = token

    def clear(self) -> None:
        self._token = None


class FileTokenStore:
    """Persists the token in a small JSON file (mode 0600) across restarts."""

    def __init__(self, path: Path) -> None:
        self.path = Path(path)

    def load(self) -> Optional[str]:
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            return None
        except (OSError, ValueError) as e:
            logger.warning("Ignoring unreadable token file %s: %s", self.path, e)
            return None
        token = data.get("token") if isinstance(data, dict) else None
        return token if isinstance(token, str) and token else None

    def save(self, token: str) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd = os.open(self.path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
        with os.fdopen(fd, "w", encoding="utf-8") as fh:
            json.dump({"token": token}, fh)

    def clear(self) -> None:
        self.path.unlink(missing_ok=True)


def token_expired(token: str, now: Optional[float] = None) -> bool:
    """True if the token is unreadable, has no exp claim, or exp is in the past."""
    try:
        claims = jwt.get_unverified_claims(token)
    except JWTError:
        return True
    exp = claims.get("exp")
    if not isinstance(exp, (int, float)):
        return True
    return exp <= (now if now is not None else time.time())


# ---------------------------------------------------------------------------
# Session manager
# ---------------------------------------------------------------------------


class SessionManager:
    """Process-wide authentication state for one API client.

    Usage:
        session = SessionManager("http://localhost:8000", FileTokenStore(Path("~/.bloodlink/token").expanduser()))
        session.subscribe(lambda old, new: print(old.value, "->", new.value))
        session.restore()
        if session.state is SessionState.UNAUTHENTICATED:
            session.login("a@x.com", "secret1")
        resp = session.request("GET", "/users")
    """

    def __init__(
        self,
        base_url: str = "",
        token_store: Optional[TokenStore] = None,
        http: Any = None,
        timeout: float = 10,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.token_store: TokenStore = token_store if token_store is not None else MemoryTokenStore()
        self.http = http if http is not None else requests.Session()
        self.timeout = timeout
        self.state = SessionState.UNKNOWN
        self.user: Optional[dict[str, Any]] = None
        self._token: Optional[str] = None
        self._listeners: list[Listener] = []

    # ------------------------------------------------------------------
    # Reactive state
    # ------------------------------------------------------------------

    @property
    def is_loading(self) -> bool:
        return self.state is SessionState.UNKNOWN

    @property
    def is_authenticated(self) -> bool:
        return self.state is SessionState.AUTHENTICATED

    @property
    def token(self) -> Optional[str]:
        return self._token

    def has_role(self, *roles: str) -> bool:
        """Client-side route guard. The server still enforces roles on every call."""
        return self.is_authenticated and self.user is not None and self.user.get("role") in roles

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a listener called with (old_state, new_state). Returns an unsubscribe function."""
        self._listeners.append(listener)
        return lambda: self._listeners.remove(listener)

    def _transition(self, new_state: SessionState) -> None:
        old_state = self.state
        if new_state not in _TRANSITIONS[old_state]:
            raise InvalidTransitionError(f"{old_state.value} -> {new_state.value}")
        self.state = new_state
        for listener in list(self._listeners):
            try:
                listener(old_state, new_state)
            except Exception:
                logger.exception("Session listener failed on %s -> %s", old_state.value, new_state.value)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def restore(self) -> SessionState:
        """Resolve the initial UNKNOWN state from the stored token.

        No token, an expired token, or any failure fetching the profile ends
        in UNAUTHENTICATED with the stored token removed.
        """
        if self.state is not SessionState.UNKNOWN:
            raise InvalidTransitionError(f"restore() from {self.state.value}")

        token = self.token_store.load()
        if not token or token_expired(token):
            self._clear()
            self._transition(SessionState.UNAUTHENTICATED)
            return self.state

        self._token = token
        try:
            self.user = self._fetch_profile()
        except ClientAuthError as e:
            logger.info("Session restore failed: %s", e.code)
            self._clear()
            self._transition(SessionState.UNAUTHENTICATED)
            return self.state

        self._transition(SessionState.AUTHENTICATED)
        return self.state

    def login(self, email: str, password: str) -> dict[str, Any]:
        """Log in and return the user's public view. Raises ClientAuthError on failure."""
        self._require_unauthenticated("login")
        data = self._credential_call("/auth/login", {"email": email, "password": password})
        return self._start_session(data)

    def register(self, **fields: Any) -> dict[str, Any]:
        """Register (email, password, name, role, ...) and start a session."""
        self._require_unauthenticated("register")
        data = self._credential_call("/auth/register", fields)
        return self._start_session(data)

    def logout(self) -> None:
        """Tell the server (best effort), then forget the token locally.

        The server keeps no session, so a failed logout call changes nothing
        about validity; the local discard is what ends the session.
        """
        if self.state is not SessionState.AUTHENTICATED:
            raise InvalidTransitionError(f"logout() from {self.state.value}")
        try:
            self._send("POST", "/auth/logout")
        except requests.RequestException as e:
            logger.warning("Logout call failed, clearing session anyway: %s", e)
        self._end_session()

    def request(self, method: str, path: str, **kwargs: Any):
        """Send an API request with the bearer token attached.

        A 401 while authenticated means the token is no longer accepted; the
        session is cleared and listeners see AUTHENTICATED -> UNAUTHENTICATED.
        """
        response = self._send(method, path, **kwargs)
        if response.status_code == 401 and self.state is SessionState.AUTHENTICATED:
            logger.info("Token rejected by server; ending session")
            self._end_session()
        return response

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _require_unauthenticated(self, operation: str) -> None:
        if self.state is not SessionState.UNAUTHENTICATED:
            raise InvalidTransitionError(f"{operation}() from {self.state.value}")

    def _send(self, method: str, path: str, **kwargs: Any):
        headers = dict(kwargs.pop("headers", None) or {})
        if self._token:
            headers["Authorization"] = f"Bearer {self._token}"
        url = f"{self.base_url}{API_PREFIX}{path}"
        if isinstance(self.http, requests.Session):
            kwargs.setdefault("timeout", self.timeout)
        return self.http.request(method, url, headers=headers, **kwargs)

    def _credential_call(self, path: str, payload: dict[str, Any]) -> dict[str, Any]:
        try:
            response = self._send("POST", path, json=payload)
        except requests.RequestException as e:
            raise ClientAuthError(ClientAuthError.NETWORK_ERROR, "Failed to connect to server") from e

        if response.status_code == 401:
            raise ClientAuthError(ClientAuthError.INVALID_CREDENTIALS, "Invalid email or password")
        if response.status_code == 409:
            raise ClientAuthError(ClientAuthError.EMAIL_EXISTS, "Email already exists")
        if response.status_code == 422:
            raise ClientAuthError(ClientAuthError.VALIDATION_ERROR, _error_message(response))
        if response.status_code >= 400:
            raise ClientAuthError(ClientAuthError.SERVER_ERROR, _error_message(response))

        data = _json_or_none(response)
        if not data or not data.get("token") or not isinstance(data.get("user"), dict):
            raise ClientAuthError(ClientAuthError.INVALID_RESPONSE, "Invalid response from server")
        return data

    def _fetch_profile(self) -> dict[str, Any]:
        try:
            response = self._send("GET", "/auth/profile")
        except requests.RequestException as e:
            raise ClientAuthError(ClientAuthError.NETWORK_ERROR, "Failed to connect to server") from e
        if response.status_code != 200:
            raise ClientAuthError(ClientAuthError.SERVER_ERROR, _error_message(response))
        data = _json_or_none(response)
        if not data or not isinstance(data.get("user"), dict):
            raise ClientAuthError(ClientAuthError.INVALID_RESPONSE, "Invalid response from server")
        return data["user"]

    def _start_session(self, data: dict[str, Any]) -> dict[str, Any]:
        self._token = data["token"]
        self.token_store.save(self._token)
        self.user = data["user"]
        self._transition(SessionState.AUTHENTICATED)
        return self.user

    def _end_session(self) -> None:
        self._clear()
        self._transition(SessionState.UNAUTHENTICATED)

    def _clear(self) -> None:
        self._token = None
        self.user = None
        self.token_store.clear()


def _json_or_none(response) -> Optional[dict[str, Any]]:
    try:
        data = response.json()
    except ValueError:
        return None
    return data if isinstance(data, dict) else None


def _error_message(response) -> str:
    data = _json_or_none(response) or {}
    error = data.get("error")
    if isinstance(error, dict) and error.get("message"):
        return str(error["message"])
    return f"Request failed with status {response.status_code}"
