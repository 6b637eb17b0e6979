"""Authentication state and route guards."""

from __future__ import annotations

from dataclasses import dataclass
from functools import wraps
from logging import getLogger
from typing import TYPE_CHECKING, Any, Callable

from flask import current_app, g, jsonify, redirect, request, session, url_for

from .errors import AuthError

if TYPE_CHECKING:  # pragma: no cover
    from types import TracebackType

    from werkzeug import Response

    from .firebase import FirebaseIdentity

logger = getLogger(__name__)

IDENTITY_KEY = "shiftorg.identity"
AUTH_STATE_KEY = "shiftorg.auth_state"
SESSION_UID = "uid"
SESSION_EMAIL = "email"
BEARER_PREFIX = "Bearer "


@dataclass(frozen=True)
class Identity:
    """The authenticated principal. Owns the shifts it creates."""

    uid: str
    email: str | None = None

    @classmethod
    def from_token(cls, decoded_token: dict[str, Any]) -> Identity:
        """Build from a decoded ID token."""
        uid = decoded_token.get("uid") or decoded_token.get("sub")
        if not uid:
            _msg = "Token without uid"
            raise AuthError(_msg)
        return cls(uid=uid, email=decoded_token.get("email"))


AuthHandler = Callable[[Identity | None], None]


class Subscription:
    """Handle returned by AuthState.subscribe."""

    def __init__(self, state: AuthState, handler: AuthHandler) -> None:
        """Tie a handler to the state it listens to."""
        self._state = state
        self._handler = handler
        self.active = True

    def unsubscribe(self) -> None:
        """Stop receiving changes. Calling it twice is harmless."""
        if self.active:
            self._state.remove(self._handler)
            self.active = False

    def __enter__(self) -> Subscription:
        """Return the subscription itself."""
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        """Unsubscribe on leaving a with block."""
        self.unsubscribe()


class AuthState:
    """Notifies subscribers when a user signs in or out.

    Handlers get the new Identity on sign-in and None on sign-out.
    """

    def __init__(self) -> None:
        """Start with no subscribers."""
        self._handlers: list[AuthHandler] = []

    def subscribe(self, handler: AuthHandler) -> Subscription:
        """Register a handler until the returned subscription is cancelled."""
        self._handlers.append(handler)
        return Subscription(self, handler)

    def remove(self, handler: AuthHandler) -> None:
        """Forget a handler."""
        if handler in self._handlers:
            self._handlers.remove(handler)

    def publish(self, identity: Identity | None) -> None:
        """Call every handler with the new identity, in subscription order."""
        for handler in list(self._handlers):
            handler(identity)

    def __len__(self) -> int:
        """Number of active handlers."""
        return len(self._handlers)


def get_identity_provider() -> FirebaseIdentity:
    """Return the identity provider of the current app."""
    return current_app.extensions[IDENTITY_KEY]


def get_auth_state() -> AuthState:
    """Return the AuthState of the current app."""
    return current_app.extensions[AUTH_STATE_KEY]


def current_identity() -> Identity | None:
    """Return the identity of the signed-in browser session, if any."""
    uid = session.get(SESSION_UID)
    if not uid:
        return None
    return Identity(uid=uid, email=session.get(SESSION_EMAIL))


def authenticate(id_token: str) -> Identity:
    """Verify an ID token and announce the sign-in."""
    decoded = get_identity_provider().verify_id_token(id_token)
    identity = Identity.from_token(decoded)
    get_auth_state().publish(identity)
    return identity


def bearer_token(header: str | None) -> str:
    """Extract the token from an ``Authorization: Bearer`` header."""
    if not header or not header.startswith(BEARER_PREFIX):
        _msg = "Missing or invalid authorization header"
        raise AuthError(_msg)
    token = header[len(BEARER_PREFIX) :].strip()
    if not token:
        _msg = "Missing or invalid authorization header"
        raise AuthError(_msg)
    return token


def login_required(f: Callable) -> Callable:
    """Redirect to the login page unless a user is signed in."""

    @wraps(f)
    def decorated_function(*args, **kwargs) -> Response | str:  # noqa: ANN002, ANN003
        """Check the session before running the view."""
        identity = current_identity()
        if identity is None:
            return redirect(url_for("main.login"))
        g.identity = identity
        return f(*args, **kwargs)

    return decorated_function


def bearer_required(f: Callable) -> Callable:
    """Reject API calls without a valid bearer token with a 401."""

    @wraps(f)
    def decorated_function(*args, **kwargs) -> Any:  # noqa: ANN002, ANN003, ANN401
        """Verify the token before running the view."""
        try:
            token = bearer_token(request.headers.get("Authorization"))
            g.identity = authenticate(token)
        except AuthError as e:
            logger.warning("API authentication failed: %s", e)
            return jsonify({"error": str(e)}), 401
        return f(*args, **kwargs)

    return decorated_function
