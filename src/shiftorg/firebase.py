"""Firebase Admin SDK client used as identity provider."""

from __future__ import annotations

import base64
import binascii
import json
import os
from logging import getLogger
from typing import TYPE_CHECKING, Any

import firebase_admin  # type: ignore[import-untyped]
from firebase_admin import auth, credentials

from .errors import AuthError

if TYPE_CHECKING:  # pragma: no cover
    from types import TracebackType

logger = getLogger(__name__)

DEFAULT_CRED_FILE = "shiftorg.json"
DEFAULT_APP_NAME = "shiftorg"
CLOCK_SKEW_SECONDS = 2


class FirebaseIdentity:
    """Verifies Firebase ID tokens for one Flask app.

    The Firebase app is created by start() and deleted by close(), so
    several instances (one per test, for example) can live in a process.
    Token verification does not need start() when the SDK calls are mocked.
    """

    def __init__(
        self,
        cred_file: str | None = None,
        cred_json_base64: str | None = None,
        *,
        name: str = DEFAULT_APP_NAME,
    ) -> None:
        """Remember where the service account credentials come from."""
        self.cred_file = cred_file or DEFAULT_CRED_FILE
        self.cred_json_base64 = cred_json_base64
        self.name = name
        self._app: firebase_admin.App | None = None

    @classmethod
    def from_env(cls) -> FirebaseIdentity:
        """Build from FIREBASE_CRED_FILE or FIREBASE_CRED_JSON (Base64)."""
        return cls(
            cred_file=os.getenv("FIREBASE_CRED_FILE", DEFAULT_CRED_FILE),
            cred_json_base64=os.getenv("FIREBASE_CRED_JSON"),
        )

    @property
    def started(self) -> bool:
        """Whether the Firebase app has been initialized."""
        return self._app is not None

    def load_credentials(self) -> credentials.Certificate:
        """Load the service account credentials.

        Raises RuntimeError when they cannot be found or decoded.
        """
        if self.cred_json_base64:
            try:
                cred_json = base64.b64decode(self.cred_json_base64).decode("utf-8")
                return credentials.Certificate(json.loads(cred_json))
            except (binascii.Error, json.JSONDecodeError, UnicodeDecodeError):
                logger.exception(
                    "Failed to decode Firebase credentials from environment variable."
                    " Please ensure FIREBASE_CRED_JSON is correctly set"
                    " and encoded in Base64.",
                )
                _msg = "Invalid FIREBASE_CRED_JSON"
                raise RuntimeError(_msg) from None

        try:
            return credentials.Certificate(self.cred_file)
        except FileNotFoundError:
            logger.exception(
                "Firebase Admin SDK credentials file not found: %s"
                " Please set the FIREBASE_CRED_FILE environment variable correctly."
                " Firebase credentials can be downloaded from Firebase Console.",
                self.cred_file,
            )
            _msg = f"Firebase credentials file not found: {self.cred_file}"
            raise RuntimeError(_msg) from None

    def start(self) -> None:
        """Initialize the Firebase app."""
        if self._app is not None:
            return
        self._app = firebase_admin.initialize_app(
            self.load_credentials(),
            name=self.name,
        )
        logger.info("Firebase Admin SDK initialized.")

    def close(self) -> None:
        """Delete the Firebase app."""
        if self._app is None:
            return
        firebase_admin.delete_app(self._app)
        self._app = None
        logger.info("Firebase Admin SDK app deleted.")

    def __enter__(self) -> FirebaseIdentity:
        """Start on entering a with block."""
        self.start()
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        """Close on leaving a with block."""
        self.close()

    def verify_id_token(self, id_token: str) -> dict[str, Any]:
        """Verify a Firebase ID token.

        Returns the decoded token if verification is successful.
        """
        try:
            decoded_token = auth.verify_id_token(
                id_token,
                app=self._app,
                clock_skew_seconds=CLOCK_SKEW_SECONDS,
            )
        except Exception:
            _msg = "Token verification failed"
            logger.exception(_msg)
            raise AuthError(_msg) from None
        else:
            return decoded_token

    def revoke(self, uid: str) -> None:
        """Revoke the refresh tokens of a user."""
        try:
            auth.revoke_refresh_tokens(uid, app=self._app)
        except Exception:
            _msg = "Token revocation failed"
            logger.exception(_msg)
            raise AuthError(_msg) from None
