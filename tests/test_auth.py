"""Tests for the auth state and the Firebase identity client."""

from __future__ import annotations

from typing import TYPE_CHECKING

import pytest
from shiftorg.auth import AuthState, Identity, bearer_token
from shiftorg.errors import AuthError
from shiftorg.firebase import FirebaseIdentity

if TYPE_CHECKING:
    from pathlib import Path

    from pytest_mock import MockerFixture

ALICE = Identity(uid="alice", email="alice@example.com")


def test_publish_reaches_subscribers() -> None:
    """Every handler gets sign-ins and sign-outs in subscription order."""
    state = AuthState()
    received: list[tuple[str, Identity | None]] = []
    state.subscribe(lambda identity: received.append(("first", identity)))
    state.subscribe(lambda identity: received.append(("second", identity)))

    state.publish(ALICE)
    state.publish(None)

    assert received == [
        ("first", ALICE),
        ("second", ALICE),
        ("first", None),
        ("second", None),
    ]


def test_unsubscribe() -> None:
    """Cancelled handlers receive nothing more. Cancelling twice is harmless."""
    state = AuthState()
    received: list[Identity | None] = []
    subscription = state.subscribe(received.append)

    subscription.unsubscribe()
    subscription.unsubscribe()
    state.publish(ALICE)

    assert received == []
    assert len(state) == 0
    assert not subscription.active


def test_subscription_context_manager() -> None:
    """Leaving the with block cancels the subscription."""
    state = AuthState()
    received: list[Identity | None] = []
    with state.subscribe(received.append):
        state.publish(ALICE)
    state.publish(None)
    assert received == [ALICE]


def test_identity_from_token() -> None:
    """The uid comes from ``uid`` or, failing that, ``sub``."""
    assert Identity.from_token({"uid": "alice", "email": "a@example.com"}) == Identity(
        "alice",
        "a@example.com",
    )
    assert Identity.from_token({"sub": "bob"}) == Identity("bob")
    with pytest.raises(AuthError):
        Identity.from_token({"email": "nobody@example.com"})


@pytest.mark.parametrize(
    "header",
    [None, "", "Bearer", "Bearer ", "Basic abc", "bearer abc", "Token abc"],
)
def test_bearer_token_invalid(header: str | None) -> None:
    """Missing or malformed headers raise AuthError."""
    with pytest.raises(AuthError):
        bearer_token(header)


def test_bearer_token() -> None:
    """The token follows the Bearer prefix."""
    assert bearer_token("Bearer abc.def") == "abc.def"


def test_verify_id_token(mocker: MockerFixture) -> None:
    """Verification delegates to the Admin SDK."""
    verify = mocker.patch(
        "shiftorg.firebase.auth.verify_id_token",
        return_value={"uid": "alice"},
    )
    identity = FirebaseIdentity(name="testing")
    assert identity.verify_id_token("token") == {"uid": "alice"}
    verify.assert_called_once_with("token", app=None, clock_skew_seconds=2)


def test_verify_id_token_failure(mocker: MockerFixture) -> None:
    """Any verification failure is an AuthError."""
    mocker.patch(
        "shiftorg.firebase.auth.verify_id_token",
        side_effect=ValueError("expired"),
    )
    with pytest.raises(AuthError):
        FirebaseIdentity(name="testing").verify_id_token("token")


def test_revoke_failure(mocker: MockerFixture) -> None:
    """Revocation failures are an AuthError."""
    mocker.patch(
        "shiftorg.firebase.auth.revoke_refresh_tokens",
        side_effect=ValueError("unknown user"),
    )
    with pytest.raises(AuthError):
        FirebaseIdentity(name="testing").revoke("alice")


def test_lifecycle(mocker: MockerFixture) -> None:
    """The Firebase app lives between start and close."""
    mocker.patch("shiftorg.firebase.credentials.Certificate")
    firebase_app = mocker.Mock()
    initialize = mocker.patch(
        "shiftorg.firebase.firebase_admin.initialize_app",
        return_value=firebase_app,
    )
    delete = mocker.patch("shiftorg.firebase.firebase_admin.delete_app")

    with FirebaseIdentity(name="testing") as identity:
        assert identity.started
        identity.start()
        initialize.assert_called_once()
    assert not identity.started
    delete.assert_called_once_with(firebase_app)


def test_missing_credentials(tmp_path: Path) -> None:
    """A missing credentials file is a RuntimeError."""
    identity = FirebaseIdentity(cred_file=f"{tmp_path}/missing.json", name="testing")
    with pytest.raises(RuntimeError):
        identity.start()


def test_invalid_base64_credentials() -> None:
    """Undecodable FIREBASE_CRED_JSON is a RuntimeError."""
    identity = FirebaseIdentity(cred_json_base64="not base64!", name="testing")
    with pytest.raises(RuntimeError):
        identity.load_credentials()


def test_from_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Credential locations are read from the environment."""
    monkeypatch.setenv("FIREBASE_CRED_FILE", "creds.json")
    monkeypatch.delenv("FIREBASE_CRED_JSON", raising=False)
    identity = FirebaseIdentity.from_env()
    assert identity.cred_file == "creds.json"
    assert identity.cred_json_base64 is None
