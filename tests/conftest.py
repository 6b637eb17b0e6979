"""Configuration for pytest."""

from __future__ import annotations

import os
from typing import TYPE_CHECKING, Generator

import pytest
from shiftorg.app import create_app, shutdown
from shiftorg.database import get_db
from shiftorg.firebase import FirebaseIdentity
from shiftorg.models import Shift, User
from shiftorg.store import ShiftStore

if TYPE_CHECKING:
    from flask import Flask
    from flask.testing import FlaskClient
    from pytest_mock import MockerFixture
    from sqlalchemy.orm import scoped_session

USER_UID = "user_uid"
USER_EMAIL = "user@example.com"
OTHER_UID = "other_uid"
OTHER_EMAIL = "other@example.com"


@pytest.fixture(scope="session", autouse=True)
def _set_env() -> None:
    """Keep logging quiet and the timezone fixed."""
    os.environ.pop("ENABLE_LOGGING", None)
    os.environ["LOG_LEVEL"] = "WARNING"
    os.environ["TZ"] = "UTC"


@pytest.fixture()
def app() -> Generator[Flask, None, None]:
    """Create an app with an empty in-memory database."""
    app = create_app(
        {
            "TESTING": True,
            "SECRET_KEY": "testing",
            "SQLALCHEMY_DATABASE_URI": "sqlite:///:memory:",
        },
        identity=FirebaseIdentity(name="testing"),
    )
    with app.app_context():
        yield app
    shutdown(app)


@pytest.fixture()
def session(app: Flask) -> scoped_session:
    """Return the database session of the app."""
    return get_db().session


@pytest.fixture()
def store(session: scoped_session) -> ShiftStore:
    """Return a ShiftStore on the app session."""
    return ShiftStore(session)


@pytest.fixture()
def client(app: Flask) -> FlaskClient:
    """Create a test client for the app."""
    return app.test_client()


@pytest.fixture()
def regular_user(session: scoped_session) -> User:
    """Create a regular user for testing."""
    user = User(uid=USER_UID, email=USER_EMAIL, is_admin=False)
    session.add(user)
    session.commit()
    return user


@pytest.fixture()
def other_user(session: scoped_session) -> User:
    """Create a second user whose shifts must stay out of reach."""
    user = User(uid=OTHER_UID, email=OTHER_EMAIL, is_admin=False)
    session.add(user)
    session.commit()
    return user


@pytest.fixture()
def admin_user(regular_user: User, session: scoped_session) -> User:
    """Turn the regular user into an admin."""
    regular_user.is_admin = True
    session.commit()
    return regular_user


@pytest.fixture()
def _verify_id_token_mock(mocker: MockerFixture) -> None:
    """Mock the verify_id_token function from firebase."""
    mocker.patch(
        "shiftorg.firebase.auth.verify_id_token",
        return_value={"uid": USER_UID, "email": USER_EMAIL},
    )


@pytest.fixture()
def _revoke_mock(mocker: MockerFixture) -> None:
    """Mock the revoke_refresh_tokens function from firebase."""
    mocker.patch("shiftorg.firebase.auth.revoke_refresh_tokens", return_value=None)


@pytest.fixture()
def logged_in_client(
    client: FlaskClient,
    regular_user: User,
    mocker: MockerFixture,
) -> FlaskClient:
    """Return a client with the regular user signed in."""
    mocker.patch(
        "shiftorg.firebase.auth.verify_id_token",
        return_value={"uid": USER_UID, "email": USER_EMAIL},
    )
    client.post("/login", data={"idToken": "test_token"})
    return client


@pytest.fixture()
def auth_headers(mocker: MockerFixture) -> dict[str, str]:
    """Headers accepted by the API as the regular user."""
    mocker.patch(
        "shiftorg.firebase.auth.verify_id_token",
        return_value={"uid": USER_UID, "email": USER_EMAIL},
    )
    return {"Authorization": "Bearer test_token"}


def make_shift(  # noqa: PLR0913
    session: scoped_session,
    date: str,
    *,
    owner: str = USER_UID,
    kind: str = "day",
    start_time: str = "07:00",
    end_time: str = "19:00",
    is_overtime: bool = False,
) -> Shift:
    """Store a shift directly, bypassing validation."""
    shift = Shift(
        owner=owner,
        date=date,
        shift_kind=kind,
        start_time=start_time,
        end_time=end_time,
        is_overtime=is_overtime,
    )
    session.add(shift)
    session.commit()
    return shift
