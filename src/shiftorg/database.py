"""Database engine and session lifecycle, decoupled from the Flask app."""

from __future__ import annotations

from logging import getLogger
from typing import TYPE_CHECKING

from flask import current_app
from sqlalchemy import create_engine
from sqlalchemy.orm import scoped_session, sessionmaker

from .models import Base

if TYPE_CHECKING:
    from flask import Flask
    from sqlalchemy.engine import Engine
    from sqlalchemy.schema import MetaData

logger = getLogger(__name__)

EXTENSION_KEY = "shiftorg.db"


class Database:
    """Owns the engine and the scoped session of one application.

    Flask-SQLAlchemy is not used so the models and the store can be
    used from tests and command line tools without a Flask app.

    Created by create_app, one per app, and released with dispose().
    """

    engine: Engine | None = None
    session_factory: sessionmaker
    session: scoped_session

    def __init__(self, uri: str | None = None, *, echo: bool = False) -> None:
        """Create the engine right away when a URI is given."""
        if uri:
            self.connect(uri, echo=echo)

    def connect(self, uri: str, *, echo: bool = False) -> None:
        """Create the engine and the session factory."""
        if self.engine:
            logger.debug("Database already connected. Ignored.")
            return

        self.engine = create_engine(uri, echo=echo, future=True)
        self.session_factory = sessionmaker(bind=self.engine)
        self.session = scoped_session(self.session_factory)
        logger.debug("Database engine created for %s", self.engine.url)

    def init_app(self, app: Flask) -> None:
        """Connect using the app configuration and register the teardown."""
        self.connect(app.config["SQLALCHEMY_DATABASE_URI"])
        app.teardown_appcontext(self.shutdown_session)
        app.extensions[EXTENSION_KEY] = self

    def shutdown_session(self, _exception: BaseException | None = None) -> None:
        """Remove the session after the request is finished."""
        self.session.remove()

    def create_all(self) -> None:
        """Create all tables."""
        logger.debug("Creating database tables.")
        Base.metadata.create_all(bind=self.engine)

    def drop_all(self) -> None:
        """Drop all tables."""
        logger.debug("Dropping database tables.")
        Base.metadata.drop_all(bind=self.engine)

    def init_db(self) -> None:
        """Initialize the database."""
        if not self.engine:
            msg = "DB engine is not initialized."
            raise RuntimeError(msg)
        self.create_all()

    def dispose(self) -> None:
        """Close every session and pooled connection."""
        if not self.engine:
            return
        self.session.remove()
        self.engine.dispose()
        self.engine = None
        logger.debug("Database engine disposed.")

    @property
    def metadata(self) -> MetaData:
        """Return the metadata."""
        return Base.metadata


def get_db() -> Database:
    """Return the Database of the current Flask app."""
    return current_app.extensions[EXTENSION_KEY]
