"""Flask App for recording shifts and exporting them to calendars."""

from __future__ import annotations

import atexit
import logging
import os
import sys
import warnings
from datetime import timedelta
from pathlib import Path
from typing import TYPE_CHECKING, Any

from flask import (
    Flask,
    jsonify,
    redirect,
    render_template,
    request,
    session,
    url_for,
)
from flask_admin import Admin, AdminIndexView  # type: ignore[import-untyped]
from flask_admin.contrib.sqla import ModelView  # type: ignore[import-untyped]
from flask_admin.theme import Bootstrap4Theme  # type: ignore[import-untyped]
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from werkzeug.exceptions import HTTPException

from . import configure_timezone
from .api import api
from .auth import AUTH_STATE_KEY, IDENTITY_KEY, AuthState, Identity
from .config import load_key
from .database import EXTENSION_KEY, Database, get_db
from .firebase import FirebaseIdentity
from .models import Shift, User
from .routes import register_routes
from .store import register_user

if TYPE_CHECKING:  # pragma: no cover
    from flask.typing import ResponseReturnValue
    from werkzeug import Response

LOGFILE = "logs/shiftorg.log"
SQLLOGFILE = "logs/shiftorg-sql.log"
LOGFORMAT = "%(asctime)s %(levelname)s: %(message)s [in %(pathname)s:%(lineno)d]"

SUBSCRIPTIONS_KEY = "shiftorg.subscriptions"
ADMIN_SESSION_WARNING = "Passing a session object directly is deprecated"


class Config:
    """Default configuration."""

    ENABLE_LOGGING = False
    LOG_LEVEL = logging.WARNING

    SQLALCHEMY_DATABASE_URI = "sqlite:///shifts.db"
    SECRET_KEY = None
    DEBUG = False
    HOST = "localhost"
    PORT = 5000
    PERMANENT_SESSION_LIFETIME = timedelta(days=30)

    # Firebase web SDK settings rendered in the login page
    FIREBASE_API_KEY = ""
    FIREBASE_AUTH_DOMAIN = ""
    FIREBASE_PROJECT_ID = ""


def configure_logging(
    log_level: int = Config.LOG_LEVEL,
    *,
    enable_logging: bool = Config.ENABLE_LOGGING,
) -> None:
    """Configure logging based on the environment variables.

    ENABLE_LOGGING forces logs to be written to a file,
    and a log_level of at least INFO. LOG_LEVEL sets the level.
    """
    env_log_level = os.getenv("LOG_LEVEL")
    if env_log_level:
        log_level = logging.getLevelName(env_log_level)

    env_enable_logging = os.getenv("ENABLE_LOGGING")
    if env_enable_logging:
        enable_logging = env_enable_logging.lower() in ["true", "1", "t"]
        if log_level > logging.INFO:
            log_level = logging.INFO

    logger = logging.getLogger()
    logger.debug("Setting log level to %s", log_level)

    if not enable_logging:
        return

    logger.debug("Logging to %s", LOGFILE)

    logs_dir = Path(LOGFILE).parent
    logs_dir.mkdir(parents=True, exist_ok=True)

    formatter = logging.Formatter(LOGFORMAT)
    file_handler = logging.FileHandler(LOGFILE)
    file_handler.setFormatter(formatter)
    file_handler.setLevel(log_level)
    sql_file_handler = logging.FileHandler(SQLLOGFILE)
    sql_file_handler.setFormatter(formatter)
    sql_file_handler.setLevel(log_level)

    console_handler = logging.StreamHandler()
    console_handler.setFormatter(formatter)
    console_handler.setLevel(log_level)

    logger = logging.getLogger("shiftorg")
    logger.handlers.clear()
    logger.addHandler(file_handler)
    logger.addHandler(console_handler)
    logger.setLevel(log_level)
    logger.info("SHIFT Organizer startup")

    sqllogger = logging.getLogger("sqlalchemy.engine")
    sqllogger.handlers.clear()
    sqllogger.setLevel(logging.INFO)
    sqllogger.addHandler(sql_file_handler)


class AdminAccessMixin:
    """Restrict an admin view to admins."""

    def is_accessible(self) -> bool:
        """Only allow access to the admin panel if the user is an admin."""
        return bool(session.get("is_admin"))

    def inaccessible_callback(self, _name: str, **_kwargs: dict[str, Any]) -> Response:
        """Redirect to the login page if the user is not an admin."""
        return redirect(url_for("main.login"))


class AdminHomeView(AdminAccessMixin, AdminIndexView):
    """Admin landing page."""


class AdminModelView(AdminAccessMixin, ModelView):
    """ModelView only reachable by admins."""


class ShiftModelView(AdminModelView):
    """Read-only view of every stored shift."""

    can_create = False
    can_edit = False
    column_default_sort = ("date", True)
    column_filters = ("owner", "date", "shift_kind", "is_overtime")


def check_db_connection() -> None | ResponseReturnValue:
    """Check if a database connection can be established.

    API callers get the error as JSON, everyone else the error page.
    """
    try:
        get_db().session.execute(text("SELECT 1"))
    except SQLAlchemyError:
        msg = "Cannot connect to the database."
        logging.getLogger(__name__).exception(msg)
        if request.blueprint == api.name:
            return jsonify({"error": msg}), 503
        return (
            render_template("error.html", message=msg),
            503,
        )
    else:
        return None


def subscribe_auth_handlers(app: Flask, auth_state: AuthState, db: Database) -> None:
    """Register users on sign-in and log sign-outs."""

    def on_auth_change(identity: Identity | None) -> None:
        if identity is None:
            app.logger.info("User signed out")
            return
        register_user(db.session, identity.uid, identity.email)

    app.extensions[SUBSCRIPTIONS_KEY] = [auth_state.subscribe(on_auth_change)]


def shutdown(app: Flask) -> None:
    """Release the resources created by create_app."""
    for subscription in app.extensions.pop(SUBSCRIPTIONS_KEY, []):
        subscription.unsubscribe()
    identity = app.extensions.get(IDENTITY_KEY)
    if identity is not None:
        identity.close()
    db = app.extensions.get(EXTENSION_KEY)
    if db is not None:
        db.dispose()


def create_app(
    config: dict[str, Any] | None = None,
    identity: FirebaseIdentity | None = None,
) -> Flask:
    """Create the Flask app.

    ``identity`` replaces the Firebase client built from the environment.
    An injected client is used as given and is not started here.
    """
    app = Flask("shiftorg.app")
    app.config.from_object(Config)
    app.config.from_prefixed_env()
    if config:
        app.config.update(config)
    if not app.config["SECRET_KEY"]:
        app.config["SECRET_KEY"] = load_key()

    configure_logging()
    configure_timezone()

    app.logger.info("DB_URI: %s", app.config["SQLALCHEMY_DATABASE_URI"])

    db = Database()
    db.init_app(app)
    with app.app_context():
        try:
            db.init_db()
        except SQLAlchemyError:
            app.logger.exception("Error initializing the database.")
            sys.exit(1)

    owns_identity = identity is None
    if identity is None:
        identity = FirebaseIdentity.from_env()
        try:
            identity.start()
        except (RuntimeError, ValueError):
            app.logger.exception("Error initializing Firebase.")
            sys.exit(1)
    app.extensions[IDENTITY_KEY] = identity

    auth_state = AuthState()
    app.extensions[AUTH_STATE_KEY] = auth_state
    subscribe_auth_handlers(app, auth_state, db)

    register_routes(app)
    app.register_blueprint(api)

    admin = Admin(
        app,
        name="Admin Panel",
        theme=Bootstrap4Theme(),
        index_view=AdminHomeView(),
    )
    with warnings.catch_warnings():
        # Scoped sessions are accepted by flask-admin until 3.0.
        warnings.filterwarnings(
            "ignore",
            message=ADMIN_SESSION_WARNING,
            category=DeprecationWarning,
        )
        admin.add_view(AdminModelView(User, db.session))
        admin.add_view(ShiftModelView(Shift, db.session))

    app.before_request(check_db_connection)

    @app.before_request
    def make_session_permanent() -> None:
        session.permanent = True

    @app.errorhandler(404)
    def page_not_found(_e: Exception) -> tuple[str, int]:
        msg = "Page not found (404)"
        app.logger.warning(msg)
        return render_template("error.html", message=msg), 404

    @app.errorhandler(500)
    def internal_server_error(_e: Exception) -> tuple[str, int]:
        msg = "Server error (500)"
        app.logger.exception(msg)
        return render_template("error.html", message=msg), 500

    @app.errorhandler(Exception)
    def handle_exception(e: Exception) -> HTTPException | tuple[str, int]:
        if isinstance(e, HTTPException):
            return e
        msg = "Unknown error"
        app.logger.exception(msg)
        return render_template("error.html", message=msg), 500

    if owns_identity:
        atexit.register(shutdown, app)

    return app


if __name__ == "__main__":  # pragma: no cover
    app = create_app()
    app.run(debug=True, port=app.config["PORT"], host=app.config["HOST"])
