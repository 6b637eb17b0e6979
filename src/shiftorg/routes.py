"""Routes for the SHIFT Organizer pages."""

from __future__ import annotations

import contextlib
from datetime import datetime
from logging import getLogger
from typing import TYPE_CHECKING

from flask import (
    Blueprint,
    current_app,
    flash,
    g,
    redirect,
    render_template,
    request,
    session,
    url_for,
)
from sqlalchemy import select

from . import get_timezone
from .api import get_store, ics_response
from .auth import (
    SESSION_EMAIL,
    SESSION_UID,
    authenticate,
    current_identity,
    get_auth_state,
    get_identity_provider,
    login_required,
)
from .calendar_export import export_shifts
from .database import get_db
from .dates import format_local_date
from .errors import (
    AuthError,
    FormatError,
    NotFoundError,
    ShiftOrgError,
    StoreError,
    ValidationError,
)
from .models import User
from .shifts import ShiftKind, parse_dates, parse_shift_request

if TYPE_CHECKING:  # pragma: no cover
    from flask import Flask
    from werkzeug import Response

    from .models import Shift

logger = getLogger(__name__)

main = Blueprint("main", __name__)


def today() -> str:
    """Today's date in the app timezone, as YYYY-MM-DD."""
    return format_local_date(datetime.now(tz=get_timezone()).date())


def render_dashboard(
    shifts: list[Shift],
    form: dict[str, object] | None = None,
    duplicates: list[str] | None = None,
) -> str:
    """Render the dashboard with the shift list and the add form."""
    current = today()
    return render_template(
        "dashboard.html",
        identity=g.identity,
        upcoming=[shift for shift in shifts if shift.date >= current],
        past=[shift for shift in shifts if shift.date < current],
        kinds=list(ShiftKind),
        form=form or {},
        duplicates=duplicates or [],
    )


@main.route("/")
def index() -> Response:
    """Send signed-in users to the dashboard and the rest to the login page."""
    if current_identity() is None:
        return redirect(url_for("main.login"))
    return redirect(url_for("main.dashboard"))


@main.route("/login", methods=["GET", "POST"])
def login() -> Response | str:
    """Render the login page, or sign in with a Firebase ID token."""
    if request.method == "GET":
        if request.args.get("logged_out"):
            flash("You have been logged out.", "info")
        error = request.args.get("error")
        if error and isinstance(error, str):
            flash(error, "danger")
        return render_template(
            "login.html",
            firebase_config={
                "apiKey": current_app.config["FIREBASE_API_KEY"],
                "authDomain": current_app.config["FIREBASE_AUTH_DOMAIN"],
                "projectId": current_app.config["FIREBASE_PROJECT_ID"],
            },
        )

    try:
        identity = authenticate(request.form.get("idToken", ""))
    except AuthError:
        logger.warning("Login failed with an invalid ID token")
        return redirect(url_for("main.logout", error="Authentication failed"))
    except StoreError:
        return redirect(url_for("main.logout", error="Could not sign you in"))

    user = get_db().session.scalars(select(User).filter_by(uid=identity.uid)).first()

    session[SESSION_UID] = identity.uid
    session[SESSION_EMAIL] = identity.email
    session["is_admin"] = bool(user and user.is_admin)
    rotate_session_id()

    logger.info("User %s logged in", identity.email or identity.uid)
    flash(f"Welcome, {identity.email or 'back'}", "success")
    return redirect(url_for("main.dashboard"))


def rotate_session_id() -> None:
    """Rotate the session contents after a login.

    Guards against session fixation.
    """
    old_session = dict(session)
    session.clear()
    session.update(old_session)


@main.route("/logout")
def logout() -> Response:
    """Logout the user."""
    identity = current_identity()
    if identity is not None:
        with contextlib.suppress(AuthError):
            get_identity_provider().revoke(identity.uid)
        get_auth_state().publish(None)

    session.clear()
    error = request.args.get("error")
    if error:
        return redirect(url_for("main.login", logged_out=True, error=error))
    return redirect(url_for("main.login", logged_out=True))


@main.route("/dashboard")
@login_required
def dashboard() -> str:
    """List the user's shifts and show the form to add more."""
    try:
        shifts = get_store().list_shifts(g.identity.uid)
    except StoreError as e:
        flash(str(e), "danger")
        shifts = []
    return render_dashboard(shifts)


@main.route("/shifts", methods=["POST"])
@login_required
def add_shifts() -> Response | str:
    """Add the same shift on every selected date.

    When some dates already have a shift the form is shown again with a
    warning; submitting it with ``confirm_duplicates`` adds them anyway.
    """
    store = get_store()
    uid = g.identity.uid
    try:
        shift_request = parse_shift_request(request.form)
        dates = parse_dates(request.form.getlist("dates"))
    except (FormatError, ValidationError) as e:
        flash(str(e), "danger")
        return redirect(url_for("main.dashboard"))

    try:
        if not request.form.get("confirm_duplicates"):
            duplicates = sorted(store.existing_dates(uid, dates))
            if duplicates:
                flash(
                    "You already have shifts on: "
                    + ", ".join(duplicates)
                    + ". Submit again to add them anyway.",
                    "warning",
                )
                form = {
                    "dates": dates,
                    "kind": shift_request.kind.value,
                    "start_time": shift_request.start_time,
                    "end_time": shift_request.end_time,
                    "is_overtime": shift_request.is_overtime,
                }
                return render_dashboard(store.list_shifts(uid), form, duplicates)
    except StoreError as e:
        flash(str(e), "danger")
        return redirect(url_for("main.dashboard"))

    outcomes = store.create_many(uid, shift_request, dates)
    created = [outcome.date for outcome in outcomes if outcome.ok]
    if created:
        plural = "s" if len(created) > 1 else ""
        flash(f"Shift{plural} added successfully: {', '.join(created)}", "success")
    for outcome in outcomes:
        if not outcome.ok:
            flash(f"Error adding shift on {outcome.date}: {outcome.error}", "danger")
    return redirect(url_for("main.dashboard"))


@main.route("/shifts/<shift_id>/delete", methods=["POST"])
@login_required
def delete_shift(shift_id: str) -> Response:
    """Delete one of the user's shifts."""
    try:
        deleted = get_store().delete(g.identity.uid, shift_id)
    except StoreError as e:
        flash(str(e), "danger")
        return redirect(url_for("main.dashboard"))

    if deleted:
        flash("Shift deleted.", "success")
    else:
        flash("Shift not found.", "warning")
    return redirect(url_for("main.dashboard"))


@main.route("/export")
@login_required
def export() -> Response:
    """Download the user's shifts as an .ics file."""
    uid = g.identity.uid
    try:
        content = export_shifts(get_store().list_shifts(uid))
    except NotFoundError:
        flash("No shifts found to export.", "info")
        return redirect(url_for("main.dashboard"))
    except ShiftOrgError:
        logger.exception("Error exporting calendar for %s", uid)
        flash("Failed to generate calendar file.", "danger")
        return redirect(url_for("main.dashboard"))

    return ics_response(content)


def register_routes(app: Flask) -> Blueprint:
    """Register the routes with the app."""
    app.register_blueprint(main)
    return main
