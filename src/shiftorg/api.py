"""JSON API and calendar export endpoint."""

from __future__ import annotations

from logging import getLogger
from typing import TYPE_CHECKING

from flask import Blueprint, Response, g, jsonify, request
from werkzeug.exceptions import HTTPException

from .auth import bearer_required
from .calendar_export import export_shifts
from .database import get_db
from .errors import (
    FormatError,
    NotFoundError,
    ShiftOrgError,
    StoreError,
    ValidationError,
)
from .shifts import parse_bool, parse_dates, parse_shift_request
from .store import ShiftStore

if TYPE_CHECKING:  # pragma: no cover
    from flask.typing import ResponseReturnValue

logger = getLogger(__name__)

api = Blueprint("api", __name__, url_prefix="/api")

ICS_FILENAME = "shifts.ics"
ICS_MIMETYPE = "text/calendar"


def get_store() -> ShiftStore:
    """Return a ShiftStore bound to the session of the current request."""
    return ShiftStore(get_db().session)


def ics_response(content: str, filename: str = ICS_FILENAME) -> Response:
    """Wrap calendar text in a download response."""
    response = Response(content, mimetype=ICS_MIMETYPE)
    response.headers["Content-Disposition"] = f'attachment; filename="{filename}"'
    response.headers["Cache-Control"] = "no-cache"
    return response


@api.errorhandler(FormatError)
@api.errorhandler(ValidationError)
def invalid_input(e: ShiftOrgError) -> ResponseReturnValue:
    """Report malformed or invalid input."""
    return jsonify({"error": str(e)}), 400


@api.errorhandler(StoreError)
def store_failure(e: StoreError) -> ResponseReturnValue:
    """Report a failed database operation."""
    return jsonify({"error": str(e)}), 500


@api.errorhandler(Exception)
def unexpected_error(e: Exception) -> ResponseReturnValue:
    """Answer unhandled API errors with JSON instead of the error page."""
    if isinstance(e, HTTPException):
        return e
    logger.exception("Unhandled error in %s", request.path)
    return jsonify({"error": "Internal server error"}), 500


@api.route("/generate-ical", methods=["GET"])
@bearer_required
def generate_ical() -> ResponseReturnValue:
    """Return every shift of the caller as an .ics file."""
    uid = g.identity.uid
    try:
        content = export_shifts(get_store().list_shifts(uid))
    except NotFoundError:
        logger.info("Export requested by %s without shifts", uid)
        return jsonify({"error": "No shifts found to export"}), 404
    except ShiftOrgError:
        logger.exception("Error generating iCal for %s", uid)
        return jsonify({"error": "Failed to generate calendar file"}), 500

    logger.info("Calendar exported for %s", uid)
    return ics_response(content)


@api.route("/shifts", methods=["GET"])
@bearer_required
def list_shifts() -> ResponseReturnValue:
    """List the caller's shifts ordered by date."""
    shifts = get_store().list_shifts(g.identity.uid)
    return jsonify({"shifts": [shift.to_dict() for shift in shifts]})


@api.route("/shifts", methods=["POST"])
@bearer_required
def create_shifts() -> ResponseReturnValue:
    """Create the same shift on each of the given dates.

    Dates that already have a shift are refused with a 409 unless
    ``allow_duplicates`` is true. Each date is created independently and
    reported on its own.
    """
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        return jsonify({"error": "Expected a JSON object"}), 400

    shift_request = parse_shift_request(data)
    raw_dates = data.get("dates")
    if raw_dates is None and data.get("date"):
        raw_dates = [data["date"]]
    if not isinstance(raw_dates, list):
        return jsonify({"error": "dates must be a list of YYYY-MM-DD strings"}), 400
    dates = parse_dates(str(value) for value in raw_dates)

    store = get_store()
    uid = g.identity.uid
    if not parse_bool(data.get("allow_duplicates")):
        duplicates = store.existing_dates(uid, dates)
        if duplicates:
            return (
                jsonify(
                    {
                        "error": "There are already shifts on some of these dates",
                        "duplicates": sorted(duplicates),
                    },
                ),
                409,
            )

    outcomes = store.create_many(uid, shift_request, dates)
    n_failed = sum(1 for outcome in outcomes if not outcome.ok)
    if not n_failed:
        status = 201
    elif n_failed < len(outcomes):
        status = 207
    else:
        status = 500
    return jsonify({"results": [outcome.to_dict() for outcome in outcomes]}), status


@api.route("/shifts/<shift_id>", methods=["DELETE"])
@bearer_required
def delete_shift(shift_id: str) -> ResponseReturnValue:
    """Delete one of the caller's shifts."""
    if not get_store().delete(g.identity.uid, shift_id):
        return jsonify({"error": "Shift not found"}), 404
    return "", 204


@api.route("/shifts/duplicates", methods=["GET"])
@bearer_required
def duplicates() -> ResponseReturnValue:
    """Return which of the ``date`` parameters already have a shift."""
    dates = parse_dates(request.args.getlist("date"))
    existing = get_store().existing_dates(g.identity.uid, dates)
    return jsonify({"duplicates": sorted(existing)})
