"""Command line tools: calendar export and JSON backups of shifts."""

from __future__ import annotations

import json
import logging
from typing import TYPE_CHECKING

import click
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from .calendar_export import export_shifts
from .errors import FormatError, NotFoundError, ShiftOrgError, ValidationError
from .models import Base, Shift, User
from .shifts import parse_dates, parse_shift_request
from .store import ShiftStore

if TYPE_CHECKING:
    from sqlalchemy.orm.session import Session

logger = logging.getLogger(__name__)
logger.setLevel(logging.INFO)
log_handler = logging.StreamHandler()
logger.addHandler(log_handler)

ATTR_DATE = "date"
ATTR_KIND = "kind"
ATTR_START_TIME = "start_time"
ATTR_END_TIME = "end_time"
ATTR_IS_OVERTIME = "is_overtime"

verbose_option = click.option(
    "-v",
    "--verbose",
    count=True,
    default=0,
    help="-v for DEBUG",
)


@click.group()
def cli() -> None:
    """SHIFT Organizer maintenance commands."""


def get_session(db_uri: str) -> Session:
    """Return a SQLAlchemy session, creating the tables if needed."""
    engine = create_engine(db_uri)
    Base.metadata.create_all(bind=engine)
    session_factory = sessionmaker(bind=engine)
    return session_factory()


def set_verbose_level(verbose: int) -> None:
    """Set the verbosity of the logger."""
    if verbose == 1:
        logger.setLevel(logging.DEBUG)
    elif verbose > 1:
        logger.setLevel(logging.DEBUG)
        sqllogger = logging.getLogger("sqlalchemy.engine")
        sqllogger.setLevel(logging.INFO)
        sqllogger.addHandler(log_handler)
    else:
        logger.setLevel(logging.INFO)


def find_owner(session: Session, user: str) -> str:
    """Return the uid for a uid or email given on the command line."""
    found = (
        session.query(User).filter((User.uid == user) | (User.email == user)).first()
    )
    if found is None:
        _msg = f"Unknown user: {user}"
        raise click.ClickException(_msg)
    return found.uid


@click.command("export-ics")
@click.argument("user", type=str)
@click.argument("output_file", type=click.File("w", encoding="utf-8"))
@click.argument("db_uri", type=str)
@verbose_option
def export_ics(verbose: int, user: str, output_file: click.File, db_uri: str) -> None:
    """Write the shifts of USER (uid or email) to an .ics file."""
    set_verbose_level(verbose)
    session = get_session(db_uri)
    owner = find_owner(session, user)

    shifts = ShiftStore(session).list_shifts(owner)
    try:
        content = export_shifts(shifts)
    except NotFoundError as e:
        raise click.ClickException(str(e)) from e
    except ShiftOrgError as e:
        logger.exception("Error exporting shifts of %s", user)
        raise click.ClickException(str(e)) from e

    output_file.write(content)  # type: ignore[attr-defined]
    click.echo(f"Exported {len(shifts)} shifts to {output_file.name}")


@click.command("export-shifts")
@click.argument("user", type=str)
@click.argument("output_file", type=click.File("w"))
@click.argument("db_uri", type=str)
@verbose_option
def export_shifts_json(
    verbose: int,
    user: str,
    output_file: click.File,
    db_uri: str,
) -> None:
    """Export the shifts of USER to a JSON file."""
    set_verbose_level(verbose)
    session = get_session(db_uri)
    owner = find_owner(session, user)

    shifts = ShiftStore(session).list_shifts(owner)
    shift_list = [
        {
            ATTR_DATE: shift.date,
            ATTR_KIND: shift.shift_kind,
            ATTR_START_TIME: shift.start_time,
            ATTR_END_TIME: shift.end_time,
            ATTR_IS_OVERTIME: shift.is_overtime,
        }
        for shift in shifts
    ]

    json.dump(shift_list, output_file, ensure_ascii=False, indent=4)  # type: ignore[arg-type]
    click.echo(f"Exported {len(shift_list)} shifts to {output_file.name}")


@click.command("import-shifts")
@click.argument("user", type=str)
@click.argument("input_file", type=click.File("r"))
@click.argument("db_uri", type=str)
@verbose_option
def import_shifts(verbose: int, user: str, input_file: click.File, db_uri: str) -> None:
    """Import shifts for USER from a JSON file.

    Shifts already present (same date, type and times) are skipped.
    Invalid entries are reported and skipped.
    """
    set_verbose_level(verbose)
    data = json.load(input_file)  # type: ignore[arg-type]

    session = get_session(db_uri)
    owner = find_owner(session, user)
    store = ShiftStore(session)

    n_added, n_skipped, n_invalid, n_failed = 0, 0, 0, 0

    for item in data:
        try:
            request = parse_shift_request(item)
            (date,) = parse_dates([item.get(ATTR_DATE, "")])
        except (FormatError, ValidationError) as e:
            logger.warning("Invalid shift %s: %s", item, e)
            n_invalid += 1
            continue

        existing = (
            session.query(Shift)
            .filter_by(
                owner=owner,
                date=date,
                shift_kind=request.kind.value,
                start_time=request.start_time,
                end_time=request.end_time,
            )
            .first()
        )
        if existing:
            logger.debug("Shift on %s already present", date)
            n_skipped += 1
            continue

        outcome = store.create_many(owner, request, [date])[0]
        if outcome.ok:
            logger.debug("Shift on %s added", date)
            n_added += 1
        else:
            logger.error("Shift on %s not added: %s", date, outcome.error)
            n_failed += 1

    click.echo(
        f"Added: {n_added}, Skipped: {n_skipped},"
        f" Invalid: {n_invalid}, Failed: {n_failed}",
    )


cli.add_command(export_ics)
cli.add_command(export_shifts_json)
cli.add_command(import_shifts)

if __name__ == "__main__":
    cli()
