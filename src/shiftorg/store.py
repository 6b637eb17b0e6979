"""Access to the shifts of a user.

Every operation takes the owner uid and only ever touches that owner's
rows. Acting on somebody else's shift behaves as if it did not exist.
"""

from __future__ import annotations

from dataclasses import dataclass
from logging import getLogger
from typing import TYPE_CHECKING

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError

from .errors import StoreError
from .models import Shift, User, utcnow

if TYPE_CHECKING:  # pragma: no cover
    from collections.abc import Iterable

    from sqlalchemy.orm import Session, scoped_session

    from .shifts import ShiftRequest

logger = getLogger(__name__)


@dataclass
class CreateOutcome:
    """Result of creating the shift for one of the selected dates."""

    date: str
    shift: Shift | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        """Whether the shift was stored."""
        return self.shift is not None

    def to_dict(self) -> dict[str, object]:
        """Serialize for the JSON API."""
        if self.shift is not None:
            return {"date": self.date, "ok": True, "shift": self.shift.to_dict()}
        return {"date": self.date, "ok": False, "error": self.error}


class ShiftStore:
    """Create, list and delete shifts using an injected SQLAlchemy session."""

    def __init__(self, session: Session | scoped_session) -> None:
        """Keep the session used by every operation."""
        self.session = session

    def create(self, owner: str, date: str, request: ShiftRequest) -> Shift:
        """Store one shift for ``owner`` on ``date`` and commit it.

        ``date`` must already be a validated ``YYYY-MM-DD`` string.
        """
        shift = Shift(
            owner=owner,
            date=date,
            shift_kind=request.kind.value,
            start_time=request.start_time,
            end_time=request.end_time,
            is_overtime=request.is_overtime,
        )
        try:
            self.session.add(shift)
            self.session.commit()
        except SQLAlchemyError as e:
            self.session.rollback()
            logger.exception("Error creating shift for %s on %s", owner, date)
            _msg = f"Could not save the shift on {date}"
            raise StoreError(_msg) from e

        logger.info("Shift %s created for %s on %s", shift.id, owner, date)
        return shift

    def create_many(
        self,
        owner: str,
        request: ShiftRequest,
        dates: Iterable[str],
    ) -> list[CreateOutcome]:
        """Create one shift per date, each one independently.

        A date that fails does not undo the others. Its outcome carries
        the error message instead of the shift.
        """
        outcomes = []
        for date in dates:
            try:
                shift = self.create(owner, date, request)
            except StoreError as e:
                outcomes.append(CreateOutcome(date=date, error=str(e)))
            else:
                outcomes.append(CreateOutcome(date=date, shift=shift))
        return outcomes

    def list_shifts(self, owner: str) -> list[Shift]:
        """Return the owner's shifts ordered by date and start time."""
        query = (
            select(Shift)
            .where(Shift.owner == owner)
            .order_by(Shift.date, Shift.start_time)
        )
        try:
            return list(self.session.scalars(query))
        except SQLAlchemyError as e:
            logger.exception("Error listing shifts for %s", owner)
            _msg = "Could not load the shifts"
            raise StoreError(_msg) from e

    def get(self, owner: str, shift_id: str) -> Shift | None:
        """Return one of the owner's shifts, or None."""
        shift = self.session.get(Shift, shift_id)
        if shift is None or shift.owner != owner:
            return None
        return shift

    def delete(self, owner: str, shift_id: str) -> bool:
        """Delete one of the owner's shifts.

        Returns False, and changes nothing, when the shift does not exist
        or belongs to someone else.
        """
        shift = self.get(owner, shift_id)
        if shift is None:
            logger.warning("Shift %s not found for %s. Nothing deleted.", shift_id, owner)
            return False

        try:
            self.session.delete(shift)
            self.session.commit()
        except SQLAlchemyError as e:
            self.session.rollback()
            logger.exception("Error deleting shift %s", shift_id)
            _msg = "Could not delete the shift"
            raise StoreError(_msg) from e

        logger.info("Shift %s deleted by %s", shift_id, owner)
        return True

    def existing_dates(self, owner: str, candidates: Iterable[str]) -> set[str]:
        """Return the candidate dates on which the owner already has a shift.

        Read only. Used to warn before adding a second shift on a date.
        """
        candidates = set(candidates)
        if not candidates:
            return set()

        query = (
            select(Shift.date)
            .where(Shift.owner == owner, Shift.date.in_(candidates))
            .distinct()
        )
        try:
            return set(self.session.scalars(query))
        except SQLAlchemyError as e:
            logger.exception("Error checking duplicate dates for %s", owner)
            _msg = "Could not check existing shifts"
            raise StoreError(_msg) from e


def register_user(
    session: Session | scoped_session,
    uid: str,
    email: str | None,
) -> User:
    """Return the user for ``uid``, creating it on first sign-in.

    The first user ever registered becomes the admin.
    """
    user = session.scalars(select(User).filter_by(uid=uid)).first()
    if user is None:
        is_first = session.scalars(select(User.id).limit(1)).first() is None
        user = User(uid=uid, email=email, is_admin=is_first)
        session.add(user)
        if is_first:
            logger.info("No users in the database. %s becomes admin.", email or uid)
        else:
            logger.info("New user registered. email=%s", email)
    elif email and user.email != email:
        user.email = email

    user.last_login = utcnow()
    try:
        session.commit()
    except SQLAlchemyError as e:
        session.rollback()
        logger.exception("Error registering user %s", uid)
        _msg = "Could not register the user"
        raise StoreError(_msg) from e
    return user
