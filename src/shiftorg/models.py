"""Database models for the application."""

from __future__ import annotations

import uuid
from datetime import datetime  # noqa: TCH003. Needed by the mapping.

import pytz
from sqlalchemy import Boolean, DateTime, ForeignKey, Index, String
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.orm.decl_api import DeclarativeBase
from sqlalchemy.schema import MetaData

from .shifts import ShiftKind

# Naming conventions for Alembic migrations
naming_convention = {
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_name)s",
    "ck": "ck_%(table_name)s_%(constraint_name)s",
    "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}

metadata = MetaData(naming_convention=naming_convention)

UTC = pytz.utc


def utcnow() -> datetime:
    """Return the current time in UTC."""
    return datetime.now(tz=UTC)


def new_shift_id() -> str:
    """Return a new opaque shift identifier."""
    return str(uuid.uuid4())


# Define a base using the declarative base
class Base(DeclarativeBase):
    """Base class for declarative models."""

    metadata = metadata


class User(Base):
    """A person who signed in through the identity provider."""

    __tablename__ = "users"

    id: Mapped[int] = mapped_column(primary_key=True)
    uid: Mapped[str] = mapped_column(String(128), unique=True, nullable=False)
    """Identity provider uid. Shifts are owned by this value."""
    email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    is_admin: Mapped[bool] = mapped_column(Boolean, default=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
    )
    last_login: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    shifts: Mapped[list[Shift]] = relationship(
        "Shift",
        back_populates="user",
        cascade="all, delete-orphan",
    )

    def __repr__(self) -> str:
        """Representation of a user."""
        return f"<User {self.email or self.uid}>"


class Shift(Base):
    """A shift worked by a user on a given date.

    There is no unique constraint on (owner, date). Adding a second shift
    on the same date is allowed after the user confirms the warning.
    """

    __tablename__ = "shifts"
    __table_args__ = (Index("idx_shifts_owner_date", "owner", "date"),)

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_shift_id)
    owner: Mapped[str] = mapped_column(
        String(128),
        ForeignKey("users.uid", ondelete="CASCADE"),
        nullable=False,
    )
    date: Mapped[str] = mapped_column(String(10), nullable=False)
    """Local date as YYYY-MM-DD text, never stored through a timezone-aware type."""
    shift_kind: Mapped[str] = mapped_column(String(10), nullable=False)
    """One of the ShiftKind values: day, night or 8hour."""
    start_time: Mapped[str] = mapped_column(String(5), nullable=False)
    end_time: Mapped[str] = mapped_column(String(5), nullable=False)
    is_overtime: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        nullable=False,
    )
    """Creation time. SQLite drops the tzinfo; created_at_utc fixes that up."""

    user: Mapped[User] = relationship("User", back_populates="shifts")

    @property
    def kind(self) -> ShiftKind:
        """Shift kind as an enum."""
        return ShiftKind(self.shift_kind)

    @property
    def created_at_utc(self) -> datetime:
        """Creation time in UTC.

        The stored value is either aware or naive UTC. Both come back aware.
        """
        if self.created_at.tzinfo is None:
            return UTC.localize(self.created_at)
        return self.created_at.astimezone(UTC)

    def to_dict(self) -> dict[str, str | bool]:
        """Serialize for the JSON API."""
        return {
            "id": self.id,
            "owner": self.owner,
            "date": self.date,
            "kind": self.shift_kind,
            "start_time": self.start_time,
            "end_time": self.end_time,
            "is_overtime": self.is_overtime,
            "created_at": self.created_at_utc.isoformat(),
        }

    def __repr__(self) -> str:
        """Representation of a shift."""
        return f"<Shift {self.date} {self.shift_kind} {self.start_time}-{self.end_time}>"
