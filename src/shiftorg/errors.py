"""Exceptions raised by the shift organizer."""

from __future__ import annotations


class ShiftOrgError(Exception):
    """Base class for every error raised by this package."""


class FormatError(ShiftOrgError, ValueError):
    """A date or time string is malformed."""


class ValidationError(ShiftOrgError, ValueError):
    """Input is well formed but not acceptable.

    A time string that fails the 24-hour HH:MM pattern, an unknown shift
    kind, or a day shift that ends before it starts.
    """


class AuthError(ShiftOrgError):
    """Missing, invalid or expired credential."""


class NotFoundError(ShiftOrgError):
    """The requested records do not exist."""


class SerializationError(ShiftOrgError):
    """The calendar file could not be assembled."""


class StoreError(ShiftOrgError):
    """A backing store operation failed."""
