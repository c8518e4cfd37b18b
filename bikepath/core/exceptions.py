"""BikePath custom exceptions."""

from __future__ import annotations


class BikePathError(Exception):
    """Base exception for all BikePath errors."""


class InvalidCoordinateError(BikePathError, ValueError):
    """Raised when a latitude/longitude pair is out of range or NaN."""


class UnknownStatusError(BikePathError, ValueError):
    """Raised when a status string does not name a known condition level."""


class InvalidRatingError(BikePathError, ValueError):
    """Raised when a rating falls outside the 1-5 scale."""


class InvalidQueryError(BikePathError, ValueError):
    """Raised when a route query cannot be evaluated (e.g. start == end)."""


class InvalidTransitionError(BikePathError):
    """Raised when an obstacle lifecycle transition is not allowed."""


class NotFoundError(BikePathError):
    """Raised when a street, path, report or obstacle id does not exist."""


class StorageError(BikePathError):
    """Raised when the persistence layer fails."""


class InvalidReportError(BikePathError, ValueError):
    """Raised when a report is not linked to exactly one visit or street."""
