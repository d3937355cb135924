"""
Error taxonomy for the ledger core.

NotFound: an addressed document version or prediction does not exist.
Conflict: a concurrent write to the same key was detected.
Invalid: malformed tabular input, invalid prediction shape, or a bad request.
Unavailable: the underlying store or network failed.
"""

from __future__ import annotations


class LedgerError(Exception):
    """Base class for all ledger errors."""


class NotFoundError(LedgerError):
    """Raised when an addressed record does not exist."""


class DocumentNotFoundError(NotFoundError):
    """Raised when a specific document version was never written."""

    def __init__(self, name: str, scope: str, version: int | None = None) -> None:
        self.name = name
        self.scope = scope
        self.version = version
        if version is None:
            msg = f"Document {name!r} not found in scope {scope!r}"
        else:
            msg = f"Document {name!r} version {version} not found in scope {scope!r}"
        super().__init__(msg)


class PredictionNotFoundError(NotFoundError):
    """Raised when a prediction (or a specific reprediction index) does not exist."""


class ConflictError(LedgerError):
    """Raised when a write collides with a concurrent write to the same key."""


class InvalidError(LedgerError):
    """Raised for malformed input."""


class InvalidRowsError(InvalidError):
    """Tabular input could not be parsed as well-formed rows."""


class InvalidPredictionError(InvalidError):
    """A prediction does not fit the shape its entity requires."""


class InvalidRequestError(InvalidError):
    """A caller combined options that cannot be used together."""


class UnavailableError(LedgerError):
    """Raised when the store or a remote collaborator cannot be reached."""
