"""Exceptions raised by the paste domain, store and service layers.

Classes:
    PasteError:
        Base class for all paste-related errors.

    InvalidPasteParameters:
        Malformed input (empty content, non-positive ttl/max_views, bad test clock).

    PasteNotFoundError:
        The paste is absent, expired or has used up its view quota.

    IdGenerationError:
        No unguessable identifier could be produced.

    StorageUnavailableError:
        The database could not be reached or refused the operation.

    ConflictExceededError:
        A claim kept losing races against concurrent transactions. Only used
        inside the paste store; it is converted before leaving it.
"""

from __future__ import annotations


class PasteError(Exception):
    """Base class for paste-related errors."""


class InvalidPasteParameters(PasteError):
    """Raised when creating or reading a paste with invalid parameters."""


class PasteNotFoundError(PasteError):
    """Raised when a paste is not visible to readers.

    Absent, expired and quota-exhausted pastes all raise this same error with
    the same message so callers cannot tell them apart.
    """

    def __init__(self, message: str = "Not found") -> None:
        super().__init__(message)


class IdGenerationError(PasteError):
    """Raised when the identifier entropy source fails."""


class StorageUnavailableError(PasteError):
    """Raised when the persistence layer is unreachable or failing."""


class ConflictExceededError(PasteError):
    """Raised when a claim exhausts its retries against transient conflicts."""
