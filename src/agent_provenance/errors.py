"""Error taxonomy for agent-provenance.

Every failure surfaced to a caller is a :class:`ProvenanceError`. The CLI
maps any of them to a non-zero exit status; library callers can branch on
the concrete subclass.

ValidationError : bad trust-level literal, malformed policy file or config.
NotFoundError   : unknown content id or policy pattern.
ConflictError   : duplicate quarantine.
StoreError      : transactional or lock failure in the record store.
"""
from __future__ import annotations


class ProvenanceError(Exception):
    """Base class for all errors raised by agent-provenance."""


class ValidationError(ProvenanceError):
    """Input rejected before any state was touched."""


class NotFoundError(ProvenanceError):
    """A referenced content id or policy pattern does not exist.

    Attributes
    ----------
    key:
        The content id or pattern that could not be found.
    """

    def __init__(self, message: str, key: str) -> None:
        super().__init__(message)
        self.key = key


class ConflictError(ProvenanceError):
    """The requested change conflicts with existing state.

    Attributes
    ----------
    key:
        The content id the conflict was detected on.
    """

    def __init__(self, message: str, key: str) -> None:
        super().__init__(message)
        self.key = key


class StoreError(ProvenanceError):
    """The record store could not complete a transaction.

    Attributes
    ----------
    attempts:
        Number of transaction attempts made before giving up.
    """

    def __init__(self, message: str, attempts: int = 1) -> None:
        super().__init__(message)
        self.attempts = attempts


__all__ = [
    "ConflictError",
    "NotFoundError",
    "ProvenanceError",
    "StoreError",
    "ValidationError",
]
