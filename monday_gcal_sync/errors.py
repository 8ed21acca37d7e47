"""Exception hierarchy shared by the sync engine and its API clients."""
from __future__ import annotations


class SyncError(RuntimeError):
    """Base class for every failure surfaced by a sync run."""


class ParseError(SyncError):
    """Raised when duration or date-time text cannot be parsed."""


class ValidationError(SyncError):
    """Raised when board data is well-formed but inconsistent."""


class CollaboratorError(SyncError):
    """Raised when Monday.com or Google Calendar calls fail."""
