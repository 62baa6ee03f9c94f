"""Exception hierarchy for the Joplin notes sync.

Per-object errors (TransientIO, NotFound, MalformedMetadata) are caught where
a single object is processed and only logged. Pass-level errors reach the
caller as SyncAborted.
"""
from typing import Any, Dict, Optional


class NoteSyncError(Exception):
    """Base exception for all sync errors.

    Attributes:
        message: Human-readable error message
        details: Additional context about the error
    """

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)


class ConfigMissing(NoteSyncError):
    """Storage credentials, bucket or another setting is missing or invalid."""


class TransientIO(NoteSyncError):
    """An object store call failed; the object (or listing) may succeed later."""

    def __init__(self, message: str, key: Optional[str] = None):
        super().__init__(message, {"key": key} if key else None)
        self.key = key


class NotFound(NoteSyncError):
    """A lookup found nothing (object key, note id or joplin id)."""

    def __init__(self, message: str, key: Optional[str] = None):
        super().__init__(message, {"key": key} if key else None)
        self.key = key


class MalformedMetadata(NoteSyncError):
    """The metadata block of one object could not be parsed."""

    def __init__(self, message: str, key: Optional[str] = None):
        super().__init__(message, {"key": key} if key else None)
        self.key = key


class StoreUnavailable(NoteSyncError):
    """The note store could not be written."""


class SyncAborted(NoteSyncError):
    """A sync pass stopped before replacing the note set."""

    def __init__(self, reason: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(reason, details)
        self.reason = reason


class SyncInProgress(SyncAborted):
    """Another sync pass is already running."""

    def __init__(self):
        super().__init__("A sync is already in progress")
