"""Exception types raised by the reconciler, the sync driver and platform clients."""

from typing import Optional


class ReconcileError(Exception):
    """Base class for all application errors."""


class InvalidFormat(ReconcileError):
    """A JSON import file is malformed, empty or has no titled entries."""


class PlatformError(ReconcileError):
    """An error reported by a list provider or mutator."""

    def __init__(self, message: str, platform: Optional[str] = None, status_code: Optional[int] = None):
        super().__init__(message)
        self.platform = platform
        self.status_code = status_code


class AuthRequired(PlatformError):
    """The platform rejected the request because of missing or invalid credentials."""


class RateLimited(PlatformError):
    """The platform throttled the request (HTTP 429)."""


class NotFound(PlatformError):
    """The user, list or media item does not exist on the platform."""


class SyncItemFailed(ReconcileError):
    """A single entry could not be pushed to the target platform."""


class SearchUnsupported(SyncItemFailed):
    """The target platform has no title search and the entry carries no direct ID."""


class SyncAlreadyRunning(ReconcileError):
    """A sync run was requested while another one is still running."""
