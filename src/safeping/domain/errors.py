"""Domain exceptions for the check-in pipeline."""

from __future__ import annotations

# Statuses that indicate a transient server-side or throttling problem.
RETRYABLE_STATUS_CODES = frozenset({408, 425, 429})


class SafePingError(Exception):
    """Base class for all pipeline errors."""


class StorageError(SafePingError):
    """The local durable store failed."""


class EnqueueError(StorageError):
    """A safety signal could not be written to the local queue."""


class QueueEntryNotFoundError(SafePingError):
    """A queue entry was expected but no longer exists."""

    def __init__(self, action_id: str) -> None:
        super().__init__(f"Queued action not found: {action_id}")
        self.action_id = action_id


class OfflineError(SafePingError):
    """An online-only operation was attempted while offline."""


class RemoteWriteError(SafePingError):
    """A remote write or read did not succeed.

    ``status_code`` is None for transport-level failures (DNS, refused
    connection, reset, timeout) where no HTTP response was received.
    """

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code

    @property
    def retryable(self) -> bool:
        """Whether retrying the same request later may succeed."""
        if self.status_code is None:
            return True
        if self.status_code >= 500:
            return True
        return self.status_code in RETRYABLE_STATUS_CODES

    def __str__(self) -> str:
        base = super().__str__()
        if self.status_code is None:
            return base
        return f"{base} (status: {self.status_code})"
