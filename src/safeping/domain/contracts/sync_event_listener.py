"""Protocol for observing terminal sync outcomes."""

from typing import Protocol

from safeping.domain.models.queued_action import QueuedAction
from safeping.domain.models.sync_attempt_result import SyncAttemptResult


class SyncEventListenerProtocol(Protocol):
    """Receives one call per action that leaves the queue."""

    def on_synced(self, action: QueuedAction, result: SyncAttemptResult) -> None:
        """The action was delivered."""
        ...

    def on_failed(self, action: QueuedAction, result: SyncAttemptResult) -> None:
        """The action was dropped as a permanent failure or after exhausting retries."""
        ...
