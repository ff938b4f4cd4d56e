"""Protocol for requesting sync engine passes."""

from typing import Protocol

from safeping.domain.models.sync_attempt_result import SyncAttemptResult


class DrainTriggerProtocol(Protocol):
    """Protocol for components that can start a drain of the local queue."""

    async def trigger(self, reason: str) -> list[SyncAttemptResult]:
        """Run a drain pass now if online and no pass is in flight.

        Args:
            reason: Short label of what caused the trigger, for logging.
        """
        ...

    def notify_enqueued(self) -> None:
        """Signal that a new action was queued."""
        ...
