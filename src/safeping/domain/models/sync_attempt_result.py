"""Sync attempt result domain model."""

from dataclasses import dataclass
from enum import StrEnum

from safeping.domain.models.queued_action import ActionKind


class SyncOutcome(StrEnum):
    """Classification of one attempt to deliver a queued action."""

    SUCCESS = "success"
    RETRYABLE_FAILURE = "retryable_failure"
    PERMANENT_FAILURE = "permanent_failure"


class FailureReason(StrEnum):
    """Why a permanent failure is terminal."""

    REJECTED = "rejected"  # Backend refused the write (auth or validation)
    RETRIES_EXHAUSTED = "retries_exhausted"  # Retry ceiling reached


@dataclass(frozen=True)
class SyncAttemptResult:
    """Outcome of one sync engine attempt against one queued action."""

    action_id: str
    kind: ActionKind
    outcome: SyncOutcome
    retry_count: int  # Retry count of the action after this attempt
    remote_id: str | None = None
    error: str | None = None
    failure_reason: FailureReason | None = None

    @property
    def is_terminal(self) -> bool:
        """True if the action left the queue as a result of this attempt."""
        return self.outcome is not SyncOutcome.RETRYABLE_FAILURE
