"""Sync engine: drains the local queue against the remote backend."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from datetime import datetime
from typing import TYPE_CHECKING

from safeping.application.services.action_queue import ActionQueue  # noqa: TC001
from safeping.application.services.retry_policy import RetryPolicy
from safeping.domain.errors import QueueEntryNotFoundError, RemoteWriteError, StorageError
from safeping.domain.models.queued_action import (
    CheckInPayload,
    EmergencyPayload,
    IncidentUpdatePayload,
    LocationUpdatePayload,
    ProfileUpdatePayload,
    QueuedAction,
)
from safeping.domain.models.sync_attempt_result import (
    FailureReason,
    SyncAttemptResult,
    SyncOutcome,
)
from safeping.domain.models.timestamps import utc_now

if TYPE_CHECKING:
    from safeping.domain.contracts.sync_event_listener import SyncEventListenerProtocol
    from safeping.domain.ports.notifier import Notifier
    from safeping.domain.ports.remote_write_gateway import RemoteWriteGateway

logger = logging.getLogger(__name__)

DEFAULT_REQUEST_TIMEOUT_SECONDS = 15.0


class SyncEngine:
    """Performs the remote write each queued action represents and classifies it.

    Only one drain pass runs at a time. A call to :meth:`drain` that arrives
    while another pass is in flight returns an empty result list without
    touching the queue or the backend.
    """

    def __init__(
        self,
        queue: ActionQueue,
        gateway: RemoteWriteGateway,
        retry_policy: RetryPolicy | None = None,
        notifier: Notifier | None = None,
        request_timeout_seconds: float = DEFAULT_REQUEST_TIMEOUT_SECONDS,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        """Initialize the sync engine.

        Args:
            queue: The durable action queue to drain.
            gateway: Remote write endpoints, one per action kind.
            retry_policy: Retry ceiling. Defaults to five retries.
            notifier: Optional local notification sink for delivered emergencies.
            request_timeout_seconds: Timeout for each remote write.
            clock: Source of the current time.
        """
        self.queue = queue
        self.gateway = gateway
        self.retry_policy = retry_policy or RetryPolicy()
        self.notifier = notifier
        self.request_timeout_seconds = request_timeout_seconds
        self.clock = clock
        self._listeners: list[SyncEventListenerProtocol] = []
        self._sync_in_progress = False

    @property
    def sync_in_progress(self) -> bool:
        """Whether a drain pass is currently running."""
        return self._sync_in_progress

    def add_listener(self, listener: SyncEventListenerProtocol) -> None:
        """Register a listener for actions that leave the queue."""
        self._listeners.append(listener)

    @property
    def listeners(self) -> list[SyncEventListenerProtocol]:
        """Registered listeners, in registration order."""
        return list(self._listeners)

    async def drain(self) -> list[SyncAttemptResult]:
        """Attempt every pending action once, oldest first.

        The pending list is read once at the start of the pass; actions queued
        while the pass runs are picked up by the next one. Failures are
        captured per action and never escape the pass.
        """
        if self._sync_in_progress:
            logger.debug("Drain already in progress, ignoring request")
            return []

        # Set before the first await so a concurrent caller sees it.
        self._sync_in_progress = True
        try:
            return await self._drain_pass()
        finally:
            self._sync_in_progress = False

    async def _drain_pass(self) -> list[SyncAttemptResult]:
        try:
            pending = await self.queue.list_pending()
        except StorageError as e:
            logger.error(f"Could not read offline queue, skipping drain: {e}")
            return []

        if not pending:
            logger.debug("Offline queue empty, nothing to sync")
            await self._record_sync()
            return []

        logger.info(f"Syncing {len(pending)} queued actions")
        results: list[SyncAttemptResult] = []
        for action in pending:
            try:
                result = await self._attempt(action)
            except StorageError as e:
                # The remote outcome is unknown to the queue; the next pass retries.
                logger.error(f"Queue update failed for {action.kind} action {action.id}: {e}")
                result = SyncAttemptResult(
                    action_id=action.id,
                    kind=action.kind,
                    outcome=SyncOutcome.RETRYABLE_FAILURE,
                    retry_count=action.retry_count,
                    error=str(e),
                )
            results.append(result)

        synced = sum(1 for r in results if r.outcome is SyncOutcome.SUCCESS)
        logger.info(f"Sync pass complete: {synced}/{len(results)} actions delivered")
        await self._record_sync()
        return results

    async def _record_sync(self) -> None:
        try:
            await self.queue.record_sync(self.clock())
        except StorageError as e:
            logger.warning(f"Could not record last sync time: {e}")

    async def _attempt(self, action: QueuedAction) -> SyncAttemptResult:
        try:
            remote_id = await asyncio.wait_for(
                self._dispatch(action), timeout=self.request_timeout_seconds
            )
        except TimeoutError:
            return await self._handle_failure(
                action, f"timed out after {self.request_timeout_seconds}s", retryable=True
            )
        except RemoteWriteError as e:
            return await self._handle_failure(action, str(e), retryable=e.retryable)
        except Exception as e:
            # Unknown failures are retried, bounded by the retry ceiling.
            logger.error(
                f"Unexpected error syncing {action.kind} action {action.id}: {e}", exc_info=True
            )
            return await self._handle_failure(action, str(e), retryable=True)

        return await self._handle_success(action, remote_id)

    async def _dispatch(self, action: QueuedAction) -> str | None:
        """Invoke the remote write matching the payload type."""
        payload = action.payload
        auth = action.auth_context
        if isinstance(payload, CheckInPayload):
            return await self.gateway.upsert_check_in(action.id, payload, action.created_at, auth)
        if isinstance(payload, EmergencyPayload):
            return await self.gateway.invoke_emergency(
                payload, action.id, action.created_at, auth
            )
        if isinstance(payload, IncidentUpdatePayload):
            return await self.gateway.update_incident(payload.incident_id, payload.updates, auth)
        if isinstance(payload, ProfileUpdatePayload):
            return await self.gateway.update_profile(payload.user_id, payload.updates, auth)
        if isinstance(payload, LocationUpdatePayload):
            return await self.gateway.insert_location(action.id, payload, auth)
        raise TypeError(f"Unsupported payload type: {type(payload).__name__}")

    async def _handle_success(
        self, action: QueuedAction, remote_id: str | None
    ) -> SyncAttemptResult:
        await self.queue.remove(action.id)
        logger.info(f"Synced {action.kind} action {action.id} (remote id: {remote_id})")
        result = SyncAttemptResult(
            action_id=action.id,
            kind=action.kind,
            outcome=SyncOutcome.SUCCESS,
            retry_count=action.retry_count,
            remote_id=remote_id,
        )
        self._emit(action, result)
        if isinstance(action.payload, EmergencyPayload):
            await self._notify_emergency_delivered()
        return result

    async def _handle_failure(
        self, action: QueuedAction, error: str, retryable: bool
    ) -> SyncAttemptResult:
        if not retryable:
            await self.queue.remove(action.id)
            logger.error(
                f"Remote write rejected for {action.kind} action {action.id}, "
                f"dropping it: {error}"
            )
            return self._terminal_failure(action, error, FailureReason.REJECTED)

        if self.retry_policy.is_exhausted(action.retry_count):
            await self.queue.remove(action.id)
            logger.error(
                f"Retries exhausted for {action.kind} action {action.id} after "
                f"{action.retry_count} retries, dropping it: {error}"
            )
            return self._terminal_failure(action, error, FailureReason.RETRIES_EXHAUSTED)

        try:
            retry_count = await self.queue.increment_retry(action.id)
        except QueueEntryNotFoundError:
            # Removed mid-pass, e.g. confirmed through the change feed.
            logger.info(f"Action {action.id} left the queue during sync, treating as resolved")
            retry_count = action.retry_count
        else:
            logger.warning(
                f"Retryable failure for {action.kind} action {action.id} "
                f"(retry {retry_count}/{self.retry_policy.max_retries}): {error}"
            )
        return SyncAttemptResult(
            action_id=action.id,
            kind=action.kind,
            outcome=SyncOutcome.RETRYABLE_FAILURE,
            retry_count=retry_count,
            error=error,
        )

    def _terminal_failure(
        self, action: QueuedAction, error: str, reason: FailureReason
    ) -> SyncAttemptResult:
        result = SyncAttemptResult(
            action_id=action.id,
            kind=action.kind,
            outcome=SyncOutcome.PERMANENT_FAILURE,
            retry_count=action.retry_count,
            error=error,
            failure_reason=reason,
        )
        self._emit(action, result)
        return result

    def _emit(self, action: QueuedAction, result: SyncAttemptResult) -> None:
        for listener in self._listeners:
            try:
                if result.outcome is SyncOutcome.SUCCESS:
                    listener.on_synced(action, result)
                else:
                    listener.on_failed(action, result)
            except Exception as e:
                logger.error(f"Sync listener failed for action {action.id}: {e}", exc_info=True)

    async def _notify_emergency_delivered(self) -> None:
        if self.notifier is None:
            return
        try:
            await self.notifier.notify(
                "Emergency alert sent",
                "Your emergency alert was delivered to your safety contacts.",
            )
        except Exception as e:
            logger.warning(f"Could not show emergency delivery notification: {e}")
