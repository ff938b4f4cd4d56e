"""Retry scheduler: decides when the sync engine runs."""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING

from safeping.application.services.retry_policy import RetryPolicy
from safeping.application.services.sync_engine import SyncEngine  # noqa: TC001
from safeping.domain.contracts.drain_trigger import DrainTriggerProtocol
from safeping.domain.models.sync_attempt_result import SyncAttemptResult, SyncOutcome

if TYPE_CHECKING:
    from safeping.domain.ports.connectivity_provider import ConnectivityProvider

logger = logging.getLogger(__name__)

DEFAULT_SYNC_INTERVAL_SECONDS = 30.0


class RetryScheduler(DrainTriggerProtocol):
    """Turns triggers into drain passes and schedules per-action backoff retries.

    Triggers are the periodic timer, connectivity and visibility events (via the
    connectivity monitor), a fresh enqueue, per-action backoff timers and manual
    sync. All of them meet at :meth:`trigger`; a trigger that arrives while a
    pass is in flight is dropped, the next natural trigger picks the work up.
    """

    def __init__(
        self,
        engine: SyncEngine,
        connectivity: ConnectivityProvider,
        retry_policy: RetryPolicy | None = None,
        sync_interval_seconds: float = DEFAULT_SYNC_INTERVAL_SECONDS,
    ) -> None:
        """Initialize the retry scheduler.

        Args:
            engine: The sync engine to drive.
            connectivity: Source of the current online state.
            retry_policy: Backoff policy. Defaults to the engine's policy.
            sync_interval_seconds: Interval of the periodic trigger.
        """
        self.engine = engine
        self.connectivity = connectivity
        self.retry_policy = retry_policy or engine.retry_policy
        self.sync_interval_seconds = sync_interval_seconds
        self._task: asyncio.Task | None = None
        self._retry_timers: dict[str, asyncio.Task] = {}
        self._retry_delays: dict[str, float] = {}
        self._background: set[asyncio.Task] = set()

    async def start(self) -> None:
        """Start the periodic trigger. The first pass runs immediately."""
        if self._task is not None and not self._task.done():
            logger.warning("Retry scheduler already running")
            return

        self._task = asyncio.create_task(self._periodic_loop())
        logger.info(f"Started retry scheduler (interval: {self.sync_interval_seconds}s)")

    async def stop(self) -> None:
        """Stop the periodic trigger and abandon pending backoff timers.

        The queue itself is untouched; pending actions resume on next start.
        """
        tasks = list(self._retry_timers.values()) + list(self._background)
        if self._task and not self._task.done():
            tasks.append(self._task)
        for task in tasks:
            task.cancel()
        for task in tasks:
            try:
                await task
            except asyncio.CancelledError:
                pass
        self._retry_timers.clear()
        self._retry_delays.clear()
        self._background.clear()
        logger.info("Stopped retry scheduler")

    async def trigger(self, reason: str) -> list[SyncAttemptResult]:
        """Run a drain pass if online and none is in flight."""
        if not self.connectivity.is_online():
            logger.debug(f"Offline, skipping sync ({reason})")
            return []
        if self.engine.sync_in_progress:
            logger.debug(f"Sync already in progress, coalescing trigger ({reason})")
            return []

        logger.debug(f"Sync triggered ({reason})")
        results = await self.engine.drain()
        self._schedule_retries(results)
        return results

    def notify_enqueued(self) -> None:
        """Kick off a drain right after an enqueue, when online."""
        if not self.connectivity.is_online():
            return
        self._spawn(self.trigger("enqueue"))

    async def manual_sync(self) -> bool:
        """Drain now on explicit user request.

        Returns:
            False if offline, True once the pass (or the pass already in flight) ran.
        """
        if not self.connectivity.is_online():
            logger.info("Manual sync requested while offline")
            return False
        await self.trigger("manual")
        return True

    def scheduled_retry_delay(self, action_id: str) -> float | None:
        """Backoff delay scheduled for an action, if a retry timer is pending."""
        return self._retry_delays.get(action_id)

    @property
    def pending_retry_ids(self) -> set[str]:
        """Ids of actions with a pending backoff timer."""
        return set(self._retry_timers)

    async def _periodic_loop(self) -> None:
        # Resume whatever survived the last shutdown.
        await self.trigger("startup")
        try:
            while True:
                await asyncio.sleep(self.sync_interval_seconds)
                await self.trigger("periodic")
        except asyncio.CancelledError:
            logger.info("Retry scheduler cancelled")
            raise

    def _schedule_retries(self, results: list[SyncAttemptResult]) -> None:
        for result in results:
            if result.outcome is SyncOutcome.RETRYABLE_FAILURE:
                # The delay grows with the retry count the failed attempt was made at.
                delay = self.retry_policy.backoff_delay(max(result.retry_count - 1, 0))
                self._schedule_retry(result.action_id, delay)
            else:
                self._cancel_retry(result.action_id)

    def _schedule_retry(self, action_id: str, delay: float) -> None:
        self._cancel_retry(action_id)
        self._retry_delays[action_id] = delay
        self._retry_timers[action_id] = asyncio.create_task(self._retry_after(action_id, delay))
        logger.debug(f"Scheduled retry of action {action_id} in {delay:.2f}s")

    def _cancel_retry(self, action_id: str) -> None:
        timer = self._retry_timers.pop(action_id, None)
        self._retry_delays.pop(action_id, None)
        if timer is not None and not timer.done():
            timer.cancel()

    async def _retry_after(self, action_id: str, delay: float) -> None:
        await asyncio.sleep(delay)
        # Detach before triggering so a reschedule does not cancel this task.
        task = self._retry_timers.pop(action_id, None)
        self._retry_delays.pop(action_id, None)
        if task is not None:
            self._background.add(task)
            task.add_done_callback(self._background.discard)
        await self.trigger(f"backoff {action_id}")

    def _spawn(self, coro) -> None:
        task = asyncio.create_task(coro)
        self._background.add(task)
        task.add_done_callback(self._background.discard)
