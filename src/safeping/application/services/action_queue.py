"""Durable local queue of pending safety-signal actions."""

from __future__ import annotations

import logging
from collections import Counter
from collections.abc import Callable
from datetime import datetime
from typing import TYPE_CHECKING

from safeping.domain.errors import EnqueueError, QueueEntryNotFoundError, StorageError
from safeping.domain.models.queued_action import (
    ActionPayload,
    AuthContext,
    QueuedAction,
    new_action_id,
)
from safeping.domain.models.sync_stats import SyncStats
from safeping.domain.models.timestamps import parse_timestamp, utc_now

if TYPE_CHECKING:
    from safeping.domain.ports.action_store import ActionStore

logger = logging.getLogger(__name__)

LAST_SYNC_KEY = "last_sync"


class ActionQueue:
    """Queue-wide operations over a durable action store."""

    def __init__(
        self,
        store: ActionStore,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        """Initialize the queue.

        Args:
            store: Durable storage for queued actions.
            clock: Source of the current time.
        """
        self.store = store
        self.clock = clock

    async def enqueue(self, payload: ActionPayload, auth_context: AuthContext) -> str:
        """Persist a new action and return its id.

        Raises:
            EnqueueError: If the store could not persist the action.
        """
        action = await self.enqueue_action(payload, auth_context)
        return action.id

    async def enqueue_action(
        self, payload: ActionPayload, auth_context: AuthContext
    ) -> QueuedAction:
        """Persist a new action and return it as stored.

        The action kind is the payload's tag. The action is durable once this
        returns.

        Raises:
            EnqueueError: If the store could not persist the action.
        """
        now = self.clock()
        action = QueuedAction(
            id=new_action_id(now),
            payload=payload,
            created_at=now,
            auth_context=auth_context,
            retry_count=0,
        )
        try:
            await self.store.put(action)
        except StorageError as e:
            logger.error(f"Failed to queue {action.kind} action: {e}")
            raise EnqueueError(f"Could not queue {action.kind} action: {e}") from e

        logger.info(f"Queued {action.kind} action {action.id}")
        return action

    async def list_pending(self) -> list[QueuedAction]:
        """Return all unresolved actions, oldest first."""
        return await self.store.list_all()

    async def get(self, action_id: str) -> QueuedAction | None:
        """Return one queued action, if still present."""
        return await self.store.get(action_id)

    async def remove(self, action_id: str) -> None:
        """Remove an action. Removing an unknown id is a no-op."""
        removed = await self.store.delete(action_id)
        if removed:
            logger.info(f"Removed queued action {action_id}")
        else:
            logger.debug(f"Queued action {action_id} already removed")

    async def increment_retry(self, action_id: str) -> int:
        """Atomically increment and persist the retry count.

        Raises:
            QueueEntryNotFoundError: If the action was removed in the meantime.
        """
        new_count = await self.store.increment_retry(action_id)
        if new_count is None:
            raise QueueEntryNotFoundError(action_id)
        return new_count

    async def count(self) -> int:
        """Number of pending actions."""
        return len(await self.store.list_all())

    async def clear(self) -> int:
        """Drop every pending action. Intended for maintenance only."""
        removed = await self.store.clear()
        logger.warning(f"Cleared offline action queue ({removed} actions dropped)")
        return removed

    async def record_sync(self, when: datetime | None = None) -> None:
        """Remember when the last drain pass finished."""
        moment = when or self.clock()
        await self.store.set_status(LAST_SYNC_KEY, moment.isoformat())

    async def stats(self) -> SyncStats:
        """Summarize the queue for a pending-count indicator."""
        actions = await self.store.list_all()
        status = await self.store.get_status()
        last_sync_raw = status.get(LAST_SYNC_KEY)
        by_kind = Counter(action.kind.value for action in actions)
        return SyncStats(
            queued_actions=len(actions),
            last_sync=parse_timestamp(last_sync_raw) if last_sync_raw else None,
            actions_by_kind=dict(by_kind),
        )
