"""Local durable storage port for queued actions."""

from typing import Protocol

from safeping.domain.models.queued_action import QueuedAction


class ActionStore(Protocol):
    """Port for persisting queued actions across process restarts.

    Every method is atomic per record. Implementations raise
    ``safeping.domain.errors.StorageError`` when the underlying store fails.
    """

    async def put(self, action: QueuedAction) -> None:
        """Insert a new action."""
        ...

    async def get(self, action_id: str) -> QueuedAction | None:
        """Return the action with the given id, if present."""
        ...

    async def delete(self, action_id: str) -> bool:
        """Delete an action. Returns False if it did not exist."""
        ...

    async def list_all(self) -> list[QueuedAction]:
        """Return all stored actions ordered oldest first."""
        ...

    async def increment_retry(self, action_id: str) -> int | None:
        """Increment the retry count; return the new count or None if missing."""
        ...

    async def clear(self) -> int:
        """Delete every action. Returns the number removed."""
        ...

    async def set_status(self, key: str, value: str) -> None:
        """Persist a sync status value such as the last sync time."""
        ...

    async def get_status(self) -> dict[str, str]:
        """Return all persisted sync status values."""
        ...
