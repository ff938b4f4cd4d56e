"""Change feed port."""

from collections.abc import Callable
from typing import Protocol

from safeping.domain.models.change_event import ChangeEvent

ChangeHandler = Callable[[ChangeEvent], None]
ConnectionHandler = Callable[[bool], None]


class ChangeFeed(Protocol):
    """Port for a persistent push subscription to row changes."""

    @property
    def is_connected(self) -> bool:
        """Whether the subscription is currently healthy."""
        ...

    @property
    def reconnect_attempts(self) -> int:
        """Reconnect attempts since the last healthy connection."""
        ...

    def subscribe(self, table: str, organization_id: str, handler: ChangeHandler) -> None:
        """Register a handler for changes of one table within one organization."""
        ...

    def on_connection_change(self, handler: ConnectionHandler) -> None:
        """Register a callback for connect and disconnect transitions."""
        ...

    async def start(self) -> None:
        """Open the subscription and keep it alive in the background."""
        ...

    async def stop(self) -> None:
        """Close the subscription."""
        ...
