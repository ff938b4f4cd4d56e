"""Protocol for broadcasting projection updates."""

from typing import Protocol

from safeping.domain.models.aggregator_view import AggregatorView


class StatusBroadcasterProtocol(Protocol):
    """Protocol for publishing aggregator views to subscribers."""

    async def broadcast_update(self, topic: str, view: AggregatorView) -> None:
        """Publish a new view on a topic.

        Args:
            topic: The pub/sub topic to broadcast to.
            view: The projection to deliver.
        """
        ...
