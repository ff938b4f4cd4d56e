"""In-process broadcaster for aggregator views."""

from __future__ import annotations

import asyncio
import logging
from collections import defaultdict

from safeping.domain.contracts.status_broadcaster import StatusBroadcasterProtocol
from safeping.domain.models.aggregator_view import AggregatorView

logger = logging.getLogger(__name__)

DEFAULT_QUEUE_SIZE = 16


class StatusBroadcaster(StatusBroadcasterProtocol):
    """Fans views out to subscriber queues, one set of queues per topic.

    A slow subscriber never blocks the aggregator: when its queue is full the
    oldest view is dropped, since only the latest view matters.
    """

    def __init__(self, queue_size: int = DEFAULT_QUEUE_SIZE) -> None:
        self.queue_size = queue_size
        self._subscribers: dict[str, list[asyncio.Queue[AggregatorView]]] = defaultdict(list)

    def subscribe(self, topic: str) -> asyncio.Queue[AggregatorView]:
        """Return a new queue receiving every view published on the topic."""
        queue: asyncio.Queue[AggregatorView] = asyncio.Queue(maxsize=self.queue_size)
        self._subscribers[topic].append(queue)
        return queue

    def unsubscribe(self, topic: str, queue: asyncio.Queue[AggregatorView]) -> None:
        """Stop delivering to a queue. Unknown queues are ignored."""
        subscribers = self._subscribers.get(topic, [])
        if queue in subscribers:
            subscribers.remove(queue)

    async def broadcast_update(self, topic: str, view: AggregatorView) -> None:
        """Broadcast a view to all subscribers on the topic.

        Args:
            topic: The pub/sub topic to broadcast to.
            view: The projection to deliver.
        """
        subscribers = self._subscribers.get(topic, [])
        for queue in subscribers:
            if queue.full():
                queue.get_nowait()
            queue.put_nowait(view)
        logger.debug(f"Broadcasted update to {len(subscribers)} subscribers on topic: {topic}")
