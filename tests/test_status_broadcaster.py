"""Behavior-focused tests for StatusBroadcaster."""

import pytest

from safeping.adapters.broadcasters.status_broadcaster import StatusBroadcaster
from safeping.domain.models.aggregator_view import AggregatorView
from safeping.domain.models.worker_status import OrganizationStats


def make_view(safe: int) -> AggregatorView:
    return AggregatorView(organization_id="org-1", workers={}, stats=OrganizationStats(safe=safe))


class TestStatusBroadcaster:
    """Tests for view fan-out behavior."""

    @pytest.mark.asyncio
    async def test_when_broadcasting_then_every_subscriber_of_topic_receives_view(self) -> None:
        """Given two subscribers, when broadcasting, then both receive the view."""
        broadcaster = StatusBroadcaster()
        first = broadcaster.subscribe("organization:org-1")
        second = broadcaster.subscribe("organization:org-1")
        other = broadcaster.subscribe("organization:org-2")

        await broadcaster.broadcast_update("organization:org-1", make_view(1))

        assert first.get_nowait().stats.safe == 1
        assert second.get_nowait().stats.safe == 1
        assert other.empty()

    @pytest.mark.asyncio
    async def test_when_subscriber_is_slow_then_oldest_view_is_dropped(self) -> None:
        """Given a full subscriber queue, when broadcasting, then the oldest view is dropped."""
        broadcaster = StatusBroadcaster(queue_size=2)
        queue = broadcaster.subscribe("organization:org-1")

        for safe in range(3):
            await broadcaster.broadcast_update("organization:org-1", make_view(safe))

        assert [queue.get_nowait().stats.safe for _ in range(2)] == [1, 2]

    @pytest.mark.asyncio
    async def test_when_unsubscribed_then_no_longer_receives(self) -> None:
        """Given an unsubscribed queue, when broadcasting, then it receives nothing."""
        broadcaster = StatusBroadcaster()
        queue = broadcaster.subscribe("organization:org-1")
        broadcaster.unsubscribe("organization:org-1", queue)
        broadcaster.unsubscribe("organization:org-1", queue)

        await broadcaster.broadcast_update("organization:org-1", make_view(1))

        assert queue.empty()
