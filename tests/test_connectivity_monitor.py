"""Tests for the connectivity and lifecycle monitor."""

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from safeping.application.services.connectivity_monitor import (
    ConnectivityMonitor,
    ConnectivityState,
)
from tests.fakes import FakeConnectivityProvider


def make_monitor(
    online: bool = False, delay: float = 0.02
) -> tuple[ConnectivityMonitor, FakeConnectivityProvider, MagicMock]:
    provider = FakeConnectivityProvider(online=online)
    trigger = MagicMock()
    trigger.trigger = AsyncMock(return_value=[])
    monitor = ConnectivityMonitor(provider, trigger, stabilization_delay_seconds=delay)
    monitor.start()
    return monitor, provider, trigger


@pytest.mark.asyncio
async def test_reconnect_triggers_drain_after_stabilization_delay() -> None:
    """Given the device is offline, when it comes online, then a drain is triggered after the delay."""
    monitor, provider, trigger = make_monitor(online=False)

    provider.set_online(True)
    assert monitor.state is ConnectivityState.ONLINE
    await asyncio.sleep(0.005)
    trigger.trigger.assert_not_called()

    await asyncio.sleep(0.05)
    trigger.trigger.assert_awaited_once_with("online")
    await monitor.stop()


@pytest.mark.asyncio
async def test_flapping_connection_drops_pending_trigger() -> None:
    """Given a reconnect, when the connection drops within the delay, then no drain is triggered."""
    monitor, provider, trigger = make_monitor(online=False, delay=0.05)

    provider.set_online(True)
    await asyncio.sleep(0.01)
    provider.set_online(False)
    await asyncio.sleep(0.1)

    trigger.trigger.assert_not_called()
    assert monitor.state is ConnectivityState.OFFLINE
    await monitor.stop()


@pytest.mark.asyncio
async def test_visibility_regained_while_online_triggers_immediately() -> None:
    """Given the device is online, when the app returns to the foreground, then a drain is triggered."""
    monitor, provider, trigger = make_monitor(online=True)

    provider.set_visible(False)
    provider.set_visible(True)
    await asyncio.sleep(0.01)

    trigger.trigger.assert_awaited_once_with("visibility")
    await monitor.stop()


@pytest.mark.asyncio
async def test_visibility_regained_while_offline_does_nothing() -> None:
    """Given the device is offline, when the app returns to the foreground, then nothing is triggered."""
    monitor, provider, trigger = make_monitor(online=False)

    provider.set_visible(True)
    await asyncio.sleep(0.01)

    trigger.trigger.assert_not_called()
    await monitor.stop()


@pytest.mark.asyncio
async def test_repeated_online_signal_is_not_a_transition() -> None:
    """Given the device is online, when another online signal arrives, then nothing is triggered."""
    monitor, provider, trigger = make_monitor(online=True, delay=0.01)

    provider.set_online(True)
    await asyncio.sleep(0.05)

    trigger.trigger.assert_not_called()
    await monitor.stop()


@pytest.mark.asyncio
async def test_online_listeners_run_before_drain() -> None:
    """Given an online listener, when the connection stabilizes, then it runs before the drain."""
    monitor, provider, trigger = make_monitor(online=False, delay=0.01)
    order: list[str] = []

    async def listener() -> None:
        order.append("listener")

    trigger.trigger.side_effect = lambda reason: order.append(reason) or []
    monitor.add_online_listener(listener)

    provider.set_online(True)
    await asyncio.sleep(0.05)

    assert order == ["listener", "online"]
    await monitor.stop()
