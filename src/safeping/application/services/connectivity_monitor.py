"""Connectivity and lifecycle monitor."""

from __future__ import annotations

import asyncio
import logging
from enum import StrEnum
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable, Coroutine

    from safeping.domain.contracts.drain_trigger import DrainTriggerProtocol
    from safeping.domain.ports.connectivity_provider import ConnectivityProvider

logger = logging.getLogger(__name__)

DEFAULT_STABILIZATION_DELAY_SECONDS = 1.0


class ConnectivityState(StrEnum):
    """Connectivity state of the device."""

    OFFLINE = "offline"
    ONLINE = "online"


class ConnectivityMonitor:
    """Translates connectivity and visibility signals into drain triggers.

    An OFFLINE to ONLINE transition waits a short stabilization delay before
    triggering, and the pending trigger is dropped if the connection drops again
    in the meantime. Regaining visibility while online triggers immediately.
    """

    def __init__(
        self,
        provider: ConnectivityProvider,
        drain_trigger: DrainTriggerProtocol,
        stabilization_delay_seconds: float = DEFAULT_STABILIZATION_DELAY_SECONDS,
    ) -> None:
        self.provider = provider
        self.drain_trigger = drain_trigger
        self.stabilization_delay_seconds = stabilization_delay_seconds
        self.state = self._state_of(provider.is_online())
        self._pending_trigger: asyncio.Task | None = None
        self._trigger_tasks: set[asyncio.Task] = set()
        self._started = False
        self._online_listeners: list[Callable[[], Awaitable[None]]] = []

    def start(self) -> None:
        """Register with the provider's connectivity and visibility signals."""
        if self._started:
            return
        self.state = self._state_of(self.provider.is_online())
        self.provider.on_change(self._on_connectivity_change)
        self.provider.on_visibility_change(self._on_visibility_change)
        self._started = True
        logger.info(f"Connectivity monitor started ({self.state})")

    async def stop(self) -> None:
        """Cancel any pending trigger."""
        tasks = list(self._trigger_tasks)
        if self._pending_trigger is not None and not self._pending_trigger.done():
            tasks.append(self._pending_trigger)
        for task in tasks:
            task.cancel()
        for task in tasks:
            try:
                await task
            except asyncio.CancelledError:
                pass
        self._pending_trigger = None
        self._trigger_tasks.clear()

    @property
    def is_online(self) -> bool:
        """Whether the monitor currently considers the device online."""
        return self.state is ConnectivityState.ONLINE

    def add_online_listener(self, callback: Callable[[], Awaitable[None]]) -> None:
        """Register a callback run after each stabilized OFFLINE to ONLINE transition."""
        self._online_listeners.append(callback)

    def _on_connectivity_change(self, online: bool) -> None:
        new_state = self._state_of(online)
        if new_state is self.state:
            return

        logger.info(f"Connectivity changed: {self.state} -> {new_state}")
        self.state = new_state
        self._cancel_pending_trigger()
        if new_state is ConnectivityState.ONLINE:
            self._pending_trigger = asyncio.create_task(self._trigger_after_stabilization())

    def _on_visibility_change(self, visible: bool) -> None:
        if not visible or self.state is not ConnectivityState.ONLINE:
            return
        self._spawn(self.drain_trigger.trigger("visibility"))

    @staticmethod
    def _state_of(online: bool) -> ConnectivityState:
        return ConnectivityState.ONLINE if online else ConnectivityState.OFFLINE

    def _cancel_pending_trigger(self) -> None:
        if self._pending_trigger is not None and not self._pending_trigger.done():
            logger.debug("Connection flapped, dropping pending sync trigger")
            self._pending_trigger.cancel()
        self._pending_trigger = None

    def _spawn(self, coro: Coroutine[Any, Any, Any]) -> None:
        task = asyncio.create_task(coro)
        self._trigger_tasks.add(task)
        task.add_done_callback(self._trigger_tasks.discard)

    async def _trigger_after_stabilization(self) -> None:
        await asyncio.sleep(self.stabilization_delay_seconds)
        if self.state is not ConnectivityState.ONLINE:
            return
        # Past this point a flap must not cancel an attempt in flight.
        self._pending_trigger = None
        self._spawn(self._on_stable_online())

    async def _on_stable_online(self) -> None:
        for callback in self._online_listeners:
            try:
                await callback()
            except Exception as e:
                logger.error(f"Reconnect listener failed: {e}", exc_info=True)
        await self.drain_trigger.trigger("online")
