"""Connectivity provider that probes the backend over HTTP."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from typing import TYPE_CHECKING

import aiohttp

from safeping.domain.ports.connectivity_provider import ConnectivityProvider

if TYPE_CHECKING:
    from aiohttp import ClientSession

logger = logging.getLogger(__name__)

DEFAULT_PROBE_INTERVAL_SECONDS = 10.0
DEFAULT_PROBE_TIMEOUT_SECONDS = 5.0


class ProbeConnectivityProvider(ConnectivityProvider):
    """Derives online/offline from periodic HTTP probes.

    Any HTTP response counts as online; only transport failures and timeouts
    count as offline. Visibility has no probe and is reported by the host
    application through :meth:`set_visibility`.
    """

    def __init__(
        self,
        session: ClientSession,
        probe_url: str,
        headers: dict[str, str] | None = None,
        interval_seconds: float = DEFAULT_PROBE_INTERVAL_SECONDS,
        timeout_seconds: float = DEFAULT_PROBE_TIMEOUT_SECONDS,
        initially_online: bool = False,
    ) -> None:
        self._session = session
        self.probe_url = probe_url
        self.headers = headers or {}
        self.interval_seconds = interval_seconds
        self.timeout_seconds = timeout_seconds
        self._online = initially_online
        self._visible = True
        self._callbacks: list[Callable[[bool], None]] = []
        self._visibility_callbacks: list[Callable[[bool], None]] = []
        self._task: asyncio.Task | None = None

    def is_online(self) -> bool:
        return self._online

    def on_change(self, callback: Callable[[bool], None]) -> None:
        self._callbacks.append(callback)

    def is_visible(self) -> bool:
        return self._visible

    def on_visibility_change(self, callback: Callable[[bool], None]) -> None:
        self._visibility_callbacks.append(callback)

    def set_visibility(self, visible: bool) -> None:
        """Report a foreground/background transition of the host application."""
        if visible == self._visible:
            return
        self._visible = visible
        self._notify(self._visibility_callbacks, visible)

    async def probe(self) -> bool:
        """Probe the backend once and update the online state."""
        try:
            async with self._session.get(
                self.probe_url,
                headers=self.headers,
                timeout=aiohttp.ClientTimeout(total=self.timeout_seconds),
            ) as response:
                logger.debug(f"Connectivity probe returned {response.status}")
                online = True
        except (aiohttp.ClientError, TimeoutError) as e:
            logger.debug(f"Connectivity probe failed: {e}")
            online = False
        self._set_online(online)
        return online

    async def start(self) -> None:
        """Start probing in the background."""
        if self._task is not None and not self._task.done():
            logger.warning("Connectivity probe already running")
            return
        self._task = asyncio.create_task(self._probe_loop())
        logger.info(f"Started connectivity probe (interval: {self.interval_seconds}s)")

    async def stop(self) -> None:
        """Stop probing."""
        if self._task and not self._task.done():
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                logger.info("Connectivity probe cancelled")

    async def _probe_loop(self) -> None:
        try:
            while True:
                await self.probe()
                await asyncio.sleep(self.interval_seconds)
        except asyncio.CancelledError:
            logger.info("Connectivity probe cancelled")
            raise

    def _set_online(self, online: bool) -> None:
        if online == self._online:
            return
        self._online = online
        logger.info(f"Network is {'online' if online else 'offline'}")
        self._notify(self._callbacks, online)

    @staticmethod
    def _notify(callbacks: list[Callable[[bool], None]], value: bool) -> None:
        for callback in callbacks:
            try:
                callback(value)
            except Exception as e:
                logger.error(f"Connectivity callback failed: {e}", exc_info=True)
