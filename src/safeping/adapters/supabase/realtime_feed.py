"""Supabase Realtime change feed over the Phoenix websocket protocol."""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime
from typing import TYPE_CHECKING, Any

import aiohttp

from safeping.domain.models.change_event import ChangeEvent, ChangeEventType
from safeping.domain.models.timestamps import utc_now
from safeping.domain.ports.change_feed import ChangeFeed, ChangeHandler, ConnectionHandler

if TYPE_CHECKING:
    from aiohttp import ClientSession

logger = logging.getLogger(__name__)

PHOENIX_TOPIC = "phoenix"
DEFAULT_HEARTBEAT_SECONDS = 30.0
DEFAULT_RECONNECT_BASE_DELAY_SECONDS = 1.0
DEFAULT_RECONNECT_MAX_DELAY_SECONDS = 60.0


@dataclass(frozen=True)
class _Subscription:
    table: str
    organization_id: str
    handler: ChangeHandler

    @property
    def topic(self) -> str:
        return f"realtime:{self.table}:{self.organization_id}"


class SupabaseRealtimeFeed(ChangeFeed):
    """Keeps a websocket open to Supabase Realtime and dispatches row changes.

    Each subscription joins one channel filtered by ``organization_id``. The
    feed counts as connected once a channel join is acknowledged, and as
    disconnected when the socket drops or a channel errors. Reconnects back
    off exponentially up to a cap, and the attempt counter resets on the next
    successful join.
    """

    def __init__(
        self,
        session: ClientSession,
        url: str,
        api_key: str,
        access_token: str | None = None,
        heartbeat_seconds: float = DEFAULT_HEARTBEAT_SECONDS,
        reconnect_base_delay_seconds: float = DEFAULT_RECONNECT_BASE_DELAY_SECONDS,
        reconnect_max_delay_seconds: float = DEFAULT_RECONNECT_MAX_DELAY_SECONDS,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        """Initialize the feed.

        Args:
            session: Shared aiohttp session.
            url: Websocket URL of the realtime endpoint.
            api_key: Project API key.
            access_token: User token for row level security; defaults to the API key.
            heartbeat_seconds: Interval between heartbeats.
            reconnect_base_delay_seconds: First reconnect delay.
            reconnect_max_delay_seconds: Reconnect delay cap.
            clock: Source of the current time.
        """
        self._session = session
        self.url = url
        self.api_key = api_key
        self.access_token = access_token
        self.heartbeat_seconds = heartbeat_seconds
        self.reconnect_base_delay_seconds = reconnect_base_delay_seconds
        self.reconnect_max_delay_seconds = reconnect_max_delay_seconds
        self.clock = clock
        self.last_heartbeat: datetime | None = None
        self._subscriptions: list[_Subscription] = []
        self._connection_handlers: list[ConnectionHandler] = []
        self._connected = False
        self._reconnect_attempts = 0
        self._ref = 0
        self._task: asyncio.Task | None = None
        self._ws: aiohttp.ClientWebSocketResponse | None = None
        self._pending_joins: set[asyncio.Task] = set()

    @property
    def is_connected(self) -> bool:
        return self._connected

    @property
    def reconnect_attempts(self) -> int:
        return self._reconnect_attempts

    def subscribe(self, table: str, organization_id: str, handler: ChangeHandler) -> None:
        subscription = _Subscription(table, organization_id, handler)
        self._subscriptions.append(subscription)
        if self._ws is not None and not self._ws.closed:
            task = asyncio.create_task(self._join(self._ws, subscription))
            self._pending_joins.add(task)
            task.add_done_callback(self._pending_joins.discard)

    def on_connection_change(self, handler: ConnectionHandler) -> None:
        self._connection_handlers.append(handler)

    async def start(self) -> None:
        if self._task is not None and not self._task.done():
            logger.warning("Realtime feed already running")
            return
        self._task = asyncio.create_task(self._run())
        logger.info("Started realtime feed")

    async def stop(self) -> None:
        if self._task and not self._task.done():
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                logger.info("Realtime feed cancelled")
        self._set_connected(False)
        logger.info("Stopped realtime feed")

    def handle_message(self, message: dict[str, Any]) -> None:
        """Process one decoded Phoenix message."""
        event = message.get("event")
        topic = message.get("topic", "")
        payload = message.get("payload") or {}

        if event == "phx_reply":
            if topic == PHOENIX_TOPIC:
                self.last_heartbeat = self.clock()
            elif payload.get("status") == "ok":
                logger.info(f"Joined realtime channel {topic}")
                self._reconnect_attempts = 0
                self._set_connected(True)
            else:
                logger.error(f"Realtime channel {topic} join failed: {payload.get('response')}")
        elif event == "postgres_changes":
            self._dispatch(topic, payload.get("data") or {})
        elif event in ("phx_error", "phx_close"):
            logger.warning(f"Realtime channel {topic} closed ({event})")
            self._set_connected(False)
        else:
            logger.debug(f"Ignoring realtime event {event} on {topic}")

    def _dispatch(self, topic: str, data: dict[str, Any]) -> None:
        try:
            event = ChangeEvent(
                event_type=ChangeEventType(data["type"]),
                table=data["table"],
                new=data.get("record") or {},
                old=data.get("old_record") or {},
            )
        except (KeyError, ValueError) as e:
            logger.warning(f"Ignoring malformed change on {topic}: {e}")
            return

        for subscription in self._subscriptions:
            if subscription.topic != topic:
                continue
            try:
                subscription.handler(event)
            except Exception as e:
                logger.error(f"Change handler failed for {topic}: {e}", exc_info=True)

    def _set_connected(self, connected: bool) -> None:
        if connected == self._connected:
            return
        self._connected = connected
        for handler in self._connection_handlers:
            try:
                handler(connected)
            except Exception as e:
                logger.error(f"Connection handler failed: {e}", exc_info=True)

    def _next_ref(self) -> str:
        self._ref += 1
        return str(self._ref)

    async def _run(self) -> None:
        try:
            while True:
                try:
                    await self._connect_and_listen()
                except (aiohttp.ClientError, TimeoutError, ConnectionError) as e:
                    logger.warning(f"Realtime connection failed: {e}")
                self._set_connected(False)
                self._reconnect_attempts += 1
                delay = min(
                    self.reconnect_max_delay_seconds,
                    self.reconnect_base_delay_seconds * 2 ** min(self._reconnect_attempts - 1, 16),
                )
                logger.info(
                    f"Reconnecting realtime feed in {delay:.1f}s "
                    f"(attempt {self._reconnect_attempts})"
                )
                await asyncio.sleep(delay)
        except asyncio.CancelledError:
            logger.info("Realtime feed cancelled")
            raise

    async def _connect_and_listen(self) -> None:
        url = f"{self.url}?apikey={self.api_key}&vsn=1.0.0"
        async with self._session.ws_connect(url) as ws:
            self._ws = ws
            heartbeat = asyncio.create_task(self._heartbeat_loop(ws))
            try:
                for subscription in self._subscriptions:
                    await self._join(ws, subscription)
                async for msg in ws:
                    if msg.type == aiohttp.WSMsgType.TEXT:
                        try:
                            self.handle_message(json.loads(msg.data))
                        except ValueError as e:
                            logger.warning(f"Ignoring undecodable realtime message: {e}")
                    elif msg.type in (aiohttp.WSMsgType.CLOSED, aiohttp.WSMsgType.ERROR):
                        break
            finally:
                heartbeat.cancel()
                self._ws = None
        logger.warning("Realtime socket closed")

    async def _join(self, ws: aiohttp.ClientWebSocketResponse, subscription: _Subscription) -> None:
        ref = self._next_ref()
        await ws.send_json(
            {
                "topic": subscription.topic,
                "event": "phx_join",
                "payload": {
                    "config": {
                        "broadcast": {"self": False},
                        "presence": {"key": ""},
                        "postgres_changes": [
                            {
                                "event": "*",
                                "schema": "public",
                                "table": subscription.table,
                                "filter": f"organization_id=eq.{subscription.organization_id}",
                            }
                        ],
                    },
                    "access_token": self.access_token or self.api_key,
                },
                "ref": ref,
                "join_ref": ref,
            }
        )

    async def _heartbeat_loop(self, ws: aiohttp.ClientWebSocketResponse) -> None:
        while not ws.closed:
            await asyncio.sleep(self.heartbeat_seconds)
            try:
                await ws.send_json(
                    {"topic": PHOENIX_TOPIC, "event": "heartbeat", "payload": {}, "ref": self._next_ref()}
                )
            except (aiohttp.ClientError, ConnectionError) as e:
                logger.warning(f"Realtime heartbeat failed: {e}")
                return
