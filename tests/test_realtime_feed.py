"""Tests for the Supabase Realtime change feed."""

import asyncio
import json
from types import SimpleNamespace
from unittest.mock import MagicMock

import aiohttp
import pytest

from safeping.adapters.supabase.realtime_feed import SupabaseRealtimeFeed
from safeping.domain.models.change_event import ChangeEvent, ChangeEventType
from tests.fakes import T0, FakeClock, check_in_row


class FakeWebSocket:
    """Websocket replaying scripted frames, then staying open until closed."""

    def __init__(self, frames: list[dict]) -> None:
        self.frames = frames
        self.sent: list[dict] = []
        self.closed = False
        self._release = asyncio.Event()

    async def send_json(self, data: dict) -> None:
        self.sent.append(data)

    def close(self) -> None:
        self.closed = True
        self._release.set()

    async def __aiter__(self):
        for frame in self.frames:
            yield SimpleNamespace(type=aiohttp.WSMsgType.TEXT, data=json.dumps(frame))
        await self._release.wait()


def make_feed(ws: FakeWebSocket | None = None, **kwargs) -> tuple[SupabaseRealtimeFeed, MagicMock]:
    session = MagicMock()
    session.ws_connect.return_value.__aenter__.return_value = ws
    feed = SupabaseRealtimeFeed(
        session,
        "wss://project.supabase.co/realtime/v1/websocket",
        "anon-key",
        clock=FakeClock(),
        **kwargs,
    )
    return feed, session


def change_message(topic: str, change_type: str, record: dict, old: dict | None = None) -> dict:
    return {
        "topic": topic,
        "event": "postgres_changes",
        "payload": {
            "data": {
                "type": change_type,
                "table": "check_ins",
                "record": record,
                "old_record": old or {},
            }
        },
        "ref": None,
    }


def test_change_message_is_dispatched_to_matching_subscription() -> None:
    """Given a subscription, when a change arrives on its channel, then the handler receives it."""
    feed, _ = make_feed()
    received: list[ChangeEvent] = []
    other: list[ChangeEvent] = []
    feed.subscribe("check_ins", "org-1", received.append)
    feed.subscribe("check_ins", "org-2", other.append)
    row = check_in_row("c1", "user-1", T0)

    feed.handle_message(change_message("realtime:check_ins:org-1", "INSERT", row))

    assert received == [ChangeEvent(ChangeEventType.INSERT, "check_ins", new=row)]
    assert other == []


def test_delete_carries_old_record() -> None:
    """Given a delete, when dispatched, then the old record identifies the row."""
    feed, _ = make_feed()
    received: list[ChangeEvent] = []
    feed.subscribe("check_ins", "org-1", received.append)

    feed.handle_message(change_message("realtime:check_ins:org-1", "DELETE", {}, {"id": "c1"}))

    assert received[0].event_type is ChangeEventType.DELETE
    assert received[0].old == {"id": "c1"}
    assert received[0].new == {}


def test_malformed_change_and_failing_handler_do_not_break_feed() -> None:
    """Given a malformed change and a failing handler, when dispatched, then later handlers still run."""
    feed, _ = make_feed()
    received: list[ChangeEvent] = []

    def failing(event: ChangeEvent) -> None:
        raise RuntimeError("handler bug")

    feed.subscribe("check_ins", "org-1", failing)
    feed.subscribe("check_ins", "org-1", received.append)

    feed.handle_message(
        {"topic": "realtime:check_ins:org-1", "event": "postgres_changes", "payload": {"data": {}}}
    )
    feed.handle_message(change_message("realtime:check_ins:org-1", "UPDATE", {"id": "c1"}))

    assert len(received) == 1


def test_join_reply_connects_and_channel_error_disconnects() -> None:
    """Given connection listeners, when a join is acknowledged and later errors, then both changes are reported."""
    feed, _ = make_feed()
    changes: list[bool] = []
    feed.on_connection_change(changes.append)
    feed._reconnect_attempts = 3

    feed.handle_message(
        {"topic": "realtime:check_ins:org-1", "event": "phx_reply", "payload": {"status": "ok"}}
    )
    assert feed.is_connected
    assert feed.reconnect_attempts == 0

    feed.handle_message({"topic": "realtime:check_ins:org-1", "event": "phx_error", "payload": {}})
    assert not feed.is_connected
    assert changes == [True, False]


def test_heartbeat_reply_records_last_heartbeat() -> None:
    """Given a heartbeat reply, when handled, then the heartbeat time is recorded without connecting."""
    feed, _ = make_feed()

    feed.handle_message({"topic": "phoenix", "event": "phx_reply", "payload": {"status": "ok"}})

    assert feed.last_heartbeat == T0
    assert not feed.is_connected


@pytest.mark.asyncio
async def test_feed_joins_channels_and_delivers_changes() -> None:
    """Given a live socket, when the feed starts, then it joins each channel and delivers changes."""
    row = check_in_row("c1", "user-1", T0)
    ws = FakeWebSocket(
        [
            {"topic": "realtime:check_ins:org-1", "event": "phx_reply", "payload": {"status": "ok"}},
            change_message("realtime:check_ins:org-1", "INSERT", row),
        ]
    )
    feed, session = make_feed(ws, heartbeat_seconds=0.01)
    received: list[ChangeEvent] = []
    feed.subscribe("check_ins", "org-1", received.append)

    await feed.start()
    for _ in range(50):
        if received and len(ws.sent) > 1:
            break
        await asyncio.sleep(0.01)

    assert feed.is_connected
    assert [e.new for e in received] == [row]
    join = ws.sent[0]
    assert join["event"] == "phx_join"
    assert join["topic"] == "realtime:check_ins:org-1"
    assert join["payload"]["config"]["postgres_changes"][0]["filter"] == "organization_id=eq.org-1"
    assert any(m["event"] == "heartbeat" and m["topic"] == "phoenix" for m in ws.sent[1:])
    assert "apikey=anon-key" in session.ws_connect.call_args[0][0]

    await feed.stop()
    ws.close()
    assert not feed.is_connected


@pytest.mark.asyncio
async def test_failed_connection_counts_reconnect_attempts() -> None:
    """Given an unreachable endpoint, when the feed starts, then reconnect attempts are counted."""
    feed, session = make_feed(reconnect_base_delay_seconds=0.01, reconnect_max_delay_seconds=0.02)
    session.ws_connect.side_effect = aiohttp.ClientConnectionError("refused")

    await feed.start()
    await asyncio.sleep(0.1)

    assert feed.reconnect_attempts >= 2
    assert not feed.is_connected
    await feed.stop()
