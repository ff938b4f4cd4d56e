"""Tests for the SQLite queue store."""

import sqlite3
from datetime import timedelta
from pathlib import Path

import pytest

from safeping.adapters.storage.sqlite_action_store import SqliteActionStore
from safeping.domain.errors import StorageError
from safeping.domain.models.auth_request import AuthRequestKind, QueuedAuthRequest
from safeping.domain.models.location import Location
from safeping.domain.models.queued_action import (
    EmergencyPayload,
    QueuedAction,
    new_action_id,
)
from tests.fakes import T0, auth_context, check_in_payload


def action(seconds: float = 0, payload=None) -> QueuedAction:
    created_at = T0 + timedelta(seconds=seconds)
    return QueuedAction(
        id=new_action_id(created_at),
        payload=payload or check_in_payload(),
        created_at=created_at,
        auth_context=auth_context(),
    )


@pytest.fixture
def store(tmp_path: Path) -> SqliteActionStore:
    return SqliteActionStore(tmp_path / "safeping.db")


@pytest.mark.asyncio
async def test_put_and_get_round_trip_payload_type(store: SqliteActionStore) -> None:
    """Given an emergency action, when stored and read back, then the payload keeps its type."""
    emergency = action(
        payload=EmergencyPayload(
            user_id="user-1",
            organization_id="org-1",
            location=Location(latitude=48.1, longitude=11.5, accuracy=12.0),
        )
    )

    await store.put(emergency)
    loaded = await store.get(emergency.id)

    assert loaded == emergency
    assert isinstance(loaded.payload, EmergencyPayload)
    assert await store.get("missing") is None


@pytest.mark.asyncio
async def test_list_all_is_ordered_by_creation_time(store: SqliteActionStore) -> None:
    """Given actions stored out of order, when listed, then they come back oldest first."""
    late, early = action(seconds=10), action(seconds=1)
    await store.put(late)
    await store.put(early)

    assert [a.id for a in await store.list_all()] == [early.id, late.id]


@pytest.mark.asyncio
async def test_duplicate_id_is_a_storage_error(store: SqliteActionStore) -> None:
    """Given a stored action, when the same id is stored again, then a storage error is raised."""
    queued = action()
    await store.put(queued)

    with pytest.raises(StorageError):
        await store.put(queued)


@pytest.mark.asyncio
async def test_increment_retry_updates_authoritative_count(store: SqliteActionStore) -> None:
    """Given a stored action, when its retry count is incremented, then reads reflect the new count."""
    queued = action()
    await store.put(queued)

    assert await store.increment_retry(queued.id) == 1
    assert await store.increment_retry(queued.id) == 2
    assert (await store.get(queued.id)).retry_count == 2
    assert await store.increment_retry("missing") is None


@pytest.mark.asyncio
async def test_delete_reports_whether_a_row_was_removed(store: SqliteActionStore) -> None:
    """Given a stored action, when deleted twice, then only the first delete removes a row."""
    queued = action()
    await store.put(queued)

    assert await store.delete(queued.id)
    assert not await store.delete(queued.id)
    assert await store.list_all() == []


@pytest.mark.asyncio
async def test_clear_returns_number_of_dropped_actions(store: SqliteActionStore) -> None:
    """Given stored actions, when cleared, then the count of dropped actions is returned."""
    await store.put(action(seconds=1))
    await store.put(action(seconds=2))

    assert await store.clear() == 2
    assert await store.list_all() == []


@pytest.mark.asyncio
async def test_status_values_are_upserted(store: SqliteActionStore) -> None:
    """Given a status key, when set twice, then the latest value wins."""
    await store.set_status("last_sync", "a")
    await store.set_status("last_sync", "b")

    assert await store.get_status() == {"last_sync": "b"}


@pytest.mark.asyncio
async def test_auth_requests_are_stored_in_order(store: SqliteActionStore) -> None:
    """Given deferred auth requests, when listed, then they are oldest first and deletable."""
    second = QueuedAuthRequest(
        id="r2",
        kind=AuthRequestKind.VERIFY_OTP,
        data={"phone_number": "+4915100000", "code": "123456"},
        created_at=T0 + timedelta(seconds=5),
    )
    first = QueuedAuthRequest(
        id="r1",
        kind=AuthRequestKind.SEND_OTP,
        data={"phone_number": "+4915100000"},
        created_at=T0,
    )
    await store.put_auth_request(second)
    await store.put_auth_request(first)

    assert await store.list_auth_requests() == [first, second]

    await store.delete_auth_request("r1")
    assert await store.list_auth_requests() == [second]


@pytest.mark.asyncio
async def test_corrupt_body_is_a_storage_error(store: SqliteActionStore) -> None:
    """Given a row whose body is not a valid action, when listed, then a storage error is raised."""
    await store.initialize()
    with sqlite3.connect(store.db_path) as conn:
        conn.execute(
            "INSERT INTO offline_actions (id, kind, created_at, retry_count, body) "
            "VALUES ('x', 'check_in', 0, 0, '{\"id\": \"x\"}')"
        )

    with pytest.raises(StorageError, match="Corrupt queued action"):
        await store.list_all()


@pytest.mark.asyncio
async def test_unopenable_database_is_a_storage_error(tmp_path: Path) -> None:
    """Given a database path inside a missing directory, when used, then a storage error is raised."""
    store = SqliteActionStore(tmp_path / "missing" / "safeping.db")

    with pytest.raises(StorageError):
        await store.list_all()
