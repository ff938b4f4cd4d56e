"""SQLite-backed durable storage for the offline queues."""

from __future__ import annotations

import asyncio
import logging
import sqlite3
from collections.abc import Callable, Iterator
from contextlib import closing, contextmanager
from pathlib import Path
from typing import TypeVar

from pydantic import ValidationError

from safeping.domain.errors import StorageError
from safeping.domain.models.auth_request import QueuedAuthRequest
from safeping.domain.models.queued_action import QueuedAction

logger = logging.getLogger(__name__)

T = TypeVar("T")

_SCHEMA = """
CREATE TABLE IF NOT EXISTS offline_actions (
    id TEXT PRIMARY KEY,
    kind TEXT NOT NULL,
    created_at REAL NOT NULL,
    retry_count INTEGER NOT NULL DEFAULT 0,
    body TEXT NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_offline_actions_created ON offline_actions (created_at);
CREATE TABLE IF NOT EXISTS sync_status (
    key TEXT PRIMARY KEY,
    value TEXT NOT NULL
);
CREATE TABLE IF NOT EXISTS offline_auth_requests (
    id TEXT PRIMARY KEY,
    created_at REAL NOT NULL,
    body TEXT NOT NULL
);
"""


class SqliteActionStore:
    """Stores queued actions, sync status and deferred auth requests in one SQLite file.

    Every operation opens its own connection and runs in a worker thread, so
    the event loop never blocks on disk I/O. Each operation is a single
    transaction. The ``retry_count`` column is authoritative; the JSON body
    holds the rest of the action.
    """

    def __init__(self, db_path: str | Path) -> None:
        self.db_path = Path(db_path)
        self._initialized = False

    async def initialize(self) -> None:
        """Create the schema if needed."""
        await self._run(self._create_schema)

    # Action queue

    async def put(self, action: QueuedAction) -> None:
        def op(conn: sqlite3.Connection) -> None:
            conn.execute(
                "INSERT INTO offline_actions (id, kind, created_at, retry_count, body) "
                "VALUES (?, ?, ?, ?, ?)",
                (
                    action.id,
                    action.kind.value,
                    action.created_at.timestamp(),
                    action.retry_count,
                    action.model_dump_json(),
                ),
            )

        await self._run(op)

    async def get(self, action_id: str) -> QueuedAction | None:
        def op(conn: sqlite3.Connection) -> sqlite3.Row | None:
            return conn.execute(
                "SELECT retry_count, body FROM offline_actions WHERE id = ?", (action_id,)
            ).fetchone()

        row = await self._run(op)
        return self._decode_action(row) if row is not None else None

    async def delete(self, action_id: str) -> bool:
        def op(conn: sqlite3.Connection) -> bool:
            cursor = conn.execute("DELETE FROM offline_actions WHERE id = ?", (action_id,))
            return cursor.rowcount > 0

        return await self._run(op)

    async def list_all(self) -> list[QueuedAction]:
        def op(conn: sqlite3.Connection) -> list[sqlite3.Row]:
            return conn.execute(
                "SELECT retry_count, body FROM offline_actions ORDER BY created_at, rowid"
            ).fetchall()

        rows = await self._run(op)
        return [self._decode_action(row) for row in rows]

    async def increment_retry(self, action_id: str) -> int | None:
        def op(conn: sqlite3.Connection) -> int | None:
            row = conn.execute(
                "UPDATE offline_actions SET retry_count = retry_count + 1 "
                "WHERE id = ? RETURNING retry_count",
                (action_id,),
            ).fetchone()
            return int(row["retry_count"]) if row is not None else None

        return await self._run(op)

    async def clear(self) -> int:
        def op(conn: sqlite3.Connection) -> int:
            return conn.execute("DELETE FROM offline_actions").rowcount

        return await self._run(op)

    async def set_status(self, key: str, value: str) -> None:
        def op(conn: sqlite3.Connection) -> None:
            conn.execute(
                "INSERT INTO sync_status (key, value) VALUES (?, ?) "
                "ON CONFLICT(key) DO UPDATE SET value = excluded.value",
                (key, value),
            )

        await self._run(op)

    async def get_status(self) -> dict[str, str]:
        def op(conn: sqlite3.Connection) -> list[sqlite3.Row]:
            return conn.execute("SELECT key, value FROM sync_status").fetchall()

        rows = await self._run(op)
        return {row["key"]: row["value"] for row in rows}

    # Deferred auth requests

    async def put_auth_request(self, request: QueuedAuthRequest) -> None:
        def op(conn: sqlite3.Connection) -> None:
            conn.execute(
                "INSERT INTO offline_auth_requests (id, created_at, body) VALUES (?, ?, ?)",
                (request.id, request.created_at.timestamp(), request.model_dump_json()),
            )

        await self._run(op)

    async def delete_auth_request(self, request_id: str) -> None:
        def op(conn: sqlite3.Connection) -> None:
            conn.execute("DELETE FROM offline_auth_requests WHERE id = ?", (request_id,))

        await self._run(op)

    async def list_auth_requests(self) -> list[QueuedAuthRequest]:
        def op(conn: sqlite3.Connection) -> list[sqlite3.Row]:
            return conn.execute(
                "SELECT body FROM offline_auth_requests ORDER BY created_at, rowid"
            ).fetchall()

        rows = await self._run(op)
        try:
            return [QueuedAuthRequest.model_validate_json(row["body"]) for row in rows]
        except ValidationError as e:
            raise StorageError(f"Corrupt deferred auth request: {e}") from e

    # Internals

    @staticmethod
    def _decode_action(row: sqlite3.Row) -> QueuedAction:
        try:
            action = QueuedAction.model_validate_json(row["body"])
        except ValidationError as e:
            raise StorageError(f"Corrupt queued action: {e}") from e
        return action.with_retry_count(int(row["retry_count"]))

    def _create_schema(self, conn: sqlite3.Connection) -> None:
        conn.executescript(_SCHEMA)

    @contextmanager
    def _connect(self) -> Iterator[sqlite3.Connection]:
        with closing(sqlite3.connect(str(self.db_path), timeout=30.0)) as conn:
            conn.row_factory = sqlite3.Row
            conn.execute("PRAGMA journal_mode=WAL")
            conn.execute("PRAGMA synchronous=FULL")
            with conn:
                yield conn

    def _execute(self, op: Callable[[sqlite3.Connection], T]) -> T:
        try:
            with self._connect() as conn:
                if not self._initialized:
                    self._create_schema(conn)
                    self._initialized = True
                return op(conn)
        except sqlite3.Error as e:
            logger.error(f"SQLite operation failed on {self.db_path}: {e}")
            raise StorageError(str(e)) from e

    async def _run(self, op: Callable[[sqlite3.Connection], T]) -> T:
        return await asyncio.to_thread(self._execute, op)
