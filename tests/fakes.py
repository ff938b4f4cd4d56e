"""In-memory fakes for the domain ports."""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from datetime import UTC, datetime, timedelta
from typing import Any

from safeping.domain.errors import RemoteWriteError, StorageError
from safeping.domain.models.auth_request import AuthResponse, QueuedAuthRequest
from safeping.domain.models.change_event import ChangeEvent
from safeping.domain.models.check_in_record import CheckInRecord
from safeping.domain.models.incident import Incident
from safeping.domain.models.queued_action import (
    AuthContext,
    CheckInPayload,
    EmergencyPayload,
    LocationUpdatePayload,
    QueuedAction,
)

T0 = datetime(2026, 3, 2, 9, 0, 0, tzinfo=UTC)


class FakeClock:
    """Controllable clock; each call returns the current value."""

    def __init__(self, start: datetime = T0) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now = self.now + timedelta(**kwargs)


class InMemoryActionStore:
    """Dict-backed ActionStore and AuthQueueStore."""

    def __init__(self) -> None:
        self.actions: dict[str, QueuedAction] = {}
        self.status: dict[str, str] = {}
        self.auth_requests: dict[str, QueuedAuthRequest] = {}
        self.fail_writes = False

    async def put(self, action: QueuedAction) -> None:
        if self.fail_writes:
            raise StorageError("disk full")
        self.actions[action.id] = action

    async def get(self, action_id: str) -> QueuedAction | None:
        return self.actions.get(action_id)

    async def delete(self, action_id: str) -> bool:
        return self.actions.pop(action_id, None) is not None

    async def list_all(self) -> list[QueuedAction]:
        return sorted(self.actions.values(), key=lambda a: a.created_at)

    async def increment_retry(self, action_id: str) -> int | None:
        action = self.actions.get(action_id)
        if action is None:
            return None
        updated = action.with_retry_count(action.retry_count + 1)
        self.actions[action_id] = updated
        return updated.retry_count

    async def clear(self) -> int:
        count = len(self.actions)
        self.actions.clear()
        return count

    async def set_status(self, key: str, value: str) -> None:
        self.status[key] = value

    async def get_status(self) -> dict[str, str]:
        return dict(self.status)

    async def put_auth_request(self, request: QueuedAuthRequest) -> None:
        self.auth_requests[request.id] = request

    async def delete_auth_request(self, request_id: str) -> None:
        self.auth_requests.pop(request_id, None)

    async def list_auth_requests(self) -> list[QueuedAuthRequest]:
        return sorted(self.auth_requests.values(), key=lambda r: r.created_at)


class FakeConnectivityProvider:
    """Connectivity provider driven by the test."""

    def __init__(self, online: bool = True, visible: bool = True) -> None:
        self.online = online
        self.visible = visible
        self.callbacks: list[Callable[[bool], None]] = []
        self.visibility_callbacks: list[Callable[[bool], None]] = []

    def is_online(self) -> bool:
        return self.online

    def on_change(self, callback: Callable[[bool], None]) -> None:
        self.callbacks.append(callback)

    def is_visible(self) -> bool:
        return self.visible

    def on_visibility_change(self, callback: Callable[[bool], None]) -> None:
        self.visibility_callbacks.append(callback)

    def set_online(self, online: bool) -> None:
        self.online = online
        for callback in self.callbacks:
            callback(online)

    def set_visible(self, visible: bool) -> None:
        self.visible = visible
        for callback in self.visibility_callbacks:
            callback(visible)


class RecordingGateway:
    """RemoteWriteGateway that records calls and fails on demand.

    ``failures`` maps an action/record id to a list of exceptions raised on
    successive attempts; once the list is empty the call succeeds.
    """

    def __init__(self) -> None:
        self.calls: list[tuple[str, str]] = []
        self.failures: dict[str, list[Exception]] = {}
        self.delay: float = 0.0

    def fail(self, key: str, *errors: Exception) -> None:
        self.failures.setdefault(key, []).extend(errors)

    async def _record(self, method: str, key: str) -> str:
        self.calls.append((method, key))
        if self.delay:
            await asyncio.sleep(self.delay)
        pending = self.failures.get(key)
        if pending:
            raise pending.pop(0)
        return f"remote-{key}"

    @property
    def attempted_ids(self) -> list[str]:
        return [key for _, key in self.calls]

    async def upsert_check_in(
        self, record_id: str, payload: CheckInPayload, created_at: datetime, auth: AuthContext
    ) -> str | None:
        return await self._record("upsert_check_in", record_id)

    async def invoke_emergency(
        self,
        payload: EmergencyPayload,
        idempotency_key: str,
        triggered_at: datetime,
        auth: AuthContext,
    ) -> str | None:
        return await self._record("invoke_emergency", idempotency_key)

    async def update_incident(
        self, incident_id: str, updates: dict[str, Any], auth: AuthContext
    ) -> str | None:
        return await self._record("update_incident", incident_id)

    async def update_profile(
        self, user_id: str, updates: dict[str, Any], auth: AuthContext
    ) -> str | None:
        return await self._record("update_profile", user_id)

    async def insert_location(
        self, sample_id: str, payload: LocationUpdatePayload, auth: AuthContext
    ) -> str | None:
        return await self._record("insert_location", sample_id)


def network_error() -> RemoteWriteError:
    return RemoteWriteError("connection refused")


class FakeSnapshotRepository:
    """SnapshotRepository returning canned data."""

    def __init__(
        self,
        check_ins: list[CheckInRecord] | None = None,
        incidents: list[Incident] | None = None,
    ) -> None:
        self.check_ins = check_ins or []
        self.incidents = incidents or []
        self.error: Exception | None = None
        self.loads = 0

    async def load_latest_check_ins(self, organization_id: str) -> list[CheckInRecord]:
        self.loads += 1
        if self.error is not None:
            raise self.error
        return [r for r in self.check_ins if r.organization_id == organization_id]

    async def load_active_incidents(self, organization_id: str) -> list[Incident]:
        if self.error is not None:
            raise self.error
        return [i for i in self.incidents if i.organization_id == organization_id]


class FakeChangeFeed:
    """ChangeFeed that lets the test push events and connection changes."""

    def __init__(self) -> None:
        self.handlers: dict[str, list[Callable[[ChangeEvent], None]]] = {}
        self.connection_handlers: list[Callable[[bool], None]] = []
        self.connected = False
        self.attempts = 0
        self.started = False

    @property
    def is_connected(self) -> bool:
        return self.connected

    @property
    def reconnect_attempts(self) -> int:
        return self.attempts

    def subscribe(
        self, table: str, organization_id: str, handler: Callable[[ChangeEvent], None]
    ) -> None:
        self.handlers.setdefault(table, []).append(handler)

    def on_connection_change(self, handler: Callable[[bool], None]) -> None:
        self.connection_handlers.append(handler)

    async def start(self) -> None:
        self.started = True

    async def stop(self) -> None:
        self.started = False

    def emit(self, event: ChangeEvent) -> None:
        for handler in self.handlers.get(event.table, []):
            handler(event)

    def set_connected(self, connected: bool) -> None:
        self.connected = connected
        for handler in self.connection_handlers:
            handler(connected)


class FakeAuthService:
    """AuthService answering from a fixed response or raising."""

    def __init__(self, response: AuthResponse | None = None) -> None:
        self.response = response or AuthResponse(success=True)
        self.error: Exception | None = None
        self.calls: list[tuple[str, tuple[str, ...]]] = []

    async def _answer(self, name: str, *args: str) -> AuthResponse:
        self.calls.append((name, args))
        if self.error is not None:
            raise self.error
        return self.response

    async def send_otp(self, phone_number: str) -> AuthResponse:
        return await self._answer("send_otp", phone_number)

    async def verify_otp(self, phone_number: str, code: str) -> AuthResponse:
        return await self._answer("verify_otp", phone_number, code)

    async def validate_pin(self, pin: str) -> AuthResponse:
        return await self._answer("validate_pin", pin)


class RecordingNotifier:
    def __init__(self, error: Exception | None = None) -> None:
        self.notifications: list[tuple[str, str]] = []
        self.error = error

    async def notify(self, title: str, body: str) -> None:
        if self.error is not None:
            raise self.error
        self.notifications.append((title, body))


def auth_context(user_id: str = "user-1", organization_id: str = "org-1") -> AuthContext:
    return AuthContext(access_token="token-abc", organization_id=organization_id, user_id=user_id)


def check_in_payload(user_id: str = "user-1", organization_id: str = "org-1") -> CheckInPayload:
    return CheckInPayload(user_id=user_id, organization_id=organization_id)


def check_in_row(
    record_id: str,
    user_id: str,
    created_at: datetime,
    status: str = "safe",
    organization_id: str = "org-1",
) -> dict[str, Any]:
    return {
        "id": record_id,
        "organization_id": organization_id,
        "user_id": user_id,
        "status": status,
        "created_at": created_at.isoformat(),
        "message": None,
        "synced_at": created_at.isoformat(),
        "is_offline": False,
    }
