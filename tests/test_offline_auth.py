"""Tests for the offline-aware authentication wrapper."""

import pytest

from safeping.application.services.offline_auth import (
    OFFLINE_PIN_MESSAGE,
    OFFLINE_SEND_OTP_MESSAGE,
    OfflineAuthManager,
)
from safeping.domain.errors import RemoteWriteError
from safeping.domain.models.auth_request import AuthRequestKind, AuthResponse
from tests.fakes import FakeAuthService, FakeClock, FakeConnectivityProvider, InMemoryActionStore


def make_manager(
    online: bool = True, response: AuthResponse | None = None
) -> tuple[OfflineAuthManager, FakeAuthService, InMemoryActionStore, FakeConnectivityProvider]:
    service = FakeAuthService(response)
    store = InMemoryActionStore()
    provider = FakeConnectivityProvider(online=online)
    manager = OfflineAuthManager(service, store, provider, clock=FakeClock())
    return manager, service, store, provider


@pytest.mark.asyncio
async def test_online_calls_pass_through() -> None:
    """Given the device is online, when sending an OTP, then the auth service is called directly."""
    manager, service, store, _ = make_manager(online=True)

    result = await manager.send_otp("+4915100000")

    assert result.success
    assert service.calls == [("send_otp", ("+4915100000",))]
    assert store.auth_requests == {}


@pytest.mark.asyncio
async def test_offline_otp_requests_are_deferred() -> None:
    """Given the device is offline, when sending and verifying an OTP, then both are queued."""
    manager, service, store, _ = make_manager(online=False)

    sent = await manager.send_otp("+4915100000")
    verified = await manager.verify_otp("+4915100000", "123456")

    assert sent.offline and not sent.success
    assert sent.error == OFFLINE_SEND_OTP_MESSAGE
    assert verified.offline
    assert service.calls == []
    kinds = [r.kind for r in await store.list_auth_requests()]
    assert kinds == [AuthRequestKind.SEND_OTP, AuthRequestKind.VERIFY_OTP]


@pytest.mark.asyncio
async def test_offline_pin_validation_is_refused_not_queued() -> None:
    """Given the device is offline, when validating a PIN, then it is refused and nothing is queued."""
    manager, _, store, _ = make_manager(online=False)

    result = await manager.validate_pin("1234")

    assert result.error == OFFLINE_PIN_MESSAGE
    assert store.auth_requests == {}


@pytest.mark.asyncio
async def test_online_backend_failure_becomes_error_response() -> None:
    """Given the auth backend fails, when called online, then an error response is returned."""
    manager, service, _, _ = make_manager(online=True)
    service.error = RemoteWriteError("service unavailable", status_code=503)

    result = await manager.verify_otp("+4915100000", "000000")

    assert not result.success
    assert "service unavailable" in result.error


@pytest.mark.asyncio
async def test_reconnect_replays_deferred_requests_in_order() -> None:
    """Given deferred requests, when the queue syncs online, then they are replayed in order and removed."""
    manager, service, store, provider = make_manager(online=False)
    await manager.send_otp("+4915100000")
    await manager.verify_otp("+4915100000", "123456")
    provider.online = True

    removed = await manager.sync_offline_queue()

    assert removed == 2
    assert [name for name, _ in service.calls] == ["send_otp", "verify_otp"]
    assert store.auth_requests == {}


@pytest.mark.asyncio
async def test_replay_keeps_requests_whose_call_raised() -> None:
    """Given the backend is down, when replaying, then the requests stay queued."""
    manager, service, store, provider = make_manager(online=False)
    await manager.send_otp("+4915100000")
    provider.online = True
    service.error = RemoteWriteError("connection refused")

    assert await manager.sync_offline_queue() == 0
    assert len(store.auth_requests) == 1


@pytest.mark.asyncio
async def test_replay_drops_rejected_requests() -> None:
    """Given the backend rejects a deferred request, when replaying, then it is dropped."""
    manager, _, store, provider = make_manager(
        online=False, response=AuthResponse(success=False, error="Invalid code")
    )
    await manager.verify_otp("+4915100000", "999999")
    provider.online = True

    assert await manager.sync_offline_queue() == 1
    assert store.auth_requests == {}


@pytest.mark.asyncio
async def test_status_and_clear() -> None:
    """Given deferred requests, when clearing the queue, then the status reports none pending."""
    manager, _, _, _ = make_manager(online=False)
    await manager.send_otp("+4915100000")

    status = await manager.status()
    assert status.pending_requests == 1
    assert not status.is_online
    assert not status.sync_in_progress

    await manager.clear_offline_queue()
    assert (await manager.status()).pending_requests == 0
