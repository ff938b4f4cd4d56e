"""Offline-aware wrapper around the authentication procedures."""

from __future__ import annotations

import logging
import uuid
from collections.abc import Awaitable, Callable
from datetime import datetime
from typing import TYPE_CHECKING

from pydantic import BaseModel, ConfigDict

from safeping.domain.errors import SafePingError
from safeping.domain.models.auth_request import AuthRequestKind, AuthResponse, QueuedAuthRequest
from safeping.domain.models.timestamps import utc_now

if TYPE_CHECKING:
    from safeping.domain.ports.auth_queue_store import AuthQueueStore
    from safeping.domain.ports.auth_service import AuthService
    from safeping.domain.ports.connectivity_provider import ConnectivityProvider

logger = logging.getLogger(__name__)

OFFLINE_SEND_OTP_MESSAGE = "You are offline. OTP request will be sent when connection is restored."
OFFLINE_VERIFY_OTP_MESSAGE = (
    "You are offline. OTP verification will be processed when connection is restored."
)
OFFLINE_PIN_MESSAGE = "You are offline. Please check your connection and try again."


class AuthQueueStatus(BaseModel):
    """State of the deferred authentication queue."""

    model_config = ConfigDict(frozen=True)

    pending_requests: int
    is_online: bool
    sync_in_progress: bool


class OfflineAuthManager:
    """Passes auth calls through when online and defers OTP calls when offline.

    Deferred calls are replayed in order on reconnect, without backoff. PIN
    validation cannot be deferred and is refused while offline.
    """

    def __init__(
        self,
        auth_service: AuthService,
        store: AuthQueueStore,
        connectivity: ConnectivityProvider,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.auth_service = auth_service
        self.store = store
        self.connectivity = connectivity
        self.clock = clock
        self._sync_in_progress = False

    async def send_otp(self, phone_number: str) -> AuthResponse:
        """Request a one-time code, or queue the request while offline."""
        if self.connectivity.is_online():
            return await self._call_safely(self.auth_service.send_otp(phone_number))
        await self._defer(AuthRequestKind.SEND_OTP, {"phone_number": phone_number})
        return AuthResponse(success=False, error=OFFLINE_SEND_OTP_MESSAGE, offline=True)

    async def verify_otp(self, phone_number: str, code: str) -> AuthResponse:
        """Verify a one-time code, or queue the verification while offline."""
        if self.connectivity.is_online():
            return await self._call_safely(self.auth_service.verify_otp(phone_number, code))
        await self._defer(
            AuthRequestKind.VERIFY_OTP, {"phone_number": phone_number, "code": code}
        )
        return AuthResponse(success=False, error=OFFLINE_VERIFY_OTP_MESSAGE, offline=True)

    async def validate_pin(self, pin: str) -> AuthResponse:
        """Validate a PIN. Refused while offline."""
        if self.connectivity.is_online():
            return await self._call_safely(self.auth_service.validate_pin(pin))
        return AuthResponse(success=False, error=OFFLINE_PIN_MESSAGE, offline=True)

    async def sync_offline_queue(self) -> int:
        """Replay deferred requests in order.

        A request leaves the queue when it succeeds or fails for a reason other
        than being offline. A request whose call raised stays for the next
        reconnect.

        Returns:
            Number of requests removed from the queue.
        """
        if self._sync_in_progress:
            return 0
        self._sync_in_progress = True
        removed = 0
        try:
            requests = await self.store.list_auth_requests()
            if not requests:
                return 0
            logger.info(f"Syncing {len(requests)} deferred auth requests")
            for request in requests:
                try:
                    result = await self._replay(request)
                except SafePingError as e:
                    logger.error(f"Error syncing deferred {request.kind} request: {e}")
                    continue

                if result.success:
                    logger.info(f"Synced deferred {request.kind} request {request.id}")
                elif result.offline:
                    continue
                else:
                    logger.error(f"Deferred {request.kind} request rejected: {result.error}")
                await self.store.delete_auth_request(request.id)
                removed += 1
        finally:
            self._sync_in_progress = False
        logger.info("Deferred auth queue sync completed")
        return removed

    async def status(self) -> AuthQueueStatus:
        """Pending count and connectivity, for the auth screens."""
        return AuthQueueStatus(
            pending_requests=len(await self.store.list_auth_requests()),
            is_online=self.connectivity.is_online(),
            sync_in_progress=self._sync_in_progress,
        )

    async def clear_offline_queue(self) -> None:
        """Drop every deferred request."""
        for request in await self.store.list_auth_requests():
            await self.store.delete_auth_request(request.id)

    async def _defer(self, kind: AuthRequestKind, data: dict[str, str]) -> None:
        request = QueuedAuthRequest(
            id=str(uuid.uuid4()), kind=kind, data=data, created_at=self.clock()
        )
        await self.store.put_auth_request(request)
        logger.info(f"Offline, deferred {kind} request {request.id}")

    async def _replay(self, request: QueuedAuthRequest) -> AuthResponse:
        data = request.data
        if request.kind is AuthRequestKind.SEND_OTP:
            return await self.auth_service.send_otp(data["phone_number"])
        if request.kind is AuthRequestKind.VERIFY_OTP:
            return await self.auth_service.verify_otp(data["phone_number"], data["code"])
        return await self.auth_service.validate_pin(data["pin"])

    @staticmethod
    async def _call_safely(call: Awaitable[AuthResponse]) -> AuthResponse:
        try:
            return await call
        except SafePingError as e:
            return AuthResponse(success=False, error=str(e))
