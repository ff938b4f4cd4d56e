"""Supabase adapter for the worker OTP and PIN procedures."""

from __future__ import annotations

import logging
from typing import Any

from safeping.adapters.supabase.constants import (
    FUNCTIONS_PATH,
    REST_PATH,
    SEND_WORKER_OTP_FUNCTION,
    VALIDATE_WORKER_PIN_FUNCTION,
    VERIFY_CODE_RPC,
)
from safeping.adapters.supabase.http_client import SupabaseHttpClient  # noqa: TC001
from safeping.domain.models.auth_request import AuthResponse
from safeping.domain.ports.auth_service import AuthService

logger = logging.getLogger(__name__)


def _to_response(data: Any, default_error: str) -> AuthResponse:
    """Map an edge function or RPC body with a ``success`` flag to an AuthResponse."""
    if isinstance(data, dict) and data.get("success"):
        return AuthResponse(success=True, data=data)
    error = data.get("error") if isinstance(data, dict) else None
    return AuthResponse(
        success=False,
        data=data if isinstance(data, dict) else None,
        error=error or default_error,
    )


class SupabaseAuthFunctions(AuthService):
    """Calls the backend's opaque OTP and PIN procedures.

    Transport and HTTP failures propagate as ``RemoteWriteError``; a call the
    backend answered with ``success: false`` returns an unsuccessful response.
    """

    def __init__(
        self,
        http: SupabaseHttpClient,
        session_token: str | None = None,
        device_id: str | None = None,
    ) -> None:
        self.http = http
        self.session_token = session_token
        self.device_id = device_id

    async def send_otp(self, phone_number: str) -> AuthResponse:
        data = await self.http.request(
            "POST",
            f"{FUNCTIONS_PATH}/{SEND_WORKER_OTP_FUNCTION}",
            payload={"phone_number": phone_number, "type": "worker_auth"},
        )
        return _to_response(data, "Failed to send OTP")

    async def verify_otp(self, phone_number: str, code: str) -> AuthResponse:
        data = await self.http.request(
            "POST",
            f"{REST_PATH}/rpc/{VERIFY_CODE_RPC}",
            payload={"p_phone_number": phone_number, "p_code": code},
        )
        return _to_response(data, "Invalid verification code")

    async def validate_pin(self, pin: str) -> AuthResponse:
        if not self.session_token:
            return AuthResponse(
                success=False,
                error="No active session found. Please sign in again.",
            )
        data = await self.http.request(
            "POST",
            f"{FUNCTIONS_PATH}/{VALIDATE_WORKER_PIN_FUNCTION}",
            payload={"sessionToken": self.session_token, "pin": pin, "deviceId": self.device_id},
        )
        return _to_response(data, "Invalid PIN")
