"""Offline authentication request models."""

from datetime import datetime
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict


class AuthRequestKind(StrEnum):
    """Authentication calls that can be deferred while offline."""

    SEND_OTP = "send_otp"
    VERIFY_OTP = "verify_otp"
    VALIDATE_PIN = "validate_pin"


class QueuedAuthRequest(BaseModel):
    """An authentication call recorded while offline."""

    model_config = ConfigDict(frozen=True)

    id: str
    kind: AuthRequestKind
    data: dict[str, str]
    created_at: datetime


class AuthResponse(BaseModel):
    """Result of an authentication call, online or deferred."""

    model_config = ConfigDict(frozen=True)

    success: bool
    data: dict[str, Any] | None = None
    error: str | None = None
    offline: bool = False
