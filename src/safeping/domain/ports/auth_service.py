"""Authentication remote procedure port."""

from typing import Protocol

from safeping.domain.models.auth_request import AuthResponse


class AuthService(Protocol):
    """Port for the backend's opaque OTP and PIN procedures."""

    async def send_otp(self, phone_number: str) -> AuthResponse:
        """Ask the backend to text a one-time code."""
        ...

    async def verify_otp(self, phone_number: str, code: str) -> AuthResponse:
        """Verify a one-time code."""
        ...

    async def validate_pin(self, pin: str) -> AuthResponse:
        """Validate a worker PIN."""
        ...
