"""Storage port for deferred authentication requests."""

from typing import Protocol

from safeping.domain.models.auth_request import QueuedAuthRequest


class AuthQueueStore(Protocol):
    """Port for persisting authentication calls made while offline."""

    async def put_auth_request(self, request: QueuedAuthRequest) -> None:
        """Store a deferred request."""
        ...

    async def delete_auth_request(self, request_id: str) -> None:
        """Remove a deferred request; missing ids are ignored."""
        ...

    async def list_auth_requests(self) -> list[QueuedAuthRequest]:
        """Return deferred requests oldest first."""
        ...
