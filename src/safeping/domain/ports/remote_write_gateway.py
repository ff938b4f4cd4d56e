"""Remote write port: one authenticated call per action kind."""

from datetime import datetime
from typing import Any, Protocol

from safeping.domain.models.queued_action import (
    AuthContext,
    CheckInPayload,
    EmergencyPayload,
    LocationUpdatePayload,
)


class RemoteWriteGateway(Protocol):
    """Port for the backend's authenticated write endpoints.

    Each method returns the identifier of the affected remote record when the
    backend reports one, and raises ``RemoteWriteError`` otherwise.
    """

    async def upsert_check_in(
        self,
        record_id: str,
        payload: CheckInPayload,
        created_at: datetime,
        auth: AuthContext,
    ) -> str | None:
        """Insert a check-in keyed by the client-supplied id, ignoring duplicates."""
        ...

    async def invoke_emergency(
        self,
        payload: EmergencyPayload,
        idempotency_key: str,
        triggered_at: datetime,
        auth: AuthContext,
    ) -> str | None:
        """Run the emergency escalation (incident plus contact notification)."""
        ...

    async def update_incident(
        self, incident_id: str, updates: dict[str, Any], auth: AuthContext
    ) -> str | None:
        """Patch an existing incident."""
        ...

    async def update_profile(
        self, user_id: str, updates: dict[str, Any], auth: AuthContext
    ) -> str | None:
        """Patch a user profile."""
        ...

    async def insert_location(
        self, sample_id: str, payload: LocationUpdatePayload, auth: AuthContext
    ) -> str | None:
        """Insert a location sample keyed by the client-supplied id."""
        ...
