"""Queued action domain model.

A queued action is one not-yet-confirmed remote write. Its payload is a tagged
union over the action kinds, discriminated by the ``kind`` field, so that the
sync engine can dispatch on the payload type and the store can round-trip the
action through JSON without losing the type.
"""

from __future__ import annotations

import secrets
import uuid
from datetime import datetime
from enum import StrEnum
from typing import Annotated, Any, Literal

from pydantic import BaseModel, ConfigDict, Field

from safeping.domain.models.check_in_record import CheckInStatus
from safeping.domain.models.location import Location
from safeping.domain.models.timestamps import utc_now


class ActionKind(StrEnum):
    """Kinds of safety-signal actions the queue carries."""

    CHECK_IN = "check_in"
    EMERGENCY = "emergency"
    INCIDENT_UPDATE = "incident_update"
    PROFILE_UPDATE = "profile_update"
    LOCATION_UPDATE = "location_update"


class EmergencyType(StrEnum):
    """Reason an emergency escalation was raised."""

    PANIC_BUTTON = "panic_button"
    NO_RESPONSE = "no_response"
    OVERDUE_CRITICAL = "overdue_critical"
    MANUAL_EMERGENCY = "manual_emergency"


class AuthContext(BaseModel):
    """Credential snapshot captured when an action is enqueued.

    The session may rotate before the action syncs, so the token that was valid
    when the worker acted is kept with the action.
    """

    model_config = ConfigDict(frozen=True)

    access_token: str
    organization_id: str
    user_id: str | None = None


class CheckInPayload(BaseModel):
    """Periodic "I'm safe" check-in."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["check_in"] = "check_in"
    user_id: str
    organization_id: str
    status: CheckInStatus = CheckInStatus.SAFE
    location: Location | None = None
    message: str | None = None
    is_manual: bool = True


class EmergencyPayload(BaseModel):
    """SOS escalation."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["emergency"] = "emergency"
    user_id: str
    organization_id: str
    emergency_type: EmergencyType = EmergencyType.PANIC_BUTTON
    location: Location | None = None
    message: str | None = None
    triggered_by: str | None = None


class IncidentUpdatePayload(BaseModel):
    """Patch of an existing incident."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["incident_update"] = "incident_update"
    incident_id: str
    updates: dict[str, Any]


class ProfileUpdatePayload(BaseModel):
    """Patch of the worker's own profile."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["profile_update"] = "profile_update"
    user_id: str
    updates: dict[str, Any]


class LocationUpdatePayload(BaseModel):
    """Location sample tied to a check-in."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["location_update"] = "location_update"
    user_id: str
    location: Location
    check_in_id: str | None = None
    recorded_at: datetime = Field(default_factory=utc_now)


ActionPayload = Annotated[
    CheckInPayload
    | EmergencyPayload
    | IncidentUpdatePayload
    | ProfileUpdatePayload
    | LocationUpdatePayload,
    Field(discriminator="kind"),
]


class QueuedAction(BaseModel):
    """A pending safety-signal operation awaiting durable delivery."""

    model_config = ConfigDict(frozen=True)

    id: str
    payload: ActionPayload
    created_at: datetime
    auth_context: AuthContext
    retry_count: int = 0

    @property
    def kind(self) -> ActionKind:
        """Kind of the action, taken from its payload tag."""
        return ActionKind(self.payload.kind)

    def with_retry_count(self, retry_count: int) -> QueuedAction:
        """Return a copy carrying a different retry count."""
        return self.model_copy(update={"retry_count": retry_count})


def new_action_id(now: datetime | None = None) -> str:
    """Generate a unique, time-sortable action id.

    The id uses the UUID version 7 layout: a 48-bit millisecond timestamp
    followed by random bits, so ids sort by creation time and can double as a
    client-supplied primary key on the backend.
    """
    moment = now or utc_now()
    millis = int(moment.timestamp() * 1000) & ((1 << 48) - 1)
    rand_a = secrets.randbits(12)
    rand_b = secrets.randbits(62)
    value = (millis << 80) | (0x7 << 76) | (rand_a << 64) | (0b10 << 62) | rand_b
    return str(uuid.UUID(int=value))
