"""Domain models for the SafePing pipeline."""

from safeping.domain.models.activity import ActivityEntry
from safeping.domain.models.aggregator_view import AggregatorView
from safeping.domain.models.auth_request import AuthRequestKind, AuthResponse, QueuedAuthRequest
from safeping.domain.models.change_event import ChangeEvent, ChangeEventType
from safeping.domain.models.check_in_record import CheckInRecord, CheckInStatus
from safeping.domain.models.incident import Incident
from safeping.domain.models.location import Location
from safeping.domain.models.queued_action import (
    ActionKind,
    ActionPayload,
    AuthContext,
    CheckInPayload,
    EmergencyPayload,
    EmergencyType,
    IncidentUpdatePayload,
    LocationUpdatePayload,
    ProfileUpdatePayload,
    QueuedAction,
    new_action_id,
)
from safeping.domain.models.sync_attempt_result import (
    FailureReason,
    SyncAttemptResult,
    SyncOutcome,
)
from safeping.domain.models.sync_stats import SyncStats
from safeping.domain.models.worker_status import (
    ComputedStatus,
    OrganizationStats,
    WorkerStatusSnapshot,
)

__all__ = [
    "ActionKind",
    "ActionPayload",
    "ActivityEntry",
    "AggregatorView",
    "AuthContext",
    "AuthRequestKind",
    "AuthResponse",
    "ChangeEvent",
    "ChangeEventType",
    "CheckInPayload",
    "CheckInRecord",
    "CheckInStatus",
    "ComputedStatus",
    "EmergencyPayload",
    "EmergencyType",
    "FailureReason",
    "Incident",
    "IncidentUpdatePayload",
    "Location",
    "LocationUpdatePayload",
    "OrganizationStats",
    "ProfileUpdatePayload",
    "QueuedAction",
    "QueuedAuthRequest",
    "SyncAttemptResult",
    "SyncOutcome",
    "SyncStats",
    "WorkerStatusSnapshot",
    "new_action_id",
]
