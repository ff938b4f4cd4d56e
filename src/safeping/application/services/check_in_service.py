"""Entry points the worker-facing app calls to record safety signals."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from safeping.domain.models.check_in_record import CheckInRecord, CheckInStatus
from safeping.domain.models.queued_action import (
    ActionPayload,
    AuthContext,
    CheckInPayload,
    EmergencyPayload,
    EmergencyType,
    IncidentUpdatePayload,
    LocationUpdatePayload,
    ProfileUpdatePayload,
    QueuedAction,
)

if TYPE_CHECKING:
    from safeping.application.services.action_queue import ActionQueue
    from safeping.domain.contracts.drain_trigger import DrainTriggerProtocol
    from safeping.domain.contracts.optimistic_projection import OptimisticProjectionProtocol
    from safeping.domain.models.location import Location

logger = logging.getLogger(__name__)


class CheckInService:
    """Accepts safety signals locally first, then hands them to the sync pipeline.

    None of these calls wait for the network. Each one returns once the action
    is durable in the local queue, or raises ``EnqueueError`` if it is not.
    """

    def __init__(
        self,
        queue: ActionQueue,
        drain_trigger: DrainTriggerProtocol | None = None,
        projection: OptimisticProjectionProtocol | None = None,
    ) -> None:
        self.queue = queue
        self.drain_trigger = drain_trigger
        self.projection = projection

    async def submit_check_in(
        self,
        auth: AuthContext,
        user_id: str,
        status: CheckInStatus = CheckInStatus.SAFE,
        location: Location | None = None,
        message: str | None = None,
        is_manual: bool = True,
    ) -> CheckInRecord:
        """Record a check-in and return its optimistic record.

        The optimistic record carries the action id, which the backend also uses
        as the id of the confirmed row.
        """
        payload = CheckInPayload(
            user_id=user_id,
            organization_id=auth.organization_id,
            status=status,
            location=location,
            message=message,
            is_manual=is_manual,
        )
        action = await self.queue.enqueue_action(payload, auth)
        record = self._optimistic_record(action, payload, status)
        self._notify_enqueued()
        logger.info(f"Check-in {action.id} accepted for user {user_id} ({status})")
        return record

    async def trigger_sos(
        self,
        auth: AuthContext,
        user_id: str,
        emergency_type: EmergencyType = EmergencyType.PANIC_BUTTON,
        location: Location | None = None,
        message: str | None = None,
    ) -> CheckInRecord:
        """Raise an emergency and return its optimistic record.

        The record is withdrawn from the projection once the emergency is
        delivered; from then on the incident stands for it.
        """
        payload = EmergencyPayload(
            user_id=user_id,
            organization_id=auth.organization_id,
            emergency_type=emergency_type,
            location=location,
            message=message,
            triggered_by=user_id,
        )
        action = await self.queue.enqueue_action(payload, auth)
        record = self._optimistic_record(action, payload, CheckInStatus.EMERGENCY)
        self._notify_enqueued()
        logger.warning(f"Emergency {action.id} raised by user {user_id} ({emergency_type})")
        return record

    async def update_location(
        self,
        auth: AuthContext,
        user_id: str,
        location: Location,
        check_in_id: str | None = None,
    ) -> str:
        """Queue a location sample, optionally tied to a check-in."""
        payload = LocationUpdatePayload(user_id=user_id, location=location, check_in_id=check_in_id)
        return await self._enqueue(payload, auth)

    async def update_incident(
        self, auth: AuthContext, incident_id: str, updates: dict[str, Any]
    ) -> str:
        """Queue a patch of an incident."""
        return await self._enqueue(
            IncidentUpdatePayload(incident_id=incident_id, updates=updates), auth
        )

    async def update_profile(self, auth: AuthContext, user_id: str, updates: dict[str, Any]) -> str:
        """Queue a patch of the worker's profile."""
        return await self._enqueue(ProfileUpdatePayload(user_id=user_id, updates=updates), auth)

    async def _enqueue(self, payload: ActionPayload, auth: AuthContext) -> str:
        action_id = await self.queue.enqueue(payload, auth)
        self._notify_enqueued()
        return action_id

    def _notify_enqueued(self) -> None:
        if self.drain_trigger is not None:
            self.drain_trigger.notify_enqueued()

    def _optimistic_record(
        self,
        action: QueuedAction,
        payload: CheckInPayload | EmergencyPayload,
        status: CheckInStatus,
    ) -> CheckInRecord:
        record = CheckInRecord(
            id=action.id,
            organization_id=payload.organization_id,
            user_id=payload.user_id,
            status=status,
            created_at=action.created_at,
            location=payload.location,
            message=payload.message,
            synced_at=None,
            is_offline=True,
        )
        if self.projection is not None:
            self.projection.add_optimistic(record)
        return record
