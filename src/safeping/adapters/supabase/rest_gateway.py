"""Supabase REST adapter for remote writes and dashboard snapshots."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any

from safeping.adapters.supabase.constants import (
    CHECK_INS_TABLE,
    EMERGENCY_ESCALATION_FUNCTION,
    FUNCTIONS_PATH,
    IDEMPOTENCY_KEY_HEADER,
    IGNORE_DUPLICATES_PREFER,
    INCIDENTS_TABLE,
    LATEST_CHECK_INS_RPC,
    LOCATION_UPDATES_TABLE,
    REST_PATH,
    RETURN_REPRESENTATION_PREFER,
    USERS_TABLE,
)
from safeping.adapters.supabase.http_client import SupabaseHttpClient  # noqa: TC001
from safeping.domain.errors import RemoteWriteError
from safeping.domain.models.check_in_record import CheckInRecord
from safeping.domain.models.incident import CLOSED_INCIDENT_STATUSES, Incident
from safeping.domain.models.queued_action import (
    AuthContext,
    CheckInPayload,
    EmergencyPayload,
    LocationUpdatePayload,
)
from safeping.domain.ports.remote_write_gateway import RemoteWriteGateway
from safeping.domain.ports.snapshot_repository import SnapshotRepository

logger = logging.getLogger(__name__)


def _first_id(data: Any) -> str | None:
    """Id of the first returned row, if the backend echoed one."""
    if isinstance(data, list) and data and isinstance(data[0], dict):
        row_id = data[0].get("id")
        return str(row_id) if row_id is not None else None
    if isinstance(data, dict) and data.get("id") is not None:
        return str(data["id"])
    return None


class SupabaseRestGateway(RemoteWriteGateway, SnapshotRepository):
    """Writes queued actions through PostgREST and edge functions, and reads snapshots.

    Check-ins and location samples are inserted with the action id as primary
    key and duplicates ignored, so a retry after a lost response does not
    create a second row.
    """

    def __init__(self, http: SupabaseHttpClient, anon_read_token: str | None = None) -> None:
        """Initialize the gateway.

        Args:
            http: Authenticated HTTP client.
            anon_read_token: Token used for dashboard reads; defaults to the anon key.
        """
        self.http = http
        self.anon_read_token = anon_read_token

    async def upsert_check_in(
        self,
        record_id: str,
        payload: CheckInPayload,
        created_at: datetime,
        auth: AuthContext,
    ) -> str | None:
        row: dict[str, Any] = {
            "id": record_id,
            "user_id": payload.user_id,
            "organization_id": payload.organization_id,
            "status": payload.status.value,
            "message": payload.message,
            "is_manual": payload.is_manual,
            "is_offline": True,
            "created_at": created_at.isoformat(),
        }
        if payload.location is not None:
            row.update(
                location_lat=payload.location.latitude,
                location_lng=payload.location.longitude,
                location_accuracy=payload.location.accuracy,
                location_address=payload.location.address,
            )
        data = await self.http.request(
            "POST",
            f"{REST_PATH}/{CHECK_INS_TABLE}",
            access_token=auth.access_token,
            params={"on_conflict": "id"},
            payload=row,
            headers={"Prefer": IGNORE_DUPLICATES_PREFER},
        )
        # An ignored duplicate returns no rows; the record exists under our id.
        return _first_id(data) or record_id

    async def invoke_emergency(
        self,
        payload: EmergencyPayload,
        idempotency_key: str,
        triggered_at: datetime,
        auth: AuthContext,
    ) -> str | None:
        body: dict[str, Any] = {
            "userId": payload.user_id,
            "organizationId": payload.organization_id,
            "emergencyType": payload.emergency_type.value,
            "message": payload.message,
            "triggeredBy": payload.triggered_by or payload.user_id,
            "triggeredAt": triggered_at.isoformat(),
        }
        if payload.location is not None:
            body["location"] = payload.location.model_dump(exclude_none=True)
        data = await self.http.request(
            "POST",
            f"{FUNCTIONS_PATH}/{EMERGENCY_ESCALATION_FUNCTION}",
            access_token=auth.access_token,
            payload=body,
            headers={IDEMPOTENCY_KEY_HEADER: idempotency_key},
        )
        if isinstance(data, dict) and data.get("success") is False:
            raise RemoteWriteError(
                f"Emergency escalation failed: {data.get('error') or 'unknown error'}",
                status_code=500,
            )
        incident_id = data.get("incident_id") if isinstance(data, dict) else None
        return str(incident_id) if incident_id is not None else None

    async def update_incident(
        self, incident_id: str, updates: dict[str, Any], auth: AuthContext
    ) -> str | None:
        return await self._patch(INCIDENTS_TABLE, incident_id, updates, auth)

    async def update_profile(
        self, user_id: str, updates: dict[str, Any], auth: AuthContext
    ) -> str | None:
        return await self._patch(USERS_TABLE, user_id, updates, auth)

    async def insert_location(
        self, sample_id: str, payload: LocationUpdatePayload, auth: AuthContext
    ) -> str | None:
        row = {
            "id": sample_id,
            "user_id": payload.user_id,
            "check_in_id": payload.check_in_id,
            "location": payload.location.model_dump(exclude_none=True),
            "timestamp": payload.recorded_at.isoformat(),
            "offline_sync": True,
        }
        data = await self.http.request(
            "POST",
            f"{REST_PATH}/{LOCATION_UPDATES_TABLE}",
            access_token=auth.access_token,
            params={"on_conflict": "id"},
            payload=row,
            headers={"Prefer": IGNORE_DUPLICATES_PREFER},
        )
        return _first_id(data) or sample_id

    async def load_latest_check_ins(self, organization_id: str) -> list[CheckInRecord]:
        data = await self.http.request(
            "POST",
            f"{REST_PATH}/rpc/{LATEST_CHECK_INS_RPC}",
            access_token=self.anon_read_token,
            payload={"org_id": organization_id},
        )
        return self._parse_rows(data, CheckInRecord.from_row, "check-in")

    async def load_active_incidents(self, organization_id: str) -> list[Incident]:
        closed = ",".join(sorted(CLOSED_INCIDENT_STATUSES))
        data = await self.http.request(
            "GET",
            f"{REST_PATH}/{INCIDENTS_TABLE}",
            access_token=self.anon_read_token,
            params={
                "select": "*",
                "organization_id": f"eq.{organization_id}",
                "status": f"not.in.({closed})",
                "order": "created_at.desc",
            },
        )
        return self._parse_rows(data, Incident.from_row, "incident")

    async def _patch(
        self, table: str, row_id: str, updates: dict[str, Any], auth: AuthContext
    ) -> str | None:
        data = await self.http.request(
            "PATCH",
            f"{REST_PATH}/{table}",
            access_token=auth.access_token,
            params={"id": f"eq.{row_id}"},
            payload=updates,
            headers={"Prefer": RETURN_REPRESENTATION_PREFER},
        )
        if isinstance(data, list) and not data:
            # Nothing matched: the row is gone or not visible to this user.
            raise RemoteWriteError(f"No {table} row {row_id} to update", status_code=404)
        return _first_id(data) or row_id

    @staticmethod
    def _parse_rows(data: Any, parse, label: str) -> list:
        if not isinstance(data, list):
            return []
        parsed = []
        for row in data:
            try:
                parsed.append(parse(row))
            except (KeyError, ValueError, TypeError) as e:
                logger.warning(f"Skipping malformed {label} row: {e}")
        return parsed
