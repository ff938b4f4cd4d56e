"""Pure functions deriving worker status and organization counts."""

from __future__ import annotations

from collections.abc import Iterable
from datetime import datetime, timedelta

from safeping.domain.models.check_in_record import CheckInRecord, CheckInStatus
from safeping.domain.models.incident import Incident
from safeping.domain.models.worker_status import (
    ComputedStatus,
    OrganizationStats,
    WorkerStatusSnapshot,
)


def derive_status(
    latest: CheckInRecord | None,
    now: datetime,
    cadence: timedelta | None = None,
) -> ComputedStatus:
    """Derive a worker's status from their most recent check-in.

    Non-safe statuses are reflected as given; overdue transitions are owned by
    the backend's scheduling job. Without a record, or with a safe record older
    than the check-in cadence, the worker is reported as NO_DATA rather than
    SAFE.
    """
    if latest is None:
        return ComputedStatus.NO_DATA
    if latest.status is not CheckInStatus.SAFE:
        return ComputedStatus(latest.status.value)
    if cadence is not None and now - latest.created_at > cadence:
        return ComputedStatus.NO_DATA
    return ComputedStatus.SAFE


def build_snapshot(
    user_id: str,
    latest: CheckInRecord | None,
    now: datetime,
    cadence: timedelta | None = None,
) -> WorkerStatusSnapshot:
    """Build the status snapshot of one worker."""
    return WorkerStatusSnapshot(
        user_id=user_id,
        latest_check_in=latest,
        computed_status=derive_status(latest, now, cadence),
        computed_at=now,
    )


def latest_record(records: Iterable[CheckInRecord]) -> CheckInRecord | None:
    """Most recent record by ``created_at``, ties broken by id."""
    return max(records, key=lambda r: (r.created_at, r.id), default=None)


def compute_stats(
    snapshots: Iterable[WorkerStatusSnapshot],
    incidents: Iterable[Incident] = (),
) -> OrganizationStats:
    """Count workers per status.

    Computed from the snapshots alone, so the result does not depend on the
    order in which feed events arrived.
    """
    counts = dict.fromkeys(ComputedStatus, 0)
    total = 0
    for snapshot in snapshots:
        counts[snapshot.computed_status] += 1
        total += 1
    return OrganizationStats(
        total_workers=total,
        safe=counts[ComputedStatus.SAFE],
        overdue=counts[ComputedStatus.OVERDUE],
        missed=counts[ComputedStatus.MISSED],
        emergency=counts[ComputedStatus.EMERGENCY],
        no_data=counts[ComputedStatus.NO_DATA],
        active_incidents=sum(1 for incident in incidents if incident.is_active),
    )
