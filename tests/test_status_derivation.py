"""Tests for the pure status derivation functions."""

from datetime import timedelta

import pytest

from safeping.application.services.status_derivation import (
    build_snapshot,
    compute_stats,
    derive_status,
    latest_record,
)
from safeping.domain.models.check_in_record import CheckInRecord, CheckInStatus
from safeping.domain.models.incident import Incident
from safeping.domain.models.worker_status import ComputedStatus
from tests.fakes import T0


def record(
    record_id: str,
    user_id: str = "user-1",
    status: CheckInStatus = CheckInStatus.SAFE,
    minutes: float = 0,
) -> CheckInRecord:
    return CheckInRecord(
        id=record_id,
        organization_id="org-1",
        user_id=user_id,
        status=status,
        created_at=T0 + timedelta(minutes=minutes),
    )


def test_no_record_is_no_data() -> None:
    """Given no check-in, when deriving status, then the worker has no data."""
    assert derive_status(None, T0) is ComputedStatus.NO_DATA


@pytest.mark.parametrize(
    ("status", "expected"),
    [
        (CheckInStatus.SAFE, ComputedStatus.SAFE),
        (CheckInStatus.OVERDUE, ComputedStatus.OVERDUE),
        (CheckInStatus.MISSED, ComputedStatus.MISSED),
        (CheckInStatus.EMERGENCY, ComputedStatus.EMERGENCY),
    ],
)
def test_status_mirrors_latest_record(status: CheckInStatus, expected: ComputedStatus) -> None:
    """Given a recent check-in, when deriving status, then its status is reflected."""
    assert derive_status(record("c1", status=status), T0) is expected


def test_stale_safe_record_is_no_data_when_cadence_given() -> None:
    """Given a safe check-in older than the cadence, when deriving status, then it is no data."""
    latest = record("c1", minutes=-120)

    assert derive_status(latest, T0, cadence=timedelta(minutes=60)) is ComputedStatus.NO_DATA
    assert derive_status(latest, T0) is ComputedStatus.SAFE


def test_stale_emergency_stays_emergency() -> None:
    """Given an old emergency check-in, when deriving status, then it stays an emergency."""
    latest = record("c1", status=CheckInStatus.EMERGENCY, minutes=-600)

    assert derive_status(latest, T0, cadence=timedelta(minutes=60)) is ComputedStatus.EMERGENCY


def test_latest_record_prefers_newest_then_highest_id() -> None:
    """Given records with equal timestamps, when picking the latest, then the id breaks the tie."""
    records = [record("a", minutes=1), record("c", minutes=2), record("b", minutes=2)]

    assert latest_record(records).id == "c"
    assert latest_record([]) is None


def test_stats_count_each_status_and_active_incidents() -> None:
    """Given snapshots and incidents, when computing stats, then each bucket is counted."""
    snapshots = [
        build_snapshot("u1", record("c1", "u1"), T0),
        build_snapshot("u2", record("c2", "u2"), T0),
        build_snapshot("u3", record("c3", "u3", CheckInStatus.EMERGENCY), T0),
        build_snapshot("u4", None, T0),
    ]
    incidents = [
        Incident(id="i1", organization_id="org-1", user_id="u3", status="active", created_at=T0),
        Incident(id="i2", organization_id="org-1", user_id="u1", status="resolved", created_at=T0),
    ]

    stats = compute_stats(snapshots, incidents)

    assert stats.total_workers == 4
    assert stats.safe == 2
    assert stats.emergency == 1
    assert stats.no_data == 1
    assert stats.overdue == 0
    assert stats.active_incidents == 1


def test_stats_do_not_depend_on_snapshot_order() -> None:
    """Given the same snapshots in different orders, when computing stats, then they agree."""
    snapshots = [
        build_snapshot("u1", record("c1", "u1"), T0),
        build_snapshot("u2", record("c2", "u2", CheckInStatus.MISSED), T0),
    ]

    assert compute_stats(snapshots) == compute_stats(list(reversed(snapshots)))
