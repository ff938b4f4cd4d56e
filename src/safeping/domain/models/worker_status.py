"""Worker status projection models."""

from dataclasses import dataclass
from datetime import datetime
from enum import StrEnum

from pydantic import BaseModel, ConfigDict

from safeping.domain.models.check_in_record import CheckInRecord


class ComputedStatus(StrEnum):
    """Derived safety status of a worker."""

    SAFE = "safe"
    OVERDUE = "overdue"
    MISSED = "missed"
    EMERGENCY = "emergency"
    NO_DATA = "no_data"  # No check-in at all, or none within the cadence window


@dataclass(frozen=True)
class WorkerStatusSnapshot:
    """Point-in-time safety status of one worker."""

    user_id: str
    latest_check_in: CheckInRecord | None
    computed_status: ComputedStatus
    computed_at: datetime


class OrganizationStats(BaseModel):
    """Organization-level counts shown on the dashboard."""

    model_config = ConfigDict(frozen=True)

    total_workers: int = 0
    safe: int = 0
    overdue: int = 0
    missed: int = 0
    emergency: int = 0
    no_data: int = 0
    active_incidents: int = 0
