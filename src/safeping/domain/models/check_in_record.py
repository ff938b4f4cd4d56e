"""Check-in record domain model."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import StrEnum
from typing import Any

from safeping.domain.models.location import Location
from safeping.domain.models.timestamps import parse_timestamp


class CheckInStatus(StrEnum):
    """Status carried by a check-in."""

    SAFE = "safe"
    OVERDUE = "overdue"
    MISSED = "missed"
    EMERGENCY = "emergency"


@dataclass(frozen=True)
class CheckInRecord:
    """A safety signal, either local and optimistic or confirmed by the backend."""

    id: str
    organization_id: str
    user_id: str
    status: CheckInStatus
    created_at: datetime
    location: Location | None = None
    message: str | None = None
    synced_at: datetime | None = None  # None until the backend confirmed the write
    is_offline: bool = False  # True when the record originated from the local queue

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> CheckInRecord:
        """Build a record from a ``check_ins`` row as returned by the backend.

        Raises:
            KeyError: If a required column is missing.
            ValueError: If the status or a timestamp cannot be parsed.
        """
        location = None
        if row.get("location_lat") is not None and row.get("location_lng") is not None:
            location = Location(
                latitude=float(row["location_lat"]),
                longitude=float(row["location_lng"]),
                accuracy=row.get("location_accuracy"),
                address=row.get("location_address"),
            )
        synced_at = row.get("synced_at")
        return cls(
            id=str(row["id"]),
            organization_id=str(row["organization_id"]),
            user_id=str(row["user_id"]),
            status=CheckInStatus(row.get("status") or CheckInStatus.SAFE),
            created_at=parse_timestamp(row["created_at"]),
            location=location,
            message=row.get("message"),
            synced_at=parse_timestamp(synced_at) if synced_at else None,
            is_offline=bool(row.get("is_offline", False)),
        )

    def to_row(self) -> dict[str, Any]:
        """Serialize to the ``check_ins`` column layout."""
        row: dict[str, Any] = {
            "id": self.id,
            "organization_id": self.organization_id,
            "user_id": self.user_id,
            "status": self.status.value,
            "message": self.message,
            "created_at": self.created_at.isoformat(),
            "synced_at": self.synced_at.isoformat() if self.synced_at else None,
            "is_offline": self.is_offline,
        }
        if self.location is not None:
            row["location_lat"] = self.location.latitude
            row["location_lng"] = self.location.longitude
            row["location_accuracy"] = self.location.accuracy
            row["location_address"] = self.location.address
        return row
