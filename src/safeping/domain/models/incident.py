"""Incident domain model."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any

from safeping.domain.models.timestamps import parse_timestamp

CLOSED_INCIDENT_STATUSES = frozenset({"resolved", "closed", "cancelled"})


@dataclass(frozen=True)
class Incident:
    """An emergency or escalation incident raised for a worker."""

    id: str
    organization_id: str
    user_id: str | None
    status: str
    created_at: datetime
    title: str = ""
    severity: str | None = None

    @property
    def is_active(self) -> bool:
        """True while the incident still needs attention."""
        return self.status not in CLOSED_INCIDENT_STATUSES

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> Incident:
        """Build an incident from an ``incidents`` row."""
        user_id = row.get("user_id")
        return cls(
            id=str(row["id"]),
            organization_id=str(row["organization_id"]),
            user_id=str(user_id) if user_id is not None else None,
            status=str(row.get("status") or "active"),
            created_at=parse_timestamp(row["created_at"]),
            title=row.get("title") or "",
            severity=row.get("severity"),
        )
