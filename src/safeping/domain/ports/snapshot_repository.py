"""Snapshot read port used by the status aggregator."""

from typing import Protocol

from safeping.domain.models.check_in_record import CheckInRecord
from safeping.domain.models.incident import Incident


class SnapshotRepository(Protocol):
    """Port for polled reads of the authoritative state."""

    async def load_latest_check_ins(self, organization_id: str) -> list[CheckInRecord]:
        """Return the most recent check-in of every worker in the organization."""
        ...

    async def load_active_incidents(self, organization_id: str) -> list[Incident]:
        """Return incidents that are not yet resolved."""
        ...
