"""Read-only projection handed to the presentation layer."""

from dataclasses import dataclass, field
from datetime import datetime

from safeping.domain.models.activity import ActivityEntry
from safeping.domain.models.worker_status import OrganizationStats, WorkerStatusSnapshot


@dataclass(frozen=True)
class AggregatorView:
    """Everything a dashboard needs to render one organization."""

    organization_id: str
    workers: dict[str, WorkerStatusSnapshot]
    stats: OrganizationStats
    recent_activity: list[ActivityEntry] = field(default_factory=list)
    is_connected: bool = False
    last_updated: datetime | None = None
