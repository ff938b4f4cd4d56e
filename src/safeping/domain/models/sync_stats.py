"""Queue statistics model."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class SyncStats(BaseModel):
    """Aggregate view of the local queue, used for the pending-count banner."""

    model_config = ConfigDict(frozen=True)

    queued_actions: int
    last_sync: datetime | None = None
    actions_by_kind: dict[str, int] = Field(default_factory=dict)
