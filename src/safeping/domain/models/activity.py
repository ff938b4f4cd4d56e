"""Recent activity entry model."""

from dataclasses import dataclass
from datetime import datetime
from typing import Literal


@dataclass(frozen=True)
class ActivityEntry:
    """One line of the dashboard's recent activity feed."""

    id: str
    type: Literal["check_in", "incident"]
    message: str
    timestamp: datetime
    status: str
