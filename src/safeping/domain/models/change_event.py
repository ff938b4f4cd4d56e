"""Change feed event model."""

from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any


class ChangeEventType(StrEnum):
    """Row-level change kinds delivered by the feed."""

    INSERT = "INSERT"
    UPDATE = "UPDATE"
    DELETE = "DELETE"


@dataclass(frozen=True)
class ChangeEvent:
    """One notification from the remote change feed.

    ``new`` is empty for deletes; ``old`` usually only carries the primary key.
    No ordering or exactly-once delivery is implied.
    """

    event_type: ChangeEventType
    table: str
    new: dict[str, Any] = field(default_factory=dict)
    old: dict[str, Any] = field(default_factory=dict)
