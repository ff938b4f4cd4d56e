"""Domain layer - models, ports and internal contracts."""

from safeping.domain.models import (
    ActionKind,
    CheckInRecord,
    CheckInStatus,
    QueuedAction,
    SyncAttemptResult,
    SyncOutcome,
)
from safeping.domain.ports import (
    ActionStore,
    ChangeFeed,
    ConnectivityProvider,
    RemoteWriteGateway,
    SnapshotRepository,
)

__all__ = [
    "ActionKind",
    "ActionStore",
    "ChangeFeed",
    "CheckInRecord",
    "CheckInStatus",
    "ConnectivityProvider",
    "QueuedAction",
    "RemoteWriteGateway",
    "SnapshotRepository",
    "SyncAttemptResult",
    "SyncOutcome",
]
