"""Application services."""

from safeping.application.services.action_queue import ActionQueue
from safeping.application.services.check_in_service import CheckInService
from safeping.application.services.connectivity_monitor import (
    ConnectivityMonitor,
    ConnectivityState,
)
from safeping.application.services.offline_auth import AuthQueueStatus, OfflineAuthManager
from safeping.application.services.retry_policy import RetryPolicy
from safeping.application.services.retry_scheduler import RetryScheduler
from safeping.application.services.status_aggregator import StatusAggregator
from safeping.application.services.status_derivation import compute_stats, derive_status
from safeping.application.services.sync_engine import SyncEngine

__all__ = [
    "ActionQueue",
    "AuthQueueStatus",
    "CheckInService",
    "ConnectivityMonitor",
    "ConnectivityState",
    "OfflineAuthManager",
    "RetryPolicy",
    "RetryScheduler",
    "StatusAggregator",
    "SyncEngine",
    "compute_stats",
    "derive_status",
]
