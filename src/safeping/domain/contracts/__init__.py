"""Contracts between internal components."""

from safeping.domain.contracts.drain_trigger import DrainTriggerProtocol
from safeping.domain.contracts.optimistic_projection import OptimisticProjectionProtocol
from safeping.domain.contracts.status_broadcaster import StatusBroadcasterProtocol
from safeping.domain.contracts.sync_event_listener import SyncEventListenerProtocol

__all__ = [
    "DrainTriggerProtocol",
    "OptimisticProjectionProtocol",
    "StatusBroadcasterProtocol",
    "SyncEventListenerProtocol",
]
