"""Ports (interfaces) to external collaborators."""

from safeping.domain.ports.action_store import ActionStore
from safeping.domain.ports.auth_queue_store import AuthQueueStore
from safeping.domain.ports.auth_service import AuthService
from safeping.domain.ports.change_feed import ChangeFeed, ChangeHandler, ConnectionHandler
from safeping.domain.ports.connectivity_provider import ConnectivityProvider
from safeping.domain.ports.notifier import Notifier
from safeping.domain.ports.remote_write_gateway import RemoteWriteGateway
from safeping.domain.ports.snapshot_repository import SnapshotRepository

__all__ = [
    "ActionStore",
    "AuthQueueStore",
    "AuthService",
    "ChangeFeed",
    "ChangeHandler",
    "ConnectionHandler",
    "ConnectivityProvider",
    "Notifier",
    "RemoteWriteGateway",
    "SnapshotRepository",
]
