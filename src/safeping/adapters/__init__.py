"""Adapters layer - external system integrations."""

from safeping.adapters.broadcasters import StatusBroadcaster
from safeping.adapters.config import AppConfig
from safeping.adapters.connectivity import ProbeConnectivityProvider
from safeping.adapters.notifications import LoggingNotifier
from safeping.adapters.storage import SqliteActionStore
from safeping.adapters.supabase import (
    SupabaseAuthFunctions,
    SupabaseHttpClient,
    SupabaseRealtimeFeed,
    SupabaseRestGateway,
)

__all__ = [
    "AppConfig",
    "LoggingNotifier",
    "ProbeConnectivityProvider",
    "SqliteActionStore",
    "StatusBroadcaster",
    "SupabaseAuthFunctions",
    "SupabaseHttpClient",
    "SupabaseRealtimeFeed",
    "SupabaseRestGateway",
]
