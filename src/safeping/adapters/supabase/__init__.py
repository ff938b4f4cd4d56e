"""Supabase backend adapters."""

from safeping.adapters.supabase.auth_functions import SupabaseAuthFunctions
from safeping.adapters.supabase.http_client import SupabaseHttpClient
from safeping.adapters.supabase.realtime_feed import SupabaseRealtimeFeed
from safeping.adapters.supabase.rest_gateway import SupabaseRestGateway

__all__ = [
    "SupabaseAuthFunctions",
    "SupabaseHttpClient",
    "SupabaseRealtimeFeed",
    "SupabaseRestGateway",
]
