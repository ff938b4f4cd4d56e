"""Local durable storage adapters."""

from safeping.adapters.storage.sqlite_action_store import SqliteActionStore

__all__ = ["SqliteActionStore"]
