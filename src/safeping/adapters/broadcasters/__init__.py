"""Broadcasters for projection updates."""

from safeping.adapters.broadcasters.status_broadcaster import StatusBroadcaster

__all__ = ["StatusBroadcaster"]
