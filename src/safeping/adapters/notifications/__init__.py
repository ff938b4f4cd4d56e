"""Local notification adapters."""

from safeping.adapters.notifications.logging_notifier import LoggingNotifier

__all__ = ["LoggingNotifier"]
