"""SafePing offline-resilient check-in and escalation pipeline."""

__version__ = "0.1.0"
