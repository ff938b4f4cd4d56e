"""Local user notification port."""

from typing import Protocol


class Notifier(Protocol):
    """Port for showing a local notification to the worker."""

    async def notify(self, title: str, body: str) -> None:
        """Show a notification. Best effort."""
        ...
