"""Connectivity and visibility signal port."""

from collections.abc import Callable
from typing import Protocol


class ConnectivityProvider(Protocol):
    """Port for platform online/offline and foreground visibility signals."""

    def is_online(self) -> bool:
        """Current connectivity."""
        ...

    def on_change(self, callback: Callable[[bool], None]) -> None:
        """Register a callback invoked with the new online state on each transition."""
        ...

    def is_visible(self) -> bool:
        """Whether the app is in the foreground."""
        ...

    def on_visibility_change(self, callback: Callable[[bool], None]) -> None:
        """Register a callback invoked with the new visibility on each transition."""
        ...
