"""Protocol for projections that accept optimistic local records."""

from typing import Protocol

from safeping.domain.models.check_in_record import CheckInRecord


class OptimisticProjectionProtocol(Protocol):
    """Protocol for state that renders local writes before they are confirmed."""

    def add_optimistic(self, record: CheckInRecord) -> None:
        """Show a record that has not yet been confirmed by the backend."""
        ...
