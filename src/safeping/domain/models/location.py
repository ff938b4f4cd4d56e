"""Location domain model."""

from pydantic import BaseModel, ConfigDict


class Location(BaseModel):
    """A geographic position attached to a safety signal."""

    model_config = ConfigDict(frozen=True)

    latitude: float
    longitude: float
    accuracy: float | None = None  # Metres, as reported by the device
    address: str | None = None
