"""Datenmodell für einen Raum (Pydantic v2)."""

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, field_validator


class RoomStatus(str, Enum):
    FREE = "free"
    BUSY = "busy"
    OCCUPIED = "occupied"
    CANCELLED = "cancelled"


class Room(BaseModel):
    """Repräsentiert einen Raum eines Fachbereichs."""

    id: str                           # "101", "CSE1"
    name: str                         # "CSE Lab 1"
    building: str = "Main Building"
    floor: Optional[int] = None
    capacity: int = 30
    type: str = "classroom"           # classroom / lab / auditorium / ...
    department: str = ""
    status: RoomStatus = RoomStatus.FREE
    features: list[str] = []
    current_class: Optional[str] = None
    reason: Optional[str] = None      # Begründung bei Ausfall
    cancelled_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @field_validator("status", mode="before")
    @classmethod
    def normalize_status(cls, v):
        # Altbestände schreiben "available"
        if isinstance(v, str) and v.strip().lower() == "available":
            return RoomStatus.FREE
        return v

    @field_validator("features", mode="before")
    @classmethod
    def split_features(cls, v):
        if isinstance(v, str):
            return [f.strip() for f in v.split(",") if f.strip()]
        return v

    @property
    def key(self) -> tuple[str, str]:
        """Eindeutiger Schlüssel (Raum, Fachbereich)."""
        return (self.id, self.department)

    @property
    def is_bookable(self) -> bool:
        return self.status != RoomStatus.CANCELLED
