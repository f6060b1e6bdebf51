"""Datenmodell für einen Stundenplaneintrag (Pydantic v2)."""

import uuid
from datetime import datetime, timezone
from typing import Optional

from pydantic import BaseModel, Field, field_validator

from models.period import Period


def _now() -> datetime:
    return datetime.now(timezone.utc)


class ScheduleEntry(BaseModel):
    """Eine belegte Periode: Kurs × Raum × Tag × Periode."""

    id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    room_id: str
    room_name: str = ""
    course_name: str
    professor: str = "Staff"
    day: str                          # Kleinbuchstaben ("monday")
    period: str                       # "8:40-9:30"
    start_time: str = ""
    end_time: str = ""
    department: str = "CSE"
    year: str = "3"
    section: str = "A"
    semester: str = ""
    is_active: bool = True
    cancelled: bool = False
    cancellation_reason: Optional[str] = None
    cancelled_at: Optional[datetime] = None
    # Bei Konfliktauflösung: ursprünglich gewünschter Raum
    conflict_resolved: bool = False
    original_room_id: Optional[str] = None
    created_at: datetime = Field(default_factory=_now)

    @field_validator("day")
    @classmethod
    def normalize_day(cls, v: str) -> str:
        return v.strip().lower()

    @field_validator("year", "section", mode="before")
    @classmethod
    def coerce_str(cls, v):
        return str(v) if v is not None else v

    def period_range(self, day_start_hour: int = 8) -> Period:
        return Period.parse(self.period, day_start_hour)

    @property
    def group_label(self) -> str:
        """z.B. "CSE Jahr 3 Sek. A"."""
        return f"{self.department} Jahr {self.year} Sek. {self.section}"

    @property
    def duplicate_key(self) -> tuple:
        """Schlüssel für die Duplikat-Erkennung beim Import."""
        return (self.room_id, self.day, self.period, self.department,
                self.year, self.section, self.course_name)
