"""Verwaltungs-Datensätze: Dateien, Fachbereichs-Übersichten, Konflikte."""

import uuid
from datetime import datetime, timezone
from typing import Literal, Optional

from pydantic import BaseModel, Field


def _now() -> datetime:
    return datetime.now(timezone.utc)


class DepartmentTimetable(BaseModel):
    """Zusammenfassung des Stundenplans eines Fachbereichs pro Semester."""

    department: str
    semester: str
    total_courses: int = 0
    total_rooms: int = 0
    total_schedules: int = 0
    last_updated: datetime = Field(default_factory=_now)
    uploaded_by: str = "admin"

    @property
    def key(self) -> tuple[str, str]:
        return (self.department, self.semester)


class TimetableFile(BaseModel):
    """Protokoll einer hochgeladenen Stundenplandatei."""

    id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    filename: str
    department: str
    semester: str
    uploaded_at: datetime = Field(default_factory=_now)
    uploaded_by: str = "admin"
    status: str = "uploaded"
    schedules_count: int = 0
    file_size: str = "0 KB"
    validation_errors: int = 0
    validation_warnings: int = 0


class ConflictRecord(BaseModel):
    """Ein festgestellter Raumkonflikt und wie er aufgelöst wurde."""

    id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    room_id: str
    time_slot: str                    # "<day>_<period>"
    conflicting_departments: list[str] = []
    resolved_with: Optional[str] = None
    status: Literal["open", "resolved"] = "open"
    created_at: datetime = Field(default_factory=_now)
