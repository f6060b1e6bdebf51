"""Datenmodell für Wahlfach-Einschreibungen (Pydantic v2)."""

from datetime import datetime, timezone

from pydantic import BaseModel, Field, field_validator


class ElectiveEnrollment(BaseModel):
    """Ein Studierender hat genau ein Wahlfach gewählt."""

    student_id: str
    elective_id: str
    enrolled_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @field_validator("elective_id")
    @classmethod
    def normalize_id(cls, v: str) -> str:
        return v.upper()
