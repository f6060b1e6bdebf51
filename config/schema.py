from pydantic import BaseModel, Field, field_validator, model_validator
from typing import Optional
from enum import Enum


class ConflictResolution(str, Enum):
    SKIP = "skip"
    OVERRIDE = "override"
    MANUAL = "manual"


# ─── ZEITRASTER ───

class TimeGridConfig(BaseModel):
    """Wochenraster der Hochschule.

    Perioden werden wie im Stundenplan der Verwaltung als "H:MM-H:MM"
    ohne am/pm geschrieben. Stunden vor `day_start_hour` gelten als
    Nachmittag (1:40 → 13:40).
    """
    # Unterrichtstage in Kleinbuchstaben, Reihenfolge = Wochenreihenfolge
    day_names: list[str] = Field(
        default=["monday", "tuesday", "wednesday", "thursday", "friday"],
        description="Unterrichtstage")
    # Tage der Raumübersicht; Einträge an diesen Tagen sind importierbar
    availability_days: list[str] = Field(
        default=["monday", "tuesday", "wednesday", "thursday", "friday", "saturday"],
        description="Tage der Raumübersicht")
    # Periodenraster des Tages
    periods: list[str] = Field(
        description="Perioden im Format H:MM-H:MM")
    # Erste Stunde des Unterrichtstags (für 12h-Notation)
    day_start_hour: int = Field(8, ge=1, le=12,
        description="Stunden davor zählen als Nachmittag")

    @field_validator("day_names", "availability_days")
    @classmethod
    def _lower_days(cls, v: list[str]) -> list[str]:
        return [d.strip().lower() for d in v]

    @property
    def all_days(self) -> list[str]:
        """Unterrichtstage, danach weitere Tage der Raumübersicht."""
        return self.day_names + [d for d in self.availability_days
                                 if d not in self.day_names]

    @model_validator(mode='after')
    def validate_periods(self):
        """Jede Periode muss sich parsen lassen."""
        from models.period import Period, PeriodFormatError
        for p in self.periods:
            try:
                Period.parse(p, self.day_start_hour)
            except PeriodFormatError as e:
                raise ValueError(f"Ungültige Periode im Zeitraster: {e}") from e
        return self


# ─── FACHBEREICHE ───

class DepartmentDef(BaseModel):
    """Ein Fachbereich (z.B. CSE)."""
    code: str
    name: str


# ─── RÄUME ───

class CollegeRoomDef(BaseModel):
    """Ein bekannter Raum der Hochschule."""
    # Raum-Kennung wie im Stundenplan (z.B. "101", "CSE1")
    room_id: str
    # Anzeigename, z.B. "CSE Lab 1"
    name: str
    capacity: int = Field(30, ge=0)
    # classroom / lab / auditorium / library / sports
    room_type: str = "classroom"
    building: str = "Main Building"
    floor: Optional[int] = None
    features: list[str] = []


class RoomCatalogConfig(BaseModel):
    """Raumkatalog. Räume außerhalb des Katalogs erzeugen Import-Warnungen."""
    rooms: list[CollegeRoomDef] = Field(
        description="Alle bekannten Räume")
    # Kapazität für Räume außerhalb des Katalogs
    fallback_capacity: int = Field(30, ge=0)

    def get(self, room_id: str) -> Optional[CollegeRoomDef]:
        for r in self.rooms:
            if r.room_id == room_id:
                return r
        return None

    def is_known(self, room_id: str) -> bool:
        return self.get(room_id) is not None


# ─── IMPORT ───

class ImportConfig(BaseModel):
    """Voreinstellungen für den CSV-Import."""
    # Pflichtspalten im Header
    required_columns: list[str] = Field(
        default=["room_id", "room_name", "course", "day", "period"])
    default_department: str = "CSE"
    default_year: str = "3"
    default_section: str = "A"
    default_professor: str = "Staff"
    # Umgang mit Raumkonflikten
    conflict_resolution: ConflictResolution = Field(ConflictResolution.SKIP)


# ─── WAHLFÄCHER ───

class ElectiveDef(BaseModel):
    """Ein angebotenes Wahlfach."""
    id: str
    code: str
    name: str
    professor: str
    credits: int = Field(3, ge=0)
    room: str
    capacity: int = Field(ge=1)
    # Bereits vergebene Plätze außerhalb dieses Systems
    enrolled: int = Field(0, ge=0)
    schedule: str = ""
    description: str = ""
    prerequisites: list[str] = []
    syllabus: list[str] = []
    difficulty: str = "Medium"


class ElectiveConfig(BaseModel):
    electives: list[ElectiveDef] = []


# ─── SPEICHER ───

class StorageConfig(BaseModel):
    """Ablage des Datenbestands."""
    data_path: str = Field("output/campus_data.json",
        description="JSON-Datei mit Räumen, Stundenplänen, Dateien")


# ─── GESAMT-CONFIG ───

class CampusConfig(BaseModel):
    """Gesamtkonfiguration der Hochschule."""
    college_name: str = Field("Smart Campus College")
    # Aktuelles Semester, z.B. "Fall 2024"
    semester: str = Field("Fall 2024")
    # Wird in Dateien und Fachbereichs-Zusammenfassungen vermerkt
    uploaded_by: str = Field("admin")
    departments: list[DepartmentDef]
    time_grid: TimeGridConfig
    room_catalog: RoomCatalogConfig
    imports: ImportConfig = Field(default_factory=ImportConfig)
    electives: ElectiveConfig = Field(default_factory=ElectiveConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)

    @property
    def department_codes(self) -> list[str]:
        return [d.code for d in self.departments]
