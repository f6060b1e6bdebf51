"""CampusStore: Datenbestand (Räume, Stundenpläne, Dateien, Konflikte) als JSON.

Alle Lese- und Schreibzugriffe laufen unter einer Sperre. Konfliktprüfung
und Einfügen eines Stundenplaneintrags sind damit ein atomarer Schritt:
zwei gleichzeitige Importe können denselben Raum nicht doppelt belegen.
"""

import logging
import os
import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterable, Optional

from pydantic import BaseModel

from models.elective import ElectiveEnrollment
from models.period import Period, PeriodFormatError
from models.records import ConflictRecord, DepartmentTimetable, TimetableFile
from models.room import Room, RoomStatus
from models.schedule import ScheduleEntry
from storage.events import CHANGES_CHANNEL, EventBus

logger = logging.getLogger(__name__)


# ─── Fehler ───────────────────────────────────────────────────────────────────

class CampusStoreError(Exception):
    """Fehler beim Zugriff auf den Datenbestand."""


class RecordNotFoundError(CampusStoreError):
    """Datensatz existiert nicht."""


class DuplicateScheduleError(CampusStoreError):
    """Identischer aktiver Stundenplaneintrag existiert bereits."""


class RoomConflictError(CampusStoreError):
    """Raum ist zur gewünschten Zeit bereits belegt."""

    def __init__(self, message: str, conflicts: list[ScheduleEntry]) -> None:
        super().__init__(message)
        self.conflicts = conflicts


# ─── Persistiertes Format ─────────────────────────────────────────────────────

class CampusData(BaseModel):
    """Vollständiger Datenbestand, wie er auf der Platte liegt."""

    rooms: list[Room] = []
    schedules: list[ScheduleEntry] = []
    department_timetables: list[DepartmentTimetable] = []
    timetable_files: list[TimetableFile] = []
    conflicts: list[ConflictRecord] = []
    elective_enrollments: list[ElectiveEnrollment] = []
    modified_at: Optional[datetime] = None
    data_version: str = "1.0"


def _now() -> datetime:
    return datetime.now(timezone.utc)


class CampusStore:
    """Tabellen-artiger Zugriff auf den Datenbestand.

    Args:
        path: JSON-Datei; None = nur im Speicher (Tests)
        bus: EventBus für Änderungsbenachrichtigungen
        day_start_hour: für das Parsen gespeicherter Perioden
    """

    def __init__(
        self,
        path: Optional[Path] = None,
        bus: Optional[EventBus] = None,
        day_start_hour: int = 8,
    ) -> None:
        self.path = Path(path) if path is not None else None
        self.bus = bus or EventBus()
        self.day_start_hour = day_start_hour
        self._lock = threading.RLock()
        self._data = self._load()

    # ─── Persistenz ───────────────────────────────────────────────────────

    def _load(self) -> CampusData:
        if self.path is None or not self.path.exists():
            return CampusData()
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = CampusData.model_validate_json(f.read())
        except Exception as e:
            raise CampusStoreError(f"Datenbestand unlesbar: {self.path}: {e}") from e
        logger.debug("Datenbestand geladen: %s (%d Räume, %d Einträge)",
                     self.path, len(data.rooms), len(data.schedules))
        return data

    def _commit(self) -> None:
        """Schreibt den Bestand atomar (tmp-Datei + rename).

        Scheitert das Schreiben, wird der Speicherstand auf den letzten
        Stand der Datei zurückgesetzt.
        """
        self._data.modified_at = _now()
        if self.path is None:
            return
        tmp = self.path.with_suffix(self.path.suffix + ".tmp")
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with open(tmp, "w", encoding="utf-8") as f:
                f.write(self._data.model_dump_json(indent=2))
            os.replace(tmp, self.path)
        except OSError as e:
            tmp.unlink(missing_ok=True)
            self._data = self._load()
            logger.error("Datenbestand nicht gespeichert: %s: %s", self.path, e)
            raise CampusStoreError(f"Datenbestand nicht gespeichert: {self.path}: {e}") from e

    def _notify(self, table: str, event: str, record: BaseModel) -> None:
        self.bus.publish(CHANGES_CHANNEL, event, {
            "table": table,
            "record": record.model_dump(mode="json"),
        })

    def table_counts(self) -> dict[str, int]:
        """Anzahl Datensätze je Tabelle."""
        with self._lock:
            return {
                "rooms": len(self._data.rooms),
                "schedules": len(self._data.schedules),
                "department_timetables": len(self._data.department_timetables),
                "timetable_files": len(self._data.timetable_files),
                "conflicts": len(self._data.conflicts),
                "elective_enrollments": len(self._data.elective_enrollments),
            }

    # ─── Räume ────────────────────────────────────────────────────────────

    def list_rooms(
        self,
        department: Optional[str] = None,
        status: Optional[RoomStatus] = None,
    ) -> list[Room]:
        with self._lock:
            rooms = [
                r.model_copy() for r in self._data.rooms
                if (department is None or r.department == department)
                and (status is None or r.status == status)
            ]
        return sorted(rooms, key=lambda r: (r.id, r.department))

    def get_room(self, room_id: str, department: Optional[str] = None) -> Optional[Room]:
        with self._lock:
            for r in self._data.rooms:
                if r.id == room_id and (department is None or r.department == department):
                    return r.model_copy()
        return None

    def upsert_rooms(self, rooms: Iterable[Room]) -> int:
        """Fügt Räume ein oder ersetzt sie (Schlüssel: id + Fachbereich)."""
        changed: list[tuple[str, Room]] = []
        with self._lock:
            index = {r.key: i for i, r in enumerate(self._data.rooms)}
            for room in rooms:
                room = room.model_copy(update={"updated_at": _now()})
                if room.key in index:
                    self._data.rooms[index[room.key]] = room
                    changed.append(("UPDATE", room))
                else:
                    index[room.key] = len(self._data.rooms)
                    self._data.rooms.append(room)
                    changed.append(("INSERT", room))
            self._commit()
        for event, room in changed:
            self._notify("rooms", event, room)
        return len(changed)

    def update_room(self, room_id: str, **changes) -> list[Room]:
        """Ändert alle Datensätze eines Raums (über alle Fachbereiche)."""
        updated: list[Room] = []
        with self._lock:
            for i, r in enumerate(self._data.rooms):
                if r.id != room_id:
                    continue
                new = Room.model_validate({**r.model_dump(), **changes, "updated_at": _now()})
                self._data.rooms[i] = new
                updated.append(new)
            if not updated:
                raise RecordNotFoundError(f"Raum '{room_id}' nicht gefunden")
            self._commit()
        for room in updated:
            self._notify("rooms", "UPDATE", room)
        return [r.model_copy() for r in updated]

    # ─── Stundenplaneinträge ──────────────────────────────────────────────

    def list_schedules(
        self,
        *,
        room_id: Optional[str] = None,
        day: Optional[str] = None,
        department: Optional[str] = None,
        year: Optional[str] = None,
        section: Optional[str] = None,
        is_active: Optional[bool] = None,
        created_since: Optional[datetime] = None,
    ) -> list[ScheduleEntry]:
        day = day.lower() if day else None
        with self._lock:
            return [
                s.model_copy() for s in self._data.schedules
                if (room_id is None or s.room_id == room_id)
                and (day is None or s.day == day)
                and (department is None or s.department == department)
                and (year is None or s.year == str(year))
                and (section is None or s.section == section)
                and (is_active is None or s.is_active == is_active)
                and (created_since is None or s.created_at >= created_since)
            ]

    def get_schedule(self, schedule_id: str) -> ScheduleEntry:
        with self._lock:
            for s in self._data.schedules:
                if s.id == schedule_id:
                    return s.model_copy()
        raise RecordNotFoundError(f"Stundenplaneintrag '{schedule_id}' nicht gefunden")

    def _overlaps(self, stored: ScheduleEntry, wanted: Period) -> bool:
        try:
            return stored.period_range(self.day_start_hour).overlaps(wanted)
        except PeriodFormatError:
            # Altbestand mit unlesbarer Periode: nur exakter Treffer zählt
            return stored.period.strip() == wanted.label

    def _find_conflicts_locked(self, room_id: str, day: str, period: Period,
                               exclude_ids: Iterable[str] = ()) -> list[ScheduleEntry]:
        excluded = set(exclude_ids)
        return [
            s for s in self._data.schedules
            if s.is_active and s.room_id == room_id and s.day == day.lower()
            and s.id not in excluded and self._overlaps(s, period)
        ]

    def find_conflicts(
        self, room_id: str, day: str, period: str,
        exclude_ids: Iterable[str] = (),
    ) -> list[ScheduleEntry]:
        """Aktive Einträge, die den Raum am Tag zeitlich überschneidend belegen."""
        wanted = Period.parse(period, self.day_start_hour)
        with self._lock:
            return [s.model_copy() for s in
                    self._find_conflicts_locked(room_id, day, wanted, exclude_ids)]

    def insert_schedule(self, entry: ScheduleEntry,
                        check_conflicts: bool = True) -> ScheduleEntry:
        """Legt einen Eintrag an.

        Raises:
            DuplicateScheduleError: identischer aktiver Eintrag vorhanden
            RoomConflictError: Raum überschneidend belegt (nur mit check_conflicts)
        """
        with self._lock:
            if any(s.is_active and s.duplicate_key == entry.duplicate_key
                   for s in self._data.schedules):
                raise DuplicateScheduleError(
                    f"Eintrag existiert bereits: {entry.room_id} "
                    f"{entry.day} {entry.period} ({entry.course_name})"
                )
            if check_conflicts:
                conflicts = self._find_conflicts_locked(
                    entry.room_id, entry.day,
                    entry.period_range(self.day_start_hour),
                )
                if conflicts:
                    raise RoomConflictError(
                        f"Raum {entry.room_id} ist {entry.day} {entry.period} "
                        f"bereits belegt",
                        [c.model_copy() for c in conflicts],
                    )
            self._data.schedules.append(entry.model_copy())
            self._commit()
        self._notify("schedules", "INSERT", entry)
        return entry.model_copy()

    def update_schedule(self, schedule_id: str, **changes) -> ScheduleEntry:
        with self._lock:
            for i, s in enumerate(self._data.schedules):
                if s.id == schedule_id:
                    new = ScheduleEntry.model_validate({**s.model_dump(), **changes})
                    self._data.schedules[i] = new
                    self._commit()
                    break
            else:
                raise RecordNotFoundError(
                    f"Stundenplaneintrag '{schedule_id}' nicht gefunden")
        self._notify("schedules", "UPDATE", new)
        return new.model_copy()

    def deactivate_schedules(self, schedule_ids: Iterable[str],
                             reason: Optional[str] = None) -> int:
        """Setzt Einträge inaktiv (z.B. beim Überschreiben durch einen Import)."""
        ids = set(schedule_ids)
        changed: list[ScheduleEntry] = []
        with self._lock:
            for i, s in enumerate(self._data.schedules):
                if s.id in ids and s.is_active:
                    new = s.model_copy(update={
                        "is_active": False,
                        "cancellation_reason": reason,
                        "cancelled_at": _now(),
                    })
                    self._data.schedules[i] = new
                    changed.append(new)
            if changed:
                self._commit()
        for s in changed:
            self._notify("schedules", "UPDATE", s)
        return len(changed)

    # ─── Fachbereichs-Übersichten ─────────────────────────────────────────

    def upsert_department_timetable(self, summary: DepartmentTimetable) -> None:
        with self._lock:
            for i, d in enumerate(self._data.department_timetables):
                if d.key == summary.key:
                    self._data.department_timetables[i] = summary
                    event = "UPDATE"
                    break
            else:
                self._data.department_timetables.append(summary)
                event = "INSERT"
            self._commit()
        self._notify("department_timetables", event, summary)

    def list_department_timetables(self) -> list[DepartmentTimetable]:
        with self._lock:
            return [d.model_copy() for d in self._data.department_timetables]

    # ─── Hochgeladene Dateien ─────────────────────────────────────────────

    def insert_file(self, info: TimetableFile) -> TimetableFile:
        with self._lock:
            self._data.timetable_files.append(info)
            self._commit()
        self._notify("timetable_files", "INSERT", info)
        return info.model_copy()

    def list_files(self) -> list[TimetableFile]:
        """Alle Dateien, neueste zuerst."""
        with self._lock:
            files = [f.model_copy() for f in self._data.timetable_files]
        return sorted(files, key=lambda f: f.uploaded_at, reverse=True)

    def get_file(self, file_id: str) -> TimetableFile:
        with self._lock:
            for f in self._data.timetable_files:
                if f.id == file_id:
                    return f.model_copy()
        raise RecordNotFoundError(f"Datei '{file_id}' nicht gefunden")

    def delete_file(self, file_id: str) -> TimetableFile:
        with self._lock:
            for i, f in enumerate(self._data.timetable_files):
                if f.id == file_id:
                    removed = self._data.timetable_files.pop(i)
                    self._commit()
                    break
            else:
                raise RecordNotFoundError(f"Datei '{file_id}' nicht gefunden")
        self._notify("timetable_files", "DELETE", removed)
        return removed

    # ─── Konflikte ────────────────────────────────────────────────────────

    def insert_conflict(self, record: ConflictRecord) -> ConflictRecord:
        with self._lock:
            self._data.conflicts.append(record)
            self._commit()
        self._notify("conflicts", "INSERT", record)
        return record.model_copy()

    def list_conflicts(self, status: Optional[str] = None) -> list[ConflictRecord]:
        with self._lock:
            return [c.model_copy() for c in self._data.conflicts
                    if status is None or c.status == status]

    # ─── Wahlfach-Einschreibungen ─────────────────────────────────────────

    def get_enrollment(self, student_id: str) -> Optional[ElectiveEnrollment]:
        with self._lock:
            for e in self._data.elective_enrollments:
                if e.student_id == student_id:
                    return e.model_copy()
        return None

    def list_enrollments(self, elective_id: Optional[str] = None) -> list[ElectiveEnrollment]:
        with self._lock:
            return [e.model_copy() for e in self._data.elective_enrollments
                    if elective_id is None or e.elective_id == elective_id.upper()]

    def save_enrollment(self, enrollment: ElectiveEnrollment,
                        capacity: Optional[int] = None) -> ElectiveEnrollment:
        """Speichert die Wahl eines Studierenden (ersetzt eine frühere Wahl).

        Mit `capacity` wird die Platzzahl unter der Sperre geprüft;
        bei vollem Kurs: CampusStoreError.
        """
        with self._lock:
            others = [e for e in self._data.elective_enrollments
                      if e.student_id != enrollment.student_id]
            if capacity is not None:
                taken = sum(1 for e in others if e.elective_id == enrollment.elective_id)
                if taken >= capacity:
                    raise CampusStoreError(
                        f"Wahlfach {enrollment.elective_id} ist ausgebucht")
            self._data.elective_enrollments = others + [enrollment]
            self._commit()
        self._notify("elective_enrollments", "INSERT", enrollment)
        return enrollment.model_copy()
