"""Manuelle Stundenplanerstellung: Einträge anlegen, Konflikte prüfen,
auf freie Ausweichräume umlegen.
"""

import logging
from typing import Optional

from pydantic import BaseModel

from config.schema import CampusConfig
from models.period import Period, PeriodFormatError
from models.records import ConflictRecord
from models.room import Room, RoomStatus
from models.schedule import ScheduleEntry
from storage.store import CampusStore

logger = logging.getLogger(__name__)


class SchedulingError(Exception):
    """Ungültige Anfrage an Stundenplan, Absagen oder Wahlfächer."""


class ClassRequest(BaseModel):
    """Wunsch: Kurs X mit Dozent Y in Raum Z am Tag T in Periode P."""

    room_id: str
    course_name: str
    professor: str
    day: str
    period: str
    department: str = "CSE"
    year: str = "3"
    section: str = "A"


class TimetableBuilder:
    """Legt Stundenplaneinträge für eine Gruppe (Fachbereich/Jahr/Sektion) an."""

    def __init__(self, config: CampusConfig, store: CampusStore) -> None:
        self.config = config
        self.store = store
        self._day_start = config.time_grid.day_start_hour

    # ─── Ansicht ──────────────────────────────────────────────────────────

    def grid(self, department: str, year: str,
             section: str) -> dict[str, dict[str, Optional[ScheduleEntry]]]:
        """Wochenraster einer Gruppe: Tag → Periode → Eintrag (oder None)."""
        periods = self.config.time_grid.periods
        ranges = [Period.parse(p, self._day_start) for p in periods]
        grid: dict[str, dict[str, Optional[ScheduleEntry]]] = {
            day: {p: None for p in periods} for day in self.config.time_grid.day_names
        }
        for entry in self.store.list_schedules(department=department, year=year,
                                               section=section, is_active=True):
            if entry.day not in grid:
                continue
            if entry.period in grid[entry.day]:
                grid[entry.day][entry.period] = entry
                continue
            # Abweichend geschriebene Periode: Rasterzeile des Beginns
            try:
                start = entry.period_range(self._day_start).start_minutes
            except PeriodFormatError:
                continue
            for label, rng in zip(periods, ranges):
                if rng.contains(start):
                    grid[entry.day][label] = entry
                    break
        return grid

    # ─── Prüfungen ────────────────────────────────────────────────────────

    def _parse_period(self, period: str) -> Period:
        try:
            return Period.parse(period, self._day_start)
        except PeriodFormatError as e:
            raise SchedulingError(str(e)) from e

    def check_room_conflicts(self, room_id: str, day: str,
                             period: str) -> list[ScheduleEntry]:
        """Belegungen des Raums zur Zeit, über alle Fachbereiche."""
        self._parse_period(period)
        return self.store.find_conflicts(room_id, day, period)

    def find_available_rooms(self, day: str, period: str) -> list[Room]:
        """Räume, die weder belegt noch gesperrt sind und zur Zeit frei sind."""
        self._parse_period(period)
        seen: set[str] = set()
        available = []
        for room in self._known_rooms():
            if room.id in seen:
                continue
            seen.add(room.id)
            if room.status in (RoomStatus.OCCUPIED, RoomStatus.CANCELLED):
                continue
            if self.store.find_conflicts(room.id, day, period):
                continue
            available.append(room)
        return available

    def _known_rooms(self) -> list[Room]:
        """Räume aus dem Bestand, ergänzt um nie importierte Katalogräume."""
        rooms = self.store.list_rooms()
        stored_ids = {r.id for r in rooms}
        for r in self.config.room_catalog.rooms:
            if r.room_id not in stored_ids:
                rooms.append(self._catalog_room(r.room_id, ""))
        return rooms

    def _catalog_room(self, room_id: str, department: str) -> Room:
        known = self.config.room_catalog.get(room_id)
        if known is None:
            return Room(id=room_id, name=f"Room {room_id}", department=department,
                        capacity=self.config.room_catalog.fallback_capacity)
        return Room(id=room_id, name=known.name, building=known.building,
                    floor=known.floor, capacity=known.capacity,
                    type=known.room_type, department=department,
                    features=known.features)

    def _validate(self, request: ClassRequest) -> None:
        if not (request.room_id and request.course_name and request.professor):
            raise SchedulingError("Bitte Raum, Kurs und Dozent angeben")
        if request.day.lower() not in self.config.time_grid.day_names:
            raise SchedulingError(f"Unbekannter Tag '{request.day}'")
        self._parse_period(request.period)
        room = self.store.get_room(request.room_id)
        if room is not None and room.status == RoomStatus.CANCELLED:
            raise SchedulingError(
                f"Raum {request.room_id} ist gesperrt ({room.reason or 'ohne Grund'})")

    # ─── Anlegen ──────────────────────────────────────────────────────────

    def _build_entry(self, request: ClassRequest, room_id: str,
                     **extra) -> ScheduleEntry:
        room = self.store.get_room(room_id)
        name = room.name if room else self._catalog_room(room_id, "").name
        start, _, end = request.period.partition("-")
        return ScheduleEntry(
            room_id=room_id,
            room_name=name,
            course_name=request.course_name,
            professor=request.professor,
            day=request.day,
            period=request.period,
            start_time=start.strip(),
            end_time=end.strip(),
            department=request.department,
            year=request.year,
            section=request.section,
            semester=self.config.semester,
            **extra,
        )

    def _mark_busy(self, room_id: str, department: str, course: str) -> None:
        if self.store.get_room(room_id) is None:
            room = self._catalog_room(room_id, department)
            self.store.upsert_rooms([room.model_copy(update={
                "status": RoomStatus.BUSY, "current_class": course})])
        else:
            self.store.update_room(room_id, status=RoomStatus.BUSY,
                                   current_class=course)

    def schedule_class(self, request: ClassRequest) -> ScheduleEntry:
        """Legt den Eintrag an und setzt den Raum auf "busy".

        Raises:
            SchedulingError: unvollständige oder ungültige Anfrage
            RoomConflictError: Raum zur Zeit belegt (`.conflicts` enthält die Belegungen)
        """
        self._validate(request)
        entry = self.store.insert_schedule(self._build_entry(request, request.room_id))
        self._mark_busy(request.room_id, request.department, request.course_name)
        logger.info("Eingeplant: %s in %s, %s %s (%s)", entry.course_name,
                    entry.room_id, entry.day, entry.period, entry.group_label)
        return entry

    def resolve_with_alternative(self, request: ClassRequest,
                                 alternative_room_id: str) -> ScheduleEntry:
        """Legt den Eintrag im Ausweichraum an und protokolliert den Konflikt."""
        self._validate(request)
        if alternative_room_id == request.room_id:
            raise SchedulingError("Ausweichraum muss sich vom gewünschten Raum unterscheiden")
        alt = self.store.get_room(alternative_room_id)
        if alt is not None and not alt.is_bookable:
            raise SchedulingError(f"Ausweichraum {alternative_room_id} ist gesperrt")

        conflicts = self.store.find_conflicts(request.room_id, request.day, request.period)
        entry = self.store.insert_schedule(self._build_entry(
            request, alternative_room_id,
            conflict_resolved=True, original_room_id=request.room_id,
        ))

        departments = []
        for d in [c.department for c in conflicts] + [request.department]:
            if d not in departments:
                departments.append(d)
        self.store.insert_conflict(ConflictRecord(
            room_id=request.room_id,
            time_slot=f"{entry.day}_{entry.period}",
            conflicting_departments=departments,
            resolved_with=alternative_room_id,
            status="resolved",
        ))
        self._mark_busy(alternative_room_id, request.department, request.course_name)
        logger.info("Konflikt in %s aufgelöst: %s nach %s verlegt",
                    request.room_id, request.course_name, alternative_room_id)
        return entry
