"""Raumverfügbarkeit: Tagesübersicht für Studierende, Raumliste für die Verwaltung."""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel

from config.schema import CampusConfig
from models.period import PeriodFormatError
from models.room import Room, RoomStatus
from models.schedule import ScheduleEntry
from storage.store import CampusStore

_WEEKDAYS = ["monday", "tuesday", "wednesday", "thursday", "friday",
             "saturday", "sunday"]


# ─── Modelle ──────────────────────────────────────────────────────────────────

class RoomDayStatus(BaseModel):
    """Belegung eines Raums an einem Tag."""

    room: Room
    schedules: list[ScheduleEntry]
    current: Optional[ScheduleEntry] = None
    next: Optional[ScheduleEntry] = None
    is_occupied: bool = False
    availability_text: str = ""

    @property
    def schedule_count(self) -> int:
        return len(self.schedules)


class RoomFilter(BaseModel):
    building: Optional[str] = None
    floor: Optional[int] = None
    type: Optional[str] = None
    min_capacity: Optional[int] = None
    max_capacity: Optional[int] = None
    # Teilstring in Name, Kennung oder Typ
    search: Optional[str] = None
    only_available: bool = False


class AvailabilitySummary(BaseModel):
    total: int
    with_schedules: int
    occupied: int
    available: int


class AdminStats(BaseModel):
    total_rooms: int
    free_rooms: int
    occupied_rooms: int
    active_schedules: int
    todays_schedules: int


def _unique_rooms(rooms: list[Room]) -> list[Room]:
    """Ein Datensatz je Raum-Kennung (Räume liegen pro Fachbereich vor)."""
    seen: dict[str, Room] = {}
    for r in rooms:
        seen.setdefault(r.id, r)
    return list(seen.values())


# ─── Studierenden-Ansicht ─────────────────────────────────────────────────────

class RoomAvailabilityView:
    """Welche Räume sind wann frei?"""

    def __init__(self, config: CampusConfig, store: CampusStore) -> None:
        self.config = config
        self.store = store
        self._day_start = config.time_grid.day_start_hour

    def default_day(self, now: Optional[datetime] = None) -> str:
        """Heutiger Wochentag; außerhalb der Übersichtstage (Sonntag) → erster Tag."""
        now = now or datetime.now()
        day = _WEEKDAYS[now.weekday()]
        days = self.config.time_grid.all_days
        return day if day in days else days[0]

    def _start(self, entry: ScheduleEntry) -> int:
        try:
            return entry.period_range(self._day_start).start_minutes
        except PeriodFormatError:
            return 24 * 60

    def _rooms(self) -> list[Room]:
        rooms = _unique_rooms(self.store.list_rooms())
        known = {r.id for r in rooms}
        # Räume, die nur in Einträgen vorkommen
        for s in self.store.list_schedules(is_active=True):
            if s.room_id not in known:
                known.add(s.room_id)
                rooms.append(Room(id=s.room_id, name=s.room_name or f"Room {s.room_id}"))
        return sorted(rooms, key=lambda r: r.id)

    def day_overview(self, day: Optional[str] = None,
                     now: Optional[datetime] = None) -> list[RoomDayStatus]:
        """Belegung aller Räume am Tag.

        Aktuelle Veranstaltung nur, wenn `day` der heutige Tag ist;
        sonst ist die erste Veranstaltung des Tages die nächste.
        """
        now = now or datetime.now()
        day = (day or self.default_day(now)).lower()
        is_today = day == _WEEKDAYS[now.weekday()]
        minute = now.hour * 60 + now.minute

        by_room: dict[str, list[ScheduleEntry]] = {}
        for s in self.store.list_schedules(day=day, is_active=True):
            by_room.setdefault(s.room_id, []).append(s)

        result = []
        for room in self._rooms():
            schedules = sorted(by_room.get(room.id, []), key=self._start)
            current = nxt = None
            for s in schedules:
                try:
                    rng = s.period_range(self._day_start)
                except PeriodFormatError:
                    continue
                if is_today and rng.contains(minute):
                    current = s
                elif nxt is None and (not is_today or rng.start_minutes > minute):
                    nxt = s

            if room.status == RoomStatus.CANCELLED:
                text = f"Gesperrt: {room.reason}" if room.reason else "Gesperrt"
            elif current is not None:
                text = f"Belegt bis {current.period_range(self._day_start).end_label}"
            elif nxt is not None:
                text = f"Frei bis {nxt.period_range(self._day_start).start_label}"
            else:
                text = "Heute frei"

            result.append(RoomDayStatus(
                room=room,
                schedules=schedules,
                current=current,
                next=nxt,
                is_occupied=(current is not None
                             or room.status in (RoomStatus.OCCUPIED, RoomStatus.CANCELLED)),
                availability_text=text,
            ))
        return result

    def filter_rooms(self, overview: list[RoomDayStatus],
                     flt: RoomFilter) -> list[RoomDayStatus]:
        result = []
        search = flt.search.lower() if flt.search else None
        for item in overview:
            r = item.room
            if flt.building and r.building != flt.building:
                continue
            if flt.floor is not None and r.floor != flt.floor:
                continue
            if flt.type and r.type != flt.type:
                continue
            if flt.min_capacity is not None and r.capacity < flt.min_capacity:
                continue
            if flt.max_capacity is not None and r.capacity > flt.max_capacity:
                continue
            if search and not any(search in v.lower() for v in (r.name, r.id, r.type)):
                continue
            if flt.only_available and item.is_occupied:
                continue
            result.append(item)
        return result

    def summary(self, overview: list[RoomDayStatus]) -> AvailabilitySummary:
        occupied = sum(1 for i in overview if i.is_occupied)
        return AvailabilitySummary(
            total=len(overview),
            with_schedules=sum(1 for i in overview if i.schedules),
            occupied=occupied,
            available=len(overview) - occupied,
        )

    def room_details(self, room_id: str) -> list[ScheduleEntry]:
        """Alle aktiven Einträge des Raums, nach Wochentag und Beginn sortiert."""
        order = {d: i for i, d in enumerate(_WEEKDAYS)}
        return sorted(
            self.store.list_schedules(room_id=room_id, is_active=True),
            key=lambda s: (order.get(s.day, len(order)), self._start(s)),
        )


# ─── Verwaltungs-Ansicht ──────────────────────────────────────────────────────

class AdminRoomView:
    """Raumliste mit Filtern und Kennzahlen für die Verwaltung."""

    def __init__(self, config: CampusConfig, store: CampusStore) -> None:
        self.config = config
        self.store = store

    def rooms(self) -> list[Room]:
        return _unique_rooms(self.store.list_rooms())

    def filter_rooms(
        self,
        search: Optional[str] = None,
        building: Optional[str] = None,
        room_type: Optional[str] = None,
        status: Optional[RoomStatus] = None,
        min_capacity: Optional[int] = None,
    ) -> list[Room]:
        search = search.lower() if search else None
        return [
            r for r in self.rooms()
            if (not search or any(search in v.lower() for v in (r.name, r.building, r.type)))
            and (not building or r.building == building)
            and (not room_type or r.type == room_type)
            and (status is None or r.status == RoomStatus(status))
            and (min_capacity is None or r.capacity >= min_capacity)
        ]

    def search_schedules(self, query: str) -> list[ScheduleEntry]:
        """Aktive Einträge, deren Kurs, Raumname oder Dozent `query` enthält."""
        q = query.lower()
        return [
            s for s in self.store.list_schedules(is_active=True)
            if q in s.course_name.lower() or q in s.room_name.lower()
            or q in s.professor.lower()
        ]

    def buildings(self) -> list[str]:
        return sorted({r.building for r in self.rooms()})

    def room_types(self) -> list[str]:
        return sorted({r.type for r in self.rooms()})

    def stats(self, now: Optional[datetime] = None) -> AdminStats:
        now = now or datetime.now()
        rooms = self.rooms()
        active = self.store.list_schedules(is_active=True)
        today = _WEEKDAYS[now.weekday()]
        return AdminStats(
            total_rooms=len(rooms),
            free_rooms=sum(1 for r in rooms if r.status == RoomStatus.FREE),
            occupied_rooms=sum(1 for r in rooms
                               if r.status in (RoomStatus.BUSY, RoomStatus.OCCUPIED)),
            active_schedules=len(active),
            todays_schedules=sum(1 for s in active if s.day == today),
        )
