"""Absagen von Veranstaltungen und Raumstatus-Verwaltung."""

import logging
from datetime import datetime, timezone
from typing import Optional

from pydantic import BaseModel

from models.room import Room, RoomStatus
from models.schedule import ScheduleEntry
from scheduling.timetable import SchedulingError
from storage.store import CampusStore, RecordNotFoundError

logger = logging.getLogger(__name__)

QUICK_CANCEL_REASON = "Schnellabsage durch die Verwaltung"

_WEEKDAYS = ["monday", "tuesday", "wednesday", "thursday", "friday",
             "saturday", "sunday"]


class CancellationResult(BaseModel):
    rooms: list[Room]
    cancelled_schedules: list[ScheduleEntry] = []


def _dedupe(rooms: list[Room]) -> list[Room]:
    seen: set[str] = set()
    result = []
    for r in rooms:
        if r.id not in seen:
            seen.add(r.id)
            result.append(r)
    return result


class CancellationService:
    """Sagt Veranstaltungen ab und setzt Raumstatus."""

    def __init__(self, store: CampusStore) -> None:
        self.store = store

    def cancel_room_class(
        self,
        room_id: str,
        reason: str,
        day: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> CancellationResult:
        """Sperrt den Raum mit Begründung.

        Läuft dort gerade eine Veranstaltung, werden ihre aktiven Einträge
        am Tag (Standard: heute) abgesagt.
        """
        if not reason or not reason.strip():
            raise SchedulingError("Bitte einen Grund für die Absage angeben")
        room = self.store.get_room(room_id)
        if room is None:
            raise RecordNotFoundError(f"Raum '{room_id}' nicht gefunden")

        now = now or datetime.now(timezone.utc)
        day = (day or _WEEKDAYS[now.weekday()]).lower()
        cancelled = []
        if room.current_class:
            for entry in self.store.list_schedules(room_id=room_id, day=day,
                                                   is_active=True):
                if entry.course_name != room.current_class:
                    continue
                cancelled.append(self.store.update_schedule(
                    entry.id, is_active=False, cancelled=True,
                    cancellation_reason=reason.strip(), cancelled_at=now,
                ))

        rooms = self.store.update_room(room_id, status=RoomStatus.CANCELLED,
                                       reason=reason.strip(), cancelled_at=now)
        logger.info("Raum %s gesperrt: %s (%d Einträge abgesagt)",
                    room_id, reason.strip(), len(cancelled))
        return CancellationResult(rooms=rooms, cancelled_schedules=cancelled)

    def quick_cancel(self, schedule_id: str) -> ScheduleEntry:
        """Sagt einen einzelnen Eintrag ohne Rückfrage ab."""
        entry = self.store.get_schedule(schedule_id)
        if not entry.is_active:
            raise SchedulingError(f"Eintrag {schedule_id} ist bereits abgesagt")
        entry = self.store.update_schedule(
            schedule_id, is_active=False, cancelled=True,
            cancellation_reason=QUICK_CANCEL_REASON,
            cancelled_at=datetime.now(timezone.utc),
        )
        room = self.store.get_room(entry.room_id)
        if room is not None and room.current_class == entry.course_name:
            self.update_room_status(entry.room_id, RoomStatus.FREE)
        return entry

    def update_room_status(self, room_id: str, status: RoomStatus) -> list[Room]:
        """Setzt den Status; "free" hebt Belegung und Sperre auf."""
        status = RoomStatus(status)
        changes: dict = {"status": status}
        if status == RoomStatus.FREE:
            changes.update(current_class=None, reason=None, cancelled_at=None)
        return self.store.update_room(room_id, **changes)

    def busy_rooms(self) -> list[Room]:
        return _dedupe([r for r in self.store.list_rooms()
                        if r.status in (RoomStatus.BUSY, RoomStatus.OCCUPIED)])

    def cancelled_rooms(self) -> list[Room]:
        return _dedupe(self.store.list_rooms(status=RoomStatus.CANCELLED))
