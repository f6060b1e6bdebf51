"""Tests für den Datenbestand (CampusStore) und die Echtzeit-Kanäle."""

import threading
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

from models.elective import ElectiveEnrollment
from models.records import ConflictRecord, DepartmentTimetable, TimetableFile
from models.room import Room, RoomStatus
from models.schedule import ScheduleEntry
from storage.events import CHANGES_CHANNEL, EventBus
from storage.store import (
    CampusStore,
    CampusStoreError,
    DuplicateScheduleError,
    RecordNotFoundError,
    RoomConflictError,
)


def _entry(**kw) -> ScheduleEntry:
    data = dict(room_id="101", room_name="Room 101", course_name="Data Structures",
                day="monday", period="9:30-10:20", department="CSE")
    data.update(kw)
    return ScheduleEntry(**data)


# ─── STUNDENPLANEINTRÄGE ──────────────────────────────────────────────────────

class TestSchedules:
    def test_insert_and_get(self):
        store = CampusStore()
        entry = store.insert_schedule(_entry())
        assert store.get_schedule(entry.id).course_name == "Data Structures"
        assert len(store.list_schedules(day="Monday")) == 1

    def test_get_unknown_raises(self):
        with pytest.raises(RecordNotFoundError):
            CampusStore().get_schedule("nope")

    def test_duplicate_rejected(self):
        store = CampusStore()
        store.insert_schedule(_entry())
        with pytest.raises(DuplicateScheduleError):
            store.insert_schedule(_entry())

    def test_overlap_rejected_with_details(self):
        """Überschneidende Belegung desselben Raums → RoomConflictError."""
        store = CampusStore()
        first = store.insert_schedule(_entry())
        with pytest.raises(RoomConflictError) as exc:
            store.insert_schedule(_entry(course_name="Networks", department="ECE",
                                         period="10:00-10:50"))
        assert [c.id for c in exc.value.conflicts] == [first.id]

    def test_adjacent_periods_no_conflict(self):
        store = CampusStore()
        store.insert_schedule(_entry())
        store.insert_schedule(_entry(course_name="Networks", period="10:20-11:10"))
        assert len(store.list_schedules()) == 2

    def test_other_room_or_day_no_conflict(self):
        store = CampusStore()
        store.insert_schedule(_entry())
        store.insert_schedule(_entry(course_name="OS", room_id="102"))
        store.insert_schedule(_entry(course_name="OS", day="tuesday"))
        assert len(store.list_schedules()) == 3

    def test_conflict_check_can_be_disabled(self):
        store = CampusStore()
        store.insert_schedule(_entry())
        store.insert_schedule(_entry(course_name="Networks"), check_conflicts=False)
        assert len(store.find_conflicts("101", "monday", "9:30-10:20")) == 2

    def test_inactive_entries_do_not_conflict(self):
        store = CampusStore()
        first = store.insert_schedule(_entry())
        assert store.deactivate_schedules([first.id], reason="ersetzt") == 1
        store.insert_schedule(_entry(course_name="Networks"))
        old = store.get_schedule(first.id)
        assert old.is_active is False
        assert old.cancellation_reason == "ersetzt"

    def test_afternoon_conflict_detected(self):
        """12:50-1:40 und 1:00-2:00 überschneiden sich (Nachmittag)."""
        store = CampusStore()
        store.insert_schedule(_entry(period="12:50-1:40"))
        assert store.find_conflicts("101", "monday", "1:00-2:00")
        assert not store.find_conflicts("101", "monday", "1:40-2:30")

    def test_concurrent_inserts_do_not_double_book(self):
        """Gleichzeitige Einträge in denselben Raum: genau einer gewinnt."""
        store = CampusStore()
        barrier = threading.Barrier(8)
        results: list[str] = []

        def worker(i: int) -> None:
            entry = _entry(course_name=f"Kurs {i}")
            barrier.wait()
            try:
                store.insert_schedule(entry)
                results.append("ok")
            except RoomConflictError:
                results.append("conflict")

        threads = [threading.Thread(target=worker, args=(i,)) for i in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert results.count("ok") == 1
        assert results.count("conflict") == 7
        assert len(store.list_schedules(room_id="101")) == 1

    def test_list_filters(self):
        store = CampusStore()
        store.insert_schedule(_entry())
        store.insert_schedule(_entry(room_id="102", course_name="OS", year="2", section="B"))
        assert len(store.list_schedules(year="2")) == 1
        assert len(store.list_schedules(section="B", room_id="102")) == 1
        assert store.list_schedules(department="ECE") == []

    def test_returned_records_are_copies(self):
        store = CampusStore()
        entry = store.insert_schedule(_entry())
        entry.course_name = "verändert"
        assert store.get_schedule(entry.id).course_name == "Data Structures"


# ─── RÄUME ────────────────────────────────────────────────────────────────────

class TestRooms:
    def test_upsert_keyed_by_room_and_department(self):
        store = CampusStore()
        store.upsert_rooms([Room(id="101", name="Room 101", department="CSE"),
                            Room(id="101", name="Room 101", department="ECE")])
        store.upsert_rooms([Room(id="101", name="Room 101 neu", department="CSE")])
        rooms = store.list_rooms()
        assert len(rooms) == 2
        assert store.get_room("101", "CSE").name == "Room 101 neu"

    def test_update_room_all_departments(self):
        store = CampusStore()
        store.upsert_rooms([Room(id="101", name="Room 101", department="CSE"),
                            Room(id="101", name="Room 101", department="ECE")])
        updated = store.update_room("101", status=RoomStatus.BUSY, current_class="OS")
        assert len(updated) == 2
        assert len(store.list_rooms(status=RoomStatus.BUSY)) == 2

    def test_update_unknown_room_raises(self):
        with pytest.raises(RecordNotFoundError):
            CampusStore().update_room("X", status=RoomStatus.FREE)


# ─── DATEIEN, ÜBERSICHTEN, KONFLIKTE, WAHLFÄCHER ──────────────────────────────

class TestRecords:
    def test_files_newest_first_and_delete(self):
        store = CampusStore()
        now = datetime.now(timezone.utc)
        old = store.insert_file(TimetableFile(filename="alt.csv", department="CSE",
                                              semester="Fall 2024",
                                              uploaded_at=now - timedelta(days=1)))
        new = store.insert_file(TimetableFile(filename="neu.csv", department="CSE",
                                              semester="Fall 2024", uploaded_at=now))
        assert [f.id for f in store.list_files()] == [new.id, old.id]
        store.delete_file(old.id)
        assert [f.filename for f in store.list_files()] == ["neu.csv"]
        with pytest.raises(RecordNotFoundError):
            store.delete_file(old.id)

    def test_department_timetable_upsert(self):
        store = CampusStore()
        store.upsert_department_timetable(DepartmentTimetable(
            department="CSE", semester="Fall 2024", total_schedules=3))
        store.upsert_department_timetable(DepartmentTimetable(
            department="CSE", semester="Fall 2024", total_schedules=7))
        summaries = store.list_department_timetables()
        assert len(summaries) == 1
        assert summaries[0].total_schedules == 7

    def test_conflicts_by_status(self):
        store = CampusStore()
        store.insert_conflict(ConflictRecord(room_id="101", time_slot="monday_9:30-10:20"))
        store.insert_conflict(ConflictRecord(room_id="102", time_slot="monday_9:30-10:20",
                                             status="resolved", resolved_with="103"))
        assert len(store.list_conflicts()) == 2
        assert [c.room_id for c in store.list_conflicts(status="open")] == ["101"]

    def test_enrollment_replaces_previous_choice(self):
        store = CampusStore()
        store.save_enrollment(ElectiveEnrollment(student_id="S1", elective_id="nlp"))
        store.save_enrollment(ElectiveEnrollment(student_id="S1", elective_id="CC"))
        assert store.get_enrollment("S1").elective_id == "CC"
        assert store.list_enrollments("NLP") == []

    def test_enrollment_capacity(self):
        store = CampusStore()
        store.save_enrollment(ElectiveEnrollment(student_id="S1", elective_id="CC"), capacity=1)
        with pytest.raises(CampusStoreError, match="ausgebucht"):
            store.save_enrollment(ElectiveEnrollment(student_id="S2", elective_id="CC"),
                                  capacity=1)


# ─── PERSISTENZ ───────────────────────────────────────────────────────────────

class TestPersistence:
    def test_roundtrip(self, tmp_path: Path):
        path = tmp_path / "campus.json"
        store = CampusStore(path)
        entry = store.insert_schedule(_entry())
        store.upsert_rooms([Room(id="101", name="Room 101", department="CSE")])
        assert path.exists()

        reloaded = CampusStore(path)
        assert reloaded.get_schedule(entry.id).period == "9:30-10:20"
        assert reloaded.get_room("101").name == "Room 101"
        assert reloaded.table_counts()["schedules"] == 1

    def test_no_tmp_file_left(self, tmp_path: Path):
        path = tmp_path / "campus.json"
        CampusStore(path).insert_schedule(_entry())
        assert [p.name for p in tmp_path.iterdir()] == ["campus.json"]

    def test_failed_write_restores_memory(self, tmp_path: Path, monkeypatch):
        """Schreibfehler → Speicher entspricht wieder der Datei."""
        path = tmp_path / "campus.json"
        store = CampusStore(path)
        first = store.insert_schedule(_entry())

        def fail(src, dst):
            raise OSError("Datenträger voll")

        monkeypatch.setattr("storage.store.os.replace", fail)
        with pytest.raises(CampusStoreError, match="nicht gespeichert"):
            store.upsert_rooms([Room(id="101", name="Room 101")])
        assert store.list_rooms() == []
        assert [s.id for s in store.list_schedules()] == [first.id]
        assert [p.name for p in tmp_path.iterdir()] == ["campus.json"]
        monkeypatch.undo()

        assert CampusStore(path).table_counts()["rooms"] == 0

    def test_corrupt_file_raises(self, tmp_path: Path):
        path = tmp_path / "campus.json"
        path.write_text("{kaputt", encoding="utf-8")
        with pytest.raises(CampusStoreError):
            CampusStore(path)

    def test_legacy_available_status(self, tmp_path: Path):
        path = tmp_path / "campus.json"
        path.write_text(
            '{"rooms": [{"id": "101", "name": "Room 101", "status": "available"}]}',
            encoding="utf-8",
        )
        assert CampusStore(path).get_room("101").status == RoomStatus.FREE


# ─── EVENT-BUS ────────────────────────────────────────────────────────────────

class TestEventBus:
    def test_writes_publish_changes(self):
        bus = EventBus()
        received = []
        bus.subscribe(CHANGES_CHANNEL, received.append)
        store = CampusStore(bus=bus)
        store.insert_schedule(_entry())
        store.upsert_rooms([Room(id="101", name="Room 101")])

        assert [(m.event, m.payload["table"]) for m in received] == [
            ("INSERT", "schedules"), ("INSERT", "rooms"),
        ]
        assert received[0].payload["record"]["room_id"] == "101"

    def test_failing_subscriber_does_not_stop_delivery(self):
        bus = EventBus()
        received = []

        def broken(msg):
            raise RuntimeError("kaputt")

        bus.subscribe("kanal", broken)
        bus.subscribe("kanal", received.append)
        assert bus.publish("kanal", "test", {"x": 1}) == 1
        assert received[0].payload == {"x": 1}

    def test_unsubscribe(self):
        bus = EventBus()
        received = []
        unsubscribe = bus.subscribe("kanal", received.append)
        assert bus.subscriber_count("kanal") == 1
        unsubscribe()
        assert bus.publish("kanal", "test") == 0
        assert received == []
