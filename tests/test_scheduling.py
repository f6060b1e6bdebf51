"""Tests für manuelle Stundenplanung, Absagen und Wahlfächer."""

from datetime import datetime

import pytest

from config.defaults import default_campus_config
from config.schema import ElectiveConfig, ElectiveDef
from models.room import Room, RoomStatus
from scheduling import (
    QUICK_CANCEL_REASON,
    CancellationService,
    ClassRequest,
    ElectiveService,
    SchedulingError,
    TimetableBuilder,
    availability_level,
)
from storage.store import CampusStore, RecordNotFoundError, RoomConflictError

# 2. September 2024 ist ein Montag
MONDAY = datetime(2024, 9, 2, 10, 0)


def _request(**kw) -> ClassRequest:
    data = dict(room_id="101", course_name="Data Structures", professor="Dr. Rao",
                day="monday", period="9:30-10:20")
    data.update(kw)
    return ClassRequest(**data)


@pytest.fixture
def config():
    return default_campus_config()


@pytest.fixture
def store():
    return CampusStore()


@pytest.fixture
def builder(config, store):
    return TimetableBuilder(config, store)


# ─── STUNDENPLAN ──────────────────────────────────────────────────────────────

class TestTimetableBuilder:
    def test_schedule_class_marks_room_busy(self, builder, store):
        entry = builder.schedule_class(_request())
        assert entry.room_name == "Room 101"
        assert entry.semester == "Fall 2024"
        room = store.get_room("101")
        assert room.status == RoomStatus.BUSY
        assert room.current_class == "Data Structures"
        assert room.capacity == 40

    def test_conflict_raises_with_details(self, builder):
        first = builder.schedule_class(_request())
        with pytest.raises(RoomConflictError) as exc:
            builder.schedule_class(_request(course_name="Networks", department="ECE",
                                            period="10:00-10:50"))
        assert [c.id for c in exc.value.conflicts] == [first.id]

    def test_conflict_across_departments(self, builder):
        builder.schedule_class(_request(department="ECE"))
        conflicts = builder.check_room_conflicts("101", "Monday", "9:00-10:00")
        assert [c.department for c in conflicts] == ["ECE"]

    @pytest.mark.parametrize("kw,msg", [
        ({"professor": ""}, "Raum, Kurs und Dozent"),
        ({"room_id": ""}, "Raum, Kurs und Dozent"),
        ({"day": "sunday"}, "Unbekannter Tag"),
        ({"period": "9:30"}, "Periodenformat"),
    ])
    def test_invalid_request(self, builder, kw, msg):
        with pytest.raises(SchedulingError, match=msg):
            builder.schedule_class(_request(**kw))

    def test_cancelled_room_not_schedulable(self, builder, store):
        store.upsert_rooms([Room(id="101", name="Room 101", status=RoomStatus.CANCELLED,
                                 reason="Renovierung")])
        with pytest.raises(SchedulingError, match="gesperrt"):
            builder.schedule_class(_request())

    def test_find_available_rooms(self, builder, store, config):
        builder.schedule_class(_request())
        store.upsert_rooms([Room(id="102", name="Room 102", status=RoomStatus.CANCELLED)])
        free = {r.id for r in builder.find_available_rooms("monday", "9:30-10:20")}
        assert "101" not in free
        assert "102" not in free
        assert "103" in free
        assert len(free) == len(config.room_catalog.rooms) - 2

    def test_find_available_rooms_later_period(self, builder):
        builder.schedule_class(_request())
        # 101 ist belegt (busy), aber um 10:20 zeitlich frei
        free = {r.id for r in builder.find_available_rooms("monday", "10:20-11:10")}
        assert "101" in free

    def test_resolve_with_alternative(self, builder, store):
        builder.schedule_class(_request(department="ECE", course_name="Signals"))
        entry = builder.resolve_with_alternative(_request(), "102")
        assert entry.room_id == "102"
        assert entry.conflict_resolved is True
        assert entry.original_room_id == "101"

        [record] = store.list_conflicts()
        assert record.status == "resolved"
        assert record.resolved_with == "102"
        assert record.conflicting_departments == ["ECE", "CSE"]
        assert record.time_slot == "monday_9:30-10:20"
        assert store.get_room("102").status == RoomStatus.BUSY

    def test_resolve_with_same_room_rejected(self, builder):
        with pytest.raises(SchedulingError):
            builder.resolve_with_alternative(_request(), "101")

    def test_grid(self, builder, config):
        builder.schedule_class(_request())
        builder.schedule_class(_request(room_id="102", course_name="OS",
                                        day="tuesday", period="1:40-2:30"))
        builder.schedule_class(_request(room_id="103", course_name="Andere Gruppe",
                                        section="B"))
        grid = builder.grid("CSE", "3", "A")
        assert set(grid) == set(config.time_grid.day_names)
        assert grid["monday"]["9:30-10:20"].course_name == "Data Structures"
        assert grid["tuesday"]["1:40-2:30"].course_name == "OS"
        assert grid["monday"]["8:40-9:30"] is None
        filled = [e for day in grid.values() for e in day.values() if e]
        assert len(filled) == 2

    def test_grid_places_odd_period_by_start(self, builder):
        builder.schedule_class(_request(period="9:40-10:20"))
        grid = builder.grid("CSE", "3", "A")
        assert grid["monday"]["9:30-10:20"].period == "9:40-10:20"


# ─── ABSAGEN ──────────────────────────────────────────────────────────────────

class TestCancellation:
    def test_reason_required(self, builder, store):
        builder.schedule_class(_request())
        with pytest.raises(SchedulingError, match="Grund"):
            CancellationService(store).cancel_room_class("101", "  ")

    def test_unknown_room(self, store):
        with pytest.raises(RecordNotFoundError):
            CancellationService(store).cancel_room_class("X", "Stromausfall")

    def test_cancel_room_cancels_current_class(self, builder, store):
        entry = builder.schedule_class(_request())
        other_day = builder.schedule_class(_request(day="tuesday"))

        result = CancellationService(store).cancel_room_class(
            "101", "Stromausfall", now=MONDAY)

        assert [s.id for s in result.cancelled_schedules] == [entry.id]
        cancelled = store.get_schedule(entry.id)
        assert cancelled.is_active is False
        assert cancelled.cancelled is True
        assert cancelled.cancellation_reason == "Stromausfall"
        assert store.get_schedule(other_day.id).is_active is True

        room = store.get_room("101")
        assert room.status == RoomStatus.CANCELLED
        assert room.reason == "Stromausfall"
        assert room.cancelled_at is not None

    def test_quick_cancel(self, builder, store):
        entry = builder.schedule_class(_request())
        service = CancellationService(store)
        cancelled = service.quick_cancel(entry.id)
        assert cancelled.cancellation_reason == QUICK_CANCEL_REASON
        assert cancelled.is_active is False
        assert store.get_room("101").status == RoomStatus.FREE
        with pytest.raises(SchedulingError):
            service.quick_cancel(entry.id)

    def test_update_room_status_free_clears(self, builder, store):
        builder.schedule_class(_request())
        service = CancellationService(store)
        service.cancel_room_class("101", "Prüfung", now=MONDAY)
        service.update_room_status("101", RoomStatus.FREE)
        room = store.get_room("101")
        assert room.status == RoomStatus.FREE
        assert room.reason is None
        assert room.current_class is None

    def test_busy_and_cancelled_lists_unique(self, store):
        store.upsert_rooms([
            Room(id="101", name="Room 101", department="CSE", status=RoomStatus.BUSY),
            Room(id="101", name="Room 101", department="ECE", status=RoomStatus.BUSY),
            Room(id="102", name="Room 102", status=RoomStatus.OCCUPIED),
            Room(id="103", name="Room 103", status=RoomStatus.CANCELLED),
        ])
        service = CancellationService(store)
        assert [r.id for r in service.busy_rooms()] == ["101", "102"]
        assert [r.id for r in service.cancelled_rooms()] == ["103"]


# ─── WAHLFÄCHER ───────────────────────────────────────────────────────────────

class TestElectives:
    def test_availability_levels(self):
        assert availability_level(30) == "good"
        assert availability_level(29) == "limited"
        assert availability_level(10) == "limited"
        assert availability_level(9) == "critical"

    def test_default_offer(self, config, store):
        service = ElectiveService(config, store)
        offers = {o.elective.id: o for o in service.list_electives()}
        assert len(offers) == 6
        # STT: 30 Plätze, 25 belegt → 17 %
        assert offers["STT"].availability_percentage == 17
        assert offers["STT"].availability_level == "limited"
        assert offers["STT"].available_seats == 5
        # NLP: 35 Plätze, 32 belegt → 9 %
        assert offers["NLP"].availability_level == "critical"

    def test_select_counts_seat(self, config, store):
        service = ElectiveService(config, store)
        service.select("S1", "stt")
        assert service.enrolled_count("STT") == 26

    def test_reselect_moves_seat(self, config, store):
        service = ElectiveService(config, store)
        service.select("S1", "STT")
        service.select("S1", "CC")
        assert service.enrolled_count("STT") == 25
        assert service.enrolled_count("CC") == 21
        assert store.get_enrollment("S1").elective_id == "CC"

    def test_same_choice_twice_is_noop(self, config, store):
        service = ElectiveService(config, store)
        first = service.select("S1", "STT")
        assert service.select("S1", "STT").enrolled_at == first.enrolled_at
        assert service.enrolled_count("STT") == 26

    def test_full_elective(self, config, store):
        config = config.model_copy(update={"electives": ElectiveConfig(electives=[
            ElectiveDef(id="ML", code="CS499", name="Machine Learning",
                        professor="Dr. Ng", room="Lab 1", capacity=2),
        ])})
        service = ElectiveService(config, store)
        service.select("S1", "ML")
        service.select("S2", "ML")
        assert service.availability_level("ML") == "critical"
        with pytest.raises(SchedulingError, match="ausgebucht"):
            service.select("S3", "ML")

    def test_unknown_elective(self, config, store):
        with pytest.raises(SchedulingError, match="Unbekanntes Wahlfach"):
            ElectiveService(config, store).select("S1", "XYZ")
