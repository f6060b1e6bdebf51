from models.period import Period, PeriodFormatError
from models.room import Room, RoomStatus
from models.schedule import ScheduleEntry
from models.records import ConflictRecord, DepartmentTimetable, TimetableFile
from models.elective import ElectiveEnrollment

__all__ = [
    "Period",
    "PeriodFormatError",
    "Room",
    "RoomStatus",
    "ScheduleEntry",
    "ConflictRecord",
    "DepartmentTimetable",
    "TimetableFile",
    "ElectiveEnrollment",
]
