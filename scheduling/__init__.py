"""Stundenplanung: manuelle Einträge, Absagen, Wahlfächer."""

from .timetable import ClassRequest, SchedulingError, TimetableBuilder
from .cancellation import QUICK_CANCEL_REASON, CancellationResult, CancellationService
from .electives import ElectiveOffer, ElectiveService, availability_level

__all__ = [
    "ClassRequest",
    "SchedulingError",
    "TimetableBuilder",
    "QUICK_CANCEL_REASON",
    "CancellationResult",
    "CancellationService",
    "ElectiveOffer",
    "ElectiveService",
    "availability_level",
]
