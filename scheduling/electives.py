"""Wahlfachwahl: jeder Studierende belegt genau ein Wahlfach."""

import logging

from pydantic import BaseModel

from config.schema import CampusConfig, ElectiveDef
from models.elective import ElectiveEnrollment
from scheduling.timetable import SchedulingError
from storage.store import CampusStore, CampusStoreError

logger = logging.getLogger(__name__)


class ElectiveOffer(BaseModel):
    """Wahlfach mit aktueller Belegung."""

    elective: ElectiveDef
    enrolled: int
    available_seats: int
    availability_percentage: int
    availability_level: str


def availability_level(percentage: int) -> str:
    if percentage >= 30:
        return "good"
    if percentage >= 10:
        return "limited"
    return "critical"


class ElectiveService:
    def __init__(self, config: CampusConfig, store: CampusStore) -> None:
        self.config = config
        self.store = store

    def get(self, elective_id: str) -> ElectiveDef:
        for e in self.config.electives.electives:
            if e.id.upper() == elective_id.upper():
                return e
        raise SchedulingError(f"Unbekanntes Wahlfach '{elective_id}'")

    def enrolled_count(self, elective_id: str) -> int:
        """Vorbelegte Plätze plus Einschreibungen im Bestand."""
        elective = self.get(elective_id)
        return elective.enrolled + len(self.store.list_enrollments(elective.id))

    def availability_percentage(self, elective_id: str) -> int:
        elective = self.get(elective_id)
        free = max(0, elective.capacity - self.enrolled_count(elective_id))
        return round(free / elective.capacity * 100)

    def availability_level(self, elective_id: str) -> str:
        return availability_level(self.availability_percentage(elective_id))

    def list_electives(self) -> list[ElectiveOffer]:
        offers = []
        for e in self.config.electives.electives:
            enrolled = self.enrolled_count(e.id)
            pct = self.availability_percentage(e.id)
            offers.append(ElectiveOffer(
                elective=e,
                enrolled=enrolled,
                available_seats=max(0, e.capacity - enrolled),
                availability_percentage=pct,
                availability_level=availability_level(pct),
            ))
        return offers

    def select(self, student_id: str, elective_id: str) -> ElectiveEnrollment:
        """Schreibt ein. Eine frühere Wahl wird ersetzt und gibt ihren Platz frei.

        Raises:
            SchedulingError: unbekanntes oder volles Wahlfach
        """
        if not student_id or not student_id.strip():
            raise SchedulingError("Matrikelnummer fehlt")
        elective = self.get(elective_id)
        current = self.store.get_enrollment(student_id)
        if current is not None and current.elective_id == elective.id.upper():
            return current

        # Die Sperre im Bestand prüft nur eigene Einschreibungen
        remaining = elective.capacity - elective.enrolled
        if remaining <= 0:
            raise SchedulingError(f"Wahlfach {elective.code} ist ausgebucht")
        try:
            enrollment = self.store.save_enrollment(
                ElectiveEnrollment(student_id=student_id.strip(), elective_id=elective.id),
                capacity=remaining,
            )
        except CampusStoreError as e:
            raise SchedulingError(str(e)) from e
        logger.info("Student %s wählt %s (vorher: %s)", student_id, elective.code,
                    current.elective_id if current else "-")
        return enrollment
