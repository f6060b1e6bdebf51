"""Verwaltung hochgeladener Stundenplandateien."""

import logging
from collections import Counter

from pydantic import BaseModel

from models.records import TimetableFile
from storage.store import CampusStore, CampusStoreError

logger = logging.getLogger(__name__)


class DepartmentStats(BaseModel):
    department: str
    active_schedules: int = 0
    files: int = 0


def list_uploaded_files(store: CampusStore) -> list[TimetableFile]:
    """Alle hochgeladenen Dateien, neueste zuerst."""
    return store.list_files()


def delete_uploaded_file(store: CampusStore, file_id: str,
                         confirmation: str) -> TimetableFile:
    """Löscht den Dateieintrag. `confirmation` muss dem Dateinamen entsprechen.

    Die importierten Stundenplaneinträge bleiben erhalten.
    """
    info = store.get_file(file_id)
    if confirmation != info.filename:
        raise CampusStoreError(
            f"Bestätigung stimmt nicht mit dem Dateinamen überein: '{info.filename}'")
    removed = store.delete_file(file_id)
    logger.info("Datei gelöscht: %s (%s)", removed.filename, removed.department)
    return removed


def department_stats(store: CampusStore,
                     departments: list[str]) -> list[DepartmentStats]:
    """Aktive Einträge und Dateien je Fachbereich.

    Fachbereiche aus dem Bestand, die nicht in `departments` stehen,
    werden hinten angehängt.
    """
    schedules = Counter(s.department for s in store.list_schedules(is_active=True))
    files = Counter(f.department for f in store.list_files())
    extra = sorted((set(schedules) | set(files)) - set(departments))
    return [
        DepartmentStats(department=d, active_schedules=schedules[d], files=files[d])
        for d in list(departments) + extra
    ]
