"""Stundenplan-Import aus CSV- und Excel-Dateien.

Ablauf:  Datei lesen → Spalten prüfen → Zeilen validieren (Fehler, Warnungen,
Raumkonflikte) → Konflikte auflösen → Einträge hochladen → Räume und
Fachbereichs-Übersicht aktualisieren → Datei protokollieren → Kanal
`data-import-updates` benachrichtigen.
"""

import csv
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from pydantic import BaseModel

from config.schema import CampusConfig, ConflictResolution
from models.period import Period, PeriodFormatError
from models.records import ConflictRecord, DepartmentTimetable, TimetableFile
from models.room import Room, RoomStatus
from models.schedule import ScheduleEntry
from storage.events import IMPORT_CHANNEL
from storage.store import (
    CampusStore,
    CampusStoreError,
    DuplicateScheduleError,
    RoomConflictError,
)

logger = logging.getLogger(__name__)

class TimetableImportError(Exception):
    """Fehler beim Stundenplan-Import."""


# ─── Ergebnis-Modelle ─────────────────────────────────────────────────────────

class CsvRow(BaseModel):
    """Eine Datenzeile der Importdatei (Zeile 1 = Header)."""

    row_number: int
    values: dict[str, str]

    def get(self, column: str) -> str:
        return self.values.get(column, "") or ""


class RoomConflict(BaseModel):
    """Zeile belegt einen Raum, der zur selben Zeit schon belegt ist."""

    row: int
    room: str
    day: str
    new_period: str
    conflict_with: str            # Kursname des bestehenden Eintrags
    conflict_period: str
    conflict_department: str = ""
    # Gesetzt bei Konflikt mit dem Datenbestand
    existing_schedule_id: Optional[str] = None
    # Gesetzt bei Konflikt mit einer früheren Zeile derselben Datei
    conflict_row: Optional[int] = None


class ValidationResult(BaseModel):
    """Ergebnis der Zeilenvalidierung."""

    errors: list[str]
    warnings: list[str]
    valid_rows: list[CsvRow]
    room_conflicts: list[RoomConflict]
    total_rows: int

    @property
    def has_errors(self) -> bool:
        return bool(self.errors)

    def invalid_row_numbers(self) -> set[int]:
        valid = {r.row_number for r in self.valid_rows}
        return {n for n in range(2, self.total_rows + 2) if n not in valid}

    def print_rich(self) -> None:
        """Gibt den Validierungsbericht formatiert über Rich aus."""
        from rich.console import Console
        from rich.panel import Panel
        from rich.table import Table
        from rich import box

        console = Console()
        lines = [
            f"Zeilen: {self.total_rows} | gültig: {len(self.valid_rows)} | "
            f"Fehler: {len(self.errors)} | Warnungen: {len(self.warnings)} | "
            f"Raumkonflikte: {len(self.room_conflicts)}"
        ]
        if self.errors:
            lines.append("\n[red bold]Fehler:[/red bold]")
            lines.extend(f"  [red]• {e}[/red]" for e in self.errors)
        if self.warnings:
            lines.append("\n[yellow bold]Warnungen:[/yellow bold]")
            lines.extend(f"  [yellow]• {w}[/yellow]" for w in self.warnings)
        console.print(Panel("\n".join(lines), title="Import-Validierung",
                            border_style="cyan"))

        if self.room_conflicts:
            table = Table(title="Raumkonflikte", box=box.ROUNDED)
            table.add_column("Zeile", justify="right")
            table.add_column("Raum")
            table.add_column("Tag")
            table.add_column("Neu")
            table.add_column("Belegt durch")
            for c in self.room_conflicts:
                source = (f"Zeile {c.conflict_row}" if c.conflict_row
                          else c.conflict_department or "Bestand")
                table.add_row(str(c.row), c.room, c.day, c.new_period,
                              f"{c.conflict_with} ({c.conflict_period}, {source})")
            console.print(table)


class ImportValidationError(TimetableImportError):
    """Validierung fehlgeschlagen; `result` enthält die Details."""

    def __init__(self, message: str, result: ValidationResult) -> None:
        super().__init__(message)
        self.result = result


class ImportStats(BaseModel):
    rows: int = 0
    new_schedules: int = 0
    duplicates: int = 0
    errors: int = 0
    conflicts: int = 0
    rooms: int = 0
    courses: int = 0


class ImportReport(BaseModel):
    """Ergebnis eines erfolgreichen Imports."""

    filename: str
    department: str
    message: str
    stats: ImportStats
    validation: ValidationResult
    file_id: Optional[str] = None

    def print_rich(self) -> None:
        from rich.console import Console
        from rich.table import Table
        from rich import box

        console = Console()
        console.print(f"[bold green]✓[/bold green] {self.message}")
        table = Table(title=f"Import: {self.filename}", box=box.ROUNDED)
        table.add_column("Kennzahl", style="bold")
        table.add_column("Wert", justify="right")
        for k, v in self.stats.model_dump().items():
            table.add_row(k, str(v))
        console.print(table)


# ─── Importer ─────────────────────────────────────────────────────────────────

class TimetableImporter:
    """Importiert einen Stundenplan aus einer CSV-Datei in den Datenbestand."""

    def __init__(
        self,
        path: Path,
        config: CampusConfig,
        store: CampusStore,
        department: Optional[str] = None,
        resolution: Optional[ConflictResolution] = None,
    ) -> None:
        self.path = Path(path)
        self.config = config
        self.store = store
        self.department = department or config.imports.default_department
        self.resolution = ConflictResolution(
            resolution or config.imports.conflict_resolution)
        self._day_start = config.time_grid.day_start_hour

    # ── Lesen ───────────────────────────────────────────────────────────────

    def _read_table(self) -> tuple[list[str], list[dict]]:
        """Datei → (Header, Zeilen). Werte getrimmt, Header in Kleinbuchstaben."""
        try:
            with open(self.path, encoding="utf-8-sig", newline="") as f:
                reader = csv.DictReader(f)
                headers = [h.strip().lower() for h in (reader.fieldnames or []) if h]
                rows = [
                    {k.strip().lower(): (v.strip() if isinstance(v, str) else "")
                     for k, v in row.items() if k is not None}
                    for row in reader
                ]
        except FileNotFoundError:
            raise TimetableImportError(f"Datei nicht gefunden: {self.path}")
        except (UnicodeDecodeError, csv.Error) as e:
            raise TimetableImportError(f"CSV-Datei nicht lesbar: {e}") from e
        return headers, rows

    def read_rows(self) -> list[CsvRow]:
        """Liest und prüft die Struktur der Datei.

        Raises:
            TimetableImportError: leere Datei oder fehlende Pflichtspalten
        """
        headers, raw_rows = self._read_table()
        rows = [r for r in raw_rows if any(v for v in r.values())]
        if not rows:
            raise TimetableImportError("CSV-Datei ist leer")

        missing = [c for c in self.config.imports.required_columns if c not in headers]
        if missing:
            raise TimetableImportError(f"Fehlende Spalten: {', '.join(missing)}")

        return [CsvRow(row_number=i + 2, values=r) for i, r in enumerate(rows)]

    # ── Validieren ──────────────────────────────────────────────────────────

    def validate(self, rows: list[CsvRow]) -> ValidationResult:
        """Prüft jede Zeile auf Pflichtfelder, Format und Raumkonflikte."""
        errors: list[str] = []
        warnings: list[str] = []
        valid_rows: list[CsvRow] = []
        conflicts: list[RoomConflict] = []
        catalog = self.config.room_catalog
        grid_days = self.config.time_grid.all_days

        # Bereits akzeptierte Zeilen derselben Datei für Konflikte untereinander
        accepted: list[tuple[CsvRow, Period]] = []

        for row in rows:
            n = row.row_number
            row_errors: list[str] = []
            room_id = row.get("room_id")
            course = row.get("course")
            day = row.get("day").lower()
            period_text = row.get("period")

            if not room_id:
                row_errors.append(f"Zeile {n}: room_id fehlt")
            if not course:
                row_errors.append(f"Zeile {n}: course fehlt")
            if not day:
                row_errors.append(f"Zeile {n}: day fehlt")
            if not period_text:
                row_errors.append(f"Zeile {n}: period fehlt")

            if room_id and not catalog.is_known(room_id):
                warnings.append(
                    f"Zeile {n}: Raum {room_id} nicht im Raumkatalog der Hochschule")

            capacity = row.get("capacity")
            if capacity and not capacity.isdigit():
                warnings.append(f"Zeile {n}: Ungültige Kapazität '{capacity}'")

            if day and day not in grid_days:
                row_errors.append(f"Zeile {n}: Ungültiger Wochentag '{row.get('day')}'")

            period: Optional[Period] = None
            if period_text:
                if "-" not in period_text:
                    row_errors.append(
                        f'Zeile {n}: Ungültiges Periodenformat (z.B. "8:40-9:30")')
                else:
                    try:
                        period = Period.parse(period_text, self._day_start)
                    except PeriodFormatError as e:
                        row_errors.append(f"Zeile {n}: {e}")

            if row_errors:
                errors.extend(row_errors)
                continue

            conflicts.extend(self._stored_conflicts(row, period))
            conflicts.extend(self._file_conflicts(row, period, accepted))
            accepted.append((row, period))
            valid_rows.append(row)

        logger.info("Validierung %s: %d Zeilen, %d Fehler, %d Warnungen, %d Konflikte",
                    self.path.name, len(rows), len(errors), len(warnings), len(conflicts))
        return ValidationResult(
            errors=errors,
            warnings=warnings,
            valid_rows=valid_rows,
            room_conflicts=conflicts,
            total_rows=len(rows),
        )

    def _stored_conflicts(self, row: CsvRow, period: Period) -> list[RoomConflict]:
        entry = self.build_schedule(row)
        result = []
        for existing in self.store.find_conflicts(entry.room_id, entry.day, entry.period):
            # Identischer Eintrag ist ein Duplikat, kein Konflikt
            if existing.duplicate_key == entry.duplicate_key:
                continue
            result.append(RoomConflict(
                row=row.row_number,
                room=entry.room_id,
                day=entry.day,
                new_period=entry.period,
                conflict_with=existing.course_name,
                conflict_period=existing.period,
                conflict_department=existing.department,
                existing_schedule_id=existing.id,
            ))
        return result

    def _file_conflicts(self, row: CsvRow, period: Period,
                        accepted: list[tuple[CsvRow, Period]]) -> list[RoomConflict]:
        result = []
        room_id = row.get("room_id")
        day = row.get("day").lower()
        key = self.build_schedule(row).duplicate_key
        for other, other_period in accepted:
            if other.get("room_id") != room_id or other.get("day").lower() != day:
                continue
            if not period.overlaps(other_period):
                continue
            # Gleicher Schlüssel wie beim Einfügen: Duplikat, kein Konflikt
            if self.build_schedule(other).duplicate_key == key:
                continue
            result.append(RoomConflict(
                row=row.row_number,
                room=room_id,
                day=day,
                new_period=row.get("period"),
                conflict_with=other.get("course"),
                conflict_period=other.get("period"),
                conflict_department=other.get("department") or self.department,
                conflict_row=other.row_number,
            ))
        return result

    # ── Konflikte auflösen ──────────────────────────────────────────────────

    def resolve_conflicts(
        self, result: ValidationResult
    ) -> tuple[list[CsvRow], list[str]]:
        """Wendet die Konfliktstrategie an.

        Returns:
            (verbleibende Zeilen, IDs bestehender Einträge zum Deaktivieren)
        """
        if not result.room_conflicts:
            return list(result.valid_rows), []

        conflict_rows = {c.row for c in result.room_conflicts}

        if self.resolution == ConflictResolution.OVERRIDE:
            to_deactivate = sorted({
                c.existing_schedule_id for c in result.room_conflicts
                if c.existing_schedule_id
            })
            return list(result.valid_rows), to_deactivate

        if self.resolution == ConflictResolution.MANUAL:
            for c in result.room_conflicts:
                departments = [c.conflict_department or self.department]
                row_dept = next(
                    (r.get("department") for r in result.valid_rows
                     if r.row_number == c.row), "") or self.department
                if row_dept not in departments:
                    departments.append(row_dept)
                self.store.insert_conflict(ConflictRecord(
                    room_id=c.room,
                    time_slot=f"{c.day}_{c.new_period}",
                    conflicting_departments=departments,
                    status="open",
                ))

        remaining = [r for r in result.valid_rows if r.row_number not in conflict_rows]
        logger.info("%d Zeilen wegen Raumkonflikt zurückgestellt (%s)",
                    len(result.valid_rows) - len(remaining), self.resolution.value)
        return remaining, []

    # ── Einträge aufbauen ───────────────────────────────────────────────────

    def build_schedule(self, row: CsvRow) -> ScheduleEntry:
        """CSV-Zeile → ScheduleEntry mit Voreinstellungen aus der Config."""
        defaults = self.config.imports
        room_id = row.get("room_id")
        period = row.get("period")
        start, _, end = period.partition("-")
        return ScheduleEntry(
            room_id=room_id,
            room_name=row.get("room_name") or f"Room {room_id}",
            course_name=row.get("course"),
            professor=row.get("professor") or defaults.default_professor,
            day=row.get("day"),
            period=period,
            start_time=row.get("start_time") or start.strip(),
            end_time=row.get("end_time") or end.strip() or start.strip(),
            department=row.get("department") or self.department,
            year=row.get("year") or defaults.default_year,
            section=row.get("section") or defaults.default_section,
            semester=row.get("semester") or self.config.semester,
        )

    def _build_room(self, row: CsvRow, department: str) -> Room:
        room_id = row.get("room_id")
        known = self.config.room_catalog.get(room_id)
        existing = self.store.get_room(room_id, department)
        capacity = row.get("capacity")
        room = Room(
            id=room_id,
            name=known.name if known else (row.get("room_name") or f"Room {room_id}"),
            building=row.get("building") or (known.building if known else "Main Building"),
            floor=known.floor if known else None,
            capacity=(known.capacity if known
                      else int(capacity) if capacity.isdigit()
                      else self.config.room_catalog.fallback_capacity),
            type=known.room_type if known else (row.get("type") or "classroom"),
            department=department,
            features=row.get("features") or (known.features if known else []),
        )
        if existing is not None:
            room = room.model_copy(update={
                "status": existing.status,
                "current_class": existing.current_class,
                "reason": existing.reason,
                "cancelled_at": existing.cancelled_at,
            })
        return room

    # ── Gesamtablauf ────────────────────────────────────────────────────────

    def run(self) -> ImportReport:
        """Führt den vollständigen Import durch.

        Raises:
            TimetableImportError: Strukturfehler oder nichts hochgeladen
            ImportValidationError: Zeilenfehler (Details in `.result`)
        """
        if self.department not in self.config.department_codes:
            logger.warning("Fachbereich %s nicht in der Konfiguration", self.department)

        rows = self.read_rows()
        result = self.validate(rows)
        if result.has_errors:
            raise ImportValidationError(
                f"{len(result.errors)} Validierungsfehler gefunden", result)

        final_rows, to_deactivate = self.resolve_conflicts(result)
        if to_deactivate:
            self.store.deactivate_schedules(
                to_deactivate, reason=f"Durch Import von {self.path.name} ersetzt")

        stats = ImportStats(rows=len(rows))
        courses: set[str] = set()
        rooms: dict[tuple[str, str], CsvRow] = {}
        departments: set[str] = set()

        for row in final_rows:
            entry = self.build_schedule(row)
            rooms.setdefault((entry.room_id, entry.department), row)
            departments.add(entry.department)
            courses.add(entry.course_name)
            try:
                self.store.insert_schedule(entry, check_conflicts=True)
                stats.new_schedules += 1
            except DuplicateScheduleError:
                stats.duplicates += 1
                logger.debug("Duplikat übersprungen: %s %s %s",
                             entry.room_id, entry.day, entry.period)
            except RoomConflictError as e:
                stats.conflicts += 1
                logger.warning("Zeile %d: %s", row.row_number, e)
            except CampusStoreError as e:
                stats.errors += 1
                logger.error("Zeile %d nicht gespeichert: %s", row.row_number, e)

        if stats.new_schedules == 0 and final_rows:
            raise TimetableImportError(
                "Keine Einträge hochgeladen. Alle waren Duplikate oder fehlerhaft.")

        stats.rooms = len(rooms)
        stats.courses = len(courses)

        if rooms:
            self.store.upsert_rooms(
                self._build_room(row, dept) for (_, dept), row in rooms.items())

        for dept in sorted(departments):
            self._update_department_summary(dept)

        info = self.store.insert_file(TimetableFile(
            filename=self.path.name,
            department=self.department,
            semester=self.config.semester,
            uploaded_by=self.config.uploaded_by,
            schedules_count=stats.new_schedules,
            file_size=_format_size(self.path.stat().st_size),
            validation_errors=len(result.errors),
            validation_warnings=len(result.warnings),
        ))

        self.store.bus.publish(IMPORT_CHANNEL, "timetable_imported", {
            "department": self.department,
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "schedules": stats.new_schedules,
        })

        message = (f"{stats.new_schedules} neue Einträge für {self.department} "
                   f"hochgeladen ({stats.duplicates} Duplikate übersprungen)")
        logger.info(message)
        return ImportReport(
            filename=self.path.name,
            department=self.department,
            message=message,
            stats=stats,
            validation=result,
            file_id=info.id,
        )

    def _update_department_summary(self, department: str) -> None:
        active = [
            s for s in self.store.list_schedules(department=department, is_active=True)
            if s.semester == self.config.semester
        ]
        self.store.upsert_department_timetable(DepartmentTimetable(
            department=department,
            semester=self.config.semester,
            total_courses=len({s.course_name for s in active}),
            total_rooms=len({s.room_id for s in active}),
            total_schedules=len(active),
            uploaded_by=self.config.uploaded_by,
        ))


class ExcelTimetableImporter(TimetableImporter):
    """Wie TimetableImporter, liest aber das erste Blatt einer .xlsx-Datei."""

    def _read_table(self) -> tuple[list[str], list[dict]]:
        import openpyxl

        try:
            wb = openpyxl.load_workbook(str(self.path), read_only=True, data_only=True)
        except FileNotFoundError:
            raise TimetableImportError(f"Datei nicht gefunden: {self.path}")
        except Exception as e:
            raise TimetableImportError(f"Fehler beim Öffnen der Excel-Datei: {e}") from e

        try:
            sheet_rows = list(wb.worksheets[0].iter_rows(values_only=True))
        finally:
            wb.close()
        if not sheet_rows:
            return [], []
        headers = [
            str(h).strip().lower() if h is not None else f"col_{i}"
            for i, h in enumerate(sheet_rows[0])
        ]
        rows = [
            {headers[i]: _cell_text(v) for i, v in enumerate(row) if i < len(headers)}
            for row in sheet_rows[1:]
        ]
        return headers, rows


def _cell_text(value) -> str:
    if value is None:
        return ""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value).strip()


def _format_size(num_bytes: int) -> str:
    return f"{max(1, round(num_bytes / 1024))} KB"


def import_timetable(
    path: Path,
    config: CampusConfig,
    store: CampusStore,
    department: Optional[str] = None,
    resolution: Optional[ConflictResolution] = None,
) -> ImportReport:
    """Importiert eine Stundenplandatei (.csv oder .xlsx).

    Raises:
        TimetableImportError: Bei kritischen Import-Fehlern.
    """
    path = Path(path)
    suffix = path.suffix.lower()
    if suffix == ".csv":
        importer_cls = TimetableImporter
    elif suffix == ".xlsx":
        importer_cls = ExcelTimetableImporter
    else:
        raise TimetableImportError(
            f"Unbekanntes Dateiformat: {path}. Erwartet: .csv oder .xlsx."
        )
    return importer_cls(path, config, store, department, resolution).run()
