"""campusplan: Raum- und Stundenplanverwaltung einer Hochschule, Haupt-CLI.

Verwendung:
  python main.py setup                            Standard-Konfiguration anlegen
  python main.py config show                      Konfiguration anzeigen
  python main.py import <datei.csv> [-d CSE]      Stundenplan importieren
  python main.py files list|delete|stats          Hochgeladene Dateien
  python main.py schedule add ...                 Veranstaltung einplanen
  python main.py schedule grid -d CSE -y 3 -s A   Wochenraster einer Gruppe
  python main.py cancel room <raum> --reason ...  Raum sperren / absagen
  python main.py cancel schedule <id>             Einzelnen Eintrag absagen
  python main.py rooms availability               Raumverfügbarkeit
  python main.py rooms find-free --day --period   Freie Räume suchen
  python main.py rooms set-status <raum> <status> Raumstatus setzen
  python main.py analytics [--range week]         Auswertung
  python main.py electives list|select            Wahlfächer
  python main.py status                           Datenbestand
"""

import logging
import sys
from pathlib import Path

import click
from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich import box

console = Console()


def _load_config_or_abort():
    """Lädt die Konfiguration oder bricht mit Fehlermeldung ab."""
    from config.manager import ConfigManager
    mgr = ConfigManager()
    if mgr.first_run_check():
        console.print(
            "[red]Keine Konfiguration gefunden.[/red]\n"
            "Führen Sie zunächst [bold]python main.py setup[/bold] aus."
        )
        sys.exit(1)
    try:
        return mgr, mgr.load()
    except ValueError as e:
        console.print(f"[red bold]Konfiguration fehlerhaft:[/red bold]\n{e}")
        sys.exit(1)


def _open_store(config):
    from storage.store import CampusStore, CampusStoreError
    try:
        return CampusStore(Path(config.storage.data_path),
                           day_start_hour=config.time_grid.day_start_hour)
    except CampusStoreError as e:
        console.print(f"[red bold]Datenbestand nicht lesbar:[/red bold]\n{e}")
        sys.exit(1)


def _abort(title: str, error: Exception):
    console.print(f"[red bold]{title}:[/red bold]\n{error}")
    sys.exit(1)


# ─── SETUP ────────────────────────────────────────────────────────────────────

@click.command("setup")
def cmd_setup():
    """Ersteinrichtung: Standard-Konfiguration der Hochschule anlegen."""
    from config.defaults import default_campus_config
    from config.manager import ConfigManager

    mgr = ConfigManager()
    if not mgr.first_run_check():
        console.print("[yellow]Eine Konfiguration existiert bereits.[/yellow]")
        if not click.confirm("Mit Standardwerten überschreiben?", default=False):
            return

    mgr.save(default_campus_config())
    console.print("[bold green]Einrichtung abgeschlossen![/bold green]")
    console.print("Importieren Sie jetzt einen Stundenplan: "
                  "[bold]python main.py import <datei.csv>[/bold]")


# ─── CONFIG ───────────────────────────────────────────────────────────────────

@click.group("config")
def cmd_config():
    """Konfiguration anzeigen."""


@cmd_config.command("show")
def config_show():
    """Zeigt die aktuelle Konfiguration an."""
    mgr, config = _load_config_or_abort()

    console.print(Panel(
        f"[bold]{config.college_name}[/bold]  |  {config.semester}",
        title="Hochschulkonfiguration",
        border_style="cyan",
    ))

    tg = config.time_grid
    table = Table(title="Zeitraster", box=box.ROUNDED)
    table.add_column("Nr.")
    table.add_column("Periode")
    for i, p in enumerate(tg.periods, start=1):
        table.add_row(str(i), p)
    console.print(table)
    console.print(f"Tage: {', '.join(d.capitalize() for d in tg.day_names)}")
    console.print(f"Raumübersicht: {', '.join(d.capitalize() for d in tg.all_days)}")

    table2 = Table(title="Fachbereiche", box=box.ROUNDED)
    table2.add_column("Kürzel")
    table2.add_column("Name")
    for d in config.departments:
        table2.add_row(d.code, d.name)
    console.print(table2)

    imp = config.imports
    console.print(
        f"\n[bold]Raumkatalog:[/bold] {len(config.room_catalog.rooms)} Räume | "
        f"[bold]Wahlfächer:[/bold] {len(config.electives.electives)}"
    )
    console.print(
        f"[bold]Import:[/bold] Fachbereich {imp.default_department} | "
        f"Jahr {imp.default_year} | Sektion {imp.default_section} | "
        f"Konflikte: {imp.conflict_resolution.value}"
    )
    console.print(f"[bold]Datenablage:[/bold] {config.storage.data_path}")


# ─── IMPORT ───────────────────────────────────────────────────────────────────

@click.command("import")
@click.argument("datei", type=click.Path(exists=True, path_type=Path))
@click.option("--department", "-d", default=None,
              help="Fachbereich (Standard aus der Konfiguration).")
@click.option("--resolution", "-r", default=None,
              type=click.Choice(["skip", "override", "manual"]),
              help="Umgang mit Raumkonflikten.")
def cmd_import(datei: Path, department, resolution):
    """Importiert einen Stundenplan aus einer CSV- oder Excel-Datei."""
    mgr, config = _load_config_or_abort()
    store = _open_store(config)
    from config.schema import ConflictResolution
    from data.timetable_import import (
        ImportValidationError, TimetableImportError, import_timetable,
    )
    from storage.events import IMPORT_CHANNEL

    store.bus.subscribe(IMPORT_CHANNEL, lambda msg: console.print(
        f"[dim]Benachrichtigung '{msg.event}': "
        f"{msg.payload.get('department')} ({msg.payload.get('schedules')} Einträge)[/dim]"
    ))

    console.print(f"[bold]Importiere:[/bold] {datei}")
    try:
        report = import_timetable(
            datei, config, store, department=department,
            resolution=ConflictResolution(resolution) if resolution else None,
        )
    except ImportValidationError as e:
        e.result.print_rich()
        _abort("Import fehlgeschlagen", e)
    except TimetableImportError as e:
        _abort("Import fehlgeschlagen", e)

    if report.validation.warnings or report.validation.room_conflicts:
        report.validation.print_rich()
    report.print_rich()


# ─── FILES ────────────────────────────────────────────────────────────────────

@click.group("files")
def cmd_files():
    """Hochgeladene Stundenplandateien verwalten."""


@cmd_files.command("list")
def files_list():
    """Listet alle hochgeladenen Dateien (neueste zuerst)."""
    mgr, config = _load_config_or_abort()
    from data.file_registry import list_uploaded_files

    files = list_uploaded_files(_open_store(config))
    if not files:
        console.print("[dim]Keine Dateien hochgeladen.[/dim]")
        return
    table = Table(title="Hochgeladene Dateien", box=box.ROUNDED)
    table.add_column("ID")
    table.add_column("Datei")
    table.add_column("Fachbereich")
    table.add_column("Semester")
    table.add_column("Hochgeladen")
    table.add_column("Einträge", justify="right")
    table.add_column("Größe", justify="right")
    for f in files:
        table.add_row(f.id[:8], f.filename, f.department, f.semester,
                      f.uploaded_at.strftime("%d.%m.%Y %H:%M"),
                      str(f.schedules_count), f.file_size)
    console.print(table)


@cmd_files.command("delete")
@click.argument("file_id")
@click.option("--confirm", "confirmation", required=True,
              help="Dateiname zur Bestätigung.")
def files_delete(file_id: str, confirmation: str):
    """Löscht den Eintrag einer hochgeladenen Datei."""
    mgr, config = _load_config_or_abort()
    from data.file_registry import delete_uploaded_file
    from storage.store import CampusStoreError

    store = _open_store(config)
    # Kurz-ID aus `files list` zulassen
    matches = [f.id for f in store.list_files() if f.id.startswith(file_id)]
    if len(matches) == 1:
        file_id = matches[0]
    try:
        removed = delete_uploaded_file(store, file_id, confirmation)
    except CampusStoreError as e:
        _abort("Löschen fehlgeschlagen", e)
    console.print(f"[green]✓[/green] Datei gelöscht: {removed.filename}")


@cmd_files.command("stats")
def files_stats():
    """Aktive Einträge und Dateien je Fachbereich."""
    mgr, config = _load_config_or_abort()
    from data.file_registry import department_stats

    table = Table(title="Fachbereiche", box=box.ROUNDED)
    table.add_column("Fachbereich")
    table.add_column("Aktive Einträge", justify="right")
    table.add_column("Dateien", justify="right")
    for s in department_stats(_open_store(config), config.department_codes):
        table.add_row(s.department, str(s.active_schedules), str(s.files))
    console.print(table)


# ─── SCHEDULE ─────────────────────────────────────────────────────────────────

@click.group("schedule")
def cmd_schedule():
    """Stundenplan manuell bearbeiten."""


@cmd_schedule.command("add")
@click.option("--room", "room_id", required=True)
@click.option("--course", required=True)
@click.option("--professor", required=True)
@click.option("--day", required=True)
@click.option("--period", required=True, help='z.B. "9:30-10:20"')
@click.option("--department", "-d", default="CSE")
@click.option("--year", "-y", default="3")
@click.option("--section", "-s", default="A")
@click.option("--alternative", default=None,
              help="Ausweichraum, falls der Raum belegt ist.")
def schedule_add(room_id, course, professor, day, period, department, year,
                 section, alternative):
    """Plant eine Veranstaltung ein und prüft Raumkonflikte."""
    mgr, config = _load_config_or_abort()
    from scheduling.timetable import ClassRequest, SchedulingError, TimetableBuilder
    from storage.store import CampusStoreError, RoomConflictError

    builder = TimetableBuilder(config, _open_store(config))
    request = ClassRequest(
        room_id=room_id, course_name=course, professor=professor, day=day,
        period=period, department=department, year=year, section=section,
    )
    try:
        if alternative:
            entry = builder.resolve_with_alternative(request, alternative)
        else:
            entry = builder.schedule_class(request)
    except RoomConflictError as e:
        table = Table(title=f"Raum {room_id} belegt", box=box.ROUNDED)
        table.add_column("Kurs")
        table.add_column("Periode")
        table.add_column("Gruppe")
        table.add_column("Dozent")
        for c in e.conflicts:
            table.add_row(c.course_name, c.period, c.group_label, c.professor)
        console.print(table)
        free = builder.find_available_rooms(day, period)
        if free:
            console.print("Freie Räume: " + ", ".join(r.id for r in free[:10]))
            console.print("Mit [bold]--alternative <raum>[/bold] ausweichen.")
        _abort("Einplanen fehlgeschlagen", e)
    except (SchedulingError, CampusStoreError) as e:
        _abort("Einplanen fehlgeschlagen", e)

    console.print(f"[green]✓[/green] {entry.course_name} eingeplant: "
                  f"{entry.room_id}, {entry.day.capitalize()} {entry.period} "
                  f"({entry.group_label})")


@cmd_schedule.command("grid")
@click.option("--department", "-d", default="CSE")
@click.option("--year", "-y", default="3")
@click.option("--section", "-s", default="A")
def schedule_grid(department, year, section):
    """Zeigt das Wochenraster einer Gruppe."""
    mgr, config = _load_config_or_abort()
    from scheduling.timetable import TimetableBuilder

    grid = TimetableBuilder(config, _open_store(config)).grid(department, year, section)
    table = Table(title=f"{department} Jahr {year} Sek. {section}",
                  box=box.ROUNDED, show_lines=True)
    table.add_column("Periode")
    for day in config.time_grid.day_names:
        table.add_column(day.capitalize())
    for p in config.time_grid.periods:
        cells = []
        for day in config.time_grid.day_names:
            e = grid[day][p]
            cells.append(f"{e.course_name}\n[dim]{e.room_id}[/dim]" if e else "")
        table.add_row(p, *cells)
    console.print(table)


# ─── CANCEL ───────────────────────────────────────────────────────────────────

@click.group("cancel")
def cmd_cancel():
    """Veranstaltungen absagen."""


@cmd_cancel.command("room")
@click.argument("room_id")
@click.option("--reason", required=True, help="Grund der Absage.")
@click.option("--day", default=None, help="Tag (Standard: heute).")
def cancel_room(room_id, reason, day):
    """Sperrt einen Raum und sagt die laufende Veranstaltung ab."""
    mgr, config = _load_config_or_abort()
    from scheduling.cancellation import CancellationService
    from scheduling.timetable import SchedulingError
    from storage.store import CampusStoreError

    try:
        result = CancellationService(_open_store(config)).cancel_room_class(
            room_id, reason, day=day)
    except (SchedulingError, CampusStoreError) as e:
        _abort("Absage fehlgeschlagen", e)
    console.print(f"[green]✓[/green] Raum {room_id} gesperrt "
                  f"({len(result.cancelled_schedules)} Einträge abgesagt)")


@cmd_cancel.command("schedule")
@click.argument("schedule_id")
def cancel_schedule(schedule_id):
    """Sagt einen einzelnen Stundenplaneintrag ab."""
    mgr, config = _load_config_or_abort()
    from scheduling.cancellation import CancellationService
    from scheduling.timetable import SchedulingError
    from storage.store import CampusStoreError

    try:
        entry = CancellationService(_open_store(config)).quick_cancel(schedule_id)
    except (SchedulingError, CampusStoreError) as e:
        _abort("Absage fehlgeschlagen", e)
    console.print(f"[green]✓[/green] Abgesagt: {entry.course_name} "
                  f"({entry.room_id}, {entry.day.capitalize()} {entry.period})")


# ─── ROOMS ────────────────────────────────────────────────────────────────────

@click.group("rooms")
def cmd_rooms():
    """Raumverfügbarkeit."""


@cmd_rooms.command("availability")
@click.option("--day", default=None, help="Wochentag (Standard: heute).")
@click.option("--building", default=None)
@click.option("--floor", type=int, default=None)
@click.option("--type", "room_type", default=None)
@click.option("--min-capacity", type=int, default=None)
@click.option("--max-capacity", type=int, default=None)
@click.option("--search", default=None)
@click.option("--free-only", is_flag=True, default=False)
def rooms_availability(day, building, floor, room_type, min_capacity,
                       max_capacity, search, free_only):
    """Zeigt, welche Räume am Tag frei oder belegt sind."""
    mgr, config = _load_config_or_abort()
    from analysis.availability import RoomAvailabilityView, RoomFilter

    view = RoomAvailabilityView(config, _open_store(config))
    day = (day or view.default_day()).lower()
    overview = view.filter_rooms(view.day_overview(day), RoomFilter(
        building=building, floor=floor, type=room_type,
        min_capacity=min_capacity, max_capacity=max_capacity,
        search=search, only_available=free_only,
    ))
    summary = view.summary(overview)

    table = Table(title=f"Räume am {day.capitalize()}", box=box.ROUNDED)
    table.add_column("Raum")
    table.add_column("Name")
    table.add_column("Gebäude")
    table.add_column("Kap.", justify="right")
    table.add_column("Status")
    table.add_column("Jetzt")
    table.add_column("Als Nächstes")
    table.add_column("Einträge", justify="right")
    for item in overview:
        color = "red" if item.is_occupied else "green"
        table.add_row(
            item.room.id, item.room.name, item.room.building,
            str(item.room.capacity),
            f"[{color}]{item.availability_text}[/{color}]",
            item.current.course_name if item.current else "",
            f"{item.next.course_name} ({item.next.period})" if item.next else "",
            str(item.schedule_count),
        )
    console.print(table)
    console.print(f"Gesamt: {summary.total} | mit Einträgen: {summary.with_schedules} | "
                  f"belegt: {summary.occupied} | frei: {summary.available}")


@cmd_rooms.command("find-free")
@click.option("--day", required=True)
@click.option("--period", required=True, help='z.B. "9:30-10:20"')
def rooms_find_free(day, period):
    """Räume, die zur angegebenen Zeit frei sind."""
    mgr, config = _load_config_or_abort()
    from scheduling.timetable import SchedulingError, TimetableBuilder

    try:
        rooms = TimetableBuilder(config, _open_store(config)).find_available_rooms(day, period)
    except SchedulingError as e:
        _abort("Suche fehlgeschlagen", e)
    table = Table(title=f"Freie Räume {day.capitalize()} {period}", box=box.ROUNDED)
    table.add_column("Raum")
    table.add_column("Name")
    table.add_column("Typ")
    table.add_column("Kap.", justify="right")
    for r in rooms:
        table.add_row(r.id, r.name, r.type, str(r.capacity))
    console.print(table)


@cmd_rooms.command("set-status")
@click.argument("room_id")
@click.argument("status", type=click.Choice(["free", "busy", "occupied", "cancelled"]))
def rooms_set_status(room_id, status):
    """Setzt den Status eines Raums."""
    mgr, config = _load_config_or_abort()
    from models.room import RoomStatus
    from scheduling.cancellation import CancellationService
    from storage.store import CampusStoreError

    try:
        CancellationService(_open_store(config)).update_room_status(
            room_id, RoomStatus(status))
    except CampusStoreError as e:
        _abort("Status nicht gesetzt", e)
    console.print(f"[green]✓[/green] Raum {room_id}: {status}")


# ─── ANALYTICS ────────────────────────────────────────────────────────────────

@click.command("analytics")
@click.option("--range", "time_range", default="week",
              type=click.Choice(["week", "month", "all"]))
def cmd_analytics(time_range):
    """Auslastung, Stoßzeiten und meistgenutzte Räume."""
    mgr, config = _load_config_or_abort()
    from analysis.statistics import AnalyticsService

    AnalyticsService(config, _open_store(config)).report(time_range).print_rich()


# ─── ELECTIVES ────────────────────────────────────────────────────────────────

@click.group("electives")
def cmd_electives():
    """Wahlfächer."""


@cmd_electives.command("list")
def electives_list():
    """Zeigt das Wahlfach-Angebot mit freien Plätzen."""
    mgr, config = _load_config_or_abort()
    from scheduling.electives import ElectiveService

    colors = {"good": "green", "limited": "yellow", "critical": "red"}
    table = Table(title="Wahlfächer", box=box.ROUNDED)
    table.add_column("ID")
    table.add_column("Kurs")
    table.add_column("Dozent")
    table.add_column("Termin")
    table.add_column("Belegt", justify="right")
    table.add_column("Frei", justify="right")
    for o in ElectiveService(config, _open_store(config)).list_electives():
        color = colors[o.availability_level]
        table.add_row(
            o.elective.id, f"{o.elective.code} {o.elective.name}",
            o.elective.professor, o.elective.schedule,
            f"{o.enrolled}/{o.elective.capacity}",
            f"[{color}]{o.available_seats} ({o.availability_percentage}%)[/{color}]",
        )
    console.print(table)


@cmd_electives.command("select")
@click.argument("student_id")
@click.argument("elective_id")
def electives_select(student_id, elective_id):
    """Schreibt einen Studierenden in ein Wahlfach ein."""
    mgr, config = _load_config_or_abort()
    from scheduling.electives import ElectiveService
    from scheduling.timetable import SchedulingError
    from storage.store import CampusStoreError

    try:
        enrollment = ElectiveService(config, _open_store(config)).select(
            student_id, elective_id)
    except (SchedulingError, CampusStoreError) as e:
        _abort("Einschreibung fehlgeschlagen", e)
    console.print(f"[green]✓[/green] {enrollment.student_id} → {enrollment.elective_id}")


# ─── STATUS ───────────────────────────────────────────────────────────────────

@click.command("status")
def cmd_status():
    """Zeigt Umfang und Kennzahlen des Datenbestands."""
    mgr, config = _load_config_or_abort()
    from analysis.availability import AdminRoomView

    store = _open_store(config)
    table = Table(title=f"Datenbestand: {config.storage.data_path}", box=box.ROUNDED)
    table.add_column("Tabelle")
    table.add_column("Datensätze", justify="right")
    for name, n in store.table_counts().items():
        table.add_row(name, str(n))
    console.print(table)

    stats = AdminRoomView(config, store).stats()
    console.print(
        f"Räume: {stats.total_rooms} | frei: {stats.free_rooms} | "
        f"belegt: {stats.occupied_rooms} | aktive Einträge: {stats.active_schedules} | "
        f"heute: {stats.todays_schedules}"
    )
    open_conflicts = store.list_conflicts(status="open")
    if open_conflicts:
        console.print(f"[yellow]{len(open_conflicts)} offene Raumkonflikte[/yellow]")


# ─── HAUPT-CLI ────────────────────────────────────────────────────────────────

@click.group()
@click.option("--verbose", "-v", is_flag=True, default=False,
              help="Ausführliche Protokollausgabe.")
def cli(verbose: bool):
    """Raum- und Stundenplanverwaltung für Hochschulen.

    Starten Sie mit: python main.py setup
    """
    from rich.logging import RichHandler
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=console, show_path=False)],
    )


def main():
    """Einstiegspunkt. Legt beim ersten Aufruf die Standard-Konfiguration an."""
    from config.manager import ConfigManager
    mgr = ConfigManager()

    if len(sys.argv) == 1 and mgr.first_run_check():
        console.print(Panel(
            "[bold]Willkommen bei campusplan![/bold]\n\n"
            "Keine Konfiguration gefunden.\n"
            "Die Einrichtung wird jetzt gestartet...",
            border_style="cyan",
        ))
        sys.argv.append("setup")

    cli()


# Befehle registrieren
cli.add_command(cmd_setup)
cli.add_command(cmd_config)
cli.add_command(cmd_import)
cli.add_command(cmd_files)
cli.add_command(cmd_schedule)
cli.add_command(cmd_cancel)
cli.add_command(cmd_rooms)
cli.add_command(cmd_analytics)
cli.add_command(cmd_electives)
cli.add_command(cmd_status)


if __name__ == "__main__":
    main()
