"""Auslastungs-Statistik für die Verwaltung.

Kennzahlen: Raumstatus, Stoßzeiten, Wochenverteilung, Auslastung je
Gebäude und die meistgenutzten Räume.
"""

import logging
from collections import Counter
from datetime import datetime, timedelta, timezone
from typing import Optional

from pydantic import BaseModel

from config.schema import CampusConfig
from models.period import PeriodFormatError
from models.room import Room, RoomStatus
from storage.store import CampusStore

logger = logging.getLogger(__name__)

TIME_RANGES = {"week": timedelta(days=7), "month": timedelta(days=30), "all": None}
# Stunden für die Stoßzeiten-Auswertung (9 bis 17 Uhr)
PEAK_HOURS = range(9, 18)


class BuildingUsage(BaseModel):
    building: str
    rooms: int
    busy_rooms: int
    utilization: int        # Prozent


class RoomUsage(BaseModel):
    room_id: str
    room_name: str
    schedules: int


class AnalyticsReport(BaseModel):
    time_range: str
    total_rooms: int
    free_rooms: int
    busy_rooms: int
    cancelled_rooms: int
    utilization: int        # Prozent belegter Räume
    total_schedules: int
    peak_hours: dict[int, int]
    weekly_usage: dict[str, int]
    buildings: list[BuildingUsage]
    top_rooms: list[RoomUsage]

    def print_rich(self) -> None:
        """Gibt den Report formatiert über Rich aus."""
        from rich.console import Console
        from rich.panel import Panel
        from rich.table import Table
        from rich import box

        console = Console()
        console.print(Panel(
            f"Räume: {self.total_rooms} | frei: [green]{self.free_rooms}[/green] | "
            f"belegt: [yellow]{self.busy_rooms}[/yellow] | "
            f"gesperrt: [red]{self.cancelled_rooms}[/red]\n"
            f"Auslastung: {self.utilization}% | Einträge: {self.total_schedules}",
            title=f"Auswertung ({self.time_range})", border_style="cyan",
        ))

        hours = Table(title="Stoßzeiten", box=box.SIMPLE)
        hours.add_column("Stunde")
        hours.add_column("Einträge", justify="right")
        for h, n in self.peak_hours.items():
            hours.add_row(f"{h:02d}:00", str(n))
        console.print(hours)

        week = Table(title="Wochenverteilung", box=box.SIMPLE)
        week.add_column("Tag")
        week.add_column("Einträge", justify="right")
        for d, n in self.weekly_usage.items():
            week.add_row(d.capitalize(), str(n))
        console.print(week)

        if self.buildings:
            table = Table(title="Gebäude", box=box.ROUNDED)
            table.add_column("Gebäude")
            table.add_column("Räume", justify="right")
            table.add_column("Belegt", justify="right")
            table.add_column("Auslastung", justify="right")
            for b in self.buildings:
                table.add_row(b.building, str(b.rooms), str(b.busy_rooms),
                              f"{b.utilization}%")
            console.print(table)

        if self.top_rooms:
            table = Table(title="Meistgenutzte Räume", box=box.ROUNDED)
            table.add_column("Raum")
            table.add_column("Name")
            table.add_column("Einträge", justify="right")
            for r in self.top_rooms:
                table.add_row(r.room_id, r.room_name, str(r.schedules))
            console.print(table)


def _percent(part: int, total: int) -> int:
    return round(part / total * 100) if total else 0


class AnalyticsService:
    def __init__(self, config: CampusConfig, store: CampusStore) -> None:
        self.config = config
        self.store = store

    def report(self, time_range: str = "week",
               now: Optional[datetime] = None) -> AnalyticsReport:
        """Erstellt den Report. Der Zeitraum bezieht sich auf `created_at`."""
        if time_range not in TIME_RANGES:
            raise ValueError(
                f"Unbekannter Zeitraum '{time_range}' (erlaubt: {', '.join(TIME_RANGES)})")
        now = now or datetime.now(timezone.utc)
        span = TIME_RANGES[time_range]
        schedules = self.store.list_schedules(
            is_active=True, created_since=(now - span) if span else None)

        rooms: dict[str, Room] = {}
        for r in self.store.list_rooms():
            rooms.setdefault(r.id, r)
        room_list = list(rooms.values())
        busy = [r for r in room_list if r.status in (RoomStatus.BUSY, RoomStatus.OCCUPIED)]
        busy_ids = {r.id for r in busy}

        day_start = self.config.time_grid.day_start_hour
        peak = {h: 0 for h in PEAK_HOURS}
        for s in schedules:
            try:
                hour = s.period_range(day_start).start_hour
            except PeriodFormatError:
                logger.debug("Periode nicht lesbar: %s (%s)", s.period, s.id)
                continue
            if hour in peak:
                peak[hour] += 1

        weekly = {d: 0 for d in self.config.time_grid.day_names}
        for s in schedules:
            if s.day in weekly:
                weekly[s.day] += 1

        buildings = []
        for building in sorted({r.building for r in room_list}):
            in_building = [r for r in room_list if r.building == building]
            n_busy = sum(1 for r in in_building if r.id in busy_ids)
            buildings.append(BuildingUsage(
                building=building, rooms=len(in_building), busy_rooms=n_busy,
                utilization=_percent(n_busy, len(in_building)),
            ))

        counts = Counter(s.room_id for s in schedules)
        names = {s.room_id: s.room_name for s in schedules}
        top = [
            RoomUsage(room_id=rid,
                      room_name=rooms[rid].name if rid in rooms else names.get(rid, ""),
                      schedules=n)
            for rid, n in sorted(counts.items(), key=lambda kv: (-kv[1], kv[0]))[:5]
        ]

        return AnalyticsReport(
            time_range=time_range,
            total_rooms=len(room_list),
            free_rooms=sum(1 for r in room_list if r.status == RoomStatus.FREE),
            busy_rooms=len(busy),
            cancelled_rooms=sum(1 for r in room_list if r.status == RoomStatus.CANCELLED),
            utilization=_percent(len(busy), len(room_list)),
            total_schedules=len(schedules),
            peak_hours=peak,
            weekly_usage=weekly,
            buildings=buildings,
            top_rooms=top,
        )
