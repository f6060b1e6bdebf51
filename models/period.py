"""Datenmodell für eine Unterrichtsperiode ("8:40-9:30")."""

import re
from dataclasses import dataclass

_TIME_RE = re.compile(r"^\s*(\d{1,2})(?::(\d{2}))?\s*$")


class PeriodFormatError(ValueError):
    """Periode lässt sich nicht als "H:MM-H:MM" lesen."""


def parse_clock(text: str, day_start_hour: int = 8) -> int:
    """Parst "H:MM" in Minuten seit Mitternacht.

    Stundenpläne der Verwaltung nutzen 12h-Notation ohne am/pm:
    alles vor `day_start_hour` ist Nachmittag ("1:40" → 13:40).
    """
    m = _TIME_RE.match(str(text))
    if not m:
        raise PeriodFormatError(f"Ungültige Uhrzeit '{text}'")
    hour = int(m.group(1))
    minute = int(m.group(2) or 0)
    if hour > 23 or minute > 59:
        raise PeriodFormatError(f"Ungültige Uhrzeit '{text}'")
    if hour < day_start_hour:
        hour += 12
    return hour * 60 + minute


def format_clock(minutes: int) -> str:
    """Minuten seit Mitternacht → "HH:MM"."""
    return f"{minutes // 60:02d}:{minutes % 60:02d}"


@dataclass(frozen=True)
class Period:
    """Halboffenes Zeitintervall [start, end) innerhalb eines Tages.

    Immutable (frozen=True) damit es als Dict-Key / Set-Element nutzbar ist.
    """

    start_minutes: int
    end_minutes: int
    # Originaltext, wie er im Stundenplan steht
    label: str = ""

    @classmethod
    def parse(cls, text: str, day_start_hour: int = 8) -> "Period":
        if text is None or "-" not in str(text):
            raise PeriodFormatError(
                f"Ungültiges Periodenformat '{text}' (erwartet z.B. \"8:40-9:30\")"
            )
        raw_start, _, raw_end = str(text).partition("-")
        start = parse_clock(raw_start, day_start_hour)
        end = parse_clock(raw_end, day_start_hour)
        if end <= start:
            raise PeriodFormatError(
                f"Periode '{text}' endet nicht nach ihrem Beginn"
            )
        return cls(start, end, str(text).strip())

    @property
    def start_label(self) -> str:
        return format_clock(self.start_minutes)

    @property
    def end_label(self) -> str:
        return format_clock(self.end_minutes)

    @property
    def start_hour(self) -> int:
        return self.start_minutes // 60

    @property
    def duration_minutes(self) -> int:
        return self.end_minutes - self.start_minutes

    def overlaps(self, other: "Period") -> bool:
        """True wenn sich beide Intervalle schneiden (Berührung zählt nicht)."""
        return self.start_minutes < other.end_minutes and other.start_minutes < self.end_minutes

    def contains(self, minute: int) -> bool:
        return self.start_minutes <= minute < self.end_minutes

    def __str__(self) -> str:
        return self.label or f"{self.start_label}-{self.end_label}"
