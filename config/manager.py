"""Konfigurationsmanager: Laden, Speichern und Validieren der Campus-Konfiguration.

Nutzt ruamel.yaml für YAML-Serialisierung mit Kommentaren.
"""

import json
from datetime import date
from pathlib import Path
from typing import Optional

from rich.console import Console
from ruamel.yaml import YAML
from ruamel.yaml.comments import CommentedMap

from config.schema import CampusConfig

console = Console()
yaml = YAML()
yaml.default_flow_style = False
yaml.width = 120


# ─── YAML-KOMMENTAR-AUFBAU ───

_YAML_HEADER = f"""\
# ============================================
# campusplan: Hochschulkonfiguration
# Version: 1.0
# Erstellt: {date.today().isoformat()}
# ============================================
"""

_SECTION_COMMENTS = {
    "departments": (
        "Fachbereiche",
        None,
    ),
    "time_grid": (
        "Zeitraster",
        "Perioden ohne am/pm; Stunden vor day_start_hour zählen als Nachmittag.",
    ),
    "room_catalog": (
        "Raumkatalog",
        "Räume außerhalb des Katalogs erzeugen beim Import eine Warnung.",
    ),
    "imports": (
        "CSV-Import",
        "conflict_resolution: skip | override | manual",
    ),
    "electives": (
        "Wahlfächer",
        None,
    ),
    "storage": (
        "Datenablage",
        None,
    ),
}


class ConfigManager:
    CONFIG_DIR = Path("config")
    DEFAULT_CONFIG = CONFIG_DIR / "campus_config.yaml"

    def __init__(self, path: Optional[Path] = None) -> None:
        if path is not None:
            self.DEFAULT_CONFIG = Path(path)

    def first_run_check(self) -> bool:
        """Gibt True zurück wenn noch keine Config existiert (Erstaufruf)."""
        return not self.DEFAULT_CONFIG.exists()

    # ─── Laden ───

    def load(self, path: Optional[Path] = None) -> CampusConfig:
        """Lade Config aus YAML. Validiert automatisch via Pydantic."""
        target = path or self.DEFAULT_CONFIG
        if not target.exists():
            raise FileNotFoundError(
                f"Konfigurationsdatei nicht gefunden: {target}\n"
                f"Führen Sie 'python main.py setup' aus, um die Hochschule einzurichten."
            )
        with open(target, "r", encoding="utf-8") as f:
            raw = yaml.load(f)
        try:
            return CampusConfig.model_validate(dict(raw or {}))
        except Exception as e:
            raise ValueError(
                f"Konfigurationsdatei ungültig: {target}\n"
                f"Pydantic-Fehler: {e}"
            ) from e

    # ─── Speichern ───

    def save(self, config: CampusConfig, path: Optional[Path] = None) -> None:
        """Speichere Config als YAML mit Abschnitts-Kommentaren."""
        target = path or self.DEFAULT_CONFIG
        target.parent.mkdir(parents=True, exist_ok=True)

        data = self._build_commented_yaml(config)

        with open(target, "w", encoding="utf-8") as f:
            f.write(_YAML_HEADER + "\n")
            yaml.dump(data, f)

        console.print(f"[green]✓[/green] Konfiguration gespeichert: {target}")

    def _build_commented_yaml(self, config: CampusConfig) -> CommentedMap:
        """Baut die YAML-Struktur mit Kommentaren auf."""
        raw = json.loads(config.model_dump_json())
        cm = CommentedMap(raw)

        for field, (label, comment) in _SECTION_COMMENTS.items():
            if field not in cm:
                continue
            cm.yaml_set_comment_before_after_key(
                field,
                before=f"\n─── {label} ───" + (f"\n{comment}" if comment else ""),
            )

        return cm
