"""Tests für Konfiguration, Datenmodelle und CLI."""

from pathlib import Path

import pytest
from pydantic import ValidationError

from config.defaults import (
    COLLEGE_ROOMS,
    DEPARTMENTS,
    PERIODS,
    default_campus_config,
    default_room_catalog,
    default_time_grid,
    room_type_for,
)
from config.manager import ConfigManager
from config.schema import (
    ConflictResolution,
    ElectiveDef,
    ImportConfig,
    TimeGridConfig,
)
from models.period import Period, PeriodFormatError, parse_clock
from models.room import Room, RoomStatus
from models.schedule import ScheduleEntry


# ─── DEFAULT-KONFIGURATION ────────────────────────────────────────────────────

class TestDefaultConfig:
    def test_default_time_grid_valid(self):
        """Standard-Raster: Mo–Fr, neun Perioden."""
        tg = default_time_grid()
        assert tg.day_names == ["monday", "tuesday", "wednesday", "thursday", "friday"]
        assert len(tg.periods) == 9
        assert tg.periods[0] == "8:40-9:30"
        assert tg.periods[-1] == "3:20-4:10"

    def test_room_catalog_complete(self):
        """Alle Räume der Hochschule sind im Katalog."""
        rc = default_room_catalog()
        assert len(rc.rooms) == len(COLLEGE_ROOMS)
        assert rc.get("AUD").capacity == 150
        assert rc.get("AUD").room_type == "auditorium"
        assert rc.get("CSE1").room_type == "lab"
        assert rc.get("101").floor == 1

    def test_room_catalog_unknown(self):
        rc = default_room_catalog()
        assert rc.get("X999") is None
        assert rc.is_known("X999") is False

    def test_room_type_for(self):
        assert room_type_for("LIB") == "library"
        assert room_type_for("IT_LAB") == "lab"
        assert room_type_for("301") == "classroom"

    def test_default_campus_config_valid(self):
        """Vollständige Standard-Config ist valide."""
        config = default_campus_config()
        assert config.semester == "Fall 2024"
        assert config.department_codes == list(DEPARTMENTS)
        assert len(config.electives.electives) == 6
        assert config.imports.conflict_resolution == ConflictResolution.SKIP
        assert config.imports.default_professor == "Staff"


# ─── PYDANTIC-VALIDIERUNG ─────────────────────────────────────────────────────

class TestPydanticValidation:
    def test_invalid_period_in_grid_rejected(self):
        """Nicht lesbare Periode im Zeitraster → ValidationError."""
        with pytest.raises(ValidationError):
            TimeGridConfig(periods=["8:40-9:30", "9:30"])

    def test_day_names_lowercased(self):
        tg = TimeGridConfig(day_names=["Monday", " TUESDAY "], periods=list(PERIODS))
        assert tg.day_names == ["monday", "tuesday"]

    def test_all_days_appends_overview_days(self):
        """Samstag gehört zur Raumübersicht, nicht zum Unterrichtsraster."""
        tg = default_time_grid()
        assert "saturday" not in tg.day_names
        assert tg.all_days == ["monday", "tuesday", "wednesday", "thursday",
                               "friday", "saturday"]

    def test_day_start_hour_range(self):
        with pytest.raises(ValidationError):
            TimeGridConfig(periods=list(PERIODS), day_start_hour=0)

    def test_unknown_conflict_resolution_rejected(self):
        with pytest.raises(ValidationError):
            ImportConfig(conflict_resolution="ignore")

    def test_elective_capacity_positive(self):
        with pytest.raises(ValidationError):
            ElectiveDef(id="X", code="CS1", name="X", professor="P", room="R", capacity=0)


# ─── CONFIG-MANAGER ───────────────────────────────────────────────────────────

class TestConfigManager:
    def test_save_and_load_roundtrip(self, tmp_path: Path):
        """Config speichern, laden und validieren, vollständiger Roundtrip."""
        config = default_campus_config()
        mgr = ConfigManager(tmp_path / "campus_config.yaml")

        mgr.save(config)
        assert mgr.DEFAULT_CONFIG.exists()

        loaded = mgr.load()
        assert loaded.college_name == config.college_name
        assert loaded.time_grid.periods == config.time_grid.periods
        assert len(loaded.room_catalog.rooms) == len(config.room_catalog.rooms)
        assert loaded.electives.electives[0].syllabus == config.electives.electives[0].syllabus

    def test_saved_yaml_has_section_comments(self, tmp_path: Path):
        mgr = ConfigManager(tmp_path / "campus_config.yaml")
        mgr.save(default_campus_config())
        text = mgr.DEFAULT_CONFIG.read_text(encoding="utf-8")
        assert text.startswith("# ====")
        assert "Raumkatalog" in text
        assert "skip | override | manual" in text

    def test_first_run_check(self, tmp_path: Path):
        mgr = ConfigManager(tmp_path / "campus_config.yaml")
        assert mgr.first_run_check() is True
        mgr.save(default_campus_config())
        assert mgr.first_run_check() is False

    def test_load_nonexistent_raises(self, tmp_path: Path):
        """Laden einer nicht-existenten Datei → FileNotFoundError."""
        mgr = ConfigManager()
        with pytest.raises(FileNotFoundError):
            mgr.load(tmp_path / "not_there.yaml")

    def test_load_invalid_raises_value_error(self, tmp_path: Path):
        path = tmp_path / "broken.yaml"
        path.write_text("college_name: X\ntime_grid:\n  periods: ['9:30']\n", encoding="utf-8")
        with pytest.raises(ValueError, match="ungültig"):
            ConfigManager().load(path)


# ─── MODELLE ──────────────────────────────────────────────────────────────────

class TestPeriod:
    def test_parse_morning(self):
        p = Period.parse("8:40-9:30")
        assert p.start_minutes == 8 * 60 + 40
        assert p.end_minutes == 9 * 60 + 30
        assert p.duration_minutes == 50

    def test_afternoon_without_am_pm(self):
        """Stunden vor 8 Uhr zählen als Nachmittag."""
        p = Period.parse("12:50-1:40")
        assert p.start_label == "12:50"
        assert p.end_label == "13:40"
        assert Period.parse("3:20-4:10").start_hour == 15

    def test_overlap_is_numeric_not_textual(self):
        """'10:20' < '9:30' als Text, aber nicht als Uhrzeit."""
        assert not Period.parse("9:30-10:20").overlaps(Period.parse("10:20-11:10"))
        assert Period.parse("9:00-10:00").overlaps(Period.parse("9:30-10:20"))
        assert Period.parse("1:00-2:00").overlaps(Period.parse("12:50-1:40"))
        assert not Period.parse("1:40-2:30").overlaps(Period.parse("12:50-1:40"))

    def test_contains(self):
        p = Period.parse("9:30-10:20")
        assert p.contains(9 * 60 + 30)
        assert not p.contains(10 * 60 + 20)

    @pytest.mark.parametrize("text", ["9:30", "", "abc-def", "10:00-9:00", "25:00-26:00", "9:75-10:00"])
    def test_invalid(self, text):
        with pytest.raises(PeriodFormatError):
            Period.parse(text)

    def test_parse_clock_custom_day_start(self):
        assert parse_clock("7:30", day_start_hour=7) == 7 * 60 + 30
        assert parse_clock("7:30", day_start_hour=8) == 19 * 60 + 30


class TestModels:
    def test_room_available_maps_to_free(self):
        room = Room(id="101", name="Room 101", status="available")
        assert room.status == RoomStatus.FREE

    def test_room_features_from_string(self):
        room = Room(id="101", name="Room 101", features="Projector, AC ,")
        assert room.features == ["Projector", "AC"]

    def test_room_invalid_status(self):
        with pytest.raises(ValidationError):
            Room(id="101", name="Room 101", status="kaputt")

    def test_schedule_day_lowercased(self):
        entry = ScheduleEntry(room_id="101", course_name="DBMS", day=" Monday", period="9:30-10:20")
        assert entry.day == "monday"
        assert entry.year == "3"
        assert entry.group_label == "CSE Jahr 3 Sek. A"

    def test_schedule_year_coerced(self):
        entry = ScheduleEntry(room_id="101", course_name="DBMS", day="monday",
                              period="9:30-10:20", year=2)
        assert entry.year == "2"

    def test_duplicate_key_ignores_id(self):
        a = ScheduleEntry(room_id="101", course_name="DBMS", day="monday", period="9:30-10:20")
        b = ScheduleEntry(room_id="101", course_name="DBMS", day="Monday", period="9:30-10:20")
        assert a.id != b.id
        assert a.duplicate_key == b.duplicate_key


# ─── CLI ──────────────────────────────────────────────────────────────────────

_CSV = (
    "room_id,room_name,course,day,period,professor\n"
    "101,Room 101,Data Structures,Monday,9:30-10:20,Dr. Rao\n"
    "CSE1,CSE Lab 1,DBMS Lab,Tuesday,1:40-2:30,Dr. Iyer\n"
)


class TestCli:
    def test_help(self):
        """main.py --help gibt Usage aus."""
        from click.testing import CliRunner
        from main import cli
        runner = CliRunner()
        result = runner.invoke(cli, ["--help"])
        assert result.exit_code == 0
        assert "Usage" in result.output

    def test_config_show_no_file(self):
        """config show ohne Konfiguration → Fehlermeldung."""
        from click.testing import CliRunner
        from main import cli
        runner = CliRunner()
        with runner.isolated_filesystem():
            result = runner.invoke(cli, ["config", "show"])
            assert result.exit_code == 1
            assert "Keine Konfiguration" in result.output

    @pytest.mark.parametrize("command", [
        ["import"], ["files", "list"], ["files", "delete"], ["files", "stats"],
        ["schedule", "add"], ["schedule", "grid"], ["cancel", "room"],
        ["cancel", "schedule"], ["rooms", "availability"], ["rooms", "find-free"],
        ["rooms", "set-status"], ["analytics"], ["electives", "list"],
        ["electives", "select"], ["status"],
    ])
    def test_commands_registered(self, command):
        from click.testing import CliRunner
        from main import cli
        result = CliRunner().invoke(cli, command + ["--help"])
        assert result.exit_code == 0

    def test_setup_import_and_status(self):
        """setup → import → status im leeren Verzeichnis."""
        from click.testing import CliRunner
        from main import cli
        runner = CliRunner()
        with runner.isolated_filesystem():
            assert runner.invoke(cli, ["setup"]).exit_code == 0
            Path("plan.csv").write_text(_CSV, encoding="utf-8")

            result = runner.invoke(cli, ["import", "plan.csv", "-d", "CSE"])
            assert result.exit_code == 0, result.output
            assert "neue Einträge" in result.output
            assert Path("output/campus_data.json").exists()

            result = runner.invoke(cli, ["status"])
            assert result.exit_code == 0
            assert "schedules" in result.output

    def test_import_invalid_file_exits_1(self):
        from click.testing import CliRunner
        from main import cli
        runner = CliRunner()
        with runner.isolated_filesystem():
            runner.invoke(cli, ["setup"])
            Path("plan.csv").write_text(
                "room_id,room_name,course,day,period\n101,Room 101,DBMS,Monday,9:30\n",
                encoding="utf-8",
            )
            result = runner.invoke(cli, ["import", "plan.csv"])
            assert result.exit_code == 1
            assert "Import fehlgeschlagen" in result.output

    def test_schedule_conflict_exits_1(self):
        from click.testing import CliRunner
        from main import cli
        runner = CliRunner()
        args = ["schedule", "add", "--room", "101", "--course", "OS",
                "--professor", "Dr. Rao", "--day", "monday", "--period", "9:30-10:20"]
        with runner.isolated_filesystem():
            runner.invoke(cli, ["setup"])
            assert runner.invoke(cli, args).exit_code == 0
            result = runner.invoke(cli, args[:5] + ["CN"] + args[6:])
            assert result.exit_code == 1
            assert "belegt" in result.output
