"""
Tests du point d'entrée CLI (import-file, import-archive).
"""
import io
import json
import logging
import zipfile

import pytest

from tracklab.cli import build_parser, main

from track_factory import activity_csv, uniform_activity


@pytest.fixture
def cli_env(tmp_path, monkeypatch):
    """Répertoire isolé (pas de .env), sans fichier de log, base sqlite temporaire"""
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("ENVIRONMENT", "development")
    monkeypatch.setenv("LOG_FILE", "")
    monkeypatch.setenv("SENTRY_DSN", "")
    monkeypatch.setenv("HR_ZONE_METHOD", "")
    monkeypatch.setenv("DATABASE_URL", f"sqlite:///{tmp_path / 'cli.db'}")

    root = logging.getLogger()
    handlers = list(root.handlers)
    level = root.level
    yield tmp_path
    root.handlers = handlers
    root.setLevel(level)


def _write_csv(directory, name="sortie.csv"):
    path = directory / name
    path.write_bytes(activity_csv(uniform_activity(101)))
    return path


def _read_report(path):
    return json.loads(path.read_text(encoding="utf-8"))


# ============================================================
# Tests parser
# ============================================================

class TestParser:

    def test_import_file_arguments(self):
        args = build_parser().parse_args(["--no-store", "import-file", "a.csv", "--format", "tabular-csv"])

        assert args.command == "import-file"
        assert args.no_store is True
        assert args.declared_format == "tabular-csv"

    def test_command_is_required(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args([])


# ============================================================
# Tests import-file
# ============================================================

class TestImportFileCommand:

    def test_report_written_to_output(self, cli_env):
        source = _write_csv(cli_env)
        output = cli_env / "rapport.json"

        code = main(["--no-store", "-o", str(output), "import-file", str(source)])

        assert code == 0
        report = _read_report(output)
        assert report["status"] == "imported"
        assert report["workout"]["source_format"] == "tabular-csv"
        assert report["workout"]["distance_m"] == pytest.approx(1000.0, abs=0.1)
        assert report["workout"]["duration_s"] == 300.0

    def test_missing_file(self, cli_env, capsys):
        code = main(["--no-store", "import-file", str(cli_env / "absent.gpx")])

        assert code == 1
        assert "n'existe pas" in capsys.readouterr().err

    def test_unreadable_content(self, cli_env, capsys):
        source = cli_env / "casse.gpx"
        source.write_bytes(b"pas du xml")

        code = main(["--no-store", "import-file", str(source)])

        assert code == 1
        assert "Erreur" in capsys.readouterr().err

    def test_second_import_is_skipped_as_duplicate(self, cli_env):
        source = _write_csv(cli_env)
        first = cli_env / "premier.json"
        second = cli_env / "second.json"

        assert main(["-o", str(first), "import-file", str(source)]) == 0
        assert main(["-o", str(second), "import-file", str(source)]) == 0

        assert _read_report(first)["status"] == "imported"
        report = _read_report(second)
        assert report["status"] == "skipped"
        assert report["reason"] == "duplicate"


# ============================================================
# Tests import-archive
# ============================================================

class TestImportArchiveCommand:

    def test_archive_report(self, cli_env):
        buffer = io.BytesIO()
        with zipfile.ZipFile(buffer, "w") as archive:
            archive.writestr(
                "activities.csv",
                "Activity ID,Activity Date,Activity Name,Activity Type,Filename\n"
                "1,2024-05-01,Footing,Run,activities/1.csv\n"
                "2,2024-05-02,Velotaf,Ride,activities/2.csv\n",
            )
            archive.writestr("activities/1.csv", activity_csv(uniform_activity(101)))
        source = cli_env / "export.zip"
        source.write_bytes(buffer.getvalue())
        output = cli_env / "rapport.json"

        code = main(["--no-store", "-o", str(output), "import-archive", str(source), "--workers", "1"])

        assert code == 0
        outcomes = _read_report(output)
        assert [o["status"] for o in outcomes] == ["imported", "skipped"]
        assert outcomes[1]["reason"] == "unsupported activity type"
