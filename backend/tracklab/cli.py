#!/usr/bin/env python3
"""
CLI TrackLab : import d'un fichier d'activité ou d'une archive d'export
"""
import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

from tracklab.core.database import create_db_and_tables, make_engine
from tracklab.core.logging_config import configure_logging, init_sentry
from tracklab.core.settings import Settings, get_settings
from tracklab.domain.entities.workout import ImportStatus, WorkoutRecord
from tracklab.domain.errors import DuplicateActivityError, IngestionError
from tracklab.domain.services.bulk_import_service import BulkImporter
from tracklab.domain.services.import_service import import_file
from tracklab.domain.services.normalizers import format_from_filename
from tracklab.domain.services.workout_store import WorkoutStore

logger = logging.getLogger(__name__)


def _record_report(record: WorkoutRecord) -> Dict[str, Any]:
    metrics = record.metrics
    return {
        "id": str(record.id),
        "name": record.name,
        "source_format": record.source_format.value,
        "device_name": record.device_name,
        "start_time": record.start_time.isoformat(),
        "distance_m": round(record.distance_m, 1),
        "duration_s": round(record.duration_s, 1),
        "avg_pace_s": round(metrics.avg_pace_s, 1) if metrics.avg_pace_s is not None else None,
        "elevation_gain_m": round(metrics.elevation_gain_m, 1),
        "elevation_loss_m": round(metrics.elevation_loss_m, 1),
        "avg_heart_rate_bpm": metrics.avg_heart_rate_bpm,
        "relative_effort": metrics.relative_effort,
        "splits": [split.model_dump() for split in metrics.splits],
        "best_efforts": {
            label: round(candidate.time_s, 1)
            for label, candidate in metrics.best_efforts.items()
        },
    }


class TrackLabCLI:
    """Interface CLI du pipeline d'ingestion"""

    def __init__(self, settings: Settings, store: Optional[WorkoutStore] = None):
        self.settings = settings
        self.store = store
        self.config = settings.metrics_config()
        self.tolerance = settings.duplicate_tolerance()

    def import_file(self, path: Path, declared_format: Optional[str] = None) -> Dict[str, Any]:
        declared_format = declared_format or format_from_filename(path.name).value
        existing = self.store.iter_summaries() if self.store else ()
        try:
            record = import_file(
                path.read_bytes(),
                declared_format,
                self.config,
                existing=existing,
                tolerance=self.tolerance,
                source_path=str(path),
            )
        except DuplicateActivityError as e:
            logger.info(f"{path}: doublon ignore")
            return {"status": ImportStatus.SKIPPED.value, "reason": "duplicate", "error": str(e)}
        finally:
            # Libere la lecture en cours avant l'ecriture (sqlite)
            if self.store:
                existing.close()

        if self.store:
            self.store.save(record)
        return {"status": ImportStatus.IMPORTED.value, "workout": _record_report(record)}

    def import_archive(self, path: Path, max_workers: Optional[int] = None) -> List[Dict[str, Any]]:
        importer = BulkImporter(
            config=self.config,
            tolerance=self.tolerance,
            existing_summaries=self.store.iter_summaries if self.store else None,
            persist=self.store.save if self.store else None,
            tracked_activity_type=self.settings.TRACKED_ACTIVITY_TYPE,
            max_workers=max_workers or self.settings.IMPORT_MAX_WORKERS,
            file_timeout_s=self.settings.IMPORT_FILE_TIMEOUT_S,
        )
        outcomes = importer.import_batch(path.read_bytes())
        return [outcome.model_dump(mode="json", exclude_none=True) for outcome in outcomes]


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="tracklab",
        description="Import d'activités (GPX, CSV, FIT) et calcul des métriques dérivées",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Exemples d'utilisation:
  tracklab import-file sortie.gpx
  tracklab import-file export.csv --format tabular-csv --no-store
  tracklab import-archive export_strava.zip --workers 4 -o rapport.json
        """
    )
    parser.add_argument(
        '--verbose', '-v',
        action='store_true',
        help='Afficher les logs détaillés'
    )
    parser.add_argument(
        '--no-store',
        action='store_true',
        help='Ne rien persister (analyse seule)'
    )
    parser.add_argument(
        '-o', '--output',
        help='Fichier JSON de sortie pour le rapport (stdout sinon)'
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    file_parser = subparsers.add_parser("import-file", help="Importer un fichier d'activité")
    file_parser.add_argument("path", help="Fichier .gpx, .csv, .fit ou .fit.gz")
    file_parser.add_argument(
        "--format",
        dest="declared_format",
        choices=["gps-xml", "tabular-csv", "vendor-binary", "vendor-binary+gzip"],
        help="Format déclaré (déduit de l'extension sinon)"
    )

    archive_parser = subparsers.add_parser("import-archive", help="Importer une archive d'export")
    archive_parser.add_argument("path", help="Archive zip contenant activities.csv")
    archive_parser.add_argument(
        "--workers",
        type=int,
        help="Taille du pool de traitement (défaut: IMPORT_MAX_WORKERS ou nombre de coeurs)"
    )
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Point d'entrée principal du script CLI"""
    args = build_parser().parse_args(argv)

    settings = get_settings()
    configure_logging(settings)
    init_sentry(settings)
    if args.verbose:
        logging.getLogger().setLevel(logging.DEBUG)

    path = Path(args.path)
    if not path.exists():
        print(f"Erreur: Le fichier {path} n'existe pas", file=sys.stderr)
        return 1

    store = None
    if not args.no_store:
        engine = make_engine(settings.DATABASE_URL)
        create_db_and_tables(engine)
        store = WorkoutStore(engine)

    cli = TrackLabCLI(settings, store)
    try:
        if args.command == "import-file":
            report: Any = cli.import_file(path, args.declared_format)
        else:
            report = cli.import_archive(path, args.workers)
    except IngestionError as e:
        logger.error(f"{path}: {e.__class__.__name__}: {e}")
        print(f"Erreur: {e}", file=sys.stderr)
        return 1

    payload = json.dumps(report, indent=2, ensure_ascii=False, default=str)
    if args.output:
        Path(args.output).write_text(payload, encoding="utf-8")
        logger.info(f"Rapport sauvegarde: {args.output}")
    else:
        print(payload)
    return 0


if __name__ == "__main__":
    sys.exit(main())
