"""
Tests de l'import en masse d'une archive d'export.
Le pool de processus est remplace par un ThreadPoolExecutor.
Couvre : echec partiel, ordre du manifeste, filtres, doublons, persistance,
annulation, timeout, erreurs de lot.
"""
import csv
import io
import threading
import time
import zipfile
from concurrent.futures import ThreadPoolExecutor
from datetime import timedelta
from unittest.mock import MagicMock

import pytest

from tracklab.domain.entities.pipeline_config import MetricsConfig, best_effort_table
from tracklab.domain.entities.workout import ActivitySummary, ImportStatus
from tracklab.domain.errors import FormatError, SourceIOError
from tracklab.domain.services import bulk_import_service
from tracklab.domain.services.bulk_import_service import (
    REASON_CANCELLED,
    REASON_DUPLICATE,
    REASON_NO_FILE,
    REASON_UNSUPPORTED_TYPE,
    BulkImporter,
)

from track_factory import START, activity_csv, uniform_activity

MANIFEST_HEADER = [
    "Activity ID", "Activity Date", "Activity Name", "Activity Type",
    "Activity Description", "Filename", "Media",
]


def _activity_bytes(day: int) -> bytes:
    """Sortie de 1 km environ, un jour different par fichier."""
    activity = uniform_activity(101, step_m=10.0, step_s=3.0, start=START + timedelta(days=day))
    return activity_csv(activity)


def _archive(rows, files, manifest=True, header=None):
    """
    rows: liste de (type, filename) ; files: {filename: bytes}
    """
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w") as zf:
        if manifest:
            out = io.StringIO()
            writer = csv.writer(out)
            writer.writerow(header or MANIFEST_HEADER)
            for i, (activity_type, filename) in enumerate(rows, start=1):
                writer.writerow([str(1000 + i), "May 1, 2024", f"Sortie {i}", activity_type, "", filename, ""])
            zf.writestr("activities.csv", out.getvalue())
        for filename, content in files.items():
            zf.writestr(filename, content)
    return buffer.getvalue()


def _five_rows_with_corrupt_third():
    rows = [("Run", f"activities/{i}.csv") for i in range(1, 6)]
    rows[2] = ("Run", "activities/3.gpx")
    files = {f"activities/{i}.csv": _activity_bytes(i) for i in (1, 2, 4, 5)}
    files["activities/3.gpx"] = b"<gpx><trk><trkseg><trkpt lat="
    return rows, files


def _importer(**kwargs):
    kwargs.setdefault("config", MetricsConfig(best_effort_distances=best_effort_table(["400m", "1K"])))
    kwargs.setdefault("max_workers", 2)
    kwargs.setdefault("executor_cls", ThreadPoolExecutor)
    return BulkImporter(**kwargs)


# ============================================================
# Tests echec partiel / ordre
# ============================================================

class TestPartialFailure:

    def test_corrupt_row_does_not_abort_batch(self):
        rows, files = _five_rows_with_corrupt_third()

        outcomes = _importer().import_batch(_archive(rows, files))

        assert len(outcomes) == 5
        assert [o.status for o in outcomes] == [
            ImportStatus.IMPORTED,
            ImportStatus.IMPORTED,
            ImportStatus.FAILED,
            ImportStatus.IMPORTED,
            ImportStatus.IMPORTED,
        ]
        assert [o.source_path for o in outcomes] == [row[1] for row in rows]
        assert outcomes[2].error_type == "FormatError"
        assert all(o.workout_id is not None for i, o in enumerate(outcomes) if i != 2)

    def test_order_preserved_with_single_worker(self):
        rows, files = _five_rows_with_corrupt_third()

        outcomes = _importer(max_workers=1).import_batch(_archive(rows, files))

        assert [o.source_path for o in outcomes] == [row[1] for row in rows]

    def test_missing_file_fails_row(self):
        rows = [("Run", "activities/1.csv"), ("Run", "activities/absent.csv")]
        files = {"activities/1.csv": _activity_bytes(1)}

        outcomes = _importer().import_batch(_archive(rows, files))

        assert outcomes[0].status == ImportStatus.IMPORTED
        assert outcomes[1].status == ImportStatus.FAILED
        assert outcomes[1].error_type == "SourceIOError"

    def test_unsupported_file_extension_fails_row(self):
        rows = [("Run", "activities/1.tcx")]

        outcomes = _importer().import_batch(_archive(rows, {"activities/1.tcx": b"<tcx/>"}))

        assert outcomes[0].status == ImportStatus.FAILED
        assert outcomes[0].error_type == "FormatError"


# ============================================================
# Tests filtres du manifeste
# ============================================================

class TestManifestFilters:

    def test_other_activity_types_are_skipped(self):
        rows = [("Ride", "activities/1.csv"), ("run", "activities/2.csv"), ("Swim", "")]
        files = {"activities/1.csv": _activity_bytes(1), "activities/2.csv": _activity_bytes(2)}

        outcomes = _importer().import_batch(_archive(rows, files))

        assert outcomes[0].status == ImportStatus.SKIPPED
        assert outcomes[0].reason == REASON_UNSUPPORTED_TYPE
        # Comparaison insensible a la casse
        assert outcomes[1].status == ImportStatus.IMPORTED
        assert outcomes[2].reason == REASON_UNSUPPORTED_TYPE

    def test_run_without_file(self):
        outcomes = _importer().import_batch(_archive([("Run", "")], {}))

        assert outcomes[0].status == ImportStatus.SKIPPED
        assert outcomes[0].reason == REASON_NO_FILE

    def test_custom_tracked_type(self):
        rows = [("Run", "activities/1.csv"), ("Trail Run", "activities/2.csv")]
        files = {"activities/1.csv": _activity_bytes(1), "activities/2.csv": _activity_bytes(2)}

        outcomes = _importer(tracked_activity_type="Trail Run").import_batch(_archive(rows, files))

        assert [o.status for o in outcomes] == [ImportStatus.SKIPPED, ImportStatus.IMPORTED]


# ============================================================
# Tests doublons
# ============================================================

class TestDuplicates:

    def test_duplicate_within_batch(self):
        """Deux lignes decrivant la meme sortie : la premiere du manifeste gagne."""
        rows = [("Run", "activities/1.csv"), ("Run", "activities/1-copy.csv")]
        files = {"activities/1.csv": _activity_bytes(1), "activities/1-copy.csv": _activity_bytes(1)}

        outcomes = _importer().import_batch(_archive(rows, files))

        assert outcomes[0].status == ImportStatus.IMPORTED
        assert outcomes[1].status == ImportStatus.SKIPPED
        assert outcomes[1].reason == REASON_DUPLICATE

    def test_duplicate_of_stored_workout(self):
        stored = ActivitySummary(start_time=START + timedelta(days=1), distance_m=1000.0, duration_s=300.0)
        rows = [("Run", "activities/1.csv"), ("Run", "activities/2.csv")]
        files = {"activities/1.csv": _activity_bytes(1), "activities/2.csv": _activity_bytes(2)}

        outcomes = _importer(existing_summaries=lambda: [stored]).import_batch(_archive(rows, files))

        assert outcomes[0].status == ImportStatus.SKIPPED
        assert outcomes[0].reason == REASON_DUPLICATE
        assert outcomes[1].status == ImportStatus.IMPORTED


# ============================================================
# Tests persistance
# ============================================================

class TestPersistence:

    def test_persist_called_for_each_imported_record(self):
        rows, files = _five_rows_with_corrupt_third()
        persist = MagicMock(side_effect=lambda record: record.id)

        outcomes = _importer(persist=persist).import_batch(_archive(rows, files))

        assert persist.call_count == 4
        persisted_ids = [call.args[0].id for call in persist.call_args_list]
        assert persisted_ids == [o.workout_id for o in outcomes if o.status == ImportStatus.IMPORTED]

    def test_persist_failure_only_fails_its_row(self):
        rows = [("Run", f"activities/{i}.csv") for i in (1, 2, 3)]
        files = {f"activities/{i}.csv": _activity_bytes(i) for i in (1, 2, 3)}

        def persist(record):
            if record.source_path == "activities/2.csv":
                raise RuntimeError("base indisponible")
            return record.id

        outcomes = _importer(persist=persist).import_batch(_archive(rows, files))

        assert [o.status for o in outcomes] == [
            ImportStatus.IMPORTED, ImportStatus.FAILED, ImportStatus.IMPORTED,
        ]
        assert outcomes[1].error == "base indisponible"


# ============================================================
# Tests annulation / timeout
# ============================================================

class TestCancellationAndTimeout:

    def test_cancelled_before_dispatch(self):
        rows = [("Run", "activities/1.csv"), ("Ride", "activities/2.csv"), ("Run", "activities/3.csv")]
        files = {f"activities/{i}.csv": _activity_bytes(i) for i in (1, 2, 3)}
        cancel_event = threading.Event()
        cancel_event.set()

        outcomes = _importer().import_batch(_archive(rows, files), cancel_event=cancel_event)

        assert len(outcomes) == 3
        assert outcomes[0].reason == REASON_CANCELLED
        assert outcomes[1].reason == REASON_UNSUPPORTED_TYPE
        assert outcomes[2].reason == REASON_CANCELLED

    def test_cancel_during_batch_lets_in_flight_rows_finish(self):
        """Annulation apres le 2e envoi : les lignes en vol aboutissent, le reste n'est pas lance."""
        rows = [("Run", f"activities/{i}.csv") for i in range(1, 7)]
        files = {f"activities/{i}.csv": _activity_bytes(i) for i in range(1, 7)}
        cancel_event = threading.Event()

        class CancellingExecutor(ThreadPoolExecutor):
            submitted = 0

            def submit(self, fn, *args, **kwargs):
                future = super().submit(fn, *args, **kwargs)
                CancellingExecutor.submitted += 1
                if CancellingExecutor.submitted == 2:
                    cancel_event.set()
                return future

        importer = _importer(max_workers=3, executor_cls=CancellingExecutor)
        outcomes = importer.import_batch(_archive(rows, files), cancel_event=cancel_event)

        assert CancellingExecutor.submitted == 2
        assert [o.status for o in outcomes[:2]] == [ImportStatus.IMPORTED, ImportStatus.IMPORTED]
        assert all(o.status == ImportStatus.SKIPPED for o in outcomes[2:])
        assert all(o.reason == REASON_CANCELLED for o in outcomes[2:])

    def test_slow_file_times_out(self, monkeypatch):
        rows = [("Run", f"activities/{i}.csv") for i in (1, 2, 3)]
        files = {f"activities/{i}.csv": _activity_bytes(i) for i in (1, 2, 3)}
        original = bulk_import_service.process_row

        def slow_process_row(path, *args, **kwargs):
            if path.endswith("2.csv"):
                time.sleep(2.0)
            return original(path, *args, **kwargs)

        monkeypatch.setattr(bulk_import_service, "process_row", slow_process_row)

        outcomes = _importer(file_timeout_s=0.5).import_batch(_archive(rows, files))

        assert outcomes[0].status == ImportStatus.IMPORTED
        assert outcomes[1].status == ImportStatus.FAILED
        assert outcomes[1].error_type == "ImportTimeoutError"
        assert outcomes[2].status == ImportStatus.IMPORTED

    def test_waiting_for_a_worker_is_not_charged(self, monkeypatch):
        """Un seul worker, deux lignes de 1 s chacune, delai de 1.5 s : les deux passent."""
        rows = [("Run", f"activities/{i}.csv") for i in (1, 2)]
        files = {f"activities/{i}.csv": _activity_bytes(i) for i in (1, 2)}
        original = bulk_import_service.process_row

        def slow_process_row(path, *args, **kwargs):
            time.sleep(1.0)
            return original(path, *args, **kwargs)

        monkeypatch.setattr(bulk_import_service, "process_row", slow_process_row)

        outcomes = _importer(max_workers=1, file_timeout_s=1.5).import_batch(_archive(rows, files))

        assert [o.status for o in outcomes] == [ImportStatus.IMPORTED, ImportStatus.IMPORTED]

    def test_blocked_worker_is_replaced_for_remaining_rows(self, monkeypatch):
        """Le seul worker reste bloque sur la ligne 1 : la ligne 2 passe sur un pool neuf."""
        rows = [("Run", f"activities/{i}.csv") for i in (1, 2)]
        files = {f"activities/{i}.csv": _activity_bytes(i) for i in (1, 2)}
        original = bulk_import_service.process_row

        def slow_process_row(path, *args, **kwargs):
            if path.endswith("1.csv"):
                time.sleep(1.5)
            return original(path, *args, **kwargs)

        monkeypatch.setattr(bulk_import_service, "process_row", slow_process_row)

        outcomes = _importer(max_workers=1, file_timeout_s=0.3).import_batch(_archive(rows, files))

        assert outcomes[0].status == ImportStatus.FAILED
        assert outcomes[0].error_type == "ImportTimeoutError"
        assert outcomes[1].status == ImportStatus.IMPORTED


# ============================================================
# Tests erreurs de lot
# ============================================================

class TestBatchErrors:

    def test_not_a_zip(self):
        with pytest.raises(SourceIOError):
            _importer().import_batch(b"definitely not a zip archive")

    def test_missing_manifest(self):
        archive = _archive([], {"activities/1.csv": _activity_bytes(1)}, manifest=False)
        with pytest.raises(FormatError):
            _importer().import_batch(archive)

    def test_missing_manifest_columns(self):
        archive = _archive([], {}, header=["Activity ID", "Activity Type"])
        with pytest.raises(FormatError):
            _importer().import_batch(archive)

    def test_manifest_with_only_type_and_filename(self):
        buffer = io.BytesIO()
        with zipfile.ZipFile(buffer, "w") as zf:
            zf.writestr(
                "activities.csv",
                "Activity Type,Filename\nRun,activities/1.csv\nRide,activities/2.csv\n",
            )
            zf.writestr("activities/1.csv", _activity_bytes(1))

        outcomes = _importer().import_batch(buffer.getvalue())

        assert [o.status for o in outcomes] == [ImportStatus.IMPORTED, ImportStatus.SKIPPED]
        assert outcomes[1].reason == REASON_UNSUPPORTED_TYPE

    def test_zip_slip_is_rejected(self):
        buffer = io.BytesIO()
        with zipfile.ZipFile(buffer, "w") as zf:
            zf.writestr("../evil.csv", b"oops")
        with pytest.raises(SourceIOError):
            _importer().import_batch(buffer.getvalue())

    def test_empty_manifest(self):
        assert _importer().import_batch(_archive([], {})) == []
