"""
Import en masse d'une archive d'export (zip + activities.csv)

Chaque ligne du manifeste passe indépendamment par normalisation ->
enrichissement -> doublons -> métriques dans un pool de processus borné.
Un fichier corrompu produit un Failed pour sa ligne sans interrompre le lot.
Les résultats sont validés dans l'ordre du manifeste par le thread
orchestrateur, seul à toucher l'index de doublons du lot.
"""
import logging
import os
import tempfile
import threading
import time
from collections import deque
from concurrent.futures import FIRST_COMPLETED, Future, ProcessPoolExecutor, wait
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Deque, Dict, Iterable, List, Optional, Sequence, Set, Union
from uuid import UUID

from pydantic import ValidationError

from tracklab.domain.entities.pipeline_config import DuplicateTolerance, MetricsConfig
from tracklab.domain.entities.track import SourceFormat
from tracklab.domain.entities.workout import ActivitySummary, ImportOutcome, ImportStatus, ManifestRow, WorkoutRecord
from tracklab.domain.errors import (
    DuplicateActivityError,
    FormatError,
    ImportTimeoutError,
    IngestionError,
    SourceIOError,
)
from tracklab.domain.services.duplicate_detector import find_duplicate
from tracklab.domain.services.import_service import import_file
from tracklab.domain.services.manifest_service import extract_archive, read_manifest, resolve_activity_file
from tracklab.domain.services.normalizers import FitDecoder, format_from_filename

logger = logging.getLogger(__name__)

REASON_UNSUPPORTED_TYPE = "unsupported activity type"
REASON_NO_FILE = "no activity file"
REASON_DUPLICATE = "duplicate"
REASON_CANCELLED = "batch cancelled"

DEFAULT_FILE_TIMEOUT_S = 120.0

# Intervalle de scrutation des lignes soumises mais pas encore démarrées
START_POLL_S = 0.05

RowResult = Union[WorkoutRecord, ImportOutcome, BaseException]


def process_row(
    path: str,
    declared_format: str,
    config: MetricsConfig,
    existing: Sequence[ActivitySummary],
    tolerance: Optional[DuplicateTolerance],
    source_path: str,
    name: Optional[str] = None,
    activity_type: Optional[str] = None,
    decoder: Optional[FitDecoder] = None,
) -> WorkoutRecord:
    """Pipeline complet d'une ligne, exécuté dans un worker (doit rester picklable)"""
    try:
        data = Path(path).read_bytes()
    except OSError as e:
        raise SourceIOError(f"Lecture impossible de {source_path}: {e}") from e

    try:
        return import_file(
            data,
            declared_format,
            config,
            existing=existing,
            tolerance=tolerance,
            source_path=source_path,
            name=name,
            activity_type=activity_type,
            decoder=decoder,
        )
    except ValidationError as e:
        # Les ValidationError pydantic ne traversent pas toujours le pickling
        raise FormatError(f"Donnees invalides dans {source_path}: {e}") from e


@dataclass(frozen=True)
class _RowTask:
    row: ManifestRow
    path: str
    declared_format: SourceFormat


class BulkImporter:
    """
    Orchestrateur d'import d'archive.

    Args:
        config: paramètres des calculateurs
        tolerance: tolérances de doublons
        existing_summaries: fournit les résumés des séances déjà stockées,
            figés en un instantané au début de chaque lot
        persist: callback de persistance, retourne l'id de la séance stockée
        tracked_activity_type: type suivi (les autres lignes sont ignorées)
        max_workers: taille du pool (défaut: nombre de coeurs)
        file_timeout_s: durée maximale de traitement d'un fichier
        executor_cls: ProcessPoolExecutor par défaut, injectable pour les tests
    """

    def __init__(
        self,
        config: MetricsConfig,
        tolerance: Optional[DuplicateTolerance] = None,
        existing_summaries: Optional[Callable[[], Iterable[ActivitySummary]]] = None,
        persist: Optional[Callable[[WorkoutRecord], UUID]] = None,
        tracked_activity_type: str = "Run",
        max_workers: Optional[int] = None,
        file_timeout_s: Optional[float] = DEFAULT_FILE_TIMEOUT_S,
        executor_cls=ProcessPoolExecutor,
        decoder: Optional[FitDecoder] = None,
    ):
        self.config = config
        self.tolerance = tolerance or DuplicateTolerance()
        self.existing_summaries = existing_summaries
        self.persist = persist
        self.tracked_activity_type = tracked_activity_type
        self.max_workers = max_workers or os.cpu_count() or 1
        self.file_timeout_s = file_timeout_s
        self.executor_cls = executor_cls
        self.decoder = decoder

    def import_batch(
        self,
        archive_bytes: bytes,
        cancel_event: Optional[threading.Event] = None,
    ) -> List[ImportOutcome]:
        """
        Importe toutes les lignes d'une archive, dans l'ordre du manifeste.

        Raises:
            SourceIOError: archive illisible
            FormatError: manifeste absent ou colonnes manquantes
        """
        cancel_event = cancel_event or threading.Event()
        started = time.monotonic()

        with tempfile.TemporaryDirectory(prefix="tracklab-import-") as tmp:
            root = Path(tmp)
            extract_archive(archive_bytes, root)
            rows = read_manifest(root)
            outcomes = self._import_rows(root, rows, cancel_event)

        counts = {status: 0 for status in ImportStatus}
        for outcome in outcomes:
            counts[outcome.status] += 1
        logger.info(
            f"Import termine en {time.monotonic() - started:.1f}s: "
            f"{counts[ImportStatus.IMPORTED]} importees, "
            f"{counts[ImportStatus.SKIPPED]} ignorees, "
            f"{counts[ImportStatus.FAILED]} en echec"
        )
        return outcomes

    def _plan_rows(self, root: Path, rows: List[ManifestRow], outcomes: Dict[int, ImportOutcome]) -> List[_RowTask]:
        tracked = self.tracked_activity_type.strip().lower()
        tasks: List[_RowTask] = []
        for row in rows:
            source_path = row.filename or f"row {row.row_number}"
            if row.activity_type.strip().lower() != tracked:
                outcomes[row.row_number] = ImportOutcome.skipped(source_path, REASON_UNSUPPORTED_TYPE)
                continue
            if not row.filename:
                outcomes[row.row_number] = ImportOutcome.skipped(source_path, REASON_NO_FILE)
                continue
            try:
                declared_format = format_from_filename(row.filename)
                path = resolve_activity_file(root, row.filename)
            except IngestionError as e:
                outcomes[row.row_number] = ImportOutcome.failed(source_path, e)
                continue
            tasks.append(_RowTask(row=row, path=str(path), declared_format=declared_format))
        return tasks

    def _import_rows(
        self,
        root: Path,
        rows: List[ManifestRow],
        cancel_event: threading.Event,
    ) -> List[ImportOutcome]:
        outcomes: Dict[int, ImportOutcome] = {}
        tasks = self._plan_rows(root, rows, outcomes)

        if tasks:
            snapshot = list(self.existing_summaries()) if self.existing_summaries else []
            results = self._run_tasks(tasks, snapshot, cancel_event)

            batch_index: List[ActivitySummary] = []
            for task in tasks:
                outcomes[task.row.row_number] = self._commit(
                    task, results[task.row.row_number], batch_index
                )

        ordered = [outcomes[row.row_number] for row in rows]
        for outcome in ordered:
            if outcome.status == ImportStatus.SKIPPED:
                logger.info(f"Ignoree {outcome.source_path}: {outcome.reason}")
            elif outcome.status == ImportStatus.FAILED:
                logger.warning(f"Echec {outcome.source_path}: {outcome.error_type}: {outcome.error}")
        return ordered

    def _submit(self, executor, task: _RowTask, snapshot: List[ActivitySummary]) -> Future:
        return executor.submit(
            process_row,
            task.path,
            task.declared_format.value,
            self.config,
            snapshot,
            self.tolerance,
            task.row.filename,
            task.row.name or None,
            self.tracked_activity_type,
            self.decoder,
        )

    def _run_tasks(
        self,
        tasks: List[_RowTask],
        snapshot: List[ActivitySummary],
        cancel_event: threading.Event,
    ) -> Dict[int, RowResult]:
        """
        Exécute les lignes, au plus une par worker disponible.

        Le délai d'une ligne court à partir du moment où un worker la prend
        en charge, pas de sa soumission. Un worker resté bloqué sur une ligne
        expirée n'est plus compté comme disponible ; si tous le sont, le pool
        est abandonné et les lignes restantes repartent sur un pool neuf.
        """
        results: Dict[int, RowResult] = {}
        queue: Deque[_RowTask] = deque(tasks)
        in_flight: Dict[Future, _RowTask] = {}
        deadlines: Dict[Future, float] = {}
        stuck: Set[Future] = set()

        executor = self.executor_cls(max_workers=self.max_workers)
        try:
            while queue or in_flight:
                stuck = {future for future in stuck if not future.done()}
                if len(stuck) >= self.max_workers:
                    executor = self._replace_executor(executor, in_flight, deadlines, queue)
                    stuck = set()

                capacity = self.max_workers - len(stuck)
                while queue and len(in_flight) < capacity and not cancel_event.is_set():
                    task = queue.popleft()
                    try:
                        future = self._submit(executor, task, snapshot)
                    except Exception as e:
                        # Pool cassé : la ligne échoue, les suivantes aussi
                        results[task.row.row_number] = e
                        continue
                    in_flight[future] = task

                if cancel_event.is_set() and queue:
                    logger.warning(f"Lot annule: {len(queue)} lignes non lancees")
                    while queue:
                        task = queue.popleft()
                        results[task.row.row_number] = ImportOutcome.skipped(
                            task.row.filename, REASON_CANCELLED
                        )

                if not in_flight:
                    continue

                done, _ = wait(
                    list(in_flight),
                    timeout=self._next_wakeup(in_flight, deadlines),
                    return_when=FIRST_COMPLETED,
                )

                for future in done:
                    task = in_flight.pop(future)
                    deadlines.pop(future, None)
                    try:
                        results[task.row.row_number] = future.result()
                    except Exception as e:
                        results[task.row.row_number] = e

                now = time.monotonic()
                for future, deadline in list(deadlines.items()):
                    if deadline <= now and not future.done():
                        task = in_flight.pop(future)
                        del deadlines[future]
                        stuck.add(future)
                        results[task.row.row_number] = ImportTimeoutError(
                            f"{task.row.filename}: plus de {self.file_timeout_s:.0f}s de traitement"
                        )
        finally:
            # Un worker bloqué ne doit pas bloquer le retour du lot
            executor.shutdown(wait=not stuck, cancel_futures=True)

        return results

    def _next_wakeup(self, in_flight: Dict[Future, _RowTask], deadlines: Dict[Future, float]) -> Optional[float]:
        """Arme le délai des lignes démarrées, retourne l'attente avant le prochain contrôle"""
        if self.file_timeout_s is None:
            return None

        now = time.monotonic()
        waiting_start = False
        for future in in_flight:
            if future in deadlines:
                continue
            if future.running() or future.done():
                deadlines[future] = now + self.file_timeout_s
            else:
                waiting_start = True

        timeout = max(0.0, min(deadlines.values()) - now) if deadlines else None
        if waiting_start:
            timeout = START_POLL_S if timeout is None else min(timeout, START_POLL_S)
        return timeout

    def _replace_executor(
        self,
        executor,
        in_flight: Dict[Future, _RowTask],
        deadlines: Dict[Future, float],
        queue: Deque[_RowTask],
    ):
        """Tous les workers sont bloqués : les lignes en attente repartent sur un pool neuf"""
        pending = [task for future, task in in_flight.items() if future.cancel()]
        for future in [f for f in in_flight if f.cancelled()]:
            del in_flight[future]
            deadlines.pop(future, None)
        queue.extendleft(reversed(pending))

        logger.warning(
            f"{self.max_workers} worker(s) bloque(s) sur des fichiers expires, "
            f"nouveau pool pour {len(queue)} ligne(s)"
        )
        executor.shutdown(wait=False, cancel_futures=True)
        return self.executor_cls(max_workers=self.max_workers)

    def _commit(self, task: _RowTask, result: RowResult, batch_index: List[ActivitySummary]) -> ImportOutcome:
        source_path = task.row.filename
        if isinstance(result, ImportOutcome):
            return result
        if isinstance(result, DuplicateActivityError):
            return ImportOutcome.skipped(source_path, REASON_DUPLICATE)
        if isinstance(result, BaseException):
            return ImportOutcome.failed(source_path, result)

        summary = result.summary()
        if find_duplicate(summary, batch_index, self.tolerance) is not None:
            return ImportOutcome.skipped(source_path, REASON_DUPLICATE)

        try:
            workout_id = self.persist(result) if self.persist else result.id
        except Exception as e:
            logger.error(f"Persistance impossible pour {source_path}: {e}", exc_info=True)
            return ImportOutcome.failed(source_path, e)

        batch_index.append(summary)
        return ImportOutcome.imported(source_path, workout_id)
