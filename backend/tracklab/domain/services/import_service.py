"""
Import d'un fichier unique : normalisation -> enrichissement -> doublons -> métriques
"""
import logging
from typing import Iterable, Optional

from tracklab.domain.entities.pipeline_config import DuplicateTolerance, MetricsConfig
from tracklab.domain.entities.track import RawActivity
from tracklab.domain.entities.workout import ActivitySummary, WorkoutRecord
from tracklab.domain.errors import DuplicateActivityError
from tracklab.domain.services.duplicate_detector import find_duplicate
from tracklab.domain.services.geometry import EnrichedTrack, enrich_track, summarize
from tracklab.domain.services.metrics_service import compute_track_metrics
from tracklab.domain.services.normalizers import FitDecoder, normalize

logger = logging.getLogger(__name__)

DEFAULT_ACTIVITY_TYPE = "Run"


def build_workout_record(
    raw: RawActivity,
    config: MetricsConfig,
    source_path: Optional[str] = None,
    name: Optional[str] = None,
    activity_type: Optional[str] = None,
    track: Optional[EnrichedTrack] = None,
) -> WorkoutRecord:
    """Assemble la séance canonique (résumé + métriques) à partir d'une trace"""
    track = track or enrich_track(raw)
    summary = summarize(raw, track)
    return WorkoutRecord(
        source_path=source_path,
        name=name or raw.name,
        activity_type=activity_type or DEFAULT_ACTIVITY_TYPE,
        source_format=raw.source_format,
        device_name=raw.device_name,
        start_time=raw.start_time,
        distance_m=summary.distance_m,
        duration_s=summary.duration_s,
        track=raw,
        metrics=compute_track_metrics(track, config),
    )


def import_file(
    data: bytes,
    declared_format,
    config: MetricsConfig,
    existing: Iterable[ActivitySummary] = (),
    tolerance: Optional[DuplicateTolerance] = None,
    source_path: Optional[str] = None,
    name: Optional[str] = None,
    activity_type: Optional[str] = None,
    decoder: Optional[FitDecoder] = None,
) -> WorkoutRecord:
    """
    Importe un fichier d'activité.

    Args:
        data: contenu brut du fichier
        declared_format: gps-xml, tabular-csv, vendor-binary, vendor-binary+gzip
        config: paramètres des calculateurs
        existing: résumés des séances connues (itérable paresseux accepté)

    Raises:
        FormatError, EmptyTrackError: contenu inexploitable
        DuplicateActivityError: une séance existante correspond
    """
    raw = normalize(data, declared_format, decoder)
    track = enrich_track(raw)
    candidate = summarize(raw, track)

    duplicate = find_duplicate(candidate, existing, tolerance)
    if duplicate is not None:
        raise DuplicateActivityError(
            f"Activite deja importee (depart {duplicate.start_time.isoformat()})",
            existing=duplicate,
        )

    record = build_workout_record(
        raw, config,
        source_path=source_path,
        name=name,
        activity_type=activity_type,
        track=track,
    )
    logger.info(
        f"Import {source_path or declared_format}: {record.distance_m:.0f}m, "
        f"{record.duration_s:.0f}s, {len(raw.points)} points"
    )
    return record
