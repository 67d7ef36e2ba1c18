"""
Recadrage d'une séance existante et recalcul des métriques
Ne repasse ni par les normalizers ni par la détection de doublons.
"""
import logging
from datetime import datetime
from typing import Tuple

from tracklab.domain.entities.metrics import DerivedMetrics
from tracklab.domain.entities.pipeline_config import MetricsConfig
from tracklab.domain.entities.track import RawActivity
from tracklab.domain.entities.workout import WorkoutRecord
from tracklab.domain.errors import InvalidRangeError
from tracklab.domain.services.geometry import enrich_track
from tracklab.domain.services.metrics_service import compute_track_metrics
from tracklab.domain.services.normalizers.common import MIN_TRACK_POINTS, to_utc

logger = logging.getLogger(__name__)

MIN_CROPPED_DURATION_S = 10.0


def _covered_range(track: RawActivity, new_start: datetime, new_end: datetime) -> Tuple[int, int]:
    """Indices (inclus) des points compris dans [new_start, new_end]"""
    new_start = to_utc(new_start)
    new_end = to_utc(new_end)
    if new_start >= new_end:
        raise InvalidRangeError(
            f"Debut {new_start.isoformat()} posterieur ou egal a la fin {new_end.isoformat()}"
        )

    indices = [
        i for i, point in enumerate(track.points)
        if new_start <= point.timestamp <= new_end
    ]
    if len(indices) < MIN_TRACK_POINTS:
        raise InvalidRangeError(
            f"La plage {new_start.isoformat()} - {new_end.isoformat()} "
            f"couvre {len(indices)} point(s)"
        )
    return indices[0], indices[-1]


def crop_track(track: RawActivity, new_start: datetime, new_end: datetime) -> RawActivity:
    start_index, end_index = _covered_range(track, new_start, new_end)
    return track.truncated(start_index, end_index)


def recompute(
    track: RawActivity,
    new_start: datetime,
    new_end: datetime,
    config: MetricsConfig,
) -> DerivedMetrics:
    """Recalcule toutes les métriques sur la portion [new_start, new_end]"""
    cropped = crop_track(track, new_start, new_end)
    return compute_track_metrics(enrich_track(cropped), config)


def crop_workout(
    record: WorkoutRecord,
    new_start: datetime,
    new_end: datetime,
    config: MetricsConfig,
) -> WorkoutRecord:
    """Nouvelle version de la séance recadrée (même id)"""
    cropped = crop_track(record.track, new_start, new_end)
    enriched = enrich_track(cropped)
    if enriched.total_duration_s < MIN_CROPPED_DURATION_S:
        raise InvalidRangeError(
            f"Duree recadree trop courte: {enriched.total_duration_s:.0f}s "
            f"(minimum {MIN_CROPPED_DURATION_S:.0f}s)"
        )

    metrics = compute_track_metrics(enriched, config)
    logger.info(
        f"Seance {record.id} recadree: {len(record.track.points)} -> {len(cropped.points)} points, "
        f"{record.distance_m:.0f}m -> {enriched.total_distance_m:.0f}m"
    )
    return record.model_copy(update={
        "track": cropped,
        "start_time": cropped.start_time,
        "distance_m": enriched.total_distance_m,
        "duration_s": enriched.total_duration_s,
        "metrics": metrics,
    })
