"""
Service de calcul des métriques dérivées d'une séance
Compose les calculateurs (splits, dénivelé, zones, effort, meilleurs efforts)
sur une trace enrichie. Fonction pure : mêmes points + même config = mêmes métriques.
"""
import logging
from typing import Iterable, Optional

from tracklab.domain.entities.metrics import DerivedMetrics
from tracklab.domain.entities.pipeline_config import MetricsConfig
from tracklab.domain.entities.track import RawActivity
from tracklab.domain.services.best_effort_service import find_best_efforts
from tracklab.domain.services.elevation_service import estimate_elevation
from tracklab.domain.services.geometry import EnrichedTrack, enrich_track, pace_seconds_per_unit
from tracklab.domain.services.heart_rate_zone_service import zone_distribution
from tracklab.domain.services.relative_effort_service import score_distribution
from tracklab.domain.services.split_service import build_splits

logger = logging.getLogger(__name__)


def _mean(values: Iterable[Optional[float]]) -> Optional[float]:
    present = [v for v in values if v is not None]
    if not present:
        return None
    return sum(present) / len(present)


def compute_track_metrics(track: EnrichedTrack, config: MetricsConfig) -> DerivedMetrics:
    """Métriques à partir d'une trace déjà enrichie"""
    points = track.points
    distance = track.total_distance_m
    duration = track.total_duration_s

    elevation = estimate_elevation(track, config.elevation)

    zones = None
    effort = None
    if config.zones is not None:
        zones = zone_distribution(track, config.zones)
        effort = score_distribution(zones)

    heart_rates = [p.heart_rate_bpm for p in points if p.heart_rate_bpm is not None]

    metrics = DerivedMetrics(
        distance_m=distance,
        duration_s=duration,
        avg_pace_s=pace_seconds_per_unit(duration, distance),
        splits=tuple(build_splits(track, config.split_distance_m)),
        elevation_gain_m=elevation.gain_m,
        elevation_loss_m=elevation.loss_m,
        min_elevation_m=elevation.min_m,
        max_elevation_m=elevation.max_m,
        avg_heart_rate_bpm=_mean(heart_rates),
        max_heart_rate_bpm=max(heart_rates) if heart_rates else None,
        avg_cadence_rpm=_mean(p.cadence_rpm for p in points),
        avg_power_watts=_mean(p.power_watts for p in points),
        zone_distribution=zones,
        relative_effort=effort,
        best_efforts=find_best_efforts(track, config.best_effort_distances),
    )

    logger.debug(
        f"Metriques: {distance:.0f}m en {duration:.0f}s, "
        f"{len(metrics.splits)} splits, effort={effort}"
    )
    return metrics


def compute_derived_metrics(raw: RawActivity, config: MetricsConfig) -> DerivedMetrics:
    """Enrichit la trace puis calcule toutes les métriques"""
    return compute_track_metrics(enrich_track(raw), config)
