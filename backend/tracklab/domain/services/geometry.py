"""
Utilitaires géométriques et séries temporelles
Fonctions pures partagées par tous les calculateurs : distance Haversine,
enrichissement des points (distance/temps cumulés), allure, filtre d'altitude.
"""
import math
from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

from tracklab.domain.entities.metrics import ElevationConfig
from tracklab.domain.entities.track import RawActivity, TrackPoint
from tracklab.domain.entities.workout import ActivitySummary

EARTH_RADIUS_M = 6371000  # Rayon de la Terre en mètres

# Allure indéfinie (distance nulle)
UNDEFINED_PACE: Optional[float] = None


def haversine_distance(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """
    Calcule la distance entre deux points en mètres (formule de Haversine)
    """
    lat1_rad = math.radians(lat1)
    lat2_rad = math.radians(lat2)
    delta_lat = math.radians(lat2 - lat1)
    delta_lon = math.radians(lon2 - lon1)

    a = (math.sin(delta_lat / 2) ** 2 +
         math.cos(lat1_rad) * math.cos(lat2_rad) * math.sin(delta_lon / 2) ** 2)
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))

    return EARTH_RADIUS_M * c


def point_distance(a: TrackPoint, b: TrackPoint) -> float:
    return haversine_distance(a.latitude, a.longitude, b.latitude, b.longitude)


def pace_seconds_per_unit(duration_s: float, distance_m: float, unit_distance_m: float = 1000.0) -> Optional[float]:
    """Allure en secondes par unité (km par défaut), UNDEFINED_PACE si distance nulle"""
    if distance_m <= 0:
        return UNDEFINED_PACE
    return duration_s / (distance_m / unit_distance_m)


@dataclass(frozen=True)
class EnrichedTrack:
    """Trace + séries cumulées alignées sur les points"""
    activity: RawActivity
    cumulative_distance_m: Tuple[float, ...]
    elapsed_s: Tuple[float, ...]

    @property
    def points(self) -> Tuple[TrackPoint, ...]:
        return self.activity.points

    @property
    def total_distance_m(self) -> float:
        return self.cumulative_distance_m[-1]

    @property
    def total_duration_s(self) -> float:
        return self.elapsed_s[-1]

    def __len__(self) -> int:
        return len(self.cumulative_distance_m)


def enrich_track(activity: RawActivity) -> EnrichedTrack:
    """Calcule en une passe la distance cumulée et le temps écoulé par point"""
    points = activity.points
    start = points[0].timestamp
    distances: List[float] = [0.0]
    elapsed: List[float] = [0.0]

    cumulative = 0.0
    for i in range(1, len(points)):
        cumulative += point_distance(points[i - 1], points[i])
        distances.append(cumulative)
        elapsed.append((points[i].timestamp - start).total_seconds())

    return EnrichedTrack(
        activity=activity,
        cumulative_distance_m=tuple(distances),
        elapsed_s=tuple(elapsed),
    )


def summarize(activity: RawActivity, track: Optional[EnrichedTrack] = None) -> ActivitySummary:
    """Résumé pour la détection de doublons.

    Les valeurs rapportées par la source priment sur les valeurs recalculées.
    """
    distance = activity.reported_distance_m
    duration = activity.reported_duration_s
    if distance is None or duration is None:
        track = track or enrich_track(activity)
        if distance is None:
            distance = track.total_distance_m
        if duration is None:
            duration = track.total_duration_s
    return ActivitySummary(
        start_time=activity.start_time,
        distance_m=distance,
        duration_s=duration,
    )


def _confirmed_run(delta: float, distance: float, config: ElevationConfig) -> Tuple[float, float]:
    """(D+, D-) d'une série dans un même sens, (0, 0) si sous l'un des seuils"""
    if abs(delta) <= config.noise_threshold_m or distance <= config.min_distance_m:
        return 0.0, 0.0
    if delta > 0:
        return delta, 0.0
    return 0.0, -delta


def smooth_elevation(points: Sequence[TrackPoint], config: ElevationConfig) -> Tuple[float, float]:
    """
    Filtre de bruit d'altitude en une seule passe, retourne (D+, D-).

    On accumule l'écart d'altitude et la distance horizontale tant que
    l'altitude évolue dans le même sens (les paliers prolongent la série).
    À chaque changement de sens, et en fin de trace, la série est validée si
    |écart| dépasse noise_threshold_m ET la distance dépasse min_distance_m ;
    son écart complet s'ajoute alors au D+ ou au D-.
    """
    gain = 0.0
    loss = 0.0
    last_elevation: Optional[float] = None
    run_delta = 0.0
    run_distance = 0.0
    pending_distance = 0.0  # depuis le dernier point avec altitude
    previous: Optional[TrackPoint] = None

    for point in points:
        if previous is not None:
            pending_distance += point_distance(previous, point)
        previous = point

        if point.elevation_m is None:
            # Pas d'altitude : on ne suit que la distance
            continue

        if last_elevation is None:
            last_elevation = point.elevation_m
            pending_distance = 0.0
            continue

        delta = point.elevation_m - last_elevation
        last_elevation = point.elevation_m

        if run_delta and delta and (delta > 0) != (run_delta > 0):
            run_gain, run_loss = _confirmed_run(run_delta, run_distance, config)
            gain += run_gain
            loss += run_loss
            run_delta = 0.0
            run_distance = 0.0

        run_delta += delta
        run_distance += pending_distance
        pending_distance = 0.0

    run_gain, run_loss = _confirmed_run(run_delta, run_distance, config)
    return gain + run_gain, loss + run_loss
