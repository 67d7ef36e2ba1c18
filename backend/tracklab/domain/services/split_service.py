"""
Découpage d'une séance en splits de distance fixe (1 km, 1 mile, ...)
Le temps de passage à chaque borne est interpolé linéairement entre les deux
points qui l'encadrent ; le reste final devient le dernier split quelle que soit sa taille.
"""
import logging
from typing import List

from tracklab.domain.entities.metrics import Split
from tracklab.domain.services.geometry import EnrichedTrack, pace_seconds_per_unit

logger = logging.getLogger(__name__)


def _make_split(index: int, distance_m: float, duration_s: float, unit_distance_m: float) -> Split:
    return Split(
        index=index,
        distance_m=distance_m,
        duration_s=duration_s,
        pace_s=pace_seconds_per_unit(duration_s, distance_m, unit_distance_m),
    )


def build_splits(track: EnrichedTrack, unit_distance_m: float = 1000.0) -> List[Split]:
    """Construit les splits d'une trace enrichie.

    La somme des durées est égale à la durée totale de la trace.
    """
    if unit_distance_m <= 0:
        raise ValueError("unit_distance_m doit etre positif")

    distances = track.cumulative_distance_m
    times = track.elapsed_s

    splits: List[Split] = []
    next_boundary = unit_distance_m
    split_start_time = 0.0

    for i in range(1, len(distances)):
        prev_dist, curr_dist = distances[i - 1], distances[i]
        # Un même segment peut franchir plusieurs bornes (trou GPS)
        while curr_dist >= next_boundary:
            frac = (next_boundary - prev_dist) / (curr_dist - prev_dist)
            crossing_time = times[i - 1] + frac * (times[i] - times[i - 1])
            splits.append(_make_split(
                len(splits), unit_distance_m, crossing_time - split_start_time, unit_distance_m
            ))
            split_start_time = crossing_time
            next_boundary += unit_distance_m

    remaining_distance = track.total_distance_m - (next_boundary - unit_distance_m)
    remaining_time = track.total_duration_s - split_start_time
    if remaining_distance > 0 or remaining_time > 0 or not splits:
        splits.append(_make_split(
            len(splits), max(remaining_distance, 0.0), remaining_time, unit_distance_m
        ))

    logger.debug(f"{len(splits)} splits de {unit_distance_m:.0f}m")
    return splits
