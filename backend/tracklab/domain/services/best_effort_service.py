"""
Extraction des meilleurs efforts (400m, 1K, 5K, ...) sur une séance.
Fenêtre glissante à deux pointeurs sur les séries cumulées distance/temps.

Le calculateur reste pur : il rapporte le candidat, la promotion face au
meilleur temps stocké appartient au store.
"""
import logging
from typing import Dict, Mapping, Optional

from tracklab.domain.entities.metrics import BestEffortCandidate
from tracklab.domain.services.geometry import EnrichedTrack

logger = logging.getLogger(__name__)

# Tolérance flottante sur le cumul des distances Haversine
DISTANCE_EPSILON_M = 1e-6


def find_best_effort(
    track: EnrichedTrack,
    distance_label: str,
    target_distance_m: float,
) -> Optional[BestEffortCandidate]:
    """Fenêtre contiguë la plus rapide couvrant au moins target_distance_m.

    Le bord droit avance point par point ; tant que la fenêtre couvre la
    distance, on enregistre son temps puis on avance le bord gauche.
    O(n) par distance. En cas d'égalité, la première fenêtre est conservée.
    """
    distances = track.cumulative_distance_m
    times = track.elapsed_s
    n = len(distances)
    if n < 2 or distances[-1] + DISTANCE_EPSILON_M < target_distance_m:
        return None

    best_time: Optional[float] = None
    best_start = best_end = 0
    left = 0

    for right in range(1, n):
        while left < right and distances[right] - distances[left] + DISTANCE_EPSILON_M >= target_distance_m:
            elapsed = times[right] - times[left]
            if elapsed > 0 and (best_time is None or elapsed < best_time):
                best_time = elapsed
                best_start, best_end = left, right
            left += 1

    if best_time is None:
        return None

    return BestEffortCandidate(
        distance_label=distance_label,
        distance_m=target_distance_m,
        time_s=best_time,
        start_index=best_start,
        end_index=best_end,
    )


def find_best_efforts(
    track: EnrichedTrack,
    distances: Mapping[str, float],
) -> Dict[str, BestEffortCandidate]:
    """Meilleurs efforts pour chaque distance de la table (absents si trop courte)"""
    results: Dict[str, BestEffortCandidate] = {}
    for label, target in distances.items():
        candidate = find_best_effort(track, label, target)
        if candidate is not None:
            results[label] = candidate

    logger.debug(f"Meilleurs efforts trouves: {list(results)}")
    return results


def beats(candidate: BestEffortCandidate, stored_time_s: Optional[float]) -> bool:
    """Le candidat améliore-t-il le meilleur temps stocké ?"""
    return stored_time_s is None or candidate.time_s < stored_time_s
