"""
Détection de doublons entre une séance candidate et les séances connues.

Match flou (même départ à quelques secondes, distance et durée à quelques
pourcents) car deux exports du même effort par des appareils différents
n'arrondissent pas pareil. Tolérances étroites : on préfère rater un doublon
que rejeter une séance courte légitime.
"""
import logging
from typing import Iterable, Optional

from tracklab.domain.entities.pipeline_config import DuplicateTolerance
from tracklab.domain.entities.workout import ActivitySummary

logger = logging.getLogger(__name__)


def _within_ratio(candidate: float, other: float, ratio: float) -> bool:
    return abs(other - candidate) <= ratio * abs(candidate)


def is_duplicate_of(
    candidate: ActivitySummary,
    existing: ActivitySummary,
    tolerance: DuplicateTolerance,
) -> bool:
    """Compare deux résumés"""
    start_delta = abs((existing.start_time - candidate.start_time).total_seconds())
    if start_delta > tolerance.start_time_s:
        return False
    if not _within_ratio(candidate.distance_m, existing.distance_m, tolerance.distance_ratio):
        return False
    return _within_ratio(candidate.duration_s, existing.duration_s, tolerance.duration_ratio)


def find_duplicate(
    candidate: ActivitySummary,
    existing_summaries: Iterable[ActivitySummary],
    tolerance: Optional[DuplicateTolerance] = None,
) -> Optional[ActivitySummary]:
    """
    Retourne le premier résumé existant qui correspond, ou None.
    L'itérable peut être paresseux : le parcours s'arrête au premier match.
    """
    tolerance = tolerance or DuplicateTolerance()
    for existing in existing_summaries:
        if is_duplicate_of(candidate, existing, tolerance):
            logger.debug(
                f"Doublon detecte: depart {candidate.start_time.isoformat()} "
                f"~ {existing.start_time.isoformat()}"
            )
            return existing
    return None


def is_duplicate(
    candidate: ActivitySummary,
    existing_summaries: Iterable[ActivitySummary],
    tolerance: Optional[DuplicateTolerance] = None,
) -> bool:
    return find_duplicate(candidate, existing_summaries, tolerance) is not None
