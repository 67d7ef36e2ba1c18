"""
Score d'effort relatif : somme pondérée du temps passé par zone cardiaque
"""
from typing import Optional, Tuple

from tracklab.domain.entities.metrics import ZoneDistribution
from tracklab.domain.entities.zones import ZoneConfig
from tracklab.domain.services.geometry import EnrichedTrack
from tracklab.domain.services.heart_rate_zone_service import zone_distribution

# Points par minute passée en zone 1..5 (table fixe)
ZONE_WEIGHTS: Tuple[int, ...] = (1, 2, 3, 4, 5)


def score_distribution(distribution: Optional[ZoneDistribution]) -> Optional[int]:
    """Effort relatif d'une distribution, None sans données cardiaques"""
    if distribution is None:
        return None
    points = sum(
        weight * seconds / 60.0
        for weight, seconds in zip(ZONE_WEIGHTS, distribution.seconds_per_zone)
    )
    return int(round(points))


def relative_effort(track: EnrichedTrack, config: ZoneConfig) -> Optional[int]:
    return score_distribution(zone_distribution(track, config))
