"""
Zones de fréquence cardiaque : calcul (220-âge, Karvonen, personnalisées),
classification des échantillons et distribution du temps par zone.
"""
import logging
from typing import List, Optional, Sequence, Tuple

from tracklab.domain.entities.metrics import ZoneDistribution
from tracklab.domain.entities.zones import ZONE_COUNT, HeartRateZone, ZoneConfig, ZoneMethod
from tracklab.domain.services.geometry import EnrichedTrack

logger = logging.getLogger(__name__)

# Bornes hautes des zones 1..5 en fraction de FCmax (ou de réserve cardiaque).
# La zone 1 démarre à 0 pour que les zones partitionnent [0, FCmax].
ZONE_UPPER_PERCENTAGES: Tuple[float, ...] = (0.60, 0.70, 0.80, 0.90, 1.00)

# Écart maximal entre deux échantillons avant de considérer une pause
MAX_SAMPLE_GAP_S = 10.0
DEFAULT_SAMPLE_S = 1.0


def _zones_from_bounds(bounds: Sequence[int]) -> Tuple[HeartRateZone, ...]:
    zones: List[HeartRateZone] = []
    lower = 0
    for upper in bounds:
        zones.append(HeartRateZone(min_bpm=lower, max_bpm=upper))
        lower = upper
    return tuple(zones)


def zones_from_age(age: int) -> ZoneConfig:
    """Zones par la formule 220 - âge"""
    if age < 1 or age > 120:
        raise ValueError("L'age doit etre compris entre 1 et 120")

    max_hr = 220 - age
    bounds = [round(max_hr * pct) for pct in ZONE_UPPER_PERCENTAGES]
    return ZoneConfig(
        method=ZoneMethod.AGE_BASED,
        zones=_zones_from_bounds(bounds),
        age=age,
        max_hr=max_hr,
    )


def zones_from_karvonen(max_hr: int, resting_hr: int) -> ZoneConfig:
    """Zones par la réserve cardiaque : repos + pct * (max - repos)"""
    if max_hr < 60 or max_hr > 250:
        raise ValueError("La FC max doit etre comprise entre 60 et 250 bpm")
    if resting_hr < 30 or resting_hr > 120:
        raise ValueError("La FC de repos doit etre comprise entre 30 et 120 bpm")
    if max_hr <= resting_hr:
        raise ValueError("La FC max doit etre superieure a la FC de repos")

    reserve = max_hr - resting_hr
    bounds = [round(resting_hr + pct * reserve) for pct in ZONE_UPPER_PERCENTAGES]
    return ZoneConfig(
        method=ZoneMethod.KARVONEN,
        zones=_zones_from_bounds(bounds),
        max_hr=max_hr,
        resting_hr=resting_hr,
    )


def validate_custom_zones(zones: Sequence[Tuple[int, int]]) -> Tuple[bool, Optional[str]]:
    """Valide des bornes saisies par l'utilisateur, retourne (ok, message)"""
    if zones is None or len(zones) != ZONE_COUNT:
        return False, f"Exactement {ZONE_COUNT} zones sont requises"

    for idx, (min_bpm, max_bpm) in enumerate(zones):
        if min_bpm >= max_bpm:
            return False, f"Zone {idx + 1}: le minimum doit etre inferieur au maximum"
        if max_bpm > 250:
            return False, f"Zone {idx + 1}: les valeurs doivent etre inferieures a 250 bpm"

    if zones[0][0] != 0:
        return False, "La zone 1 doit commencer a 0 bpm"

    for idx in range(ZONE_COUNT - 1):
        if zones[idx][1] > zones[idx + 1][0]:
            return False, f"Zones {idx + 1} et {idx + 2} se chevauchent ou ne sont pas croissantes"
        if zones[idx][1] < zones[idx + 1][0]:
            return False, f"Trou entre les zones {idx + 1} et {idx + 2}"

    return True, None


def custom_zones(zones: Sequence[Tuple[int, int]]) -> ZoneConfig:
    """ZoneConfig à partir de bornes utilisateur (lève ValueError si invalides)"""
    ok, message = validate_custom_zones(zones)
    if not ok:
        raise ValueError(message)
    return ZoneConfig(
        method=ZoneMethod.CUSTOM,
        zones=tuple(HeartRateZone(min_bpm=lo, max_bpm=hi) for lo, hi in zones),
        max_hr=zones[-1][1],
    )


def classify_heart_rate(bpm: Optional[float], config: ZoneConfig) -> Optional[int]:
    """Zone 1..5 d'un échantillon, None si absent.

    Min inclusif, max exclusif, sauf la zone 5 (max inclusif). Au-delà du
    plafond de la zone 5 l'échantillon compte en zone 5.
    """
    if bpm is None:
        return None
    zones = config.zones
    if bpm < zones[0].min_bpm:
        return None
    for idx, zone in enumerate(zones[:-1]):
        if zone.min_bpm <= bpm < zone.max_bpm:
            return idx + 1
    return ZONE_COUNT


def zone_distribution(track: EnrichedTrack, config: ZoneConfig) -> Optional[ZoneDistribution]:
    """Temps passé par zone, pondéré par l'écart au prochain échantillon.

    Retourne None si la trace n'a aucun échantillon cardiaque.
    """
    points = track.points
    times = track.elapsed_s
    seconds = [0.0] * ZONE_COUNT
    has_samples = False

    for i, point in enumerate(points):
        zone = classify_heart_rate(point.heart_rate_bpm, config)
        if point.heart_rate_bpm is not None:
            has_samples = True
        if zone is None:
            continue

        duration = DEFAULT_SAMPLE_S
        if i < len(points) - 1:
            gap = times[i + 1] - times[i]
            if 0 <= gap <= MAX_SAMPLE_GAP_S:
                duration = gap
        seconds[zone - 1] += duration

    if not has_samples:
        return None
    return ZoneDistribution(seconds_per_zone=tuple(seconds))
