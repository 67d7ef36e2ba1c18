"""
Configuration explicite du pipeline
Construite par l'appelant (réglages utilisateur) et passée à chaque calcul
"""
from typing import Dict, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field

from .metrics import STANDARD_BEST_EFFORT_DISTANCES, ElevationConfig
from .zones import ZoneConfig


class DuplicateTolerance(BaseModel):
    """Tolérances de détection de doublons (volontairement étroites)"""
    model_config = ConfigDict(frozen=True)

    start_time_s: float = 5.0
    distance_ratio: float = 0.02
    duration_ratio: float = 0.02


class MetricsConfig(BaseModel):
    """Paramètres des calculateurs de métriques"""
    model_config = ConfigDict(frozen=True)

    split_distance_m: float = Field(default=1000.0, gt=0)
    elevation: ElevationConfig = Field(default_factory=ElevationConfig)
    zones: Optional[ZoneConfig] = None
    best_effort_distances: Mapping[str, float] = Field(
        default_factory=lambda: dict(STANDARD_BEST_EFFORT_DISTANCES)
    )


def default_metrics_config() -> MetricsConfig:
    """Configuration par défaut (km, pas de zones cardiaques)"""
    return MetricsConfig()


def best_effort_table(labels: Optional[list] = None) -> Dict[str, float]:
    """Sous-ensemble de la table standard, dans l'ordre des distances"""
    if not labels:
        return dict(STANDARD_BEST_EFFORT_DISTANCES)
    unknown = [label for label in labels if label not in STANDARD_BEST_EFFORT_DISTANCES]
    if unknown:
        raise ValueError(f"Distances inconnues: {unknown}")
    return {
        label: distance
        for label, distance in STANDARD_BEST_EFFORT_DISTANCES.items()
        if label in labels
    }
