"""
Entités DerivedMetrics - Domain Layer
Métriques calculées à partir d'une trace normalisée et de la configuration utilisateur
"""
from typing import Dict, Mapping, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field

METERS_PER_MILE = 1609.344

# Distances standard des meilleurs efforts (en mètres)
STANDARD_BEST_EFFORT_DISTANCES: Dict[str, float] = {
    "400m": 400.0,
    "1/2 mile": METERS_PER_MILE / 2,
    "1K": 1000.0,
    "1 mile": METERS_PER_MILE,
    "2 mile": METERS_PER_MILE * 2,
    "5K": 5000.0,
    "10K": 10000.0,
    "15K": 15000.0,
    "10 mile": METERS_PER_MILE * 10,
    "20K": 20000.0,
    "Half-Marathon": 21097.5,
    "30K": 30000.0,
    "Marathon": 42195.0,
}


class Split(BaseModel):
    """Tranche de distance fixe (la dernière peut être partielle)"""
    model_config = ConfigDict(frozen=True)

    index: int
    distance_m: float
    duration_s: float
    pace_s: Optional[float] = None  # s par unité de split, None si distance nulle


class BestEffortCandidate(BaseModel):
    """Fenêtre la plus rapide couvrant au moins distance_m"""
    model_config = ConfigDict(frozen=True)

    distance_label: str
    distance_m: float
    time_s: float
    start_index: int
    end_index: int


class ElevationSummary(BaseModel):
    """D+ / D- filtrés et altitudes extrêmes"""
    model_config = ConfigDict(frozen=True)

    gain_m: float = 0.0
    loss_m: float = 0.0
    min_m: Optional[float] = None
    max_m: Optional[float] = None


class ZoneDistribution(BaseModel):
    """Secondes passées dans chacune des 5 zones"""
    model_config = ConfigDict(frozen=True)

    seconds_per_zone: Tuple[float, float, float, float, float]

    @property
    def total_seconds(self) -> float:
        return sum(self.seconds_per_zone)


class DerivedMetrics(BaseModel):
    """Agrégat des analyses d'une séance, recalculé en bloc (jamais modifié)"""
    model_config = ConfigDict(frozen=True)

    distance_m: float
    duration_s: float
    avg_pace_s: Optional[float] = None  # s/km
    splits: Tuple[Split, ...] = ()
    elevation_gain_m: float = 0.0
    elevation_loss_m: float = 0.0
    min_elevation_m: Optional[float] = None
    max_elevation_m: Optional[float] = None
    avg_heart_rate_bpm: Optional[float] = None
    max_heart_rate_bpm: Optional[int] = None
    avg_cadence_rpm: Optional[float] = None
    avg_power_watts: Optional[float] = None
    zone_distribution: Optional[ZoneDistribution] = None
    relative_effort: Optional[int] = None
    best_efforts: Mapping[str, BestEffortCandidate] = Field(default_factory=dict)


class ElevationConfig(BaseModel):
    """Seuils du filtre de bruit d'altitude"""
    model_config = ConfigDict(frozen=True)

    noise_threshold_m: float = 2.0
    min_distance_m: float = 10.0
