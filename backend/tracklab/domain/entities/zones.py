"""
Entité ZoneConfig - Domain Layer
Zones de fréquence cardiaque fournies par les réglages utilisateur
"""
from enum import Enum
from typing import Optional, Tuple

from pydantic import BaseModel, ConfigDict, model_validator

ZONE_COUNT = 5


class ZoneMethod(str, Enum):
    """Méthode de calcul des zones"""
    AGE_BASED = "age_based"
    KARVONEN = "karvonen"
    CUSTOM = "custom"


class HeartRateZone(BaseModel):
    """Bornes d'une zone en bpm"""
    model_config = ConfigDict(frozen=True)

    min_bpm: int
    max_bpm: int


class ZoneConfig(BaseModel):
    """Configuration des 5 zones cardiaques.

    Les zones sont contiguës, croissantes et partitionnent [0, max_hr].
    """
    model_config = ConfigDict(frozen=True)

    method: ZoneMethod
    zones: Tuple[HeartRateZone, ...]
    age: Optional[int] = None
    resting_hr: Optional[int] = None
    max_hr: Optional[int] = None

    @model_validator(mode="after")
    def _check_zones(self) -> "ZoneConfig":
        if len(self.zones) != ZONE_COUNT:
            raise ValueError(f"Exactement {ZONE_COUNT} zones sont requises")
        if self.zones[0].min_bpm != 0:
            raise ValueError("La zone 1 doit commencer a 0 bpm")
        for idx, zone in enumerate(self.zones):
            if zone.min_bpm >= zone.max_bpm:
                raise ValueError(f"Zone {idx + 1}: min_bpm doit etre inferieur a max_bpm")
        for idx in range(ZONE_COUNT - 1):
            if self.zones[idx].max_bpm != self.zones[idx + 1].min_bpm:
                raise ValueError(f"Zones {idx + 1} et {idx + 2} non contigues")
        return self

    @property
    def ceiling_bpm(self) -> int:
        return self.zones[-1].max_bpm
