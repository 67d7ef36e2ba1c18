"""
Configuration centralisée de TrackLab
Utilise pydantic-settings pour la gestion des variables d'environnement.
Les calculateurs ne lisent jamais ces réglages : ils reçoivent les objets
de configuration construits ici par l'appelant (CLI).
"""
from typing import Optional

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings

from tracklab.domain.entities.metrics import ElevationConfig
from tracklab.domain.entities.pipeline_config import DuplicateTolerance, MetricsConfig
from tracklab.domain.entities.zones import ZoneConfig, ZoneMethod
from tracklab.domain.services.heart_rate_zone_service import zones_from_age, zones_from_karvonen


class Settings(BaseSettings):
    """Configuration de l'application"""

    # Database
    DATABASE_URL: str = Field(
        default="sqlite:///tracklab.db",
        description="URL de la base de données des séances importées"
    )

    # Monitoring (Sentry)
    SENTRY_DSN: str = Field(
        default="",
        description="DSN Sentry pour le error tracking (vide = Sentry desactive)"
    )

    # Application
    ENVIRONMENT: str = Field(default="development")
    LOG_LEVEL: str = Field(
        default="",
        description="Niveau de logging (auto-configuré selon ENVIRONMENT si vide)"
    )
    LOG_FILE: str = Field(
        default="tracklab.log",
        description="Fichier de log tournant (hors production)"
    )

    # Filtre d'altitude
    ELEVATION_NOISE_THRESHOLD_M: float = Field(default=2.0, ge=0)
    ELEVATION_MIN_DISTANCE_M: float = Field(default=10.0, ge=0)

    # Splits
    SPLIT_DISTANCE_M: float = Field(
        default=1000.0,
        gt=0,
        description="Distance d'un split (1000 = km, 1609.344 = mile)"
    )

    # Détection de doublons (tolérances étroites)
    DEDUP_START_TOLERANCE_S: float = Field(default=5.0, ge=0)
    DEDUP_DISTANCE_TOLERANCE: float = Field(
        default=0.02,
        ge=0,
        description="Écart relatif de distance accepté (0.02 = 2%)"
    )
    DEDUP_DURATION_TOLERANCE: float = Field(default=0.02, ge=0)

    # Import en masse
    TRACKED_ACTIVITY_TYPE: str = Field(default="Run")
    IMPORT_MAX_WORKERS: Optional[int] = Field(
        default=None,
        description="Taille du pool d'import (vide = nombre de coeurs)"
    )
    IMPORT_FILE_TIMEOUT_S: float = Field(default=120.0, gt=0)

    # Zones cardiaques (vide = pas de zones ni d'effort relatif)
    HR_ZONE_METHOD: str = Field(
        default="",
        description="age_based ou karvonen"
    )
    ATHLETE_AGE: Optional[int] = Field(default=None)
    RESTING_HR: Optional[int] = Field(default=None)
    MAX_HR: Optional[int] = Field(default=None)

    @model_validator(mode="after")
    def _configure_environment(self) -> "Settings":
        """Configure LOG_LEVEL selon ENVIRONMENT."""
        is_prod = self.ENVIRONMENT == "production"
        if not self.LOG_LEVEL:
            self.LOG_LEVEL = "WARNING" if is_prod else "INFO"
        return self

    def elevation_config(self) -> ElevationConfig:
        return ElevationConfig(
            noise_threshold_m=self.ELEVATION_NOISE_THRESHOLD_M,
            min_distance_m=self.ELEVATION_MIN_DISTANCE_M,
        )

    def duplicate_tolerance(self) -> DuplicateTolerance:
        return DuplicateTolerance(
            start_time_s=self.DEDUP_START_TOLERANCE_S,
            distance_ratio=self.DEDUP_DISTANCE_TOLERANCE,
            duration_ratio=self.DEDUP_DURATION_TOLERANCE,
        )

    def zone_config(self) -> Optional[ZoneConfig]:
        """Zones cardiaques issues des réglages, None si non configurées"""
        if not self.HR_ZONE_METHOD:
            return None
        method = ZoneMethod(self.HR_ZONE_METHOD.lower())
        if method == ZoneMethod.AGE_BASED:
            if self.ATHLETE_AGE is None:
                raise ValueError("ATHLETE_AGE est requis pour HR_ZONE_METHOD=age_based")
            return zones_from_age(self.ATHLETE_AGE)
        if method == ZoneMethod.KARVONEN:
            if self.MAX_HR is None or self.RESTING_HR is None:
                raise ValueError("MAX_HR et RESTING_HR sont requis pour HR_ZONE_METHOD=karvonen")
            return zones_from_karvonen(self.MAX_HR, self.RESTING_HR)
        raise ValueError("Les zones personnalisees se configurent via custom_zones()")

    def metrics_config(self) -> MetricsConfig:
        return MetricsConfig(
            split_distance_m=self.SPLIT_DISTANCE_M,
            elevation=self.elevation_config(),
            zones=self.zone_config(),
        )

    class Config:
        env_file = ".env"
        case_sensitive = True


def get_settings() -> Settings:
    """Récupère la configuration"""
    return Settings()
