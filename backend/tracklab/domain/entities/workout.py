"""
Entité WorkoutRecord - Domain Layer
Séance canonique transmise au store, et rapport d'import par fichier
"""
from datetime import datetime
from enum import Enum
from typing import Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict, Field

from .metrics import DerivedMetrics
from .track import RawActivity, SourceFormat


class ActivitySummary(BaseModel):
    """Résumé comparé par le détecteur de doublons"""
    model_config = ConfigDict(frozen=True)

    start_time: datetime
    distance_m: float  # en mètres
    duration_s: float  # en secondes
    workout_id: Optional[UUID] = None


class WorkoutRecord(BaseModel):
    """Séance normalisée + métriques dérivées"""
    model_config = ConfigDict(frozen=True)

    id: UUID = Field(default_factory=uuid4)
    source_path: Optional[str] = None
    name: Optional[str] = None
    activity_type: str = "Run"
    source_format: SourceFormat
    device_name: Optional[str] = None
    start_time: datetime
    distance_m: float
    duration_s: float
    track: RawActivity
    metrics: DerivedMetrics

    def summary(self) -> ActivitySummary:
        return ActivitySummary(
            start_time=self.start_time,
            distance_m=self.distance_m,
            duration_s=self.duration_s,
            workout_id=self.id,
        )


class ManifestRow(BaseModel):
    """Ligne du manifeste activities.csv d'une archive d'export"""
    model_config = ConfigDict(frozen=True)

    row_number: int
    activity_id: str = ""
    activity_date: str = ""
    name: str = ""
    activity_type: str = ""
    filename: str = ""


class ImportStatus(str, Enum):
    """Statut d'une ligne du lot"""
    IMPORTED = "imported"
    SKIPPED = "skipped"
    FAILED = "failed"


class ImportOutcome(BaseModel):
    """Résultat transitoire d'une ligne du lot (jamais persisté)"""
    model_config = ConfigDict(frozen=True)

    source_path: str
    status: ImportStatus
    reason: Optional[str] = None
    error: Optional[str] = None
    error_type: Optional[str] = None
    workout_id: Optional[UUID] = None

    @classmethod
    def imported(cls, source_path: str, workout_id: UUID) -> "ImportOutcome":
        return cls(source_path=source_path, status=ImportStatus.IMPORTED, workout_id=workout_id)

    @classmethod
    def skipped(cls, source_path: str, reason: str) -> "ImportOutcome":
        return cls(source_path=source_path, status=ImportStatus.SKIPPED, reason=reason)

    @classmethod
    def failed(cls, source_path: str, error: BaseException) -> "ImportOutcome":
        return cls(
            source_path=source_path,
            status=ImportStatus.FAILED,
            error=str(error) or error.__class__.__name__,
            error_type=error.__class__.__name__,
        )
