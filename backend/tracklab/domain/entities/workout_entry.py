"""
Entités de persistance - Domain Layer
Tables SQLModel utilisées par le store des séances importées
"""
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional
from uuid import UUID, uuid4

from sqlmodel import JSON, Column, Field, SQLModel


def utc_now() -> datetime:
    """Horodatage UTC avec fuseau (les colonnes datetime refusent les valeurs naives)"""
    return datetime.now(timezone.utc)


class WorkoutEntry(SQLModel, table=True):
    """Séance persistée (résumé + métriques à plat)"""
    __tablename__ = "workout"

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    name: Optional[str] = None
    activity_type: str = Field(default="Run")
    source_format: str
    source_path: Optional[str] = None
    device_name: Optional[str] = None
    started_at: datetime = Field(index=True)
    distance_m: float  # en mètres
    duration_s: float  # en secondes
    avg_pace_s: Optional[float] = None  # s/km

    elevation_gain_m: float = 0.0
    elevation_loss_m: float = 0.0
    min_elevation_m: Optional[float] = None
    max_elevation_m: Optional[float] = None
    avg_heart_rate_bpm: Optional[float] = None
    max_heart_rate_bpm: Optional[int] = None
    relative_effort: Optional[int] = None

    splits_data: Optional[List[Dict[str, Any]]] = Field(
        default=None,
        sa_column=Column(JSON),
        description="Splits {index, distance_m, duration_s, pace_s}"
    )
    zone_seconds: Optional[List[float]] = Field(default=None, sa_column=Column(JSON))

    created_at: datetime = Field(default_factory=utc_now)


class BestEffortEntry(SQLModel, table=True):
    """Meilleur temps connu pour une distance standard"""
    __tablename__ = "best_effort"

    distance_label: str = Field(primary_key=True)
    distance_m: float
    time_s: float
    workout_id: UUID = Field(foreign_key="workout.id")
    workout_date: datetime
    updated_at: datetime = Field(default_factory=utc_now)
