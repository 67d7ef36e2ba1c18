"""
Entité RawActivity - Domain Layer
Représentation canonique d'une trace GPS, indépendante du format source
"""
from datetime import datetime
from enum import Enum
from typing import Optional, Tuple

from pydantic import BaseModel, ConfigDict


class SourceFormat(str, Enum):
    """Formats de fichiers d'activité acceptés"""
    GPX = "gps-xml"
    CSV = "tabular-csv"
    FIT = "vendor-binary"
    FIT_GZIP = "vendor-binary+gzip"


class TrackPoint(BaseModel):
    """Point de trace (timestamp toujours en UTC)"""
    model_config = ConfigDict(frozen=True)

    timestamp: datetime
    latitude: float
    longitude: float
    elevation_m: Optional[float] = None
    heart_rate_bpm: Optional[int] = None
    cadence_rpm: Optional[int] = None
    power_watts: Optional[int] = None
    temperature_c: Optional[float] = None


class RawActivity(BaseModel):
    """Trace normalisée produite par un normalizer, immuable une fois construite"""
    model_config = ConfigDict(frozen=True)

    points: Tuple[TrackPoint, ...]
    source_format: SourceFormat
    name: Optional[str] = None
    activity_type: Optional[str] = None
    device_name: Optional[str] = None
    reported_distance_m: Optional[float] = None  # en mètres
    reported_duration_s: Optional[float] = None  # en secondes

    @property
    def start_time(self) -> datetime:
        return self.points[0].timestamp

    @property
    def end_time(self) -> datetime:
        return self.points[-1].timestamp

    def truncated(self, start_index: int, end_index: int) -> "RawActivity":
        """Copie restreinte aux points [start_index, end_index] (inclus).

        Les résumés rapportés par la source ne valent plus pour la trace recadrée.
        """
        return self.model_copy(update={
            "points": self.points[start_index:end_index + 1],
            "reported_distance_m": None,
            "reported_duration_s": None,
        })
